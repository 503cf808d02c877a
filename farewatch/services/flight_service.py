"""
Persistence of the latest quote set of a monitored trip.

Flights are never matched against the previous scrape: departure times and
stop labels shift between page renders, so the whole set is replaced.
"""

import logging
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from farewatch.models import Flight, MonitoredTrip
from farewatch.scrapers.contract import Quote

logger = logging.getLogger(__name__)


def flight_from_quote(trip_id: int, quote: Quote, origin: Optional[str] = None,
                      destination: Optional[str] = None) -> Flight:
    return Flight(
        trip_id=trip_id,
        origin=origin,
        destination=destination,
        departure_time=quote.departure_time,
        arrival_time=quote.arrival_time,
        duration=quote.duration,
        airline=quote.airline,
        stops=quote.stops,
        price=quote.price,
        emissions=quote.emissions,
        stop_details=[s.to_dict() for s in quote.stop_details] or None,
    )


class TripAggregator:
    def __init__(self, db: Session):
        self.db = db

    def trip_exists(self, trip_id: int) -> bool:
        return self.db.query(MonitoredTrip.id).filter(MonitoredTrip.id == trip_id).first() is not None

    def current_min_price(self, trip_id: int) -> Optional[int]:
        """Cheapest stored Flight of the trip, None when it has none."""
        return self.db.query(func.min(Flight.price)).filter(Flight.trip_id == trip_id).scalar()

    def flight_count(self, trip_id: int) -> int:
        return self.db.query(Flight).filter(Flight.trip_id == trip_id).count()

    def replace_flights(
        self,
        trip_id: int,
        quotes: List[Quote],
        url: Optional[str] = None,
        origin: Optional[str] = None,
        destination: Optional[str] = None,
        date: Optional[str] = None,
    ) -> bool:
        """
        Delete every Flight of the trip and insert one per quote, in one transaction.

        Also records the canonical URL and the search echoed by the page when
        given. Returns False without writing when the trip no longer exists
        (e.g. deleted because its date passed).
        """
        trip = self.db.query(MonitoredTrip).filter(MonitoredTrip.id == trip_id).first()
        if trip is None:
            logger.info(f"Trip {trip_id} no longer exists, skipping flight update")
            return False

        try:
            deleted = self.db.query(Flight).filter(Flight.trip_id == trip_id).delete(
                synchronize_session=False
            )
            for quote in quotes:
                self.db.add(flight_from_quote(
                    trip_id, quote,
                    origin=origin or trip.origin,
                    destination=destination or trip.destination,
                ))

            if url and url != trip.url:
                logger.info(f"Trip {trip_id}: canonical URL updated")
                trip.url = url
            if origin and origin != "N/A":
                trip.origin = origin
            if destination and destination != "N/A":
                trip.destination = destination
            if date and date != "N/A" and not trip.date:
                trip.date = date

            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        # Drop stale identity-map entries left by the bulk delete
        self.db.expire(trip, ["flights"])
        logger.info(f"Trip {trip_id}: replaced {deleted} flights with {len(quotes)}")
        return True

    def delete_trip(self, trip_id: int) -> bool:
        """Delete a trip with its flights and history. False if it was already gone."""
        trip = self.db.query(MonitoredTrip).filter(MonitoredTrip.id == trip_id).first()
        if trip is None:
            return False
        self.db.delete(trip)
        self.db.commit()
        logger.info(f"Trip {trip_id} deleted")
        return True
