"""
Check cycle and monitor lifecycle.

One MonitoringService works on one database session. The scheduler builds a
fresh one per cycle; the API builds one per request. Items are checked
sequentially, each behind its own failure boundary, except for
InfrastructureFault, which stops the cycle.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from farewatch.config import get_settings
from farewatch.exceptions import (
    ExtractionError,
    InfrastructureFault,
    InvalidQueryFormat,
    MonitoringSetupError,
)
from farewatch.models import CarRental, Flight, MonitoredTrip, User
from farewatch.scrapers.browser import BrowserPool
from farewatch.scrapers.orchestrator import ScrapeOrchestrator, ScrapeOutcome
from farewatch.services.chart import ChartRenderer
from farewatch.services.flight_service import TripAggregator
from farewatch.services.messages import Language, format_car_alert, format_trip_alert
from farewatch.services.notification import TelegramNotifier
from farewatch.services.price_history import PriceAlertEngine, PriceChange
from farewatch.utils import search_url

logger = logging.getLogger(__name__)
settings = get_settings()

MAX_DATE_RANGE = 5


@dataclass
class CycleSummary:
    trips_checked: int = 0
    trips_failed: int = 0
    cars_checked: int = 0
    cars_failed: int = 0
    alerts_sent: int = 0


@dataclass
class TripListing:
    trip: MonitoredTrip
    min_price: Optional[int]
    max_price: Optional[int]
    flight_count: int


class MonitoringService:
    def __init__(
        self,
        db: Session,
        orchestrator: ScrapeOrchestrator,
        notifier: Optional[TelegramNotifier] = None,
        chart_renderer: Optional[ChartRenderer] = None,
        threshold_percent: Optional[float] = None,
    ):
        self.db = db
        self.orchestrator = orchestrator
        self.notifier = notifier
        self.chart_renderer = chart_renderer
        self.aggregator = TripAggregator(db)
        self.alerts = PriceAlertEngine(db, threshold_percent)

    # Check cycle

    async def run_check_cycle(self) -> CycleSummary:
        """Check every active trip, then every active car rental."""
        summary = CycleSummary()

        trips = self.db.query(MonitoredTrip).filter(
            MonitoredTrip.is_active == True
        ).order_by(MonitoredTrip.id).all()
        trip_ids = [t.id for t in trips]
        logger.info(f"Checking {len(trip_ids)} monitored trips")

        for trip_id in trip_ids:
            trip = self.db.get(MonitoredTrip, trip_id)
            if trip is None:
                continue
            try:
                change = await self.check_trip(trip)
                summary.trips_checked += 1
                if change is not None and change.should_alert:
                    summary.alerts_sent += 1
            except InfrastructureFault:
                raise
            except Exception as e:
                summary.trips_failed += 1
                self.db.rollback()
                logger.error(f"Error checking trip {trip_id}: {e}")

        rentals = self.db.query(CarRental).filter(
            CarRental.is_active == True
        ).order_by(CarRental.id).all()
        rental_ids = [r.id for r in rentals]
        logger.info(f"Checking {len(rental_ids)} monitored car rentals")

        for rental_id in rental_ids:
            rental = self.db.get(CarRental, rental_id)
            if rental is None:
                continue
            try:
                change = await self.check_car_rental(rental)
                summary.cars_checked += 1
                if change.should_alert:
                    summary.alerts_sent += 1
            except InfrastructureFault:
                raise
            except Exception as e:
                summary.cars_failed += 1
                self.db.rollback()
                logger.error(f"Error checking car rental {rental_id}: {e}")

        return summary

    async def check_trip(self, trip: MonitoredTrip) -> Optional[PriceChange]:
        """
        Refresh the quotes of one trip and alert on a large enough move.

        Returns None when the trip vanished, went stale or had no baseline yet.
        """
        trip_id = trip.id
        if not self.aggregator.trip_exists(trip_id):
            logger.info(f"Trip {trip_id} no longer exists, skipping")
            return None

        # Baseline must be read before the flights are replaced
        baseline = self.alerts.trip_baseline(trip_id, self.aggregator.current_min_price(trip_id))

        outcome = await self.orchestrator.fetch_quotes(trip.url, trip_id)
        if outcome.stale:
            logger.info(f"Trip {trip_id} removed: departure date has passed")
            return None

        if not self.aggregator.replace_flights(
            trip_id, outcome.quotes,
            url=outcome.url,
            origin=outcome.origin,
            destination=outcome.destination,
            date=outcome.date,
        ):
            return None

        new_lowest = outcome.lowest_price
        if baseline is None:
            logger.info(f"Trip {trip_id}: no baseline yet, lowest price now {new_lowest}")
            return None

        change = self.alerts.record_trip_price(trip_id, new_lowest, baseline)
        if change.should_alert:
            await self._send_trip_alert(trip, change)
        return change

    async def check_car_rental(self, rental: CarRental) -> PriceChange:
        quote = await self.orchestrator.fetch_car_quote(
            rental.airport_code, rental.start_date, rental.end_date, rental.id
        )
        rental.title = quote.title
        rental.url = quote.url

        change = self.alerts.record_car_price(rental, quote.price)
        if not change.recorded:
            self.db.commit()
        if change.should_alert:
            await self._send_car_alert(rental, change)
        return change

    # Alerts

    def _language_for(self, user_id: int) -> Language:
        user = self.db.get(User, user_id)
        return Language.from_code(user.language if user else settings.default_language)

    async def _send(self, user_id: int, text: str, points) -> bool:
        if self.notifier is None:
            logger.warning(f"No notifier configured, alert for user {user_id} dropped")
            return False
        try:
            image = None
            if self.chart_renderer is not None and len(points) > 1:
                image = await self.chart_renderer.render_price_history(points)
            return await self.notifier.send_alert(user_id, text, image)
        except Exception as e:
            logger.error(f"Failed to deliver alert to user {user_id}: {e}")
            return False

    async def _send_trip_alert(self, trip: MonitoredTrip, change: PriceChange) -> bool:
        flights = self.db.query(Flight).filter(Flight.trip_id == trip.id).all()
        text = format_trip_alert(trip, change, flights, self._language_for(trip.user_id))
        points = []
        if change.wants_chart:
            points = [(h.timestamp, h.price) for h in self.alerts.trip_history(trip.id)]
        return await self._send(trip.user_id, text, points)

    async def _send_car_alert(self, rental: CarRental, change: PriceChange) -> bool:
        text = format_car_alert(rental, change, self._language_for(rental.user_id))
        points = []
        if change.wants_chart:
            points = [(h.timestamp, h.price) for h in self.alerts.car_history(rental.id)]
        return await self._send(rental.user_id, text, points)

    # Monitor lifecycle

    def ensure_user(self, user_id: int, language: Optional[str] = None) -> User:
        user = self.db.get(User, user_id)
        if user is None:
            user = User(id=user_id, language=Language.from_code(language or settings.default_language).value)
            self.db.add(user)
            self.db.commit()
            logger.info(f"Created user {user_id}")
        elif language:
            user.language = Language.from_code(language).value
            self.db.commit()
        return user

    def _create_trip(self, user_id: int, outcome: ScrapeOutcome) -> MonitoredTrip:
        trip = MonitoredTrip(
            user_id=user_id,
            url=outcome.url,
            date=outcome.date,
            origin=outcome.origin,
            destination=outcome.destination,
        )
        self.db.add(trip)
        self.db.commit()
        self.aggregator.replace_flights(trip.id, outcome.quotes)
        logger.info(f"Monitoring trip {trip.id} for user {user_id}: {trip.display_name}")
        return trip

    def _range_urls(self, outcome: ScrapeOutcome, date_range: int) -> List[str]:
        """Search URLs of the dates around the base search, base excluded."""
        base = search_url.token_date(outcome.url)
        if base is None:
            try:
                base = search_url.parse_display_date(outcome.date)
            except ValueError as e:
                logger.warning(f"Cannot derive date range from '{outcome.date}': {e}")
                return []

        urls = []
        for day in search_url.date_window(base, date_range):
            if day == base or day < date.today():
                continue
            url = search_url.substitute_date(outcome.url, base.isoformat(), day.isoformat())
            if url == outcome.url:
                logger.warning(f"Could not move search to {day.isoformat()}")
                continue
            urls.append(url)
        return urls

    async def start_monitoring(self, user_id: int, url: str, date_range: int = 0,
                               language: Optional[str] = None) -> List[MonitoredTrip]:
        """
        Start monitoring a Google Flights search, optionally for ±`date_range` days.

        Creates one trip per date that yields quotes. Raises
        MonitoringSetupError when the base search cannot be monitored.
        InfrastructureFault propagates.
        """
        if not 0 <= date_range <= MAX_DATE_RANGE:
            raise MonitoringSetupError(f"Date range must be between 0 and {MAX_DATE_RANGE}")

        try:
            search_url.validate(url)
            base = await self.orchestrator.fetch_quotes(url)
        except (InvalidQueryFormat, ExtractionError) as e:
            raise MonitoringSetupError(f"Could not monitor search: {e}") from e

        if base.stale or not base.quotes:
            raise MonitoringSetupError("The search returned no flights")

        self.ensure_user(user_id, language)
        trips = [self._create_trip(user_id, base)]

        if date_range:
            for range_url in self._range_urls(base, date_range):
                try:
                    outcome = await self.orchestrator.fetch_quotes(range_url)
                except ExtractionError as e:
                    logger.warning(f"Skipping date in range for user {user_id}: {e}")
                    continue
                if outcome.stale or not outcome.quotes:
                    continue
                trips.append(self._create_trip(user_id, outcome))

        return trips

    def stop_monitoring(self, user_id: int, trip_id: int) -> bool:
        trip = self.db.query(MonitoredTrip).filter(
            MonitoredTrip.id == trip_id,
            MonitoredTrip.user_id == user_id,
        ).first()
        if trip is None:
            return False
        return self.aggregator.delete_trip(trip_id)

    async def start_car_monitoring(self, user_id: int, airport_code: str, start_date: str,
                                   end_date: str, language: Optional[str] = None) -> CarRental:
        try:
            start = date.fromisoformat(start_date)
            end = date.fromisoformat(end_date)
        except ValueError as e:
            raise MonitoringSetupError(f"Invalid rental dates: {e}") from e
        if end < start:
            raise MonitoringSetupError("Rental end date is before its start date")

        airport_code = airport_code.strip().upper()
        try:
            quote = await self.orchestrator.fetch_car_quote(airport_code, start_date, end_date)
        except ExtractionError as e:
            raise MonitoringSetupError(f"Could not monitor car rental: {e}") from e

        self.ensure_user(user_id, language)
        rental = CarRental(
            user_id=user_id,
            airport_code=airport_code,
            start_date=start_date,
            end_date=end_date,
            url=quote.url,
            title=quote.title,
            last_price=quote.price,
        )
        self.db.add(rental)
        self.db.commit()
        logger.info(f"Monitoring car rental {rental.id} for user {user_id}: {rental.display_name}")
        return rental

    def stop_car_monitoring(self, user_id: int, rental_id: int) -> bool:
        rental = self.db.query(CarRental).filter(
            CarRental.id == rental_id,
            CarRental.user_id == user_id,
        ).first()
        if rental is None:
            return False
        self.db.delete(rental)
        self.db.commit()
        logger.info(f"Car rental {rental_id} deleted")
        return True

    # Listings

    def list_trips(self, user_id: int) -> List[TripListing]:
        rows = self.db.query(
            MonitoredTrip,
            func.min(Flight.price),
            func.max(Flight.price),
            func.count(Flight.id),
        ).outerjoin(Flight, Flight.trip_id == MonitoredTrip.id).filter(
            MonitoredTrip.user_id == user_id
        ).group_by(MonitoredTrip.id).order_by(MonitoredTrip.id).all()

        return [
            TripListing(trip=trip, min_price=min_price, max_price=max_price, flight_count=count)
            for trip, min_price, max_price, count in rows
        ]

    def list_car_rentals(self, user_id: int) -> List[CarRental]:
        return self.db.query(CarRental).filter(
            CarRental.user_id == user_id
        ).order_by(CarRental.id).all()


def build_monitoring_service(
    db: Session,
    pool: BrowserPool,
    notifier: Optional[TelegramNotifier] = None,
    chart_renderer: Optional[ChartRenderer] = None,
) -> MonitoringService:
    """Wire a MonitoringService for one session on top of the shared browser pool."""
    orchestrator = ScrapeOrchestrator(pool, aggregator=TripAggregator(db))
    return MonitoringService(db, orchestrator, notifier, chart_renderer)
