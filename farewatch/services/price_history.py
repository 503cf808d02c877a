"""
Price timeline and alert decisions for trips and car rentals.

History policy: a point is appended whenever the observed price differs from
the baseline, for trips and cars alike. The alert threshold only decides
whether the user is notified.
"""

import enum
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from farewatch.config import get_settings
from farewatch.models import CarPriceHistory, CarRental, MonitoredTrip, PriceHistory

logger = logging.getLogger(__name__)
settings = get_settings()


class Direction(str, enum.Enum):
    INCREASED = "increased"
    DECREASED = "decreased"


class Extremum(str, enum.Enum):
    NEW_LOWEST = "new_lowest"
    NEW_HIGHEST = "new_highest"


@dataclass
class PriceChange:
    """What happened to the price of one monitored item in one check."""
    baseline: float
    new_price: float
    percent_change: float
    should_alert: bool
    recorded: bool
    extremum: Optional[Extremum] = None
    history_points: int = 0  # Including the point recorded by this check

    @property
    def direction(self) -> Direction:
        return Direction.INCREASED if self.new_price > self.baseline else Direction.DECREASED

    @property
    def delta(self) -> float:
        return abs(self.new_price - self.baseline)

    @property
    def percent(self) -> float:
        return round(abs(self.percent_change), 1)

    @property
    def wants_chart(self) -> bool:
        return self.history_points > 1


def percent_change(baseline: float, new_price: float) -> float:
    if not baseline:
        return 0.0
    return (new_price - baseline) / baseline * 100


def crosses_threshold(change_percent: float, threshold: float) -> bool:
    """Inclusive: a change of exactly `threshold` percent alerts."""
    # Rounding absorbs float noise such as 5.000000000000001
    return round(abs(change_percent), 6) >= threshold


def extremum_annotation(new_price: float, history: Sequence[float]) -> Optional[Extremum]:
    """Compare a new price with the prices recorded before it."""
    if not history:
        return None
    if new_price <= min(history):
        return Extremum.NEW_LOWEST
    if new_price >= max(history):
        return Extremum.NEW_HIGHEST
    return None


def decide(baseline: float, new_price: float, history: Sequence[float],
           threshold: float, recorded: bool) -> PriceChange:
    change = percent_change(baseline, new_price)
    return PriceChange(
        baseline=baseline,
        new_price=new_price,
        percent_change=change,
        should_alert=new_price != baseline and crosses_threshold(change, threshold),
        recorded=recorded,
        extremum=extremum_annotation(new_price, history),
        history_points=len(history) + (1 if recorded else 0),
    )


class PriceAlertEngine:
    def __init__(self, db: Session, threshold_percent: Optional[float] = None):
        self.db = db
        self.threshold = threshold_percent if threshold_percent is not None else settings.alert_threshold_percent

    # Trips

    def trip_history(self, trip_id: int) -> List[PriceHistory]:
        return self.db.query(PriceHistory).filter(
            PriceHistory.trip_id == trip_id
        ).order_by(PriceHistory.timestamp.asc(), PriceHistory.id.asc()).all()

    def latest_trip_price(self, trip_id: int) -> Optional[float]:
        latest = self.db.query(PriceHistory).filter(
            PriceHistory.trip_id == trip_id
        ).order_by(PriceHistory.timestamp.desc(), PriceHistory.id.desc()).first()
        return latest.price if latest else None

    def trip_baseline(self, trip_id: int, current_min_price: Optional[float]) -> Optional[float]:
        """Latest recorded price, else the cheapest current flight (not persisted)."""
        latest = self.latest_trip_price(trip_id)
        return latest if latest is not None else current_min_price

    def record_trip_price(self, trip_id: int, new_lowest: float, baseline: float) -> PriceChange:
        """Append `new_lowest` to the trip history when it moved, and decide on an alert."""
        history = [h.price for h in self.trip_history(trip_id)]

        recorded = False
        if new_lowest != baseline:
            trip_exists = self.db.query(MonitoredTrip.id).filter(MonitoredTrip.id == trip_id).first()
            if trip_exists:
                self.db.add(PriceHistory(trip_id=trip_id, price=new_lowest))
                self.db.commit()
                recorded = True
            else:
                logger.info(f"Trip {trip_id} was deleted, not recording price {new_lowest}")

        change = decide(baseline, new_lowest, history, self.threshold, recorded)
        logger.info(
            f"Trip {trip_id}: {baseline} -> {new_lowest} ({change.percent_change:+.1f}%), "
            f"alert={change.should_alert}, extremum={change.extremum}"
        )
        return change

    # Car rentals

    def car_history(self, rental_id: int) -> List[CarPriceHistory]:
        return self.db.query(CarPriceHistory).filter(
            CarPriceHistory.rental_id == rental_id
        ).order_by(CarPriceHistory.timestamp.asc(), CarPriceHistory.id.asc()).all()

    def record_car_price(self, rental: CarRental, new_price: float) -> PriceChange:
        """Same decision as for trips, with the rental's last known price as baseline."""
        baseline = rental.last_price
        history = [h.price for h in self.car_history(rental.id)]

        recorded = False
        if new_price != baseline:
            self.db.add(CarPriceHistory(rental_id=rental.id, price=new_price))
            rental.last_price = new_price
            self.db.commit()
            recorded = True

        change = decide(baseline, new_price, history, self.threshold, recorded)
        logger.info(
            f"Car rental {rental.id}: {baseline} -> {new_price} ({change.percent_change:+.1f}%), "
            f"alert={change.should_alert}"
        )
        return change
