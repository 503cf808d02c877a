# SQLAlchemy models
from farewatch.models.user import User
from farewatch.models.trip import MonitoredTrip
from farewatch.models.flight import Flight
from farewatch.models.price_history import PriceHistory
from farewatch.models.car_rental import CarRental, CarPriceHistory

__all__ = [
    "User",
    "MonitoredTrip",
    "Flight",
    "PriceHistory",
    "CarRental",
    "CarPriceHistory",
]
