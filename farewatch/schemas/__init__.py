from farewatch.schemas.monitor import (
    CarRentalCreate,
    CarRentalResponse,
    FlightResponse,
    TripCreate,
    TripResponse,
)

__all__ = ["CarRentalCreate", "CarRentalResponse", "FlightResponse", "TripCreate", "TripResponse"]
