from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional


class TripCreate(BaseModel):
    user_id: int
    url: str
    date_range: int = Field(default=0, ge=0, le=5)
    language: Optional[str] = None


class FlightResponse(BaseModel):
    departure_time: str
    arrival_time: str
    duration: str
    airline: str
    stops: str
    price: int
    emissions: Optional[str] = None
    stop_details: Optional[List[dict]] = None

    class Config:
        from_attributes = True


class TripResponse(BaseModel):
    id: int
    user_id: int
    url: str
    date: str
    origin: Optional[str] = None
    destination: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None
    min_price: Optional[int] = None
    max_price: Optional[int] = None
    flight_count: int = 0
    flights: List[FlightResponse] = []

    class Config:
        from_attributes = True


class CarRentalCreate(BaseModel):
    user_id: int
    airport_code: str = Field(min_length=3, max_length=4)
    start_date: str
    end_date: str
    language: Optional[str] = None


class CarRentalResponse(BaseModel):
    id: int
    user_id: int
    airport_code: str
    start_date: str
    end_date: str
    url: Optional[str] = None
    title: Optional[str] = None
    last_price: float
    is_active: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
