from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from farewatch.database import Base


class Flight(Base):
    """
    One quote from the latest successful check of a trip.

    Rows are never matched against earlier scrapes; the whole set for a trip
    is deleted and re-inserted each cycle.
    """
    __tablename__ = "flights"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    trip_id = Column(
        Integer,
        ForeignKey("monitored_trips.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    origin = Column(String(100), nullable=True)
    destination = Column(String(100), nullable=True)
    departure_time = Column(String(20), nullable=False)
    arrival_time = Column(String(20), nullable=False)
    duration = Column(String(50), nullable=False)
    airline = Column(String(200), nullable=False)
    stops = Column(String(100), nullable=False)
    price = Column(Integer, nullable=False)
    emissions = Column(String(200), nullable=True)
    stop_details = Column(JSON, nullable=True)  # [{"airport", "airport_name", "duration"}]

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    trip = relationship("MonitoredTrip", back_populates="flights")

    def __repr__(self) -> str:
        return f"<Flight {self.id}: {self.airline} {self.departure_time} R${self.price}>"
