from sqlalchemy import Column, Integer, Float, DateTime, ForeignKey
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from farewatch.database import Base


class PriceHistory(Base):
    """Lowest observed price of a trip at a point in time. Append-only."""
    __tablename__ = "price_history"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    trip_id = Column(
        Integer,
        ForeignKey("monitored_trips.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    price = Column(Float, nullable=False)
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    trip = relationship("MonitoredTrip", back_populates="price_history")

    def __repr__(self) -> str:
        return f"<PriceHistory trip={self.trip_id}: {self.price} at {self.timestamp}>"
