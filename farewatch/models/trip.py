from sqlalchemy import Column, BigInteger, Integer, String, Boolean, DateTime, ForeignKey, Text
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from farewatch.database import Base


class MonitoredTrip(Base):
    """
    A Google Flights search watched on behalf of a user.

    The trip owns its current Flight rows (replaced wholesale on every
    successful check) and its append-only PriceHistory. `url` is the single
    canonical search URL; it is rewritten when a different filler-count
    variant of the token turns out to be the one the site accepts.
    """
    __tablename__ = "monitored_trips"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    user_id = Column(BigInteger, ForeignKey("users.id"), nullable=False, index=True)

    url = Column(Text, nullable=False)
    date = Column(String(50), nullable=False)  # As echoed by the page, e.g. "sex., 6 de jun."
    origin = Column(String(100), nullable=True)
    destination = Column(String(100), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="trips")
    flights = relationship(
        "Flight",
        back_populates="trip",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    price_history = relationship(
        "PriceHistory",
        back_populates="trip",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="PriceHistory.timestamp",
    )

    @property
    def display_name(self) -> str:
        if self.origin and self.destination:
            return f"{self.origin} → {self.destination} ({self.date})"
        return f"Trip {self.id} ({self.date})"

    def __repr__(self) -> str:
        return f"<MonitoredTrip {self.id}: {self.display_name}>"
