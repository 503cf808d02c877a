from sqlalchemy import Column, BigInteger, Integer, Float, String, Boolean, DateTime, ForeignKey, Text
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from farewatch.database import Base


class CarRental(Base):
    """
    A Kayak car-rental search watched on behalf of a user.

    Unlike trips, only the cheapest offer is tracked, as a single scalar.
    """
    __tablename__ = "car_rentals"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    user_id = Column(BigInteger, ForeignKey("users.id"), nullable=False, index=True)

    airport_code = Column(String(10), nullable=False)
    start_date = Column(String(10), nullable=False)  # YYYY-MM-DD
    end_date = Column(String(10), nullable=False)
    url = Column(Text, nullable=True)
    title = Column(String(200), nullable=True)  # Vehicle type of the cheapest offer

    last_price = Column(Float, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="car_rentals")
    price_history = relationship(
        "CarPriceHistory",
        back_populates="rental",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="CarPriceHistory.timestamp",
    )

    @property
    def display_name(self) -> str:
        return f"{self.airport_code} {self.start_date} → {self.end_date}"

    def __repr__(self) -> str:
        return f"<CarRental {self.id}: {self.display_name} R${self.last_price}>"


class CarPriceHistory(Base):
    __tablename__ = "car_price_history"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    rental_id = Column(
        Integer,
        ForeignKey("car_rentals.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    price = Column(Float, nullable=False)
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    rental = relationship("CarRental", back_populates="price_history")

    def __repr__(self) -> str:
        return f"<CarPriceHistory rental={self.rental_id}: {self.price} at {self.timestamp}>"
