from sqlalchemy import Column, BigInteger, String, DateTime
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from farewatch.database import Base


class User(Base):
    """
    A chat user that owns monitors.

    The id is the chat id handed over by the messaging collaborator, so it is
    not autoincremented.
    """
    __tablename__ = "users"

    id = Column(BigInteger, primary_key=True, autoincrement=False)
    language = Column(String(5), nullable=False, default="en", server_default="en")
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    trips = relationship("MonitoredTrip", back_populates="user")
    car_rentals = relationship("CarRental", back_populates="user")

    def __repr__(self) -> str:
        return f"<User {self.id} ({self.language})>"
