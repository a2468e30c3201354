# models/currency.py
from datetime import datetime, timezone
from sqlalchemy import Column, Integer, BigInteger, String, DateTime
from sqlalchemy.orm import relationship, validates
from .base import Base


class Currency(Base):
    __tablename__ = 'currency'

    currency_id = Column(Integer, primary_key=True, autoincrement=True)
    guild_id = Column(BigInteger, nullable=False, unique=True)
    name = Column(String(64), nullable=False, unique=True)
    ticker = Column(String(16), nullable=False, unique=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), nullable=False)

    # Define the back-reference for the relationship
    accounts = relationship("Account", back_populates="currency")
    credentials = relationship("ApiCredential", back_populates="currency")

    @validates("ticker")
    def validate_ticker(self, key, value):
        # Tickers are immutable once assigned
        if self.ticker is not None and self.ticker != value:
            raise ValueError("Currency ticker cannot be changed")
        return value

    def __repr__(self):
        return (
            f"<Currency(currency_id={self.currency_id}, guild_id={self.guild_id}, "
            f"name={self.name}, ticker={self.ticker})>"
        )
