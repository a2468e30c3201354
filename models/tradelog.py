from sqlalchemy import Column, Integer, ForeignKey, Numeric, DateTime, Index
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from .base import Base


class TradeLogEntry(Base):
    __tablename__ = "trade_log_entry"

    trade_log_id = Column(Integer, primary_key=True, autoincrement=True)
    # Always stored in canonical (ticker-sorted) order
    base_currency_id = Column(Integer, ForeignKey('currency.currency_id'), nullable=False)
    quote_currency_id = Column(Integer, ForeignKey('currency.currency_id'), nullable=False)
    price = Column(Numeric(precision=48, scale=24), nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), nullable=False)

    base_currency = relationship("Currency", foreign_keys=[base_currency_id])
    quote_currency = relationship("Currency", foreign_keys=[quote_currency_id])

    __table_args__ = (
        Index('idx_trade_log_pair_date', 'base_currency_id', 'quote_currency_id', 'created_at'),
    )
