from datetime import datetime, timezone
from sqlalchemy import Column, Integer, ForeignKey, Enum, Numeric, DateTime, Index, Boolean
from sqlalchemy.orm import relationship
import enum
from .base import Base


class SwapStatus(enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    CANCELLED = "cancelled"
    # Reserved, nothing in the engine produces it yet
    EXPIRED = "expired"


class Swap(Base):
    __tablename__ = "swap"

    swap_id = Column(Integer, primary_key=True, autoincrement=True)
    maker_account_id = Column(Integer, ForeignKey("account.account_id"), nullable=False)
    taker_account_id = Column(Integer, ForeignKey("account.account_id"), nullable=True)  # NULL for open swaps
    maker_currency_id = Column(Integer, ForeignKey("currency.currency_id"), nullable=False)
    taker_currency_id = Column(Integer, ForeignKey("currency.currency_id"), nullable=False)
    maker_amount = Column(Numeric(precision=24, scale=8), nullable=False)
    taker_amount = Column(Numeric(precision=24, scale=8), nullable=False)
    # Never set by the current engine: the taker pays at acceptance, not at creation
    taker_escrowed = Column(Boolean, nullable=False, default=False)
    status = Column(
        Enum(SwapStatus, values_callable=lambda e: [member.value for member in e]),
        nullable=False,
        default=SwapStatus.PENDING,
    )
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), nullable=False)

    maker_account = relationship("Account", foreign_keys=[maker_account_id])
    taker_account = relationship("Account", foreign_keys=[taker_account_id])
    maker_currency = relationship("Currency", foreign_keys=[maker_currency_id])
    taker_currency = relationship("Currency", foreign_keys=[taker_currency_id])

    # Indexing for performance
    __table_args__ = (
        Index('idx_swap_status', 'status'),
        Index('idx_swap_maker', 'maker_account_id'),
        Index('idx_swap_taker', 'taker_account_id'),
    )

    @property
    def is_open(self):
        return self.taker_account_id is None
