# models/transaction.py

from sqlalchemy import Column, String, Integer, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
import uuid
from .base import Base


class Transaction(Base):
    __tablename__ = 'transaction'

    uuid = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    sender_account_id = Column(Integer, ForeignKey('account.account_id'), nullable=False, index=True)
    receiver_account_id = Column(Integer, ForeignKey('account.account_id'), nullable=False, index=True)
    amount = Column(Numeric(24, 8), nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), nullable=False)

    # Relationships to other models
    sender = relationship("Account", foreign_keys=[sender_account_id])
    receiver = relationship("Account", foreign_keys=[receiver_account_id])
