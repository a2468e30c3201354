# models/account.py
from sqlalchemy import Column, Integer, BigInteger, Numeric, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from .base import Base


class Account(Base):
    __tablename__ = 'account'

    account_id = Column(Integer, primary_key=True, autoincrement=True)
    owner_id = Column(BigInteger, nullable=False, index=True)
    currency_id = Column(Integer, ForeignKey('currency.currency_id'), nullable=False, index=True)
    balance = Column(Numeric(24, 8), nullable=False, default=0)

    # Relationship to Currency table
    currency = relationship("Currency", back_populates="accounts")

    __table_args__ = (
        UniqueConstraint('owner_id', 'currency_id', name='uk_account_owner_currency'),
    )
