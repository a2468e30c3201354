from sqlalchemy import Column, Integer, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from .base import Base


class TaxAccount(Base):
    __tablename__ = 'tax_account'

    tax_account_id = Column(Integer, primary_key=True, autoincrement=True)
    currency_id = Column(Integer, ForeignKey('currency.currency_id'), nullable=False, unique=True)
    balance = Column(Numeric(24, 8), nullable=False, default=0)
    percentage = Column(Integer, nullable=False, default=0)

    currency = relationship("Currency")
