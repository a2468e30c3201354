from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, Enum, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
import enum
from .base import Base


class ApiType(enum.Enum):
    UNBELIEVABOAT = "unbelievaboat"


class ApiCredential(Base):
    __tablename__ = 'api_credential'

    api_credential_id = Column(Integer, primary_key=True, autoincrement=True)
    currency_id = Column(Integer, ForeignKey('currency.currency_id'), nullable=False)
    api_type = Column(
        Enum(ApiType, values_callable=lambda e: [member.value for member in e]),
        nullable=False,
        default=ApiType.UNBELIEVABOAT,
    )
    # Hex envelope, see utilities.encryption
    encrypted_token = Column(String(512), nullable=False)
    updated_at = Column(DateTime, default=lambda: datetime.now(timezone.utc),
                        onupdate=lambda: datetime.now(timezone.utc), nullable=False)

    currency = relationship("Currency", back_populates="credentials")

    __table_args__ = (
        UniqueConstraint('currency_id', 'api_type', name='uk_api_credential_currency_type'),
    )
