"""Provider base rates used by the pricing engine."""

from sqlalchemy import CheckConstraint, Column, DateTime, Index, Numeric, String, UniqueConstraint
from sqlalchemy.sql import func
import ulid

from ..database import Base


class ProviderRate(Base):
    """
    Base rate for one hour-tier unit of a provider's service.

    A row with ``service_id`` NULL is the provider's default rate.
    """

    __tablename__ = "provider_rates"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    provider_id = Column(String(64), nullable=False)
    service_id = Column(String(64), nullable=True)
    base_rate = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("base_rate > 0", name="check_rate_positive"),
        UniqueConstraint("provider_id", "service_id", name="uq_rate_provider_service"),
        Index("idx_rate_provider", "provider_id"),
    )

    def __repr__(self) -> str:
        return f"<ProviderRate {self.provider_id}/{self.service_id}: {self.base_rate} {self.currency}>"
