"""Provider rate lookups."""

from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.rate import ProviderRate
from .base_repository import BaseRepository


class RateRepository(BaseRepository[ProviderRate]):
    def __init__(self, db: Session):
        super().__init__(db, ProviderRate)

    def get_exact(self, provider_id: str, service_id: Optional[str]) -> Optional[ProviderRate]:
        try:
            query = self.db.query(ProviderRate).filter(ProviderRate.provider_id == provider_id)
            if service_id is None:
                query = query.filter(ProviderRate.service_id.is_(None))
            else:
                query = query.filter(ProviderRate.service_id == service_id)
            return query.first()
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to load rate: {str(e)}") from e

    def resolve(self, provider_id: str, service_id: Optional[str]) -> Optional[ProviderRate]:
        """Service-specific rate if present, else the provider default."""
        if service_id is not None:
            rate = self.get_exact(provider_id, service_id)
            if rate is not None:
                return rate
        return self.get_exact(provider_id, None)

    def upsert(
        self, provider_id: str, service_id: Optional[str], base_rate: Decimal, currency: str
    ) -> ProviderRate:
        rate = self.get_exact(provider_id, service_id)
        if rate is None:
            return self.create(
                provider_id=provider_id,
                service_id=service_id,
                base_rate=base_rate,
                currency=currency,
            )
        return self.update(rate, base_rate=base_rate, currency=currency)
