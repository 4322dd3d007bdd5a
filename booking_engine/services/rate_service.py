"""Provider rate management."""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional, Tuple, Union

from sqlalchemy.orm import Session

from ..core.config import Settings, get_settings
from ..core.enums import RoleName
from ..core.exceptions import ForbiddenException, ValidationException
from ..models.rate import ProviderRate
from ..repositories.factory import RepositoryFactory
from ..repositories.rate_repository import RateRepository
from ..schemas.actor import Actor
from .base import BaseService


class RateService(BaseService):
    def __init__(
        self,
        db: Session,
        repository: Optional[RateRepository] = None,
        settings: Optional[Settings] = None,
    ):
        super().__init__(db)
        self.repository = repository or RepositoryFactory.create_rate_repository(db)
        self.settings = settings or get_settings()

    @BaseService.measure_operation("set_rate")
    def set_rate(
        self,
        actor: Actor,
        provider_id: str,
        base_rate: Union[Decimal, str, int],
        currency: Optional[str] = None,
        service_id: Optional[str] = None,
    ) -> ProviderRate:
        if not (actor.is_admin or (actor.role == RoleName.PROVIDER and actor.user_id == provider_id)):
            raise ForbiddenException(
                "Only the provider or an administrator can set rates",
                details={"provider_id": provider_id},
            )
        try:
            rate = Decimal(str(base_rate)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        except InvalidOperation as exc:
            raise ValidationException("base_rate must be a number", details={"base_rate": str(base_rate)}) from exc
        if rate <= 0:
            raise ValidationException("base_rate must be positive", details={"base_rate": str(rate)})

        code = (currency or self.settings.default_currency).upper()
        if code not in self.settings.supported_currencies:
            raise ValidationException(
                f"Unsupported currency: {code}",
                details={"currency": code, "supported": self.settings.supported_currencies},
            )

        with self.transaction():
            saved = self.repository.upsert(provider_id, service_id, rate, code)
        self.log_operation(
            "set_rate", provider_id=provider_id, service_id=service_id, currency=code
        )
        return saved

    def get_base_rate(self, provider_id: str, service_id: Optional[str] = None) -> Tuple[Decimal, str]:
        """Base rate and currency for a provider's service, falling back to the default rate."""
        rate = self.repository.resolve(provider_id, service_id)
        if rate is None:
            raise ValidationException(
                "Provider has no rate configured",
                details={"provider_id": provider_id, "service_id": service_id},
            )
        return Decimal(rate.base_rate), rate.currency
