from decimal import Decimal

import pytest

from booking_engine.core.enums import RoleName
from booking_engine.core.exceptions import ForbiddenException, ValidationException
from booking_engine.schemas.actor import Actor
from booking_engine.services.rate_service import RateService


@pytest.fixture
def rates(unit_db, settings):
    return RateService(unit_db, settings=settings)


def test_provider_sets_default_rate(rates, provider_actor):
    saved = rates.set_rate(provider_actor, provider_actor.user_id, "80.5")

    assert saved.base_rate == Decimal("80.50")
    assert saved.currency == "EUR"
    assert rates.get_base_rate(provider_actor.user_id) == (Decimal("80.50"), "EUR")


def test_service_rate_overrides_default(rates, provider_actor):
    rates.set_rate(provider_actor, provider_actor.user_id, 80)
    rates.set_rate(provider_actor, provider_actor.user_id, 120, currency="usd", service_id="massage")

    assert rates.get_base_rate(provider_actor.user_id, "massage") == (Decimal("120.00"), "USD")
    assert rates.get_base_rate(provider_actor.user_id, "dinner-date") == (Decimal("80.00"), "EUR")


def test_set_rate_updates_in_place(rates, provider_actor):
    first = rates.set_rate(provider_actor, provider_actor.user_id, 80)
    second = rates.set_rate(provider_actor, provider_actor.user_id, 95)

    assert first.id == second.id
    assert second.base_rate == Decimal("95.00")


def test_missing_rate(rates):
    with pytest.raises(ValidationException):
        rates.get_base_rate("nobody")


@pytest.mark.parametrize("value", ["abc", 0, "-5"])
def test_invalid_amounts(rates, admin_actor, value):
    with pytest.raises(ValidationException):
        rates.set_rate(admin_actor, "provider-1", value)


def test_unsupported_currency(rates, admin_actor):
    with pytest.raises(ValidationException):
        rates.set_rate(admin_actor, "provider-1", 50, currency="JPY")


def test_other_provider_forbidden(rates):
    intruder = Actor(user_id="provider-2", role=RoleName.PROVIDER)

    with pytest.raises(ForbiddenException):
        rates.set_rate(intruder, "provider-1", 50)
