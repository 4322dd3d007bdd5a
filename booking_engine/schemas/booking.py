"""
Inbound booking requests.

Each request carries a ``kind`` tag so untyped payloads from a transport
layer can be resolved to exactly one request type by
``parse_booking_request``. Structural rules live here; rules that depend on
configuration (duration bounds, currencies, extras catalogue) are enforced by
the booking service.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Dict, List, Literal, Mapping, Optional, Union

from pydantic import Field, TypeAdapter, ValidationError, field_validator

from ..core.exceptions import ValidationException
from ..core.timezone_utils import ensure_utc
from ._strict_base import StrictModel, StrictRequestModel
from .actor import Actor


class _BookingRequest(StrictRequestModel):
    actor: Actor


class CreateBookingRequest(_BookingRequest):
    kind: Literal["create_booking"] = "create_booking"
    provider_id: str = Field(..., min_length=1, max_length=64)
    service_id: Optional[str] = Field(None, max_length=64)
    start_time: datetime
    duration_minutes: int = Field(..., gt=0)
    extras: List[str] = Field(default_factory=list)
    notes: Optional[str] = None
    currency: Optional[str] = Field(None, min_length=3, max_length=3)

    @field_validator("start_time")
    @classmethod
    def normalize_start(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @field_validator("extras")
    @classmethod
    def validate_extras(cls, value: List[str]) -> List[str]:
        if len(value) != len(set(value)):
            raise ValueError("Extras must not contain duplicates")
        return value

    @field_validator("notes")
    @classmethod
    def strip_notes(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        return value or None

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, value: Optional[str]) -> Optional[str]:
        return value.upper() if value else value


class ConfirmBookingRequest(_BookingRequest):
    kind: Literal["confirm_booking"] = "confirm_booking"
    booking_id: str = Field(..., min_length=1)


class CancelBookingRequest(_BookingRequest):
    kind: Literal["cancel_booking"] = "cancel_booking"
    booking_id: str = Field(..., min_length=1)
    reason: Optional[str] = Field(None, max_length=500)


class RescheduleBookingRequest(_BookingRequest):
    kind: Literal["reschedule_booking"] = "reschedule_booking"
    booking_id: str = Field(..., min_length=1)
    new_start_time: datetime
    reason: Optional[str] = Field(None, max_length=500)

    @field_validator("new_start_time")
    @classmethod
    def normalize_start(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class CompleteBookingRequest(StrictRequestModel):
    """Completion is a system transition; ``actor`` is only set for admin overrides."""

    kind: Literal["complete_booking"] = "complete_booking"
    booking_id: str = Field(..., min_length=1)
    actor: Optional[Actor] = None


class CheckAvailabilityRequest(StrictRequestModel):
    kind: Literal["check_availability"] = "check_availability"
    provider_id: str = Field(..., min_length=1, max_length=64)
    start_time: datetime
    duration_minutes: int = Field(..., gt=0)

    @field_validator("start_time")
    @classmethod
    def normalize_start(cls, value: datetime) -> datetime:
        return ensure_utc(value)


BookingRequest = Annotated[
    Union[
        CreateBookingRequest,
        ConfirmBookingRequest,
        CancelBookingRequest,
        RescheduleBookingRequest,
        CompleteBookingRequest,
        CheckAvailabilityRequest,
    ],
    Field(discriminator="kind"),
]

_request_adapter: TypeAdapter[Any] = TypeAdapter(BookingRequest)


def parse_booking_request(payload: Mapping[str, Any]) -> BookingRequest:
    """Resolve an untyped payload into a typed request or raise ValidationException."""
    try:
        return _request_adapter.validate_python(dict(payload))
    except ValidationError as exc:
        errors = [
            {"loc": ".".join(str(part) for part in err["loc"]), "msg": err["msg"]}
            for err in exc.errors()
        ]
        raise ValidationException(
            "Invalid booking request", details={"errors": errors}
        ) from exc


class BookingPage(StrictModel):
    items: List[Dict[str, Any]]
    total: int
    page: int
    limit: int
    pages: int


class ProviderStats(StrictModel):
    provider_id: str
    total_bookings: int
    by_status: Dict[str, int]
    completed_count: int
    total_earnings: Dict[str, Decimal]
    cancellation_rate: float
