# booking_engine/services/booking_service.py
"""
Booking Service

Lifecycle manager for bookings. Every mutating operation follows the same
shape:

1. Validate the request and the actor outside any lock.
2. Take the provider's reservation lock.
3. Inside one database transaction: re-read, check, write, commit.
4. Release the lock.
5. Dispatch collaborator side effects for the committed transition.

Read operations (availability checks, history, stats, slot search) take no
lock.
"""

from datetime import date, datetime, time, timedelta
import logging
import math
from typing import Any, Callable, List, Optional, Union

from sqlalchemy.orm import Session

from ..core.config import Settings, get_settings
from ..core.enums import ParticipantRole, RoleName
from ..core.exceptions import (
    DomainException,
    ForbiddenException,
    InvalidStateException,
    NotFoundException,
    SlotUnavailableException,
    ValidationException,
)
from ..core.reservation_lock import ReservationLock
from ..core.timezone_utils import ensure_utc, local_day_bounds_utc, local_to_utc, to_local, utc_now
from ..core.ulid_helper import generate_booking_reference
from ..events.booking_events import (
    BookingCancelled,
    BookingCompleted,
    BookingConfirmed,
    BookingRequested,
    BookingRescheduled,
)
from ..events.dispatcher import BookingEvent, BookingEventDispatcher
from ..models.booking import ACTIVE_STATUSES, Booking, BookingStatus
from ..repositories.booking_repository import BookingRepository
from ..repositories.factory import RepositoryFactory
from ..schemas.actor import SYSTEM_ACTOR, Actor
from ..schemas.booking import (
    BookingPage,
    CancelBookingRequest,
    CheckAvailabilityRequest,
    CompleteBookingRequest,
    ConfirmBookingRequest,
    CreateBookingRequest,
    ProviderStats,
    RescheduleBookingRequest,
)
from .availability_service import AvailabilityService
from .base import BaseService
from .booking_state_machine import BookingTransition, apply_transition, next_status
from .conflict_checker import ConflictChecker, intervals_overlap
from .pricing_service import PricingService
from .rate_service import RateService
from .refund_policy_engine import RefundPolicyEngine

logger = logging.getLogger(__name__)

OUTSIDE_AVAILABILITY_MESSAGE = "Requested time is outside the provider's availability"
PROVIDER_CONFLICT_MESSAGE = "Provider already has a booking during this time"
MAX_PAGE_SIZE = 100


class BookingService(BaseService):
    """
    Service layer for booking operations.

    Collaborators are injected; anything not supplied is built on the same
    session so checks and writes share one transaction.
    """

    def __init__(
        self,
        db: Session,
        reservation_lock: ReservationLock,
        *,
        repository: Optional[BookingRepository] = None,
        availability_service: Optional[AvailabilityService] = None,
        conflict_checker: Optional[ConflictChecker] = None,
        pricing_service: Optional[PricingService] = None,
        rate_service: Optional[RateService] = None,
        refund_policy: Optional[RefundPolicyEngine] = None,
        dispatcher: Optional[BookingEventDispatcher] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        super().__init__(db)
        self.settings = settings or get_settings()
        self.reservation_lock = reservation_lock
        self.repository = repository or RepositoryFactory.create_booking_repository(db)
        self.availability_service = availability_service or AvailabilityService(
            db, settings=self.settings
        )
        self.conflict_checker = conflict_checker or ConflictChecker(db, repository=self.repository)
        self.pricing_service = pricing_service or PricingService()
        self.rate_service = rate_service or RateService(db, settings=self.settings)
        self.refund_policy = refund_policy or RefundPolicyEngine()
        self.dispatcher = dispatcher or BookingEventDispatcher()
        self._clock = clock

    def now(self) -> datetime:
        return ensure_utc(self._clock())

    # ------------------------------------------------------------------
    # Request dispatch
    # ------------------------------------------------------------------

    def execute(
        self,
        request: Union[
            CreateBookingRequest,
            ConfirmBookingRequest,
            CancelBookingRequest,
            RescheduleBookingRequest,
            CompleteBookingRequest,
            CheckAvailabilityRequest,
        ],
    ) -> Union[Booking, bool]:
        """Run a typed request (see ``schemas.booking.parse_booking_request``)."""
        if isinstance(request, CreateBookingRequest):
            return self.create_booking(request)
        if isinstance(request, ConfirmBookingRequest):
            return self.confirm_booking(request)
        if isinstance(request, CancelBookingRequest):
            return self.cancel_booking(request)
        if isinstance(request, RescheduleBookingRequest):
            return self.reschedule_booking(request)
        if isinstance(request, CompleteBookingRequest):
            return self.complete_booking(request)
        if isinstance(request, CheckAvailabilityRequest):
            return self.check_availability(request)
        raise ValidationException(f"Unsupported request type: {type(request).__name__}")

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    def _get_or_404(self, booking_id: str) -> Booking:
        booking = self.repository.get_by_id(booking_id)
        if booking is None:
            raise NotFoundException("Booking not found", details={"booking_id": booking_id})
        return booking

    def _reload(self, booking_id: str) -> Booking:
        """Re-read a booking under the lock, discarding any stale identity-map state."""
        booking = self.db.get(Booking, booking_id, populate_existing=True)
        if booking is None:
            raise NotFoundException("Booking not found", details={"booking_id": booking_id})
        return booking

    def _validate_duration(self, duration_minutes: int) -> None:
        minimum = self.settings.min_duration_minutes
        maximum = self.pricing_service.max_duration_minutes
        if duration_minutes < minimum or duration_minutes > maximum:
            raise ValidationException(
                f"Duration must be between {minimum} and {maximum} minutes",
                details={"duration_minutes": duration_minutes, "min": minimum, "max": maximum},
            )

    def _validate_future(self, start_time: datetime, now: datetime, field: str) -> None:
        if start_time <= now:
            raise ValidationException(
                "Bookings must start in the future",
                details={field: start_time.isoformat()},
            )

    def _ensure_slot_free(
        self,
        provider_id: str,
        start_time: datetime,
        duration_minutes: int,
        exclude_booking_id: Optional[str] = None,
    ) -> None:
        if not self.availability_service.is_within_availability(
            provider_id, start_time, duration_minutes
        ):
            raise SlotUnavailableException(
                OUTSIDE_AVAILABILITY_MESSAGE,
                details={"provider_id": provider_id, "reason": "outside_availability"},
            )
        if self.conflict_checker.has_conflict(
            provider_id, start_time, duration_minutes, exclude_booking_id=exclude_booking_id
        ):
            raise SlotUnavailableException(
                PROVIDER_CONFLICT_MESSAGE,
                details={"provider_id": provider_id, "reason": "conflict"},
            )

    def _dispatch(self, event: BookingEvent) -> None:
        self.dispatcher.dispatch(event)

    # ------------------------------------------------------------------
    # Lifecycle operations
    # ------------------------------------------------------------------

    @BaseService.measure_operation("check_availability")
    def check_availability(self, request: CheckAvailabilityRequest) -> bool:
        """
        True if the interval is inside availability and free of active bookings.

        Raises ValidationException for the inputs create_booking would reject
        before looking at the calendar: out-of-range durations and past starts.
        """
        self._validate_duration(request.duration_minutes)
        self._validate_future(request.start_time, self.now(), "start_time")
        if not self.availability_service.is_within_availability(
            request.provider_id, request.start_time, request.duration_minutes
        ):
            return False
        return not self.conflict_checker.has_conflict(
            request.provider_id, request.start_time, request.duration_minutes
        )

    @BaseService.measure_operation("create_booking")
    def create_booking(self, request: CreateBookingRequest) -> Booking:
        """
        Reserve a provider for a client.

        Raises:
            ForbiddenException: actor is not a client
            ValidationException: malformed request or no rate configured
            ResourceBusyException: provider lock not acquired in time
            SlotUnavailableException: outside availability or overlapping
        """
        actor = request.actor
        if actor.role != RoleName.CLIENT:
            raise ForbiddenException("Only clients can create bookings")
        if actor.user_id == request.provider_id:
            raise ValidationException("Providers cannot book themselves")

        now = self.now()
        self._validate_duration(request.duration_minutes)
        self._validate_future(request.start_time, now, "start_time")

        notes_limit = self.settings.notes_max_length
        if request.notes and len(request.notes) > notes_limit:
            raise ValidationException(
                f"Notes cannot exceed {notes_limit} characters",
                details={"length": len(request.notes)},
            )

        unknown = self.pricing_service.unknown_extras(request.extras)
        if unknown:
            raise ValidationException("Unknown extras", details={"extras": unknown})

        base_rate, rate_currency = self.rate_service.get_base_rate(
            request.provider_id, request.service_id
        )
        currency = request.currency or rate_currency
        if currency not in self.settings.supported_currencies:
            raise ValidationException(
                f"Unsupported currency: {currency}", details={"currency": currency}
            )
        if currency != rate_currency:
            raise ValidationException(
                "Currency does not match the provider's rate",
                details={"currency": currency, "rate_currency": rate_currency},
            )

        start = request.start_time
        end = start + timedelta(minutes=request.duration_minutes)

        self.log_operation(
            "create_booking",
            provider_id=request.provider_id,
            client_id=actor.user_id,
            start_time=start.isoformat(),
            duration_minutes=request.duration_minutes,
        )

        with self.reservation_lock.hold(request.provider_id):
            with self.transaction():
                self._ensure_slot_free(request.provider_id, start, request.duration_minutes)
                tz_name = self.availability_service.get_timezone(request.provider_id)
                quote = self.pricing_service.price(
                    request.provider_id,
                    request.duration_minutes,
                    base_rate,
                    request.extras,
                    to_local(start, tz_name),
                    currency,
                )
                booking = self.repository.create(
                    reference=generate_booking_reference(),
                    provider_id=request.provider_id,
                    client_id=actor.user_id,
                    service_id=request.service_id,
                    start_time=start,
                    end_time=end,
                    duration_minutes=request.duration_minutes,
                    status=BookingStatus.PENDING.value,
                    price_amount=quote.amount,
                    currency=quote.currency,
                    extras=list(request.extras),
                    notes=request.notes,
                    rescheduled=False,
                )

        self.logger.info(
            "booking_created",
            extra={
                "booking_id": booking.id,
                "reference": booking.reference,
                "provider_id": booking.provider_id,
                "tier": quote.tier,
                "amount": str(quote.amount),
            },
        )
        self._dispatch(
            BookingRequested(
                booking_id=booking.id,
                reference=booking.reference,
                client_id=booking.client_id,
                provider_id=booking.provider_id,
                start_time=booking.start_utc,
                end_time=booking.end_utc,
                price_amount=quote.amount,
                currency=quote.currency,
            )
        )
        return booking

    @BaseService.measure_operation("confirm_booking")
    def confirm_booking(self, request: ConfirmBookingRequest) -> Booking:
        booking = self._get_or_404(request.booking_id)
        actor = request.actor
        if actor.role != RoleName.PROVIDER or actor.user_id != booking.provider_id:
            raise ForbiddenException(
                "Only the booking's provider can confirm it",
                details={"booking_id": booking.id},
            )
        next_status(booking.status_enum, BookingTransition.CONFIRM)

        with self.reservation_lock.hold(booking.provider_id):
            with self.transaction():
                booking = self._reload(request.booking_id)
                now = self.now()
                apply_transition(booking, BookingTransition.CONFIRM, now)

        self.log_operation("confirm_booking", booking_id=booking.id, provider_id=booking.provider_id)
        self._dispatch(
            BookingConfirmed(
                booking_id=booking.id,
                reference=booking.reference,
                client_id=booking.client_id,
                provider_id=booking.provider_id,
                start_time=booking.start_utc,
                end_time=booking.end_utc,
                confirmed_at=now,
            )
        )
        return booking

    @BaseService.measure_operation("cancel_booking")
    def cancel_booking(self, request: CancelBookingRequest) -> Booking:
        """Cancel a pending or confirmed booking and record the refund due."""
        booking = self._get_or_404(request.booking_id)
        actor = request.actor
        if not (actor.is_admin or booking.is_participant(actor.user_id)):
            raise ForbiddenException(
                "You don't have permission to cancel this booking",
                details={"booking_id": booking.id},
            )
        next_status(booking.status_enum, BookingTransition.CANCEL)

        with self.reservation_lock.hold(booking.provider_id):
            with self.transaction():
                booking = self._reload(request.booking_id)
                now = self.now()
                refund = self.refund_policy.evaluate(booking, now)
                apply_transition(
                    booking,
                    BookingTransition.CANCEL,
                    now,
                    cancelled_by_id=actor.user_id,
                    cancellation_reason=request.reason,
                    refund_fraction=refund.fraction,
                    refund_amount=refund.amount,
                )

        self.log_operation(
            "cancel_booking",
            booking_id=booking.id,
            cancelled_by=actor.user_id,
            refund=refund.to_payload(),
        )
        self._dispatch(
            BookingCancelled(
                booking_id=booking.id,
                reference=booking.reference,
                client_id=booking.client_id,
                provider_id=booking.provider_id,
                cancelled_by=actor.user_id,
                cancelled_at=now,
                refund_amount=refund.amount,
                currency=booking.currency,
                reason=request.reason,
            )
        )
        return booking

    @BaseService.measure_operation("reschedule_booking")
    def reschedule_booking(self, request: RescheduleBookingRequest) -> Booking:
        """
        Move a booking to a new start time with the same provider and duration.

        On any failure the booking is left exactly as it was.
        """
        booking = self._get_or_404(request.booking_id)
        actor = request.actor
        if not booking.is_participant(actor.user_id):
            raise ForbiddenException(
                "Only the client or provider can reschedule this booking",
                details={"booking_id": booking.id},
            )
        next_status(booking.status_enum, BookingTransition.RESCHEDULE)
        self._validate_future(request.new_start_time, self.now(), "new_start_time")

        with self.reservation_lock.hold(booking.provider_id):
            with self.transaction():
                booking = self._reload(request.booking_id)
                next_status(booking.status_enum, BookingTransition.RESCHEDULE)
                self._ensure_slot_free(
                    booking.provider_id,
                    request.new_start_time,
                    booking.duration_minutes,
                    exclude_booking_id=booking.id,
                )
                previous_start = booking.start_utc
                now = self.now()
                apply_transition(
                    booking,
                    BookingTransition.RESCHEDULE,
                    now,
                    start_time=request.new_start_time,
                    end_time=request.new_start_time + timedelta(minutes=booking.duration_minutes),
                    rescheduled=True,
                    rescheduled_by_id=actor.user_id,
                    reschedule_reason=request.reason,
                )

        self.log_operation(
            "reschedule_booking",
            booking_id=booking.id,
            previous_start=previous_start.isoformat(),
            new_start=booking.start_utc.isoformat(),
        )
        self._dispatch(
            BookingRescheduled(
                booking_id=booking.id,
                reference=booking.reference,
                client_id=booking.client_id,
                provider_id=booking.provider_id,
                rescheduled_by=actor.user_id,
                previous_start_time=previous_start,
                start_time=booking.start_utc,
                end_time=booking.end_utc,
                reason=request.reason,
            )
        )
        return booking

    @BaseService.measure_operation("complete_booking")
    def complete_booking(self, request: CompleteBookingRequest) -> Booking:
        """Mark a confirmed booking completed once its service window has elapsed."""
        actor = request.actor
        if actor is not None and not (actor.is_admin or actor.is_system):
            raise ForbiddenException("Only the system or an administrator can complete bookings")
        booking = self._get_or_404(request.booking_id)

        with self.reservation_lock.hold(booking.provider_id):
            with self.transaction():
                booking = self._reload(request.booking_id)
                next_status(booking.status_enum, BookingTransition.COMPLETE)
                now = self.now()
                if booking.end_utc > now:
                    raise InvalidStateException(
                        "Booking cannot be completed before its end time",
                        details={"booking_id": booking.id, "end_time": booking.end_utc.isoformat()},
                    )
                apply_transition(booking, BookingTransition.COMPLETE, now)

        self.log_operation("complete_booking", booking_id=booking.id)
        self._dispatch(
            BookingCompleted(
                booking_id=booking.id,
                reference=booking.reference,
                client_id=booking.client_id,
                provider_id=booking.provider_id,
                completed_at=now,
            )
        )
        return booking

    @BaseService.measure_operation("complete_elapsed_bookings")
    def complete_elapsed_bookings(self, limit: int = 500) -> List[Booking]:
        """Complete every confirmed booking whose end time has passed."""
        completed: List[Booking] = []
        candidates = self.repository.get_confirmed_ending_before(self.now(), limit=limit)
        for candidate in candidates:
            try:
                completed.append(
                    self.complete_booking(
                        CompleteBookingRequest(booking_id=candidate.id, actor=SYSTEM_ACTOR)
                    )
                )
            except DomainException as exc:
                self.logger.warning(
                    "auto_complete_skipped",
                    extra={"booking_id": candidate.id, "code": exc.code, "error": exc.message},
                )
        self.log_operation(
            "complete_elapsed_bookings", candidates=len(candidates), completed=len(completed)
        )
        return completed

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_booking(self, booking_id: str, actor: Actor) -> Booking:
        booking = self._get_or_404(booking_id)
        if not (actor.is_admin or booking.is_participant(actor.user_id)):
            raise ForbiddenException(
                "You don't have permission to view this booking",
                details={"booking_id": booking_id},
            )
        return booking

    @BaseService.measure_operation("list_bookings")
    def list_bookings(
        self,
        actor: Actor,
        as_role: ParticipantRole,
        status: Optional[BookingStatus] = None,
        page: int = 1,
        limit: int = 10,
    ) -> BookingPage:
        """Paginated booking history for the actor, newest first."""
        return self._page(actor, as_role, page, limit, statuses=[status] if status else None)

    @BaseService.measure_operation("list_past")
    def list_past(
        self, actor: Actor, as_role: ParticipantRole, page: int = 1, limit: int = 10
    ) -> BookingPage:
        """Bookings of any status that started before now, newest first."""
        return self._page(actor, as_role, page, limit, starts_before=self.now())

    def _page(
        self, actor: Actor, as_role: ParticipantRole, page: int, limit: int, **filters: Any
    ) -> BookingPage:
        if page < 1 or limit < 1 or limit > MAX_PAGE_SIZE:
            raise ValidationException(
                f"page must be >= 1 and limit between 1 and {MAX_PAGE_SIZE}",
                details={"page": page, "limit": limit},
            )
        items, total = self.repository.list_for_participant(
            actor.user_id,
            as_role,
            offset=(page - 1) * limit,
            limit=limit,
            **filters,
        )
        return BookingPage(
            items=[booking.to_dict() for booking in items],
            total=total,
            page=page,
            limit=limit,
            pages=math.ceil(total / limit) if total else 0,
        )

    def list_upcoming(self, actor: Actor, as_role: ParticipantRole, limit: int = 20) -> List[Booking]:
        """Pending and confirmed bookings starting now or later, soonest first."""
        items, _ = self.repository.list_for_participant(
            actor.user_id,
            as_role,
            statuses=list(ACTIVE_STATUSES),
            starts_at_or_after=self.now(),
            limit=limit,
            newest_first=False,
        )
        return items

    @BaseService.measure_operation("get_provider_stats")
    def get_provider_stats(self, actor: Actor, provider_id: str) -> ProviderStats:
        if not (actor.is_admin or actor.user_id == provider_id):
            raise ForbiddenException(
                "Only the provider or an administrator can view these statistics",
                details={"provider_id": provider_id},
            )
        by_status = self.repository.count_by_status(provider_id)
        total = sum(by_status.values())
        cancelled = by_status.get(BookingStatus.CANCELLED.value, 0)
        return ProviderStats(
            provider_id=provider_id,
            total_bookings=total,
            by_status=by_status,
            completed_count=by_status.get(BookingStatus.COMPLETED.value, 0),
            total_earnings=self.repository.completed_earnings(provider_id),
            cancellation_rate=round(cancelled / total, 4) if total else 0.0,
        )

    @BaseService.measure_operation("find_booking_opportunities")
    def find_booking_opportunities(
        self,
        provider_id: str,
        local_date: date,
        duration_minutes: int,
        step_minutes: int = 15,
    ) -> List[datetime]:
        """UTC start instants on ``local_date`` where a booking would currently succeed."""
        self._validate_duration(duration_minutes)
        if step_minutes <= 0:
            raise ValidationException("step_minutes must be positive")

        tz_name = self.availability_service.get_timezone(provider_id)
        day_start, day_end = local_day_bounds_utc(local_date, tz_name)
        busy = self.repository.get_active_in_window(
            provider_id, day_start, day_end + timedelta(minutes=duration_minutes)
        )
        now = self.now()
        length = timedelta(minutes=duration_minutes)

        opportunities: List[datetime] = []
        for range_start, range_end in self.availability_service.day_ranges(provider_id, local_date):
            for minute in range(range_start, range_end - duration_minutes + 1, step_minutes):
                start = local_to_utc(local_date, time(minute // 60, minute % 60), tz_name)
                if start <= now:
                    continue
                end = start + length
                if any(intervals_overlap(start, end, b.start_utc, b.end_utc) for b in busy):
                    continue
                opportunities.append(start)
        return opportunities
