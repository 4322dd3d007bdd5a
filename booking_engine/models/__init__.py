from .availability import AvailabilityOverride, ProviderCalendar, VacationPeriod, WeeklyScheduleDay
from .booking import ACTIVE_STATUSES, Booking, BookingStatus
from .rate import ProviderRate

__all__ = [
    "ACTIVE_STATUSES",
    "AvailabilityOverride",
    "Booking",
    "BookingStatus",
    "ProviderCalendar",
    "ProviderRate",
    "VacationPeriod",
    "WeeklyScheduleDay",
]
