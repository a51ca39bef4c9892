from cleanbook.availability.periods import label_for_period, period_from_time, time_for_period
from cleanbook.availability.resolver import AvailabilityResolver, AvailableSlot

__all__ = [
    "AvailabilityResolver",
    "AvailableSlot",
    "label_for_period",
    "period_from_time",
    "time_for_period",
]
