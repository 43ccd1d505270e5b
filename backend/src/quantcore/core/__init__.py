"""Core utilities: time measure, tenors and date pillars."""

from quantcore.core.time_measure import DateOrDuration, DayCountConvention, Tenor, TimeMeasure, act365

__all__ = [
    "DateOrDuration",
    "DayCountConvention",
    "Tenor",
    "TimeMeasure",
    "act365",
]
