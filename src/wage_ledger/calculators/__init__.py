"""Pure calculations over ledger records."""

from wage_ledger.calculators.attendance import AttendanceSummary, aggregate_attendance
from wage_ledger.calculators.identity import customer_key, normalize_phone
from wage_ledger.calculators.periods import PeriodMarkers, period_markers, week_number
from wage_ledger.calculators.time_arithmetic import parse_clock_time, work_hours

__all__ = [
    "AttendanceSummary",
    "aggregate_attendance",
    "customer_key",
    "normalize_phone",
    "PeriodMarkers",
    "period_markers",
    "week_number",
    "parse_clock_time",
    "work_hours",
]
