"""Clock-time arithmetic for attendance records.

Check-in and check-out are local clock times without a date. A check-out
earlier than the check-in is an overnight shift ending the next day.
"""

from __future__ import annotations

import logging
from datetime import time
from decimal import ROUND_HALF_UP, Decimal

logger = logging.getLogger(__name__)

HOURS_PER_DAY = Decimal("24")
SECONDS_PER_DAY = 24 * 3600
HOURS_QUANTUM = Decimal("0.01")


def parse_clock_time(value: str | time | None) -> time | None:
    """Parse ``HH:MM`` or ``HH:MM:SS`` into a time, or None if malformed."""
    if value is None:
        return None
    if isinstance(value, time):
        return value
    if not isinstance(value, str):
        return None

    parts = value.strip().split(":")
    if len(parts) not in (2, 3):
        return None
    try:
        numbers = [int(p) for p in parts]
    except ValueError:
        return None

    hour, minute = numbers[0], numbers[1]
    second = numbers[2] if len(numbers) == 3 else 0
    if not (0 <= hour <= 23 and 0 <= minute <= 59 and 0 <= second <= 59):
        return None
    return time(hour, minute, second)


def format_clock_time(value: time | None) -> str | None:
    """Format a time as ``HH:MM`` for storage."""
    if value is None:
        return None
    return value.strftime("%H:%M")


def work_hours(check_in: str | time | None, check_out: str | time | None) -> Decimal:
    """Hours worked between two clock times, clamped to [0, 24].

    Missing input yields 0. Malformed input also yields 0 and is logged as a
    data-quality warning rather than raised.
    """
    if check_in in (None, "") or check_out in (None, ""):
        return Decimal("0")

    start = parse_clock_time(check_in)
    end = parse_clock_time(check_out)
    if start is None or end is None:
        logger.warning(
            "Unparseable clock times check_in=%r check_out=%r; counting 0 hours",
            check_in,
            check_out,
        )
        return Decimal("0")

    start_seconds = start.hour * 3600 + start.minute * 60 + start.second
    end_seconds = end.hour * 3600 + end.minute * 60 + end.second
    if end_seconds < start_seconds:
        end_seconds += SECONDS_PER_DAY

    hours = Decimal(end_seconds - start_seconds) / Decimal(3600)
    hours = max(Decimal("0"), min(HOURS_PER_DAY, hours))
    return hours.quantize(HOURS_QUANTUM, rounding=ROUND_HALF_UP)
