"""Run date arithmetic for recurring invoices.

Pure functions of their arguments: nothing here reads the clock, so the
same template always produces the same schedule.
"""

from __future__ import annotations

from datetime import date

from src.models.enums import RecurringFrequency
from src.modules.recurring_invoice.constants import (
    FREQUENCY_MONTHS,
    MAX_DAY_OF_MONTH,
    MIN_DAY_OF_MONTH,
)


def clamp_day(day: int) -> int:
    return max(MIN_DAY_OF_MONTH, min(day, MAX_DAY_OF_MONTH))


def add_months(value: date, months: int, day: int) -> date:
    """Move ``value`` by ``months`` and pin it to ``day`` (already clamped)."""
    index = value.year * 12 + (value.month - 1) + months
    return date(index // 12, index % 12 + 1, day)


def calculate_initial_next_run(
    frequency: RecurringFrequency,
    start_date: date,
    day_of_month: int | None = None,
    not_before: date | None = None,
) -> date:
    """First run on or after ``start_date``.

    The run day is ``day_of_month`` or the start date's day, clamped to
    1..28. When ``not_before`` is given the schedule is rolled forward in
    whole intervals until it reaches that date, keeping the anchor day.
    """
    day = clamp_day(day_of_month or start_date.day)
    interval = FREQUENCY_MONTHS[frequency]

    candidate = date(start_date.year, start_date.month, day)
    if candidate < start_date:
        candidate = add_months(candidate, interval, day)
    if not_before is not None:
        while candidate < not_before:
            candidate = add_months(candidate, interval, day)
    return candidate


def calculate_next_run_date(
    current: date,
    frequency: RecurringFrequency,
    day_of_month: int | None = None,
) -> date:
    """Exactly one interval after ``current``, the run that just happened."""
    day = clamp_day(day_of_month or current.day)
    return add_months(current, FREQUENCY_MONTHS[frequency], day)


def run_month_bounds(run_date: date) -> tuple[date, date]:
    """First and last day of the month a run belongs to."""
    first = date(run_date.year, run_date.month, 1)
    last = date.fromordinal(add_months(first, 1, 1).toordinal() - 1)
    return first, last
