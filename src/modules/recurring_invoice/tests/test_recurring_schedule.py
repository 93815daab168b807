"""Tests for recurring invoice run date arithmetic."""

from __future__ import annotations

from datetime import date

import pytest

from src.models.enums import RecurringFrequency
from src.modules.recurring_invoice.schedule import (
    add_months,
    calculate_initial_next_run,
    calculate_next_run_date,
    clamp_day,
    run_month_bounds,
)


class TestInitialNextRun:
    def test_start_on_run_day_runs_on_start(self):
        assert calculate_initial_next_run(
            RecurringFrequency.MONTHLY, date(2026, 1, 15), 15
        ) == date(2026, 1, 15)

    def test_start_after_run_day_moves_to_next_month(self):
        assert calculate_initial_next_run(
            RecurringFrequency.MONTHLY, date(2026, 1, 16), 15
        ) == date(2026, 2, 15)

    def test_start_before_run_day_stays_in_month(self):
        assert calculate_initial_next_run(
            RecurringFrequency.MONTHLY, date(2026, 1, 3), 15
        ) == date(2026, 1, 15)

    def test_quarterly_first_of_month(self):
        first = calculate_initial_next_run(RecurringFrequency.QUARTERLY, date(2026, 1, 1), 1)
        assert first == date(2026, 1, 1)
        assert calculate_next_run_date(first, RecurringFrequency.QUARTERLY, 1) == date(2026, 4, 1)

    def test_defaults_to_start_day(self):
        assert calculate_initial_next_run(
            RecurringFrequency.ANNUAL, date(2026, 3, 9)
        ) == date(2026, 3, 9)

    def test_start_day_beyond_28_is_clamped(self):
        # Jan 28 is before Jan 31, so the first run is one interval later
        assert calculate_initial_next_run(
            RecurringFrequency.MONTHLY, date(2026, 1, 31)
        ) == date(2026, 2, 28)

    def test_step_uses_frequency_interval(self):
        assert calculate_initial_next_run(
            RecurringFrequency.SEMI_ANNUAL, date(2026, 9, 20), 10
        ) == date(2027, 3, 10)

    def test_not_before_rolls_forward_keeping_anchor(self):
        result = calculate_initial_next_run(
            RecurringFrequency.QUARTERLY,
            date(2026, 1, 10),
            not_before=date(2026, 5, 1),
        )
        assert result == date(2026, 7, 10)

    def test_not_before_in_past_has_no_effect(self):
        result = calculate_initial_next_run(
            RecurringFrequency.MONTHLY,
            date(2026, 6, 1),
            1,
            not_before=date(2026, 1, 1),
        )
        assert result == date(2026, 6, 1)


class TestNextRunDate:
    @pytest.mark.parametrize(
        ("frequency", "expected"),
        [
            (RecurringFrequency.MONTHLY, date(2026, 2, 15)),
            (RecurringFrequency.QUARTERLY, date(2026, 4, 15)),
            (RecurringFrequency.SEMI_ANNUAL, date(2026, 7, 15)),
            (RecurringFrequency.ANNUAL, date(2027, 1, 15)),
        ],
    )
    def test_one_interval_per_frequency(self, frequency, expected):
        assert calculate_next_run_date(date(2026, 1, 15), frequency) == expected

    def test_crosses_year_boundary(self):
        assert calculate_next_run_date(
            date(2026, 11, 5), RecurringFrequency.QUARTERLY
        ) == date(2027, 2, 5)

    def test_missed_runs_do_not_compound(self):
        # A run from last January is advanced by one interval only
        assert calculate_next_run_date(
            date(2025, 1, 15), RecurringFrequency.MONTHLY, 15
        ) == date(2025, 2, 15)


class TestHelpers:
    def test_clamp_day(self):
        assert clamp_day(0) == 1
        assert clamp_day(15) == 15
        assert clamp_day(31) == 28

    def test_add_months_year_rollover(self):
        assert add_months(date(2026, 12, 1), 1, 1) == date(2027, 1, 1)

    def test_run_month_bounds(self):
        assert run_month_bounds(date(2028, 2, 10)) == (date(2028, 2, 1), date(2028, 2, 29))
        assert run_month_bounds(date(2026, 12, 31)) == (date(2026, 12, 1), date(2026, 12, 31))
