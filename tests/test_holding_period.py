"""
Tests for holding period classification.
"""

from datetime import date

import pytest

from folio_basis.models import HoldingPeriod, LotValidationError
from folio_basis.portfolio.holding_period import (
    calculate_holding_days,
    classify_holding_period,
    days_until_long_term,
    long_term_date,
)


class TestClassifyHoldingPeriod:
    """Tests for the classify_holding_period function."""

    def test_five_months_is_short(self):
        """Test a holding of a few months is short-term."""
        assert classify_holding_period(date(2024, 1, 1), date(2024, 6, 1)) == HoldingPeriod.SHORT

    def test_exactly_365_days_is_long(self):
        """Test the 365-day boundary is inclusive."""
        # 2024 is a leap year, so 2024-12-31 is day 365
        assert classify_holding_period(date(2024, 1, 1), date(2024, 12, 31)) == HoldingPeriod.LONG

    def test_364_days_is_short(self):
        """Test one day before the boundary is short-term."""
        assert classify_holding_period(date(2023, 1, 1), date(2023, 12, 31)) == HoldingPeriod.SHORT

    def test_full_calendar_year_is_long(self):
        """Test a full calendar year or more is long-term."""
        assert classify_holding_period(date(2023, 1, 1), date(2024, 1, 1)) == HoldingPeriod.LONG
        assert classify_holding_period(date(2020, 5, 1), date(2024, 5, 1)) == HoldingPeriod.LONG

    def test_same_day_is_short(self):
        """Test a same-day disposal is short-term."""
        assert classify_holding_period(date(2024, 3, 1), date(2024, 3, 1)) == HoldingPeriod.SHORT

    def test_reference_before_acquisition_raises(self):
        """Test a reference date before acquisition is rejected."""
        with pytest.raises(LotValidationError):
            classify_holding_period(date(2024, 3, 1), date(2024, 2, 1))


class TestHoldingPeriodHelpers:
    """Tests for holding day helpers."""

    def test_calculate_holding_days(self):
        """Test calendar day count."""
        assert calculate_holding_days(date(2024, 1, 1), date(2024, 1, 31)) == 30

    def test_long_term_date(self):
        """Test the long-term date is 365 days after acquisition."""
        assert long_term_date(date(2023, 3, 1)) == date(2024, 2, 29)

    def test_days_until_long_term(self):
        """Test remaining days, floored at zero."""
        assert days_until_long_term(date(2024, 1, 1), date(2024, 12, 1)) == 30
        assert days_until_long_term(date(2020, 1, 1), date(2024, 12, 1)) == 0
