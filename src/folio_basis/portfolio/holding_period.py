"""
Holding period classification.

A lot is long-term once it has been held for at least 365 calendar days.
This is a fixed day-count approximation of "one year": it is not leap-year
aware, so a 366-day holding across February 29 is classified the same way
as a 365-day holding in an ordinary year.
"""

from datetime import date, timedelta

from folio_basis.models import HoldingPeriod, LotValidationError


LONG_TERM_DAYS = 365


def calculate_holding_days(acquisition_date: date, reference_date: date) -> int:
    """
    Number of calendar days between acquisition and the reference date.

    Raises:
        LotValidationError: If reference_date is before acquisition_date
    """
    if reference_date < acquisition_date:
        raise LotValidationError(
            f"Reference date {reference_date} is before acquisition date {acquisition_date}"
        )
    return (reference_date - acquisition_date).days


def classify_holding_period(acquisition_date: date, reference_date: date) -> HoldingPeriod:
    """
    Classify a holding as short or long term.

    Args:
        acquisition_date: Date the shares were acquired
        reference_date: Disposal date, or as-of date for unrealized positions

    Returns:
        HoldingPeriod.LONG if held at least 365 days, else HoldingPeriod.SHORT

    Raises:
        LotValidationError: If reference_date is before acquisition_date
    """
    days_held = calculate_holding_days(acquisition_date, reference_date)
    if days_held >= LONG_TERM_DAYS:
        return HoldingPeriod.LONG
    return HoldingPeriod.SHORT


def long_term_date(acquisition_date: date) -> date:
    """First date on which a lot acquired on acquisition_date is long-term."""
    return acquisition_date + timedelta(days=LONG_TERM_DAYS)


def days_until_long_term(acquisition_date: date, reference_date: date) -> int:
    """Days remaining until long-term status, zero if already long-term."""
    days_held = calculate_holding_days(acquisition_date, reference_date)
    return max(0, LONG_TERM_DAYS - days_held)
