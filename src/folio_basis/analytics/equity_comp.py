"""
Equity compensation rules for ESPP and RSU lots.

Covers the ESPP qualifying-disposition test, bargain-element adjusted basis,
and the aging-lot query used to suggest deferring a sale until a lot turns
long-term.

An ESPP disposition qualifies only when it happens at least two years after
the offering grant date and at least one year after the purchase date.
Failing either test makes it disqualifying, in which case the recorded
bargain element is ordinary income and the capital gain is measured against
purchase_price + bargain_element.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from folio_basis.models import (
    AgingLot,
    DispositionCheck,
    DispositionReason,
    EsppDisposition,
    LotType,
    LotValidationError,
    TaxLot,
    ZERO,
)
from folio_basis.portfolio.holding_period import (
    LONG_TERM_DAYS,
    calculate_holding_days,
    classify_holding_period,
    days_until_long_term,
    long_term_date,
)


def add_years(value: date, years: int) -> date:
    """Same month and day `years` later, with February 29 clamped to the 28th."""
    try:
        return value.replace(year=value.year + years)
    except ValueError:
        return value.replace(year=value.year + years, day=28)


def check_disposition(
    grant_date: date,
    purchase_date: date,
    disposal_date: date,
) -> DispositionCheck:
    """
    Run the ESPP qualifying-disposition test.

    Args:
        grant_date: Offering grant date
        purchase_date: ESPP purchase date
        disposal_date: Actual or planned sale date

    Returns:
        DispositionCheck with both threshold dates and the reason

    Raises:
        LotValidationError: If grant_date is not before purchase_date, or the
            disposal happens before the purchase
    """
    if grant_date >= purchase_date:
        raise LotValidationError(
            f"Grant date {grant_date} must be before purchase date {purchase_date}"
        )
    if disposal_date < purchase_date:
        raise LotValidationError(
            f"Disposal date {disposal_date} cannot be before purchase date {purchase_date}"
        )

    two_years_from_grant = add_years(grant_date, 2)
    one_year_from_purchase = add_years(purchase_date, 1)

    meets_grant = disposal_date >= two_years_from_grant
    meets_purchase = disposal_date >= one_year_from_purchase

    return DispositionCheck(
        is_qualifying=meets_grant and meets_purchase,
        reason=disposition_reason(meets_grant, meets_purchase),
        meets_grant_requirement=meets_grant,
        meets_purchase_requirement=meets_purchase,
        grant_date=grant_date,
        purchase_date=purchase_date,
        disposal_date=disposal_date,
        two_years_from_grant=two_years_from_grant,
        one_year_from_purchase=one_year_from_purchase,
    )


def disposition_reason(meets_grant: bool, meets_purchase: bool) -> DispositionReason:
    """Map the two holding requirements to a DispositionReason."""
    if meets_grant and meets_purchase:
        return DispositionReason.QUALIFYING
    if not meets_grant and not meets_purchase:
        return DispositionReason.BOTH_REQUIREMENTS_NOT_MET
    if not meets_grant:
        return DispositionReason.SOLD_BEFORE_2YR_FROM_GRANT
    return DispositionReason.SOLD_BEFORE_1YR_FROM_PURCHASE


def is_disqualifying_disposition(
    grant_date: date,
    purchase_date: date,
    disposal_date: date,
) -> bool:
    """
    True when an ESPP sale on disposal_date fails either holding requirement.

    Raises:
        LotValidationError: On inconsistent dates (see check_disposition)
    """
    return check_disposition(grant_date, purchase_date, disposal_date).is_disqualifying


def tax_implication_message(check: DispositionCheck, bargain_element: Decimal) -> str:
    """Human-readable explanation of a disposition's tax treatment."""
    if check.is_qualifying:
        return (
            "Qualifying disposition: favorable tax treatment applies. The bargain "
            "element is taxed as long-term capital gain, not ordinary income."
        )

    sold = check.disposal_date.isoformat()
    grant_threshold = check.two_years_from_grant.isoformat()
    purchase_threshold = check.one_year_from_purchase.isoformat()

    if check.reason == DispositionReason.BOTH_REQUIREMENTS_NOT_MET:
        detail = (
            f"This sale on {sold} is before both the 2-year grant requirement "
            f"({grant_threshold}) and the 1-year purchase requirement ({purchase_threshold})."
        )
    elif check.reason == DispositionReason.SOLD_BEFORE_2YR_FROM_GRANT:
        detail = f"This sale on {sold} is before the 2-year grant requirement ({grant_threshold})."
    else:
        detail = f"This sale on {sold} is before the 1-year purchase requirement ({purchase_threshold})."

    return (
        f"Disqualifying disposition: the ${bargain_element:,.2f} bargain element will be "
        f"taxed as ordinary income. Shares must be held at least 2 years from grant "
        f"({check.grant_date.isoformat()}) and 1 year from purchase "
        f"({check.purchase_date.isoformat()}). {detail}"
    )


def adjusted_cost_basis(lot: TaxLot) -> Decimal:
    """Per-share basis for disqualifying-disposition accounting: price + bargain element."""
    return lot.purchase_price + lot.bargain_element


def evaluate_espp_disposition(
    lot: TaxLot,
    quantity: Decimal,
    sale_price: Decimal,
    disposal_date: date,
) -> EsppDisposition:
    """
    Work out the tax treatment of selling `quantity` shares of an ESPP lot.

    On a disqualifying disposition the ordinary income is the recorded
    bargain element times the quantity (not recomputed from the current
    price) and the capital gain is measured against the adjusted basis. On a
    qualifying disposition no ordinary income is recognized here and the gain
    is measured against the purchase price.

    Args:
        lot: ESPP lot with a grant date
        quantity: Shares being sold from the lot
        sale_price: Per-share sale price
        disposal_date: Sale date

    Returns:
        EsppDisposition

    Raises:
        LotValidationError: If the lot is not an ESPP lot, lacks a grant date,
            or the quantity exceeds the lot's remaining shares
    """
    if lot.lot_type != LotType.ESPP:
        raise LotValidationError(f"Lot {lot.lot_id} is not an ESPP lot")
    if lot.grant_date is None:
        raise LotValidationError(f"ESPP lot {lot.lot_id} has no grant date")
    if quantity <= ZERO or quantity > lot.remaining_quantity:
        raise LotValidationError(
            f"Quantity {quantity} must be positive and at most {lot.remaining_quantity}"
        )

    check = check_disposition(lot.grant_date, lot.purchase_date, disposal_date)
    proceeds = quantity * sale_price

    if check.is_disqualifying:
        ordinary_income = lot.bargain_element * quantity
        basis = lot.basis_of(quantity) + quantity * lot.bargain_element
    else:
        ordinary_income = ZERO
        basis = lot.basis_of(quantity)

    return EsppDisposition(
        lot_id=lot.lot_id,
        quantity=quantity,
        check=check,
        ordinary_income=ordinary_income,
        adjusted_cost_basis=basis,
        proceeds=proceeds,
        capital_gain=proceeds - basis,
        holding_period=classify_holding_period(lot.purchase_date, disposal_date),
    )


def find_disqualifying_lots(lots: list[TaxLot], disposal_date: date) -> list[TaxLot]:
    """Open ESPP lots whose sale on disposal_date would be disqualifying."""
    return [
        lot for lot in lots
        if lot.is_open
        and lot.lot_type == LotType.ESPP
        and lot.grant_date is not None
        and disposal_date >= lot.purchase_date
        and is_disqualifying_disposition(lot.grant_date, lot.purchase_date, disposal_date)
    ]


def find_aging_lots(
    lots: list[TaxLot],
    as_of: date,
    horizon_days: int = 30,
    current_price: Optional[Decimal] = None,
) -> list[AgingLot]:
    """
    Find short-term lots that turn long-term within the horizon.

    Args:
        lots: Lots to inspect (closed lots are skipped)
        as_of: Reference date
        horizon_days: Look-ahead window in days
        current_price: Optional price to attach the unrealized gain of each lot

    Returns:
        AgingLot list sorted by days until long-term, soonest first

    Raises:
        LotValidationError: If horizon_days is negative
    """
    if horizon_days < 0:
        raise LotValidationError(f"horizon_days must be non-negative, got {horizon_days}")

    aging = []
    for lot in lots:
        if not lot.is_open or lot.purchase_date > as_of:
            continue

        days_held = calculate_holding_days(lot.purchase_date, as_of)
        if days_held >= LONG_TERM_DAYS:
            continue

        days_left = days_until_long_term(lot.purchase_date, as_of)
        if days_left > horizon_days:
            continue

        unrealized_gain = None
        if current_price is not None:
            unrealized_gain = lot.remaining_quantity * current_price - lot.cost_basis

        aging.append(
            AgingLot(
                lot=lot,
                days_held=days_held,
                days_until_long_term=days_left,
                long_term_date=long_term_date(lot.purchase_date),
                unrealized_gain=unrealized_gain,
            )
        )

    return sorted(aging, key=lambda a: a.days_until_long_term)
