"""
Unrealized gain valuation of open tax lots.

This module marks open lots to a current price, calculating per-lot
unrealized gain and totals partitioned by holding period.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from folio_basis.models import (
    HoldingPeriod,
    LotValidationError,
    LotValuation,
    TaxLot,
    UnrealizedGainSummary,
    ZERO,
)
from folio_basis.portfolio.holding_period import classify_holding_period


def value_lot(lot: TaxLot, current_price: Decimal, valuation_date: date) -> LotValuation:
    """
    Value the remaining shares of one lot.

    unrealized_gain = remaining * price - remaining cost basis, and the percent
    is taken against that basis, defined as 0 when the basis is 0.
    """
    market_value = lot.remaining_quantity * current_price
    cost_basis = lot.cost_basis
    unrealized_gain = market_value - cost_basis

    # Avoid division by zero
    if cost_basis != ZERO:
        unrealized_gain_pct = unrealized_gain / cost_basis * 100
    else:
        unrealized_gain_pct = ZERO

    return LotValuation(
        lot=lot,
        current_price=current_price,
        valuation_date=valuation_date,
        market_value=market_value,
        unrealized_gain=unrealized_gain,
        unrealized_gain_pct=unrealized_gain_pct,
        holding_period=classify_holding_period(lot.purchase_date, valuation_date),
    )


def value_lots(
    lots: list[TaxLot],
    current_price: Decimal,
    as_of: Optional[date] = None,
) -> list[LotValuation]:
    """
    Value the open lots of a holding at the current price.

    Closed lots are skipped.

    Args:
        lots: Lots of a single symbol
        current_price: Current market price per share
        as_of: Valuation date for holding-period classification (defaults to today)

    Returns:
        List of LotValuation objects, one per open lot

    Raises:
        LotValidationError: If the price is negative or a lot was acquired after as_of
    """
    if current_price < ZERO:
        raise LotValidationError(f"Current price must be non-negative, got {current_price}")

    valuation_date = as_of or date.today()

    return [
        value_lot(lot, current_price, valuation_date)
        for lot in lots
        if lot.is_open
    ]


def summarize_unrealized(valuations: list[LotValuation]) -> UnrealizedGainSummary:
    """
    Partition unrealized results into short and long term buckets.

    Gains and losses are accumulated separately per bucket so callers can
    choose between gross and net figures.

    Args:
        valuations: Lot valuations from value_lots

    Returns:
        UnrealizedGainSummary with per-bucket gross gains and losses
    """
    summary = UnrealizedGainSummary()

    for val in valuations:
        summary.total_market_value += val.market_value
        summary.total_cost_basis += val.lot.cost_basis

        gain = val.unrealized_gain
        if val.holding_period == HoldingPeriod.LONG:
            if gain > ZERO:
                summary.long_term_gains += gain
            else:
                summary.long_term_losses += gain
        else:
            if gain > ZERO:
                summary.short_term_gains += gain
            else:
                summary.short_term_losses += gain

    return summary


def calculate_unrealized_gains(
    lots: list[TaxLot],
    current_price: Decimal,
    as_of: Optional[date] = None,
) -> tuple[list[LotValuation], UnrealizedGainSummary]:
    """
    Value open lots and summarize them in one call.

    Returns:
        Tuple of (per-lot valuations, summary)
    """
    valuations = value_lots(lots, current_price, as_of)
    return valuations, summarize_unrealized(valuations)


def get_gainers_and_losers(
    valuations: list[LotValuation],
    top_n: int = 5,
) -> tuple[list[LotValuation], list[LotValuation]]:
    """
    Get the lots with the largest unrealized gains and losses.

    Args:
        valuations: Lot valuations
        top_n: Number of lots to return for each list

    Returns:
        Tuple of (top gainers, top losers)
    """
    sorted_vals = sorted(valuations, key=lambda v: v.unrealized_gain, reverse=True)

    gainers = [v for v in sorted_vals if v.unrealized_gain > ZERO][:top_n]
    losers = [v for v in reversed(sorted_vals) if v.unrealized_gain < ZERO][:top_n]

    return gainers, losers
