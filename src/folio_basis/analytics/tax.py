"""
Tax liability estimation.

Applies user-configured short and long term rates to unrealized or realized
gains. Each bucket's gross positive gains are taxed; losses are never netted
against gains and never produce a negative liability. This is a deliberate
simplification of real loss-offset rules. A configured state rate is added
to both federal rates.
"""

from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from folio_basis.analytics.equity_comp import find_aging_lots
from folio_basis.models import (
    Holding,
    SaleAllocation,
    TaxExposure,
    TaxLiabilityEstimate,
    TaxLot,
    TaxSettings,
    UnrealizedGainSummary,
    ZERO,
)
from folio_basis.portfolio.allocation import summarize_allocations
from folio_basis.portfolio.valuation import calculate_unrealized_gains


CENTS = Decimal("0.01")
RATE_PLACES = Decimal("0.0001")


def estimate_tax_liability(
    summary: UnrealizedGainSummary,
    settings: TaxSettings,
) -> TaxLiabilityEstimate:
    """
    Estimate tax on the unrealized gains of a summary.

    estimated = max(0, short_term_gain) * (short_rate + state_rate)
              + max(0, long_term_gain) * (long_rate + state_rate)

    Args:
        summary: Unrealized gain summary by holding period
        settings: Tax rates to apply

    Returns:
        TaxLiabilityEstimate with amounts rounded to cents
    """
    return _estimate(summary.short_term_gains, summary.long_term_gains, settings)


def estimate_tax_for_lots(
    lots: list[TaxLot],
    current_price: Decimal,
    settings: TaxSettings,
    as_of: Optional[date] = None,
) -> TaxLiabilityEstimate:
    """
    Estimate tax owed if every open lot were sold at current_price.

    Args:
        lots: Lots of a single symbol
        current_price: Current market price per share
        settings: Tax rates to apply
        as_of: Valuation date (defaults to today)

    Returns:
        TaxLiabilityEstimate with amounts rounded to cents
    """
    _, summary = calculate_unrealized_gains(lots, current_price, as_of)
    return estimate_tax_liability(summary, settings)


def calculate_tax_exposure(
    lots: list[TaxLot],
    current_price: Decimal,
    settings: TaxSettings,
    as_of: Optional[date] = None,
    horizon_days: int = 30,
    symbol: Optional[str] = None,
) -> TaxExposure:
    """
    Mark a holding to market and estimate the tax on its unrealized gains.

    Also counts the short-term lots that turn long-term within horizon_days,
    the lots whose sale might be worth deferring.

    Args:
        lots: Lots of a single symbol
        current_price: Current market price per share
        settings: Tax rates to apply
        as_of: Valuation date (defaults to today)
        horizon_days: Look-ahead window for aging lots
        symbol: Holding symbol, defaults to the first lot's symbol

    Returns:
        TaxExposure with the priced holding, valuations, summary and estimate

    Raises:
        LotValidationError: If the price or horizon is invalid
    """
    valuation_date = as_of or date.today()
    if symbol is None:
        symbol = lots[0].symbol if lots else ""

    valuations, summary = calculate_unrealized_gains(lots, current_price, valuation_date)
    aging_lots = find_aging_lots(lots, valuation_date, horizon_days)

    return TaxExposure(
        holding=Holding.from_lots(symbol, lots).with_price(current_price),
        valuations=valuations,
        summary=summary,
        estimate=estimate_tax_liability(summary, settings),
        aging_lot_count=len(aging_lots),
    )


def estimate_realized_tax(
    allocations: list[SaleAllocation],
    settings: TaxSettings,
) -> TaxLiabilityEstimate:
    """
    Estimate tax on realized sale allocations.

    Transfers carry zero realized gain and so never add liability.

    Args:
        allocations: Allocations from one or more sales
        settings: Tax rates to apply

    Returns:
        TaxLiabilityEstimate with amounts rounded to cents
    """
    realized = summarize_allocations(allocations)
    return _estimate(realized["short"]["gains"], realized["long"]["gains"], settings)


def _estimate(
    short_term_gain: Decimal,
    long_term_gain: Decimal,
    settings: TaxSettings,
) -> TaxLiabilityEstimate:
    taxable_short = max(ZERO, short_term_gain)
    taxable_long = max(ZERO, long_term_gain)
    short_term_tax = taxable_short * settings.combined_short_term_rate
    long_term_tax = taxable_long * settings.combined_long_term_rate
    total_tax = short_term_tax + long_term_tax

    total_gain = taxable_short + taxable_long
    effective_rate = total_tax / total_gain if total_gain > ZERO else ZERO

    # Round only at the output boundary
    return TaxLiabilityEstimate(
        short_term_gain=short_term_gain,
        long_term_gain=long_term_gain,
        short_term_tax=short_term_tax.quantize(CENTS, rounding=ROUND_HALF_UP),
        long_term_tax=long_term_tax.quantize(CENTS, rounding=ROUND_HALF_UP),
        total_tax=total_tax.quantize(CENTS, rounding=ROUND_HALF_UP),
        settings=settings,
        effective_rate=effective_rate.quantize(RATE_PLACES, rounding=ROUND_HALF_UP),
    )
