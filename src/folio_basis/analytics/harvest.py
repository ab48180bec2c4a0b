"""
Tax-loss harvesting detection.

Scans holdings for lots trading below their cost basis and reports, per
holding, the short and long term losses that selling those lots would
realize. Only holdings whose combined loss reaches a minimum dollar amount
are reported.

Note: this module does NOT implement:
- Wash-sale rule enforcement
- Replacement trade suggestions
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from folio_basis.models import (
    HarvestOpportunity,
    HoldingPeriod,
    LotValidationError,
    TaxLot,
    ZERO,
)
from folio_basis.portfolio.valuation import value_lots


DEFAULT_MINIMUM_LOSS = Decimal("100")


def find_harvest_opportunities(
    lots_by_symbol: dict[str, list[TaxLot]],
    prices: dict[str, Decimal],
    as_of: Optional[date] = None,
    minimum_loss: Decimal = DEFAULT_MINIMUM_LOSS,
) -> list[HarvestOpportunity]:
    """
    Identify holdings with harvestable unrealized losses.

    Symbols without a price are skipped. Losses are summed over losing lots
    only, so gains on other lots of the same holding do not hide them.

    Args:
        lots_by_symbol: Lots of each holding, keyed by symbol
        prices: Current price per symbol
        as_of: Valuation date for holding-period classification (defaults to today)
        minimum_loss: Smallest combined loss (positive amount) worth reporting

    Returns:
        List of HarvestOpportunity objects, largest loss first

    Raises:
        LotValidationError: If minimum_loss is negative
    """
    if minimum_loss < ZERO:
        raise LotValidationError(f"minimum_loss must be non-negative, got {minimum_loss}")

    valuation_date = as_of or date.today()
    opportunities = []

    for symbol, lots in lots_by_symbol.items():
        price = prices.get(symbol)
        if price is None:
            continue

        losing = [
            val for val in value_lots(lots, price, valuation_date)
            if val.unrealized_gain < ZERO
        ]

        short_term_loss = sum(
            (v.unrealized_gain for v in losing if v.holding_period == HoldingPeriod.SHORT),
            ZERO,
        )
        long_term_loss = sum(
            (v.unrealized_gain for v in losing if v.holding_period == HoldingPeriod.LONG),
            ZERO,
        )
        total_loss = short_term_loss + long_term_loss

        if not losing or -total_loss < minimum_loss:
            continue

        opportunities.append(
            HarvestOpportunity(
                symbol=symbol,
                unrealized_loss=total_loss,
                short_term_loss=short_term_loss,
                long_term_loss=long_term_loss,
                losing_lots=sorted(losing, key=lambda v: v.unrealized_gain),
            )
        )

    # Most negative first = largest losses
    opportunities.sort(key=lambda o: o.unrealized_loss)

    return opportunities
