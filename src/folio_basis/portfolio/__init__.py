"""
Portfolio module for folio-basis.

Provides ledger replay of transaction histories, lot selection, sale
allocation, holding-period classification and unrealized-gain valuation.
"""

from folio_basis.portfolio.allocation import (
    InsufficientLotsError,
    SaleResult,
    allocate_sale,
    preview_sale,
    summarize_allocations,
)
from folio_basis.portfolio.holding_period import (
    classify_holding_period,
    calculate_holding_days,
    long_term_date,
)
from folio_basis.portfolio.ledger import (
    LedgerResult,
    UnknownTransactionTypeError,
    build_ledger,
    build_ledgers,
)
from folio_basis.portfolio.strategies import order_lots
from folio_basis.portfolio.valuation import (
    value_lots,
    summarize_unrealized,
    calculate_unrealized_gains,
)

__all__ = [
    "InsufficientLotsError",
    "SaleResult",
    "allocate_sale",
    "preview_sale",
    "summarize_allocations",
    "classify_holding_period",
    "calculate_holding_days",
    "long_term_date",
    "LedgerResult",
    "UnknownTransactionTypeError",
    "build_ledger",
    "build_ledgers",
    "order_lots",
    "value_lots",
    "summarize_unrealized",
    "calculate_unrealized_gains",
]
