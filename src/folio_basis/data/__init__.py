"""
Data ingestion module for folio-basis.

Provides functionality for loading transaction histories and portfolio
value series, and saving lots, allocations and valuations to CSV.
"""

from folio_basis.data.loaders import (
    DataLoadError,
    load_transactions,
    load_value_history,
    save_lots,
    save_allocations,
    save_valuations,
)
from folio_basis.data.schemas import (
    TRANSACTIONS_SCHEMA,
    VALUE_HISTORY_SCHEMA,
    LOTS_SCHEMA,
    ALLOCATIONS_SCHEMA,
    VALUATION_SCHEMA,
)

__all__ = [
    "DataLoadError",
    "load_transactions",
    "load_value_history",
    "save_lots",
    "save_allocations",
    "save_valuations",
    "TRANSACTIONS_SCHEMA",
    "VALUE_HISTORY_SCHEMA",
    "LOTS_SCHEMA",
    "ALLOCATIONS_SCHEMA",
    "VALUATION_SCHEMA",
]
