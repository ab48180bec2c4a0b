"""
Decision logging module for folio-basis.

Provides append-only decision logging for audit and reproducibility.
"""

from folio_basis.logging.decision_log import (
    DecisionLogger,
    log_action,
    get_logger,
)

__all__ = [
    "DecisionLogger",
    "log_action",
    "get_logger",
]
