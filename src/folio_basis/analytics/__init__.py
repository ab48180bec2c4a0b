"""
Analytics module for folio-basis.

Provides tax liability estimation, tax-loss harvesting detection, ESPP/RSU
disposition rules and performance/risk statistics.
"""

from folio_basis.analytics.equity_comp import (
    check_disposition,
    is_disqualifying_disposition,
    evaluate_espp_disposition,
    find_aging_lots,
)
from folio_basis.analytics.harvest import find_harvest_opportunities
from folio_basis.analytics.performance import (
    PerformanceError,
    calculate_cagr,
    calculate_max_drawdown,
    calculate_daily_returns,
    calculate_sharpe_ratio,
    calculate_volatility,
    calculate_performance_metrics,
)
from folio_basis.analytics.tax import (
    estimate_tax_liability,
    estimate_tax_for_lots,
    estimate_realized_tax,
    calculate_tax_exposure,
)

__all__ = [
    "check_disposition",
    "is_disqualifying_disposition",
    "evaluate_espp_disposition",
    "find_aging_lots",
    "find_harvest_opportunities",
    "PerformanceError",
    "calculate_cagr",
    "calculate_max_drawdown",
    "calculate_daily_returns",
    "calculate_sharpe_ratio",
    "calculate_volatility",
    "calculate_performance_metrics",
    "estimate_tax_liability",
    "estimate_tax_for_lots",
    "estimate_realized_tax",
    "calculate_tax_exposure",
]
