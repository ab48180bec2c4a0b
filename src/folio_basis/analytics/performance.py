"""
Performance and risk statistics over a portfolio value series.

Calculates:
- CAGR (Compound Annual Growth Rate)
- Maximum Drawdown
- Daily returns
- Sharpe Ratio
- Volatility (annualized)

Return, CAGR and drawdown figures are Decimal percents. Sharpe and volatility
are computed with numpy and returned as floats.

The Sharpe ratio is a daily-frequency figure: mean daily return minus the
de-annualized risk-free rate, divided by the population standard deviation
of daily returns, with no sqrt(252) scaling. It is not comparable to the
conventional annualized Sharpe ratio.
"""

import math
from decimal import Decimal
from typing import Sequence

import numpy as np
import pandas as pd

from folio_basis.models import HistoricalValuePoint, PerformanceMetrics, ZERO


TRADING_DAYS_PER_YEAR = 252
MIN_SHARPE_OBSERVATIONS = 30
DEFAULT_RISK_FREE_RATE = 0.04

# Standard deviations below this are treated as zero (float noise on constant returns)
_STD_EPSILON = 1e-12


class PerformanceError(Exception):
    """Raised when a value series cannot be analyzed."""
    pass


def calculate_cagr(start_value: Decimal, end_value: Decimal, days_held: int) -> Decimal:
    """
    Compound annual growth rate as a percent.

    Args:
        start_value: Value at the start of the period
        end_value: Value at the end of the period
        days_held: Calendar days between start and end

    Returns:
        ((end/start) ** (365/days) - 1) * 100; 0 if days_held <= 0 or
        start_value <= 0; -100 if end_value is 0 (or negative)
    """
    if days_held <= 0 or start_value <= ZERO:
        return ZERO
    if end_value <= ZERO:
        return Decimal("-100")

    growth = Decimal(end_value) / Decimal(start_value)
    exponent = Decimal(365) / Decimal(days_held)
    return (growth ** exponent - 1) * 100


def calculate_total_return(start_value: Decimal, end_value: Decimal) -> Decimal:
    """Simple return over the period as a percent, 0 if start_value <= 0."""
    if start_value <= ZERO:
        return ZERO
    return (end_value - start_value) / start_value * 100


def calculate_max_drawdown(values: Sequence[Decimal]) -> Decimal:
    """
    Largest peak-to-trough decline as a percent.

    Single forward pass tracking the running peak. Non-positive values are
    skipped.

    Returns:
        Maximum drawdown percent, 0 for fewer than 2 values or a
        non-decreasing series
    """
    if len(values) < 2:
        return ZERO

    peak = None
    max_drawdown = ZERO

    for value in values:
        if value <= ZERO:
            continue
        if peak is None or value > peak:
            peak = value
            continue
        drawdown = (peak - value) / peak
        if drawdown > max_drawdown:
            max_drawdown = drawdown

    return max_drawdown * 100


def calculate_daily_returns(values: Sequence[Decimal]) -> list[Decimal]:
    """
    Period-over-period returns as fractions.

    Pairs whose previous value is zero or negative are skipped, so the result
    can be shorter than len(values) - 1.
    """
    returns = []
    for previous, current in zip(values, values[1:]):
        if previous <= ZERO:
            continue
        returns.append((current - previous) / previous)
    return returns


def calculate_sharpe_ratio(
    daily_returns: Sequence[Decimal],
    risk_free_rate: float = DEFAULT_RISK_FREE_RATE,
) -> float:
    """
    Daily-frequency Sharpe ratio.

    (mean(returns) - risk_free_rate / 252) / population_std(returns)

    Args:
        daily_returns: Daily returns as fractions
        risk_free_rate: Annual risk-free rate (default 4%)

    Returns:
        Sharpe ratio, 0.0 with fewer than 30 observations or zero deviation
    """
    if len(daily_returns) < MIN_SHARPE_OBSERVATIONS:
        return 0.0

    returns = np.array([float(r) for r in daily_returns])
    std = float(np.std(returns))
    if std < _STD_EPSILON:
        return 0.0

    daily_rf = risk_free_rate / TRADING_DAYS_PER_YEAR
    return float((np.mean(returns) - daily_rf) / std)


def calculate_volatility(daily_returns: Sequence[Decimal]) -> float:
    """
    Annualized volatility as a percent.

    population_std(returns) * sqrt(252) * 100, 0.0 for fewer than 2 returns.
    """
    if len(daily_returns) < 2:
        return 0.0

    returns = np.array([float(r) for r in daily_returns])
    return float(np.std(returns) * math.sqrt(TRADING_DAYS_PER_YEAR) * 100)


def validate_value_series(points: Sequence[HistoricalValuePoint]) -> None:
    """
    Check that a series has monotonically non-decreasing dates.

    Raises:
        PerformanceError: If dates go backwards
    """
    dates = pd.Series(pd.to_datetime([p.date for p in points]))
    if not dates.is_monotonic_increasing:
        raise PerformanceError("Value series dates must be non-decreasing")


def calculate_performance_metrics(
    points: Sequence[HistoricalValuePoint],
    risk_free_rate: float = DEFAULT_RISK_FREE_RATE,
) -> PerformanceMetrics:
    """
    Calculate all performance statistics for a value series.

    Interpolated points are used as supplied; the series is not resampled
    or gap-filled.

    Args:
        points: Chronological portfolio values
        risk_free_rate: Annual risk-free rate for the Sharpe ratio

    Returns:
        PerformanceMetrics

    Raises:
        PerformanceError: If the series is empty or out of order
    """
    if not points:
        raise PerformanceError("No value points provided for metrics calculation")

    validate_value_series(points)

    values = [p.total_value for p in points]
    start, end = points[0], points[-1]
    days_held = (end.date - start.date).days

    daily_returns = calculate_daily_returns(values)

    return PerformanceMetrics(
        start_date=start.date.isoformat(),
        end_date=end.date.isoformat(),
        num_points=len(points),
        start_value=float(start.total_value),
        end_value=float(end.total_value),
        total_return=float(calculate_total_return(start.total_value, end.total_value)),
        cagr=float(calculate_cagr(start.total_value, end.total_value, days_held)),
        annualized_volatility=calculate_volatility(daily_returns),
        sharpe_ratio=calculate_sharpe_ratio(daily_returns, risk_free_rate),
        max_drawdown=float(calculate_max_drawdown(values)),
        num_returns=len(daily_returns),
    )
