"""
Append-only decision logging for folio-basis.

Every engine run that produces figures (ledger replays, sale previews, tax
estimates, aging-lot and harvesting scans, performance statistics) is logged
with a timestamp and its inputs and headline outputs, to support
auditability and reproducibility. The calculation functions themselves never log; the
command-line layer records their results here.
"""

import json
from datetime import datetime, date
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional

from folio_basis.models import (
    ActionType,
    AgingLot,
    DecisionLogEntry,
    EngineConfig,
    HarvestOpportunity,
    PerformanceMetrics,
    SaleAllocation,
    TaxLiabilityEstimate,
)


class DecisionLogger:
    """
    Append-only decision logger.

    Writes all decisions to a JSONL file for audit purposes.
    Each line is a complete JSON object representing one action.
    """

    def __init__(self, log_path: str | Path):
        """
        Initialize the decision logger.

        Args:
            log_path: Path to the log file (will be created if not exists)
        """
        self.log_path = Path(log_path)
        self.log_path.parent.mkdir(parents=True, exist_ok=True)

    def log(self, entry: DecisionLogEntry) -> None:
        """
        Write a decision log entry.

        Args:
            entry: DecisionLogEntry to write
        """
        record = {
            "timestamp": entry.timestamp.isoformat(),
            "action_type": entry.action_type.value,
            "symbol": entry.symbol,
            "details": entry.details,
        }

        with open(self.log_path, "a") as f:
            f.write(json.dumps(record, cls=DecimalEncoder) + "\n")

    def log_config_loaded(
        self,
        config: EngineConfig,
        config_path: Optional[str],
    ) -> None:
        """
        Log configuration loading.

        Args:
            config: Loaded configuration
            config_path: Path to configuration file, None for defaults
        """
        details = {
            "config_path": config_path,
            "short_term_rate": config.tax_settings.short_term_rate,
            "long_term_rate": config.tax_settings.long_term_rate,
            "state_rate": config.tax_settings.state_rate,
            "lot_strategy": config.lot_strategy.value,
            "aging_horizon_days": config.aging_horizon_days,
            "risk_free_rate": config.risk_free_rate,
        }

        self.log(DecisionLogEntry.create(ActionType.CONFIG_LOADED, details=details))

    def log_ledger_replayed(
        self,
        symbol: str,
        transaction_count: int,
        open_lot_count: int,
        quantity: Decimal,
        cost_basis: Decimal,
        allocations: list[SaleAllocation],
        strategy: str,
    ) -> None:
        """
        Log a ledger replay.

        Args:
            symbol: Symbol replayed
            transaction_count: Number of transactions applied
            open_lot_count: Number of lots still open
            quantity: Final holding quantity
            cost_basis: Final holding cost basis
            allocations: Allocations produced during replay
            strategy: Lot selection strategy used
        """
        details = {
            "strategy": strategy,
            "transactions": transaction_count,
            "open_lots": open_lot_count,
            "quantity": quantity,
            "cost_basis": cost_basis,
            "allocations": len(allocations),
            "realized_gain": sum((a.realized_gain for a in allocations), Decimal("0")),
        }

        self.log(DecisionLogEntry.create(ActionType.LEDGER_REPLAYED, symbol, details))

    def log_sale_previewed(
        self,
        symbol: str,
        quantity: Decimal,
        sale_price: Decimal,
        strategy: str,
        allocations: list[SaleAllocation],
    ) -> None:
        """
        Log a what-if sale.

        Args:
            symbol: Symbol sold
            quantity: Shares in the hypothetical sale
            sale_price: Per-share sale price
            strategy: Lot selection strategy used
            allocations: Resulting allocations
        """
        details = {
            "quantity": quantity,
            "sale_price": sale_price,
            "strategy": strategy,
            "lot_ids": [a.lot_id for a in allocations],
            "realized_gain": sum((a.realized_gain for a in allocations), Decimal("0")),
        }

        self.log(DecisionLogEntry.create(ActionType.SALE_PREVIEWED, symbol, details))

    def log_tax_estimated(
        self,
        symbol: str,
        current_price: Decimal,
        estimate: TaxLiabilityEstimate,
    ) -> None:
        """
        Log a tax liability estimate.

        Args:
            symbol: Symbol estimated
            current_price: Price used for valuation
            estimate: Resulting estimate
        """
        details = {
            "current_price": current_price,
            "short_term_gain": estimate.short_term_gain,
            "long_term_gain": estimate.long_term_gain,
            "total_tax": estimate.total_tax,
            "short_term_rate": estimate.settings.short_term_rate,
            "long_term_rate": estimate.settings.long_term_rate,
            "state_rate": estimate.settings.state_rate,
            "effective_rate": estimate.effective_rate,
        }

        self.log(DecisionLogEntry.create(ActionType.TAX_ESTIMATED, symbol, details))

    def log_aging_lots_identified(
        self,
        symbol: str,
        horizon_days: int,
        aging_lots: list[AgingLot],
    ) -> None:
        """
        Log an aging-lot scan.

        Args:
            symbol: Symbol scanned
            horizon_days: Look-ahead window used
            aging_lots: Lots found
        """
        details = {
            "horizon_days": horizon_days,
            "count": len(aging_lots),
            "lot_ids": [a.lot.lot_id for a in aging_lots[:10]],  # First 10
        }

        self.log(DecisionLogEntry.create(ActionType.AGING_LOTS_IDENTIFIED, symbol, details))

    def log_harvest_opportunities_identified(
        self,
        minimum_loss: Decimal,
        opportunities: list[HarvestOpportunity],
    ) -> None:
        """Log a tax-loss harvesting scan."""
        details = {
            "minimum_loss": minimum_loss,
            "count": len(opportunities),
            "symbols": [o.symbol for o in opportunities],
            "total_loss": sum((o.unrealized_loss for o in opportunities), Decimal("0")),
        }

        self.log(DecisionLogEntry.create(ActionType.HARVEST_OPPORTUNITIES_IDENTIFIED, details=details))

    def log_performance_calculated(self, metrics: PerformanceMetrics) -> None:
        """
        Log performance statistics.

        Args:
            metrics: Calculated metrics
        """
        self.log(
            DecisionLogEntry.create(
                ActionType.PERFORMANCE_CALCULATED,
                details=metrics.to_dict(),
            )
        )

    def read_log(self) -> list[DecisionLogEntry]:
        """
        Read all entries from the log file.

        Returns:
            List of DecisionLogEntry objects
        """
        if not self.log_path.exists():
            return []

        entries = []
        with open(self.log_path, "r") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                record = json.loads(line)
                entries.append(
                    DecisionLogEntry(
                        timestamp=datetime.fromisoformat(record["timestamp"]),
                        action_type=ActionType(record["action_type"]),
                        symbol=record.get("symbol"),
                        details=record.get("details", {}),
                    )
                )

        return entries

    def filter_by_symbol(
        self,
        symbol: str,
    ) -> list[DecisionLogEntry]:
        """
        Get log entries for a specific symbol.

        Args:
            symbol: Symbol to filter by

        Returns:
            Filtered list of entries
        """
        return [e for e in self.read_log() if e.symbol == symbol]

    def filter_by_action_type(
        self,
        action_type: ActionType,
    ) -> list[DecisionLogEntry]:
        """
        Get log entries of a specific action type.

        Args:
            action_type: Action type to filter by

        Returns:
            Filtered list of entries
        """
        return [e for e in self.read_log() if e.action_type == action_type]


class DecimalEncoder(json.JSONEncoder):
    """JSON encoder that handles Decimal and date types."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, Decimal):
            return str(obj)
        if isinstance(obj, (date, datetime)):
            return obj.isoformat()
        return super().default(obj)


# Global logger instance (initialized on first use)
_global_logger: Optional[DecisionLogger] = None


def get_logger(log_path: Optional[str | Path] = None) -> DecisionLogger:
    """
    Get or create the global decision logger.

    Args:
        log_path: Optional path to initialize logger (required on first call)

    Returns:
        DecisionLogger instance
    """
    global _global_logger

    if _global_logger is None:
        if log_path is None:
            log_path = "output/decision_log.jsonl"
        _global_logger = DecisionLogger(log_path)
    elif log_path is not None:
        # Allow reinitializing with new path
        _global_logger = DecisionLogger(log_path)

    return _global_logger


def log_action(
    action_type: ActionType,
    symbol: Optional[str],
    details: dict,
    log_path: Optional[str | Path] = None,
) -> None:
    """
    Convenience function to log an action.

    Args:
        action_type: Type of action
        symbol: Related symbol (optional)
        details: Action details dictionary
        log_path: Optional path to log file
    """
    logger = get_logger(log_path)
    entry = DecisionLogEntry.create(
        action_type=action_type,
        symbol=symbol,
        details=details,
    )
    logger.log(entry)
