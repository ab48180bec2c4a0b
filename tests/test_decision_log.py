"""
Tests for the append-only decision log.
"""

import json
from datetime import date
from decimal import Decimal

from folio_basis.analytics.performance import calculate_performance_metrics
from folio_basis.analytics.harvest import find_harvest_opportunities
from folio_basis.analytics.tax import estimate_tax_for_lots
from folio_basis.logging.decision_log import DecisionLogger, get_logger, log_action
from folio_basis.models import ActionType, EngineConfig
from folio_basis.portfolio.allocation import preview_sale


class TestDecisionLogger:
    """Tests for the DecisionLogger class."""

    def test_creates_parent_directory(self, tmp_path):
        """Test the log directory is created on init."""
        logger = DecisionLogger(tmp_path / "nested" / "log.jsonl")
        assert logger.log_path.parent.exists()

    def test_entries_are_appended(self, tmp_path, two_lots, tax_settings):
        """Test each call appends one JSON line with Decimals as text."""
        logger = DecisionLogger(tmp_path / "log.jsonl")

        allocations = preview_sale(two_lots, Decimal("8"), Decimal("110"), date(2024, 3, 1))
        logger.log_sale_previewed("AAPL", Decimal("8"), Decimal("110"), "fifo", allocations)
        estimate = estimate_tax_for_lots(two_lots, Decimal("150"), tax_settings, date(2024, 6, 1))
        logger.log_tax_estimated("AAPL", Decimal("150"), estimate)

        lines = logger.log_path.read_text().splitlines()
        assert len(lines) == 2

        record = json.loads(lines[0])
        assert record["action_type"] == "SALE_PREVIEWED"
        assert record["symbol"] == "AAPL"
        assert record["details"]["lot_ids"] == ["LOT-A"]
        assert record["details"]["realized_gain"] == "80"

        record = json.loads(lines[1])
        assert record["details"]["total_tax"] == "192.00"
        assert record["details"]["state_rate"] == "0"
        assert record["details"]["effective_rate"] == "0.2400"

    def test_read_and_filter(self, tmp_path, value_series):
        """Test entries read back and filter by symbol and action."""
        logger = DecisionLogger(tmp_path / "log.jsonl")
        logger.log_config_loaded(EngineConfig(), None)
        logger.log_ledger_replayed("AAPL", 4, 2, Decimal("30"), Decimal("2425"), [], "fifo")
        logger.log_ledger_replayed("MSFT", 1, 1, Decimal("5"), Decimal("1000"), [], "fifo")
        logger.log_performance_calculated(calculate_performance_metrics(value_series))

        entries = logger.read_log()

        assert [e.action_type for e in entries] == [
            ActionType.CONFIG_LOADED,
            ActionType.LEDGER_REPLAYED,
            ActionType.LEDGER_REPLAYED,
            ActionType.PERFORMANCE_CALCULATED,
        ]
        assert len(logger.filter_by_symbol("MSFT")) == 1
        assert len(logger.filter_by_action_type(ActionType.LEDGER_REPLAYED)) == 2
        assert entries[3].details["max_drawdown"] == 20.0

    def test_harvest_scan_logged(self, tmp_path, two_lots):
        """Test a harvesting scan records its symbols and total loss."""
        logger = DecisionLogger(tmp_path / "log.jsonl")
        opportunities = find_harvest_opportunities(
            {"AAPL": two_lots}, {"AAPL": Decimal("90")}, date(2024, 6, 1),
        )

        logger.log_harvest_opportunities_identified(Decimal("100"), opportunities)

        entry = logger.read_log()[0]
        assert entry.action_type == ActionType.HARVEST_OPPORTUNITIES_IDENTIFIED
        assert entry.details["symbols"] == ["AAPL"]
        assert entry.details["total_loss"] == "-400"

    def test_read_missing_log(self, tmp_path):
        """Test reading a log that was never written."""
        assert DecisionLogger(tmp_path / "log.jsonl").read_log() == []


class TestGlobalLogger:
    """Tests for the module-level logger helpers."""

    def test_get_logger_reinitializes_with_path(self, tmp_path):
        """Test a new path replaces the global logger."""
        first = get_logger(tmp_path / "a.jsonl")
        second = get_logger(tmp_path / "b.jsonl")

        assert first.log_path != second.log_path
        assert get_logger() is second

    def test_log_action(self, tmp_path):
        """Test the convenience helper writes an entry."""
        path = tmp_path / "log.jsonl"
        log_action(ActionType.AGING_LOTS_IDENTIFIED, "AAPL", {"count": 0}, log_path=path)

        entries = DecisionLogger(path).read_log()
        assert entries[0].symbol == "AAPL"
        assert entries[0].details == {"count": 0}
