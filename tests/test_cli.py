"""
Tests for the command-line interface.
"""

import json

import pytest
from click.testing import CliRunner

from folio_basis.cli import main
from folio_basis.config import load_engine_config
from folio_basis.models import LotSelectionStrategy


TRANSACTIONS_CSV = """symbol,date,type,quantity,price,fees,lot_id,grant_date,discount_percent
AAPL,2023-01-03,buy,10,125,1,T1,,
AAPL,2023-06-01,buy,10,180,,T2,,
AAPL,2024-02-01,sell,5,190,,,,
ACME,2024-01-02,espp_purchase,100,85,,E1,2023-07-01,0.15
"""

HISTORY_CSV = """date,total_value
2024-01-01,100000
2024-01-02,110000
2024-01-03,88000
2024-01-04,95000
"""


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    """Run each command from an empty directory so relative output stays local."""
    monkeypatch.chdir(tmp_path)
    (tmp_path / "transactions.csv").write_text(TRANSACTIONS_CSV)
    (tmp_path / "history.csv").write_text(HISTORY_CSV)
    return tmp_path


class TestReplayCommand:
    """Tests for the replay command."""

    def test_writes_reports(self, runner, workspace):
        """Test lots and allocations are written per symbol."""
        result = runner.invoke(main, ["replay", "-t", "transactions.csv", "-o", "out"])

        assert result.exit_code == 0, result.output
        assert "AAPL:" in result.output
        assert "ACME:" in result.output
        assert "Realized Gain: $325.00" in result.output
        assert (workspace / "out" / "lots_AAPL.csv").exists()
        assert (workspace / "out" / "allocations_AAPL.csv").exists()
        assert (workspace / "out" / "decision_log.jsonl").exists()

    def test_unknown_symbol_fails(self, runner, workspace):
        """Test a symbol with no transactions exits with an error."""
        result = runner.invoke(main, ["replay", "-t", "transactions.csv", "-s", "TSLA", "-o", "out"])

        assert result.exit_code == 1
        assert "No transactions found for TSLA" in result.output


class TestPreviewSaleCommand:
    """Tests for the preview-sale command."""

    def test_fifo_preview(self, runner, workspace):
        """Test the sale draws from the oldest remaining lot."""
        result = runner.invoke(main, [
            "preview-sale", "-t", "transactions.csv", "-s", "aapl",
            "-q", "3", "-p", "200", "-d", "2024-06-01",
        ])

        assert result.exit_code == 0, result.output
        assert "T1  3 sh" in result.output
        assert "[long]" in result.output

    def test_specific_lot(self, runner, workspace):
        """Test --lot-id selects the named lot."""
        result = runner.invoke(main, [
            "preview-sale", "-t", "transactions.csv", "-s", "AAPL",
            "-q", "2", "-p", "200", "-d", "2024-06-01", "--lot-id", "T2",
        ])

        assert result.exit_code == 0, result.output
        assert "T2  2 sh" in result.output
        assert "(specific)" in result.output

    def test_espp_warning(self, runner, workspace):
        """Test ESPP allocations explain a disqualifying disposition."""
        result = runner.invoke(main, [
            "preview-sale", "-t", "transactions.csv", "-s", "ACME",
            "-q", "10", "-p", "120", "-d", "2024-06-01",
        ])

        assert result.exit_code == 0, result.output
        assert "Disqualifying disposition" in result.output

    def test_oversell_fails(self, runner, workspace):
        """Test selling more than held exits with an error."""
        result = runner.invoke(main, [
            "preview-sale", "-t", "transactions.csv", "-s", "AAPL",
            "-q", "16", "-p", "200", "-d", "2024-06-01",
        ])

        assert result.exit_code == 1
        assert "Error allocating sale" in result.output

    def test_bad_date_fails(self, runner, workspace):
        """Test an invalid date is rejected."""
        result = runner.invoke(main, [
            "preview-sale", "-t", "transactions.csv", "-s", "AAPL",
            "-q", "1", "-p", "200", "-d", "June 1",
        ])

        assert result.exit_code == 1
        assert "Invalid date format" in result.output


class TestTaxCommand:
    """Tests for the tax command."""

    def test_estimate(self, runner, workspace):
        """Test long-term gains are taxed at the long-term rate."""
        result = runner.invoke(main, [
            "tax", "-t", "transactions.csv", "-s", "AAPL",
            "-p", "200", "-d", "2024-06-01", "-o", "out",
        ])

        assert result.exit_code == 0, result.output
        assert "Long-Term Gains:   $575.00" in result.output
        assert "Estimated Tax:     $86.25" in result.output
        assert "Unrealized Gain:   $575.00 (23.71%)" in result.output
        assert "Effective Rate:    15.00%" in result.output
        assert "Aging Lots:        0" in result.output
        assert (workspace / "out" / "valuation_AAPL_2024-06-01.csv").exists()

    def test_espp_disqualifying_warning(self, runner, workspace):
        """Test ESPP lots that would be disqualified are flagged."""
        result = runner.invoke(main, [
            "tax", "-t", "transactions.csv", "-s", "ACME",
            "-p", "100", "-d", "2024-06-01", "-o", "out",
        ])

        assert result.exit_code == 0, result.output
        assert "Warning: selling ESPP lot E1" in result.output

    def test_grant_after_purchase_fails(self, runner, workspace):
        """Test an ESPP row granted after its purchase is rejected during replay."""
        (workspace / "bad.csv").write_text(
            "symbol,date,type,quantity,price,grant_date\n"
            "ACME,2024-06-01,espp_purchase,10,85,2024-07-01\n"
        )
        result = runner.invoke(main, [
            "tax", "-t", "bad.csv", "-s", "ACME",
            "-p", "100", "-d", "2024-09-01", "-o", "out",
        ])

        assert result.exit_code == 1
        assert "Error replaying transactions" in result.output
        assert "grant date 2024-07-01" in result.output

    def test_state_rate_from_config(self, runner, workspace):
        """Test a configured state rate raises the estimate."""
        (workspace / "engine.yaml").write_text("tax:\n  state_rate: \"0.05\"\n")
        result = runner.invoke(main, [
            "tax", "-t", "transactions.csv", "-s", "AAPL",
            "-p", "200", "-d", "2024-06-01", "-o", "out", "-c", "engine.yaml",
        ])

        assert result.exit_code == 0, result.output
        assert "State Rate:        5.0%" in result.output
        assert "Estimated Tax:     $115.00" in result.output


class TestAgingCommand:
    """Tests for the aging command."""

    def test_lists_aging_lot(self, runner, workspace):
        """Test a lot eleven days from long-term is listed."""
        result = runner.invoke(main, [
            "aging", "-t", "transactions.csv", "-s", "AAPL",
            "-d", "2024-05-20", "--horizon", "30",
        ])

        assert result.exit_code == 0, result.output
        assert "T2" in result.output
        assert "(11 days)" in result.output

    def test_nothing_in_horizon(self, runner, workspace):
        """Test an empty result is reported."""
        result = runner.invoke(main, [
            "aging", "-t", "transactions.csv", "-s", "AAPL",
            "-d", "2024-05-20", "--horizon", "5",
        ])

        assert result.exit_code == 0, result.output
        assert "No AAPL lots turn long-term" in result.output


class TestHarvestCommand:
    """Tests for the harvest command."""

    def test_lists_losses_largest_first(self, runner, workspace):
        """Test holdings with losses are listed with their losing lots."""
        result = runner.invoke(main, [
            "harvest", "-t", "transactions.csv",
            "-p", "AAPL=150", "-p", "acme=80", "-d", "2024-06-01",
        ])

        assert result.exit_code == 0, result.output
        assert "ACME  loss $-500.00" in result.output
        assert "AAPL  loss $-300.00" in result.output
        assert result.output.index("ACME") < result.output.index("AAPL")
        assert "T2  10 sh" in result.output

    def test_minimum_loss_filters(self, runner, workspace):
        """Test --min-loss leaves out smaller losses."""
        result = runner.invoke(main, [
            "harvest", "-t", "transactions.csv",
            "-p", "AAPL=150", "-d", "2024-06-01", "--min-loss", "1000",
        ])

        assert result.exit_code == 0, result.output
        assert "No holdings with losses of at least $1,000.00" in result.output

    def test_malformed_price_fails(self, runner, workspace):
        """Test a price without a symbol is rejected."""
        result = runner.invoke(main, ["harvest", "-t", "transactions.csv", "-p", "150"])

        assert result.exit_code == 1
        assert "Use SYMBOL=PRICE" in result.output


class TestPerformanceCommand:
    """Tests for the performance command."""

    def test_metrics_written(self, runner, workspace):
        """Test statistics are printed and saved as JSON."""
        result = runner.invoke(main, ["performance", "-h", "history.csv", "-o", "out"])

        assert result.exit_code == 0, result.output
        assert "Max Drawdown:   20.00%" in result.output

        with open(workspace / "out" / "performance_metrics.json") as f:
            metrics = json.load(f)
        assert metrics["num_points"] == 4
        assert metrics["sharpe_ratio"] == 0.0

    def test_out_of_order_history_fails(self, runner, workspace):
        """Test a history with dates going backwards is rejected."""
        (workspace / "history.csv").write_text(
            "date,total_value\n2024-01-02,100\n2024-01-01,101\n"
        )
        result = runner.invoke(main, ["performance", "-h", "history.csv", "-o", "out"])

        assert result.exit_code == 1
        assert "Error calculating performance" in result.output


class TestInitConfigCommand:
    """Tests for the init-config command."""

    def test_writes_loadable_config(self, runner, workspace):
        """Test the written file loads with the given settings."""
        result = runner.invoke(main, [
            "init-config", "-o", "engine.yaml",
            "--short-term-rate", "0.32", "--strategy", "hifo",
        ])

        assert result.exit_code == 0, result.output
        config = load_engine_config(workspace / "engine.yaml", env_file=workspace / "missing.env")
        assert str(config.tax_settings.short_term_rate) == "0.32"
        assert config.lot_strategy == LotSelectionStrategy.HIFO

    def test_state_rate_written(self, runner, workspace):
        """Test --state-rate is saved and loads back."""
        result = runner.invoke(main, ["init-config", "-o", "engine.yaml", "--state-rate", "0.05"])

        assert result.exit_code == 0, result.output
        config = load_engine_config(workspace / "engine.yaml", env_file=workspace / "missing.env")
        assert str(config.tax_settings.state_rate) == "0.05"

    def test_rate_out_of_range_fails(self, runner, workspace):
        """Test an invalid rate is rejected."""
        result = runner.invoke(main, ["init-config", "--long-term-rate", "15"])
        assert result.exit_code == 1
