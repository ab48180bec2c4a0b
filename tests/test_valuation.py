"""
Tests for unrealized gain valuation.
"""

from datetime import date
from decimal import Decimal

import pytest

from folio_basis.models import Holding, HoldingPeriod, LotValidationError, TaxLot
from folio_basis.portfolio.ledger import apply_split
from folio_basis.portfolio.valuation import (
    calculate_unrealized_gains,
    get_gainers_and_losers,
    summarize_unrealized,
    value_lot,
    value_lots,
)


AS_OF = date(2024, 6, 1)


class TestValueLot:
    """Tests for the value_lot function."""

    def test_gain_and_percent(self, two_lots: list[TaxLot]):
        """Test unrealized gain on the remaining shares."""
        valuation = value_lot(two_lots[0], Decimal("150"), AS_OF)

        assert valuation.market_value == Decimal("1500")
        assert valuation.unrealized_gain == Decimal("500")
        assert valuation.unrealized_gain_pct == Decimal("50")
        assert valuation.holding_period == HoldingPeriod.SHORT

    def test_partially_sold_lot(self):
        """Test only remaining shares are valued."""
        lot = TaxLot(
            "P", "X", Decimal("10"), Decimal("20"), date(2020, 1, 1),
            sold_quantity=Decimal("6"),
        )
        valuation = value_lot(lot, Decimal("15"), AS_OF)

        assert valuation.market_value == Decimal("60")
        assert valuation.unrealized_gain == Decimal("-20")
        assert valuation.unrealized_gain_pct == Decimal("-25")
        assert valuation.holding_period == HoldingPeriod.LONG

    def test_zero_basis_percent_is_zero(self):
        """Test a zero-cost lot reports a 0% gain."""
        lot = TaxLot("G", "X", Decimal("10"), Decimal("0"), date(2024, 1, 1))
        valuation = value_lot(lot, Decimal("5"), AS_OF)

        assert valuation.unrealized_gain == Decimal("50")
        assert valuation.unrealized_gain_pct == Decimal("0")


class TestValueLots:
    """Tests for the value_lots function."""

    def test_closed_lots_skipped(self, two_lots: list[TaxLot]):
        """Test closed lots produce no valuation."""
        closed = TaxLot(
            "C", "AAPL", Decimal("5"), Decimal("90"), date(2023, 1, 1),
            sold_quantity=Decimal("5"),
        )
        valuations = value_lots(two_lots + [closed], Decimal("110"), AS_OF)
        assert [v.lot.lot_id for v in valuations] == ["LOT-A", "LOT-B"]

    def test_negative_price_raises(self, two_lots: list[TaxLot]):
        """Test a negative price is rejected."""
        with pytest.raises(LotValidationError):
            value_lots(two_lots, Decimal("-1"), AS_OF)

    def test_lot_after_as_of_raises(self, two_lots: list[TaxLot]):
        """Test valuing before a lot's purchase date is rejected."""
        with pytest.raises(LotValidationError):
            value_lots(two_lots, Decimal("110"), date(2024, 1, 15))


class TestSummarizeUnrealized:
    """Tests for holding period partitioning."""

    def test_mixed_terms(self, mixed_term_lots: list[TaxLot]):
        """Test gains and losses land in their own buckets."""
        valuations, summary = calculate_unrealized_gains(mixed_term_lots, Decimal("250"), AS_OF)

        assert len(valuations) == 2
        assert summary.long_term_gains == Decimal("250")
        assert summary.long_term_losses == Decimal("0")
        assert summary.short_term_gains == Decimal("0")
        assert summary.short_term_losses == Decimal("-500")
        assert summary.total_unrealized == Decimal("-250")
        assert summary.total_market_value == Decimal("3750")
        assert summary.total_cost_basis == Decimal("4000")

    def test_empty(self):
        """Test an empty valuation list sums to zero."""
        summary = summarize_unrealized([])
        assert summary.total_unrealized == Decimal("0")
        assert summary.total_market_value == Decimal("0")


class TestGainersAndLosers:
    """Tests for the get_gainers_and_losers function."""

    def test_split_and_order(self):
        """Test gainers descend by gain and losers ascend by gain."""
        lots = [
            TaxLot("A", "X", Decimal("1"), Decimal("10"), date(2024, 1, 1)),
            TaxLot("B", "X", Decimal("1"), Decimal("5"), date(2024, 1, 1)),
            TaxLot("C", "X", Decimal("1"), Decimal("30"), date(2024, 1, 1)),
            TaxLot("D", "X", Decimal("1"), Decimal("25"), date(2024, 1, 1)),
        ]
        valuations = value_lots(lots, Decimal("20"), AS_OF)

        gainers, losers = get_gainers_and_losers(valuations, top_n=5)

        assert [v.lot.lot_id for v in gainers] == ["B", "A"]
        assert [v.lot.lot_id for v in losers] == ["C", "D"]

    def test_top_n_limit(self, two_lots: list[TaxLot]):
        """Test the lists are capped at top_n."""
        valuations = value_lots(two_lots, Decimal("200"), AS_OF)
        gainers, losers = get_gainers_and_losers(valuations, top_n=1)

        assert len(gainers) == 1
        assert gainers[0].lot.lot_id == "LOT-A"
        assert losers == []


class TestHoldingWithPrice:
    """Tests for marking a Holding to a price."""

    def test_market_fields(self, two_lots: list[TaxLot]):
        """Test value, gain and percent are derived from the price."""
        holding = Holding.from_lots("AAPL", two_lots).with_price(Decimal("130"))

        assert holding.num_lots == 2
        assert holding.current_price == Decimal("130")
        assert holding.market_value == Decimal("2600")
        assert holding.unrealized_gain == Decimal("400")
        assert holding.unrealized_gain_pct == Decimal("400") / Decimal("2200") * 100

    def test_refresh_replaces_previous_price(self, two_lots: list[TaxLot]):
        """Test a second refresh recomputes every market field."""
        holding = Holding.from_lots("AAPL", two_lots).with_price(Decimal("130"))
        refreshed = holding.with_price(Decimal("100"))

        assert refreshed.market_value == Decimal("2000")
        assert refreshed.unrealized_gain == Decimal("-200")
        assert holding.market_value == Decimal("2600")

    def test_zero_cost_basis(self):
        """Test a zero-basis holding reports a zero percent instead of dividing by zero."""
        gifted = TaxLot("G", "AAPL", Decimal("10"), Decimal("0"), date(2024, 1, 1))
        holding = Holding.from_lots("AAPL", [gifted]).with_price(Decimal("5"))

        assert holding.market_value == Decimal("50")
        assert holding.unrealized_gain == Decimal("50")
        assert holding.unrealized_gain_pct == Decimal("0")

    def test_unpriced_holding(self, two_lots: list[TaxLot]):
        """Test market fields stay empty until a price is applied."""
        holding = Holding.from_lots("AAPL", two_lots)

        assert holding.current_price is None
        assert holding.market_value is None


class TestSplitLotValuation:
    """Tests for valuing lots after an uneven split."""

    def test_gain_uses_exact_basis(self):
        """Test a 3-for-1 split lot values against its unsplit cost."""
        lot = apply_split(
            [TaxLot("S", "AAPL", Decimal("100"), Decimal("100"), date(2024, 1, 1))],
            Decimal("3"),
        )[0]

        valuation = value_lot(lot, Decimal("40"), AS_OF)

        assert valuation.market_value == Decimal("12000")
        assert valuation.unrealized_gain == Decimal("2000")
        assert valuation.unrealized_gain_pct == Decimal("20")
