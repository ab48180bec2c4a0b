"""
Pytest fixtures for the folio-basis tests.

Provides common test data and utilities used across test modules.
"""

import tempfile
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

from folio_basis.models import (
    HistoricalValuePoint,
    LotType,
    TaxLot,
    TaxSettings,
    Transaction,
    TransactionType,
)


@pytest.fixture
def two_lots() -> list[TaxLot]:
    """10 @ $100 on 2024-01-01 and 10 @ $120 on 2024-02-01."""
    return [
        TaxLot(
            lot_id="LOT-A",
            symbol="AAPL",
            quantity=Decimal("10"),
            purchase_price=Decimal("100"),
            purchase_date=date(2024, 1, 1),
        ),
        TaxLot(
            lot_id="LOT-B",
            symbol="AAPL",
            quantity=Decimal("10"),
            purchase_price=Decimal("120"),
            purchase_date=date(2024, 2, 1),
        ),
    ]


@pytest.fixture
def mixed_term_lots() -> list[TaxLot]:
    """One long-term and one short-term lot as of 2024-06-01."""
    return [
        TaxLot(
            lot_id="OLD",
            symbol="MSFT",
            quantity=Decimal("5"),
            purchase_price=Decimal("200"),
            purchase_date=date(2022, 3, 15),
        ),
        TaxLot(
            lot_id="NEW",
            symbol="MSFT",
            quantity=Decimal("10"),
            purchase_price=Decimal("300"),
            purchase_date=date(2024, 1, 10),
        ),
    ]


@pytest.fixture
def espp_lot() -> TaxLot:
    """ESPP lot granted 2022-01-01, purchased 2023-06-01 at $85 with a $15 discount."""
    return TaxLot(
        lot_id="ESPP-1",
        symbol="ACME",
        quantity=Decimal("100"),
        purchase_price=Decimal("85"),
        purchase_date=date(2023, 6, 1),
        lot_type=LotType.ESPP,
        grant_date=date(2022, 1, 1),
        bargain_element=Decimal("15"),
    )


@pytest.fixture
def tax_settings() -> TaxSettings:
    """Default 24% short-term and 15% long-term rates."""
    return TaxSettings.default()


@pytest.fixture
def sample_transactions() -> list[Transaction]:
    """A small AAPL history: two buys, a partial sale and a 2-for-1 split."""
    return [
        Transaction(
            transaction_type=TransactionType.BUY,
            date=date(2023, 1, 3),
            quantity=Decimal("10"),
            price=Decimal("125"),
            fees=Decimal("1.00"),
            symbol="AAPL",
            lot_id="T1",
        ),
        Transaction(
            transaction_type=TransactionType.BUY,
            date=date(2023, 6, 1),
            quantity=Decimal("10"),
            price=Decimal("180"),
            symbol="AAPL",
            lot_id="T2",
        ),
        Transaction(
            transaction_type=TransactionType.SELL,
            date=date(2024, 2, 1),
            quantity=Decimal("5"),
            price=Decimal("190"),
            fees=Decimal("1.00"),
            symbol="AAPL",
        ),
        Transaction(
            transaction_type=TransactionType.SPLIT,
            date=date(2024, 3, 1),
            split_ratio=Decimal("2"),
            symbol="AAPL",
        ),
    ]


@pytest.fixture
def value_series() -> list[HistoricalValuePoint]:
    """Four points with a 20% drawdown from 110 to 88."""
    return [
        HistoricalValuePoint(date=date(2024, 1, 1), total_value=Decimal("100")),
        HistoricalValuePoint(date=date(2024, 1, 2), total_value=Decimal("110")),
        HistoricalValuePoint(date=date(2024, 1, 3), total_value=Decimal("88")),
        HistoricalValuePoint(date=date(2024, 1, 4), total_value=Decimal("95")),
    ]


@pytest.fixture
def temp_output_dir():
    """Create a temporary output directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)
