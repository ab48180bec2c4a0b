"""
Sale allocation against tax lots.

Consumes open lots in strategy order and records, per lot, the quantity
consumed, its basis, proceeds, realized gain and holding period. The lots
passed in are never mutated: each call returns a new ledger snapshot, so a
what-if preview and a committed sale differ only in whether the caller keeps
the returned lots.
"""

import dataclasses
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from folio_basis.models import (
    HoldingPeriod,
    LotSelectionStrategy,
    LotValidationError,
    SaleAllocation,
    TaxLot,
    ZERO,
)
from folio_basis.portfolio.holding_period import classify_holding_period
from folio_basis.portfolio.strategies import order_lots


class InsufficientLotsError(Exception):
    """Raised when open lots cannot cover the requested quantity."""

    def __init__(self, requested: Decimal, available: Decimal, symbol: Optional[str] = None):
        self.requested = requested
        self.available = available
        self.symbol = symbol
        label = f" of {symbol}" if symbol else ""
        super().__init__(
            f"Insufficient lots{label}: requested {requested}, available {available}"
        )


@dataclass
class SaleResult:
    """
    Result of allocating a sale.

    Attributes:
        allocations: Per-lot allocations in consumption order
        lots: Snapshot of all supplied lots after the sale, in input order
    """
    allocations: list[SaleAllocation]
    lots: list[TaxLot]

    @property
    def quantity(self) -> Decimal:
        return sum((a.quantity for a in self.allocations), ZERO)

    @property
    def cost_basis(self) -> Decimal:
        return sum((a.cost_basis for a in self.allocations), ZERO)

    @property
    def proceeds(self) -> Decimal:
        return sum((a.proceeds for a in self.allocations), ZERO)

    @property
    def realized_gain(self) -> Decimal:
        return sum((a.realized_gain for a in self.allocations), ZERO)


def allocate_sale(
    lots: list[TaxLot],
    quantity: Decimal,
    sale_price: Decimal,
    sale_date: date,
    strategy: LotSelectionStrategy = LotSelectionStrategy.FIFO,
    lot_ids: Optional[list[str]] = None,
    is_transfer: bool = False,
) -> SaleResult:
    """
    Allocate a sale of `quantity` shares across open lots.

    For each lot in strategy order, consumes min(remaining, still to sell)
    and records realized gain = consumed * sale_price - basis of the consumed
    shares. The consumed basis is the drop in the lot's remaining basis, so
    allocated and remaining basis always add back to the lot's total cost.
    Transfers out record zero proceeds and zero realized gain.

    Args:
        lots: Lots of a single holding
        quantity: Shares to dispose of (must be positive)
        sale_price: Per-share disposal price (must be non-negative)
        sale_date: Disposal date, used for holding-period classification
        strategy: Lot selection strategy
        lot_ids: Explicit lot order for SPECIFIC identification
        is_transfer: Consume lots without generating proceeds

    Returns:
        SaleResult with allocations and the updated lot snapshot

    Raises:
        LotValidationError: If quantity or price is invalid
        InsufficientLotsError: If the selected lots hold fewer shares than requested
    """
    if quantity <= ZERO:
        raise LotValidationError(f"Sale quantity must be positive, got {quantity}")
    if sale_price < ZERO:
        raise LotValidationError(f"Sale price must be non-negative, got {sale_price}")

    ordered = order_lots(lots, strategy, lot_ids)

    available = sum((lot.remaining_quantity for lot in ordered), ZERO)
    if available < quantity:
        symbol = ordered[0].symbol if ordered else (lots[0].symbol if lots else None)
        raise InsufficientLotsError(quantity, available, symbol)

    allocations = []
    consumed_by_id: dict[str, Decimal] = {}
    to_sell = quantity

    for lot in ordered:
        if to_sell <= ZERO:
            break

        consumed = min(lot.remaining_quantity, to_sell)
        cost_basis = lot.cost_basis - _consume(lot, consumed).cost_basis

        if is_transfer:
            proceeds = ZERO
            realized_gain = ZERO
        else:
            proceeds = consumed * sale_price
            realized_gain = proceeds - cost_basis

        allocations.append(
            SaleAllocation(
                lot_id=lot.lot_id,
                quantity=consumed,
                cost_basis=cost_basis,
                proceeds=proceeds,
                realized_gain=realized_gain,
                holding_period=classify_holding_period(lot.purchase_date, sale_date),
                purchase_date=lot.purchase_date,
                sale_date=sale_date,
                sale_price=sale_price,
                is_transfer=is_transfer,
            )
        )
        consumed_by_id[lot.lot_id] = consumed
        to_sell -= consumed

    snapshot = [
        _consume(lot, consumed_by_id[lot.lot_id]) if lot.lot_id in consumed_by_id else lot
        for lot in lots
    ]

    return SaleResult(allocations=allocations, lots=snapshot)


def preview_sale(
    lots: list[TaxLot],
    quantity: Decimal,
    sale_price: Decimal,
    sale_date: date,
    strategy: LotSelectionStrategy = LotSelectionStrategy.FIFO,
    lot_ids: Optional[list[str]] = None,
) -> list[SaleAllocation]:
    """
    What-if sale: allocations only, the ledger snapshot is discarded.

    Raises:
        LotValidationError: If quantity or price is invalid
        InsufficientLotsError: If the selected lots hold fewer shares than requested
    """
    return allocate_sale(lots, quantity, sale_price, sale_date, strategy, lot_ids).allocations


def summarize_allocations(allocations: list[SaleAllocation]) -> dict[str, dict[str, Decimal]]:
    """
    Summarize realized results by holding period.

    Args:
        allocations: Allocations from one or more sales

    Returns:
        Dictionary with structure:
        {
            "short": {"gains": ..., "losses": ..., "net": ..., "proceeds": ..., "cost_basis": ...},
            "long": {...},
            "total": {...},
        }
    """
    result = {
        key: {
            "gains": Decimal("0"),
            "losses": Decimal("0"),
            "net": Decimal("0"),
            "proceeds": Decimal("0"),
            "cost_basis": Decimal("0"),
        }
        for key in (HoldingPeriod.SHORT.value, HoldingPeriod.LONG.value, "total")
    }

    for allocation in allocations:
        for key in (allocation.holding_period.value, "total"):
            bucket = result[key]
            if allocation.realized_gain > ZERO:
                bucket["gains"] += allocation.realized_gain
            else:
                bucket["losses"] += allocation.realized_gain
            bucket["net"] += allocation.realized_gain
            bucket["proceeds"] += allocation.proceeds
            bucket["cost_basis"] += allocation.cost_basis

    return result


def _consume(lot: TaxLot, consumed: Decimal) -> TaxLot:
    return dataclasses.replace(
        lot,
        sold_quantity=lot.sold_quantity + consumed,
        remaining_quantity=lot.remaining_quantity - consumed,
    )
