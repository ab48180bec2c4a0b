"""
Lot selection strategies.

Orders the open lots of a holding before a sale or transfer consumes them.
"""

from typing import Optional

from folio_basis.models import LotSelectionStrategy, LotValidationError, TaxLot


def order_lots(
    lots: list[TaxLot],
    strategy: LotSelectionStrategy,
    lot_ids: Optional[list[str]] = None,
) -> list[TaxLot]:
    """
    Order open lots for consumption.

    Closed lots (no remaining shares) are dropped. Python's sort is stable,
    so lots with equal keys keep their ledger order.

    Args:
        lots: Candidate lots
        strategy: FIFO, LIFO, HIFO or SPECIFIC
        lot_ids: Explicit lot order, required for SPECIFIC

    Returns:
        Open lots in consumption order

    Raises:
        LotValidationError: If SPECIFIC ids are missing, unknown, duplicated or closed
    """
    open_lots = [lot for lot in lots if lot.is_open]

    if strategy == LotSelectionStrategy.FIFO:
        return sorted(open_lots, key=lambda lot: lot.purchase_date)

    if strategy == LotSelectionStrategy.LIFO:
        return sorted(open_lots, key=lambda lot: lot.purchase_date, reverse=True)

    if strategy == LotSelectionStrategy.HIFO:
        # Highest cost first, oldest first among equal prices
        return sorted(
            open_lots,
            key=lambda lot: (-lot.purchase_price, lot.purchase_date),
        )

    if strategy == LotSelectionStrategy.SPECIFIC:
        return _select_specific(lots, lot_ids)

    raise LotValidationError(f"Unsupported lot selection strategy: {strategy}")


def _select_specific(lots: list[TaxLot], lot_ids: Optional[list[str]]) -> list[TaxLot]:
    if not lot_ids:
        raise LotValidationError("Specific identification requires at least one lot id")

    if len(set(lot_ids)) != len(lot_ids):
        raise LotValidationError(f"Duplicate lot ids in selection: {lot_ids}")

    by_id = {lot.lot_id: lot for lot in lots}
    selected = []
    for lot_id in lot_ids:
        lot = by_id.get(lot_id)
        if lot is None:
            raise LotValidationError(f"Unknown lot id: {lot_id}")
        if not lot.is_open:
            raise LotValidationError(f"Lot {lot_id} has no remaining shares")
        selected.append(lot)

    return selected
