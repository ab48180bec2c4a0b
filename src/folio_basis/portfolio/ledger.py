"""
Lot ledger construction from transaction history.

Replays the transactions of one symbol in date order to rebuild its tax
lots, the realized allocations of every sale or transfer out, and the
resulting Holding aggregate.
"""

import dataclasses
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Optional, Union

from folio_basis.models import (
    Holding,
    LotSelectionStrategy,
    LotType,
    LotValidationError,
    SaleAllocation,
    TaxLot,
    Transaction,
    TransactionType,
    ZERO,
)
from folio_basis.portfolio.allocation import allocate_sale


class UnknownTransactionTypeError(Exception):
    """Raised when replay meets a transaction kind it cannot apply."""
    pass


# Kinds that append a lot at the transaction price
ACQUISITION_TYPES = {
    TransactionType.BUY,
    TransactionType.ESPP_PURCHASE,
    TransactionType.REINVESTMENT,
}

# Cash-only kinds that never touch lots
CASH_ONLY_TYPES = {
    TransactionType.DIVIDEND,
    TransactionType.INTEREST,
    TransactionType.FEE,
    TransactionType.TAX,
}


@dataclass
class LedgerResult:
    """
    Outcome of replaying a transaction history.

    Attributes:
        symbol: Symbol the ledger belongs to
        holding: Aggregate of the open lots
        open_lots: Lots with remaining shares
        lots: Every lot created during replay, including closed ones
        allocations: Allocations of every sale and transfer out, in replay order
        total_fees: Sum of transaction fees (kept out of lot basis)
        transaction_count: Number of transactions replayed
    """
    symbol: str
    holding: Holding
    open_lots: list[TaxLot]
    lots: list[TaxLot] = field(default_factory=list)
    allocations: list[SaleAllocation] = field(default_factory=list)
    total_fees: Decimal = ZERO
    transaction_count: int = 0

    @property
    def realized_gain(self) -> Decimal:
        return sum((a.realized_gain for a in self.allocations), ZERO)


def build_ledger(
    transactions: list[Transaction],
    strategy: LotSelectionStrategy = LotSelectionStrategy.FIFO,
    symbol: Optional[str] = None,
) -> LedgerResult:
    """
    Replay a symbol's transactions into tax lots.

    Transactions are sorted by date; same-day transactions keep their
    input order.

    Args:
        transactions: Transactions for a single symbol, in any order
        strategy: Lot selection strategy used for sells and transfers out
        symbol: Symbol label, defaults to the first transaction's symbol

    Returns:
        LedgerResult with holding, open lots, all lots and allocations

    Raises:
        UnknownTransactionTypeError: If a transaction kind is not recognized
        InsufficientLotsError: If a sell or transfer out exceeds open shares
        LotValidationError: If a transaction carries invalid values
    """
    if symbol is None:
        symbol = transactions[0].symbol if transactions else ""

    lots: list[TaxLot] = []
    allocations: list[SaleAllocation] = []
    total_fees = ZERO

    for txn in sorted(transactions, key=lambda t: t.date):
        kind = parse_transaction_type(txn.transaction_type)
        if txn.fees < ZERO:
            raise LotValidationError(f"Fees must be non-negative, got {txn.fees} on {txn.date}")
        total_fees += txn.fees

        if kind in ACQUISITION_TYPES:
            lots.append(_acquisition_lot(txn, symbol))

        elif kind == TransactionType.RSU_VEST:
            lots.append(_rsu_lot(txn, symbol))

        elif kind == TransactionType.TRANSFER_IN:
            if txn.price is None:
                price = Holding.from_lots(symbol, lots).average_cost
            else:
                price = txn.price
            lots.append(_new_lot(txn, symbol, txn.quantity, price, txn.date))

        elif kind in (TransactionType.SELL, TransactionType.TRANSFER_OUT):
            lot_strategy = LotSelectionStrategy.SPECIFIC if txn.lot_ids else strategy
            result = allocate_sale(
                lots,
                quantity=txn.quantity,
                sale_price=_price(txn),
                sale_date=txn.date,
                strategy=lot_strategy,
                lot_ids=txn.lot_ids or None,
                is_transfer=kind == TransactionType.TRANSFER_OUT,
            )
            lots = result.lots
            allocations.extend(result.allocations)

        elif kind == TransactionType.SPLIT:
            lots = apply_split(lots, _split_ratio(txn))

        elif kind in CASH_ONLY_TYPES:
            continue

        else:
            raise UnknownTransactionTypeError(
                f"Unsupported transaction type {kind.value!r} on {txn.date}"
            )

    open_lots = [lot for lot in lots if lot.is_open]

    return LedgerResult(
        symbol=symbol,
        holding=Holding.from_lots(symbol, open_lots),
        open_lots=open_lots,
        lots=lots,
        allocations=allocations,
        total_fees=total_fees,
        transaction_count=len(transactions),
    )


def parse_transaction_type(value: Union[TransactionType, str]) -> TransactionType:
    """
    Resolve a transaction kind from an enum member or its string value.

    Raises:
        UnknownTransactionTypeError: If the value names no known kind
    """
    if isinstance(value, TransactionType):
        return value
    try:
        return TransactionType(str(value).strip().lower())
    except ValueError:
        raise UnknownTransactionTypeError(f"Unknown transaction type: {value!r}")


def build_ledgers(
    transactions: list[Transaction],
    strategy: LotSelectionStrategy = LotSelectionStrategy.FIFO,
) -> dict[str, LedgerResult]:
    """
    Replay a mixed-symbol history, one ledger per symbol.

    Args:
        transactions: Transactions for any number of symbols
        strategy: Lot selection strategy used for every symbol

    Returns:
        Dictionary mapping symbol to its LedgerResult
    """
    by_symbol: dict[str, list[Transaction]] = {}
    for txn in transactions:
        by_symbol.setdefault(txn.symbol, []).append(txn)

    return {
        symbol: build_ledger(txns, strategy=strategy, symbol=symbol)
        for symbol, txns in sorted(by_symbol.items())
    }


def apply_split(lots: list[TaxLot], ratio: Decimal) -> list[TaxLot]:
    """
    Apply a stock split of `ratio` new shares per old share.

    Quantities are multiplied and per-share prices divided. Each lot's
    total_cost is carried over untouched, so cost basis stays exact even
    when the ratio does not divide the price evenly. Closed lots are split
    too, keeping their history consistent with post-split share counts.

    Raises:
        LotValidationError: If ratio is not positive
    """
    if ratio <= ZERO:
        raise LotValidationError(f"Split ratio must be positive, got {ratio}")

    return [
        dataclasses.replace(
            lot,
            quantity=lot.quantity * ratio,
            sold_quantity=lot.sold_quantity * ratio,
            remaining_quantity=lot.remaining_quantity * ratio,
            purchase_price=lot.purchase_price / ratio,
            total_cost=lot.total_cost,
            bargain_element=lot.bargain_element / ratio,
            vesting_price=lot.vesting_price / ratio if lot.vesting_price is not None else None,
        )
        for lot in lots
    ]


def derive_bargain_element(purchase_price: Decimal, discount_percent: Decimal) -> Decimal:
    """
    Per-share ESPP discount implied by a discounted purchase price.

    discount_percent is a fraction (0.15 for 15%). The fair market value is
    purchase_price / (1 - discount) and the bargain element is FMV - price.

    Raises:
        LotValidationError: If discount_percent is outside [0, 1)
    """
    if discount_percent < ZERO or discount_percent >= Decimal("1"):
        raise LotValidationError(
            f"discount_percent must be in [0, 1), got {discount_percent}"
        )
    fair_market_value = purchase_price / (Decimal("1") - discount_percent)
    return fair_market_value - purchase_price


def _acquisition_lot(txn: Transaction, symbol: str) -> TaxLot:
    price = _price(txn)
    if parse_transaction_type(txn.transaction_type) != TransactionType.ESPP_PURCHASE:
        return _new_lot(txn, symbol, txn.quantity, price, txn.date)

    if txn.grant_date is not None and txn.grant_date >= txn.date:
        raise LotValidationError(
            f"ESPP purchase on {txn.date}: grant date {txn.grant_date} must be "
            f"before the purchase date"
        )

    if txn.bargain_element is not None:
        bargain_element = txn.bargain_element
    elif txn.discount_percent is not None:
        bargain_element = derive_bargain_element(price, txn.discount_percent)
    else:
        bargain_element = ZERO

    return _new_lot(
        txn,
        symbol,
        txn.quantity,
        price,
        txn.date,
        lot_type=LotType.ESPP,
        grant_date=txn.grant_date,
        bargain_element=bargain_element,
    )


def _rsu_lot(txn: Transaction, symbol: str) -> TaxLot:
    if txn.shares_withheld < ZERO or txn.shares_withheld > txn.quantity:
        raise LotValidationError(
            f"shares_withheld must be between 0 and {txn.quantity}, got {txn.shares_withheld}"
        )

    vesting_price = txn.vesting_price if txn.vesting_price is not None else _price(txn)
    vesting_date = txn.vesting_date or txn.date

    return _new_lot(
        txn,
        symbol,
        txn.quantity - txn.shares_withheld,
        vesting_price,
        vesting_date,
        lot_type=LotType.RSU,
        vesting_date=vesting_date,
        vesting_price=vesting_price,
    )


def _new_lot(
    txn: Transaction,
    symbol: str,
    quantity: Decimal,
    price: Decimal,
    acquired: date,
    **kwargs,
) -> TaxLot:
    label = f"{parse_transaction_type(txn.transaction_type).value} on {txn.date}"
    if quantity <= ZERO:
        raise LotValidationError(f"{label} must add a positive quantity, got {quantity}")
    if price < ZERO:
        raise LotValidationError(f"{label} has negative price {price}")

    if txn.lot_id:
        return TaxLot(
            lot_id=txn.lot_id,
            symbol=symbol,
            quantity=quantity,
            purchase_price=price,
            purchase_date=acquired,
            **kwargs,
        )
    return TaxLot.create(
        symbol=symbol,
        quantity=quantity,
        purchase_price=price,
        purchase_date=acquired,
        **kwargs,
    )


def _split_ratio(txn: Transaction) -> Decimal:
    # Ratio may be carried in split_ratio or, as brokers often export it, in quantity
    if txn.split_ratio is not None:
        return txn.split_ratio
    return txn.quantity


def _price(txn: Transaction) -> Decimal:
    return txn.price if txn.price is not None else ZERO
