"""
Data loading and saving functions for CSV/Parquet files.

Handles ingestion of transaction histories and portfolio value series,
as well as output of lots, sale allocations and valuation reports.

Numeric columns are read as text and converted straight to Decimal so no
value passes through binary floating point.
"""

from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Optional

import pandas as pd

from folio_basis.models import (
    HistoricalValuePoint,
    LotValuation,
    SaleAllocation,
    TaxLot,
    Transaction,
    ZERO,
)
from folio_basis.data.schemas import (
    ALLOCATIONS_SCHEMA,
    FileSchema,
    LOTS_SCHEMA,
    TRANSACTIONS_SCHEMA,
    VALUATION_SCHEMA,
    VALUE_HISTORY_SCHEMA,
)
from folio_basis.portfolio.holding_period import calculate_holding_days
from folio_basis.portfolio.ledger import UnknownTransactionTypeError, parse_transaction_type


class DataLoadError(Exception):
    """Raised when data cannot be loaded or is invalid."""
    pass


def load_transactions(
    file_path: str | Path,
    symbol: Optional[str] = None,
) -> list[Transaction]:
    """
    Load a transaction history from CSV file.

    Args:
        file_path: Path to CSV file with columns: symbol, date, type, quantity, price
        symbol: If provided, keep only this symbol's transactions

    Returns:
        List of Transaction objects in file order

    Raises:
        DataLoadError: If file cannot be loaded or a row is invalid
    """
    file_path = Path(file_path)
    df = _load_csv(file_path, TRANSACTIONS_SCHEMA)

    df["symbol"] = df["symbol"].str.upper().str.strip()
    if symbol:
        df = df[df["symbol"] == symbol.upper().strip()]

    transactions = []
    for index, row in df.iterrows():
        line = f"{file_path.name} row {index + 2}"
        try:
            transaction_type = parse_transaction_type(row["type"])
        except UnknownTransactionTypeError as e:
            raise DataLoadError(f"{line}: {e}")

        lot_ids = _optional_str(row.get("lot_ids"))

        transactions.append(
            Transaction(
                transaction_type=transaction_type,
                date=_parse_date(row["date"], "date", line),
                # Splits and cash-only rows may leave quantity blank; a blank
                # price stays None so a transfer in can inherit average cost
                quantity=_optional_decimal(row["quantity"], "quantity", line) or ZERO,
                price=_optional_decimal(row["price"], "price", line),
                fees=_optional_decimal(row.get("fees"), "fees", line) or ZERO,
                symbol=str(row["symbol"]),
                lot_id=_optional_str(row.get("lot_id")),
                lot_ids=[i.strip() for i in lot_ids.split(";") if i.strip()] if lot_ids else [],
                grant_date=_optional_date(row.get("grant_date"), "grant_date", line),
                vesting_date=_optional_date(row.get("vesting_date"), "vesting_date", line),
                vesting_price=_optional_decimal(row.get("vesting_price"), "vesting_price", line),
                discount_percent=_optional_decimal(
                    row.get("discount_percent"), "discount_percent", line
                ),
                bargain_element=_optional_decimal(
                    row.get("bargain_element"), "bargain_element", line
                ),
                shares_withheld=_optional_decimal(
                    row.get("shares_withheld"), "shares_withheld", line
                ) or ZERO,
                split_ratio=_optional_decimal(row.get("split_ratio"), "split_ratio", line),
            )
        )

    return transactions


def load_value_history(file_path: str | Path) -> list[HistoricalValuePoint]:
    """
    Load a portfolio value series from CSV file.

    Rows are returned in file order; ordering is validated by the analytics
    layer, not here.

    Args:
        file_path: Path to CSV file with columns: date, total_value

    Returns:
        List of HistoricalValuePoint objects

    Raises:
        DataLoadError: If file cannot be loaded or a row is invalid
    """
    file_path = Path(file_path)
    df = _load_csv(file_path, VALUE_HISTORY_SCHEMA)

    points = []
    for index, row in df.iterrows():
        line = f"{file_path.name} row {index + 2}"
        interpolated = _optional_str(row.get("is_interpolated"))
        points.append(
            HistoricalValuePoint(
                date=_parse_date(row["date"], "date", line),
                total_value=_parse_decimal(row["total_value"], "total_value", line),
                is_interpolated=bool(interpolated) and interpolated.lower() in ("true", "1", "yes"),
            )
        )

    return points


def save_lots(
    lots: list[TaxLot],
    output_path: str | Path,
) -> Path:
    """
    Save tax lots to CSV file.

    Args:
        lots: List of TaxLot objects to save
        output_path: Path for output CSV file

    Returns:
        Path to the saved file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    records = []
    for lot in lots:
        records.append({
            "lot_id": lot.lot_id,
            "symbol": lot.symbol,
            "lot_type": lot.lot_type.value,
            "quantity": str(lot.quantity),
            "sold_quantity": str(lot.sold_quantity),
            "remaining_quantity": str(lot.remaining_quantity),
            "purchase_price": str(lot.purchase_price),
            "purchase_date": lot.purchase_date.isoformat(),
            "cost_basis": str(lot.cost_basis),
            "grant_date": lot.grant_date.isoformat() if lot.grant_date else "",
            "bargain_element": str(lot.bargain_element),
            "vesting_date": lot.vesting_date.isoformat() if lot.vesting_date else "",
            "vesting_price": str(lot.vesting_price) if lot.vesting_price is not None else "",
        })

    df = pd.DataFrame(records, columns=LOTS_SCHEMA.all_columns)
    df.to_csv(output_path, index=False)

    return output_path


def save_allocations(
    allocations: list[SaleAllocation],
    output_path: str | Path,
) -> Path:
    """
    Save sale allocations to CSV file.

    Args:
        allocations: List of SaleAllocation objects
        output_path: Path for output CSV file

    Returns:
        Path to the saved file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    records = []
    for alloc in allocations:
        records.append({
            "lot_id": alloc.lot_id,
            "sale_date": alloc.sale_date.isoformat(),
            "purchase_date": alloc.purchase_date.isoformat(),
            "quantity": str(alloc.quantity),
            "sale_price": str(alloc.sale_price),
            "cost_basis": str(alloc.cost_basis),
            "proceeds": str(alloc.proceeds),
            "realized_gain": str(alloc.realized_gain),
            "holding_period": alloc.holding_period.value,
            "is_transfer": alloc.is_transfer,
        })

    df = pd.DataFrame(records, columns=ALLOCATIONS_SCHEMA.all_columns)
    df.to_csv(output_path, index=False)

    return output_path


def save_valuations(
    valuations: list[LotValuation],
    output_path: str | Path,
) -> Path:
    """
    Save lot valuations to CSV file.

    Args:
        valuations: List of LotValuation objects
        output_path: Path for output CSV file

    Returns:
        Path to the saved file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    records = []
    for val in valuations:
        records.append({
            "lot_id": val.lot.lot_id,
            "symbol": val.lot.symbol,
            "remaining_quantity": str(val.lot.remaining_quantity),
            "purchase_price": str(val.lot.purchase_price),
            "purchase_date": val.lot.purchase_date.isoformat(),
            "current_price": str(val.current_price),
            "market_value": str(val.market_value),
            "unrealized_gain": str(val.unrealized_gain),
            "unrealized_gain_pct": str(val.unrealized_gain_pct),
            "holding_period": val.holding_period.value,
            "days_held": calculate_holding_days(val.lot.purchase_date, val.valuation_date),
        })

    df = pd.DataFrame(records, columns=VALUATION_SCHEMA.all_columns)
    df.to_csv(output_path, index=False)

    return output_path


def _load_csv(file_path: Path, schema: FileSchema) -> pd.DataFrame:
    """
    Load a CSV file and validate against schema.

    Args:
        file_path: Path to CSV file
        schema: Expected file schema

    Returns:
        Loaded DataFrame with every column as text

    Raises:
        DataLoadError: If file cannot be loaded or has missing columns
    """
    if not file_path.exists():
        raise DataLoadError(f"File not found: {file_path}")

    # Support both CSV and Parquet
    if file_path.suffix.lower() == ".parquet":
        try:
            df = pd.read_parquet(file_path).astype(str)
        except Exception as e:
            raise DataLoadError(f"Failed to load parquet file {file_path}: {e}")
    else:
        try:
            df = pd.read_csv(file_path, dtype=str, keep_default_na=False)
        except Exception as e:
            raise DataLoadError(f"Failed to load CSV file {file_path}: {e}")

    df.columns = [str(c).strip().lower() for c in df.columns]

    # Validate columns
    is_valid, missing = schema.validate_columns(df.columns.tolist())
    if not is_valid:
        raise DataLoadError(
            f"File {file_path} is missing required columns: {missing}"
        )

    return df


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    if not text or text.lower() in ("nan", "none", "null"):
        return None
    return text


def _parse_decimal(value: Any, field_name: str, line: str) -> Decimal:
    text = _optional_str(value)
    if text is None:
        raise DataLoadError(f"{line}: missing value for {field_name}")
    try:
        result = Decimal(text.replace(",", "").replace("$", ""))
    except InvalidOperation:
        raise DataLoadError(f"{line}: invalid decimal for {field_name}: {value}")
    if not result.is_finite():
        raise DataLoadError(f"{line}: invalid decimal for {field_name}: {value}")
    return result


def _optional_decimal(value: Any, field_name: str, line: str) -> Optional[Decimal]:
    if _optional_str(value) is None:
        return None
    return _parse_decimal(value, field_name, line)


def _parse_date(value: Any, field_name: str, line: str) -> date:
    text = _optional_str(value)
    if text is None:
        raise DataLoadError(f"{line}: missing value for {field_name}")
    try:
        return pd.to_datetime(text).date()
    except (ValueError, TypeError):
        raise DataLoadError(f"{line}: invalid date for {field_name}: {value}")


def _optional_date(value: Any, field_name: str, line: str) -> Optional[date]:
    if _optional_str(value) is None:
        return None
    return _parse_date(value, field_name, line)
