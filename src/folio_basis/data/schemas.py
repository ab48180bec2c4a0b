"""
Data schemas for CSV/Parquet file validation.

Defines expected columns and data types for all input and output files.
"""

from dataclasses import dataclass


@dataclass
class ColumnSchema:
    """Schema definition for a single column."""
    name: str
    dtype: str  # pandas dtype string
    required: bool = True
    nullable: bool = False


@dataclass
class FileSchema:
    """Schema definition for a file."""
    name: str
    columns: list[ColumnSchema]
    description: str

    @property
    def required_columns(self) -> list[str]:
        """Get list of required column names."""
        return [c.name for c in self.columns if c.required]

    @property
    def all_columns(self) -> list[str]:
        """Get list of all column names."""
        return [c.name for c in self.columns]

    def validate_columns(self, df_columns: list[str]) -> tuple[bool, list[str]]:
        """
        Validate that a dataframe has the required columns.

        Args:
            df_columns: List of column names from the dataframe

        Returns:
            Tuple of (is_valid, list of missing columns)
        """
        missing = [col for col in self.required_columns if col not in df_columns]
        return len(missing) == 0, missing


# Transaction History Schema (input)
TRANSACTIONS_SCHEMA = FileSchema(
    name="transactions",
    description="Per-symbol transaction history replayed into tax lots",
    columns=[
        ColumnSchema(name="symbol", dtype="str", required=True),
        ColumnSchema(name="date", dtype="datetime64[ns]", required=True),
        ColumnSchema(name="type", dtype="str", required=True),
        ColumnSchema(name="quantity", dtype="str", required=True),
        ColumnSchema(name="price", dtype="str", required=True),
        ColumnSchema(name="fees", dtype="str", required=False, nullable=True),
        ColumnSchema(name="lot_id", dtype="str", required=False, nullable=True),
        # Semicolon-separated ids for specific identification
        ColumnSchema(name="lot_ids", dtype="str", required=False, nullable=True),
        ColumnSchema(name="grant_date", dtype="datetime64[ns]", required=False, nullable=True),
        ColumnSchema(name="vesting_date", dtype="datetime64[ns]", required=False, nullable=True),
        ColumnSchema(name="vesting_price", dtype="str", required=False, nullable=True),
        ColumnSchema(name="discount_percent", dtype="str", required=False, nullable=True),
        ColumnSchema(name="bargain_element", dtype="str", required=False, nullable=True),
        ColumnSchema(name="shares_withheld", dtype="str", required=False, nullable=True),
        ColumnSchema(name="split_ratio", dtype="str", required=False, nullable=True),
    ],
)

# Historical Portfolio Value Schema (input)
VALUE_HISTORY_SCHEMA = FileSchema(
    name="value_history",
    description="Daily total portfolio value",
    columns=[
        ColumnSchema(name="date", dtype="datetime64[ns]", required=True),
        ColumnSchema(name="total_value", dtype="str", required=True),
        ColumnSchema(name="is_interpolated", dtype="bool", required=False, nullable=True),
    ],
)

# Tax Lots Schema (output)
LOTS_SCHEMA = FileSchema(
    name="lots",
    description="Tax lots after ledger replay",
    columns=[
        ColumnSchema(name="lot_id", dtype="str", required=True),
        ColumnSchema(name="symbol", dtype="str", required=True),
        ColumnSchema(name="lot_type", dtype="str", required=True),
        ColumnSchema(name="quantity", dtype="str", required=True),
        ColumnSchema(name="sold_quantity", dtype="str", required=True),
        ColumnSchema(name="remaining_quantity", dtype="str", required=True),
        ColumnSchema(name="purchase_price", dtype="str", required=True),
        ColumnSchema(name="purchase_date", dtype="datetime64[ns]", required=True),
        ColumnSchema(name="cost_basis", dtype="str", required=True),
        ColumnSchema(name="grant_date", dtype="datetime64[ns]", required=False, nullable=True),
        ColumnSchema(name="bargain_element", dtype="str", required=False, nullable=True),
        ColumnSchema(name="vesting_date", dtype="datetime64[ns]", required=False, nullable=True),
        ColumnSchema(name="vesting_price", dtype="str", required=False, nullable=True),
    ],
)

# Sale Allocations Schema (output)
ALLOCATIONS_SCHEMA = FileSchema(
    name="allocations",
    description="Per-lot allocations of sales and transfers out",
    columns=[
        ColumnSchema(name="lot_id", dtype="str", required=True),
        ColumnSchema(name="sale_date", dtype="datetime64[ns]", required=True),
        ColumnSchema(name="purchase_date", dtype="datetime64[ns]", required=True),
        ColumnSchema(name="quantity", dtype="str", required=True),
        ColumnSchema(name="sale_price", dtype="str", required=True),
        ColumnSchema(name="cost_basis", dtype="str", required=True),
        ColumnSchema(name="proceeds", dtype="str", required=True),
        ColumnSchema(name="realized_gain", dtype="str", required=True),
        ColumnSchema(name="holding_period", dtype="str", required=True),
        ColumnSchema(name="is_transfer", dtype="bool", required=True),
    ],
)

# Valuation Output Schema
VALUATION_SCHEMA = FileSchema(
    name="valuation",
    description="Mark-to-market valuation of open lots",
    columns=[
        ColumnSchema(name="lot_id", dtype="str", required=True),
        ColumnSchema(name="symbol", dtype="str", required=True),
        ColumnSchema(name="remaining_quantity", dtype="str", required=True),
        ColumnSchema(name="purchase_price", dtype="str", required=True),
        ColumnSchema(name="purchase_date", dtype="datetime64[ns]", required=True),
        ColumnSchema(name="current_price", dtype="str", required=True),
        ColumnSchema(name="market_value", dtype="str", required=True),
        ColumnSchema(name="unrealized_gain", dtype="str", required=True),
        ColumnSchema(name="unrealized_gain_pct", dtype="str", required=True),
        ColumnSchema(name="holding_period", dtype="str", required=True),
        ColumnSchema(name="days_held", dtype="int64", required=True),
    ],
)
