"""
Core data models for the folio-basis lot accounting engine.

This module defines the fundamental data structures used throughout the system,
including tax lots, holdings, sale allocations, transactions and tax settings.
All monetary and share quantities use Decimal for precision.
"""

import json
from dataclasses import dataclass, field, asdict
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Optional
import uuid


ZERO = Decimal("0")


class LotValidationError(ValueError):
    """Raised when a lot, transaction or setting holds invalid values."""
    pass


class LotType(Enum):
    """Kind of acquisition that created a lot."""
    STANDARD = "standard"
    ESPP = "espp"
    RSU = "rsu"


class HoldingPeriod(Enum):
    """Classification of a gain or loss for tax purposes."""
    SHORT = "short"  # Held < 365 days
    LONG = "long"    # Held >= 365 days


class LotSelectionStrategy(Enum):
    """Order in which open lots are consumed by a sale."""
    FIFO = "fifo"
    LIFO = "lifo"
    HIFO = "hifo"
    SPECIFIC = "specific"


class TransactionType(Enum):
    """Transaction kinds understood by ledger replay."""
    BUY = "buy"
    ESPP_PURCHASE = "espp_purchase"
    RSU_VEST = "rsu_vest"
    SELL = "sell"
    SPLIT = "split"
    TRANSFER_IN = "transfer_in"
    TRANSFER_OUT = "transfer_out"
    REINVESTMENT = "reinvestment"
    # Cash-only kinds, no effect on lots
    DIVIDEND = "dividend"
    INTEREST = "interest"
    FEE = "fee"
    TAX = "tax"


class DispositionReason(Enum):
    """Why an ESPP disposition is or is not qualifying."""
    QUALIFYING = "qualifying"
    BOTH_REQUIREMENTS_NOT_MET = "both_requirements_not_met"
    SOLD_BEFORE_2YR_FROM_GRANT = "sold_before_2yr_from_grant"
    SOLD_BEFORE_1YR_FROM_PURCHASE = "sold_before_1yr_from_purchase"


class ActionType(Enum):
    """Types of logged actions for the decision log."""
    CONFIG_LOADED = "CONFIG_LOADED"
    LEDGER_REPLAYED = "LEDGER_REPLAYED"
    SALE_PREVIEWED = "SALE_PREVIEWED"
    TAX_ESTIMATED = "TAX_ESTIMATED"
    AGING_LOTS_IDENTIFIED = "AGING_LOTS_IDENTIFIED"
    HARVEST_OPPORTUNITIES_IDENTIFIED = "HARVEST_OPPORTUNITIES_IDENTIFIED"
    PERFORMANCE_CALCULATED = "PERFORMANCE_CALCULATED"


def _require_non_negative(value: Decimal, field_name: str) -> None:
    if value < ZERO:
        raise LotValidationError(f"{field_name} must be non-negative, got {value}")


@dataclass
class TaxLot:
    """
    A single discrete acquisition of a quantity of one asset.

    The lot keeps its original quantity and tracks how much of it has been
    disposed of, so realized-gain history survives after the lot is closed.

    Attributes:
        lot_id: Unique identifier for this lot
        symbol: Ticker symbol of the security
        quantity: Original number of shares acquired
        purchase_price: Per-share cost basis at acquisition
        purchase_date: Date the shares were acquired
        sold_quantity: Shares already disposed of
        remaining_quantity: Shares still open
        lot_type: Standard, ESPP or RSU
        grant_date: ESPP offering grant date
        bargain_element: ESPP per-share discount versus fair market value
        vesting_date: RSU vest date
        vesting_price: RSU fair market value at vest
        total_cost: Exact cost basis of the original quantity, defaults to
            quantity * purchase_price. Splits keep it unchanged while the
            per-share price is re-derived, so basis never drifts by rounding.
    """
    lot_id: str
    symbol: str
    quantity: Decimal
    purchase_price: Decimal
    purchase_date: date
    sold_quantity: Decimal = ZERO
    remaining_quantity: Optional[Decimal] = None
    lot_type: LotType = LotType.STANDARD
    grant_date: Optional[date] = None
    bargain_element: Decimal = ZERO
    vesting_date: Optional[date] = None
    vesting_price: Optional[Decimal] = None
    total_cost: Optional[Decimal] = None

    def __post_init__(self) -> None:
        if self.remaining_quantity is None:
            self.remaining_quantity = self.quantity - self.sold_quantity
        if self.total_cost is None:
            self.total_cost = self.quantity * self.purchase_price
        _require_non_negative(self.quantity, "quantity")
        _require_non_negative(self.purchase_price, "purchase_price")
        _require_non_negative(self.total_cost, "total_cost")
        _require_non_negative(self.sold_quantity, "sold_quantity")
        _require_non_negative(self.remaining_quantity, "remaining_quantity")
        _require_non_negative(self.bargain_element, "bargain_element")
        if self.sold_quantity + self.remaining_quantity != self.quantity:
            raise LotValidationError(
                f"Lot {self.lot_id}: sold ({self.sold_quantity}) + remaining "
                f"({self.remaining_quantity}) != quantity ({self.quantity})"
            )

    @classmethod
    def create(
        cls,
        symbol: str,
        quantity: Decimal,
        purchase_price: Decimal,
        purchase_date: date,
        lot_type: LotType = LotType.STANDARD,
        **kwargs: Any,
    ) -> "TaxLot":
        """Factory method to create a new open TaxLot with auto-generated ID."""
        return cls(
            lot_id=str(uuid.uuid4()),
            symbol=symbol,
            quantity=quantity,
            purchase_price=purchase_price,
            purchase_date=purchase_date,
            lot_type=lot_type,
            **kwargs,
        )

    @property
    def is_open(self) -> bool:
        """Whether any shares of this lot remain."""
        return self.remaining_quantity > ZERO

    def basis_of(self, shares: Decimal) -> Decimal:
        """Pro-rata share of total_cost for `shares` of the original quantity."""
        if shares == self.quantity:
            return self.total_cost
        if shares == ZERO or self.quantity == ZERO:
            return ZERO
        return self.total_cost * shares / self.quantity

    @property
    def cost_basis(self) -> Decimal:
        """Cost basis of the remaining shares."""
        return self.basis_of(self.remaining_quantity)

    @property
    def adjusted_purchase_price(self) -> Decimal:
        """Per-share basis including any ESPP bargain element."""
        return self.purchase_price + self.bargain_element

    @property
    def adjusted_cost_basis(self) -> Decimal:
        """Cost basis of the remaining shares including the bargain element."""
        return self.cost_basis + self.remaining_quantity * self.bargain_element


@dataclass
class Holding:
    """
    Aggregate of all open lots for one asset.

    Derived from lots, never edited directly. Market fields are filled by
    with_price() on every price refresh.
    """
    symbol: str
    quantity: Decimal
    cost_basis: Decimal
    num_lots: int = 0
    current_price: Optional[Decimal] = None
    market_value: Optional[Decimal] = None
    unrealized_gain: Optional[Decimal] = None
    unrealized_gain_pct: Optional[Decimal] = None

    @property
    def average_cost(self) -> Decimal:
        """Cost basis per share, zero for an empty holding."""
        if self.quantity == ZERO:
            return ZERO
        return self.cost_basis / self.quantity

    @classmethod
    def from_lots(cls, symbol: str, lots: list[TaxLot]) -> "Holding":
        """Aggregate the open lots of a symbol into a Holding."""
        open_lots = [lot for lot in lots if lot.is_open]
        return cls(
            symbol=symbol,
            quantity=sum((lot.remaining_quantity for lot in open_lots), ZERO),
            cost_basis=sum((lot.cost_basis for lot in open_lots), ZERO),
            num_lots=len(open_lots),
        )

    def with_price(self, current_price: Decimal) -> "Holding":
        """Return a copy of this holding marked to the given price."""
        market_value = self.quantity * current_price
        unrealized_gain = market_value - self.cost_basis
        if self.cost_basis != ZERO:
            unrealized_gain_pct = unrealized_gain / self.cost_basis * 100
        else:
            unrealized_gain_pct = ZERO

        return Holding(
            symbol=self.symbol,
            quantity=self.quantity,
            cost_basis=self.cost_basis,
            num_lots=self.num_lots,
            current_price=current_price,
            market_value=market_value,
            unrealized_gain=unrealized_gain,
            unrealized_gain_pct=unrealized_gain_pct,
        )


@dataclass
class SaleAllocation:
    """
    The part of a sale drawn from one lot.

    Attributes:
        lot_id: Lot the shares came from
        quantity: Shares consumed from the lot
        cost_basis: Basis of the consumed shares
        proceeds: Sale value of the consumed shares (zero for transfers)
        realized_gain: proceeds - cost_basis
        holding_period: Short or long term at the sale date
        purchase_date: Acquisition date of the lot
        sale_date: Date of the disposal
        sale_price: Per-share disposal price
        is_transfer: True for transfer_out consumption
    """
    lot_id: str
    quantity: Decimal
    cost_basis: Decimal
    proceeds: Decimal
    realized_gain: Decimal
    holding_period: HoldingPeriod
    purchase_date: date
    sale_date: date
    sale_price: Decimal
    is_transfer: bool = False


@dataclass
class TaxSettings:
    """
    User-configured capital gains rates, each a fraction in [0, 1].

    state_rate is added on top of both federal rates. Passed explicitly to
    every estimator call.
    """
    short_term_rate: Decimal
    long_term_rate: Decimal
    state_rate: Decimal = ZERO

    def __post_init__(self) -> None:
        for name in ("short_term_rate", "long_term_rate", "state_rate"):
            value = getattr(self, name)
            if value < ZERO or value > Decimal("1"):
                raise LotValidationError(f"{name} must be between 0 and 1, got {value}")

    @property
    def combined_short_term_rate(self) -> Decimal:
        return self.short_term_rate + self.state_rate

    @property
    def combined_long_term_rate(self) -> Decimal:
        return self.long_term_rate + self.state_rate

    @classmethod
    def default(cls) -> "TaxSettings":
        """Default US-style rates: 24% short term, 15% long term."""
        return cls(short_term_rate=Decimal("0.24"), long_term_rate=Decimal("0.15"))


@dataclass
class EngineConfig:
    """
    Engine configuration.

    Attributes:
        tax_settings: Short and long term rates
        lot_strategy: Default lot selection strategy for sales
        aging_horizon_days: Look-ahead window for the aging-lot query
        risk_free_rate: Annual risk-free rate for the Sharpe ratio
        output_dir: Directory for reports and the decision log
    """
    tax_settings: TaxSettings = field(default_factory=TaxSettings.default)
    lot_strategy: LotSelectionStrategy = LotSelectionStrategy.FIFO
    aging_horizon_days: int = 30
    risk_free_rate: Decimal = Decimal("0.04")
    output_dir: str = "output"


@dataclass
class HistoricalValuePoint:
    """Portfolio total value on one date."""
    date: date
    total_value: Decimal
    is_interpolated: bool = False


@dataclass
class Transaction:
    """
    One entry of a symbol's transaction history.

    Only the fields relevant to the transaction type need to be set. A
    price of None means none was given, which lets a transfer in with an
    explicit zero basis differ from one that inherits the average cost.
    """
    transaction_type: TransactionType
    date: date
    quantity: Decimal = ZERO
    price: Optional[Decimal] = None
    fees: Decimal = ZERO
    symbol: str = ""
    lot_id: Optional[str] = None
    lot_ids: list[str] = field(default_factory=list)
    grant_date: Optional[date] = None
    vesting_date: Optional[date] = None
    vesting_price: Optional[Decimal] = None
    discount_percent: Optional[Decimal] = None
    bargain_element: Optional[Decimal] = None
    shares_withheld: Decimal = ZERO
    split_ratio: Optional[Decimal] = None


@dataclass
class LotValuation:
    """
    Mark-to-market valuation of the open part of a single tax lot.

    Attributes:
        lot: The underlying tax lot
        current_price: Current market price per share
        valuation_date: Date of the valuation
        market_value: remaining_quantity * current_price
        unrealized_gain: market_value - cost basis
        unrealized_gain_pct: Unrealized gain as a percent of cost basis
        holding_period: Short or long term as of valuation_date
    """
    lot: TaxLot
    current_price: Decimal
    valuation_date: date
    market_value: Decimal
    unrealized_gain: Decimal
    unrealized_gain_pct: Decimal
    holding_period: HoldingPeriod


@dataclass
class UnrealizedGainSummary:
    """Unrealized gains and losses partitioned by holding period."""
    short_term_gains: Decimal = ZERO
    short_term_losses: Decimal = ZERO
    long_term_gains: Decimal = ZERO
    long_term_losses: Decimal = ZERO
    total_market_value: Decimal = ZERO
    total_cost_basis: Decimal = ZERO

    @property
    def short_term_net(self) -> Decimal:
        return self.short_term_gains + self.short_term_losses

    @property
    def long_term_net(self) -> Decimal:
        return self.long_term_gains + self.long_term_losses

    @property
    def total_unrealized(self) -> Decimal:
        return self.short_term_net + self.long_term_net


@dataclass
class TaxLiabilityEstimate:
    """
    Estimated tax owed on gains at the configured rates.

    effective_rate is total tax over total taxable gains, 0 when there are
    no gains.
    """
    short_term_gain: Decimal
    long_term_gain: Decimal
    short_term_tax: Decimal
    long_term_tax: Decimal
    total_tax: Decimal
    settings: TaxSettings
    effective_rate: Decimal = ZERO


@dataclass
class TaxExposure:
    """
    Tax picture of one holding at a price.

    Attributes:
        holding: Holding marked to the current price
        valuations: Per-lot valuations of the open lots
        summary: Unrealized gains and losses by holding period
        estimate: Tax on the unrealized gains
        aging_lot_count: Short-term lots turning long-term within the horizon
    """
    holding: Holding
    valuations: list[LotValuation]
    summary: UnrealizedGainSummary
    estimate: TaxLiabilityEstimate
    aging_lot_count: int


@dataclass
class HarvestOpportunity:
    """
    Unrealized losses of one holding that could be harvested.

    Loss amounts are negative values.
    """
    symbol: str
    unrealized_loss: Decimal
    short_term_loss: Decimal
    long_term_loss: Decimal
    losing_lots: list[LotValuation] = field(default_factory=list)


@dataclass
class DispositionCheck:
    """Outcome of the ESPP qualifying-disposition test for one sale date."""
    is_qualifying: bool
    reason: DispositionReason
    meets_grant_requirement: bool
    meets_purchase_requirement: bool
    grant_date: date
    purchase_date: date
    disposal_date: date
    two_years_from_grant: date
    one_year_from_purchase: date

    @property
    def is_disqualifying(self) -> bool:
        return not self.is_qualifying


@dataclass
class EsppDisposition:
    """Tax treatment of an ESPP lot disposal."""
    lot_id: str
    quantity: Decimal
    check: DispositionCheck
    ordinary_income: Decimal
    adjusted_cost_basis: Decimal
    proceeds: Decimal
    capital_gain: Decimal
    holding_period: HoldingPeriod


@dataclass
class AgingLot:
    """A short-term lot that turns long-term within the lookahead horizon."""
    lot: TaxLot
    days_held: int
    days_until_long_term: int
    long_term_date: date
    unrealized_gain: Optional[Decimal] = None


@dataclass
class PerformanceMetrics:
    """Container for risk/return statistics of a value series."""

    start_date: str
    end_date: str
    num_points: int
    start_value: float
    end_value: float

    # Returns
    total_return: float
    cagr: float
    annualized_volatility: float
    sharpe_ratio: float

    # Risk
    max_drawdown: float
    num_returns: int

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return asdict(self)

    def to_json(self, path: Path) -> None:
        """Save metrics to JSON file."""
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def from_json(cls, path: Path) -> "PerformanceMetrics":
        """Load metrics from JSON file."""
        with open(path, "r") as f:
            data = json.load(f)
        return cls(**data)


@dataclass
class DecisionLogEntry:
    """
    Entry in the append-only decision log.

    Attributes:
        timestamp: When the action occurred
        action_type: Type of action taken
        symbol: Related symbol (if applicable)
        details: Additional details as key-value pairs
    """
    timestamp: datetime
    action_type: ActionType
    symbol: Optional[str]
    details: dict = field(default_factory=dict)

    @classmethod
    def create(
        cls,
        action_type: ActionType,
        symbol: Optional[str] = None,
        details: Optional[dict] = None,
    ) -> "DecisionLogEntry":
        """Factory method to create a log entry with current timestamp."""
        return cls(
            timestamp=datetime.now(),
            action_type=action_type,
            symbol=symbol,
            details=details or {},
        )
