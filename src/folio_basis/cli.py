"""
Command-line interface for folio-basis.

Provides commands for:
- replay: Rebuild tax lots from a transaction history
- preview-sale: What-if allocation of a sale against open lots
- tax: Unrealized gains and estimated tax liability
- aging: Lots about to turn long-term
- harvest: Holdings with unrealized losses worth harvesting
- performance: Return and risk statistics from a value history
- init-config: Write a default engine configuration file
"""

import sys
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional

import click

from folio_basis.analytics import (
    calculate_tax_exposure,
    evaluate_espp_disposition,
    find_aging_lots,
    find_harvest_opportunities,
    calculate_performance_metrics,
    PerformanceError,
)
from folio_basis.analytics.equity_comp import find_disqualifying_lots, tax_implication_message
from folio_basis.config import (
    ConfigurationError,
    load_engine_config,
    parse_date,
    parse_strategy,
    write_config,
)
from folio_basis.data import (
    DataLoadError,
    load_transactions,
    load_value_history,
    save_allocations,
    save_lots,
    save_valuations,
)
from folio_basis.logging import get_logger
from folio_basis.models import (
    EngineConfig,
    LotSelectionStrategy,
    LotType,
    LotValidationError,
    TaxSettings,
)
from folio_basis.portfolio import (
    InsufficientLotsError,
    LedgerResult,
    UnknownTransactionTypeError,
    build_ledgers,
    preview_sale,
)
from folio_basis.portfolio.valuation import get_gainers_and_losers


# Errors raised by the engine for bad input data
ENGINE_ERRORS = (
    InsufficientLotsError,
    UnknownTransactionTypeError,
    LotValidationError,
)


@click.group()
@click.version_option(version="0.1.0", prog_name="folio-basis")
def main():
    """
    Cost-basis lot accounting and tax/performance analytics.

    Replays transaction histories into tax lots and reports realized and
    unrealized gains, estimated tax and portfolio performance.
    """
    pass


@main.command()
@click.option(
    "--transactions", "-t",
    required=True,
    type=click.Path(exists=True),
    help="Path to transactions CSV file",
)
@click.option(
    "--symbol", "-s",
    type=str,
    default=None,
    help="Only replay this symbol. Defaults to every symbol in the file.",
)
@click.option(
    "--strategy",
    type=click.Choice(["fifo", "lifo", "hifo"], case_sensitive=False),
    default=None,
    help="Lot selection strategy. Defaults to config lot_strategy.",
)
@click.option(
    "--config", "-c",
    type=click.Path(exists=True),
    default=None,
    help="Path to engine configuration YAML file",
)
@click.option(
    "--output-dir", "-o",
    type=click.Path(),
    default=None,
    help="Output directory. Defaults to config output_dir.",
)
def replay(
    transactions: str,
    symbol: Optional[str],
    strategy: Optional[str],
    config: Optional[str],
    output_dir: Optional[str],
):
    """
    Rebuild tax lots from a transaction history.

    Writes one lots CSV and one allocations CSV per symbol.
    """
    engine_config = _load_config(config)
    out_dir = _output_dir(output_dir, engine_config)
    logger = get_logger(out_dir / "decision_log.jsonl")
    logger.log_config_loaded(engine_config, config)

    lot_strategy = parse_strategy(strategy) if strategy else engine_config.lot_strategy
    ledgers = _replay(transactions, symbol, lot_strategy)

    for sym, ledger in ledgers.items():
        holding = ledger.holding
        logger.log_ledger_replayed(
            symbol=sym,
            transaction_count=ledger.transaction_count,
            open_lot_count=len(ledger.open_lots),
            quantity=holding.quantity,
            cost_basis=holding.cost_basis,
            allocations=ledger.allocations,
            strategy=lot_strategy.value,
        )

        lots_path = save_lots(ledger.lots, out_dir / f"lots_{sym}.csv")
        allocations_path = save_allocations(ledger.allocations, out_dir / f"allocations_{sym}.csv")

        click.echo(f"{sym}:")
        click.echo(f"  Shares:        {holding.quantity}")
        click.echo(f"  Cost Basis:    ${holding.cost_basis:,.2f}")
        click.echo(f"  Average Cost:  ${holding.average_cost:,.4f}")
        click.echo(f"  Open Lots:     {len(ledger.open_lots)}")
        click.echo(f"  Realized Gain: ${ledger.realized_gain:,.2f}")
        click.echo(f"  Lots saved: {lots_path}")
        click.echo(f"  Allocations saved: {allocations_path}")


@main.command("preview-sale")
@click.option(
    "--transactions", "-t",
    required=True,
    type=click.Path(exists=True),
    help="Path to transactions CSV file",
)
@click.option("--symbol", "-s", required=True, help="Symbol to sell")
@click.option("--quantity", "-q", required=True, type=str, help="Shares to sell")
@click.option("--price", "-p", required=True, type=str, help="Sale price per share")
@click.option(
    "--date", "-d",
    type=str,
    default=None,
    help="Sale date (YYYY-MM-DD). Defaults to today.",
)
@click.option(
    "--strategy",
    type=click.Choice(["fifo", "lifo", "hifo"], case_sensitive=False),
    default=None,
    help="Lot selection strategy. Defaults to config lot_strategy.",
)
@click.option(
    "--lot-id",
    "lot_ids",
    multiple=True,
    help="Sell these lots in the given order (specific identification). Repeatable.",
)
@click.option(
    "--config", "-c",
    type=click.Path(exists=True),
    default=None,
    help="Path to engine configuration YAML file",
)
def preview_sale_command(
    transactions: str,
    symbol: str,
    quantity: str,
    price: str,
    date: Optional[str],
    strategy: Optional[str],
    lot_ids: tuple[str, ...],
    config: Optional[str],
):
    """
    Preview how a sale would be allocated across open lots.

    Nothing is written except the decision log entry.
    """
    engine_config = _load_config(config)
    sale_date = _parse_cli_date(date)
    sale_quantity = _parse_cli_decimal(quantity, "quantity")
    sale_price = _parse_cli_decimal(price, "price")

    if lot_ids:
        lot_strategy = LotSelectionStrategy.SPECIFIC
    else:
        lot_strategy = parse_strategy(strategy) if strategy else engine_config.lot_strategy

    ledger = _single_ledger(transactions, symbol, engine_config.lot_strategy)

    try:
        allocations = preview_sale(
            ledger.open_lots,
            quantity=sale_quantity,
            sale_price=sale_price,
            sale_date=sale_date,
            strategy=lot_strategy,
            lot_ids=list(lot_ids) or None,
        )
    except ENGINE_ERRORS as e:
        click.echo(f"Error allocating sale: {e}", err=True)
        sys.exit(1)

    logger = get_logger(Path(engine_config.output_dir) / "decision_log.jsonl")
    logger.log_sale_previewed(ledger.symbol, sale_quantity, sale_price, lot_strategy.value, allocations)

    lots_by_id = {lot.lot_id: lot for lot in ledger.open_lots}

    click.echo(f"Sale of {sale_quantity} {ledger.symbol} @ ${sale_price:,.2f} on {sale_date} ({lot_strategy.value}):")
    for alloc in allocations:
        click.echo(
            f"  {alloc.lot_id}  {alloc.quantity} sh  bought {alloc.purchase_date}  "
            f"basis ${alloc.cost_basis:,.2f}  gain ${alloc.realized_gain:,.2f}  "
            f"[{alloc.holding_period.value}]"
        )
        lot = lots_by_id[alloc.lot_id]
        if lot.lot_type == LotType.ESPP and lot.grant_date is not None:
            disposition = evaluate_espp_disposition(lot, alloc.quantity, sale_price, sale_date)
            click.echo(f"    {tax_implication_message(disposition.check, disposition.ordinary_income)}")

    total_gain = sum(a.realized_gain for a in allocations)
    click.echo(f"  Total realized gain: ${total_gain:,.2f}")


@main.command()
@click.option(
    "--transactions", "-t",
    required=True,
    type=click.Path(exists=True),
    help="Path to transactions CSV file",
)
@click.option("--symbol", "-s", required=True, help="Symbol to analyze")
@click.option("--price", "-p", required=True, type=str, help="Current price per share")
@click.option(
    "--date", "-d",
    type=str,
    default=None,
    help="As-of date (YYYY-MM-DD). Defaults to today.",
)
@click.option(
    "--config", "-c",
    type=click.Path(exists=True),
    default=None,
    help="Path to engine configuration YAML file",
)
@click.option(
    "--output-dir", "-o",
    type=click.Path(),
    default=None,
    help="Output directory. Defaults to config output_dir.",
)
def tax(
    transactions: str,
    symbol: str,
    price: str,
    date: Optional[str],
    config: Optional[str],
    output_dir: Optional[str],
):
    """
    Estimate tax on unrealized gains.

    Gains are split by holding period and taxed at the configured rates.
    Losses never reduce the estimate below zero.
    """
    engine_config = _load_config(config)
    as_of = _parse_cli_date(date)
    current_price = _parse_cli_decimal(price, "price")
    out_dir = _output_dir(output_dir, engine_config)

    ledger = _single_ledger(transactions, symbol, engine_config.lot_strategy)
    settings = engine_config.tax_settings

    try:
        exposure = calculate_tax_exposure(
            ledger.open_lots,
            current_price,
            settings,
            as_of=as_of,
            horizon_days=engine_config.aging_horizon_days,
            symbol=ledger.symbol,
        )
    except ENGINE_ERRORS as e:
        click.echo(f"Error valuing lots: {e}", err=True)
        sys.exit(1)

    holding = exposure.holding
    summary = exposure.summary
    estimate = exposure.estimate

    logger = get_logger(out_dir / "decision_log.jsonl")
    logger.log_tax_estimated(ledger.symbol, current_price, estimate)

    valuation_path = save_valuations(exposure.valuations, out_dir / f"valuation_{ledger.symbol}_{as_of}.csv")

    click.echo(f"Tax Analysis for {ledger.symbol} ({as_of}):")
    click.echo(f"  Market Value:      ${holding.market_value:,.2f}")
    click.echo(f"  Cost Basis:        ${holding.cost_basis:,.2f}")
    click.echo(f"  Unrealized Gain:   ${holding.unrealized_gain:,.2f} ({holding.unrealized_gain_pct:.2f}%)")
    click.echo(f"  Short-Term Gains:  ${summary.short_term_gains:,.2f} (taxed at {settings.short_term_rate:.1%})")
    click.echo(f"  Short-Term Losses: ${summary.short_term_losses:,.2f}")
    click.echo(f"  Long-Term Gains:   ${summary.long_term_gains:,.2f} (taxed at {settings.long_term_rate:.1%})")
    click.echo(f"  Long-Term Losses:  ${summary.long_term_losses:,.2f}")
    if settings.state_rate:
        click.echo(f"  State Rate:        {settings.state_rate:.1%} (added to both)")
    click.echo(f"  Estimated Tax:     ${estimate.total_tax:,.2f}")
    click.echo(f"  Effective Rate:    {estimate.effective_rate:.2%}")
    click.echo(
        f"  Aging Lots:        {exposure.aging_lot_count} "
        f"(long-term within {engine_config.aging_horizon_days} days)"
    )

    gainers, losers = get_gainers_and_losers(exposure.valuations, top_n=3)
    for label, group in (("Largest gains", gainers), ("Largest losses", losers)):
        if group:
            click.echo(f"  {label}:")
            for val in group:
                click.echo(f"    {val.lot.lot_id}  ${val.unrealized_gain:,.2f} ({val.unrealized_gain_pct:.2f}%)")

    for lot in find_disqualifying_lots(ledger.open_lots, as_of):
        click.echo(
            f"  Warning: selling ESPP lot {lot.lot_id} on {as_of} would be a "
            f"disqualifying disposition"
        )

    click.echo(f"  Valuation saved: {valuation_path}")


@main.command()
@click.option(
    "--transactions", "-t",
    required=True,
    type=click.Path(exists=True),
    help="Path to transactions CSV file",
)
@click.option("--symbol", "-s", required=True, help="Symbol to scan")
@click.option(
    "--date", "-d",
    type=str,
    default=None,
    help="As-of date (YYYY-MM-DD). Defaults to today.",
)
@click.option(
    "--horizon",
    type=int,
    default=None,
    help="Look-ahead window in days. Defaults to config aging_horizon_days.",
)
@click.option("--price", "-p", type=str, default=None, help="Current price, to show gains at stake")
@click.option(
    "--config", "-c",
    type=click.Path(exists=True),
    default=None,
    help="Path to engine configuration YAML file",
)
def aging(
    transactions: str,
    symbol: str,
    date: Optional[str],
    horizon: Optional[int],
    price: Optional[str],
    config: Optional[str],
):
    """
    List short-term lots that turn long-term soon.

    Selling these lots a little later would move their gains to the
    long-term rate.
    """
    engine_config = _load_config(config)
    as_of = _parse_cli_date(date)
    horizon_days = horizon if horizon is not None else engine_config.aging_horizon_days
    current_price = _parse_cli_decimal(price, "price") if price else None

    ledger = _single_ledger(transactions, symbol, engine_config.lot_strategy)

    try:
        aging_lots = find_aging_lots(ledger.open_lots, as_of, horizon_days, current_price)
    except ENGINE_ERRORS as e:
        click.echo(f"Error scanning lots: {e}", err=True)
        sys.exit(1)

    logger = get_logger(Path(engine_config.output_dir) / "decision_log.jsonl")
    logger.log_aging_lots_identified(ledger.symbol, horizon_days, aging_lots)

    if not aging_lots:
        click.echo(f"No {ledger.symbol} lots turn long-term within {horizon_days} days of {as_of}.")
        return

    click.echo(f"{ledger.symbol} lots turning long-term within {horizon_days} days of {as_of}:")
    for item in aging_lots:
        line = (
            f"  {item.lot.lot_id}  {item.lot.remaining_quantity} sh  "
            f"long-term on {item.long_term_date} ({item.days_until_long_term} days)"
        )
        if item.unrealized_gain is not None:
            line += f"  unrealized ${item.unrealized_gain:,.2f}"
        click.echo(line)


@main.command()
@click.option(
    "--transactions", "-t",
    required=True,
    type=click.Path(exists=True),
    help="Path to transactions CSV file",
)
@click.option(
    "--price", "-p",
    "prices",
    required=True,
    multiple=True,
    help="Current price as SYMBOL=PRICE. Repeatable.",
)
@click.option(
    "--date", "-d",
    type=str,
    default=None,
    help="As-of date (YYYY-MM-DD). Defaults to today.",
)
@click.option(
    "--min-loss",
    type=str,
    default="100",
    help="Smallest combined loss per holding to report",
)
@click.option(
    "--config", "-c",
    type=click.Path(exists=True),
    default=None,
    help="Path to engine configuration YAML file",
)
def harvest(
    transactions: str,
    prices: tuple[str, ...],
    date: Optional[str],
    min_loss: str,
    config: Optional[str],
):
    """
    Find holdings with unrealized losses worth harvesting.

    Holdings without a --price are skipped. Wash-sale rules are not checked.
    """
    engine_config = _load_config(config)
    as_of = _parse_cli_date(date)
    minimum_loss = _parse_cli_decimal(min_loss, "minimum loss")
    price_map = _parse_price_map(prices)

    ledgers = _replay(transactions, None, engine_config.lot_strategy)
    lots_by_symbol = {sym: ledger.open_lots for sym, ledger in ledgers.items()}

    try:
        opportunities = find_harvest_opportunities(lots_by_symbol, price_map, as_of, minimum_loss)
    except ENGINE_ERRORS as e:
        click.echo(f"Error scanning holdings: {e}", err=True)
        sys.exit(1)

    logger = get_logger(Path(engine_config.output_dir) / "decision_log.jsonl")
    logger.log_harvest_opportunities_identified(minimum_loss, opportunities)

    if not opportunities:
        click.echo(f"No holdings with losses of at least ${minimum_loss:,.2f} as of {as_of}.")
        return

    click.echo(f"Tax-loss harvesting opportunities ({as_of}):")
    for opp in opportunities:
        click.echo(
            f"  {opp.symbol}  loss ${opp.unrealized_loss:,.2f}  "
            f"(short ${opp.short_term_loss:,.2f}, long ${opp.long_term_loss:,.2f})"
        )
        for val in opp.losing_lots:
            click.echo(
                f"    {val.lot.lot_id}  {val.lot.remaining_quantity} sh  "
                f"${val.unrealized_gain:,.2f} [{val.holding_period.value}]"
            )


@main.command()
@click.option(
    "--history", "-h",
    required=True,
    type=click.Path(exists=True),
    help="Path to portfolio value history CSV file",
)
@click.option(
    "--risk-free-rate",
    type=float,
    default=None,
    help="Annual risk-free rate. Defaults to config risk_free_rate.",
)
@click.option(
    "--config", "-c",
    type=click.Path(exists=True),
    default=None,
    help="Path to engine configuration YAML file",
)
@click.option(
    "--output-dir", "-o",
    type=click.Path(),
    default=None,
    help="Output directory. Defaults to config output_dir.",
)
def performance(
    history: str,
    risk_free_rate: Optional[float],
    config: Optional[str],
    output_dir: Optional[str],
):
    """
    Calculate return and risk statistics.

    The Sharpe ratio is reported at daily frequency (not annualized).
    """
    engine_config = _load_config(config)
    out_dir = _output_dir(output_dir, engine_config)
    rate = risk_free_rate if risk_free_rate is not None else float(engine_config.risk_free_rate)

    try:
        points = load_value_history(history)
        metrics = calculate_performance_metrics(points, risk_free_rate=rate)
    except (DataLoadError, PerformanceError) as e:
        click.echo(f"Error calculating performance: {e}", err=True)
        sys.exit(1)

    logger = get_logger(out_dir / "decision_log.jsonl")
    logger.log_performance_calculated(metrics)

    metrics_path = out_dir / "performance_metrics.json"
    metrics.to_json(metrics_path)

    click.echo(f"Performance ({metrics.start_date} to {metrics.end_date}):")
    click.echo(f"  Start Value:    ${metrics.start_value:,.2f}")
    click.echo(f"  End Value:      ${metrics.end_value:,.2f}")
    click.echo(f"  Total Return:   {metrics.total_return:.2f}%")
    click.echo(f"  CAGR:           {metrics.cagr:.2f}%")
    click.echo(f"  Volatility:     {metrics.annualized_volatility:.2f}%")
    click.echo(f"  Max Drawdown:   {metrics.max_drawdown:.2f}%")
    click.echo(f"  Sharpe (daily): {metrics.sharpe_ratio:.4f}")
    click.echo(f"  Metrics saved: {metrics_path}")


@main.command("init-config")
@click.option(
    "--output", "-o",
    type=click.Path(),
    default="folio_basis.yaml",
    help="Path of the configuration file to write",
)
@click.option("--short-term-rate", type=str, default=None, help="Short-term capital gains rate (fraction)")
@click.option("--long-term-rate", type=str, default=None, help="Long-term capital gains rate (fraction)")
@click.option("--state-rate", type=str, default=None, help="State rate added to both rates (fraction)")
@click.option(
    "--strategy",
    type=click.Choice(["fifo", "lifo", "hifo"], case_sensitive=False),
    default="fifo",
    help="Default lot selection strategy",
)
def init_config(
    output: str,
    short_term_rate: Optional[str],
    long_term_rate: Optional[str],
    state_rate: Optional[str],
    strategy: str,
):
    """
    Write an engine configuration file with default settings.

    Rates not given on the command line use the 24% / 15% defaults with no
    state rate.
    """
    settings = TaxSettings.default()
    if short_term_rate:
        settings.short_term_rate = _parse_cli_decimal(short_term_rate, "short-term rate")
    if long_term_rate:
        settings.long_term_rate = _parse_cli_decimal(long_term_rate, "long-term rate")
    if state_rate:
        settings.state_rate = _parse_cli_decimal(state_rate, "state rate")

    try:
        # Re-run range validation on the overridden rates
        settings = TaxSettings(settings.short_term_rate, settings.long_term_rate, settings.state_rate)
    except LotValidationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    engine_config = EngineConfig(tax_settings=settings, lot_strategy=parse_strategy(strategy))
    write_config(engine_config, output)

    click.echo(f"Configuration written: {output}")


def _load_config(config_path: Optional[str]) -> EngineConfig:
    try:
        return load_engine_config(config_path)
    except ConfigurationError as e:
        click.echo(f"Error loading config: {e}", err=True)
        sys.exit(1)


def _output_dir(output_dir: Optional[str], engine_config: EngineConfig) -> Path:
    out_dir = Path(output_dir or engine_config.output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    return out_dir


def _parse_cli_date(value: Optional[str]) -> date:
    if value is None:
        return date.today()
    try:
        return parse_date(value, "date")
    except ConfigurationError:
        click.echo(f"Invalid date format: {value}. Use YYYY-MM-DD.", err=True)
        sys.exit(1)


def _parse_cli_decimal(value: str, field_name: str) -> Decimal:
    try:
        return Decimal(value)
    except InvalidOperation:
        click.echo(f"Invalid {field_name}: {value}", err=True)
        sys.exit(1)


def _parse_price_map(values: tuple[str, ...]) -> dict[str, Decimal]:
    prices = {}
    for value in values:
        symbol, sep, amount = value.partition("=")
        if not sep or not symbol.strip():
            click.echo(f"Invalid price: {value}. Use SYMBOL=PRICE.", err=True)
            sys.exit(1)
        prices[symbol.strip().upper()] = _parse_cli_decimal(amount.strip(), f"price for {symbol}")
    return prices


def _replay(
    transactions_path: str,
    symbol: Optional[str],
    strategy: LotSelectionStrategy,
) -> dict[str, LedgerResult]:
    try:
        transactions = load_transactions(transactions_path, symbol=symbol)
    except DataLoadError as e:
        click.echo(f"Error loading transactions: {e}", err=True)
        sys.exit(1)

    if not transactions:
        label = f" for {symbol.upper()}" if symbol else ""
        click.echo(f"No transactions found{label}", err=True)
        sys.exit(1)

    try:
        return build_ledgers(transactions, strategy=strategy)
    except ENGINE_ERRORS as e:
        click.echo(f"Error replaying transactions: {e}", err=True)
        sys.exit(1)


def _single_ledger(
    transactions_path: str,
    symbol: str,
    strategy: LotSelectionStrategy,
) -> LedgerResult:
    ledgers = _replay(transactions_path, symbol, strategy)
    return ledgers[symbol.upper().strip()]


if __name__ == "__main__":
    main()
