"""
Configuration loading and management for folio-basis.

This module handles loading engine configuration from YAML files, applying
environment overrides, and validating tax rates and other parameters.
"""

import os
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import dotenv_values

from folio_basis.models import (
    EngineConfig,
    LotSelectionStrategy,
    LotValidationError,
    TaxSettings,
)


# Environment variables that override file settings
ENV_SHORT_TERM_RATE = "FOLIO_SHORT_TERM_RATE"
ENV_LONG_TERM_RATE = "FOLIO_LONG_TERM_RATE"
ENV_STATE_RATE = "FOLIO_STATE_RATE"
ENV_LOT_STRATEGY = "FOLIO_LOT_STRATEGY"

DEFAULT_ENV_FILE = Path.cwd() / ".env"


class ConfigurationError(Exception):
    """Raised when configuration is invalid or cannot be loaded."""
    pass


def load_engine_config(
    config_path: Optional[str | Path] = None,
    env_file: Optional[str | Path] = None,
) -> EngineConfig:
    """
    Load engine configuration.

    Sources are applied in this order (later sources override earlier):
    1. Built-in defaults
    2. YAML configuration file (if given)
    3. .env file (defaults to .env in the working directory)
    4. Environment variables

    Args:
        config_path: Path to the YAML configuration file
        env_file: Path to a .env file

    Returns:
        EngineConfig with validated settings

    Raises:
        ConfigurationError: If the file cannot be loaded or is invalid
    """
    raw: dict[str, Any] = {}

    if config_path is not None:
        config_path = Path(config_path)
        if not config_path.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        try:
            with open(config_path, "r") as f:
                raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in configuration file: {e}")

        if not isinstance(raw, dict):
            raise ConfigurationError("Configuration file must contain a mapping")

    raw = _apply_env_overrides(raw, env_file)
    return _parse_engine_config(raw)


def _apply_env_overrides(raw: dict[str, Any], env_file: Optional[str | Path]) -> dict[str, Any]:
    """
    Overlay .env and process environment values on the raw configuration.

    Args:
        raw: Dictionary loaded from YAML
        env_file: Optional .env path

    Returns:
        New dictionary with overrides applied
    """
    merged = dict(raw)
    tax = dict(merged.get("tax") or {})

    env_path = Path(env_file) if env_file else DEFAULT_ENV_FILE
    sources = []
    if env_path.exists():
        sources.append(dotenv_values(env_path))
    sources.append(os.environ)

    for source in sources:
        if source.get(ENV_SHORT_TERM_RATE):
            tax["short_term_rate"] = source[ENV_SHORT_TERM_RATE]
        if source.get(ENV_LONG_TERM_RATE):
            tax["long_term_rate"] = source[ENV_LONG_TERM_RATE]
        if source.get(ENV_STATE_RATE):
            tax["state_rate"] = source[ENV_STATE_RATE]
        if source.get(ENV_LOT_STRATEGY):
            merged["lot_strategy"] = source[ENV_LOT_STRATEGY]

    if tax:
        merged["tax"] = tax
    return merged


def _parse_engine_config(raw: dict[str, Any]) -> EngineConfig:
    """
    Parse and validate raw configuration dictionary into EngineConfig.

    Args:
        raw: Dictionary of settings

    Returns:
        Validated EngineConfig

    Raises:
        ConfigurationError: If any field is invalid
    """
    defaults = TaxSettings.default()
    tax = raw.get("tax") or {}
    if not isinstance(tax, dict):
        raise ConfigurationError("tax must be a mapping of rates")

    short_term_rate = _parse_decimal(
        tax.get("short_term_rate", defaults.short_term_rate),
        "tax.short_term_rate",
        min_val=Decimal("0"),
        max_val=Decimal("1"),
    )
    long_term_rate = _parse_decimal(
        tax.get("long_term_rate", defaults.long_term_rate),
        "tax.long_term_rate",
        min_val=Decimal("0"),
        max_val=Decimal("1"),
    )
    state_rate = _parse_decimal(
        tax.get("state_rate", defaults.state_rate),
        "tax.state_rate",
        min_val=Decimal("0"),
        max_val=Decimal("1"),
    )

    lot_strategy = parse_strategy(raw.get("lot_strategy", LotSelectionStrategy.FIFO.value))
    if lot_strategy == LotSelectionStrategy.SPECIFIC:
        raise ConfigurationError("lot_strategy cannot default to specific identification")

    try:
        aging_horizon_days = int(raw.get("aging_horizon_days", 30))
    except (TypeError, ValueError):
        raise ConfigurationError(
            f"Invalid integer value for aging_horizon_days: {raw.get('aging_horizon_days')}"
        )
    if aging_horizon_days < 0:
        raise ConfigurationError(
            f"aging_horizon_days must be >= 0, got {aging_horizon_days}"
        )

    risk_free_rate = _parse_decimal(
        raw.get("risk_free_rate", "0.04"),
        "risk_free_rate",
        min_val=Decimal("0"),
        max_val=Decimal("1"),
    )

    output_dir = str(raw.get("output_dir", "output"))

    try:
        tax_settings = TaxSettings(
            short_term_rate=short_term_rate,
            long_term_rate=long_term_rate,
            state_rate=state_rate,
        )
    except LotValidationError as e:
        raise ConfigurationError(str(e))

    return EngineConfig(
        tax_settings=tax_settings,
        lot_strategy=lot_strategy,
        aging_horizon_days=aging_horizon_days,
        risk_free_rate=risk_free_rate,
        output_dir=output_dir,
    )


def parse_strategy(value: Any) -> LotSelectionStrategy:
    """
    Parse a lot selection strategy name (case-insensitive).

    Raises:
        ConfigurationError: If the name is not a known strategy
    """
    if isinstance(value, LotSelectionStrategy):
        return value
    try:
        return LotSelectionStrategy(str(value).strip().lower())
    except ValueError:
        valid = ", ".join(s.value for s in LotSelectionStrategy)
        raise ConfigurationError(f"Invalid lot_strategy: {value}. Expected one of: {valid}")


def parse_date(value: Any, field_name: str) -> date:
    """
    Parse a YYYY-MM-DD date.

    Raises:
        ConfigurationError: If the date cannot be parsed
    """
    if isinstance(value, date):
        return value

    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ConfigurationError(
            f"Invalid date format for {field_name}: {value}. Expected YYYY-MM-DD"
        )


def _parse_decimal(
    value: Any,
    field_name: str,
    min_val: Decimal | None = None,
    max_val: Decimal | None = None,
) -> Decimal:
    """
    Parse a decimal value with optional range validation.

    Args:
        value: The value to parse
        field_name: Name of the field for error messages
        min_val: Minimum allowed value (inclusive)
        max_val: Maximum allowed value (inclusive)

    Returns:
        Parsed Decimal

    Raises:
        ConfigurationError: If the value is invalid or out of range
    """
    try:
        decimal_value = Decimal(str(value))
    except Exception:
        raise ConfigurationError(f"Invalid decimal value for {field_name}: {value}")

    if not decimal_value.is_finite():
        raise ConfigurationError(f"Invalid decimal value for {field_name}: {value}")

    if min_val is not None and decimal_value < min_val:
        raise ConfigurationError(
            f"{field_name} must be >= {min_val}, got {decimal_value}"
        )

    if max_val is not None and decimal_value > max_val:
        raise ConfigurationError(
            f"{field_name} must be <= {max_val}, got {decimal_value}"
        )

    return decimal_value


def write_config(config: EngineConfig, output_path: str | Path) -> None:
    """
    Write an EngineConfig to a YAML file.

    Args:
        config: The configuration to write
        output_path: Path to write the YAML file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    config_dict = {
        "tax": {
            "short_term_rate": str(config.tax_settings.short_term_rate),
            "long_term_rate": str(config.tax_settings.long_term_rate),
            "state_rate": str(config.tax_settings.state_rate),
        },
        "lot_strategy": config.lot_strategy.value,
        "aging_horizon_days": config.aging_horizon_days,
        "risk_free_rate": str(config.risk_free_rate),
        "output_dir": config.output_dir,
    }

    with open(output_path, "w") as f:
        yaml.dump(config_dict, f, default_flow_style=False, sort_keys=False)
