"""
Config loader: JSON or YAML file -> frozen dataclass tree, validated against JSON Schema.

Schema: config/holodeck_config.schema.json (bundled with the package).
Field names are snake_case; unknown fields are rejected at every level.

Usage:
    from config.loader import load_config
    cfg = load_config("holodeck.yaml")
    cfg.account.initial_balance   # -> 10000.0
    cfg.execution.slippage_model  # -> "fixed"
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
import yaml

from holodeck_core.errors import ConfigError

logger = logging.getLogger("holodeck.config")

SCHEMA_PATH = Path(__file__).resolve().parent / "holodeck_config.schema.json"

# ---------------------------------------------------------------------------
# Frozen dataclass tree mirroring the config file structure
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class InstrumentConfig:
    type: str = "FOREX"     # "FOREX" | "STOCKS" | "COMMODITIES" | "CRYPTO"
    symbol: str = "EUR/USD"
    description: str = ""
    margin_rate: float | None = None   # None -> catalog default for the asset class


@dataclass(frozen=True)
class AccountConfig:
    initial_balance: float = 10_000.0
    currency: str = "USD"
    leverage: float = 1.0
    max_drawdown_percent: float = 20.0
    max_position_size: float = 0.0     # lots; 0 -> 10% of initial balance
    max_open_positions: int = 1
    drawdown_action: str = "blow"      # "blow" | "block"

    @property
    def position_size_cap(self) -> float:
        if self.max_position_size > 0:
            return self.max_position_size
        return self.initial_balance * 0.10


@dataclass(frozen=True)
class ExecutionConfig:
    commission: bool = True
    commission_type: str | None = None   # None -> asset-class default
    commission_value: float | None = None
    slippage: bool = True
    slippage_model: str = "fixed"        # "fixed" | "depth_based"
    slippage_pips: float = 0.5
    latency: bool = False
    latency_ms: int = 0
    partial_fills: bool = False
    partial_fill_mode: str = "none"      # "none" | "depth_based" | "volume_adjusted"
    depth_levels: int = 1
    volume_alpha: float = 0.1

    @property
    def effective_latency_ms(self) -> int:
        return self.latency_ms if self.latency else 0

    @property
    def effective_partial_fill_mode(self) -> str:
        return self.partial_fill_mode if self.partial_fills else "none"


@dataclass(frozen=True)
class SpeedConfig:
    multiplier: float = 100.0


@dataclass(frozen=True)
class CSVConfig:
    filepath: str
    timestamp_format: str | None = None


@dataclass(frozen=True)
class OutputConfig:
    journal_path: str | None = None
    structured_logs: bool = False
    webhook_url: str = ""


@dataclass(frozen=True)
class HolodeckConfig:
    instrument: InstrumentConfig = field(default_factory=InstrumentConfig)
    account: AccountConfig = field(default_factory=AccountConfig)
    execution: ExecutionConfig = field(default_factory=ExecutionConfig)
    speed: SpeedConfig = field(default_factory=SpeedConfig)
    csv: CSVConfig | None = None
    output: OutputConfig = field(default_factory=OutputConfig)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _load_schema(schema_path: Path) -> dict[str, Any]:
    if not schema_path.exists():
        raise ConfigError("", f"Schema file not found: {schema_path}")
    with open(schema_path) as f:
        return json.load(f)


def _error_field(exc: jsonschema.ValidationError) -> str:
    """Dotted path of the field a schema error is about."""
    parts = [str(p) for p in exc.absolute_path]
    if exc.validator == "additionalProperties" and isinstance(exc.instance, dict):
        allowed = set(exc.schema.get("properties", {}))
        extra = sorted(k for k in exc.instance if k not in allowed)
        if extra:
            parts.append(extra[0])
    elif exc.validator == "required" and isinstance(exc.instance, dict):
        missing = [k for k in exc.validator_value if k not in exc.instance]
        if missing:
            parts.append(missing[0])
    return ".".join(parts)


def _validate_schema(data: Any, schema_path: Path) -> None:
    """Validate *data* against the JSON Schema; raise ConfigError naming the field."""
    schema = _load_schema(schema_path)
    try:
        jsonschema.validate(instance=data, schema=schema)
    except jsonschema.ValidationError as exc:
        raise ConfigError(_error_field(exc), exc.message) from exc


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def _build_config(data: dict[str, Any]) -> HolodeckConfig:
    """Convert a raw dict (already validated) into the frozen dataclass tree."""
    inst_raw = data["instrument"]
    acct_raw = data["account"]
    ex_raw = data.get("execution", {})
    speed_raw = data.get("speed", {})
    csv_raw = data.get("csv")
    out_raw = data.get("output", {})

    return HolodeckConfig(
        instrument=InstrumentConfig(
            type=inst_raw["type"],
            symbol=inst_raw["symbol"],
            description=inst_raw.get("description", ""),
            margin_rate=inst_raw.get("margin_rate"),
        ),
        account=AccountConfig(
            initial_balance=float(acct_raw["initial_balance"]),
            currency=acct_raw.get("currency", "USD"),
            leverage=float(acct_raw.get("leverage", 1.0)),
            max_drawdown_percent=float(acct_raw.get("max_drawdown_percent", 20.0)),
            max_position_size=float(acct_raw.get("max_position_size", 0.0)),
            max_open_positions=int(acct_raw.get("max_open_positions", 1)),
            drawdown_action=acct_raw.get("drawdown_action", "blow"),
        ),
        execution=ExecutionConfig(
            commission=ex_raw.get("commission", True),
            commission_type=ex_raw.get("commission_type"),
            commission_value=ex_raw.get("commission_value"),
            slippage=ex_raw.get("slippage", True),
            slippage_model=ex_raw.get("slippage_model", "fixed"),
            slippage_pips=float(ex_raw.get("slippage_pips", 0.5)),
            latency=ex_raw.get("latency", False),
            latency_ms=int(ex_raw.get("latency_ms", 0)),
            partial_fills=ex_raw.get("partial_fills", False),
            partial_fill_mode=ex_raw.get("partial_fill_mode", "none"),
            depth_levels=int(ex_raw.get("depth_levels", 1)),
            volume_alpha=float(ex_raw.get("volume_alpha", 0.1)),
        ),
        speed=SpeedConfig(multiplier=float(speed_raw.get("multiplier", 100.0))),
        csv=CSVConfig(
            filepath=csv_raw["filepath"],
            timestamp_format=csv_raw.get("timestamp_format"),
        ) if csv_raw is not None else None,
        output=OutputConfig(
            journal_path=out_raw.get("journal_path"),
            structured_logs=bool(out_raw.get("structured_logs", False)),
            webhook_url=out_raw.get("webhook_url", ""),
        ),
    )


def config_from_dict(data: Any, schema_path: str | Path | None = None) -> HolodeckConfig:
    """Validate a raw mapping and build the config tree.

    Raises
    ------
    ConfigError
        If *data* is not a mapping or violates the schema. ``field`` holds
        the dotted path of the offending field.
    """
    if not isinstance(data, dict):
        raise ConfigError("", f"config must be a mapping, got {type(data).__name__}")
    _validate_schema(data, Path(schema_path) if schema_path else SCHEMA_PATH)
    return _build_config(data)


def load_config(path: str | Path, schema_path: str | Path | None = None) -> HolodeckConfig:
    """Load and validate a config file.

    Parameters
    ----------
    path:
        ``.json``, ``.yaml`` or ``.yml`` file.
    schema_path:
        Override of the bundled JSON Schema (tests).

    Returns
    -------
    HolodeckConfig
        Frozen dataclass tree with every simulation parameter.

    Raises
    ------
    ConfigError
        If the file is missing, unparseable, or fails schema validation.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise ConfigError("", f"Config file not found: {config_path}")

    try:
        with open(config_path) as f:
            if config_path.suffix.lower() in (".yaml", ".yml"):
                data = yaml.safe_load(f)
            else:
                data = json.load(f)
    except json.JSONDecodeError as exc:
        raise ConfigError("", f"Config is not valid JSON: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError("", f"Config is not valid YAML: {exc}") from exc

    cfg = config_from_dict(data, schema_path)
    logger.info(
        "Loaded config %s: %s %s, balance %.2f %s",
        config_path.name,
        cfg.instrument.type,
        cfg.instrument.symbol,
        cfg.account.initial_balance,
        cfg.account.currency,
    )
    return cfg
