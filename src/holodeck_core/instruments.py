"""
Instrument catalog: per-asset-class market parameters.

    from holodeck_core.instruments import make_instrument
    eurusd = make_instrument("FOREX", "EUR/USD")
    eurusd.contract_size  # -> 100000
"""

from __future__ import annotations

from typing import Any

from holodeck_core.contracts import AssetClass, Instrument
from holodeck_core.errors import UnsupportedInstrumentError

_DEFAULTS: dict[AssetClass, dict[str, Any]] = {
    AssetClass.FOREX: dict(
        decimal_places=5,
        pip_value=0.0001,
        tick_size=0.00001,
        contract_size=100_000,
        min_lot=0.01,
        min_volume=0.01,
        max_volume=1000.0,
        typical_spread=0.0002,
        volatility=0.10,
        margin_rate=0.01,
        open_hour=0,
        close_hour=24,
        average_volume=1_000_000,
    ),
    AssetClass.STOCKS: dict(
        decimal_places=2,
        pip_value=0.01,
        tick_size=0.01,
        contract_size=1,
        min_lot=1.0,
        min_volume=1.0,
        max_volume=10_000.0,
        typical_spread=0.01,
        volatility=0.25,
        margin_rate=0.25,
        open_hour=13,
        close_hour=21,
        average_volume=1_000_000,
    ),
    AssetClass.COMMODITIES: dict(
        decimal_places=3,
        pip_value=0.01,
        tick_size=0.01,
        contract_size=100,
        min_lot=0.1,
        min_volume=0.1,
        max_volume=100.0,
        typical_spread=0.02,
        volatility=0.18,
        margin_rate=0.05,
        open_hour=0,
        close_hour=24,
        average_volume=500_000,
    ),
    AssetClass.CRYPTO: dict(
        decimal_places=8,
        pip_value=0.00000001,
        tick_size=0.00000001,
        contract_size=1,
        min_lot=0.001,
        min_volume=0.001,
        max_volume=1000.0,
        typical_spread=0.0001,
        volatility=0.50,
        margin_rate=0.5,
        open_hour=0,
        close_hour=24,
        average_volume=1_000_000,
    ),
}

_LABELS = {
    AssetClass.FOREX: "Foreign Exchange",
    AssetClass.STOCKS: "Stock",
    AssetClass.COMMODITIES: "Commodity",
    AssetClass.CRYPTO: "Cryptocurrency",
}


def parse_asset_class(value: AssetClass | str) -> AssetClass:
    """Map a config string onto AssetClass. Raises UnsupportedInstrumentError."""
    if isinstance(value, AssetClass):
        return value
    try:
        return AssetClass(str(value).strip().upper())
    except ValueError:
        raise UnsupportedInstrumentError(f"unknown asset class: {value!r}") from None


def make_instrument(
    asset_class: AssetClass | str,
    symbol: str,
    *,
    description: str = "",
    **overrides: Any,
) -> Instrument:
    """Build an Instrument from the catalog defaults for *asset_class*.

    Keyword overrides replace individual catalog values (e.g. ``margin_rate``).
    """
    ac = parse_asset_class(asset_class)
    params = dict(_DEFAULTS[ac])
    unknown = set(overrides) - set(params)
    if unknown:
        raise TypeError(f"unknown instrument parameters: {sorted(unknown)}")
    params.update({k: v for k, v in overrides.items() if v is not None})
    return Instrument(
        symbol=symbol,
        asset_class=ac,
        description=description or f"{_LABELS[ac]}: {symbol}",
        **params,
    )
