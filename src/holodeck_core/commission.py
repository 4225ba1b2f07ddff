"""
Commission calculator: one formula per asset class behind a dispatch façade.

| Asset class  | Formula                                      |
|--------------|----------------------------------------------|
| FOREX        | (price × lots × contract) / 1e6 × $25        |
| STOCKS       | shares × $0.01                               |
| COMMODITIES  | lots × $5.00                                 |
| CRYPTO       | price × amount × 0.2%                        |

Calculators are pure. Running totals live in CommissionStats records that
the caller passes in, so one calculator can serve several scenarios.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from holodeck_core.contracts import AssetClass, Instrument
from holodeck_core.errors import ConfigError
from holodeck_core.instruments import parse_asset_class


@dataclass
class CommissionStats:
    """Cumulative commission totals for one asset class."""

    total_commission: float = 0.0
    count: int = 0
    total_basis: float = 0.0  # notional for FOREX/CRYPTO, shares or lots otherwise

    def record(self, commission: float, basis: float) -> None:
        self.total_commission += commission
        self.count += 1
        self.total_basis += basis

    @property
    def average_commission(self) -> float:
        return self.total_commission / self.count if self.count else 0.0

    @property
    def effective_rate_pct(self) -> float:
        return self.total_commission / self.total_basis * 100 if self.total_basis else 0.0


@dataclass
class CommissionLedger:
    """Per-asset-class CommissionStats, owned by the driver."""

    by_asset_class: dict[str, CommissionStats] = field(default_factory=dict)

    def record(self, asset_class: AssetClass, commission: float, basis: float) -> None:
        stats = self.by_asset_class.setdefault(asset_class.value, CommissionStats())
        stats.record(commission, basis)

    def totals(self) -> dict[str, float]:
        return {k: v.total_commission for k, v in self.by_asset_class.items()}


class CommissionCalculator(Protocol):
    """compute(price, size) -> commission >= 0; basis(...) feeds the statistics."""

    commission_type: str

    def compute(self, price: float, size: float) -> float: ...

    def basis(self, price: float, size: float) -> float: ...


@dataclass(frozen=True)
class PerMillionCommission:
    """FOREX: flat dollar rate per million of notional."""

    rate_per_million: float = 25.0
    contract_size: float = 100_000
    commission_type: str = "per_million"

    def basis(self, price: float, size: float) -> float:
        return abs(price * size * self.contract_size)

    def compute(self, price: float, size: float) -> float:
        if size == 0:
            return 0.0
        return self.basis(price, size) / 1_000_000.0 * self.rate_per_million


@dataclass(frozen=True)
class PerShareCommission:
    """STOCKS: fixed fee per share."""

    per_share: float = 0.01
    contract_size: float = 1
    commission_type: str = "per_share"

    def basis(self, price: float, size: float) -> float:
        return abs(size * self.contract_size)

    def compute(self, price: float, size: float) -> float:
        return self.basis(price, size) * self.per_share


@dataclass(frozen=True)
class PerLotCommission:
    """COMMODITIES: fixed fee per lot."""

    per_lot: float = 5.0
    commission_type: str = "per_lot"

    def basis(self, price: float, size: float) -> float:
        return abs(size)

    def compute(self, price: float, size: float) -> float:
        return self.basis(price, size) * self.per_lot


@dataclass(frozen=True)
class PercentageCommission:
    """CRYPTO: percent of notional. ``rate_pct`` is in percent (0.2 = 0.2%)."""

    rate_pct: float = 0.2
    contract_size: float = 1
    commission_type: str = "percentage"

    def basis(self, price: float, size: float) -> float:
        return abs(price * size * self.contract_size)

    def compute(self, price: float, size: float) -> float:
        return self.basis(price, size) * self.rate_pct / 100.0


@dataclass(frozen=True)
class ZeroCommission:
    """Used when commission is disabled in the execution config."""

    commission_type: str = "none"

    def basis(self, price: float, size: float) -> float:
        return 0.0

    def compute(self, price: float, size: float) -> float:
        return 0.0


_DEFAULT_TYPE = {
    AssetClass.FOREX: "per_million",
    AssetClass.STOCKS: "per_share",
    AssetClass.COMMODITIES: "per_lot",
    AssetClass.CRYPTO: "percentage",
}

COMMISSION_TYPES = ("per_million", "per_share", "per_lot", "percentage")


def commission_for(
    instrument: Instrument,
    *,
    enabled: bool = True,
    commission_type: str | None = None,
    commission_value: float | None = None,
) -> CommissionCalculator:
    """Dispatch on the instrument's asset class.

    Parameters
    ----------
    instrument:
        The simulated instrument. Its asset class picks the default formula
        and its contract size scales notional-based formulas.
    enabled:
        When False a ZeroCommission is returned.
    commission_type:
        Optional override of the formula (``per_million``, ``per_share``,
        ``per_lot``, ``percentage``).
    commission_value:
        Optional override of the formula's rate.

    Raises
    ------
    UnsupportedInstrumentError
        If the asset class is not recognised.
    ConfigError
        If *commission_type* is not one of the known formulas.
    """
    asset_class = parse_asset_class(instrument.asset_class)
    if not enabled:
        return ZeroCommission()

    ctype = commission_type or _DEFAULT_TYPE[asset_class]
    contract = instrument.contract_size
    if ctype == "per_million":
        calc: CommissionCalculator = PerMillionCommission(contract_size=contract)
        if commission_value is not None:
            calc = PerMillionCommission(rate_per_million=commission_value, contract_size=contract)
    elif ctype == "per_share":
        calc = PerShareCommission(contract_size=contract)
        if commission_value is not None:
            calc = PerShareCommission(per_share=commission_value, contract_size=contract)
    elif ctype == "per_lot":
        calc = PerLotCommission() if commission_value is None else PerLotCommission(per_lot=commission_value)
    elif ctype == "percentage":
        calc = PercentageCommission(contract_size=contract)
        if commission_value is not None:
            calc = PercentageCommission(rate_pct=commission_value, contract_size=contract)
    else:
        raise ConfigError("execution.commission_type", f"unknown commission type {ctype!r}")
    return calc
