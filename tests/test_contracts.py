"""Tests for core contracts and the instrument catalog."""

from datetime import datetime, timedelta, timezone

import pytest

from holodeck_core.contracts import (
    AssetClass,
    DepthLevel,
    Order,
    OrderKind,
    OrderStatus,
    Side,
    Tick,
    TimeInForce,
)
from holodeck_core.errors import ErrorKind, UnsupportedInstrumentError
from holodeck_core.instruments import make_instrument, parse_asset_class

TS = datetime(2024, 1, 2, 10, 0, tzinfo=timezone.utc)


class TestTick:
    def test_naive_timestamp_becomes_utc(self) -> None:
        tick = Tick(timestamp=datetime(2024, 1, 2, 10, 0), bid=1.1, ask=1.1002)
        assert tick.timestamp.tzinfo == timezone.utc

    def test_epoch_timestamp(self) -> None:
        tick = Tick(timestamp=0, bid=1.0, ask=1.0)
        assert tick.timestamp == datetime(1970, 1, 1, tzinfo=timezone.utc)

    def test_offset_timestamp_converted_to_utc(self) -> None:
        ts = datetime(2024, 1, 2, 12, 0, tzinfo=timezone(timedelta(hours=2)))
        tick = Tick(timestamp=ts, bid=1.0, ask=1.0)
        assert tick.timestamp == TS

    def test_ask_below_bid_rejected(self) -> None:
        with pytest.raises(ValueError, match="below bid"):
            Tick(timestamp=TS, bid=1.1, ask=1.09)

    def test_prices_and_depth_per_side(self) -> None:
        tick = Tick(
            timestamp=TS, bid=1.0999, ask=1.1001,
            bid_depth=[(1.0999, 3)], ask_depth=[(1.1001, 2), (1.1002, 5)],
        )
        assert tick.price_for(Side.BUY) == 1.1001
        assert tick.price_for(Side.SELL) == 1.0999
        assert tick.depth_for(Side.BUY)[1] == DepthLevel(1.1002, 5.0)
        assert tick.depth_for(Side.SELL) == (DepthLevel(1.0999, 3.0),)
        assert tick.spread == pytest.approx(0.0002)
        assert tick.mid == pytest.approx(1.1)


class TestOrder:
    def test_strings_coerced_to_enums(self) -> None:
        order = Order(side="buy", size=1.0, kind="limit", limit_price=1.1, time_in_force="day")
        assert order.side == Side.BUY
        assert order.kind == OrderKind.LIMIT
        assert order.time_in_force == TimeInForce.DAY

    def test_unknown_kind_kept_for_validation(self) -> None:
        order = Order(side=Side.BUY, size=1.0, kind="STOP")
        assert order.kind == "STOP"

    def test_constructors(self) -> None:
        limit = Order.limit("SELL", 2.0, 1.2)
        assert limit.is_limit and limit.limit_price == 1.2
        assert limit.status == OrderStatus.NEW and limit.is_active
        hold = Order.hold()
        assert hold.side == Side.HOLD and hold.size == 0.0

    def test_remaining(self) -> None:
        order = Order.market(Side.BUY, 5.0)
        order.filled_size = 2.0
        assert order.remaining == 3.0


class TestInstrumentCatalog:
    def test_forex_defaults(self) -> None:
        inst = make_instrument("FOREX", "EUR/USD")
        assert inst.asset_class == AssetClass.FOREX
        assert inst.decimal_places == 5
        assert inst.contract_size == 100_000
        assert inst.margin_rate == 0.01
        assert inst.description == "Foreign Exchange: EUR/USD"

    @pytest.mark.parametrize(
        "asset_class, contract, min_lot",
        [("STOCKS", 1, 1.0), ("COMMODITIES", 100, 0.1), ("CRYPTO", 1, 0.001)],
    )
    def test_other_classes(self, asset_class: str, contract: float, min_lot: float) -> None:
        inst = make_instrument(asset_class, "X")
        assert inst.contract_size == contract
        assert inst.min_lot == min_lot

    def test_override_margin_rate(self) -> None:
        assert make_instrument("FOREX", "EUR/USD", margin_rate=0.05).margin_rate == 0.05
        assert make_instrument("FOREX", "EUR/USD", margin_rate=None).margin_rate == 0.01

    def test_unknown_override_is_type_error(self) -> None:
        with pytest.raises(TypeError):
            make_instrument("FOREX", "EUR/USD", bogus=1)

    def test_unknown_asset_class(self) -> None:
        with pytest.raises(UnsupportedInstrumentError) as info:
            parse_asset_class("BONDS")
        assert info.value.kind == ErrorKind.UNSUPPORTED_INSTRUMENT

    def test_lowercase_asset_class(self) -> None:
        assert parse_asset_class(" crypto ") == AssetClass.CRYPTO

    def test_price_and_lot_helpers(self) -> None:
        inst = make_instrument("FOREX", "EUR/USD")
        assert inst.round_price(1.100004) == 1.1
        assert inst.format_price(1.1) == "1.10000"
        assert inst.normalize_lot(1.239) == 1.23
        assert inst.is_valid_volume(0.01)
        assert not inst.is_valid_volume(0.001)
        assert inst.notional(1.1, 1.0) == pytest.approx(110_000)
        assert inst.required_margin(1.1, 1.0) == pytest.approx(1_100)

    def test_categories_and_session(self) -> None:
        stocks = make_instrument("STOCKS", "AAPL")
        assert stocks.volatility_category == "HIGH"
        assert stocks.liquidity_category == "MEDIUM"
        assert stocks.session_close(datetime(2024, 1, 2, 14, 0, tzinfo=timezone.utc)) == datetime(
            2024, 1, 2, 21, 0, tzinfo=timezone.utc
        )
        assert stocks.session_close(datetime(2024, 1, 2, 22, 0, tzinfo=timezone.utc)) == datetime(
            2024, 1, 3, 21, 0, tzinfo=timezone.utc
        )
        assert make_instrument("CRYPTO", "BTC/USD").volatility_category == "VERY_HIGH"
