"""Tests for the trading engine orchestration.

Verifies the per-bar flow (detect → authorize → dispatch → delay tick),
the per-tick guard, closure bookkeeping, and the queued event loop.
Uses the in-memory PaperPlatform to avoid any real platform.
"""

import logging
from datetime import datetime, timedelta, timezone

import pytest

from bandbreak.broker.errors import PlatformError
from bandbreak.broker.models import CloseReason, OrderRequest
from bandbreak.broker.paper import PaperPlatform
from bandbreak.config import Config
from bandbreak.engine import TradingEngine
from bandbreak.main import build_engine
from bandbreak.models.events import BarClosed, Tick
from bandbreak.strategy.models import BOTTOM_LINE_BUY, TOP_LINE_SELL
from bandbreak.strategy.signal_state import NoSignal, PendingBottom, PendingTop, make_state


# ── Helpers ──────────────────────────────────────────────────────────────


def _make_config(**overrides) -> Config:
    """Build a Config with sensible test defaults."""
    defaults = dict(
        trade_pair="EUR_USD",
        quantity_lots=1.0,
        lot_size=100_000,
        stop_loss_pips=5.0,
        take_profit_pips=5.0,
        band_height_pips=15.0,
        breakout_mode="close",
        trend_check=False,
        autoclose_inversion=False,
        execution_delay=0,
        day_trade_only=False,
        daily_stop_loss_limit_enabled=False,
        daily_stop_loss_limit=3,
        single_position_only=False,
        session_end_utc=21,
        log_level="WARNING",
    )
    defaults.update(overrides)
    return Config(**defaults)


MONDAY = datetime(2025, 1, 6, 8, 0, tzinfo=timezone.utc)
TOP = 1.1020
BOTTOM = 1.1000


class Feed:
    """Pushes 15-minute bars into a PaperPlatform around a 20-pip band."""

    def __init__(self, platform: PaperPlatform, start: datetime = MONDAY) -> None:
        self.platform = platform
        self.time = start

    def bar(self, close: float, high=None, low=None, top=TOP, bottom=BOTTOM) -> None:
        self.platform.add_bar(
            self.time,
            high if high is not None else close + 0.0002,
            low if low is not None else close - 0.0002,
            close,
            top,
            bottom,
        )
        self.time += timedelta(minutes=15)

    def quiet(self, n: int = 1) -> None:
        for _ in range(n):
            self.bar(1.1010)

    def cross_top(self) -> None:
        """Close inside, then close above the top band."""
        self.bar(1.1010)
        self.bar(1.1025)

    def cross_bottom(self) -> None:
        self.bar(1.1010)
        self.bar(1.0995)


def _engine(**overrides) -> tuple[TradingEngine, PaperPlatform, Feed]:
    platform = PaperPlatform("EUR_USD", start_time=MONDAY)
    engine = TradingEngine(_make_config(**overrides), platform)
    engine.initialize()
    return engine, platform, Feed(platform)


def _open(platform: PaperPlatform, label: str, direction: str):
    return platform.submit_order(
        OrderRequest(platform.symbol, direction, 1000, label, 5, 5)
    ).position


# ── Bar cycle ────────────────────────────────────────────────────────────


class TestBarCycle:
    def test_immediate_sell_with_zero_delay(self):
        """Close crosses the top with delay 0 → sell on the same bar."""
        engine, platform, feed = _engine()
        feed.cross_top()

        result = engine.on_bar()

        assert result["action"] == "order_placed"
        assert result["crossing"] == "top"
        assert result["orders"][0]["label"] == TOP_LINE_SELL
        assert result["orders"][0]["direction"] == "sell"
        assert result["orders"][0]["volume"] == pytest.approx(100_000)
        assert isinstance(engine.strategy.state, NoSignal)
        assert engine.strategy.state.ticks_left == 0
        assert len(platform.submitted) == 1

    def test_immediate_buy_on_bottom_cross(self):
        engine, platform, feed = _engine()
        feed.cross_bottom()
        result = engine.on_bar()
        assert result["orders"][0]["label"] == BOTTOM_LINE_BUY
        assert platform.submitted[0].direction == "buy"

    def test_delay_two_dispatches_on_third_bar(self):
        """Crossing on bar N with delay 2 → order on bar N+2."""
        engine, platform, feed = _engine(execution_delay=2)
        feed.cross_top()

        first = engine.on_bar()  # N
        assert first["action"] == "skipped"
        assert first["reason"] == "waiting"
        assert first["ticks_left"] == 1

        feed.bar(1.1023)
        second = engine.on_bar()  # N+1
        assert second["action"] == "skipped"
        assert second["ticks_left"] == 0
        assert platform.submitted == []

        feed.bar(1.1015)
        third = engine.on_bar()  # N+2
        assert third["action"] == "order_placed"
        assert len(platform.submitted) == 1
        assert engine.strategy.state == NoSignal(2)

    def test_counter_held_without_signal(self):
        engine, _, feed = _engine(execution_delay=3)
        feed.quiet(2)
        for _ in range(4):
            feed.quiet()
            result = engine.on_bar()
            assert result["reason"] == "no_signal"
            assert result["ticks_left"] == 3

    def test_narrow_band_never_flags(self):
        engine, platform, feed = _engine()
        for close in [1.1005, 1.1030, 1.1006, 1.0980, 1.1040]:
            feed.bar(close, top=1.1010, bottom=1.1000)
        for _ in range(3):
            feed.bar(1.1050, top=1.1010, bottom=1.1000)
            feed.bar(1.0950, top=1.1010, bottom=1.1000)
            engine.on_bar()
        assert isinstance(engine.strategy.state, NoSignal)
        assert platform.submitted == []

    def test_trend_check_holds_signal_until_confirmed(self):
        engine, platform, feed = _engine(trend_check=True, execution_delay=0)
        feed.bar(1.1010, high=1.1012)
        feed.bar(1.1025, high=1.1030)  # new high: not confirmed
        assert engine.on_bar()["action"] == "skipped"
        assert isinstance(engine.strategy.state, PendingTop)

        feed.bar(1.1022, high=1.1026)  # high falls back
        result = engine.on_bar()
        assert result["action"] == "order_placed"
        assert platform.submitted[0].label == TOP_LINE_SELL

    def test_both_flags_pending_fire_in_same_bar(self):
        """A pending top plus a fresh bottom cross → two orders with delay 0."""
        engine, platform, feed = _engine(trend_check=True)
        feed.bar(1.1010, high=1.1012)
        feed.bar(1.1025, high=1.1030, low=1.0980)  # wide bar, closes above top
        engine.on_bar()  # top pending, rising high blocks it
        assert isinstance(engine.strategy.state, PendingTop)

        # High falls back and low rises while the close drops through the bottom
        feed.bar(1.0995, high=1.1020, low=1.0990)
        result = engine.on_bar()

        assert [o["label"] for o in result["orders"]] == [TOP_LINE_SELL, BOTTOM_LINE_BUY]
        assert [r.direction for r in platform.submitted] == ["sell", "buy"]
        assert isinstance(engine.strategy.state, NoSignal)

    def test_rejected_second_order_keeps_first_cleared(self, monkeypatch):
        """A rejected buy must not leave the already-sent sell pending."""
        engine, platform, feed = _engine()
        engine.strategy.apply(make_state(True, True, 0))
        submit = platform.submit_order

        def reject_buys(request):
            if request.direction == "buy":
                raise PlatformError("rejected")
            return submit(request)

        monkeypatch.setattr(platform, "submit_order", reject_buys)
        feed.quiet(2)
        engine.post(BarClosed())
        feed.quiet()
        engine.post(BarClosed())
        results = engine.drain()

        assert [r["action"] for r in results] == ["order_placed", "skipped"]
        assert [r.label for r in platform.submitted] == [TOP_LINE_SELL]
        assert isinstance(engine.strategy.state, PendingBottom)

    def test_platform_error_is_recorded_by_the_loop(self):
        engine, _, feed = _engine()
        feed.quiet(1)  # only one bar: price window unavailable
        engine.post(BarClosed())
        results = engine.drain()
        assert results[0]["action"] == "error"
        assert "completed bar" in results[0]["reason"]


# ── Risk gate in the bar cycle ───────────────────────────────────────────


class TestRiskInBarCycle:
    def test_daily_limit_scenario(self, caplog):
        """Three losing stop-losses → denied with one notice; next day resumes."""
        engine, platform, feed = _engine(
            daily_stop_loss_limit_enabled=True, daily_stop_loss_limit=3,
        )
        feed.quiet(2)
        for _ in range(3):
            position = _open(platform, TOP_LINE_SELL, "sell")
            platform.settle(position, CloseReason.STOP_LOSS, -5.0)
        engine.drain()
        assert engine.risk.state.consecutive_losses == 3

        with caplog.at_level(logging.WARNING, logger="bandbreak"):
            feed.cross_top()
            denied = engine.on_bar()
            feed.quiet()
            engine.on_bar()
        assert denied["action"] == "denied"
        assert denied["reason"] == "daily_stop_loss_limit"
        notices = [r for r in caplog.records if "stop-loss limit reached" in r.getMessage()]
        assert len(notices) == 1

        # Next calendar day
        feed.time = MONDAY + timedelta(days=1)
        feed.quiet(2)
        resumed = engine.on_bar()
        assert resumed["action"] in ("order_placed", "skipped")
        assert engine.risk.state.consecutive_losses == 0
        assert not engine.risk.state.limit_message_sent

    def test_new_day_resets_delay_counter(self):
        engine, _, feed = _engine(execution_delay=3, daily_stop_loss_limit_enabled=True)
        feed.cross_top()
        engine.on_bar()
        feed.quiet()
        engine.on_bar()
        assert engine.strategy.state.ticks_left == 1

        feed.time = MONDAY + timedelta(days=1)
        feed.quiet()
        engine.on_bar()
        # reset to 3 by the day roll, then ticked once after dispatch
        assert engine.strategy.state == PendingTop(2)

    def test_single_position_blocks_both_directions(self):
        engine, platform, feed = _engine(single_position_only=True)
        _open(platform, "manual", "buy")

        feed.cross_top()
        assert engine.on_bar()["reason"] == "position_open"
        feed.cross_bottom()
        assert engine.on_bar()["reason"] == "position_open"
        assert platform.submitted[1:] == []
        assert engine.strategy.state.top_pending and engine.strategy.state.bottom_pending

    def test_single_position_after_own_order(self):
        engine, platform, feed = _engine(single_position_only=True)
        feed.cross_top()
        assert engine.on_bar()["action"] == "order_placed"
        feed.cross_bottom()
        assert engine.on_bar()["action"] == "denied"


# ── Tick ─────────────────────────────────────────────────────────────────


class TestTick:
    def test_day_trade_session_scenario(self):
        """Closing window → tagged positions closed once, re-entry blocked."""
        engine, platform, feed = _engine(day_trade_only=True)
        feed.quiet(2)
        short = _open(platform, TOP_LINE_SELL, "sell")
        long = _open(platform, BOTTOM_LINE_BUY, "buy")
        manual = _open(platform, "manual", "buy")

        platform.set_session_time_till_close(timedelta(minutes=4))
        first = engine.on_tick()
        second = engine.on_tick()

        assert first["action"] == "positions_closed"
        assert sorted(first["closed"]) == sorted([short.position_id, long.position_id])
        assert second["action"] == "none"
        assert platform.find_positions("EUR_USD") == [manual]
        assert engine.risk.state.session_closing

        feed.cross_top()
        assert engine.on_bar()["reason"] == "session_closing"

        platform.set_session_time_till_close(timedelta(hours=20))
        assert engine.on_tick()["session_closing"] is False
        feed.quiet()
        assert engine.on_bar()["action"] == "order_placed"

    def test_liquidation_ignores_inversion_setting(self):
        engine, platform, feed = _engine(day_trade_only=True, autoclose_inversion=True)
        feed.quiet(2)
        _open(platform, TOP_LINE_SELL, "sell")
        platform.set_current_bar(high=1.1012, low=1.1008, top=TOP, bottom=BOTTOM)
        platform.set_session_time_till_close(timedelta(minutes=2))
        assert engine.on_tick()["action"] == "positions_closed"

    def test_inversion_closure_when_enabled(self):
        engine, platform, feed = _engine(autoclose_inversion=True)
        feed.quiet(2)
        short = _open(platform, TOP_LINE_SELL, "sell")
        platform.set_current_bar(high=1.1024, low=1.1010, top=TOP, bottom=BOTTOM)
        result = engine.on_tick()
        assert result["closed"] == [short.position_id]

    def test_inversion_disabled_keeps_position(self):
        engine, platform, feed = _engine(autoclose_inversion=False)
        feed.quiet(2)
        _open(platform, TOP_LINE_SELL, "sell")
        platform.set_current_bar(high=1.1024, low=1.1010, top=TOP, bottom=BOTTOM)
        assert engine.on_tick()["action"] == "none"
        assert len(platform.find_positions("EUR_USD")) == 1

    def test_session_lookup_failure_is_not_fatal(self, caplog):
        engine, platform, _ = _engine(day_trade_only=True)
        platform.fail_session_lookup()
        with caplog.at_level(logging.WARNING, logger="bandbreak"):
            result = engine.on_tick()
        assert result["session_closing"] is False
        assert "Session time unavailable" in caplog.text


# ── Closures and the event queue ─────────────────────────────────────────


class TestEventQueue:
    def test_closures_are_queued_not_applied_inline(self):
        engine, platform, _ = _engine(daily_stop_loss_limit_enabled=True)
        position = _open(platform, TOP_LINE_SELL, "sell")
        platform.settle(position, CloseReason.STOP_LOSS, -5.0)
        assert engine.risk.state.consecutive_losses == 0

        results = engine.drain()
        assert results[0]["action"] == "position_closed"
        assert results[0]["reason"] == "stop_loss"
        assert engine.risk.state.consecutive_losses == 1

    def test_profitable_close_resets_streak(self):
        engine, platform, _ = _engine()
        for profit in (-5.0, -5.0, 8.0):
            position = _open(platform, TOP_LINE_SELL, "sell")
            platform.settle(position, CloseReason.STOP_LOSS if profit < 0 else CloseReason.TAKE_PROFIT, profit)
        results = engine.drain()
        assert [r["consecutive_losses"] for r in results] == [1, 2, 0]

    def test_guard_closure_is_handled_after_the_tick(self):
        engine, platform, feed = _engine(autoclose_inversion=True)
        feed.quiet(2)
        _open(platform, TOP_LINE_SELL, "sell")
        platform.set_current_bar(high=1.1024, low=1.1010, top=TOP, bottom=BOTTOM)
        engine.post(Tick())
        results = engine.drain()
        assert [r["action"] for r in results] == ["positions_closed", "position_closed"]

    @pytest.mark.asyncio
    async def test_run_processes_events_in_order(self):
        engine, platform, feed = _engine()
        feed.cross_top()
        engine.post(BarClosed())
        engine.post(Tick())
        engine.stop()

        results = await engine.run()

        assert [r["action"] for r in results] == ["order_placed", "none"]
        assert len(platform.submitted) == 1

    @pytest.mark.asyncio
    async def test_run_stops_after_max_events(self):
        engine, _, feed = _engine()
        feed.quiet(2)
        for _ in range(3):
            engine.post(BarClosed())
        results = await engine.run(max_events=2)
        assert len(results) == 2

    def test_unknown_event_type(self):
        engine, _, _ = _engine()
        with pytest.raises(TypeError, match="Unsupported"):
            engine.handle("bar")


class TestBuildEngine:
    def test_build_engine_subscribes_to_closures(self):
        platform = PaperPlatform("EUR_USD", start_time=MONDAY)
        engine = build_engine(_make_config(), platform)
        position = _open(platform, TOP_LINE_SELL, "sell")
        platform.close_position(position)
        assert engine.drain()[0]["action"] == "position_closed"

    def test_symbol_mismatch_warns(self, caplog):
        platform = PaperPlatform("GBP_USD", start_time=MONDAY)
        with caplog.at_level(logging.WARNING, logger="bandbreak"):
            build_engine(_make_config(trade_pair="EUR_USD"), platform)
        assert "differs from platform symbol" in caplog.text
