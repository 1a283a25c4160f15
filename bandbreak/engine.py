"""BandBreak — Trading engine (event loop).

Connects strategy, risk gate, dispatcher and inversion guard to a host
platform.  Bars, ticks and position closures are delivered through a
single queue and handled one at a time, so strategy and risk state are
never touched concurrently.
"""

import asyncio
import logging
from datetime import date, datetime
from typing import Optional

from bandbreak.broker.models import PositionClosedEvent
from bandbreak.broker.platform import TradingPlatform
from bandbreak.config import Config
from bandbreak.models.events import BarClosed, EngineEvent, Shutdown, Tick
from bandbreak.risk.inversion_guard import InversionGuard
from bandbreak.risk.position_sizer import quantity_to_units
from bandbreak.risk.risk_gate import RiskGate
from bandbreak.strategy import signal_state
from bandbreak.strategy.band_break import BandBreakStrategy
from bandbreak.strategy.dispatch import OrderDispatcher
from bandbreak.strategy.models import BarSnapshot

logger = logging.getLogger("bandbreak")


class TradingEngine:
    """Handles one event at a time against a ``TradingPlatform``.

    Args:
        config: Strategy configuration.
        platform: The host platform (or a compatible duck-type / paper one).
        strategy: Optional pre-built strategy; built from *config* if None.
    """

    def __init__(
        self,
        config: Config,
        platform: TradingPlatform,
        strategy: Optional[BandBreakStrategy] = None,
    ) -> None:
        self._config = config
        self._platform = platform
        self._strategy = strategy or BandBreakStrategy(config, pip_size=platform.pip_size)
        self._risk = RiskGate(config, platform, on_new_day=self._on_new_day)
        self._dispatcher = OrderDispatcher(config, platform)
        self._guard = InversionGuard(platform)
        self._volume = quantity_to_units(config.quantity_lots, config.lot_size)
        self._queue: asyncio.Queue = asyncio.Queue()
        self._running: bool = False
        self._subscribed: bool = False
        self._bar_count: int = 0

    @property
    def strategy(self) -> BandBreakStrategy:
        return self._strategy

    @property
    def risk(self) -> RiskGate:
        return self._risk

    @property
    def volume(self) -> float:
        """Order volume in units, from the configured lot quantity."""
        return self._volume

    # ── Lifecycle ────────────────────────────────────────────────────────

    def initialize(self) -> None:
        """Subscribe to position closures and mark the engine running."""
        if not self._subscribed:
            self._platform.on_position_closed(self.post)
            self._subscribed = True
        self._running = True
        logger.info(
            "BandBreak started on %s (mode=%s, delay=%d, band>=%.1f pips)",
            self._platform.symbol,
            self._config.breakout_mode,
            self._config.execution_delay,
            self._config.band_height_pips,
        )

    def stop(self) -> None:
        """Signal the engine to stop after the current event."""
        self._running = False
        self.post(Shutdown())

    def post(self, event: EngineEvent) -> None:
        """Queue *event* behind everything already delivered."""
        self._queue.put_nowait(event)

    # ── Event loop ───────────────────────────────────────────────────────

    async def run(self, max_events: int = 0) -> list[dict]:
        """Process queued events until stopped.

        Args:
            max_events: Stop after this many events (0 = unlimited).

        Returns:
            List of per-event result dicts.
        """
        if not self._running:
            self.initialize()
        results: list[dict] = []
        handled = 0

        while self._running:
            event = await self._queue.get()
            if isinstance(event, Shutdown):
                break
            results.append(self._handle_logged(event))
            handled += 1
            if max_events > 0 and handled >= max_events:
                break

        logger.info("BandBreak stopped after %d event(s)", handled)
        return results

    def drain(self) -> list[dict]:
        """Handle every queued event, including ones posted meanwhile."""
        results: list[dict] = []
        while not self._queue.empty():
            event = self._queue.get_nowait()
            if isinstance(event, Shutdown):
                self._running = False
                break
            results.append(self._handle_logged(event))
        return results

    def handle(self, event: EngineEvent) -> dict:
        """Route one event to its handler."""
        if isinstance(event, BarClosed):
            return self.on_bar(event.time)
        if isinstance(event, Tick):
            return self.on_tick(event.time)
        if isinstance(event, PositionClosedEvent):
            return self.on_position_closed(event)
        raise TypeError(f"Unsupported engine event: {event!r}")

    def _handle_logged(self, event: EngineEvent) -> dict:
        try:
            return self.handle(event)
        except Exception as exc:
            logger.error("Error handling %s: %s", type(event).__name__, exc)
            return {"action": "error", "reason": str(exc)}

    # ── Bar ──────────────────────────────────────────────────────────────

    def on_bar(self, utc_now: Optional[datetime] = None) -> dict:
        """Run one bar cycle: detect → authorize → dispatch → delay tick.

        Returns a dict describing the action taken:

        - ``{"action": "order_placed", "orders": [...], ...}``
        - ``{"action": "denied", "reason": "..."}``
        - ``{"action": "skipped", "reason": "no_signal" | "waiting"}``

        Args:
            utc_now: Bar time.  Defaults to the platform clock.
        """
        if utc_now is None:
            utc_now = self._platform.now()
        self._bar_count += 1

        snapshot = BarSnapshot(
            time=utc_now,
            bands=self._platform.get_band_levels(1),
            prior_bands=self._platform.get_band_levels(2),
            prices=self._platform.get_price_window(),
        )
        crossing = self._strategy.observe(snapshot)

        authorization = self._risk.authorize(utc_now)
        orders = []
        if authorization.allowed:
            new_state, orders = self._dispatcher.attempt(
                self._strategy.state, snapshot.prices, self._volume,
            )
            self._strategy.apply(new_state)

        self._strategy.advance()

        state = self._strategy.state
        result: dict = {
            "bar": self._bar_count,
            "crossing": crossing.side if crossing else None,
            "signal": signal_state.describe(state),
            "ticks_left": state.ticks_left,
        }
        if orders:
            result["action"] = "order_placed"
            result["orders"] = [
                {
                    "order_id": o.order_id,
                    "label": o.position.label,
                    "direction": o.position.direction,
                    "volume": o.position.volume,
                }
                for o in orders
            ]
        elif not authorization.allowed:
            result["action"] = "denied"
            result["reason"] = authorization.reason
        elif isinstance(state, signal_state.NoSignal):
            result["action"] = "skipped"
            result["reason"] = "no_signal"
        else:
            result["action"] = "skipped"
            result["reason"] = "waiting"

        logger.debug("Bar %d: %s", self._bar_count, result)
        return result

    # ── Tick ─────────────────────────────────────────────────────────────

    def on_tick(self, utc_now: Optional[datetime] = None) -> dict:
        """Session check plus inversion guard on the current bar."""
        if utc_now is not None:
            logger.debug("Tick at %s", utc_now.isoformat())

        closing = self._risk.refresh_session()
        if self._config.day_trade_only and closing:
            closed = self._guard.liquidate()
        elif self._config.autoclose_inversion:
            closed = self._guard.check()
        else:
            closed = []

        return {
            "action": "positions_closed" if closed else "none",
            "closed": [p.position_id for p in closed],
            "session_closing": closing,
        }

    # ── Position closed ──────────────────────────────────────────────────

    def on_position_closed(self, event: PositionClosedEvent) -> dict:
        """Feed a closure into the stop-loss bookkeeping."""
        self._risk.record_closure(event)
        state = self._risk.state
        return {
            "action": "position_closed",
            "position_id": event.position.position_id,
            "reason": event.reason.value,
            "net_profit": event.net_profit,
            "consecutive_losses": state.consecutive_losses,
        }

    def _on_new_day(self, today: date) -> None:
        self._strategy.reset_delay()
        logger.debug("Delay counter reset for %s", today.isoformat())
