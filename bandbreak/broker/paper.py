"""In-memory paper platform.

Implements ``TradingPlatform`` without any external connectivity: bars and
band values are pushed in by the caller, positions live in a dict, and
closures are reported synchronously to subscribed handlers.  Used for dry
runs of the strategy and throughout the test suite.
"""

import itertools
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from bandbreak.broker.errors import PlatformError, PositionNotFound, SessionTimeUnavailable
from bandbreak.broker.models import (
    CloseReason,
    OrderHandle,
    OrderRequest,
    PositionClosedEvent,
    PositionHandle,
)
from bandbreak.broker.platform import PositionClosedHandler
from bandbreak.strategy.models import INSTRUMENT_PIP_VALUES, BandLevels, PriceWindow
from bandbreak.strategy.session_filter import time_till_session_end

logger = logging.getLogger("bandbreak.paper")


@dataclass(frozen=True)
class PaperBar:
    """One bar of price plus the band values computed for it."""

    time: datetime
    high: float
    low: float
    close: float
    top: float
    bottom: float

    @property
    def bands(self) -> BandLevels:
        return BandLevels(top=self.top, bottom=self.bottom)


class PaperPlatform:
    """Duck-typed ``TradingPlatform`` backed by plain Python state.

    Args:
        symbol: Traded instrument, e.g. ``"EUR_USD"``.
        pip_size: Price value of one pip.  Looked up from the instrument
                  table when omitted.
        session_end_utc: Hour the daily session closes, used when no
                         explicit time-till-close has been set.
        start_time: Initial clock value.
    """

    def __init__(
        self,
        symbol: str = "EUR_USD",
        pip_size: Optional[float] = None,
        session_end_utc: int = 21,
        start_time: Optional[datetime] = None,
    ) -> None:
        self.symbol = symbol
        self.pip_size = pip_size or INSTRUMENT_PIP_VALUES.get(symbol, 0.0001)
        self._session_end_utc = session_end_utc
        self._now = start_time or datetime(2025, 1, 6, 8, 0, tzinfo=timezone.utc)
        self._bars: list[PaperBar] = []
        self._current: Optional[PaperBar] = None
        self._positions: dict[str, PositionHandle] = {}
        self._unrealized: dict[str, float] = {}
        self._handlers: list[PositionClosedHandler] = []
        self._ids = itertools.count(1)
        self._time_till_close: Optional[timedelta] = None
        self._session_lookup_fails = False
        self.submitted: list[OrderRequest] = []
        self.closed: list[PositionClosedEvent] = []

    # ── Feed ─────────────────────────────────────────────────────────────

    def add_bar(
        self,
        time: datetime,
        high: float,
        low: float,
        close: float,
        top: float,
        bottom: float,
    ) -> PaperBar:
        """Append a completed bar and move the clock to its time."""
        bar = PaperBar(time, high, low, close, top, bottom)
        self._bars.append(bar)
        self._current = None
        self._now = time
        return bar

    def set_current_bar(
        self,
        high: float,
        low: float,
        top: float,
        bottom: float,
        time: Optional[datetime] = None,
    ) -> None:
        """Update the incomplete bar seen by tick handlers."""
        if time is not None:
            self._now = time
        close = self._bars[-1].close if self._bars else high
        self._current = PaperBar(self._now, high, low, close, top, bottom)

    def advance_clock(self, to: datetime) -> None:
        """Move the platform clock without adding a bar."""
        self._now = to

    def set_session_time_till_close(self, remaining: Optional[timedelta]) -> None:
        """Override the session clock; ``None`` restores the hour-based one."""
        self._time_till_close = remaining

    def fail_session_lookup(self, fail: bool = True) -> None:
        """Make ``get_session_time_till_close`` raise, as at week boundaries."""
        self._session_lookup_fails = fail

    def mark_profit(self, position: PositionHandle, net_profit: float) -> None:
        """Set the profit a later ``close_position`` will report."""
        self._unrealized[position.position_id] = net_profit

    # ── TradingPlatform ──────────────────────────────────────────────────

    def now(self) -> datetime:
        return self._now

    def get_band_levels(self, bars_ago: int = 1) -> BandLevels:
        if bars_ago < 0:
            raise ValueError(f"bars_ago must be >= 0, got {bars_ago}")
        if bars_ago == 0:
            if self._current is not None:
                return self._current.bands
            return self._last_bar(1).bands
        return self._last_bar(bars_ago).bands

    def get_price_window(self) -> PriceWindow:
        two_ago = self._last_bar(2)
        one_ago = self._last_bar(1)
        current = self._current
        return PriceWindow(
            close=(two_ago.close, one_ago.close),
            high=(two_ago.high, one_ago.high),
            low=(two_ago.low, one_ago.low),
            current_high=current.high if current else None,
            current_low=current.low if current else None,
        )

    def submit_order(self, request: OrderRequest) -> OrderHandle:
        if request.volume <= 0:
            raise PlatformError(f"volume must be positive, got {request.volume}")
        self.submitted.append(request)
        entry_price = self._bars[-1].close if self._bars else 0.0
        position = PositionHandle(
            position_id=str(next(self._ids)),
            symbol=request.symbol,
            direction=request.direction,
            volume=request.volume,
            label=request.label,
            entry_price=entry_price,
            entry_time=self._now,
        )
        self._positions[position.position_id] = position
        logger.debug("Paper %s %s opened (%s)", position.direction, position.symbol, position.label)
        return OrderHandle(order_id=position.position_id, position=position)

    def close_position(self, position: PositionHandle) -> None:
        self.settle(position, CloseReason.CLOSED)

    def find_positions(
        self,
        symbol: str,
        label: Optional[str] = None,
        direction: Optional[str] = None,
    ) -> list[PositionHandle]:
        return [
            p for p in self._positions.values()
            if p.symbol == symbol
            and (label is None or p.label == label)
            and (direction is None or p.direction == direction)
        ]

    def on_position_closed(self, handler: PositionClosedHandler) -> None:
        self._handlers.append(handler)

    def get_session_time_till_close(self) -> timedelta:
        if self._session_lookup_fails:
            raise SessionTimeUnavailable("no trading session scheduled")
        if self._time_till_close is not None:
            return self._time_till_close
        return time_till_session_end(self._now, self._session_end_utc)

    # ── Closures ─────────────────────────────────────────────────────────

    def settle(
        self,
        position: PositionHandle,
        reason: CloseReason,
        net_profit: Optional[float] = None,
    ) -> PositionClosedEvent:
        """Close *position* as the platform would on SL/TP/manual close.

        Subscribed handlers are called with the resulting event.
        """
        if position.position_id not in self._positions:
            raise PositionNotFound(f"position {position.position_id} is not open")
        del self._positions[position.position_id]
        marked = self._unrealized.pop(position.position_id, 0.0)
        if net_profit is None:
            net_profit = marked
        event = PositionClosedEvent(
            position=position,
            reason=reason,
            net_profit=net_profit,
            time=self._now,
        )
        self.closed.append(event)
        for handler in list(self._handlers):
            handler(event)
        return event

    # ── Internals ────────────────────────────────────────────────────────

    def _last_bar(self, bars_ago: int) -> PaperBar:
        if len(self._bars) < bars_ago:
            raise PlatformError(
                f"need {bars_ago} completed bar(s), have {len(self._bars)}"
            )
        return self._bars[-bars_ago]
