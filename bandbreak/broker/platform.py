"""Trading platform protocol.

Defines the narrow interface the strategy core consumes.  Price feeds,
band computation, order execution and position storage all live behind it.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable, Optional, Protocol, runtime_checkable

from bandbreak.broker.models import (
    OrderHandle,
    OrderRequest,
    PositionClosedEvent,
    PositionHandle,
)
from bandbreak.strategy.models import BandLevels, PriceWindow

PositionClosedHandler = Callable[[PositionClosedEvent], None]


@runtime_checkable
class TradingPlatform(Protocol):
    """Interface a host platform must satisfy to run the strategy."""

    symbol: str
    pip_size: float

    def now(self) -> datetime:
        """Current platform time (timezone-aware)."""
        ...

    def get_band_levels(self, bars_ago: int = 1) -> BandLevels:
        """Band values *bars_ago* bars back (0 = current, incomplete bar)."""
        ...

    def get_price_window(self) -> PriceWindow:
        """Closes/highs/lows of the last two bars plus current extremes."""
        ...

    def submit_order(self, request: OrderRequest) -> OrderHandle:
        ...

    def close_position(self, position: PositionHandle) -> None:
        ...

    def find_positions(
        self,
        symbol: str,
        label: Optional[str] = None,
        direction: Optional[str] = None,
    ) -> list[PositionHandle]:
        """Open positions for *symbol*, optionally filtered."""
        ...

    def on_position_closed(self, handler: PositionClosedHandler) -> None:
        """Subscribe *handler* to position-closed notifications."""
        ...

    def get_session_time_till_close(self) -> timedelta:
        """Time left in the trading session.

        Raises:
            SessionTimeUnavailable: Near week boundaries.
        """
        ...
