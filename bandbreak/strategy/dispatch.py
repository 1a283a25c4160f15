"""Order dispatch — executes pending signals and resets them.

Turns a pending top crossing into a "Top Line Sell" and a pending bottom
crossing into a "Bottom Line Buy" once the delay counter has run out and
the trend check agrees.  Both sides are tried on every call, top first.
"""

import logging

from bandbreak.broker.errors import PlatformError
from bandbreak.broker.models import OrderHandle, OrderRequest
from bandbreak.broker.platform import TradingPlatform
from bandbreak.config import Config
from bandbreak.strategy import signal_state
from bandbreak.strategy.models import BOTTOM_LINE_BUY, BUY, SELL, TOP_LINE_SELL, PriceWindow
from bandbreak.strategy.signal_state import BOTTOM, TOP, SignalState
from bandbreak.strategy.trend import confirms

logger = logging.getLogger("bandbreak")

_SIDES = (
    (TOP, SELL, TOP_LINE_SELL),
    (BOTTOM, BUY, BOTTOM_LINE_BUY),
)


class OrderDispatcher:
    """Submits orders for eligible pending sides.

    Args:
        config: Strategy configuration (SL/TP, delay, trend toggle).
        platform: Host platform that executes the orders.
    """

    def __init__(self, config: Config, platform: TradingPlatform) -> None:
        self._config = config
        self._platform = platform

    def attempt(
        self,
        state: SignalState,
        prices: PriceWindow,
        volume: float,
    ) -> tuple[SignalState, list[OrderHandle]]:
        """Try to execute each pending side.

        A side executes when it is pending, the counter is at or below
        zero, and the trend gate confirms.  Executing clears that side and
        puts the counter back to the configured delay, so with a non-zero
        delay the second side must wait for the counter again.
        A side whose submission the platform rejects stays pending and
        does not reset the counter.

        Returns:
            The new state and the orders submitted (0, 1 or 2).
        """
        orders: list[OrderHandle] = []

        for side, direction, label in _SIDES:
            if not signal_state.is_pending(state, side) or state.ticks_left > 0:
                continue
            if not confirms(direction, prices, enabled=self._config.trend_check):
                logger.debug("%s pending but trend not confirmed", label)
                continue

            request = OrderRequest(
                symbol=self._platform.symbol,
                direction=direction,
                volume=volume,
                label=label,
                stop_loss_pips=self._config.stop_loss_pips,
                take_profit_pips=self._config.take_profit_pips,
            )
            try:
                handle = self._platform.submit_order(request)
            except PlatformError as exc:
                logger.warning("%s rejected, keeping signal pending: %s", label, exc)
                continue
            logger.info(
                "%s submitted: %s %.2f units, SL %.1f pips, TP %.1f pips",
                label, direction, volume,
                self._config.stop_loss_pips, self._config.take_profit_pips,
            )
            orders.append(handle)
            state = signal_state.clear(state, side, self._config.execution_delay)

        return state, orders
