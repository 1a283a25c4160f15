"""Inversion guard — per-tick safety closures for tagged positions.

Rules:
  - "Top Line Sell" shorts close when the current bar's high crosses
    back above the top band.
  - "Bottom Line Buy" longs close when the current bar's low crosses
    back below the bottom band.
  - In day-trade-only mode, every tagged position closes once the
    session enters its closing window.
"""

import logging

from bandbreak.broker.errors import PlatformError
from bandbreak.broker.models import PositionHandle
from bandbreak.broker.platform import TradingPlatform
from bandbreak.strategy.crossing import crossed_above, crossed_below
from bandbreak.strategy.models import (
    BOTTOM_LINE_BUY,
    BUY,
    SELL,
    TAGGED_LABELS,
    TOP_LINE_SELL,
)

logger = logging.getLogger("bandbreak.risk")


class InversionGuard:
    """Force-closes positions whose breakout thesis has failed.

    Args:
        platform: Host platform providing bands, prices and positions.
    """

    def __init__(self, platform: TradingPlatform) -> None:
        self._platform = platform

    def check(self) -> list[PositionHandle]:
        """Close inverted positions on the current (incomplete) bar.

        Returns:
            The positions that were closed.
        """
        symbol = self._platform.symbol
        shorts = self._platform.find_positions(symbol, TOP_LINE_SELL, SELL)
        longs = self._platform.find_positions(symbol, BOTTOM_LINE_BUY, BUY)
        if not shorts and not longs:
            return []

        prices = self._platform.get_price_window()
        bands_now = self._platform.get_band_levels(0)
        bands_prev = self._platform.get_band_levels(1)
        closed: list[PositionHandle] = []

        if shorts and prices.current_high is not None:
            high = (prices.high[1], prices.current_high)
            if crossed_above(high, (bands_prev.top, bands_now.top)):
                for position in shorts:
                    logger.warning(
                        "Inversion safety closure: high %.5f crossed above top %.5f",
                        prices.current_high, bands_now.top,
                    )
                    if self._close(position):
                        closed.append(position)

        if longs and prices.current_low is not None:
            low = (prices.low[1], prices.current_low)
            if crossed_below(low, (bands_prev.bottom, bands_now.bottom)):
                for position in longs:
                    logger.warning(
                        "Inversion safety closure: low %.5f crossed below bottom %.5f",
                        prices.current_low, bands_now.bottom,
                    )
                    if self._close(position):
                        closed.append(position)

        return closed

    def liquidate(self) -> list[PositionHandle]:
        """Close every tagged position on the symbol (session end)."""
        closed: list[PositionHandle] = []
        for label, direction in TAGGED_LABELS.items():
            for position in self._platform.find_positions(
                self._platform.symbol, label, direction,
            ):
                logger.info("Session-end closure of %s %s", label, position.position_id)
                if self._close(position):
                    closed.append(position)
        return closed

    def _close(self, position: PositionHandle) -> bool:
        try:
            self._platform.close_position(position)
        except PlatformError as exc:
            logger.warning("Could not close %s %s: %s", position.label, position.position_id, exc)
            return False
        return True
