"""Trend confirmation — one-bar look-back momentum check.

Keeps the strategy from entering directly into continuing momentum:
a sell needs the latest high to have stopped rising, a buy needs the
latest low to have stopped falling.
"""

from bandbreak.strategy.models import BUY, SELL, PriceWindow


def last_high_is_falling(prices: PriceWindow) -> bool:
    """True when the high two bars ago is above the high one bar ago."""
    return prices.high[0] > prices.high[1]


def last_low_is_rising(prices: PriceWindow) -> bool:
    """True when the low two bars ago is below the low one bar ago."""
    return prices.low[0] < prices.low[1]


def confirms(direction: str, prices: PriceWindow, enabled: bool = True) -> bool:
    """Return True if the trend allows an entry in *direction*.

    Args:
        direction: ``"sell"`` (top cross) or ``"buy"`` (bottom cross).
        prices: The last two completed bars.
        enabled: When False the check always passes.

    Raises:
        ValueError: If *direction* is neither buy nor sell.
    """
    if direction not in (BUY, SELL):
        raise ValueError(f"direction must be 'buy' or 'sell', got {direction!r}")
    if not enabled:
        return True
    if direction == SELL:
        return last_high_is_falling(prices)
    return last_low_is_rising(prices)
