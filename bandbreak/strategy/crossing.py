"""Band crossing detection — pure functions, no I/O.

Compares a price series against a band boundary over the last two
completed bars and reports whether it moved from one side to the other.
"""

import logging
from typing import Optional

from bandbreak.strategy.models import (
    CANDLE_MODE,
    CLOSE_MODE,
    BandLevels,
    CrossingEvent,
    PriceWindow,
)

logger = logging.getLogger("bandbreak")


def crossed_above(series: tuple[float, float], band: tuple[float, float]) -> bool:
    """Return True if *series* went from below *band* to at/above it.

    Both arguments are ``(earlier, later)`` pairs.
    """
    return series[0] < band[0] and series[1] >= band[1]


def crossed_below(series: tuple[float, float], band: tuple[float, float]) -> bool:
    """Return True if *series* went from above *band* to at/below it."""
    return series[0] > band[0] and series[1] <= band[1]


def detect_crossing(
    prices: PriceWindow,
    bands: BandLevels,
    prior_bands: BandLevels,
    *,
    mode: str = CANDLE_MODE,
    min_height: float = 0.0,
) -> Optional[CrossingEvent]:
    """Detect a band crossing on the last completed bar.

    Modes:
        ``"candle"``: the bar's high is tested against the top band and
        its low against the bottom band, so breaks inside the bar's range
        count even when the close stays inside.
        ``"close"``: only the close is tested, against both boundaries.

    Bands narrower than *min_height* are ignored entirely.  The top
    boundary is tested first; when it fires the bottom is not tested.

    Returns ``CrossingEvent`` or ``None``.
    """
    if mode not in (CANDLE_MODE, CLOSE_MODE):
        raise ValueError(f"mode must be 'candle' or 'close', got {mode!r}")

    if not bands.is_wide_enough(min_height):
        return None

    if mode == CANDLE_MODE:
        upper_series = prices.high
        lower_series = prices.low
    else:
        upper_series = prices.close
        lower_series = prices.close

    top = (prior_bands.top, bands.top)
    bottom = (prior_bands.bottom, bands.bottom)

    if crossed_above(upper_series, top):
        logger.info(
            "Price %.5f crossed above top %.5f (%s mode)",
            upper_series[1], bands.top, mode,
        )
        return CrossingEvent("top", upper_series[1], bands.top, mode)

    if crossed_below(lower_series, bottom):
        logger.info(
            "Price %.5f crossed below bottom %.5f (%s mode)",
            lower_series[1], bands.bottom, mode,
        )
        return CrossingEvent("bottom", lower_series[1], bands.bottom, mode)

    return None
