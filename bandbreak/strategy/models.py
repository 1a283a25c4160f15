"""Strategy data models — typed representations of band and price inputs."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


# ── Directions and position labels ───────────────────────────────────────

BUY = "buy"
SELL = "sell"

TOP_LINE_SELL = "Top Line Sell"
BOTTOM_LINE_BUY = "Bottom Line Buy"

TAGGED_LABELS: dict[str, str] = {
    TOP_LINE_SELL: SELL,
    BOTTOM_LINE_BUY: BUY,
}

CANDLE_MODE = "candle"
CLOSE_MODE = "close"


@dataclass(frozen=True)
class BandLevels:
    """Upper and lower band values for one bar."""

    top: float
    bottom: float

    def __post_init__(self) -> None:
        if self.top < self.bottom:
            raise ValueError(
                f"band top {self.top} is below bottom {self.bottom}"
            )

    @property
    def height(self) -> float:
        """Distance between the two boundaries, in price."""
        return self.top - self.bottom

    def is_wide_enough(self, min_height: float) -> bool:
        """Return True when the band is at least *min_height* tall."""
        return self.height >= min_height


@dataclass(frozen=True)
class PriceWindow:
    """The last two completed bars plus the current bar's extremes.

    Each pair is ``(two_bars_ago, one_bar_ago)``.
    """

    close: tuple[float, float]
    high: tuple[float, float]
    low: tuple[float, float]
    current_high: Optional[float] = None
    current_low: Optional[float] = None


@dataclass(frozen=True)
class BarSnapshot:
    """Everything the strategy reads when a bar completes."""

    time: datetime
    bands: BandLevels  # last completed bar
    prior_bands: BandLevels  # the bar before it
    prices: PriceWindow


@dataclass(frozen=True)
class CrossingEvent:
    """A band boundary crossing detected on the last completed bar."""

    side: str  # "top" or "bottom"
    price: float
    band_value: float
    mode: str


# ── Instrument metadata ──────────────────────────────────────────────────

INSTRUMENT_PIP_VALUES: dict[str, float] = {
    "EUR_USD": 0.0001,
    "GBP_USD": 0.0001,
    "USD_JPY": 0.01,
    "USD_CHF": 0.0001,
    "AUD_USD": 0.0001,
    "NZD_USD": 0.0001,
    "USD_CAD": 0.0001,
    "XAU_USD": 0.01,
    "XAG_USD": 0.001,
}
