"""Bollinger break-in strategy — crossing detection over pending signals.

Watches each completed bar for a band crossing and keeps the resulting
pending-signal state between bars.  Order execution, trend confirmation
and risk checks are applied by the engine through ``OrderDispatcher``.
"""

import logging
from typing import Optional

from bandbreak.config import Config
from bandbreak.strategy import signal_state
from bandbreak.strategy.crossing import detect_crossing
from bandbreak.strategy.models import BarSnapshot, CrossingEvent
from bandbreak.strategy.signal_state import SignalState

logger = logging.getLogger("bandbreak")


class BandBreakStrategy:
    """Holds the pending-signal state for one symbol.

    Flow per completed bar:
        1. ``observe()`` → band height filter + crossing detection.
        2. Engine dispatches eligible sides and stores the new state.
        3. ``advance()`` → delay counter ticks while something is pending.

    Args:
        config: Strategy configuration.
        pip_size: Price value of one pip on the host platform.
    """

    def __init__(self, config: Config, pip_size: Optional[float] = None) -> None:
        self._config = config
        self._pip_size = pip_size or config.pip_size
        self._min_height = config.band_height_pips * self._pip_size
        self.state: SignalState = signal_state.initial_state(config.execution_delay)
        self.last_insight: dict = {}

    @property
    def min_band_height(self) -> float:
        return self._min_height

    def observe(self, snapshot: BarSnapshot) -> Optional[CrossingEvent]:
        """Run crossing detection on *snapshot* and mark the crossed side."""
        bands = snapshot.bands
        wide_enough = bands.is_wide_enough(self._min_height)

        crossing = detect_crossing(
            snapshot.prices,
            bands,
            snapshot.prior_bands,
            mode=self._config.breakout_mode,
            min_height=self._min_height,
        )
        if crossing is not None:
            self.state = signal_state.mark(self.state, crossing.side)

        self.last_insight = {
            "strategy": "Bollinger Break In",
            "pair": self._config.trade_pair,
            "bar_time": snapshot.time.isoformat(),
            "band_top": round(bands.top, 5),
            "band_bottom": round(bands.bottom, 5),
            "band_height_pips": round(bands.height / self._pip_size, 1),
            "checks": {
                "band_wide_enough": wide_enough,
                "crossing_detected": crossing is not None,
            },
            "crossing": crossing.side if crossing else None,
            "signal": signal_state.describe(self.state),
            "ticks_left": self.state.ticks_left,
        }
        return crossing

    def apply(self, state: SignalState) -> None:
        """Store the state returned by the dispatcher."""
        self.state = state

    def advance(self) -> None:
        """Tick the delay counter after dispatch attempts."""
        self.state = signal_state.tick(self.state)

    def reset_delay(self) -> None:
        """Put the delay counter back to the configured value."""
        self.state = signal_state.reset_counter(self.state, self._config.execution_delay)
