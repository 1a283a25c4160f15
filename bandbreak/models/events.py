"""Engine event types.

Everything the host delivers to the strategy (bar completions, ticks and
position closures) travels through one queue as one of these.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union

from bandbreak.broker.models import PositionClosedEvent


@dataclass(frozen=True)
class BarClosed:
    """A bar has completed.  ``time`` defaults to the platform clock."""

    time: Optional[datetime] = None


@dataclass(frozen=True)
class Tick:
    """A price update inside the current bar."""

    time: Optional[datetime] = None


@dataclass(frozen=True)
class Shutdown:
    """Ends ``TradingEngine.run()``."""


EngineEvent = Union[BarClosed, Tick, PositionClosedEvent, Shutdown]
