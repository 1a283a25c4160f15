"""Broker data models — typed representations of platform order objects."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class CloseReason(str, Enum):
    """Why the platform closed a position."""

    CLOSED = "closed"
    STOP_LOSS = "stop_loss"
    TAKE_PROFIT = "take_profit"
    STOP_OUT = "stop_out"


@dataclass(frozen=True)
class OrderRequest:
    """A market order request payload."""

    symbol: str
    direction: str  # "buy" or "sell"
    volume: float  # units, always positive
    label: str
    stop_loss_pips: float
    take_profit_pips: float


@dataclass(frozen=True)
class PositionHandle:
    """An open position as reported by the platform."""

    position_id: str
    symbol: str
    direction: str
    volume: float
    label: str
    entry_price: float
    entry_time: datetime


@dataclass(frozen=True)
class OrderHandle:
    """Response from submitting an order."""

    order_id: str
    position: PositionHandle


@dataclass(frozen=True)
class PositionClosedEvent:
    """Closure notification delivered by the platform."""

    position: PositionHandle
    reason: CloseReason
    net_profit: float
    time: datetime
