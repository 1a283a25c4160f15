"""Pending-signal state machine.

A crossing leaves a side "pending" until the dispatcher executes it.  The
two sides share one delay counter (``ticks_left``): the number of further
completed bars to wait before a pending side may be executed.

States::

    NoSignal ──mark top──▶ PendingTop ──mark bottom──▶ PendingBoth
       ▲                      │                           │
       └─────clear top────────┘         clear one side ───┘

Values are immutable; every transition returns a new state.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

TOP = "top"
BOTTOM = "bottom"


@dataclass(frozen=True)
class NoSignal:
    """Nothing pending; the counter is held."""

    ticks_left: int
    top_pending = False
    bottom_pending = False


@dataclass(frozen=True)
class PendingTop:
    """A top-band crossing awaits a sell."""

    ticks_left: int
    top_pending = True
    bottom_pending = False


@dataclass(frozen=True)
class PendingBottom:
    """A bottom-band crossing awaits a buy."""

    ticks_left: int
    top_pending = False
    bottom_pending = True


@dataclass(frozen=True)
class PendingBoth:
    """Both crossings are outstanding, each independent of the other."""

    ticks_left: int
    top_pending = True
    bottom_pending = True


SignalState = Union[NoSignal, PendingTop, PendingBottom, PendingBoth]


def make_state(top: bool, bottom: bool, ticks_left: int) -> SignalState:
    """Build the variant matching the two pending flags."""
    if top and bottom:
        return PendingBoth(ticks_left)
    if top:
        return PendingTop(ticks_left)
    if bottom:
        return PendingBottom(ticks_left)
    return NoSignal(ticks_left)


def initial_state(delay: int) -> SignalState:
    """State at strategy start: nothing pending, counter at *delay*."""
    return NoSignal(delay)


def is_pending(state: SignalState, side: str) -> bool:
    if side == TOP:
        return state.top_pending
    if side == BOTTOM:
        return state.bottom_pending
    raise ValueError(f"side must be 'top' or 'bottom', got {side!r}")


def mark(state: SignalState, side: str) -> SignalState:
    """Set *side* pending.  The other side is left as it was."""
    if side == TOP:
        return make_state(True, state.bottom_pending, state.ticks_left)
    if side == BOTTOM:
        return make_state(state.top_pending, True, state.ticks_left)
    raise ValueError(f"side must be 'top' or 'bottom', got {side!r}")


def clear(state: SignalState, side: str, delay: int) -> SignalState:
    """Clear *side* after execution and reset the counter to *delay*."""
    if side == TOP:
        return make_state(False, state.bottom_pending, delay)
    if side == BOTTOM:
        return make_state(state.top_pending, False, delay)
    raise ValueError(f"side must be 'top' or 'bottom', got {side!r}")


def reset_counter(state: SignalState, delay: int) -> SignalState:
    """Put the counter back to *delay*, keeping the pending sides."""
    return make_state(state.top_pending, state.bottom_pending, delay)


def tick(state: SignalState) -> SignalState:
    """Advance the delay counter by one completed bar.

    Only moves while something is pending and never below zero.
    """
    if isinstance(state, NoSignal) or state.ticks_left <= 0:
        return state
    return make_state(state.top_pending, state.bottom_pending, state.ticks_left - 1)


def describe(state: SignalState) -> str:
    """Short slug for logs and engine results."""
    return {
        NoSignal: "no_signal",
        PendingTop: "pending_top",
        PendingBottom: "pending_bottom",
        PendingBoth: "pending_both",
    }[type(state)]
