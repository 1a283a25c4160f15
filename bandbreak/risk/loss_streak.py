"""Consecutive stop-loss tracking — pure bookkeeping, no I/O.

Counts losing stop-loss closures in a row and remembers the calendar day
of the last one.  The daily limit check in the risk gate reads it.
"""

from datetime import date
from typing import Optional

from bandbreak.broker.models import CloseReason


class LossStreak:
    """Counts consecutive losing stop-loss closures.

    Args:
        limit: Number of consecutive losses that trips the daily cutoff.
    """

    def __init__(self, limit: int = 3) -> None:
        if limit <= 0:
            raise ValueError(f"limit must be positive, got {limit}")
        self._limit: int = limit
        self._count: int = 0
        self._last_loss_date: Optional[date] = None

    # ── Mutation ─────────────────────────────────────────────────────────

    def record(self, reason: CloseReason, net_profit: float, today: date) -> bool:
        """Apply one position closure.

        A losing stop-loss extends the streak; any profitable closure
        ends it.  Everything else (break-even, manual loss) leaves it alone.

        Returns:
            ``True`` if the closure was counted as a loss.
        """
        if reason == CloseReason.STOP_LOSS and net_profit < 0:
            self._count += 1
            self._last_loss_date = today
            return True
        if net_profit > 0:
            self._count = 0
        return False

    def reset(self) -> None:
        """Start a fresh day."""
        self._count = 0

    # ── Queries ──────────────────────────────────────────────────────────

    @property
    def count(self) -> int:
        """Consecutive losing stop-loss closures."""
        return self._count

    @property
    def last_loss_date(self) -> Optional[date]:
        """Calendar day of the last counted loss."""
        return self._last_loss_date

    @property
    def limit(self) -> int:
        return self._limit

    def limit_reached(self, today: date) -> bool:
        """``True`` when today's streak has reached the limit."""
        return self._last_loss_date == today and self._count >= self._limit
