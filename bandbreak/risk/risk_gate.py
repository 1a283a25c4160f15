"""Risk gate — decides, once per bar, whether new orders may be placed.

Three independently toggled checks, evaluated in order:

1. Day-trade session: no new orders inside the pre-close window.
2. Daily stop-loss limit: no new orders once today's consecutive losing
   stop-losses reach the configured limit.  A new calendar day resets it.
3. Single position: no new orders while any position is open on the symbol.

A disabled check always passes.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Callable, Optional

from bandbreak.broker.errors import PlatformError
from bandbreak.broker.models import PositionClosedEvent
from bandbreak.broker.platform import TradingPlatform
from bandbreak.config import Config
from bandbreak.risk.loss_streak import LossStreak
from bandbreak.strategy.session_filter import is_session_closing

logger = logging.getLogger("bandbreak.risk")

SESSION_CLOSING = "session_closing"
DAILY_STOP_LOSS_LIMIT = "daily_stop_loss_limit"
POSITION_OPEN = "position_open"


def trading_date(moment: datetime) -> date:
    """Calendar date of *moment* on the UTC clock.

    Naive datetimes are taken to be UTC already.
    """
    if moment.tzinfo is None:
        return moment.date()
    return moment.astimezone(timezone.utc).date()


@dataclass(frozen=True)
class Authorization:
    """Outcome of a risk gate evaluation."""

    allowed: bool
    reason: Optional[str] = None

    @classmethod
    def deny(cls, reason: str) -> "Authorization":
        return cls(allowed=False, reason=reason)


AUTHORIZED = Authorization(allowed=True)


@dataclass(frozen=True)
class RiskState:
    """Snapshot of the gate's counters, for logs and assertions."""

    consecutive_losses: int
    last_loss_date: Optional[date]
    observed_date: Optional[date]
    limit_message_sent: bool
    session_closing: bool


class RiskGate:
    """Combines the session, daily-limit and single-position checks.

    Args:
        config: Strategy configuration (gate toggles and limit).
        platform: Host platform, queried for session time and positions.
        on_new_day: Called once whenever a new trading date is observed.
    """

    def __init__(
        self,
        config: Config,
        platform: TradingPlatform,
        on_new_day: Optional[Callable[[date], None]] = None,
    ) -> None:
        self._config = config
        self._platform = platform
        self._on_new_day = on_new_day
        self._streak = LossStreak(limit=max(config.daily_stop_loss_limit, 1))
        self._observed_date: Optional[date] = None
        self._limit_message_sent: bool = False
        self._session_closing: bool = False

    # ── Queries ──────────────────────────────────────────────────────────

    @property
    def state(self) -> RiskState:
        return RiskState(
            consecutive_losses=self._streak.count,
            last_loss_date=self._streak.last_loss_date,
            observed_date=self._observed_date,
            limit_message_sent=self._limit_message_sent,
            session_closing=self._session_closing,
        )

    @property
    def session_closing(self) -> bool:
        return self._session_closing

    # ── Session ──────────────────────────────────────────────────────────

    def refresh_session(self) -> bool:
        """Re-read the platform session clock and return ``session_closing``.

        Always ``False`` unless day-trade-only mode is on.  A failed
        lookup is logged and treated as not closing.
        """
        if not self._config.day_trade_only:
            self._session_closing = False
            return False

        try:
            remaining = self._platform.get_session_time_till_close()
            closing = is_session_closing(remaining)
        except PlatformError as exc:
            logger.warning(
                "Session time unavailable (%s); assuming session is open", exc,
            )
            closing = False

        if closing and not self._session_closing:
            logger.info("Session closing — new orders suspended until reopen")
        elif not closing and self._session_closing:
            logger.info("Session reopened — trading resumes")
        self._session_closing = closing
        return closing

    # ── Daily limit ──────────────────────────────────────────────────────

    def roll_day(self, today: date) -> bool:
        """Reset daily counters the first time *today* is observed.

        Returns:
            ``True`` if this call started a new trading day.
        """
        if self._observed_date == today:
            return False
        if self._observed_date is not None:
            logger.info(
                "New trading day %s — stop-loss streak %d reset",
                today.isoformat(), self._streak.count,
            )
        self._observed_date = today
        self._streak.reset()
        self._limit_message_sent = False
        if self._on_new_day is not None:
            self._on_new_day(today)
        return True

    def record_closure(self, event: PositionClosedEvent) -> None:
        """Update the stop-loss streak from a position-closed event."""
        today = trading_date(event.time)
        if self._config.daily_stop_loss_limit_enabled:
            self.roll_day(today)

        previous = self._streak.count
        if self._streak.record(event.reason, event.net_profit, today):
            logger.info(
                "Stop loss on %s (%.2f) — %d in a row",
                event.position.label, event.net_profit, self._streak.count,
            )
        elif previous and self._streak.count == 0:
            logger.debug("Profitable close on %s — streak reset", event.position.label)

    # ── Gate ─────────────────────────────────────────────────────────────

    def authorize(self, now: Optional[datetime] = None) -> Authorization:
        """Evaluate every enabled check and return the combined decision."""
        if now is None:
            now = self._platform.now()

        if self._config.day_trade_only and self.refresh_session():
            return Authorization.deny(SESSION_CLOSING)

        if self._config.daily_stop_loss_limit_enabled:
            today = trading_date(now)
            self.roll_day(today)
            if self._streak.limit_reached(today):
                if not self._limit_message_sent:
                    logger.warning(
                        "Daily stop-loss limit reached (%d in a row) — "
                        "no new orders until %s ends",
                        self._streak.count, today.isoformat(),
                    )
                    self._limit_message_sent = True
                return Authorization.deny(DAILY_STOP_LOSS_LIMIT)

        if self._config.single_position_only:
            open_positions = self._platform.find_positions(self._platform.symbol)
            if len(open_positions) > 0:
                return Authorization.deny(POSITION_OPEN)

        return AUTHORIZED
