"""Session filter — pure functions for the day-trade closing window."""

from datetime import datetime, timedelta

SESSION_CLOSE_WINDOW = timedelta(minutes=5)


def is_session_closing(
    time_till_close: timedelta,
    window: timedelta = SESSION_CLOSE_WINDOW,
) -> bool:
    """Return True if the session closes within *window*.

    Default window: 5 minutes before close (inclusive).
    """
    return time_till_close <= window


def time_till_session_end(utc_now: datetime, session_end_utc: int = 21) -> timedelta:
    """Time from *utc_now* until the next ``session_end_utc`` o'clock.

    When today's close has already passed, the next day's close is used.

    Args:
        utc_now: Timezone-aware current time.
        session_end_utc: Session close hour in UTC (0–23).
    """
    close = utc_now.replace(hour=session_end_utc, minute=0, second=0, microsecond=0)
    if close <= utc_now:
        close += timedelta(days=1)
    return close - utc_now
