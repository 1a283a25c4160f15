"""BandBreak — strategy configuration.

Loads .env variables into a typed config object.
Validates required variables and value ranges on startup.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from bandbreak.strategy.models import CANDLE_MODE, CLOSE_MODE, INSTRUMENT_PIP_VALUES


_REQUIRED_VARS = [
    "TRADE_PAIR",
]

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}

MAX_EXECUTION_DELAY = 5


@dataclass(frozen=True)
class Config:
    """Typed configuration loaded from environment variables."""

    trade_pair: str
    quantity_lots: float
    lot_size: int
    stop_loss_pips: float
    take_profit_pips: float
    band_height_pips: float
    breakout_mode: str  # "candle" or "close"
    trend_check: bool
    autoclose_inversion: bool
    execution_delay: int  # completed bars to wait after a crossing (0–5)
    day_trade_only: bool
    daily_stop_loss_limit_enabled: bool
    daily_stop_loss_limit: int
    single_position_only: bool
    session_end_utc: int
    log_level: str

    @property
    def pip_size(self) -> float:
        """Price value of one pip for the traded pair."""
        return INSTRUMENT_PIP_VALUES.get(self.trade_pair, 0.0001)


def _env_bool(name: str, default: str) -> bool:
    raw = os.environ.get(name, default).strip().lower()
    if raw in _TRUE_VALUES:
        return True
    if raw in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean (true/false), got {raw!r}")


def _env_number(name: str, default: str, cast):
    raw = os.environ.get(name, default)
    try:
        return cast(raw)
    except ValueError:
        raise ValueError(f"{name} must be a {cast.__name__}, got {raw!r}") from None


def load_config(env_path: str | None = None) -> Config:
    """Load configuration from environment variables.

    Raises ``ValueError`` with a message naming the variable when a
    required variable is absent or a value is out of range.
    """
    load_dotenv(dotenv_path=env_path)

    missing = [v for v in _REQUIRED_VARS if not os.environ.get(v)]
    if missing:
        raise ValueError(
            f"Missing required environment variable(s): {', '.join(missing)}"
        )

    breakout_mode = os.environ.get("BREAKOUT_MODE", CANDLE_MODE).strip().lower()
    if breakout_mode not in (CANDLE_MODE, CLOSE_MODE):
        raise ValueError(
            f"BREAKOUT_MODE must be 'candle' or 'close', got {breakout_mode!r}"
        )

    execution_delay = _env_number("EXECUTION_DELAY", "0", int)
    if not 0 <= execution_delay <= MAX_EXECUTION_DELAY:
        raise ValueError(
            f"EXECUTION_DELAY must be between 0 and {MAX_EXECUTION_DELAY}, "
            f"got {execution_delay}"
        )

    session_end_utc = _env_number("SESSION_END_UTC", "21", int)
    if not 0 <= session_end_utc <= 23:
        raise ValueError(f"SESSION_END_UTC must be an hour 0–23, got {session_end_utc}")

    daily_stop_loss_limit = _env_number("DAILY_STOP_LOSS_LIMIT", "3", int)
    if daily_stop_loss_limit < 1:
        raise ValueError(
            f"DAILY_STOP_LOSS_LIMIT must be at least 1, got {daily_stop_loss_limit}"
        )

    return Config(
        trade_pair=os.environ["TRADE_PAIR"],
        quantity_lots=_env_number("QUANTITY_LOTS", "1.0", float),
        lot_size=_env_number("LOT_SIZE", "100000", int),
        stop_loss_pips=_env_number("STOP_LOSS_PIPS", "5", float),
        take_profit_pips=_env_number("TAKE_PROFIT_PIPS", "5", float),
        band_height_pips=_env_number("BAND_HEIGHT_PIPS", "15", float),
        breakout_mode=breakout_mode,
        trend_check=_env_bool("TREND_CHECK", "true"),
        autoclose_inversion=_env_bool("AUTOCLOSE_INVERSION", "true"),
        execution_delay=execution_delay,
        day_trade_only=_env_bool("DAY_TRADE_ONLY", "false"),
        daily_stop_loss_limit_enabled=_env_bool("DAILY_STOP_LOSS_LIMIT_ENABLED", "false"),
        daily_stop_loss_limit=daily_stop_loss_limit,
        single_position_only=_env_bool("SINGLE_POSITION_ONLY", "false"),
        session_end_utc=session_end_utc,
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
    )
