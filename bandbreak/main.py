"""BandBreak — composition root.

Wires configuration, logging and a host platform into a ``TradingEngine``,
and provides a CLI that validates a configuration file.
"""

import logging
from dataclasses import asdict
from typing import Optional

from bandbreak.broker.platform import TradingPlatform
from bandbreak.config import Config, load_config
from bandbreak.engine import TradingEngine

logger = logging.getLogger("bandbreak")

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once for the process."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )


def build_engine(config: Config, platform: TradingPlatform) -> TradingEngine:
    """Build and initialise an engine for *platform*.

    Warns when the configured pair and the platform symbol disagree; the
    platform symbol wins.
    """
    if platform.symbol != config.trade_pair:
        logger.warning(
            "TRADE_PAIR %s differs from platform symbol %s — trading %s",
            config.trade_pair, platform.symbol, platform.symbol,
        )
    engine = TradingEngine(config=config, platform=platform)
    engine.initialize()
    return engine


# ── CLI ──────────────────────────────────────────────────────────────────


def _run_cli(argv: Optional[list[str]] = None) -> int:
    """Parse CLI arguments, load the configuration and report it."""
    import argparse

    parser = argparse.ArgumentParser(description="BandBreak strategy core")
    parser.add_argument(
        "--env",
        default=None,
        help="Path to a .env file (default: search from the working directory)",
    )
    args = parser.parse_args(argv)

    try:
        config = load_config(args.env)
    except ValueError as exc:
        configure_logging("INFO")
        logger.error("Invalid configuration: %s", exc)
        return 1

    configure_logging(config.log_level)
    for key, value in asdict(config).items():
        logger.info("%s = %s", key, value)
    logger.info("Configuration OK for %s", config.trade_pair)
    return 0


if __name__ == "__main__":
    raise SystemExit(_run_cli())
