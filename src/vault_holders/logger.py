"""Logging setup: stderr output, level names colored on terminals."""

import logging
import os
import sys

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

LEVEL_COLORS = {
    "TRACE": "90",
    "DEBUG": "36",
    "INFO": "32",
    "WARNING": "33",
    "ERROR": "31",
    "CRITICAL": "35",
}

# Chatty below WARNING unless TRACE is asked for
NOISY_LOGGERS = ("web3", "urllib3")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class LevelColorFormatter(logging.Formatter):
    def __init__(self, *args, use_color: bool = True, **kwargs):
        super().__init__(*args, **kwargs)
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        code = LEVEL_COLORS.get(record.levelname)
        if not self.use_color or code is None:
            return super().format(record)
        plain = record.levelname
        record.levelname = f"\033[{code}m\033[1m{plain}\033[0m"
        try:
            return super().format(record)
        finally:
            record.levelname = plain


def _resolve_level(name: str) -> int:
    if name == "TRACE":
        return TRACE
    return getattr(logging, name, logging.INFO)


def setup_logging(log_level: str | None = None) -> None:
    """Configure the root logger from ``log_level`` or ``$LOG_LEVEL`` (INFO).

    At DEBUG the web3 and urllib3 loggers stay at WARNING; TRACE lets them
    through as well.
    """
    level_name = (log_level or os.getenv("LOG_LEVEL", "INFO")).upper()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        LevelColorFormatter(
            LOG_FORMAT, "%Y-%m-%d %H:%M:%S", use_color=sys.stderr.isatty()
        )
    )
    logging.basicConfig(level=_resolve_level(level_name), handlers=[handler], force=True)

    noisy_level = {"DEBUG": logging.WARNING, "TRACE": TRACE}.get(level_name)
    if noisy_level is not None:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(noisy_level)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
