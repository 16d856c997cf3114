"""Console logging for the bridge scripts."""

import logging
import os
from pathlib import Path

import coloredlogs

#: Loggers that print every RPC round-trip at INFO
NOISY_LOGGERS = (
    "web3.providers.HTTPProvider",
    "web3.RequestManager",
    "web3.manager.RequestManager",
    "urllib3.connectionpool",
    "httpx",
    "httpcore",
    "solana",
)

LOG_FORMAT = "%(asctime)s %(name)-30s %(levelname)-7s %(message)s"


def setup_console_logging(default_log_level="info", log_file: Path | None = None) -> logging.Logger:
    """Coloured console logs, optionally copied to a file.

    ``LOG_LEVEL`` environment variable overrides ``default_log_level``.
    RPC client chatter is muted to warnings, so the transfer progress stays readable.

    :param log_file:
        Also write the log here, always at least at INFO level

    :return:
        Root logger
    """
    level_name = os.environ.get("LOG_LEVEL", default_log_level).upper()
    level = logging.getLevelName(level_name)
    assert isinstance(level, int), f"Unknown log level {level_name}"

    coloredlogs.install(level=level, fmt=LOG_FORMAT, datefmt="%H:%M:%S")
    root = logging.getLogger()

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_level = min(level, logging.INFO)
        handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        handler.setLevel(file_level)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
        root.setLevel(file_level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root
