"""Logging setup for the relay process.

Besides the usual per-module loggers, every printer exchange is traced on
the ``flashforge_relay.transactions`` logger: the command line sent and the
reply received. That trace is noisy at normal polling rates, so it stays
muted unless ``log_network`` is enabled, which also lets aiohttp's access
and websocket chatter through.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from . import constants

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Loggers that only matter when diagnosing the network side.
NETWORK_LOGGERS = ("aiohttp.access", "aiohttp.websocket", "asyncio")


def configure_logging(
    level: str = "INFO", *, log_path: Optional[Path] = None, log_network: bool = False
) -> None:
    """Install console (and optionally file) handlers on the root logger.

    Calling it again replaces the handlers installed by a previous call.
    """

    logging.captureWarnings(True)

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_path:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))

    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    _apply_network_levels(log_network)


def _apply_network_levels(log_network: bool) -> None:
    transactions = logging.getLogger(constants.TRANSACTION_LOGGER_NAME)
    if log_network:
        transactions.setLevel(logging.DEBUG)
        for name in NETWORK_LOGGERS:
            logging.getLogger(name).setLevel(logging.NOTSET)
    else:
        transactions.setLevel(logging.WARNING)
        for name in NETWORK_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
