"""Constants used across the flashforge-relay package."""

from __future__ import annotations

from pathlib import Path

APP_NAME = "flashforge-relay"
DEFAULT_CONFIG_FILENAME = f"{APP_NAME}.cfg"
DEFAULT_CONFIG_PATH = Path.home() / ".config" / APP_NAME / DEFAULT_CONFIG_FILENAME

DEFAULT_LOG_PATH = Path.home() / ".local" / "state" / APP_NAME / f"{APP_NAME}.log"

DEFAULT_SERVER_HOST = "0.0.0.0"
DEFAULT_SERVER_PORT = 3000

# FlashForge controllers accept text commands on this port.
DEFAULT_PRINTER_PORT = 8899
DEFAULT_TRANSACTION_TIMEOUT_SECONDS = 5.0
DEFAULT_READ_SIZE = 4096

DEFAULT_POLL_INTERVAL_MS = 2000
MIN_POLL_INTERVAL_MS = 500
DEFAULT_HISTORY_SIZE = 120
# Upper bound for pushing one message to one observer.
DEFAULT_SEND_TIMEOUT_SECONDS = 5.0

TRANSACTION_LOGGER_NAME = "flashforge_relay.transactions"
