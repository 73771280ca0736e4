"""Configuration loader for flashforge-relay."""

from __future__ import annotations

from configparser import ConfigParser
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from . import constants


@dataclass(slots=True)
class ServerConfig:
    host: str = constants.DEFAULT_SERVER_HOST
    port: int = constants.DEFAULT_SERVER_PORT


@dataclass(slots=True)
class PrinterConfig:
    port: int = constants.DEFAULT_PRINTER_PORT
    timeout_seconds: float = constants.DEFAULT_TRANSACTION_TIMEOUT_SECONDS
    read_size: int = constants.DEFAULT_READ_SIZE


@dataclass(slots=True)
class PollingConfig:
    default_interval_ms: int = constants.DEFAULT_POLL_INTERVAL_MS
    min_interval_ms: int = constants.MIN_POLL_INTERVAL_MS
    history_size: int = constants.DEFAULT_HISTORY_SIZE  # Snapshots kept per polled device
    send_timeout_seconds: float = constants.DEFAULT_SEND_TIMEOUT_SECONDS


@dataclass(slots=True)
class LoggingConfig:
    level: str = "INFO"
    path: Optional[Path] = constants.DEFAULT_LOG_PATH
    log_network: bool = False


@dataclass(slots=True)
class RelayConfig:
    server: ServerConfig
    printer: PrinterConfig
    polling: PollingConfig
    logging: LoggingConfig
    raw: ConfigParser
    path: Path


def _get_float(parser: ConfigParser, section: str, option: str, default: float) -> float:
    try:
        return parser.getfloat(section, option, fallback=default)
    except ValueError:
        return default


def load_config(path: Optional[Path] = None) -> RelayConfig:
    """Load configuration from disk, applying defaults where necessary."""

    config_path = path or constants.DEFAULT_CONFIG_PATH
    parser = ConfigParser()
    parser.read_dict(
        {
            "server": {
                "host": constants.DEFAULT_SERVER_HOST,
                "port": str(constants.DEFAULT_SERVER_PORT),
            },
            "printer": {
                "port": str(constants.DEFAULT_PRINTER_PORT),
                "timeout_seconds": str(constants.DEFAULT_TRANSACTION_TIMEOUT_SECONDS),
                "read_size": str(constants.DEFAULT_READ_SIZE),
            },
            "polling": {
                "default_interval_ms": str(constants.DEFAULT_POLL_INTERVAL_MS),
                "min_interval_ms": str(constants.MIN_POLL_INTERVAL_MS),
                "history_size": str(constants.DEFAULT_HISTORY_SIZE),
                "send_timeout_seconds": str(constants.DEFAULT_SEND_TIMEOUT_SECONDS),
            },
            "logging": {
                "level": "INFO",
                "path": str(constants.DEFAULT_LOG_PATH),
                "log_network": "false",
            },
        }
    )

    if config_path.exists():
        parser.read(config_path)

    server = ServerConfig(
        host=parser.get("server", "host", fallback=constants.DEFAULT_SERVER_HOST),
        port=parser.getint("server", "port", fallback=constants.DEFAULT_SERVER_PORT),
    )

    timeout_value = _get_float(
        parser, "printer", "timeout_seconds", PrinterConfig().timeout_seconds
    )

    printer = PrinterConfig(
        port=parser.getint("printer", "port", fallback=constants.DEFAULT_PRINTER_PORT),
        timeout_seconds=max(0.1, timeout_value),
        read_size=max(
            1,
            parser.getint("printer", "read_size", fallback=constants.DEFAULT_READ_SIZE),
        ),
    )

    min_interval = max(
        1,
        parser.getint(
            "polling", "min_interval_ms", fallback=constants.MIN_POLL_INTERVAL_MS
        ),
    )
    polling = PollingConfig(
        default_interval_ms=max(
            min_interval,
            parser.getint(
                "polling",
                "default_interval_ms",
                fallback=constants.DEFAULT_POLL_INTERVAL_MS,
            ),
        ),
        min_interval_ms=min_interval,
        history_size=max(
            1,
            parser.getint(
                "polling", "history_size", fallback=constants.DEFAULT_HISTORY_SIZE
            ),
        ),
        send_timeout_seconds=max(
            0.01,
            _get_float(
                parser,
                "polling",
                "send_timeout_seconds",
                constants.DEFAULT_SEND_TIMEOUT_SECONDS,
            ),
        ),
    )

    log_path_value = parser.get("logging", "path", fallback="").strip()
    logging_config = LoggingConfig(
        level=parser.get("logging", "level", fallback="INFO"),
        path=Path(log_path_value).expanduser() if log_path_value else None,
        log_network=parser.getboolean("logging", "log_network", fallback=False),
    )

    return RelayConfig(
        server=server,
        printer=printer,
        polling=polling,
        logging=logging_config,
        raw=parser,
        path=config_path,
    )


def save_config(config: RelayConfig) -> None:
    """Persist the current configuration to disk."""

    config_path = config.path
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with config_path.open("w", encoding="utf-8") as stream:
        config.raw.write(stream)
