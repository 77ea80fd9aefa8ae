"""
Logging Configuration for inivault.

Library modules only create module loggers with logging.getLogger(__name__);
handlers are installed by the application (or by inivaultctl) through
setup_logging().

Usage:
    from inivault.logging_config import setup_logging, get_logger, set_verbose

    setup_logging(verbose=True)

    logger = get_logger('inivault.storage.persistence')
    logger.info("Saved store", extra={'extra_data': {'bytes': 512}})

    set_verbose(False)
"""

import json
import logging
import os
import sys
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from pathlib import Path
from typing import Any, Dict, Optional

from inivault.constants import ENV_PREFIX, parse_bool


VERBOSE = 15
logging.addLevelName(VERBOSE, 'VERBOSE')


class FeatureArea(Enum):
    """Feature areas used to tag log lines."""
    CORE = auto()           # Vault facade and store
    CODEC = auto()          # Text and integrity codecs
    CRYPTO = auto()         # Key derivation and encryption
    PERSISTENCE = auto()    # Load/save protocol
    CONCURRENCY = auto()    # Locking
    CONFIG = auto()         # Options loading
    CLI = auto()            # inivaultctl


_FEATURE_MAP = {
    'codec': FeatureArea.CODEC,
    'crypto': FeatureArea.CRYPTO,
    'storage': FeatureArea.PERSISTENCE,
    'persistence': FeatureArea.PERSISTENCE,
    'concurrency': FeatureArea.CONCURRENCY,
    'rwlock': FeatureArea.CONCURRENCY,
    'config': FeatureArea.CONFIG,
    'cli': FeatureArea.CLI,
}


def detect_feature(logger_name: str) -> FeatureArea:
    """Detect the feature area from a logger name."""
    name_lower = logger_name.lower()
    for key, feature in _FEATURE_MAP.items():
        if key in name_lower:
            return feature
    return FeatureArea.CORE


@dataclass
class LoggingState:
    """Thread-safe logging configuration state."""
    verbose: bool = False
    log_file: Optional[str] = None
    console_enabled: bool = True
    json_format: bool = False
    initialized: bool = False
    _lock: threading.RLock = field(default_factory=threading.RLock)


_state = LoggingState()


class VaultFormatter(logging.Formatter):
    """Formatter with optional color and JSON output."""

    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'VERBOSE': '\033[94m',    # Light blue
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33;1m',  # Bold yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[31;1m', # Bold red
        'RESET': '\033[0m',
    }

    def __init__(self, use_colors: bool = True, json_format: bool = False):
        self.use_colors = use_colors and sys.stdout.isatty()
        self.json_format = json_format
        super().__init__()

    def format(self, record: logging.LogRecord) -> str:
        if self.json_format:
            return self._format_json(record)
        return self._format_text(record)

    def _format_text(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now().strftime('%Y-%m-%d %H:%M:%S.%f')[:-3]
        level_name = record.levelname

        if self.use_colors:
            color = self.COLORS.get(level_name, '')
            reset = self.COLORS['RESET']
            level_str = f"{color}{level_name:8}{reset}"
        else:
            level_str = f"{level_name:8}"

        feature_str = f"[{detect_feature(record.name).name.lower()}]"
        msg = record.getMessage()

        extra_str = ""
        extra_data = getattr(record, 'extra_data', None)
        if extra_data:
            extra_items = [f"{k}={v}" for k, v in extra_data.items()]
            extra_str = f" | {', '.join(extra_items)}"

        line = f"{timestamp} {level_str} {feature_str:14} {msg}{extra_str}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line

    def _format_json(self, record: logging.LogRecord) -> str:
        data: Dict[str, Any] = {
            'timestamp': datetime.now().isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'feature': detect_feature(record.name).name.lower(),
        }

        extra_data = getattr(record, 'extra_data', None)
        if extra_data:
            data['extra'] = extra_data

        if record.exc_info:
            data['exception'] = self.formatException(record.exc_info)

        return json.dumps(data, default=str)


def setup_logging(
    verbose: bool = False,
    log_file: Optional[str] = None,
    console: bool = True,
    json_format: bool = False,
) -> None:
    """
    Initialize the logging system.

    Args:
        verbose: Enable verbose logging (VERBOSE level)
        log_file: Optional file path for log output
        console: Enable console output (stderr)
        json_format: Use JSON format for logs
    """
    with _state._lock:
        _state.verbose = verbose
        _state.log_file = log_file
        _state.console_enabled = console
        _state.json_format = json_format

        base_level = VERBOSE if verbose else logging.INFO

        root = logging.getLogger()
        root.setLevel(base_level)

        for handler in root.handlers[:]:
            root.removeHandler(handler)

        if console:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setLevel(base_level)
            console_handler.setFormatter(VaultFormatter(
                use_colors=True,
                json_format=json_format
            ))
            root.addHandler(console_handler)

        if log_file:
            log_path = Path(log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)

            file_handler = logging.FileHandler(log_file)
            file_handler.setLevel(base_level)
            file_handler.setFormatter(VaultFormatter(
                use_colors=False,
                json_format=json_format
            ))
            root.addHandler(file_handler)

        _state.initialized = True


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the inivault namespace."""
    if not name.startswith('inivault'):
        name = f"inivault.{name}"
    return logging.getLogger(name)


def set_verbose(enabled: bool) -> None:
    """Toggle verbose mode at runtime."""
    with _state._lock:
        _state.verbose = enabled
        level = VERBOSE if enabled else logging.INFO

        root = logging.getLogger()
        root.setLevel(level)

        for handler in root.handlers:
            handler.setLevel(level)


def is_verbose() -> bool:
    """Check if verbose mode is enabled."""
    return _state.verbose


def get_logging_state() -> Dict[str, Any]:
    """Get current logging configuration state."""
    with _state._lock:
        return {
            'verbose': _state.verbose,
            'log_file': _state.log_file,
            'console_enabled': _state.console_enabled,
            'json_format': _state.json_format,
            'initialized': _state.initialized,
        }


def _env_flag(name: str) -> bool:
    value = os.environ.get(f"{ENV_PREFIX}{name}")
    if not value:
        return False
    try:
        return parse_bool(value)
    except ValueError:
        return False


def configure_from_environment() -> None:
    """Configure logging from INIVAULT_* environment variables."""
    setup_logging(
        verbose=_env_flag('VERBOSE'),
        log_file=os.environ.get(f"{ENV_PREFIX}LOG_FILE"),
        console=not _env_flag('LOG_NO_CONSOLE'),
        json_format=_env_flag('LOG_JSON'),
    )


__all__ = [
    'VERBOSE',
    'FeatureArea',
    'VaultFormatter',
    'detect_feature',
    'setup_logging',
    'configure_from_environment',
    'get_logger',
    'set_verbose',
    'is_verbose',
    'get_logging_state',
]
