import logging
import os
import threading
from typing import Optional

ROOT_NAME = "grave_registry"

_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"
_setup_lock = threading.Lock()


def _level_from_env(value: Optional[str]) -> int:
    if not value:
        return logging.INFO
    name = value.strip().upper()
    if name == "WARN":
        name = "WARNING"
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def _configure_root() -> logging.Logger:
    root = logging.getLogger(ROOT_NAME)
    with _setup_lock:
        if root.handlers:
            return root
        level = _level_from_env(os.environ.get("LOG_LEVEL"))
        formatter = logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT)

        console = logging.StreamHandler()
        console.setFormatter(formatter)
        root.addHandler(console)

        log_file = os.environ.get("LOG_FILE")
        if log_file:
            try:
                file_handler = logging.FileHandler(log_file, encoding="utf-8")
            except OSError:
                root.warning(f"LOG_FILE {log_file} could not be opened; logging to console only")
            else:
                file_handler.setFormatter(formatter)
                root.addHandler(file_handler)

        root.setLevel(level)
        root.propagate = False
    return root


def get_logger(name: str) -> logging.Logger:
    """Return ``grave_registry.<name>``; handlers live on the package logger.

    The package logger is set up on first use from LOG_LEVEL (default INFO)
    and LOG_FILE (optional path). Module loggers carry no handlers of their
    own and propagate to it.
    """
    _configure_root()
    return logging.getLogger(f"{ROOT_NAME}.{name}")
