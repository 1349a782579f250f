from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

ROOT_LOGGER_NAME = "formflow_engine"
LOG_FILE_NAME = "formflow.log"
LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s - %(message)s"

# Client libraries that log every request at INFO.
NOISY_LOGGERS = ("httpx", "httpcore", "openai", "asyncio")


def _level(value: Any, default: int = logging.INFO) -> int:
    if isinstance(value, int):
        return value
    return getattr(logging, str(value).upper(), default)


def configure_logger(
    level: str = "INFO",
    log_dir: Optional[str] = None,
    *,
    file_name: str = LOG_FILE_NAME,
    levels: Mapping[str, Any] | None = None,
    quiet_clients: bool = True,
) -> logging.Logger:
    """
    Configure and return the package logger.

    Handlers are attached only the first time. ``levels`` maps component
    names, relative to the package (``"observer.change_watcher"``), to their
    own level and is applied on every call.
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for component, component_level in (levels or {}).items():
        name = component if component.startswith(ROOT_LOGGER_NAME) else f"{ROOT_LOGGER_NAME}.{component}"
        logging.getLogger(name).setLevel(_level(component_level))
    if quiet_clients:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
    if logger.handlers:
        # Already configured
        return logger

    logger.setLevel(_level(level))
    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_dir:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(Path(log_dir) / file_name, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def configure_from_settings(settings: Dict[str, Any] | None) -> logging.Logger:
    section: Dict[str, Any] = (settings or {}).get("logging") or {}
    return configure_logger(
        level=section.get("level", "INFO"),
        log_dir=section.get("log_dir"),
        file_name=str(section.get("file_name") or LOG_FILE_NAME),
        levels=section.get("levels"),
        quiet_clients=bool(section.get("quiet_clients", True)),
    )


__all__ = ["configure_logger", "configure_from_settings", "ROOT_LOGGER_NAME", "LOG_FILE_NAME"]
