"""Utility helpers shared across formflow components."""

from .file_ops import write_text
from .logging_utils import configure_from_settings, configure_logger

__all__ = ["write_text", "configure_logger", "configure_from_settings"]
