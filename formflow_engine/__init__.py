"""Record, replay and auto-answer web forms."""

__version__ = "0.1.0"

__all__ = ["__version__"]
