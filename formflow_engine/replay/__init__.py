from .executor import BASE_DELAYS_MS, Executor, profile_value_for

__all__ = ["BASE_DELAYS_MS", "Executor", "profile_value_for"]
