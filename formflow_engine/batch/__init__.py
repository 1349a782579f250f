from .runner import BatchApplyReport, BatchRunner, FillReport, build_runner, detect_field_value

__all__ = ["BatchApplyReport", "BatchRunner", "FillReport", "build_runner", "detect_field_value"]
