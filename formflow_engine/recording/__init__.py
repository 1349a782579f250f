from .recorder import Recorder, RecordingSession, RecordingStartResult, RecordingStopResult

__all__ = ["Recorder", "RecordingSession", "RecordingStartResult", "RecordingStopResult"]
