from .resume import ResumeData, StaticProfileProvider, StoredProfileProvider

__all__ = ["ResumeData", "StaticProfileProvider", "StoredProfileProvider"]
