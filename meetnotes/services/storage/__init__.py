"""Job state persistence: async engine, ORM models and repository."""

from meetnotes.services.storage.database import Base, Database
from meetnotes.services.storage.models_db import Recording, Summary, Transcript
from meetnotes.services.storage.repository import RecordingRepository

__all__ = ["Base", "Database", "Recording", "RecordingRepository", "Summary", "Transcript"]
