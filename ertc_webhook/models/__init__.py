"""SQLAlchemy ORM models."""

from ertc_webhook.models.submission import Base, Submission
from ertc_webhook.models.stored_file import StoredFile

__all__ = ["Base", "Submission", "StoredFile"]
