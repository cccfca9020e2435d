"""Error taxonomy shared by the classroom services and the API layer."""

from __future__ import annotations


class ClassroomAppError(Exception):
    """Base class for expected, user-facing failures."""


class StoreError(ClassroomAppError):
    """Raised when the row store cannot complete a read or write."""


class UniqueViolation(StoreError):
    """Raised when an insert collides with a declared uniqueness constraint."""

    def __init__(self, relation: str, columns: tuple[str, ...]) -> None:
        super().__init__(f"Duplicate value for {relation}({', '.join(columns)}).")
        self.relation = relation
        self.columns = columns


class NotFound(ClassroomAppError):
    """Raised when a quiz, classroom or join code lookup misses."""


class AlreadyAttempted(ClassroomAppError):
    """Raised when a student already has an attempt recorded for a quiz."""


class SubmissionFailed(ClassroomAppError):
    """Raised when an attempt could not be persisted. The session stays resumable."""


class DuplicateMembership(ClassroomAppError):
    """Raised when a student redeems a join code for a classroom they already belong to."""


class SessionClosed(ClassroomAppError):
    """Raised when a finished or unknown quiz session is used."""


class QuestionSetImportError(ClassroomAppError):
    """Raised when a question-set document cannot be parsed."""
