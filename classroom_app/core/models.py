"""Domain models for the classroom application."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, Enum):
    FACULTY = "faculty"
    STUDENT = "student"


@dataclass(slots=True)
class Profile:
    """Display information for a faculty member or student."""

    id: str
    full_name: str
    role: Role = Role.STUDENT

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Profile:
        return cls(id=row["id"], full_name=row.get("full_name") or "", role=Role(row.get("role", "student")))

    def to_row(self) -> dict[str, Any]:
        return {"id": self.id, "full_name": self.full_name, "role": self.role.value}


@dataclass(slots=True)
class Question:
    """Multiple-choice question keyed by the text of its correct option."""

    question: str
    options: list[str]
    correct: str

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Question:
        return cls(question=row["question"], options=list(row["options"]), correct=row["correct"])

    def to_row(self) -> dict[str, Any]:
        return {"question": self.question, "options": list(self.options), "correct": self.correct}


@dataclass(slots=True)
class Quiz:
    id: str
    classroom_id: str
    faculty_id: str
    title: str
    duration_minutes: int
    questions: list[Question]
    total_questions: int
    created_at: datetime | None = None

    @property
    def duration_seconds(self) -> int:
        return self.duration_minutes * 60

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Quiz:
        return cls(
            id=row["id"],
            classroom_id=row["classroom_id"],
            faculty_id=row["faculty_id"],
            title=row["title"],
            duration_minutes=row["duration_minutes"],
            questions=[Question.from_row(item) for item in row.get("questions") or []],
            total_questions=row["total_questions"],
            created_at=row.get("created_at"),
        )


@dataclass(slots=True)
class QuizAttempt:
    """One completed submission of a quiz by one student."""

    id: str
    quiz_id: str
    student_id: str
    answers: dict[int, str]
    questions: list[Question]
    score: int
    total_questions: int
    time_taken_seconds: int | None
    completed_at: datetime
    quiz_title: str | None = None  # Joined from quizzes when available
    student_name: str | None = None  # Joined from profiles when available

    @property
    def accuracy(self) -> float:
        if self.total_questions <= 0:
            return 0.0
        return self.score / self.total_questions * 100

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> QuizAttempt:
        quiz = row.get("quizzes") or {}
        profile = row.get("profiles") or {}
        return cls(
            id=row["id"],
            quiz_id=row["quiz_id"],
            student_id=row["student_id"],
            answers={int(position): text for position, text in (row.get("answers") or {}).items()},
            questions=[Question.from_row(item) for item in row.get("questions") or []],
            score=row.get("score") or 0,
            total_questions=row.get("total_questions") or 0,
            time_taken_seconds=row.get("time_taken_seconds"),
            completed_at=row["completed_at"],
            quiz_title=quiz.get("title"),
            student_name=profile.get("full_name"),
        )


@dataclass(slots=True)
class Classroom:
    id: str
    faculty_id: str
    name: str
    description: str
    join_code: str
    created_at: datetime

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Classroom:
        return cls(
            id=row["id"],
            faculty_id=row["faculty_id"],
            name=row["name"],
            description=row.get("description") or "",
            join_code=row["join_code"],
            created_at=row["created_at"],
        )


@dataclass(slots=True)
class ClassroomMembership:
    id: str
    classroom_id: str
    student_id: str
    joined_at: datetime

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> ClassroomMembership:
        return cls(
            id=row["id"],
            classroom_id=row["classroom_id"],
            student_id=row["student_id"],
            joined_at=row["joined_at"],
        )


@dataclass(slots=True)
class Announcement:
    id: str
    classroom_id: str
    faculty_id: str
    title: str
    content: str
    created_at: datetime
    author_name: str | None = None
    content_html: str = field(default="", repr=False)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Announcement:
        author = row.get("profiles") or {}
        return cls(
            id=row["id"],
            classroom_id=row["classroom_id"],
            faculty_id=row["faculty_id"],
            title=row["title"],
            content=row["content"],
            created_at=row["created_at"],
            author_name=author.get("full_name"),
        )
