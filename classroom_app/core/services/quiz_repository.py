"""Service for storing quizzes and reading or writing their attempts."""

from __future__ import annotations

import logging
from typing import Any

from classroom_app.constants.quiz_constants import (
    DEFAULT_DECLARED_TOTAL_QUESTIONS,
    DEFAULT_DURATION_MINUTES,
)
from classroom_app.core.errors import NotFound
from classroom_app.core.models import Question, Quiz, QuizAttempt
from classroom_app.core.row_store import RowStore

logger = logging.getLogger(__name__)

_ATTEMPT_JOINS = {
    "quizzes": ("quizzes", "quiz_id"),
    "profiles": ("profiles", "student_id"),
}


class QuizRepository:
    """Reads and writes the ``quizzes`` and ``quiz_attempts`` relations."""

    def __init__(self, store: RowStore) -> None:
        self._store = store

    def create_quiz(
        self,
        classroom_id: str,
        faculty_id: str,
        title: str,
        questions: list[Question],
        duration_minutes: int = DEFAULT_DURATION_MINUTES,
        total_questions: int = DEFAULT_DECLARED_TOTAL_QUESTIONS,
    ) -> Quiz:
        cleaned_title = title.strip()
        if not cleaned_title:
            raise ValueError("Quiz title must not be empty.")
        if not questions:
            raise ValueError("Quiz must contain at least one question.")
        self._validate_duration(duration_minutes)

        row = self._store.insert(
            "quizzes",
            {
                "classroom_id": classroom_id,
                "faculty_id": faculty_id,
                "title": cleaned_title,
                "questions": [question.to_row() for question in questions],
                "total_questions": total_questions,
                "duration_minutes": duration_minutes,
            },
        )
        logger.info("Created quiz %s with %d questions in classroom %s", row["id"], len(questions), classroom_id)
        return Quiz.from_row(row)

    def get_quiz(self, quiz_id: str) -> Quiz:
        row = self._store.select_one("quizzes", {"id": quiz_id})
        if row is None:
            raise NotFound(f"Quiz {quiz_id} was not found.")
        return Quiz.from_row(row)

    def list_quizzes(self, classroom_id: str) -> list[Quiz]:
        rows = self._store.select_where(
            "quizzes",
            {"classroom_id": classroom_id},
            order_by=[("created_at", True)],
        )
        return [Quiz.from_row(row) for row in rows]

    # --- Attempts ---

    def has_attempt(self, quiz_id: str, student_id: str) -> bool:
        return self._store.count("quiz_attempts", {"quiz_id": quiz_id, "student_id": student_id}) > 0

    def insert_attempt(self, record: dict[str, Any]) -> QuizAttempt:
        row = self._store.insert("quiz_attempts", record)
        return QuizAttempt.from_row(row)

    def attempts_for_student(self, student_id: str) -> list[QuizAttempt]:
        """Return a student's attempts, newest first."""
        return self._attempts({"student_id": student_id}, order_by=[("completed_at", True)])

    def attempts_for_quiz(self, quiz_id: str) -> list[QuizAttempt]:
        """Return a quiz's attempts ordered by score, best first."""
        return self._attempts(
            {"quiz_id": quiz_id},
            order_by=[("score", True), ("completed_at", False)],
        )

    def attempts_for_classroom(self, classroom_id: str) -> list[QuizAttempt]:
        """Return every attempt on the classroom's quizzes, newest first."""
        return self._attempts(
            {"quizzes.classroom_id": classroom_id},
            order_by=[("completed_at", True)],
        )

    def _attempts(self, filters: dict[str, Any], order_by: list[tuple[str, bool]]) -> list[QuizAttempt]:
        rows = self._store.select_where("quiz_attempts", filters, order_by=order_by, joins=_ATTEMPT_JOINS)
        return [QuizAttempt.from_row(row) for row in rows]

    @staticmethod
    def _validate_duration(duration_minutes: int) -> None:
        if not isinstance(duration_minutes, int) or isinstance(duration_minutes, bool):
            raise ValueError("Duration must be provided as an integer number of minutes.")
        if duration_minutes <= 0:
            raise ValueError("Duration must be a positive integer.")
