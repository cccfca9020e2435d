from __future__ import annotations

from datetime import datetime, timedelta, timezone
import json

import pytest

from classroom_app.core.classroom_manager import ClassroomManager
from classroom_app.core.models import Question, QuizAttempt, Role
from classroom_app.core.row_store import InMemoryRowStore

BASE_TIME = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


def make_questions(count: int) -> list[dict[str, object]]:
    return [
        {
            "question": f"What is {n} + {n}?",
            "options": [str(n), str(2 * n), str(3 * n), str(4 * n)],
            "correct": str(2 * n),
        }
        for n in range(1, count + 1)
    ]


def make_attempt(
    score: int,
    total: int,
    day: int = 0,
    student_id: str = "student-1",
    quiz_id: str = "quiz-1",
    time_taken: int | None = 60,
    student_name: str | None = "Ada Lovelace",
) -> QuizAttempt:
    return QuizAttempt(
        id=f"{student_id}-{quiz_id}-{day}",
        quiz_id=quiz_id,
        student_id=student_id,
        answers={},
        questions=[],
        score=score,
        total_questions=total,
        time_taken_seconds=time_taken,
        completed_at=BASE_TIME + timedelta(days=day),
        student_name=student_name,
    )


@pytest.fixture
def store() -> InMemoryRowStore:
    return InMemoryRowStore()


@pytest.fixture
def manager(store: InMemoryRowStore) -> ClassroomManager:
    return ClassroomManager(store=store, shuffle_seed=1234)


@pytest.fixture
def faculty(manager: ClassroomManager):
    return manager.create_profile("Grace Hopper", Role.FACULTY)


@pytest.fixture
def student(manager: ClassroomManager):
    return manager.create_profile("Ada Lovelace", Role.STUDENT)


@pytest.fixture
def classroom(manager: ClassroomManager, faculty):
    return manager.create_classroom(faculty.id, "Discrete Maths", "Weekly quizzes")


@pytest.fixture
def quiz(manager: ClassroomManager, classroom, faculty):
    return manager.create_quiz(classroom.id, faculty.id, "Doubling", json.dumps(make_questions(15)), duration_minutes=1)


def correct_answers_for(questions: list[Question]) -> dict[int, str]:
    return {position: question.correct for position, question in enumerate(questions)}
