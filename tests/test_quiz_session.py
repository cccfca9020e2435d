from __future__ import annotations

from datetime import timedelta
import json
import random

import pytest

from classroom_app.core.classroom_manager import ClassroomManager
from classroom_app.core.errors import AlreadyAttempted, NotFound, SessionClosed, StoreError, SubmissionFailed
from classroom_app.core.models import Question
from classroom_app.core.row_store import InMemoryRowStore
from classroom_app.core.services.quiz_session import (
    SessionRegistry,
    SessionTimer,
    SubmitReason,
    score_answers,
    select_questions,
)
from conftest import correct_answers_for, make_questions


class FlakyStore(InMemoryRowStore):
    """Fails the first N attempt inserts."""

    def __init__(self, failures: int) -> None:
        super().__init__()
        self.failures = failures

    def insert(self, relation, record):
        if relation == "quiz_attempts" and self.failures:
            self.failures -= 1
            raise StoreError("connection reset")
        return super().insert(relation, record)


def test_session_presents_ten_distinct_questions_from_the_pool(manager: ClassroomManager, quiz, student) -> None:
    session = manager.start_quiz_session(quiz.id, student.id)

    presented = [question.question for question in session.questions]
    pool = {question.question for question in quiz.questions}
    assert len(presented) == 10
    assert len(set(presented)) == 10
    assert set(presented) <= pool


def test_small_quiz_presents_every_question() -> None:
    questions = [Question(question=f"q{n}", options=["a", "b"], correct="a") for n in range(4)]

    selected = select_questions(questions, random.Random(3))

    assert sorted(q.question for q in selected) == ["q0", "q1", "q2", "q3"]


def test_score_counts_exact_text_matches() -> None:
    questions = [
        Question(question="q0", options=["Paris", "Rome"], correct="Paris"),
        Question(question="q1", options=["1", "2"], correct="2"),
        Question(question="q2", options=["x", "y"], correct="y"),
    ]

    assert score_answers(questions, {0: "Paris", 1: "2", 2: "y"}) == 3
    assert score_answers(questions, {0: "paris", 2: "y"}) == 1
    assert score_answers(questions, {}) == 0


def test_manual_submit_persists_presented_subset(manager: ClassroomManager, store, quiz, student) -> None:
    session = manager.start_quiz_session(quiz.id, student.id)
    presented = session.questions
    answers = correct_answers_for(presented)
    answers[0] = "not an option"
    for position, text in answers.items():
        manager.record_answer(session.session_id, position, text)

    result = manager.submit_session(session.session_id)

    assert (result.score, result.total) == (9, 10)
    assert result.reason is SubmitReason.MANUAL
    row = store.select_one("quiz_attempts", {"id": result.attempt_id})
    assert row is not None
    assert row["score"] == 9
    assert row["total_questions"] == 10
    assert [Question.from_row(item) for item in row["questions"]] == presented
    assert 0 <= row["score"] <= row["total_questions"]


def test_last_answer_for_a_position_wins(manager: ClassroomManager, quiz, student) -> None:
    session = manager.start_quiz_session(quiz.id, student.id)
    correct = session.questions[0].correct

    session.record_answer(0, correct)
    session.record_answer(0, "changed my mind")

    assert session.answers == {0: "changed my mind"}
    assert session.submit().score == 0


def test_record_answer_rejects_unknown_position(manager: ClassroomManager, quiz, student) -> None:
    session = manager.start_quiz_session(quiz.id, student.id)

    with pytest.raises(IndexError):
        session.record_answer(10, "anything")


def test_second_start_after_submission_is_rejected(manager: ClassroomManager, quiz, student) -> None:
    first = manager.start_quiz_session(quiz.id, student.id)
    manager.submit_session(first.session_id)

    with pytest.raises(AlreadyAttempted):
        manager.start_quiz_session(quiz.id, student.id)


def test_racing_sessions_both_start_but_only_one_attempt_is_stored(manager: ClassroomManager, store, quiz, student) -> None:
    # The existence check runs before any write, so both sessions start.
    first = manager.start_quiz_session(quiz.id, student.id)
    second = manager.start_quiz_session(quiz.id, student.id)

    manager.submit_session(first.session_id)
    with pytest.raises(AlreadyAttempted):
        manager.submit_session(second.session_id)

    with pytest.raises(SessionClosed):
        manager.get_session(second.session_id)
    with pytest.raises(SessionClosed):
        second.record_answer(0, "still writable")
    with pytest.raises(SessionClosed):
        second.submit()
    assert second.is_closed()
    assert store.count("quiz_attempts", {"quiz_id": quiz.id, "student_id": student.id}) == 1


def test_racing_session_that_times_out_second_is_closed(manager: ClassroomManager, store, quiz, student) -> None:
    first = manager.start_quiz_session(quiz.id, student.id)
    second = manager.start_quiz_session(quiz.id, student.id)
    manager.submit_session(first.session_id)

    with pytest.raises(AlreadyAttempted):
        manager.tick_session(second.session_id, seconds=60)

    with pytest.raises(SessionClosed):
        manager.get_session(second.session_id)
    assert second.tick() is None
    assert store.count("quiz_attempts") == 1


def test_unknown_quiz_is_not_found(manager: ClassroomManager, student) -> None:
    with pytest.raises(NotFound):
        manager.start_quiz_session("missing", student.id)


def test_countdown_auto_submits_exactly_once(manager: ClassroomManager, store, quiz, student) -> None:
    session = manager.start_quiz_session(quiz.id, student.id)
    assert session.timer.remaining_seconds == 60

    for _ in range(59):
        assert session.tick() is None
    result = session.tick()

    assert result is not None
    assert result.reason is SubmitReason.TIMEOUT
    assert result.time_taken_seconds == 60
    assert session.tick() is None
    assert session.submit() == result
    assert store.count("quiz_attempts") == 1


def test_time_taken_is_elapsed_countdown(manager: ClassroomManager, quiz, student) -> None:
    session = manager.start_quiz_session(quiz.id, student.id)

    manager.tick_session(session.session_id, seconds=25)
    result = manager.submit_session(session.session_id)

    assert result.time_taken_seconds == 25


def test_timer_never_goes_negative() -> None:
    timer = SessionTimer(30)

    assert timer.tick(45) == 0
    assert timer.is_expired()
    assert timer.elapsed_seconds() == 30


def test_failed_submission_leaves_session_resumable() -> None:
    store = FlakyStore(failures=1)
    manager = ClassroomManager(store=store, shuffle_seed=7)
    classroom = manager.create_classroom("faculty-1", "History")
    quiz = manager.create_quiz(classroom.id, "faculty-1", "Dates", json.dumps(make_questions(3)))
    session = manager.start_quiz_session(quiz.id, "student-1")
    for position, text in correct_answers_for(session.questions).items():
        session.record_answer(position, text)

    with pytest.raises(SubmissionFailed):
        manager.submit_session(session.session_id)
    assert not session.is_finished()
    assert manager.get_session(session.session_id) is session

    result = manager.submit_session(session.session_id)
    assert (result.score, result.total) == (3, 3)


def test_finished_session_discards_state(manager: ClassroomManager, quiz, student) -> None:
    session = manager.start_quiz_session(quiz.id, student.id)
    session.record_answer(0, session.questions[0].correct)

    manager.submit_session(session.session_id)

    assert session.questions == []
    assert session.answers == {}
    with pytest.raises(SessionClosed):
        session.record_answer(0, "late")
    with pytest.raises(SessionClosed):
        manager.get_session(session.session_id)


def test_abandoned_session_persists_nothing(manager: ClassroomManager, store, quiz, student) -> None:
    session = manager.start_quiz_session(quiz.id, student.id)
    session.record_answer(0, "draft")

    manager.abandon_session(session.session_id)

    assert store.count("quiz_attempts") == 0
    assert manager.start_quiz_session(quiz.id, student.id).session_id != session.session_id


def test_timeout_reason_needs_an_expired_countdown(manager: ClassroomManager, store, quiz, student) -> None:
    session = manager.start_quiz_session(quiz.id, student.id)
    manager.tick_session(session.session_id, seconds=10)

    with pytest.raises(ValueError):
        manager.submit_session(session.session_id, SubmitReason.TIMEOUT)
    assert store.count("quiz_attempts") == 0

    result = manager.submit_session(session.session_id)
    assert result.reason is SubmitReason.MANUAL
    assert result.time_taken_seconds == 10


def test_failed_timeout_submission_retries_on_next_tick() -> None:
    store = FlakyStore(failures=1)
    manager = ClassroomManager(store=store, shuffle_seed=7)
    classroom = manager.create_classroom("faculty-1", "History")
    quiz = manager.create_quiz(classroom.id, "faculty-1", "Dates", json.dumps(make_questions(3)), duration_minutes=1)
    session = manager.start_quiz_session(quiz.id, "student-1")

    with pytest.raises(SubmissionFailed):
        manager.tick_session(session.session_id, seconds=60)
    assert manager.get_session(session.session_id) is session

    result = manager.tick_session(session.session_id)
    assert result is not None
    assert result.reason is SubmitReason.TIMEOUT
    assert store.count("quiz_attempts") == 1


def test_idle_sessions_are_evicted_after_their_deadline(manager: ClassroomManager, quiz, student) -> None:
    session = manager.start_quiz_session(quiz.id, student.id)
    registry = SessionRegistry()
    registry.add(session)

    assert registry.evict_stale(now=session.started_at + timedelta(seconds=60 + 299)) == []
    assert len(registry) == 1
    assert registry.evict_stale(now=session.started_at + timedelta(seconds=60 + 300)) == [session.session_id]
    assert len(registry) == 0


def test_rejected_sessions_are_evicted_immediately(manager: ClassroomManager, quiz, student) -> None:
    first = manager.start_quiz_session(quiz.id, student.id)
    second = manager.start_quiz_session(quiz.id, student.id)
    registry = SessionRegistry()
    registry.add(first)
    registry.add(second)
    first.submit()
    with pytest.raises(AlreadyAttempted):
        second.submit()

    evicted = registry.evict_stale(now=second.started_at)

    assert sorted(evicted) == sorted([first.session_id, second.session_id])
