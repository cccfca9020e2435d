"""Service for running one student's timed attempt at a quiz."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
import logging
import random
from threading import Lock
from uuid import uuid4

from classroom_app.constants.quiz_constants import (
    QUESTIONS_PER_SESSION,
    SESSION_EVICTION_GRACE_SECONDS,
    TIMER_TICK_SECONDS,
)
from classroom_app.core.errors import (
    AlreadyAttempted,
    SessionClosed,
    StoreError,
    SubmissionFailed,
    UniqueViolation,
)
from classroom_app.core.models import Question, Quiz, utc_now
from classroom_app.core.services.quiz_repository import QuizRepository

logger = logging.getLogger(__name__)


class SubmitReason(str, Enum):
    MANUAL = "manual"
    TIMEOUT = "timeout"


@dataclass(slots=True, frozen=True)
class SubmissionResult:
    """Outcome returned to the caller once an attempt is stored."""

    attempt_id: str
    score: int
    total: int
    time_taken_seconds: int
    reason: SubmitReason


def select_questions(
    questions: list[Question],
    rng: random.Random,
    limit: int = QUESTIONS_PER_SESSION,
) -> list[Question]:
    """Return a uniformly shuffled prefix of at most ``limit`` questions."""
    shuffled = list(questions)
    rng.shuffle(shuffled)
    return shuffled[: min(limit, len(shuffled))]


def score_answers(questions: list[Question], answers: dict[int, str]) -> int:
    """Count positions whose recorded answer equals the correct option text."""
    return sum(
        1
        for position, question in enumerate(questions)
        if position in answers and answers[position] == question.correct
    )


class SessionTimer:
    """One-second resolution countdown for a quiz session."""

    def __init__(self, duration_seconds: int) -> None:
        if duration_seconds < 0:
            raise ValueError("Duration must not be negative.")
        self._duration_seconds = duration_seconds
        self._remaining_seconds = duration_seconds

    @property
    def duration_seconds(self) -> int:
        return self._duration_seconds

    @property
    def remaining_seconds(self) -> int:
        return self._remaining_seconds

    def tick(self, seconds: int = TIMER_TICK_SECONDS) -> int:
        self._remaining_seconds = max(0, self._remaining_seconds - seconds)
        return self._remaining_seconds

    def is_expired(self) -> bool:
        return self._remaining_seconds <= 0

    def elapsed_seconds(self) -> int:
        # Clamped to [0, duration].
        elapsed = self._duration_seconds - self._remaining_seconds
        return max(0, min(self._duration_seconds, elapsed))


class QuizSession:
    """Holds the presented questions, answers and countdown for one attempt."""

    def __init__(
        self,
        quiz: Quiz,
        student_id: str,
        questions: list[Question],
        repository: QuizRepository,
    ) -> None:
        self.session_id: str = uuid4().hex
        self.quiz_id: str = quiz.id
        self.quiz_title: str = quiz.title
        self.student_id: str = student_id
        self.timer = SessionTimer(quiz.duration_seconds)
        self.started_at: datetime = utc_now()
        self._repository = repository
        self._questions: list[Question] = list(questions)
        self._answers: dict[int, str] = {}
        self._lock = Lock()
        self._submitting: bool = False
        self._timed_out: bool = False
        self._rejected: bool = False
        self._result: SubmissionResult | None = None

    @property
    def questions(self) -> list[Question]:
        return list(self._questions)

    @property
    def answers(self) -> dict[int, str]:
        return dict(self._answers)

    @property
    def result(self) -> SubmissionResult | None:
        return self._result

    def is_finished(self) -> bool:
        return self._result is not None

    def is_closed(self) -> bool:
        """True once the session can no longer change: stored or rejected."""
        return self._result is not None or self._rejected

    def is_stale(self, now: datetime, grace_seconds: int = SESSION_EVICTION_GRACE_SECONDS) -> bool:
        """Closed, or left idle well past the point its countdown would end."""
        with self._lock:
            if self._submitting:
                return False
            if self._result is not None or self._rejected:
                return True
        deadline = self.started_at + timedelta(seconds=self.timer.duration_seconds + grace_seconds)
        return now >= deadline

    def record_answer(self, position: int, option_text: str) -> None:
        """Store the chosen option text for a position. Last write wins."""
        with self._lock:
            self._ensure_open()
            if not 0 <= position < len(self._questions):
                raise IndexError(f"Question position {position} out of range")
            self._answers[position] = option_text

    def tick(self, seconds: int = TIMER_TICK_SECONDS) -> SubmissionResult | None:
        """Advance the countdown; the first tick that reaches zero submits."""
        with self._lock:
            if self._result is not None or self._rejected or self._timed_out or self._submitting:
                return None
            remaining = self.timer.tick(seconds)
            if remaining > 0:
                return None
            self._timed_out = True
        logger.info("Time limit reached for session %s; submitting", self.session_id)
        return self.submit(SubmitReason.TIMEOUT)

    def submit(self, reason: SubmitReason = SubmitReason.MANUAL) -> SubmissionResult:
        with self._lock:
            if self._result is not None:
                return self._result
            if self._rejected:
                raise SessionClosed("This quiz has already been attempted.")
            if self._submitting:
                raise SessionClosed("A submission for this quiz is already in progress.")
            if reason is SubmitReason.TIMEOUT and not self.timer.is_expired():
                raise ValueError("Time is still remaining; submit manually instead.")
            self._submitting = True
            questions = list(self._questions)
            answers = dict(self._answers)
            time_taken = self.timer.elapsed_seconds()

        score = score_answers(questions, answers)
        record = {
            "quiz_id": self.quiz_id,
            "student_id": self.student_id,
            "answers": answers,
            "questions": [question.to_row() for question in questions],
            "score": score,
            "total_questions": len(questions),
            "time_taken_seconds": time_taken,
            "completed_at": utc_now(),
        }
        try:
            attempt = self._repository.insert_attempt(record)
        except UniqueViolation as exc:
            # Another session for the same quiz and student was stored first.
            with self._lock:
                self._submitting = False
                self._rejected = True
                self._questions = []
                self._answers = {}
            logger.info("Session %s rejected: attempt already stored", self.session_id)
            raise AlreadyAttempted("You have already attempted this quiz.") from exc
        except StoreError as exc:
            with self._lock:
                self._submitting = False
                self._timed_out = False
            logger.error("Failed to store attempt for session %s: %s", self.session_id, exc)
            raise SubmissionFailed("Failed to submit quiz. Please try again.") from exc

        result = SubmissionResult(
            attempt_id=attempt.id,
            score=score,
            total=len(questions),
            time_taken_seconds=time_taken,
            reason=reason,
        )
        with self._lock:
            self._result = result
            self._submitting = False
            self._questions = []
            self._answers = {}
        logger.info(
            "Session %s submitted (%s): %d/%d in %ds",
            self.session_id,
            reason.value,
            score,
            result.total,
            time_taken,
        )
        return result

    def _ensure_open(self) -> None:
        if self._result is not None:
            raise SessionClosed("This quiz has already been submitted.")
        if self._rejected:
            raise SessionClosed("This quiz has already been attempted.")


def start_session(
    repository: QuizRepository,
    quiz_id: str,
    student_id: str,
    rng: random.Random | None = None,
) -> QuizSession:
    """Check the at-most-one-attempt rule and draw the question subset."""
    quiz = repository.get_quiz(quiz_id)
    if repository.has_attempt(quiz_id, student_id):
        raise AlreadyAttempted("You have already attempted this quiz.")
    questions = select_questions(quiz.questions, rng or random.Random())
    session = QuizSession(quiz=quiz, student_id=student_id, questions=questions, repository=repository)
    logger.info(
        "Started session %s for student %s on quiz %s (%d questions)",
        session.session_id,
        student_id,
        quiz_id,
        len(questions),
    )
    return session


class SessionRegistry:
    """Tracks live sessions by id. Abandoned sessions persist nothing."""

    def __init__(self) -> None:
        self._sessions: dict[str, QuizSession] = {}
        self._lock = Lock()

    def add(self, session: QuizSession) -> None:
        with self._lock:
            self._sessions[session.session_id] = session

    def get(self, session_id: str) -> QuizSession:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionClosed(f"Quiz session {session_id} is not active.")
        return session

    def discard(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)

    def evict_stale(
        self,
        now: datetime | None = None,
        grace_seconds: int = SESSION_EVICTION_GRACE_SECONDS,
    ) -> list[str]:
        """Drop closed sessions and ones left idle past their deadline."""
        now = now or utc_now()
        with self._lock:
            stale = [
                session_id
                for session_id, session in self._sessions.items()
                if session.is_stale(now, grace_seconds)
            ]
            for session_id in stale:
                del self._sessions[session_id]
        if stale:
            logger.info("Evicted %d stale quiz session(s)", len(stale))
        return stale

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
