"""Business logic shared by the API: classrooms, quiz sessions and analytics."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import random
from threading import Lock
from typing import Any

from classroom_app.constants.quiz_constants import (
    CLASS_CHART_LIMIT,
    CLASS_VIEW_MIN_ATTEMPTS_FOR_TREND,
    DEFAULT_DURATION_MINUTES,
    SELF_VIEW_MIN_ATTEMPTS_FOR_TREND,
    TIMER_TICK_SECONDS,
    UNKNOWN_STUDENT_NAME,
)
from classroom_app.core.errors import AlreadyAttempted, NotFound, QuestionSetImportError
from classroom_app.core.models import (
    Announcement,
    Classroom,
    ClassroomMembership,
    Profile,
    Quiz,
    QuizAttempt,
    Role,
)
from classroom_app.core.question_set_importer import MalformedInput, parse_question_items, parse_question_set
from classroom_app.core.row_store import RowStore
from classroom_app.core.services import attempt_aggregator
from classroom_app.core.services.attempt_aggregator import (
    ClassInsights,
    ClassStatistics,
    PerformanceBand,
    QuizStatistics,
    StudentStatistics,
    TrendPoint,
)
from classroom_app.core.services.classroom_directory import ClassroomDirectory, FacultyOverview
from classroom_app.core.services.leaderboard import LeaderboardScope, RankedEntry, build_leaderboard
from classroom_app.core.services.quiz_repository import QuizRepository
from classroom_app.core.services.quiz_session import (
    QuizSession,
    SessionRegistry,
    SubmissionResult,
    SubmitReason,
    start_session,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class StudentPerformance:
    statistics: StudentStatistics
    history: list[QuizAttempt]
    trend: list[TrendPoint]


@dataclass(slots=True, frozen=True)
class ChartBar:
    display_name: str
    accuracy: float
    band: PerformanceBand


@dataclass(slots=True, frozen=True)
class ClassPerformance:
    students: list[StudentStatistics]
    statistics: ClassStatistics
    chart: list[ChartBar]
    insights: ClassInsights


@dataclass(slots=True, frozen=True)
class QuizResults:
    quiz: Quiz
    attempts: list[QuizAttempt]
    statistics: QuizStatistics
    leaderboard: list[RankedEntry]


class ClassroomManager:
    """Facade over the directory, quiz repository, sessions and aggregation."""

    def __init__(self, store: RowStore, shuffle_seed: int | None = None) -> None:
        self._lock = Lock()
        self._store = store
        self._rng = random.Random(shuffle_seed)

        # Services
        self._directory = ClassroomDirectory(store, rng=random.Random(shuffle_seed))
        self._quizzes = QuizRepository(store)
        self._sessions = SessionRegistry()

    # --- Profiles & Classrooms ---

    def create_profile(self, full_name: str, role: Role, profile_id: str | None = None) -> Profile:
        return self._directory.create_profile(full_name, role, profile_id=profile_id)

    def get_profile(self, profile_id: str) -> Profile:
        return self._directory.get_profile(profile_id)

    def create_classroom(self, faculty_id: str, name: str, description: str = "") -> Classroom:
        return self._directory.create_classroom(faculty_id, name, description)

    def get_classroom(self, classroom_id: str) -> Classroom:
        return self._directory.get_classroom(classroom_id)

    def list_faculty_classrooms(self, faculty_id: str) -> list[Classroom]:
        return self._directory.list_faculty_classrooms(faculty_id)

    def list_student_classrooms(self, student_id: str) -> list[Classroom]:
        return self._directory.list_student_classrooms(student_id)

    def join_classroom(self, student_id: str, join_code: str) -> ClassroomMembership:
        return self._directory.join_classroom(student_id, join_code)

    def faculty_overview(self, faculty_id: str) -> FacultyOverview:
        return self._directory.faculty_overview(faculty_id)

    def post_announcement(self, classroom_id: str, faculty_id: str, title: str, content: str) -> Announcement:
        return self._directory.post_announcement(classroom_id, faculty_id, title, content)

    def list_announcements(self, classroom_id: str) -> list[Announcement]:
        return self._directory.list_announcements(classroom_id)

    # --- Quizzes ---

    def create_quiz(
        self,
        classroom_id: str,
        faculty_id: str,
        title: str,
        question_set: str | list[Any],
        duration_minutes: int = DEFAULT_DURATION_MINUTES,
    ) -> Quiz:
        """Create a quiz from a JSON document or an already-decoded question list."""
        if isinstance(question_set, str):
            parsed = parse_question_set(question_set)
        else:
            parsed = parse_question_items(question_set)
        if isinstance(parsed, MalformedInput):
            raise QuestionSetImportError(parsed.reason)
        self._directory.get_classroom(classroom_id)
        return self._quizzes.create_quiz(
            classroom_id=classroom_id,
            faculty_id=faculty_id,
            title=title,
            questions=parsed.questions,
            duration_minutes=duration_minutes,
        )

    def get_quiz(self, quiz_id: str) -> Quiz:
        return self._quizzes.get_quiz(quiz_id)

    def list_quizzes(self, classroom_id: str) -> list[Quiz]:
        return self._quizzes.list_quizzes(classroom_id)

    # --- Quiz Sessions ---

    def start_quiz_session(self, quiz_id: str, student_id: str) -> QuizSession:
        with self._lock:
            self._sessions.evict_stale()
            session = start_session(self._quizzes, quiz_id, student_id, rng=self._rng)
            self._sessions.add(session)
            return session

    def get_session(self, session_id: str) -> QuizSession:
        return self._sessions.get(session_id)

    def record_answer(self, session_id: str, position: int, option_text: str) -> None:
        self._sessions.get(session_id).record_answer(position, option_text)

    def tick_session(self, session_id: str, seconds: int = TIMER_TICK_SECONDS) -> SubmissionResult | None:
        session = self._sessions.get(session_id)
        try:
            result = session.tick(seconds)
        except AlreadyAttempted:
            self._sessions.discard(session_id)
            raise
        if session.is_finished():
            self._sessions.discard(session_id)
        return result

    def submit_session(self, session_id: str, reason: SubmitReason = SubmitReason.MANUAL) -> SubmissionResult:
        session = self._sessions.get(session_id)
        try:
            result = session.submit(reason)
        except AlreadyAttempted:
            self._sessions.discard(session_id)
            raise
        self._sessions.discard(session_id)
        return result

    def abandon_session(self, session_id: str) -> None:
        self._sessions.discard(session_id)
        logger.info("Session %s abandoned", session_id)

    def evict_stale_sessions(self) -> list[str]:
        return self._sessions.evict_stale()

    # --- Analytics ---

    def aggregate_student_performance(self, student_id: str) -> StudentPerformance:
        attempts = self._quizzes.attempts_for_student(student_id)
        statistics = attempt_aggregator.summarize_student(
            attempts,
            min_attempts_for_trend=SELF_VIEW_MIN_ATTEMPTS_FOR_TREND,
            student_id=student_id,
        )
        return StudentPerformance(
            statistics=statistics,
            history=attempts,
            trend=attempt_aggregator.accuracy_trend(attempts),
        )

    def aggregate_class_performance(self, classroom_id: str) -> ClassPerformance:
        self._directory.get_classroom(classroom_id)
        attempts = self._quizzes.attempts_for_classroom(classroom_id)
        students = attempt_aggregator.summarize_students(
            attempts,
            min_attempts_for_trend=CLASS_VIEW_MIN_ATTEMPTS_FOR_TREND,
        )
        chart = [
            ChartBar(
                display_name=_first_name(student.student_name),
                accuracy=student.average_accuracy,
                band=attempt_aggregator.performance_band(student.average_accuracy),
            )
            for student in students[:CLASS_CHART_LIMIT]
        ]
        statistics = attempt_aggregator.summarize_class(students)
        return ClassPerformance(
            students=students,
            statistics=statistics,
            chart=chart,
            insights=attempt_aggregator.class_insights(students, statistics),
        )

    def quiz_results(self, quiz_id: str) -> QuizResults:
        quiz = self._quizzes.get_quiz(quiz_id)
        attempts = self._quizzes.attempts_for_quiz(quiz_id)
        return QuizResults(
            quiz=quiz,
            attempts=attempts,
            statistics=attempt_aggregator.summarize_quiz(attempts),
            leaderboard=build_leaderboard(attempts, LeaderboardScope.PER_QUIZ),
        )

    def build_leaderboard(self, attempts: list[QuizAttempt], scope: LeaderboardScope) -> list[RankedEntry]:
        return build_leaderboard(attempts, scope)

    def classroom_leaderboard(
        self,
        classroom_id: str,
        scope: LeaderboardScope = LeaderboardScope.OVERALL,
        quiz_id: str | None = None,
    ) -> list[RankedEntry]:
        self._directory.get_classroom(classroom_id)
        if scope is LeaderboardScope.PER_QUIZ:
            if quiz_id is None:
                raise ValueError("A quiz must be chosen for a per-quiz leaderboard.")
            quiz = self._quizzes.get_quiz(quiz_id)
            if quiz.classroom_id != classroom_id:
                raise NotFound(f"Quiz {quiz_id} was not found in this classroom.")
            attempts = self._quizzes.attempts_for_quiz(quiz_id)
        else:
            attempts = self._quizzes.attempts_for_classroom(classroom_id)
        return build_leaderboard(attempts, scope)


def _first_name(full_name: str | None) -> str:
    if not full_name:
        return UNKNOWN_STUDENT_NAME
    return full_name.split(" ")[0]
