"""Statistics computed from stored quiz attempts.

Every function here is pure and total: empty or degenerate input produces
zeros rather than an exception, so callers should look at the attempt count
before trusting a ratio.

Accuracy across several attempts is pooled, i.e. ``sum(score) /
sum(total_questions)``, not the mean of per-attempt percentages. The two
differ whenever attempts have unequal question counts.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable

from classroom_app.constants.quiz_constants import (
    ATTENTION_THRESHOLD_PERCENT,
    CLASS_VIEW_MIN_ATTEMPTS_FOR_TREND,
    EXCELLENT_CLASS_THRESHOLD_PERCENT,
    IMPROVEMENT_WINDOW_SIZE,
    INSIGHT_LIST_LIMIT,
    PASS_THRESHOLD_PERCENT,
    STRONG_THRESHOLD_PERCENT,
    TREND_CHART_LIMIT,
    UNKNOWN_STUDENT_NAME,
)
from classroom_app.core.models import QuizAttempt
from classroom_app.core.services.leaderboard import Badge, badge_for_rank, rank


class PerformanceBand(str, Enum):
    STRONG = "strong"
    FAIR = "fair"
    ATTENTION = "attention"


class InsightTier(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    NEEDS_SUPPORT = "needs_support"


@dataclass(slots=True, frozen=True)
class StudentStatistics:
    student_id: str | None
    student_name: str | None
    total_quizzes: int
    average_score: float
    average_accuracy: float
    best_accuracy: float
    total_time: int
    improvement_rate: float
    improvement_computable: bool


@dataclass(slots=True, frozen=True)
class ClassStatistics:
    total_students: int
    total_attempts: int
    average_accuracy: float
    needing_attention: int


@dataclass(slots=True, frozen=True)
class QuizStatistics:
    total_attempts: int
    average_score: float
    average_accuracy: float
    average_time: float
    pass_rate: float


@dataclass(slots=True, frozen=True)
class TrendPoint:
    quiz_title: str | None
    accuracy: float
    completed_at: datetime


@dataclass(slots=True, frozen=True)
class RankedStudent:
    rank: int
    badge: Badge | None
    ordinal: int
    statistics: StudentStatistics


@dataclass(slots=True, frozen=True)
class ClassInsights:
    """Lists and headline figures shown above the class roster."""

    top_performers: list[RankedStudent]
    most_improved: list[StudentStatistics]
    most_active: list[StudentStatistics]
    needing_support: list[StudentStatistics]
    tier: InsightTier
    quizzes_per_student: float


def attempt_accuracy(attempt: QuizAttempt) -> float:
    return attempt.accuracy


def pooled_accuracy(attempts: Iterable[QuizAttempt]) -> float:
    total_score = 0
    total_questions = 0
    for attempt in attempts:
        total_score += attempt.score
        total_questions += attempt.total_questions
    if total_questions <= 0:
        return 0.0
    return total_score / total_questions * 100


def mean_accuracy(attempts: Iterable[QuizAttempt]) -> float:
    """Unweighted mean of per-attempt percentages."""
    accuracies = [attempt_accuracy(attempt) for attempt in attempts]
    if not accuracies:
        return 0.0
    return sum(accuracies) / len(accuracies)


def newest_first(attempts: Iterable[QuizAttempt]) -> list[QuizAttempt]:
    return sorted(attempts, key=lambda attempt: attempt.completed_at, reverse=True)


def improvement_rate(
    attempts: Iterable[QuizAttempt],
    min_attempts: int = CLASS_VIEW_MIN_ATTEMPTS_FOR_TREND,
    window_size: int = IMPROVEMENT_WINDOW_SIZE,
) -> float | None:
    """Relative change between the oldest and the most recent window.

    Windows overlap when there are fewer than ``2 * window_size`` attempts.
    Returns ``None`` when there are too few attempts or the older window
    averages 0%.
    """
    ordered = newest_first(attempts)
    if len(ordered) < max(1, min_attempts):
        return None
    size = min(window_size, len(ordered))
    recent_mean = mean_accuracy(ordered[:size])
    older_mean = mean_accuracy(ordered[-size:])
    if older_mean == 0:
        return None
    return (recent_mean - older_mean) / older_mean * 100


def summarize_student(
    attempts: Iterable[QuizAttempt],
    min_attempts_for_trend: int = CLASS_VIEW_MIN_ATTEMPTS_FOR_TREND,
    student_id: str | None = None,
) -> StudentStatistics:
    attempts = list(attempts)
    count = len(attempts)
    first = attempts[0] if attempts else None
    rate = improvement_rate(attempts, min_attempts=min_attempts_for_trend)
    return StudentStatistics(
        student_id=student_id if student_id is not None else (first.student_id if first else None),
        student_name=(first.student_name or UNKNOWN_STUDENT_NAME) if first else None,
        total_quizzes=count,
        average_score=sum(a.score for a in attempts) / count if count else 0.0,
        average_accuracy=pooled_accuracy(attempts),
        best_accuracy=max((attempt_accuracy(a) for a in attempts), default=0.0),
        total_time=sum(a.time_taken_seconds or 0 for a in attempts),
        improvement_rate=rate if rate is not None else 0.0,
        improvement_computable=rate is not None,
    )


aggregate = summarize_student


def group_by_student(attempts: Iterable[QuizAttempt]) -> dict[str, list[QuizAttempt]]:
    """Group attempts per student, keeping first-seen student order."""
    grouped: dict[str, list[QuizAttempt]] = {}
    for attempt in attempts:
        grouped.setdefault(attempt.student_id, []).append(attempt)
    return grouped


def summarize_students(
    attempts: Iterable[QuizAttempt],
    min_attempts_for_trend: int = CLASS_VIEW_MIN_ATTEMPTS_FOR_TREND,
) -> list[StudentStatistics]:
    """Per-student rollups sorted by pooled accuracy, best first."""
    rows = [
        summarize_student(student_attempts, min_attempts_for_trend, student_id=student_id)
        for student_id, student_attempts in group_by_student(attempts).items()
    ]
    rows.sort(key=lambda row: row.average_accuracy, reverse=True)
    return rows


def summarize_class(students: list[StudentStatistics]) -> ClassStatistics:
    if not students:
        return ClassStatistics(total_students=0, total_attempts=0, average_accuracy=0.0, needing_attention=0)
    return ClassStatistics(
        total_students=len(students),
        total_attempts=sum(student.total_quizzes for student in students),
        average_accuracy=sum(student.average_accuracy for student in students) / len(students),
        needing_attention=sum(1 for student in students if student.average_accuracy < ATTENTION_THRESHOLD_PERCENT),
    )


def summarize_quiz(attempts: Iterable[QuizAttempt]) -> QuizStatistics:
    attempts = list(attempts)
    count = len(attempts)
    if not count:
        return QuizStatistics(total_attempts=0, average_score=0.0, average_accuracy=0.0, average_time=0.0, pass_rate=0.0)
    passed = sum(1 for a in attempts if attempt_accuracy(a) >= PASS_THRESHOLD_PERCENT)
    return QuizStatistics(
        total_attempts=count,
        average_score=sum(a.score for a in attempts) / count,
        average_accuracy=pooled_accuracy(attempts),
        average_time=sum(a.time_taken_seconds or 0 for a in attempts) / count,
        pass_rate=passed / count * 100,
    )


def accuracy_trend(attempts: Iterable[QuizAttempt], limit: int = TREND_CHART_LIMIT) -> list[TrendPoint]:
    """Accuracy of the most recent ``limit`` attempts, oldest first."""
    recent = newest_first(attempts)[:limit]
    return [
        TrendPoint(quiz_title=a.quiz_title, accuracy=attempt_accuracy(a), completed_at=a.completed_at)
        for a in reversed(recent)
    ]


def performance_band(accuracy: float) -> PerformanceBand:
    if accuracy >= STRONG_THRESHOLD_PERCENT:
        return PerformanceBand.STRONG
    if accuracy >= ATTENTION_THRESHOLD_PERCENT:
        return PerformanceBand.FAIR
    return PerformanceBand.ATTENTION


def top_performers(students: Iterable[StudentStatistics], limit: int = INSIGHT_LIST_LIMIT) -> list[RankedStudent]:
    """Best pooled accuracy first; the first three carry a medal."""
    ranked = rank(students, key=lambda student: student.average_accuracy)[:limit]
    return [
        RankedStudent(rank=position, badge=badge_for_rank(position), ordinal=position + 1, statistics=student)
        for position, student in ranked
    ]


def most_improved(students: Iterable[StudentStatistics], limit: int = INSIGHT_LIST_LIMIT) -> list[StudentStatistics]:
    improving = [s for s in students if s.improvement_computable and s.improvement_rate > 0]
    improving.sort(key=lambda s: s.improvement_rate, reverse=True)
    return improving[:limit]


def most_active(students: Iterable[StudentStatistics], limit: int = INSIGHT_LIST_LIMIT) -> list[StudentStatistics]:
    return sorted(students, key=lambda s: s.total_quizzes, reverse=True)[:limit]


def students_needing_support(students: Iterable[StudentStatistics]) -> list[StudentStatistics]:
    return [s for s in students if s.average_accuracy < ATTENTION_THRESHOLD_PERCENT]


def insight_tier(average_accuracy: float) -> InsightTier:
    if average_accuracy >= EXCELLENT_CLASS_THRESHOLD_PERCENT:
        return InsightTier.EXCELLENT
    if average_accuracy >= ATTENTION_THRESHOLD_PERCENT:
        return InsightTier.GOOD
    return InsightTier.NEEDS_SUPPORT


def quizzes_per_student(statistics: ClassStatistics) -> float:
    if statistics.total_students <= 0:
        return 0.0
    return statistics.total_attempts / statistics.total_students


def class_insights(students: list[StudentStatistics], statistics: ClassStatistics) -> ClassInsights:
    return ClassInsights(
        top_performers=top_performers(students),
        most_improved=most_improved(students),
        most_active=most_active(students),
        needing_support=students_needing_support(students),
        tier=insight_tier(statistics.average_accuracy),
        quizzes_per_student=quizzes_per_student(statistics),
    )
