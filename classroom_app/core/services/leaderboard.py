"""Service for ranking students by quiz score."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Iterable, TypeVar

from classroom_app.constants.quiz_constants import UNKNOWN_STUDENT_NAME
from classroom_app.core.models import QuizAttempt

T = TypeVar("T")


class LeaderboardScope(str, Enum):
    PER_QUIZ = "per_quiz"
    OVERALL = "overall"


class Badge(str, Enum):
    GOLD = "gold"
    SILVER = "silver"
    BRONZE = "bronze"


_BADGES = (Badge.GOLD, Badge.SILVER, Badge.BRONZE)


@dataclass(slots=True)
class ScoreEntry:
    """Mutable per-student totals used while building the overall board."""

    student_id: str
    display_name: str
    total_score: int = 0
    total_questions: int = 0
    attempt_count: int = 0
    last_completed_at: datetime | None = None


@dataclass(slots=True, frozen=True)
class RankedEntry:
    """Immutable leaderboard row returned to consumers."""

    rank: int
    badge: Badge | None
    ordinal: int
    student_id: str
    display_name: str
    score: int
    total_questions: int
    attempt_count: int
    average: float
    completed_at: datetime | None


def badge_for_rank(rank: int) -> Badge | None:
    """Ranks 0-2 get a medal; everything else shows its ordinal."""
    if 0 <= rank < len(_BADGES):
        return _BADGES[rank]
    return None


def rank(
    entries: Iterable[T],
    key: Callable[[T], float],
    tiebreak: Callable[[T], object] | None = None,
) -> list[tuple[int, T]]:
    """Stable descending sort by ``key`` with 0-indexed positions.

    ``tiebreak`` orders equal keys ascending; anything still tied keeps its
    input order.
    """
    ordered = list(entries)
    if tiebreak is not None:
        ordered.sort(key=tiebreak)
    ordered.sort(key=key, reverse=True)
    return list(enumerate(ordered))


class Scoreboard:
    """Accumulates attempts into per-student totals."""

    def __init__(self) -> None:
        self._scores: dict[str, ScoreEntry] = {}

    def record_attempt(self, attempt: QuizAttempt) -> None:
        entry = self._scores.get(attempt.student_id)
        if entry is None:
            entry = ScoreEntry(student_id=attempt.student_id, display_name=_display_name(attempt))
            self._scores[attempt.student_id] = entry

        entry.total_score += attempt.score
        entry.total_questions += attempt.total_questions
        entry.attempt_count += 1
        if entry.last_completed_at is None or attempt.completed_at > entry.last_completed_at:
            entry.last_completed_at = attempt.completed_at

    def entries(self) -> list[ScoreEntry]:
        return list(self._scores.values())


def build_leaderboard(
    attempts: Iterable[QuizAttempt],
    scope: LeaderboardScope = LeaderboardScope.PER_QUIZ,
) -> list[RankedEntry]:
    """Rank attempts for one quiz, or students across every attempt given.

    Ties on score go to whoever finished first: the attempt's completion time
    for a single quiz, or the completion time of the last counted attempt
    for the overall board.
    """
    if scope is LeaderboardScope.PER_QUIZ:
        ranked_attempts = rank(attempts, key=lambda a: a.score, tiebreak=lambda a: a.completed_at)
        return [
            RankedEntry(
                rank=position,
                badge=badge_for_rank(position),
                ordinal=position + 1,
                student_id=attempt.student_id,
                display_name=_display_name(attempt),
                score=attempt.score,
                total_questions=attempt.total_questions,
                attempt_count=1,
                average=float(attempt.score),
                completed_at=attempt.completed_at,
            )
            for position, attempt in ranked_attempts
        ]

    scoreboard = Scoreboard()
    for attempt in attempts:
        scoreboard.record_attempt(attempt)
    ranked_entries = rank(
        scoreboard.entries(),
        key=lambda e: e.total_score,
        tiebreak=lambda e: e.last_completed_at,
    )
    return [
        RankedEntry(
            rank=position,
            badge=badge_for_rank(position),
            ordinal=position + 1,
            student_id=entry.student_id,
            display_name=entry.display_name,
            score=entry.total_score,
            total_questions=entry.total_questions,
            attempt_count=entry.attempt_count,
            average=entry.total_score / entry.attempt_count if entry.attempt_count else 0.0,
            completed_at=entry.last_completed_at,
        )
        for position, entry in ranked_entries
    ]


def _display_name(attempt: QuizAttempt) -> str:
    return attempt.student_name or UNKNOWN_STUDENT_NAME
