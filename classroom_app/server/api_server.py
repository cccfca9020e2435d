"""FastAPI server exposing classroom, quiz session and analytics endpoints."""

from __future__ import annotations

from dataclasses import asdict
import logging
from typing import Any

from fastapi import Depends, FastAPI, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
import uvicorn

from classroom_app.constants.about import APP_ABOUT_TEXT, APP_NAME, APP_VERSION
from classroom_app.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from classroom_app.constants.quiz_constants import DEFAULT_DURATION_MINUTES, TIMER_TICK_SECONDS, UNKNOWN_STUDENT_NAME
from classroom_app.core.classroom_manager import ClassroomManager
from classroom_app.core.errors import (
    AlreadyAttempted,
    ClassroomAppError,
    DuplicateMembership,
    NotFound,
    QuestionSetImportError,
    SessionClosed,
    StoreError,
    SubmissionFailed,
)
from classroom_app.core.models import Announcement, Classroom, Quiz, QuizAttempt, Role
from classroom_app.core.services.leaderboard import LeaderboardScope, RankedEntry
from classroom_app.core.services.quiz_session import QuizSession, SubmissionResult, SubmitReason

logger = logging.getLogger(__name__)

_STATUS_CODES: dict[type[ClassroomAppError], int] = {
    NotFound: 404,
    AlreadyAttempted: 409,
    DuplicateMembership: 409,
    SessionClosed: 409,
    QuestionSetImportError: 422,
    SubmissionFailed: 503,
    StoreError: 503,
}
_GENERIC_STORE_MESSAGE = "Something went wrong. Please try again."


class ProfilePayload(BaseModel):
    full_name: str
    role: Role = Role.STUDENT
    id: str | None = None


class ClassroomPayload(BaseModel):
    faculty_id: str
    name: str
    description: str = ""


class JoinPayload(BaseModel):
    """Payload schema for redeeming a join code."""

    student_id: str
    join_code: str


class AnnouncementPayload(BaseModel):
    faculty_id: str
    title: str
    content: str


class QuizPayload(BaseModel):
    """Quiz definition; ``questions`` is the raw question-set array."""

    faculty_id: str
    title: str
    questions: Any
    duration_minutes: int = DEFAULT_DURATION_MINUTES


class StartSessionPayload(BaseModel):
    student_id: str


class AnswerPayload(BaseModel):
    """Payload schema for a chosen option."""

    option_text: str


class TickPayload(BaseModel):
    seconds: int = Field(default=TIMER_TICK_SECONDS, ge=1)


class SubmitPayload(BaseModel):
    """``timeout`` is only accepted once the countdown has run out."""

    reason: SubmitReason = SubmitReason.MANUAL


def _status_for(exc: ClassroomAppError) -> int:
    for error_type in type(exc).__mro__:
        if error_type in _STATUS_CODES:
            return _STATUS_CODES[error_type]
    return 400


def _get_classroom_manager_dependency(manager: ClassroomManager):
    def dependency() -> ClassroomManager:
        return manager

    return dependency


def _classroom_payload(classroom: Classroom) -> dict[str, object]:
    return asdict(classroom)


def _announcement_payload(announcement: Announcement) -> dict[str, object]:
    return {
        "id": announcement.id,
        "classroom_id": announcement.classroom_id,
        "title": announcement.title,
        "content": announcement.content,
        "content_html": announcement.content_html,
        "author_name": announcement.author_name,
        "created_at": announcement.created_at,
    }


def _quiz_payload(quiz: Quiz) -> dict[str, object]:
    return {
        "id": quiz.id,
        "classroom_id": quiz.classroom_id,
        "title": quiz.title,
        "duration_minutes": quiz.duration_minutes,
        "total_questions": quiz.total_questions,
        "question_pool_size": len(quiz.questions),
        "created_at": quiz.created_at,
    }


def _session_payload(session: QuizSession) -> dict[str, object]:
    # Correct answers never leave the server while the session is live.
    return {
        "session_id": session.session_id,
        "quiz_id": session.quiz_id,
        "quiz_title": session.quiz_title,
        "questions": [
            {"position": position, "question": question.question, "options": question.options}
            for position, question in enumerate(session.questions)
        ],
        "answers": session.answers,
        "duration_seconds": session.timer.duration_seconds,
        "remaining_seconds": session.timer.remaining_seconds,
        "finished": session.is_finished(),
    }


def _result_payload(result: SubmissionResult | None) -> dict[str, object] | None:
    if result is None:
        return None
    return asdict(result)


def _attempt_payload(attempt: QuizAttempt) -> dict[str, object]:
    return {
        "id": attempt.id,
        "quiz_id": attempt.quiz_id,
        "quiz_title": attempt.quiz_title or "Unknown Quiz",
        "student_id": attempt.student_id,
        "student_name": attempt.student_name or UNKNOWN_STUDENT_NAME,
        "score": attempt.score,
        "total_questions": attempt.total_questions,
        "accuracy": attempt.accuracy,
        "time_taken_seconds": attempt.time_taken_seconds or 0,
        "completed_at": attempt.completed_at,
    }


def _leaderboard_payload(entries: list[RankedEntry]) -> list[dict[str, object]]:
    return [asdict(entry) for entry in entries]


def create_api_app(manager: ClassroomManager) -> FastAPI:
    """Create a FastAPI application wired to the provided classroom manager."""
    app = FastAPI(title=f"{APP_NAME} API", version=APP_VERSION)
    manager_dep = _get_classroom_manager_dependency(manager)

    @app.exception_handler(ClassroomAppError)
    def handle_classroom_error(request: Request, exc: ClassroomAppError) -> JSONResponse:
        status_code = _status_for(exc)
        detail = str(exc)
        if isinstance(exc, StoreError) and not isinstance(exc, SubmissionFailed):
            logger.error("Store failure on %s %s: %s", request.method, request.url.path, exc)
            detail = _GENERIC_STORE_MESSAGE
        else:
            logger.info("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc)
        return JSONResponse(status_code=status_code, content={"detail": detail})

    @app.exception_handler(ValueError)
    def handle_value_error(request: Request, exc: ValueError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    @app.exception_handler(IndexError)
    def handle_index_error(request: Request, exc: IndexError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    @app.get("/")
    def about() -> dict[str, object]:
        return {"name": APP_NAME, "version": APP_VERSION, "about": APP_ABOUT_TEXT}

    # --- Profiles & Classrooms ---

    @app.post("/profiles", status_code=201)
    def create_profile(payload: ProfilePayload, manager: ClassroomManager = Depends(manager_dep)) -> dict[str, object]:
        profile = manager.create_profile(payload.full_name, payload.role, profile_id=payload.id)
        return {"id": profile.id, "full_name": profile.full_name, "role": profile.role.value}

    @app.post("/classrooms", status_code=201)
    def create_classroom(
        payload: ClassroomPayload,
        manager: ClassroomManager = Depends(manager_dep),
    ) -> dict[str, object]:
        classroom = manager.create_classroom(payload.faculty_id, payload.name, payload.description)
        return _classroom_payload(classroom)

    @app.post("/classrooms/join", status_code=201)
    def join_classroom(payload: JoinPayload, manager: ClassroomManager = Depends(manager_dep)) -> dict[str, object]:
        membership = manager.join_classroom(payload.student_id, payload.join_code)
        return asdict(membership)

    @app.get("/classrooms/{classroom_id}")
    def get_classroom(classroom_id: str, manager: ClassroomManager = Depends(manager_dep)) -> dict[str, object]:
        return _classroom_payload(manager.get_classroom(classroom_id))

    @app.get("/faculty/{faculty_id}/classrooms")
    def list_faculty_classrooms(
        faculty_id: str,
        manager: ClassroomManager = Depends(manager_dep),
    ) -> list[dict[str, object]]:
        return [_classroom_payload(c) for c in manager.list_faculty_classrooms(faculty_id)]

    @app.get("/faculty/{faculty_id}/overview")
    def faculty_overview(faculty_id: str, manager: ClassroomManager = Depends(manager_dep)) -> dict[str, object]:
        return asdict(manager.faculty_overview(faculty_id))

    @app.get("/students/{student_id}/classrooms")
    def list_student_classrooms(
        student_id: str,
        manager: ClassroomManager = Depends(manager_dep),
    ) -> list[dict[str, object]]:
        return [_classroom_payload(c) for c in manager.list_student_classrooms(student_id)]

    # --- Announcements ---

    @app.post("/classrooms/{classroom_id}/announcements", status_code=201)
    def post_announcement(
        classroom_id: str,
        payload: AnnouncementPayload,
        manager: ClassroomManager = Depends(manager_dep),
    ) -> dict[str, object]:
        announcement = manager.post_announcement(classroom_id, payload.faculty_id, payload.title, payload.content)
        return _announcement_payload(announcement)

    @app.get("/classrooms/{classroom_id}/announcements")
    def list_announcements(
        classroom_id: str,
        manager: ClassroomManager = Depends(manager_dep),
    ) -> list[dict[str, object]]:
        return [_announcement_payload(a) for a in manager.list_announcements(classroom_id)]

    # --- Quizzes ---

    @app.post("/classrooms/{classroom_id}/quizzes", status_code=201)
    def create_quiz(
        classroom_id: str,
        payload: QuizPayload,
        manager: ClassroomManager = Depends(manager_dep),
    ) -> dict[str, object]:
        quiz = manager.create_quiz(
            classroom_id,
            payload.faculty_id,
            payload.title,
            payload.questions,
            duration_minutes=payload.duration_minutes,
        )
        return _quiz_payload(quiz)

    @app.get("/classrooms/{classroom_id}/quizzes")
    def list_quizzes(classroom_id: str, manager: ClassroomManager = Depends(manager_dep)) -> list[dict[str, object]]:
        return [_quiz_payload(q) for q in manager.list_quizzes(classroom_id)]

    @app.get("/quizzes/{quiz_id}/results")
    def quiz_results(quiz_id: str, manager: ClassroomManager = Depends(manager_dep)) -> dict[str, object]:
        results = manager.quiz_results(quiz_id)
        return {
            "quiz": _quiz_payload(results.quiz),
            "statistics": asdict(results.statistics),
            "attempts": [_attempt_payload(a) for a in results.attempts],
            "leaderboard": _leaderboard_payload(results.leaderboard),
        }

    # --- Quiz Sessions ---

    @app.post("/quizzes/{quiz_id}/sessions", status_code=201)
    def start_session(
        quiz_id: str,
        payload: StartSessionPayload,
        manager: ClassroomManager = Depends(manager_dep),
    ) -> dict[str, object]:
        session = manager.start_quiz_session(quiz_id, payload.student_id)
        return _session_payload(session)

    @app.get("/sessions/{session_id}")
    def get_session(session_id: str, manager: ClassroomManager = Depends(manager_dep)) -> dict[str, object]:
        return _session_payload(manager.get_session(session_id))

    @app.put("/sessions/{session_id}/answers/{position}", status_code=204)
    def record_answer(
        session_id: str,
        position: int,
        payload: AnswerPayload,
        manager: ClassroomManager = Depends(manager_dep),
    ) -> Response:
        manager.record_answer(session_id, position, payload.option_text)
        return Response(status_code=204)

    @app.post("/sessions/{session_id}/tick")
    def tick_session(
        session_id: str,
        payload: TickPayload,
        manager: ClassroomManager = Depends(manager_dep),
    ) -> dict[str, object]:
        session = manager.get_session(session_id)
        result = manager.tick_session(session_id, payload.seconds)
        return {"remaining_seconds": session.timer.remaining_seconds, "result": _result_payload(result)}

    @app.post("/sessions/{session_id}/submit")
    def submit_session(
        session_id: str,
        payload: SubmitPayload,
        manager: ClassroomManager = Depends(manager_dep),
    ) -> dict[str, object]:
        return asdict(manager.submit_session(session_id, payload.reason))

    @app.delete("/sessions/{session_id}", status_code=204)
    def abandon_session(session_id: str, manager: ClassroomManager = Depends(manager_dep)) -> Response:
        manager.abandon_session(session_id)
        return Response(status_code=204)

    # --- Analytics ---

    @app.get("/students/{student_id}/performance")
    def student_performance(student_id: str, manager: ClassroomManager = Depends(manager_dep)) -> dict[str, object]:
        performance = manager.aggregate_student_performance(student_id)
        return {
            "statistics": asdict(performance.statistics),
            "history": [_attempt_payload(a) for a in performance.history],
            "trend": [asdict(point) for point in performance.trend],
        }

    @app.get("/classrooms/{classroom_id}/performance")
    def class_performance(classroom_id: str, manager: ClassroomManager = Depends(manager_dep)) -> dict[str, object]:
        performance = manager.aggregate_class_performance(classroom_id)
        return {
            "statistics": asdict(performance.statistics),
            "students": [asdict(student) for student in performance.students],
            "chart": [asdict(bar) for bar in performance.chart],
            "insights": asdict(performance.insights),
        }

    @app.get("/classrooms/{classroom_id}/leaderboard")
    def classroom_leaderboard(
        classroom_id: str,
        scope: LeaderboardScope = LeaderboardScope.OVERALL,
        quiz_id: str | None = None,
        manager: ClassroomManager = Depends(manager_dep),
    ) -> list[dict[str, object]]:
        return _leaderboard_payload(manager.classroom_leaderboard(classroom_id, scope, quiz_id=quiz_id))

    return app


def run_api_server(
    manager: ClassroomManager,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
    log_level: str = "info",
) -> None:
    """Serve the API in the foreground until interrupted."""
    app = create_api_app(manager)
    config = uvicorn.Config(app=app, host=host, port=port, log_level=log_level.lower())
    server = uvicorn.Server(config)
    server.run()
