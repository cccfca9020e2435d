"""End-to-end tests for the FastAPI adapter."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from classroom_app.core.classroom_manager import ClassroomManager
from classroom_app.core.row_store import InMemoryRowStore
from classroom_app.server.api_server import create_api_app
from conftest import make_questions

QUESTION_SET = make_questions(12)
ANSWER_KEY = {item["question"]: item["correct"] for item in QUESTION_SET}


@pytest.fixture
def client() -> TestClient:
    manager = ClassroomManager(store=InMemoryRowStore(), shuffle_seed=42)
    return TestClient(create_api_app(manager))


def _profile(client: TestClient, name: str, role: str) -> str:
    response = client.post("/profiles", json={"full_name": name, "role": role})
    assert response.status_code == 201
    return response.json()["id"]


def _setup_classroom(client: TestClient) -> tuple[str, str, str, str]:
    faculty_id = _profile(client, "Grace Hopper", "faculty")
    student_id = _profile(client, "Ada Lovelace", "student")
    classroom = client.post("/classrooms", json={"faculty_id": faculty_id, "name": "Compilers"}).json()
    joined = client.post("/classrooms/join", json={"student_id": student_id, "join_code": classroom["join_code"].lower()})
    assert joined.status_code == 201
    quiz = client.post(
        f"/classrooms/{classroom['id']}/quizzes",
        json={"faculty_id": faculty_id, "title": "Week 1", "questions": QUESTION_SET, "duration_minutes": 5},
    )
    assert quiz.status_code == 201
    return faculty_id, student_id, classroom["id"], quiz.json()["id"]


def _take_quiz(client: TestClient, quiz_id: str, student_id: str, wrong: int = 0) -> dict:
    session = client.post(f"/quizzes/{quiz_id}/sessions", json={"student_id": student_id})
    assert session.status_code == 201
    payload = session.json()
    for item in payload["questions"]:
        answer = ANSWER_KEY[item["question"]] if item["position"] >= wrong else "wrong"
        response = client.put(
            f"/sessions/{payload['session_id']}/answers/{item['position']}",
            json={"option_text": answer},
        )
        assert response.status_code == 204
    tick = client.post(f"/sessions/{payload['session_id']}/tick", json={"seconds": 90})
    assert tick.json() == {"remaining_seconds": 210, "result": None}
    submitted = client.post(f"/sessions/{payload['session_id']}/submit", json={"reason": "manual"})
    assert submitted.status_code == 200
    return submitted.json()


def test_about(client: TestClient) -> None:
    assert client.get("/").json()["name"] == "Classroom Quiz"


def test_full_quiz_flow(client: TestClient) -> None:
    faculty_id, student_id, classroom_id, quiz_id = _setup_classroom(client)

    result = _take_quiz(client, quiz_id, student_id, wrong=2)

    assert result["score"] == 8
    assert result["total"] == 10
    assert result["time_taken_seconds"] == 90

    again = client.post(f"/quizzes/{quiz_id}/sessions", json={"student_id": student_id})
    assert again.status_code == 409

    results = client.get(f"/quizzes/{quiz_id}/results").json()
    assert results["statistics"]["total_attempts"] == 1
    assert results["statistics"]["average_accuracy"] == pytest.approx(80.0)
    assert results["leaderboard"][0]["badge"] == "gold"
    assert results["attempts"][0]["student_name"] == "Ada Lovelace"

    performance = client.get(f"/students/{student_id}/performance").json()
    assert performance["statistics"]["total_quizzes"] == 1
    assert performance["history"][0]["quiz_title"] == "Week 1"
    assert len(performance["trend"]) == 1

    class_view = client.get(f"/classrooms/{classroom_id}/performance").json()
    assert class_view["statistics"]["total_students"] == 1
    assert class_view["chart"][0] == {"display_name": "Ada", "accuracy": pytest.approx(80.0), "band": "strong"}
    insights = class_view["insights"]
    assert insights["top_performers"][0]["badge"] == "gold"
    assert insights["top_performers"][0]["statistics"]["student_name"] == "Ada Lovelace"
    assert insights["tier"] == "excellent"
    assert insights["quizzes_per_student"] == pytest.approx(1.0)
    assert insights["needing_support"] == []

    board = client.get(f"/classrooms/{classroom_id}/leaderboard", params={"scope": "overall"}).json()
    assert board[0]["score"] == 8

    overview = client.get(f"/faculty/{faculty_id}/overview").json()
    assert overview == {"classroom_count": 1, "total_students": 1, "total_quizzes": 1}


def test_session_payload_hides_answer_key(client: TestClient) -> None:
    _, student_id, _, quiz_id = _setup_classroom(client)

    payload = client.post(f"/quizzes/{quiz_id}/sessions", json={"student_id": student_id}).json()

    assert len(payload["questions"]) == 10
    assert all("correct" not in item for item in payload["questions"])
    assert payload["remaining_seconds"] == 300


def test_timeout_submits_through_tick(client: TestClient) -> None:
    _, student_id, _, quiz_id = _setup_classroom(client)
    session_id = client.post(f"/quizzes/{quiz_id}/sessions", json={"student_id": student_id}).json()["session_id"]

    tick = client.post(f"/sessions/{session_id}/tick", json={"seconds": 300}).json()

    assert tick["remaining_seconds"] == 0
    assert tick["result"]["reason"] == "timeout"
    assert tick["result"]["score"] == 0
    assert client.get(f"/sessions/{session_id}").status_code == 409


def test_error_mapping(client: TestClient) -> None:
    faculty_id, student_id, classroom_id, _ = _setup_classroom(client)
    code = client.get(f"/classrooms/{classroom_id}").json()["join_code"]

    assert client.post("/classrooms/join", json={"student_id": student_id, "join_code": "ZZZZZZ"}).status_code == 404
    duplicate = client.post("/classrooms/join", json={"student_id": student_id, "join_code": code})
    assert duplicate.status_code == 409
    assert duplicate.json()["detail"] == "You are already a member of this classroom."
    malformed = client.post(
        f"/classrooms/{classroom_id}/quizzes",
        json={"faculty_id": faculty_id, "title": "Bad", "questions": {"question": "x"}},
    )
    assert malformed.status_code == 422
    assert client.get("/quizzes/missing/results").status_code == 404
    assert client.post("/sessions/missing/submit", json={}).status_code == 409
    assert client.post("/classrooms", json={"faculty_id": faculty_id, "name": " "}).status_code == 422


def test_announcements_endpoint(client: TestClient) -> None:
    faculty_id, _, classroom_id, _ = _setup_classroom(client)

    created = client.post(
        f"/classrooms/{classroom_id}/announcements",
        json={"faculty_id": faculty_id, "title": "Exam", "content": "Bring a *pencil*."},
    )
    listed = client.get(f"/classrooms/{classroom_id}/announcements").json()

    assert created.status_code == 201
    assert listed[0]["content_html"] == "<p>Bring a <em>pencil</em>.</p>\n"
    assert listed[0]["author_name"] == "Grace Hopper"


def test_abandon_session(client: TestClient) -> None:
    _, student_id, classroom_id, quiz_id = _setup_classroom(client)
    session_id = client.post(f"/quizzes/{quiz_id}/sessions", json={"student_id": student_id}).json()["session_id"]

    assert client.delete(f"/sessions/{session_id}").status_code == 204
    assert client.get(f"/quizzes/{quiz_id}/results").json()["statistics"]["total_attempts"] == 0
    assert client.get(f"/classrooms/{classroom_id}/performance").json()["students"] == []


def test_manual_endpoint_rejects_early_timeout_reason(client: TestClient) -> None:
    _, student_id, _, quiz_id = _setup_classroom(client)
    session_id = client.post(f"/quizzes/{quiz_id}/sessions", json={"student_id": student_id}).json()["session_id"]

    early = client.post(f"/sessions/{session_id}/submit", json={"reason": "timeout"})

    assert early.status_code == 422
    assert client.get(f"/quizzes/{quiz_id}/results").json()["statistics"]["total_attempts"] == 0
    assert client.post(f"/sessions/{session_id}/submit", json={}).json()["reason"] == "manual"


def test_losing_racing_session_is_closed(client: TestClient) -> None:
    _, student_id, _, quiz_id = _setup_classroom(client)
    first = client.post(f"/quizzes/{quiz_id}/sessions", json={"student_id": student_id}).json()["session_id"]
    second = client.post(f"/quizzes/{quiz_id}/sessions", json={"student_id": student_id}).json()["session_id"]

    assert client.post(f"/sessions/{first}/submit", json={}).status_code == 200
    assert client.post(f"/sessions/{second}/submit", json={}).status_code == 409
    assert client.get(f"/sessions/{second}").status_code == 409
    late = client.put(f"/sessions/{second}/answers/0", json={"option_text": "late"})
    assert late.status_code == 409
