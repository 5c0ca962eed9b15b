import pytest
from fastapi.testclient import TestClient

from ai_diagnostician import main
from ai_diagnostician.questions import correct_answer_payload
from ai_diagnostician.routers.quiz import get_orchestrator


START = {"age": 21, "role": "student", "self_rating": 2}


@pytest.fixture
def client(monkeypatch, orchestrator):
    monkeypatch.setattr(main.settings, "gemini_api_key", None)
    main.app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    with TestClient(main.app) as c:
        yield c
    main.app.dependency_overrides.clear()


def test_health_and_info(client):
    assert client.get("/health").json()["status"] == "ok"
    info = client.get("/info").json()
    assert info["gemini_configured"] is False
    assert info["total_questions"] >= 1


def test_start_hides_the_answer_key(client):
    res = client.post("/api/start", json=START)

    assert res.status_code == 200
    body = res.json()
    assert body["question_number"] == 1
    assert body["total_questions"] == 6
    question = body["question"]
    assert question["archetype"] in {"match", "bucket", "single_select", "true_false"}
    for key in ("correct_pairs", "correct_assignment", "correct_option_ids", "correct_answer", "key_points"):
        assert key not in question


def test_answer_then_next_question(client, store):
    sid = client.post("/api/start", json=START).json()["session_id"]
    first = store.get(sid).questions[0]

    res = client.post("/api/submit-answer", json={"session_id": sid, "answer": correct_answer_payload(first)})

    assert res.status_code == 200
    body = res.json()
    assert body["verdict"] == "correct"
    assert body["feedback"]["is_correct"] is True
    assert body["answered"] == 1
    assert body["complete"] is False
    assert body["correct_answer"] == correct_answer_payload(first)

    nxt = client.post("/api/next-question", json={"session_id": sid}).json()
    assert nxt["question_number"] == 2
    assert nxt["complete"] is False

    state = client.get(f"/api/session/{sid}").json()
    assert state["answered"] == 1
    assert state["generated"] >= 2


def test_unknown_session_is_404(client):
    res = client.post("/api/next-question", json={"session_id": "nope"})

    assert res.status_code == 404
    assert res.json()["error"] == "SessionNotFound"


def test_malformed_answer_is_400(client):
    sid = client.post("/api/start", json=START).json()["session_id"]

    res = client.post("/api/submit-answer", json={"session_id": sid, "answer": {"matches": "A-1", "selected": 3, "assignments": 1, "answer": {"x": 1}}})

    assert res.status_code == 400
    assert res.json()["error"] == "InvalidAnswer"


def test_summary_before_answers_is_400(client):
    sid = client.post("/api/start", json=START).json()["session_id"]

    res = client.post("/api/summary", json={"session_id": sid})

    assert res.status_code == 400
    assert res.json()["error"] == "OutOfSequence"


def test_invalid_identity_is_422(client):
    res = client.post("/api/start", json={"age": 21, "role": "student", "self_rating": 9})

    assert res.status_code == 422


def test_unconfigured_service_is_503(monkeypatch):
    monkeypatch.setattr(main.settings, "gemini_api_key", None)
    main.app.dependency_overrides.clear()

    with TestClient(main.app) as c:
        res = c.post("/api/start", json=START)

    assert res.status_code == 503
