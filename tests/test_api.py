"""Integration tests for the HTTP API."""
from unittest.mock import patch

from fastapi.testclient import TestClient

from app.core.config import settings
from app.core.errors import OrderConflict
from app.main import app
from app.models.writing import Message, Role
from app.services.oracle import GrammarVerdict


def start(client, topic="Food"):
    response = client.post("/api/v1/sessions/start", json={"topic": topic})
    assert response.status_code == 200, response.text
    return response.json()


def check(client, session_id, message):
    return client.post(
        f"/api/v1/sessions/{session_id}/check",
        json={"sessionId": session_id, "userMessage": message},
    )


def test_health_check(client):
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert "version" in data


def test_endpoints_require_login(client):
    assert client.get("/api/v1/sessions").status_code == 401
    assert client.post("/api/v1/sessions/start", json={"topic": "Food"}).status_code == 401
    assert client.get("/api/v1/history").status_code == 401
    assert client.get("/api/v1/auth/me").json() == {"detail": "Unauthorized"}


def test_register_login_logout(client, signup):
    user = signup(client, email="  Learner@Example.com ")
    assert user["email"] == "learner@example.com"
    assert client.get("/api/v1/auth/me").json()["user"]["id"] == user["id"]

    assert client.post("/api/v1/auth/logout").json() == {"ok": True}
    assert client.get("/api/v1/auth/me").status_code == 401

    response = client.post("/api/v1/auth/login", json={"email": "learner@example.com", "password": "password123"})
    assert response.status_code == 200
    assert settings.auth_cookie_name in response.cookies
    assert client.get("/api/v1/auth/me").status_code == 200


def test_bearer_token_is_accepted(client, signup):
    signup(client)
    token = client.cookies.get(settings.auth_cookie_name)
    client.cookies.clear()

    response = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 200


def test_register_rejects_bad_input(client, signup):
    signup(client)
    duplicate = client.post("/api/v1/auth/register", json={"email": "learner@example.com", "password": "password123"})
    assert duplicate.status_code == 409
    assert duplicate.json()["detail"] == "Email is already registered"

    short = client.post("/api/v1/auth/register", json={"email": "new@example.com", "password": "short"})
    assert short.status_code == 400

    bad_email = client.post("/api/v1/auth/register", json={"email": "not-an-email", "password": "password123"})
    assert bad_email.status_code == 400

    missing = client.post("/api/v1/auth/register", json={"email": "new@example.com"})
    assert missing.status_code == 400
    assert "password" in missing.json()["fields"]


def test_login_with_wrong_password(client, signup):
    signup(client)
    response = client.post("/api/v1/auth/login", json={"email": "learner@example.com", "password": "wrong-password"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid email or password"


def test_writing_session_flow(client, signup, oracle):
    """Start, get one sentence rejected, fix it, then read sessions and history."""
    signup(client)
    started = start(client)
    session_id = started["sessionId"]
    assert started["messageCount"] == 1
    assert started["aiMessage"] == "What is your favourite food?"

    oracle.verdicts.append(
        GrammarVerdict(is_correct=False, error="spacing", correction="I eat rice every day")
    )
    rejected = check(client, session_id, "I eat rice everyday")
    assert rejected.status_code == 200
    assert rejected.json() == {
        "isCorrect": False,
        "error": "spacing",
        "suggestion": "I eat rice every day",
    }

    accepted = check(client, session_id, "I eat rice every day")
    assert accepted.status_code == 200
    assert accepted.json() == {
        "isCorrect": True,
        "aiMessage": "Tell me more about food?",
        "improvement": "Improved: I eat rice every day",
        "messageCount": 4,
        "isCompleted": False,
    }

    sessions = client.get("/api/v1/sessions").json()["sessions"]
    assert len(sessions) == 1
    assert sessions[0]["topic"] == "Food"
    assert sessions[0]["status"] == "IN_PROGRESS"
    assert sessions[0]["messageCount"] == 4

    detail = client.get(f"/api/v1/sessions/{session_id}").json()
    assert [(m["role"], m["order"]) for m in detail["messages"]] == [("AI", 1), ("USER", 2), ("USER", 3), ("AI", 4)]
    assert detail["messages"][1]["isCorrect"] is False

    mistakes = client.get("/api/v1/history").json()["mistakes"]
    assert len(mistakes) == 1
    assert mistakes[0]["original"] == "I eat rice everyday"
    assert mistakes[0]["correction"] == "I eat rice every day"
    assert mistakes[0]["explanation"] == "spacing"

    review = client.post(f"/api/v1/history/{mistakes[0]['id']}/review")
    assert review.json() == {"id": mistakes[0]["id"], "reviewed": True}
    assert client.get("/api/v1/history").json()["mistakes"] == []


def test_session_completes_then_closes(client, signup, monkeypatch):
    monkeypatch.setattr(settings, "writing_max_messages", 4)
    signup(client)
    session_id = start(client)["sessionId"]

    assert check(client, session_id, "I like noodles.").json()["isCompleted"] is False
    done = check(client, session_id, "I cook them on Sundays.").json()
    assert done["isCompleted"] is True
    assert done["messageCount"] == 4
    assert "aiMessage" not in done

    closed = check(client, session_id, "One more thing.")
    assert closed.status_code == 409
    assert closed.json()["retryable"] is False
    assert client.get("/api/v1/sessions").json()["sessions"][0]["status"] == "COMPLETED"


def test_oracle_outage_accepts_sentence(client, signup, oracle):
    signup(client)
    session_id = start(client)["sessionId"]
    oracle.verdicts.append(RuntimeError("oracle down"))

    response = check(client, session_id, "Me like tea")
    assert response.status_code == 200
    data = response.json()
    assert data["isCorrect"] is True
    assert "improvement" not in data
    assert data["messageCount"] == 3


def test_start_session_validation(client, signup):
    signup(client)
    assert client.post("/api/v1/sessions/start", json={"topic": "   "}).status_code == 400
    assert client.post("/api/v1/sessions/start", json={}).status_code == 400
    assert client.post("/api/v1/sessions/start", json={"topic": "x" * 201}).status_code == 400
    assert client.get("/api/v1/sessions").json()["sessions"] == []


def test_check_validation(client, signup):
    signup(client)
    session_id = start(client)["sessionId"]

    missing = client.post(f"/api/v1/sessions/{session_id}/check", json={"sessionId": session_id})
    assert missing.status_code == 400
    assert "userMessage" in missing.json()["fields"]

    blank = check(client, session_id, "   ")
    assert blank.status_code == 400

    mismatched = client.post(
        f"/api/v1/sessions/{session_id}/check",
        json={"sessionId": "another-session", "userMessage": "Hello."},
    )
    assert mismatched.status_code == 400
    assert client.get(f"/api/v1/sessions/{session_id}").json()["messageCount"] == 1


def test_other_users_session_looks_missing(client, signup):
    signup(client, email="owner@example.com")
    session_id = start(client)["sessionId"]

    with TestClient(app) as intruder:
        signup(intruder, email="intruder@example.com")
        foreign = check(intruder, session_id, "Hello there.")
        missing = check(intruder, "no-such-session", "Hello there.")
        assert foreign.status_code == missing.status_code == 404
        assert foreign.json() == missing.json()
        assert intruder.get(f"/api/v1/sessions/{session_id}").status_code == 404
        assert intruder.get("/api/v1/sessions").json()["sessions"] == []

    assert client.get(f"/api/v1/sessions/{session_id}").json()["messageCount"] == 1


def test_review_unknown_mistake(client, signup):
    signup(client)
    assert client.post("/api/v1/history/999/review").status_code == 404


def test_flashcards_upsert(client, signup):
    signup(client)
    created = client.post("/api/v1/flashcards", json={"text": " delicious ", "translation": "ngon"})
    assert created.status_code == 200
    card = created.json()["flashcard"]
    assert (card["sourceText"], card["translation"], card["sourceLang"], card["targetLang"]) == (
        "delicious",
        "ngon",
        "en",
        "vi",
    )

    updated = client.post("/api/v1/flashcards", json={"text": "delicious"}).json()["flashcard"]
    assert updated["id"] == card["id"]
    assert updated["translation"] == "ngon"

    cards = client.get("/api/v1/flashcards").json()["flashcards"]
    assert len(cards) == 1
    assert client.post("/api/v1/flashcards", json={"text": "  "}).status_code == 400


def test_goals(client, signup, monkeypatch):
    monkeypatch.setattr(settings, "writing_max_messages", 2)
    signup(client)
    goals = client.get("/api/v1/goals").json()
    assert goals["goal"]["weeklySessionGoal"] == settings.default_weekly_goal
    assert goals["progress"]["weeklyCompleted"] == 0
    assert goals["progress"]["streakDays"] == 0

    assert client.post("/api/v1/goals", json={"weeklySessionGoal": 0}).status_code == 400
    assert client.post("/api/v1/goals", json={"reminderTime": "25:00"}).status_code == 400

    updated = client.post(
        "/api/v1/goals",
        json={"weeklySessionGoal": 5, "reminderEnabled": True, "reminderTime": "07:30"},
    ).json()
    assert updated["goal"]["weeklySessionGoal"] == 5
    assert updated["goal"]["reminderEnabled"] is True
    assert updated["goal"]["reminderTime"] == "07:30"

    session_id = start(client)["sessionId"]
    assert check(client, session_id, "I like noodles.").json()["isCompleted"] is True
    progress = client.get("/api/v1/goals").json()["progress"]
    assert progress["weeklyCompleted"] == 1
    assert progress["streakDays"] == 1


@patch("app.services.tts.synthesize_speech")
def test_text_to_speech(mock_synthesize, client, signup):
    signup(client)
    mock_synthesize.return_value = {"audio": "UklGRg==", "mime_type": "audio/wav"}

    response = client.post("/api/v1/tts", json={"text": "Hello world"})
    assert response.status_code == 200
    assert response.json() == {"audio": "UklGRg==", "mimeType": "audio/wav"}
    mock_synthesize.assert_called_once_with("Hello world", None, None)

    assert client.post("/api/v1/tts", json={"text": "   "}).status_code == 400


@patch("app.services.tts.synthesize_speech")
def test_text_to_speech_failure_is_500(mock_synthesize, client, signup):
    signup(client)
    mock_synthesize.side_effect = RuntimeError("No audio returned")

    response = client.post("/api/v1/tts", json={"text": "Hello world"})
    assert response.status_code == 500
    assert "No audio returned" not in response.text


def test_unhandled_error_is_hidden(client, signup):
    signup(client)
    with patch("app.api.writing.SessionLifecycle.list_sessions", side_effect=RuntimeError("db exploded")):
        with TestClient(app, raise_server_exceptions=False) as raw_client:
            raw_client.cookies.update(client.cookies)
            response = raw_client.get("/api/v1/sessions")

    assert response.status_code == 500
    assert response.json() == {"detail": "An internal error occurred. Please try again later."}


def test_order_conflict_is_retryable_409(client, signup, oracle, session_factory, monkeypatch):
    """Another tab keeps claiming the next order until the step gives up."""
    monkeypatch.setattr(settings, "ledger_conflict_retries", 1)
    signup(client)
    session_id = start(client)["sessionId"]

    def other_tab_writes():
        other = session_factory()
        try:
            n = other.query(Message).filter(Message.session_id == session_id).count()
            other.add(Message(session_id=session_id, role=Role.AI, content="Other tab", order=n + 1))
            other.commit()
        finally:
            other.close()

    oracle.question_hook = other_tab_writes
    response = check(client, session_id, "I like tea.")
    assert response.status_code == 409
    assert response.json() == {"detail": OrderConflict.default_message, "retryable": True}
    assert len(oracle.called("generate_next_question")) == 2

    oracle.question_hook = None
    retried = check(client, session_id, "I like tea.")
    assert retried.status_code == 200
    assert retried.json()["messageCount"] == 5


def test_padded_topic_is_trimmed_before_length_check(client, signup):
    signup(client)
    started = start(client, topic="  Food  " + " " * 250)
    detail = client.get(f"/api/v1/sessions/{started['sessionId']}").json()
    assert detail["topic"] == "Food"


def test_fill_blank_generate_and_check(client, signup, oracle):
    signup(client)
    exercise = client.post("/api/v1/practice/fill-blank", json={"action": "generate", "topic": " Food "})
    assert exercise.status_code == 200
    assert exercise.json() == {"sentence": "I ___ food every day.", "answer": "cook", "blankType": "verb"}
    assert oracle.called("generate_fill_blank") == [("generate_fill_blank", "Food")]

    right = client.post(
        "/api/v1/practice/fill-blank",
        json={"action": "check", "userAnswer": " Cook. ", "correctAnswer": "cook"},
    )
    assert right.json() == {"isCorrect": True}

    wrong = client.post(
        "/api/v1/practice/fill-blank",
        json={"action": "check", "userAnswer": "cooks", "correctAnswer": "cook"},
    )
    assert wrong.json() == {"isCorrect": False, "feedback": 'The correct answer is "cook".'}


def test_fill_blank_validation(client, signup):
    assert client.post("/api/v1/practice/fill-blank", json={"action": "generate", "topic": "Food"}).status_code == 401

    signup(client)
    url = "/api/v1/practice/fill-blank"
    assert client.post(url, json={"action": "generate"}).status_code == 400
    assert client.post(url, json={"action": "check", "userAnswer": "go"}).status_code == 400
    assert client.post(url, json={}).status_code == 400
    unknown = client.post(url, json={"action": "translate", "topic": "Food"})
    assert unknown.status_code == 400
    assert unknown.json()["detail"] == 'Invalid action. Use "generate" or "check"'
