"""Shared fixtures: in-memory database, fake oracle and an API client wired to both."""
import os

# Configure before app modules read settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CACHE_ENABLED"] = "false"
os.environ["APP_ENV"] = "dev"
os.environ["GEMINI_API_KEY"] = ""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from app.api.deps import get_oracle
from app.database import build_engine, get_db, init_db
from app.main import app
from app.models.base import Base
from app.services.oracle import GrammarVerdict


class FakeOracle:
    """Scriptable oracle. Queue verdicts (or exceptions) in `verdicts`; default is correct."""

    def __init__(self):
        self.verdicts = []
        self.calls = []
        self.question_hook = None

    async def check_grammar(self, sentence):
        self.calls.append(("check_grammar", sentence))
        if self.verdicts:
            verdict = self.verdicts.pop(0)
            if isinstance(verdict, BaseException):
                raise verdict
            return verdict
        return GrammarVerdict(is_correct=True)

    async def generate_improvement(self, sentence):
        self.calls.append(("generate_improvement", sentence))
        return f"Improved: {sentence}"

    async def generate_next_question(self, topic, prior_turns):
        self.calls.append(("generate_next_question", topic, list(prior_turns)))
        if self.question_hook is not None:
            self.question_hook()
        return f"Tell me more about {topic.lower()}?"

    async def generate_initial_question(self, topic):
        self.calls.append(("generate_initial_question", topic))
        return f"What is your favourite {topic.lower()}?"

    async def generate_fill_blank(self, topic):
        self.calls.append(("generate_fill_blank", topic))
        return {"sentence": f"I ___ {topic.lower()} every day.", "answer": "cook", "blank_type": "verb"}

    def called(self, name):
        return [c for c in self.calls if c[0] == name]


@pytest.fixture
def engine():
    test_engine = build_engine("sqlite://")
    init_db(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def oracle():
    return FakeOracle()


@pytest.fixture
def make_user(db):
    from app.services.auth import register_user

    def _make(email="learner@example.com", password="password123", name=None):
        return register_user(db, email, password, name)

    return _make


@pytest.fixture
def client(session_factory, oracle):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_oracle] = lambda: oracle
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def signup():
    """Register a user on a client (the client keeps the session cookie)."""

    def _signup(test_client, email="learner@example.com", password="password123"):
        response = test_client.post(
            "/api/v1/auth/register",
            json={"email": email, "password": password, "name": "Learner"},
        )
        assert response.status_code == 200, response.text
        return response.json()["user"]

    return _signup
