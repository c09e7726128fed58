"""Shared fixtures: in-memory database, scripted Gemini stand-in, API client."""

import json
import os

# Keep the module-level engine off disk; tests bind their own
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from sonic.auth import create_access_token, hash_password  # noqa: E402
from sonic.conversation.project_store import SQLProjectStore  # noqa: E402
from sonic.database import get_db, init_db  # noqa: E402
from sonic.main import create_app  # noqa: E402
from sonic.models_db import User  # noqa: E402
from sonic.routes.ai import get_llm, get_project_store  # noqa: E402


class FakeLLM:
    """Replays scripted replies in order and records every prompt."""

    def __init__(self, generate_replies=None, chat_replies=None):
        self.generate_replies = list(generate_replies or [])
        self.chat_replies = list(chat_replies or [])
        self.generate_prompts: list[str] = []
        self.chat_calls: list[tuple[list[dict], str]] = []

    def generate(self, prompt: str) -> str:
        self.generate_prompts.append(prompt)
        reply = self.generate_replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    def chat(self, history: list[dict], message: str) -> str:
        self.chat_calls.append((list(history), message))
        reply = self.chat_replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


TODO_APP = {
    "title": "Todo App",
    "description": "Track daily tasks",
    "features": ["Add tasks", "Complete tasks"],
    "files": [
        {
            "path": "/src/App.js",
            "description": "Root component",
            "code": "export default function App() { return <Home />; }",
            "features": ["Routing"],
        },
        {
            "path": "/src/styles.css",
            "description": "Global styles",
            "code": "button { color: blue; }",
            "features": [],
        },
    ],
    "mainColorTheme": "#1e3a8a",
    "secondaryColorTheme": "#f59e0b",
    "chatSummary": "Created a todo app with task tracking",
    "Code": [
        {"name": "/src/App.js", "content": "export default function App() { return <Home />; }"},
        {"name": "/src/styles.css", "content": "button { color: blue; }"},
    ],
}


def fenced(payload: dict) -> str:
    return "```json\n" + json.dumps(payload) + "\n```"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def store(session_factory):
    return SQLProjectStore(session_factory)


@pytest.fixture
def llm():
    return FakeLLM()


@pytest.fixture
def make_user(db):
    def _make(email="ada@example.com", password="secret123", **fields):
        user = User(email=email, name=fields.pop("name", "Ada"), password_hash=hash_password(password), **fields)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make


@pytest.fixture
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}
    return _headers


@pytest.fixture
def client(session_factory, store, llm):
    app = create_app()

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_llm] = lambda: llm
    app.dependency_overrides[get_project_store] = lambda: store
    return TestClient(app)
