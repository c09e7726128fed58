"""
Tests for request routing and persistence of chat turns.

Validates:
1. Route selection over (existing project, intent)
2. New build, new chat, edit and empty-project re-synthesis flows
3. Malformed synthesis still stores a conversation
4. Version conflicts are retried against the latest copy
"""

import asyncio
import json

import pytest
from fastapi import HTTPException

from conftest import TODO_APP, FakeLLM, fenced
from sonic.ai.intent import Intent
from sonic.ai.prompts import MODIFY_PROMPT
from sonic.conversation.dispatcher import (
    ResponseDispatcher,
    Route,
    select_route,
    to_model_turns,
)
from sonic.conversation.models import (
    ChatTurn,
    IncomingMessage,
    Project,
    ProjectFile,
    ProjectType,
)
from sonic.conversation.project_store import MAX_WRITE_ATTEMPTS, InMemoryProjectStore
from sonic.errors import StaleProjectError, UpstreamModelError


def _messages(*pairs):
    return [IncomingMessage(role=role, content=content) for role, content in pairs]


def _todo_project(owner_id="u1"):
    return Project(
        conversation_id="c1",
        owner_id=owner_id,
        type=ProjectType.PROJECT,
        title="Todo App",
        description="Track daily tasks",
        features=["Add tasks"],
        files=[
            ProjectFile(path="/src/App.js", content="app"),
            ProjectFile(path="/src/styles.css", content="button { color: blue; }"),
        ],
        chat_history=[
            ChatTurn(role="user", content="build a todo app"),
            ChatTurn(role="model", content=f"Created a todo app\n\n{MODIFY_PROMPT}"),
        ],
    )


class FlakyStore(InMemoryProjectStore):
    """Lets another writer bump the stored row before the first `failures` saves."""

    def __init__(self, failures):
        super().__init__()
        self.failures = failures
        self.save_calls = 0

    async def save(self, project):
        self.save_calls += 1
        if self.save_calls <= self.failures:
            await self.increment_upvotes(project.conversation_id)
        return await super().save(project)


class TestSelectRoute:
    def test_no_project(self):
        assert select_route(None, Intent.BUILD) == Route.NEW_BUILD
        assert select_route(None, Intent.CHAT) == Route.NEW_CHAT

    def test_empty_project_with_build_intent(self):
        empty = Project(conversation_id="c1", title="React Project")
        assert select_route(empty, Intent.BUILD) == Route.EXISTING_EMPTY_BUILD

    def test_empty_project_with_chat_intent(self):
        empty = Project(conversation_id="c1")
        assert select_route(empty, Intent.CHAT) == Route.EXISTING_EDIT

    def test_complete_project(self):
        project = _todo_project()
        assert select_route(project, Intent.BUILD) == Route.EXISTING_EDIT
        assert select_route(project, Intent.CHAT) == Route.EXISTING_EDIT


class TestToModelTurns:
    def test_role_mapping(self):
        turns = to_model_turns(_messages(("user", "a"), ("assistant", "b"), ("model", "c"), ("system", "d")))
        assert [t["role"] for t in turns] == ["user", "model", "model", "user"]


class TestNewConversation:
    def test_build_request_creates_project(self):
        store = InMemoryProjectStore()
        llm = FakeLLM(generate_replies=["1", fenced(TODO_APP)])
        result = asyncio.run(
            ResponseDispatcher(store, llm).handle("c1", "u1", _messages(("user", "build a todo app")))
        )

        assert result.type == ProjectType.PROJECT
        assert result.project_details.title == "Todo App"
        assert result.project_details.file_paths == ["/src/App.js", "/src/styles.css"]
        assert result.response.endswith(MODIFY_PROMPT)
        assert [t.role for t in result.chat_history] == ["user", "model"]

        stored = asyncio.run(store.get("c1"))
        assert stored.type == ProjectType.PROJECT
        assert stored.owner_id == "u1"
        assert stored.files
        assert not stored.is_empty()

    def test_chat_request_stores_plain_chat(self):
        store = InMemoryProjectStore()
        llm = FakeLLM(generate_replies=["0"], chat_replies=["React is a UI library."])
        result = asyncio.run(
            ResponseDispatcher(store, llm).handle("c2", "u1", _messages(("user", "what is React?")))
        )

        assert result.type == ProjectType.CHAT
        assert result.response == "React is a UI library."
        assert result.project_details is None

        stored = asyncio.run(store.get("c2"))
        assert stored.type == ProjectType.CHAT
        assert [t.content for t in stored.chat_history] == ["what is React?", "React is a UI library."]

    def test_malformed_synthesis_still_stores_record(self):
        store = InMemoryProjectStore()
        llm = FakeLLM(generate_replies=["1", "Sure! {\"title\": "])
        result = asyncio.run(
            ResponseDispatcher(store, llm).handle("c3", "u1", _messages(("user", "build a todo app")))
        )

        stored = asyncio.run(store.get("c3"))
        assert stored is not None
        assert stored.title == "React Project"
        assert stored.files == []
        assert stored.type == ProjectType.CHAT
        assert result.type == ProjectType.CHAT

    def test_upstream_failure_stores_nothing(self):
        store = InMemoryProjectStore()
        llm = FakeLLM(generate_replies=["0"], chat_replies=[UpstreamModelError("quota")])
        with pytest.raises(UpstreamModelError):
            asyncio.run(ResponseDispatcher(store, llm).handle("c4", "u1", _messages(("user", "hi"))))
        assert asyncio.run(store.get("c4")) is None

    def test_no_user_message(self):
        store = InMemoryProjectStore()
        with pytest.raises(HTTPException) as exc:
            asyncio.run(ResponseDispatcher(store, FakeLLM()).handle("c5", "u1", _messages(("assistant", "hi"))))
        assert exc.value.status_code == 400


class TestExistingConversation:
    def test_edit_updates_file_and_grows_history_by_two(self):
        store = InMemoryProjectStore()
        asyncio.run(store.create(_todo_project()))
        reply = json.dumps({
            "message": "Made the button red",
            "code": [{"name": "/src/styles.css", "content": "button { color: red; }"}],
        })
        llm = FakeLLM(generate_replies=["1"], chat_replies=[reply])
        messages = _messages(
            ("user", "build a todo app"),
            ("assistant", f"Created a todo app\n\n{MODIFY_PROMPT}"),
            ("user", "change the button color to red"),
        )

        result = asyncio.run(ResponseDispatcher(store, llm).handle("c1", "u1", messages))

        assert result.type == ProjectType.CHAT
        assert result.response == "Made the button red"
        stored = asyncio.run(store.get("c1"))
        assert len(stored.chat_history) == 4
        assert stored.chat_history[-2].content == "change the button color to red"
        assert stored.files[1].content == "button { color: red; }"
        assert stored.type == ProjectType.PROJECT
        # Prior request turns become the chat history
        assert llm.chat_calls[0][0] == [
            {"role": "user", "content": "build a todo app"},
            {"role": "model", "content": f"Created a todo app\n\n{MODIFY_PROMPT}"},
        ]

    def test_empty_project_is_synthesized_again(self):
        store = InMemoryProjectStore()
        llm = FakeLLM(generate_replies=["1", "not json", "1", fenced(TODO_APP)])
        dispatcher = ResponseDispatcher(store, llm)
        asyncio.run(dispatcher.handle("c1", "u1", _messages(("user", "build a todo app"))))

        result = asyncio.run(dispatcher.handle("c1", "u1", _messages(("user", "build a todo app please"))))

        assert result.type == ProjectType.PROJECT
        stored = asyncio.run(store.get("c1"))
        assert stored.type == ProjectType.PROJECT
        assert stored.title == "Todo App"
        assert len(stored.chat_history) == 4

    def test_edit_logs_changed_paths(self, caplog):
        store = InMemoryProjectStore()
        asyncio.run(store.create(_todo_project()))
        reply = json.dumps({"message": "ok", "code": [{"name": "/src/Navbar.js", "content": "nav"}]})
        llm = FakeLLM(generate_replies=["1"], chat_replies=[reply])
        messages = _messages(("user", "build a todo app"), ("assistant", "done"), ("user", "add a navbar"))

        with caplog.at_level("INFO", logger="sonic.conversation.dispatcher"):
            asyncio.run(ResponseDispatcher(store, llm).handle("c1", "u1", messages))

        assert "Edited c1 (changed: /src/Navbar.js)" in caplog.text
        assert [f.path for f in asyncio.run(store.get("c1")).files][-1] == "/src/Navbar.js"

    def test_decline_follow_up(self):
        store = InMemoryProjectStore()
        asyncio.run(store.create(_todo_project()))
        llm = FakeLLM(generate_replies=["0"])
        result = asyncio.run(ResponseDispatcher(store, llm).handle("c1", "u1", _messages(("user", "no"))))
        assert result.response.startswith("Okay, let me know")
        assert llm.chat_calls == []

    def test_other_owner_is_rejected(self):
        store = InMemoryProjectStore()
        asyncio.run(store.create(_todo_project(owner_id="u1")))
        with pytest.raises(HTTPException) as exc:
            asyncio.run(ResponseDispatcher(store, FakeLLM()).handle("c1", "u2", _messages(("user", "hi"))))
        assert exc.value.status_code == 403

    def test_guest_project_accepts_any_caller(self):
        store = InMemoryProjectStore()
        asyncio.run(store.create(_todo_project(owner_id="guest")))
        llm = FakeLLM(generate_replies=["0"], chat_replies=['{"message": "Sure"}'])
        result = asyncio.run(ResponseDispatcher(store, llm).handle("c1", "u2", _messages(("user", "hi"))))
        assert result.response == "Sure"


class TestWriteConflicts:
    def test_conflict_is_retried_on_latest_copy(self):
        store = FlakyStore(failures=1)
        asyncio.run(store.create(_todo_project()))
        reply = json.dumps({"message": "ok", "code": [{"name": "/src/App.js", "content": "new app"}]})
        llm = FakeLLM(generate_replies=["0"], chat_replies=[reply])

        asyncio.run(ResponseDispatcher(store, llm).handle("c1", "u1", _messages(("user", "rename the app"))))

        stored = asyncio.run(store.get("c1"))
        assert store.save_calls == 2
        assert stored.files[0].content == "new app"
        # The concurrent upvote survives the retry
        assert stored.chai_count == 1
        assert len(llm.chat_calls) == 1

    def test_gives_up_after_max_attempts(self):
        store = FlakyStore(failures=MAX_WRITE_ATTEMPTS)
        asyncio.run(store.create(_todo_project()))
        llm = FakeLLM(generate_replies=["0"], chat_replies=['{"message": "ok"}'])
        with pytest.raises(StaleProjectError):
            asyncio.run(ResponseDispatcher(store, llm).handle("c1", "u1", _messages(("user", "tweak"))))
        assert store.save_calls == MAX_WRITE_ATTEMPTS
