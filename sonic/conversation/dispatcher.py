"""Route one chat request to chat, synthesis or editing, and persist the result."""

import logging
from enum import Enum
from typing import Optional

from fastapi import HTTPException

from sonic.ai.intent import Intent, classify_intent
from sonic.ai.prompts import build_chat_prompt
from sonic.conversation.editor import EditResult, edit, merge_files
from sonic.conversation.models import (
    GUEST_OWNER,
    ChatResult,
    ChatTurn,
    IncomingMessage,
    Project,
    ProjectDetails,
    ProjectType,
)
from sonic.conversation.project_store import write_project
from sonic.conversation.synthesizer import SynthesisResult, synthesize

logger = logging.getLogger(__name__)

class Route(str, Enum):
    NEW_CHAT = "new_chat"
    NEW_BUILD = "new_build"
    EXISTING_EMPTY_BUILD = "existing_empty_build"
    EXISTING_EDIT = "existing_edit"


def select_route(existing: Optional[Project], intent: Intent) -> Route:
    if existing is None:
        return Route.NEW_BUILD if intent == Intent.BUILD else Route.NEW_CHAT
    if intent == Intent.BUILD and existing.is_empty():
        return Route.EXISTING_EMPTY_BUILD
    return Route.EXISTING_EDIT


def to_model_turns(messages: list[IncomingMessage]) -> list[dict]:
    """Map UI roles onto Gemini roles: assistant → model, everything else → user."""
    return [
        {"role": "model" if m.role in ("assistant", "model") else "user", "content": m.content}
        for m in messages
    ]


def last_user_message(messages: list[IncomingMessage]) -> Optional[str]:
    for m in reversed(messages):
        if m.role == "user" and m.content.strip():
            return m.content.strip()
    return None


class ResponseDispatcher:
    def __init__(self, project_store, llm):
        self.project_store = project_store
        self.llm = llm

    async def handle(
        self,
        conversation_id: str,
        owner_id: str,
        messages: list[IncomingMessage],
    ) -> ChatResult:
        """Classify the newest user message, run the matching flow and store it."""
        user_message = last_user_message(messages)
        if user_message is None:
            raise HTTPException(status_code=400, detail="No user message found")

        turns = to_model_turns(messages)
        existing = await self.project_store.get(conversation_id)
        if existing is not None and existing.owner_id not in (owner_id, GUEST_OWNER):
            raise HTTPException(status_code=403, detail="Only the project owner can continue this conversation")

        intent = classify_intent(self.llm, user_message)
        route = select_route(existing, intent)
        logger.info("Conversation %s routed to %s", conversation_id, route.value)

        if route == Route.NEW_CHAT:
            return await self._handle_chat(conversation_id, owner_id, user_message, turns)
        if route in (Route.NEW_BUILD, Route.EXISTING_EMPTY_BUILD):
            return await self._handle_build(conversation_id, owner_id, user_message, turns)
        return await self._handle_edit(existing, user_message, turns)

    async def _handle_chat(
        self, conversation_id: str, owner_id: str, user_message: str, turns: list[dict]
    ) -> ChatResult:
        reply = self.llm.chat(turns[:-1], build_chat_prompt(user_message))

        def apply(project: Project) -> None:
            self._append_exchange(project, turns, user_message, reply)

        project = await write_project(self.project_store, conversation_id, apply, owner_id=owner_id)
        return ChatResult(
            type=ProjectType.CHAT,
            response=reply,
            chat_history=project.chat_history,
        )

    async def _handle_build(
        self, conversation_id: str, owner_id: str, user_message: str, turns: list[dict]
    ) -> ChatResult:
        result: SynthesisResult = synthesize(self.llm, user_message)
        snapshot = result.snapshot

        def apply(project: Project) -> None:
            # An incomplete snapshot stays a chat so the next build request retries synthesis
            project.type = ProjectType.PROJECT if snapshot.is_complete() else ProjectType.CHAT
            project.title = snapshot.title
            project.description = snapshot.description
            project.features = list(snapshot.features)
            project.files = [f.model_copy(deep=True) for f in snapshot.files]
            project.main_color_theme = snapshot.main_color_theme
            project.secondary_color_theme = snapshot.secondary_color_theme
            self._append_exchange(project, turns, user_message, result.reply)

        project = await write_project(self.project_store, conversation_id, apply, owner_id=owner_id)
        logger.info(
            "Synthesized %r for %s (%d files, stored as type %d)",
            project.title, conversation_id, len(project.files), project.type,
        )
        return ChatResult(
            type=project.type,
            response=result.reply,
            chat_history=project.chat_history,
            project_details=ProjectDetails.from_project(project),
        )

    async def _handle_edit(self, existing: Project, user_message: str, turns: list[dict]) -> ChatResult:
        result: EditResult = edit(self.llm, existing, user_message, turns[:-1])

        def apply(project: Project) -> None:
            # Re-merge on the latest snapshot; merging is idempotent by file path
            project.files, _ = merge_files(project.files, result.patches)
            project.chat_history.append(ChatTurn(role="user", content=user_message))
            project.chat_history.append(ChatTurn(role="model", content=result.reply))

        project = await write_project(self.project_store, existing.conversation_id, apply, owner_id=existing.owner_id)
        if result.malformed:
            logger.info("Edit of %s left files unchanged", existing.conversation_id)
        else:
            logger.info("Edited %s (changed: %s)", existing.conversation_id, ", ".join(result.changed) or "none")
        return ChatResult(
            type=ProjectType.CHAT,
            response=result.reply,
            chat_history=project.chat_history,
            project_details=ProjectDetails.from_project(project),
        )

    @staticmethod
    def _append_exchange(project: Project, turns: list[dict], user_message: str, reply: str) -> None:
        """Seed a fresh history from the request, or append to an existing one."""
        if not project.chat_history:
            project.chat_history = [
                ChatTurn(role=t["role"], content=t["content"]) for t in turns if t["content"]
            ]
        else:
            project.chat_history.append(ChatTurn(role="user", content=user_message))
        project.chat_history.append(ChatTurn(role="model", content=reply))
