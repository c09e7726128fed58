import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from sonic.conversation.models import ChatTurn, Project, ProjectFile, ProjectType, Visibility
from sonic.errors import ConversationExistsError, StaleProjectError
from sonic.models_db import DEFAULT_THUMBNAIL

logger = logging.getLogger(__name__)


class InMemoryProjectStore:
    def __init__(self):
        self._projects: dict[str, Project] = {}
        self._lock = asyncio.Lock()

    async def get(self, conversation_id: str) -> Optional[Project]:
        async with self._lock:
            project = self._projects.get(conversation_id)
            return project.model_copy(deep=True) if project else None

    async def create(self, project: Project) -> Project:
        async with self._lock:
            if project.conversation_id in self._projects:
                raise ConversationExistsError(project.conversation_id)
            stored = project.model_copy(deep=True, update={"version": 1})
            self._projects[project.conversation_id] = stored
            return stored.model_copy(deep=True)

    async def save(self, project: Project) -> Project:
        async with self._lock:
            current = self._projects.get(project.conversation_id)
            if current is None or current.version != project.version:
                raise StaleProjectError(project.conversation_id)
            stored = project.model_copy(
                deep=True,
                update={"version": project.version + 1, "updated_at": datetime.now(timezone.utc)},
            )
            self._projects[project.conversation_id] = stored
            return stored.model_copy(deep=True)

    async def increment_upvotes(self, conversation_id: str) -> Optional[int]:
        async with self._lock:
            project = self._projects.get(conversation_id)
            if project is None:
                return None
            project.chai_count += 1
            project.version += 1
            return project.chai_count

    async def list_public(self) -> list[Project]:
        async with self._lock:
            projects = [
                p for p in self._projects.values()
                if p.type == ProjectType.PROJECT and p.visibility == Visibility.PUBLIC
            ]
        return sorted(projects, key=lambda p: p.created_at, reverse=True)


class SQLProjectStore:
    """Persistent project store backed by SQLAlchemy.

    Writes are compare-and-swap on the ``version`` column, so two requests
    racing on one conversation cannot silently overwrite each other.
    """

    def __init__(self, session_factory=None):
        if session_factory is None:
            from sonic.database import SessionLocal
            session_factory = SessionLocal
        self._session_factory = session_factory

    def _to_pydantic(self, row) -> Project:
        """Convert ORM Conversation row to Pydantic Project."""
        history = [ChatTurn(**t) for t in json.loads(row.chat_history_json or "[]")]
        files = [ProjectFile(**f) for f in json.loads(row.files_json or "[]")]

        return Project(
            conversation_id=row.conversation_id,
            owner_id=row.owner_id,
            type=ProjectType(row.type),
            title=row.title,
            description=row.description,
            features=json.loads(row.features_json or "[]"),
            files=files,
            main_color_theme=row.main_color_theme,
            secondary_color_theme=row.secondary_color_theme,
            chat_history=history,
            visibility=Visibility(row.visibility),
            chai_count=row.chai_count,
            thumbnail=row.thumbnail,
            version=row.version,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def _columns(self, project: Project) -> dict:
        return {
            "owner_id": project.owner_id,
            "type": int(project.type),
            "title": project.title,
            "description": project.description,
            "features_json": json.dumps(project.features),
            "files_json": json.dumps([f.model_dump(mode="json") for f in project.files]),
            "chat_history_json": json.dumps([t.model_dump(mode="json") for t in project.chat_history]),
            "main_color_theme": project.main_color_theme,
            "secondary_color_theme": project.secondary_color_theme,
            "visibility": project.visibility.value,
            "chai_count": project.chai_count,
            "thumbnail": project.thumbnail or DEFAULT_THUMBNAIL,
        }

    async def get(self, conversation_id: str) -> Optional[Project]:
        from sonic.models_db import Conversation
        db = self._session_factory()
        try:
            row = db.query(Conversation).filter(Conversation.conversation_id == conversation_id).first()
            if not row:
                return None
            return self._to_pydantic(row)
        finally:
            db.close()

    async def create(self, project: Project) -> Project:
        from sonic.models_db import Conversation
        db = self._session_factory()
        try:
            row = Conversation(conversation_id=project.conversation_id, version=1, **self._columns(project))
            db.add(row)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                raise ConversationExistsError(project.conversation_id)
            db.refresh(row)
            return self._to_pydantic(row)
        finally:
            db.close()

    async def save(self, project: Project) -> Project:
        from sonic.models_db import Conversation
        db = self._session_factory()
        try:
            values = self._columns(project)
            values["version"] = project.version + 1
            values["updated_at"] = datetime.now(timezone.utc)
            result = db.execute(
                update(Conversation)
                .where(
                    Conversation.conversation_id == project.conversation_id,
                    Conversation.version == project.version,
                )
                .values(**values)
            )
            if result.rowcount != 1:
                db.rollback()
                logger.warning("Version conflict on conversation %s", project.conversation_id)
                raise StaleProjectError(project.conversation_id)
            db.commit()
            row = db.query(Conversation).filter(Conversation.conversation_id == project.conversation_id).first()
            return self._to_pydantic(row)
        finally:
            db.close()

    async def increment_upvotes(self, conversation_id: str) -> Optional[int]:
        from sonic.models_db import Conversation
        db = self._session_factory()
        try:
            result = db.execute(
                update(Conversation)
                .where(Conversation.conversation_id == conversation_id)
                .values(chai_count=Conversation.chai_count + 1, version=Conversation.version + 1)
            )
            if result.rowcount != 1:
                db.rollback()
                return None
            db.commit()
            row = db.query(Conversation).filter(Conversation.conversation_id == conversation_id).first()
            return row.chai_count
        finally:
            db.close()

    async def list_public(self) -> list[Project]:
        from sonic.models_db import Conversation
        db = self._session_factory()
        try:
            rows = (
                db.query(Conversation)
                .filter(
                    Conversation.type == int(ProjectType.PROJECT),
                    Conversation.visibility == Visibility.PUBLIC.value,
                )
                .order_by(Conversation.created_at.desc())
                .all()
            )
            return [self._to_pydantic(r) for r in rows]
        finally:
            db.close()


# Attempts at the read-modify-write of one conversation before giving up
MAX_WRITE_ATTEMPTS = 3


async def write_project(
    store,
    conversation_id: str,
    apply: Callable[[Project], None],
    owner_id: Optional[str] = None,
) -> Optional[Project]:
    """Optimistic read-modify-write of one conversation.

    `apply` mutates the latest stored copy and may run more than once. A
    missing conversation is created for `owner_id`, or None is returned when
    no owner is given.
    """
    for attempt in range(1, MAX_WRITE_ATTEMPTS + 1):
        current = await store.get(conversation_id)
        try:
            if current is None:
                if owner_id is None:
                    return None
                fresh = Project(conversation_id=conversation_id, owner_id=owner_id)
                apply(fresh)
                return await store.create(fresh)
            apply(current)
            return await store.save(current)
        except (StaleProjectError, ConversationExistsError):
            logger.warning("Write conflict on %s (attempt %d/%d)", conversation_id, attempt, MAX_WRITE_ATTEMPTS)
    raise StaleProjectError(conversation_id)
