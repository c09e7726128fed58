from __future__ import annotations
from enum import Enum, IntEnum
from typing import Literal, Optional
from datetime import datetime, timezone
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


GUEST_OWNER = "guest"
DEFAULT_MAIN_COLOR = "#ffffff"
DEFAULT_SECONDARY_COLOR = "#000000"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Snake_case in Python, camelCase on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ProjectType(IntEnum):
    CHAT = 0
    PROJECT = 1


class Visibility(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"


class ChatTurn(BaseModel):
    role: Literal["user", "model"]
    content: str
    timestamp: datetime = Field(default_factory=_utcnow)


class ProjectFile(BaseModel):
    path: str
    content: str = ""
    description: str = ""
    features: list[str] = Field(default_factory=list)


class CodeFile(BaseModel):
    """A `{name, content}` entry as exchanged with the model and the UI."""
    name: str
    content: str


class Project(BaseModel):
    """A conversation and, once synthesized, the generated app snapshot."""
    conversation_id: str
    owner_id: str = GUEST_OWNER
    type: ProjectType = ProjectType.CHAT
    title: Optional[str] = None
    description: Optional[str] = None
    features: list[str] = Field(default_factory=list)
    files: list[ProjectFile] = Field(default_factory=list)
    main_color_theme: Optional[str] = None
    secondary_color_theme: Optional[str] = None
    chat_history: list[ChatTurn] = Field(default_factory=list)
    visibility: Visibility = Visibility.PUBLIC
    chai_count: int = 0
    thumbnail: Optional[str] = None
    version: int = 0
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def is_empty(self) -> bool:
        """True when the project lacks a title, files or features."""
        return not self.title or not self.files or not self.features

    @property
    def file_paths(self) -> list[str]:
        return [f.path for f in self.files]

    @property
    def code(self) -> list[CodeFile]:
        return [CodeFile(name=f.path, content=f.content) for f in self.files]

    def last_model_turn(self) -> str:
        for turn in reversed(self.chat_history):
            if turn.role == "model":
                return turn.content
        return ""


# --- API models ---

class IncomingMessage(BaseModel):
    role: str = Field(..., min_length=1)
    content: str = Field(..., max_length=50000)


class ChatRequest(CamelModel):
    messages: list[IncomingMessage] = Field(..., min_length=1)
    conversation_id: str = Field(..., min_length=1, max_length=255)


class ProjectDetails(CamelModel):
    title: Optional[str] = None
    description: Optional[str] = None
    features: list[str] = Field(default_factory=list)
    file_paths: list[str] = Field(default_factory=list)
    main_color_theme: str = DEFAULT_MAIN_COLOR
    secondary_color_theme: str = DEFAULT_SECONDARY_COLOR
    code: list[CodeFile] = Field(default_factory=list, alias="Code")

    @classmethod
    def from_project(cls, project: Project) -> "ProjectDetails":
        return cls(
            title=project.title,
            description=project.description,
            features=project.features,
            file_paths=project.file_paths,
            main_color_theme=project.main_color_theme or DEFAULT_MAIN_COLOR,
            secondary_color_theme=project.secondary_color_theme or DEFAULT_SECONDARY_COLOR,
            code=project.code,
        )


class ChatResult(CamelModel):
    type: ProjectType
    response: str
    chat_history: list[ChatTurn]
    project_details: Optional[ProjectDetails] = None


class ChatResponse(BaseModel):
    success: bool = True
    data: ChatResult
