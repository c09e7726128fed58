"""Turn an app idea into a full project snapshot with one Gemini call."""

import logging
from dataclasses import dataclass, field

from sonic.ai.parsing import ParsedMalformed, parse_model_json
from sonic.ai.prompts import MODIFY_PROMPT, build_synthesis_prompt
from sonic.conversation.models import DEFAULT_MAIN_COLOR, DEFAULT_SECONDARY_COLOR, ProjectFile

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "React Project"
DEFAULT_DESCRIPTION = "A new React application"


@dataclass
class ProjectSnapshot:
    title: str = DEFAULT_TITLE
    description: str = DEFAULT_DESCRIPTION
    features: list[str] = field(default_factory=list)
    files: list[ProjectFile] = field(default_factory=list)
    main_color_theme: str = DEFAULT_MAIN_COLOR
    secondary_color_theme: str = DEFAULT_SECONDARY_COLOR
    chat_summary: str = ""

    def is_complete(self) -> bool:
        return bool(self.title and self.files and self.features)


@dataclass
class SynthesisResult:
    snapshot: ProjectSnapshot
    reply: str
    malformed: bool = False


def _as_str_list(value) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if v is not None and str(v).strip()]


def _files_from_payload(data: dict) -> list[ProjectFile]:
    """Build the file set; `Code` entries override `files[].code` by name."""
    files: list[ProjectFile] = []
    index: dict[str, int] = {}

    for entry in data.get("files") or []:
        if not isinstance(entry, dict) or not entry.get("path"):
            continue
        path = str(entry["path"])
        pf = ProjectFile(
            path=path,
            content=str(entry.get("code") or ""),
            description=str(entry.get("description") or ""),
            features=_as_str_list(entry.get("features")),
        )
        if path in index:
            files[index[path]] = pf
        else:
            index[path] = len(files)
            files.append(pf)

    for entry in data.get("Code") or []:
        if not isinstance(entry, dict) or not entry.get("name"):
            continue
        name = str(entry["name"])
        content = str(entry.get("content") or "")
        if name in index:
            files[index[name]].content = content
        else:
            index[name] = len(files)
            files.append(ProjectFile(path=name, content=content))

    return files


def snapshot_from_payload(data: dict) -> ProjectSnapshot:
    title = str(data.get("title") or "").strip() or DEFAULT_TITLE
    return ProjectSnapshot(
        title=title,
        description=str(data.get("description") or DEFAULT_DESCRIPTION),
        features=_as_str_list(data.get("features")),
        files=_files_from_payload(data),
        main_color_theme=str(data.get("mainColorTheme") or DEFAULT_MAIN_COLOR),
        secondary_color_theme=str(data.get("secondaryColorTheme") or DEFAULT_SECONDARY_COLOR),
        chat_summary=str(data.get("chatSummary") or ""),
    )


def synthesize(llm, idea: str) -> SynthesisResult:
    """Generate a project for `idea`.

    Malformed model output does not raise: the default snapshot is returned
    with ``malformed=True`` and the caller keeps the conversation as a chat.
    """
    raw = llm.generate(build_synthesis_prompt(idea))
    parsed = parse_model_json(raw)

    if isinstance(parsed, ParsedMalformed):
        logger.warning("Project JSON could not be parsed (%s); using default project", parsed.reason)
        snapshot = ProjectSnapshot()
        malformed = True
    else:
        snapshot = snapshot_from_payload(parsed.data)
        malformed = False

    summary = snapshot.chat_summary or f"Created {snapshot.title} with React"
    return SynthesisResult(
        snapshot=snapshot,
        reply=f"{summary}\n\n{MODIFY_PROMPT}",
        malformed=malformed,
    )
