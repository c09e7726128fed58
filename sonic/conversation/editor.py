"""Apply a follow-up instruction to an existing project."""

import logging
from dataclasses import dataclass, field

from sonic.ai.parsing import ParsedMalformed, parse_model_json
from sonic.ai.prompts import MODIFY_PROMPT, build_edit_prompt
from sonic.conversation.models import CodeFile, Project, ProjectFile

logger = logging.getLogger(__name__)

AFFIRMATIVE_REPLIES = {"yes", "y"}
NEGATIVE_REPLIES = {"no", "n", "nope", "nah"}
MODIFY_DIRECTIVE = "Please help me modify this project"
DECLINE_REPLY = "Okay, let me know if you want to discuss anything else about your project."


@dataclass
class EditResult:
    reply: str
    patches: list[CodeFile] = field(default_factory=list)
    changed: list[str] = field(default_factory=list)
    malformed: bool = False


def merge_files(files: list[ProjectFile], patches: list[CodeFile]) -> tuple[list[ProjectFile], list[str]]:
    """Replace content by exact path, append unknown paths.

    Returns the merged copy and the paths whose content changed.
    """
    merged = [f.model_copy(deep=True) for f in files]
    index = {f.path: i for i, f in enumerate(merged)}
    changed: list[str] = []

    for patch in patches:
        if patch.name in index:
            target = merged[index[patch.name]]
            if target.content != patch.content:
                target.content = patch.content
                changed.append(patch.name)
        else:
            index[patch.name] = len(merged)
            merged.append(ProjectFile(path=patch.name, content=patch.content))
            changed.append(patch.name)

    return merged, changed


def _code_entries(data: dict) -> list[CodeFile]:
    entries = []
    for item in data.get("code") or []:
        if isinstance(item, dict) and item.get("name") and item.get("content") is not None:
            entries.append(CodeFile(name=str(item["name"]), content=str(item["content"])))
    return entries


def edit(llm, project: Project, instruction: str, context_turns: list[dict]) -> EditResult:
    """Run one edit round.

    `context_turns` are the caller's prior turns ({role, content} with roles
    user/model), excluding the newest user message.
    """
    answer = instruction.strip().lower()
    if MODIFY_PROMPT in project.last_model_turn():
        if answer in AFFIRMATIVE_REPLIES:
            instruction = MODIFY_DIRECTIVE
        elif answer in NEGATIVE_REPLIES:
            return EditResult(reply=DECLINE_REPLY)

    prompt = build_edit_prompt(
        instruction,
        project.title,
        project.features,
        [f.model_dump() for f in project.files],
    )
    raw = llm.chat(context_turns, prompt)
    parsed = parse_model_json(raw)

    if isinstance(parsed, ParsedMalformed):
        logger.warning(
            "Edit reply for %s was not valid JSON (%s); keeping files unchanged",
            project.conversation_id, parsed.reason,
        )
        reply = (raw or "").strip() or "I could not apply that change. Please try rephrasing it."
        return EditResult(reply=reply, malformed=True)

    patches = _code_entries(parsed.data)
    _, changed = merge_files(project.files, patches)
    message = str(parsed.data.get("message") or "").strip() or "Done."
    return EditResult(reply=message, patches=patches, changed=changed)
