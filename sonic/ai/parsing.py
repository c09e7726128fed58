"""Extract JSON payloads from Gemini replies.

The model is asked for bare JSON but frequently wraps it in a markdown
fence. The whole reply is tried first, since generated file contents can
themselves hold fenced snippets; the first fenced block is the fallback.
"""

import json
import re
from dataclasses import dataclass
from typing import Union

_FENCE_RE = re.compile(r"```(?:json|JSON)?[ \t]*\n?([\s\S]*?)```")


@dataclass(frozen=True)
class ParsedOk:
    data: dict


@dataclass(frozen=True)
class ParsedMalformed:
    raw_text: str
    reason: str = ""


ParseResult = Union[ParsedOk, ParsedMalformed]


def extract_json_text(text: str) -> str:
    match = _FENCE_RE.search(text)
    if match and match.group(1).strip():
        return match.group(1).strip()
    return text.strip()


def _loads_object(candidate: str):
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as e:
        return None, str(e)
    if not isinstance(data, dict):
        return None, f"expected a JSON object, got {type(data).__name__}"
    return data, ""


def parse_model_json(text: str) -> ParseResult:
    """Parse a model reply into a JSON object, or report why it is malformed."""
    raw = text or ""
    data, reason = _loads_object(raw.strip())
    if data is not None:
        return ParsedOk(data=data)

    fenced = extract_json_text(raw)
    if fenced != raw.strip():
        data, fenced_reason = _loads_object(fenced)
        if data is not None:
            return ParsedOk(data=data)
        reason = fenced_reason
    return ParsedMalformed(raw_text=raw, reason=reason)
