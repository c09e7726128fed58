"""Classify a chat message as a build request or general conversation."""

import logging
from enum import Enum

from sonic.ai.prompts import build_intent_prompt

logger = logging.getLogger(__name__)


class Intent(str, Enum):
    BUILD = "build"
    CHAT = "chat"


def classify_intent(llm, utterance: str) -> Intent:
    """Only an exact "1" counts as build intent; any other reply is chat."""
    reply = llm.generate(build_intent_prompt(utterance))
    label = (reply or "").strip()
    if label == "1":
        return Intent.BUILD
    if label != "0":
        logger.info("Unexpected intent label %r, treating as chat", label[:20])
    return Intent.CHAT
