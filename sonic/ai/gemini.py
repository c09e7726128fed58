"""Thin wrapper over the Gemini SDK.

Calls are blocking round trips with no retry: a failure surfaces to the
caller as UpstreamModelError.
"""

import logging
import os
from typing import Optional

import google.generativeai as genai
from google.generativeai.types import generation_types
from google.api_core import exceptions as google_exceptions
from fastapi import HTTPException

from sonic.errors import UpstreamModelError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.0-flash"

# ValueError: the response carried no text part. The generation_types
# exceptions are safety or recitation stops.
MODEL_ERRORS = (
    google_exceptions.GoogleAPIError,
    generation_types.BlockedPromptException,
    generation_types.StopCandidateException,
    ValueError,
)


class GeminiClient:
    def __init__(self, api_key: str, model_name: Optional[str] = None):
        genai.configure(api_key=api_key)
        self.model_name = model_name or os.getenv("GEMINI_MODEL", DEFAULT_MODEL)
        self._model = genai.GenerativeModel(self.model_name)

    def generate(self, prompt: str) -> str:
        """Single-shot completion."""
        try:
            response = self._model.generate_content(prompt)
            return response.text
        except MODEL_ERRORS as e:
            raise UpstreamModelError(str(e)) from e

    def chat(self, history: list[dict], message: str) -> str:
        """Send `message` on top of prior turns shaped as {role, content}."""
        contents = [
            {"role": turn["role"], "parts": [turn["content"]]}
            for turn in history
            if turn.get("content")
        ]
        # Gemini rejects histories that open with a model turn
        while contents and contents[0]["role"] != "user":
            contents.pop(0)
        try:
            session = self._model.start_chat(history=contents)
            response = session.send_message(message)
            return response.text
        except MODEL_ERRORS as e:
            raise UpstreamModelError(str(e)) from e


client = None


def get_client() -> GeminiClient:
    global client
    if client is None:
        api_key = os.getenv("GOOGLE_AI_KEY")
        if not api_key:
            raise HTTPException(
                status_code=500,
                detail="GOOGLE_AI_KEY not configured"
            )
        client = GeminiClient(api_key=api_key)
        logger.info("Gemini client ready (model=%s)", client.model_name)
    return client
