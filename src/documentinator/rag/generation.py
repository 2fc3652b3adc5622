"""Ollama chat client used for answer generation."""

import os
from typing import Dict, List

import requests

from ..errors import GenerationError
from ..logging import get_logger
from .ollama import (
    DEFAULT_HOST,
    TransientProviderError,
    post_json,
    retrying,
    validate_host,
)

logger = get_logger(__name__)


class OllamaChatClient:
    """Client for the Ollama chat API."""

    DEFAULT_MODEL = "dolphin-mistral:7b"

    def __init__(
        self,
        host: str = None,
        model: str = None,
        max_attempts: int = 2,
        backoff_min: float = 1.0,
        backoff_max: float = 8.0,
        timeout: float = 120,
    ):
        raw_host = (host or os.getenv("OLLAMA_HOST", DEFAULT_HOST)).rstrip("/")
        self.host = validate_host(raw_host, GenerationError)
        self.model = model or os.getenv("OLLAMA_MODEL", self.DEFAULT_MODEL)
        self.timeout = timeout
        self._retrying = retrying(max_attempts, backoff_min, backoff_max)

        self.session = requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})

    def is_available(self) -> bool:
        """Check if Ollama is available."""
        try:
            response = self.session.get(f"{self.host}/api/tags", timeout=5)
            return response.status_code == 200
        except requests.exceptions.RequestException:
            return False

    def complete(
        self,
        messages: List[Dict[str, str]],
        temperature: float = 0.7,
        max_tokens: int = 1000,
    ) -> str:
        """Generate the assistant reply to a message list.

        Raises:
            GenerationError: On provider failure or an empty reply
        """
        payload = {
            "model": self.model,
            "messages": messages,
            "stream": False,
            "options": {
                "temperature": temperature,
                "num_predict": max_tokens,
            },
        }

        try:
            data = self._retrying.copy()(
                post_json, self.session, f"{self.host}/api/chat", payload, self.timeout
            )
        except TransientProviderError as e:
            raise GenerationError(f"Generation provider unavailable: {e}") from e
        except (requests.exceptions.RequestException, ValueError) as e:
            raise GenerationError(f"Generation failed: {e}") from e

        message = data.get("message") if isinstance(data, dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str):
            raise GenerationError("Generation provider returned a malformed reply")
        content = content.strip()
        if not content:
            raise GenerationError("Generation provider returned an empty reply")
        return content
