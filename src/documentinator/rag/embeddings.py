"""Ollama embeddings client."""

import os
import threading
from typing import List, Optional

import requests

from ..errors import EmbeddingError
from ..logging import get_logger
from .ollama import (
    DEFAULT_HOST,
    TransientProviderError,
    post_json,
    retrying,
    validate_host,
)
from .rate_limiter import RateLimiter

logger = get_logger(__name__)


class OllamaEmbeddings:
    """Client for the Ollama embeddings API.

    Every returned vector has the same dimensionality: the configured
    dimension, or the first one observed when none is configured.
    """

    DEFAULT_MODEL = "nomic-embed-text"

    def __init__(
        self,
        host: str = None,
        model: str = None,
        dimension: int = None,
        rate_limiter: RateLimiter = None,
        max_attempts: int = 3,
        backoff_min: float = 1.0,
        backoff_max: float = 10.0,
        timeout: float = 60,
    ):
        raw_host = (host or os.getenv("OLLAMA_HOST", DEFAULT_HOST)).rstrip("/")
        self.host = validate_host(raw_host, EmbeddingError)
        self.model = model or os.getenv("OLLAMA_EMBED_MODEL", self.DEFAULT_MODEL)

        if dimension is None and os.getenv("EMBEDDING_DIMENSION"):
            dimension = int(os.getenv("EMBEDDING_DIMENSION"))
        self.dimension: Optional[int] = dimension

        self.rate_limiter = rate_limiter or RateLimiter()
        self.timeout = timeout
        self._retrying = retrying(max_attempts, backoff_min, backoff_max)
        self._dimension_lock = threading.Lock()
        self.session = requests.Session()

    def is_available(self) -> bool:
        """Check if Ollama is available."""
        try:
            response = self.session.get(f"{self.host}/api/tags", timeout=5)
            return response.status_code == 200
        except requests.exceptions.RequestException:
            return False

    def embed(self, text: str) -> List[float]:
        """Generate embedding for a single text."""
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """Generate embeddings for multiple texts in one provider call.

        Returns:
            One vector per input, in input order

        Raises:
            EmbeddingError: On provider failure or malformed output
        """
        if not texts:
            return []

        payload = {"model": self.model, "input": list(texts)}

        try:
            data = self._retrying.copy()(self._call, payload)
        except TransientProviderError as e:
            raise EmbeddingError(f"Embedding provider unavailable: {e}") from e
        except (requests.exceptions.RequestException, ValueError) as e:
            raise EmbeddingError(f"Embedding failed: {e}") from e

        vectors = data.get("embeddings") if isinstance(data, dict) else None
        if not isinstance(vectors, list) or len(vectors) != len(texts):
            got = len(vectors) if isinstance(vectors, list) else "no"
            raise EmbeddingError(f"Expected {len(texts)} embeddings, got {got}")

        for vector in vectors:
            self._check_dimension(vector)

        try:
            return [[float(x) for x in vector] for vector in vectors]
        except (TypeError, ValueError) as e:
            raise EmbeddingError(f"Provider returned a non-numeric embedding: {e}") from e

    def _call(self, payload: dict) -> dict:
        self.rate_limiter.acquire()
        return post_json(self.session, f"{self.host}/api/embed", payload, self.timeout)

    def _check_dimension(self, vector) -> None:
        if not isinstance(vector, list) or not vector:
            raise EmbeddingError("Provider returned an empty embedding")

        with self._dimension_lock:
            if self.dimension is None:
                self.dimension = len(vector)
                logger.info(f"Embedding dimension set to {self.dimension} ({self.model})")
            elif len(vector) != self.dimension:
                raise EmbeddingError(
                    f"Embedding dimension {len(vector)} does not match configured {self.dimension}"
                )

    def get_dimension(self) -> int:
        """Get embedding dimension, probing the provider if not yet known."""
        if self.dimension is None:
            self.embed("dimension probe")
        return self.dimension
