"""Shared HTTP plumbing for the Ollama embedding and chat clients."""

import os
from typing import Any, Dict, Type
from urllib.parse import urlparse

import requests
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..logging import get_logger

logger = get_logger(__name__)

DEFAULT_HOST = "http://localhost:11434"

# Allowed hosts for Ollama connections (SSRF protection)
ALLOWED_HOSTS = frozenset({
    "localhost",
    "127.0.0.1",
    "::1",
    "ollama",  # Docker service name
    "host.docker.internal",  # Docker host access
})

RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})


class TransientProviderError(Exception):
    """A provider failure worth retrying (timeouts, 429, 5xx)."""

    pass


def allowed_hosts() -> frozenset:
    """Built-in allowlist plus comma-separated OLLAMA_ALLOWED_HOSTS."""
    extra = os.getenv("OLLAMA_ALLOWED_HOSTS", "")
    return ALLOWED_HOSTS | {h.strip().lower() for h in extra.split(",") if h.strip()}


def validate_host(host: str, error_cls: Type[Exception]) -> str:
    """Validate an Ollama host URL to prevent SSRF attacks."""
    try:
        parsed = urlparse(host)
    except ValueError as e:
        raise error_cls(f"Invalid Ollama host URL: {e}")

    if parsed.scheme not in ("http", "https"):
        raise error_cls(f"Ollama host must use http or https, got: {parsed.scheme}")

    hostname = parsed.hostname
    if not hostname:
        raise error_cls("Ollama host URL missing hostname")

    hosts = allowed_hosts()
    if hostname.lower() not in hosts:
        raise error_cls(
            f"Ollama host '{hostname}' not in allowed hosts. "
            f"Allowed: {', '.join(sorted(hosts))}"
        )

    return host


def post_json(
    session: requests.Session,
    url: str,
    payload: Dict[str, Any],
    timeout: float,
) -> Dict[str, Any]:
    """POST a JSON payload and decode the JSON response.

    Raises:
        TransientProviderError: For connection errors, timeouts, 429 and 5xx
        requests.exceptions.RequestException: For other HTTP failures
        ValueError: If the response body is not JSON
    """
    try:
        response = session.post(url, json=payload, timeout=timeout)
    except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
        raise TransientProviderError(str(e)) from e

    if response.status_code in RETRYABLE_STATUS:
        raise TransientProviderError(f"HTTP {response.status_code} from {url}")

    response.raise_for_status()
    return response.json()


def retrying(max_attempts: int, backoff_min: float, backoff_max: float) -> Retrying:
    """Exponential backoff policy for transient provider failures."""
    return Retrying(
        retry=retry_if_exception_type(TransientProviderError),
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=backoff_min, min=backoff_min, max=backoff_max),
        reraise=True,
    )
