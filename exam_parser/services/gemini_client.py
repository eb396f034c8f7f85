"""Gemini API client initialization and text generation.

Uses the google-genai SDK. ``generate_text`` is the single call site for
model requests: it retries rate-limit and transient server errors with
exponential backoff and can serve repeated prompts from an on-disk cache.
"""

import hashlib
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from google import genai
from google.genai import types

from exam_parser.config import get_settings
from exam_parser.utils.retry import RATE_LIMIT_BACKOFF, retry_with_backoff

logger = logging.getLogger(__name__)


def get_gemini_client() -> genai.Client:
    """Initialize and return a Gemini API client.

    Returns:
        genai.Client: Initialized Gemini client ready for API calls.

    Raises:
        ValueError: If GEMINI_API_KEY is not set in environment.
    """
    settings = get_settings()

    if not settings.gemini_api_key:
        raise ValueError(
            "GEMINI_API_KEY not set in environment. "
            "Please set this variable in your .env file or environment."
        )

    return genai.Client(api_key=settings.gemini_api_key)


def is_gemini_configured() -> bool:
    """Return True if an API key is available for AI features."""
    return get_settings().gemini_api_key is not None


def _cache_key(model: str, prompt: str, config: Dict[str, Any]) -> str:
    payload = json.dumps({"model": model, "prompt": prompt, "config": config}, sort_keys=True)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def _read_cache(cache_dir: Optional[str], key: str) -> Optional[str]:
    if not cache_dir:
        return None
    path = Path(cache_dir) / f"{key}.json"
    if not path.exists():
        return None
    try:
        return json.loads(path.read_text(encoding="utf-8"))["text"]
    except (OSError, ValueError, KeyError) as e:
        logger.warning("Ignoring unreadable cache entry %s: %s", path, e)
        return None


def _write_cache(cache_dir: Optional[str], key: str, text: str) -> None:
    if not cache_dir:
        return
    path = Path(cache_dir) / f"{key}.json"
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps({"text": text}), encoding="utf-8")
    except OSError as e:
        logger.warning("Could not write cache entry %s: %s", path, e)


@retry_with_backoff(RATE_LIMIT_BACKOFF)
def _generate_content(client: genai.Client, model: str, prompt: str, config: Dict[str, Any]) -> str:
    response = client.models.generate_content(
        model=model,
        contents=prompt,
        config=types.GenerateContentConfig(**config),
    )
    text = response.text
    if text is None:
        raise ValueError("Gemini API returned empty response")
    return text


def generate_text(
    client: genai.Client,
    model: str,
    prompt: str,
    config: Dict[str, Any],
    cache_dir: Optional[str] = None,
) -> str:
    """Generate a text response for ``prompt``.

    Blocking; async callers run it with ``asyncio.to_thread``.

    Args:
        client: Gemini API client
        model: Model name
        prompt: Prompt text
        config: GenerateContentConfig keyword arguments
        cache_dir: Optional directory of cached responses

    Returns:
        Response text

    Raises:
        ValueError: If the model returned no text
        Exception: For Gemini API errors after retries
    """
    key = _cache_key(model, prompt, config)
    cached = _read_cache(cache_dir, key)
    if cached is not None:
        logger.debug("Using cached Gemini response %s", key[:12])
        return cached

    text = _generate_content(client, model, prompt, config)
    _write_cache(cache_dir, key, text)
    return text
