"""Recover a JSON object from free-form model output."""

import json
from typing import Any, Dict


def extract_json_object(text: str) -> Dict[str, Any]:
    """Parse the span from the first ``{`` to the last ``}`` as a JSON object.

    Models often wrap JSON in prose or code fences; everything outside the
    outermost braces is ignored.

    Raises:
        ValueError: If no braces are present, the span is not valid JSON, or
            the decoded value is not an object.
    """
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end < start:
        raise ValueError("No JSON object found in AI response")

    try:
        value = json.loads(text[start:end + 1])
    except json.JSONDecodeError as e:
        raise ValueError(f"Malformed JSON in AI response: {e}") from e

    if not isinstance(value, dict):
        raise ValueError("AI response JSON is not an object")
    return value
