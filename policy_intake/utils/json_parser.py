import json
import re
from typing import Any, Dict, List, Optional, Union

from policy_intake.utils.logging import get_logger

LOGGER = get_logger(__name__)

_FENCE_PATTERN = re.compile(r"```(?:json|JSON)?\s*(.*?)```", re.DOTALL)


def parse_json_safely(text: str) -> Union[Dict[str, Any], List[Any], None]:
    """Parse JSON from model output, handling common LLM formatting issues.

    Handles:
    - Markdown code blocks (```json ... ```), including fences surrounded by prose
    - Leading/trailing whitespace
    - A JSON object or array embedded inside a larger text response

    Args:
        text: The text containing JSON

    Returns:
        Parsed JSON value or None if nothing parseable is found
    """
    if not text or not text.strip():
        return None

    cleaned_text = text.strip()
    fenced = _FENCE_PATTERN.search(cleaned_text)
    if fenced:
        cleaned_text = fenced.group(1).strip()

    try:
        return json.loads(cleaned_text)
    except json.JSONDecodeError as e:
        LOGGER.warning(f"Initial JSON parse failed: {e}, looking for an embedded payload...")

    embedded = find_embedded_json(cleaned_text)
    if embedded is None and cleaned_text != text.strip():
        embedded = find_embedded_json(text)

    if embedded is None:
        LOGGER.error("Failed to recover JSON from model response")
    return embedded


def find_embedded_json(text: str) -> Union[Dict[str, Any], List[Any], None]:
    """Return the first complete JSON object (or array) found inside ``text``.

    Objects are preferred over arrays since model responses wrap their
    payload in an object.
    """
    decoder = json.JSONDecoder()
    fallback: Optional[List[Any]] = None

    for idx, char in enumerate(text):
        if char not in "{[":
            continue
        try:
            value, _ = decoder.raw_decode(text, idx)
        except json.JSONDecodeError:
            continue
        if isinstance(value, dict):
            return value
        if fallback is None and isinstance(value, list):
            fallback = value

    return fallback
