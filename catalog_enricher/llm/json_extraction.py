"""
Extract the JSON object from a free-form generation response.

Models are told to return only a JSON object but routinely wrap it in
markdown fences or add a sentence before or after it. The scanner below
finds the first balanced {...} block, ignoring braces inside strings.
Truncated output (no matching closing brace) is not repaired: it is
reported as a failed attempt so the retry path can ask again.
"""

import json
import logging
from typing import Any, Dict, Optional

from ..errors import GenerationError

logger = logging.getLogger(__name__)


def extract_json_block(text: str) -> Optional[str]:
    """
    Return the first balanced brace-delimited block in `text`.

    Handles:
    - Plain JSON
    - JSON wrapped in markdown code blocks
    - JSON with leading or trailing prose

    Returns:
        The block as a string, or None if there is no complete block
    """
    if not text:
        return None
    text = text.strip()

    # Handle markdown code blocks
    if "```json" in text:
        text = text.split("```json")[1].split("```")[0].strip()
    elif "```" in text:
        parts = text.split("```")
        if len(parts) >= 2:
            text = parts[1].strip()

    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escape_next = False

    for i, char in enumerate(text[start:], start):
        if escape_next:
            escape_next = False
            continue
        if char == "\\":
            escape_next = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start : i + 1]

    return None


def parse_json_object(text: str, model: Optional[str] = None) -> Dict[str, Any]:
    """
    Extract and decode the JSON object in a response.

    Raises:
        GenerationError: No block found, invalid JSON, or not an object
    """
    block = extract_json_block(text)
    if block is None:
        raise GenerationError("No JSON object found in response", model=model, raw_text=text)

    try:
        data = json.loads(block)
    except json.JSONDecodeError as e:
        raise GenerationError(f"Invalid JSON in response: {e}", model=model, raw_text=text) from e

    if not isinstance(data, dict):
        raise GenerationError("Response JSON is not an object", model=model, raw_text=text)

    return data
