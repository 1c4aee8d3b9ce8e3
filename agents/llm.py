"""
Shared helpers for the Ollama-backed agents.
"""

import json
import re
from typing import Any, Optional

from langchain_ollama import ChatOllama

from config import Settings

_JSON_ARRAY = re.compile(r"\[.*\]", re.DOTALL)
_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def create_llm(config: Settings) -> ChatOllama:
    return ChatOllama(
        model=config.OLLAMA_MODEL,
        temperature=config.LLM_TEMPERATURE,
        base_url=config.OLLAMA_BASE_URL
    )


def extract_json(response_text: str, expect: str = "object") -> Optional[Any]:
    """
    Pull the outermost JSON array or object out of a model response.

    Models often wrap JSON in prose or code fences, so the first opening
    bracket to the last closing bracket is parsed.

    Returns:
        The decoded value, or None if nothing parseable of the expected
        shape was found
    """
    pattern = _JSON_ARRAY if expect == "array" else _JSON_OBJECT
    match = pattern.search(response_text or "")
    if not match:
        return None

    try:
        value = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None

    expected_type = list if expect == "array" else dict
    return value if isinstance(value, expected_type) else None
