"""Validation of raw model output into typed lesson content."""

import json
import re
from typing import Any

from pydantic import ValidationError

from lessongen.errors import MalformedResponse
from lessongen.models import GeneratedLessonContent

# Reasoning models prefix their answer with a <think> block
THINK_BLOCK = re.compile(r"<think>[\s\S]*?</think>", re.IGNORECASE)
FENCED_JSON = re.compile(r"```(?:json)?\s*(\{[\s\S]*?\})\s*```")
BARE_JSON = re.compile(r"\{[\s\S]*\}")


def parse(raw: Any) -> GeneratedLessonContent:
    """
    Parse the provider's output into GeneratedLessonContent.

    Optional list sections that are missing or null become empty; the
    description is required. Nothing in the payload is trusted without
    validation.

    Args:
        raw: Provider output - a dict, a JSON string, or a list of streamed text chunks

    Returns:
        Validated GeneratedLessonContent

    Raises:
        MalformedResponse: If the payload is not an object, lacks required
            fields, or has entries of the wrong type
    """
    data = extract_json_object(raw)

    if "description" not in data:
        raise MalformedResponse("Generated content is missing the lesson description.")

    try:
        return GeneratedLessonContent.model_validate(data)
    except ValidationError as e:
        raise MalformedResponse(f"Generated content has an unexpected shape: {_summarize(e)}")


def extract_json_object(raw: Any) -> dict:
    """
    Pull a JSON object out of raw model output.

    Args:
        raw: Dict, JSON text (possibly in a markdown fence), or a list of text chunks

    Returns:
        Parsed JSON dictionary
    """
    if isinstance(raw, dict):
        return raw

    if isinstance(raw, list):
        if not all(isinstance(chunk, str) for chunk in raw):
            raise MalformedResponse("Generated content is not a JSON object.")
        raw = "".join(raw)

    if not isinstance(raw, str):
        raise MalformedResponse("Generated content is not a JSON object.")

    content = THINK_BLOCK.sub("", raw).strip()

    # Try direct JSON parse first
    try:
        return _require_object(json.loads(content))
    except json.JSONDecodeError:
        pass

    json_match = FENCED_JSON.search(content)
    if json_match:
        try:
            return _require_object(json.loads(json_match.group(1)))
        except json.JSONDecodeError:
            pass

    json_match = BARE_JSON.search(content)
    if json_match:
        try:
            return _require_object(json.loads(json_match.group(0)))
        except json.JSONDecodeError:
            pass

    raise MalformedResponse(f"Could not find lesson JSON in the response: {content[:200]}")


def _require_object(value: Any) -> dict:
    if not isinstance(value, dict):
        raise MalformedResponse("Generated content is not a JSON object.")
    return value


def _summarize(error: ValidationError) -> str:
    problems = []
    for item in error.errors()[:3]:
        location = ".".join(str(part) for part in item["loc"])
        problems.append(f"{location}: {item['msg']}")
    if error.error_count() > 3:
        problems.append(f"and {error.error_count() - 3} more")
    return "; ".join(problems)
