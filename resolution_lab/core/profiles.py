"""Normalisation shared by every model response that should hold a profile."""
from __future__ import annotations

import json
import re

from pydantic import ValidationError

from resolution_lab.core.schema import ResultProfile

_FENCE_PATTERN = re.compile(r"```(?:json)?", re.IGNORECASE)


class ProfileParseError(ValueError):
    """Raised when model output is not a JSON object matching the profile shape."""


def strip_code_fences(text: str) -> str:
    return _FENCE_PATTERN.sub("", text or "").strip()


def parse_profile(text: str) -> ResultProfile:
    cleaned = strip_code_fences(text)
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise ProfileParseError(f"Output was not valid JSON. {exc}") from exc
    if not isinstance(payload, dict):
        raise ProfileParseError(f"Expected a JSON object, got {type(payload).__name__}.")
    try:
        return ResultProfile.model_validate(payload)
    except ValidationError as exc:
        raise ProfileParseError(f"Output did not match the profile schema. {exc.error_count()} field error(s).") from exc
