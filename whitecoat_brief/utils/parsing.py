"""Helpers for pulling JSON out of model responses."""

import re

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


def strip_code_fences(text: str) -> str:
    """Remove a surrounding ```json ... ``` (or bare ```) wrapper."""
    stripped = (text or "").strip()
    if stripped.startswith("```json"):
        stripped = stripped[7:]
    elif stripped.startswith("```"):
        stripped = stripped[3:]
    if stripped.endswith("```"):
        stripped = stripped[:-3]
    return stripped.strip()


def extract_json_object(text: str) -> str:
    """Strip fences, then narrow to the outermost {...} block if prose surrounds it."""
    stripped = strip_code_fences(text)
    match = _JSON_OBJECT.search(stripped)
    if match:
        return match.group(0)
    return stripped
