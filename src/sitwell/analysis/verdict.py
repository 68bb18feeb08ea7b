"""Recover a structured verdict from free-form model output.

Models asked for JSON still wrap it in prose or markdown fences. Candidates are
tried in a fixed order: a fenced ``json`` block first, then the first balanced
``{...}`` object, then the whole text.
"""

from __future__ import annotations

import json
import re
from typing import Any

from sitwell.errors import ExtractionError, ExtractionFailure
from sitwell.types import Verdict

FENCED_JSON_RE = re.compile(r"```json\s*([\s\S]*?)\s*```", re.IGNORECASE)


def extract_verdict(text: str) -> Verdict:
    """Parse model output into a ``Verdict`` or raise ``ExtractionError``."""

    candidate = find_candidate(text)
    if candidate is None:
        payload = _parse_whole_text(text)
    else:
        try:
            payload = json.loads(candidate)
        except json.JSONDecodeError as exc:
            raise ExtractionError(
                ExtractionFailure.MALFORMED_OBJECT,
                f"Failed to parse analysis JSON from model response: {exc.msg}.",
            ) from exc
        if not isinstance(payload, dict):
            raise ExtractionError(
                ExtractionFailure.MALFORMED_OBJECT,
                "Failed to parse analysis JSON from model response: not an object.",
            )
    return _to_verdict(payload)


def find_candidate(text: str) -> str | None:
    """Return the span most likely to hold the verdict object."""

    fenced = FENCED_JSON_RE.search(text)
    if fenced is not None:
        return fenced.group(1)
    return first_object_span(text)


def first_object_span(text: str) -> str | None:
    """Return the first balanced ``{...}`` span; an unclosed one runs to the end."""

    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start : index + 1]
    return text[start:]


def _parse_whole_text(text: str) -> dict[str, Any]:
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ExtractionError(
            ExtractionFailure.NO_OBJECT_FOUND,
            "No JSON object found in model response.",
        ) from exc
    if not isinstance(payload, dict):
        raise ExtractionError(ExtractionFailure.NO_OBJECT_FOUND, "No JSON object found in model response.")
    return payload


def _to_verdict(payload: dict[str, Any]) -> Verdict:
    posture = payload.get("posture")
    if not isinstance(posture, str):
        raise ExtractionError(
            ExtractionFailure.MISSING_POSTURE_FIELD,
            "Response JSON missing 'posture' string field.",
        )
    reason = payload.get("reason")
    if reason is not None and not isinstance(reason, str):
        reason = json.dumps(reason, ensure_ascii=False)
    return Verdict(posture=posture, reason=reason)
