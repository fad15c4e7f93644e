"""Parse raw model output into the shapes the pipeline needs.

- analysis: JSON object somewhere in the text -> AnalysisFields, or the
  default triple when it can't be parsed (logged, never raised)
- free-text tasks: trimmed text, or None when the model produced nothing
- specific changes: tolerant SECTION / CURRENT / CHANGE TO record split
"""

import json

from app.core.errors import MalformedResponse
from app.core.logger import logger
from app.models import AnalysisFields, ChangeRecord

_SECTION = "SECTION:"
_CURRENT = "CURRENT:"
_CHANGE_TO = "CHANGE TO:"


def extract_json_object(raw: str) -> dict:
    """Parse the text between the first '{' and the last '}' as a JSON object.

    Raises MalformedResponse if there is no brace pair, the slice is not
    valid JSON, or it decodes to something other than an object.
    """
    start = raw.find("{")
    end = raw.rfind("}")
    if start == -1 or end == -1 or end <= start:
        raise MalformedResponse("no JSON object found in model output")

    try:
        parsed = json.loads(raw[start:end + 1])
    except json.JSONDecodeError as e:
        raise MalformedResponse(f"invalid JSON in model output: {e}") from e

    if not isinstance(parsed, dict):
        raise MalformedResponse("model output JSON is not an object")
    return parsed


def coerce_string_list(value) -> list[str]:
    """Anything but a list becomes []; inside a list, non-strings are dropped."""
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


def parse_analysis(raw: str) -> AnalysisFields:
    """Parse-or-default for the analysis task."""
    try:
        parsed = extract_json_object(raw)
    except MalformedResponse as e:
        logger.warning(f"Analysis output unusable, using default analysis: {e.detail}")
        return AnalysisFields.defaults()

    return AnalysisFields(
        strengths=coerce_string_list(parsed.get("strengths")),
        improvements=coerce_string_list(parsed.get("improvements")),
        tailoring=coerce_string_list(parsed.get("tailoring")),
    )


def parse_free_text(raw: str | None) -> str | None:
    text = (raw or "").strip()
    return text or None


def parse_change_records(text: str | None) -> list[ChangeRecord]:
    """Split specific-changes text into records.

    A SECTION: line opens a new record; CURRENT: / CHANGE TO: lines fill the
    open record (opening an unnamed one if needed). Blank and unrecognised
    lines are skipped. Incomplete records are kept.
    """
    records: list[ChangeRecord] = []
    current: dict | None = None

    for line in (text or "").splitlines():
        stripped = line.strip()
        if stripped.startswith(_SECTION):
            if current is not None:
                records.append(ChangeRecord(**current))
            current = {"section": stripped[len(_SECTION):].strip()}
        elif stripped.startswith(_CURRENT):
            current = current if current is not None else {}
            current["current"] = stripped[len(_CURRENT):].strip()
        elif stripped.startswith(_CHANGE_TO):
            current = current if current is not None else {}
            current["change_to"] = stripped[len(_CHANGE_TO):].strip()

    if current is not None:
        records.append(ChangeRecord(**current))
    return records
