"""
Oracle Response Parser

Two-stage parse of the extraction oracle's text output:

    1. Strict json.loads on the raw response
    2. Bounded repair pipeline, retrying the parse after each step:
         strip markdown fences
         keep the outermost {...} span
         remove trailing commas
         quote bare object keys

Items that fail validation are skipped with a warning rather than
failing the whole response. parse_extraction_response never raises.

Example:
    >>> result = parse_extraction_response('```json\\n{"entities": [],}\\n```')
    >>> result.ok, result.repairs
    (True, ['strip_fences', 'trailing_commas'])
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from docgraph.types import ExtractionParseResult, ExtractionPayload, RawEntity, RawRelationship

logger = logging.getLogger(__name__)

_FENCE = re.compile(r"```(?:json|JSON)?\s*(.*?)\s*```", re.DOTALL)
# Each pattern matches a quoted string first so repairs never touch string values.
_STRING = r'"(?:\\.|[^"\\])*"'
_TRAILING_COMMA = re.compile(_STRING + r"|,(\s*[}\]])")
_BARE_KEY = re.compile(_STRING + r"|([{,]\s*)([A-Za-z_][A-Za-z0-9_]*)\s*:")


def _strip_fences(text: str) -> str:
    match = _FENCE.search(text)
    return match.group(1) if match else text


def _outermost_object(text: str) -> str:
    start, end = text.find("{"), text.rfind("}")
    if start == -1 or end <= start:
        return text
    return text[start:end + 1]


def _remove_trailing_commas(text: str) -> str:
    def _drop_comma(m: re.Match[str]) -> str:
        return m.group(0) if m.group(1) is None else m.group(1)

    return _TRAILING_COMMA.sub(_drop_comma, text)


def _quote_bare_keys(text: str) -> str:
    def _quote(m: re.Match[str]) -> str:
        if m.group(1) is None:
            return m.group(0)
        return f'{m.group(1)}"{m.group(2)}":'

    return _BARE_KEY.sub(_quote, text)


REPAIR_STEPS: list[tuple[str, Callable[[str], str]]] = [
    ("strip_fences", _strip_fences),
    ("outermost_object", _outermost_object),
    ("trailing_commas", _remove_trailing_commas),
    ("bare_keys", _quote_bare_keys),
]


def _try_load(text: str) -> dict[str, Any] | None:
    try:
        data = json.loads(text)
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def parse_json_object(text: str) -> tuple[dict[str, Any] | None, list[str]]:
    """
    Recover a JSON object from oracle text.

    Returns:
        (object or None, names of repair steps that changed the text)
    """
    data = _try_load(text.strip())
    if data is not None:
        return data, []

    repairs: list[str] = []
    current = text.strip()
    for name, step in REPAIR_STEPS:
        repaired = step(current)
        if repaired == current:
            continue
        current = repaired
        repairs.append(name)
        data = _try_load(current)
        if data is not None:
            logger.debug(f"Recovered oracle JSON after repairs: {', '.join(repairs)}")
            return data, repairs

    return None, repairs


def _items(data: dict[str, Any], key: str) -> list[Any]:
    value = data.get(key)
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def parse_extraction_response(text: str) -> ExtractionParseResult:
    """Parse oracle output into an ExtractionPayload. Never raises."""
    if not text or not text.strip():
        return ExtractionParseResult(ok=False, error="Empty response")

    data, repairs = parse_json_object(text)
    if data is None:
        preview = text.strip()[:80].replace("\n", " ")
        return ExtractionParseResult(
            ok=False,
            error=f"Could not recover a JSON object from response: {preview!r}",
            repairs=repairs,
        )

    warnings: list[str] = []
    if repairs:
        warnings.append(f"Oracle response repaired ({', '.join(repairs)})")

    entities: list[RawEntity] = []
    relationships: list[RawRelationship] = []
    skipped = 0

    for kind, model, target in (
        ("entity", RawEntity, entities),
        ("relationship", RawRelationship, relationships),
    ):
        key = "entities" if kind == "entity" else "relationships"
        for index, item in enumerate(_items(data, key)):
            try:
                target.append(model.model_validate(item))
            except PydanticValidationError as e:
                skipped += 1
                first = e.errors()[0]
                location = ".".join(str(p) for p in first.get("loc", ())) or "item"
                warnings.append(
                    f"Skipped invalid {kind} #{index}: {location}: {first.get('msg', 'invalid')}"
                )

    return ExtractionParseResult(
        ok=True,
        payload=ExtractionPayload(entities=entities, relationships=relationships),
        repairs=repairs,
        skipped=skipped,
        warnings=warnings,
    )
