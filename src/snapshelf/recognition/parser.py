"""Validation and normalization of recognition service output."""
# mypy: ignore-errors

from __future__ import annotations

import json
import logging
import math
import numbers
import re
from typing import Any, Iterable, List, Optional

from snapshelf.errors import MalformedResponseError
from snapshelf.inventory.canonical import canonicalize
from snapshelf.models.inventory import BoundingBox, ItemObservation

logger = logging.getLogger(__name__)

_OPENING_FENCE_RE = re.compile(r"^```(?:json)?[ \t]*\r?\n?", re.IGNORECASE)
_CLOSING_FENCE_RE = re.compile(r"\r?\n?```\s*$")
_PAIRS = {"{": "}", "[": "]"}


def strip_code_fence(text: str) -> str:
    """Remove a leading ```/```json fence line and a trailing ``` fence."""

    cleaned = text.strip()
    cleaned = _OPENING_FENCE_RE.sub("", cleaned, count=1)
    cleaned = _CLOSING_FENCE_RE.sub("", cleaned, count=1)
    return cleaned.strip()


def _balanced_span(text: str, start: int) -> Optional[str]:
    """Return the bracketed span opening at ``start``, honouring JSON strings."""

    stack: list[str] = []
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
        elif char in _PAIRS:
            stack.append(_PAIRS[char])
        elif char in ("}", "]"):
            if not stack or stack.pop() != char:
                return None
            if not stack:
                return text[start : index + 1]
    return None


def _candidate_spans(text: str) -> Iterable[str]:
    """Yield bracketed spans in order of their opening position.

    Each opening bracket contributes its balanced span and then the greedy span
    up to the last matching closer, so prose such as "Found [2 items]: {...}"
    still reaches the payload.
    """

    seen: set[str] = set()
    for start, char in enumerate(text):
        if char not in _PAIRS:
            continue
        balanced = _balanced_span(text, start)
        end = text.rfind(_PAIRS[char])
        greedy = text[start : end + 1] if end > start else None
        for span in (balanced, greedy):
            if span is not None and span not in seen:
                seen.add(span)
                yield span


def extract_json_value(text: str) -> Any:
    """Parse the JSON value carried by ``text``, tolerating prose and fences.

    Raises ``MalformedResponseError`` when no JSON value can be recovered.
    """

    if not isinstance(text, str) or not text.strip():
        raise MalformedResponseError("Recognition response was empty")

    cleaned = strip_code_fence(text)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as exc:
        first_error = exc

    for span in _candidate_spans(cleaned):
        try:
            return json.loads(span)
        except json.JSONDecodeError:
            continue

    snippet = cleaned.replace("\n", " ")[:200]
    raise MalformedResponseError(
        f"Unable to parse recognition response as JSON: {first_error}: payload={snippet}"
    )


def safe_non_negative_int(value: Any) -> int:
    """Coerce ``value`` to a non-negative integer, defaulting to 0. Never raises."""

    if value is None:
        return 0
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return 0
    if not math.isfinite(number):
        return 0
    return max(0, math.floor(number + 0.5))


def normalize_category(value: Any, categories: Iterable[str], default_category: str) -> str:
    """Lowercase ``value`` and fall back to ``default_category`` when unsupported."""

    category = value.strip().lower() if isinstance(value, str) else ""
    if category and category in set(categories):
        return category
    return default_category


def _is_number(value: Any) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool) and math.isfinite(value)


def parse_bounding_box(value: Any) -> Optional[BoundingBox]:
    """Return a ``BoundingBox`` for a valid ``[x, y, w, h]`` list, else ``None``."""

    if not isinstance(value, (list, tuple)) or len(value) != 4:
        return None
    if not all(_is_number(component) for component in value):
        return None
    x, y, width, height = (float(component) for component in value)
    if not (0.0 <= x <= 1.0 and 0.0 <= y <= 1.0):
        return None
    if not (0.0 < width <= 1.0 and 0.0 < height <= 1.0):
        return None
    return BoundingBox(x=x, y=y, width=width, height=height)


def _first_present(entry: dict, *keys: str) -> Any:
    for key in keys:
        if key in entry:
            return entry[key]
    return None


def parse_recognition_response(
    text: str,
    *,
    categories: Iterable[str],
    default_category: str,
) -> List[ItemObservation]:
    """Turn a raw recognition response into vetted item observations.

    Structural problems raise ``MalformedResponseError``; field-level defects
    (bad numbers, unknown categories, invalid boxes) are repaired in place.
    """

    parsed = extract_json_value(text)

    if isinstance(parsed, dict):
        raw_items = parsed.get("items")
        if not isinstance(raw_items, list):
            raise MalformedResponseError("Recognition response does not contain an items array")
    elif isinstance(parsed, list):
        raw_items = parsed
    else:
        raise MalformedResponseError(
            f"Recognition response must be an object or array, got {type(parsed).__name__}"
        )

    category_set = {category.lower() for category in categories}
    observations: List[ItemObservation] = []
    named = 0
    for entry in raw_items:
        if not isinstance(entry, dict):
            continue
        raw_name = entry.get("name")
        name = raw_name.strip() if isinstance(raw_name, str) else ""
        if not name:
            continue
        named += 1
        if not canonicalize(name):
            logger.debug("Dropping observation without a usable name: %r", name)
            continue

        observations.append(
            ItemObservation(
                name=name,
                quantity=safe_non_negative_int(_first_present(entry, "qty", "quantity")),
                expires_in_days=safe_non_negative_int(
                    _first_present(entry, "expiresInDays", "expires_in_days")
                ),
                category=normalize_category(entry.get("category"), category_set, default_category),
                bounding_box=parse_bounding_box(
                    _first_present(entry, "bbox", "boundingBox", "bounding_box")
                ),
            )
        )

    if raw_items and named == 0:
        raise MalformedResponseError("No recognized item has a non-empty name")

    logger.debug(
        "Parsed %s observation(s) from %s candidate(s)", len(observations), len(raw_items)
    )
    return observations


__all__ = [
    "extract_json_value",
    "normalize_category",
    "parse_bounding_box",
    "parse_recognition_response",
    "safe_non_negative_int",
    "strip_code_fence",
]
