"""Recover named JSON objects from free-form model replies.

The service answers in prose with fenced ``json`` blocks mixed in. Blocks are
located by the key they open with rather than by position, so the order in
which the model emits them does not matter. When a key appears in more than
one block the first block wins.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Mapping

from .errors import ExtractionError, MalformedPayloadError
from .models import ProcessedDimensions, RawDifference

logger = logging.getLogger(__name__)

PROCESSED_DIMENSIONS_KEY = "processed_dimensions"
DIFFERENCES_KEY = "differences"
IMAGE_KEYS = ("image1", "image2")


def _block_pattern(object_name: str) -> re.Pattern[str]:
    return re.compile(
        r"```(?i:json)[ \t]*\r?\n\s*"
        r"(\{\s*\"" + re.escape(object_name) + r"\"[\s\S]*?\})"
        r"\s*```"
    )


def extract_json_object(text: str, object_name: str) -> Dict[str, Any]:
    """Return the first fenced JSON object in *text* keyed by *object_name*."""

    match = _block_pattern(object_name).search(text or "")
    if match is None:
        logger.error("No %s block found in response", object_name)
        raise ExtractionError(object_name, text)

    try:
        parsed = json.loads(match.group(1))
    except json.JSONDecodeError as exc:
        logger.error("Could not parse %s block: %s", object_name, exc)
        raise MalformedPayloadError(object_name, text, str(exc)) from exc

    if not isinstance(parsed, dict) or object_name not in parsed:
        raise MalformedPayloadError(
            object_name, text, f"block does not contain a top-level '{object_name}' key"
        )
    return parsed


def _positive_int(value: object) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, float) and value.is_integer() and value > 0:
        return int(value)
    return None


def parse_processed_dimensions(text: str) -> Dict[str, ProcessedDimensions]:
    """Parse the ``processed_dimensions`` block into per-image sizes."""

    block = extract_json_object(text, PROCESSED_DIMENSIONS_KEY)[PROCESSED_DIMENSIONS_KEY]
    if not isinstance(block, Mapping):
        raise MalformedPayloadError(
            PROCESSED_DIMENSIONS_KEY, text, "expected an object keyed by image"
        )

    dimensions: Dict[str, ProcessedDimensions] = {}
    for image_key in IMAGE_KEYS:
        entry = block.get(image_key)
        if not isinstance(entry, Mapping):
            raise MalformedPayloadError(
                PROCESSED_DIMENSIONS_KEY, text, f"missing dimensions for {image_key}"
            )
        width = _positive_int(entry.get("width"))
        height = _positive_int(entry.get("height"))
        if width is None or height is None:
            raise MalformedPayloadError(
                PROCESSED_DIMENSIONS_KEY,
                text,
                f"{image_key} needs positive integer width and height, "
                f"got {entry.get('width')!r}x{entry.get('height')!r}",
            )
        dimensions[image_key] = ProcessedDimensions(width=width, height=height)
    return dimensions


def parse_differences(text: str) -> List[RawDifference]:
    """Parse the ``differences`` block. An empty list is a valid answer."""

    entries = extract_json_object(text, DIFFERENCES_KEY)[DIFFERENCES_KEY]
    if not isinstance(entries, list):
        raise MalformedPayloadError(DIFFERENCES_KEY, text, "expected a list")

    differences: List[RawDifference] = []
    for position, entry in enumerate(entries, start=1):
        if not isinstance(entry, Mapping):
            raise MalformedPayloadError(
                DIFFERENCES_KEY, text, f"entry #{position} is not an object"
            )
        differences.append(RawDifference.from_mapping(position, entry))
    return differences
