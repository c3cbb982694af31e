from __future__ import annotations

import json
import logging
import re

from errors import MalformedUpstreamPayload


logger = logging.getLogger(__name__)

ARRAY_RE = re.compile(r'\[\s*("[^"]*"(?:\s*,\s*"[^"]*")*)\s*\]')
SPLIT_RE = re.compile(r"[\n,]+")
LIST_MARKER_RE = re.compile(r"^(?:[-*•]|\d+[.)])\s*")


def _string_list(value: object) -> list[str] | None:
    if isinstance(value, list) and all(isinstance(item, str) for item in value):
        return value
    return None


def strict_parse(text: str) -> list[str] | None:
    try:
        return _string_list(json.loads(text))
    except (TypeError, ValueError):
        return None


def bracket_parse(text: str) -> list[str] | None:
    match = ARRAY_RE.search(text)
    if not match:
        return None
    return strict_parse(match.group(0))


def split_parse(text: str) -> list[str]:
    items = []
    for chunk in SPLIT_RE.split(text):
        item = LIST_MARKER_RE.sub("", chunk.strip())
        item = item.strip().strip("[]").replace('"', "").replace("'", "").strip()
        if len(item) > 1:
            items.append(item)
    return items


def parse_string_array(text: str | None) -> list[str]:
    """Pull a list of words out of loosely formatted model output.

    Tries a strict JSON parse, then the first ``[...]`` array embedded in
    the text, then a plain split on newlines and commas.
    """
    if not text:
        raise MalformedUpstreamPayload("Empty response from word service")

    words = strict_parse(text)
    if words is None:
        words = bracket_parse(text)
    if words is None:
        words = split_parse(text)
        if words:
            logger.warning("Used fallback parsing for model response")

    if not words:
        raise MalformedUpstreamPayload(f"Could not extract words from response: {text!r}")
    return words
