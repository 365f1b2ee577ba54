"""Recover structured data from free-form model output.

Generative models do not reliably return bare JSON even when told to: the
payload may be wrapped in a markdown code fence, preceded by "Sure! Here you
go:", or followed by a friendly sign-off.  This module provides two pure
functions for turning such output into clean data.

parse_json
    Parse the whole text as JSON, or failing that, locate and decode the
    first embedded JSON array of objects, then the first embedded JSON
    object.  The fallback is a best-effort heuristic rather than a
    grammar: it scans for candidate starting positions and lets the JSON
    decoder decide where each value ends.  Arrays are tried before objects
    because recommendation payloads are always arrays.

sanitize
    Strip markdown emphasis, code and heading markers from every ``title``
    and ``reasoning`` string in a nested structure.

Example
-------
::

    raw = 'Sure!\\n[{"title": "**Dune**", "reasoning": "A *classic*."}]\\nEnjoy!'
    sanitize(parse_json(raw))
    # [{"title": "Dune", "reasoning": "A classic."}]
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from everyday_magic.core.errors import ParseError

logger = logging.getLogger(__name__)

# Candidate starts for embedded JSON, in the order they are tried.
_EXTRACTION_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\[\s*\{"),  # array of objects
    re.compile(r'\{\s*"\w+"'),  # object with a leading key
)

# Fields whose text is cleaned by sanitize().
SANITIZED_FIELDS = frozenset({"title", "reasoning"})

_BOLD = re.compile(r"\*\*")
_ITALIC = re.compile(r"\*")
_BACKTICK = re.compile(r"`")
_HEADING = re.compile(r"#{1,6}\s")

_decoder = json.JSONDecoder()


def _extract_embedded(text: str) -> Any:
    """Decode the first embedded JSON value matched by the extraction patterns.

    Raises:
        ParseError: If no candidate decodes.
    """
    for pattern in _EXTRACTION_PATTERNS:
        for match in pattern.finditer(text):
            try:
                value, _ = _decoder.raw_decode(text, match.start())
            except json.JSONDecodeError:
                logger.debug("Candidate JSON at offset %d failed to decode.", match.start())
                continue
            return value

    raise ParseError("Could not extract valid JSON from the response")


def parse_json(raw_text: str) -> Any:
    """Parse model output as JSON, tolerating prose around the payload.

    Args:
        raw_text: Raw text returned by the model.

    Returns:
        The decoded JSON value.

    Raises:
        ParseError: If neither a direct parse nor any extraction pattern
            yields valid JSON.
    """
    try:
        return json.loads(raw_text)
    except (json.JSONDecodeError, TypeError):
        logger.warning("Model response is not bare JSON; attempting extraction.")

    if not isinstance(raw_text, str):
        raise ParseError("Could not extract valid JSON from the response")
    return _extract_embedded(raw_text)


def strip_markdown(text: str) -> str:
    """Remove bold, italic, backtick and heading markers from *text*.

    Heading removal is repeated until nothing changes, since stripping one
    marker can expose another (``"####### x"`` leaves ``"# x"`` after one
    pass).  The result therefore never changes when stripped again.
    """
    text = _BOLD.sub("", text)
    text = _ITALIC.sub("", text)
    text = _BACKTICK.sub("", text)
    while True:
        cleaned = _HEADING.sub("", text)
        if cleaned == text:
            return cleaned
        text = cleaned


def sanitize(value: Any) -> Any:
    """Return a copy of *value* with markdown stripped from text fields.

    Lists and dicts are traversed recursively.  String values stored under
    a ``title`` or ``reasoning`` key are passed through
    :func:`strip_markdown`; everything else is returned unchanged.  The
    input is never mutated.

    Args:
        value: Any decoded JSON value.

    Returns:
        The sanitized value.
    """
    if isinstance(value, list):
        return [sanitize(item) for item in value]

    if isinstance(value, dict):
        cleaned: dict = {}
        for key, item in value.items():
            if key in SANITIZED_FIELDS and isinstance(item, str):
                cleaned[key] = strip_markdown(item)
            else:
                cleaned[key] = sanitize(item)
        return cleaned

    return value
