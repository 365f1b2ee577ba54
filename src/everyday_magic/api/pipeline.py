"""Request pipelines behind the recommendation and image-analysis endpoints.

Each pipeline runs prompt construction, the model call, and (for
recommendations) response parsing and sanitization.  Rate limiting and
input validation happen earlier, in :mod:`everyday_magic.api.main`.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from everyday_magic.api.models import RecommendationItem
from everyday_magic.api.prompt_builder import (
    VALID_CATEGORIES,
    build_image_analysis_prompt,
    build_recommendation_prompt,
)
from everyday_magic.core.errors import ParseError
from everyday_magic.core.images import ImagePayload
from everyday_magic.core.model_client import ModelClient
from everyday_magic.core.response_parser import parse_json, sanitize

logger = logging.getLogger(__name__)

#: Number of recommendations returned per request.
RECOMMENDATION_COUNT = 3


def coerce_recommendations(value: Any, category: str | None = None) -> list[RecommendationItem]:
    """Validate sanitized model output into recommendation items.

    Categories are case-folded; one that is still unknown is replaced by the
    requested *category* when that is valid.  Items that cannot be
    validated are dropped.  Exactly :data:`RECOMMENDATION_COUNT` items are
    returned; extras are truncated.

    Args:
        value: Decoded and sanitized JSON from the model.
        category: Category the user asked for, if any.

    Returns:
        Exactly three recommendation items.

    Raises:
        ParseError: If *value* is not a list or contains fewer than three
            valid items.
    """
    if isinstance(value, dict) and isinstance(value.get("recommendations"), list):
        value = value["recommendations"]
    if not isinstance(value, list):
        raise ParseError("Model response was not a JSON array")

    fallback = category if category in VALID_CATEGORIES else None
    items: list[RecommendationItem] = []
    for raw in value:
        if not isinstance(raw, dict):
            logger.warning("Dropping non-object recommendation: %r", raw)
            continue
        candidate = dict(raw)
        cat = candidate.get("category")
        if isinstance(cat, str):
            cat = cat.strip().lower()
        if cat not in VALID_CATEGORIES and fallback is not None:
            cat = fallback
        candidate["category"] = cat
        try:
            items.append(RecommendationItem.model_validate(candidate))
        except PydanticValidationError as e:
            logger.warning("Dropping invalid recommendation %r: %s", raw, e)

    if len(items) < RECOMMENDATION_COUNT:
        raise ParseError(
            f"Model response contained {len(items)} valid recommendations "
            f"(expected {RECOMMENDATION_COUNT})"
        )
    if len(items) > RECOMMENDATION_COUNT:
        logger.warning(
            "Model returned %d recommendations; keeping the first %d.",
            len(items),
            RECOMMENDATION_COUNT,
        )
    return items[:RECOMMENDATION_COUNT]


async def get_recommendations(
    client: ModelClient,
    prompt: str,
    category: str | None = None,
) -> list[RecommendationItem]:
    """Ask the model for recommendations and return them cleaned up.

    Args:
        client: Model gateway.
        prompt: The user's request.
        category: Optional category focus.

    Returns:
        The validated recommendation items.

    Raises:
        ModelError: If the model call fails.
        ParseError: If no valid recommendations can be recovered.  The raw
            model text is logged, never attached to the error.
    """
    structured_prompt = build_recommendation_prompt(prompt, category)
    text = await client.invoke(structured_prompt)

    try:
        parsed = parse_json(text)
        return coerce_recommendations(sanitize(parsed), category)
    except ParseError:
        logger.error("Unusable recommendation response from model:\n%s", text)
        raise


async def analyze_image(
    client: ModelClient,
    image: ImagePayload,
    prompt: str | None = None,
    category: str | None = None,
) -> str:
    """Ask the vision model to describe an image.

    Args:
        client: Model gateway.
        image: Decoded image payload.
        prompt: Optional accompanying request.
        category: Optional category focus.

    Returns:
        The model's narrative analysis.

    Raises:
        ModelError: If the model call fails.
    """
    analysis_prompt = build_image_analysis_prompt(prompt, category)
    return await client.invoke(analysis_prompt, image)
