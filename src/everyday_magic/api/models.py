"""Pydantic request and response models for the Everyday Magic API.

These models define the JSON schema for every API endpoint.  FastAPI uses
them for automatic request validation, serialisation, and OpenAPI
documentation generation.

Required text fields are declared optional here on purpose: the endpoints
check them explicitly so a missing ``prompt`` or ``image`` produces a
specific 400 message rather than a generic validation failure.

Models
------
RecommendationRequest
    Payload for ``POST /api/recommendations``.
RecommendationItem
    A single recommendation returned by the model.
RecommendationResponse
    Response body for ``POST /api/recommendations``.
ImageAnalysisRequest
    Payload for ``POST /api/image-analysis``.
ImageAnalysisResponse
    Response body for ``POST /api/image-analysis``.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

Category = Literal["meals", "entertainment", "fashion", "fitness", "travel", "books", "music"]


class RecommendationRequest(BaseModel):
    """Request body for the ``POST /api/recommendations`` endpoint.

    Attributes:
        prompt: Free-text description of what the user wants.
        category: Optional category focus (e.g. ``"meals"``).
    """

    prompt: str | None = Field(
        default=None,
        description="What the user is looking for (required).",
    )
    category: str | None = Field(
        default=None,
        description="Optional category focus, e.g. 'meals' or 'books'.",
    )


class RecommendationItem(BaseModel):
    """A single recommendation.

    Attributes:
        title: Plain-text title with no markdown.
        reasoning: One or two sentences explaining the pick.
        category: One of the seven supported categories.
    """

    title: str = Field(..., min_length=1, description="Plain-text title.")
    reasoning: str = Field(..., description="Why this was recommended (1-2 sentences).")
    category: Category = Field(..., description="Recommendation category.")


class RecommendationResponse(BaseModel):
    """Response body for the ``POST /api/recommendations`` endpoint."""

    recommendations: list[RecommendationItem]


class ImageAnalysisRequest(BaseModel):
    """Request body for the ``POST /api/image-analysis`` endpoint.

    Attributes:
        image: Data URL with a base64 payload
            (``data:image/jpeg;base64,...``).
        prompt: Optional request accompanying the image.
        category: Optional category focus.
    """

    image: str | None = Field(
        default=None,
        description="Base64 data URL of the image (required).",
    )
    prompt: str | None = Field(
        default=None,
        description="Optional request accompanying the image.",
    )
    category: str | None = Field(
        default=None,
        description="Optional category focus.",
    )


class ImageAnalysisResponse(BaseModel):
    """Response body for the ``POST /api/image-analysis`` endpoint.

    The analysis covers main subject, details, context and recommendation
    ideas as narrative text.
    """

    analysis: str
