"""Everyday Magic: FastAPI Application.

This module is the single entry point for the web service.  It defines the
FastAPI ``app`` instance, all REST API routes, the error handlers that turn
domain exceptions into JSON responses, and the ``main()`` CLI function that
launches the uvicorn server.

Architecture
------------
Every POST request follows the same path::

    validate body -> rate limiter -> prompt builder -> model client
                  -> response parser -> sanitizer -> JSON response

- **Configuration** comes from :data:`~everyday_magic.core.config.config`
  (environment variables / ``.env``).
- **Rate limiting** uses one :class:`RateLimiter` per endpoint, created in
  the lifespan hook and stored on ``app.state``.  Validation runs first, so
  a request rejected with 400 is never counted.
- **Model calls** go through a :class:`ModelClient` stored on
  ``app.state``.  Tests replace it with a fake.
- **Errors** are handled at the endpoint boundary.  Nothing a request does
  can stop the process from serving the next one.

Endpoints
---------
========  ========================  =========================================
Method    Path                      Purpose
========  ========================  =========================================
POST      ``/api/recommendations``  Three recommendations for a text request
POST      ``/api/image-analysis``   Narrative analysis of an uploaded image
GET       ``/api/model/check``      Round-trip a test prompt to the model
GET       ``/api/health``           Service settings, no model call
========  ========================  =========================================

Usage
-----
CLI (installed entry point)::

    everyday-magic

Direct invocation::

    python -m everyday_magic.api.main
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from everyday_magic import __version__
from everyday_magic.api.models import (
    ImageAnalysisRequest,
    ImageAnalysisResponse,
    RecommendationRequest,
    RecommendationResponse,
)
from everyday_magic.api.pipeline import analyze_image, get_recommendations
from everyday_magic.core.config import EverydayMagicConfig, config
from everyday_magic.core.errors import (
    EverydayMagicError,
    ModelError,
    ParseError,
    RateLimitError,
    ValidationError,
)
from everyday_magic.core.images import downscale, inspect_image, parse_data_url
from everyday_magic.core.model_client import ModelClient
from everyday_magic.core.rate_limiter import RateLimiter, client_id_from_headers

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Application lifecycle: model client and rate limiter setup.
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application startup and shutdown lifecycle.

    On startup:
        Stores the configuration, a :class:`ModelClient`, and one
        :class:`RateLimiter` per POST endpoint on ``app.state``.  The model
        is not contacted at this point.

    On shutdown:
        Closes the model client's connections.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control back to the application for the duration of its lifetime.
    """
    # --- Startup -----------------------------------------------------------
    app.state.config = config
    app.state.model_client = ModelClient(config)
    app.state.recommendation_limiter = RateLimiter(
        window_ms=config.rate_limit_window_ms,
        max_requests=config.recommendation_rate_limit,
    )
    app.state.image_limiter = RateLimiter(
        window_ms=config.rate_limit_window_ms,
        max_requests=config.image_rate_limit,
    )
    if not config.api_key_available:
        logger.warning("No Gemini API key configured; model calls will fail.")
    logger.info(
        "Everyday Magic %s started (text_model=%s, vision_model=%s).",
        __version__,
        config.text_model,
        config.vision_model,
    )

    yield  # Application runs here.

    # --- Shutdown ----------------------------------------------------------
    await app.state.model_client.close()
    logger.info("Model client closed on shutdown.")


# ---------------------------------------------------------------------------
# FastAPI application instance.
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Everyday Magic",
    description="Personal recommendations from text requests and images.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Error handlers.
# ---------------------------------------------------------------------------


@app.exception_handler(EverydayMagicError)
async def handle_domain_error(request: Request, exc: EverydayMagicError) -> JSONResponse:
    """Render a domain exception as ``{"detail": message}``."""
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(RequestValidationError)
async def handle_request_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Answer unparsable or mistyped bodies with 400 instead of 422."""
    logger.warning("Rejected malformed request to %s: %s", request.url.path, exc.errors())
    return JSONResponse(status_code=400, content={"detail": "Invalid request format"})


# ---------------------------------------------------------------------------
# Request helpers.
# ---------------------------------------------------------------------------


def _admit(request: Request, limiter: RateLimiter) -> None:
    """Record a request against *limiter* or raise :class:`RateLimitError`."""
    settings: EverydayMagicConfig = request.app.state.config
    client_id = client_id_from_headers(request.headers, settings.client_id_header)
    if not limiter.admit(client_id):
        raise RateLimitError()


def _clean(text: str | None) -> str | None:
    """Strip surrounding whitespace, mapping blank strings to ``None``."""
    if text is None:
        return None
    text = text.strip()
    return text or None


# ---------------------------------------------------------------------------
# Routes.
# ---------------------------------------------------------------------------


@app.post("/api/recommendations", response_model=RecommendationResponse)
async def recommendations(req: RecommendationRequest, request: Request) -> RecommendationResponse:
    """Return three recommendations for a free-text request.

    Args:
        req: Validated :class:`RecommendationRequest` payload.
        request: The raw request (used for the client identifier).

    Returns:
        :class:`RecommendationResponse` with the recommendation items.

    Raises:
        ValidationError: 400 if ``prompt`` is missing or blank.
        RateLimitError: 429 if the client exhausted its window.
        HTTPException: 500 if the model call or parsing fails.
    """
    prompt = _clean(req.prompt)
    if prompt is None:
        raise ValidationError("Prompt is required")

    _admit(request, request.app.state.recommendation_limiter)

    client: ModelClient = request.app.state.model_client
    try:
        items = await get_recommendations(client, prompt, _clean(req.category))
    except ModelError as e:
        logger.exception("Model call failed for recommendations.")
        if e.is_api_key_error:
            raise HTTPException(status_code=500, detail="API key configuration error") from e
        raise HTTPException(
            status_code=500,
            detail=e.message or "Failed to get recommendations from AI service",
        ) from e
    except ParseError as e:
        raise HTTPException(
            status_code=500,
            detail="Failed to get recommendations from AI service",
        ) from e

    return RecommendationResponse(recommendations=items)


@app.post("/api/image-analysis", response_model=ImageAnalysisResponse)
async def image_analysis(req: ImageAnalysisRequest, request: Request) -> ImageAnalysisResponse:
    """Describe an uploaded image as a basis for recommendations.

    The data URL and image header are checked before the rate limiter is
    consulted; the full decode and downscale only run for admitted
    requests, in the thread pool.

    Args:
        req: Validated :class:`ImageAnalysisRequest` payload.
        request: The raw request (used for the client identifier).

    Returns:
        :class:`ImageAnalysisResponse` with the model's analysis.

    Raises:
        ValidationError: 400 if ``image`` is missing or not a base64 data
            URL of a recognizable image within ``image_max_pixels``.
        RateLimitError: 429 if the client exhausted its window.
    """
    if not req.image:
        raise ValidationError("Image is required")

    settings: EverydayMagicConfig = request.app.state.config
    payload = parse_data_url(req.image)
    payload = inspect_image(payload, settings.image_max_pixels)

    _admit(request, request.app.state.image_limiter)

    payload = await run_in_threadpool(
        downscale, payload, settings.image_max_dimension, settings.image_jpeg_quality
    )

    client: ModelClient = request.app.state.model_client
    try:
        analysis = await analyze_image(client, payload, _clean(req.prompt), _clean(req.category))
    except ModelError as e:
        logger.exception("Model call failed for image analysis.")
        return JSONResponse(
            status_code=500,
            content={"detail": "Failed to process image", "details": e.message},
        )

    return ImageAnalysisResponse(analysis=analysis)


@app.get("/api/model/check")
async def model_check(request: Request) -> JSONResponse:
    """Send a fixed test prompt to the text model.

    Useful for verifying the API key and model name after deployment.  Only
    a masked form of the key is ever returned.

    Returns:
        200 with ``success``, ``api_key_available``, ``masked_key`` and
        ``response_text``; 500 with ``success: false`` and ``error`` when
        the call fails.
    """
    settings: EverydayMagicConfig = request.app.state.config
    client: ModelClient = request.app.state.model_client
    body = {
        "api_key_available": settings.api_key_available,
        "masked_key": settings.masked_api_key(),
    }
    try:
        text = await client.invoke("Hello, world!", retry=False)
    except ModelError as e:
        logger.exception("Model check failed.")
        return JSONResponse(status_code=500, content={"success": False, **body, "error": e.message})

    return JSONResponse(content={"success": True, **body, "response_text": text})


@app.get("/api/health")
async def health(request: Request) -> dict:
    """Return service settings without contacting the model.

    Returns:
        Dictionary with ``ok``, ``version``, model names, whether a key is
        configured, and the rate-limit settings.
    """
    settings: EverydayMagicConfig = request.app.state.config
    return {
        "ok": True,
        "version": __version__,
        "text_model": settings.text_model,
        "vision_model": settings.vision_model,
        "api_key_available": settings.api_key_available,
        "rate_limits": {
            "window_ms": settings.rate_limit_window_ms,
            "recommendations": settings.recommendation_rate_limit,
            "image_analysis": settings.image_rate_limit,
        },
    }


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host, port and log level from
    :data:`~everyday_magic.core.config.config` (``EVERYDAY_MAGIC_SERVER_HOST``,
    ``EVERYDAY_MAGIC_SERVER_PORT``, ``EVERYDAY_MAGIC_LOG_LEVEL``).
    Defaults to ``0.0.0.0:8000``.

    This function is registered as the ``everyday-magic`` console script in
    ``pyproject.toml``.
    """
    import uvicorn

    logging.basicConfig(
        level=getattr(logging, config.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    uvicorn.run(
        "everyday_magic.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
