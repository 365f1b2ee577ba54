"""Shared pytest fixtures for Everyday Magic tests."""

from __future__ import annotations

import base64
import io
import json
from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from everyday_magic.core.config import EverydayMagicConfig
from everyday_magic.core.errors import ModelError
from everyday_magic.core.images import ImagePayload
from everyday_magic.core.rate_limiter import RateLimiter

SAMPLE_RECOMMENDATIONS = [
    {
        "title": "**The Night Circus**",
        "reasoning": "A *dreamy* read for a quiet evening.",
        "category": "books",
    },
    {
        "title": "## Piranesi",
        "reasoning": "Short, strange and `magical`.",
        "category": "books",
    },
    {
        "title": "The Left Hand of Darkness",
        "reasoning": "Thoughtful classic science fiction.",
        "category": "books",
    },
]


class FakeClock:
    """Synthetic millisecond clock for rate limiter tests."""

    def __init__(self, start: int = 1_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakeModelClient:
    """Stand-in for :class:`ModelClient` that never touches the network.

    Attributes:
        response: Text returned by :meth:`invoke`.
        error: If set, raised by :meth:`invoke` instead of returning.
        calls: ``(prompt, image)`` tuples for every invocation.
    """

    def __init__(self, response: str = "", error: Exception | None = None) -> None:
        self.response = response
        self.error = error
        self.calls: list[tuple[str, ImagePayload | None]] = []

    async def invoke(self, prompt: str, image: ImagePayload | None = None, *, retry: bool = True) -> str:
        self.calls.append((prompt, image))
        if self.error is not None:
            raise self.error
        return self.response

    async def close(self) -> None:
        pass


def make_png_data_url(width: int = 32, height: int = 32, color=(200, 30, 30)) -> str:
    """Build a PNG data URL of a solid-colour image."""
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color=color).save(buffer, format="PNG")
    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return f"data:image/png;base64,{encoded}"


@pytest.fixture
def test_config(monkeypatch) -> EverydayMagicConfig:
    """Create a test configuration isolated from the environment.

    Returns:
        EverydayMagicConfig instance for testing
    """
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    return EverydayMagicConfig(
        _env_file=None,
        gemini_api_key="test-key-abcd1234",
        model_retry_attempts=1,
        model_retry_delay_seconds=0.0,
    )


@pytest.fixture
def fake_clock() -> FakeClock:
    """Synthetic clock shared by the limiters of the test client."""
    return FakeClock()


@pytest.fixture
def fake_model() -> FakeModelClient:
    """Fake model client answering with well-formed recommendations."""
    return FakeModelClient(response=json.dumps(SAMPLE_RECOMMENDATIONS))


@pytest.fixture
def test_client(
    test_config: EverydayMagicConfig,
    fake_model: FakeModelClient,
    fake_clock: FakeClock,
) -> Generator[TestClient, None, None]:
    """FastAPI TestClient with fake model, test config and synthetic clock.

    The lifespan hook runs on entry; its state is then replaced so every
    test starts with empty rate-limit windows.

    Yields:
        TestClient bound to the application
    """
    from everyday_magic.api.main import app

    with TestClient(app) as client:
        app.state.config = test_config
        app.state.model_client = fake_model
        app.state.recommendation_limiter = RateLimiter(
            window_ms=test_config.rate_limit_window_ms,
            max_requests=test_config.recommendation_rate_limit,
            clock=fake_clock,
        )
        app.state.image_limiter = RateLimiter(
            window_ms=test_config.rate_limit_window_ms,
            max_requests=test_config.image_rate_limit,
            clock=fake_clock,
        )
        yield client


@pytest.fixture
def png_data_url() -> str:
    """A small, valid PNG data URL."""
    return make_png_data_url()


@pytest.fixture
def api_key_error() -> ModelError:
    """A ModelError as raised for a rejected API key."""
    return ModelError("API key not valid. Please pass a valid API key.", upstream_status=400)


@pytest.fixture
def data_url_factory():
    """Factory building PNG data URLs of a given size."""
    return make_png_data_url
