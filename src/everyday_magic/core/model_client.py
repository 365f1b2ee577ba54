"""Gateway to the external generative model for the Everyday Magic service.

This module provides :class:`ModelClient`, the single point of contact with
the Gemini API.  It turns a prompt (and, for image analysis, an inlined
image) into the model's raw text output and nothing more; prompt
construction and response parsing live elsewhere.

Key Responsibilities
--------------------
- **Lazy SDK client creation**: the ``google-genai`` client is created on
  the first call, so the service starts without an API key and reports the
  problem per request instead.
- **Text and vision calls**: text-only prompts go to
  ``config.text_model``; prompts with an :class:`ImagePayload` go to
  ``config.vision_model`` as a two-part request.
- **Timeouts**: each attempt is bounded by ``config.model_timeout_seconds``
  and expiry is reported as a :class:`ModelError`.
- **Retries**: failed attempts are retried through
  :func:`~everyday_magic.core.retry.retry_async` with 1.5x backoff, except
  for errors retrying cannot fix (bad key, rejected request).
- **Error normalisation**: every SDK, transport, or timeout failure
  surfaces as :class:`ModelError` carrying the upstream HTTP status when
  one is known.

Usage
-----
::

    from everyday_magic.core.config import config
    from everyday_magic.core.model_client import ModelClient

    client = ModelClient(config)
    text = await client.invoke("Suggest three books for a rainy day.")

See Also
--------
- :mod:`everyday_magic.core.config`: model names, timeout and retry settings.
- :mod:`everyday_magic.api.main`: the FastAPI application that owns the
  client.
"""

from __future__ import annotations

import asyncio
import logging

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from everyday_magic.core.config import EverydayMagicConfig
from everyday_magic.core.errors import ModelError
from everyday_magic.core.images import ImagePayload
from everyday_magic.core.retry import retry_async

logger = logging.getLogger(__name__)

# Upstream 4xx statuses that are worth another attempt.
_RETRYABLE_CLIENT_STATUSES = frozenset({408, 429})


def _is_retryable(exc: BaseException) -> bool:
    """Decide whether a failed model call should be attempted again."""
    if not isinstance(exc, ModelError):
        return True
    if exc.is_api_key_error:
        return False
    status = exc.upstream_status
    if status is not None and 400 <= status < 500 and status not in _RETRYABLE_CLIENT_STATUSES:
        return False
    return True


class ModelClient:
    """Sends prompts to the Gemini API and returns the text it produces.

    Attributes:
        _config (EverydayMagicConfig):
            Application configuration: API key, model names, timeout and
            retry settings.
        _client (genai.Client | None):
            The SDK client, created on first use.
    """

    def __init__(self, config: EverydayMagicConfig) -> None:
        """Initialise the model client.

        No network connection is made here.

        Args:
            config: Application configuration instance.
        """
        self._config = config
        self._client: genai.Client | None = None

    # -- Public interface ---------------------------------------------------

    async def invoke(
        self,
        prompt: str,
        image: ImagePayload | None = None,
        *,
        retry: bool = True,
    ) -> str:
        """Send *prompt* (and optionally *image*) to the model.

        Args:
            prompt: The full instruction text.
            image: Optional inlined image.  When given, the vision model is
                used and the image is sent as a second content part.
            retry: If ``False``, make a single attempt.

        Returns:
            The model's raw text output.

        Raises:
            ModelError: On transport, authentication, quota, timeout, or
                empty-response failures.
        """
        model = self._config.vision_model if image is not None else self._config.text_model
        contents: list = [prompt]
        if image is not None:
            contents.append(types.Part.from_bytes(data=image.data, mime_type=image.mime_type))

        async def attempt() -> str:
            return await self._generate(model, contents)

        return await retry_async(
            attempt,
            attempts=self._config.model_retry_attempts if retry else 1,
            delay=self._config.model_retry_delay_seconds,
            should_retry=_is_retryable,
        )

    async def close(self) -> None:
        """Release the SDK client's connections, if one was created."""
        if self._client is None:
            return
        # Older SDK releases have no async close.
        aclose = getattr(self._client.aio, "aclose", None)
        if aclose is not None:
            await aclose()
        self._client = None

    # -- Internals ----------------------------------------------------------

    def _get_client(self) -> genai.Client:
        """Return the SDK client, creating it on first use.

        Raises:
            ModelError: If no API key is configured.
        """
        if self._client is not None:
            return self._client

        if not self._config.api_key_available:
            raise ModelError("Gemini API key is not configured")

        # google-genai expects the HTTP timeout in milliseconds.
        http_options = types.HttpOptions(timeout=int(self._config.model_timeout_seconds * 1000))
        self._client = genai.Client(
            api_key=self._config.gemini_api_key.strip(),
            http_options=http_options,
        )
        return self._client

    async def _generate(self, model: str, contents: list) -> str:
        """Make a single generate_content call and return its text."""
        client = self._get_client()
        timeout = self._config.model_timeout_seconds

        try:
            response = await asyncio.wait_for(
                client.aio.models.generate_content(model=model, contents=contents),
                timeout=timeout,
            )
        except asyncio.TimeoutError as e:
            raise ModelError(f"Model call timed out after {timeout:g}s", cause=e) from e
        except genai_errors.APIError as e:
            raise ModelError(
                e.message or str(e),
                cause=e,
                upstream_status=getattr(e, "code", None),
            ) from e
        except Exception as e:
            raise ModelError(str(e) or type(e).__name__, cause=e) from e

        text = response.text
        if not text:
            raise ModelError("Model returned an empty response")

        logger.debug("Model '%s' returned %d characters.", model, len(text))
        return text
