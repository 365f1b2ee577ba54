"""Core building blocks for the Everyday Magic service.

- **EverydayMagicConfig / config**: Configuration using Pydantic Settings
- **RateLimiter / RateWindow**: Per-client sliding-window request limiting
- **ModelClient**: Gateway to the Gemini API with timeout and retries
- **parse_json / sanitize**: Recovery and cleanup of model output
- **retry_async**: Exponential-backoff wrapper for async operations

Architecture Overview
---------------------
1. **Configuration Layer** (config.py):
   - Environment-based configuration using Pydantic Settings
   - All settings prefixed with EVERYDAY_MAGIC_ in .env files

2. **Model Layer** (model_client.py, retry.py, images.py):
   - Text and vision calls through the google-genai SDK
   - Data-URL decoding and Pillow downscaling for uploads

3. **Output Layer** (response_parser.py):
   - JSON extraction from prose-wrapped model text
   - Markdown stripping for title and reasoning fields

4. **Admission Layer** (rate_limiter.py, errors.py):
   - Process-local sliding-window limiter
   - Error taxonomy mapped to HTTP status codes
"""

from everyday_magic.core.config import EverydayMagicConfig, config
from everyday_magic.core.errors import (
    EverydayMagicError,
    ModelError,
    ParseError,
    RateLimitError,
    ValidationError,
)
from everyday_magic.core.model_client import ModelClient
from everyday_magic.core.rate_limiter import RateLimiter, RateWindow
from everyday_magic.core.response_parser import parse_json, sanitize
from everyday_magic.core.retry import retry_async

__all__ = [
    "EverydayMagicConfig",
    "config",
    "EverydayMagicError",
    "ModelError",
    "ParseError",
    "RateLimitError",
    "ValidationError",
    "ModelClient",
    "RateLimiter",
    "RateWindow",
    "parse_json",
    "sanitize",
    "retry_async",
]
