"""Configuration management for the Everyday Magic recommendation service.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the EVERYDAY_MAGIC_
prefix, allowing easy customization without code changes.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables (EVERYDAY_MAGIC_* prefix)
2. .env file in the project root
3. Default values defined in EverydayMagicConfig

The Gemini API key is the one exception to the prefix rule: it is also read
from the plain ``GEMINI_API_KEY`` variable so existing deployments keep
working.

Example .env file:
    GEMINI_API_KEY=your-key-here
    EVERYDAY_MAGIC_TEXT_MODEL=gemini-2.0-flash
    EVERYDAY_MAGIC_RECOMMENDATION_RATE_LIMIT=5
    EVERYDAY_MAGIC_IMAGE_RATE_LIMIT=3

Global Configuration Instance
------------------------------
A global `config` instance is created automatically at module import time.
This ensures a single source of truth for all configuration values across
the application.

Usage Example
-------------
    from everyday_magic.core.config import config

    print(config.text_model)
    print(config.rate_limit_window_ms)

Rate Limiting
-------------
Both POST endpoints share one sliding window length
(``rate_limit_window_ms``) but have their own request caps:
- recommendation_rate_limit: text recommendations (5 per minute)
- image_rate_limit: image analysis (3 per minute)

The limiter state is held in process memory.  Running several workers or
instances multiplies the effective limit by the number of processes.
"""

from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EverydayMagicConfig(BaseSettings):
    """Main configuration for the Everyday Magic service.

    This class uses Pydantic Settings to manage all application configuration.
    Values are loaded from environment variables with the EVERYDAY_MAGIC_
    prefix, with fallback to defaults defined here.

    Attributes
    ----------
    Model Settings:
        gemini_api_key : str | None
            API key for the Gemini API (also read from GEMINI_API_KEY)
        text_model : str
            Model name used for text recommendations
        vision_model : str
            Model name used for image analysis
        model_timeout_seconds : float
            Per-attempt timeout for a model call
        model_retry_attempts : int
            Total number of attempts made for a model call
        model_retry_delay_seconds : float
            Delay before the first retry (grows by 1.5x per attempt)

    Rate Limiting:
        rate_limit_window_ms : int
            Sliding window length in milliseconds
        recommendation_rate_limit : int
            Requests allowed per window on the recommendations endpoint
        image_rate_limit : int
            Requests allowed per window on the image analysis endpoint
        client_id_header : str
            Request header used to identify the client

    Image Handling:
        image_max_dimension : int
            Longest edge in pixels after downscaling (0 disables resizing)
        image_jpeg_quality : int
            JPEG quality used when a downscaled image is re-encoded
        image_max_pixels : int
            Largest accepted pixel count; larger uploads are rejected with 400

    Server Settings:
        server_host : str
            Server bind address
        server_port : int
            Server port (1024-65535)
        cors_origins : list[str]
            Origins allowed by the CORS middleware
        log_level : Literal["DEBUG", "INFO", "WARNING", "ERROR"]
            Root logging level applied by the CLI entry point

    Examples
    --------
    Create a custom configuration:

        >>> custom_config = EverydayMagicConfig(
        ...     gemini_api_key="test-key",
        ...     image_rate_limit=10,
        ... )

    Use the global configuration instance:

        >>> from everyday_magic.core.config import config
        >>> print(config.text_model)
        'gemini-2.0-flash'
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="EVERYDAY_MAGIC_",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Model settings
    gemini_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "gemini_api_key",
            "EVERYDAY_MAGIC_GEMINI_API_KEY",
            "GEMINI_API_KEY",
        ),
        description="API key for the Gemini API",
    )
    text_model: str = Field(
        default="gemini-2.0-flash",
        description="Model used for text recommendations",
    )
    vision_model: str = Field(
        default="gemini-2.0-flash",
        description="Model used for image analysis",
    )
    model_timeout_seconds: float = Field(
        default=30.0,
        description="Per-attempt timeout for a model call",
        gt=0,
        le=300,
    )
    model_retry_attempts: int = Field(
        default=3,
        description="Total attempts for a model call (1 disables retries)",
        ge=1,
        le=10,
    )
    model_retry_delay_seconds: float = Field(
        default=0.5,
        description="Delay before the first retry; grows by 1.5x per attempt",
        ge=0,
    )

    # Rate limiting
    rate_limit_window_ms: int = Field(
        default=60_000,
        description="Sliding rate-limit window in milliseconds",
        ge=1,
    )
    recommendation_rate_limit: int = Field(
        default=5,
        description="Requests per window for POST /api/recommendations",
        ge=1,
    )
    image_rate_limit: int = Field(
        default=3,
        description="Requests per window for POST /api/image-analysis",
        ge=1,
    )
    client_id_header: str = Field(
        default="x-forwarded-for",
        description="Header used as the client identifier for rate limiting",
    )

    # Image handling
    image_max_dimension: int = Field(
        default=800,
        description="Longest edge after downscaling (0 disables resizing)",
        ge=0,
        le=8192,
    )
    image_jpeg_quality: int = Field(
        default=85,
        description="JPEG quality for downscaled images",
        ge=1,
        le=95,
    )
    image_max_pixels: int = Field(
        default=50_000_000,
        description="Largest accepted width * height of an uploaded image",
        ge=1,
    )

    # Server settings
    server_host: str = Field(
        default="0.0.0.0",
        description="Server bind address (0.0.0.0 for local network)",
    )
    server_port: int = Field(
        default=8000,
        description="Server port",
        ge=1024,
        le=65535,
    )
    cors_origins: list[str] = Field(
        default_factory=lambda: ["*"],
        description="Origins allowed by the CORS middleware",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Root logging level",
    )

    @property
    def api_key_available(self) -> bool:
        """Whether a non-empty API key is configured."""
        return bool(self.gemini_api_key and self.gemini_api_key.strip())

    def masked_api_key(self) -> str:
        """Return the API key with everything but its ends hidden.

        Returns:
            ``"abcd...wxyz"`` style string, or ``"Not available"`` when no
            key is configured.
        """
        if not self.api_key_available:
            return "Not available"
        key = self.gemini_api_key.strip()
        return f"{key[:4]}...{key[-4:]}"


# Global configuration instance
# Loads values from environment variables (EVERYDAY_MAGIC_* prefix) and .env file.
config = EverydayMagicConfig()
