"""Everyday Magic - personal recommendations from text requests and images."""

__version__ = "0.1.0"

from everyday_magic.core.config import EverydayMagicConfig, config

__all__ = [
    "EverydayMagicConfig",
    "config",
]
