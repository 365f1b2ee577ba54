"""Tests for everyday_magic.core.images: data URLs and downscaling."""

from __future__ import annotations

import base64
import io

import pytest
from PIL import Image

from everyday_magic.core.errors import ValidationError
from everyday_magic.core.images import ImagePayload, downscale, inspect_image, parse_data_url


def _png_bytes(width: int, height: int) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color=(10, 120, 200)).save(buffer, format="PNG")
    return buffer.getvalue()


class TestParseDataUrl:
    """Test parse_data_url()."""

    def test_valid_png(self, png_data_url):
        payload = parse_data_url(png_data_url)
        assert payload.mime_type == "image/png"
        assert payload.data.startswith(b"\x89PNG")

    def test_base64_property_round_trips(self, png_data_url):
        payload = parse_data_url(png_data_url)
        assert png_data_url.endswith(payload.base64)

    def test_missing_mime_defaults_to_jpeg(self):
        encoded = base64.b64encode(b"abc").decode()
        assert parse_data_url(f"data:;base64,{encoded}").mime_type == "image/jpeg"

    @pytest.mark.parametrize(
        "url",
        [
            "not-a-data-url",
            "data:image/png;base64",
            "data:image/png;base64,AAAA,BBBB",
            "data:image/png;base64,",
            "data:image/png;base64,***not base64***",
            "http://example.com/cat.png",
        ],
    )
    def test_malformed_rejected(self, url):
        with pytest.raises(ValidationError, match="Invalid image format"):
            parse_data_url(url)


class TestDownscale:
    """Test downscale()."""

    def test_small_image_untouched(self):
        payload = ImagePayload(mime_type="image/png", data=_png_bytes(100, 50))
        assert downscale(payload, 800) is payload

    def test_wide_image_resized(self):
        payload = ImagePayload(mime_type="image/png", data=_png_bytes(1600, 800))
        result = downscale(payload, 800)
        assert result.mime_type == "image/jpeg"
        with Image.open(io.BytesIO(result.data)) as img:
            assert img.size == (800, 400)

    def test_tall_image_resized(self):
        payload = ImagePayload(mime_type="image/png", data=_png_bytes(300, 1200))
        result = downscale(payload, 600)
        with Image.open(io.BytesIO(result.data)) as img:
            assert img.size == (150, 600)

    def test_zero_disables_resizing(self):
        payload = ImagePayload(mime_type="image/png", data=_png_bytes(2000, 2000))
        assert downscale(payload, 0) is payload

    def test_undecodable_bytes_rejected(self):
        payload = ImagePayload(mime_type="image/png", data=b"definitely not an image")
        with pytest.raises(ValidationError, match="Invalid image format"):
            downscale(payload, 800)


class TestInspectImage:
    """Test inspect_image()."""

    def test_detects_mime_type(self):
        payload = ImagePayload(mime_type="text/plain", data=_png_bytes(10, 10))
        assert inspect_image(payload, 1_000_000).mime_type == "image/png"

    def test_matching_declaration_kept(self):
        payload = ImagePayload(mime_type="image/png", data=_png_bytes(10, 10))
        assert inspect_image(payload, 1_000_000) is payload

    def test_over_pixel_budget_rejected(self):
        payload = ImagePayload(mime_type="image/png", data=_png_bytes(100, 100))
        with pytest.raises(ValidationError, match="Invalid image format"):
            inspect_image(payload, 9_999)

    def test_exactly_at_budget_accepted(self):
        payload = ImagePayload(mime_type="image/png", data=_png_bytes(100, 100))
        assert inspect_image(payload, 10_000) is payload

    def test_decompression_bomb_rejected(self):
        buffer = io.BytesIO()
        Image.new("1", (20_000, 9_000)).save(buffer, format="PNG")
        payload = ImagePayload(mime_type="image/png", data=buffer.getvalue())
        with pytest.raises(ValidationError, match="Invalid image format"):
            inspect_image(payload, 10**12)

    def test_not_an_image(self):
        payload = ImagePayload(mime_type="image/png", data=b"plain text")
        with pytest.raises(ValidationError):
            inspect_image(payload, 1_000_000)
