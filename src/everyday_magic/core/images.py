"""Data-URL decoding and downscaling for uploaded images.

The image-analysis endpoint receives images as data URLs
(``data:image/png;base64,iVBORw0...``).  :func:`parse_data_url` validates
the envelope and decodes the payload into an :class:`ImagePayload`;
:func:`inspect_image` reads only the image header to reject undecodable or
oversized images and to detect the real MIME type.  :func:`downscale` then
does the full decode and shrinks large images with Pillow so the request
sent to the vision model stays small.  Only the header check runs before
rate limiting.
"""

from __future__ import annotations

import base64
import binascii
import io
import logging
from dataclasses import dataclass

from PIL import Image, UnidentifiedImageError

from everyday_magic.core.errors import ValidationError

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "image/jpeg"


@dataclass(frozen=True)
class ImagePayload:
    """An inlined image ready to be sent to the vision model.

    Attributes:
        mime_type: Declared MIME type, e.g. ``"image/png"``.
        data: Raw image bytes.
    """

    mime_type: str
    data: bytes

    @property
    def base64(self) -> str:
        """The image bytes as an ASCII base64 string."""
        return base64.b64encode(self.data).decode("ascii")


def parse_data_url(data_url: str) -> ImagePayload:
    """Decode a base64 data URL into an :class:`ImagePayload`.

    The URL must start with ``data:`` and contain exactly one comma
    separating the header from the payload.  The MIME type is read from the
    header and defaults to ``image/jpeg`` when none is declared.

    Args:
        data_url: The ``data:`` URL sent by the client.

    Returns:
        The decoded payload.

    Raises:
        ValidationError: If the URL is malformed or the payload is not valid
            base64.
    """
    if not data_url.startswith("data:"):
        raise ValidationError("Invalid image format")

    parts = data_url.split(",")
    if len(parts) != 2:
        raise ValidationError("Invalid image format")
    header, encoded = parts

    if not encoded.strip():
        raise ValidationError("Invalid image format")

    mime_type = header[len("data:"):].split(";", 1)[0].strip() or DEFAULT_MIME_TYPE

    try:
        data = base64.b64decode(encoded.strip(), validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationError("Invalid image format") from e

    return ImagePayload(mime_type=mime_type, data=data)


def inspect_image(payload: ImagePayload, max_pixels: int) -> ImagePayload:
    """Check that *payload* is an image Pillow recognizes, without decoding it.

    Only the image header is read, so this is cheap enough to run before the
    rate limiter.  The MIME type is taken from the detected format rather
    than the client's declaration.

    Args:
        payload: The decoded data-URL payload.
        max_pixels: Largest accepted ``width * height``.

    Returns:
        The payload, relabelled with the detected MIME type.

    Raises:
        ValidationError: If the bytes are not a recognizable image or the
            image exceeds *max_pixels*.
    """
    try:
        with Image.open(io.BytesIO(payload.data)) as img:
            width, height = img.size
            mime_type = Image.MIME.get(img.format or "")
    except (Image.DecompressionBombError, UnidentifiedImageError, OSError) as e:
        raise ValidationError("Invalid image format") from e

    if width * height > max_pixels:
        logger.warning("Rejected %dx%d image (limit %d pixels).", width, height, max_pixels)
        raise ValidationError("Invalid image format")
    if mime_type is None:
        raise ValidationError("Invalid image format")

    if mime_type != payload.mime_type:
        return ImagePayload(mime_type=mime_type, data=payload.data)
    return payload


def downscale(payload: ImagePayload, max_dimension: int, quality: int = 85) -> ImagePayload:
    """Shrink an image so its longest edge is at most *max_dimension*.

    Aspect ratio is preserved.  Images already within bounds are returned
    untouched; resized images are re-encoded as JPEG.

    Args:
        payload: The decoded image, already checked by :func:`inspect_image`.
        max_dimension: Longest allowed edge in pixels.  ``0`` disables
            resizing.
        quality: JPEG quality used for re-encoding.

    Returns:
        The original payload, or a new JPEG payload when resized.

    Raises:
        ValidationError: If Pillow cannot decode the bytes as an image.
    """
    try:
        with Image.open(io.BytesIO(payload.data)) as img:
            width, height = img.size

            if max_dimension <= 0 or (width <= max_dimension and height <= max_dimension):
                return payload

            if width > height:
                new_size = (max_dimension, max(1, round(height * max_dimension / width)))
            else:
                new_size = (max(1, round(width * max_dimension / height)), max_dimension)

            img.load()
            resized = img.convert("RGB").resize(new_size, Image.Resampling.LANCZOS)
    except (Image.DecompressionBombError, UnidentifiedImageError, OSError) as e:
        raise ValidationError("Invalid image format") from e

    buffer = io.BytesIO()
    resized.save(buffer, format="JPEG", quality=quality)
    logger.info(
        "Downscaled image from %dx%d to %dx%d.",
        width,
        height,
        new_size[0],
        new_size[1],
    )
    return ImagePayload(mime_type="image/jpeg", data=buffer.getvalue())
