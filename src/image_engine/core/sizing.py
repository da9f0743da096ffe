"""Pixel size resolution for platform/aspect pairs."""

from __future__ import annotations

from typing import NamedTuple

from image_engine.core.constants import ASPECT_SIZES, DEFAULT_SIZE


class ImageSize(NamedTuple):
    width: int
    height: int


def resolve_size(platform: str, aspect: str) -> ImageSize:
    """Resolve the pixel size for a platform and aspect ratio.

    The aspect ratio alone determines the size today; ``platform`` is accepted
    so that per-platform overrides can be added without changing callers.
    Unknown aspects resolve to a square 1024x1024 image.

    Args:
        platform: Target platform (e.g. ``"instagram"``).
        aspect: Aspect ratio string (e.g. ``"4:5"``).

    Returns:
        ``ImageSize`` with width and height in pixels.
    """
    width, height = ASPECT_SIZES.get(aspect, DEFAULT_SIZE)
    return ImageSize(width=width, height=height)
