"""Screenshot conversion: raw 1bpp screen buffer to PIL image.

The display is 64 x 128 pixels, 1 bit per pixel, stored in 8-pixel-high
pages: byte ``page * 64 + x`` holds column ``x`` of rows
``page * 8 .. page * 8 + 7``, least significant bit on top.
"""
from __future__ import annotations

import logging
from typing import Any

import numpy as np
from PIL import Image as PILImage

from .constants import SCREEN_HEIGHT, SCREEN_WIDTH, SCREENSHOT_LENGTH
from .errors import MalformedResponseError

log = logging.getLogger(__name__)

PAGE_HEIGHT = 8


def screenshot_to_pixels(data: bytes) -> np.ndarray:
    """Unpack a screen buffer into a (height, width) array of 0/1."""
    if len(data) < SCREENSHOT_LENGTH:
        raise MalformedResponseError(
            f"Screenshot must be {SCREENSHOT_LENGTH} bytes, got {len(data)}"
        )
    pages = np.frombuffer(bytes(data[:SCREENSHOT_LENGTH]), dtype=np.uint8)
    pages = pages.reshape(SCREEN_HEIGHT // PAGE_HEIGHT, SCREEN_WIDTH)
    # (pages, x, bit) -> (pages, bit, x) -> (y, x)
    bits = np.unpackbits(pages[:, :, np.newaxis], axis=2, bitorder='little')
    return bits.transpose(0, 2, 1).reshape(SCREEN_HEIGHT, SCREEN_WIDTH)


def screenshot_to_image(data: bytes, scale: int = 1) -> Any:
    """Convert a screen buffer to a mode '1' PIL image.

    Args:
        data: 1024-byte screenshot payload.
        scale: Integer upscale factor (nearest neighbour).
    """
    if scale < 1:
        raise ValueError(f"scale must be >= 1, got {scale}")
    pixels = screenshot_to_pixels(data)
    img = PILImage.fromarray((pixels * 255).astype(np.uint8)).convert('1')
    if scale > 1:
        img = img.resize(
            (SCREEN_WIDTH * scale, SCREEN_HEIGHT * scale), PILImage.Resampling.NEAREST,
        )
    return img


def save_screenshot(data: bytes, path: str, scale: int = 1) -> None:
    """Write a screen buffer to an image file (format from extension)."""
    screenshot_to_image(data, scale).save(path)
    log.info("Screenshot saved to %s", path)
