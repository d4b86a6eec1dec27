"""Tests for screenshot buffer to image conversion."""

import pytest

from arcticfox.errors import MalformedResponseError
from arcticfox.screen import save_screenshot, screenshot_to_image, screenshot_to_pixels


def _buffer(**bytes_at):
    data = bytearray(1024)
    for index, value in bytes_at.items():
        data[int(index[1:])] = value
    return bytes(data)


class TestScreenshotToPixels:

    def test_blank(self):
        pixels = screenshot_to_pixels(bytes(1024))
        assert pixels.shape == (128, 64)
        assert pixels.sum() == 0

    def test_first_byte_low_bit_is_top_left(self):
        pixels = screenshot_to_pixels(_buffer(b0=0x01))
        assert pixels[0, 0] == 1
        assert pixels.sum() == 1

    def test_high_bit_is_eighth_row(self):
        pixels = screenshot_to_pixels(_buffer(b0=0x80))
        assert pixels[7, 0] == 1

    def test_byte_index_is_column(self):
        pixels = screenshot_to_pixels(_buffer(b5=0x01))
        assert pixels[0, 5] == 1

    def test_second_page(self):
        pixels = screenshot_to_pixels(_buffer(b64=0x01, b1023=0x80))
        assert pixels[8, 0] == 1
        assert pixels[127, 63] == 1

    def test_short_buffer(self):
        with pytest.raises(MalformedResponseError):
            screenshot_to_pixels(bytes(1000))


class TestScreenshotToImage:

    def test_size_and_mode(self):
        img = screenshot_to_image(bytes(1024))
        assert img.size == (64, 128)
        assert img.mode == '1'

    def test_pixel_values(self):
        img = screenshot_to_image(_buffer(b0=0x01))
        assert img.getpixel((0, 0)) == 255
        assert img.getpixel((1, 0)) == 0

    def test_scale(self):
        img = screenshot_to_image(_buffer(b0=0x01), scale=3)
        assert img.size == (192, 384)
        assert img.getpixel((2, 2)) == 255
        assert img.getpixel((3, 3)) == 0

    def test_invalid_scale(self):
        with pytest.raises(ValueError):
            screenshot_to_image(bytes(1024), scale=0)

    def test_save_png(self, tmp_path):
        path = tmp_path / "screen.png"
        save_screenshot(bytes([0xFF]) * 1024, str(path))
        assert path.read_bytes()[:8] == b'\x89PNG\r\n\x1a\n'
