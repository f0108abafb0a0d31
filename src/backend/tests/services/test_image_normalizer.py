"""
Tests for candidate image normalization.
"""

import base64

import cv2
import numpy as np
import pytest

from core.exceptions import ValidationError
from services.image_normalizer import MAX_DIMENSION, ImageNormalizer, scaled_size


def _png(width: int, height: int) -> bytes:
    image = np.full((height, width, 3), (40, 120, 200), dtype=np.uint8)
    ok, encoded = cv2.imencode(".png", image)
    assert ok
    return encoded.tobytes()


def _decode_data_url(data_url: str) -> np.ndarray:
    header, payload = data_url.split(",", 1)
    assert header == "data:image/jpeg;base64"
    raw = np.frombuffer(base64.b64decode(payload), dtype=np.uint8)
    return cv2.imdecode(raw, cv2.IMREAD_COLOR)


@pytest.mark.unit
class TestScaledSize:
    """Tests for target size computation."""

    def test_small_image_unchanged(self):
        assert scaled_size(320, 240) == (320, 240)

    def test_landscape(self):
        assert scaled_size(1600, 1200) == (400, 300)

    def test_portrait(self):
        assert scaled_size(1000, 2000) == (200, 400)

    def test_extreme_aspect_keeps_one_pixel(self):
        assert scaled_size(4000, 2) == (400, 1)


@pytest.mark.unit
class TestImageNormalizer:
    """Tests for ImageNormalizer.normalize."""

    def test_large_image_downscaled_to_jpeg(self):
        image = ImageNormalizer().normalize(_png(1200, 800), "image/png")

        assert (image.width, image.height) == (400, 267)
        decoded = _decode_data_url(image.data_url)
        assert decoded.shape[:2] == (267, 400)

    def test_never_upscaled(self):
        image = ImageNormalizer().normalize(_png(120, 90), "image/png")
        assert (image.width, image.height) == (120, 90)

    def test_longest_side_bounded(self):
        image = ImageNormalizer().normalize(_png(640, 2000), "image/png")
        assert max(image.width, image.height) == MAX_DIMENSION

    def test_output_is_jpeg(self):
        image = ImageNormalizer().normalize(_png(500, 500), "image/png")
        assert image.data[:2] == b"\xff\xd8"
        assert image.media_type == "image/jpeg"

    def test_rejects_non_image_media_type(self):
        with pytest.raises(ValidationError):
            ImageNormalizer().normalize(_png(10, 10), "application/pdf")

    def test_rejects_empty(self):
        with pytest.raises(ValidationError):
            ImageNormalizer().normalize(b"", "image/png")

    def test_rejects_garbage(self):
        with pytest.raises(ValidationError):
            ImageNormalizer().normalize(b"definitely not an image", "image/png")

    def test_rejects_oversized(self):
        with pytest.raises(ValidationError):
            ImageNormalizer(max_bytes=16).normalize(_png(50, 50), "image/png")

    def test_same_input_same_output(self):
        source = _png(1200, 800)
        first = ImageNormalizer().normalize(source, "image/png")
        second = ImageNormalizer().normalize(source, "image/png")

        assert first.data == second.data
        assert first.data_url == second.data_url

    def test_aspect_ratio_preserved(self):
        image = ImageNormalizer().normalize(_png(1234, 567), "image/png")

        assert (image.width, image.height) == (400, 184)
        # the short side is off by at most half a pixel from the exact scale
        assert abs(image.height - 567 * 400 / 1234) <= 0.5
        assert abs(image.width / image.height - 1234 / 567) < 0.01
