"""
Candidate portrait normalization.

Uploaded images are decoded, downscaled so neither side exceeds
MAX_DIMENSION (aspect ratio kept, never upscaled) and re-encoded as JPEG.
The result is a self-contained data URL that is stored on the ledger as the
candidate's image reference.
"""

import base64
from dataclasses import dataclass

import cv2
import numpy as np
import structlog

from core.config import settings
from core.exceptions import ValidationError

logger = structlog.get_logger(__name__)

MAX_DIMENSION = 400
JPEG_QUALITY = 0.7


@dataclass(frozen=True)
class NormalizedImage:
    """A re-encoded portrait."""

    width: int
    height: int
    data: bytes

    @property
    def media_type(self) -> str:
        return "image/jpeg"

    @property
    def data_url(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.media_type};base64,{encoded}"


def scaled_size(width: int, height: int, max_dimension: int = MAX_DIMENSION) -> tuple[int, int]:
    """Target (width, height); the larger side becomes ``max_dimension``."""
    largest = max(width, height)
    if largest <= max_dimension:
        return width, height
    if width >= height:
        return max_dimension, max(1, round(height * max_dimension / width))
    return max(1, round(width * max_dimension / height)), max_dimension


class ImageNormalizer:
    """Decode, downscale and re-encode candidate images."""

    def __init__(
        self,
        max_dimension: int = MAX_DIMENSION,
        quality: float = JPEG_QUALITY,
        max_bytes: int | None = None,
    ):
        self.max_dimension = max_dimension
        self.quality = quality
        self.max_bytes = max_bytes if max_bytes is not None else settings.IMAGE_MAX_UPLOAD_BYTES

    def _decode(self, raw: bytes) -> np.ndarray:
        buffer = np.frombuffer(raw, dtype=np.uint8)
        image = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
        if image is None:
            raise ValidationError("Could not decode image", field="image")
        return image

    def normalize(self, raw: bytes, media_type: str = "image/jpeg") -> NormalizedImage:
        """
        Normalize raw image bytes.

        Raises:
            ValidationError: If the input is empty, too large, not an image or undecodable.
        """
        if not media_type or not media_type.lower().startswith("image/"):
            raise ValidationError("Please select an image file", field="image")
        if not raw:
            raise ValidationError("Image is empty", field="image")
        if len(raw) > self.max_bytes:
            raise ValidationError(f"Image exceeds {self.max_bytes} bytes", field="image")

        image = self._decode(raw)
        height, width = image.shape[:2]
        target_width, target_height = scaled_size(width, height, self.max_dimension)
        if (target_width, target_height) != (width, height):
            image = cv2.resize(image, (target_width, target_height), interpolation=cv2.INTER_AREA)

        ok, encoded = cv2.imencode(".jpg", image, [cv2.IMWRITE_JPEG_QUALITY, round(self.quality * 100)])
        if not ok:
            raise ValidationError("Could not encode image", field="image")

        logger.debug(
            "image_normalized",
            source_width=width,
            source_height=height,
            width=target_width,
            height=target_height,
            size=int(encoded.size),
        )
        return NormalizedImage(width=target_width, height=target_height, data=encoded.tobytes())

    def to_data_url(self, raw: bytes, media_type: str = "image/jpeg") -> str:
        return self.normalize(raw, media_type).data_url
