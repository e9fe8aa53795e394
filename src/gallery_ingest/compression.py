"""Size-targeted re-encoding of oversized images."""

import logging
import math
from io import BytesIO

from PIL import Image

from gallery_ingest.config import (
    INITIAL_QUALITY,
    MAX_IMAGE_PIXELS,
    QUALITY_FLOOR,
    QUALITY_STEP,
    RESIZE_QUALITY,
    SIZE_THRESHOLD,
    TARGET_SIZE,
)
from gallery_ingest.models import CompressionOutcome

logger = logging.getLogger(__name__)

# Pillow raises DecompressionBombError above twice this value
Image.MAX_IMAGE_PIXELS = (MAX_IMAGE_PIXELS + 1) // 2


class ImageCompressor:
    """Shrink images above ``size_threshold`` to roughly ``target_size`` bytes.

    Quality is lowered first, in ``quality_step`` decrements down to
    ``quality_floor``. If that is not enough the image is downscaled once and
    re-encoded at ``resize_quality``. Every attempt encodes the decoded
    original, never a previous lossy output.
    """

    def __init__(
        self,
        size_threshold: int = SIZE_THRESHOLD,
        target_size: int = TARGET_SIZE,
        initial_quality: int = INITIAL_QUALITY,
        quality_step: int = QUALITY_STEP,
        quality_floor: int = QUALITY_FLOOR,
        resize_quality: int = RESIZE_QUALITY,
    ) -> None:
        self.size_threshold = size_threshold
        self.target_size = target_size
        self.initial_quality = initial_quality
        self.quality_step = quality_step
        self.quality_floor = quality_floor
        self.resize_quality = resize_quality

    def compress(self, data: bytes, mime_type: str) -> CompressionOutcome:
        """Compress ``data`` if it exceeds the threshold. Never raises."""
        original_size = len(data)
        if original_size <= self.size_threshold:
            logger.debug("%s is under threshold, skipping compression", format_bytes(original_size))
            return CompressionOutcome.unchanged(data, mime_type)

        logger.info("Compressing image from %s", format_bytes(original_size))
        try:
            outcome = self._compress(data, mime_type)
        except Exception:
            logger.exception("Compression failed, keeping original bytes")
            return CompressionOutcome.unchanged(data, mime_type)

        if outcome.compressed_size >= original_size:
            logger.warning(
                "Re-encoded image (%s) is not smaller than the original, keeping original",
                format_bytes(outcome.compressed_size),
            )
            return CompressionOutcome.unchanged(data, mime_type)

        logger.info(
            "Compressed to %s (%.2fx reduction)",
            format_bytes(outcome.compressed_size),
            outcome.compression_ratio,
        )
        return outcome

    def _compress(self, data: bytes, mime_type: str) -> CompressionOutcome:
        output_format, output_mime = output_format_for(mime_type)

        with Image.open(BytesIO(data)) as source:
            source.load()
            image = _prepare_for(source, output_format)

        quality = self.initial_quality
        encoded = self._encode(image, output_format, quality)

        while len(encoded) > self.target_size and quality > self.quality_floor:
            quality -= self.quality_step
            logger.debug(
                "Still too large (%s), trying quality %d", format_bytes(len(encoded)), quality
            )
            encoded = self._encode(image, output_format, quality)

        if len(encoded) > self.target_size:
            scale = math.sqrt(self.target_size / len(encoded))
            width = max(1, math.floor(image.width * scale))
            height = max(1, math.floor(image.height * scale))
            logger.info(
                "Resizing %dx%d -> %dx%d to reduce size further",
                image.width,
                image.height,
                width,
                height,
            )
            resized = image.resize((width, height), Image.Resampling.LANCZOS)
            encoded = self._encode(resized, output_format, self.resize_quality)

        return CompressionOutcome(
            data=encoded,
            original_size=len(data),
            compressed_size=len(encoded),
            was_compressed=True,
            mime_type=output_mime,
        )

    def _encode(self, image: Image.Image, output_format: str, quality: int) -> bytes:
        buf = BytesIO()
        if output_format == "WEBP":
            image.save(buf, format="WEBP", quality=quality)
        else:
            image.save(buf, format="JPEG", quality=quality, optimize=True)
        return buf.getvalue()


def output_format_for(mime_type: str) -> tuple[str, str]:
    """Return (Pillow format, MIME type) of the re-encoded output.

    WebP stays WebP; everything else, PNG included, becomes JPEG.
    """
    if "webp" in mime_type.lower():
        return "WEBP", "image/webp"
    return "JPEG", "image/jpeg"


def _prepare_for(image: Image.Image, output_format: str) -> Image.Image:
    """Convert the decoded image into a mode the output codec accepts."""
    if output_format == "WEBP":
        if image.mode in ("RGB", "RGBA"):
            return image.copy()
        return image.convert("RGBA" if "A" in image.getbands() else "RGB")
    if image.mode in ("RGB", "L"):
        return image.copy()
    if "A" in image.getbands() or image.mode == "P":
        # JPEG has no alpha channel; flatten onto white
        rgba = image.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.getchannel("A"))
        return background
    return image.convert("RGB")


def format_bytes(size: int) -> str:
    """Format a byte count for log output, e.g. ``3.2 MB``."""
    if size == 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    i = min(int(math.log(size, 1024)), len(units) - 1)
    return f"{round(size / 1024**i, 2)} {units[i]}"
