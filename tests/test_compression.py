"""Tests for size-targeted image compression."""

from io import BytesIO

import pytest
from conftest import make_image_bytes
from PIL import Image

from gallery_ingest.compression import ImageCompressor, format_bytes, output_format_for
from gallery_ingest.config import MAX_IMAGE_PIXELS


class _RecordingCompressor(ImageCompressor):
    """Compressor whose encoder returns fake bytes sized by ``size_for``."""

    def __init__(self, size_for, **kwargs):
        super().__init__(**kwargs)
        self.size_for = size_for
        self.calls: list[tuple[int, tuple[int, int]]] = []

    def _encode(self, image, output_format, quality):
        self.calls.append((quality, image.size))
        return b"x" * self.size_for(quality)


def test_under_threshold_returns_identical_bytes():
    data = make_image_bytes("JPEG")
    outcome = ImageCompressor().compress(data, "image/jpeg")
    assert outcome.data is data
    assert outcome.was_compressed is False
    assert outcome.original_size == outcome.compressed_size == len(data)
    assert outcome.mime_type == "image/jpeg"


def test_exactly_at_threshold_is_not_compressed():
    data = make_image_bytes("PNG")
    outcome = ImageCompressor(size_threshold=len(data)).compress(data, "image/png")
    assert outcome.was_compressed is False
    assert outcome.data == data


def test_png_over_threshold_becomes_jpeg():
    data = make_image_bytes("PNG", size=(256, 256), noise=True)
    compressor = ImageCompressor(size_threshold=100_000, target_size=180_000)
    outcome = compressor.compress(data, "image/png")

    assert outcome.was_compressed is True
    assert outcome.mime_type == "image/jpeg"
    assert outcome.data[:2] == b"\xff\xd8"
    assert outcome.original_size == len(data)
    assert outcome.compressed_size == len(outcome.data)
    assert outcome.compressed_size < outcome.original_size
    assert outcome.compressed_size <= 180_000


def test_rgba_png_is_flattened_for_jpeg():
    data = make_image_bytes("PNG", size=(128, 128), mode="RGBA", noise=True)
    outcome = ImageCompressor(size_threshold=1000, target_size=10**9).compress(data, "image/png")

    assert outcome.was_compressed is True
    with Image.open(BytesIO(outcome.data)) as img:
        assert img.format == "JPEG"
        assert img.mode == "RGB"


def test_webp_stays_webp():
    data = make_image_bytes("WEBP", size=(256, 256), noise=True)
    compressor = ImageCompressor(size_threshold=1000, target_size=len(data) // 2)
    outcome = compressor.compress(data, "image/webp")

    assert outcome.mime_type == "image/webp"
    if outcome.was_compressed:
        assert outcome.data[:4] == b"RIFF"
        assert outcome.compressed_size < len(data)


def test_quality_loop_stops_once_under_target():
    data = make_image_bytes("PNG", size=(64, 64), noise=True)
    compressor = _RecordingCompressor(
        lambda q: q * 100, size_threshold=1000, target_size=5000
    )
    outcome = compressor.compress(data, "image/png")

    assert [q for q, _ in compressor.calls] == [80, 70, 60, 50]
    assert outcome.compressed_size == 5000


def test_single_encode_when_first_attempt_meets_target():
    data = make_image_bytes("PNG", size=(64, 64), noise=True)
    compressor = _RecordingCompressor(lambda q: 100, size_threshold=1000, target_size=5000)
    compressor.compress(data, "image/png")
    assert [q for q, _ in compressor.calls] == [80]


def test_encode_count_is_bounded_and_resize_is_last_resort():
    data = make_image_bytes("PNG", size=(256, 200), noise=True)
    target = 2000
    compressor = _RecordingCompressor(lambda q: target + 1, size_threshold=1000, target_size=target)
    outcome = compressor.compress(data, "image/png")

    qualities = [q for q, _ in compressor.calls]
    assert qualities == [80, 70, 60, 50, 40, 30, 75]
    assert len(compressor.calls) <= 7

    # Every quality attempt encodes the full-size original
    assert all(size == (256, 200) for _, size in compressor.calls[:-1])
    # Both dimensions scaled by floor(dim * sqrt(target / size))
    assert compressor.calls[-1][1] == (255, 199)
    assert outcome.was_compressed is True


def test_output_not_smaller_keeps_original():
    data = make_image_bytes("PNG", size=(64, 64), noise=True)
    compressor = _RecordingCompressor(
        lambda q: len(data) + 10, size_threshold=1000, target_size=10**9
    )
    outcome = compressor.compress(data, "image/png")
    assert outcome.was_compressed is False
    assert outcome.data == data
    assert outcome.mime_type == "image/png"


def test_undecodable_bytes_fall_back_to_original():
    data = b"\x00not an image" * 200
    outcome = ImageCompressor(size_threshold=100).compress(data, "image/jpeg")
    assert outcome.was_compressed is False
    assert outcome.data == data
    assert outcome.compressed_size == len(data)


def test_output_format_for():
    assert output_format_for("image/webp") == ("WEBP", "image/webp")
    assert output_format_for("image/png") == ("JPEG", "image/jpeg")
    assert output_format_for("image/heic") == ("JPEG", "image/jpeg")


def test_format_bytes():
    assert format_bytes(0) == "0 Bytes"
    assert format_bytes(512) == "512.0 Bytes"
    assert format_bytes(1536) == "1.5 KB"
    assert format_bytes(40 * 1024 * 1024) == "40.0 MB"


def _bilevel_png(width: int, height: int) -> bytes:
    buf = BytesIO()
    Image.new("1", (width, height)).save(buf, format="PNG")
    return buf.getvalue()


@pytest.mark.filterwarnings("ignore::PIL.Image.DecompressionBombWarning")
def test_images_above_pillow_default_pixel_limit_open():
    # 182 MP: refused by Pillow's default limit, within the configured one
    data = _bilevel_png(14000, 13000)
    with Image.open(BytesIO(data)) as img:
        assert img.size == (14000, 13000)
    assert Image.MAX_IMAGE_PIXELS * 2 >= MAX_IMAGE_PIXELS


@pytest.mark.filterwarnings("ignore::PIL.Image.DecompressionBombWarning")
def test_images_above_configured_pixel_limit_keep_original():
    data = _bilevel_png(17000, 16000)
    outcome = ImageCompressor(size_threshold=100).compress(data, "image/png")
    assert outcome.was_compressed is False
    assert outcome.data == data
