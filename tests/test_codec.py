import io

import pytest
from PIL import Image, ImageFile, UnidentifiedImageError

from pixelprep.codec import decode, encode, open_image
from pixelprep.exceptions import DecodeError, EncodeError
from pixelprep.sources import BytesSource, OpenerSource

from .helpers import CountingSource, make_image_bytes, make_noisy_jpeg


def decoded_size(data: bytes) -> tuple[int, int]:
    with Image.open(io.BytesIO(data)) as image:
        assert image.format == "JPEG"
        return image.size


# ===== Decoder =====


def test_decode_full_resolution(arena):
    source = CountingSource(make_image_bytes((30, 20), image_format="PNG"))
    buffer = decode(source, 1, arena)
    assert buffer.size == (30, 20)
    assert arena.live == 1
    assert source.open_count == 1
    assert source.all_closed


@pytest.mark.parametrize("sample_size, expected", [(2, (400, 300)), (4, (200, 150)), (8, (100, 75))])
def test_decode_jpeg_at_sample_size(arena, jpeg_source, sample_size, expected):
    assert decode(jpeg_source, sample_size, arena).size == expected


@pytest.mark.parametrize("sample_size, expected", [(2, (401, 301)), (4, (201, 151)), (16, (51, 38))])
def test_decode_png_rounds_up(arena, sample_size, expected):
    source = BytesSource(make_image_bytes((801, 601), image_format="PNG"))
    assert decode(source, sample_size, arena).size == expected


def test_decode_jpeg_beyond_draft_scale(arena):
    source = BytesSource(make_image_bytes((1600, 1200)))
    assert decode(source, 16, arena).size == (100, 75)


def test_decode_converts_palette_with_transparency(arena):
    image = Image.new("P", (8, 8))
    output = io.BytesIO()
    image.save(output, format="PNG", transparency=0)
    buffer = decode(BytesSource(output.getvalue()), 1, arena)
    assert buffer.image.mode == "RGBA"


def test_decode_rejects_corrupt_bytes(arena):
    with pytest.raises(DecodeError) as excinfo:
        decode(BytesSource(b"\x00" * 64), 1, arena)
    assert str(excinfo.value).startswith("Failed to process image: ")
    assert arena.allocated == 0


def test_decode_rejects_truncated_pixels(arena, monkeypatch):
    monkeypatch.setattr(ImageFile, "LOAD_TRUNCATED_IMAGES", False)
    data = make_noisy_jpeg((256, 256))
    with pytest.raises(DecodeError):
        decode(BytesSource(data[: len(data) * 3 // 5]), 1, arena)
    assert arena.allocated == 0


def test_decode_rejects_unopenable_source(arena):
    with pytest.raises(DecodeError, match="Failed to open input stream"):
        decode(OpenerSource(lambda: None), 1, arena)


def test_decode_allocation_failure_is_decode_error(arena, jpeg_source, monkeypatch):
    def fail(self):
        raise MemoryError("cannot allocate pixels")

    monkeypatch.setattr(ImageFile.ImageFile, "load", fail)
    with pytest.raises(DecodeError) as excinfo:
        decode(jpeg_source, 1, arena)
    assert isinstance(excinfo.value.__cause__, MemoryError)
    assert arena.allocated == 0


def test_decode_rejects_invalid_sample_size(arena, jpeg_source):
    with pytest.raises(ValueError):
        decode(jpeg_source, 0, arena)


def test_decode_limits_pixels_after_draft(arena, jpeg_source):
    with pytest.raises(DecodeError, match="decoded size 800x600 exceeds limit of 1000 pixels"):
        decode(jpeg_source, 1, arena, max_pixels=1000)
    assert arena.allocated == 0

    assert decode(jpeg_source, 8, arena, max_pixels=100 * 75).size == (100, 75)


def test_open_image_skips_pillow_pixel_limit(monkeypatch):
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 100)
    with open_image(io.BytesIO(make_image_bytes((64, 48)))) as image:
        assert image.format == "JPEG"
        assert image.size == (64, 48)


def test_open_image_rejects_unknown_bytes():
    with pytest.raises(UnidentifiedImageError):
        open_image(io.BytesIO(b"plain text, no image here"))


# ===== Encoder =====


def test_encode_round_trip_preserves_dimensions(arena):
    buffer = arena.adopt(Image.new("RGB", (123, 45), color="blue"))
    assert decoded_size(encode(buffer, 85)) == (123, 45)


def test_encode_is_deterministic(arena):
    buffer = arena.adopt(Image.effect_noise((64, 64), 32).convert("RGB"))
    assert encode(buffer, 85) == encode(buffer, 85)


def test_encode_lower_quality_is_smaller(arena):
    buffer = arena.adopt(Image.effect_noise((128, 128), 64).convert("RGB"))
    assert len(encode(buffer, 20)) < len(encode(buffer, 95))


def test_encode_flattens_alpha_onto_white(arena):
    buffer = arena.adopt(Image.new("RGBA", (16, 16), color=(0, 0, 0, 0)))
    data = encode(buffer, 85)
    with Image.open(io.BytesIO(data)) as image:
        assert image.mode == "RGB"
        assert all(channel > 240 for channel in image.getpixel((8, 8)))
    assert buffer.image.mode == "RGBA"


def test_encode_grayscale(arena):
    buffer = arena.adopt(Image.new("L", (10, 20), color=128))
    assert decoded_size(encode(buffer, 85)) == (10, 20)


@pytest.mark.parametrize("quality", [-1, 101])
def test_encode_rejects_out_of_range_quality(arena, quality):
    buffer = arena.adopt(Image.new("RGB", (4, 4)))
    with pytest.raises(ValueError):
        encode(buffer, quality)


def test_encode_failure_is_encode_error(arena, monkeypatch):
    def fail(self, fp, format=None, **params):
        raise OSError("encoder error -2")

    buffer = arena.adopt(Image.new("RGB", (4, 4)))
    monkeypatch.setattr(Image.Image, "save", fail)
    with pytest.raises(EncodeError, match="Failed to process image: encoder error -2"):
        encode(buffer, 85)
