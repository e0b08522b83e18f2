import io
import logging
import math
import struct
from typing import BinaryIO, Optional

from PIL import Image, UnidentifiedImageError

from .buffers import BufferArena, PixelBuffer
from .exceptions import DecodeError, EncodeError
from .sources import SourceImage

logger = logging.getLogger(__name__)

JPEG_FORMAT = "JPEG"
DECODED_MODES = ("RGB", "RGBA", "L")

_DECODE_ERRORS = (OSError, SyntaxError, ValueError, MemoryError)
_ENCODE_ERRORS = (OSError, ValueError, MemoryError)


def open_image(stream: BinaryIO) -> Image.Image:
    """Identify ``stream`` and read its header, like ``Image.open``.

    ``Image.open`` rejects sources above ``Image.MAX_IMAGE_PIXELS`` before
    any downsampling can happen. Size limits here apply to the decoded
    buffer instead, see :func:`decode`.

    Raises:
        UnidentifiedImageError: If no registered format accepts the stream.
    """
    try:
        stream.seek(0)
    except (AttributeError, io.UnsupportedOperation):
        stream = io.BytesIO(stream.read())

    prefix = stream.read(16)
    Image.init()
    for format_id in Image.ID:
        factory, accept = Image.OPEN[format_id]
        if accept is not None:
            accepted = accept(prefix)
            if not accepted or isinstance(accepted, str):
                continue
        stream.seek(0)
        try:
            return factory(stream, "")
        except (SyntaxError, IndexError, TypeError, struct.error):
            continue
    raise UnidentifiedImageError("cannot identify image file")


def _has_alpha(image: Image.Image) -> bool:
    return image.mode in ("RGBA", "LA", "PA") or "transparency" in image.info


def _to_decoded_mode(image: Image.Image) -> Image.Image:
    if image.mode in DECODED_MODES:
        return image
    converted = image.convert("RGBA" if _has_alpha(image) else "RGB")
    image.close()
    return converted


def decode(
    source: SourceImage,
    sample_size: int,
    arena: BufferArena,
    max_pixels: Optional[int] = None,
) -> PixelBuffer:
    """Decode ``source`` into a buffer roughly ``1/sample_size`` of its size.

    JPEG sources are scaled during decoding through ``Image.draft``; any
    remaining integer factor is applied with ``Image.reduce``. ``max_pixels``
    bounds the raster the codec actually materializes, after ``draft``.

    Raises:
        DecodeError: If the stream cannot be opened, the materialized raster
            would exceed ``max_pixels``, or no pixels come out of the
            decoder, including on allocation failure.
    """
    if sample_size < 1:
        raise ValueError(f"sample_size must be >= 1, got {sample_size}")

    image = None
    try:
        with source.open() as stream:
            image = open_image(stream)
            full_width = image.width
            if sample_size > 1:
                image.draft(
                    image.mode,
                    (math.ceil(image.width / sample_size), math.ceil(image.height / sample_size)),
                )
            if max_pixels is not None and image.width * image.height > max_pixels:
                raise DecodeError(
                    f"decoded size {image.width}x{image.height} exceeds limit of {max_pixels} pixels"
                )
            image.load()

        # draft() only scales JPEGs, and only by 1/2, 1/4 or 1/8.
        remaining = sample_size // max(1, round(full_width / image.width))
        if remaining > 1:
            reduced = image.reduce(remaining)
            image.close()
            image = reduced
        image = _to_decoded_mode(image)
    except DecodeError:
        if image is not None:
            image.close()
        raise
    except _DECODE_ERRORS as e:
        if image is not None:
            image.close()
        raise DecodeError(e) from e

    logger.debug(
        "Decoded image",
        extra={"width": image.width, "height": image.height, "sample_size": sample_size},
    )
    return arena.adopt(image)


def _flatten(image: Image.Image) -> Image.Image:
    """Return a new RGB copy of ``image``, compositing alpha onto white."""
    if not _has_alpha(image):
        return image.convert("RGB")
    rgba = image.convert("RGBA")
    try:
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, (0, 0), rgba)
    finally:
        rgba.close()
    return background


def encode(buffer: PixelBuffer, quality: int) -> bytes:
    """Compress ``buffer`` to JPEG bytes.

    Raises:
        EncodeError: If the encoder fails or produces no output.
    """
    if not 0 <= quality <= 100:
        raise ValueError(f"quality must be between 0 and 100, got {quality}")

    image = buffer.image
    flattened = None
    output = io.BytesIO()
    try:
        if image.mode not in ("RGB", "L"):
            flattened = _flatten(image)
            image = flattened
        image.save(output, format=JPEG_FORMAT, quality=quality, optimize=True)
    except _ENCODE_ERRORS as e:
        raise EncodeError(e) from e
    finally:
        if flattened is not None:
            flattened.close()

    data = output.getvalue()
    if not data:
        raise EncodeError("encoder produced no output")
    return data
