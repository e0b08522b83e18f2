import logging

from PIL import Image

from .buffers import BufferArena, PixelBuffer

logger = logging.getLogger(__name__)


def fits_within(buffer: PixelBuffer, max_dimension: int) -> bool:
    return buffer.width <= max_dimension and buffer.height <= max_dimension


def fit_size(width: int, height: int, max_dimension: int) -> tuple[int, int]:
    """Scale ``(width, height)`` by one factor so the longer side is ``max_dimension``."""
    scale = max_dimension / max(width, height)
    return max(1, round(width * scale)), max(1, round(height * scale))


def resize_to_fit(buffer: PixelBuffer, max_dimension: int, arena: BufferArena) -> PixelBuffer:
    """Downscale ``buffer`` so neither side exceeds ``max_dimension``.

    Buffers that already fit are returned unchanged. If resampling fails the
    unscaled buffer is returned, which may exceed ``max_dimension``.
    """
    if fits_within(buffer, max_dimension):
        return buffer

    new_size = fit_size(buffer.width, buffer.height, max_dimension)
    try:
        resized = buffer.image.resize(new_size, Image.Resampling.LANCZOS)
    except Exception:
        logger.exception("Error resizing image", extra={"width": new_size[0], "height": new_size[1]})
        return buffer

    return arena.adopt(resized)
