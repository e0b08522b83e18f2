"""EXIF orientation handling.

Cameras often store pixels in sensor order and record the rotation needed
for display in the EXIF orientation tag. Reading the tag is best effort: a
photo that shows up sideways is better than an upload that fails.
"""

import logging

from PIL import Image

from .buffers import BufferArena, PixelBuffer
from .codec import open_image
from .pipeline_types import OrientationCode
from .sources import SourceImage

logger = logging.getLogger(__name__)

EXIF_ORIENTATION_TAG = 0x0112

TRANSPOSE_METHODS: dict[OrientationCode, Image.Transpose] = {
    OrientationCode.FLIP_HORIZONTAL: Image.Transpose.FLIP_LEFT_RIGHT,
    OrientationCode.ROTATE_180: Image.Transpose.ROTATE_180,
    OrientationCode.FLIP_VERTICAL: Image.Transpose.FLIP_TOP_BOTTOM,
    OrientationCode.TRANSPOSE: Image.Transpose.TRANSPOSE,
    # Pillow rotates counter-clockwise, EXIF ROTATE_90 means clockwise.
    OrientationCode.ROTATE_90: Image.Transpose.ROTATE_270,
    OrientationCode.TRANSVERSE: Image.Transpose.TRANSVERSE,
    OrientationCode.ROTATE_270: Image.Transpose.ROTATE_90,
}


def read_orientation(source: SourceImage) -> OrientationCode:
    """Return the EXIF orientation of ``source``, or NORMAL if it can't be read."""
    try:
        with source.open() as stream, open_image(stream) as image:
            value = image.getexif().get(EXIF_ORIENTATION_TAG, OrientationCode.NORMAL)
    except Exception:
        logger.warning("Failed to read EXIF data, using default orientation", exc_info=True)
        return OrientationCode.NORMAL

    orientation = OrientationCode.from_exif(value)
    logger.debug("EXIF orientation", extra={"orientation": orientation.name})
    return orientation


def normalize_orientation(
    buffer: PixelBuffer, orientation: OrientationCode, arena: BufferArena
) -> PixelBuffer:
    """Apply the transform that makes ``buffer`` display upright.

    Returns ``buffer`` itself for NORMAL, or when the transform fails. The
    caller owns both buffers and releases the input once it is replaced.
    """
    method = TRANSPOSE_METHODS.get(orientation)
    if method is None:
        return buffer

    try:
        transformed = buffer.image.transpose(method)
    except Exception:
        logger.exception("Error rotating image", extra={"orientation": orientation.name})
        return buffer

    return arena.adopt(transformed)
