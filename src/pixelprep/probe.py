import logging

from .codec import open_image
from .exceptions import DecodeError
from .pipeline_types import ImageBounds
from .sources import SourceImage

logger = logging.getLogger(__name__)


def probe_bounds(source: SourceImage) -> ImageBounds:
    """Read the image dimensions from the header without decoding pixels.

    Raises:
        DecodeError: If the source cannot be opened, has no recognizable
            header, or reports a zero dimension.
    """
    try:
        with source.open() as stream, open_image(stream) as image:
            bounds = ImageBounds(*image.size)
            image_format = image.format
    except DecodeError:
        raise
    except (OSError, SyntaxError, ValueError) as e:
        raise DecodeError(e) from e

    if not bounds.is_valid:
        raise DecodeError(f"invalid image bounds {bounds.width}x{bounds.height}")

    logger.debug(
        "Probed image bounds",
        extra={"width": bounds.width, "height": bounds.height, "format": image_format},
    )
    return bounds


def calculate_sample_size(bounds: ImageBounds, target_budget: int) -> int:
    """Return the largest power-of-two decode factor that keeps the smaller
    axis at or above ``target_budget``.

    Images that already fit inside the budget on both axes decode at full
    resolution.
    """
    if target_budget <= 0:
        raise ValueError(f"target_budget must be positive, got {target_budget}")

    if bounds.width <= target_budget and bounds.height <= target_budget:
        return 1

    half = min(bounds.width, bounds.height) // 2
    factor = 1
    while half // factor >= target_budget:
        factor *= 2
    return factor
