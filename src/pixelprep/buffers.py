import logging
from typing import Optional

from PIL import Image

from .exceptions import BufferReleasedError

logger = logging.getLogger(__name__)


class PixelBuffer:
    """An owned, in-memory raster. Exactly one stage holds it at a time."""

    def __init__(self, image: Image.Image) -> None:
        self._image: Optional[Image.Image] = image
        self._size = image.size

    @property
    def image(self) -> Image.Image:
        if self._image is None:
            raise BufferReleasedError("Pixel buffer has already been released")
        return self._image

    @property
    def size(self) -> tuple[int, int]:
        return self._size

    @property
    def width(self) -> int:
        return self._size[0]

    @property
    def height(self) -> int:
        return self._size[1]

    @property
    def released(self) -> bool:
        return self._image is None

    def release(self) -> None:
        if self._image is None:
            return
        self._image.close()
        self._image = None

    def __repr__(self) -> str:
        state = "released" if self.released else "live"
        return f"<PixelBuffer {self.width}x{self.height} {state}>"


class BufferArena:
    """Tracks every buffer allocated during one pipeline invocation."""

    def __init__(self) -> None:
        self._buffers: list[PixelBuffer] = []

    def adopt(self, image: Image.Image) -> PixelBuffer:
        buffer = PixelBuffer(image)
        self._buffers.append(buffer)
        return buffer

    def release(self, buffer: PixelBuffer) -> None:
        buffer.release()

    def release_all(self) -> None:
        live = [buffer for buffer in self._buffers if not buffer.released]
        for buffer in live:
            buffer.release()
        if live:
            logger.debug("Released buffers", extra={"count": len(live)})

    @property
    def live(self) -> int:
        return sum(1 for buffer in self._buffers if not buffer.released)

    @property
    def allocated(self) -> int:
        return len(self._buffers)
