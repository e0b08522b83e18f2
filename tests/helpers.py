import io
from typing import Optional

from PIL import Image

from pixelprep.sources import BytesSource


def make_image_bytes(
    size: tuple[int, int],
    image_format: str = "JPEG",
    orientation: Optional[int] = None,
    color: str = "white",
    mode: str = "RGB",
) -> bytes:
    image = Image.new(mode, size, color=color)
    kwargs = {}
    if orientation is not None:
        exif = Image.Exif()
        exif[0x0112] = orientation
        kwargs["exif"] = exif
    output = io.BytesIO()
    image.save(output, format=image_format, **kwargs)
    return output.getvalue()


def make_noisy_jpeg(size: tuple[int, int]) -> bytes:
    image = Image.effect_noise(size, 64).convert("RGB")
    output = io.BytesIO()
    image.save(output, format="JPEG", quality=95)
    return output.getvalue()


class CountingSource(BytesSource):
    """Records how many streams were opened and whether they were closed."""

    def __init__(self, data: bytes) -> None:
        super().__init__(data)
        self.streams: list[io.BytesIO] = []

    def open(self) -> io.BytesIO:
        stream = super().open()
        self.streams.append(stream)
        return stream

    @property
    def open_count(self) -> int:
        return len(self.streams)

    @property
    def all_closed(self) -> bool:
        return all(stream.closed for stream in self.streams)


class FailingOpenSource(CountingSource):
    """Raises on the ``fail_on``-th call to ``open()``."""

    def __init__(self, data: bytes, fail_on: int) -> None:
        super().__init__(data)
        self.fail_on = fail_on
        self.attempts = 0

    def open(self) -> io.BytesIO:
        self.attempts += 1
        if self.attempts == self.fail_on:
            raise RuntimeError("content resolver lost the stream")
        return super().open()
