import pytest

from pixelprep.buffers import BufferArena
from pixelprep.pipeline_types import OrientationCode
from pixelprep.sources import BytesSource

from .helpers import make_image_bytes

# Just above Pillow's default decompression bomb limit of 178,956,970 pixels.
HUGE_SIZE = (14000, 12800)


@pytest.fixture
def arena():
    return BufferArena()


@pytest.fixture
def jpeg_source():
    return BytesSource(make_image_bytes((800, 600)))


@pytest.fixture(scope="session")
def huge_rotated_jpeg():
    return make_image_bytes(HUGE_SIZE, orientation=int(OrientationCode.ROTATE_90), mode="L")
