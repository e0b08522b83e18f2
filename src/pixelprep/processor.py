"""Photo preparation for upload.

Turns a camera or gallery photo into an upright JPEG whose longer side is at
most ``MAX_DIMENSION`` pixels, typically a few hundred kilobytes for a
full-resolution camera photo::

    processor = ImageProcessor()
    data = processor.process_image("photo.jpg")

Each call opens the source several times (bounds, orientation, pixels) and
never keeps it open between stages, so sources backed by non-seekable
streams only need to be able to produce a fresh stream on demand.

``process_image`` blocks. Inside an event loop, ``await processor.process()``
instead, preferably from a worker thread for large photos.
"""

import asyncio
import logging
import os
from typing import Optional, Union

from .buffers import BufferArena
from .callbacks import PipelineCallback
from .pipeline import DEGRADED_KEY, Pipeline, PipelineConfig
from .pipeline_types import CancellationToken, OrientationCode, PipelineResult
from .sources import SourceImage, as_source
from .steps import default_steps

logger = logging.getLogger(__name__)

MAX_DIMENSION = 1024
JPEG_QUALITY = 85

SourceLike = Union[SourceImage, str, os.PathLike, bytes, bytearray]


def build_pipeline(
    config: Optional[PipelineConfig] = None,
    callbacks: Optional[list[PipelineCallback]] = None,
) -> Pipeline:
    """Create a pipeline running the full probe-to-encode sequence."""
    pipeline = Pipeline(config, callbacks=callbacks)
    for pipeline_step in default_steps():
        pipeline.add_step(pipeline_step)
    return pipeline


class ImageProcessor:
    """Prepares photos for upload with a shared, stateless pipeline."""

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        callbacks: Optional[list[PipelineCallback]] = None,
    ) -> None:
        self.config = config or PipelineConfig(max_dimension=MAX_DIMENSION, jpeg_quality=JPEG_QUALITY)
        self.pipeline = build_pipeline(self.config, callbacks)

    async def process(
        self,
        source: SourceLike,
        cancel_token: Optional[CancellationToken] = None,
        arena: Optional[BufferArena] = None,
    ) -> PipelineResult:
        source = as_source(source)
        logger.debug("Processing image", extra={"source": repr(source)})

        context = await self.pipeline.run(source, cancel_token=cancel_token, arena=arena)
        result = PipelineResult(
            data=context["encoded"],
            width=context["width"],
            height=context["height"],
            orientation=context.get("orientation", OrientationCode.NORMAL),
            sample_size=context.get("sample_size", 1),
            degraded=list(context[DEGRADED_KEY]),
        )

        bounds = context.get("bounds")
        logger.debug(
            "Image processed successfully",
            extra={
                "original": f"{bounds.width}x{bounds.height}" if bounds else None,
                "final": f"{result.width}x{result.height}",
                "bytes": len(result.data),
            },
        )
        return result

    def process_image(self, source: SourceLike, cancel_token: Optional[CancellationToken] = None) -> bytes:
        """Run the pipeline to completion and return the JPEG bytes.

        Raises:
            PipelineError: If the source can't be decoded or the result can't
                be encoded. ``error`` holds the ``DecodeError`` or
                ``EncodeError``.
        """
        return asyncio.run(self.process(source, cancel_token=cancel_token)).data


def process_image(source: SourceLike, config: Optional[PipelineConfig] = None) -> bytes:
    return ImageProcessor(config).process_image(source)
