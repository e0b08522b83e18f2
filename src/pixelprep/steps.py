from typing import Any

from .codec import decode, encode
from .decorators import provides, requires, stage, step
from .orientation import normalize_orientation, read_orientation
from .pipeline import PipelineStep
from .pipeline_types import OrientationCode, PipelineStage, StepResult, StepStatus
from .probe import calculate_sample_size, probe_bounds
from .resize import fits_within, resize_to_fit
from .sources import SourceImage


class ProbeStep(PipelineStep):
    """Reads the source dimensions without decoding pixels."""

    @step(name="probe")
    @stage(PipelineStage.PROBING)
    @provides("bounds")
    async def process(self, source: SourceImage, context: dict[str, Any]) -> StepResult:
        return StepResult(status=StepStatus.COMPLETED, data={"bounds": probe_bounds(source)})


class SampleSizeStep(PipelineStep):
    @step(name="sample_size")
    @stage(PipelineStage.PROBING)
    @requires("bounds", "config")
    @provides("sample_size")
    async def process(self, source: SourceImage, context: dict[str, Any]) -> StepResult:
        sample_size = calculate_sample_size(context["bounds"], context["config"].target_budget)
        return StepResult(status=StepStatus.COMPLETED, data={"sample_size": sample_size})


class DecodeStep(PipelineStep):
    @step(name="decode")
    @stage(PipelineStage.DECODING)
    @requires("sample_size", "arena", "config")
    @provides("buffer")
    async def process(self, source: SourceImage, context: dict[str, Any]) -> StepResult:
        config = context["config"]
        buffer = decode(source, context["sample_size"], context["arena"], config.max_decoded_pixels)
        return StepResult(status=StepStatus.COMPLETED, data={"buffer": buffer})


class ReadOrientationStep(PipelineStep):
    """Reopens the source to read its EXIF orientation. Never fails."""

    @step(name="read_orientation")
    @stage(PipelineStage.DECODING)
    @provides("orientation")
    async def process(self, source: SourceImage, context: dict[str, Any]) -> StepResult:
        return StepResult(status=StepStatus.COMPLETED, data={"orientation": read_orientation(source)})


class NormalizeOrientationStep(PipelineStep):
    @step(name="normalize_orientation")
    @stage(PipelineStage.NORMALIZING)
    @requires("buffer", "orientation", "arena")
    @provides("buffer")
    async def process(self, source: SourceImage, context: dict[str, Any]) -> StepResult:
        buffer = context["buffer"]
        orientation = context["orientation"]
        if orientation == OrientationCode.NORMAL:
            return StepResult(status=StepStatus.SKIPPED, data={"buffer": buffer})

        normalized = normalize_orientation(buffer, orientation, context["arena"])
        if normalized is buffer:
            return StepResult(
                status=StepStatus.DEGRADED,
                data={"buffer": buffer},
                error=f"could not apply {orientation.name}",
            )
        return StepResult(status=StepStatus.COMPLETED, data={"buffer": normalized})


class ResizeStep(PipelineStep):
    """Bounds the longer side of the buffer to the configured maximum."""

    @step(name="resize")
    @stage(PipelineStage.RESIZING)
    @requires("buffer", "config", "arena")
    @provides("buffer")
    async def process(self, source: SourceImage, context: dict[str, Any]) -> StepResult:
        buffer = context["buffer"]
        max_dimension = context["config"].max_dimension
        if fits_within(buffer, max_dimension):
            return StepResult(status=StepStatus.SKIPPED, data={"buffer": buffer})

        resized = resize_to_fit(buffer, max_dimension, context["arena"])
        if resized is buffer:
            return StepResult(
                status=StepStatus.DEGRADED,
                data={"buffer": buffer},
                error=f"could not resize {buffer.width}x{buffer.height}",
            )
        return StepResult(status=StepStatus.COMPLETED, data={"buffer": resized})


class EncodeStep(PipelineStep):
    @step(name="encode")
    @stage(PipelineStage.ENCODING)
    @requires("buffer", "config")
    @provides("encoded", "width", "height")
    async def process(self, source: SourceImage, context: dict[str, Any]) -> StepResult:
        buffer = context["buffer"]
        encoded = encode(buffer, context["config"].jpeg_quality)
        return StepResult(
            status=StepStatus.COMPLETED,
            data={"encoded": encoded, "width": buffer.width, "height": buffer.height},
        )


def default_steps() -> list[PipelineStep]:
    return [
        ProbeStep(),
        SampleSizeStep(),
        DecodeStep(),
        ReadOrientationStep(),
        NormalizeOrientationStep(),
        ResizeStep(),
        EncodeStep(),
    ]
