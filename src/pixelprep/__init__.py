from .buffers import BufferArena, PixelBuffer
from .callbacks import PipelineCallback, TimingCallback
from .codec import decode, encode
from .decorators import provides, requires, stage, step
from .exceptions import (
    BufferReleasedError,
    DecodeError,
    EncodeError,
    ImageProcessingError,
    MissingContextError,
    PipelineCancelledError,
    PipelineError,
    PixelPrepError,
    StepFailedError,
)
from .orientation import normalize_orientation, read_orientation
from .pipeline import Pipeline, PipelineConfig, PipelineStep
from .pipeline_types import (
    CancellationToken,
    ImageBounds,
    OrientationCode,
    PipelineResult,
    PipelineStage,
    StepResult,
    StepStatus,
)
from .probe import calculate_sample_size, probe_bounds
from .processor import ImageProcessor, build_pipeline, process_image
from .resize import resize_to_fit
from .sources import BytesSource, FileSource, OpenerSource, SourceImage, as_source

__all__ = [
    "BufferArena",
    "BufferReleasedError",
    "BytesSource",
    "CancellationToken",
    "DecodeError",
    "EncodeError",
    "FileSource",
    "ImageBounds",
    "ImageProcessingError",
    "ImageProcessor",
    "MissingContextError",
    "OpenerSource",
    "OrientationCode",
    "Pipeline",
    "PipelineCallback",
    "PipelineCancelledError",
    "PipelineConfig",
    "PipelineError",
    "PipelineResult",
    "PipelineStage",
    "PipelineStep",
    "PixelBuffer",
    "PixelPrepError",
    "SourceImage",
    "StepFailedError",
    "StepResult",
    "StepStatus",
    "TimingCallback",
    "as_source",
    "build_pipeline",
    "calculate_sample_size",
    "decode",
    "encode",
    "normalize_orientation",
    "probe_bounds",
    "process_image",
    "provides",
    "read_orientation",
    "requires",
    "resize_to_fit",
    "stage",
    "step",
]
