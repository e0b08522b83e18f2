from typing import Optional

from .pipeline_types import PipelineStage


class PixelPrepError(Exception):
    """Base exception class for PixelPrep errors."""


class BufferReleasedError(PixelPrepError):
    """Raised when a released pixel buffer is accessed."""


class MissingContextError(PixelPrepError):
    """Raised when required context keys are missing."""

    def __init__(self, step_name: str, missing_keys: Optional[list[str]] = None) -> None:
        msg = f"Missing required keys for step '{step_name}'"
        if missing_keys:
            msg += f": {', '.join(missing_keys)}"
        super().__init__(msg)


class StepFailedError(PixelPrepError):
    """Raised when a step explicitly returns a failure."""

    def __init__(self, step_name: str, error: Optional[str] = None) -> None:
        msg = f"Step '{step_name}' failed"
        if error:
            msg += f": {error}"
        super().__init__(msg)


class ImageProcessingError(PixelPrepError):
    """A hard, non-retryable failure for one image."""

    def __init__(self, cause: object) -> None:
        self.cause = cause
        super().__init__(f"Failed to process image: {cause}")


class DecodeError(ImageProcessingError):
    """Raised when the source cannot be opened, probed or decoded."""


class EncodeError(ImageProcessingError):
    """Raised when the final buffer cannot be compressed."""


class PipelineError(PixelPrepError):
    """Raised when a pipeline run aborts on a hard failure."""

    def __init__(self, stage: PipelineStage, error: ImageProcessingError) -> None:
        self.stage = stage
        self.error = error
        super().__init__(str(error))


class PipelineCancelledError(PixelPrepError):
    """Raised when a cancellation token is set between steps."""

    def __init__(self, stage: PipelineStage) -> None:
        self.stage = stage
        super().__init__(f"Pipeline cancelled before {stage.value}")
