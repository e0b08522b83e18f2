import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from .buffers import BufferArena
from .callbacks import PipelineCallback
from .exceptions import (
    ImageProcessingError,
    MissingContextError,
    PipelineCancelledError,
    PipelineError,
    StepFailedError,
)
from .pipeline_types import CancellationToken, PipelineStage, StepResult, StepStatus
from .sources import SourceImage

logger = logging.getLogger(__name__)

ARENA_KEY = "arena"
BUFFER_KEY = "buffer"
CONFIG_KEY = "config"
DEGRADED_KEY = "degraded"
STAGE_KEY = "stage"

STAGE_ORDER = list(PipelineStage)


class PipelineStep(ABC):
    """Abstract base class for pipeline steps."""

    def __init__(self, name: Optional[str] = None) -> None:
        self._name = name or self.__class__.__name__
        self._stage = PipelineStage.PROBING
        self._required_context_keys: list[str] = []
        self._provided_context_keys: list[str] = []
        self._load_metadata(explicit_name=name is not None)

    def _load_metadata(self, explicit_name: bool = False) -> None:
        process_method = getattr(self.__class__, "process", None)
        if process_method and hasattr(process_method, "_step_metadata"):
            metadata = process_method._step_metadata
            if metadata.name and not explicit_name:
                self._name = metadata.name
            if metadata.stage is not None:
                self._stage = metadata.stage
            self._required_context_keys = sorted(metadata.requires)
            self._provided_context_keys = sorted(metadata.provides)

    @property
    def name(self) -> str:
        return self._name

    @property
    def stage(self) -> PipelineStage:
        return self._stage

    @property
    def required_context_keys(self) -> list[str]:
        return self._required_context_keys

    @property
    def provided_context_keys(self) -> list[str]:
        return self._provided_context_keys

    def missing_context_keys(self, context: dict[str, Any]) -> list[str]:
        missing = [key for key in self.required_context_keys if key not in context]
        if missing:
            logger.warning(
                "Missing required keys",
                extra={"step": self.name, "missing": missing},
            )
        return missing

    @abstractmethod
    async def process(self, source: SourceImage, context: dict[str, Any]) -> StepResult:
        """Process the source image and return updates for the context."""
        pass


@dataclass
class PipelineConfig:
    """Configuration for pipeline execution."""

    max_dimension: int = 1024
    jpeg_quality: int = 85
    headroom_factor: int = 2
    # Pillow's decompression bomb limit, applied to the decoded raster
    max_decoded_pixels: int = 178_956_970
    validate_outputs: bool = True

    def __post_init__(self) -> None:
        if self.max_dimension < 1:
            raise ValueError(f"max_dimension must be >= 1, got {self.max_dimension}")
        if not 0 <= self.jpeg_quality <= 100:
            raise ValueError(f"jpeg_quality must be between 0 and 100, got {self.jpeg_quality}")
        if self.headroom_factor < 1:
            raise ValueError(f"headroom_factor must be >= 1, got {self.headroom_factor}")
        if self.max_decoded_pixels < 1:
            raise ValueError(f"max_decoded_pixels must be >= 1, got {self.max_decoded_pixels}")

    @property
    def target_budget(self) -> int:
        """Smallest decoded size worth keeping before the final resize."""
        return self.headroom_factor * self.max_dimension


class Pipeline:
    """Runs a fixed sequence of steps against one source image at a time.

    Every run gets its own context and :class:`BufferArena`, so a single
    pipeline may serve concurrent invocations. Whenever a step hands back a
    new pixel buffer the previous one is released, and any buffer still held
    when the run ends, successfully or not, is released before returning.

    The built-in steps fail only with :class:`PipelineError`, wrapping a
    ``DecodeError`` or ``EncodeError``. ``StepFailedError`` and
    ``MissingContextError`` are raised for custom steps that return FAILED,
    omit a declared output, or are missing a required context key.
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        callbacks: Optional[list[PipelineCallback]] = None,
    ) -> None:
        self.steps: list[PipelineStep] = []
        self.config = config or PipelineConfig()
        self.callbacks: list[PipelineCallback] = callbacks or []

    def add_step(self, step: PipelineStep) -> None:
        if self.steps and STAGE_ORDER.index(step.stage) < STAGE_ORDER.index(self.steps[-1].stage):
            raise ValueError(
                f"Step '{step.name}' ({step.stage.value}) cannot follow "
                f"'{self.steps[-1].name}' ({self.steps[-1].stage.value})"
            )
        self.steps.append(step)

    def add_callback(self, callback: PipelineCallback) -> None:
        self.callbacks.append(callback)

    async def _run_step(self, step: PipelineStep, source: SourceImage, context: dict[str, Any]) -> StepResult:
        logger.info(f"Executing step {step.name}", extra={"step": step.name, "stage": step.stage.value})

        for callback in self.callbacks:
            await callback.before_step(step.name)

        result = await step.process(source, context)

        for callback in self.callbacks:
            await callback.after_step(step.name, result)

        return result

    def _check_outputs(self, step: PipelineStep, result: StepResult) -> None:
        missing = [key for key in step.provided_context_keys if key not in result.data]
        if missing:
            raise StepFailedError(step.name, f"missing outputs: {', '.join(missing)}")

    @staticmethod
    def _swap_buffer(context: dict[str, Any], data: dict[str, Any], arena: BufferArena) -> None:
        held = context.get(BUFFER_KEY)
        produced = data.get(BUFFER_KEY)
        if held is not None and produced is not None and produced is not held:
            arena.release(held)

    async def run(
        self,
        source: SourceImage,
        initial_context: Optional[dict[str, Any]] = None,
        cancel_token: Optional[CancellationToken] = None,
        arena: Optional[BufferArena] = None,
    ) -> dict[str, Any]:
        arena = arena if arena is not None else BufferArena()
        context: dict[str, Any] = dict(initial_context or {})
        context.update({CONFIG_KEY: self.config, ARENA_KEY: arena, DEGRADED_KEY: []})

        try:
            for step in self.steps:
                if cancel_token is not None and cancel_token.cancelled:
                    logger.info("Pipeline cancelled", extra={"step": step.name, "stage": step.stage.value})
                    raise PipelineCancelledError(step.stage)

                context[STAGE_KEY] = step.stage
                missing = step.missing_context_keys(context)
                if missing:
                    raise MissingContextError(step.name, missing)

                try:
                    result = await self._run_step(step, source, context)
                except ImageProcessingError as e:
                    logger.error(
                        "Error processing image",
                        extra={"step": step.name, "stage": step.stage.value},
                        exc_info=True,
                    )
                    raise PipelineError(step.stage, e) from e

                if result.status == StepStatus.FAILED:
                    raise StepFailedError(step.name, result.error)
                if self.config.validate_outputs:
                    self._check_outputs(step, result)
                if result.status == StepStatus.DEGRADED:
                    context[DEGRADED_KEY].append(step.name)

                self._swap_buffer(context, result.data, arena)
                context.update(result.data)
                logger.info("Completed step", extra={"step": step.name, "status": result.status.value})

            context[STAGE_KEY] = PipelineStage.DONE
            return context
        finally:
            arena.release_all()
            for callback in self.callbacks:
                if hasattr(callback, "close") and callable(callback.close):
                    await callback.close()
