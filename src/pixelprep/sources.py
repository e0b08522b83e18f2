"""Source image handles.

A handle is never owned by the pipeline. Each reading stage opens its own
short-lived stream, so a handle must be able to produce a fresh stream on
every call to ``open()``.
"""

import io
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import BinaryIO, Callable, Optional, Union

from .exceptions import DecodeError


class SourceImage(ABC):
    """Interface for re-openable image sources."""

    @abstractmethod
    def open(self) -> BinaryIO:
        """Return a new binary read stream positioned at the start."""


class FileSource(SourceImage):
    def __init__(self, path: Union[str, os.PathLike]) -> None:
        self.path = Path(path)

    def open(self) -> BinaryIO:
        try:
            return self.path.open("rb")
        except OSError as e:
            raise DecodeError(e) from e

    def __repr__(self) -> str:
        return f"FileSource({str(self.path)!r})"


class BytesSource(SourceImage):
    def __init__(self, data: bytes) -> None:
        self.data = bytes(data)

    def open(self) -> BinaryIO:
        return io.BytesIO(self.data)

    def __repr__(self) -> str:
        return f"BytesSource(<{len(self.data)} bytes>)"


class OpenerSource(SourceImage):
    """Wraps a callable that resolves the source to a stream, or None."""

    def __init__(self, opener: Callable[[], Optional[BinaryIO]], name: str = "opener") -> None:
        self._opener = opener
        self.name = name

    def open(self) -> BinaryIO:
        try:
            stream = self._opener()
        except OSError as e:
            raise DecodeError(e) from e
        if stream is None:
            raise DecodeError("Failed to open input stream")
        return stream

    def __repr__(self) -> str:
        return f"OpenerSource({self.name!r})"


def as_source(obj: Union[SourceImage, str, os.PathLike, bytes, bytearray]) -> SourceImage:
    if isinstance(obj, SourceImage):
        return obj
    if isinstance(obj, (bytes, bytearray)):
        return BytesSource(obj)
    if isinstance(obj, (str, os.PathLike)):
        return FileSource(obj)
    raise TypeError(f"Unsupported image source: {type(obj).__name__}")
