"""
Base Classes for Parallel Batch File Compressor
===============================================

Contains core data structures and abstract base classes used throughout the compressor.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Union


class Direction(Enum):
    """Direction of a codec session"""
    COMPRESS = "compress"
    DECOMPRESS = "decompress"


@dataclass(frozen=True)
class Job:
    """One independent compression or decompression unit of work"""
    source: Union[str, Path]
    destination: Union[str, Path]
    direction: Direction
    level: Optional[int] = None  # Only meaningful for Direction.COMPRESS
    codec: str = "gzip"

    def __post_init__(self) -> None:
        object.__setattr__(self, 'source', Path(self.source))
        object.__setattr__(self, 'destination', Path(self.destination))
        if self.source == self.destination:
            raise ValueError(f"Source and destination must differ: {self.source}")


@dataclass
class CodecStats:
    """Byte counts of a finished codec session"""
    bytes_in: int = 0
    bytes_out: int = 0


@dataclass
class JobResult:
    """Outcome of one job as reported by a worker"""
    job: Job
    index: int
    success: bool
    bytes_in: int = 0
    bytes_out: int = 0
    duration: float = 0.0
    worker: str = ""
    error: Optional[Exception] = None

    @property
    def ratio(self) -> float:
        """Output size relative to input size (0.0 for empty input)"""
        if self.bytes_in == 0:
            return 0.0
        return self.bytes_out / self.bytes_in


class StreamTransform(ABC):
    """
    Abstract base class for stateful streaming transforms.

    A transform is fed input with ``process`` and drained with repeated
    ``process(b"", max_length)`` calls. Each call returns at most
    ``max_length`` bytes; a shorter return means every byte of buffered
    input has been consumed and all currently available output was handed
    out. ``finish`` follows the same contract after the last input chunk.
    """

    @abstractmethod
    def process(self, data: bytes, max_length: int) -> bytes:
        pass

    @abstractmethod
    def finish(self, max_length: int) -> bytes:
        pass
