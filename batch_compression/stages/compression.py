"""
Fixed-memory streaming compression and decompression.
"""

import logging
import threading
from pathlib import Path
from typing import BinaryIO, Optional

from base_classes import CodecStats, Direction, Job
from resilience_patterns import (
    JobCancelledError, RetryConfig, StreamIOError, StreamOpenError, with_retry
)
from .codecs import get_codec

logger = logging.getLogger(__name__)

DEFAULT_BUFFER_SIZE = 1024 * 1024  # 1MB


class StreamCodec:
    """
    Runs one stream through a compress or decompress transform using a
    fixed-size input buffer and a fixed-size output buffer.

    Both directions share the same loop. Each input chunk is fed to the
    transform once and then drained until the transform returns less than
    a full output buffer. At end of input the transform is finished with the
    same drain loop, so trailers are always written, even for empty input.
    """

    def __init__(self,
                 buffer_size: int = DEFAULT_BUFFER_SIZE,
                 output_buffer_size: Optional[int] = None,
                 retry_config: Optional[RetryConfig] = None):
        """
        Initialize the stream codec.

        Args:
            buffer_size: Bytes read from the source per chunk
            output_buffer_size: Maximum bytes handed out by the transform per call
            retry_config: Retry policy for opening the source stream
        """
        if output_buffer_size is None:
            output_buffer_size = buffer_size
        if buffer_size <= 0 or output_buffer_size <= 0:
            raise ValueError("Buffer sizes must be positive")

        self.buffer_size = buffer_size
        self.output_buffer_size = output_buffer_size
        self.retry_config = retry_config or RetryConfig()

    def run(self,
            source: BinaryIO,
            destination: BinaryIO,
            direction: Direction,
            level: Optional[int] = None,
            codec: str = "gzip",
            cancel_event: Optional[threading.Event] = None) -> CodecStats:
        """
        Transform everything readable from ``source`` into ``destination``.

        Raises:
            CodecError: the transform rejected the data; output written so far is kept
            StreamIOError: reading or writing failed mid-stream
            JobCancelledError: ``cancel_event`` was set between chunks
        """
        transform = get_codec(codec).create_transform(direction, level)
        stats = CodecStats()

        while True:
            self._check_cancelled(cancel_event)
            try:
                chunk = source.read(self.buffer_size)
            except OSError as e:
                raise StreamIOError("Failed to read input stream", cause=e) from e
            if not chunk:
                break
            stats.bytes_in += len(chunk)
            self._drain(transform.process, chunk, destination, stats, cancel_event)

        self._drain(lambda data, size: transform.finish(size), b"", destination, stats, cancel_event)
        return stats

    def _drain(self, step, chunk: bytes, destination: BinaryIO,
               stats: CodecStats, cancel_event: Optional[threading.Event]) -> None:
        """Call ``step`` until it returns less than a full output buffer"""
        data = chunk
        while True:
            out = step(data, self.output_buffer_size)
            data = b""
            if out:
                try:
                    destination.write(out)
                except OSError as e:
                    raise StreamIOError("Failed to write output stream", cause=e) from e
                stats.bytes_out += len(out)
            if len(out) < self.output_buffer_size:
                return
            self._check_cancelled(cancel_event)

    @staticmethod
    def _check_cancelled(cancel_event: Optional[threading.Event]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise JobCancelledError("Job cancelled")

    def run_job(self, job: Job, cancel_event: Optional[threading.Event] = None) -> CodecStats:
        """
        Open the job's streams and run them through ``run``.

        Raises:
            StreamOpenError: source unreadable or destination unwritable
        """

        @with_retry(self.retry_config)
        def open_source(path: Path) -> BinaryIO:
            return open(path, 'rb')

        try:
            source = open_source(job.source)
        except (OSError, ValueError) as e:
            raise StreamOpenError("Cannot open input file", cause=e, path=job.source) from e

        with source:
            try:
                destination = open(job.destination, 'wb')
            except (OSError, ValueError) as e:
                raise StreamOpenError("Cannot open output file", cause=e, path=job.destination) from e

            try:
                with destination:
                    stats = self.run(source, destination, job.direction, job.level,
                                     job.codec, cancel_event)
            except OSError as e:
                raise StreamIOError("Failed to close output file", cause=e, path=job.destination) from e

        logger.debug(f"{job.direction.value} {job.source} -> {job.destination}: "
                     f"{stats.bytes_in} -> {stats.bytes_out} bytes")
        return stats
