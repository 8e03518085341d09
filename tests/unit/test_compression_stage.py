"""
Unit tests for the stream codec stage
=====================================

Tests for batch_compression/stages/compression.py including:
- Round trips for every codec, including empty input
- Independence from working buffer sizes
- Error surfacing without rollback of written output
- Cancellation between chunks
- Opening job streams
"""

import gzip
import io
import os
import threading
from unittest.mock import MagicMock

import pytest

from base_classes import Direction, Job
from batch_compression.stages.compression import StreamCodec, DEFAULT_BUFFER_SIZE
from resilience_patterns import (
    CodecError, ConfigError, JobCancelledError, StreamIOError, StreamOpenError
)


def compress_bytes(codec: StreamCodec, data: bytes, level=None, name="gzip") -> bytes:
    out = io.BytesIO()
    codec.run(io.BytesIO(data), out, Direction.COMPRESS, level, name)
    return out.getvalue()


def decompress_bytes(codec: StreamCodec, data: bytes, name="gzip") -> bytes:
    out = io.BytesIO()
    codec.run(io.BytesIO(data), out, Direction.DECOMPRESS, None, name)
    return out.getvalue()


class TestStreamCodec:
    """Test StreamCodec functionality"""

    def test_codec_initialization_default(self):
        """Test codec initialization with default parameters"""
        codec = StreamCodec()

        assert codec.buffer_size == DEFAULT_BUFFER_SIZE
        assert codec.output_buffer_size == DEFAULT_BUFFER_SIZE

    def test_invalid_buffer_sizes(self):
        """Test that non-positive buffer sizes raise ValueError"""
        with pytest.raises(ValueError, match="Buffer sizes must be positive"):
            StreamCodec(buffer_size=0)

        with pytest.raises(ValueError, match="Buffer sizes must be positive"):
            StreamCodec(buffer_size=1024, output_buffer_size=-1)

    @pytest.mark.parametrize("name", ["gzip", "zlib", "lz4"])
    @pytest.mark.parametrize("size", [0, 1, 4095, 4096, 4097, 100_000])
    def test_round_trip(self, name, size):
        """Test decompress(compress(data)) == data for all codecs"""
        codec = StreamCodec(buffer_size=4096)
        data = os.urandom(size // 2) + b"x" * (size - size // 2)

        assert decompress_bytes(codec, compress_bytes(codec, data, name=name), name) == data

    def test_stats_count_bytes(self):
        """Test that returned stats match bytes read and written"""
        codec = StreamCodec(buffer_size=1000)
        data = b"abc" * 10_000
        out = io.BytesIO()

        stats = codec.run(io.BytesIO(data), out, Direction.COMPRESS)

        assert stats.bytes_in == len(data)
        assert stats.bytes_out == len(out.getvalue())

    def test_empty_input_produces_valid_gzip(self):
        """Test that an empty input still yields a minimal valid gzip stream"""
        compressed = compress_bytes(StreamCodec(), b"")

        assert len(compressed) > 0
        assert gzip.decompress(compressed) == b""

    @pytest.mark.parametrize("compress_sizes,decompress_sizes", [
        ((1, 1), (4096, 4096)),
        ((7, 3), (1, 1)),
        ((4096, 64), (65536, 13)),
        ((1 << 20, 1 << 20), (100, 100_000)),
    ])
    def test_buffer_size_independence(self, compress_sizes, decompress_sizes):
        """Test that working buffer sizes do not affect the decoded result"""
        data = (b"buffer independence " * 300) + os.urandom(3000)
        compressor = StreamCodec(*compress_sizes)
        decompressor = StreamCodec(*decompress_sizes)

        assert decompress_bytes(decompressor, compress_bytes(compressor, data)) == data

    def test_output_readable_by_gzip_module(self):
        """Test interoperability with the standard gzip format"""
        data = os.urandom(50_000)

        assert gzip.decompress(compress_bytes(StreamCodec(buffer_size=8192), data)) == data

    def test_reads_gzip_module_output(self):
        """Test decoding streams produced by the gzip module"""
        data = b"interop " * 20_000

        assert decompress_bytes(StreamCodec(buffer_size=512), gzip.compress(data, 9)) == data

    def test_same_level_is_deterministic(self):
        """Test that compressing twice at one level yields identical bytes"""
        codec = StreamCodec(buffer_size=4096)
        data = b"deterministic " * 5000

        first = compress_bytes(codec, data, level=6)
        second = compress_bytes(codec, data, level=6)

        assert first == second
        assert decompress_bytes(codec, first) == data

    def test_levels_change_size_not_content(self):
        """Test that every level decodes to the original bytes"""
        codec = StreamCodec(buffer_size=4096)
        data = b"level " * 10_000

        outputs = {level: compress_bytes(codec, data, level=level) for level in (0, 1, 9)}

        assert len(outputs[9]) < len(outputs[0])
        for compressed in outputs.values():
            assert decompress_bytes(codec, compressed) == data

    def test_invalid_level_raises_config_error(self):
        """Test that an invalid level fails before any output"""
        out = io.BytesIO()

        with pytest.raises(ConfigError):
            StreamCodec().run(io.BytesIO(b"data"), out, Direction.COMPRESS, level=12)
        assert out.getvalue() == b""

    def test_corrupt_input_raises_codec_error(self):
        """Test that corrupt input surfaces as CodecError"""
        with pytest.raises(CodecError):
            decompress_bytes(StreamCodec(), b"\x1f\x8b" + b"\xff" * 100)

    def test_truncated_input_keeps_partial_output(self):
        """Test that output written before a failure is not rolled back"""
        data = os.urandom(200_000)
        compressed = gzip.compress(data)
        out = io.BytesIO()
        codec = StreamCodec(buffer_size=4096)

        with pytest.raises(CodecError, match="truncated"):
            codec.run(io.BytesIO(compressed[:len(compressed) // 2]), out, Direction.DECOMPRESS)

        written = out.getvalue()
        assert len(written) > 0
        assert data.startswith(written)

    def test_write_failure_raises_stream_io_error(self):
        """Test that destination write errors are wrapped"""
        destination = MagicMock()
        destination.write.side_effect = OSError("disk full")

        with pytest.raises(StreamIOError, match="Failed to write output stream"):
            StreamCodec().run(io.BytesIO(b"x" * 100), destination, Direction.COMPRESS)

    def test_read_failure_raises_stream_io_error(self):
        """Test that source read errors are wrapped"""
        source = MagicMock()
        source.read.side_effect = OSError("I/O error")

        with pytest.raises(StreamIOError, match="Failed to read input stream"):
            StreamCodec().run(source, io.BytesIO(), Direction.COMPRESS)

    def test_cancelled_before_start(self):
        """Test that a set cancel event aborts before reading"""
        event = threading.Event()
        event.set()
        source = io.BytesIO(b"data")

        with pytest.raises(JobCancelledError):
            StreamCodec().run(source, io.BytesIO(), Direction.COMPRESS, cancel_event=event)
        assert source.tell() == 0

    def test_cancelled_between_chunks(self):
        """Test that cancellation is observed at the next chunk boundary"""
        event = threading.Event()
        codec = StreamCodec(buffer_size=10)

        class CancellingSource(io.BytesIO):
            def read(self, size=-1):
                chunk = super().read(size)
                event.set()
                return chunk

        source = CancellingSource(b"y" * 1000)
        with pytest.raises(JobCancelledError):
            codec.run(source, io.BytesIO(), Direction.COMPRESS, cancel_event=event)
        assert source.tell() == 10


class TestRunJob:
    """Test opening job streams"""

    def test_run_job_writes_destination(self, make_file, temp_dir):
        """Test that a job compresses its source into its destination"""
        data = b"job payload " * 1000
        source = make_file("input.txt", content=data)
        destination = temp_dir / "input.txt.gz"

        stats = StreamCodec().run_job(Job(source, destination, Direction.COMPRESS, level=9))

        assert gzip.decompress(destination.read_bytes()) == data
        assert stats.bytes_in == len(data)
        assert stats.bytes_out == destination.stat().st_size

    def test_missing_source(self, temp_dir):
        """Test that an unreadable source raises StreamOpenError"""
        job = Job(temp_dir / "missing.bin", temp_dir / "out.gz", Direction.COMPRESS)

        with pytest.raises(StreamOpenError, match="Cannot open input file") as exc_info:
            StreamCodec().run_job(job)

        assert isinstance(exc_info.value.cause, FileNotFoundError)
        assert not (temp_dir / "out.gz").exists()

    def test_unwritable_destination(self, make_file, temp_dir):
        """Test that an unwritable destination raises StreamOpenError"""
        source = make_file("input.bin", size=10)
        job = Job(source, temp_dir / "no" / "such" / "dir" / "out.gz", Direction.COMPRESS)

        with pytest.raises(StreamOpenError, match="Cannot open output file"):
            StreamCodec().run_job(job)

    def test_source_is_directory(self, temp_dir):
        """Test that a directory source raises StreamOpenError"""
        job = Job(temp_dir, temp_dir.parent / "dir-out.gz", Direction.COMPRESS)

        with pytest.raises(StreamOpenError):
            StreamCodec().run_job(job)

    def test_invalid_path_characters(self, make_file, temp_dir):
        """Test that paths open() rejects with ValueError raise StreamOpenError"""
        bad_source = Job(str(temp_dir / "bad\x00name"), temp_dir / "out.gz", Direction.COMPRESS)

        with pytest.raises(StreamOpenError, match="Cannot open input file") as exc_info:
            StreamCodec().run_job(bad_source)
        assert isinstance(exc_info.value.cause, ValueError)

        source = make_file("input.bin", size=10)
        bad_destination = Job(source, str(temp_dir / "out\x00.gz"), Direction.COMPRESS)

        with pytest.raises(StreamOpenError, match="Cannot open output file"):
            StreamCodec().run_job(bad_destination)
