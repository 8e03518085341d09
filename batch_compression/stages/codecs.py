"""
Streaming codec transforms and the codec registry.

Every transform implements ``base_classes.StreamTransform`` so that the
chunked drain loop in ``StreamCodec`` stays identical for all formats and
both directions.
"""

import logging
import zlib
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

import lz4.frame

from base_classes import Direction, StreamTransform
from resilience_patterns import CodecError, ConfigError

logger = logging.getLogger(__name__)

GZIP_WBITS = 16 + zlib.MAX_WBITS
ZLIB_WBITS = zlib.MAX_WBITS


class _PendingOutput:
    """Output produced by a transform that has not been handed out yet"""

    def __init__(self):
        self._buffer = bytearray()
        self._offset = 0  # bytes already handed out from the front

    def extend(self, data: bytes) -> None:
        if self._offset:
            del self._buffer[:self._offset]
            self._offset = 0
        self._buffer += data

    def take(self, max_length: int) -> bytes:
        end = min(self._offset + max_length, len(self._buffer))
        out = bytes(self._buffer[self._offset:end])
        if end == len(self._buffer):
            self._buffer.clear()
            self._offset = 0
        else:
            self._offset = end
        return out

    def __len__(self) -> int:
        return len(self._buffer) - self._offset


class ZlibCompressTransform(StreamTransform):
    """Deflate compressor emitting gzip or zlib framing depending on wbits"""

    def __init__(self, level: int = zlib.Z_DEFAULT_COMPRESSION, wbits: int = GZIP_WBITS):
        self._compressor = zlib.compressobj(level, zlib.DEFLATED, wbits)
        self._pending = _PendingOutput()
        self._finished = False

    def process(self, data: bytes, max_length: int) -> bytes:
        if data:
            try:
                self._pending.extend(self._compressor.compress(data))
            except zlib.error as e:
                raise CodecError("Deflate failed", cause=e) from e
        return self._pending.take(max_length)

    def finish(self, max_length: int) -> bytes:
        if not self._finished:
            try:
                self._pending.extend(self._compressor.flush(zlib.Z_FINISH))
            except zlib.error as e:
                raise CodecError("Deflate flush failed", cause=e) from e
            self._finished = True
        return self._pending.take(max_length)


class ZlibDecompressTransform(StreamTransform):
    """
    Inflater with bounded output per call.

    Leftover input is kept between calls, so one input chunk can be drained
    over many output-buffer-fulls. With ``multi_member`` set, concatenated
    gzip members are decoded back to back and zero padding between members
    is skipped, as gzip(1) does.
    """

    def __init__(self, wbits: int = GZIP_WBITS, multi_member: bool = True):
        self._wbits = wbits
        self._multi_member = multi_member
        self._decompressor = zlib.decompressobj(wbits)
        self._input = b""
        self._fed = False  # current decompressor has seen input
        self._backlog = False  # last call filled its output limit

    def process(self, data: bytes, max_length: int) -> bytes:
        if data:
            self._input += data
        out = bytearray()
        try:
            while (self._input or self._backlog) and len(out) < max_length:
                if self._decompressor.eof:
                    self._start_next_member()
                    if not self._input:
                        break
                self._fed = True
                wanted = max_length - len(out)
                produced = self._decompressor.decompress(self._input, wanted)
                out += produced
                # Inflate may hold output for input it already consumed
                self._backlog = len(produced) == wanted and not self._decompressor.eof
                if self._decompressor.eof:
                    self._input = self._decompressor.unused_data
                else:
                    self._input = self._decompressor.unconsumed_tail
        except zlib.error as e:
            raise CodecError("Inflate failed", cause=e) from e
        return bytes(out)

    def _start_next_member(self) -> None:
        if not self._multi_member:
            raise CodecError("Unexpected data after end of compressed stream")
        self._input = self._input.lstrip(b"\x00")
        self._backlog = False
        if self._input:
            self._decompressor = zlib.decompressobj(self._wbits)
            self._fed = False

    def finish(self, max_length: int) -> bytes:
        out = self.process(b"", max_length)
        if len(out) < max_length and self._fed and not self._decompressor.eof:
            raise CodecError("Compressed stream is truncated")
        return out


class Lz4CompressTransform(StreamTransform):
    """LZ4 frame compressor"""

    def __init__(self, level: int = lz4.frame.COMPRESSIONLEVEL_MIN):
        self._compressor = lz4.frame.LZ4FrameCompressor(
            compression_level=level,
            content_checksum=True
        )
        self._pending = _PendingOutput()
        self._finished = False
        try:
            self._pending.extend(self._compressor.begin())
        except RuntimeError as e:
            raise CodecError("LZ4 frame initialization failed", cause=e) from e

    def process(self, data: bytes, max_length: int) -> bytes:
        if data:
            try:
                self._pending.extend(self._compressor.compress(data))
            except RuntimeError as e:
                raise CodecError("LZ4 compression failed", cause=e) from e
        return self._pending.take(max_length)

    def finish(self, max_length: int) -> bytes:
        if not self._finished:
            try:
                self._pending.extend(self._compressor.flush())
            except RuntimeError as e:
                raise CodecError("LZ4 flush failed", cause=e) from e
            self._finished = True
        return self._pending.take(max_length)


class Lz4DecompressTransform(StreamTransform):
    """LZ4 frame decompressor for a single frame"""

    def __init__(self):
        self._decompressor = lz4.frame.LZ4FrameDecompressor()
        self._fed = False

    def process(self, data: bytes, max_length: int) -> bytes:
        if self._decompressor.eof:
            if data:
                raise CodecError("Unexpected data after end of LZ4 frame")
            return b""
        if data:
            self._fed = True
        try:
            out = bytearray(self._decompressor.decompress(data, max_length))
            # Output buffered inside the frame context is flushed without new input
            while len(out) < max_length and not self._decompressor.eof:
                more = self._decompressor.decompress(b"", max_length - len(out))
                if not more:
                    break
                out += more
        except (RuntimeError, EOFError) as e:
            raise CodecError("LZ4 decompression failed", cause=e) from e
        if self._decompressor.eof and self._decompressor.unused_data:
            raise CodecError("Unexpected data after end of LZ4 frame")
        return bytes(out)

    def finish(self, max_length: int) -> bytes:
        out = self.process(b"", max_length)
        if len(out) < max_length and self._fed and not self._decompressor.eof:
            raise CodecError("LZ4 frame is truncated")
        return out


@dataclass(frozen=True)
class CodecSpec:
    """Registry entry describing one stream format"""
    name: str
    suffix: str
    level_range: Tuple[int, int]
    default_level: int
    compressor: Callable[[int], StreamTransform]
    decompressor: Callable[[], StreamTransform]

    def validate_level(self, level: Optional[int]) -> int:
        """Resolve ``None`` to the default level and reject out-of-range values"""
        if level is None:
            return self.default_level
        low, high = self.level_range
        if isinstance(level, bool) or not isinstance(level, int) or not low <= level <= high:
            raise ConfigError(
                f"Invalid compression level {level!r} for {self.name} (expected {low}..{high})"
            )
        return level

    def create_transform(self, direction: Direction, level: Optional[int] = None) -> StreamTransform:
        """Open a fresh transform for one codec session"""
        if direction is Direction.COMPRESS:
            return self.compressor(self.validate_level(level))
        return self.decompressor()


CODECS: Dict[str, CodecSpec] = {
    'gzip': CodecSpec(
        name='gzip',
        suffix='.gz',
        level_range=(-1, 9),
        default_level=zlib.Z_DEFAULT_COMPRESSION,
        compressor=lambda level: ZlibCompressTransform(level, GZIP_WBITS),
        decompressor=lambda: ZlibDecompressTransform(GZIP_WBITS, multi_member=True),
    ),
    'zlib': CodecSpec(
        name='zlib',
        suffix='.zz',
        level_range=(-1, 9),
        default_level=zlib.Z_DEFAULT_COMPRESSION,
        compressor=lambda level: ZlibCompressTransform(level, ZLIB_WBITS),
        decompressor=lambda: ZlibDecompressTransform(ZLIB_WBITS, multi_member=False),
    ),
    'lz4': CodecSpec(
        name='lz4',
        suffix='.lz4',
        level_range=(lz4.frame.COMPRESSIONLEVEL_MIN, lz4.frame.COMPRESSIONLEVEL_MAX),
        default_level=lz4.frame.COMPRESSIONLEVEL_MIN,
        compressor=Lz4CompressTransform,
        decompressor=Lz4DecompressTransform,
    ),
}


def get_codec(name: str) -> CodecSpec:
    """Look up a codec by name"""
    try:
        return CODECS[name]
    except KeyError:
        raise ConfigError(
            f"Unknown codec {name!r} (available: {', '.join(available_codecs())})"
        ) from None


def available_codecs() -> List[str]:
    return sorted(CODECS)
