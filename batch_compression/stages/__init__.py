"""
Streaming codec stages for the batch compressor.
"""

from .compression import StreamCodec, DEFAULT_BUFFER_SIZE
from .codecs import CODECS, CodecSpec, get_codec, available_codecs

__all__ = [
    'StreamCodec',
    'DEFAULT_BUFFER_SIZE',
    'CODECS',
    'CodecSpec',
    'get_codec',
    'available_codecs',
]
