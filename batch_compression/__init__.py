"""
Parallel batch compression modules.
"""

# Import codec stages and workers
from .stages.compression import StreamCodec
from .stages.codecs import CodecSpec, get_codec, available_codecs
from .workers.task_pool import TaskPool, JobQueue, JobReporter

__all__ = [
    'StreamCodec',
    'CodecSpec',
    'get_codec',
    'available_codecs',
    'TaskPool',
    'JobQueue',
    'JobReporter',
]
