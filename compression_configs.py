"""
Compressor Configurations for Different Use Cases
=================================================

This module provides validated configuration for the batch compressor and
pre-configured settings optimized for common scenarios and constraints.
"""

import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional

import psutil

from batch_compression.stages.codecs import get_codec
from resilience_patterns import ConfigError, RetryConfig

logger = logging.getLogger(__name__)

MAX_WORKERS = 32


@dataclass
class CompressionConfig:
    """Configuration settings for a batch compression run"""

    # Processing settings
    num_workers: Optional[int] = None  # None = one per CPU

    # Codec settings
    codec: str = 'gzip'
    compression_level: Optional[int] = None  # None = codec default

    # Memory settings
    buffer_size: int = 1024 * 1024  # 1MB
    output_buffer_size: Optional[int] = None  # None = buffer_size

    # Output settings
    show_progress: bool = True
    enable_monitoring: bool = False

    # Retry settings for opening inputs
    retry_attempts: int = 3
    retry_delay: float = 0.1

    def __post_init__(self) -> None:
        """Validate configuration parameters"""
        if self.num_workers is not None and (
                isinstance(self.num_workers, bool) or not isinstance(self.num_workers, int)
                or self.num_workers <= 0):
            raise ConfigError("num_workers must be positive")
        if self.buffer_size <= 0:
            raise ConfigError("buffer_size must be positive")
        if self.output_buffer_size is not None and self.output_buffer_size <= 0:
            raise ConfigError("output_buffer_size must be positive")
        if self.retry_attempts < 1:
            raise ConfigError("retry_attempts must be at least 1")
        if self.retry_delay < 0:
            raise ConfigError("retry_delay cannot be negative")

        # Raises ConfigError for unknown codecs and out-of-range levels
        get_codec(self.codec).validate_level(self.compression_level)

    @property
    def resolved_workers(self) -> int:
        """Worker count with the CPU default applied"""
        if self.num_workers is not None:
            return self.num_workers
        return min(os.cpu_count() or 1, MAX_WORKERS)

    @property
    def suffix(self) -> str:
        """File name suffix of the configured codec"""
        return get_codec(self.codec).suffix

    def retry_config(self) -> RetryConfig:
        return RetryConfig(max_attempts=self.retry_attempts, initial_delay=self.retry_delay)


class ConfigPresets:
    """Pre-configured settings for common use cases"""

    @staticmethod
    def fastest() -> CompressionConfig:
        """
        Optimized for throughput
        - Lowest gzip level
        - All CPUs
        """
        return CompressionConfig(
            num_workers=None,
            codec='gzip',
            compression_level=1,
            buffer_size=1024 * 1024
        )

    @staticmethod
    def balanced() -> CompressionConfig:
        """Library default level on all CPUs"""
        return CompressionConfig()

    @staticmethod
    def smallest() -> CompressionConfig:
        """
        Optimized for output size
        - Maximum gzip level
        - Larger read buffers
        """
        return CompressionConfig(
            num_workers=None,
            codec='gzip',
            compression_level=9,
            buffer_size=4 * 1024 * 1024
        )

    @staticmethod
    def memory_constrained() -> CompressionConfig:
        """
        Optimized for systems with limited memory
        - Small buffers
        - Two workers
        """
        return CompressionConfig(
            num_workers=2,
            buffer_size=64 * 1024,
            output_buffer_size=64 * 1024
        )

    @staticmethod
    def single_threaded() -> CompressionConfig:
        """One worker, useful for debugging and as a benchmark baseline"""
        return CompressionConfig(num_workers=1, show_progress=False)

    @classmethod
    def get(cls, name: str) -> CompressionConfig:
        """Look up a preset by name"""
        presets = {
            'fastest': cls.fastest,
            'balanced': cls.balanced,
            'smallest': cls.smallest,
            'memory-constrained': cls.memory_constrained,
            'single-threaded': cls.single_threaded,
        }
        if name not in presets:
            raise ConfigError(f"Unknown preset {name!r} (available: {', '.join(sorted(presets))})")
        return presets[name]()


class AdaptiveConfig:
    """Dynamically adjust configuration based on system resources"""

    @staticmethod
    def auto_configure(input_path: Path,
                       base_config: Optional[CompressionConfig] = None) -> CompressionConfig:
        """
        Bound the worker count by CPUs, input files and available memory.

        Each worker holds one input and roughly one output buffer, so the
        memory cap is available memory divided by that footprint, leaving
        half of it for everything else.
        """
        config = base_config or CompressionConfig()

        cpu_count = os.cpu_count() or 1
        available_memory = psutil.virtual_memory().available

        if input_path.is_dir():
            try:
                file_count = sum(1 for f in input_path.iterdir() if f.is_file())
            except OSError as e:
                logger.warning(f"Cannot list {input_path}: {e}")
                file_count = 1
        else:
            file_count = 1

        per_worker = config.buffer_size + (config.output_buffer_size or config.buffer_size)
        memory_cap = max(1, int(available_memory / 2 / per_worker))

        num_workers = max(1, min(cpu_count, MAX_WORKERS, memory_cap, max(file_count, 1)))
        logger.debug(f"Auto-configured {num_workers} workers "
                     f"(cpus={cpu_count}, files={file_count}, memory_cap={memory_cap})")
        return replace(config, num_workers=num_workers)
