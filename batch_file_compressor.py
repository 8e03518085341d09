"""
Parallel Batch File Compressor
==============================

Turns files and directories into compression jobs, runs them on a bounded
worker pool and reports aggregate timing. Also hosts the single- versus
multi-worker benchmark.
"""

import logging
import random
import sys
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, TextIO, Union

from tqdm import tqdm

from base_classes import Direction, Job, JobResult
from batch_compression.stages.compression import StreamCodec
from batch_compression.workers.task_pool import TaskPool
from compression_configs import CompressionConfig
from compression_monitoring import BatchMonitor

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass
class BatchSummary:
    """Aggregate outcome of one batch"""
    direction: Direction
    results: List[JobResult] = field(default_factory=list)
    elapsed: float = 0.0
    monitor: Optional[BatchMonitor] = None

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return len(self.results) - self.succeeded

    @property
    def bytes_in(self) -> int:
        return sum(r.bytes_in for r in self.results if r.success)

    @property
    def bytes_out(self) -> int:
        return sum(r.bytes_out for r in self.results if r.success)

    @property
    def elapsed_ms(self) -> int:
        return int(self.elapsed * 1000)


@dataclass
class BenchmarkResult:
    """Timings of the same batch run with one worker and with many"""
    num_files: int
    file_size: int
    num_workers: int
    single_elapsed: float
    multi_elapsed: float

    @property
    def performance_gain(self) -> float:
        """Percentage of wall time saved by the multi-worker run"""
        if self.single_elapsed <= 0:
            return 0.0
        return (1.0 - self.multi_elapsed / self.single_elapsed) * 100

    @property
    def speedup(self) -> float:
        if self.multi_elapsed <= 0:
            return 0.0
        return self.single_elapsed / self.multi_elapsed


class BatchFileCompressor:
    """Builds jobs from paths and runs them on a TaskPool"""

    def __init__(self, config: Optional[CompressionConfig] = None,
                 stream: Optional[TextIO] = None):
        """
        Args:
            config: Validated compressor configuration
            stream: Where per-job diagnostic lines go (default: stdout)
        """
        self.config = config or CompressionConfig()
        self.stream = stream if stream is not None else sys.stdout
        self.codec = StreamCodec(
            buffer_size=self.config.buffer_size,
            output_buffer_size=self.config.output_buffer_size,
            retry_config=self.config.retry_config()
        )

    # ------------------------------------------------------------------
    # Input enumeration and output naming
    # ------------------------------------------------------------------

    def build_compress_jobs(self, input_path: PathLike, output_dir: PathLike) -> List[Job]:
        """One job per regular file, writing ``<output_dir>/<name><suffix>``"""
        output_dir = Path(output_dir)
        suffix = self.config.suffix
        return [
            Job(source=path,
                destination=output_dir / (path.name + suffix),
                direction=Direction.COMPRESS,
                level=self.config.compression_level,
                codec=self.config.codec)
            for path in self._enumerate(Path(input_path))
        ]

    def build_decompress_jobs(self, input_path: PathLike, output_dir: PathLike) -> List[Job]:
        """
        One job per compressed file, writing the name without the codec suffix.

        In directory mode only files carrying the suffix are picked up. A
        single file without the suffix is written as ``<name>.out``.
        """
        input_path = Path(input_path)
        output_dir = Path(output_dir)
        suffix = self.config.suffix

        paths = self._enumerate(input_path)
        if input_path.is_dir():
            paths = [p for p in paths if p.name.endswith(suffix)]

        jobs = []
        for path in paths:
            if path.name.endswith(suffix) and len(path.name) > len(suffix):
                name = path.name[:-len(suffix)]
            else:
                name = path.name + '.out'
            jobs.append(Job(source=path,
                            destination=output_dir / name,
                            direction=Direction.DECOMPRESS,
                            codec=self.config.codec))
        return jobs

    @staticmethod
    def _enumerate(input_path: Path) -> List[Path]:
        if input_path.is_dir():
            return sorted(p for p in input_path.iterdir() if p.is_file())
        # Missing single files still become a job so the failure is reported per job
        return [input_path]

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def compress(self, input_path: PathLike, output_dir: PathLike,
                 cancel_event: Optional[threading.Event] = None) -> BatchSummary:
        jobs = self.build_compress_jobs(input_path, output_dir)
        return self.run_jobs(jobs, Direction.COMPRESS, output_dir, cancel_event)

    def decompress(self, input_path: PathLike, output_dir: PathLike,
                   cancel_event: Optional[threading.Event] = None) -> BatchSummary:
        jobs = self.build_decompress_jobs(input_path, output_dir)
        return self.run_jobs(jobs, Direction.DECOMPRESS, output_dir, cancel_event)

    def run_jobs(self,
                 jobs: List[Job],
                 direction: Direction = Direction.COMPRESS,
                 output_dir: Optional[PathLike] = None,
                 cancel_event: Optional[threading.Event] = None,
                 num_workers: Optional[int] = None) -> BatchSummary:
        """Run prepared jobs and time the whole batch"""
        if output_dir is not None:
            Path(output_dir).mkdir(parents=True, exist_ok=True)

        workers = num_workers or self.config.resolved_workers
        monitor = BatchMonitor() if self.config.enable_monitoring else None
        desc = "Compressing" if direction is Direction.COMPRESS else "Decompressing"

        logger.info(f"{desc} {len(jobs)} files with {workers} workers")

        progress = tqdm(total=len(jobs), desc=desc, unit="files",
                        disable=not self.config.show_progress)
        try:
            pool = TaskPool(workers, codec=self.codec, stream=self.stream,
                            progress=progress, monitor=monitor)
            if monitor:
                monitor.start()
            start = time.perf_counter()
            try:
                results = pool.run(jobs, cancel_event)
            finally:
                elapsed = time.perf_counter() - start
                if monitor:
                    monitor.stop()
        finally:
            progress.close()

        summary = BatchSummary(direction=direction, results=results,
                               elapsed=elapsed, monitor=monitor)
        logger.info(f"{desc} finished: {summary.succeeded} succeeded, "
                    f"{summary.failed} failed in {summary.elapsed_ms} ms")
        return summary

    # ------------------------------------------------------------------
    # Benchmark
    # ------------------------------------------------------------------

    def benchmark(self,
                  work_dir: PathLike,
                  file_size: int = 16 * 1024 * 1024,
                  num_files: int = 4,
                  num_workers: int = 4,
                  seed: int = 0,
                  cancel_event: Optional[threading.Event] = None) -> BenchmarkResult:
        """
        Compress the same generated inputs with one worker and with
        ``num_workers`` workers and compare wall times.

        Every input file is created here before either run starts.
        """
        work_dir = Path(work_dir)
        input_dir = work_dir / 'inputs'
        input_dir.mkdir(parents=True, exist_ok=True)

        for i in range(num_files):
            path = input_dir / f'test_file_{i}.bin'
            if not path.exists() or path.stat().st_size != file_size:
                logger.info(f"Creating test file {path} ({file_size} bytes)")
                write_test_file(path, file_size, seed + i)

        single = self.run_jobs(self.build_compress_jobs(input_dir, work_dir / 'single'),
                               output_dir=work_dir / 'single', cancel_event=cancel_event,
                               num_workers=1)
        multi = self.run_jobs(self.build_compress_jobs(input_dir, work_dir / 'multi'),
                              output_dir=work_dir / 'multi', cancel_event=cancel_event,
                              num_workers=num_workers)

        return BenchmarkResult(num_files=num_files, file_size=file_size,
                               num_workers=num_workers,
                               single_elapsed=single.elapsed,
                               multi_elapsed=multi.elapsed)


def write_test_file(path: Path, size: int, seed: int = 0,
                    block_size: int = 1024 * 1024) -> None:
    """
    Write ``size`` bytes of moderately compressible data.

    Each block repeats a random 16KB pattern, which deflate can exploit
    within its 32KB window.
    """
    rng = random.Random(seed)
    pattern_size = 16 * 1024
    with open(path, 'wb') as f:
        remaining = size
        while remaining > 0:
            pattern = rng.randbytes(pattern_size)
            block = (pattern * (block_size // pattern_size + 1))[:min(block_size, remaining)]
            f.write(block)
            remaining -= len(block)
