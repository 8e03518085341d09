"""
Worker pool that distributes independent compression jobs over threads.
"""

import logging
import threading
import time
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from typing import List, Optional, Sequence, TextIO, Tuple

from base_classes import Job, JobResult
from resilience_patterns import CompressionError, ConfigError
from ..stages.codecs import get_codec
from ..stages.compression import StreamCodec

logger = logging.getLogger(__name__)


class JobQueue:
    """Ordered jobs plus a shared cursor handing out each index exactly once."""

    def __init__(self, jobs: Sequence[Job]):
        self._jobs: Tuple[Job, ...] = tuple(jobs)
        self._cursor = 0
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._jobs)

    @property
    def claimed(self) -> int:
        """Number of jobs handed out so far"""
        with self._lock:
            return self._cursor

    def claim(self) -> Optional[Tuple[int, Job]]:
        """Reserve the next unclaimed job, or return None when all are taken."""
        with self._lock:
            if self._cursor >= len(self._jobs):
                return None
            index = self._cursor
            self._cursor += 1
        return index, self._jobs[index]


class JobReporter:
    """
    Diagnostics sink for one pool invocation.

    Every outcome becomes exactly one line, written with a single call while
    holding the reporter's lock. Without a stream, lines go to the logger.
    A tqdm progress bar, when given, is advanced under the same lock and the
    line is printed through ``tqdm.write`` so the bar is not broken up.
    """

    def __init__(self, stream: Optional[TextIO] = None, progress=None):
        self.stream = stream
        self.progress = progress
        self._lock = threading.Lock()

    @staticmethod
    def format_line(result: JobResult) -> str:
        job = result.job
        if result.success:
            return (f"Processed: {job.source} -> {job.destination} "
                    f"({result.bytes_in} -> {result.bytes_out} bytes, {result.ratio:.1%}) "
                    f"in {result.duration * 1000:.0f} ms")
        return f"Failed: {job.source} -> {job.destination}: {result.error}"

    def report(self, result: JobResult) -> None:
        line = self.format_line(result)
        with self._lock:
            if self.progress is not None:
                self.progress.write(line, file=self.stream)
                self.progress.update(1)
            elif self.stream is not None:
                self.stream.write(line + "\n")
                self.stream.flush()
            elif result.success:
                logger.info(line)
            else:
                logger.warning(line)


class TaskPool:
    """Runs a fixed number of workers that claim and execute jobs until none remain."""

    def __init__(self,
                 num_workers: int,
                 codec: Optional[StreamCodec] = None,
                 stream: Optional[TextIO] = None,
                 progress=None,
                 monitor=None):
        """
        Initialize the task pool.

        Args:
            num_workers: Number of concurrent worker threads (positive)
            codec: Stream codec executing each job
            stream: Text stream receiving one diagnostic line per job
            progress: Optional tqdm bar advanced once per finished job
            monitor: Optional BatchMonitor recording per-job metrics
        """
        if isinstance(num_workers, bool) or not isinstance(num_workers, int) or num_workers <= 0:
            raise ConfigError(f"num_workers must be a positive integer, got {num_workers!r}")

        self.num_workers = num_workers
        self.codec = codec or StreamCodec()
        self.stream = stream
        self.progress = progress
        self.monitor = monitor

    def run(self,
            jobs: Sequence[Job],
            cancel_event: Optional[threading.Event] = None) -> List[JobResult]:
        """
        Execute every job and block until all workers have finished.

        Without a ``cancel_event`` the pool creates its own, so an interrupt
        still stops workers at their next chunk boundary.

        Returns:
            One JobResult per claimed job, ordered by job index. Jobs left
            unclaimed after cancellation have no result.

        Raises:
            ConfigError: a job names an unknown codec or an invalid level
        """
        self._validate_jobs(jobs)

        if cancel_event is None:
            cancel_event = threading.Event()
        queue = JobQueue(jobs)
        reporter = JobReporter(self.stream, self.progress)
        results: List[Optional[JobResult]] = [None] * len(queue)

        logger.debug(f"Dispatching {len(queue)} jobs to {self.num_workers} workers")

        executor = ThreadPoolExecutor(max_workers=self.num_workers,
                                      thread_name_prefix="compress-worker")
        try:
            futures = [
                executor.submit(self._worker, queue, reporter, results, cancel_event)
                for _ in range(self.num_workers)
            ]
            done, _ = wait(futures, return_when=FIRST_EXCEPTION)
            for future in done:
                future.result()
            counts = [future.result() for future in futures]
        except BaseException:
            # Workers stop at their next chunk boundary once the event is set
            cancel_event.set()
            raise
        finally:
            executor.shutdown(wait=True)

        logger.debug(f"All workers completed, jobs per worker: {counts}")
        return [result for result in results if result is not None]

    def _validate_jobs(self, jobs: Sequence[Job]) -> None:
        for job in jobs:
            spec = get_codec(job.codec)
            if job.level is not None:
                spec.validate_level(job.level)

    def _worker(self,
                queue: JobQueue,
                reporter: JobReporter,
                results: List[Optional[JobResult]],
                cancel_event: threading.Event) -> int:
        """Claim and run jobs until the queue is exhausted; return jobs handled."""
        worker_name = threading.current_thread().name
        handled = 0

        while not cancel_event.is_set():
            claimed = queue.claim()
            if claimed is None:
                break
            index, job = claimed

            result = self._execute(index, job, worker_name, cancel_event)
            results[index] = result
            self._record(result, reporter)
            handled += 1

        return handled

    def _record(self, result: JobResult, reporter: JobReporter) -> None:
        """Hand a result to the monitor and the reporter without stopping the worker"""
        if self.monitor is not None:
            try:
                self.monitor.record_job(result)
            except Exception as e:
                logger.error(f"Error recording metrics for job {result.index}: {e}")
        try:
            reporter.report(result)
        except Exception as e:
            logger.error(f"Error reporting job {result.index}: {e}")

    def _execute(self, index: int, job: Job, worker_name: str,
                 cancel_event: threading.Event) -> JobResult:
        start = time.perf_counter()
        try:
            stats = self.codec.run_job(job, cancel_event)
        except CompressionError as e:
            logger.debug(f"Job {index} failed: {e.log_context()}")
            return JobResult(job=job, index=index, success=False,
                             duration=time.perf_counter() - start,
                             worker=worker_name, error=e)
        except Exception as e:
            logger.error(f"Unexpected error in job {index} ({job.source}): {e}")
            return JobResult(job=job, index=index, success=False,
                             duration=time.perf_counter() - start,
                             worker=worker_name, error=e)

        return JobResult(job=job, index=index, success=True,
                         bytes_in=stats.bytes_in, bytes_out=stats.bytes_out,
                         duration=time.perf_counter() - start, worker=worker_name)
