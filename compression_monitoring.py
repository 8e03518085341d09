"""
Batch Monitoring and Performance Analysis
=========================================

Per-job metrics, process resource sampling and metric export for batch
compression runs.
"""

import json
import logging
import statistics
import threading
import time
from collections import Counter, deque
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Deque, Dict, List, Optional

import psutil

from base_classes import JobResult

logger = logging.getLogger(__name__)


@dataclass
class JobMetrics:
    """Metrics for one finished job"""
    source: str
    direction: str
    success: bool
    bytes_in: int
    bytes_out: int
    duration: float
    worker: str
    error_type: Optional[str] = None

    @property
    def throughput_mb_per_sec(self) -> float:
        if self.duration > 0:
            return (self.bytes_in / 1024 / 1024) / self.duration
        return 0.0

    @classmethod
    def from_result(cls, result: JobResult) -> 'JobMetrics':
        return cls(
            source=str(result.job.source),
            direction=result.job.direction.value,
            success=result.success,
            bytes_in=result.bytes_in,
            bytes_out=result.bytes_out,
            duration=result.duration,
            worker=result.worker,
            error_type=type(result.error).__name__ if result.error else None
        )


class BatchMonitor:
    """Thread-safe collector of job metrics with optional system sampling"""

    def __init__(self, sample_interval: float = 0.1, track_system: bool = True):
        self.jobs: List[JobMetrics] = []
        self._lock = threading.Lock()
        self.start_time: Optional[float] = None
        self.end_time: Optional[float] = None
        self.system_monitor = SystemMonitor(sample_interval) if track_system else None

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False

    def start(self):
        """Start timing and background sampling"""
        self.start_time = time.time()
        if self.system_monitor:
            self.system_monitor.start()

    def stop(self):
        """Stop timing and background sampling"""
        self.end_time = time.time()
        if self.system_monitor:
            self.system_monitor.stop()

    @property
    def elapsed(self) -> float:
        if self.start_time is None:
            return 0.0
        return (self.end_time or time.time()) - self.start_time

    def record_job(self, result: JobResult) -> None:
        """Record a finished job with thread safety"""
        metrics = JobMetrics.from_result(result)
        with self._lock:
            self.jobs.append(metrics)

    def get_summary(self) -> Dict[str, Any]:
        """Get summary statistics for the batch"""
        with self._lock:
            jobs = list(self.jobs)

        succeeded = [j for j in jobs if j.success]
        durations = [j.duration for j in succeeded]
        bytes_in = sum(j.bytes_in for j in succeeded)
        bytes_out = sum(j.bytes_out for j in succeeded)
        elapsed = self.elapsed

        return {
            'jobs': len(jobs),
            'succeeded': len(succeeded),
            'failed': len(jobs) - len(succeeded),
            'bytes_in': bytes_in,
            'bytes_out': bytes_out,
            'ratio': bytes_out / bytes_in if bytes_in else 0.0,
            'elapsed': elapsed,
            'avg_duration': statistics.mean(durations) if durations else 0.0,
            'max_duration': max(durations) if durations else 0.0,
            'throughput_mb_per_sec': (bytes_in / 1024 / 1024) / elapsed if elapsed > 0 else 0.0,
            'jobs_per_worker': dict(Counter(j.worker for j in jobs)),
            'errors': dict(Counter(j.error_type for j in jobs if j.error_type)),
            'system': self.system_monitor.get_summary() if self.system_monitor else {}
        }


class SystemMonitor:
    """Monitor process resources"""

    def __init__(self, sample_interval: float = 0.1):
        self.sample_interval = sample_interval
        self.metrics: Deque[Dict[str, Any]] = deque(maxlen=1000)
        self.monitoring = False
        self.monitor_thread = None
        self._stop_event = threading.Event()
        self.process = psutil.Process()

    def start(self):
        """Start system monitoring"""
        self.monitoring = True
        self._stop_event.clear()
        self.monitor_thread = threading.Thread(target=self._monitor_loop, name="system-monitor")
        self.monitor_thread.daemon = True
        self.monitor_thread.start()

    def stop(self):
        """Stop system monitoring"""
        self.monitoring = False
        self._stop_event.set()
        if self.monitor_thread:
            self.monitor_thread.join()
            self.monitor_thread = None

    def _monitor_loop(self) -> None:
        """System monitoring loop"""
        while self.monitoring:
            self.sample()
            if self._stop_event.wait(self.sample_interval):
                break

    def sample(self) -> Dict[str, Any]:
        """Take one measurement of the current process"""
        try:
            metrics = {
                'timestamp': time.time(),
                'cpu_percent': self.process.cpu_percent(),
                'memory_used': self.process.memory_info().rss,
                'num_threads': self.process.num_threads(),
            }
        except (psutil.NoSuchProcess, psutil.AccessDenied) as e:
            logger.error(f"Error monitoring process: {e}")
            return {}

        self.metrics.append(metrics)
        return metrics

    def get_summary(self) -> Dict[str, Any]:
        """Get summary statistics"""
        if not self.metrics:
            return {}

        cpu_values = [m['cpu_percent'] for m in self.metrics]
        memory_values = [m['memory_used'] for m in self.metrics]

        return {
            'cpu_avg': statistics.mean(cpu_values),
            'cpu_max': max(cpu_values),
            'memory_avg': statistics.mean(memory_values),
            'memory_max': max(memory_values),
            'max_threads': max(m['num_threads'] for m in self.metrics),
        }


class MetricsExporter:
    """Export metrics in various formats"""

    @staticmethod
    def to_json(monitor: BatchMonitor) -> str:
        """Export summary and per-job metrics as JSON"""
        with monitor._lock:
            jobs = list(monitor.jobs)

        data = {
            'timestamp': datetime.now().isoformat(),
            'summary': monitor.get_summary(),
            'jobs': [
                {
                    'source': j.source,
                    'direction': j.direction,
                    'success': j.success,
                    'bytes_in': j.bytes_in,
                    'bytes_out': j.bytes_out,
                    'duration': j.duration,
                    'worker': j.worker,
                    'error_type': j.error_type,
                }
                for j in jobs
            ]
        }
        return json.dumps(data, indent=2)

    @staticmethod
    def to_prometheus(monitor: BatchMonitor) -> str:
        """Export metrics in Prometheus format"""
        summary = monitor.get_summary()
        lines = [
            f'compressor_jobs_total{{status="succeeded"}} {summary["succeeded"]}',
            f'compressor_jobs_total{{status="failed"}} {summary["failed"]}',
            f'compressor_bytes_in_total {summary["bytes_in"]}',
            f'compressor_bytes_out_total {summary["bytes_out"]}',
            f'compressor_batch_duration_seconds {summary["elapsed"]}',
        ]
        for worker, count in sorted(summary['jobs_per_worker'].items()):
            lines.append(f'compressor_worker_jobs_total{{worker="{worker}"}} {count}')
        return '\n'.join(lines)
