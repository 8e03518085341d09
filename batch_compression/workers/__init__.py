"""
Worker components for concurrent job execution.
"""

from .task_pool import TaskPool, JobQueue, JobReporter

__all__ = [
    'TaskPool',
    'JobQueue',
    'JobReporter',
]
