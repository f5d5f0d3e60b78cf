#!/usr/bin/env python3
"""
Parallel resampling for cladeshift.

Replicates are split into fixed-size blocks that run on a thread pool. Each
block draws from its own generator, derived from the run seed and the block
index, so the combined result is identical whatever the number of workers.
"""

import logging
import multiprocessing
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Union

import numpy as np

from ..core.constants import DEFAULT_BLOCK_SIZE, MAX_AUTO_WORKERS, STREAM_NULL

logger = logging.getLogger(__name__)


@dataclass
class ResampleTask:
    """One block of resampling replicates."""

    block_index: int
    total_blocks: int
    sample_size: int
    n_draws: int

    def __repr__(self) -> str:
        return (f"ResampleTask(block={self.block_index + 1}/{self.total_blocks}, "
                f"k={self.sample_size}, draws={self.n_draws})")


def block_generator(seed: int, stream: int, sample_size: int, block_index: int) -> np.random.Generator:
    """Random generator for one block, keyed by (stream, sample size, block)."""
    sequence = np.random.SeedSequence(seed, spawn_key=(stream, sample_size, block_index))
    return np.random.default_rng(sequence)


def resolve_workers(threads: Union[int, str, None]) -> int:
    """Translate a thread setting ('auto' or a positive int) into a worker count."""
    if threads is None or threads == "auto":
        # 75% of available cores, minimum 1, maximum MAX_AUTO_WORKERS
        return max(1, min(MAX_AUTO_WORKERS, int(multiprocessing.cpu_count() * 0.75)))
    workers = int(threads)
    if workers < 1:
        raise ValueError(f"Thread count must be positive, got {threads}")
    return workers


class ProgressTracker:
    """Thread-safe progress tracking for resampling blocks."""

    def __init__(self, total_tasks: int, update_callback: Optional[Callable] = None):
        self.total_tasks = total_tasks
        self.completed_tasks = 0
        self.start_time = time.time()
        self.update_callback = update_callback
        self._lock = threading.Lock()

    def update(self, task: ResampleTask) -> None:
        """Record a completed block."""
        with self._lock:
            self.completed_tasks += 1
            logger.debug(
                f"Resampling progress: {self.completed_tasks}/{self.total_tasks} blocks "
                f"({100.0 * self.completed_tasks / self.total_tasks:.1f}%) • {task}"
            )
            if self.update_callback:
                self.update_callback(self.completed_tasks, self.total_tasks)

    def get_summary(self) -> Dict[str, Any]:
        with self._lock:
            elapsed_time = time.time() - self.start_time
            return {
                'total_tasks': self.total_tasks,
                'completed_tasks': self.completed_tasks,
                'elapsed_time': elapsed_time,
                'avg_time_per_task': elapsed_time / max(1, self.completed_tasks),
            }


class ResamplingPool:
    """
    Runs replicate blocks on a thread pool and concatenates them in block order.

    Threads only pay off when a block spends its time inside numpy calls that
    release the GIL. Workers should therefore handle a whole block with array
    operations (draw every index row, then apply the statistic along the rows)
    rather than loop over single draws in Python.
    """

    def __init__(self,
                 max_workers: Union[int, str, None] = "auto",
                 block_size: int = DEFAULT_BLOCK_SIZE,
                 progress_callback: Optional[Callable] = None):
        """
        Initialize the pool.

        Args:
            max_workers: Worker threads, or 'auto'
            block_size: Replicates per block; fixes the random streams, so
                changing it changes the draws
            progress_callback: Optional callable(completed_blocks, total_blocks)
        """
        if block_size < 1:
            raise ValueError(f"Block size must be positive, got {block_size}")
        self.max_workers = resolve_workers(max_workers)
        self.block_size = block_size
        self.progress_callback = progress_callback
        self._progress_tracker: Optional[ProgressTracker] = None

    def make_tasks(self, replicates: int, sample_size: int) -> List[ResampleTask]:
        total_blocks = -(-replicates // self.block_size)
        tasks = []
        for block_index in range(total_blocks):
            n_draws = min(self.block_size, replicates - block_index * self.block_size)
            tasks.append(ResampleTask(block_index, total_blocks, sample_size, n_draws))
        return tasks

    def run(self, replicates: int, sample_size: int, seed: int,
            worker: Callable[[ResampleTask, np.random.Generator], np.ndarray],
            stream: int = STREAM_NULL) -> np.ndarray:
        """
        Execute `replicates` draws of size `sample_size`.

        Args:
            replicates: Total number of draws
            sample_size: Size of every draw (part of the stream key)
            seed: Run seed
            worker: callable(task, generator) returning task.n_draws values
            stream: Stream tag separating independent uses of the same seed

        Returns:
            1-D array of length `replicates`, blocks in index order
        """
        if replicates < 1:
            raise ValueError(f"Replicates must be at least 1, got {replicates}")

        tasks = self.make_tasks(replicates, sample_size)
        self._progress_tracker = ProgressTracker(len(tasks), update_callback=self.progress_callback)

        def execute(task: ResampleTask) -> np.ndarray:
            rng = block_generator(seed, stream, sample_size, task.block_index)
            values = np.asarray(worker(task, rng), dtype=float)
            self._progress_tracker.update(task)
            return values

        if self.max_workers == 1 or len(tasks) == 1:
            blocks = [execute(task) for task in tasks]
        else:
            with ThreadPoolExecutor(max_workers=min(self.max_workers, len(tasks))) as executor:
                blocks = list(executor.map(execute, tasks))

        return np.concatenate(blocks)

    def get_performance_summary(self) -> Dict[str, Any]:
        """Summary for the last run."""
        if self._progress_tracker is None:
            return {}
        summary = self._progress_tracker.get_summary()
        summary['max_workers'] = self.max_workers
        return summary
