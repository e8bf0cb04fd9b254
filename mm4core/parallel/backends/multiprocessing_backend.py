"""Multiprocessing backend using a process pool."""

from __future__ import annotations

import logging
import multiprocessing as mp
from collections.abc import Callable, Sequence
from concurrent.futures import ProcessPoolExecutor
from typing import Any

from .base import ParallelBackend

logger = logging.getLogger(__name__)


class MultiprocessingBackend(ParallelBackend):
    """
    Multiprocessing backend for shared-memory parallelism.

    Best for CPU-bound work on a single node. The pool is created on first
    use and kept until ``close()``, so repeated force evaluations do not pay
    the process start-up cost.
    """

    def __init__(self, n_workers: int | None = None) -> None:
        """
        Initialize multiprocessing backend.

        Args:
            n_workers: Number of worker processes. Defaults to CPU count.
        """
        if n_workers is not None and n_workers < 1:
            raise ValueError(f"n_workers must be >= 1, got {n_workers}")
        self._n_workers = n_workers or mp.cpu_count()
        self._executor: ProcessPoolExecutor | None = None

    @property
    def name(self) -> str:
        """Return backend name."""
        return "multiprocessing"

    @property
    def n_workers(self) -> int:
        """Return number of parallel workers."""
        return self._n_workers

    def parallel_map(
        self,
        func: Callable[..., Any],
        items: Sequence[Any],
    ) -> list[Any]:
        """
        Apply function to items in parallel using the process pool.

        Args:
            func: Function to apply (must be picklable).
            items: Items to process (must be picklable).

        Returns:
            Results for each item, in the order of ``items``.
        """
        if len(items) == 0:
            return []

        if self._executor is None:
            logger.debug("Starting process pool with %d workers", self._n_workers)
            self._executor = ProcessPoolExecutor(max_workers=self._n_workers)

        return list(self._executor.map(func, items))

    def close(self) -> None:
        """Shut down the process pool."""
        if self._executor is not None:
            self._executor.shutdown()
            self._executor = None

    def __getstate__(self) -> dict[str, Any]:
        state = self.__dict__.copy()
        state["_executor"] = None
        return state
