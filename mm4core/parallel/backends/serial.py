"""Serial (single-process) backend."""

from __future__ import annotations

from .base import ParallelBackend


class SerialBackend(ParallelBackend):
    """
    Serial backend for single-process execution.

    This is the default backend and the reference for the others.
    """

    @property
    def name(self) -> str:
        """Return backend name."""
        return "serial"

    @property
    def n_workers(self) -> int:
        """Return number of parallel workers."""
        return 1
