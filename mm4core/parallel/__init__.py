"""Parallelization infrastructure for force evaluation."""

from .backends.base import ParallelBackend
from .backends.multiprocessing_backend import MultiprocessingBackend
from .backends.serial import SerialBackend

__all__ = [
    "ParallelBackend",
    "SerialBackend",
    "MultiprocessingBackend",
]
