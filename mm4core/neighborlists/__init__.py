"""Neighbor list implementations."""

from .base import NeighborList
from .verlet import VerletList

__all__ = ["NeighborList", "VerletList"]
