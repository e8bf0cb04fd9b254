"""Bond graph and ring perception."""

from .rings import RingInfo, find_small_rings
from .topology import TopologyGraph

__all__ = ["RingInfo", "TopologyGraph", "find_small_rings"]
