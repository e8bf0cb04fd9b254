"""System state and rigid body partitioning."""

from .rigid_body import RigidBodyPartition
from .state import MDState, State

__all__ = ["MDState", "RigidBodyPartition", "State"]
