"""Atom typing, mass model and parameter resolution."""

from .elements import AtomCode, CenterType
from .masses import repartition_masses
from .parameters import Parameters
from .typer import TypedTopology, assign_types

__all__ = [
    "AtomCode",
    "CenterType",
    "Parameters",
    "TypedTopology",
    "assign_types",
    "repartition_masses",
]
