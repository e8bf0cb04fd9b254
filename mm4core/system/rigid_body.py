"""Partition of the atoms into contiguous rigid bodies."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence

import numpy as np
from numpy.typing import NDArray

from ..errors import InvalidConfiguration


class RigidBodyPartition:
    """
    Sorted, non-overlapping half-open atom ranges covering [0, N).

    Rigid bodies are the units the thermalizer samples and removes momentum
    from. Instances are immutable and validated at construction.

    Attributes:
        n_atoms: Number of atoms covered.
        ranges: (lower, upper) half-open index ranges.
    """

    __slots__ = ("_n_atoms", "_ranges")

    def __init__(self, ranges: Iterable[Sequence[int]], n_atoms: int) -> None:
        """
        Validate a set of ranges.

        Args:
            ranges: (lower, upper) pairs in ascending order.
            n_atoms: Number of atoms the ranges must cover.

        Raises:
            InvalidConfiguration: If a range is empty or out of order, two
                ranges overlap or leave a gap, or the union is not [0, N).
        """
        normalized = []
        for entry in ranges:
            if len(entry) != 2:
                raise InvalidConfiguration(f"rigid body range {entry!r} is not a pair")
            normalized.append((int(entry[0]), int(entry[1])))

        expected = 0
        for index, (lower, upper) in enumerate(normalized):
            if upper <= lower:
                raise InvalidConfiguration(
                    f"rigid body {index} range [{lower}, {upper}) is empty or reversed"
                )
            if lower != expected:
                kind = "overlaps" if lower < expected else "leaves a gap before"
                raise InvalidConfiguration(
                    f"rigid body {index} range [{lower}, {upper}) "
                    f"{kind} atom {expected}"
                )
            expected = upper
        if expected != n_atoms:
            raise InvalidConfiguration(
                f"rigid bodies cover [0, {expected}) but there are {n_atoms} atoms"
            )

        self._n_atoms = int(n_atoms)
        self._ranges = tuple(normalized)

    @classmethod
    def whole(cls, n_atoms: int) -> RigidBodyPartition:
        """One rigid body holding every atom."""
        return cls([(0, n_atoms)] if n_atoms > 0 else [], n_atoms)

    @classmethod
    def from_sizes(cls, sizes: Iterable[int]) -> RigidBodyPartition:
        """Consecutive rigid bodies with the given atom counts."""
        ranges = []
        lower = 0
        for size in sizes:
            ranges.append((lower, lower + int(size)))
            lower += int(size)
        return cls(ranges, lower)

    @property
    def n_atoms(self) -> int:
        """Return number of atoms."""
        return self._n_atoms

    @property
    def ranges(self) -> tuple[tuple[int, int], ...]:
        """Return the (lower, upper) ranges."""
        return self._ranges

    def __len__(self) -> int:
        return len(self._ranges)

    def __iter__(self) -> Iterator[tuple[int, int]]:
        return iter(self._ranges)

    def __getitem__(self, index: int) -> tuple[int, int]:
        return self._ranges[index]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RigidBodyPartition):
            return NotImplemented
        return self._n_atoms == other._n_atoms and self._ranges == other._ranges

    def __hash__(self) -> int:
        return hash((self._n_atoms, self._ranges))

    def __repr__(self) -> str:
        return f"RigidBodyPartition({list(self._ranges)!r}, n_atoms={self._n_atoms})"

    def slices(self) -> list[slice]:
        """One slice per rigid body, for indexing per-atom arrays."""
        return [slice(lower, upper) for lower, upper in self._ranges]

    def labels(self) -> NDArray[np.integer]:
        """Rigid body index of every atom, shape (N,)."""
        labels = np.empty(self._n_atoms, dtype=np.int64)
        for index, (lower, upper) in enumerate(self._ranges):
            labels[lower:upper] = index
        return labels

    def body_of(self, atom: int) -> int:
        """Index of the rigid body that contains an atom."""
        if atom < 0 or atom >= self._n_atoms:
            raise IndexError(f"Atom index {atom} out of range [0, {self._n_atoms})")
        uppers = [upper for _, upper in self._ranges]
        return int(np.searchsorted(uppers, atom, side="right"))
