"""Small ring perception on a bond graph."""

from __future__ import annotations

from collections.abc import Iterable, Sequence


def find_small_rings(
    adjacency: Sequence[Sequence[int]], max_size: int = 5
) -> list[tuple[int, ...]]:
    """
    Enumerate every simple cycle with at most ``max_size`` atoms.

    Each cycle is reported once, starting at its lowest atom index and
    walking toward the smaller of that atom's two ring neighbors.

    Args:
        adjacency: Sorted neighbor indices for each atom.
        max_size: Largest ring size to report.

    Returns:
        Sorted list of rings as atom index tuples.
    """
    rings: set[tuple[int, ...]] = set()

    for start in range(len(adjacency)):
        stack = [(start, (start,))]
        while stack:
            node, path = stack.pop()
            for neighbor in adjacency[node]:
                if neighbor == start and len(path) >= 3:
                    reverse = (start,) + tuple(reversed(path[1:]))
                    rings.add(min(path, reverse))
                elif neighbor > start and neighbor not in path and len(path) < max_size:
                    stack.append((neighbor, path + (neighbor,)))

    return sorted(rings, key=lambda ring: (len(ring), ring))


class RingInfo:
    """
    Ring membership lookup for atoms and bonded terms.

    Only five-membered rings change parameters; smaller rings are kept so
    callers can reject them.

    Attributes:
        rings: All rings of size 3 to 5.
        five_rings: The five-membered rings.
    """

    def __init__(self, n_atoms: int, rings: Iterable[tuple[int, ...]]) -> None:
        self.rings = tuple(rings)
        self.five_rings = tuple(r for r in self.rings if len(r) == 5)

        self._memberships: list[set[int]] = [set() for _ in range(n_atoms)]
        for ring_id, ring in enumerate(self.five_rings):
            for atom in ring:
                self._memberships[atom].add(ring_id)

    @property
    def small_rings(self) -> tuple[tuple[int, ...], ...]:
        """Rings with three or four members."""
        return tuple(r for r in self.rings if len(r) < 5)

    def in_five_ring(self, atom: int) -> bool:
        """Check whether an atom belongs to any five-membered ring."""
        return bool(self._memberships[atom])

    def ring_type(self, atoms: Sequence[int]) -> int:
        """
        Return 5 if all atoms share one five-membered ring, else 6.

        Args:
            atoms: Atom indices of a bond, angle or torsion.
        """
        shared = set(self._memberships[atoms[0]])
        for atom in atoms[1:]:
            shared &= self._memberships[atom]
            if not shared:
                return 6
        return 5 if shared else 6
