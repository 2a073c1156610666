"""Drainage basin extraction and traversal orders."""

from collections import deque
from typing import Callable, Iterator, List

from .stream_tree import StreamTree


class DrainageBasin:
    """Sites whose downstream chain ends at one outlet.

    The sites are stored outlet first, in breadth-first order over donors,
    so every site appears after its downstream neighbor. Iterating that
    order forwards walks upstream; iterating it backwards walks downstream.
    """

    def __init__(self, outlet: int, order: List[int]):
        self.outlet = outlet
        self._order = order
        self._members = None

    @classmethod
    def construct(cls, outlet: int, stream_tree: StreamTree) -> "DrainageBasin":
        """
        Collect the basin draining to ``outlet``.

        Args:
            outlet: Root site of the basin
            stream_tree: Stream tree the basin is extracted from

        Returns:
            DrainageBasin containing the outlet and all of its upstream sites
        """
        if not stream_tree.is_root(outlet):
            raise ValueError(f"Site {outlet} is not the root of a stream tree")

        order = [outlet]
        queue = deque([outlet])
        while queue:
            site = queue.popleft()
            for donor in stream_tree.donors(site):
                order.append(donor)
                queue.append(donor)

        return cls(outlet, order)

    @property
    def nodes(self) -> List[int]:
        return list(self._order)

    def iter_upstream(self) -> Iterator[int]:
        """Outlet first; each site after its downstream neighbor."""
        return iter(self._order)

    def iter_downstream(self) -> Iterator[int]:
        """Headwaters first; each site after all of its donors."""
        return reversed(self._order)

    def for_each_upstream(self, visit: Callable[[int], None]):
        for site in self.iter_upstream():
            visit(site)

    def for_each_downstream(self, visit: Callable[[int], None]):
        for site in self.iter_downstream():
            visit(site)

    def __len__(self) -> int:
        return len(self._order)

    def __contains__(self, site: int) -> bool:
        if self._members is None:
            self._members = set(self._order)
        return site in self._members
