"""
Single-flow-direction stream tree.

This module implements:
- Steepest-descent receiver selection
- Pit resolution by priority flood with receiver path reversal
- Donor lookup (inverse of the receiver relation)
"""

import heapq
from typing import Dict, List, Optional, Sequence

import numpy as np
import structlog

from .graph import EdgeAttributedUndirectedGraph

logger = structlog.get_logger()


class StreamTree:
    """Downstream flow forest over the sites.

    ``next[i]`` is the unique downstream neighbor of site ``i``. Outlets point
    to themselves, and so do pits that could not be connected to any outlet
    because their graph component contains none.
    """

    def __init__(self, next_sites: np.ndarray, outlets: Sequence[int]):
        self.next = next_sites
        self.outlets = list(outlets)
        self._donors: Optional[List[List[int]]] = None

    @classmethod
    def construct(
        cls,
        sites,
        elevations: np.ndarray,
        graph: EdgeAttributedUndirectedGraph,
        outlets: Sequence[int],
    ) -> "StreamTree":
        """
        Build the stream tree for the current elevation field.

        Args:
            sites: Site positions, one per elevation (only the count is used)
            elevations: Elevation of each site
            graph: Site adjacency with distances as edge weights
            outlets: Indices of the outlet sites

        Returns:
            StreamTree rooted at the outlets
        """
        n_sites = len(elevations)
        if len(sites) != n_sites or graph.order() != n_sites:
            raise ValueError(
                f"sites ({len(sites)}), elevations ({n_sites}) and graph "
                f"({graph.order()}) must describe the same number of sites"
            )

        is_outlet = np.zeros(n_sites, dtype=bool)
        is_outlet[list(outlets)] = True

        next_sites = _steepest_descent_receivers(elevations, graph, is_outlet)
        resolved = _resolve_pits(next_sites, elevations, graph, is_outlet)

        logger.debug("Stream tree constructed", sites=n_sites, pits_resolved=resolved)
        return cls(next_sites, outlets)

    def donors(self, i: int) -> List[int]:
        """Sites whose downstream neighbor is ``i``."""
        if self._donors is None:
            donors = [[] for _ in range(len(self.next))]
            for site, receiver in enumerate(self.next):
                if site != receiver:
                    donors[receiver].append(site)
            self._donors = donors
        return self._donors[i]

    def is_root(self, i: int) -> bool:
        return self.next[i] == i

    def __len__(self) -> int:
        return len(self.next)


def _steepest_descent_receivers(
    elevations: np.ndarray, graph: EdgeAttributedUndirectedGraph, is_outlet: np.ndarray
) -> np.ndarray:
    """Point each non-outlet site at the neighbor with the steepest descent."""
    next_sites = np.arange(len(elevations), dtype=np.int64)

    for i in range(len(elevations)):
        if is_outlet[i]:
            continue
        steepest = 0.0
        for j, distance in graph.neighbors_of(i):
            slope = (elevations[i] - elevations[j]) / distance
            if slope > steepest:
                steepest = slope
                next_sites[i] = j

    return next_sites


def _find_roots(next_sites: np.ndarray) -> np.ndarray:
    """Root of every site's receiver chain."""
    roots = np.full(len(next_sites), -1, dtype=np.int64)

    for i in range(len(next_sites)):
        path = []
        j = i
        while roots[j] < 0 and next_sites[j] != j:
            path.append(j)
            j = next_sites[j]
        root = roots[j] if roots[j] >= 0 else j
        roots[j] = root
        for k in path:
            roots[k] = root

    return roots


def _reverse_path(next_sites: np.ndarray, start: int, pit: int):
    """Reverse the receiver chain from ``start`` down to ``pit``."""
    path = [start]
    while path[-1] != pit:
        path.append(next_sites[path[-1]])
    for upstream, downstream in zip(path[:-1], path[1:]):
        next_sites[downstream] = upstream


def _resolve_pits(
    next_sites: np.ndarray,
    elevations: np.ndarray,
    graph: EdgeAttributedUndirectedGraph,
    is_outlet: np.ndarray,
) -> int:
    """
    Connect pit basins to the outlets in order of increasing spill elevation.

    Works like a priority flood over basins instead of single sites: the
    lowest crossing between a drained site and an undrained basin is taken
    first, the basin is re-rooted at the crossing site and joined to the
    drained area. Basins with no crossing at all are left untouched.

    Returns:
        Number of pit basins that were connected
    """
    roots = _find_roots(next_sites)

    members: Dict[int, List[int]] = {}
    for site, root in enumerate(roots):
        members.setdefault(int(root), []).append(site)

    drained = is_outlet[roots]
    heap = []

    def push_crossings(basin_sites):
        for i in basin_sites:
            for j, _ in graph.neighbors_of(i):
                if not drained[j]:
                    spill = max(elevations[i], elevations[j])
                    heapq.heappush(heap, (spill, j, i))

    push_crossings(np.flatnonzero(drained))

    resolved = 0
    while heap:
        _, site, receiver = heapq.heappop(heap)
        if drained[site]:
            continue

        pit = int(roots[site])
        _reverse_path(next_sites, site, pit)
        next_sites[site] = receiver

        basin_sites = members[pit]
        drained[basin_sites] = True
        push_crossings(basin_sites)
        resolved += 1

    return resolved
