"""Undirected site graph with distance-weighted edges."""

import numpy as np
from typing import Iterator, List, Optional, Tuple


class EdgeAttributedUndirectedGraph:
    """Adjacency-list graph where every edge carries a weight.

    Sites are addressed by index ``0..order-1``. Each edge is stored on both
    endpoints, so ``neighbors_of`` is symmetric and ``edge_weight(i, j)``
    equals ``edge_weight(j, i)``.
    """

    def __init__(self, order: int):
        self._neighbors: List[List[Tuple[int, float]]] = [[] for _ in range(order)]

    def order(self) -> int:
        """Number of sites in the graph."""
        return len(self._neighbors)

    def add_edge(self, i: int, j: int, weight: float):
        """Add an undirected edge, replacing the weight if it already exists."""
        if i == j:
            raise ValueError(f"Self loops are not allowed (site {i})")
        self._remove(i, j)
        self._remove(j, i)
        self._neighbors[i].append((j, float(weight)))
        self._neighbors[j].append((i, float(weight)))

    def _remove(self, i: int, j: int):
        self._neighbors[i] = [edge for edge in self._neighbors[i] if edge[0] != j]

    def neighbors_of(self, i: int) -> List[Tuple[int, float]]:
        """Return ``(neighbor, weight)`` pairs for site ``i``."""
        return self._neighbors[i]

    def edge_weight(self, i: int, j: int) -> Optional[float]:
        """Weight of the edge between ``i`` and ``j``, or None if they are not adjacent."""
        for neighbor, weight in self._neighbors[i]:
            if neighbor == j:
                return weight
        return None

    def has_edge(self, i: int, j: int) -> bool:
        return self.edge_weight(i, j) is not None

    def edges(self) -> Iterator[Tuple[int, int, float]]:
        """Iterate each undirected edge once as ``(i, j, weight)`` with ``i < j``."""
        for i, neighbors in enumerate(self._neighbors):
            for j, weight in neighbors:
                if i < j:
                    yield i, j, weight

    def to_arrays(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Flatten the adjacency into directed edge arrays.

        Every undirected edge appears twice, once per direction, which lets
        per-site sums be computed with ``np.bincount`` over the source array.

        Returns:
            Tuple of (sources, targets, weights)
        """
        sources = []
        targets = []
        weights = []
        for i, neighbors in enumerate(self._neighbors):
            for j, weight in neighbors:
                sources.append(i)
                targets.append(j)
                weights.append(weight)

        return (
            np.array(sources, dtype=np.int64),
            np.array(targets, dtype=np.int64),
            np.array(weights, dtype=np.float64),
        )

    @classmethod
    def from_edges(cls, order: int, edges) -> "EdgeAttributedUndirectedGraph":
        """Build a graph from an iterable of ``(i, j, weight)`` triples."""
        graph = cls(order)
        for i, j, weight in edges:
            graph.add_edge(i, j, weight)
        return graph
