"""Shared fixtures for the landscape evolution tests."""

import numpy as np
import pytest

from py_lem.core.graph import EdgeAttributedUndirectedGraph


class LineModel:
    """Sites 0..n-1 on a line, unit spacing, with site 0 as default outlet.

    With ``connected=False`` the sites keep their positions but share no edges.
    """

    def __init__(self, n_sites: int, area: float = 1.0, outlets=(0,), connected: bool = True):
        self._sites = np.column_stack([np.arange(n_sites, dtype=float), np.zeros(n_sites)])
        self._areas = np.full(n_sites, area)
        self._graph = EdgeAttributedUndirectedGraph.from_edges(
            n_sites, [(i, i + 1, 1.0) for i in range(n_sites - 1)] if connected else []
        )
        self._outlets = list(outlets)
        self.terrain_calls = 0

    def num(self):
        return self._graph.order()

    def sites(self):
        return self._sites

    def areas(self):
        return self._areas

    def graph(self):
        return self._graph

    def default_outlets(self):
        return self._outlets

    def create_terrain_from_result(self, elevations):
        self.terrain_calls += 1
        return np.array(elevations)


@pytest.fixture
def line_model():
    """Factory for line-shaped models."""
    return LineModel
