"""
Spatial terrain model for the elevation solver.

This module implements:
- The model interface consumed by TerrainGenerator
- A 2-D model with Delaunay adjacency and Voronoi cell areas
- Jittered site generation and Lloyd's relaxation
- The interpolated terrain returned after generation
"""

from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Sequence, Tuple

import numpy as np
import structlog
from scipy.interpolate import LinearNDInterpolator
from scipy.spatial import ConvexHull, Delaunay, Voronoi
from shapely.geometry import Polygon, box

from ..utils.random import get_rng
from .graph import EdgeAttributedUndirectedGraph

logger = structlog.get_logger()

Point2D = Tuple[float, float]


class ModelBuildError(ValueError):
    """Raised when a terrain model cannot be built from the given inputs."""


class SitesNotSet(ModelBuildError):
    def __init__(self):
        super().__init__("You must set sites before building a terrain model")


class TooFewSites(ModelBuildError):
    def __init__(self, count: int):
        super().__init__(f"At least 3 sites are required to build a terrain model, got {count}")


class InvalidBoundingBox(ModelBuildError):
    pass


class TerrainModel(Protocol):
    """Interface of the spatial model used by TerrainGenerator."""

    def num(self) -> int: ...

    def sites(self) -> Sequence: ...

    def areas(self) -> np.ndarray: ...

    def graph(self) -> EdgeAttributedUndirectedGraph: ...

    def default_outlets(self) -> List[int]: ...

    def create_terrain_from_result(self, elevations: np.ndarray): ...


@dataclass
class Terrain2D:
    """Generated terrain: sites with their final elevations."""

    sites: np.ndarray
    elevations: np.ndarray
    _interpolator: Optional[LinearNDInterpolator] = field(default=None, init=False, repr=False)

    def get_elevation(self, x: float, y: float) -> Optional[float]:
        """Linearly interpolated elevation at (x, y), or None outside the sites' hull."""
        if self._interpolator is None:
            self._interpolator = LinearNDInterpolator(self.sites, self.elevations)
        value = float(self._interpolator([[x, y]])[0])
        if np.isnan(value):
            return None
        return value


class TerrainModel2D:
    """Sites in the plane with their cell areas, adjacency and default outlets.

    Built by TerrainModel2DBuilder; the arrays are treated as read-only.
    """

    def __init__(
        self,
        sites: np.ndarray,
        areas: np.ndarray,
        graph: EdgeAttributedUndirectedGraph,
        outlets: List[int],
    ):
        self._sites = sites
        self._areas = areas
        self._graph = graph
        self._outlets = outlets

    def num(self) -> int:
        return self._graph.order()

    def sites(self) -> np.ndarray:
        return self._sites

    def areas(self) -> np.ndarray:
        return self._areas

    def graph(self) -> EdgeAttributedUndirectedGraph:
        return self._graph

    def default_outlets(self) -> List[int]:
        return self._outlets

    def create_terrain_from_result(self, elevations: np.ndarray) -> Terrain2D:
        return Terrain2D(sites=self._sites, elevations=np.asarray(elevations, dtype=np.float64))


def generate_jittered_sites(
    bound_min: Point2D, bound_max: Point2D, spacing: float, seed: int = 0
) -> np.ndarray:
    """
    Generate a jittered square grid of sites.

    Creates a regular grid with randomized positions to prevent artificial
    patterns in the drainage network.

    Args:
        bound_min: Lower-left corner of the area
        bound_max: Upper-right corner of the area
        spacing: Distance between grid points
        seed: Random seed for reproducibility

    Returns:
        Array of [x, y] site coordinates
    """
    rng = get_rng(seed)

    radius = spacing / 2
    jittering = radius * 0.9  # max deviation

    xs = np.arange(bound_min[0] + radius, bound_max[0], spacing)
    ys = np.arange(bound_min[1] + radius, bound_max[1], spacing)
    grid_x, grid_y = np.meshgrid(xs, ys)
    points = np.column_stack([grid_x.ravel(), grid_y.ravel()])

    points += rng.uniform(-jittering, jittering, size=points.shape)
    points[:, 0] = np.clip(points[:, 0], bound_min[0], bound_max[0])
    points[:, 1] = np.clip(points[:, 1], bound_min[1], bound_max[1])

    return points


def get_boundary_points(bound_min: Point2D, bound_max: Point2D, spacing: float) -> np.ndarray:
    """
    Generate points surrounding the bounding box.

    They keep the Voronoi cells of the real sites finite.

    Args:
        bound_min: Lower-left corner of the box
        bound_max: Upper-right corner of the box
        spacing: Base spacing for points

    Returns:
        Array of boundary point coordinates
    """
    offset = spacing
    b_spacing = spacing * 2
    x_min, y_min = bound_min[0] - offset, bound_min[1] - offset
    x_max, y_max = bound_max[0] + offset, bound_max[1] + offset
    w = x_max - x_min
    h = y_max - y_min

    number_x = max(int(np.ceil(w / b_spacing) - 1), 1)
    number_y = max(int(np.ceil(h / b_spacing) - 1), 1)

    points = []
    for i in range(number_x):
        x = x_min + w * (i + 0.5) / number_x
        points.append([x, y_min])
        points.append([x, y_max])

    for i in range(number_y):
        y = y_min + h * (i + 0.5) / number_y
        points.append([x_min, y])
        points.append([x_max, y])

    return np.array(points)


def _clipped_cells(vor: Voronoi, n_sites: int, clip: Polygon) -> List[Polygon]:
    """Voronoi cell of every real site, clipped to the bounding box."""
    cells = []
    for i in range(n_sites):
        region = vor.regions[vor.point_region[i]]
        if -1 in region or len(region) < 3:
            # Unbounded region
            cells.append(Polygon())
            continue
        cells.append(Polygon(vor.vertices[region]).intersection(clip))
    return cells


def relax_points(
    points: np.ndarray, bound_min: Point2D, bound_max: Point2D, spacing: float, n_iterations: int
) -> np.ndarray:
    """Apply Lloyd's relaxation to improve the site distribution.

    Moves each site to the centroid of its clipped Voronoi cell.

    Args:
        points: Sites to relax
        bound_min: Lower-left corner of the box
        bound_max: Upper-right corner of the box
        spacing: Typical distance between sites
        n_iterations: Number of relaxation iterations

    Returns:
        Relaxed site coordinates
    """
    logger.info("Starting Lloyd's relaxation", iterations=n_iterations)

    points = points.copy()
    boundary_points = get_boundary_points(bound_min, bound_max, spacing)
    clip = box(bound_min[0], bound_min[1], bound_max[0], bound_max[1])

    for iteration in range(n_iterations):
        vor = Voronoi(np.vstack([points, boundary_points]))
        for i, cell in enumerate(_clipped_cells(vor, len(points), clip)):
            if cell.is_empty:
                continue
            centroid = cell.centroid
            points[i] = [centroid.x, centroid.y]
        logger.debug("Relaxation iteration complete", iteration=iteration + 1)

    return points


class TerrainModel2DBuilder:
    """Collects sites and a bounding box, then builds a TerrainModel2D."""

    def __init__(self):
        self._sites: Optional[np.ndarray] = None
        self._bound_min: Optional[Point2D] = None
        self._bound_max: Optional[Point2D] = None
        self._relaxation_iterations = 0

    def set_sites(self, sites) -> "TerrainModel2DBuilder":
        sites = np.asarray(sites, dtype=np.float64)
        if sites.ndim != 2 or sites.shape[1] != 2:
            raise ModelBuildError("Sites must be an array of [x, y] pairs")
        self._sites = sites
        return self

    def set_bounding_box(
        self, bound_min: Optional[Point2D] = None, bound_max: Optional[Point2D] = None
    ) -> "TerrainModel2DBuilder":
        """
        Set the area the model covers. Missing corners default to the sites' extent.

        Raises:
            InvalidBoundingBox: If the box is inverted or excludes a site
        """
        if self._sites is None:
            raise SitesNotSet()

        bound_min = tuple(bound_min) if bound_min is not None else tuple(self._sites.min(axis=0))
        bound_max = tuple(bound_max) if bound_max is not None else tuple(self._sites.max(axis=0))
        if bound_min[0] >= bound_max[0] or bound_min[1] >= bound_max[1]:
            raise InvalidBoundingBox(f"Bounding box {bound_min} - {bound_max} is empty")

        inside = np.all((self._sites >= bound_min) & (self._sites <= bound_max), axis=1)
        if not np.all(inside):
            raise InvalidBoundingBox(
                f"{int(np.sum(~inside))} sites lie outside the bounding box {bound_min} - {bound_max}"
            )

        self._bound_min = bound_min
        self._bound_max = bound_max
        return self

    def relax_sites(self, iterations: int) -> "TerrainModel2DBuilder":
        """Apply ``iterations`` rounds of Lloyd's relaxation when building."""
        if iterations < 0:
            raise ModelBuildError("Relaxation iterations must be non-negative")
        self._relaxation_iterations = iterations
        return self

    def build(self) -> TerrainModel2D:
        if self._sites is None:
            raise SitesNotSet()
        if len(self._sites) < 3:
            raise TooFewSites(len(self._sites))
        if self._bound_min is None or self._bound_max is None:
            self.set_bounding_box(self._bound_min, self._bound_max)

        bound_min, bound_max = self._bound_min, self._bound_max
        n_sites = len(self._sites)
        spacing = np.sqrt(
            (bound_max[0] - bound_min[0]) * (bound_max[1] - bound_min[1]) / n_sites
        )

        sites = self._sites
        if self._relaxation_iterations > 0:
            sites = relax_points(sites, bound_min, bound_max, spacing, self._relaxation_iterations)

        boundary_points = get_boundary_points(bound_min, bound_max, spacing)
        vor = Voronoi(np.vstack([sites, boundary_points]))
        clip = box(bound_min[0], bound_min[1], bound_max[0], bound_max[1])
        areas = np.array([cell.area for cell in _clipped_cells(vor, n_sites, clip)])

        tri = Delaunay(sites)
        graph = EdgeAttributedUndirectedGraph(n_sites)
        indptr, indices = tri.vertex_neighbor_vertices
        for i in range(n_sites):
            for j in indices[indptr[i]:indptr[i + 1]]:
                if i < j:
                    graph.add_edge(i, int(j), float(np.linalg.norm(sites[i] - sites[j])))

        # Extreme points of the site set
        outlets = sorted(int(i) for i in ConvexHull(sites).vertices)

        logger.info(
            "Terrain model built",
            sites=n_sites,
            edges=sum(1 for _ in graph.edges()),
            hull_sites=len(outlets),
        )
        return TerrainModel2D(sites, areas, graph, outlets)
