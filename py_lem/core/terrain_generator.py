"""
Terrain generation by balancing stream-power erosion against tectonic uplift.

This module implements:
- Validation of the model and per-site parameters
- The single-flow-direction pass (stream tree and drainage basins)
- The multiple-flow-direction pass (weighted steepest-descent partitioning)
- The iteration loop and its termination policy
"""

import math
from enum import Enum
from typing import List, Optional, Sequence

import numpy as np
import structlog

from ..config import settings
from ..utils.random import tie_breaking_jitter
from .drainage_basin import DrainageBasin
from .graph import EdgeAttributedUndirectedGraph
from .model import TerrainModel
from .parameters import TopographicalParameters
from .stream_tree import StreamTree

logger = structlog.get_logger()

# Exponent m of drainage area in the stream power law
DEFAULT_M_EXP = 0.5

# Distance used when two sites share no edge (e.g. an outlet and itself)
DEFAULT_DISTANCE = 1.0

# Fixed relaxation budgets of the multiple-flow pass, not convergence checked
AREA_SWEEPS = 5
RESPONSE_TIME_SWEEPS = 20

# Flow is split between lower neighbours in proportion to slope ** SLOPE_EXPONENT
SLOPE_EXPONENT = 4

# Default of TerrainGenerator(max_iteration=...): read settings.max_iteration
FROM_SETTINGS = object()


class GenerationError(Exception):
    """Base class for errors raised before terrain generation starts."""


class ModelNotSet(GenerationError):
    def __init__(self):
        super().__init__("You must set a terrain model before generating terrain")


class ParametersNotSet(GenerationError):
    def __init__(self):
        super().__init__("You must set topographical parameters before generating terrain")


class InvalidNumberOfParameters(GenerationError):
    def __init__(self, expected: int, actual: int):
        super().__init__(
            f"The number of topographical parameters ({actual}) must be equal "
            f"to the number of sites ({expected})"
        )
        self.expected = expected
        self.actual = actual


class PassMode(Enum):
    """Which elevation update the next solver pass uses."""

    FIRST_PASS = "first_pass"
    STEADY_STATE = "steady_state"


def edge_distance(graph: EdgeAttributedUndirectedGraph, i: int, j: int) -> float:
    """Length of the edge between ``i`` and ``j``, DEFAULT_DISTANCE if there is none."""
    weight = graph.edge_weight(i, j)
    if weight is None:
        return DEFAULT_DISTANCE
    return weight


class ElevationSolver:
    """Iteratively computes the elevation field for one model and parameter set.

    The solver only reads the model and parameters. Each pass mutates the
    elevation array it is given and reports whether any value changed.
    """

    def __init__(
        self,
        model: TerrainModel,
        parameters: Sequence[TopographicalParameters],
        seed: Optional[int] = None,
    ):
        self.model = model
        self.parameters = list(parameters)
        self.seed = settings.jitter_seed if seed is None else seed

        self.num = model.num()
        self.sites = model.sites()
        self.graph = model.graph()
        self.areas = np.asarray(model.areas(), dtype=np.float64)

        self.uplift_rates = np.array([p.uplift_rate for p in self.parameters], dtype=np.float64)
        self.erodibilities = np.array([p.erodibility for p in self.parameters], dtype=np.float64)
        self.base_elevations = np.array(
            [p.base_elevation for p in self.parameters], dtype=np.float64
        )
        self.max_slopes = [p.max_slope for p in self.parameters]

        self.outlets = self._resolve_outlets(model.default_outlets())

        # Directed edges, both directions of every undirected edge
        self._sources, self._targets, self._distances = self.graph.to_arrays()

    def _resolve_outlets(self, default_outlets: Sequence[int]) -> List[int]:
        """Flagged outlets, or the model's default outlets if none are flagged."""
        outlets = [i for i, p in enumerate(self.parameters) if p.is_outlet]
        if not outlets:
            outlets = [int(i) for i in dict.fromkeys(default_outlets)]
        if not outlets:
            logger.warning("No outlets available, no site can drain", sites=self.num)
        return outlets

    def initial_elevations(self) -> np.ndarray:
        """Base elevations plus the deterministic tie-breaking jitter."""
        return self.base_elevations + tie_breaking_jitter(self.num, self.seed)

    def single_flow_pass(self, elevations: np.ndarray) -> bool:
        """
        Recompute elevations along a single-flow-direction stream tree.

        Each basin is solved independently: drainage area is accumulated
        from the headwaters down, response time from the outlet up, and the
        new elevation of a site is the outlet elevation raised by uplift over
        the response time difference, optionally capped by the maximum slope.
        Sites that drain to no outlet keep their elevation.

        Args:
            elevations: Current elevations, updated in place

        Returns:
            True if any elevation changed
        """
        stream_tree = StreamTree.construct(self.sites, elevations, self.graph, self.outlets)
        receivers = stream_tree.next

        drainage_areas = self.areas.copy()
        response_times = np.zeros(self.num, dtype=np.float64)
        changed = False

        for outlet in self.outlets:
            basin = DrainageBasin.construct(outlet, stream_tree)

            for i in basin.iter_downstream():
                j = receivers[i]
                if j != i:
                    drainage_areas[j] += drainage_areas[i]

            for i in basin.iter_upstream():
                j = receivers[i]
                if j == i:
                    continue
                celerity = self.erodibilities[i] * drainage_areas[i] ** DEFAULT_M_EXP
                if celerity > 0.0:
                    response_times[i] = (
                        response_times[j] + edge_distance(self.graph, i, j) / celerity
                    )
                else:
                    response_times[i] = response_times[j]

            outlet_elevation = elevations[outlet]
            outlet_response_time = response_times[outlet]

            for i in basin.iter_upstream():
                new_elevation = outlet_elevation + self.uplift_rates[i] * max(
                    response_times[i] - outlet_response_time, 0.0
                )

                max_slope = self.max_slopes[i]
                if max_slope is not None:
                    j = receivers[i]
                    distance = edge_distance(self.graph, i, j)
                    max_gradient = math.tan(max_slope)
                    if (new_elevation - elevations[j]) / distance > max_gradient:
                        new_elevation = elevations[j] + max_gradient * distance

                if new_elevation != elevations[i]:
                    changed = True
                elevations[i] = new_elevation

        return changed

    def multiple_flow_pass(self, elevations: np.ndarray) -> bool:
        """
        Raise elevations using multiple-flow-direction drainage.

        Every site passes its drainage area to all lower neighbours, weighted
        by ``(drop / distance) ** 4``. Drainage area and response time are
        relaxed with a fixed number of sweeps; each sweep reads only the
        previous sweep's values. The response time is then added on top of
        the current elevation, scaled by the uplift rate.

        Args:
            elevations: Current elevations, updated in place

        Returns:
            True if any elevation changed
        """
        n = self.num
        sources, targets, distances = self._sources, self._targets, self._distances

        # Positive rise: the target neighbour lies above the source site
        rise = elevations[targets] - elevations[sources]
        above = rise > 0.0
        below = rise < 0.0
        weights = (np.abs(rise) / distances) ** SLOPE_EXPONENT

        # bincount yields integers for empty input
        above_weight_sum = np.bincount(
            sources[above], weights=weights[above], minlength=n
        ).astype(np.float64)
        below_weight_sum = np.bincount(
            sources[below], weights=weights[below], minlength=n
        ).astype(np.float64)

        # Share of each higher neighbour's area that flows into the site
        upper_sites = targets[above]
        upper_sum = below_weight_sum[upper_sites]
        inflow_share = np.divide(
            weights[above], upper_sum, out=np.zeros_like(weights[above]), where=upper_sum > 0.0
        )

        drainage_areas = self.areas.copy()
        for _ in range(AREA_SWEEPS):
            drainage_areas = self.areas + np.bincount(
                sources[above], weights=drainage_areas[upper_sites] * inflow_share, minlength=n
            )

        celerities = self.erodibilities * drainage_areas ** DEFAULT_M_EXP
        slowness = np.divide(
            1.0, celerities, out=np.zeros_like(celerities), where=celerities > 0.0
        )

        # Outflow fractions towards each lower neighbour
        lower_sites = targets[below]
        own_sum = below_weight_sum[sources[below]]
        outflow_fraction = np.divide(
            weights[below], own_sum, out=np.zeros_like(weights[below]), where=own_sum > 0.0
        )
        mean_distance = np.bincount(
            sources[below], weights=distances[below] * outflow_fraction, minlength=n
        )

        response_times = np.zeros(n, dtype=np.float64)
        for _ in range(RESPONSE_TIME_SWEEPS):
            response_times = (
                np.bincount(
                    sources[below],
                    weights=response_times[lower_sites] * outflow_fraction,
                    minlength=n,
                )
                + slowness * mean_distance
            )

        new_elevations = elevations + self.uplift_rates * np.maximum(response_times, 0.0)
        changed = bool(np.any(new_elevations != elevations))
        elevations[:] = new_elevations

        logger.debug(
            "Multiple flow pass",
            max_drainage_area=float(drainage_areas.max(initial=0.0)),
            max_response_time=float(response_times.max(initial=0.0)),
            sites_with_upper_neighbours=int(np.count_nonzero(above_weight_sum)),
        )
        return changed

    def solve(self, max_iteration: Optional[int] = None) -> np.ndarray:
        """
        Run passes until the elevations are stable or ``max_iteration`` is reached.

        The first pass always uses the single-flow update and every later
        pass the multiple-flow update. ``max_iteration`` counts all passes,
        the first one included.

        Args:
            max_iteration: Maximum number of passes, None to run until stable

        Returns:
            Final elevation of each site
        """
        elevations = self.initial_elevations()
        mode = PassMode.FIRST_PASS
        passes = 0
        changed = True

        logger.info(
            "Elevation solver started",
            sites=self.num,
            outlets=len(self.outlets),
            max_iteration=max_iteration,
        )

        while max_iteration is None or passes < max_iteration:
            if mode is PassMode.FIRST_PASS:
                changed = self.single_flow_pass(elevations)
                mode = PassMode.STEADY_STATE
            else:
                changed = self.multiple_flow_pass(elevations)
            passes += 1

            logger.debug("Solver pass complete", pass_number=passes, changed=changed)
            if not changed:
                break

        logger.info("Elevation solver finished", passes=passes, converged=not changed)
        return elevations


class TerrainGenerator:
    """Generates terrain for a model from per-site topographical parameters.

    Required:
        - ``model``: the spatial model providing sites, areas, graph and default outlets
        - ``parameters``: one TopographicalParameters per site
    Optional:
        - ``max_iteration``: cap on the number of solver passes; None repeats
          the passes until no elevation changes. Defaults to
          ``settings.max_iteration``
        - ``seed``: seed of the tie-breaking jitter
    """

    def __init__(
        self,
        model: Optional[TerrainModel] = None,
        parameters: Optional[Sequence[TopographicalParameters]] = None,
        max_iteration=FROM_SETTINGS,
        seed: Optional[int] = None,
    ):
        self.model = model
        self.parameters = list(parameters) if parameters is not None else None
        self.max_iteration = None
        self.seed = seed
        if max_iteration is FROM_SETTINGS:
            max_iteration = settings.max_iteration
        self.set_max_iteration(max_iteration)

    def set_model(self, model: TerrainModel) -> "TerrainGenerator":
        self.model = model
        return self

    def set_parameters(self, parameters: Sequence[TopographicalParameters]) -> "TerrainGenerator":
        self.parameters = list(parameters)
        return self

    def set_max_iteration(self, max_iteration: Optional[int]) -> "TerrainGenerator":
        """Set the maximum number of passes, or None to iterate until stable."""
        if max_iteration is not None and max_iteration < 0:
            raise ValueError(f"max_iteration must be non-negative, got {max_iteration}")
        self.max_iteration = max_iteration
        return self

    def set_seed(self, seed: int) -> "TerrainGenerator":
        self.seed = seed
        return self

    def _build_solver(self) -> ElevationSolver:
        if self.model is None:
            raise ModelNotSet()
        if self.parameters is None:
            raise ParametersNotSet()
        if len(self.parameters) != self.model.num():
            raise InvalidNumberOfParameters(self.model.num(), len(self.parameters))
        return ElevationSolver(self.model, self.parameters, seed=self.seed)

    def generate_elevations(self) -> np.ndarray:
        """Validate the inputs and return the final elevation of each site."""
        return self._build_solver().solve(self.max_iteration)

    def generate(self):
        """
        Generate terrain.

        Returns:
            Whatever the model's ``create_terrain_from_result`` builds from the
            final elevations

        Raises:
            ModelNotSet: If no model was set
            ParametersNotSet: If no parameters were set
            InvalidNumberOfParameters: If the parameter count differs from the site count
        """
        elevations = self.generate_elevations()
        return self.model.create_terrain_from_result(elevations)
