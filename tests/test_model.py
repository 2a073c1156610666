"""Tests for the 2-D terrain model and end-to-end generation."""

import itertools

import pytest
import numpy as np
from scipy.spatial import ConvexHull, Delaunay
from py_lem.core.model import (
    InvalidBoundingBox,
    SitesNotSet,
    Terrain2D,
    TerrainModel2DBuilder,
    TooFewSites,
    generate_jittered_sites,
)
from py_lem.core.parameters import TopographicalParameters
from py_lem.core.stream_tree import StreamTree
from py_lem.core.terrain_generator import ElevationSolver, TerrainGenerator


class TestJitteredSites:
    """Test jittered site generation."""

    def test_site_count(self):
        sites = generate_jittered_sites((0, 0), (100, 50), 10, seed=1)

        assert sites.shape == (50, 2)

    def test_sites_within_bounds(self):
        sites = generate_jittered_sites((-20, 10), (80, 60), 5, seed=1)

        assert np.all(sites[:, 0] >= -20) and np.all(sites[:, 0] <= 80)
        assert np.all(sites[:, 1] >= 10) and np.all(sites[:, 1] <= 60)

    def test_same_seed_same_sites(self):
        np.testing.assert_array_equal(
            generate_jittered_sites((0, 0), (50, 50), 5, seed=4),
            generate_jittered_sites((0, 0), (50, 50), 5, seed=4),
        )

    def test_different_seeds(self):
        assert not np.array_equal(
            generate_jittered_sites((0, 0), (50, 50), 5, seed=1),
            generate_jittered_sites((0, 0), (50, 50), 5, seed=2),
        )


class TestTerrainModel2DBuilder:
    """Test model construction from sites."""

    @pytest.fixture
    def sites(self):
        return generate_jittered_sites((0, 0), (100, 50), 5, seed=11)

    @pytest.fixture
    def model(self, sites):
        return TerrainModel2DBuilder().set_sites(sites).set_bounding_box((0, 0), (100, 50)).build()

    def test_counts_match(self, model, sites):
        assert model.num() == len(sites)
        assert len(model.areas()) == len(sites)
        assert len(model.sites()) == len(sites)

    def test_areas_cover_bounding_box(self, model):
        assert np.all(model.areas() > 0)
        total = model.areas().sum()
        assert total <= 100 * 50 + 1e-6
        assert total > 0.95 * 100 * 50

    def test_edge_weights_are_distances(self, model):
        sites = model.sites()
        for i, j, weight in model.graph().edges():
            assert weight == pytest.approx(np.linalg.norm(sites[i] - sites[j]))

    def test_every_site_has_neighbours(self, model):
        graph = model.graph()
        assert all(len(graph.neighbors_of(i)) > 0 for i in range(model.num()))

    def test_graph_is_delaunay_triangulation(self, model):
        tri = Delaunay(model.sites())
        expected = set()
        for simplex in tri.simplices:
            for i, j in itertools.combinations(sorted(int(k) for k in simplex), 2):
                expected.add((i, j))

        assert {(i, j) for i, j, _ in model.graph().edges()} == expected

    def test_default_outlets_are_hull_vertices(self, model):
        hull = ConvexHull(model.sites())

        assert model.default_outlets() == sorted(int(i) for i in hull.vertices)

    def test_default_outlets_on_border(self, model):
        outlets = model.default_outlets()
        assert len(outlets) > 0

        sites = model.sites()[outlets]
        distance_to_edge = np.minimum.reduce(
            [sites[:, 0], 100 - sites[:, 0], sites[:, 1], 50 - sites[:, 1]]
        )
        assert np.all(distance_to_edge < 10)

    def test_bounding_box_defaults_to_extent(self, sites):
        model = TerrainModel2DBuilder().set_sites(sites).build()

        assert model.num() == len(sites)

    def test_relaxation_keeps_sites_in_box(self, sites):
        model = (
            TerrainModel2DBuilder()
            .set_sites(sites)
            .set_bounding_box((0, 0), (100, 50))
            .relax_sites(2)
            .build()
        )
        relaxed = model.sites()

        assert relaxed.shape == sites.shape
        assert not np.array_equal(relaxed, sites)
        assert np.all(relaxed >= 0)
        assert np.all(relaxed[:, 0] <= 100) and np.all(relaxed[:, 1] <= 50)

    def test_sites_not_set(self):
        with pytest.raises(SitesNotSet):
            TerrainModel2DBuilder().build()
        with pytest.raises(SitesNotSet):
            TerrainModel2DBuilder().set_bounding_box((0, 0), (1, 1))

    def test_too_few_sites(self):
        with pytest.raises(TooFewSites):
            TerrainModel2DBuilder().set_sites([[0, 0], [1, 1]]).build()

    def test_site_outside_bounding_box(self, sites):
        with pytest.raises(InvalidBoundingBox):
            TerrainModel2DBuilder().set_sites(sites).set_bounding_box((0, 0), (50, 50))

    def test_inverted_bounding_box(self, sites):
        with pytest.raises(InvalidBoundingBox):
            TerrainModel2DBuilder().set_sites(sites).set_bounding_box((100, 50), (0, 0))

    def test_build_errors_are_value_errors(self):
        with pytest.raises(ValueError):
            TerrainModel2DBuilder().set_sites([[0, 0]]).build()


class TestTerrain2D:
    """Test interpolation of generated terrain."""

    @pytest.fixture
    def terrain(self):
        sites = np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0], [1.0, 1.0]])
        return Terrain2D(sites=sites, elevations=np.array([0.0, 1.0, 1.0, 2.0]))

    def test_elevation_at_site(self, terrain):
        assert terrain.get_elevation(1.0, 0.0) == pytest.approx(1.0)

    def test_elevation_interpolated(self, terrain):
        assert terrain.get_elevation(0.5, 0.5) == pytest.approx(1.0)

    def test_outside_hull(self, terrain):
        assert terrain.get_elevation(5.0, 5.0) is None


class TestEndToEnd:
    """Generate terrain on a Voronoi model."""

    @pytest.fixture
    def model(self):
        sites = generate_jittered_sites((0, 0), (100, 100), 10, seed=21)
        return TerrainModel2DBuilder().set_sites(sites).set_bounding_box((0, 0), (100, 100)).build()

    @pytest.fixture
    def parameters(self, model):
        outlets = set(model.default_outlets())
        return [
            TopographicalParameters(uplift_rate=0.0 if i in outlets else 1.0, erodibility=1.0)
            for i in range(model.num())
        ]

    def test_generate_returns_terrain(self, model, parameters):
        terrain = TerrainGenerator(model=model, parameters=parameters, max_iteration=3).generate()

        assert isinstance(terrain, Terrain2D)
        assert terrain.elevations.shape == (model.num(),)
        assert np.all(np.isfinite(terrain.elevations))

    def test_outlets_stay_at_base(self, model, parameters):
        elevations = TerrainGenerator(
            model=model, parameters=parameters, max_iteration=3
        ).generate_elevations()

        outlets = model.default_outlets()
        assert np.all(np.abs(elevations[outlets]) < 1e-12)

        interior = np.setdiff1d(np.arange(model.num()), outlets)
        assert np.all(elevations[interior] > 0)

    def test_max_slope_bounds_drop_to_receiver(self, model):
        outlets = set(model.default_outlets())
        max_slope = np.radians(10)
        parameters = [
            TopographicalParameters(uplift_rate=0.0 if i in outlets else 5.0, max_slope=max_slope)
            for i in range(model.num())
        ]
        solver = ElevationSolver(model, parameters)
        tree = StreamTree.construct(
            model.sites(), solver.initial_elevations(), model.graph(), solver.outlets
        )

        elevations = solver.solve(max_iteration=1)

        for site, receiver in enumerate(tree.next):
            if receiver == site:
                continue
            distance = model.graph().edge_weight(site, receiver)
            assert elevations[site] - elevations[receiver] <= np.tan(max_slope) * distance + 1e-9
