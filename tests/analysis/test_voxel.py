"""
Tests for the voxelization module.
"""

import numpy as np
import pytest

from types import SimpleNamespace

from aptvox.io import config
from aptvox.analysis.voxel import (
    ContractViolation,
    VoxelGrid,
    accumulate,
    digitize,
    get_bin_edges,
    materialize,
    voxelize,
)


EDGES = np.array([0.0, 1.0, 2.0, 3.0])


class TestDigitize:
    """Test the bucketing convention."""

    def test_interior_bins(self):
        idx = digitize([0.5, 1.5, 2.5], EDGES)
        np.testing.assert_array_equal(idx, [1, 2, 3])
        assert idx.dtype == np.int64

    def test_interior_edge_is_left_inclusive(self):
        np.testing.assert_array_equal(digitize([0.0, 1.0, 2.0], EDGES), [1, 2, 3])

    def test_last_edge_is_inclusive(self):
        assert digitize(3.0, EDGES) == 3

    @pytest.mark.parametrize("value", [-5.0, -1e-12, 3.0 + 1e-12, 100.0, np.nan])
    def test_overflow(self, value):
        assert digitize(value, EDGES) == 0

    def test_single_bin(self):
        np.testing.assert_array_equal(
            digitize([0.0, 0.5, 1.0, 1.5], [0.0, 1.0]), [1, 1, 1, 0]
        )

    def test_non_uniform_edges(self):
        edges = [0.0, 0.1, 5.0, 5.5, 100.0]
        np.testing.assert_array_equal(
            digitize([0.05, 0.1, 4.9, 5.2, 99.0, 100.0], edges), [1, 2, 2, 3, 4, 4]
        )

    def test_scalar_returns_int(self):
        assert isinstance(digitize(1.5, EDGES), int)

    def test_empty(self):
        assert len(digitize([], EDGES)) == 0

    @pytest.mark.parametrize(
        "edges",
        [[0.0], [], [0.0, 1.0, 1.0], [2.0, 1.0], [0.0, np.inf], [[0.0, 1.0]]],
    )
    def test_invalid_edges(self, edges):
        with pytest.raises(ContractViolation):
            digitize([0.5], edges)


class TestAccumulate:
    """Test grouping of atom indices by voxel."""

    def test_one_dimensional_padding(self):
        grid = accumulate([1, 2, 3], [3])

        assert isinstance(grid, VoxelGrid)
        assert grid.extent == (3, 1)
        assert grid.shape == (4, 2)
        assert grid.nominal_bins == (3, 1)
        np.testing.assert_array_equal(grid[1, 1], [0])
        np.testing.assert_array_equal(grid[2, 1], [1])
        np.testing.assert_array_equal(grid[3, 1], [2])
        assert grid.nonempty() == [(1, 1), (2, 1), (3, 1)]

    def test_empty_cells_present(self):
        grid = accumulate([[1, 1], [3, 3]], [3, 3])

        assert grid.size == 16
        for coords, members in grid:
            assert members.dtype == np.int64
            if coords not in [(1, 1), (3, 3)]:
                assert len(members) == 0

    def test_order_preserved(self):
        loc = np.array([[2, 1], [1, 1], [2, 1], [0, 1], [2, 1]])
        grid = accumulate(loc, [2, 1])

        np.testing.assert_array_equal(grid[2, 1], [0, 2, 4])
        np.testing.assert_array_equal(grid[1, 1], [1])
        np.testing.assert_array_equal(grid[0, 1], [3])

    def test_extent_growth(self):
        grid = accumulate([[5, 1], [1, 2]], [3, 3])

        assert grid.extent == (5, 3)
        assert grid.nominal_bins == (3, 3)
        np.testing.assert_array_equal(grid[5, 1], [0])

    def test_no_atoms(self):
        grid = accumulate(np.empty((0, 2), dtype=int), [2, 3])

        assert grid.extent == (2, 3)
        assert grid.total() == 0

    def test_dimension_mismatch(self):
        with pytest.raises(ContractViolation):
            accumulate([[1, 1], [2, 2]], [3])

    def test_negative_index(self):
        with pytest.raises(ContractViolation):
            accumulate([-1, 1], [3])

    def test_non_integer_index(self):
        with pytest.raises(ContractViolation, match="integers"):
            accumulate([1.7, 1.0], [3])

    def test_empty_list(self):
        grid = accumulate([], [3])

        assert grid.extent == (3, 1)
        assert grid.total() == 0

    def test_memory_warning(self, monkeypatch):
        monkeypatch.setattr(
            "aptvox.analysis.voxel.virtual_memory",
            lambda: SimpleNamespace(available=1),
        )

        with pytest.warns(UserWarning, match="requires approximately"):
            grid = accumulate([1, 2, 0, 3, 2], [3])

        assert grid.total() == 5
        np.testing.assert_array_equal(grid[2, 1], [1, 4])
        np.testing.assert_array_equal(grid[0, 1], [2])

    def test_memory_threshold(self):
        with pytest.warns(UserWarning, match="requires approximately"):
            grid = accumulate([[1, 1]], [1, 1], mem_threshold=0.0)

        assert grid.total() == 1

    def test_counts(self):
        grid = accumulate([1, 1, 3], [3])

        np.testing.assert_array_equal(grid.counts()[:, 1], [0, 2, 0, 1])
        assert grid.counts()[:, 0].sum() == 0
        assert grid.total() == 3


class TestMaterialize:
    """Test mapping of atom indices to positions."""

    def test_positions(self):
        pos = np.array([[0.0, 0.0, 0.0], [1.0, 1.0, 1.0], [2.0, 2.0, 2.0]])
        ids = accumulate([2, 1, 2], [2])

        grid = materialize(ids, pos)

        assert grid.shape == ids.shape
        np.testing.assert_array_equal(grid[1, 1], pos[[1]])
        np.testing.assert_array_equal(grid[2, 1], pos[[0, 2]])
        assert grid[0, 1].shape == (0, 3)

    def test_input_not_modified(self):
        ids = accumulate([1, 2], [2])
        materialize(ids, np.array([[5.0], [6.0]]))

        assert ids[1, 1].dtype == np.int64
        np.testing.assert_array_equal(ids[2, 1], [1])

    def test_positions_too_short(self):
        ids = accumulate([1, 2, 3], [3])

        with pytest.raises(ContractViolation, match="exceeds"):
            materialize(ids, np.zeros((2, 3)))


class TestVoxelize:
    """Test the full voxelization."""

    def test_one_dimensional(self):
        pos = np.array([[0.5, 10.0], [1.5, 20.0], [2.5, 30.0]])

        grid = voxelize(pos, pos[:, 0], [EDGES])

        assert grid.extent == (3, 1)
        assert grid.nonempty() == [(1, 1), (2, 1), (3, 1)]
        np.testing.assert_array_equal(grid[2, 1], [[1.5, 20.0]])

    def test_overflow_retained(self):
        pos = np.array([[-5.0], [0.5]])

        grid = voxelize(pos, pos, [EDGES])

        np.testing.assert_array_equal(grid[0, 1], [[-5.0]])
        np.testing.assert_array_equal(grid[1, 1], [[0.5]])
        assert len(grid[2, 1]) == 0 and len(grid[3, 1]) == 0
        assert grid.extent == (3, 1)

    def test_two_dimensional(self):
        pos = np.array([[0.5, 0.5], [2.5, 2.5]])

        grid = voxelize(pos, pos, [EDGES, EDGES])

        assert grid.extent == (3, 3)
        assert grid.nonempty() == [(1, 1), (3, 3)]
        np.testing.assert_array_equal(grid[1, 1], [[0.5, 0.5]])
        np.testing.assert_array_equal(grid[3, 3], [[2.5, 2.5]])

    def test_single_bin_left_edge(self):
        grid = voxelize([0.0], [0.0], [[0.0, 1.0]])

        assert grid.extent == (1, 1)
        np.testing.assert_array_equal(grid[1, 1], [[0.0]])

    def test_overflow_per_dimension(self):
        pos = np.array([[0.5, 4.0], [-1.0, 0.5]])

        grid = voxelize(pos, pos, [EDGES, EDGES], ids=True)

        np.testing.assert_array_equal(grid[1, 0], [0])
        np.testing.assert_array_equal(grid[0, 1], [1])

    def test_ids(self):
        pos = np.array([[2.5], [0.5], [2.9]])

        grid = voxelize(pos, pos, EDGES, ids=True)

        np.testing.assert_array_equal(grid[3, 1], [0, 2])
        np.testing.assert_array_equal(grid[1, 1], [1])

    def test_independent_of_configuration(self, tmp_path, monkeypatch):
        blocker = tmp_path / "notadir"
        blocker.write_text("")
        monkeypatch.setattr(config, "_CONFIG_DIR", blocker / "aptvox")
        monkeypatch.setattr(config, "_CONFIG_PATH", blocker / "aptvox" / "config.toml")

        grid = voxelize([[0.5]], [[0.5]], [[0.0, 1.0]])

        assert grid.total() == 1
        np.testing.assert_array_equal(grid[1, 1], [[0.5]])
        assert not (blocker / "aptvox").exists()
        assert config._config_cache is None

    def test_mem_threshold_option(self):
        with pytest.warns(UserWarning, match="requires approximately"):
            grid = voxelize([[0.5]], [[0.5]], [[0.0, 1.0]], mem_threshold=0.0)

        assert grid.total() == 1

    def test_feature_dimension_mismatch(self):
        pos = np.array([[0.5, 0.5]])
        with pytest.raises(ContractViolation, match="bin edge sets"):
            voxelize(pos, pos, [EDGES])

    def test_length_mismatch(self):
        with pytest.raises(ContractViolation, match="feature vectors"):
            voxelize(np.zeros((3, 3)), np.zeros((2, 1)), [EDGES])

    def test_no_edges(self):
        with pytest.raises(ContractViolation):
            voxelize(np.zeros((1, 1)), np.zeros((1, 1)), [])

    def test_invalid_edges(self):
        with pytest.raises(ContractViolation, match="dimension 1"):
            voxelize(np.zeros((1, 2)), np.zeros((1, 2)), [EDGES, [1.0, 0.0]])

    def test_empty_input(self):
        grid = voxelize(np.empty((0, 3)), np.empty((0, 3)), [EDGES] * 3)

        assert grid.extent == (3, 3, 3)
        assert grid.total() == 0
        assert grid[0, 0, 0].shape == (0, 3)

    def test_completeness_and_determinism(self):
        rng = np.random.default_rng(42)
        pos = rng.uniform(-1.0, 11.0, (500, 3))
        edges = [np.linspace(0.0, 10.0, 6), [0.0, 2.0, 9.0, 10.0], [0.0, 10.0]]

        first = voxelize(pos, pos, edges, ids=True)
        second = voxelize(pos, pos, edges, ids=True)

        members = np.concatenate([m for _, m in first])
        np.testing.assert_array_equal(np.sort(members), np.arange(500))
        np.testing.assert_array_equal(first.counts(), second.counts())
        for (_, a), (_, b) in zip(first, second):
            np.testing.assert_array_equal(a, b)
            assert np.all(np.diff(a) > 0)


class TestGetBinEdges:
    """Test generation of bin edges from position data."""

    def test_covers_data(self):
        rng = np.random.default_rng(0)
        pos = rng.uniform(-3.0, 7.0, (200, 3))

        edges = get_bin_edges(pos, 0.7)

        assert len(edges) == 3
        for d, e in enumerate(edges):
            assert e[0] == pos[:, d].min()
            assert e[-1] >= pos[:, d].max()
            np.testing.assert_allclose(np.diff(e), 0.7)
        assert voxelize(pos, pos, edges).counts()[0, :, :].sum() == 0

    def test_width_per_dimension(self):
        pos = np.array([[0.0, 0.0], [4.0, 4.0]])

        edges = get_bin_edges(pos, [1.0, 2.0])

        np.testing.assert_allclose(edges[0], [0.0, 1.0, 2.0, 3.0, 4.0])
        np.testing.assert_allclose(edges[1], [0.0, 2.0, 4.0])

    def test_default_width(self):
        edges = get_bin_edges(np.array([[0.0], [2.0]]))

        np.testing.assert_allclose(edges[0], [0.0, 1.0, 2.0])

    def test_degenerate_dimension(self):
        edges = get_bin_edges(np.array([[1.0, 0.0], [1.0, 3.0]]), 1.0)

        np.testing.assert_allclose(edges[0], [1.0, 2.0])

    @pytest.mark.parametrize("width", [0.0, -1.0, [1.0, 1.0, 1.0]])
    def test_invalid_width(self, width):
        with pytest.raises(ContractViolation):
            get_bin_edges(np.zeros((2, 2)), width)

    def test_empty(self):
        with pytest.raises(ContractViolation):
            get_bin_edges(np.empty((0, 3)), 1.0)
