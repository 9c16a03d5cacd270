"""
Tests for the response pipeline: mode indexing, expansion, rotational
symmetry, connectivity, assembly and the global eigenvalue estimate.
"""
import pytest
import numpy as np
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from scipy import sparse

from respmat.errors import ConfigurationError, BudgetExceeded
from respmat.data.materials import Materials, c5g7_materials
from respmat.transport.mesh import Mesh2D, LEFT, RIGHT, BOTTOM, TOP
from respmat.response import (
    ModeIndex, ResponseExpander, SYMMETRY_TABLE, ResponseMatrixAssembler,
    build_response_matrix, replicate, top_k_eigenvalues, build_connectivity,
    generate_responses,
)
from respmat.response.connect import crossing_parity
from respmat.utils.config import SolverConfig, ResponseConfig


def one_group(sigma_t=1.0, sigma_s=0.5):
    return Materials(sigma_t=[[sigma_t]], sigma_s=[[[sigma_s]]])


def small_expander(max_order_space=1, max_order_azimuth=1, n=3, materials=None, **solver_kw):
    solver_kw.setdefault("inner_tolerance", 1e-12)
    solver_kw.setdefault("multiplying", False)
    mesh = Mesh2D.uniform(n, n, 3.0, 3.0)
    solver_cfg = SolverConfig(number_groups=1, number_azimuth=2, number_polar=1, **solver_kw)
    response_cfg = ResponseConfig(max_order_space=max_order_space,
                                  max_order_azimuth=max_order_azimuth)
    return ResponseExpander(mesh, materials or one_group(), solver_cfg, response_cfg)


# ──────────────────────────────────────────────────────────────────────────────
# Mode index
# ──────────────────────────────────────────────────────────────────────────────

class TestModeIndex:
    def test_size(self):
        idx = ModeIndex(7, 2, 1, 0)
        assert idx.modes_per_group == 6
        assert idx.size == 42
        assert len(idx) == 42

    def test_bijection(self):
        idx = ModeIndex(2, 2, 3, 1)
        seen = set()
        for k in range(idx.size):
            g, s, a, p = idx.unravel(k)
            assert idx.index(g, s, a, p) == k
            seen.add((g, s, a, p))
        assert len(seen) == idx.size

    def test_polar_innermost(self):
        idx = ModeIndex(2, 1, 1, 1)
        assert idx.index(0, 0, 0, 1) == 1
        assert idx.index(0, 0, 1, 0) == 2
        assert idx.index(0, 1, 0, 0) == 4
        assert idx.index(1, 0, 0, 0) == 8
        assert idx.group_slice(1) == slice(8, 16)

    def test_out_of_range(self):
        idx = ModeIndex(1, 1, 1, 0)
        with pytest.raises(IndexError):
            idx.index(0, 2, 0, 0)
        with pytest.raises(IndexError):
            idx.unravel(4)

    def test_negative_order(self):
        with pytest.raises(ConfigurationError):
            ModeIndex(1, -1)


# ──────────────────────────────────────────────────────────────────────────────
# Expansion
# ──────────────────────────────────────────────────────────────────────────────

class TestResponseExpander:
    def test_shapes_and_status(self):
        expander = small_expander()
        expansion = expander.expand()
        assert expansion.coef.shape == (4, 4, 4)
        assert expansion.failed_modes == []
        assert all(out.converged for out in expansion.outputs)

    def test_flat_mode_response_positive(self):
        # thin cells, so the uncollided beam dominates what leaves the far side
        expander = small_expander(0, 0, n=6, materials=one_group(0.2, 0.1))
        expansion = expander.expand()
        coef = expansion.coef[:, 0, 0]
        assert np.all(coef > 0.0)
        # reflection and transmission differ, the two lateral sides agree
        assert coef[BOTTOM] == pytest.approx(coef[TOP], rel=1e-8)
        assert coef[LEFT] != pytest.approx(coef[RIGHT])

    def test_rotational_symmetry(self):
        expander = small_expander()
        expansion = expander.expand()
        for inc in (LEFT, RIGHT, BOTTOM, TOP):
            for k in range(expander.number_modes):
                columns, out = expander.solve_mode(k, side=inc)
                assert out.converged
                for side in (LEFT, RIGHT, BOTTOM, TOP):
                    expected = expansion.coef[SYMMETRY_TABLE[side][inc]][:, k]
                    np.testing.assert_allclose(columns[side], expected, atol=1e-9)

    def test_linear_in_amplitude(self):
        expander = small_expander()
        single, _ = expander.solve_mode(3)
        double, _ = expander.solve_mode(3, amplitude=2.0)
        for side in (LEFT, RIGHT, BOTTOM, TOP):
            np.testing.assert_allclose(double[side], 2.0 * single[side], rtol=1e-8, atol=1e-12)

    def test_process_pool_matches_serial(self):
        serial = small_expander().expand()
        expander = small_expander()
        expander.response_cfg.n_workers = 2
        pooled = expander.expand()
        assert pooled.failed_modes == []
        assert all(out.converged for out in pooled.outputs)
        np.testing.assert_allclose(pooled.coef, serial.coef, rtol=1e-12, atol=1e-14)

    def test_source_iteration_agrees(self):
        krylov = small_expander(0, 1).expand()
        si = small_expander(0, 1, inner_solver="si", inner_max_iters=1000).expand()
        np.testing.assert_allclose(si.coef, krylov.coef, atol=1e-8)

    def test_order_too_high(self):
        with pytest.raises(ConfigurationError):
            small_expander(max_order_space=3)
        with pytest.raises(ConfigurationError):
            small_expander(max_order_azimuth=4)

    def test_failure_skip(self):
        expander = small_expander(0, 0, max_seconds=0.0)
        expander.response_cfg.on_failure = "skip"
        expansion = expander.expand()
        assert expansion.failed_modes == [0]
        assert expansion.outputs == [None]
        assert not expansion.coef.any()

    def test_failure_raise(self):
        expander = small_expander(0, 0, max_seconds=0.0)
        with pytest.raises(BudgetExceeded):
            expander.expand()


# ──────────────────────────────────────────────────────────────────────────────
# Connectivity and assembly
# ──────────────────────────────────────────────────────────────────────────────

class TestConnectivity:
    def test_parity(self):
        np.testing.assert_array_equal(crossing_parity(ModeIndex(1, 1, 1, 0)), [1, -1, -1, 1])

    def test_single_reflecting_cell_is_identity(self):
        idx = ModeIndex(2, 1, 0, 0)
        M = build_connectivity(idx)
        np.testing.assert_array_equal(M.toarray(), np.eye(16))

    def test_single_vacuum_cell_is_zero(self):
        bc = {name: "vacuum" for name in ("left", "right", "bottom", "top")}
        M = build_connectivity(ModeIndex(1), bc=bc)
        assert M.shape == (4, 4)
        assert M.nnz == 0

    def test_neighbours(self):
        idx = ModeIndex(1, 1, 0, 0)
        m = idx.size
        M = build_connectivity(idx, number_x=2, number_y=1, bc={"left": "vacuum"}).toarray()
        assert M.shape == (16, 16)

        def block(e_dst, side_dst, e_src, side_src):
            r, c = (e_dst * 4 + side_dst) * m, (e_src * 4 + side_src) * m
            return M[r:r + m, c:c + m]

        # element 0 right <- element 1 left, with the crossing parity
        np.testing.assert_array_equal(block(0, RIGHT, 1, LEFT), np.diag([1.0, -1.0]))
        np.testing.assert_array_equal(block(1, LEFT, 0, RIGHT), np.diag([1.0, -1.0]))
        # vacuum on the outer left, reflection on the outer right
        assert not block(0, LEFT, 0, LEFT).any()
        np.testing.assert_array_equal(block(1, RIGHT, 1, RIGHT), np.eye(m))
        # every row has at most one coupling
        assert np.all(np.count_nonzero(M, axis=1) <= 1)

    def test_invalid_boundary(self):
        with pytest.raises(ConfigurationError):
            build_connectivity(ModeIndex(1), bc={"left": "response"})
        with pytest.raises(ConfigurationError):
            build_connectivity(ModeIndex(1), bc={"north": "vacuum"})
        with pytest.raises(ConfigurationError):
            build_connectivity(ModeIndex(1), number_x=0)


class TestAssembler:
    def test_blocks_follow_symmetry_table(self):
        m = 3
        coef = np.stack([np.full((m, m), float(i)) for i in range(4)])
        R = build_response_matrix(coef)
        assert R.shape == (12, 12)
        for out in range(4):
            for inc in range(4):
                assert np.all(R[out * m:(out + 1) * m, inc * m:(inc + 1) * m] == SYMMETRY_TABLE[out][inc])

    def test_table_is_a_latin_square(self):
        table = np.array(SYMMETRY_TABLE)
        for i in range(4):
            assert sorted(table[i]) == [0, 1, 2, 3]
            assert sorted(table[:, i]) == [0, 1, 2, 3]
        np.testing.assert_array_equal(np.diag(table), 0)

    def test_replicate(self):
        R = np.arange(16.0).reshape(4, 4)
        G = replicate(R, 3)
        assert sparse.issparse(G)
        dense = G.toarray()
        np.testing.assert_array_equal(dense[4:8, 4:8], R)
        assert not dense[0:4, 4:8].any()

    def test_top_k_sorted(self):
        A = sparse.diags(np.arange(1.0, 21.0))
        vals = top_k_eigenvalues(A, 3)
        np.testing.assert_allclose(vals.real, [20.0, 19.0, 18.0])

    def test_top_k_dense_fallback(self):
        vals = top_k_eigenvalues(np.diag([1.0, 3.0, 2.0]), 3)
        np.testing.assert_allclose(vals.real, [3.0, 2.0, 1.0])

    def test_top_k_rejects_other_orderings(self):
        with pytest.raises(ConfigurationError):
            top_k_eigenvalues(np.eye(3), 1, which="LM")

    def test_size_mismatch(self):
        M = build_connectivity(ModeIndex(2))
        assembler = ResponseMatrixAssembler(M, 1)
        with pytest.raises(ConfigurationError):
            assembler.assemble(np.zeros((4, 1, 1)))

    def test_reflecting_identity_eigenvalue(self):
        # With M = I the eigenvalues are those of R itself
        coef = np.zeros((4, 1, 1))
        coef[0] = 0.5
        coef[1] = 0.25
        M = build_connectivity(ModeIndex(1))
        assembler = ResponseMatrixAssembler(M, 1)
        R = assembler.assemble(coef)
        vals = assembler.eigenvalues(R, 3)
        np.testing.assert_allclose(vals.real, [0.75, 0.75, 0.25], atol=1e-12)


# ──────────────────────────────────────────────────────────────────────────────
# End-to-end
# ──────────────────────────────────────────────────────────────────────────────

class TestGenerateResponses:
    def test_infinite_lattice_recovers_kinf(self):
        # A reflected homogeneous cell at keff = kinf is exactly critical
        mats = c5g7_materials(["uo2"])
        kinf = mats.kinf(0)
        mesh = Mesh2D.uniform(2, 2, 1.26, 1.26)
        solver_cfg = SolverConfig(number_groups=7, number_azimuth=2, number_polar=1,
                                  inner_tolerance=1e-11, multiplying=True, keff=kinf)
        response_cfg = ResponseConfig(keff=kinf, number_eigenvalues=4)
        result = generate_responses(mesh, mats, solver_cfg, response_cfg)

        assert result.coef.shape == (4, 7, 7)
        assert result.R.shape == (28, 28)
        assert len(result.eigenvalues) == 4
        assert np.all(np.diff(result.eigenvalues.real) <= 1e-12)
        assert result.eigenvalues[0].real == pytest.approx(1.0, abs=1e-6)
        assert np.all(result.eigenvalues.real <= kinf)
        assert abs(result.eigenvalues[0].imag) < 1e-8
        assert result.mode_status == ["converged"] * 7
        assert result.metadata["number_groups"] == 7

    def test_subcritical_below_one(self):
        mats = c5g7_materials(["uo2"])
        mesh = Mesh2D.uniform(2, 2, 1.26, 1.26)
        solver_cfg = SolverConfig(number_groups=7, inner_tolerance=1e-10, keff=2.0)
        response_cfg = ResponseConfig(keff=2.0, number_eigenvalues=2)
        result = generate_responses(mesh, mats, solver_cfg, response_cfg,
                                    lattice=(2, 1), outer_bc={"left": "vacuum"})
        assert 0.0 < result.dominant_eigenvalue < 1.0
        assert result.metadata["lattice"] == [2, 1]

    def test_metadata_and_config_recorded(self):
        mesh = Mesh2D.uniform(2, 2, 2.0, 2.0)
        solver_cfg = SolverConfig(number_groups=1, multiplying=False)
        response_cfg = ResponseConfig(number_eigenvalues=3)
        result = generate_responses(mesh, one_group(), solver_cfg, response_cfg,
                                    metadata={"name": "slab"})
        assert result.metadata["name"] == "slab"
        assert result.config["response"]["number_eigenvalues"] == 3
        assert result.config["solver"]["multiplying"] is False
        # non-multiplying absorber: every eigenvalue below one
        assert result.dominant_eigenvalue < 1.0
