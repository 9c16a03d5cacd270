"""
Tests for the transport building blocks: mesh, quadrature, bases, side
frames, boundary conditions, sweep and diffusion operator.
"""
import pytest
import numpy as np
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from respmat.errors import ConfigurationError
from respmat.data.materials import Materials, c5g7_materials, slab_materials
from respmat.transport.mesh import Mesh2D, LEFT, RIGHT, BOTTOM, TOP
from respmat.transport.quadrature import ProductQuadrature
from respmat.transport.basis import discrete_legendre
from respmat.transport.frames import SIDE_FRAMES, gather_half_range, split_half_range, mirror_halves
from respmat.transport.boundary import BoundaryMesh, ResponseCondition, IN
from respmat.transport.diffusion import DiffusionOperator
from respmat.transport.context import SolveContext, RunBudget
from respmat.transport.sources import ExternalSource
from respmat.errors import BudgetExceeded


def one_group(sigma_t=1.0, sigma_s=0.5):
    return Materials(sigma_t=[[sigma_t]], sigma_s=[[[sigma_s]]])


class TestMesh:
    def test_uniform(self):
        mesh = Mesh2D.uniform(3, 2, 3.0, 4.0)
        assert mesh.number_cells == 6
        assert mesh.width_x == pytest.approx(3.0)
        assert mesh.width_y == pytest.approx(4.0)
        np.testing.assert_allclose(mesh.volumes(), np.full(6, 2.0))
        assert mesh.number_cells_on_side(LEFT) == 2
        assert mesh.number_cells_on_side(TOP) == 3

    def test_pin_map_picture_orientation(self):
        # First row of the picture is the top of the lattice
        mesh = Mesh2D.from_pin_map([[1, 2], [0, 0]], pitch=1.0, cells_per_pin=1)
        assert mesh.mat_map[0, 1] == 1
        assert mesh.mat_map[1, 1] == 2
        assert mesh.mat_map[0, 0] == 0
        # flattened x fastest
        np.testing.assert_array_equal(mesh.mat, [0, 0, 1, 2])

    def test_square_symmetry(self):
        assert Mesh2D.from_pin_map([[0, 0, 0], [0, 1, 0], [0, 0, 0]], 1.26, 2).is_square_symmetric()
        assert not Mesh2D.from_pin_map([[0, 1], [0, 0]], 1.26, 1).is_square_symmetric()
        assert not Mesh2D.uniform(2, 3, 2.0, 3.0).is_square_symmetric()

    def test_bad_coarse_map(self):
        with pytest.raises(ConfigurationError):
            Mesh2D([1, 1], [1], [0.0, 1.0, 2.0], [0.0, 1.0], [[0, 0], [0, 0]])


class TestQuadrature:
    def test_weights_sum_to_one(self):
        quad = ProductQuadrature(3, 2)
        assert 4 * quad.weights().sum() == pytest.approx(1.0)

    def test_direction_cosines(self):
        quad = ProductQuadrature(2, 2)
        mu, eta = quad.mu(0), quad.eta(0)
        assert np.all(mu > 0) and np.all(eta > 0)
        assert np.all(quad.mu(1) < 0) and np.all(quad.eta(1) > 0)
        assert np.all(quad.mu(2) < 0) and np.all(quad.eta(2) < 0)
        assert np.all(quad.mu(3) > 0) and np.all(quad.eta(3) < 0)
        assert np.all(mu ** 2 + eta ** 2 < 1.0)

    def test_angle_index(self):
        quad = ProductQuadrature(3, 2)
        assert quad.angle(2, 1) == 5
        assert quad.number_angles == 24

    def test_rejects_empty(self):
        with pytest.raises(ConfigurationError):
            ProductQuadrature(0, 1)


class TestBasis:
    def test_orthonormal(self):
        B = discrete_legendre(6)
        np.testing.assert_allclose(B.T @ B, np.eye(6), atol=1e-12)

    def test_parity(self):
        B = discrete_legendre(5, 3)
        for k in range(4):
            np.testing.assert_allclose(B[::-1, k], (-1) ** k * B[:, k], atol=1e-12)

    def test_constant_column(self):
        B = discrete_legendre(4, 0)
        np.testing.assert_allclose(B[:, 0], np.full(4, 0.5))

    def test_order_too_high(self):
        with pytest.raises(ConfigurationError):
            discrete_legendre(3, 3)


class TestFrames:
    def test_half_range_round_trip(self):
        rng = np.random.default_rng(0)
        first, second = rng.random((4, 6)), rng.random((4, 6))
        combined = gather_half_range(first, second, number_polar=2)
        assert combined.shape == (4, 6, 2)
        f2, s2 = split_half_range(combined)
        np.testing.assert_array_equal(f2, first)
        np.testing.assert_array_equal(s2, second)

    def test_first_octant_reversed(self):
        first = np.array([[1.0, 2.0, 3.0]])
        second = np.array([[4.0, 5.0, 6.0]])
        combined = gather_half_range(first, second, number_polar=1)
        np.testing.assert_array_equal(combined[0, :, 0], [3, 2, 1, 4, 5, 6])

    def test_mirror_halves(self):
        np.testing.assert_array_equal(mirror_halves(np.arange(4)), [1, 0, 3, 2])

    def test_frames_partition_octants(self):
        for frame in SIDE_FRAMES.values():
            assert sorted(frame.outgoing + frame.incident) == [0, 1, 2, 3]


class TestBoundary:
    def test_response_condition_only_in_its_group(self):
        mesh = Mesh2D.uniform(3, 3, 3.0, 3.0)
        quad = ProductQuadrature(2, 1)
        boundary = BoundaryMesh(mesh, quad, 2, {LEFT: ResponseCondition(LEFT, group=1)})
        boundary.set()
        assert np.all(boundary.psi[0][LEFT][IN] == 0.0)
        psi = boundary.psi[1][LEFT][IN]
        # flat mode: 1/sqrt(3 cells * 4 azimuths * 1 polar) on both incident octants
        value = 1.0 / np.sqrt(12.0)
        for octant in SIDE_FRAMES[LEFT].incident:
            np.testing.assert_allclose(psi[octant], value)
        for octant in SIDE_FRAMES[LEFT].outgoing:
            assert np.all(psi[octant] == 0.0)

    def test_reset_clears_incident(self):
        mesh = Mesh2D.uniform(2, 2, 2.0, 2.0)
        boundary = BoundaryMesh(mesh, ProductQuadrature(1, 1), 1, {RIGHT: ResponseCondition(RIGHT, 0)})
        boundary.set()
        assert boundary.psi[0][RIGHT][IN].any()
        boundary.reset()
        assert not boundary.psi[0][RIGHT][IN].any()

    def test_unknown_type(self):
        mesh = Mesh2D.uniform(2, 2, 2.0, 2.0)
        with pytest.raises(ConfigurationError):
            BoundaryMesh(mesh, ProductQuadrature(1, 1), 1, {LEFT: "response"})


class TestSweeper:
    def test_infinite_medium_pure_absorber(self):
        # Reflecting box, no scatter: one converged sweep gives q / sigma_t
        mesh = Mesh2D.uniform(3, 3, 3.0, 3.0)
        ctx = SolveContext(mesh, one_group(2.0, 0.0), ProductQuadrature(2, 1),
                           {s: "reflect" for s in (LEFT, RIGHT, BOTTOM, TOP)})
        q = np.ones(mesh.number_cells)
        ctx.boundary.set()
        phi = None
        for _ in range(50):
            ctx.boundary.set_group(0)
            ctx.boundary.update()
            phi = ctx.sweeper.sweep(q, 0)
        np.testing.assert_allclose(phi, 0.5, rtol=1e-10)

    def test_vacuum_leaks(self):
        mesh = Mesh2D.uniform(4, 4, 4.0, 4.0)
        ctx = SolveContext(mesh, one_group(1.0, 0.0), ProductQuadrature(2, 2))
        ctx.boundary.set()
        phi = ctx.sweeper.sweep(np.ones(mesh.number_cells), 0)
        assert np.all(phi > 0.0) and phi.mean() < 1.0
        # symmetric problem, symmetric flux
        phi2 = phi.reshape(4, 4)
        np.testing.assert_allclose(phi2, phi2.T, rtol=1e-12)
        np.testing.assert_allclose(phi2, phi2[::-1, :], rtol=1e-12)

    def test_outgoing_written(self):
        mesh = Mesh2D.uniform(2, 2, 2.0, 2.0)
        ctx = SolveContext(mesh, one_group(), ProductQuadrature(1, 1))
        ctx.boundary.set()
        ctx.sweeper.sweep(np.ones(4), 0)
        ctx.boundary.initialize(0)
        for side, frame in SIDE_FRAMES.items():
            for octant in frame.outgoing:
                assert np.all(ctx.boundary.outgoing(side, octant) > 0.0)


class TestDiffusion:
    def test_reflective_rows_sum_to_removal(self):
        mats = slab_materials(2)
        mesh = Mesh2D.from_pin_map([[1, 0], [0, 1]], pitch=1.0, cells_per_pin=2)
        op = DiffusionOperator(mesh, mats, {s: "reflect" for s in (LEFT, RIGHT, BOTTOM, TOP)})
        A = op.build_1g_matrix(1)
        removal = mats.sigma_t[mesh.mat, 1] - mats.sigma_s[mesh.mat, 1, 1]
        np.testing.assert_allclose(A @ np.ones(mesh.number_cells), removal, atol=1e-12)

    def test_vacuum_adds_leakage(self):
        mats = one_group(1.0, 0.9)
        mesh = Mesh2D.uniform(3, 3, 3.0, 3.0)
        A = DiffusionOperator(mesh, mats).build_1g_matrix(0)
        row_sums = np.asarray(A.sum(axis=1)).ravel()
        assert np.all(row_sums > 0.1 - 1e-12)
        # corner cells leak through two faces, the centre through none
        assert row_sums[0] > row_sums[1] > row_sums[4]
        assert row_sums[4] == pytest.approx(0.1)

    def test_solve(self):
        mats = c5g7_materials(["uo2"])
        mesh = Mesh2D.uniform(2, 2, 1.26, 1.26)
        op = DiffusionOperator(mesh, mats)
        b = np.ones(mesh.number_cells)
        x = op.get_1g_operator(3).solve(b)
        np.testing.assert_allclose(op.build_1g_matrix(3) @ x, b, rtol=1e-10)
        assert op.get_1g_operator(3) is op.get_1g_operator(3)


class TestContext:
    def test_budget(self):
        budget = RunBudget(max_seconds=0.0)
        with pytest.raises(BudgetExceeded):
            budget.check()
        RunBudget().check()

    def test_material_out_of_range(self):
        mesh = Mesh2D.uniform(2, 2, 2.0, 2.0, material=3)
        with pytest.raises(ConfigurationError):
            SolveContext(mesh, one_group(), ProductQuadrature(1, 1))

    def test_external_source_shape(self):
        mesh = Mesh2D.uniform(2, 2, 2.0, 2.0)
        with pytest.raises(ConfigurationError):
            SolveContext(mesh, one_group(), ProductQuadrature(1, 1),
                         external=ExternalSource(5, 1))
