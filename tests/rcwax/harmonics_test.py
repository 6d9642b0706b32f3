"""Tests for `rcwax.harmonics`.

Copyright (c) Meta Platforms, Inc. and affiliates.
"""

import unittest

import jax
import jax.numpy as jnp
import numpy as onp
import parameterized

from rcwax import harmonics

# Enable 64-bit precision for higher-accuracy.
jax.config.update("jax_enable_x64", True)


class HarmonicsTest(unittest.TestCase):
    @parameterized.parameterized.expand([[0, 1], [2, 1], [1, 4], [-3, 3]])
    def test_even_or_nonpositive_counts_rejected(self, num_x, num_y):
        with self.assertRaisesRegex(ValueError, "must be a positive odd integer"):
            harmonics.Harmonics(num_x, num_y)

    def test_orders_match_linear_index(self):
        expansion = harmonics.Harmonics(3, 5)
        self.assertEqual(expansion.num_terms, 15)
        self.assertSequenceEqual(expansion.orders.shape, (15, 2))
        for p in range(-1, 2):
            for q in range(-2, 3):
                with self.subTest(p=p, q=q):
                    m = harmonics.linear_index(expansion, p, q)
                    onp.testing.assert_array_equal(expansion.orders[m], (p, q))

    def test_q_varies_fastest(self):
        expansion = harmonics.Harmonics(3, 3)
        onp.testing.assert_array_equal(
            expansion.orders[:4], [[-1, -1], [-1, 0], [-1, 1], [0, -1]]
        )

    @parameterized.parameterized.expand(
        [[(1, 1), 0], [(3, 1), 1], [(1, 3), 1], [(3, 3), 4], [(5, 7), 17]]
    )
    def test_zero_order_index(self, shape, expected):
        self.assertEqual(harmonics.Harmonics(*shape).zero_order_index, expected)

    @parameterized.parameterized.expand([[2, 0], [0, 2], [-2, -2]])
    def test_linear_index_out_of_range(self, p, q):
        with self.assertRaisesRegex(ValueError, "outside the expansion"):
            harmonics.linear_index(harmonics.Harmonics(3, 3), p, q)

    def test_to_grid(self):
        expansion = harmonics.Harmonics(3, 5)
        values = jnp.arange(15)
        grid = harmonics.to_grid(values, expansion)
        self.assertSequenceEqual(grid.shape, (3, 5))
        self.assertEqual(grid[2, 1], harmonics.linear_index(expansion, 1, -1))

    def test_to_grid_shape_validation(self):
        with self.assertRaisesRegex(ValueError, "trailing dimension of 9"):
            harmonics.to_grid(jnp.ones((4,)), harmonics.Harmonics(3, 3))


class LatticeTest(unittest.TestCase):
    @parameterized.parameterized.expand([[0.0, 1.0], [1.0, -1.0]])
    def test_nonpositive_period_rejected(self, period_x, period_y):
        with self.assertRaisesRegex(ValueError, "must be positive"):
            harmonics.Lattice(period_x, period_y)


class WavevectorTest(unittest.TestCase):
    def test_incident_wavevector(self):
        incident = harmonics.incident_wavevector(
            polar_angle=jnp.pi / 6,
            azimuthal_angle=jnp.pi / 2,
            permittivity=4.0,
            permeability=1.0,
        )
        onp.testing.assert_allclose(
            incident, [0.0, 1.0, jnp.sqrt(3.0)], rtol=1e-12, atol=1e-15
        )

    def test_transverse_wavevectors(self):
        expansion = harmonics.Harmonics(3, 1)
        incident = jnp.asarray([0.0, 0.0, 1.0], dtype=complex)
        kx, ky = harmonics.transverse_wavevectors(
            incident,
            wavelength=1.0,
            lattice=harmonics.Lattice(2.0, 1.0),
            harmonics=expansion,
        )
        onp.testing.assert_allclose(kx, [0.5, 0.0, -0.5], atol=1e-15)
        onp.testing.assert_allclose(ky, [0.0, 0.0, 0.0], atol=1e-15)

    def test_transverse_wavevectors_oblique(self):
        expansion = harmonics.Harmonics(1, 3)
        incident = jnp.asarray([0.2, 0.3, 0.9], dtype=complex)
        kx, ky = harmonics.transverse_wavevectors(
            incident,
            wavelength=0.5,
            lattice=harmonics.Lattice(1.0, 2.0),
            harmonics=expansion,
        )
        onp.testing.assert_allclose(kx, [0.2, 0.2, 0.2], atol=1e-15)
        onp.testing.assert_allclose(ky, [0.55, 0.3, 0.05], atol=1e-15)

    def test_longitudinal_wavevector_propagating_and_evanescent(self):
        kx = jnp.asarray([0.0, 0.6, 2.0], dtype=complex)
        ky = jnp.zeros_like(kx)
        kz = harmonics.longitudinal_wavevector(kx, ky, permittivity=1.0, permeability=1)
        onp.testing.assert_allclose(
            kz, [1.0, 0.8, -jnp.sqrt(3.0) * 1j], rtol=1e-12, atol=1e-15
        )

    def test_longitudinal_wavevector_lossy(self):
        # The root has positive real part, and conjugation makes the imaginary
        # part negative for absorbing media.
        kx = jnp.zeros((1,), dtype=complex)
        kz = harmonics.longitudinal_wavevector(
            kx, kx, permittivity=-3 + 4j, permeability=1.0
        )
        onp.testing.assert_allclose(kz, [1 - 2j], rtol=1e-12)

    def test_wavevector_matrices(self):
        expansion = harmonics.Harmonics(3, 3)
        wavevectors = harmonics.wavevector_matrices(
            wavelength=1.0,
            polar_angle=0.0,
            azimuthal_angle=0.0,
            lattice=harmonics.Lattice(0.7, 0.8),
            harmonics=expansion,
            reflection_permittivity=1.0,
            reflection_permeability=1.0,
            transmission_permittivity=2.25,
            transmission_permeability=1.0,
        )
        self.assertEqual(wavevectors.num_terms, 9)
        self.assertSequenceEqual(wavevectors.kx_matrix.shape, (9, 9))
        self.assertSequenceEqual(wavevectors.kz_transmission_matrix.shape, (9, 9))
        m = expansion.zero_order_index
        onp.testing.assert_allclose(wavevectors.kz_reflection[m], 1.0)
        onp.testing.assert_allclose(wavevectors.kz_transmission[m], 1.5)

    def test_wavelength_validation(self):
        with self.assertRaisesRegex(ValueError, "`wavelength` must be positive"):
            harmonics.wavevector_matrices(
                wavelength=-1.0,
                polar_angle=0.0,
                azimuthal_angle=0.0,
                lattice=harmonics.Lattice(1.0, 1.0),
                harmonics=harmonics.Harmonics(1, 1),
                reflection_permittivity=1.0,
                reflection_permeability=1.0,
                transmission_permittivity=1.0,
                transmission_permeability=1.0,
            )

    def test_pytree_flatten_unflatten(self):
        expansion = harmonics.Harmonics(3, 5)
        leaves, treedef = jax.tree_util.tree_flatten(expansion)
        self.assertEqual(leaves, [])
        self.assertEqual(jax.tree_util.tree_unflatten(treedef, leaves), expansion)
