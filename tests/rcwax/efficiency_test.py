"""Tests for `rcwax.efficiency`.

Copyright (c) Meta Platforms, Inc. and affiliates.
"""

import unittest
import warnings

import jax
import jax.numpy as jnp
import numpy as onp

from rcwax import (
    efficiency,
    errors,
    fft,
    harmonics,
    homogeneous,
    layer,
    scattering,
    sources,
)

# Enable 64-bit precision for higher-accuracy.
jax.config.update("jax_enable_x64", True)


def _efficiencies(reflection, transmission):
    reflection = jnp.asarray(reflection)
    transmission = jnp.asarray(transmission)
    num_terms = reflection.size
    return efficiency.DiffractionEfficiencies(
        reflection=reflection,
        transmission=transmission,
        reflected_field=jnp.zeros((3, num_terms), dtype=complex),
        transmitted_field=jnp.zeros((3, num_terms), dtype=complex),
    )


def _compute(expansion, lattice, excitation, reflection, transmission, layers):
    """Runs the pipeline step by step, returning the efficiencies."""
    wavevectors = harmonics.wavevector_matrices(
        wavelength=excitation.wavelength,
        polar_angle=excitation.polar_angle,
        azimuthal_angle=excitation.azimuthal_angle,
        lattice=lattice,
        harmonics=expansion,
        reflection_permittivity=reflection.permittivity,
        reflection_permeability=reflection.permeability,
        transmission_permittivity=transmission.permittivity,
        transmission_permeability=transmission.permeability,
    )
    gap = homogeneous.free_space_mode_basis(wavevectors.kx, wavevectors.ky)
    reflection_basis, reflection_s_matrix = homogeneous.half_space(
        reflection,
        wavevectors.kz_reflection,
        wavevectors,
        gap,
        homogeneous.Side.REFLECTION,
    )
    transmission_basis, transmission_s_matrix = homogeneous.half_space(
        transmission,
        wavevectors.kz_transmission,
        wavevectors,
        gap,
        homogeneous.Side.TRANSMISSION,
    )
    s_matrix = scattering.global_s_matrix(
        reflection_s_matrix,
        layer.layer_s_matrices(layers, wavevectors, excitation.wavelength, gap),
        transmission_s_matrix,
    )
    polarization = sources.polarization_vector(
        excitation.polar_angle,
        excitation.azimuthal_angle,
        excitation.pte,
        excitation.ptm,
    )
    return efficiency.diffraction_efficiencies(
        s_matrix=s_matrix,
        wavevectors=wavevectors,
        reflection_basis=reflection_basis,
        transmission_basis=transmission_basis,
        source=sources.source_vector(polarization, expansion),
        reflection_medium=reflection,
        transmission_medium=transmission,
        expansion=expansion,
    )


class EnergyConservationTest(unittest.TestCase):
    def test_conserved(self):
        efficiencies = _efficiencies([[0.1, 0.2, 0.0]], [[0.3, 0.4, 0.0]])
        with warnings.catch_warnings():
            warnings.simplefilter("error", errors.EnergyConservationWarning)
            self.assertTrue(efficiency.check_energy_conservation(efficiencies))
        onp.testing.assert_allclose(efficiencies.total_reflection, 0.3)
        onp.testing.assert_allclose(efficiencies.total_transmission, 0.7)
        onp.testing.assert_allclose(efficiencies.energy_residual, 0.0, atol=1e-15)

    def test_violated(self):
        efficiencies = _efficiencies([[0.3]], [[0.5]])
        with self.assertWarnsRegex(
            errors.EnergyConservationWarning, "Energy conservation violated"
        ):
            self.assertFalse(efficiency.check_energy_conservation(efficiencies))

    def test_tolerance(self):
        efficiencies = _efficiencies([[0.3]], [[0.699]])
        with warnings.catch_warnings():
            warnings.simplefilter("error", errors.EnergyConservationWarning)
            self.assertTrue(
                efficiency.check_energy_conservation(efficiencies, tolerance=1e-2)
            )

    def test_warning_is_runtime_warning(self):
        self.assertTrue(issubclass(errors.EnergyConservationWarning, RuntimeWarning))


class DiffractionEfficienciesTest(unittest.TestCase):
    def test_interface(self):
        expansion = harmonics.Harmonics(3, 3)
        result = _compute(
            expansion=expansion,
            lattice=harmonics.Lattice(0.6, 0.6),
            excitation=sources.Excitation(wavelength=1.0),
            reflection=homogeneous.Medium(2.0),
            transmission=homogeneous.Medium(9.0),
            layers=[],
        )
        self.assertSequenceEqual(result.reflection.shape, (3, 3))
        self.assertSequenceEqual(result.transmission.shape, (3, 3))
        self.assertSequenceEqual(result.reflected_field.shape, (3, 9))
        expected_r = ((jnp.sqrt(2.0) - 3.0) / (jnp.sqrt(2.0) + 3.0)) ** 2
        onp.testing.assert_allclose(result.reflection[1, 1], expected_r, rtol=1e-10)
        onp.testing.assert_allclose(result.transmission[1, 1], 1 - expected_r)
        # A planar interface does not couple to other orders.
        onp.testing.assert_allclose(result.total_reflection, expected_r, rtol=1e-10)
        # The TE-polarized reflection is along y.
        onp.testing.assert_allclose(
            result.reflected_field[:, expansion.zero_order_index],
            [0.0, -jnp.sqrt(expected_r), 0.0],
            atol=1e-12,
        )

    def test_reflected_field_is_transverse(self):
        expansion = harmonics.Harmonics(3, 1)
        lattice = harmonics.Lattice(1.5, 1.0)
        x = jnp.arange(64) / 64
        permittivity = (2.5 + 0.5 * jnp.cos(2 * jnp.pi * x))[:, jnp.newaxis]
        grating = layer.Layer(
            thickness=0.4,
            permittivity_matrix=fft.convolution_matrix(permittivity, expansion),
            permeability_matrix=jnp.eye(3, dtype=complex),
        )
        excitation = sources.Excitation(
            wavelength=1.0, polar_angle=0.2, azimuthal_angle=0.5, pte=0.6, ptm=0.8
        )
        result = _compute(
            expansion=expansion,
            lattice=lattice,
            excitation=excitation,
            reflection=homogeneous.Medium(1.0),
            transmission=homogeneous.Medium(2.25),
            layers=[grating],
        )
        wavevectors = harmonics.wavevector_matrices(
            wavelength=1.0,
            polar_angle=0.2,
            azimuthal_angle=0.5,
            lattice=lattice,
            harmonics=expansion,
            reflection_permittivity=1.0,
            reflection_permeability=1.0,
            transmission_permittivity=2.25,
            transmission_permeability=1.0,
        )
        k_reflected = jnp.stack(
            [wavevectors.kx, wavevectors.ky, -wavevectors.kz_reflection]
        )
        onp.testing.assert_allclose(
            jnp.sum(k_reflected * result.reflected_field, axis=0), 0.0, atol=1e-12
        )
        k_transmitted = jnp.stack(
            [wavevectors.kx, wavevectors.ky, wavevectors.kz_transmission]
        )
        onp.testing.assert_allclose(
            jnp.sum(k_transmitted * result.transmitted_field, axis=0), 0.0, atol=1e-12
        )

    def test_source_shape_mismatch(self):
        expansion = harmonics.Harmonics(1, 1)
        wavevectors = harmonics.wavevector_matrices(
            wavelength=1.0,
            polar_angle=0.0,
            azimuthal_angle=0.0,
            lattice=harmonics.Lattice(1.0, 1.0),
            harmonics=expansion,
            reflection_permittivity=1.0,
            reflection_permeability=1.0,
            transmission_permittivity=1.0,
            transmission_permeability=1.0,
        )
        gap = homogeneous.free_space_mode_basis(wavevectors.kx, wavevectors.ky)
        with self.assertRaises(errors.InconsistentHarmonicCountError):
            efficiency.diffraction_efficiencies(
                s_matrix=scattering.pass_through(2),
                wavevectors=wavevectors,
                reflection_basis=gap,
                transmission_basis=gap,
                source=jnp.zeros((6,), dtype=complex),
                reflection_medium=homogeneous.Medium(1.0),
                transmission_medium=homogeneous.Medium(1.0),
                expansion=expansion,
            )
