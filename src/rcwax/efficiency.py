"""Functions related to diffraction efficiencies computed from scattering matrices.

Copyright (c) Meta Platforms, Inc. and affiliates.
"""

import dataclasses
import warnings

import jax
import jax.numpy as jnp

from rcwax import errors, harmonics, homogeneous, scattering, utils

# Tolerance on `|1 - R - T|` for lossless devices.
ENERGY_TOLERANCE = 1e-6


@dataclasses.dataclass(frozen=True)
class DiffractionEfficiencies:
    """Stores the reflection and transmission into each diffraction order.

    Attributes:
        reflection: The reflection efficiency of each order `(p, q)`, with shape
            `(num_x, num_y)`.
        transmission: The transmission efficiency of each order `(p, q)`, with
            shape `(num_x, num_y)`.
        reflected_field: The complex `(x, y, z)` electric field amplitudes of the
            reflected orders, with shape `(3, num_terms)`.
        transmitted_field: The complex `(x, y, z)` electric field amplitudes of the
            transmitted orders, with shape `(3, num_terms)`.
    """

    reflection: jnp.ndarray
    transmission: jnp.ndarray
    reflected_field: jnp.ndarray
    transmitted_field: jnp.ndarray

    @property
    def total_reflection(self) -> jnp.ndarray:
        return jnp.sum(self.reflection)

    @property
    def total_transmission(self) -> jnp.ndarray:
        return jnp.sum(self.transmission)

    @property
    def energy_residual(self) -> jnp.ndarray:
        """Returns `1 - R - T`, i.e. the absorbed fraction for a physical device."""
        return 1 - self.total_reflection - self.total_transmission


def diffraction_efficiencies(
    s_matrix: scattering.ScatteringMatrix,
    wavevectors: harmonics.WavevectorMatrices,
    reflection_basis: homogeneous.ModeBasis,
    transmission_basis: homogeneous.ModeBasis,
    source: jnp.ndarray,
    reflection_medium: homogeneous.Medium,
    transmission_medium: homogeneous.Medium,
    expansion: harmonics.Harmonics,
) -> DiffractionEfficiencies:
    """Computes diffraction efficiencies from the global scattering matrix.

    The longitudinal field components are reconstructed from the transverse ones
    by requiring the fields to be divergence-free. The efficiency of each order is
    the z-directed power flux relative to that of the incident wave.

    Args:
        s_matrix: The global scattering matrix of the device.
        wavevectors: The wavevectors for the expansion.
        reflection_basis: The eigenmodes of the reflection region.
        transmission_basis: The eigenmodes of the transmission region.
        source: The transverse electric field of the incident wave, as given by
            `sources.source_vector`.
        reflection_medium: The material of the reflection region.
        transmission_medium: The material of the transmission region.
        expansion: The harmonics of the expansion.

    Returns:
        The `DiffractionEfficiencies`.
    """
    n = wavevectors.num_terms
    if source.shape != (2 * n,) or s_matrix.num_modes != 2 * n:
        raise errors.InconsistentHarmonicCountError(
            f"`source` and `s_matrix` must be compatible with {n} harmonics, but got "
            f"shapes {source.shape} and {s_matrix.s11.shape}."
        )

    source_amplitude = utils.solve(reflection_basis.eigenvectors, source, "W_ref")
    reflected = reflection_basis.eigenvectors @ (s_matrix.s11 @ source_amplitude)
    transmitted = transmission_basis.eigenvectors @ (s_matrix.s21 @ source_amplitude)

    kx, ky = wavevectors.kx, wavevectors.ky
    rx, ry = reflected[:n], reflected[n:]
    rz = (kx * rx + ky * ry) / wavevectors.kz_reflection
    tx, ty = transmitted[:n], transmitted[n:]
    tz = -(kx * tx + ky * ty) / wavevectors.kz_transmission

    incident_flux = jnp.real(wavevectors.incident[2] / reflection_medium.permeability)
    reflection = (
        jnp.real(wavevectors.kz_reflection / reflection_medium.permeability)
        / incident_flux
        * (jnp.abs(rx) ** 2 + jnp.abs(ry) ** 2 + jnp.abs(rz) ** 2)
    )
    transmission = (
        jnp.real(wavevectors.kz_transmission / transmission_medium.permeability)
        / incident_flux
        * (jnp.abs(tx) ** 2 + jnp.abs(ty) ** 2 + jnp.abs(tz) ** 2)
    )
    return DiffractionEfficiencies(
        reflection=harmonics.to_grid(reflection, expansion),
        transmission=harmonics.to_grid(transmission, expansion),
        reflected_field=jnp.stack([rx, ry, rz]),
        transmitted_field=jnp.stack([tx, ty, tz]),
    )


def check_energy_conservation(
    efficiencies: DiffractionEfficiencies,
    tolerance: float = ENERGY_TOLERANCE,
) -> bool:
    """Checks that reflected and transmitted power sum to the incident power.

    A violation is reported with an `EnergyConservationWarning` rather than an
    exception, since absorbing devices legitimately violate the check.

    Args:
        efficiencies: The computed efficiencies.
        tolerance: The tolerance on the magnitude of `1 - R - T`.

    Returns:
        `True` if energy is conserved to within `tolerance`.
    """
    residual = float(efficiencies.energy_residual)
    if abs(residual) <= tolerance:
        return True
    warnings.warn(
        f"Energy conservation violated: R + T = {1 - residual:.9f}, with residual "
        f"{residual:.3e} exceeding tolerance {tolerance:.1e}. This is expected for "
        f"absorbing devices, and otherwise indicates insufficient numerical accuracy.",
        errors.EnergyConservationWarning,
        stacklevel=2,
    )
    return False


# -----------------------------------------------------------------------------
# Register custom objects in this module with jax to enable `jit`.
# -----------------------------------------------------------------------------


jax.tree_util.register_pytree_node(
    DiffractionEfficiencies,
    lambda d: (
        (d.reflection, d.transmission, d.reflected_field, d.transmitted_field),
        None,
    ),
    lambda _, x: DiffractionEfficiencies(*x),
)
