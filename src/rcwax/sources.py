"""Functions related to the plane-wave excitation.

Copyright (c) Meta Platforms, Inc. and affiliates.
"""

import dataclasses
from typing import Union

import jax
import jax.numpy as jnp

from rcwax import harmonics

Scalar = Union[float, complex, jnp.ndarray]


@dataclasses.dataclass(frozen=True)
class Excitation:
    """Stores the parameters of the incident plane wave.

    Attributes:
        wavelength: The free-space wavelength.
        polar_angle: The angle between the wavevector and the z-axis, in radians.
        azimuthal_angle: The angle between the plane of incidence and the x-axis,
            in radians.
        pte: The complex amplitude of the TE-polarized component.
        ptm: The complex amplitude of the TM-polarized component.
    """

    wavelength: Scalar
    polar_angle: Scalar = 0.0
    azimuthal_angle: Scalar = 0.0
    pte: Scalar = 1.0
    ptm: Scalar = 0.0

    def __post_init__(self) -> None:
        if isinstance(self.wavelength, (int, float)) and self.wavelength <= 0:
            raise ValueError(
                f"`wavelength` must be positive, but got {self.wavelength}."
            )


def polarization_vector(
    polar_angle: Scalar,
    azimuthal_angle: Scalar,
    pte: Scalar,
    ptm: Scalar,
) -> jnp.ndarray:
    """Computes the unit polarization vector of the incident electric field.

    The TE direction `(-sin(phi), cos(phi), 0)` is normal to the plane of incidence
    and is the y-axis at normal incidence with zero azimuthal angle. The TM
    direction is the cross product of the wavevector direction and TE direction.

    Args:
        polar_angle: Polar angle of the plane wave, in radians.
        azimuthal_angle: Azimuthal angle of the plane wave, in radians.
        pte: The complex amplitude of the TE-polarized component.
        ptm: The complex amplitude of the TM-polarized component.

    Returns:
        The polarization vector `(px, py, pz)`, normalized to have unit length.
    """
    sin_theta, cos_theta = jnp.sin(polar_angle), jnp.cos(polar_angle)
    sin_phi, cos_phi = jnp.sin(azimuthal_angle), jnp.cos(azimuthal_angle)
    te = jnp.stack([-sin_phi, cos_phi, jnp.zeros_like(sin_phi)])
    tm = jnp.stack([-cos_theta * cos_phi, -cos_theta * sin_phi, sin_theta])
    polarization = pte * te + ptm * tm
    norm = jnp.sqrt(jnp.sum(jnp.abs(polarization) ** 2))
    if norm == 0:
        raise ValueError("At least one of `pte` and `ptm` must be nonzero.")
    return (polarization / norm).astype(complex)


def source_vector(
    polarization: jnp.ndarray,
    expansion: harmonics.Harmonics,
) -> jnp.ndarray:
    """Returns the transverse electric field of the source, for all orders.

    Only the zero order is excited. The first `N` entries are the x-components and
    the final `N` entries are the y-components.

    Args:
        polarization: The polarization vector of the incident wave.
        expansion: The harmonics of the expansion.

    Returns:
        The source vector, with shape `(2 * num_terms,)`.
    """
    n = expansion.num_terms
    m = expansion.zero_order_index
    source = jnp.zeros((2 * n,), dtype=complex)
    return source.at[m].set(polarization[0]).at[n + m].set(polarization[1])


# -----------------------------------------------------------------------------
# Register custom objects in this module with jax to enable `jit`.
# -----------------------------------------------------------------------------


jax.tree_util.register_pytree_node(
    Excitation,
    lambda e: (
        (e.wavelength, e.polar_angle, e.azimuthal_angle, e.pte, e.ptm),
        None,
    ),
    lambda _, x: Excitation(*x),
)
