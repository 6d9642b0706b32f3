"""Functions related to eigenmodes of homogeneous regions and their boundaries.

Copyright (c) Meta Platforms, Inc. and affiliates.
"""

import dataclasses
import enum
from typing import Tuple, Union

import jax
import jax.numpy as jnp

from rcwax import errors, harmonics, scattering, utils

Scalar = Union[float, complex, jnp.ndarray]

GAP_CUTOFF_MARGIN = 1e-3


@dataclasses.dataclass(frozen=True)
class Medium:
    """Stores the material of a homogeneous region.

    Attributes:
        permittivity: The scalar relative permittivity. Absorbing media have a
            positive imaginary part.
        permeability: The scalar relative permeability.
    """

    permittivity: Scalar
    permeability: Scalar = 1.0


@enum.unique
class ReferenceDirection(enum.Enum):
    """Enumerates the sign conventions for homogeneous-region propagation constants.

    With the `FORWARD` convention, the diagonal blocks of the eigenvalue matrix are
    `j * Kz`. With `REVERSED`, they are `-j * conj(Kz)`, which for real `Kz` is the
    negative of the `FORWARD` value.

    `REVERSED` is only usable when the half-space differs from the gap. If the two
    have the same material, e.g. a vacuum superstrate with the default vacuum gap,
    the propagating modes of the half-space coincide with the backward modes of the
    gap. The boundary matrix `A` then vanishes, and `SingularMatrixError` is raised.
    For dielectric half-spaces, both conventions give the same efficiencies.
    """

    FORWARD: str = "forward"
    REVERSED: str = "reversed"


@enum.unique
class Side(enum.Enum):
    """Enumerates the sides of the device on which a half-space can lie."""

    REFLECTION: str = "reflection"
    TRANSMISSION: str = "transmission"


@dataclasses.dataclass(frozen=True)
class ModeBasis:
    """Stores the eigenmodes of a homogeneous region.

    Attributes:
        eigenvalues: The diagonal of the eigenvalue matrix, with shape `(2N,)`.
        eigenvectors: The electric field eigenvectors `W`, with shape `(2N, 2N)`.
        admittance: The magnetic field eigenvectors `V`, with shape `(2N, 2N)`.
    """

    eigenvalues: jnp.ndarray
    eigenvectors: jnp.ndarray
    admittance: jnp.ndarray

    @property
    def eigenvalue_matrix(self) -> jnp.ndarray:
        return utils.diag(self.eigenvalues)


def q_matrix(
    kx: jnp.ndarray,
    ky: jnp.ndarray,
    permittivity: Scalar,
    permeability: Scalar,
) -> jnp.ndarray:
    """Returns the `Q` matrix of a homogeneous region.

    Args:
        kx: The x-component of the normalized transverse wavevector of each order.
        ky: The y-component of the normalized transverse wavevector of each order.
        permittivity: The scalar permittivity of the region.
        permeability: The scalar permeability of the region.

    Returns:
        The `Q` matrix, with shape `(2N, 2N)`.
    """
    index_squared = jnp.asarray(permittivity * permeability, dtype=complex)
    q = utils.block(
        utils.diag(kx * ky),
        utils.diag(index_squared - kx**2),
        utils.diag(ky**2 - index_squared),
        utils.diag(-ky * kx),
    )
    return q / permeability


def homogeneous_mode_basis(
    kx: jnp.ndarray,
    ky: jnp.ndarray,
    kz: jnp.ndarray,
    permittivity: Scalar,
    permeability: Scalar,
    direction: ReferenceDirection = ReferenceDirection.FORWARD,
    tolerance: float = utils.BRANCH_TOLERANCE,
) -> ModeBasis:
    """Computes the eigenmodes of a homogeneous region.

    In homogeneous media the electric field eigenvectors are the identity, and the
    eigenvalues are given directly by the longitudinal wavevector.

    Args:
        kx: The x-component of the normalized transverse wavevector of each order.
        ky: The y-component of the normalized transverse wavevector of each order.
        kz: The normalized longitudinal wavevector of each order in the region.
        permittivity: The scalar permittivity of the region.
        permeability: The scalar permeability of the region.
        direction: The sign convention for the eigenvalues.
        tolerance: Orders with `|kz|**2` smaller than `tolerance` times the squared
            refractive index are considered to be at cutoff.

    Returns:
        The `ModeBasis`.

    Raises:
        EigenBranchAmbiguityError: If any order is at cutoff, i.e. it propagates
            parallel to the interface.
    """
    index_squared = jnp.abs(jnp.asarray(permittivity * permeability))
    cutoff = jnp.abs(kz) ** 2 <= tolerance * jnp.maximum(index_squared, 1.0)
    if jnp.any(cutoff):
        raise errors.EigenBranchAmbiguityError(
            f"Orders {jnp.nonzero(cutoff)[0].tolist()} have vanishing longitudinal "
            f"wavevector (Rayleigh anomaly); the mode admittance is undefined."
        )

    if direction == ReferenceDirection.FORWARD:
        eigenvalues = 1j * kz
    elif direction == ReferenceDirection.REVERSED:
        eigenvalues = -1j * jnp.conj(kz)
    else:
        raise ValueError(f"Unknown `direction`, got {direction}.")
    eigenvalues = jnp.tile(eigenvalues, 2)

    num_modes = eigenvalues.shape[-1]
    q = q_matrix(kx, ky, permittivity, permeability)
    return ModeBasis(
        eigenvalues=eigenvalues,
        eigenvectors=jnp.eye(num_modes, dtype=complex),
        # This is `q @ inv(diag(eigenvalues))`.
        admittance=q / eigenvalues[jnp.newaxis, :],
    )


def free_space_mode_basis(kx: jnp.ndarray, ky: jnp.ndarray) -> ModeBasis:
    """Computes the eigenmodes of vacuum."""
    return gap_mode_basis(kx, ky, Medium(1.0))


def gap_mode_basis(kx: jnp.ndarray, ky: jnp.ndarray, medium: Medium) -> ModeBasis:
    """Computes the eigenmodes of the zero-thickness gap between all regions.

    Args:
        kx: The x-component of the normalized transverse wavevector of each order.
        ky: The y-component of the normalized transverse wavevector of each order.
        medium: The material of the gap.

    Returns:
        The `ModeBasis`.
    """
    kz = harmonics.longitudinal_wavevector(
        kx, ky, permittivity=medium.permittivity, permeability=medium.permeability
    )
    return homogeneous_mode_basis(
        kx, ky, kz, permittivity=medium.permittivity, permeability=medium.permeability
    )


def default_gap_medium(
    kx: jnp.ndarray,
    ky: jnp.ndarray,
    margin: float = GAP_CUTOFF_MARGIN,
) -> Medium:
    """Returns the material of the gap for the given transverse wavevectors.

    The gap has zero thickness, and the computed efficiencies do not depend on its
    material. Vacuum is used unless some order is within `margin` of cutoff in
    vacuum. In that case the gap permittivity is `1 + max(|kx|**2 + |ky|**2)`, so
    that the squared longitudinal wavevector of every order is at least unity.

    Args:
        kx: The x-component of the normalized transverse wavevector of each order.
        ky: The y-component of the normalized transverse wavevector of each order.
        margin: Orders with `|1 - kx**2 - ky**2|` below `margin` are near cutoff.

    Returns:
        The `Medium` of the gap.
    """
    transverse_squared = jnp.abs(kx) ** 2 + jnp.abs(ky) ** 2
    if not jnp.any(jnp.abs(1 - transverse_squared) < margin):
        return Medium(1.0)
    return Medium(1.0 + float(jnp.amax(transverse_squared)))


def boundary_s_matrix(
    region: ModeBasis,
    gap: ModeBasis,
    side: Side,
    max_condition_number: float = utils.MAX_CONDITION_NUMBER,
) -> scattering.ScatteringMatrix:
    """Computes the scattering matrix of a half-space relative to the gap.

    The matrix couples the modes of the half-space to those of a zero-thickness
    gap, which is the common reference for all layer scattering matrices.
    The transmission-side matrix is the mirror image of the reflection-side one.

    Args:
        region: The eigenmodes of the half-space.
        gap: The eigenmodes of the gap.
        side: The side of the device on which the half-space lies.
        max_condition_number: Matrices with larger condition number are considered
            singular.

    Returns:
        The `ScatteringMatrix`.
    """
    if side not in (Side.REFLECTION, Side.TRANSMISSION):
        raise ValueError(f"Unknown `side`, got {side}.")

    w_term = utils.solve(
        gap.eigenvectors, region.eigenvectors, "W0", max_condition_number
    )
    v_term = utils.solve(gap.admittance, region.admittance, "V0", max_condition_number)
    a = w_term + v_term
    b = w_term - v_term

    a_inv = utils.inv(a, "A", max_condition_number)
    s_matrix = scattering.ScatteringMatrix(
        s11=-a_inv @ b,
        s12=2 * a_inv,
        s21=0.5 * (a - b @ a_inv @ b),
        s22=b @ a_inv,
    )
    if side == Side.TRANSMISSION:
        return s_matrix.reverse()
    return s_matrix


def half_space(
    medium: Medium,
    kz: jnp.ndarray,
    wavevectors: harmonics.WavevectorMatrices,
    gap: ModeBasis,
    side: Side,
    direction: ReferenceDirection = ReferenceDirection.FORWARD,
) -> Tuple[ModeBasis, scattering.ScatteringMatrix]:
    """Returns the eigenmodes and boundary scattering matrix of a half-space."""
    basis = homogeneous_mode_basis(
        kx=wavevectors.kx,
        ky=wavevectors.ky,
        kz=kz,
        permittivity=medium.permittivity,
        permeability=medium.permeability,
        direction=direction,
    )
    return basis, boundary_s_matrix(basis, gap, side)


# -----------------------------------------------------------------------------
# Register custom objects in this module with jax to enable `jit`.
# -----------------------------------------------------------------------------


jax.tree_util.register_pytree_node(
    ReferenceDirection,
    lambda x: ((), x.value),
    lambda value, _: ReferenceDirection(value),
)


jax.tree_util.register_pytree_node(
    Side,
    lambda x: ((), x.value),
    lambda value, _: Side(value),
)


jax.tree_util.register_pytree_node(
    Medium,
    lambda m: ((m.permittivity, m.permeability), None),
    lambda _, x: Medium(*x),
)


jax.tree_util.register_pytree_node(
    ModeBasis,
    lambda m: ((m.eigenvalues, m.eigenvectors, m.admittance), None),
    lambda _, x: ModeBasis(*x),
)
