"""Functions related to spatial harmonics and wavevectors in the RCWA scheme.

Copyright (c) Meta Platforms, Inc. and affiliates.
"""

import dataclasses
from typing import Tuple, Union

import jax
import jax.numpy as jnp
import numpy as onp

from rcwax import utils

Scalar = Union[float, complex, jnp.ndarray]


@dataclasses.dataclass(frozen=True)
class Harmonics:
    """Stores the truncated set of Fourier orders used in the expansion.

    Orders `(p, q)` range over `-(num_x // 2), ..., num_x // 2` and
    `-(num_y // 2), ..., num_y // 2`. They are flattened to a linear index in
    row-major order, i.e. `q` varies fastest within each `p`; see `linear_index`.
    The same ordering is used by `fft.convolution_matrix`, so that convolution
    matrices and wavevector matrices agree on mode labels.

    Attributes:
        num_x: The number of harmonic orders along the x-axis.
        num_y: The number of harmonic orders along the y-axis.
    """

    num_x: int
    num_y: int

    def __post_init__(self) -> None:
        for name, num in (("num_x", self.num_x), ("num_y", self.num_y)):
            if int(num) != num or num < 1 or num % 2 == 0:
                raise ValueError(
                    f"`{name}` must be a positive odd integer so that the expansion "
                    f"has a zero order, but got {num}."
                )

    @property
    def num_terms(self) -> int:
        return self.num_x * self.num_y

    @property
    def shape(self) -> Tuple[int, int]:
        return (self.num_x, self.num_y)

    @property
    def orders(self) -> onp.ndarray:
        """Returns the `(p, q)` orders, with shape `(num_terms, 2)`."""
        p, q = onp.meshgrid(
            onp.arange(-(self.num_x // 2), self.num_x // 2 + 1),
            onp.arange(-(self.num_y // 2), self.num_y // 2 + 1),
            indexing="ij",
        )
        return onp.stack([p.flatten(), q.flatten()], axis=-1)

    @property
    def zero_order_index(self) -> int:
        return linear_index(self, 0, 0)


def linear_index(harmonics: Harmonics, p: int, q: int) -> int:
    """Returns the linear index of the harmonic order `(p, q)`."""
    if abs(p) > harmonics.num_x // 2 or abs(q) > harmonics.num_y // 2:
        raise ValueError(
            f"Order {(p, q)} is outside the expansion with shape {harmonics.shape}."
        )
    return (p + harmonics.num_x // 2) * harmonics.num_y + (q + harmonics.num_y // 2)


def to_grid(values: jnp.ndarray, harmonics: Harmonics) -> jnp.ndarray:
    """Reshapes per-order `values` to a `(num_x, num_y)` grid indexed by `(p, q)`."""
    if values.shape[-1] != harmonics.num_terms:
        raise ValueError(
            f"`values` must have a trailing dimension of {harmonics.num_terms}, but "
            f"got shape {values.shape}."
        )
    return values.reshape(values.shape[:-1] + harmonics.shape)


@dataclasses.dataclass(frozen=True)
class Lattice:
    """Stores the periods of a rectangular lattice.

    Attributes:
        period_x: The period along the x-axis.
        period_y: The period along the y-axis. Units must match `period_x` and
            the wavelength.
    """

    period_x: Scalar
    period_y: Scalar

    def __post_init__(self) -> None:
        if isinstance(self.period_x, (int, float)) and self.period_x <= 0:
            raise ValueError(f"`period_x` must be positive, but got {self.period_x}.")
        if isinstance(self.period_y, (int, float)) and self.period_y <= 0:
            raise ValueError(f"`period_y` must be positive, but got {self.period_y}.")


# -----------------------------------------------------------------------------
# Functions related to wavevectors.
# -----------------------------------------------------------------------------


@dataclasses.dataclass(frozen=True)
class WavevectorMatrices:
    """Stores the normalized wavevectors for all orders in the expansion.

    All wavevectors are normalized by the free-space wavenumber. The attributes
    store the diagonals of the `N x N` wavevector matrices, which are obtained from
    the corresponding properties.

    Attributes:
        incident: The incident wavevector `(kx, ky, kz)`, with shape `(3,)`.
        kx: The x-component of the transverse wavevector for each order.
        ky: The y-component of the transverse wavevector for each order.
        kz_reflection: The longitudinal wavevector in the reflection region.
        kz_transmission: The longitudinal wavevector in the transmission region.
    """

    incident: jnp.ndarray
    kx: jnp.ndarray
    ky: jnp.ndarray
    kz_reflection: jnp.ndarray
    kz_transmission: jnp.ndarray

    @property
    def num_terms(self) -> int:
        return self.kx.shape[-1]

    @property
    def kx_matrix(self) -> jnp.ndarray:
        return utils.diag(self.kx)

    @property
    def ky_matrix(self) -> jnp.ndarray:
        return utils.diag(self.ky)

    @property
    def kz_reflection_matrix(self) -> jnp.ndarray:
        return utils.diag(self.kz_reflection)

    @property
    def kz_transmission_matrix(self) -> jnp.ndarray:
        return utils.diag(self.kz_transmission)


def incident_wavevector(
    polar_angle: Scalar,
    azimuthal_angle: Scalar,
    permittivity: Scalar,
    permeability: Scalar,
) -> jnp.ndarray:
    """Computes the normalized wavevector of an incident plane wave.

    Args:
        polar_angle: Polar angle of the plane wave, in radians.
        azimuthal_angle: Azimuthal angle of the plane wave, in radians.
        permittivity: Permittivity of the medium in which the wave originates.
        permeability: Permeability of the medium in which the wave originates.

    Returns:
        The wavevector `n * (sin th cos ph, sin th sin ph, cos th)`, where `n` is
        the refractive index of the medium.
    """
    refractive_index = jnp.sqrt(jnp.asarray(permittivity * permeability, dtype=complex))
    return refractive_index * jnp.stack(
        [
            jnp.sin(polar_angle) * jnp.cos(azimuthal_angle),
            jnp.sin(polar_angle) * jnp.sin(azimuthal_angle),
            jnp.cos(polar_angle),
        ]
    )


def transverse_wavevectors(
    incident: jnp.ndarray,
    wavelength: Scalar,
    lattice: Lattice,
    harmonics: Harmonics,
) -> Tuple[jnp.ndarray, jnp.ndarray]:
    """Computes the normalized transverse wavevectors for all orders.

    Args:
        incident: The normalized incident wavevector.
        wavelength: The free-space wavelength.
        lattice: The lattice, with periods in the units of `wavelength`.
        harmonics: The harmonics in the expansion.

    Returns:
        The `kx` and `ky` for each order, with shape `(num_terms,)`.
    """
    k0 = utils.angular_frequency_for_wavelength(wavelength)
    orders = jnp.asarray(harmonics.orders)
    kx = incident[0] - orders[:, 0] * 2 * jnp.pi / (k0 * lattice.period_x)
    ky = incident[1] - orders[:, 1] * 2 * jnp.pi / (k0 * lattice.period_y)
    return kx.astype(complex), ky.astype(complex)


def longitudinal_wavevector(
    kx: jnp.ndarray,
    ky: jnp.ndarray,
    permittivity: Scalar,
    permeability: Scalar,
) -> jnp.ndarray:
    """Computes the normalized longitudinal wavevector in a homogeneous region.

    The result is `conj(sqrt(er * ur - kx**2 - ky**2))`, where the root has
    non-negative real part and, for evanescent orders, non-negative imaginary part
    before conjugation. Propagating orders thus have positive `kz`, while evanescent
    orders have negative imaginary `kz`. Absorbing media have positive imaginary
    permittivity in this convention.

    Args:
        kx: The x-component of the transverse wavevector.
        ky: The y-component of the transverse wavevector.
        permittivity: The scalar permittivity of the region.
        permeability: The scalar permeability of the region.

    Returns:
        The longitudinal wavevector for each order.
    """
    kz_squared = jnp.asarray(permittivity * permeability, dtype=complex) - kx**2 - ky**2
    return jnp.conj(utils.select_root_branch(jnp.sqrt(kz_squared)))


def wavevector_matrices(
    wavelength: Scalar,
    polar_angle: Scalar,
    azimuthal_angle: Scalar,
    lattice: Lattice,
    harmonics: Harmonics,
    reflection_permittivity: Scalar,
    reflection_permeability: Scalar,
    transmission_permittivity: Scalar,
    transmission_permeability: Scalar,
) -> WavevectorMatrices:
    """Computes the wavevectors of all orders, shared by every region in the stack.

    Args:
        wavelength: The free-space wavelength.
        polar_angle: Polar angle of the incident plane wave, in radians.
        azimuthal_angle: Azimuthal angle of the incident plane wave, in radians.
        lattice: The lattice, with periods in the units of `wavelength`.
        harmonics: The harmonics in the expansion.
        reflection_permittivity: Permittivity of the reflection region.
        reflection_permeability: Permeability of the reflection region.
        transmission_permittivity: Permittivity of the transmission region.
        transmission_permeability: Permeability of the transmission region.

    Returns:
        The `WavevectorMatrices`.
    """
    if isinstance(wavelength, (int, float)) and wavelength <= 0:
        raise ValueError(f"`wavelength` must be positive, but got {wavelength}.")
    incident = incident_wavevector(
        polar_angle=polar_angle,
        azimuthal_angle=azimuthal_angle,
        permittivity=reflection_permittivity,
        permeability=reflection_permeability,
    )
    kx, ky = transverse_wavevectors(incident, wavelength, lattice, harmonics)
    return WavevectorMatrices(
        incident=incident,
        kx=kx,
        ky=ky,
        kz_reflection=longitudinal_wavevector(
            kx, ky, reflection_permittivity, reflection_permeability
        ),
        kz_transmission=longitudinal_wavevector(
            kx, ky, transmission_permittivity, transmission_permeability
        ),
    )


# -----------------------------------------------------------------------------
# Register custom objects in this module with jax to enable `jit`.
# -----------------------------------------------------------------------------


jax.tree_util.register_pytree_node(
    Harmonics,
    lambda h: ((), (h.num_x, h.num_y)),
    lambda shape, _: Harmonics(*shape),
)


jax.tree_util.register_pytree_node(
    Lattice,
    lambda lattice: ((lattice.period_x, lattice.period_y), None),
    lambda _, periods: Lattice(*periods),
)


jax.tree_util.register_pytree_node(
    WavevectorMatrices,
    lambda w: ((w.incident, w.kx, w.ky, w.kz_reflection, w.kz_transmission), None),
    lambda _, x: WavevectorMatrices(*x),
)
