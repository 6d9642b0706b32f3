"""Functions related to layer eigenmode calculation for the RCWA algorithm.

Copyright (c) Meta Platforms, Inc. and affiliates.
"""

import dataclasses
from typing import Sequence, Tuple, Union

import jax
import jax.numpy as jnp

from rcwax import errors, harmonics, homogeneous, scattering, utils

Scalar = Union[float, complex, jnp.ndarray]


@dataclasses.dataclass(frozen=True)
class Layer:
    """Stores a planar layer of the device.

    The Fourier convolution matrices are supplied by the caller, e.g. from
    `fft.convolution_matrix`, and must use the harmonic ordering defined by
    `harmonics.Harmonics`. As for `homogeneous.Medium`, absorbing materials have
    positive imaginary permittivity.

    Attributes:
        thickness: The layer thickness, in the units of the wavelength.
        permittivity_matrix: The convolution matrix of the permittivity, with
            shape `(N, N)`.
        permeability_matrix: The convolution matrix of the permeability, with
            shape `(N, N)`.
    """

    thickness: Scalar
    permittivity_matrix: jnp.ndarray
    permeability_matrix: jnp.ndarray

    def __post_init__(self) -> None:
        if not hasattr(self.permittivity_matrix, "shape"):
            return
        shape = self.permittivity_matrix.shape
        if len(shape) != 2 or shape[0] != shape[1]:
            raise ValueError(
                f"`permittivity_matrix` must be a square matrix, but got shape {shape}."
            )
        if self.permeability_matrix.shape != shape:
            raise errors.InconsistentHarmonicCountError(
                f"`permeability_matrix` must have the same shape as "
                f"`permittivity_matrix`, but got shapes "
                f"{self.permeability_matrix.shape} and {shape}."
            )
        if isinstance(self.thickness, (int, float)) and self.thickness < 0:
            raise ValueError(
                f"`thickness` must be non-negative, but got {self.thickness}."
            )

    @property
    def num_terms(self) -> int:
        return self.permittivity_matrix.shape[-1]

    @classmethod
    def uniform(
        cls,
        thickness: Scalar,
        permittivity: Scalar,
        permeability: Scalar,
        num_terms: int,
    ) -> "Layer":
        """Returns an unpatterned layer, whose convolution matrices are diagonal."""
        eye = jnp.eye(num_terms, dtype=complex)
        return cls(
            thickness=thickness,
            permittivity_matrix=permittivity * eye,
            permeability_matrix=permeability * eye,
        )


@dataclasses.dataclass(frozen=True)
class LayerSolveResult:
    """Stores the result of a layer eigensolve.

    Attributes:
        thickness: The layer thickness.
        eigenvalues: The propagation constants, i.e. the diagonal of `Lambda`.
        eigenvectors: The electric field eigenvectors `W`.
        admittance: The magnetic field eigenvectors `V = Q @ W @ inv(Lambda)`.
    """

    thickness: Scalar
    eigenvalues: jnp.ndarray
    eigenvectors: jnp.ndarray
    admittance: jnp.ndarray


def p_matrix(layer: Layer, kx: jnp.ndarray, ky: jnp.ndarray) -> jnp.ndarray:
    """Returns the `P` matrix of a layer, which involves the inverse permittivity."""
    return _coupling_matrix(
        kx,
        ky,
        inverted=layer.permittivity_matrix,
        other=layer.permeability_matrix,
        name="permittivity_matrix",
    )


def q_matrix(layer: Layer, kx: jnp.ndarray, ky: jnp.ndarray) -> jnp.ndarray:
    """Returns the `Q` matrix of a layer, which involves the inverse permeability."""
    return _coupling_matrix(
        kx,
        ky,
        inverted=layer.permeability_matrix,
        other=layer.permittivity_matrix,
        name="permeability_matrix",
    )


def _coupling_matrix(
    kx: jnp.ndarray,
    ky: jnp.ndarray,
    inverted: jnp.ndarray,
    other: jnp.ndarray,
    name: str,
) -> jnp.ndarray:
    """Assembles the `P` or `Q` matrix from the appropriate convolution matrices.

    The modes are computed for the complex-conjugate material, whose convolution
    matrices are the adjoints of those given. This matches the conjugated
    longitudinal wavevector of homogeneous regions, so that positive imaginary
    permittivity is absorbing in layers and half-spaces alike. Lossless
    materials have Hermitian convolution matrices and are unaffected.
    """
    inverted = utils.matrix_adjoint(inverted)
    other = utils.matrix_adjoint(other)
    kx_matrix = utils.diag(kx)
    ky_matrix = utils.diag(ky)
    inverse = utils.inv(inverted, name)
    return utils.block(
        kx_matrix @ inverse @ ky_matrix,
        other - kx_matrix @ inverse @ kx_matrix,
        ky_matrix @ inverse @ ky_matrix - other,
        -ky_matrix @ inverse @ kx_matrix,
    )


def select_eigenvalue_branch(
    eigenvalues_squared: jnp.ndarray,
    tolerance: float = utils.BRANCH_TOLERANCE,
) -> jnp.ndarray:
    """Returns the propagation constants from the eigenvalues of `P @ Q`.

    The root with non-negative real part is selected, so that the propagation
    factor `exp(-eigenvalue * k0 * thickness)` does not grow. For purely imaginary
    roots, i.e. modes propagating without loss, the root with non-negative
    imaginary part is selected.

    Args:
        eigenvalues_squared: The eigenvalues of `P @ Q`.
        tolerance: Eigenvalues whose magnitude is smaller than `tolerance` times the
            largest magnitude (or unity, if larger) are considered to be zero.

    Returns:
        The propagation constants.

    Raises:
        EigenBranchAmbiguityError: If any eigenvalue is zero to within tolerance,
            where the two roots coincide and the mode admittance is undefined.
    """
    magnitude = jnp.abs(eigenvalues_squared)
    scale = jnp.maximum(jnp.amax(magnitude), 1.0)
    at_branch_point = magnitude <= tolerance * scale
    if jnp.any(at_branch_point):
        raise errors.EigenBranchAmbiguityError(
            f"Eigenvalues {eigenvalues_squared[at_branch_point].tolist()} lie at the "
            f"branch point of the square root; the layer supports a mode at cutoff."
        )
    return utils.select_root_branch(jnp.sqrt(eigenvalues_squared.astype(complex)))


def eigensolve_layer(
    layer: Layer,
    wavevectors: harmonics.WavevectorMatrices,
    tolerance: float = utils.BRANCH_TOLERANCE,
) -> LayerSolveResult:
    """Performs the eigensolve for a patterned layer.

    Args:
        layer: The layer to be solved.
        wavevectors: The wavevectors for the expansion.
        tolerance: Tolerance used in the selection of the eigenvalue branch.

    Returns:
        The `LayerSolveResult`.
    """
    if layer.num_terms != wavevectors.num_terms:
        raise errors.InconsistentHarmonicCountError(
            f"`layer` convolution matrices have {layer.num_terms} harmonics, but the "
            f"expansion has {wavevectors.num_terms}."
        )

    p = p_matrix(layer, wavevectors.kx, wavevectors.ky)
    q = q_matrix(layer, wavevectors.kx, wavevectors.ky)
    eigenvalues_squared, eigenvectors = utils.eig(p @ q)
    eigenvalues = select_eigenvalue_branch(eigenvalues_squared, tolerance)
    return LayerSolveResult(
        thickness=layer.thickness,
        eigenvalues=eigenvalues,
        eigenvectors=eigenvectors,
        admittance=q @ eigenvectors / eigenvalues[jnp.newaxis, :],
    )


def layer_s_matrix(
    solve_result: LayerSolveResult,
    wavelength: Scalar,
    gap: homogeneous.ModeBasis,
    max_condition_number: float = utils.MAX_CONDITION_NUMBER,
) -> scattering.ScatteringMatrix:
    """Computes the scattering matrix of a layer embedded in zero-thickness gaps.

    The layer is symmetric, i.e. `s11 == s22` and `s12 == s21`.

    Args:
        solve_result: The eigensolve result of the layer.
        wavelength: The free-space wavelength.
        gap: The eigenmodes of the gap.
        max_condition_number: Matrices with larger condition number are considered
            singular.

    Returns:
        The `ScatteringMatrix`.

    Raises:
        SingularMatrixError: If the layer eigenvectors are degenerate, or if the
            layer is at a resonance that makes the scattering matrix undefined.
    """
    w_term = utils.solve(
        solve_result.eigenvectors, gap.eigenvectors, "W", max_condition_number
    )
    v_term = utils.solve(
        solve_result.admittance, gap.admittance, "V", max_condition_number
    )
    a = w_term + v_term
    b = w_term - v_term

    # The eigenvalue matrix is diagonal, and so its exponential is element-wise.
    k0 = utils.angular_frequency_for_wavelength(wavelength)
    x = utils.diag(jnp.exp(-solve_result.eigenvalues * k0 * solve_result.thickness))

    b_inv_a = utils.right_solve(a, b, "A", max_condition_number)
    xba = x @ b_inv_a
    denominator = a - xba @ x @ b
    s11 = utils.solve(
        denominator, xba @ x @ a - b, "A - X B inv(A) X B", max_condition_number
    )
    s12 = utils.solve(
        denominator,
        x @ (a - b_inv_a @ b),
        "A - X B inv(A) X B",
        max_condition_number,
    )
    return scattering.ScatteringMatrix(s11=s11, s12=s12, s21=s12, s22=s11)


def layer_s_matrices(
    layers: Sequence[Layer],
    wavevectors: harmonics.WavevectorMatrices,
    wavelength: Scalar,
    gap: homogeneous.ModeBasis,
) -> Tuple[scattering.ScatteringMatrix, ...]:
    """Computes the scattering matrices of independent layers, in the given order.

    Args:
        layers: The layers of the device.
        wavevectors: The wavevectors for the expansion.
        wavelength: The free-space wavelength.
        gap: The eigenmodes of the gap.

    Returns:
        The scattering matrix of each layer.
    """
    return tuple(
        [
            layer_s_matrix(eigensolve_layer(layer, wavevectors), wavelength, gap)
            for layer in layers
        ]
    )


# -----------------------------------------------------------------------------
# Register custom objects in this module with jax to enable `jit`.
# -----------------------------------------------------------------------------


jax.tree_util.register_pytree_node(
    Layer,
    lambda x: ((x.thickness, x.permittivity_matrix, x.permeability_matrix), None),
    lambda _, x: Layer(*x),
)


jax.tree_util.register_pytree_node(
    LayerSolveResult,
    lambda x: ((x.thickness, x.eigenvalues, x.eigenvectors, x.admittance), None),
    lambda _, x: LayerSolveResult(*x),
)
