"""Defines several utility functions.

Copyright (c) Meta Platforms, Inc. and affiliates.
"""

from typing import Tuple

import jax.numpy as jnp

from rcwax import errors

# Matrices with a larger condition number are treated as singular. The value
# leaves roughly three significant digits in double precision.
MAX_CONDITION_NUMBER = 1e13

# Relative tolerance used to decide whether a complex root lies on an axis of
# the complex plane, or whether a squared eigenvalue is at the branch point.
BRANCH_TOLERANCE = 1e-12


def diag(x: jnp.ndarray) -> jnp.ndarray:
    """A batch-compatible version of `numpy.diag`."""
    shape = x.shape + (x.shape[-1],)
    y = jnp.zeros(shape, x.dtype)
    i = jnp.arange(x.shape[-1])
    return y.at[..., i, i].set(x)


def angular_frequency_for_wavelength(wavelength: jnp.ndarray) -> jnp.ndarray:
    """Returns the free-space wavenumber for the specified wavelength."""
    return 2 * jnp.pi / wavelength  # Since by our convention c == 1.


def matrix_transpose(x: jnp.ndarray) -> jnp.ndarray:
    """Transposes the final two axes of a batch of matrices."""
    return jnp.swapaxes(x, -1, -2)


def matrix_adjoint(x: jnp.ndarray) -> jnp.ndarray:
    """Computes the adjoint for a batch of matrices."""
    return jnp.conj(matrix_transpose(x))


def block(
    m11: jnp.ndarray,
    m12: jnp.ndarray,
    m21: jnp.ndarray,
    m22: jnp.ndarray,
) -> jnp.ndarray:
    """Assembles a `2N x 2N` matrix from four `N x N` blocks."""
    return jnp.block([[m11, m12], [m21, m22]])


# -----------------------------------------------------------------------------
# Inversion with singularity detection.
# -----------------------------------------------------------------------------


def check_invertible(
    matrix: jnp.ndarray,
    name: str,
    max_condition_number: float = MAX_CONDITION_NUMBER,
) -> None:
    """Raises `SingularMatrixError` if `matrix` cannot be reliably inverted.

    The check requires concrete values, and so cannot be used within `jit`.

    Args:
        matrix: The matrix to be checked.
        name: Name of the matrix, used in the error message.
        max_condition_number: The largest acceptable condition number.
    """
    condition_number = float(jnp.max(jnp.linalg.cond(matrix)))
    # Also catches `nan`, which results e.g. from an all-zero matrix.
    if not condition_number <= max_condition_number:
        raise errors.SingularMatrixError(
            f"`{name}` is singular to working precision, with condition number "
            f"{condition_number:.3e} (maximum {max_condition_number:.1e})."
        )


def solve(
    matrix: jnp.ndarray,
    rhs: jnp.ndarray,
    name: str,
    max_condition_number: float = MAX_CONDITION_NUMBER,
) -> jnp.ndarray:
    """Computes `inv(matrix) @ rhs`, checking that `matrix` is invertible."""
    check_invertible(matrix, name, max_condition_number)
    return jnp.linalg.solve(matrix, rhs)


def right_solve(
    matrix: jnp.ndarray,
    lhs: jnp.ndarray,
    name: str,
    max_condition_number: float = MAX_CONDITION_NUMBER,
) -> jnp.ndarray:
    """Computes `lhs @ inv(matrix)`, checking that `matrix` is invertible."""
    check_invertible(matrix, name, max_condition_number)
    return matrix_transpose(
        jnp.linalg.solve(matrix_transpose(matrix), matrix_transpose(lhs))
    )


def inv(
    matrix: jnp.ndarray,
    name: str,
    max_condition_number: float = MAX_CONDITION_NUMBER,
) -> jnp.ndarray:
    """Computes `inv(matrix)`, checking that `matrix` is invertible."""
    check_invertible(matrix, name, max_condition_number)
    return jnp.linalg.inv(matrix)


# -----------------------------------------------------------------------------
# Functions related to the eigensolve and the choice of square root branch.
# -----------------------------------------------------------------------------


def eig(matrix: jnp.ndarray) -> Tuple[jnp.ndarray, jnp.ndarray]:
    """Returns the eigenvalues and eigenvectors of a general complex matrix."""
    return jnp.linalg.eig(matrix.astype(complex))


def select_root_branch(
    roots: jnp.ndarray,
    tolerance: float = BRANCH_TOLERANCE,
) -> jnp.ndarray:
    """Selects the sign of square roots so that they do not grow with distance.

    Of the two roots `+/- r`, the one with non-negative real part is selected. For
    roots which are purely imaginary to within `tolerance * |r|`, the one with
    non-negative imaginary part is selected. The rule is applied after the root
    is computed, so that it does not depend on the sign of a round-off imaginary
    part in the squared value.

    Args:
        roots: The square roots whose sign is to be adjusted.
        tolerance: Relative tolerance for considering a root purely imaginary.

    Returns:
        The roots with adjusted sign.
    """
    roots = roots.astype(complex)
    is_imaginary = jnp.abs(roots.real) <= tolerance * jnp.abs(roots)
    flip = jnp.where(is_imaginary, roots.imag < 0, roots.real < 0)
    return jnp.where(flip, -roots, roots)
