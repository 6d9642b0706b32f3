"""Functions related to scattering matrix composition for the RCWA algorithm.

Copyright (c) Meta Platforms, Inc. and affiliates.
"""

import dataclasses
from typing import Sequence

import jax
import jax.numpy as jnp

from rcwax import errors, utils


@dataclasses.dataclass(frozen=True)
class ScatteringMatrix:
    """Stores the scattering matrix for a region or a stack of regions.

    The scattering matrix relates mode amplitudes entering a region to those
    leaving it. Amplitudes on side 1 (toward the reflection region) and side 2
    (toward the transmission region) are labeled by the block indices,

                  |           |
        c1_in  -> |           | -> c2_out
                  |  region   |
        c1_out <- |           | <- c2_in
                  |           |

    and are related by,

                    c1_out = s11 @ c1_in + s12 @ c2_in
                    c2_out = s21 @ c1_in + s22 @ c2_in

    Each block has shape `(2N, 2N)`, where `N` is the number of harmonics. Indices
    `0, ..., N - 1` carry the x-components and `N, ..., 2N - 1` the y-components.

    Attributes:
        s11: Relates incoming fields on side 1 to outgoing fields on side 1.
        s12: Relates incoming fields on side 2 to outgoing fields on side 1.
        s21: Relates incoming fields on side 1 to outgoing fields on side 2.
        s22: Relates incoming fields on side 2 to outgoing fields on side 2.
    """

    s11: jnp.ndarray
    s12: jnp.ndarray
    s21: jnp.ndarray
    s22: jnp.ndarray

    def __post_init__(self) -> None:
        blocks = (self.s11, self.s12, self.s21, self.s22)
        if not all(hasattr(b, "shape") for b in blocks):
            return
        shape = self.s11.shape
        if shape[-2:] != (shape[-1], shape[-1]) or any(
            b.shape != shape for b in blocks
        ):
            raise errors.InconsistentHarmonicCountError(
                f"Scattering matrix blocks must be square with identical shapes, but "
                f"got shapes {[b.shape for b in blocks]}."
            )

    @property
    def num_modes(self) -> int:
        """The number of modes, i.e. twice the number of harmonics."""
        return self.s11.shape[-1]

    def reverse(self) -> "ScatteringMatrix":
        """Returns the scattering matrix for the region viewed from side 2."""
        return ScatteringMatrix(s11=self.s22, s12=self.s21, s21=self.s12, s22=self.s11)


def pass_through(num_modes: int) -> ScatteringMatrix:
    """Returns the scattering matrix that transmits all modes without reflection.

    This is the identity element of the Redheffer star product.

    Args:
        num_modes: The number of modes, i.e. twice the number of harmonics.

    Returns:
        The `ScatteringMatrix`.
    """
    eye = jnp.eye(num_modes, dtype=complex)
    zeros = jnp.zeros_like(eye)
    return ScatteringMatrix(s11=zeros, s12=eye, s21=eye, s22=zeros)


def redheffer_star_product(
    a: ScatteringMatrix,
    b: ScatteringMatrix,
    max_condition_number: float = utils.MAX_CONDITION_NUMBER,
) -> ScatteringMatrix:
    """Computes the Redheffer star product of two scattering matrices.

    The result describes the region `a` followed by the region `b`, i.e. side 2 of
    `a` coincides with side 1 of `b`. The product is associative but not
    commutative, and so the order of arguments must follow the physical order.

    Args:
        a: The scattering matrix of the upstream region.
        b: The scattering matrix of the downstream region.
        max_condition_number: Matrices with larger condition number are considered
            singular.

    Returns:
        The `ScatteringMatrix` of the combined region.

    Raises:
        SingularMatrixError: If the multiple-reflection matrices `I - b.s11 @ a.s22`
            or `I - a.s22 @ b.s11` cannot be inverted.
    """
    if a.num_modes != b.num_modes:
        raise errors.InconsistentHarmonicCountError(
            f"Scattering matrices must have the same number of modes, but got "
            f"{a.num_modes} and {b.num_modes}."
        )

    # See https://en.wikipedia.org/wiki/Redheffer_star_product
    eye = jnp.eye(a.num_modes, dtype=complex)
    d = utils.right_solve(
        eye - b.s11 @ a.s22, a.s12, "I - b.s11 @ a.s22", max_condition_number
    )
    f = utils.right_solve(
        eye - a.s22 @ b.s11, b.s21, "I - a.s22 @ b.s11", max_condition_number
    )
    return ScatteringMatrix(
        s11=a.s11 + d @ b.s11 @ a.s21,
        s12=d @ b.s12,
        s21=f @ a.s21,
        s22=b.s22 + f @ a.s22 @ b.s12,
    )


def stack_s_matrix(
    s_matrices: Sequence[ScatteringMatrix],
    max_condition_number: float = utils.MAX_CONDITION_NUMBER,
) -> ScatteringMatrix:
    """Combines scattering matrices of adjacent regions, given in physical order.

    The matrices are folded from left to right, so that each partial result is
    the upstream argument of the next star product.

    Args:
        s_matrices: The scattering matrices, ordered from the reflection side to
            the transmission side.
        max_condition_number: Matrices with larger condition number are considered
            singular.

    Returns:
        The `ScatteringMatrix` for the full stack.
    """
    if len(s_matrices) == 0:
        raise ValueError("`s_matrices` must contain at least one scattering matrix.")

    s_matrix = s_matrices[0]
    for next_s_matrix in s_matrices[1:]:
        s_matrix = redheffer_star_product(
            s_matrix, next_s_matrix, max_condition_number
        )
    return s_matrix


def global_s_matrix(
    reflection_s_matrix: ScatteringMatrix,
    layer_s_matrices: Sequence[ScatteringMatrix],
    transmission_s_matrix: ScatteringMatrix,
    max_condition_number: float = utils.MAX_CONDITION_NUMBER,
) -> ScatteringMatrix:
    """Computes the global scattering matrix of a device between two half-spaces.

    With no layers, the result is the product of the two boundary matrices, which
    describes a single interface between the reflection and transmission regions.

    Args:
        reflection_s_matrix: The boundary matrix of the reflection region.
        layer_s_matrices: The layer matrices, ordered from the reflection side.
        transmission_s_matrix: The boundary matrix of the transmission region.
        max_condition_number: Matrices with larger condition number are considered
            singular.

    Returns:
        The global `ScatteringMatrix`.
    """
    return stack_s_matrix(
        [reflection_s_matrix, *layer_s_matrices, transmission_s_matrix],
        max_condition_number,
    )


# -----------------------------------------------------------------------------
# Register custom objects in this module with jax to enable `jit`.
# -----------------------------------------------------------------------------


jax.tree_util.register_pytree_node(
    ScatteringMatrix,
    lambda x: ((x.s11, x.s12, x.s21, x.s22), None),
    lambda _, x: ScatteringMatrix(*x),
)
