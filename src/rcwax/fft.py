"""Functions related to transforming material grids to the Fourier basis.

Copyright (c) Meta Platforms, Inc. and affiliates.
"""

from typing import Tuple

import jax.numpy as jnp

from rcwax import harmonics


def convolution_matrix(
    x: jnp.ndarray,
    expansion: harmonics.Harmonics,
) -> jnp.ndarray:
    """Computes the Fourier convolution matrix for a real-space grid `x`.

    The convolution matrix at location `(m, n)` gives the Fourier coefficient of
    `x` for the order obtained by subtracting the `n`th order from the `m`th
    order, i.e. `(p_m - p_n, q_m - q_n)`. Orders are labeled as in `expansion`.

    Args:
        x: The grid for which the convolution matrix is sought, with shape
            `(..., nx, ny)`. The first of the trailing axes is the x-axis.
        expansion: The harmonics of the expansion.

    Returns:
        The convolution matrix, with shape `(..., num_terms, num_terms)`.
    """
    x = jnp.asarray(x)
    _validate_shape_for_expansion(x.shape, expansion)

    x_fft = jnp.fft.fft2(x, axes=(-2, -1))
    x_fft /= jnp.prod(jnp.asarray(x.shape[-2:]))
    idx = _toeplitz_indices(expansion)
    return x_fft[..., idx[..., 0], idx[..., 1]]


def _toeplitz_indices(expansion: harmonics.Harmonics) -> jnp.ndarray:
    """Computes the order differences for all pairs of orders in `expansion`.

    Args:
        expansion: The harmonics of the expansion.

    Returns:
        The indices, with shape `(num_terms, num_terms, 2)`. Negative values index
        from the end of the transformed array.
    """
    orders = jnp.asarray(expansion.orders)
    return orders[:, jnp.newaxis, :] - orders[jnp.newaxis, :, :]


def _validate_shape_for_expansion(
    shape: Tuple[int, ...],
    expansion: harmonics.Harmonics,
) -> None:
    """Validates that the shape is sufficient for the provided expansion."""
    min_shape = min_array_shape_for_expansion(expansion)
    if len(shape) < 2 or any([d < dmin for d, dmin in zip(shape[-2:], min_shape)]):
        raise ValueError(
            f"`shape` is insufficient for `expansion`, the minimum shape for the "
            f"final two axes is {min_shape} but got shape {shape}."
        )


def min_array_shape_for_expansion(expansion: harmonics.Harmonics) -> Tuple[int, int]:
    """Returns the minimum grid shape whose transform contains all order differences."""
    return (2 * expansion.num_x - 1, 2 * expansion.num_y - 1)
