"""A two-layer grating with a triangular inclusion, at microwave frequencies.

The device consists of a layer with a triangular hole above an unpatterned layer,
between two dielectric half-spaces. All lengths are in centimeters.

Copyright (c) Meta Platforms, Inc. and affiliates.
"""

import math
from typing import Tuple

import jax
import numpy as onp

from rcwax import efficiency, fft, harmonics, homogeneous, layer, simulation, sources


def _round(x: float) -> int:
    """Rounds half away from zero, for non-negative `x`."""
    return int(math.floor(x + 0.5))


def triangle_permittivity(
    grid_shape: Tuple[int, int],
    period_x: float,
    period_y: float,
    width: float,
    permittivity_triangle: complex,
    permittivity_background: complex,
) -> onp.ndarray:
    """Rasterizes an equilateral triangle centered in the unit cell.

    The triangle has its apex toward `-y` and its base, of length `width`, toward
    `+y`. Each row of the grid is filled with a centered run of pixels whose length
    increases linearly from the apex to the base.

    Args:
        grid_shape: The number of grid points along the x- and y-axes.
        period_x: The period along the x-axis.
        period_y: The period along the y-axis.
        width: The length of the base of the triangle.
        permittivity_triangle: The permittivity inside the triangle.
        permittivity_background: The permittivity outside the triangle.

    Returns:
        The permittivity grid, with shape `grid_shape`.
    """
    num_x, num_y = grid_shape
    dy = period_y / num_y
    height = 0.5 * math.sqrt(3) * width

    num_rows = _round(height / dy)
    # Rows are counted from one.
    first_row = _round((num_y - num_rows) / 2)
    last_row = first_row + num_rows - 1

    permittivity = onp.full(grid_shape, permittivity_background, dtype=complex)
    for row in range(first_row, last_row + 1):
        fraction = (row - first_row) / (last_row - first_row)
        run = _round(fraction * width / period_x * num_x)
        start = (num_x - run) // 2
        permittivity[start : start + run + 1, row - 1] = permittivity_triangle
    return permittivity


def simulate_triangle_grating(
    wavelength: float = 2.0,
    polar_angle: float = 0.0,
    azimuthal_angle: float = 0.0,
    pte: complex = 1.0,
    ptm: complex = 0.0,
    permittivity_reflection: complex = 2.0,
    permittivity_transmission: complex = 9.0,
    permittivity_device: complex = 6.0,
    period_x: float = 1.75,
    period_y: float = 1.5,
    thickness_triangle: float = 0.5,
    thickness_slab: float = 0.3,
    width_fraction: float = 0.8,
    grid_x: int = 512,
    num_harmonics: int = 3,
) -> efficiency.DiffractionEfficiencies:
    """Computes the diffraction efficiencies of the triangle grating.

    Args:
        wavelength: The free-space wavelength.
        polar_angle: Polar angle of the incident plane wave, in radians.
        azimuthal_angle: Azimuthal angle of the incident plane wave, in radians.
        pte: The amplitude of the TE-polarized component.
        ptm: The amplitude of the TM-polarized component.
        permittivity_reflection: Permittivity of the reflection region, which also
            fills the triangle.
        permittivity_transmission: Permittivity of the transmission region.
        permittivity_device: Permittivity of both layers of the device.
        period_x: The period along the x-axis.
        period_y: The period along the y-axis.
        thickness_triangle: The thickness of the patterned layer.
        thickness_slab: The thickness of the unpatterned layer.
        width_fraction: The base of the triangle, as a fraction of `period_y`.
        grid_x: The number of grid points along the x-axis. The number along the
            y-axis is chosen to give square pixels.
        num_harmonics: The number of harmonics along each axis.

    Returns:
        The `DiffractionEfficiencies`.
    """
    grid_shape = (grid_x, _round(grid_x * period_y / period_x))
    expansion = harmonics.Harmonics(num_harmonics, num_harmonics)

    permittivity = triangle_permittivity(
        grid_shape=grid_shape,
        period_x=period_x,
        period_y=period_y,
        width=width_fraction * period_y,
        permittivity_triangle=permittivity_reflection,
        permittivity_background=permittivity_device,
    )
    permeability_matrix = fft.convolution_matrix(onp.ones(grid_shape), expansion)
    layers = [
        layer.Layer(
            thickness=thickness_triangle,
            permittivity_matrix=fft.convolution_matrix(permittivity, expansion),
            permeability_matrix=permeability_matrix,
        ),
        layer.Layer.uniform(
            thickness=thickness_slab,
            permittivity=permittivity_device,
            permeability=1.0,
            num_terms=expansion.num_terms,
        ),
    ]

    return simulation.simulate(
        excitation=sources.Excitation(
            wavelength=wavelength,
            polar_angle=polar_angle,
            azimuthal_angle=azimuthal_angle,
            pte=pte,
            ptm=ptm,
        ),
        lattice=harmonics.Lattice(period_x, period_y),
        expansion=expansion,
        reflection_medium=homogeneous.Medium(permittivity_reflection),
        transmission_medium=homogeneous.Medium(permittivity_transmission),
        layers=layers,
    )


def main() -> None:
    jax.config.update("jax_enable_x64", True)
    result = simulate_triangle_grating()
    total = result.total_reflection + result.total_transmission
    print(f"R = {float(result.total_reflection):.5f}")
    print(f"T = {float(result.total_transmission):.5f}")
    print(f"R + T = {float(total):.5f}")
    with onp.printoptions(precision=5, suppress=True):
        print("Reflection into each order (p, q):")
        print(onp.asarray(result.reflection))
        print("Transmission into each order (p, q):")
        print(onp.asarray(result.transmission))


if __name__ == "__main__":
    main()
