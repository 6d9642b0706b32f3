"""Computes diffraction efficiencies for a layered periodic device.

Copyright (c) Meta Platforms, Inc. and affiliates.
"""

from typing import Optional, Sequence

from rcwax import efficiency, harmonics, homogeneous, layer, scattering, sources


def simulate(
    excitation: sources.Excitation,
    lattice: harmonics.Lattice,
    expansion: harmonics.Harmonics,
    reflection_medium: homogeneous.Medium,
    transmission_medium: homogeneous.Medium,
    layers: Sequence[layer.Layer],
    reference_direction: homogeneous.ReferenceDirection = (
        homogeneous.ReferenceDirection.FORWARD
    ),
    check_energy: bool = True,
    energy_tolerance: float = efficiency.ENERGY_TOLERANCE,
    gap_medium: Optional[homogeneous.Medium] = None,
) -> efficiency.DiffractionEfficiencies:
    """Computes reflection and transmission efficiencies of a device.

    The device consists of `layers`, ordered from the reflection region to the
    transmission region. The plane wave is incident from the reflection region.

    Args:
        excitation: The incident plane wave.
        lattice: The lattice of the periodic device.
        expansion: The harmonics used in the expansion. The convolution matrices of
            all layers must be computed for these harmonics.
        reflection_medium: The material of the reflection region.
        transmission_medium: The material of the transmission region.
        layers: The layers of the device. May be empty, in which case the device is
            a single interface.
        reference_direction: The sign convention for the eigenvalues of the
            reflection and transmission regions. The gap and the layers always
            use `FORWARD`. With `REVERSED`, a half-space of the same material as
            the gap has singular boundary matrices.
        check_energy: If `True`, warn when reflection and transmission do not sum
            to unity.
        energy_tolerance: The tolerance used in the energy conservation check.
        gap_medium: The material of the zero-thickness gap between regions. If
            `None`, `homogeneous.default_gap_medium` is used, which is vacuum
            unless an order is near cutoff in vacuum.

    Returns:
        The `DiffractionEfficiencies`.

    Raises:
        SingularMatrixError: If a required matrix inverse does not exist.
        EigenBranchAmbiguityError: If a mode is at cutoff in a half-space or layer.
        InconsistentHarmonicCountError: If any layer does not match `expansion`.
    """
    wavevectors = harmonics.wavevector_matrices(
        wavelength=excitation.wavelength,
        polar_angle=excitation.polar_angle,
        azimuthal_angle=excitation.azimuthal_angle,
        lattice=lattice,
        harmonics=expansion,
        reflection_permittivity=reflection_medium.permittivity,
        reflection_permeability=reflection_medium.permeability,
        transmission_permittivity=transmission_medium.permittivity,
        transmission_permeability=transmission_medium.permeability,
    )
    if gap_medium is None:
        gap_medium = homogeneous.default_gap_medium(wavevectors.kx, wavevectors.ky)
    gap = homogeneous.gap_mode_basis(wavevectors.kx, wavevectors.ky, gap_medium)

    reflection_basis, reflection_s_matrix = homogeneous.half_space(
        medium=reflection_medium,
        kz=wavevectors.kz_reflection,
        wavevectors=wavevectors,
        gap=gap,
        side=homogeneous.Side.REFLECTION,
        direction=reference_direction,
    )
    transmission_basis, transmission_s_matrix = homogeneous.half_space(
        medium=transmission_medium,
        kz=wavevectors.kz_transmission,
        wavevectors=wavevectors,
        gap=gap,
        side=homogeneous.Side.TRANSMISSION,
        direction=reference_direction,
    )

    layer_s_matrices = layer.layer_s_matrices(
        layers, wavevectors, excitation.wavelength, gap
    )
    s_matrix = scattering.global_s_matrix(
        reflection_s_matrix, layer_s_matrices, transmission_s_matrix
    )

    polarization = sources.polarization_vector(
        polar_angle=excitation.polar_angle,
        azimuthal_angle=excitation.azimuthal_angle,
        pte=excitation.pte,
        ptm=excitation.ptm,
    )
    result = efficiency.diffraction_efficiencies(
        s_matrix=s_matrix,
        wavevectors=wavevectors,
        reflection_basis=reflection_basis,
        transmission_basis=transmission_basis,
        source=sources.source_vector(polarization, expansion),
        reflection_medium=reflection_medium,
        transmission_medium=transmission_medium,
        expansion=expansion,
    )
    if check_energy:
        efficiency.check_energy_conservation(result, energy_tolerance)
    return result
