"""Exceptions and warnings raised by the rcwax pipeline.

Copyright (c) Meta Platforms, Inc. and affiliates.
"""


class RcwaError(RuntimeError):
    """Base class for numerical failures that abort a simulation."""


class SingularMatrixError(RcwaError):
    """Raised when a matrix to be inverted is singular or ill-conditioned.

    This occurs e.g. for a lossless layer exactly at a resonance, or for a
    composition of two scattering matrices forming a cavity with no net coupling.
    Adding a small loss to the offending layer is the usual remedy.
    """


class EigenBranchAmbiguityError(RcwaError):
    """Raised when a propagation constant lies at the branch point of the root.

    In this case the choice between the growing and decaying solution cannot be
    made reliably, and the mode admittance is undefined.
    """


class InconsistentHarmonicCountError(RcwaError, ValueError):
    """Raised when arrays disagree on the number of harmonics."""


class EnergyConservationWarning(RuntimeWarning):
    """Warns that reflected and transmitted power do not sum to unity."""
