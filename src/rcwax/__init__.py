# Copyright (c) Meta Platforms, Inc. and affiliates.

__version__ = "v0.1.0"

from . import (
    efficiency,
    errors,
    fft,
    harmonics,
    homogeneous,
    layer,
    scattering,
    simulation,
    sources,
    utils,
)
