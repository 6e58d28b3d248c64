"""Gaussian splatting of point sources into signal/weight volume pairs.

Modules:
    - kernel: Window diameter from sigma and separable Gaussian evaluation
    - window: Bounded kernel window around a point and zero-extended access
    - injection: VolumeInjector (splatting + normalization constants)
    - normalization: Weight-based normalization of the signal volume
    - projection: Weighted average projection along one axis
    - simulate: Config-driven simulation (volumes → outputs on disk)

Invariants:
    - Volumes are mutated in place; the core never allocates them for injection
    - Kernel windows are defined by center + size only, never by volume extent
    - FP32 storage, FP64 kernel evaluation

Used by:
    - scripts/simulate_volume.py: CLI driver
"""

from .injection import VolumeInjector
from .kernel import KernelGeometry, gauss_profile, gauss_value, suggested_kernel_diameter
from .normalization import normalize, normalized
from .projection import project
from .window import WindowCursor, ZeroExtendedVolume

__all__ = [
    'VolumeInjector',
    'KernelGeometry',
    'WindowCursor',
    'ZeroExtendedVolume',
    'gauss_profile',
    'gauss_value',
    'normalize',
    'normalized',
    'project',
    'suggested_kernel_diameter',
]
