"""Volume Injection: Gaussian point-source simulation of volumetric images.

This package deposits point emitters into dense voxel grids by splatting an
anisotropic Gaussian kernel around each source, tracking the deposited kernel
weight alongside the signal so the result can be normalized or projected.

Architecture layers (strict one-way dependency):
    scripts/ → src/volume_simulator/ → src/utils/

Key invariants:
    - Signal and weight volumes always share one shape
    - Array axis d is spatial axis d; sigma has one entry per axis
    - Out-of-range voxels read as 0 and swallow writes (extend-with-zero)
    - YAML-only configs, validated with pydantic
"""

__version__ = "1.0.0"
