"""Gaussian kernel geometry and separable evaluation.

Provides:
    - suggested_kernel_diameter(): Odd window diameter covering ±3σ
    - KernelGeometry: Per-axis window size and cached 2σ² denominators
    - gauss_value() / gauss_profile(): exp(-(c - x)² / 2σ²) per axis

A zero sigma on an axis collapses the window to a single voxel (the rounded
center) and sets the denominator to 1, so that voxel gets exp(-(c - x)²): 1 for
an integer center, less for a sub-voxel offset.

The D-dimensional kernel is separable: its value at an offset is the product of
the per-axis values, so a full window is the outer product of D profiles.
"""

import math
from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np


def suggested_kernel_diameter(sigma: float) -> int:
    """Suggest an odd kernel diameter for a Gaussian of width sigma.

    Parameters
    ----------
    sigma : float
        Standard deviation in voxels

    Returns
    -------
    int
        Window diameter ``2 * round(3σ) + 1``, at least 3
    """
    size = 3
    if sigma > 0:
        size = max(3, 2 * int(3 * sigma + 0.5) + 1)
    return size


@dataclass(frozen=True)
class KernelGeometry:
    """Per-axis window size and Gaussian denominator derived from sigma.

    Attributes
    ----------
    sigma : tuple of float
        Standard deviation per axis (voxels)
    size : tuple of int
        Window diameter per axis
    two_sq_sigma : tuple of float
        ``2σ²`` per axis, or 1.0 where σ == 0
    """
    sigma: Tuple[float, ...]
    size: Tuple[int, ...]
    two_sq_sigma: Tuple[float, ...]

    @classmethod
    def from_sigma(cls, sigma: Sequence[float]) -> 'KernelGeometry':
        """Build geometry from a per-axis sigma vector.

        Raises
        ------
        ValueError
            If sigma is empty or has negative / non-finite entries
        """
        sigma = tuple(float(s) for s in sigma)
        if not sigma:
            raise ValueError("sigma must have at least one axis")

        size = []
        two_sq_sigma = []
        for d, s in enumerate(sigma):
            if not math.isfinite(s) or s < 0:
                raise ValueError(f"sigma[{d}] must be finite and >= 0, got {s}")
            if s == 0:
                size.append(1)
                two_sq_sigma.append(1.0)
            else:
                size.append(suggested_kernel_diameter(s))
                two_sq_sigma.append(2.0 * s * s)

        return cls(sigma=sigma, size=tuple(size), two_sq_sigma=tuple(two_sq_sigma))

    @property
    def num_dimensions(self) -> int:
        return len(self.sigma)

    @property
    def window_volume(self) -> int:
        """Number of voxels in one kernel window."""
        return int(np.prod(self.size))


def gauss_value(center: float, coord: int, two_sq_sigma: float) -> float:
    """Unnormalized Gaussian at integer coordinate for a continuous center."""
    x = center - coord
    return math.exp(-(x * x) / two_sq_sigma)


def gauss_profile(center: float, coords: np.ndarray, two_sq_sigma: float) -> np.ndarray:
    """Vectorized gauss_value over a 1-D array of integer coordinates.

    Parameters
    ----------
    center : float
        Continuous kernel center along the axis
    coords : np.ndarray
        Integer voxel coordinates, shape (N,)
    two_sq_sigma : float
        Cached ``2σ²`` for the axis

    Returns
    -------
    np.ndarray
        FP64 kernel values, shape (N,)
    """
    x = center - np.asarray(coords, dtype=np.float64)
    return np.exp(-(x * x) / two_sq_sigma)
