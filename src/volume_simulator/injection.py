"""Gaussian point-source injection into a signal/weight volume pair.

Each call splats an anisotropic Gaussian around a continuous location:

    value(p)   = Π_d exp(-(location[d] - p[d])² / 2σ_d²)
    signal[p] += value(p) * intensity
    weight[p] += value(p)

over the kernel window (see window.WindowCursor). Voxels of the window outside
the volume are dropped.

Two intensity conventions:
    - add_gaussian: intensity is the PEAK value (value == 1 at the center)
    - add_normalized_gaussian: intensity is the TOTAL mass of the kernel,
      rescaled by sum_weights (kernel mass of a window centered at the origin)

Usage:
    signal = np.zeros((64, 64, 16), dtype=np.float32)
    weight = np.zeros_like(signal)
    injector = VolumeInjector(signal, weight, sigma=(2.0, 2.0, 1.0))
    injector.add_normalized_gaussian(500.0, (31.2, 12.7, 8.0))
    normed = injector.normalize()
    mip = injector.project()

Single writer: concurrent calls on one volume pair race on read-modify-write.
"""

import logging
from functools import reduce
from typing import Sequence, Tuple

import numpy as np

from src.utils import volumes

from . import normalization, projection
from .kernel import KernelGeometry, gauss_profile
from .window import WindowCursor, ZeroExtendedVolume

logger = logging.getLogger(__name__)


class VolumeInjector:
    """Splat Gaussian point sources into signal and weight volumes.

    Attributes
    ----------
    geometry : KernelGeometry
        Window size and cached denominators per axis
    sum_weights : float
        Sum of the unit-peak kernel over a window centered at the origin
    num_pixels : int
        Number of voxels in that reference window
    """

    def __init__(
        self,
        signal: volumes.VolumeLike,
        weight: volumes.VolumeLike,
        sigma: Sequence[float]
    ):
        """Initialize injector.

        Parameters
        ----------
        signal : np.ndarray or torch.Tensor
            Signal volume, mutated in place
        weight : np.ndarray or torch.Tensor
            Weight volume, same shape as signal, mutated in place
        sigma : sequence of float
            Gaussian standard deviation per axis (voxels), len == volume rank

        Raises
        ------
        ValueError
            If shapes differ, sigma length != rank, or sigma is invalid
        TypeError
            If a volume is not a floating-point array/CPU tensor
        """
        self._signal_in = signal
        self._weight_in = weight
        signal_arr = volumes.as_volume_array(signal, "signal")
        weight_arr = volumes.as_volume_array(weight, "weight")

        if signal_arr.shape != weight_arr.shape:
            raise ValueError(
                f"Signal shape {signal_arr.shape} != weight shape {weight_arr.shape}"
            )

        self.geometry = KernelGeometry.from_sigma(sigma)
        if self.geometry.num_dimensions != signal_arr.ndim:
            raise ValueError(
                f"sigma has {self.geometry.num_dimensions} entries, "
                f"volumes have {signal_arr.ndim} dimensions"
            )

        self._signal = ZeroExtendedVolume(signal_arr)
        self._weight = ZeroExtendedVolume(weight_arr)

        # Reference window at the origin; summed axis-0 fastest (window order)
        origin = (0.0,) * self.geometry.num_dimensions
        reference, kernel = self.kernel_weights(origin)
        self.sum_weights = float(np.sum(kernel.ravel(order='F')))
        self.num_pixels = len(reference)

        logger.info(
            f"VolumeInjector initialized: shape={signal_arr.shape}, "
            f"sigma={self.geometry.sigma}, size={self.geometry.size}, "
            f"sum_weights={self.sum_weights:.6f}, num_pixels={self.num_pixels}"
        )

    @property
    def num_dimensions(self) -> int:
        return self.geometry.num_dimensions

    @property
    def size(self) -> Tuple[int, ...]:
        return self.geometry.size

    @property
    def signal(self) -> volumes.VolumeLike:
        """Signal volume as passed to the constructor."""
        return self._signal_in

    @property
    def weight(self) -> volumes.VolumeLike:
        """Weight volume as passed to the constructor."""
        return self._weight_in

    def window(self, location: Sequence[float]) -> WindowCursor:
        """Kernel window around a location (independent of the volume extent)."""
        return WindowCursor(location, self.geometry)

    def kernel_weights(self, location: Sequence[float]) -> Tuple[WindowCursor, np.ndarray]:
        """Evaluate the unit-peak kernel over the window around a location.

        Parameters
        ----------
        location : sequence of float
            Continuous kernel center, len == num_dimensions

        Returns
        -------
        window : WindowCursor
            Window that the block covers
        block : np.ndarray
            FP64 kernel values, shape == window.shape (axis d ↔ spatial axis d)
        """
        window = self.window(location)
        profiles = [self._axis_profile(window, d) for d in range(self.num_dimensions)]
        block = reduce(np.multiply.outer, profiles)
        return window, np.asarray(block, dtype=np.float64)

    def _axis_profile(self, window: WindowCursor, d: int) -> np.ndarray:
        return gauss_profile(
            window.location[d], window.axis_coordinates(d), self.geometry.two_sq_sigma[d]
        )

    def add_gaussian(self, intensity: float, location: Sequence[float]) -> None:
        """Splat a Gaussian whose peak value is ``intensity``.

        Parameters
        ----------
        intensity : float
            Signal scale at the kernel center
        location : sequence of float
            Continuous kernel center (voxel coordinates)
        """
        window, block = self.kernel_weights(location)

        written = self._signal.add_window(window, block * intensity)
        self._weight.add_window(window, block)

        if not written:
            logger.debug(f"Point source at {window.location} lies outside the volume, dropped")

    def add_normalized_gaussian(self, intensity: float, location: Sequence[float]) -> None:
        """Splat a Gaussian whose total mass is ``intensity``."""
        self.add_gaussian(intensity / self.sum_weights, location)

    def normalize(self, min_weight: float = normalization.DEFAULT_MIN_WEIGHT) -> np.ndarray:
        """Normalized copy of the signal volume (see normalization.normalized)."""
        return normalization.normalized(self._signal.array, self._weight.array, min_weight=min_weight)

    def project(self, axis: int = 2, empty_value: float = 0.0) -> np.ndarray:
        """Weighted projection of the volume pair (see projection.project)."""
        return projection.project(
            self._signal.array, self._weight.array, axis=axis, empty_value=empty_value
        )
