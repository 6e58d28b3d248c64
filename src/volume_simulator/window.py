"""Kernel window traversal and zero-extended volume access.

Provides:
    - round_half_away(): Round to nearest, ties away from zero
    - WindowCursor: Axis-aligned integer box around a continuous center
    - ZeroExtendedVolume: Bounds-checked accessor (read 0 / drop writes outside)

Window bounds per axis d:
    min[d] = round_half_away(location[d]) - size[d] // 2
    max[d] = min[d] + size[d] - 1

Iteration order is axis 0 fastest, last axis slowest. Sums over a window taken
in this order are reproducible across runs.

The window never looks at a volume's extent; only ZeroExtendedVolume decides
which part of a window actually lands in memory.
"""

import itertools
import math
from typing import Iterator, Optional, Sequence, Tuple

import numpy as np

from .kernel import KernelGeometry


def round_half_away(x: float) -> int:
    """Round to nearest integer, ties away from zero (2.5 → 3, -2.5 → -3)."""
    return int(math.copysign(math.floor(abs(x) + 0.5), x))


class WindowCursor:
    """Integer coordinates of a kernel window centered at a continuous location.

    Attributes
    ----------
    location : tuple of float
        Continuous center
    min : tuple of int
        Inclusive lower corner
    max : tuple of int
        Inclusive upper corner
    """

    def __init__(self, location: Sequence[float], geometry: KernelGeometry):
        location = tuple(float(x) for x in location)
        if len(location) != geometry.num_dimensions:
            raise ValueError(
                f"Location has {len(location)} coordinates, "
                f"kernel has {geometry.num_dimensions} dimensions"
            )

        self.location = location
        self.min = tuple(
            round_half_away(x) - s // 2 for x, s in zip(location, geometry.size)
        )
        self.max = tuple(lo + s - 1 for lo, s in zip(self.min, geometry.size))

    @property
    def shape(self) -> Tuple[int, ...]:
        return tuple(hi - lo + 1 for lo, hi in zip(self.min, self.max))

    @property
    def num_dimensions(self) -> int:
        return len(self.min)

    def __len__(self) -> int:
        return int(np.prod(self.shape))

    def __iter__(self) -> Iterator[Tuple[int, ...]]:
        # product() varies its last argument fastest, so feed axes reversed
        ranges = [range(lo, hi + 1) for lo, hi in zip(self.min, self.max)]
        for coords in itertools.product(*reversed(ranges)):
            yield tuple(reversed(coords))

    def __repr__(self) -> str:
        return f"WindowCursor(min={self.min}, max={self.max})"

    def axis_coordinates(self, d: int) -> np.ndarray:
        """Integer coordinates covered along axis d, shape (size[d],)."""
        return np.arange(self.min[d], self.max[d] + 1, dtype=np.int64)

    def contains(self, position: Sequence[int]) -> bool:
        return all(lo <= p <= hi for p, lo, hi in zip(position, self.min, self.max))


class ZeroExtendedVolume:
    """Dense array viewed as an infinite grid padded with zeros.

    Reads outside the array return 0.0; writes outside are silently dropped.
    Only the in-bounds overlap of a window is ever touched in memory.

    Parameters
    ----------
    array : np.ndarray
        Backing array (mutated in place by writes)
    """

    def __init__(self, array: np.ndarray):
        self.array = array

    @property
    def shape(self) -> Tuple[int, ...]:
        return self.array.shape

    @property
    def ndim(self) -> int:
        return self.array.ndim

    def in_bounds(self, position: Sequence[int]) -> bool:
        if len(position) != self.array.ndim:
            raise ValueError(
                f"Position {tuple(position)} has {len(position)} coordinates, "
                f"volume has {self.array.ndim} dimensions"
            )
        return all(0 <= p < n for p, n in zip(position, self.array.shape))

    def __getitem__(self, position: Sequence[int]) -> float:
        if not self.in_bounds(position):
            return 0.0
        return float(self.array[tuple(position)])

    def __setitem__(self, position: Sequence[int], value: float) -> None:
        if self.in_bounds(position):
            self.array[tuple(position)] = value

    def clip(self, window: WindowCursor) -> Optional[Tuple[Tuple[slice, ...], Tuple[slice, ...]]]:
        """Overlap between a window and the array.

        Parameters
        ----------
        window : WindowCursor
            Kernel window (may extend past the array on any side)

        Returns
        -------
        tuple or None
            ``(volume_slices, window_slices)`` addressing the same voxels in the
            array and in a window-shaped block, or None if they do not overlap
        """
        if window.num_dimensions != self.array.ndim:
            raise ValueError(
                f"Window has {window.num_dimensions} dimensions, "
                f"volume has {self.array.ndim}"
            )

        volume_slices = []
        window_slices = []
        for lo, hi, n in zip(window.min, window.max, self.array.shape):
            start = max(lo, 0)
            stop = min(hi + 1, n)
            if stop <= start:
                return None
            volume_slices.append(slice(start, stop))
            window_slices.append(slice(start - lo, stop - lo))

        return tuple(volume_slices), tuple(window_slices)

    def add_window(self, window: WindowCursor, block: np.ndarray) -> bool:
        """Add a window-shaped block into the array, dropping what falls outside.

        Returns
        -------
        bool
            True if any voxel was written
        """
        if block.shape != window.shape:
            raise ValueError(f"Block shape {block.shape} != window shape {window.shape}")

        overlap = self.clip(window)
        if overlap is None:
            return False

        volume_slices, window_slices = overlap
        self.array[volume_slices] += block[window_slices]
        return True
