"""Dense volume helpers: interop, allocation, finiteness checks, previews.

Provides:
    - as_volume_array(): numpy array or CPU torch tensor → writable numpy view
    - allocate_volume(): Zero-filled FP32/FP64 volume
    - assert_finite(): Fail fast on NaN/Inf
    - to_uint8_preview(): Min-max scaled 8-bit image for quick looks

Torch tensors are never copied: ``Tensor.numpy()`` shares storage with the
tensor, so in-place accumulation through the returned view mutates the tensor
the caller passed in.

Usage:
    from src.utils import volumes
    signal = volumes.allocate_volume((64, 64, 16))
    view = volumes.as_volume_array(torch.zeros(64, 64, 16))
"""

from typing import Sequence, Union

import numpy as np
import torch

VolumeLike = Union[np.ndarray, torch.Tensor]


def as_volume_array(volume: VolumeLike, name: str = "volume") -> np.ndarray:
    """Return a writable floating-point numpy view of a volume.

    Parameters
    ----------
    volume : np.ndarray or torch.Tensor
        Dense volume; tensors must live on the CPU
    name : str
        Volume name for error messages

    Returns
    -------
    np.ndarray
        View sharing memory with the input

    Raises
    ------
    TypeError
        If the volume is not an array/tensor, is not floating point, or is a
        tensor on a non-CPU device
    ValueError
        If the array is read-only
    """
    if isinstance(volume, torch.Tensor):
        if volume.device.type != 'cpu':
            raise TypeError(f"{name} must be a CPU tensor, got device {volume.device}")
        if not volume.is_floating_point():
            raise TypeError(f"{name} must be floating point, got {volume.dtype}")
        array = volume.detach().numpy()
    elif isinstance(volume, np.ndarray):
        array = volume
    else:
        raise TypeError(f"{name} must be np.ndarray or torch.Tensor, got {type(volume).__name__}")

    if not np.issubdtype(array.dtype, np.floating):
        raise TypeError(f"{name} must be floating point, got {array.dtype}")
    if not array.flags.writeable:
        raise ValueError(f"{name} is read-only")

    return array


def allocate_volume(shape: Sequence[int], dtype: str = "float32") -> np.ndarray:
    """Allocate a zero-filled volume.

    Raises
    ------
    ValueError
        If any extent is < 1 or dtype is not float32/float64
    """
    shape = tuple(int(n) for n in shape)
    if not shape or any(n < 1 for n in shape):
        raise ValueError(f"Volume extents must be >= 1, got {shape}")
    if dtype not in ("float32", "float64"):
        raise ValueError(f"dtype must be 'float32' or 'float64', got {dtype}")
    return np.zeros(shape, dtype=dtype)


def assert_finite(x: VolumeLike, name: str = "volume") -> None:
    """Assert a volume contains no NaN or Inf values.

    Raises
    ------
    ValueError
        If the volume contains NaN or Inf
    """
    if isinstance(x, torch.Tensor):
        x = x.detach().cpu().numpy()
    finite = np.isfinite(x)
    if not finite.all():
        nan_count = int(np.isnan(x).sum())
        inf_count = int(np.isinf(x).sum())
        raise ValueError(
            f"{name} contains non-finite values: {nan_count} NaNs, {inf_count} Infs. "
            f"Shape: {x.shape}, dtype: {x.dtype}"
        )


def to_uint8_preview(image: np.ndarray) -> np.ndarray:
    """Min-max scale an image to uint8 [0, 255].

    Non-finite pixels map to 0. A constant image maps to all zeros.
    """
    image = np.asarray(image, dtype=np.float64)
    finite = np.isfinite(image)
    out = np.zeros(image.shape, dtype=np.uint8)
    if not finite.any():
        return out

    lo = image[finite].min()
    hi = image[finite].max()
    if hi <= lo:
        return out

    scaled = (image[finite] - lo) / (hi - lo) * 255.0
    out[finite] = np.clip(np.round(scaled), 0, 255).astype(np.uint8)
    return out
