"""Weight-based normalization of an accumulated signal volume.

For every voxel p:

    output[p] = signal[p] / weight[p]   if weight[p] > min_weight
    output[p] = signal[p]               otherwise

Below the threshold the accumulated weight is too small to trust, so the raw
signal is kept instead of being amplified by a near-zero divisor.
"""

import numpy as np

from src.utils import volumes

DEFAULT_MIN_WEIGHT = 1.0


def normalize(
    output: volumes.VolumeLike,
    signal: volumes.VolumeLike,
    weight: volumes.VolumeLike,
    min_weight: float = DEFAULT_MIN_WEIGHT
) -> None:
    """Write the normalized signal into ``output`` (in place).

    Parameters
    ----------
    output : np.ndarray or torch.Tensor
        Destination volume; may alias ``signal``
    signal : np.ndarray or torch.Tensor
        Accumulated signal
    weight : np.ndarray or torch.Tensor
        Accumulated kernel weight
    min_weight : float
        Weights at or below this value leave the signal unscaled

    Raises
    ------
    ValueError
        If the three volumes do not share one shape
    """
    out = volumes.as_volume_array(output, "output")
    v = volumes.as_volume_array(signal, "signal")
    w = volumes.as_volume_array(weight, "weight")

    if not (out.shape == v.shape == w.shape):
        raise ValueError(
            f"Shape mismatch: output {out.shape}, signal {v.shape}, weight {w.shape}"
        )

    significant = w > min_weight
    ratio = np.divide(v, w, out=np.array(v, dtype=np.float64), where=significant)
    out[...] = ratio


def normalized(
    signal: volumes.VolumeLike,
    weight: volumes.VolumeLike,
    min_weight: float = DEFAULT_MIN_WEIGHT
) -> np.ndarray:
    """Allocate an FP32 volume shaped like ``signal`` and normalize into it."""
    v = volumes.as_volume_array(signal, "signal")
    out = np.zeros(v.shape, dtype=np.float32)
    normalize(out, v, weight, min_weight=min_weight)
    return out
