"""Weighted average projection of a signal/weight volume pair along one axis.

For each index q of the remaining axes:

    sum[q]   = Σ_z signal[q, z] * weight[q, z]   over z with signal[q, z] > 0
    count[q] = Σ_z weight[q, z]                  over the same z
    out[q]   = sum[q] / count[q]

Columns with count == 0 (no positive signal, or only zero weight behind it)
are filled with ``empty_value``. The default 0.0 keeps projections finite;
pass ``float('nan')`` to mark empty columns explicitly.
"""

import numpy as np

from src.utils import volumes


def project(
    signal: volumes.VolumeLike,
    weight: volumes.VolumeLike,
    axis: int = 2,
    empty_value: float = 0.0
) -> np.ndarray:
    """Collapse ``axis`` into a weight-averaged image.

    Parameters
    ----------
    signal : np.ndarray or torch.Tensor
        Accumulated signal, rank >= 2
    weight : np.ndarray or torch.Tensor
        Accumulated weight, same shape as signal
    axis : int
        Axis to collapse (default 2, i.e. z for (x, y, z) volumes)
    empty_value : float
        Output for columns without positive signal

    Returns
    -------
    np.ndarray
        FP32 projection, shape == signal.shape without ``axis``

    Raises
    ------
    ValueError
        If shapes differ, rank < 2, or axis is out of range
    """
    v = volumes.as_volume_array(signal, "signal")
    w = volumes.as_volume_array(weight, "weight")

    if v.shape != w.shape:
        raise ValueError(f"Signal shape {v.shape} != weight shape {w.shape}")
    if v.ndim < 2:
        raise ValueError(f"Projection needs at least 2 dimensions, got {v.ndim}")
    if not -v.ndim <= axis < v.ndim:
        raise ValueError(f"Axis {axis} out of range for {v.ndim}-D volume")

    positive = v > 0
    w_used = np.where(positive, w, 0.0).astype(np.float64)
    total = np.sum(v.astype(np.float64) * w_used, axis=axis)
    count = np.sum(w_used, axis=axis)

    out = np.full(count.shape, empty_value, dtype=np.float64)
    np.divide(total, count, out=out, where=count != 0)
    return out.astype(np.float32)
