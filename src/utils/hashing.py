"""SHA-256 hashing for simulated volume provenance.

Provides:
    - sha256_file(): Hash file contents (configs, saved volumes)
    - sha256_array(): Hash array values (numpy or torch)
    - sha256_string(): Hash a string

Array hashes cover dtype and shape as well as the raw bytes, so a float32 and a
float64 volume with equal values hash differently. Results are 64-char hex.

Usage:
    from src.utils import hashing
    meta['signal_sha256'] = hashing.sha256_array(signal)
"""

import hashlib
from pathlib import Path
from typing import Union

import numpy as np
import torch


def sha256_file(path: Union[str, Path], chunk_size: int = 1 << 20) -> str:
    """Compute SHA-256 hash of file contents (read in 1 MB chunks).

    Raises
    ------
    FileNotFoundError
        If file doesn't exist
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    sha256 = hashlib.sha256()
    with open(path, 'rb') as f:
        while True:
            chunk = f.read(chunk_size)
            if not chunk:
                break
            sha256.update(chunk)

    return sha256.hexdigest()


def sha256_array(arr: Union[np.ndarray, torch.Tensor]) -> str:
    """Compute SHA-256 hash of array values, dtype and shape.

    Parameters
    ----------
    arr : Union[np.ndarray, torch.Tensor]
        Array to hash; tensors are moved to CPU

    Returns
    -------
    str
        SHA-256 hex digest
    """
    if isinstance(arr, torch.Tensor):
        arr = arr.detach().cpu().numpy()
    arr = np.ascontiguousarray(arr)

    sha256 = hashlib.sha256()
    sha256.update(f"{arr.dtype.str}:{arr.shape}".encode('utf-8'))
    sha256.update(arr.tobytes())
    return sha256.hexdigest()


def sha256_string(s: str) -> str:
    """Compute SHA-256 hash of a UTF-8 string."""
    return hashlib.sha256(s.encode('utf-8')).hexdigest()
