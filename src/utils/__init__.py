"""Cross-cutting utilities (lowest dependency layer).

This package provides shared primitives for:
    - Config validation (validators)
    - Dense volume interop & checks (volumes)
    - Atomic I/O (fs)
    - Hashing for provenance (hashing)
    - Profiling (profiler)
    - Unified logging (logging_config)

No module in utils/ may import from upper layers (volume_simulator, scripts).

Convenience imports:
    from src.utils import fs, validators, volumes
    from src.utils.logging_config import setup_logging, get_logger
"""

from . import fs
from . import hashing
from . import logging_config
from . import profiler
from . import validators
from . import volumes

from .logging_config import get_logger, push_context, setup_logging

__all__ = [
    # Modules
    'fs',
    'hashing',
    'logging_config',
    'profiler',
    'validators',
    'volumes',
    # Direct exports
    'setup_logging',
    'get_logger',
    'push_context',
]
