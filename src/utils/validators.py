"""YAML schema validation and config loading.

Provides centralized validation for simulation configs using pydantic:
    - Injection schema (injection.v1.yaml): volume, kernel sigma, point sources,
      normalization threshold, projection policy, outputs, logging

All entrypoints load configs through these validators for fail-fast error
detection with actionable messages (offending keys, expected ranges).

Units:
    - Coordinates and sigma: voxels, array axis order (axis d ↔ location[d])
    - Intensity: arbitrary signal units

Usage:
    from src.utils import validators
    cfg = validators.load_injection_config("configs/injection.v1.yaml")
"""

from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator


# ============================================================================
# INJECTION SCHEMA V1
# ============================================================================

class VolumeSpec(BaseModel):
    """Dense volume extents and storage type."""
    shape: List[int] = Field(..., min_length=1, description="Extent per axis (voxels)")
    dtype: Literal["float32", "float64"] = Field("float32", description="Storage dtype")

    @field_validator('shape')
    @classmethod
    def validate_extents(cls, v: List[int]) -> List[int]:
        if any(n < 1 for n in v):
            raise ValueError(f"All volume extents must be >= 1, got {v}")
        return v


class KernelSpec(BaseModel):
    """Gaussian kernel width per axis."""
    sigma: List[float] = Field(..., min_length=1, description="Standard deviation per axis (voxels)")

    @field_validator('sigma')
    @classmethod
    def validate_sigma(cls, v: List[float]) -> List[float]:
        for d, s in enumerate(v):
            if not s >= 0 or s == float('inf'):
                raise ValueError(f"sigma[{d}] must be finite and >= 0, got {s}")
        return v


class PointSource(BaseModel):
    """Single point emitter.

    mode="peak" scales the kernel so its center equals ``intensity``;
    mode="integral" scales it so the kernel sums to ``intensity``.
    """
    intensity: float = Field(..., description="Signal intensity")
    location: List[float] = Field(..., min_length=1, description="Continuous center (voxels)")
    mode: Literal["peak", "integral"] = Field("peak", description="Intensity convention")


class NormalizationSpec(BaseModel):
    """Weight threshold below which the signal is left unscaled."""
    min_weight: float = Field(1.0, ge=0.0, description="Divide only where weight > min_weight")


class ProjectionSpec(BaseModel):
    """Weighted projection settings."""
    axis: int = Field(2, ge=0, description="Axis to collapse")
    empty_value: float = Field(0.0, description="Output for columns without positive signal")


class OutputSpec(BaseModel):
    """What to write and where."""
    dir: str = Field("outputs/simulation", description="Output directory")
    save_signal: bool = True
    save_weight: bool = True
    save_normalized: bool = True
    save_projection: bool = True
    preview_png: bool = Field(True, description="8-bit min-max preview of the projection")


class LogRotateSpec(BaseModel):
    """Log file rotation (size- or time-based)."""
    mode: Literal["size", "time"] = "size"
    max_bytes: int = Field(10_000_000, gt=0, description="Size mode: bytes per file")
    when: str = Field("D", description="Time mode: TimedRotatingFileHandler 'when'")
    interval: int = Field(1, ge=1, description="Time mode: rotation interval")
    backup_count: int = Field(5, ge=0, description="Rotated files to keep")


class LoggingSpec(BaseModel):
    """Logging settings for the CLI driver."""
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    file: Optional[str] = Field(None, description="Log file path (None = console only)")
    json_format: bool = Field(False, alias="json", description="JSON lines in the log file")
    rotate: Optional[LogRotateSpec] = Field(None, description="Rotate the log file (requires file)")
    tz: Literal["UTC", "local"] = Field("UTC", description="Timestamp timezone")

    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode='after')
    def validate_rotate(self) -> 'LoggingSpec':
        if self.rotate is not None and not self.file:
            raise ValueError("logging.rotate requires logging.file")
        return self


class InjectionConfigV1(BaseModel):
    """Point-source volume simulation (injection.v1.yaml schema)."""
    schema_version: str = Field("injection.v1", alias="schema", description="Schema version")
    volume: VolumeSpec
    kernel: KernelSpec
    sources: List[PointSource] = Field(default_factory=list)
    normalization: NormalizationSpec = Field(default_factory=NormalizationSpec)
    projection: ProjectionSpec = Field(default_factory=ProjectionSpec)
    outputs: OutputSpec = Field(default_factory=OutputSpec)
    logging: LoggingSpec = Field(default_factory=LoggingSpec)

    model_config = ConfigDict(populate_by_name=True)

    @field_validator('schema_version')
    @classmethod
    def validate_schema(cls, v: str) -> str:
        if v != "injection.v1":
            raise ValueError(f"Expected schema 'injection.v1', got '{v}'")
        return v

    @model_validator(mode='after')
    def validate_dimensions(self) -> 'InjectionConfigV1':
        """sigma, every source location and the projection axis match the volume rank."""
        rank = len(self.volume.shape)

        if len(self.kernel.sigma) != rank:
            raise ValueError(
                f"kernel.sigma has {len(self.kernel.sigma)} entries, volume has {rank} dimensions"
            )

        for i, source in enumerate(self.sources):
            if len(source.location) != rank:
                raise ValueError(
                    f"sources[{i}].location has {len(source.location)} coordinates, "
                    f"volume has {rank} dimensions"
                )

        if self.outputs.save_projection or self.outputs.preview_png:
            if rank < 2:
                raise ValueError(f"Projection needs a volume of rank >= 2, got {rank}")
            if self.projection.axis >= rank:
                raise ValueError(
                    f"projection.axis={self.projection.axis} out of range for rank {rank}"
                )

        return self

    @property
    def rank(self) -> int:
        return len(self.volume.shape)


# ============================================================================
# PUBLIC API
# ============================================================================

def parse_injection_config(data: Dict[str, Any], source: str = "<dict>") -> InjectionConfigV1:
    """Validate an already-loaded injection config mapping.

    Raises
    ------
    ValueError
        If validation fails (message names the source and offending keys)
    """
    if not isinstance(data, dict):
        raise ValueError(f"Injection config at {source} must be a mapping, got {type(data).__name__}")
    try:
        return InjectionConfigV1(**data)
    except ValidationError as e:
        raise ValueError(f"Injection config validation failed at {source}: {e}") from e


def load_injection_config(path: Union[str, Path]) -> InjectionConfigV1:
    """Load and validate injection config from YAML.

    Parameters
    ----------
    path : Union[str, Path]
        Path to injection.v1.yaml file

    Returns
    -------
    InjectionConfigV1
        Validated configuration

    Raises
    ------
    FileNotFoundError
        If path doesn't exist
    ValueError
        If validation fails
    """
    from . import fs

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Injection config not found: {path}")

    data = fs.load_yaml(path)
    return parse_injection_config(data, source=str(path))
