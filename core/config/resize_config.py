#!/usr/bin/env python3
"""Physical-copy photo resize configuration"""
import os
from dataclasses import dataclass, field
from typing import FrozenSet

def _int(val: str, default: int) -> int:
    try:
        return int(val) if val else default
    except ValueError:
        return default

def _float(val: str, default: float) -> float:
    try:
        return float(val) if val else default
    except ValueError:
        return default


@dataclass
class ResizeConfig:
    """Knobs for the size-constrained photo resizer"""
    ceiling_bytes: int = 4 * 1024 * 1024
    initial_scale: float = 0.9
    scale_step: float = 0.9
    min_dimension: int = 800
    jpeg_quality: int = 85
    max_attempts: int = 10
    allowed_formats: FrozenSet[str] = field(default_factory=lambda: frozenset({"JPEG", "PNG"}))

    # Accepted physical-copy uploads, before resizing
    upload_max_bytes: int = 25 * 1024 * 1024
    upload_extensions: FrozenSet[str] = field(default_factory=lambda: frozenset({"jpg", "jpeg", "png"}))

    @classmethod
    def from_env(cls) -> 'ResizeConfig':
        return cls(
            ceiling_bytes=_int(os.getenv("RESIZE_CEILING_BYTES", ""), 4 * 1024 * 1024),
            initial_scale=_float(os.getenv("RESIZE_INITIAL_SCALE", ""), 0.9),
            scale_step=_float(os.getenv("RESIZE_SCALE_STEP", ""), 0.9),
            min_dimension=_int(os.getenv("RESIZE_MIN_DIMENSION", ""), 800),
            jpeg_quality=_int(os.getenv("RESIZE_JPEG_QUALITY", ""), 85),
            max_attempts=_int(os.getenv("RESIZE_MAX_ATTEMPTS", ""), 10),
            upload_max_bytes=_int(os.getenv("UPLOAD_MAX_BYTES", ""), 25 * 1024 * 1024),
        )
