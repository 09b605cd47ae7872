"""Factory defaults for the render configuration.

Used by storage when provisioning a brand-new record and when a field
is missing from (or unreadable in) an older one. Data only: no I/O.
"""

from __future__ import annotations

from pathlib import Path
from typing import Final, Tuple, Union

DEFAULT_FORMAT_NAME: Final[str] = "PNG"

# Depth values beyond this distance saturate in the depth images.
DEFAULT_DEPTH_RANGE_METERS: Final[float] = 100.0

DEFAULT_OPTICAL_FLOW_SCALE: Final[float] = 1.0

DEFAULT_EXPORT_CAMERA_POSES: Final[bool] = False

# (width, height); both even.
DEFAULT_RESOLUTION: Final[Tuple[int, int]] = (1920, 1080)

# Relative to the project directory handed to the store.
DEFAULT_OUTPUT_SUBDIR: Final[Tuple[str, ...]] = ("Saved", "RenderingOutput")

if DEFAULT_DEPTH_RANGE_METERS <= 0 or DEFAULT_OPTICAL_FLOW_SCALE <= 0:
    raise ValueError("Factory depth range and optical flow scale must be positive")

if any(v <= 0 or v % 2 for v in DEFAULT_RESOLUTION):
    raise ValueError("DEFAULT_RESOLUTION must be positive and even")


def default_output_directory(project_dir: Union[str, Path]) -> str:
    """Return the default output directory for ``project_dir`` as a string."""
    return str(Path(project_dir).joinpath(*DEFAULT_OUTPUT_SUBDIR))
