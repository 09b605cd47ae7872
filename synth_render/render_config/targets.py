"""In-memory model of the render target configuration.

Implements the value types the UI mutates and the renderer consumes:

* ``OutputFormat`` - image encoding used to write a channel's frames.
* ``TargetKind`` - the fixed set of renderable output channels.
* ``TargetOption`` - selected flag + format for one channel.
* ``RenderTargetOptions`` - one ``TargetOption`` per ``TargetKind``
  plus the global scalars (camera pose export, depth range, optical
  flow scale).

The model is in-memory only; it performs no file I/O and knows nothing
about the host editor. Persistence is handled by render_config.storage.
"""

from __future__ import annotations

import enum
import math
from typing import Optional, Union

from render_config import defaults


class InvalidTargetOptionError(ValueError):
    """Raised when a caller passes an unknown kind/format or a bad value.

    These are caller bugs: values are never clamped or coerced.
    """


class OutputFormat(enum.Enum):
    """Supported image encodings.

    The integer ``code`` is what gets stored in the persisted record.
    """

    JPEG = 0
    PNG = 1
    EXR = 2

    @property
    def code(self) -> int:
        return self.value

    @property
    def extension(self) -> str:
        return {"JPEG": "jpeg", "PNG": "png", "EXR": "exr"}[self.name]

    @classmethod
    def from_code(cls, code: int) -> "OutputFormat":
        """Return the format stored as ``code``.

        Raises:
            InvalidTargetOptionError: If ``code`` is not a known format code.
        """
        if isinstance(code, bool) or not isinstance(code, int):
            raise InvalidTargetOptionError(f"Format code must be an int, got {code!r}")
        try:
            return cls(code)
        except ValueError:
            raise InvalidTargetOptionError(f"Unknown output format code: {code}") from None

    @classmethod
    def from_name(cls, name: str) -> "OutputFormat":
        """Return the format called ``name`` (case-insensitive, e.g. ``"png"``)."""
        if not isinstance(name, str):
            raise InvalidTargetOptionError(f"Format name must be a string, got {name!r}")
        key = name.strip().upper()
        if key == "JPG":
            key = "JPEG"
        try:
            return cls[key]
        except KeyError:
            raise InvalidTargetOptionError(f"Unknown output format: {name!r}") from None


class TargetKind(enum.Enum):
    """Renderable output channels. Closed set; never extended at runtime."""

    COLOR = "color"
    DEPTH = "depth"
    NORMAL = "normal"
    OPTICAL_FLOW = "optical_flow"
    SEMANTIC = "semantic"


KindLike = Union[TargetKind, str]
FormatLike = Union[OutputFormat, str]


def _as_kind(kind: KindLike) -> TargetKind:
    if isinstance(kind, TargetKind):
        return kind
    if isinstance(kind, str):
        try:
            return TargetKind(kind)
        except ValueError:
            pass
    raise InvalidTargetOptionError(f"Unknown target kind: {kind!r}")


def _as_format(fmt: FormatLike) -> OutputFormat:
    if isinstance(fmt, OutputFormat):
        return fmt
    if isinstance(fmt, str):
        return OutputFormat.from_name(fmt)
    raise InvalidTargetOptionError(f"Unknown output format: {fmt!r}")


def _positive(name: str, value: float) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidTargetOptionError(f"{name} must be a number, got {value!r}")
    if not math.isfinite(value) or value <= 0:
        raise InvalidTargetOptionError(f"{name} must be positive, got {value!r}")
    return float(value)


class TargetOption:
    """Per-channel state: whether it is rendered and how it is encoded."""

    __slots__ = ("selected", "format")

    def __init__(self, selected: bool = False, format: FormatLike = defaults.DEFAULT_FORMAT_NAME) -> None:
        if not isinstance(selected, bool):
            raise InvalidTargetOptionError(f"selected must be a bool, got {selected!r}")
        self.selected: bool = selected
        self.format: OutputFormat = _as_format(format)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TargetOption):
            return NotImplemented
        return self.selected == other.selected and self.format == other.format

    def __repr__(self) -> str:
        return f"TargetOption(selected={self.selected}, format={self.format.name})"


class RenderTargetOptions:
    """Complete render target configuration.

    Holds exactly one ``TargetOption`` per ``TargetKind``; the slots are
    created in ``__init__`` and never added or removed, so a lookup for
    any kind always succeeds.

    The UI thread is the only mutator. The renderer must be handed
    ``copy()`` so edits made during a render cannot reach it.
    """

    def __init__(
        self,
        selected: Optional[dict] = None,
        formats: Optional[dict] = None,
        export_camera_poses: bool = defaults.DEFAULT_EXPORT_CAMERA_POSES,
        depth_range_meters: float = defaults.DEFAULT_DEPTH_RANGE_METERS,
        optical_flow_scale: float = defaults.DEFAULT_OPTICAL_FLOW_SCALE,
    ) -> None:
        """Create options with factory defaults, optionally overridden.

        Args:
            selected: Optional mapping of kind -> bool. Kinds not listed
                start deselected.
            formats: Optional mapping of kind -> format. Kinds not listed
                use the default format (PNG).
            export_camera_poses: Whether camera poses are written out.
            depth_range_meters: Positive depth saturation distance.
            optical_flow_scale: Positive optical flow visualisation scale.
        """
        self._targets: dict[TargetKind, TargetOption] = {kind: TargetOption() for kind in TargetKind}
        self._export_camera_poses = False
        self._depth_range_meters = defaults.DEFAULT_DEPTH_RANGE_METERS
        self._optical_flow_scale = defaults.DEFAULT_OPTICAL_FLOW_SCALE

        for kind, value in (selected or {}).items():
            self.set_selected(kind, value)
        for kind, value in (formats or {}).items():
            self.set_format(kind, value)
        self.set_export_camera_poses(export_camera_poses)
        self.set_depth_range_meters(depth_range_meters)
        self.set_optical_flow_scale(optical_flow_scale)

    # ------------------------------------------------------------------ #
    # Per-target state                                                   #
    # ------------------------------------------------------------------ #

    def target(self, kind: KindLike) -> TargetOption:
        """Return a copy of the option for ``kind``."""
        opt = self._targets[_as_kind(kind)]
        return TargetOption(opt.selected, opt.format)

    def is_selected(self, kind: KindLike) -> bool:
        return self._targets[_as_kind(kind)].selected

    def set_selected(self, kind: KindLike, selected: bool) -> None:
        if not isinstance(selected, bool):
            raise InvalidTargetOptionError(f"selected must be a bool, got {selected!r}")
        self._targets[_as_kind(kind)].selected = selected

    def format(self, kind: KindLike) -> OutputFormat:
        return self._targets[_as_kind(kind)].format

    def set_format(self, kind: KindLike, fmt: FormatLike) -> None:
        self._targets[_as_kind(kind)].format = _as_format(fmt)

    def any_selected(self) -> bool:
        """Return True if at least one target is selected (render allowed)."""
        return any(opt.selected for opt in self._targets.values())

    def selected_kinds(self) -> list[TargetKind]:
        """Return the selected kinds in ``TargetKind`` declaration order."""
        return [kind for kind in TargetKind if self._targets[kind].selected]

    # ------------------------------------------------------------------ #
    # Global scalars                                                     #
    # ------------------------------------------------------------------ #

    @property
    def export_camera_poses(self) -> bool:
        return self._export_camera_poses

    def set_export_camera_poses(self, value: bool) -> None:
        if not isinstance(value, bool):
            raise InvalidTargetOptionError(f"export_camera_poses must be a bool, got {value!r}")
        self._export_camera_poses = value

    @property
    def depth_range_meters(self) -> float:
        return self._depth_range_meters

    def set_depth_range_meters(self, value: float) -> None:
        """Set the depth range. Precondition: ``value > 0`` (not clamped)."""
        self._depth_range_meters = _positive("depth_range_meters", value)

    @property
    def optical_flow_scale(self) -> float:
        return self._optical_flow_scale

    def set_optical_flow_scale(self, value: float) -> None:
        """Set the optical flow scale. Precondition: ``value > 0`` (not clamped)."""
        self._optical_flow_scale = _positive("optical_flow_scale", value)

    # ------------------------------------------------------------------ #
    # Value semantics                                                    #
    # ------------------------------------------------------------------ #

    def copy(self) -> "RenderTargetOptions":
        """Return an independent snapshot of these options."""
        return RenderTargetOptions(
            selected={k: o.selected for k, o in self._targets.items()},
            formats={k: o.format for k, o in self._targets.items()},
            export_camera_poses=self._export_camera_poses,
            depth_range_meters=self._depth_range_meters,
            optical_flow_scale=self._optical_flow_scale,
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RenderTargetOptions):
            return NotImplemented
        return (
            self._targets == other._targets
            and self._export_camera_poses == other._export_camera_poses
            and self._depth_range_meters == other._depth_range_meters
            and self._optical_flow_scale == other._optical_flow_scale
        )

    def __repr__(self) -> str:
        targets = ", ".join(f"{k.value}={o!r}" for k, o in self._targets.items())
        return (
            f"RenderTargetOptions({targets}, export_camera_poses={self._export_camera_poses}, "
            f"depth_range_meters={self._depth_range_meters}, "
            f"optical_flow_scale={self._optical_flow_scale})"
        )
