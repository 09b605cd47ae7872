"""Persistence helpers for the render configuration.

Translates ``RenderTargetOptions`` plus the ancillary widget state
(output directory, output resolution, source sequence reference) to and
from a durable record, and provisions defaults the first time the
record is requested.

The durable store is an opaque key-value collaborator (``RecordStore``).
Two implementations live here: ``JsonFileRecordStore`` which keeps one
JSON file per key under the user's home directory, and
``MemoryRecordStore`` for embedding and tests.

Higher-level code typically owns one ``ConfigStore`` and calls
``load()`` on UI initialisation and ``save()`` whenever the user starts
a render.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Callable, NamedTuple, Optional, Protocol, Union

from render_config import config, defaults
from render_config.targets import (
    InvalidTargetOptionError,
    OutputFormat,
    RenderTargetOptions,
    TargetKind,
)


logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    """Raised when the durable store cannot be read or written.

    Attributes:
        key: Logical key of the record involved.
    """

    def __init__(self, message: str, key: Optional[str] = None) -> None:
        super().__init__(message)
        self.key = key


class CorruptRecordError(PersistenceError):
    """Raised by a store when a record exists but cannot be decoded."""


class Resolution(NamedTuple):
    """Output image size in pixels; by convention both values are even."""

    width: int
    height: int

    def is_valid(self) -> bool:
        return all(
            isinstance(v, int) and not isinstance(v, bool) and v > 0 and v % 2 == 0
            for v in (self.width, self.height)
        )


class RenderSettings(NamedTuple):
    """Everything the record holds: options plus the ancillary UI fields."""

    options: RenderTargetOptions
    output_directory: str
    resolution: Resolution
    source_ref: Optional[str]


# ----------------------------- record stores ----------------------------------


class RecordStore(Protocol):
    """Durable key-value collaborator backing ``ConfigStore``."""

    def get(self, key: str) -> Optional[Any]:
        """Return the decoded record for ``key`` or ``None`` if absent."""

    def put_or_create(self, key: str, record: dict[str, Any], require_existing: bool = False) -> None:
        """Write ``record`` under ``key``.

        When ``require_existing`` is true the record must already exist,
        otherwise ``PersistenceError`` is raised.
        """

    def create_if_absent(self, key: str, record: dict[str, Any]) -> tuple[bool, Any]:
        """Atomically write ``record`` unless ``key`` exists.

        Returns ``(True, None)`` when ``record`` was written, otherwise
        ``(False, stored)`` where ``stored`` is the decoded existing record
        (which may itself be ``None`` for a JSON ``null``).
        """


def _dumps(record: dict[str, Any]) -> str:
    return json.dumps(record, indent=2, ensure_ascii=False) + "\n"


class JsonFileRecordStore:
    """Record store keeping one JSON file per key below ``root``.

    Keys are logical paths (``"render_config/widget_state"``) and map to
    ``root / "render_config" / "widget_state.json"``.
    """

    def __init__(self, root: Union[str, Path, None] = None) -> None:
        self.root = Path(root) if root is not None else default_store_root()

    def path_for(self, key: str) -> Path:
        parts = [p for p in key.split("/") if p]
        if not parts or any(p in (".", "..") for p in parts):
            raise PersistenceError(f"Invalid record key: {key!r}", key=key)
        return self.root.joinpath(*parts[:-1], f"{parts[-1]}.json")

    def get(self, key: str) -> Optional[Any]:
        p = self.path_for(key)
        if not p.exists():
            return None
        try:
            with p.open("r", encoding="utf-8") as fh:
                return json.load(fh)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise CorruptRecordError(f"Record is not valid JSON: {p}", key=key) from e
        except OSError as e:
            raise PersistenceError(f"Could not read record {p}: {e}", key=key) from e

    def put_or_create(self, key: str, record: dict[str, Any], require_existing: bool = False) -> None:
        p = self.path_for(key)
        if require_existing and not p.exists():
            raise PersistenceError(f"Record {key!r} no longer exists at {p}", key=key)
        try:
            p.parent.mkdir(parents=True, exist_ok=True)
            with p.open("w", encoding="utf-8") as fh:
                fh.write(_dumps(record))
        except OSError as e:
            raise PersistenceError(f"Could not write record {p}: {e}", key=key) from e

    def create_if_absent(self, key: str, record: dict[str, Any]) -> tuple[bool, Any]:
        p = self.path_for(key)
        try:
            p.parent.mkdir(parents=True, exist_ok=True)
            # Exclusive create: only one caller can provision the record.
            with p.open("x", encoding="utf-8") as fh:
                fh.write(_dumps(record))
        except FileExistsError:
            return False, self.get(key)
        except OSError as e:
            raise PersistenceError(f"Could not create record {p}: {e}", key=key) from e
        return True, None


class MemoryRecordStore:
    """In-process record store. Records are kept as serialised JSON text."""

    def __init__(self) -> None:
        self._records: dict[str, str] = {}
        self._lock = threading.Lock()

    def raw(self, key: str) -> Optional[str]:
        """Return the stored JSON text for ``key``."""
        return self._records.get(key)

    def get(self, key: str) -> Optional[Any]:
        text = self._records.get(key)
        if text is None:
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise CorruptRecordError(f"Record {key!r} is not valid JSON", key=key) from e

    def put_or_create(self, key: str, record: dict[str, Any], require_existing: bool = False) -> None:
        with self._lock:
            if require_existing and key not in self._records:
                raise PersistenceError(f"Record {key!r} no longer exists", key=key)
            self._records[key] = _dumps(record)

    def create_if_absent(self, key: str, record: dict[str, Any]) -> tuple[bool, Any]:
        with self._lock:
            if key not in self._records:
                self._records[key] = _dumps(record)
                return True, None
        return False, self.get(key)

    def delete(self, key: str) -> None:
        self._records.pop(key, None)


# ---------------------------- record encoding ---------------------------------


def default_settings(project_dir: Union[str, Path]) -> RenderSettings:
    """Return the factory settings for ``project_dir``."""
    return RenderSettings(
        options=RenderTargetOptions(),
        output_directory=defaults.default_output_directory(project_dir),
        resolution=Resolution(*defaults.DEFAULT_RESOLUTION),
        source_ref=None,
    )


def encode_record(settings: RenderSettings) -> dict[str, Any]:
    """Serialise ``settings`` into a JSON-compatible record.

    The output is a pure function of its input: saving the same value
    twice produces identical records.
    """
    options = settings.options
    return {
        "version": config.CONFIG_VERSION,
        "source_ref": settings.source_ref,
        "output_directory": str(settings.output_directory),
        "resolution": [int(settings.resolution[0]), int(settings.resolution[1])],
        "targets": {
            kind.value: {
                "selected": options.is_selected(kind),
                "format": options.format(kind).code,
            }
            for kind in TargetKind
        },
        "export_camera_poses": options.export_camera_poses,
        "depth_range_meters": options.depth_range_meters,
        "optical_flow_scale": options.optical_flow_scale,
    }


def _read_field(data: dict[str, Any], name: str, parse: Callable[[Any], Any], fallback: Any) -> Any:
    """Return ``parse(data[name])``, or ``fallback`` if missing or invalid."""
    if name not in data:
        return fallback
    try:
        return parse(data[name])
    except (InvalidTargetOptionError, TypeError, ValueError) as e:
        logger.warning("Ignoring invalid value for %r in stored record (%s); using default.", name, e)
        return fallback


def _parse_bool(value: Any) -> bool:
    if not isinstance(value, bool):
        raise TypeError(f"expected a bool, got {value!r}")
    return value


def _parse_resolution(value: Any) -> Resolution:
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        raise TypeError(f"expected [width, height], got {value!r}")
    res = Resolution(value[0], value[1])
    if not res.is_valid():
        raise ValueError(f"resolution must be positive even integers, got {value!r}")
    return res


def _parse_directory(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise TypeError(f"expected a non-empty path, got {value!r}")
    return value


def _parse_source_ref(value: Any) -> Optional[str]:
    if value is not None and not isinstance(value, str):
        raise TypeError(f"expected a string or null, got {value!r}")
    return value or None


def decode_record(data: dict[str, Any], project_dir: Union[str, Path]) -> RenderSettings:
    """Build ``RenderSettings`` from a stored record.

    Any field absent from the record (for example one written by an
    older version) or holding an unusable value takes its factory
    default, so the schema can only grow.
    """
    base = default_settings(project_dir)
    options = RenderTargetOptions()

    targets = data.get("targets")
    if not isinstance(targets, dict):
        targets = {}
    for kind in TargetKind:
        entry = targets.get(kind.value)
        if not isinstance(entry, dict):
            continue
        options.set_selected(kind, _read_field(entry, "selected", _parse_bool, False))
        options.set_format(
            kind, _read_field(entry, "format", OutputFormat.from_code, options.format(kind))
        )

    options.set_export_camera_poses(
        _read_field(data, "export_camera_poses", _parse_bool, options.export_camera_poses)
    )
    # RenderTargetOptions setters reject non-positive values, which
    # _read_field turns into a fallback to the default.
    _read_field(data, "depth_range_meters", options.set_depth_range_meters, None)
    _read_field(data, "optical_flow_scale", options.set_optical_flow_scale, None)

    return RenderSettings(
        options=options,
        output_directory=_read_field(data, "output_directory", _parse_directory, base.output_directory),
        resolution=_read_field(data, "resolution", _parse_resolution, base.resolution),
        source_ref=_read_field(data, "source_ref", _parse_source_ref, base.source_ref),
    )


# ------------------------------ config store ----------------------------------


class ConfigStore:
    """Load-or-init / save bridge between the UI state and a ``RecordStore``.

    States:
        ``"unloaded"`` - nothing read yet.
        ``"default_created"`` - the first load found no record and
        persisted the factory defaults.
        ``"loaded"`` - a record was read or saved.

    Calls are serialised by an internal lock, so two callers can never
    both observe a missing record and write diverging defaults.
    """

    UNLOADED = "unloaded"
    DEFAULT_CREATED = "default_created"
    LOADED = "loaded"

    def __init__(
        self,
        store: Optional[RecordStore] = None,
        project_dir: Union[str, Path, None] = None,
        key: str = config.RECORD_KEY,
    ) -> None:
        self.store: RecordStore = store if store is not None else JsonFileRecordStore()
        self.project_dir = Path(project_dir) if project_dir is not None else Path.cwd()
        self.key = key
        self.state = self.UNLOADED
        self._lock = threading.Lock()

    def load(self) -> RenderSettings:
        """Return the persisted settings, provisioning defaults on a miss.

        Raises:
            PersistenceError: If the store cannot be read, or the default
                record cannot be written.
        """
        with self._lock:
            fallback = default_settings(self.project_dir)
            try:
                created, existing = self.store.create_if_absent(self.key, encode_record(fallback))
            except CorruptRecordError as e:
                created, existing = False, e
            except PersistenceError as e:
                logger.error("Failed to load render configuration %r: %s", self.key, e)
                raise

            if created:
                logger.info("No render configuration found at %r; created defaults.", self.key)
                self.state = self.DEFAULT_CREATED
                return fallback

            if not isinstance(existing, dict):
                logger.warning(
                    "Render configuration %r is corrupt (%s); resetting to defaults.",
                    self.key,
                    existing if isinstance(existing, Exception) else type(existing).__name__,
                )
                self._write(encode_record(fallback), require_existing=False)
                self.state = self.DEFAULT_CREATED
                return fallback

            version = existing.get("version")
            if isinstance(version, int) and version < config.CONFIG_VERSION:
                logger.info(
                    "Render configuration version %s is older than %s; missing fields use defaults.",
                    version,
                    config.CONFIG_VERSION,
                )

            self.state = self.LOADED
            return decode_record(existing, self.project_dir)

    def save(
        self,
        options: RenderTargetOptions,
        output_directory: Union[str, Path],
        resolution: tuple[int, int],
        source_ref: Optional[str] = None,
    ) -> None:
        """Persist ``options`` and the ancillary fields.

        After a load the record is expected to exist; if it has vanished
        the save fails rather than silently recreating it.

        An empty ``source_ref`` is stored as ``None``, the value ``load``
        returns for it.

        Raises:
            InvalidTargetOptionError: If ``output_directory`` is empty or
                ``resolution`` is not two positive even integers.
            PersistenceError: If the store reports a write failure. The
                error is logged before being raised; it is not retried.
        """
        settings = RenderSettings(
            options=options,
            output_directory=str(output_directory),
            resolution=Resolution(*resolution),
            source_ref=source_ref or None,
        )
        if not settings.output_directory.strip():
            raise InvalidTargetOptionError("Output directory must not be empty")
        if not settings.resolution.is_valid():
            raise InvalidTargetOptionError(f"Invalid output resolution: {tuple(resolution)!r}")
        record = encode_record(settings)
        with self._lock:
            self._write(record, require_existing=self.state != self.UNLOADED)
            self.state = self.LOADED

    def _write(self, record: dict[str, Any], require_existing: bool) -> None:
        try:
            self.store.put_or_create(self.key, record, require_existing=require_existing)
        except PersistenceError as e:
            logger.error("Failed to save render configuration %r: %s", self.key, e)
            raise


# --------------------------- path helpers (package) ----------------------------


def default_store_root() -> Path:
    """Return the directory holding JSON records: ``~/.{app_dir}/data``."""
    return Path.home() / f".{config.APP_DIR_NAME}" / "data"
