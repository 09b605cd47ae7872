"""Presentation-independent coordinator for the render configuration.

A widget layer owns one ``RenderSession``: it bootstraps the live
``RenderTargetOptions`` and ancillary fields from the ``ConfigStore``,
exposes the setters UI callbacks call, and implements the "start" and
"export semantic classes" actions.

The session only ever hands the renderer a copy of the options, so UI
edits made while a render is in flight cannot reach it.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional, Protocol, Union

from render_config import semantic_csv
from render_config.storage import ConfigStore, PersistenceError, Resolution
from render_config.targets import InvalidTargetOptionError, RenderTargetOptions


logger = logging.getLogger(__name__)


class SequenceRenderer(Protocol):
    """Renderer collaborator. Treated as a black box."""

    error_message: str

    def render_sequence(
        self,
        source_ref: str,
        options: RenderTargetOptions,
        resolution: Resolution,
        output_directory: str,
    ) -> bool:
        """Start rendering; return False and set ``error_message`` on failure."""


class RenderSession:
    """Live UI state plus the actions that persist and consume it.

    Attributes:
        options: The live options mutated by UI callbacks.
        output_directory: Directory frames and exports are written to.
        resolution: Output image resolution.
        source_ref: Reference to the sequence to render, or ``None``.
        error_message: Human-readable reason the last action failed.
    """

    def __init__(self, store: ConfigStore) -> None:
        self.store = store
        settings = store.load()
        self.options: RenderTargetOptions = settings.options
        self.output_directory: str = settings.output_directory
        self.resolution: Resolution = settings.resolution
        self.source_ref: Optional[str] = settings.source_ref
        self.error_message: str = ""

    # ------------------------------------------------------------------ #
    # Setters called by UI callbacks                                     #
    # ------------------------------------------------------------------ #

    def set_output_directory(self, directory: Union[str, Path]) -> None:
        directory = str(directory)
        if not directory.strip():
            raise InvalidTargetOptionError("Output directory must not be empty")
        self.output_directory = directory

    def set_resolution(self, width: int, height: int) -> None:
        """Set the output resolution. Both values must be positive and even."""
        res = Resolution(width, height)
        if not res.is_valid():
            raise InvalidTargetOptionError(f"Resolution must be positive even integers, got {width}x{height}")
        self.resolution = res

    def set_source_ref(self, source_ref: Optional[str]) -> None:
        self.source_ref = source_ref or None

    def can_render(self) -> bool:
        return self.options.any_selected()

    # ------------------------------------------------------------------ #
    # Actions                                                            #
    # ------------------------------------------------------------------ #

    def persist(self) -> bool:
        """Save the current state; return False (and log) on failure."""
        try:
            self.store.save(self.options, self.output_directory, self.resolution, self.source_ref)
        except PersistenceError as e:
            self.error_message = f"Could not save the render configuration: {e}"
            return False
        return True

    def start_rendering(self, renderer: SequenceRenderer) -> bool:
        """Flush the configuration and hand a snapshot to ``renderer``.

        A failed save is reported through ``error_message`` but does not
        block the render.

        Returns:
            bool: ``True`` if the renderer accepted the job.
        """
        self.error_message = ""
        if self.source_ref is None:
            self.error_message = "No sequence selected."
            return False
        if not self.options.any_selected():
            self.error_message = "No rendering targets selected."
            return False

        if not self.persist():
            logger.warning("%s Rendering anyway.", self.error_message)

        snapshot = self.options.copy()
        logger.info(
            "Rendering %s with targets %s at %dx%d into %s",
            self.source_ref,
            ", ".join(k.value for k in snapshot.selected_kinds()),
            self.resolution.width,
            self.resolution.height,
            self.output_directory,
        )
        if not renderer.render_sequence(self.source_ref, snapshot, self.resolution, self.output_directory):
            self.error_message = renderer.error_message or "Rendering failed."
            logger.error("Could not start rendering: %s", self.error_message)
            return False
        return True

    def export_semantic_classes(
        self,
        classes: Iterable[semantic_csv.SemanticClass],
        output_dir: Union[str, Path, None] = None,
    ) -> Optional[Path]:
        """Export ``classes`` to CSV; return the file path or ``None`` on failure."""
        target_dir = output_dir if output_dir is not None else self.output_directory
        try:
            return semantic_csv.export_semantic_classes(target_dir, classes)
        except OSError as e:
            self.error_message = str(e)
            return None
