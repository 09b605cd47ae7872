"""Tests for the render session coordinator."""

import pytest

from render_config import config
from render_config.session import RenderSession
from render_config.storage import ConfigStore, Resolution
from render_config.targets import InvalidTargetOptionError, OutputFormat, TargetKind


class FakeRenderer:
    def __init__(self, accept=True, error_message=""):
        self.accept = accept
        self.error_message = error_message
        self.calls = []

    def render_sequence(self, source_ref, options, resolution, output_directory):
        self.calls.append((source_ref, options, resolution, output_directory))
        return self.accept


@pytest.fixture
def session(memory_store, project_dir):
    return RenderSession(ConfigStore(store=memory_store, project_dir=project_dir))


class TestBootstrap:
    def test_starts_from_defaults(self, session, project_dir):
        assert not session.can_render()
        assert session.resolution == Resolution(1920, 1080)
        assert session.source_ref is None
        assert session.output_directory.startswith(str(project_dir))

    def test_restores_previous_session(self, memory_store, project_dir):
        first = RenderSession(ConfigStore(store=memory_store, project_dir=project_dir))
        first.options.set_selected(TargetKind.NORMAL, True)
        first.options.set_format(TargetKind.NORMAL, OutputFormat.EXR)
        first.set_resolution(800, 600)
        first.set_source_ref("/Game/Seq")
        assert first.persist()

        second = RenderSession(ConfigStore(store=memory_store, project_dir=project_dir))
        assert second.options == first.options
        assert second.resolution == Resolution(800, 600)
        assert second.source_ref == "/Game/Seq"


class TestSetters:
    @pytest.mark.parametrize("width,height", [(1919, 1080), (1920, 0), (-2, 2)])
    def test_invalid_resolution(self, session, width, height):
        with pytest.raises(InvalidTargetOptionError):
            session.set_resolution(width, height)
        assert session.resolution == Resolution(1920, 1080)

    def test_empty_output_directory(self, session):
        with pytest.raises(InvalidTargetOptionError):
            session.set_output_directory("  ")

    def test_empty_source_ref_clears(self, session):
        session.set_source_ref("/Game/Seq")
        session.set_source_ref("")
        assert session.source_ref is None


class TestStartRendering:
    def test_requires_source(self, session):
        session.options.set_selected(TargetKind.COLOR, True)
        renderer = FakeRenderer()
        assert not session.start_rendering(renderer)
        assert session.error_message
        assert renderer.calls == []

    def test_requires_a_target(self, session):
        session.set_source_ref("/Game/Seq")
        renderer = FakeRenderer()
        assert not session.start_rendering(renderer)
        assert renderer.calls == []

    def test_hands_snapshot_and_persists(self, session, memory_store):
        session.set_source_ref("/Game/Seq")
        session.options.set_selected(TargetKind.COLOR, True)
        renderer = FakeRenderer()

        assert session.start_rendering(renderer)
        (source_ref, snapshot, resolution, output_directory), = renderer.calls
        assert source_ref == "/Game/Seq"
        assert snapshot == session.options
        assert snapshot is not session.options
        assert resolution == session.resolution
        assert output_directory == session.output_directory

        # Later UI edits do not leak into the in-flight snapshot.
        session.options.set_selected(TargetKind.COLOR, False)
        assert snapshot.is_selected(TargetKind.COLOR)

        stored = memory_store.get(config.RECORD_KEY)
        assert stored["source_ref"] == "/Game/Seq"
        assert stored["targets"]["color"]["selected"] is True

    def test_renderer_failure_surfaces_message(self, session):
        session.set_source_ref("/Game/Seq")
        session.options.set_selected(TargetKind.DEPTH, True)
        assert not session.start_rendering(FakeRenderer(accept=False, error_message="No camera cut"))
        assert session.error_message == "No camera cut"

    def test_persist_failure_does_not_block_render(self, session, memory_store):
        session.set_source_ref("/Game/Seq")
        session.options.set_selected(TargetKind.DEPTH, True)
        memory_store.delete(config.RECORD_KEY)
        renderer = FakeRenderer()

        assert session.start_rendering(renderer)
        assert len(renderer.calls) == 1
        assert "Could not save" in session.error_message


class TestExport:
    def test_export_to_output_directory(self, session, tmp_path, sample_classes):
        session.set_output_directory(tmp_path)
        path = session.export_semantic_classes(sample_classes)
        assert path == tmp_path / config.SEMANTIC_CLASSES_FILE_NAME
        assert path.read_text(encoding="utf-8").splitlines()[0] == "Road,128,64,64"

    def test_export_failure(self, session, tmp_path, sample_classes):
        assert session.export_semantic_classes(sample_classes, tmp_path / "missing") is None
        assert "missing" in session.error_message
