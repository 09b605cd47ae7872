"""Shared pytest fixtures for render configuration tests."""

from pathlib import Path

import pytest

from render_config.storage import ConfigStore, JsonFileRecordStore, MemoryRecordStore
from render_config.semantic_csv import SemanticClass


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """Create a temporary project directory."""
    d = tmp_path / "project"
    d.mkdir()
    return d


@pytest.fixture
def file_store(tmp_path: Path) -> JsonFileRecordStore:
    """JSON record store rooted in a temporary directory."""
    return JsonFileRecordStore(tmp_path / "records")


@pytest.fixture
def memory_store() -> MemoryRecordStore:
    return MemoryRecordStore()


@pytest.fixture
def config_store(file_store: JsonFileRecordStore, project_dir: Path) -> ConfigStore:
    return ConfigStore(store=file_store, project_dir=project_dir)


@pytest.fixture
def sample_classes() -> list:
    return [
        SemanticClass.create("Road", 128, 64, 64),
        SemanticClass.create("Sky", 0, 128, 255),
        SemanticClass.create("Building", 70, 70, 70),
    ]
