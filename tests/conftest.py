"""Shared test fixtures for diarysync."""

import os
import random
import tempfile

import pytest

from diarysync.core.docstore import DocumentRef, MemoryDocumentStore
from diarysync.core.storage import LocalObjectStore
from diarysync.journal import CardService, SyncConfig


@pytest.fixture
def tmp_dir():
    """Provide a temporary directory that is cleaned up after the test."""
    with tempfile.TemporaryDirectory() as d:
        yield d


@pytest.fixture
def tmp_config_file(tmp_dir):
    """Create a temporary YAML config file."""
    import yaml

    config_data = {
        "paths": {
            "data_dir": os.path.join(tmp_dir, "data"),
            "image_dir": os.path.join(tmp_dir, "images"),
        },
        "sync": {"root": "users/test", "timeout": 3},
    }
    config_path = os.path.join(tmp_dir, "config.yaml")
    with open(config_path, "w") as f:
        yaml.dump(config_data, f)
    return config_path


@pytest.fixture
def root():
    return DocumentRef("users/u1")


@pytest.fixture
def store():
    return MemoryDocumentStore()


@pytest.fixture
def objects(tmp_path):
    return LocalObjectStore(base_path=str(tmp_path / "images"))


@pytest.fixture
def service(root, store, objects):
    return CardService(root, store, objects, SyncConfig(timeout=5), rng=random.Random(7))
