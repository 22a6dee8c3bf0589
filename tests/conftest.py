"""Shared pytest fixtures for all tests."""

import hashlib
from pathlib import Path
from typing import Optional

import pytest

from remote_sync.object_store import ObjectStore
from splitter.exceptions import RemoteUnavailableError, UploadFailureError
from splitter.models import load_run_configuration

SOURCE_SIZE = 1000
CHUNK_SIZE = 400
PLENTY_OF_SPACE = 10 ** 12


class FakeObjectStore(ObjectStore):
    """In-memory object store recording every call."""

    digest_algorithm = "sha1"

    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.digest_overrides: dict[str, str] = {}
        self.uploads: list[str] = []
        self.lookups: list[str] = []
        self.unavailable = False
        self.fail_uploads = False
        self.corrupt_uploads = False

    def check_access(self) -> None:
        if self.unavailable:
            raise RemoteUnavailableError("store is down")

    def get_digest(self, name: str) -> Optional[str]:
        self.lookups.append(name)
        if self.unavailable:
            raise RemoteUnavailableError("store is down")
        if name in self.digest_overrides:
            return self.digest_overrides[name]
        if name not in self.objects:
            return None
        return hashlib.sha1(self.objects[name]).hexdigest()

    def upload(self, local_path: Path, name: str, digest: Optional[str] = None) -> None:
        self.uploads.append(name)
        if self.fail_uploads:
            raise UploadFailureError(f"upload of {name} refused")
        data = Path(local_path).read_bytes()
        if self.corrupt_uploads:
            data = data[:-1]
        self.digest_overrides.pop(name, None)
        self.objects[name] = data


@pytest.fixture
def source_bytes():
    """
    Deterministic, non-repeating source content.
    """
    return bytes((i * 7 + i // 256) % 256 for i in range(SOURCE_SIZE))


@pytest.fixture
def source_file(tmp_path, source_bytes):
    """
    Create a 1000-byte source file.

    Returns:
        Path to the source file
    """
    path = tmp_path / 'source.img'
    path.write_bytes(source_bytes)
    return path


@pytest.fixture
def output_dir(tmp_path):
    path = tmp_path / 'chunks'
    path.mkdir()
    return path


@pytest.fixture
def make_config(source_file, output_dir):
    """
    Factory for RunConfiguration with small test sizes.
    """
    def _make(**overrides):
        params = {
            'source_path': source_file,
            'output_dir': output_dir,
            'prefix': 'split_',
            'chunk_size_bytes': CHUNK_SIZE,
            'safety_buffer_bytes': 0,
        }
        params.update(overrides)
        return load_run_configuration(**params)
    return _make


@pytest.fixture
def plenty_of_space():
    return lambda path: PLENTY_OF_SPACE


@pytest.fixture
def fake_store():
    return FakeObjectStore()
