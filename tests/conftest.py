"""
Shared fixtures for library-loader tests.
"""

import io
import os
import sys
import zipfile
from pathlib import Path
from types import SimpleNamespace
from typing import Dict, List, Tuple

import httpx
import pytest

from library_loader.cli_config import DEFAULT_REPOSITORY, NetworkConfig, reset_config
from library_loader.dependency import Dependency
from library_loader.error_handling import setup_error_handling
from library_loader.repository_client import RepositoryClient

REPO = "https://repo.example.org/maven2"


def make_archive(files: Dict[str, str]) -> bytes:
    """Build an in-memory zip archive from ``{entry name: text}``."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, content in files.items():
            archive.writestr(name, content)
    return buffer.getvalue()


def snapshot_metadata(version: str, value: str) -> str:
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<metadata modelVersion="1.1.0">
  <groupId>org.example</groupId>
  <artifactId>lib</artifactId>
  <version>{version}</version>
  <versioning>
    <snapshot>
      <timestamp>20240101.120000</timestamp>
      <buildNumber>3</buildNumber>
    </snapshot>
    <snapshotVersions>
      <snapshotVersion>
        <extension>pom</extension>
        <value>{value}</value>
      </snapshotVersion>
      <snapshotVersion>
        <extension>jar</extension>
        <value>{value}</value>
      </snapshotVersion>
    </snapshotVersions>
  </versioning>
</metadata>
"""


def release_metadata(version: str) -> str:
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<metadata>
  <groupId>org.example</groupId>
  <artifactId>lib</artifactId>
  <version>{version}</version>
</metadata>
"""


class FakeRepository:
    """In-memory Maven repository served through ``httpx.MockTransport``."""

    def __init__(self):
        self.responses: Dict[str, Tuple[int, bytes]] = {}
        self.requests: List[str] = []

    def add(self, url: str, content, status: int = 200) -> None:
        if isinstance(content, str):
            content = content.encode("utf-8")
        self.responses[url] = (status, content)

    def fail(self, url: str, status: int = 500) -> None:
        self.responses[url] = (status, b"")

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests.append(url)
        status, content = self.responses.get(url, (404, b"Not Found"))
        return httpx.Response(status, content=content)

    def downloads(self) -> List[str]:
        return [url for url in self.requests if url.endswith(".jar")]

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Keep tests away from user config files and credential variables."""
    for key in list(os.environ):
        if key.startswith("LIBRARY_LOADER_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    reset_config()
    setup_error_handling()
    yield
    reset_config()


@pytest.fixture
def temp_dir(tmp_path):
    """Directory for test files."""
    directory = tmp_path / "work"
    directory.mkdir()
    return directory


@pytest.fixture
def data_folder(tmp_path) -> Path:
    folder = tmp_path / "data"
    folder.mkdir()
    return folder


@pytest.fixture
def fake_repository():
    return FakeRepository()


@pytest.fixture
def repository_client(fake_repository):
    client = RepositoryClient(NetworkConfig(), transport=fake_repository.transport)
    yield client
    client.close()


@pytest.fixture
def dependency():
    return Dependency("org.example", "lib", "1.0.0", REPO)


@pytest.fixture
def central_dependency():
    return Dependency("org.example", "lib", "1.0.0", DEFAULT_REPOSITORY)


@pytest.fixture
def sample_archive():
    return make_archive(
        {
            "example_lib/__init__.py": "VALUE = 42\n",
            "example_lib/util.py": "from example_lib import VALUE\n\ndef double():\n    return VALUE * 2\n",
        }
    )


@pytest.fixture
def published(fake_repository, dependency, sample_archive):
    """``dependency`` published with release metadata."""
    base = f"{REPO}/org/example/lib/1.0.0/"
    fake_repository.add(base + "maven-metadata.xml", release_metadata("1.0.0"))
    fake_repository.add(base + "lib-1.0.0.jar", sample_archive)
    return dependency


@pytest.fixture
def injection_target():
    """Stand-in for the ``sys`` module with its own path structures."""
    return SimpleNamespace(path=[], path_importer_cache={}, path_hooks=list(sys.path_hooks))
