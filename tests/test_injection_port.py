"""
Tests for import path injection.
"""

import importlib
import sys
import zipimport
from types import SimpleNamespace

import pytest

from library_loader import injection_port
from library_loader.error_handling import (
    DuplicateLocationError,
    UnsupportedInjectionTargetError,
)
from library_loader.injection_port import (
    ImporterCachePort,
    LocationListPort,
    create_injection_port,
    fetch_field,
    get_raw_accessor,
)

from conftest import make_archive


class HostLoader:
    """Isolated loader keeping private location lists."""

    def __init__(self):
        self.__urls = []
        self.__path = []

    def __getattr__(self, name):
        raise AttributeError(f"{name} is not exposed")


class SlottedLoader:
    __slots__ = ("urls", "path")

    def __init__(self):
        self.urls = []
        self.path = []


@pytest.fixture
def archive_location(temp_dir):
    path = temp_dir / "injected-1.0.jar"
    path.write_bytes(make_archive({"injected_probe_mod.py": "ANSWER = 42\n"}))
    return str(path)


class TestFieldAccess:
    """Test privileged field lookup."""

    def test_raw_accessor_initialized_once(self):
        assert get_raw_accessor() is get_raw_accessor()

    def test_private_fields(self):
        loader = HostLoader()

        assert fetch_field(loader, "urls") is loader._HostLoader__urls
        assert fetch_field(loader, "path") is loader._HostLoader__path

    def test_slots(self):
        loader = SlottedLoader()

        assert fetch_field(loader, "urls") is loader.urls

    def test_missing_field(self):
        with pytest.raises(AttributeError):
            fetch_field(SimpleNamespace(), "urls")

    def test_reflective_fallback(self, monkeypatch):
        monkeypatch.setattr(injection_port, "_accessor_initialized", True)
        monkeypatch.setattr(injection_port, "_raw_accessor", None)

        assert get_raw_accessor() is None
        assert fetch_field(SimpleNamespace(urls=[1]), "urls") == [1]
        assert fetch_field(HostLoader(), "urls") == []

    def test_failed_initialization_is_silent(self, monkeypatch):
        def broken():
            raise RuntimeError("no raw access")

        monkeypatch.setattr(injection_port, "_accessor_initialized", False)
        monkeypatch.setattr(injection_port, "_raw_accessor", None)
        monkeypatch.setattr(injection_port, "_build_raw_accessor", broken)

        assert get_raw_accessor() is None
        assert fetch_field(HostLoader(), "path") == []


class TestPortSelection:
    """Test variant probing."""

    def test_sys_layout(self, injection_target):
        assert isinstance(create_injection_port(injection_target), ImporterCachePort)

    def test_default_target_is_sys(self):
        port = create_injection_port()

        assert isinstance(port, ImporterCachePort)
        assert port.target is sys

    def test_host_loader_layout(self):
        assert isinstance(create_injection_port(HostLoader()), LocationListPort)

    def test_unsupported_target(self):
        with pytest.raises(UnsupportedInjectionTargetError, match="ImporterCachePort"):
            create_injection_port(SimpleNamespace(path=[]))

    def test_wrong_shape(self):
        with pytest.raises(UnsupportedInjectionTargetError):
            create_injection_port(SimpleNamespace(path=(), path_importer_cache={}, urls=()))


class TestImporterCachePort:
    """Test add/remove/contains on a sys-like target."""

    def test_add_populates_both_sets(self, injection_target, archive_location):
        port = create_injection_port(injection_target)

        port.add(archive_location)

        assert injection_target.path == [archive_location]
        assert isinstance(
            injection_target.path_importer_cache[archive_location], zipimport.zipimporter
        )
        assert port.contains(archive_location)
        assert port.locations() == (archive_location,)

    def test_duplicate_add(self, injection_target, archive_location):
        port = create_injection_port(injection_target)
        port.add(archive_location)

        with pytest.raises(DuplicateLocationError):
            port.add(archive_location)
        assert injection_target.path == [archive_location]

    def test_duplicate_in_one_set_only(self, injection_target, archive_location):
        injection_target.path_importer_cache[archive_location] = None
        port = create_injection_port(injection_target)

        assert port.contains(archive_location)
        with pytest.raises(DuplicateLocationError):
            port.add(archive_location)

    def test_remove(self, injection_target, archive_location):
        port = create_injection_port(injection_target)
        port.add(archive_location)

        port.remove(archive_location)

        assert not port.contains(archive_location)
        assert injection_target.path == []
        assert injection_target.path_importer_cache == {}

    def test_remove_absent_location(self, injection_target):
        port = create_injection_port(injection_target)

        port.remove("/nowhere/missing.jar")

        assert not port.contains("/nowhere/missing.jar")

    def test_non_archive_location_has_no_importer(self, injection_target, temp_dir):
        location = str(temp_dir / "not-an-archive.jar")
        (temp_dir / "not-an-archive.jar").write_bytes(b"plain bytes")
        port = create_injection_port(injection_target)

        port.add(location)

        assert injection_target.path_importer_cache[location] is None

    def test_real_import(self, archive_location):
        port = create_injection_port(sys)
        try:
            port.add(archive_location)
            module = importlib.import_module("injected_probe_mod")
            assert module.ANSWER == 42
        finally:
            port.remove(archive_location)
            sys.modules.pop("injected_probe_mod", None)

        assert archive_location not in sys.path
        assert archive_location not in sys.path_importer_cache


class TestLocationListPort:
    """Test add/remove/contains on a host loader."""

    def test_round_trip(self):
        loader = HostLoader()
        port = create_injection_port(loader)

        port.add("/libs/a.jar")
        assert loader._HostLoader__urls == ["/libs/a.jar"]
        assert loader._HostLoader__path == ["/libs/a.jar"]

        with pytest.raises(DuplicateLocationError):
            port.add("/libs/a.jar")

        port.remove("/libs/a.jar")
        assert not port.contains("/libs/a.jar")
        assert loader._HostLoader__urls == []
        assert loader._HostLoader__path == []

    def test_contains_either_set(self):
        loader = SlottedLoader()
        loader.path.append("/libs/b.jar")
        port = create_injection_port(loader)

        assert port.contains("/libs/b.jar")
