"""
Tests for the zip relocation engine.
"""

import io
import zipfile

import pytest

from library_loader.dependency import Relocation
from library_loader.error_handling import RelocationError
from library_loader.relocation import ZipRelocator, relocate_file

from conftest import make_archive

RULE = Relocation("example_lib", "shaded.example_lib", ("example_lib.api",))


def read_entries(data: bytes):
    with zipfile.ZipFile(io.BytesIO(data)) as archive:
        return {name: archive.read(name).decode("utf-8") for name in archive.namelist()}


class TestZipRelocator:
    """Test entry renaming and source rewriting."""

    def test_entry_names(self):
        relocator = ZipRelocator()

        assert relocator.relocate_entry_name("example_lib/util.py", [RULE]) == (
            "shaded/example_lib/util.py"
        )
        assert relocator.relocate_entry_name("example_lib/", [RULE]) == "shaded/example_lib/"
        assert relocator.relocate_entry_name("example_lib/api/v1.py", [RULE]) == (
            "example_lib/api/v1.py"
        )
        assert relocator.relocate_entry_name("example_library/x.py", [RULE]) == (
            "example_library/x.py"
        )
        assert relocator.relocate_entry_name("META-INF/MANIFEST.MF", [RULE]) == (
            "META-INF/MANIFEST.MF"
        )

    def test_source_references(self):
        source = (
            "import example_lib\n"
            "from example_lib.util import helper\n"
            "from example_lib.api import Client\n"
            "import example_library\n"
            "value = other.example_lib\n"
        )

        rewritten = ZipRelocator().relocate_source(source, [RULE])

        assert "import shaded.example_lib\n" in rewritten
        assert "from shaded.example_lib.util import helper" in rewritten
        assert "from example_lib.api import Client" in rewritten
        assert "import example_library\n" in rewritten
        assert "other.example_lib" in rewritten

    def test_relocate_archive(self, sample_archive):
        entries = read_entries(ZipRelocator().relocate(sample_archive, [RULE]))

        assert set(entries) == {"shaded/example_lib/__init__.py", "shaded/example_lib/util.py"}
        assert entries["shaded/example_lib/util.py"].startswith(
            "from shaded.example_lib import VALUE"
        )

    def test_no_rules_returns_input(self, sample_archive):
        assert ZipRelocator().relocate(sample_archive, []) is sample_archive

    def test_corrupt_archive(self):
        with pytest.raises(RelocationError):
            ZipRelocator().relocate(b"definitely not a zip", [RULE])

    def test_colliding_entries(self):
        data = make_archive({"example_lib/a.py": "", "shaded/example_lib/a.py": ""})

        with pytest.raises(RelocationError, match="Duplicate entry"):
            ZipRelocator().relocate(data, [RULE])

    def test_unsupported_compression(self):
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_STORED) as archive:
            archive.writestr("example_lib/__init__.py", "VALUE = 1\n")
        data = bytearray(buffer.getvalue())
        central = data.index(b"PK\x01\x02")
        data[8:10] = data[central + 10 : central + 12] = (99).to_bytes(2, "little")

        with pytest.raises(RelocationError, match="Unable to relocate archive"):
            ZipRelocator().relocate(bytes(data), [RULE])


def test_relocate_file(temp_dir, sample_archive):
    source = temp_dir / "in.jar"
    destination = temp_dir / "out.jar"
    source.write_bytes(sample_archive)

    relocate_file(source, destination, [RULE])

    assert "shaded/example_lib/__init__.py" in read_entries(destination.read_bytes())


def test_relocate_file_wraps_relocator_errors(temp_dir, sample_archive):
    class ExplodingRelocator:
        def relocate(self, data, rules):
            raise ValueError("engine exploded")

    source = temp_dir / "in.jar"
    destination = temp_dir / "out.jar"
    source.write_bytes(sample_archive)

    with pytest.raises(RelocationError, match="ExplodingRelocator") as exc_info:
        relocate_file(source, destination, [RULE], ExplodingRelocator())

    assert isinstance(exc_info.value.__cause__, ValueError)
    assert not destination.exists()
