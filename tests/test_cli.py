"""
CLI interface tests for library-loader.
Tests the command-line interface and main entry points.
"""

import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from library_loader.cli_config import NetworkConfig
from library_loader.main import cli
from library_loader.repository_client import RepositoryClient

from conftest import REPO, snapshot_metadata

COORDINATES = f"org.example:lib:1.0.0:{REPO}"


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def offline_client(fake_repository):
    """Route every client the CLI creates to the fake repository."""

    def factory():
        return RepositoryClient(NetworkConfig(), transport=fake_repository.transport)

    with patch("library_loader.main.RepositoryClient", factory):
        yield


class TestCLIBasics:
    """Test basic CLI functionality."""

    def test_cli_help(self, runner):
        result = runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        assert "library loader" in result.output.lower()

    def test_cli_version(self, runner):
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert "1.0.0" in result.output

    def test_no_command_prints_help(self, runner):
        result = runner.invoke(cli, [])

        assert result.exit_code == 0
        assert "resolve" in result.output


class TestResolveCommand:
    """Test the resolve command."""

    def test_snapshot(self, runner, fake_repository, offline_client):
        base = f"{REPO}/org/example/lib/2.0.0-SNAPSHOT/"
        fake_repository.add(
            base + "maven-metadata.xml",
            snapshot_metadata("2.0.0-SNAPSHOT", "2.0.0-20240101.120000-3"),
        )

        result = runner.invoke(cli, ["resolve", "org.example:lib:2.0.0-SNAPSHOT", "--repo", REPO])

        assert result.exit_code == 0
        assert base + "lib-2.0.0-20240101.120000-3.jar" in result.output

    def test_fallback(self, runner, offline_client):
        result = runner.invoke(cli, ["resolve", COORDINATES])

        assert result.exit_code == 0
        assert f"{REPO}/org/example/lib/1.0.0/lib-1.0.0.jar" in result.output

    def test_invalid_coordinates(self, runner):
        result = runner.invoke(cli, ["resolve", "org.example"])

        assert result.exit_code == 2
        assert "Invalid coordinates" in result.output

    def test_malformed_repository(self, runner, offline_client):
        result = runner.invoke(cli, ["resolve", "org.example:lib:1.0:ftp://mirror/maven2"])

        assert result.exit_code == 1
        assert "Error" in result.output


class TestFetchCommands:
    """Test fetch and prefetch."""

    def test_fetch(self, runner, published, offline_client, data_folder):
        result = runner.invoke(cli, ["fetch", COORDINATES, "--data-folder", str(data_folder)])

        assert result.exit_code == 0
        assert (data_folder / "libraries/org/example/lib/1.0.0/lib-1.0.0.jar").exists()

    def test_fetch_relocated(self, runner, published, offline_client, data_folder):
        result = runner.invoke(
            cli,
            [
                "fetch",
                COORDINATES,
                "--relocate",
                "example_lib=shaded.example_lib!example_lib.api",
                "--data-folder",
                str(data_folder),
            ],
        )

        assert result.exit_code == 0
        assert (data_folder / "libraries/org/example/lib/1.0.0/lib-1.0.0.jar").exists()

    def test_fetch_bad_relocation(self, runner, data_folder):
        result = runner.invoke(
            cli, ["fetch", COORDINATES, "--relocate", "no-separator", "--data-folder", str(data_folder)]
        )

        assert result.exit_code == 2

    def test_fetch_unknown(self, runner, offline_client, data_folder):
        result = runner.invoke(cli, ["fetch", COORDINATES, "--data-folder", str(data_folder)])

        assert result.exit_code == 1
        assert "Unable to download" in result.output

    def test_prefetch(self, runner, published, offline_client, data_folder, temp_dir):
        manifest = temp_dir / "libraries.json"
        manifest.write_text(json.dumps({"libraries": [{"value": COORDINATES}]}))

        result = runner.invoke(cli, ["prefetch", str(manifest), "--data-folder", str(data_folder)])

        assert result.exit_code == 0
        assert "Prefetch complete: 1 libraries" in result.output

    def test_prefetch_empty(self, runner, temp_dir):
        manifest = temp_dir / "libraries.json"
        manifest.write_text(json.dumps({"libraries": []}))

        result = runner.invoke(cli, ["prefetch", str(manifest)])

        assert result.exit_code == 0
        assert "No libraries declared" in result.output

    def test_prefetch_invalid_manifest(self, runner, temp_dir):
        manifest = temp_dir / "libraries.json"
        manifest.write_text(json.dumps({"libraries": ["broken"]}))

        result = runner.invoke(cli, ["prefetch", str(manifest)])

        assert result.exit_code == 1
        assert "Failed to read manifest" in result.output


class TestCacheCommands:
    """Test cache management commands."""

    def test_list_empty(self, runner, data_folder):
        result = runner.invoke(cli, ["cache", "list", "--data-folder", str(data_folder)])

        assert result.exit_code == 0
        assert "Cache is empty" in result.output

    def test_list_path_remove(self, runner, published, offline_client, data_folder):
        folder = str(data_folder)
        runner.invoke(cli, ["fetch", COORDINATES, "--data-folder", folder])

        listed = runner.invoke(cli, ["cache", "list", "--data-folder", folder])
        assert "org/example/lib/1.0.0/lib-1.0.0.jar" in listed.output

        as_json = runner.invoke(cli, ["cache", "list", "--json", "--data-folder", folder])
        entries = json.loads(as_json.output)
        assert entries[0]["version"] == "1.0.0"

        path = runner.invoke(cli, ["cache", "path", COORDINATES, "--data-folder", folder])
        assert "(cached)" in path.output

        removed = runner.invoke(cli, ["cache", "remove", COORDINATES, "--data-folder", folder])
        assert removed.exit_code == 0
        assert "Removed" in removed.output
        assert not (data_folder / "libraries/org/example/lib/1.0.0/lib-1.0.0.jar").exists()

        again = runner.invoke(cli, ["cache", "remove", COORDINATES, "--data-folder", folder])
        assert "is not cached" in again.output


class TestConfigCommands:
    """Test configuration commands."""

    def test_config_init(self, runner, temp_dir):
        path = temp_dir / "config.json"

        result = runner.invoke(cli, ["config", "init", "--path", str(path)])

        assert result.exit_code == 0
        assert json.loads(path.read_text())["network"]["default_repository"].startswith("https://")

    def test_config_init_existing(self, runner, temp_dir):
        path = temp_dir / "config.json"
        path.write_text("{}")

        result = runner.invoke(cli, ["config", "init", "--path", str(path)])

        assert "already exists" in result.output
        assert path.read_text() == "{}"

    def test_config_show(self, runner):
        result = runner.invoke(cli, ["config", "show"])

        assert result.exit_code == 0
        assert "repo1.maven.org" in result.output
