"""
Library declaration manifests.

A manifest is an ordered list of library declarations, each either a
composite ``group:artifact:version:repo`` string or explicit fields::

    {"libraries": [
        {"value": "com.google.code.gson:gson:2.10.1:https://repo1.maven.org/maven2"},
        {"groupId": "org.example", "artifactId": "lib", "version": "1.0.0",
         "relocations": [{"pattern": "org.example", "relocatedPattern": "shaded.example"}]}
    ]}

Manifests can be given as a JSON, TOML or YAML file, a mapping with a
``libraries`` list, or the list itself.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Mapping, Optional, Sequence, Tuple, Union

import toml

from .cli_config import DEFAULT_REPOSITORY
from .dependency import Dependency, RelocatedDependency, Relocation

try:
    import yaml

    HAS_YAML = True
except ImportError:
    HAS_YAML = False

PARSE_ERRORS: Tuple[type, ...] = (toml.TomlDecodeError, json.JSONDecodeError)
if HAS_YAML:
    PARSE_ERRORS += (yaml.YAMLError,)

ManifestSource = Union[str, Path, Mapping[str, Any], Sequence[Any]]

MANIFEST_SECTION = "libraries"

FIELD_ALIASES = {
    "group_id": ("groupId", "group_id"),
    "artifact_id": ("artifactId", "artifact_id"),
    "version": ("version",),
    "repo": ("repo", "repoUrl", "repo_url"),
}


class ManifestError(ValueError):
    """A manifest or one of its declarations is invalid."""


@dataclass(frozen=True)
class LibraryDeclaration:
    """One declared library, before defaults are applied."""

    value: str = ""
    group_id: str = ""
    artifact_id: str = ""
    version: str = ""
    repo: str = ""
    relocations: Tuple[Relocation, ...] = ()

    def has_explicit_fields(self) -> bool:
        return bool(self.group_id or self.artifact_id or self.version)

    def to_dependency(self, default_repository: str = DEFAULT_REPOSITORY) -> Dependency:
        """
        Build the described dependency.

        Explicit fields take precedence over ``value`` as soon as one of
        them is set.
        """
        try:
            if self.has_explicit_fields():
                dependency = Dependency(
                    self.group_id,
                    self.artifact_id,
                    self.version,
                    self.repo or default_repository,
                )
            elif self.value:
                dependency = Dependency.from_coordinates(
                    self.value, self.repo or default_repository
                )
            else:
                raise ValueError("declaration has neither a value nor coordinates")
        except ValueError as e:
            raise ManifestError(f"Invalid library declaration {self}: {e}") from e

        if self.relocations:
            return RelocatedDependency.of(dependency, self.relocations)
        return dependency


def _field(entry: Mapping[str, Any], name: str) -> str:
    for alias in FIELD_ALIASES[name]:
        value = entry.get(alias)
        if value:
            return str(value)
    return ""


def _parse_relocation(raw: Any) -> Relocation:
    if not isinstance(raw, Mapping):
        raise ManifestError(f"Relocation must be a mapping, got {type(raw).__name__}")

    pattern = raw.get("pattern")
    relocated = raw.get("relocatedPattern") or raw.get("relocated_pattern")
    excludes = raw.get("excludes") or ()
    if isinstance(excludes, str):
        excludes = (excludes,)
    try:
        return Relocation(pattern, relocated, tuple(excludes))
    except (TypeError, ValueError) as e:
        raise ManifestError(f"Invalid relocation {dict(raw)}: {e}") from e


def parse_declaration(entry: Any) -> LibraryDeclaration:
    """Parse one manifest entry (string or mapping)."""
    if isinstance(entry, str):
        return LibraryDeclaration(value=entry)
    if not isinstance(entry, Mapping):
        raise ManifestError(f"Library declaration must be a string or mapping, got {entry!r}")

    raw_relocations = entry.get("relocations") or []
    if not isinstance(raw_relocations, Sequence) or isinstance(raw_relocations, str):
        raise ManifestError("relocations must be a list")

    return LibraryDeclaration(
        value=str(entry.get("value") or ""),
        group_id=_field(entry, "group_id"),
        artifact_id=_field(entry, "artifact_id"),
        version=_field(entry, "version"),
        repo=_field(entry, "repo"),
        relocations=tuple(_parse_relocation(r) for r in raw_relocations),
    )


def load_manifest_file(path: Path) -> Any:
    """
    Read a manifest file; the format is chosen by extension.

    Raises:
        ManifestError: If the file cannot be read or parsed
    """
    suffix = path.suffix.lower()
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ManifestError(f"Cannot read manifest {path}: {e}") from e

    try:
        if suffix == ".toml":
            return toml.loads(content)
        if suffix in (".yaml", ".yml"):
            if not HAS_YAML:
                raise ManifestError("PyYAML is required to read YAML manifests")
            return yaml.safe_load(content)
        return json.loads(content)
    except PARSE_ERRORS as e:
        raise ManifestError(f"Invalid manifest {path}: {e}") from e


def _entries(data: Any) -> List[Any]:
    if isinstance(data, Mapping):
        if MANIFEST_SECTION not in data:
            raise ManifestError(f"Manifest has no '{MANIFEST_SECTION}' section")
        data = data[MANIFEST_SECTION]
    if data is None:
        return []
    if isinstance(data, (str, bytes)) or not isinstance(data, Sequence):
        raise ManifestError(f"'{MANIFEST_SECTION}' must be a list")
    return list(data)


def read_declarations(source: ManifestSource) -> List[LibraryDeclaration]:
    if isinstance(source, (str, Path)):
        source = load_manifest_file(Path(source))
    return [parse_declaration(entry) for entry in _entries(source)]


def read_manifest(
    source: ManifestSource, default_repository: Optional[str] = None
) -> List[Dependency]:
    """
    Read the dependencies declared by ``source`` in declaration order.

    Args:
        source: Manifest file path, mapping or sequence of declarations
        default_repository: Repository for declarations without one

    Raises:
        ManifestError: If the manifest or any declaration is invalid
    """
    repository = default_repository or DEFAULT_REPOSITORY
    return [d.to_dependency(repository) for d in read_declarations(source)]
