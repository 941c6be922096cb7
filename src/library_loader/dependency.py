from dataclasses import dataclass, field
from typing import Iterable, Tuple

from .cli_config import DEFAULT_REPOSITORY

UNSAFE_PATH_CHARS = ("/", "\\", "\0")


def _require(name: str, value: str) -> str:
    if not isinstance(value, str) or not value:
        raise ValueError(f"{name} can not be null or empty")
    return value


def _require_path_safe(name: str, value: str) -> str:
    # Coordinates become directories below the libraries folder.
    if any(char in value for char in UNSAFE_PATH_CHARS) or value in (".", ".."):
        raise ValueError(f"{name} is not a valid path segment: {value!r}")
    return value


@dataclass(frozen=True, eq=False)
class Dependency:
    """
    An artifact identified by Maven coordinates and its source repository.

    Equality and hashing cover exactly ``group_id``, ``artifact_id``,
    ``version`` and ``repo_url``; subclasses carrying extra data (such as
    relocation rules) compare equal to a plain descriptor with the same
    four fields.
    """

    group_id: str
    artifact_id: str
    version: str
    repo_url: str

    def __post_init__(self):
        _require("groupId", self.group_id)
        _require("artifactId", self.artifact_id)
        _require("version", self.version)
        _require("repoUrl", self.repo_url)
        _require_path_safe("groupId", self.group_id)
        _require_path_safe("artifactId", self.artifact_id)
        _require_path_safe("version", self.version)

    def _key(self) -> Tuple[str, str, str, str]:
        return (self.group_id, self.artifact_id, self.version, self.repo_url)

    def __eq__(self, other) -> bool:
        if self is other:
            return True
        if not isinstance(other, Dependency):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __str__(self) -> str:
        return (
            "Dependency("
            f"groupId={self.group_id}, "
            f"artifactId={self.artifact_id}, "
            f"version={self.version}, "
            f"repoUrl={self.repo_url})"
        )

    @property
    def coordinates(self) -> str:
        return f"{self.group_id}:{self.artifact_id}:{self.version}"

    @property
    def group_path(self) -> str:
        return self.group_id.replace(".", "/")

    @classmethod
    def from_string(cls, string: str) -> "Dependency":
        """
        Rebuild a descriptor from its ``str()`` form.

        This is a fragile boundary rather than a serializer: fields are split
        on ``", "`` and the repository URL is cut at the last ``")"``, so a
        value containing either sequence does not survive the round-trip.
        """
        arguments = string.split(", ")
        if len(arguments) < 4 or ")" not in arguments[3]:
            raise ValueError(f"Not a dependency string: {string!r}")

        group_id = arguments[0][arguments[0].index("=") + 1 :]
        artifact_id = arguments[1][arguments[1].index("=") + 1 :]
        version = arguments[2][arguments[2].index("=") + 1 :]
        repo_url = arguments[3][arguments[3].index("=") + 1 : arguments[3].rindex(")")]

        return cls(group_id, artifact_id, version, repo_url)

    @classmethod
    def from_coordinates(
        cls, coordinates: str, default_repository: str = DEFAULT_REPOSITORY
    ) -> "Dependency":
        """
        Parse ``group:artifact:version[:repo]``.

        At most three splits are made, so the repository URL keeps its own
        colons.
        """
        parts = coordinates.strip().split(":", 3)
        if len(parts) < 3:
            raise ValueError(
                f"Invalid coordinates {coordinates!r} (expected group:artifact:version[:repo])"
            )
        repo_url = parts[3] if len(parts) == 4 else default_repository
        return cls(parts[0], parts[1], parts[2], repo_url)


@dataclass(frozen=True)
class Relocation:
    """Rewrites the ``pattern`` module namespace to ``relocated_pattern``."""

    pattern: str
    relocated_pattern: str
    excludes: Tuple[str, ...] = ()

    def __post_init__(self):
        _require("pattern", self.pattern)
        _require("relocatedPattern", self.relocated_pattern)
        object.__setattr__(self, "excludes", tuple(self.excludes))

    def is_excluded(self, dotted_name: str) -> bool:
        return any(
            dotted_name == excluded or dotted_name.startswith(excluded + ".")
            for excluded in self.excludes
        )


@dataclass(frozen=True, eq=False)
class RelocatedDependency(Dependency):
    """A dependency whose module namespace is rewritten before injection."""

    relocations: Tuple[Relocation, ...] = field(default=())

    def __post_init__(self):
        super().__post_init__()
        if self.relocations is None:
            raise ValueError("relocations can not be null")
        object.__setattr__(self, "relocations", tuple(self.relocations))

    @classmethod
    def of(cls, dependency: Dependency, relocations: Iterable[Relocation]) -> "RelocatedDependency":
        return cls(
            dependency.group_id,
            dependency.artifact_id,
            dependency.version,
            dependency.repo_url,
            tuple(relocations),
        )
