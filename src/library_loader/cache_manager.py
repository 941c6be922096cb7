"""
On-disk artifact cache.

Artifacts live at a path derived only from their coordinates:
``{root}/{group path}/{artifact path}/{version}/{artifactId}-{version}.jar``.
An existing file is a cache hit; entries are never invalidated by unload.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from threading import Lock
from typing import Any, Dict, List, Optional

from .cli_config import get_config
from .dependency import Dependency
from .structured_logging import get_cache_logger


@dataclass(frozen=True)
class CachedArtifact:
    """A file found in the artifact cache."""

    relative_path: str
    version: str
    path: Path
    size_bytes: int
    modified_at: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "relative_path": self.relative_path,
            "version": self.version,
            "path": str(self.path),
            "size_bytes": self.size_bytes,
            "modified_at": self.modified_at,
        }


class CacheStats:
    """Cache hit/miss statistics."""

    def __init__(self):
        self.hits = 0
        self.misses = 0
        self.manual_removals = 0
        self._lock = Lock()

    def record_hit(self) -> None:
        with self._lock:
            self.hits += 1

    def record_miss(self) -> None:
        with self._lock:
            self.misses += 1

    def record_manual_removal(self) -> None:
        with self._lock:
            self.manual_removals += 1

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            total = self.hits + self.misses
            return {
                "hits": self.hits,
                "misses": self.misses,
                "manual_removals": self.manual_removals,
                "total_requests": total,
                "hit_rate_percent": (self.hits / total) * 100.0 if total else 0.0,
            }

    def reset(self) -> None:
        with self._lock:
            self.hits = 0
            self.misses = 0
            self.manual_removals = 0


class ArtifactCache:
    """
    Deterministic artifact storage rooted at ``root``.

    Lookups never touch the network and a present file is trusted without
    re-validation.
    """

    def __init__(self, root: Path, extension: Optional[str] = None):
        self.root = Path(root)
        self.extension = extension or get_config().cache.artifact_extension
        self.stats = CacheStats()
        self._logger = get_cache_logger()

    def ensure_root(self) -> Path:
        if not self.root.exists():
            self.root.mkdir(parents=True, exist_ok=True)
            self._logger.info("libraries_folder_created", path=str(self.root))
        return self.root

    def artifact_dir(self, dependency: Dependency) -> Path:
        return (
            self.root
            / Path(*dependency.group_id.split("."))
            / Path(*dependency.artifact_id.split("."))
            / dependency.version
        )

    def artifact_path(self, dependency: Dependency) -> Path:
        file_name = f"{dependency.artifact_id}-{dependency.version}{self.extension}"
        return self.artifact_dir(dependency) / file_name

    def lookup(self, dependency: Dependency) -> Optional[Path]:
        """Return the cached artifact path on a hit, ``None`` on a miss."""
        path = self.artifact_path(dependency)
        if path.exists():
            self.stats.record_hit()
            self._logger.debug("cache_hit", coordinates=dependency.coordinates)
            return path
        self.stats.record_miss()
        self._logger.debug("cache_miss", coordinates=dependency.coordinates)
        return None

    def contains(self, dependency: Dependency) -> bool:
        return self.artifact_path(dependency).exists()

    def remove(self, dependency: Dependency) -> bool:
        """
        Delete a cached artifact.

        Empty parent directories up to the cache root are pruned as well.
        """
        path = self.artifact_path(dependency)
        if not path.exists():
            return False

        path.unlink()
        self.stats.record_manual_removal()
        self._logger.info("artifact_removed", coordinates=dependency.coordinates)

        parent = path.parent
        while parent != self.root and parent.is_dir() and not any(parent.iterdir()):
            parent.rmdir()
            parent = parent.parent
        return True

    def list_artifacts(self) -> List[CachedArtifact]:
        """List every artifact file currently in the cache."""
        if not self.root.is_dir():
            return []

        artifacts = []
        for dirpath, _, filenames in os.walk(self.root):
            for filename in sorted(filenames):
                if not filename.endswith(self.extension):
                    continue
                path = Path(dirpath) / filename
                relative = path.relative_to(self.root)
                if len(relative.parts) < 2:
                    continue
                stat = path.stat()
                artifacts.append(
                    CachedArtifact(
                        relative_path=relative.as_posix(),
                        version=relative.parts[-2],
                        path=path,
                        size_bytes=stat.st_size,
                        modified_at=stat.st_mtime,
                    )
                )
        return sorted(artifacts, key=lambda a: str(a.path))

    def get_stats(self) -> Dict[str, Any]:
        stats = self.stats.get_stats()
        artifacts = self.list_artifacts()
        stats.update(
            {
                "root": str(self.root),
                "artifact_count": len(artifacts),
                "total_size_bytes": sum(a.size_bytes for a in artifacts),
            }
        )
        return stats
