"""
Artifact download and relocation into the local cache.
"""

import os
import tempfile
from pathlib import Path
from typing import Optional

import httpx

from .cache_manager import ArtifactCache
from .cli_config import get_config
from .dependency import Dependency, RelocatedDependency
from .error_handling import (
    ErrorCategory,
    MalformedLocationError,
    RelocationError,
    UnknownDependencyError,
    get_error_handler,
    log_network_error,
)
from .maven_locator import resolve_artifact_url
from .relocation import Relocator, ZipRelocator, relocate_file
from .repository_client import RepositoryClient, sanitize_url_for_logging
from .structured_logging import get_repository_logger, log_artifact_download


class ArtifactFetcher:
    """
    Downloads artifacts into an :class:`ArtifactCache`.

    A cached artifact is returned as is. On a miss the URL is resolved, the
    bytes are streamed into the cache directory and, for relocated
    dependencies, rewritten by the relocator on the way. Failures are not
    retried.
    """

    def __init__(
        self,
        cache: ArtifactCache,
        client: RepositoryClient,
        relocator: Optional[Relocator] = None,
        temp_dir: Optional[str] = None,
    ):
        self.cache = cache
        self.client = client
        self.relocator = relocator or ZipRelocator()
        self.temp_dir = temp_dir if temp_dir is not None else get_config().cache.temp_dir
        self._logger = get_repository_logger()

    def fetch(self, dependency: Dependency) -> Path:
        """
        Make sure the artifact for ``dependency`` is in the cache.

        Returns:
            Path of the cached artifact

        Raises:
            UnknownDependencyError: If the artifact cannot be resolved,
                downloaded or relocated, or is missing afterwards
        """
        cached = self.cache.lookup(dependency)
        if cached is not None:
            return cached

        destination = self.cache.artifact_path(dependency)
        self._logger.info(
            "artifact_missing",
            coordinates=dependency.coordinates,
            destination=str(destination),
        )

        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            url = resolve_artifact_url(dependency, self.client)
        except (OSError, MalformedLocationError) as e:
            self._report(dependency, e, "resolve")
            raise UnknownDependencyError(f"Unable to download '{dependency}' dependency.") from e

        relocations = (
            dependency.relocations if isinstance(dependency, RelocatedDependency) else ()
        )
        try:
            if relocations:
                size = self._download_relocated(dependency, url, destination)
            else:
                size = self._download(url, destination)
        except httpx.HTTPError as e:
            status = e.response.status_code if isinstance(e, httpx.HTTPStatusError) else None
            log_network_error(
                f"Artifact download failed for {dependency.coordinates}",
                "artifact_fetcher",
                "fetch",
                url=url,
                status_code=status,
                exception=e,
            )
            raise UnknownDependencyError(f"Unable to download '{dependency}' dependency.") from e
        except RelocationError as e:
            self._report(dependency, e, "relocate")
            raise UnknownDependencyError(f"Unable to relocate '{dependency}' dependency.") from e
        except OSError as e:
            self._report(dependency, e, "write")
            raise UnknownDependencyError(f"Unable to download '{dependency}' dependency.") from e

        if not destination.exists():
            raise UnknownDependencyError(f"Unable to download '{dependency}' dependency.")

        log_artifact_download(
            dependency.coordinates,
            sanitize_url_for_logging(url),
            str(destination),
            size_bytes=size,
            relocated=bool(relocations),
        )
        return destination

    def _download(self, url: str, destination: Path) -> int:
        partial = destination.with_name(destination.name + ".part")
        try:
            size = self.client.download(url, partial)
            os.replace(partial, destination)
        finally:
            if partial.exists():
                partial.unlink()
        return size

    def _download_relocated(
        self, dependency: RelocatedDependency, url: str, destination: Path
    ) -> int:
        fd, temp_name = tempfile.mkstemp(
            prefix=f"{dependency.artifact_id}-{dependency.version}", suffix=".tmp", dir=self.temp_dir
        )
        os.close(fd)
        temp_path = Path(temp_name)
        partial = destination.with_name(destination.name + ".part")
        try:
            self.client.download(url, temp_path)
            relocate_file(temp_path, partial, dependency.relocations, self.relocator)
            os.replace(partial, destination)
        finally:
            for leftover in (temp_path, partial):
                if leftover.exists():
                    leftover.unlink()
        return destination.stat().st_size

    def _report(self, dependency: Dependency, error: Exception, stage: str) -> None:
        category = {
            "resolve": ErrorCategory.RESOLUTION,
            "relocate": ErrorCategory.RELOCATION,
        }.get(stage, ErrorCategory.FILESYSTEM)
        get_error_handler().error(
            category,
            f"Failed to {stage} artifact for {dependency.coordinates}",
            "artifact_fetcher",
            "fetch",
            exception=error,
            details={"coordinates": dependency.coordinates, "stage": stage},
        )
