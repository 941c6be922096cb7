"""
Dependency registry and load/unload orchestration.
"""

import logging
from pathlib import Path
from typing import Any, Iterable, List, Optional, Tuple, Union

from .artifact_fetcher import ArtifactFetcher
from .cache_manager import ArtifactCache
from .cli_config import LoaderConfig, get_config
from .dependency import Dependency
from .error_handling import (
    ErrorCategory,
    InvalidDependencyError,
    get_error_handler,
)
from .injection_port import InjectionPort, create_injection_port
from .manifest import ManifestSource, read_manifest
from .relocation import Relocator
from .repository_client import RepositoryClient
from .structured_logging import EventLogger, get_loader_logger, log_dependency_event


class LibraryLoader:
    """
    Loads Maven artifacts into a running interpreter.

    The loader owns an ordered registry of loaded dependencies. Loading
    fetches the artifact into ``{data_folder}/libraries`` and splices its
    location into the injection target (the :mod:`sys` module by default);
    unloading reverses the splice and keeps the cached file.

    Instances are not thread-safe. Two unsynchronized callers loading the
    same coordinates may both pass the already-loaded check; serialize
    access to one loader externally.
    """

    def __init__(
        self,
        target: Any = None,
        data_folder: Union[str, Path] = ".",
        logger: Optional[logging.Logger] = None,
        client: Optional[RepositoryClient] = None,
        relocator: Optional[Relocator] = None,
        config: Optional[LoaderConfig] = None,
    ):
        """
        Args:
            target: Injection target, ``sys`` when omitted
            data_folder: Folder holding the ``libraries`` cache
            logger: Host logger receiving loader events
            client: Repository client, created from ``config`` when omitted
            relocator: Relocation engine for relocated dependencies
            config: Loader configuration, the global one when omitted

        Raises:
            UnsupportedInjectionTargetError: If ``target`` cannot be injected into
        """
        self.config = config or get_config()
        self.port: InjectionPort = create_injection_port(target)
        self.data_folder = Path(data_folder).resolve()
        self._events: EventLogger = (
            EventLogger("library_loader.loader", logger=logger) if logger else get_loader_logger()
        )

        self._owns_client = client is None
        self.client = client or RepositoryClient(self.config.network)
        self.cache = ArtifactCache(
            self.data_folder / self.config.cache.libraries_dir_name,
            self.config.cache.artifact_extension,
        )
        self.fetcher = ArtifactFetcher(
            self.cache, self.client, relocator, temp_dir=self.config.cache.temp_dir
        )
        self._dependencies: List[Dependency] = []

    def __enter__(self) -> "LibraryLoader":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        """Release the repository client if the loader created it."""
        if self._owns_client:
            self.client.close()

    @property
    def lib_folder(self) -> Path:
        """The libraries folder, created on first access."""
        return self.cache.ensure_root()

    def get_loaded_dependencies(self) -> Tuple[Dependency, ...]:
        """Loaded dependencies in load order."""
        return tuple(self._dependencies)

    def is_loaded(self, dependency: Dependency) -> bool:
        return dependency in self._dependencies

    def load_coordinates(
        self,
        group_id: str,
        artifact_id: str,
        version: str,
        repo_url: Optional[str] = None,
        path_check: bool = False,
    ) -> None:
        """Load the dependency identified by explicit coordinates."""
        repo_url = repo_url or self.config.network.default_repository
        self.load(Dependency(group_id, artifact_id, version, repo_url), path_check)

    def load_many(self, dependencies: Iterable[Dependency], path_check: bool = False) -> None:
        """Load ``dependencies`` in order, stopping at the first failure."""
        for dependency in dependencies:
            self.load(dependency, path_check)

    def load_all(self, manifest_source: ManifestSource, path_check: bool = False) -> None:
        """
        Load every dependency declared by a manifest.

        ``manifest_source`` is a manifest file path, a mapping with a
        ``libraries`` list or a sequence of declarations. The first failing
        declaration aborts the rest of the batch.

        Raises:
            ManifestError: If the manifest cannot be read
        """
        dependencies = read_manifest(
            manifest_source, default_repository=self.config.network.default_repository
        )
        self.load_many(dependencies, path_check)

    def load(self, dependency: Dependency, path_check: bool = False) -> None:
        """
        Fetch ``dependency`` if needed and splice it into the import path.

        Loading an already registered dependency logs a warning and does
        nothing else.

        Args:
            dependency: Dependency to load
            path_check: Refuse to load when the artifact location is already
                in the import path or a loaded dependency has the same
                coordinates

        Raises:
            UnknownDependencyError: If the artifact cannot be obtained
            InvalidDependencyError: If the path check trips or the injection
                port rejects the location
        """
        coordinates = dependency.coordinates
        if self.is_loaded(dependency):
            log_dependency_event(
                "dependency_already_loaded", coordinates, "warning", logger=self._events
            )
            return

        log_dependency_event(
            "dependency_loading", coordinates, logger=self._events, repo_url=dependency.repo_url
        )

        self.cache.ensure_root()
        artifact = self.fetcher.fetch(dependency)
        location = str(artifact)

        if path_check:
            registered = self._registered_artifact(dependency)
            if registered is not None:
                self._reject(
                    dependency,
                    f"Dependency {dependency} shares its artifact with loaded {registered}.",
                )
            if self.port.contains(location):
                self._reject(dependency, f"Dependency {dependency} is already in the import path.")

        try:
            self.port.add(location)
        except Exception as e:
            get_error_handler().error(
                ErrorCategory.INJECTION,
                f"Injection failed for {coordinates}",
                "library_loader",
                "load",
                exception=e,
                details={"location": location},
            )
            raise InvalidDependencyError(f"Unable to load '{location}' dependency.") from e

        self._dependencies.append(dependency)
        log_dependency_event(
            "dependency_loaded", coordinates, logger=self._events, location=location
        )

    def _registered_artifact(self, dependency: Dependency) -> Optional[Dependency]:
        """
        Return the loaded dependency with the same coordinates, if any.

        Registry membership already compares all four fields, so a match
        here differs only by repository and maps to the same cache file.
        """
        for loaded in self._dependencies:
            if loaded.coordinates == dependency.coordinates:
                return loaded
        return None

    def _reject(self, dependency: Dependency, message: str) -> None:
        log_dependency_event(
            "dependency_rejected", dependency.coordinates, "warning", logger=self._events
        )
        raise InvalidDependencyError(message)

    def unload(self, dependency: Dependency) -> None:
        """
        Remove ``dependency`` from the import path and the registry.

        Unloading a dependency that is not loaded logs a warning. The cached
        artifact stays on disk; modules already imported from it stay in
        ``sys.modules``.

        Raises:
            InvalidDependencyError: If the cached artifact is gone or the
                injection port fails to remove its location
        """
        coordinates = dependency.coordinates
        if not self.is_loaded(dependency):
            log_dependency_event(
                "dependency_not_loaded", coordinates, "warning", logger=self._events
            )
            return

        log_dependency_event("dependency_unloading", coordinates, logger=self._events)

        artifact_dir = self.cache.artifact_dir(dependency)
        if not artifact_dir.is_dir():
            raise InvalidDependencyError(
                f"The directory for dependency {coordinates} does not exist!"
            )
        artifact = self.cache.artifact_path(dependency)
        if not artifact.exists():
            raise InvalidDependencyError(f"Unable to unload '{dependency}' dependency.")

        try:
            self.port.remove(str(artifact))
        except Exception as e:
            get_error_handler().error(
                ErrorCategory.INJECTION,
                f"Removal failed for {coordinates}",
                "library_loader",
                "unload",
                exception=e,
                details={"location": str(artifact)},
            )
            raise InvalidDependencyError(f"Unable to unload dependency {dependency}") from e

        self._dependencies.remove(dependency)
        log_dependency_event("dependency_unloaded", coordinates, logger=self._events)

    def unload_all(self) -> None:
        """Unload every loaded dependency, oldest first."""
        for dependency in list(self._dependencies):
            self.unload(dependency)
