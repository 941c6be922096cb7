"""
Artifact URL resolution against Maven repository metadata.

Snapshot versions are published under timestamped file names, so the
concrete artifact URL is read from ``maven-metadata.xml``. When the metadata
is unreachable or incomplete the conventional, non-timestamped URL is used
instead; resolution only fails hard when not even that URL can be built.
"""

import xml.etree.ElementTree as ET
from typing import Optional

import httpx

from .dependency import Dependency
from .error_handling import (
    ErrorCategory,
    ErrorLevel,
    MalformedLocationError,
    get_error_handler,
)
from .repository_client import RepositoryClient, sanitize_url_for_logging
from .structured_logging import log_url_resolution

SNAPSHOT_SUFFIX = "-SNAPSHOT"
ARTIFACT_EXTENSION = "jar"


class MetadataError(Exception):
    """Repository metadata is missing the nodes needed to resolve a URL."""


def normalize_repository_url(repo_url: str) -> str:
    return repo_url if repo_url.endswith("/") else repo_url + "/"


def _version_base_url(dependency: Dependency) -> str:
    repo = normalize_repository_url(dependency.repo_url)
    return f"{repo}{dependency.group_path}/{dependency.artifact_id}/{dependency.version}/"


def metadata_url(dependency: Dependency) -> str:
    """URL of the version-level ``maven-metadata.xml``."""
    return _version_base_url(dependency) + "maven-metadata.xml"


def conventional_artifact_url(dependency: Dependency) -> str:
    """URL of the artifact under its literal, non-timestamped name."""
    return (
        _version_base_url(dependency)
        + f"{dependency.artifact_id}-{dependency.version}.{ARTIFACT_EXTENSION}"
    )


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _find_first(element: ET.Element, name: str) -> Optional[ET.Element]:
    for child in element.iter():
        if _local_name(child.tag) == name:
            return child
    return None


def _child_text(element: ET.Element, name: str) -> Optional[str]:
    found = _find_first(element, name)
    if found is None or found.text is None:
        return None
    return found.text.strip()


def artifact_file_name(dependency: Dependency, metadata_xml: str) -> str:
    """
    Pick the artifact file name from a version-level metadata document.

    The first ``version`` element in document order gives the resolved
    version. Snapshots use the ``value`` of the ``snapshotVersion`` whose
    ``extension`` is ``jar``.

    Raises:
        ET.ParseError: If the document is not well-formed XML
        MetadataError: If the required nodes are missing
    """
    root = ET.fromstring(metadata_xml)

    resolved_version = _child_text(root, "version")
    if not resolved_version:
        raise MetadataError("metadata has no version element")

    if not resolved_version.endswith(SNAPSHOT_SUFFIX):
        return f"{dependency.artifact_id}-{resolved_version}.{ARTIFACT_EXTENSION}"

    for snapshot_version in root.iter():
        if _local_name(snapshot_version.tag) != "snapshotVersion":
            continue
        if _child_text(snapshot_version, "extension") == ARTIFACT_EXTENSION:
            value = _child_text(snapshot_version, "value")
            if value:
                return f"{dependency.artifact_id}-{value}.{ARTIFACT_EXTENSION}"

    raise MetadataError(f"no {ARTIFACT_EXTENSION} snapshotVersion for {resolved_version}")


def _ensure_well_formed(url: str) -> str:
    try:
        parsed = httpx.URL(url)
    except (httpx.InvalidURL, TypeError, ValueError) as e:
        raise MalformedLocationError(f"Malformed artifact URL {url!r}: {e}") from e
    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise MalformedLocationError(
            f"Unable to determine a valid artifact URL: {sanitize_url_for_logging(url)}"
        )
    return url


def resolve_artifact_url(dependency: Dependency, client: RepositoryClient) -> str:
    """
    Resolve the download URL for ``dependency``.

    Metadata failures (network errors, bad XML, missing nodes) fall back to
    the conventional URL without raising.

    Raises:
        MalformedLocationError: If the fallback URL itself is malformed
    """
    source = metadata_url(dependency)
    try:
        file_name = artifact_file_name(dependency, client.get_text(source))
    except (
        httpx.HTTPError,
        httpx.InvalidURL,
        ET.ParseError,
        MetadataError,
        UnicodeError,
        ValueError,
    ) as e:
        fallback = _ensure_well_formed(conventional_artifact_url(dependency))
        log_url_resolution(
            dependency.coordinates,
            sanitize_url_for_logging(fallback),
            fallback=True,
            reason=f"{type(e).__name__}: {e}",
        )
        get_error_handler().handle_error(
            ErrorLevel.DEBUG,
            ErrorCategory.RESOLUTION,
            "Repository metadata unavailable, using conventional artifact name",
            "maven_locator",
            "resolve_artifact_url",
            details={"coordinates": dependency.coordinates, "metadata_url": source},
            exception=e,
        )
        return fallback

    url = _ensure_well_formed(_version_base_url(dependency) + file_name)
    log_url_resolution(dependency.coordinates, sanitize_url_for_logging(url), fallback=False)
    return url
