"""Semantic versions and latest-release detection."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from typing import TYPE_CHECKING

import semver

from depsync.errors import DepSyncError, VersionDetectionError
from depsync.fetcher import parse_owner_and_repo

if TYPE_CHECKING:
    from depsync.adapters.github import ForgeClient
    from depsync.depgraph.models import Graph

logger = logging.getLogger(__name__)

# Releases only: no prerelease or build suffix.
RELEASE_TAG_RE = re.compile(r"^v[0-9]+\.[0-9]+\.[0-9]+$")


def parse_version(version: str) -> semver.Version:
    """Parse a Go-style version (``v1.2.3``, ``v0.0.0-2023...-abc``, ``v2.0.0+incompatible``).

    Raises:
        ValueError: If the string is not a valid semantic version.
    """
    if not version:
        raise ValueError("empty version string")
    text = version[1:] if version.startswith("v") else version
    return semver.Version.parse(text)


def compare_versions(a: str, b: str) -> int:
    """Return -1, 0 or 1 under semver precedence (build metadata ignored)."""
    return parse_version(a).compare(parse_version(b))


def latest_semver_tag(tag_names: Iterable[str]) -> str:
    """Pick the highest release tag, ignoring prereleases and non-semver names.

    Returns:
        The winning tag name, or "" if no name qualifies.
    """
    releases = []
    for name in tag_names:
        if not name or not RELEASE_TAG_RE.match(name):
            continue
        try:
            releases.append((parse_version(name), name))
        except ValueError:
            # leading zeros such as v1.02.0
            logger.debug("Ignoring non-semver tag %s", name)
    if not releases:
        return ""
    return max(releases, key=lambda item: item[0])[1]


class VersionDetector:
    """Annotate every root service with its latest released version."""

    def detect_and_set_latest_versions(self, client: ForgeClient, graph: Graph) -> None:
        """List tags for each service and set ``latest_version`` in place.

        A repository without release tags keeps an empty latest version.

        Raises:
            VersionDetectionError: On an invalid module path or any forge error.
        """
        for module_path in sorted(graph):
            service = graph[module_path]
            owner, repo = parse_owner_and_repo(module_path)
            if not owner or not repo:
                raise VersionDetectionError(f"invalid module path: {module_path}")

            try:
                tags = client.list_tags(owner, repo)
            except DepSyncError as e:
                raise VersionDetectionError(
                    f"error fetching tags for {module_path}: {e}"
                ) from e

            latest = latest_semver_tag(tags)
            if latest:
                service.latest_version = latest
            else:
                logger.info("No release tags found for %s", module_path)
