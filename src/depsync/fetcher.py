"""Fetch manifest files from repositories through the forge client."""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from depsync.errors import DepSyncError, FetchError

if TYPE_CHECKING:
    from depsync.adapters.github import ForgeClient

logger = logging.getLogger(__name__)

GITHUB_HOST = "github.com/"
_MAJOR_VERSION_SUFFIX = re.compile(r"^v[0-9]+$")


def parse_owner_and_repo(url: str) -> tuple[str, str]:
    """Extract ``(owner, repo)`` from a GitHub URL or Go module path.

    Accepts ``https://github.com/owner/repo(.git)`` and module paths such as
    ``github.com/owner/repo/v2``. Returns ``("", "")`` for anything else.
    """
    idx = url.find(GITHUB_HOST)
    if idx == -1:
        return "", ""
    rest = url[idx + len(GITHUB_HOST) :].strip("/")
    if rest.endswith(".git"):
        rest = rest[: -len(".git")]

    parts = rest.split("/")
    if len(parts) == 3 and _MAJOR_VERSION_SUFFIX.match(parts[2]):
        parts = parts[:2]
    if len(parts) != 2 or not all(parts):
        return "", ""
    return parts[0], parts[1]


class FilesFetcher:
    """Read files at a given ref from GitHub repositories."""

    def __init__(self, client: ForgeClient):
        self.client = client

    def fetch(self, repo_url: str, ref: str, *files: str) -> dict[str, bytes]:
        """Fetch each of ``files`` from ``repo_url`` at ``ref``.

        Raises:
            FetchError: If the URL is not a GitHub repository or any file
                cannot be retrieved.
        """
        owner, name = parse_owner_and_repo(repo_url)
        if not owner or not name:
            raise FetchError(f"invalid repository URL: {repo_url}")

        results: dict[str, bytes] = {}
        for path in files:
            logger.debug("Fetching %s from %s/%s@%s", path, owner, name, ref)
            try:
                results[path] = self.client.get_file_content(owner, name, path, ref)
            except DepSyncError as e:
                raise FetchError(f"error fetching {path} from {repo_url}: {e}") from e
        return results
