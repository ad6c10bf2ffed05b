"""Exception hierarchy for depsync.

Everything raised on purpose derives from DepSyncError so the CLI can tell a
fatal sync failure apart from a programming error.
"""

from __future__ import annotations


class DepSyncError(Exception):
    """Base exception for depsync errors."""

    pass


class ConfigurationError(DepSyncError):
    """Raised when the configuration is missing, unreadable or empty."""

    pass


class FetchError(DepSyncError):
    """Raised when a manifest cannot be retrieved from a repository."""

    pass


class ParseError(DepSyncError):
    """Raised when a manifest cannot be parsed."""

    pass


class GoModParseError(ParseError):
    """Raised on a malformed go.mod file."""

    def __init__(self, filename: str, line: int, reason: str):
        self.filename = filename
        self.line = line
        self.reason = reason
        super().__init__(f"{filename}:{line}: {reason}")


class GraphBuildError(DepSyncError):
    """Raised when the dependency graph cannot be built."""

    pass


class VersionDetectionError(DepSyncError):
    """Raised when the latest release of a service cannot be determined."""

    pass


class InconsistencyCheckError(DepSyncError):
    """Raised when a version on either side of an edge is not valid semver."""

    pass


class WorkflowError(DepSyncError):
    """Raised when a fatal update step fails. Aborts the whole run."""

    def __init__(self, message: str, *, service: str = "", dependency: str = "", step: str = ""):
        self.service = service
        self.dependency = dependency
        self.step = step
        super().__init__(message)


class WorkspaceError(DepSyncError):
    """Raised when a git or go command fails inside a workspace."""

    def __init__(self, message: str, stderr: str = ""):
        self.stderr = stderr
        super().__init__(f"{message}: {stderr}" if stderr else message)


class ForgeError(DepSyncError):
    """Raised when the forge API returns an error."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class ForgeConnectionError(ForgeError):
    """Raised when the forge cannot be reached or times out."""

    pass


class MergeabilityUnknownError(ForgeError):
    """Raised when mergeability is still not computed after all retries."""

    pass


class UnrecognizedMergeStateError(ForgeError):
    """Raised when the forge reports a merge state we do not know about."""

    pass
