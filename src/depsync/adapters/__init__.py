"""Forge and workspace collaborators."""

from depsync.adapters.github import (
    NO_PULL_REQUEST,
    CheckStatus,
    ForgeClient,
    GitHubClient,
    PullRequestChecks,
)
from depsync.adapters.workspace import GitWorkspaceProvider, Workspace, WorkspaceProvider

__all__ = [
    "NO_PULL_REQUEST",
    "CheckStatus",
    "ForgeClient",
    "GitHubClient",
    "GitWorkspaceProvider",
    "PullRequestChecks",
    "Workspace",
    "WorkspaceProvider",
]
