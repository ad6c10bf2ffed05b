"""Dependency graph data model."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(eq=False)
class Service:
    """A Go module in the dependency graph.

    Compared by identity: a graph holds exactly one Service per module path
    and every edge pointing at that module references the same object.
    """

    module_path: str
    dependencies: dict[str, Dependency] = field(default_factory=dict)
    latest_version: str = ""  # highest release tag, "" when none found

    def __repr__(self) -> str:
        return (
            f"Service(module_path={self.module_path!r}, "
            f"dependencies={sorted(self.dependencies)!r}, "
            f"latest_version={self.latest_version!r})"
        )


@dataclass
class Dependency:
    """One edge: the consumer pins ``service`` at ``current_version``."""

    service: Service
    current_version: str


@dataclass(frozen=True)
class Mismatch:
    """A pinned version that lags behind the dependency's latest release."""

    actual: str
    latest: str


@dataclass
class RepoModule:
    """Graph builder input: a repository and its go.mod content."""

    repo_url: str
    go_mod_content: bytes | str


Graph = dict[str, Service]
Mismatches = dict[str, dict[str, Mismatch]]
