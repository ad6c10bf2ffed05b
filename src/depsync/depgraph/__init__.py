"""Dependency graph: go.mod parsing, graph building, inconsistency checks."""

from depsync.depgraph.builder import GraphBuilder
from depsync.depgraph.checker import InconsistencyChecker
from depsync.depgraph.gomod import GoModFile, Requirement, parse_go_mod
from depsync.depgraph.models import (
    Dependency,
    Graph,
    Mismatch,
    Mismatches,
    RepoModule,
    Service,
)

__all__ = [
    "Dependency",
    "GoModFile",
    "Graph",
    "GraphBuilder",
    "InconsistencyChecker",
    "Mismatch",
    "Mismatches",
    "RepoModule",
    "Requirement",
    "Service",
    "parse_go_mod",
]
