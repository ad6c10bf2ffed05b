"""Build the dependency graph from go.mod files."""

from __future__ import annotations

import logging

from depsync.depgraph.gomod import parse_go_mod
from depsync.depgraph.models import Dependency, Graph, RepoModule, Service
from depsync.errors import GraphBuildError, ParseError

logger = logging.getLogger(__name__)


class GraphBuilder:
    """Turn a set of go.mod files into a graph of shared Service nodes."""

    def build_graph(self, modules: dict[str, RepoModule]) -> Graph:
        """Build the graph.

        Every node is created before any edge is wired so that an edge always
        references the graph's own Service for that module path. Requirements
        on modules outside ``modules`` are dropped.

        Args:
            modules: Module path -> repository and go.mod content.

        Returns:
            Module path -> Service.

        Raises:
            GraphBuildError: If any go.mod fails to parse. No partial graph
                is returned.
        """
        services: Graph = {path: Service(module_path=path) for path in modules}

        for module_path, repo in modules.items():
            try:
                mod = parse_go_mod(repo.go_mod_content, filename=f"{module_path}/go.mod")
            except ParseError as e:
                raise GraphBuildError(f"failed to parse go.mod for {module_path}: {e}") from e

            service = services[module_path]
            for req in mod.requires:
                dep_service = services.get(req.path)
                if dep_service is None:
                    continue
                service.dependencies[req.path] = Dependency(
                    service=dep_service,
                    current_version=req.version,
                )

            logger.debug(
                "Wired %d in-scope dependencies for %s",
                len(service.dependencies),
                module_path,
            )

        return services
