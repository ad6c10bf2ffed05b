"""Detect consumers pinned to an older version than the latest release."""

from __future__ import annotations

from depsync.depgraph.models import Graph, Mismatch, Mismatches
from depsync.errors import InconsistencyCheckError
from depsync.versions import parse_version


class InconsistencyChecker:
    """Compare pinned versions against the latest known releases."""

    def check(self, graph: Graph) -> Mismatches:
        """Return service path -> dependency path -> Mismatch.

        Only lagging edges are included. Edges whose dependency has no known
        latest version are skipped.

        Raises:
            InconsistencyCheckError: If either version of an edge is not
                valid semver.
        """
        result: Mismatches = {}
        for svc_path, svc in graph.items():
            for dep_path, dep in svc.dependencies.items():
                latest = dep.service.latest_version
                if not latest:
                    continue

                try:
                    actual_ver = parse_version(dep.current_version)
                except ValueError as e:
                    raise InconsistencyCheckError(
                        f"failed to parse actual version '{dep.current_version}' "
                        f"for dependency '{dep_path}' in service '{svc_path}': {e}"
                    ) from e
                try:
                    latest_ver = parse_version(latest)
                except ValueError as e:
                    raise InconsistencyCheckError(
                        f"failed to parse latest version '{latest}' "
                        f"for dependency '{dep_path}' in service '{svc_path}': {e}"
                    ) from e

                if actual_ver < latest_ver:
                    result.setdefault(svc_path, {})[dep_path] = Mismatch(
                        actual=dep.current_version,
                        latest=latest,
                    )
        return result
