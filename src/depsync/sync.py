"""Keep Go module dependencies in sync across repositories.

One run fetches every configured go.mod, builds the dependency graph, looks
up the latest release of each module and, for every consumer that lags
behind, drives the update through branch, commit, pull request, CI and merge.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from dataclasses import asdict, dataclass, field
from typing import Any, TypeVar

from depsync.adapters.github import (
    NO_PULL_REQUEST,
    CheckMergeConflictsParams,
    CheckPullRequestExistsParams,
    CheckStatus,
    CreateMergeRequestParams,
    DeleteBranchParams,
    DeletePullRequestParams,
    ForgeClient,
    GetPullRequestChecksParams,
    MergeMergeRequestParams,
)
from depsync.adapters.workspace import (
    CheckBranchExistsParams,
    CommitAndPushParams,
    UpdateDependencyParams,
    WorkspaceProvider,
)
from depsync.config import Config
from depsync.depgraph import (
    Graph,
    GraphBuilder,
    InconsistencyChecker,
    Mismatch,
    Mismatches,
    RepoModule,
    parse_go_mod,
)
from depsync.errors import (
    ConfigurationError,
    DepSyncError,
    FetchError,
    ParseError,
    WorkflowError,
)
from depsync.fetcher import FilesFetcher
from depsync.naming import generate_branch_name
from depsync.versions import VersionDetector

logger = logging.getLogger(__name__)

GO_MOD = "go.mod"

T = TypeVar("T")


@dataclass
class UpdateResult:
    """Outcome of one dependency update."""

    service: str
    dependency: str
    from_version: str
    to_version: str
    branch: str
    status: str  # created, pending, checks-failed, merged, deferred, error, dry-run
    message: str = ""
    pr_number: int = NO_PULL_REQUEST


@dataclass
class SyncReport:
    """Everything one run found and did."""

    graph: Graph = field(default_factory=dict)
    mismatches: Mismatches = field(default_factory=dict)
    results: list[UpdateResult] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "versions": {path: svc.latest_version for path, svc in sorted(self.graph.items())},
            "mismatches": {
                svc: {dep: asdict(m) for dep, m in sorted(deps.items())}
                for svc, deps in sorted(self.mismatches.items())
            },
            "results": [asdict(r) for r in self.results],
        }


class DepSync:
    """Run the fetch, detect and update pipeline.

    All collaborators are injected; the defaults are the production ones
    built around ``client``.
    """

    def __init__(
        self,
        config: Config,
        client: ForgeClient,
        workspaces: WorkspaceProvider,
        fetcher: FilesFetcher | None = None,
        graph_builder: GraphBuilder | None = None,
        version_detector: VersionDetector | None = None,
        checker: InconsistencyChecker | None = None,
        log: logging.Logger | None = None,
    ):
        self.config = config
        self.client = client
        self.workspaces = workspaces
        self.fetcher = fetcher or FilesFetcher(client)
        self.graph_builder = graph_builder or GraphBuilder()
        self.version_detector = version_detector or VersionDetector()
        self.checker = checker or InconsistencyChecker()
        self.logger = log or logger

    # -- detection -----------------------------------------------------------

    def fetch_modules(self) -> dict[str, RepoModule]:
        """Fetch go.mod of every configured repository, keyed by module path.

        Raises:
            FetchError: If a go.mod cannot be retrieved.
            ParseError: If its module path cannot be read.
        """
        modules: dict[str, RepoModule] = {}
        for repo_url in self.config.repositories:
            self.logger.info("Fetching go.mod for %s", repo_url, extra={"repo_url": repo_url})
            files = self.fetcher.fetch(repo_url, self.config.base_branch, GO_MOD)
            content = files.get(GO_MOD)
            if content is None:
                raise FetchError(f"go.mod not found in repository: {repo_url}")

            try:
                module_path = parse_go_mod(content).module_path
            except ParseError as e:
                raise ParseError(f"could not parse module path for repo {repo_url}: {e}") from e
            if not module_path:
                raise ParseError(
                    f"could not parse module path for repo {repo_url}: no module directive"
                )

            modules[module_path] = RepoModule(repo_url=repo_url, go_mod_content=content)
            self.logger.info(
                "Repository %s is module %s (%d bytes)", repo_url, module_path, len(content)
            )
        return modules

    def detect(self) -> SyncReport:
        """Build the graph, set latest versions and find lagging consumers.

        Raises:
            ConfigurationError: If no repositories are configured.
        """
        if not self.config.repositories:
            raise ConfigurationError("no repositories configured")

        modules = self.fetch_modules()
        graph = self.graph_builder.build_graph(modules)
        self.version_detector.detect_and_set_latest_versions(self.client, graph)
        self._log_graph(graph)

        mismatches = self.checker.check(graph)
        if mismatches:
            self.logger.warning("Version inconsistencies detected")
            for svc, dep, mismatch in _iter_mismatches(mismatches):
                self.logger.warning(
                    "%s requires %s %s, latest is %s",
                    svc,
                    dep,
                    mismatch.actual,
                    mismatch.latest,
                    extra={"service": svc, "dependency": dep},
                )
        else:
            self.logger.info("All dependencies are up to date")
        return SyncReport(graph=graph, mismatches=mismatches)

    def _log_graph(self, graph: Graph) -> None:
        self.logger.info("Dependency graph:")
        for path in sorted(graph):
            svc = graph[path]
            deps = ", ".join(sorted(svc.dependencies)) or "-"
            self.logger.info("  %s -> %s", path, deps)
        self.logger.info("Detected versions:")
        for path in sorted(graph):
            self.logger.info("  %s: %s", path, graph[path].latest_version or "(no release)")

    # -- update --------------------------------------------------------------

    def run(self) -> SyncReport:
        """Detect mismatches and fix them.

        Raises:
            DepSyncError: The first fatal error. Failures in steps 1 to 7 of
                an update surface as ``WorkflowError("failed to fix modules: ...")``.
        """
        report = self.detect()
        if not report.mismatches:
            return report

        if self.config.dry_run:
            report.results = self._dry_run_results(report.mismatches)
            return report

        try:
            report.results = self.fix_modules(report.mismatches)
        except WorkflowError as e:
            raise WorkflowError(
                f"failed to fix modules: {e}",
                service=e.service,
                dependency=e.dependency,
                step=e.step,
            ) from e
        return report

    def _dry_run_results(self, mismatches: Mismatches) -> list[UpdateResult]:
        results = []
        for svc, dep, mismatch in _iter_mismatches(mismatches):
            branch = generate_branch_name(dep, mismatch.latest)
            self.logger.info("[dry-run] would update %s in %s on %s", dep, svc, branch)
            results.append(
                UpdateResult(
                    service=svc,
                    dependency=dep,
                    from_version=mismatch.actual,
                    to_version=mismatch.latest,
                    branch=branch,
                    status="dry-run",
                )
            )
        return results

    def fix_modules(self, mismatches: Mismatches) -> list[UpdateResult]:
        """Process every mismatch in sorted order.

        Raises:
            WorkflowError: On the first failure in steps 1 to 7.
        """
        self.logger.info("Updating dependencies of %d service(s)", len(mismatches))
        results: list[UpdateResult] = []

        for service in sorted(mismatches):
            repo_url = f"https://{service}"
            self.logger.info("Processing service %s", service, extra={"service": service})
            deps = mismatches[service]
            for dep in sorted(deps):
                results.append(self.update_dependency(service, dep, deps[dep], repo_url))
            self.logger.info("All dependencies processed for %s", service)

        return results

    def update_dependency(
        self, service: str, dep: str, mismatch: Mismatch, repo_url: str
    ) -> UpdateResult:
        """Run steps 1 to 8 for one lagging dependency."""
        self.logger.info(
            "Updating %s in %s: %s -> %s",
            dep,
            service,
            mismatch.actual,
            mismatch.latest,
            extra={"service": service, "dependency": dep, "version": mismatch.latest},
        )
        branch = self._push_branch(service, dep, mismatch, repo_url)
        result = UpdateResult(
            service=service,
            dependency=dep,
            from_version=mismatch.actual,
            to_version=mismatch.latest,
            branch=branch,
            status="pending",
        )

        pr_number = self._step(
            "check-pull-request",
            service,
            dep,
            lambda: self.client.check_pull_request_exists(
                CheckPullRequestExistsParams(repo_url=repo_url, source_branch=branch)
            ),
        )

        if pr_number == NO_PULL_REQUEST:
            pr_number = self._step(
                "create-pull-request",
                service,
                dep,
                lambda: self.client.create_merge_request(
                    CreateMergeRequestParams(
                        repo_url=repo_url,
                        source_branch=branch,
                        module_path=dep,
                        target_version=mismatch.latest,
                    )
                ),
            )
            result.pr_number = pr_number
            self.logger.info(
                "Created PR #%d for %s in %s",
                pr_number,
                dep,
                service,
                extra={"pr_number": pr_number},
            )
            self._check_and_merge(result, repo_url)
            if result.status == "pending":
                result.status = "created"
            return result

        result.pr_number = pr_number
        self.logger.warning(
            "PR #%d already exists for branch %s", pr_number, branch, extra={"pr_number": pr_number}
        )
        if self._handle_conflicts(result, repo_url):
            return result

        self._check_and_merge(result, repo_url)
        return result

    def _step(self, step: str, service: str, dep: str, action: Callable[[], T]) -> T:
        """Run a fatal step, turning any DepSyncError into a WorkflowError."""
        try:
            return action()
        except DepSyncError as e:
            self.logger.error("Step %s failed for %s in %s: %s", step, dep, service, e)
            raise WorkflowError(
                f"{step} failed for {dep} in {service}: {e}",
                service=service,
                dependency=dep,
                step=step,
            ) from e

    def _push_branch(self, service: str, dep: str, mismatch: Mismatch, repo_url: str) -> str:
        """Steps 1 to 5. Returns the update branch, pushing it unless it exists."""
        workspace = self._step(
            "clone",
            service,
            dep,
            lambda: self.workspaces.clone_repo(repo_url, self.config.base_branch),
        )
        try:
            branch = generate_branch_name(dep, mismatch.latest)

            exists = self._step(
                "check-branch",
                service,
                dep,
                lambda: self.workspaces.check_branch_exists(
                    CheckBranchExistsParams(
                        workspace=workspace, branch_name=branch, repo_url=repo_url
                    )
                ),
            )
            if exists:
                self.logger.warning(
                    "Branch %s already exists, skipping dependency update",
                    branch,
                    extra={"service": service, "dependency": dep, "branch": branch},
                )
                return branch

            updated = self._step(
                "update-dependency",
                service,
                dep,
                lambda: self.workspaces.update_dependency(
                    UpdateDependencyParams(
                        workspace=workspace, module_path=dep, target_version=mismatch.latest
                    )
                ),
            )
            author = self.config.git.author
            pushed = self._step(
                "commit-and-push",
                service,
                dep,
                lambda: self.workspaces.commit_and_push(
                    CommitAndPushParams(
                        workspace=updated,
                        branch_name=branch,
                        module_path=dep,
                        target_version=mismatch.latest,
                        author_name=author.name,
                        author_email=author.email,
                        repo_url=repo_url,
                    )
                ),
            )
            self.logger.info("Pushed %s to %s", pushed, repo_url, extra={"branch": pushed})
            return pushed or branch
        finally:
            self.workspaces.remove(workspace)

    def _handle_conflicts(self, result: UpdateResult, repo_url: str) -> bool:
        """Step 7. Returns True if the PR was conflicting and has been removed."""
        if not self.config.delete_conflicted_prs:
            self.logger.debug("Deleting conflicted PRs is disabled")
            return False

        svc, dep, pr_number = result.service, result.dependency, result.pr_number
        has_conflicts = self._step(
            "check-conflicts",
            svc,
            dep,
            lambda: self.client.check_merge_conflicts(
                CheckMergeConflictsParams(repo_url=repo_url, pr_number=pr_number)
            ),
        )
        if not has_conflicts:
            self.logger.info("No conflicts in PR #%d", pr_number)
            return False

        self.logger.info(
            "PR #%d has conflicts, closing it and deleting %s", pr_number, result.branch
        )
        self._step(
            "delete-pull-request",
            svc,
            dep,
            lambda: self.client.delete_pull_request(
                DeletePullRequestParams(repo_url=repo_url, pr_number=pr_number)
            ),
        )
        self._step(
            "delete-branch",
            svc,
            dep,
            lambda: self.client.delete_branch(
                DeleteBranchParams(repo_url=repo_url, branch_name=result.branch)
            ),
        )
        result.status = "deferred"
        result.message = "conflicting PR removed, will be recreated on the next run"
        return True

    def _check_and_merge(self, result: UpdateResult, repo_url: str) -> None:
        """Step 8. Failures are logged and recorded, never raised."""
        svc, dep, pr_number = result.service, result.dependency, result.pr_number
        extra = {"service": svc, "dependency": dep, "pr_number": pr_number}

        try:
            checks = self.client.get_pull_request_checks(
                GetPullRequestChecksParams(repo_url=repo_url, pr_number=pr_number)
            )
            status = CheckStatus(checks.status)
        except (DepSyncError, ValueError) as e:
            self.logger.error("Failed to get checks for PR #%d: %s", pr_number, e, extra=extra)
            result.status = "error"
            result.message = f"could not get checks: {e}"
            return

        if status == CheckStatus.RUNNING:
            self.logger.info("Checks are still running on PR #%d", pr_number, extra=extra)
            result.status = "pending"
            return

        if status == CheckStatus.FAILED:
            self.logger.warning(
                "Checks failed on PR #%d - manual intervention required", pr_number, extra=extra
            )
            result.status = "checks-failed"
            result.message = "checks failed, manual intervention required"
            return

        self.logger.info("Checks passed on PR #%d, merging", pr_number, extra=extra)
        try:
            self.client.merge_merge_request(
                MergeMergeRequestParams(
                    repo_url=repo_url,
                    pr_number=pr_number,
                    module_path=dep,
                    target_version=result.to_version,
                )
            )
        except DepSyncError as e:
            self.logger.error("Failed to merge PR #%d: %s", pr_number, e, extra=extra)
            result.status = "error"
            result.message = f"merge failed: {e}"
            return

        result.status = "merged"
        self.logger.info("Merged PR #%d", pr_number, extra=extra)

        try:
            self.client.delete_branch(
                DeleteBranchParams(repo_url=repo_url, branch_name=result.branch)
            )
        except DepSyncError as e:
            self.logger.error(
                "Failed to delete branch %s after merge: %s", result.branch, e, extra=extra
            )
            result.message = f"branch not deleted: {e}"
            return
        self.logger.info("Deleted branch %s", result.branch, extra=extra)


def _iter_mismatches(mismatches: Mismatches) -> Iterator[tuple[str, str, Mismatch]]:
    for svc in sorted(mismatches):
        for dep in sorted(mismatches[svc]):
            yield svc, dep, mismatches[svc][dep]


def format_mismatches(mismatches: Mismatches) -> str:
    """Format detected mismatches for display."""
    if not mismatches:
        return "## Dependency Check\n\nAll dependencies are up to date."

    lines = ["## Dependency Check", ""]
    for svc in sorted(mismatches):
        lines.append(f"### {svc}")
        for dep in sorted(mismatches[svc]):
            m = mismatches[svc][dep]
            lines.append(f"- {dep}: {m.actual} → {m.latest}")
        lines.append("")
    return "\n".join(lines).rstrip()


def format_sync_results(results: list[UpdateResult]) -> str:
    """Format update results for display."""
    lines = ["## Dependency Sync Results", ""]

    sections = [
        ("merged", "### ✓ Merged"),
        ("created", "### PRs Created"),
        ("pending", "### Waiting on Checks"),
        ("deferred", "### Deferred (conflicting PR closed)"),
        ("checks-failed", "### ✗ Checks Failed"),
        ("error", "### ✗ Errors"),
        ("dry-run", "### Would Update (dry-run)"),
    ]
    for status, heading in sections:
        matching = [r for r in results if r.status == status]
        if not matching:
            continue
        lines.append(heading)
        for r in matching:
            pr = f" (#{r.pr_number})" if r.pr_number != NO_PULL_REQUEST else ""
            lines.append(
                f"- **{r.service}**: {r.dependency} {r.from_version} → {r.to_version}{pr}"
            )
            if r.message:
                lines.append(f"  - {r.message}")
        lines.append("")

    if not results:
        lines.append("No updates needed.")

    return "\n".join(lines).rstrip()
