"""Pytest configuration and collaborator fakes for depsync tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from depsync.adapters.github import (
    NO_PULL_REQUEST,
    CheckMergeConflictsParams,
    CheckPullRequestExistsParams,
    CheckStatus,
    CreateMergeRequestParams,
    DeleteBranchParams,
    DeletePullRequestParams,
    GetPullRequestChecksParams,
    MergeMergeRequestParams,
    PullRequestChecks,
)
from depsync.adapters.workspace import (
    CheckBranchExistsParams,
    CommitAndPushParams,
    UpdateDependencyParams,
    Workspace,
)
from depsync.config import Config, GitAuthor, GitConfig
from depsync.errors import ForgeError


def go_mod(module: str, *requires: tuple[str, str]) -> bytes:
    """Build go.mod content for ``module`` with a require block."""
    lines = [f"module {module}", "", "go 1.22", ""]
    if requires:
        lines.append("require (")
        lines.extend(f"\t{path} {version}" for path, version in requires)
        lines.append(")")
    return ("\n".join(lines) + "\n").encode()


class FakeForge:
    """In-memory ForgeClient that records every call.

    Set ``fail[<method name>]`` to an exception to make that method raise it.
    """

    def __init__(self):
        self.files: dict[tuple[str, str, str], bytes] = {}
        self.tags: dict[tuple[str, str], list[str]] = {}
        self.open_prs: dict[str, int] = {}
        self.next_pr_number = 1
        self.check_status = CheckStatus.PASSED
        self.conflicts = False
        self.fail: dict[str, Exception] = {}
        self.calls: list[tuple[str, object]] = []

    def _record(self, name: str, params: object) -> None:
        self.calls.append((name, params))
        if name in self.fail:
            raise self.fail[name]

    def called(self, name: str) -> list[object]:
        return [params for call, params in self.calls if call == name]

    def add_repo(self, module: str, content: bytes, tags: list[str] | None = None) -> None:
        owner, repo = module.split("/")[1:3]
        self.files[(owner, repo, "go.mod")] = content
        self.tags[(owner, repo)] = tags or []

    def get_file_content(self, owner: str, repo: str, path: str, ref: str) -> bytes:
        self._record("get_file_content", (owner, repo, path, ref))
        try:
            return self.files[(owner, repo, path)]
        except KeyError:
            raise ForgeError(f"{owner}/{repo}/{path} not found", status_code=404) from None

    def list_tags(self, owner: str, repo: str) -> list[str]:
        self._record("list_tags", (owner, repo))
        return list(self.tags.get((owner, repo), []))

    def check_pull_request_exists(self, params: CheckPullRequestExistsParams) -> int:
        self._record("check_pull_request_exists", params)
        return self.open_prs.get(params.source_branch, NO_PULL_REQUEST)

    def create_merge_request(self, params: CreateMergeRequestParams) -> int:
        self._record("create_merge_request", params)
        number = self.next_pr_number
        self.next_pr_number += 1
        self.open_prs[params.source_branch] = number
        return number

    def get_pull_request_checks(self, params: GetPullRequestChecksParams) -> PullRequestChecks:
        self._record("get_pull_request_checks", params)
        return PullRequestChecks(status=self.check_status)

    def check_merge_conflicts(self, params: CheckMergeConflictsParams) -> bool:
        self._record("check_merge_conflicts", params)
        return self.conflicts

    def merge_merge_request(self, params: MergeMergeRequestParams) -> None:
        self._record("merge_merge_request", params)

    def delete_branch(self, params: DeleteBranchParams) -> None:
        self._record("delete_branch", params)

    def delete_pull_request(self, params: DeletePullRequestParams) -> None:
        self._record("delete_pull_request", params)


class FakeWorkspaces:
    """In-memory WorkspaceProvider that records every call."""

    def __init__(self):
        self.remote_branches: set[str] = set()
        self.fail: dict[str, Exception] = {}
        self.calls: list[tuple[str, object]] = []
        self.removed: list[Workspace] = []

    def _record(self, name: str, params: object) -> None:
        self.calls.append((name, params))
        if name in self.fail:
            raise self.fail[name]

    def called(self, name: str) -> list[object]:
        return [params for call, params in self.calls if call == name]

    def clone_repo(self, repo_url: str, branch: str) -> Workspace:
        self._record("clone_repo", (repo_url, branch))
        return Workspace(path=Path("/tmp/fake"), repo_url=repo_url, branch=branch)

    def check_branch_exists(self, params: CheckBranchExistsParams) -> bool:
        self._record("check_branch_exists", params)
        return params.branch_name in self.remote_branches

    def update_dependency(self, params: UpdateDependencyParams) -> Workspace:
        self._record("update_dependency", params)
        return params.workspace

    def commit_and_push(self, params: CommitAndPushParams) -> str:
        self._record("commit_and_push", params)
        self.remote_branches.add(params.branch_name)
        return params.branch_name

    def remove(self, workspace: Workspace) -> None:
        self.removed.append(workspace)


@pytest.fixture
def forge():
    """A FakeForge with no repositories."""
    return FakeForge()


@pytest.fixture
def workspaces():
    """A FakeWorkspaces with no remote branches."""
    return FakeWorkspaces()


@pytest.fixture
def config():
    """Config with two repositories: svc-a requires svc-b."""
    return Config(
        repositories=[
            "https://github.com/acme/svc-a",
            "https://github.com/acme/svc-b",
        ],
        git=GitConfig(author=GitAuthor(name="Dep Bot", email="bot@example.com")),
    )


@pytest.fixture
def scenario(forge):
    """svc-a pins svc-b at v1.0.0; svc-b has released v1.2.0."""
    forge.add_repo(
        "github.com/acme/svc-a",
        go_mod("github.com/acme/svc-a", ("github.com/acme/svc-b", "v1.0.0")),
        tags=["v0.3.0"],
    )
    forge.add_repo(
        "github.com/acme/svc-b",
        go_mod("github.com/acme/svc-b"),
        tags=["v1.0.0", "v1.1.0-beta", "v1.2.0"],
    )
    return forge
