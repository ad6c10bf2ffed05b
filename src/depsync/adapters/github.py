"""GitHub forge client.

Covers everything depsync asks of the forge: reading go.mod, listing release
tags and administering the update pull requests and their branches.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

import httpx

from depsync.errors import (
    ForgeConnectionError,
    ForgeError,
    MergeabilityUnknownError,
    UnrecognizedMergeStateError,
)
from depsync.fetcher import parse_owner_and_repo
from depsync.naming import (
    format_commit_message,
    format_pull_request_body,
    is_own_pull_request,
)

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
NO_PULL_REQUEST = -1

MERGEABILITY_MAX_ATTEMPTS = 5
MERGEABILITY_BASE_DELAY = 2.0

TAGS_PER_PAGE = 100
CHECK_RUNS_PER_PAGE = 100

# Check-run conclusions that need a human.
FAILED_CONCLUSIONS = frozenset(
    {"failure", "timed_out", "cancelled", "action_required", "startup_failure", "stale"}
)


class CheckStatus(str, Enum):
    """Aggregate CI status of a pull request's head commit."""

    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"


@dataclass
class PullRequestChecks:
    """Result of a CI status query."""

    status: CheckStatus


@dataclass
class CheckPullRequestExistsParams:
    repo_url: str
    source_branch: str


@dataclass
class CreateMergeRequestParams:
    repo_url: str
    source_branch: str
    module_path: str
    target_version: str


@dataclass
class GetPullRequestChecksParams:
    repo_url: str
    pr_number: int


@dataclass
class CheckMergeConflictsParams:
    repo_url: str
    pr_number: int


@dataclass
class MergeMergeRequestParams:
    repo_url: str
    pr_number: int
    module_path: str
    target_version: str


@dataclass
class DeleteBranchParams:
    repo_url: str
    branch_name: str


@dataclass
class DeletePullRequestParams:
    repo_url: str
    pr_number: int


class ForgeClient(Protocol):
    """What depsync needs from the source-control forge."""

    def get_file_content(self, owner: str, repo: str, path: str, ref: str) -> bytes: ...

    def list_tags(self, owner: str, repo: str) -> list[str]: ...

    def check_pull_request_exists(self, params: CheckPullRequestExistsParams) -> int: ...

    def create_merge_request(self, params: CreateMergeRequestParams) -> int: ...

    def get_pull_request_checks(self, params: GetPullRequestChecksParams) -> PullRequestChecks: ...

    def check_merge_conflicts(self, params: CheckMergeConflictsParams) -> bool: ...

    def merge_merge_request(self, params: MergeMergeRequestParams) -> None: ...

    def delete_branch(self, params: DeleteBranchParams) -> None: ...

    def delete_pull_request(self, params: DeletePullRequestParams) -> None: ...


def pull_request_merge_state(pr_data: dict[str, Any]) -> str:
    """Reduce GitHub's ``mergeable``/``mergeable_state`` pair to one state name."""
    mergeable = pr_data.get("mergeable")
    if mergeable is None:
        return "unknown"
    if mergeable is False:
        return "conflicting"
    return str(pr_data.get("mergeable_state") or "unknown").lower()


def merge_state_has_conflicts(state: str) -> bool | None:
    """Map a merge state to a conflict flag.

    Failing checks, needing a rebase and branch protection are not content
    conflicts, so ``unstable``, ``dirty`` and ``blocked`` count as clean.

    Returns:
        True for a content conflict, False otherwise, None when the forge
        has not computed mergeability yet.

    Raises:
        UnrecognizedMergeStateError: For any other state.
    """
    state = state.lower()
    if state == "conflicting":
        return True
    if state in ("clean", "unstable", "dirty", "blocked"):
        return False
    if state == "unknown":
        return None
    raise UnrecognizedMergeStateError(f"unrecognized merge state: {state}")


def classify_checks(
    check_runs: list[dict[str, Any]], statuses: list[dict[str, Any]]
) -> CheckStatus:
    """Fold check runs and commit statuses into a single CheckStatus.

    Nothing reported yet counts as running.
    """
    if not check_runs and not statuses:
        return CheckStatus.RUNNING

    if any(
        run.get("status") == "completed" and run.get("conclusion") in FAILED_CONCLUSIONS
        for run in check_runs
    ) or any(s.get("state") in ("failure", "error") for s in statuses):
        return CheckStatus.FAILED

    if any(run.get("status") != "completed" for run in check_runs) or any(
        s.get("state") == "pending" for s in statuses
    ):
        return CheckStatus.RUNNING

    return CheckStatus.PASSED


class GitHubClient:
    """GitHub REST API client.

    Example:
        with GitHubClient(token) as client:
            tags = client.list_tags("owner", "repo")
    """

    def __init__(
        self,
        token: str,
        base_branch: str = "main",
        api_url: str = DEFAULT_API_URL,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
        max_mergeability_attempts: int = MERGEABILITY_MAX_ATTEMPTS,
        mergeability_base_delay: float = MERGEABILITY_BASE_DELAY,
    ):
        """Initialize the client.

        Args:
            token: GitHub token with contents and pull-request write access.
            base_branch: Target branch for the pull requests depsync opens.
            api_url: REST API root, for GitHub Enterprise.
            timeout: Per-request timeout in seconds.
            transport: Optional httpx transport (tests use httpx.MockTransport).
            sleep: Called between mergeability polls.
            max_mergeability_attempts: Polls before giving up on an unknown state.
            mergeability_base_delay: First delay between polls, doubled each time.
        """
        self.base_branch = base_branch
        self.max_mergeability_attempts = max_mergeability_attempts
        self.mergeability_base_delay = mergeability_base_delay
        self._sleep = sleep
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "depsync",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.Client(
            base_url=api_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request, translating transport and HTTP errors to ForgeError."""
        try:
            resp = self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise ForgeConnectionError(f"GitHub API timed out: {method} {url}") from e
        except httpx.TransportError as e:
            raise ForgeConnectionError(f"Cannot connect to GitHub API: {e}") from e

        if resp.status_code >= 400:
            try:
                body = resp.json()
            except ValueError:
                body = None
            detail = body.get("message", "") if isinstance(body, dict) else resp.text
            raise ForgeError(
                f"GitHub API error: {method} {url} returned {resp.status_code}: {detail}",
                status_code=resp.status_code,
            )
        return resp

    @staticmethod
    def _json(resp: httpx.Response, expected: type = dict) -> Any:
        """Decode a response body, raising ForgeError unless it is JSON of type ``expected``."""
        try:
            data = resp.json()
        except ValueError as e:
            raise ForgeError(
                f"GitHub API returned a non-JSON body for {resp.request.method} {resp.request.url}"
            ) from e
        if not isinstance(data, expected):
            raise ForgeError(
                f"GitHub API returned an unexpected body for {resp.request.method} "
                f"{resp.request.url}: expected {expected.__name__}, got {type(data).__name__}"
            )
        return data

    @staticmethod
    def _field(data: Any, *path: Any) -> Any:
        """Walk ``path`` into a decoded body, raising ForgeError if it is missing."""
        try:
            for key in path:
                data = data[key]
        except (KeyError, IndexError, TypeError) as e:
            field = ".".join(str(key) for key in path)
            raise ForgeError(f"GitHub API response has no {field}") from e
        return data

    def _pr_number(self, pr: Any) -> int:
        number = self._field(pr, "number")
        if not isinstance(number, int) or isinstance(number, bool):
            raise ForgeError(f"GitHub API returned an invalid PR number: {number!r}")
        return number

    @staticmethod
    def _owner_repo(repo_url: str) -> tuple[str, str]:
        owner, repo = parse_owner_and_repo(repo_url)
        if not owner or not repo:
            raise ForgeError(f"invalid repository URL: {repo_url}")
        return owner, repo

    def _get_pull_request(self, owner: str, repo: str, pr_number: int) -> dict[str, Any]:
        resp = self._request("GET", f"/repos/{owner}/{repo}/pulls/{pr_number}")
        return self._json(resp)

    def get_file_content(self, owner: str, repo: str, path: str, ref: str) -> bytes:
        """GET /repos/{owner}/{repo}/contents/{path} - raw file bytes at ``ref``."""
        resp = self._request(
            "GET",
            f"/repos/{owner}/{repo}/contents/{path}",
            params={"ref": ref},
            headers={"Accept": "application/vnd.github.raw+json"},
        )
        return resp.content

    def list_tags(self, owner: str, repo: str) -> list[str]:
        """List all tag names of a repository, following pagination."""
        names: list[str] = []
        page = 1
        while True:
            resp = self._request(
                "GET",
                f"/repos/{owner}/{repo}/tags",
                params={"per_page": TAGS_PER_PAGE, "page": page},
            )
            batch = self._json(resp, list)
            names.extend(tag["name"] for tag in batch if isinstance(tag, dict) and tag.get("name"))
            if len(batch) < TAGS_PER_PAGE:
                return names
            page += 1

    def check_pull_request_exists(self, params: CheckPullRequestExistsParams) -> int:
        """Return the number of the open PR from ``source_branch``, or -1."""
        owner, repo = self._owner_repo(params.repo_url)
        resp = self._request(
            "GET",
            f"/repos/{owner}/{repo}/pulls",
            params={"head": f"{owner}:{params.source_branch}", "state": "open"},
        )
        prs = self._json(resp, list)
        if not prs:
            return NO_PULL_REQUEST
        return self._pr_number(prs[0])

    def create_merge_request(self, params: CreateMergeRequestParams) -> int:
        """Open a PR from ``source_branch`` into the base branch."""
        owner, repo = self._owner_repo(params.repo_url)
        resp = self._request(
            "POST",
            f"/repos/{owner}/{repo}/pulls",
            json={
                "title": format_commit_message(params.module_path, params.target_version),
                "head": params.source_branch,
                "base": self.base_branch,
                "body": format_pull_request_body(params.module_path, params.target_version),
            },
        )
        pr = self._json(resp)
        number = self._pr_number(pr)
        logger.info("Created PR #%d: %s", number, pr.get("html_url", ""))
        return number

    def get_pull_request_checks(self, params: GetPullRequestChecksParams) -> PullRequestChecks:
        """Aggregate check runs and commit statuses of the PR's head commit."""
        owner, repo = self._owner_repo(params.repo_url)
        pr = self._get_pull_request(owner, repo, params.pr_number)
        sha = self._field(pr, "head", "sha")

        check_runs = self._list_check_runs(owner, repo, sha)
        resp = self._request("GET", f"/repos/{owner}/{repo}/commits/{sha}/status")
        statuses = self._records(self._json(resp), "statuses")

        return PullRequestChecks(status=classify_checks(check_runs, statuses))

    def _list_check_runs(self, owner: str, repo: str, sha: str) -> list[dict[str, Any]]:
        """List all check runs of a commit, following pagination."""
        check_runs: list[dict[str, Any]] = []
        page = 1
        while True:
            resp = self._request(
                "GET",
                f"/repos/{owner}/{repo}/commits/{sha}/check-runs",
                params={"per_page": CHECK_RUNS_PER_PAGE, "page": page},
            )
            batch = self._records(self._json(resp), "check_runs")
            check_runs.extend(batch)
            if len(batch) < CHECK_RUNS_PER_PAGE:
                return check_runs
            page += 1

    @staticmethod
    def _records(data: dict[str, Any], key: str) -> list[dict[str, Any]]:
        """Return ``data[key]`` as a list of objects; a missing key is an empty list."""
        records = data.get(key) or []
        if not isinstance(records, list) or not all(isinstance(r, dict) for r in records):
            raise ForgeError(f"GitHub API response has a malformed {key} list")
        return records

    def check_merge_conflicts(self, params: CheckMergeConflictsParams) -> bool:
        """Return True if the PR has content conflicts with its base.

        GitHub computes mergeability lazily, so an ``unknown`` state is polled
        with exponential backoff. PRs not opened by depsync are never
        reported as conflicting.

        Raises:
            MergeabilityUnknownError: If the state is still unknown after
                the last attempt.
            UnrecognizedMergeStateError: For a state depsync does not handle.
        """
        owner, repo = self._owner_repo(params.repo_url)
        delay = self.mergeability_base_delay

        for attempt in range(1, self.max_mergeability_attempts + 1):
            pr = self._get_pull_request(owner, repo, params.pr_number)
            if not is_own_pull_request(pr.get("title") or ""):
                logger.warning(
                    "PR #%d in %s/%s was not opened by depsync, leaving it alone",
                    params.pr_number,
                    owner,
                    repo,
                )
                return False

            state = pull_request_merge_state(pr)
            conflicts = merge_state_has_conflicts(state)
            if conflicts is not None:
                return conflicts

            if attempt < self.max_mergeability_attempts:
                logger.info(
                    "Mergeability of PR #%d not computed yet, retrying in %.0fs (attempt %d/%d)",
                    params.pr_number,
                    delay,
                    attempt,
                    self.max_mergeability_attempts,
                )
                self._sleep(delay)
                delay *= 2

        raise MergeabilityUnknownError(
            f"mergeability of PR #{params.pr_number} in {owner}/{repo} not yet computed "
            f"after {self.max_mergeability_attempts} attempts"
        )

    def merge_merge_request(self, params: MergeMergeRequestParams) -> None:
        """Squash-merge the PR using the shared commit message."""
        owner, repo = self._owner_repo(params.repo_url)
        self._request(
            "PUT",
            f"/repos/{owner}/{repo}/pulls/{params.pr_number}/merge",
            json={
                "merge_method": "squash",
                "commit_title": format_commit_message(params.module_path, params.target_version),
            },
        )

    def delete_branch(self, params: DeleteBranchParams) -> None:
        """DELETE /repos/{owner}/{repo}/git/refs/heads/{branch}."""
        owner, repo = self._owner_repo(params.repo_url)
        self._request("DELETE", f"/repos/{owner}/{repo}/git/refs/heads/{params.branch_name}")

    def delete_pull_request(self, params: DeletePullRequestParams) -> None:
        """Close the PR. GitHub has no way to delete one."""
        owner, repo = self._owner_repo(params.repo_url)
        self._request(
            "PATCH",
            f"/repos/{owner}/{repo}/pulls/{params.pr_number}",
            json={"state": "closed"},
        )

    def close(self) -> None:
        """Close the HTTP client connection."""
        self._client.close()

    def __enter__(self) -> GitHubClient:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
