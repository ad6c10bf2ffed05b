"""Branch names, commit messages and PR text shared by every adapter.

The commit prefix doubles as the marker that lets depsync recognise its own
pull requests, so the PR title and the squash commit use the same format.
"""

from __future__ import annotations

COMMIT_PREFIX = "chores(depsync):"
BRANCH_PREFIX = "depsync"

# Characters git or the forge reject (or that read badly) in ref names.
INVALID_BRANCH_CHARS = ["/", ".", "\\", ":", "*", "?", '"', "<", ">", "|", " "]


def format_commit_message(module_path: str, target_version: str) -> str:
    """Commit message, PR title and squash-merge title for an update."""
    return f"{COMMIT_PREFIX} update {module_path} to {target_version}"


def format_pull_request_body(module_path: str, target_version: str) -> str:
    """Generate PR body text."""
    return f"""## Dependency Update

Updates **{module_path}** to `{target_version}`, the latest release tag.

This pull request is merged automatically (squash) once all checks pass.
If it becomes conflicting it is closed and recreated on the next run.

---
*Created automatically by depsync*
"""


def sanitize_branch_name(name: str) -> str:
    """Make ``name`` safe for a git branch.

    A single ``--`` -> ``-`` pass is applied, so longer runs of replaced
    characters are only partly collapsed. Existing branches on the forge
    depend on this exact output.
    """
    result = name
    for char in INVALID_BRANCH_CHARS:
        result = result.replace(char, "-")
    result = result.replace("--", "-")
    return result.strip("-")


def generate_branch_name(module_path: str, target_version: str) -> str:
    """Deterministic branch name for updating ``module_path`` to ``target_version``."""
    return f"{BRANCH_PREFIX}/update-{sanitize_branch_name(module_path)}-{target_version}"


def is_own_pull_request(title: str) -> bool:
    """True if the PR title was generated by depsync."""
    return title.startswith(COMMIT_PREFIX)
