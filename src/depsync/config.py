"""depsync configuration.

Read from YAML (``.yaml``/``.yml``) or TOML (``.toml``). The starter file
written by ``depsync init`` is TOML.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

# tomli-w for writing (tomllib is read-only)
import tomli_w
import yaml

# tomllib is stdlib in 3.11+, use tomli as fallback for 3.10
try:
    import tomllib
except ImportError:
    import tomli as tomllib  # type: ignore[import-not-found,no-redef]

from depsync.errors import ConfigurationError

DEFAULT_CONFIG_PATH = Path("configs") / "depsync.yaml"
DEFAULT_BASE_BRANCH = "main"

ENV_AUTHOR_NAME = "DEPSYNC_GIT_AUTHOR_NAME"
ENV_AUTHOR_EMAIL = "DEPSYNC_GIT_AUTHOR_EMAIL"


@dataclass
class GitAuthor:
    """Identity used for update commits."""

    name: str = "depsync"
    email: str = "depsync@users.noreply.github.com"


@dataclass
class GitConfig:
    author: GitAuthor = field(default_factory=GitAuthor)


@dataclass
class Config:
    """Settings for one depsync run."""

    repositories: list[str] = field(default_factory=list)
    git: GitConfig = field(default_factory=GitConfig)
    delete_conflicted_prs: bool = True
    base_branch: str = DEFAULT_BASE_BRANCH
    dry_run: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary for serialization."""
        return {
            "repositories": list(self.repositories),
            "git": {
                "author": {
                    "name": self.git.author.name,
                    "email": self.git.author.email,
                }
            },
            "delete_conflicted_prs": self.delete_conflicted_prs,
            "base_branch": self.base_branch,
            "dry_run": self.dry_run,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Config:
        """Create config from dictionary.

        Raises:
            ConfigurationError: If a section has the wrong shape.
        """
        repositories = data.get("repositories") or []
        if not isinstance(repositories, list) or not all(
            isinstance(r, str) for r in repositories
        ):
            raise ConfigurationError("'repositories' must be a list of repository URLs")

        git = data.get("git") or {}
        if not isinstance(git, dict):
            raise ConfigurationError("'git' must be a table")
        author = git.get("author") or {}
        if not isinstance(author, dict):
            raise ConfigurationError("'git.author' must be a table with 'name' and 'email'")

        defaults = GitAuthor()
        return cls(
            repositories=repositories,
            git=GitConfig(
                author=GitAuthor(
                    name=author.get("name", defaults.name),
                    email=author.get("email", defaults.email),
                )
            ),
            delete_conflicted_prs=bool(data.get("delete_conflicted_prs", True)),
            base_branch=data.get("base_branch") or DEFAULT_BASE_BRANCH,
            dry_run=bool(data.get("dry_run", False)),
        )

    def apply_env(self, environ: dict[str, str] | None = None) -> None:
        """Override the commit author from the environment."""
        env = os.environ if environ is None else environ
        if env.get(ENV_AUTHOR_NAME):
            self.git.author.name = env[ENV_AUTHOR_NAME]
        if env.get(ENV_AUTHOR_EMAIL):
            self.git.author.email = env[ENV_AUTHOR_EMAIL]


def _read(path: Path) -> dict[str, Any]:
    suffix = path.suffix.lower()
    if suffix in (".yaml", ".yml"):
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    elif suffix == ".toml":
        with open(path, "rb") as f:
            data = tomllib.load(f)
    else:
        raise ConfigurationError(f"Unsupported config format: {path} (use .yaml, .yml or .toml)")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")
    return data


def load_config(path: Path | None = None, environ: dict[str, str] | None = None) -> Config:
    """Load configuration from file.

    Args:
        path: Config path. Defaults to configs/depsync.yaml.
        environ: Environment for author overrides. Defaults to os.environ.

    Returns:
        Loaded Config.

    Raises:
        ConfigurationError: If the file is missing, unreadable or invalid.
    """
    config_path = path or DEFAULT_CONFIG_PATH

    if not config_path.exists():
        raise ConfigurationError(f"Config file not found: {config_path}")

    try:
        data = _read(config_path)
    except (yaml.YAMLError, tomllib.TOMLDecodeError, OSError) as e:
        raise ConfigurationError(f"Could not load config from {config_path}: {e}") from e

    config = Config.from_dict(data)
    config.apply_env(environ)
    return config


def save_config(config: Config, path: Path) -> None:
    """Save configuration as TOML.

    Args:
        config: Config object to save.
        path: Destination file; parent directories are created.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "wb") as f:
        tomli_w.dump(config.to_dict(), f)
