"""Tests for configuration loading and saving."""

import pytest

from depsync.config import Config, GitAuthor, load_config, save_config
from depsync.errors import ConfigurationError

YAML_CONFIG = """\
repositories:
  - https://github.com/acme/svc-a
  - https://github.com/acme/svc-b
git:
  author:
    name: Dep Bot
    email: bot@example.com
"""


class TestConfig:
    """Tests for the Config dataclass."""

    def test_defaults(self):
        """Test Config defaults."""
        config = Config()
        assert config.repositories == []
        assert config.delete_conflicted_prs is True
        assert config.base_branch == "main"
        assert config.dry_run is False

    def test_from_dict_defaults_delete_conflicted_prs(self):
        """Test delete_conflicted_prs is on when absent."""
        config = Config.from_dict({"repositories": ["https://github.com/acme/svc-a"]})
        assert config.delete_conflicted_prs is True

    def test_from_dict_explicit_false(self):
        """Test delete_conflicted_prs can be turned off."""
        assert Config.from_dict({"delete_conflicted_prs": False}).delete_conflicted_prs is False

    def test_round_trip(self):
        """Test to_dict output loads back to an equal config."""
        config = Config(
            repositories=["https://github.com/acme/svc-a"],
            delete_conflicted_prs=False,
            base_branch="develop",
        )
        config.git.author = GitAuthor(name="n", email="e")
        assert Config.from_dict(config.to_dict()) == config

    @pytest.mark.parametrize(
        "data",
        [
            {"repositories": "https://github.com/acme/svc-a"},
            {"repositories": [1, 2]},
            {"git": ["author"]},
            {"git": {"author": "Dep Bot"}},
        ],
    )
    def test_invalid_shapes(self, data):
        """Test malformed sections are configuration errors."""
        with pytest.raises(ConfigurationError):
            Config.from_dict(data)

    def test_env_overrides_author(self):
        """Test the author can be overridden from the environment."""
        config = Config()
        config.apply_env(
            {"DEPSYNC_GIT_AUTHOR_NAME": "CI", "DEPSYNC_GIT_AUTHOR_EMAIL": "ci@example.com"}
        )
        assert config.git.author == GitAuthor(name="CI", email="ci@example.com")


class TestLoadConfig:
    """Tests for load_config and save_config."""

    def test_load_yaml(self, tmp_path):
        """Test a YAML file is loaded."""
        path = tmp_path / "depsync.yaml"
        path.write_text(YAML_CONFIG)

        config = load_config(path, environ={})

        assert config.repositories == [
            "https://github.com/acme/svc-a",
            "https://github.com/acme/svc-b",
        ]
        assert config.git.author == GitAuthor(name="Dep Bot", email="bot@example.com")
        assert config.delete_conflicted_prs is True

    def test_load_toml(self, tmp_path):
        """Test a TOML file is loaded."""
        path = tmp_path / "depsync.toml"
        path.write_text(
            'repositories = ["https://github.com/acme/svc-a"]\n'
            "delete_conflicted_prs = false\n"
            'base_branch = "develop"\n'
        )

        config = load_config(path, environ={})

        assert config.repositories == ["https://github.com/acme/svc-a"]
        assert config.delete_conflicted_prs is False
        assert config.base_branch == "develop"

    def test_env_applied_on_load(self, tmp_path):
        """Test environment overrides win over the file."""
        path = tmp_path / "depsync.yaml"
        path.write_text(YAML_CONFIG)

        config = load_config(path, environ={"DEPSYNC_GIT_AUTHOR_NAME": "Override"})

        assert config.git.author.name == "Override"
        assert config.git.author.email == "bot@example.com"

    def test_empty_file(self, tmp_path):
        """Test an empty YAML file gives defaults."""
        path = tmp_path / "depsync.yaml"
        path.write_text("")
        assert load_config(path, environ={}).repositories == []

    def test_missing_file(self, tmp_path):
        """Test a missing file is an error."""
        with pytest.raises(ConfigurationError, match="not found"):
            load_config(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path):
        """Test invalid YAML is an error."""
        path = tmp_path / "depsync.yaml"
        path.write_text("repositories: [unclosed\n")
        with pytest.raises(ConfigurationError, match="Could not load config"):
            load_config(path)

    def test_invalid_toml(self, tmp_path):
        """Test invalid TOML is an error."""
        path = tmp_path / "depsync.toml"
        path.write_text("repositories = [\n")
        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_not_a_mapping(self, tmp_path):
        """Test a YAML list at the top level is rejected."""
        path = tmp_path / "depsync.yaml"
        path.write_text("- https://github.com/acme/svc-a\n")
        with pytest.raises(ConfigurationError, match="mapping"):
            load_config(path)

    def test_unsupported_extension(self, tmp_path):
        """Test unknown file types are rejected."""
        path = tmp_path / "depsync.json"
        path.write_text("{}")
        with pytest.raises(ConfigurationError, match="Unsupported"):
            load_config(path)

    def test_save_and_load(self, tmp_path):
        """Test a saved TOML config loads back."""
        config = Config(repositories=["https://github.com/acme/svc-a"], dry_run=True)
        path = tmp_path / "nested" / "depsync.toml"

        save_config(config, path)

        assert load_config(path, environ={}) == config
