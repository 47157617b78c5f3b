"""Tests for configuration loading."""

import json

import pytest
from pydantic import ValidationError

from rulesync.git import GitConfig, UnauthorizedHostError
from rulesync.git.config import DEFAULT_CLONE_TIMEOUT, DEFAULT_PULL_TIMEOUT
from rulesync.settings import RulesyncConfig, default_cache_dir, load_config


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for name in (
        "RULESYNC_CACHE_DIR",
        "RULESYNC_CLONE_TIMEOUT",
        "RULESYNC_PULL_TIMEOUT",
        "RULESYNC_ALLOWED_SCHEMES",
        "RULESYNC_ALLOWED_HOSTS",
    ):
        monkeypatch.delenv(name, raising=False)


class TestGitConfig:
    """Tests for GitConfig."""

    def test_defaults(self):
        config = GitConfig()
        assert config.clone_timeout == DEFAULT_CLONE_TIMEOUT == 300
        assert config.pull_timeout == DEFAULT_PULL_TIMEOUT == 120
        assert config.allowed_schemes == ["https", "ssh"]
        assert config.allowed_hosts == ["github.com", "gitlab.com", "bitbucket.org"]
        assert config.default_branches == ["main", "master"]
        assert config.remote_lookup_attempts == 3

    def test_policy(self):
        policy = GitConfig(allowed_hosts=["GitHub.com"]).policy()
        assert policy.allowed_hosts == frozenset({"github.com"})
        with pytest.raises(UnauthorizedHostError):
            policy.validate("https://gitlab.com/org/rules.git")

    def test_empty_hosts_means_any(self):
        policy = GitConfig(allowed_hosts=[]).policy()
        assert policy.validate("https://git.internal/x/y.git").host == "git.internal"

    def test_rejects_bad_values(self):
        with pytest.raises(ValidationError):
            GitConfig(clone_timeout=0)
        with pytest.raises(ValidationError):
            GitConfig(allowed_schemes=[])
        with pytest.raises(ValidationError):
            GitConfig(unknown=True)


class TestRulesyncConfig:
    """Tests for RulesyncConfig."""

    def test_defaults(self):
        config = RulesyncConfig()
        assert config.cache_dir == default_cache_dir()
        assert config.git == GitConfig()

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "cache_dir: ~/rules-cache\n"
            "git:\n"
            "  clone_timeout: 60\n"
            "  allowed_hosts: [github.com, git.example.com]\n"
        )
        config = RulesyncConfig.from_file(path)
        assert config.git.clone_timeout == 60
        assert config.git.allowed_hosts == ["github.com", "git.example.com"]
        assert "~" not in str(config.cache_dir)

    def test_from_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"git": {"pull_timeout": 10}}))
        assert RulesyncConfig.from_file(path).git.pull_timeout == 10

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yml"
        path.write_text("")
        assert RulesyncConfig.from_file(path) == RulesyncConfig()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            RulesyncConfig.from_file(tmp_path / "missing.yaml")

    def test_unknown_keys_rejected(self):
        with pytest.raises(ValidationError):
            RulesyncConfig.from_dict({"cache": "/tmp"})

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("RULESYNC_CACHE_DIR", str(tmp_path))
        monkeypatch.setenv("RULESYNC_CLONE_TIMEOUT", "30")
        monkeypatch.setenv("RULESYNC_ALLOWED_SCHEMES", "https, file")
        monkeypatch.setenv("RULESYNC_ALLOWED_HOSTS", "*")

        config = RulesyncConfig.from_env()

        assert config.cache_dir == tmp_path
        assert config.git.clone_timeout == 30
        assert config.git.pull_timeout == DEFAULT_PULL_TIMEOUT
        assert config.git.allowed_schemes == ["https", "file"]
        assert config.git.allowed_hosts == []

    def test_from_env_hosts_list(self, monkeypatch):
        monkeypatch.setenv("RULESYNC_ALLOWED_HOSTS", "github.com,git.example.com")
        assert RulesyncConfig.from_env().git.allowed_hosts == ["github.com", "git.example.com"]

    def test_load_config(self, tmp_path, monkeypatch):
        path = tmp_path / "config.yaml"
        path.write_text("git:\n  pull_timeout: 5\n")
        assert load_config(path).git.pull_timeout == 5

        monkeypatch.setenv("RULESYNC_PULL_TIMEOUT", "7")
        assert load_config(None).git.pull_timeout == 7
