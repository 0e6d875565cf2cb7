"""Tests for action input parsing and run configuration."""

from __future__ import annotations

import json

import pytest

from vetci.core.config import (
    DEFAULT_POLICY_PATH,
    ActionContext,
    ScanConfig,
    get_bool_input,
    get_input,
    get_list_input,
)
from vetci.core.event import load_event
from vetci.exceptions import ConfigError


def _pr_event(tmp_path, *, fork: bool = False):
    head_repo = "someone/repo" if fork else "owner/repo"
    payload = {
        "pull_request": {
            "number": 7,
            "base": {"ref": "main", "sha": "b" * 40, "repo": {"full_name": "owner/repo", "owner": {"login": "owner"}}},
            "head": {
                "ref": "feature",
                "sha": "h" * 40,
                "repo": {"full_name": head_repo, "owner": {"login": head_repo.split("/")[0]}},
            },
        },
        "repository": {"full_name": "owner/repo", "name": "repo"},
    }
    path = tmp_path / "event.json"
    path.write_text(json.dumps(payload))
    return path


def _env(tmp_path, event_path, **extra):
    env = {
        "GITHUB_REPOSITORY": "owner/repo",
        "GITHUB_EVENT_NAME": "pull_request",
        "GITHUB_EVENT_PATH": str(event_path),
        "GITHUB_BASE_REF": "main",
        "GITHUB_HEAD_REF": "feature",
        "GITHUB_WORKSPACE": str(tmp_path),
        "RUNNER_TEMP": str(tmp_path / "tmp"),
        "GITHUB_RUN_ID": "99",
    }
    env.update(extra)
    return env


class TestInputs:
    def test_get_input_trims_and_maps_name(self):
        assert get_input("cloud-key", {"INPUT_CLOUD-KEY": "  secret \n"}) == "secret"
        assert get_input("missing", {}) == ""

    @pytest.mark.parametrize("raw,expected", [("true", True), ("TRUE", True), ("False", False)])
    def test_bool_input(self, raw, expected):
        assert get_bool_input("cloud", False, {"INPUT_CLOUD": raw}) is expected

    def test_bool_input_default_when_unset(self):
        assert get_bool_input("paranoid", True, {}) is True

    def test_bool_input_rejects_other_values(self):
        with pytest.raises(ConfigError, match="cloud"):
            get_bool_input("cloud", False, {"INPUT_CLOUD": "yes"})

    def test_list_input_accepts_commas_and_newlines(self):
        env = {"INPUT_TRUSTED-REGISTRIES": "npm.example.com,\n pypi.example.com \n\n"}
        assert get_list_input("trusted-registries", env) == ("npm.example.com", "pypi.example.com")


class TestActionContext:
    def test_pull_request_context(self, tmp_path):
        ctx = ActionContext.from_env(_env(tmp_path, _pr_event(tmp_path)))
        assert ctx.owner == "owner"
        assert ctx.repo == "repo"
        assert ctx.base_ref == "main"
        assert ctx.head_ref == "feature"
        assert ctx.pull_request_number == 7
        assert ctx.run_id == "99"

    def test_fork_head_uses_owner_branch_notation(self, tmp_path):
        ctx = ActionContext.from_env(_env(tmp_path, _pr_event(tmp_path, fork=True)))
        assert ctx.head_ref == "someone:feature"

    def test_requires_repository(self, tmp_path):
        env = _env(tmp_path, _pr_event(tmp_path), GITHUB_REPOSITORY="")
        with pytest.raises(ConfigError, match="GITHUB_REPOSITORY"):
            ActionContext.from_env(env)

    def test_unreadable_event_payload(self, tmp_path):
        with pytest.raises(ConfigError, match="event payload"):
            load_event(str(tmp_path / "nope.json"))


class TestScanConfig:
    def test_defaults(self, tmp_path):
        ctx = ActionContext.from_env(_env(tmp_path, _pr_event(tmp_path)))
        cfg = ScanConfig.from_env(ctx, {})
        assert cfg.policy == DEFAULT_POLICY_PATH
        assert cfg.policy.is_file()
        assert cfg.pull_request_number == 7
        assert cfg.timeout == 300
        assert cfg.cloud_mode is False
        assert cfg.exceptions_extra is None

    def test_relative_policy_resolves_against_workspace(self, tmp_path):
        (tmp_path / ".github").mkdir()
        (tmp_path / ".github" / "vet.yml").write_text("name: custom\n")
        ctx = ActionContext.from_env(_env(tmp_path, _pr_event(tmp_path)))
        cfg = ScanConfig.from_env(ctx, {"INPUT_POLICY": ".github/vet.yml"})
        assert cfg.policy == tmp_path / ".github" / "vet.yml"

    def test_missing_policy_file(self, tmp_path):
        ctx = ActionContext.from_env(_env(tmp_path, _pr_event(tmp_path)))
        with pytest.raises(ConfigError, match="policy file not found"):
            ScanConfig.from_env(ctx, {"INPUT_POLICY": "nope.yml"})

    def test_cloud_mode_requires_key_and_tenant(self, tmp_path):
        ctx = ActionContext.from_env(_env(tmp_path, _pr_event(tmp_path)))
        with pytest.raises(ConfigError, match="cloud-key"):
            ScanConfig.from_env(ctx, {"INPUT_CLOUD": "true", "INPUT_CLOUD-TENANT": "t"})
        with pytest.raises(ConfigError, match="cloud-tenant"):
            ScanConfig.from_env(ctx, {"INPUT_CLOUD": "true", "INPUT_CLOUD-KEY": "k"})

    def test_invalid_timeout(self, tmp_path):
        ctx = ActionContext.from_env(_env(tmp_path, _pr_event(tmp_path)))
        with pytest.raises(ConfigError, match="timeout"):
            ScanConfig.from_env(ctx, {"INPUT_TIMEOUT": "soon"})
