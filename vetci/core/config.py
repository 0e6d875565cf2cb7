"""Run configuration: action inputs and runner environment, read once at entry.

GitHub Actions exposes ``with:`` inputs as ``INPUT_<NAME>`` environment
variables (name upper-cased, spaces replaced by underscores, dashes kept).
Components never touch ``os.environ``; they receive a :class:`ScanConfig`
and an :class:`ActionContext` built here.
"""

from __future__ import annotations

import os
import tempfile
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from vetci.core.event import EventSchema, load_event
from vetci.exceptions import ConfigError

DEFAULT_POLICY_PATH = Path(__file__).resolve().parent.parent / "policy.yml"
DEFAULT_TIMEOUT_SECONDS = 300
DEFAULT_ARTIFACT_NAME = "vet-report"

_TRUE_VALUES = ("true", "True", "TRUE")
_FALSE_VALUES = ("false", "False", "FALSE")


def get_input(name: str, env: Mapping[str, str] | None = None) -> str:
    """Return the trimmed value of action input *name*, ``""`` when unset."""
    env = os.environ if env is None else env
    key = "INPUT_" + name.replace(" ", "_").upper()
    return env.get(key, "").strip()


def get_bool_input(name: str, default: bool, env: Mapping[str, str] | None = None) -> bool:
    """Parse a YAML 1.2 core-schema boolean input.

    Raises ConfigError for anything other than true/True/TRUE/false/False/FALSE.
    """
    value = get_input(name, env)
    if not value:
        return default
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigError(
        f"Input is not a YAML 1.2 core-schema boolean: {name}\n"
        "Support boolean input list: `true | True | TRUE | false | False | FALSE`"
    )


def get_list_input(name: str, env: Mapping[str, str] | None = None) -> tuple[str, ...]:
    """Split a comma or newline separated input into trimmed, non-empty items."""
    value = get_input(name, env)
    items = value.replace("\n", ",").split(",")
    return tuple(item.strip() for item in items if item.strip())


@dataclass(frozen=True)
class ActionContext:
    """Identity of the repository, event and runner for this run."""

    owner: str
    repo: str
    event_name: str
    event: EventSchema = field(default_factory=EventSchema)
    base_ref: str = ""
    head_ref: str = ""
    ref_name: str = ""
    workspace: Path = field(default_factory=Path.cwd)
    temp_root: Path = field(default_factory=lambda: Path(tempfile.gettempdir()))
    step_summary_path: Path | None = None
    output_path: Path | None = None
    token: str = ""
    api_url: str = "https://api.github.com"
    server_url: str = "https://github.com"
    run_id: str = "local"
    run_attempt: str = "1"
    results_url: str = ""
    runtime_token: str = ""
    id_token_request_url: str = ""
    id_token_request_token: str = ""

    @property
    def repository(self) -> str:
        return f"{self.owner}/{self.repo}"

    @property
    def pull_request_number(self) -> int | None:
        if self.event.pull_request is None:
            return None
        return self.event.pull_request.number

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> ActionContext:
        env = os.environ if env is None else env

        repository = env.get("GITHUB_REPOSITORY", "")
        if "/" not in repository:
            raise ConfigError(f"GITHUB_REPOSITORY is not set or malformed: {repository!r}")
        owner, repo = repository.split("/", 1)

        event_name = env.get("GITHUB_EVENT_NAME", "")
        if not event_name:
            raise ConfigError("GITHUB_EVENT_NAME is not set")
        event = load_event(env.get("GITHUB_EVENT_PATH"))

        base_ref = env.get("GITHUB_BASE_REF", "")
        head_ref = env.get("GITHUB_HEAD_REF", "")
        pr = event.pull_request
        if pr is not None:
            base_ref = base_ref or pr.base.ref
            head_ref = pr.head_label if pr.is_fork else (head_ref or pr.head.ref)

        return cls(
            owner=owner,
            repo=repo,
            event_name=event_name,
            event=event,
            base_ref=base_ref,
            head_ref=head_ref,
            ref_name=env.get("GITHUB_REF_NAME", ""),
            workspace=Path(env.get("GITHUB_WORKSPACE") or Path.cwd()),
            temp_root=Path(env.get("RUNNER_TEMP") or tempfile.gettempdir()),
            step_summary_path=_optional_path(env.get("GITHUB_STEP_SUMMARY")),
            output_path=_optional_path(env.get("GITHUB_OUTPUT")),
            token=get_input("github-token", env) or env.get("GITHUB_TOKEN", ""),
            api_url=env.get("GITHUB_API_URL", "https://api.github.com"),
            server_url=env.get("GITHUB_SERVER_URL", "https://github.com"),
            run_id=env.get("GITHUB_RUN_ID", "local"),
            run_attempt=env.get("GITHUB_RUN_ATTEMPT", "1"),
            results_url=env.get("ACTIONS_RESULTS_URL", ""),
            runtime_token=env.get("ACTIONS_RUNTIME_TOKEN", ""),
            id_token_request_url=env.get("ACTIONS_ID_TOKEN_REQUEST_URL", ""),
            id_token_request_token=env.get("ACTIONS_ID_TOKEN_REQUEST_TOKEN", ""),
        )


@dataclass(frozen=True)
class ScanConfig:
    """Immutable scan settings shared read-only by every pipeline component."""

    version: str | None = None
    policy: Path = DEFAULT_POLICY_PATH
    cloud_mode: bool = False
    cloud_key: str = ""
    cloud_tenant: str = ""
    trusted_registries: tuple[str, ...] = ()
    exclusion_patterns: tuple[str, ...] = ()
    exceptions_extra: Path | None = None
    pull_request_number: int | None = None
    pull_request_comment: bool = True
    add_step_summary: bool = True
    enable_comments_proxy: bool = False
    upload_artifact: bool = True
    artifact_name: str = DEFAULT_ARTIFACT_NAME
    timeout: int = DEFAULT_TIMEOUT_SECONDS
    paranoid: bool = False
    malware_min_confidence: str = "HIGH"

    def validate_cloud(self) -> None:
        """Raise ConfigError when cloud mode lacks a key or a tenant."""
        if not self.cloud_mode:
            return
        if not self.cloud_key:
            raise ConfigError("cloud mode requires `cloud-key` to be set")
        if not self.cloud_tenant:
            raise ConfigError("cloud mode requires `cloud-tenant` to be set")

    @classmethod
    def from_env(
        cls,
        context: ActionContext,
        env: Mapping[str, str] | None = None,
    ) -> ScanConfig:
        env = os.environ if env is None else env

        policy = get_input("policy", env)
        exception_file = get_input("exception-file", env)
        timeout_raw = get_input("timeout", env)
        try:
            timeout = int(timeout_raw) if timeout_raw else DEFAULT_TIMEOUT_SECONDS
        except ValueError as exc:
            raise ConfigError(f"`timeout` must be an integer number of seconds: {timeout_raw!r}") from exc
        if timeout <= 0:
            raise ConfigError(f"`timeout` must be positive: {timeout}")

        config = cls(
            version=get_input("version", env) or None,
            policy=_resolve(policy, context.workspace) if policy else DEFAULT_POLICY_PATH,
            cloud_mode=get_bool_input("cloud", False, env),
            cloud_key=get_input("cloud-key", env),
            cloud_tenant=get_input("cloud-tenant", env),
            trusted_registries=get_list_input("trusted-registries", env),
            exclusion_patterns=get_list_input("exclusion-patterns", env),
            exceptions_extra=_resolve(exception_file, context.workspace) if exception_file else None,
            pull_request_number=context.pull_request_number,
            pull_request_comment=get_bool_input("pull-request-comment", True, env),
            add_step_summary=get_bool_input("add-step-summary", True, env),
            enable_comments_proxy=get_bool_input("enable-comments-proxy", False, env),
            upload_artifact=get_bool_input("upload-artifact", True, env),
            artifact_name=get_input("artifact-name", env) or DEFAULT_ARTIFACT_NAME,
            timeout=timeout,
            paranoid=get_bool_input("paranoid", False, env),
            malware_min_confidence=(get_input("malware-min-confidence", env) or "HIGH").upper(),
        )
        config.validate_cloud()
        if not config.policy.is_file():
            raise ConfigError(f"policy file not found: {config.policy}")
        return config


def _optional_path(value: str | None) -> Path | None:
    return Path(value) if value else None


def _resolve(value: str, workspace: Path) -> Path:
    path = Path(value)
    return path if path.is_absolute() else workspace / path
