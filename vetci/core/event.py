"""GitHub webhook event payload schemas (only the fields vet-ci reads)."""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import BaseModel, ConfigDict, ValidationError

from vetci.exceptions import ConfigError


class AccountSchema(BaseModel):
    model_config = ConfigDict(extra="ignore")

    login: str


class RepositorySchema(BaseModel):
    model_config = ConfigDict(extra="ignore")

    full_name: str
    name: str | None = None
    owner: AccountSchema | None = None


class PullRequestSideSchema(BaseModel):
    model_config = ConfigDict(extra="ignore")

    ref: str
    sha: str
    repo: RepositorySchema | None = None


class PullRequestSchema(BaseModel):
    model_config = ConfigDict(extra="ignore")

    number: int
    base: PullRequestSideSchema
    head: PullRequestSideSchema

    @property
    def is_fork(self) -> bool:
        if self.head.repo is None or self.base.repo is None:
            return False
        return self.head.repo.full_name != self.base.repo.full_name

    @property
    def head_label(self) -> str:
        """Head ref as the compare API expects it (``owner:branch`` for forks)."""
        if self.is_fork and self.head.repo is not None and self.head.repo.owner is not None:
            return f"{self.head.repo.owner.login}:{self.head.ref}"
        return self.head.ref


class EventSchema(BaseModel):
    model_config = ConfigDict(extra="ignore")

    pull_request: PullRequestSchema | None = None


def load_event(path: str | None) -> EventSchema:
    """Parse the event payload at *path*; an unset path yields an empty event."""
    if not path:
        return EventSchema()
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"cannot read event payload {path}: {exc}") from exc
    try:
        return EventSchema.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(f"invalid event payload {path}: {exc}") from exc
