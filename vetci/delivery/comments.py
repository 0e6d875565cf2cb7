"""Sticky pull-request comment: one comment per PR, found by its marker."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

import structlog

from vetci.core.github import GitHubRepo

log = structlog.get_logger("vetci.delivery.comments")

COMMENT_MARKER = "<!-- vet-report-pr-comment -->"


def render_comment(content: str, marker: str) -> str:
    return f"{content}\n\n{marker}"


@dataclass
class UpsertResult:
    action: Literal["created", "updated"]
    comment_id: int | None


class CommentUpserter:
    """Create-or-update the comment whose body contains *marker*.

    The marker substring is the comment's identity; no id is stored between
    runs. Errors propagate so the caller can decide on a fallback.
    """

    def __init__(self, repo: GitHubRepo, issue_number: int) -> None:
        self._repo = repo
        self._issue_number = issue_number
        # Set once the comment list was read; lets a fallback know an update is due.
        self.existing_id: int | None = None

    async def find(self, marker: str) -> int | None:
        comments = await self._repo.list_comments(self._issue_number)
        for comment in comments:
            if marker in (comment.get("body") or ""):
                self.existing_id = comment["id"]
                return self.existing_id
        return None

    async def upsert(self, content: str, marker: str) -> UpsertResult:
        body = render_comment(content, marker)
        existing = await self.find(marker)
        if existing is not None:
            await self._repo.update_comment(existing, body)
            log.info("comment.updated", issue=self._issue_number, comment_id=existing)
            return UpsertResult(action="updated", comment_id=existing)

        created = await self._repo.create_comment(self._issue_number, body)
        comment_id = created.get("id")
        log.info("comment.created", issue=self._issue_number, comment_id=comment_id)
        return UpsertResult(action="created", comment_id=comment_id)
