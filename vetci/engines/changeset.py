"""ChangeSetResolver: files changed between the base and head of an event."""

from __future__ import annotations

import structlog

from vetci.core.github import GitHubRepo
from vetci.models import ChangedFile

log = structlog.get_logger("vetci.engine.changeset")


class ChangeSetResolver:
    """List changed files via the compare API. Never fails the run."""

    def __init__(self, repo: GitHubRepo) -> None:
        self._repo = repo

    async def resolve(self, base_ref: str, head_ref: str) -> list[ChangedFile]:
        try:
            comparison = await self._repo.compare(base_ref, head_ref)
        except Exception:
            # An empty commit range is one way to get here.
            log.warning(
                "changeset.compare_failed",
                base=base_ref,
                head=head_ref,
                exc_info=True,
            )
            return []

        status = comparison.get("status")
        if status != "ahead":
            log.info("changeset.not_ahead", base=base_ref, head=head_ref, status=status)

        files = [
            ChangedFile(
                content_id=item.get("sha") or "",
                path=item["filename"],
                raw_url=item.get("raw_url"),
                blob_url=item.get("blob_url"),
                contents_url=item.get("contents_url"),
                status=item.get("status"),
            )
            for item in comparison.get("files") or []
            if item.get("filename")
        ]
        log.info("changeset.resolved", base=base_ref, head=head_ref, changed=len(files))
        return files
