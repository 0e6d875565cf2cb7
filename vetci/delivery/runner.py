"""ReportDelivery: hand the scan report to every enabled channel.

Each channel is best-effort: a failure is logged and the others still run.
None of them can turn a passing scan into a failed run.
"""

from __future__ import annotations

from pathlib import Path

import structlog

from vetci.core.config import ActionContext, ScanConfig
from vetci.delivery.artifact import ArtifactUploader
from vetci.delivery.comments import COMMENT_MARKER, CommentUpserter, render_comment
from vetci.delivery.relay import CommentRelayClient
from vetci.delivery.summary import StepSummary
from vetci.models import ScanReport

log = structlog.get_logger("vetci.delivery")


class ReportDelivery:
    def __init__(
        self,
        config: ScanConfig,
        context: ActionContext,
        *,
        comments: CommentUpserter | None = None,
        relay: CommentRelayClient | None = None,
        summary: StepSummary | None = None,
        artifacts: ArtifactUploader | None = None,
    ) -> None:
        self._config = config
        self._context = context
        self._comments = comments
        self._relay = relay
        self._summary = summary or StepSummary(context.step_summary_path)
        self._artifacts = artifacts or ArtifactUploader(
            context.results_url, context.runtime_token
        )

    async def deliver(self, report: ScanReport, *, comment: bool = True) -> None:
        """Run every enabled channel; *comment* is off for non-PR events."""
        if comment and self._config.pull_request_comment:
            await self.upsert_comment(report.markdown_path)
        if self._config.upload_artifact:
            await self.upload_artifact(report)
        if self._config.add_step_summary:
            self.write_step_summary(report.markdown_path)

    async def upsert_comment(self, markdown_path: Path, marker: str = COMMENT_MARKER) -> None:
        if self._comments is None:
            log.warning("delivery.comment_skipped", reason="no pull request number")
            return
        try:
            content = markdown_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            log.warning("delivery.report_unreadable", path=str(markdown_path), error=str(exc))
            return

        try:
            await self._comments.upsert(content, marker)
            return
        except Exception as exc:
            # Fork PRs get a read-only token; the write is rejected with 403.
            log.warning("delivery.comment_failed", error=str(exc))

        if not self._config.enable_comments_proxy or self._relay is None:
            return

        tag = marker if self._comments.existing_id is not None else ""
        try:
            await self._relay.create_comment(
                render_comment(content, marker),
                tag,
                self._config.pull_request_number or 0,
                self._context.repo,
                self._context.owner,
            )
        except Exception as exc:
            log.warning("delivery.relay_failed", error=str(exc))

    async def upload_artifact(self, report: ScanReport) -> None:
        paths = [p for p in (report.sarif_path, report.markdown_path) if p.exists()]
        try:
            await self._artifacts.upload(self._config.artifact_name, paths)
        except Exception as exc:
            log.warning("delivery.artifact_failed", name=self._config.artifact_name, error=str(exc))

    def write_step_summary(self, markdown_path: Path) -> None:
        self._summary.write(markdown_path)
