"""Job step summary: the markdown report shown on the workflow run page."""

from __future__ import annotations

from pathlib import Path

import structlog

log = structlog.get_logger("vetci.delivery.summary")

# GitHub rejects step summaries of 1 MiB or more.
MAX_SUMMARY_BYTES = 1024 * 1024 - 32  # 1,048,544


def cap_summary(content: bytes, limit: int = MAX_SUMMARY_BYTES) -> bytes:
    if len(content) > limit:
        log.warning(
            "summary.truncated",
            original_length=len(content),
            limit=limit,
        )
        end = limit
        # Back up to the start of a UTF-8 sequence the cut would split.
        while end > 0 and content[end] & 0xC0 == 0x80:
            end -= 1
        return content[:end]
    return content


class StepSummary:
    """Writes to the file named by ``GITHUB_STEP_SUMMARY``, replacing its content."""

    def __init__(self, summary_path: Path | None) -> None:
        self._summary_path = summary_path

    def write(self, markdown_path: Path) -> bool:
        """Publish *markdown_path* as the step summary. Returns False when skipped."""
        if self._summary_path is None:
            log.warning("summary.unavailable", reason="GITHUB_STEP_SUMMARY is not set")
            return False
        try:
            content = markdown_path.read_bytes()
        except OSError as exc:
            log.warning("summary.read_failed", path=str(markdown_path), error=str(exc))
            return False

        content = cap_summary(content)
        try:
            self._summary_path.write_bytes(content)
        except OSError as exc:
            log.warning("summary.write_failed", path=str(self._summary_path), error=str(exc))
            return False
        log.info("summary.written", bytes=len(content))
        return True
