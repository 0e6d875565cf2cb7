"""Data models shared across the scan pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from vetci.exceptions import PolicyViolation


@dataclass(frozen=True)
class ChangedFile:
    """A file touched between two commits, as reported by the compare API."""

    content_id: str  # blob SHA
    path: str
    raw_url: str | None = None
    blob_url: str | None = None
    contents_url: str | None = None
    status: str | None = None  # added / modified / removed / renamed


@dataclass(frozen=True)
class ScanReport:
    """SARIF + markdown pair written by a completed vet scan."""

    sarif_path: Path
    markdown_path: Path


@dataclass
class ScanOutcome:
    """Result of a scan whose policy failure is raised only after delivery."""

    report: ScanReport
    violation: PolicyViolation | None = None

    @property
    def failed(self) -> bool:
        return self.violation is not None

    def raise_for_violation(self) -> None:
        if self.violation is not None:
            raise self.violation


@dataclass(frozen=True)
class ExecResult:
    """Captured result of a single vet process."""

    args: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0
