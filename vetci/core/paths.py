"""Run-scoped temporary file naming.

Every file lives under ``<temp root>/vet-<run id>-<attempt>/`` so concurrent
jobs on one runner never collide, and names inside a run are derived from
what they hold, so the layout is reproducible.
"""

from __future__ import annotations

import hashlib
import re
import shutil
from pathlib import Path, PurePosixPath

_UNSAFE_RE = re.compile(r"[^A-Za-z0-9._-]+")


class RunPaths:
    """Deterministic temp paths for one vet-ci run.

    Paths repeat across invocations with the same run id and attempt;
    callers clear what they are about to regenerate.
    """

    def __init__(self, temp_root: Path, run_id: str, run_attempt: str = "1") -> None:
        self.root = temp_root / f"vet-{_safe(run_id)}-{_safe(run_attempt)}"

    def _ensure(self, path: Path) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        return path

    def baseline_manifest(self, manifest_path: str) -> Path:
        """Where the base-ref copy of *manifest_path* is written."""
        digest = hashlib.sha256(manifest_path.encode()).hexdigest()[:12]
        name = PurePosixPath(manifest_path).name
        return self._ensure(self.root / "baseline" / f"{digest}-{_safe(name)}")

    def dump_dir(self, *, fresh: bool = False) -> Path:
        """Shared vet JSON dump directory; *fresh* drops dumps from earlier runs."""
        path = self.root / "baseline-dump"
        if fresh and path.exists():
            shutil.rmtree(path)
        path.mkdir(parents=True, exist_ok=True)
        return path

    def exceptions_file(self) -> Path:
        return self._ensure(self.root / "exceptions.yml")

    def report(self, scan: str, suffix: str) -> Path:
        return self._ensure(self.root / "reports" / f"{_safe(scan)}{suffix}")

    def downloads(self) -> Path:
        path = self.root / "downloads"
        path.mkdir(parents=True, exist_ok=True)
        return path


def _safe(value: str) -> str:
    return _UNSAFE_RE.sub("_", value) or "_"
