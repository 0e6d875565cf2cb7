"""BaselineExceptionBuilder: findings already present at the base ref.

Each changed manifest is fetched at the base ref and dumped by vet without
enrichment into one shared directory. A single ``vet query`` over that
directory then turns every package seen there into an exception entry, so
the final scan reports only what the change introduced.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

import structlog

from vetci.core.github import GitHubRepo
from vetci.core.paths import RunPaths
from vetci.exceptions import ContentNotFoundError, ScannerExecutionError
from vetci.manifests import lockfile_kind
from vetci.models import ChangedFile
from vetci.scanner.process import VetProcess

log = structlog.get_logger("vetci.engine.baseline")


class BaselineExceptionBuilder:
    def __init__(self, repo: GitHubRepo, process: VetProcess, paths: RunPaths) -> None:
        self._repo = repo
        self._process = process
        self._paths = paths

    async def build(self, base_ref: str, manifests: Sequence[ChangedFile]) -> Path:
        """Return the path of the exception file; it always exists afterwards.

        Manifests are processed one at a time: every dump writes into the
        same directory and must be complete before the next one starts.
        Only the aggregation query can fail this step.
        """
        dump_dir = self._paths.dump_dir(fresh=True)
        exceptions_file = self._paths.exceptions_file()
        exceptions_file.unlink(missing_ok=True)

        dumped = 0
        for manifest in manifests:
            if await self._dump_manifest(base_ref, manifest, dump_dir):
                dumped += 1

        await self._process.run(
            [
                "query",
                "--from",
                str(dump_dir),
                "--exceptions-filter",
                "true",
                "--exceptions-generate",
                str(exceptions_file),
            ]
        )

        # vet rejects a missing exceptions file but accepts an empty one.
        if not exceptions_file.exists():
            exceptions_file.write_text("")
            log.info("baseline.exceptions_empty", path=str(exceptions_file))

        log.info(
            "baseline.built",
            base=base_ref,
            manifests=len(manifests),
            dumped=dumped,
            exceptions=str(exceptions_file),
        )
        return exceptions_file

    async def _dump_manifest(self, base_ref: str, manifest: ChangedFile, dump_dir: Path) -> bool:
        kind = lockfile_kind(manifest.path)
        if kind is None:
            log.warning("baseline.unsupported_manifest", path=manifest.path)
            return False

        try:
            content = await self._repo.get_content(manifest.path, base_ref)
        except ContentNotFoundError:
            log.warning("baseline.manifest_missing_at_base", path=manifest.path, base=base_ref)
            return False
        except Exception as exc:
            log.warning(
                "baseline.fetch_failed",
                path=manifest.path,
                base=base_ref,
                error=str(exc),
            )
            return False

        local = self._paths.baseline_manifest(manifest.path)
        local.write_bytes(content)

        try:
            await self._process.run(
                [
                    "scan",
                    "--lockfiles",
                    str(local),
                    "--lockfile-as",
                    kind,
                    "--json-dump-dir",
                    str(dump_dir),
                    "--enrich=false",
                ]
            )
        except ScannerExecutionError as exc:
            log.warning("baseline.dump_failed", path=manifest.path, error=str(exc))
            return False

        log.debug("baseline.dumped", path=manifest.path, kind=kind, local=str(local))
        return True
