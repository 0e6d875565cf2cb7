"""DifferentialScanRunner: the final vet scan and its policy gate."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

import structlog

from vetci.core.config import ActionContext, ScanConfig
from vetci.core.paths import RunPaths
from vetci.exceptions import PolicyViolation, ReportMissingError
from vetci.models import ScanOutcome, ScanReport
from vetci.scanner.process import VetProcess

log = structlog.get_logger("vetci.engine.differential")

_API_KEY_ENV = "VET_API_KEY"
_TENANT_ENV = "VET_CONTROL_TOWER_TENANT_ID"


class DifferentialScanRunner:
    """Scans every manifest in one vet invocation.

    A non-zero exit with both reports present is a policy violation and is
    returned inside the :class:`ScanOutcome` rather than raised, so delivery
    still happens. A missing report is raised at once.
    """

    def __init__(
        self,
        process: VetProcess,
        config: ScanConfig,
        context: ActionContext,
        paths: RunPaths,
    ) -> None:
        self._process = process
        self._config = config
        self._context = context
        self._paths = paths

    async def run(
        self,
        manifests: Sequence[str | Path],
        exceptions: Path | None,
        *,
        scan_name: str = "pull-request",
    ) -> ScanOutcome:
        self._config.validate_cloud()

        report = ScanReport(
            sarif_path=self._paths.report(scan_name, ".sarif"),
            markdown_path=self._paths.report(scan_name, ".md"),
        )
        # Reports left by an earlier invocation must not satisfy the check below.
        for path in (report.sarif_path, report.markdown_path):
            path.unlink(missing_ok=True)

        args = self.build_args(manifests, exceptions, report)
        env = self._cloud_env()

        log.info(
            "differential.scan",
            manifests=len(manifests),
            exceptions=str(exceptions) if exceptions else None,
            cloud=self._config.cloud_mode,
        )
        result = await self._process.run(args, check=False, env=env)

        for path in (report.sarif_path, report.markdown_path):
            if not path.exists():
                raise ReportMissingError(
                    f"vet exited with {result.returncode} without writing {path.name}"
                )

        outcome = ScanOutcome(report=report)
        if not result.ok:
            outcome.violation = PolicyViolation(result.returncode)
            log.warning("differential.policy_violation", returncode=result.returncode)
        else:
            log.info("differential.passed", sarif=str(report.sarif_path))
        return outcome

    async def run_full(self, manifests: Sequence[str | Path]) -> ScanOutcome:
        """Push variant: same gate, no baseline exceptions."""
        return await self.run(manifests, None, scan_name="push")

    def build_args(
        self,
        manifests: Sequence[str | Path],
        exceptions: Path | None,
        report: ScanReport,
    ) -> list[str]:
        cfg = self._config
        args = ["scan"]
        for manifest in manifests:
            args += ["--lockfiles", str(manifest)]

        args += [
            "--report-sarif",
            str(report.sarif_path),
            "--report-markdown-summary",
            str(report.markdown_path),
            "--filter-suite",
            str(cfg.policy),
            "--filter-fail",
            "--fail-fast",
        ]
        if exceptions is not None:
            args += ["--exceptions", str(exceptions)]
        if cfg.exceptions_extra is not None:
            args += ["--exceptions-extra", str(cfg.exceptions_extra)]
        for pattern in cfg.exclusion_patterns:
            args += ["--exclude", pattern]
        for registry in cfg.trusted_registries:
            args += ["--trusted-registry", registry]

        if cfg.cloud_mode:
            version = self._context.head_ref or self._context.ref_name
            args += [
                "--report-sync",
                "--report-sync-project",
                self._context.repository,
                "--report-sync-project-version",
                version,
                "--malware",
                "--malware-analysis-timeout",
                f"{cfg.timeout}s",
                "--malware-analysis-min-confidence",
                cfg.malware_min_confidence,
            ]
            if not cfg.paranoid:
                args.append("--malware-trust-tool-result")
        return args

    def _cloud_env(self) -> dict[str, str] | None:
        if not self._config.cloud_mode:
            return None
        return {
            _API_KEY_ENV: self._config.cloud_key,
            _TENANT_ENV: self._config.cloud_tenant,
        }
