"""ScanOrchestrator: sequences the scan pipeline for one workflow event.

    AcquireBinary → VerifyBinary → {push | pull_request | schedule} → Done

Binary problems, unsupported events, missing reports and bad configuration
fail immediately. A policy violation is held until every delivery channel
has run and is raised last.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import structlog

from vetci.core.config import ActionContext, ScanConfig
from vetci.core.github import GitHubClient, GitHubRepo
from vetci.core.paths import RunPaths
from vetci.delivery.comments import CommentUpserter
from vetci.delivery.relay import CommentRelayClient
from vetci.delivery.runner import ReportDelivery
from vetci.engines.baseline import BaselineExceptionBuilder
from vetci.engines.changeset import ChangeSetResolver
from vetci.engines.differential import DifferentialScanRunner
from vetci.exceptions import BinaryError, ConfigError, UnsupportedEventError, VetCIError
from vetci.manifests import discover_manifests, filter_manifests
from vetci.scanner.binary import VetInstaller, verify_binary
from vetci.scanner.process import VetProcess

log = structlog.get_logger("vetci.orchestrator")


class ScanOrchestrator:
    def __init__(
        self,
        config: ScanConfig,
        context: ActionContext,
        github: GitHubClient,
        *,
        installer: VetInstaller | None = None,
        process_factory: Callable[[Path], VetProcess] = VetProcess,
        relay: CommentRelayClient | None = None,
        delivery: ReportDelivery | None = None,
    ) -> None:
        self._config = config
        self._context = context
        self._github = github
        self._repo = GitHubRepo(github, context.owner, context.repo)
        self._paths = RunPaths(context.temp_root, context.run_id, context.run_attempt)
        self._installer = installer or VetInstaller(
            github, self._paths.downloads(), server_url=context.server_url
        )
        self._process_factory = process_factory
        self._relay = relay
        self._delivery = delivery
        self.vet_version: str | None = None
        self.report_path = ""

    async def run(self) -> str:
        """Run the pipeline; returns the SARIF report path or ``""``."""
        structlog.contextvars.bind_contextvars(
            github_event=self._context.event_name, repository=self._context.repository
        )
        try:
            return await self._run()
        finally:
            structlog.contextvars.unbind_contextvars("github_event", "repository")

    async def _run(self) -> str:
        process = await self._acquire_binary()
        self.vet_version = await verify_binary(process)

        event = self._context.event_name
        if event == "pull_request":
            return await self._on_pull_request(process)
        if event == "push":
            return await self._on_push(process)
        if event == "schedule":
            log.info("orchestrator.schedule_noop")
            return ""
        raise UnsupportedEventError(event)

    async def _acquire_binary(self) -> VetProcess:
        try:
            binary = await self._installer.install(self._config.version)
        except VetCIError:
            raise
        except Exception as exc:
            raise BinaryError(f"failed to acquire vet: {exc}") from exc
        log.info("orchestrator.binary_ready", binary=str(binary))
        return self._process_factory(binary)

    async def _on_push(self, process: VetProcess) -> str:
        manifests = discover_manifests(self._context.workspace)
        if not manifests:
            log.info("orchestrator.no_manifests", workspace=str(self._context.workspace))
            return ""
        log.info("orchestrator.push_scan", manifests=[str(m) for m in manifests])

        runner = DifferentialScanRunner(process, self._config, self._context, self._paths)
        outcome = await runner.run_full([self._context.workspace / m for m in manifests])

        self.report_path = str(outcome.report.sarif_path)
        await self._get_delivery().deliver(outcome.report, comment=False)
        outcome.raise_for_violation()
        return self.report_path

    async def _on_pull_request(self, process: VetProcess) -> str:
        base_ref, head_ref = self._context.base_ref, self._context.head_ref
        if not base_ref or not head_ref:
            raise ConfigError("pull_request event without base and head refs")

        changed = await ChangeSetResolver(self._repo).resolve(base_ref, head_ref)
        manifests = filter_manifests(changed, self._context.workspace)
        if not manifests:
            log.info("orchestrator.no_changed_manifests", changed=len(changed))
            return ""
        log.info("orchestrator.changed_manifests", paths=[m.path for m in manifests])

        builder = BaselineExceptionBuilder(self._repo, process, self._paths)
        exceptions = await builder.build(base_ref, manifests)

        runner = DifferentialScanRunner(process, self._config, self._context, self._paths)
        outcome = await runner.run(
            [self._context.workspace / m.path for m in manifests], exceptions
        )

        self.report_path = str(outcome.report.sarif_path)
        await self._get_delivery().deliver(outcome.report, comment=True)
        outcome.raise_for_violation()
        return self.report_path

    def _get_delivery(self) -> ReportDelivery:
        if self._delivery is None:
            number = self._config.pull_request_number
            comments = CommentUpserter(self._repo, number) if number else None
            relay = self._relay
            if relay is None and self._config.enable_comments_proxy:
                relay = CommentRelayClient(
                    id_token_request_url=self._context.id_token_request_url,
                    id_token_request_token=self._context.id_token_request_token,
                )
            self._delivery = ReportDelivery(
                self._config, self._context, comments=comments, relay=relay
            )
        return self._delivery
