"""CLI entry point: vet-ci.

Subcommands:
    vet-ci run        # Run the scan for the current GitHub Actions event
    vet-ci manifests  # List the manifests vet-ci would scan in a directory
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import click
import structlog

from vetci import __version__
from vetci.core.config import ActionContext, ScanConfig
from vetci.core.github import GitHubClient
from vetci.core.logging import setup_logging
from vetci.exceptions import PolicyViolation, VetCIError
from vetci.manifests import discover_manifests
from vetci.orchestrator import ScanOrchestrator

log = structlog.get_logger("vetci.cli")


def set_output(output_path: Path | None, name: str, value: str) -> None:
    """Append a step output the way ``GITHUB_OUTPUT`` expects."""
    if output_path is None:
        click.echo(f"{name}={value}")
        return
    with output_path.open("a", encoding="utf-8") as fh:
        fh.write(f"{name}={value}\n")


async def _run(orchestrator: ScanOrchestrator, github: GitHubClient) -> str:
    async with github:
        return await orchestrator.run()


def _write_outputs(context: ActionContext, orchestrator: ScanOrchestrator) -> None:
    set_output(context.output_path, "report", orchestrator.report_path)
    if orchestrator.vet_version:
        set_output(context.output_path, "vet-version", orchestrator.vet_version)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging")
@click.version_option(__version__, prog_name="vet-ci")
def main(verbose: bool) -> None:
    """vet-ci: differential dependency scanning for pull requests."""
    setup_logging(debug=True if verbose else None)


@main.command("run")
def run() -> None:
    """Scan the dependencies touched by the current workflow event."""
    try:
        context = ActionContext.from_env()
        config = ScanConfig.from_env(context)
    except VetCIError as exc:
        click.echo(f"::error::{exc}")
        sys.exit(1)
    log.debug(
        "cli.config",
        policy=str(config.policy),
        cloud=config.cloud_mode,
        event_name=context.event_name,
    )

    github = GitHubClient(context.token or None, base_url=context.api_url)
    orchestrator = ScanOrchestrator(config, context, github)
    try:
        asyncio.run(_run(orchestrator, github))
    except PolicyViolation as exc:
        # The report exists; expose it so later steps can upload the SARIF.
        _write_outputs(context, orchestrator)
        click.echo(f"::error title=Policy violation::{exc}")
        sys.exit(1)
    except VetCIError as exc:
        click.echo(f"::error::{exc}")
        sys.exit(1)

    _write_outputs(context, orchestrator)


@main.command("manifests")
@click.argument("path", type=click.Path(exists=True, file_okay=False), default=".")
def manifests(path: str) -> None:
    """List supported manifests under PATH."""
    found = discover_manifests(Path(path))
    if not found:
        click.echo("No supported manifests found.")
        return
    for manifest in found:
        click.echo(str(manifest))
