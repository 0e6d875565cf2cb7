"""vet binary acquisition: resolve a release asset, download, extract, verify."""

from __future__ import annotations

import platform
import re
import stat
import tarfile
from pathlib import Path

import httpx
import structlog

from vetci.core.github import GitHubClient
from vetci.exceptions import BinaryError, ScannerExecutionError
from vetci.scanner.process import VetProcess

log = structlog.get_logger("vetci.scanner")

VET_OWNER = "safedep"
VET_REPO = "vet"
VET_BINARY_NAME = "vet"

_VERSION_RE = re.compile(r"Version: ([0-9.]+)")

_SYSTEMS = {"linux": "Linux", "darwin": "Darwin"}
_ARCHES = {"x86_64": "x86_64", "amd64": "x86_64", "aarch64": "arm64", "arm64": "arm64"}


def release_asset_name(system: str | None = None, machine: str | None = None) -> str:
    """Name of the release tarball for this runner, e.g. ``vet_Linux_x86_64.tar.gz``."""
    system = (system or platform.system()).lower()
    machine = (machine or platform.machine()).lower()
    if system not in _SYSTEMS or machine not in _ARCHES:
        raise BinaryError(f"no vet release for platform {system}/{machine}")
    return f"vet_{_SYSTEMS[system]}_{_ARCHES[machine]}.tar.gz"


def parse_version(output: str) -> str:
    match = _VERSION_RE.search(output)
    if not match:
        raise BinaryError("Unable to determine vet binary version")
    return match.group(1)


class VetInstaller:
    """Fetches a vet release into *download_dir* and returns the executable path."""

    def __init__(
        self,
        github: GitHubClient,
        download_dir: Path,
        *,
        server_url: str = "https://github.com",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._github = github
        self._download_dir = download_dir
        self._server_url = server_url.rstrip("/")
        self._transport = transport

    async def resolve_download_url(self, version: str | None) -> str:
        """Pinned versions map straight to a release URL; otherwise ask for the latest."""
        asset = release_asset_name()
        if version:
            tag = version if version.startswith("v") else f"v{version}"
            return f"{self._server_url}/{VET_OWNER}/{VET_REPO}/releases/download/{tag}/{asset}"

        try:
            release = await self._github.get(f"/repos/{VET_OWNER}/{VET_REPO}/releases/latest")
        except httpx.HTTPError as exc:
            raise BinaryError(f"cannot resolve latest vet release: {exc}") from exc

        for item in release.get("assets", []):
            if item.get("name") == asset:
                return item["browser_download_url"]
        raise BinaryError(
            f"No usable artifact {asset} found for vet release {release.get('tag_name')}"
        )

    async def install(self, version: str | None = None) -> Path:
        url = await self.resolve_download_url(version)
        log.info("vet.download", url=url)
        archive = self._download_dir / url.rsplit("/", 1)[-1]
        try:
            async with httpx.AsyncClient(
                follow_redirects=True, timeout=120.0, transport=self._transport
            ) as client:
                async with client.stream("GET", url) as response:
                    response.raise_for_status()
                    with archive.open("wb") as fh:
                        async for chunk in response.aiter_bytes():
                            fh.write(chunk)
        except (httpx.HTTPError, OSError) as exc:
            raise BinaryError(f"failed to download vet from {url}: {exc}") from exc

        return self._extract(archive)

    def _extract(self, archive: Path) -> Path:
        target = self._download_dir / archive.name.removesuffix(".tar.gz")
        log.info("vet.extract", archive=str(archive), target=str(target))
        try:
            with tarfile.open(archive, mode="r:gz") as tf:
                tf.extractall(target, filter="data")
        except (tarfile.TarError, OSError) as exc:
            raise BinaryError(f"failed to extract {archive}: {exc}") from exc

        binary = target / VET_BINARY_NAME
        if not binary.is_file():
            raise BinaryError(f"vet binary not found in {archive.name}")
        binary.chmod(binary.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return binary


async def verify_binary(process: VetProcess) -> str:
    """Run ``vet version`` and return the reported version.

    The exit code is ignored; only the ``Version:`` line counts.
    """
    if not process.binary or not Path(process.binary).is_file():
        raise BinaryError("vet binary not found")
    try:
        result = await process.run(["version"], check=False, capture=True)
    except ScannerExecutionError as exc:
        raise BinaryError(f"vet binary is not executable: {exc}") from exc
    version = parse_version(result.stdout)
    log.info("vet.version", version=version)
    return version
