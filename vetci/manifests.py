"""Manifest registry: lockfile kinds vet understands and how to find them."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path, PurePosixPath

from vetci.models import ChangedFile

# Basename -> value passed to ``--lockfile-as``.
MANIFEST_KINDS: dict[str, str] = {
    "Gemfile.lock": "Gemfile.lock",
    "package-lock.json": "package-lock.json",
    "yarn.lock": "yarn.lock",
    "Pipfile.lock": "Pipfile.lock",
    "poetry.lock": "poetry.lock",
    "go.mod": "go.mod",
    "pom.xml": "pom.xml",
    "gradle.lockfile": "gradle.lockfile",
    "requirements.txt": "requirements.txt",
    "pnpm-lock.yaml": "pnpm-lock.yaml",
    "uv.lock": "uv.lock",
}

# Directories never walked when discovering manifests in a working tree.
_SKIP_DIRS = {".git", "node_modules", "vendor", ".venv", "venv", "__pycache__"}


def supported_lockfiles() -> list[str]:
    return list(MANIFEST_KINDS)


def lockfile_kind(path: str) -> str | None:
    """Return the ``--lockfile-as`` value for *path*, matched on basename only."""
    return MANIFEST_KINDS.get(PurePosixPath(path).name)


def is_manifest(path: str) -> bool:
    return lockfile_kind(path) is not None


def filter_manifests(files: Iterable[ChangedFile], workspace: Path) -> list[ChangedFile]:
    """Keep changed files that are known manifests and still exist in *workspace*.

    Files removed by the change are dropped by the existence check.
    """
    return [f for f in files if is_manifest(f.path) and (workspace / f.path).is_file()]


def discover_manifests(workspace: Path) -> list[Path]:
    """Walk *workspace* and return every known manifest, relative to it, sorted."""
    found: list[Path] = []
    for basename in MANIFEST_KINDS:
        for hit in workspace.rglob(basename):
            rel = hit.relative_to(workspace)
            if any(part in _SKIP_DIRS for part in rel.parts[:-1]):
                continue
            if hit.is_file():
                found.append(rel)
    return sorted(found)
