"""Workflow artifact upload through the Actions results service (artifact v4).

Upload is three calls: ``CreateArtifact`` returns a signed blob URL, the
zipped files are PUT there, and ``FinalizeArtifact`` records size and hash.
The run and job backend ids come from the ``Actions.Results`` scope of the
runtime token.
"""

from __future__ import annotations

import base64
import hashlib
import io
import json
import zipfile
from collections.abc import Sequence
from pathlib import Path

import httpx
import structlog

log = structlog.get_logger("vetci.delivery.artifact")

_SERVICE = "twirp/github.actions.results.api.v1.ArtifactService"
_RESULTS_SCOPE = "Actions.Results:"


class ArtifactUploadError(Exception):
    """Raised when the results service rejects an artifact upload."""


def backend_ids(runtime_token: str) -> tuple[str, str]:
    """Extract ``(workflow_run_backend_id, workflow_job_run_backend_id)`` from the JWT."""
    try:
        payload = runtime_token.split(".")[1]
        payload += "=" * (-len(payload) % 4)
        claims = json.loads(base64.urlsafe_b64decode(payload))
    except (IndexError, ValueError) as exc:
        raise ArtifactUploadError("malformed ACTIONS_RUNTIME_TOKEN") from exc

    for scope in str(claims.get("scp", "")).split(" "):
        if scope.startswith(_RESULTS_SCOPE):
            parts = scope.split(":")
            if len(parts) == 3:
                return parts[1], parts[2]
    raise ArtifactUploadError("ACTIONS_RUNTIME_TOKEN has no Actions.Results scope")


def zip_files(paths: Sequence[Path]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for path in paths:
            zf.write(path, arcname=path.name)
    return buffer.getvalue()


class ArtifactUploader:
    def __init__(
        self,
        results_url: str,
        runtime_token: str,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._results_url = results_url.rstrip("/")
        self._runtime_token = runtime_token
        self._transport = transport

    @property
    def available(self) -> bool:
        return bool(self._results_url and self._runtime_token)

    async def upload(self, name: str, paths: Sequence[Path]) -> str:
        """Upload *paths* as artifact *name*; returns the artifact id."""
        if not self.available:
            raise ArtifactUploadError("artifact service is not available in this job")

        run_id, job_id = backend_ids(self._runtime_token)
        archive = zip_files(paths)
        ids = {"workflow_run_backend_id": run_id, "workflow_job_run_backend_id": job_id}

        async with httpx.AsyncClient(timeout=60.0, transport=self._transport) as client:
            created = await self._call(
                client, "CreateArtifact", {**ids, "name": name, "version": 4}
            )
            upload_url = created.get("signed_upload_url") or created.get("signedUploadUrl")
            if not upload_url:
                raise ArtifactUploadError(f"CreateArtifact returned no upload URL for {name}")

            resp = await client.put(
                upload_url,
                content=archive,
                headers={"x-ms-blob-type": "BlockBlob", "Content-Type": "application/zip"},
            )
            resp.raise_for_status()

            finalized = await self._call(
                client,
                "FinalizeArtifact",
                {
                    **ids,
                    "name": name,
                    "size": str(len(archive)),
                    "hash": f"sha256:{hashlib.sha256(archive).hexdigest()}",
                },
            )

        artifact_id = str(finalized.get("artifact_id") or finalized.get("artifactId") or "")
        log.info("artifact.uploaded", name=name, artifact_id=artifact_id, size=len(archive))
        return artifact_id

    async def _call(self, client: httpx.AsyncClient, method: str, body: dict) -> dict:
        resp = await client.post(
            f"{self._results_url}/{_SERVICE}/{method}",
            json=body,
            headers={"Authorization": f"Bearer {self._runtime_token}"},
        )
        resp.raise_for_status()
        data = resp.json()
        if not data.get("ok"):
            raise ArtifactUploadError(f"{method} was rejected for {body.get('name')}")
        return data
