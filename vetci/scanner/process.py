"""vet process invocation: structured argv, never a shell string."""

from __future__ import annotations

import asyncio
import os
from collections.abc import Mapping
from pathlib import Path

import structlog

from vetci.exceptions import ScannerExecutionError
from vetci.models import ExecResult

log = structlog.get_logger("vetci.scanner")

NO_BANNER = "--no-banner"


class VetProcess:
    """Runs the vet binary with a flat argument list.

    Two execution modes matter to callers:

    * ``check=True``: a non-zero exit is an infrastructure failure and
      raises :class:`ScannerExecutionError`.
    * ``check=False``: the exit code is returned for the caller to
      interpret (the policy gate, version probing).

    With ``capture=False`` vet's output streams straight to the job log.
    """

    def __init__(self, binary: Path, env: Mapping[str, str] | None = None) -> None:
        self.binary = binary
        self._env = dict(env) if env else {}

    async def run(
        self,
        args: list[str],
        *,
        check: bool = True,
        capture: bool = False,
        env: Mapping[str, str] | None = None,
    ) -> ExecResult:
        argv = [NO_BANNER, *args]
        log.debug("vet.exec", binary=str(self.binary), args=argv)

        proc_env: dict[str, str] | None = None
        if self._env or env:
            proc_env = {**os.environ, **self._env, **(env or {})}

        pipe = asyncio.subprocess.PIPE if capture else None
        try:
            proc = await asyncio.create_subprocess_exec(
                str(self.binary),
                *argv,
                stdout=pipe,
                stderr=pipe,
                env=proc_env,
            )
        except OSError as exc:
            raise ScannerExecutionError(args, None, str(exc)) from exc

        stdout, stderr = await proc.communicate()
        result = ExecResult(
            args=argv,
            returncode=proc.returncode if proc.returncode is not None else -1,
            stdout=stdout.decode(errors="replace") if stdout else "",
            stderr=stderr.decode(errors="replace") if stderr else "",
        )
        log.debug("vet.exit", args=args[:1], returncode=result.returncode)

        if check and not result.ok:
            raise ScannerExecutionError(args, result.returncode, result.stderr)
        return result
