"""Shared fixtures for vet-ci tests: no network, no real vet binary."""

from __future__ import annotations

import json
from pathlib import Path

import httpx
import pytest

from vetci.core.config import ActionContext, ScanConfig
from vetci.core.github import GitHubClient, GitHubRepo
from vetci.exceptions import ScannerExecutionError
from vetci.models import ExecResult

API_URL = "https://api.github.test"


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


class FakeVet:
    """Stands in for VetProcess; records argv and writes the files vet would."""

    def __init__(
        self,
        binary: Path,
        *,
        scan_returncode: int = 0,
        write_reports: bool = True,
        query_content: str | None = None,
        fail_dump_for: tuple[str, ...] = (),
        fail_query: bool = False,
    ) -> None:
        self.binary = binary
        self.scan_returncode = scan_returncode
        self.write_reports = write_reports
        self.query_content = query_content
        self.fail_dump_for = fail_dump_for
        self.fail_query = fail_query
        self.calls: list[list[str]] = []
        self.envs: list[dict | None] = []

    @property
    def dump_calls(self) -> list[list[str]]:
        return [c for c in self.calls if c[0] == "scan" and "--json-dump-dir" in c]

    @property
    def final_scan_calls(self) -> list[list[str]]:
        return [c for c in self.calls if c[0] == "scan" and "--json-dump-dir" not in c]

    @property
    def query_calls(self) -> list[list[str]]:
        return [c for c in self.calls if c[0] == "query"]

    async def run(self, args, *, check=True, capture=False, env=None):
        self.calls.append(list(args))
        self.envs.append(env)
        argv = ["--no-banner", *args]

        if args[0] == "version":
            return ExecResult(argv, 0, stdout="vet\nVersion: 1.5.0\nCommit: abc\n")

        if args[0] == "query":
            if self.fail_query:
                raise ScannerExecutionError(list(args), 1, "query failed")
            if self.query_content is not None:
                Path(_flag(args, "--exceptions-generate")).write_text(self.query_content)
            return ExecResult(argv, 0)

        if "--json-dump-dir" in args:
            lockfile = _flag(args, "--lockfiles")
            if any(lockfile.endswith(suffix) for suffix in self.fail_dump_for):
                raise ScannerExecutionError(list(args), 1, "dump failed")
            return ExecResult(argv, 0)

        if self.write_reports:
            Path(_flag(args, "--report-sarif")).write_text(json.dumps({"runs": []}))
            Path(_flag(args, "--report-markdown-summary")).write_text("## vet report\n")
        if check and self.scan_returncode:
            raise ScannerExecutionError(list(args), self.scan_returncode)
        return ExecResult(argv, self.scan_returncode)


def _flag(args: list[str], name: str) -> str:
    return args[args.index(name) + 1]


class FakeGitHub:
    """Minimal GitHub REST API served through httpx.MockTransport."""

    def __init__(self) -> None:
        self.compare: dict = {"status": "ahead", "files": []}
        self.compare_status = 200
        self.contents: dict[tuple[str, str], bytes] = {}
        self.comments: list[dict] = []
        self.comment_write_status: int | None = None
        self.requests: list[httpx.Request] = []
        self._next_id = 1000

    def add_changed(self, path: str, sha: str = "abc123", status: str = "modified") -> None:
        self.compare["files"].append(
            {
                "sha": sha,
                "filename": path,
                "status": status,
                "blob_url": f"https://github.test/blob/{path}",
                "raw_url": f"https://github.test/raw/{path}",
                "contents_url": f"{API_URL}/contents/{path}",
            }
        )

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if "/compare/" in path:
            if self.compare_status != 200:
                return httpx.Response(self.compare_status, json={"message": "No common ancestor"})
            return httpx.Response(200, json=self.compare)

        if "/contents/" in path:
            file_path = path.split("/contents/", 1)[1]
            ref = request.url.params.get("ref")
            if (file_path, ref) in self.contents:
                return httpx.Response(200, content=self.contents[(file_path, ref)])
            return httpx.Response(404, json={"message": "Not Found"})

        if path.endswith("/comments") and request.method == "GET":
            return httpx.Response(200, json=self.comments)

        if path.endswith("/comments") and request.method == "POST":
            if self.comment_write_status:
                return self._rejected()
            comment = {"id": self._next_id, "body": json.loads(request.content)["body"]}
            self._next_id += 1
            self.comments.append(comment)
            return httpx.Response(201, json=comment)

        if "/issues/comments/" in path and request.method == "PATCH":
            if self.comment_write_status:
                return self._rejected()
            comment_id = int(path.rsplit("/", 1)[1])
            for comment in self.comments:
                if comment["id"] == comment_id:
                    comment["body"] = json.loads(request.content)["body"]
                    return httpx.Response(200, json=comment)
            return httpx.Response(404, json={"message": "Not Found"})

        return httpx.Response(404, json={"message": "Not Found"})

    def _rejected(self) -> httpx.Response:
        return httpx.Response(
            self.comment_write_status or 403,
            json={"message": "Resource not accessible by integration"},
        )

    def writes(self, method: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method]

    def client(self) -> GitHubClient:
        return GitHubClient(
            "test-token", base_url=API_URL, transport=httpx.MockTransport(self.handler)
        )


@pytest.fixture
def fake_github():
    return FakeGitHub()


@pytest.fixture
def github_client(fake_github):
    return fake_github.client()


@pytest.fixture
def repo(github_client):
    return GitHubRepo(github_client, "owner", "repo")


@pytest.fixture
def workspace(tmp_path):
    ws = tmp_path / "workspace"
    ws.mkdir()
    return ws


@pytest.fixture
def vet_binary(tmp_path):
    binary = tmp_path / "bin" / "vet"
    binary.parent.mkdir()
    binary.write_text("#!/bin/sh\n")
    return binary


@pytest.fixture
def context(tmp_path, workspace):
    return ActionContext(
        owner="owner",
        repo="repo",
        event_name="pull_request",
        base_ref="main",
        head_ref="feature-branch",
        ref_name="feature-branch",
        workspace=workspace,
        temp_root=tmp_path / "runner-temp",
        step_summary_path=tmp_path / "step-summary.md",
        run_id="42",
    )


@pytest.fixture
def config():
    return ScanConfig(pull_request_number=123, upload_artifact=False)


@pytest.fixture
def make_vet(vet_binary):
    def _make(**kwargs) -> FakeVet:
        return FakeVet(vet_binary, **kwargs)

    return _make
