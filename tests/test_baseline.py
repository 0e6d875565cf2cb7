"""Tests for BaselineExceptionBuilder."""

from __future__ import annotations

import pytest
from structlog.testing import capture_logs

from vetci.core.paths import RunPaths
from vetci.engines.baseline import BaselineExceptionBuilder
from vetci.exceptions import ScannerExecutionError
from vetci.models import ChangedFile


@pytest.fixture
def paths(tmp_path):
    return RunPaths(tmp_path / "runner-temp", "42")


def _changed(*paths: str) -> list[ChangedFile]:
    return [ChangedFile(content_id=f"sha-{i}", path=p) for i, p in enumerate(paths)]


class TestBaselineExceptionBuilder:
    @pytest.mark.anyio
    async def test_dumps_each_manifest_then_queries_once(self, repo, fake_github, make_vet, paths):
        fake_github.contents[("package-lock.json", "main")] = b"{}"
        fake_github.contents[("api/requirements.txt", "main")] = b"requests==2.0\n"
        vet = make_vet(query_content="exceptions: []\n")

        result = await BaselineExceptionBuilder(repo, vet, paths).build(
            "main", _changed("package-lock.json", "api/requirements.txt")
        )

        assert result == paths.exceptions_file()
        assert result.read_text() == "exceptions: []\n"
        assert len(vet.dump_calls) == 2
        assert len(vet.query_calls) == 1
        # the aggregation query runs after every dump
        assert vet.calls[-1][0] == "query"

        dump_dir = str(paths.dump_dir())
        kinds = [c[c.index("--lockfile-as") + 1] for c in vet.dump_calls]
        assert kinds == ["package-lock.json", "requirements.txt"]
        for call in vet.dump_calls:
            assert call[call.index("--json-dump-dir") + 1] == dump_dir
            assert "--enrich=false" in call

        query = vet.query_calls[0]
        assert query[query.index("--from") + 1] == dump_dir
        assert query[query.index("--exceptions-filter") + 1] == "true"
        assert query[query.index("--exceptions-generate") + 1] == str(result)

    @pytest.mark.anyio
    async def test_base_content_is_written_to_isolated_file(self, repo, fake_github, make_vet, paths):
        fake_github.contents[("go.mod", "main")] = b"module example.com/x\n"
        vet = make_vet()

        await BaselineExceptionBuilder(repo, vet, paths).build("main", _changed("go.mod"))

        local = vet.dump_calls[0][vet.dump_calls[0].index("--lockfiles") + 1]
        assert local == str(paths.baseline_manifest("go.mod"))
        assert paths.baseline_manifest("go.mod").read_bytes() == b"module example.com/x\n"

    @pytest.mark.anyio
    async def test_empty_exception_file_when_query_writes_nothing(self, repo, make_vet, paths):
        vet = make_vet(query_content=None)

        result = await BaselineExceptionBuilder(repo, vet, paths).build("main", [])

        assert result.exists()
        assert result.read_text() == ""

    @pytest.mark.anyio
    async def test_rebuild_does_not_reuse_previous_exceptions(self, repo, make_vet, paths):
        first_vet = make_vet(query_content="old: entry\n")
        first = await BaselineExceptionBuilder(repo, first_vet, paths).build("main", [])
        assert first.read_text() == "old: entry\n"

        second = await BaselineExceptionBuilder(repo, make_vet(), paths).build("main", [])

        assert second == first
        assert second.read_text() == ""

    @pytest.mark.anyio
    async def test_rebuild_starts_from_an_empty_dump_dir(self, repo, make_vet, paths):
        stale = paths.dump_dir() / "previous-run.json"
        stale.write_text("{}")

        await BaselineExceptionBuilder(repo, make_vet(), paths).build("main", [])

        assert paths.dump_dir().is_dir()
        assert not stale.exists()

    @pytest.mark.anyio
    async def test_manifest_missing_at_base_is_skipped(self, repo, fake_github, make_vet, paths):
        # yarn.lock is new in this PR; poetry.lock existed before
        fake_github.contents[("poetry.lock", "main")] = b"[[package]]\n"
        vet = make_vet()

        with capture_logs() as logs:
            result = await BaselineExceptionBuilder(repo, vet, paths).build(
                "main", _changed("yarn.lock", "poetry.lock")
            )

        assert result.exists()
        assert len(vet.dump_calls) == 1
        assert "poetry.lock" in vet.dump_calls[0][vet.dump_calls[0].index("--lockfile-as") + 1]
        missing = [e for e in logs if e["event"] == "baseline.manifest_missing_at_base"]
        assert missing and missing[0]["log_level"] == "warning"
        assert missing[0]["path"] == "yarn.lock"

    @pytest.mark.anyio
    async def test_dump_failure_does_not_stop_the_loop(self, repo, fake_github, make_vet, paths):
        fake_github.contents[("Gemfile.lock", "main")] = b"GEM\n"
        fake_github.contents[("uv.lock", "main")] = b"version = 1\n"
        vet = make_vet(fail_dump_for=("Gemfile.lock",))

        with capture_logs() as logs:
            await BaselineExceptionBuilder(repo, vet, paths).build(
                "main", _changed("Gemfile.lock", "uv.lock")
            )

        assert len(vet.dump_calls) == 2
        assert len(vet.query_calls) == 1
        assert any(e["event"] == "baseline.dump_failed" for e in logs)

    @pytest.mark.anyio
    async def test_query_failure_is_fatal(self, repo, make_vet, paths):
        vet = make_vet(fail_query=True)
        with pytest.raises(ScannerExecutionError):
            await BaselineExceptionBuilder(repo, vet, paths).build("main", [])
