"""Async GitHub API client with pagination, rate-limit handling, and retries."""

from __future__ import annotations

import asyncio
import re
import time
from collections.abc import AsyncGenerator
from typing import Any

import httpx
import structlog

from vetci.exceptions import ContentNotFoundError

log = structlog.get_logger("vetci.github")

_NEXT_LINK_RE = re.compile(r'<([^>]+)>;\s*rel="next"')

_MAX_RETRIES = 3
_RETRY_BASE_DELAY = 1.0  # seconds

_RAW_MEDIA_TYPE = "application/vnd.github.raw+json"


class RateLimitError(Exception):
    """Raised when GitHub rate limit is exhausted and we need to wait."""

    def __init__(self, retry_after: int) -> None:
        self.retry_after = retry_after
        super().__init__(f"rate limit exceeded, retry after {retry_after}s")


class GitHubClient:
    """Thin async wrapper around the GitHub REST API."""

    def __init__(
        self,
        token: str | None = None,
        base_url: str = "https://api.github.com",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers: dict[str, str] = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "vet-ci",
        }
        if token:
            headers["Authorization"] = f"token {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=30.0,
            transport=transport,
        )

    # ── lifecycle ──────────────────────────────────────────────────────────

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> GitHubClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ── public ─────────────────────────────────────────────────────────────

    async def get_paginated(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        *,
        max_pages: int = 10,
    ) -> AsyncGenerator[dict[str, Any], None]:
        """Yield JSON items from a paginated GitHub API endpoint.

        Automatically follows ``Link: <...>; rel="next"`` headers and
        respects rate-limit headers. Stops after *max_pages* pages.
        """
        url: str | None = path
        params = dict(params or {})
        params.setdefault("per_page", 100)
        page = 0

        while url and page < max_pages:
            response = await self._request_with_retry(
                "GET", url, params=params if page == 0 else None
            )
            await self._check_rate_limit(response)

            data = response.json()
            if isinstance(data, list):
                for item in data:
                    yield item
            else:
                yield data

            url = self._parse_next_link(response.headers.get("Link", ""))
            page += 1

    async def get(
        self,
        path: str,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Single-resource GET, returns parsed JSON."""
        response = await self._request_with_retry("GET", path, params=params)
        await self._check_rate_limit(response)
        return response.json()

    async def get_raw(
        self,
        path: str,
        params: dict[str, Any] | None = None,
    ) -> bytes:
        """GET with the raw media type; returns the response body as bytes."""
        response = await self._request_with_retry(
            "GET", path, params=params, headers={"Accept": _RAW_MEDIA_TYPE}
        )
        await self._check_rate_limit(response)
        return response.content

    async def post(self, path: str, json: dict[str, Any]) -> dict[str, Any]:
        """POST once; writes are never retried."""
        response = await self._request_with_retry("POST", path, json=json, max_retries=1)
        return response.json()

    async def patch(self, path: str, json: dict[str, Any]) -> dict[str, Any]:
        response = await self._request_with_retry("PATCH", path, json=json, max_retries=1)
        return response.json()

    # ── internal ───────────────────────────────────────────────────────────

    async def _request_with_retry(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        max_retries: int = _MAX_RETRIES,
    ) -> httpx.Response:
        """Send with exponential backoff on 5xx, 403 rate-limit, and timeout errors."""
        last_exc: Exception | None = None
        for attempt in range(max_retries):
            try:
                resp = await self._client.request(
                    method, url, params=params, json=json, headers=headers
                )

                # 403 with rate-limit headers → sleep and retry
                if resp.status_code == 403 and self._is_rate_limited(resp):
                    wait = self._get_rate_limit_wait(resp)
                    log.warning(
                        "github.rate_limit",
                        url=url,
                        wait_seconds=wait,
                        attempt=attempt + 1,
                        max_retries=max_retries,
                    )
                    last_exc = RateLimitError(wait)
                    if attempt < max_retries - 1:
                        await asyncio.sleep(wait)
                    continue

                if resp.status_code < 500:
                    resp.raise_for_status()
                    return resp

                log.warning(
                    "github.server_error",
                    url=url,
                    status=resp.status_code,
                    attempt=attempt + 1,
                    max_retries=max_retries,
                )
                last_exc = httpx.HTTPStatusError(
                    f"{resp.status_code}", request=resp.request, response=resp
                )
            except httpx.TimeoutException as exc:
                log.warning(
                    "github.timeout",
                    url=url,
                    attempt=attempt + 1,
                    max_retries=max_retries,
                )
                last_exc = exc

            if attempt < max_retries - 1:
                delay = _RETRY_BASE_DELAY * (2**attempt)
                await asyncio.sleep(delay)

        raise last_exc  # type: ignore[misc]

    async def _check_rate_limit(self, response: httpx.Response) -> None:
        """Sleep until rate-limit resets if remaining == 0."""
        remaining = self._parse_header_int(response.headers.get("X-RateLimit-Remaining"))
        if remaining is not None and remaining == 0:
            wait = self._get_rate_limit_wait(response)
            log.warning("github.rate_limit_wait", wait_seconds=wait)
            await asyncio.sleep(wait)

    @staticmethod
    def _is_rate_limited(response: httpx.Response) -> bool:
        """Check if a 403 response is due to rate limiting."""
        remaining = response.headers.get("X-RateLimit-Remaining")
        if remaining is not None:
            try:
                return int(remaining) == 0
            except (ValueError, TypeError):
                pass
        # GitHub also uses Retry-After header for abuse rate limits
        return "Retry-After" in response.headers

    @staticmethod
    def _get_rate_limit_wait(response: httpx.Response) -> int:
        """Calculate how long to wait based on rate-limit headers."""
        retry_after = response.headers.get("Retry-After")
        if retry_after is not None:
            try:
                return max(int(retry_after), 1)
            except (ValueError, TypeError):
                pass
        reset_ts = response.headers.get("X-RateLimit-Reset")
        if reset_ts is not None:
            try:
                return max(int(reset_ts) - int(time.time()), 1)
            except (ValueError, TypeError):
                pass
        return 60  # conservative fallback

    @staticmethod
    def _parse_header_int(value: str | None) -> int | None:
        if value is None:
            return None
        try:
            return int(value)
        except (ValueError, TypeError):
            return None

    @staticmethod
    def _parse_next_link(link_header: str) -> str | None:
        """Extract the ``next`` URL from a GitHub ``Link`` header."""
        match = _NEXT_LINK_RE.search(link_header)
        return match.group(1) if match else None


class GitHubRepo:
    """Repository-scoped GitHub operations used by the scan pipeline."""

    def __init__(self, client: GitHubClient, owner: str, repo: str) -> None:
        self._client = client
        self.owner = owner
        self.repo = repo

    @property
    def _base(self) -> str:
        return f"/repos/{self.owner}/{self.repo}"

    async def compare(self, base: str, head: str) -> dict[str, Any]:
        """GET /repos/{owner}/{repo}/compare/{base}...{head}."""
        return await self._client.get(f"{self._base}/compare/{base}...{head}")

    async def get_content(self, path: str, ref: str) -> bytes:
        """Raw file content at *ref*; ContentNotFoundError when the file is absent there."""
        try:
            return await self._client.get_raw(f"{self._base}/contents/{path}", {"ref": ref})
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 404:
                raise ContentNotFoundError(path, ref) from exc
            raise

    async def list_comments(self, issue_number: int) -> list[dict[str, Any]]:
        return [
            item
            async for item in self._client.get_paginated(
                f"{self._base}/issues/{issue_number}/comments", max_pages=30
            )
        ]

    async def create_comment(self, issue_number: int, body: str) -> dict[str, Any]:
        return await self._client.post(
            f"{self._base}/issues/{issue_number}/comments", {"body": body}
        )

    async def update_comment(self, comment_id: int, body: str) -> dict[str, Any]:
        return await self._client.patch(
            f"{self._base}/issues/comments/{comment_id}", {"body": body}
        )
