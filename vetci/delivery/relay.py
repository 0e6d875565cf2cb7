"""Comment relay: posts PR comments through the GitHub comments proxy service.

Used when the job token cannot write to the pull request (forks). The
service speaks the Connect protocol; its unary JSON encoding is a plain
POST to ``/<service>/<method>``. Requests are authenticated with the
workflow's OIDC id token when the job was granted ``id-token: write``.
"""

from __future__ import annotations

from urllib.parse import urlparse

import httpx
import structlog

log = structlog.get_logger("vetci.delivery.relay")

DEFAULT_RELAY_URL = "https://ghcp-integrations.safedep.io"
_SERVICE = "safedep.services.ghcp.v1.GitHubCommentsProxyService"


class CommentRelayClient:
    def __init__(
        self,
        base_url: str = DEFAULT_RELAY_URL,
        *,
        id_token_request_url: str = "",
        id_token_request_token: str = "",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._id_token_request_url = id_token_request_url
        self._id_token_request_token = id_token_request_token
        self._transport = transport

    async def create_comment(
        self,
        body: str,
        tag: str,
        pr_number: int,
        repo: str,
        owner: str,
    ) -> str:
        """Create (or, when *tag* is set, update) a comment; returns its id."""
        headers = {"Content-Type": "application/json", "Connect-Protocol-Version": "1"}
        async with httpx.AsyncClient(timeout=30.0, transport=self._transport) as client:
            id_token = await self._fetch_id_token(client)
            if id_token:
                headers["Authorization"] = f"Bearer {id_token}"
            resp = await client.post(
                f"{self._base_url}/{_SERVICE}/CreatePullRequestComment",
                json={
                    "owner": owner,
                    "repo": repo,
                    "prNumber": str(pr_number),
                    "body": body,
                    "tag": tag,
                },
                headers=headers,
            )
            resp.raise_for_status()
            comment_id = str(resp.json().get("commentId", ""))
        log.info("relay.comment_posted", pr=pr_number, comment_id=comment_id, update=bool(tag))
        return comment_id

    async def _fetch_id_token(self, client: httpx.AsyncClient) -> str | None:
        if not self._id_token_request_url or not self._id_token_request_token:
            return None
        audience = urlparse(self._base_url).hostname or self._base_url
        resp = await client.get(
            self._id_token_request_url,
            params={"audience": audience},
            headers={"Authorization": f"Bearer {self._id_token_request_token}"},
        )
        resp.raise_for_status()
        return resp.json().get("value")
