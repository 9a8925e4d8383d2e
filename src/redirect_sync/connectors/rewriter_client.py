"""
Rewriter GraphQL Client.

Async interface to the redirect ("rewriter") service:
- Bulk save of redirect batches
- Bulk delete by source path
- Paginated listing of existing redirects
- Classification of failures into transient and rejected

The client never retries on its own; SyncEngine decides whether a failed
batch is attempted again.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

import httpx

from redirect_sync.config import Settings
from redirect_sync.errors import RemoteRejectionError, RemoteTransientError
from redirect_sync.models import Redirect, RedirectPath

logger = logging.getLogger(__name__)


SAVE_MANY_MUTATION = """
mutation SaveMany($routes: [RedirectInput!]!) {
  redirect {
    saveMany(routes: $routes)
  }
}
"""

DELETE_MANY_MUTATION = """
mutation DeleteMany($paths: [String!]!) {
  redirect {
    deleteMany(paths: $paths)
  }
}
"""

LIST_REDIRECTS_QUERY = """
query ListRedirects($limit: Int, $next: String) {
  redirect {
    listRedirects(limit: $limit, next: $next) {
      next
      routes {
        from
      }
    }
  }
}
"""

# Status codes worth another attempt
TRANSIENT_STATUS = frozenset({408, 425, 429, 500, 502, 503, 504})


class RewriterClient:
    """
    Rewriter GraphQL API client.

    Example:
        async with RewriterClient(
            api_url="https://rewriter.example.com/graphql",
            account="storecompany",
            workspace="master",
            auth_token="your-token",
        ) as client:
            await client.import_redirects(redirects)
            keys = await client.list_redirect_keys()
    """

    def __init__(
        self,
        api_url: str,
        account: str,
        workspace: str,
        auth_token: str,
        timeout_seconds: float = 30.0,
        page_size: int = 1000,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize rewriter client.

        Args:
            api_url: GraphQL endpoint
            account: Account the redirects belong to
            workspace: Workspace the redirects are applied to
            auth_token: Bearer token
            timeout_seconds: Per-request timeout
            page_size: Routes requested per listing page
            transport: Optional httpx transport (used by tests)
        """
        self.api_url = api_url
        self.account = account
        self.workspace = workspace
        self.auth_token = auth_token
        self.timeout_seconds = timeout_seconds
        self.page_size = page_size
        self._transport = transport

        self._client: httpx.AsyncClient | None = None

    def _get_headers(self) -> dict[str, str]:
        """Get request headers with authentication and context."""
        return {
            "Authorization": f"Bearer {self.auth_token}",
            "Content-Type": "application/json",
            "X-Account": self.account,
            "X-Workspace": self.workspace,
        }

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers=self._get_headers(),
                timeout=httpx.Timeout(self.timeout_seconds, connect=10.0),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "RewriterClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def _request(
        self,
        query: str,
        variables: dict[str, Any],
    ) -> dict[str, Any]:
        """
        Send one GraphQL operation and return its ``data`` object.

        Raises:
            RemoteTransientError: transport failure, timeout, 429 or 5xx
            RemoteRejectionError: GraphQL errors or any other non-2xx status
        """
        client = await self._get_client()

        try:
            response = await client.post(
                self.api_url,
                json={"query": query, "variables": variables},
            )
        except httpx.TimeoutException as e:
            raise RemoteTransientError(f"Request timed out: {e}") from e
        except httpx.TransportError as e:
            raise RemoteTransientError(f"Connection error: {e}") from e

        status = response.status_code
        if status in TRANSIENT_STATUS:
            retry_after = response.headers.get("Retry-After")
            detail = f" (retry after {retry_after}s)" if retry_after else ""
            raise RemoteTransientError(
                f"Service unavailable: HTTP {status}{detail}", status
            )

        try:
            body = response.json()
        except ValueError:
            body = None

        if not isinstance(body, dict):
            if status >= 400:
                raise RemoteRejectionError(
                    f"Request rejected: HTTP {status}", status
                )
            raise RemoteTransientError(
                f"Malformed response: HTTP {status}", status
            )

        errors = body.get("errors")
        if errors:
            raise RemoteRejectionError(
                format_graphql_errors(errors), status, errors=errors
            )

        if status >= 400:
            raise RemoteRejectionError(f"Request rejected: HTTP {status}", status)

        return body.get("data") or {}

    async def import_redirects(self, redirects: Sequence[Redirect]) -> None:
        """Create or overwrite a batch of redirects."""
        routes = [redirect.to_payload() for redirect in redirects]
        await self._request(SAVE_MANY_MUTATION, {"routes": routes})
        logger.debug("Saved %d redirects", len(routes))

    async def delete_redirects(self, paths: Sequence[RedirectPath]) -> None:
        """Delete a batch of redirects by source path."""
        keys = [path.key for path in paths]
        await self._request(DELETE_MANY_MUTATION, {"paths": keys})
        logger.debug("Deleted %d redirects", len(keys))

    async def list_redirect_keys(self) -> list[str]:
        """Return the ``from`` path of every redirect currently stored."""
        keys: list[str] = []
        cursor: str | None = None

        while True:
            data = await self._request(
                LIST_REDIRECTS_QUERY,
                {"limit": self.page_size, "next": cursor},
            )
            page = (data.get("redirect") or {}).get("listRedirects") or {}
            keys.extend(route["from"] for route in page.get("routes") or [])
            cursor = page.get("next")
            if not cursor:
                break

        logger.debug("Listed %d existing redirects", len(keys))
        return keys


def format_graphql_errors(errors: list[dict[str, Any]]) -> str:
    """Render GraphQL errors as one readable message."""
    messages = []
    for error in errors:
        message = error.get("message", "Unknown error")
        path = error.get("path")
        if path:
            message = f"{'.'.join(str(p) for p in path)}: {message}"
        messages.append(message)
    return "Request rejected: " + "; ".join(messages)


def create_rewriter_client(
    settings: Settings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> RewriterClient:
    """Create a RewriterClient from settings."""
    return RewriterClient(
        api_url=settings.api_url,
        account=settings.account,
        workspace=settings.workspace,
        auth_token=settings.auth_token.get_secret_value(),
        timeout_seconds=settings.limits.request_timeout_seconds,
        transport=transport,
    )
