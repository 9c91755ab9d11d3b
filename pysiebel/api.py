"""Async API client for the Siebel REST API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from .exceptions import (
    SiebelAPIError,
    SiebelAuthenticationError,
    SiebelInvalidResponseError,
    SiebelNetworkError,
    SiebelPermissionError,
)
from .metadata import (
    EDITABLE_WORKSPACE_STATUSES,
    NAME_FIELD,
    TEST_CONNECTION_PATH,
    WORKSPACE_SEGMENT,
    WORKSPACES_PATH,
)
from .models import Connection, WorkspaceInfo
from .paths import join_url

logger = logging.getLogger(__name__)

# Sent with every request
BASE_PARAMS: dict[str, str] = {
    "uniformresponse": "y",
    "childlinks": "None",
}


def editable_workspaces_searchspec() -> str:
    """Filter expression selecting workspaces that can be edited."""
    return " OR ".join(f"Status='{status}'" for status in EDITABLE_WORKSPACE_STATUSES)


class SiebelClient:
    """Client for reading and writing repository objects over REST.

    Every call is attempted exactly once; the caller decides whether to
    retry. A 404 on a read means "nothing found" and yields an empty list.
    """

    def __init__(
        self,
        connection: Connection,
        page_size: int = 100,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the client.

        Args:
            connection: Connection holding base URL and credentials
            page_size: Value of the PageSize query parameter
            timeout: Request timeout in seconds (default: 30.0)
            transport: Optional httpx transport (used by tests)
        """
        self.connection = connection
        self.base_url = connection.url
        self.page_size = page_size
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._in_flight = 0
        self._closing = False

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                auth=(self.connection.username, self.connection.password),
                headers={"Content-Type": "application/json"},
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the client and release connections."""
        self._closing = False
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def close_when_idle(self) -> None:
        """Close the client once the requests already sent have completed.

        Used when the active connection changes while a read is pending:
        the read still gets its response, which the caller then discards.
        """
        if self._in_flight:
            logger.debug("Closing after %d pending request(s)", self._in_flight)
            self._closing = True
            return
        await self.close()

    async def __aenter__(self) -> SiebelClient:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def url_for(self, path: str) -> str:
        return join_url(self.base_url, path)

    @staticmethod
    def workspace_path(workspace: str, *segments: str) -> str:
        """Resource path inside a workspace.

        Examples:
            >>> SiebelClient.workspace_path("dev_sadmin_1", "Applet", "My Applet")
            'workspace/dev_sadmin_1/Applet/My Applet'
        """
        return join_url(WORKSPACE_SEGMENT, workspace, *segments)

    def _error_from_response(self, e: httpx.HTTPStatusError) -> SiebelAPIError:
        """Map an HTTP status error to a typed exception."""
        status_code = e.response.status_code
        if status_code == 401:
            return SiebelAuthenticationError(
                "Invalid username or password", status_code
            )
        if status_code == 403:
            return SiebelPermissionError(
                "Access forbidden - check your permissions", status_code
            )
        error_msg = f"Error using the Siebel REST API: status {status_code}"
        try:
            if e.response.content:
                error_data = e.response.json()
                if isinstance(error_data, dict):
                    msg = error_data.get("ERROR") or error_data.get("message")
                    if msg:
                        error_msg = f"Error using the Siebel REST API: {msg}"
        except ValueError:
            pass
        return SiebelAPIError(error_msg, status_code)

    async def _request(
        self, method: str, path: str, params: dict[str, Any], **kwargs: Any
    ) -> httpx.Response:
        url = self.url_for(path)
        client = self._get_client()
        logger.debug("%s %s params=%s", method, url, params)
        self._in_flight += 1
        try:
            response = await client.request(method, url, params=params, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise self._error_from_response(e) from e
        except httpx.RequestError as e:
            raise SiebelNetworkError(f"Network error: {e}") from e
        finally:
            self._in_flight -= 1
            if self._closing and not self._in_flight:
                await self.close()
        return response

    async def read(
        self, path: str, params: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """Retrieve the items of a resource.

        Args:
            path: Resource path relative to the base URL
            params: Query parameters (fields, searchspec, ...)

        Returns:
            Items of the response envelope, empty if the resource is absent

        Raises:
            SiebelAPIError: If the request fails for any reason other than 404
        """
        query = {**BASE_PARAMS, "PageSize": self.page_size, **(params or {})}
        try:
            response = await self._request("GET", path, query)
        except SiebelAPIError as e:
            if e.status_code == 404:
                logger.debug("Resource not found: %s", path)
                return []
            raise
        if not response.content:
            return []
        try:
            data = response.json()
        except ValueError as e:
            raise SiebelInvalidResponseError(
                "Invalid JSON response from the Siebel REST API"
            ) from e
        if not isinstance(data, dict):
            raise SiebelInvalidResponseError("Unexpected response envelope")
        items = data.get("items") or []
        if isinstance(items, dict):
            items = [items]
        return list(items)

    async def write(self, path: str, payload: dict[str, Any]) -> None:
        """Create or overwrite a resource (last write wins).

        Args:
            path: Resource path relative to the base URL
            payload: Object fields to store

        Raises:
            SiebelAPIError: If the request fails
        """
        await self._request("PUT", path, dict(BASE_PARAMS), json=payload)
        logger.debug("Wrote %s", path)

    # =========================
    # Workspace Operations
    # =========================

    async def get_workspaces(self, editable_only: bool = True) -> list[WorkspaceInfo]:
        """List repository workspaces.

        Args:
            editable_only: Only workspaces in an editable status
                (Created, Checkpointed, Edit-In-Progress). Otherwise every
                workspace of the organization, child workspaces included.

        Returns:
            Workspaces in the order returned by the REST API
        """
        if editable_only:
            params = {
                "fields": NAME_FIELD,
                "searchspec": editable_workspaces_searchspec(),
            }
        else:
            params = {"fields": "Name,Status", "ViewMode": "Organization"}
        items = await self.read(WORKSPACES_PATH, params)
        workspaces: list[WorkspaceInfo] = []
        pending = list(items)
        while pending:
            item = pending.pop(0)
            children = item.get("RepositoryWorkspace")
            if children:
                pending.extend(children if isinstance(children, list) else [children])
            if item.get("Name"):
                workspaces.append(WorkspaceInfo.from_item(item))
        return workspaces

    async def test_connection(self) -> bool:
        """Check that the base URL and credentials work.

        Raises:
            SiebelAPIError: If the REST API cannot be reached
        """
        items = await self.read(TEST_CONNECTION_PATH, {"fields": NAME_FIELD})
        return len(items) > 0
