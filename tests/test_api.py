"""Unit tests for the Siebel REST API client."""

import asyncio
import json

import httpx
import pytest

from pysiebel.api import BASE_PARAMS, SiebelClient, editable_workspaces_searchspec
from pysiebel.exceptions import (
    SiebelAPIError,
    SiebelAuthenticationError,
    SiebelInvalidResponseError,
    SiebelNetworkError,
    SiebelPermissionError,
)
from pysiebel.models import Connection, WorkspaceInfo


@pytest.fixture
def connection():
    return Connection(
        name="DEV",
        url="https://dev.example.com/siebel/v1.0/",
        username="sadmin",
        password="secret",
    )


def make_client(connection, handler, page_size=100):
    """Create a client whose requests are answered by ``handler``."""
    return SiebelClient(
        connection, page_size=page_size, transport=httpx.MockTransport(handler)
    )


class TestSiebelClient:
    """Tests for client initialization and URL building."""

    def test_init(self, connection):
        client = SiebelClient(connection, page_size=50)
        assert client.base_url == "https://dev.example.com/siebel/v1.0/"
        assert client.page_size == 50

    def test_url_for(self, connection):
        client = SiebelClient(connection)
        assert client.url_for("workspace/dev/Applet") == (
            "https://dev.example.com/siebel/v1.0/workspace/dev/Applet"
        )

    def test_workspace_path(self):
        assert SiebelClient.workspace_path("dev", "Applet", "My Applet") == (
            "workspace/dev/Applet/My Applet"
        )

    @pytest.mark.asyncio
    async def test_close_without_requests(self, connection):
        client = SiebelClient(connection)
        await client.close()

    @pytest.mark.asyncio
    async def test_close_when_idle_waits_for_pending_read(self, connection):
        entered = asyncio.Event()
        release = asyncio.Event()

        async def handler(request):
            entered.set()
            await release.wait()
            return httpx.Response(200, json={"items": [{"Name": "A"}]})

        client = make_client(connection, handler)
        read = asyncio.create_task(client.read("workspace/dev/Applet"))
        await entered.wait()

        await client.close_when_idle()
        assert client._client is not None
        assert not client._client.is_closed

        release.set()
        assert await read == [{"Name": "A"}]
        assert client._client is None

    @pytest.mark.asyncio
    async def test_close_when_idle_without_requests(self, connection):
        client = make_client(connection, lambda request: httpx.Response(200))
        await client.read("workspace/dev/Applet")
        await client.close_when_idle()
        assert client._client is None


class TestRead:
    """Tests for read."""

    @pytest.mark.asyncio
    async def test_returns_items_and_sends_base_params(self, connection):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"items": [{"Name": "Account"}]})

        async with make_client(connection, handler, page_size=20) as client:
            items = await client.read(
                "workspace/dev/Business Component", {"fields": "Name"}
            )

        assert items == [{"Name": "Account"}]
        request = requests[0]
        assert request.method == "GET"
        assert request.url.path == "/siebel/v1.0/workspace/dev/Business Component"
        for key, value in BASE_PARAMS.items():
            assert request.url.params[key] == value
        assert request.url.params["PageSize"] == "20"
        assert request.url.params["fields"] == "Name"
        assert request.headers["Authorization"].startswith("Basic ")

    @pytest.mark.asyncio
    async def test_single_item_envelope(self, connection):
        def handler(request):
            return httpx.Response(200, json={"items": {"Name": "Only"}})

        async with make_client(connection, handler) as client:
            assert await client.read("workspace/dev/Applet") == [{"Name": "Only"}]

    @pytest.mark.asyncio
    async def test_not_found_is_empty(self, connection):
        def handler(request):
            return httpx.Response(404, json={"ERROR": "No resource"})

        async with make_client(connection, handler) as client:
            assert await client.read("workspace/dev/Applet/Missing") == []

    @pytest.mark.asyncio
    async def test_empty_body_is_empty(self, connection):
        def handler(request):
            return httpx.Response(200, content=b"")

        async with make_client(connection, handler) as client:
            assert await client.read("workspace/dev/Applet") == []

    @pytest.mark.asyncio
    async def test_server_error_message(self, connection):
        def handler(request):
            return httpx.Response(500, json={"ERROR": "SBL-DAT-00144"})

        async with make_client(connection, handler) as client:
            with pytest.raises(SiebelAPIError, match="SBL-DAT-00144") as exc_info:
                await client.read("workspace/dev/Applet")
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_unauthorized(self, connection):
        def handler(request):
            return httpx.Response(401)

        async with make_client(connection, handler) as client:
            with pytest.raises(SiebelAuthenticationError):
                await client.read("workspace/dev/Applet")

    @pytest.mark.asyncio
    async def test_forbidden(self, connection):
        def handler(request):
            return httpx.Response(403)

        async with make_client(connection, handler) as client:
            with pytest.raises(SiebelPermissionError):
                await client.read("workspace/dev/Applet")

    @pytest.mark.asyncio
    async def test_network_error(self, connection):
        def handler(request):
            raise httpx.ConnectError("Connection refused", request=request)

        async with make_client(connection, handler) as client:
            with pytest.raises(SiebelNetworkError, match="Connection refused"):
                await client.read("workspace/dev/Applet")

    @pytest.mark.asyncio
    async def test_invalid_json(self, connection):
        def handler(request):
            return httpx.Response(200, content=b"<html>login</html>")

        async with make_client(connection, handler) as client:
            with pytest.raises(SiebelInvalidResponseError):
                await client.read("workspace/dev/Applet")


class TestWrite:
    """Tests for write."""

    @pytest.mark.asyncio
    async def test_put_payload(self, connection):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={})

        payload = {"Name": "WebApplet_Load", "Script": "function WebApplet_Load(){}"}
        async with make_client(connection, handler) as client:
            await client.write("workspace/dev/Applet/A/Applet Server Script/X", payload)

        assert requests[0].method == "PUT"
        assert json.loads(requests[0].content) == payload

    @pytest.mark.asyncio
    async def test_write_error_is_raised(self, connection):
        def handler(request):
            return httpx.Response(404, json={"ERROR": "Workspace is not editable"})

        async with make_client(connection, handler) as client:
            with pytest.raises(SiebelAPIError) as exc_info:
                await client.write("workspace/dev/Web Template/X", {"Name": "X"})
        assert exc_info.value.status_code == 404


class TestWorkspaces:
    """Tests for workspace listing."""

    def test_editable_searchspec(self):
        assert editable_workspaces_searchspec() == (
            "Status='Created' OR Status='Checkpointed' OR Status='Edit-In-Progress'"
        )

    @pytest.mark.asyncio
    async def test_editable_workspaces(self, connection):
        params = []

        def handler(request):
            params.append(dict(request.url.params))
            return httpx.Response(
                200,
                json={"items": [{"Name": "dev_sadmin_1"}, {"Name": "dev_sadmin_2"}]},
            )

        async with make_client(connection, handler) as client:
            workspaces = await client.get_workspaces()

        assert [ws.name for ws in workspaces] == ["dev_sadmin_1", "dev_sadmin_2"]
        assert params[0]["searchspec"] == editable_workspaces_searchspec()

    @pytest.mark.asyncio
    async def test_organization_workspaces_are_flattened(self, connection):
        params = []

        def handler(request):
            params.append(dict(request.url.params))
            return httpx.Response(
                200,
                json={
                    "items": [
                        {
                            "Name": "MAIN",
                            "Status": "Delivered",
                            "RepositoryWorkspace": [
                                {"Name": "dev_a", "Status": "Created"},
                                {
                                    "Name": "int_b",
                                    "Status": "Submitted",
                                    "RepositoryWorkspace": {"Name": "dev_c"},
                                },
                            ],
                        }
                    ]
                },
            )

        async with make_client(connection, handler) as client:
            workspaces = await client.get_workspaces(editable_only=False)

        assert workspaces == [
            WorkspaceInfo("MAIN", "Delivered"),
            WorkspaceInfo("dev_a", "Created"),
            WorkspaceInfo("int_b", "Submitted"),
            WorkspaceInfo("dev_c", None),
        ]
        assert params[0]["ViewMode"] == "Organization"

    @pytest.mark.asyncio
    async def test_test_connection(self, connection):
        def handler(request):
            assert request.url.path.endswith("/workspace/MAIN/Application")
            return httpx.Response(200, json={"items": [{"Name": "Siebel Sales"}]})

        async with make_client(connection, handler) as client:
            assert await client.test_connection() is True
