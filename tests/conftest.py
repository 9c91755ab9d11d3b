"""Shared fixtures for pysiebel tests."""

import asyncio
from pathlib import Path
from typing import Any, Optional

import pytest

from pysiebel.config import Config
from pysiebel.connections import ConnectionRegistry
from pysiebel.models import Connection, WorkspaceInfo


class FakeClient:
    """In-memory replacement for SiebelClient.

    Reads return ``responses[path]`` (an empty list, like a 404, when the
    path is unknown); failures are injected per path.
    """

    def __init__(self, connection: Optional[Connection] = None):
        self.connection = connection
        self.responses: dict[str, list[dict[str, Any]]] = {}
        self.fail_reads: dict[str, Exception] = {}
        self.fail_writes: dict[str, Exception] = {}
        self.reads: list[tuple[str, dict[str, Any]]] = []
        self.writes: list[tuple[str, dict[str, Any]]] = []
        self.workspaces: list[WorkspaceInfo] = []
        self.gate: Optional[asyncio.Event] = None
        self.closed = 0
        self.pending = 0
        self._closing = False

    async def read(
        self, path: str, params: Optional[dict[str, Any]] = None
    ) -> list[dict[str, Any]]:
        self.reads.append((path, dict(params or {})))
        self.pending += 1
        try:
            if self.gate is not None:
                await self.gate.wait()
            if path in self.fail_reads:
                raise self.fail_reads[path]
            return [dict(item) for item in self.responses.get(path, [])]
        finally:
            self.pending -= 1
            if self._closing and not self.pending:
                await self.close()

    async def write(self, path: str, payload: dict[str, Any]) -> None:
        if path in self.fail_writes:
            raise self.fail_writes[path]
        self.writes.append((path, payload))

    async def get_workspaces(self, editable_only: bool = True) -> list[WorkspaceInfo]:
        return list(self.workspaces)

    async def test_connection(self) -> bool:
        return True

    async def close_when_idle(self) -> None:
        if self.pending:
            self._closing = True
            return
        await self.close()

    async def close(self) -> None:
        self._closing = False
        self.closed += 1

    async def __aenter__(self) -> "FakeClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()


@pytest.fixture
def dev_connection():
    return Connection(
        name="DEV",
        url="https://dev.example.com/siebel/v1.0",
        username="sadmin",
        password="secret",
        workspaces=["dev_ws", "main_ws"],
        default_workspace="dev_ws",
    )


@pytest.fixture
def qa_connection():
    return Connection(
        name="TEST",
        url="https://test.example.com/siebel/v1.0",
        username="sadmin",
        password="secret",
        workspaces=["test_ws"],
        default_workspace="test_ws",
    )


@pytest.fixture
def settings(tmp_path: Path, dev_connection, qa_connection):
    """Settings stored in a temporary directory with two connections."""
    cfg = Config(tmp_path / "config")
    cfg.data["connections"] = [dev_connection.to_dict(), qa_connection.to_dict()]
    cfg.save()
    return cfg


@pytest.fixture
def clients():
    """Fake clients by connection name, created on first use."""
    return {}


@pytest.fixture
def client_factory(clients):
    def factory(connection: Connection) -> FakeClient:
        if connection.name not in clients:
            clients[connection.name] = FakeClient(connection)
        return clients[connection.name]

    return factory


@pytest.fixture
def registry(settings, client_factory):
    return ConnectionRegistry(settings, client_factory=client_factory)


@pytest.fixture
def root(tmp_path: Path) -> Path:
    """Root folder of the local mirror."""
    mirror = tmp_path / "mirror"
    mirror.mkdir()
    return mirror
