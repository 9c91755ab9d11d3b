"""Registry of configured connections.

The registry is a read-through cache over the settings store. Every change,
whether made in this process or detected in the settings file, goes through
:meth:`ConnectionRegistry.persist` or :meth:`ConnectionRegistry.refresh`.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from .api import SiebelClient
from .config import Config
from .exceptions import SiebelConfigError, SiebelConnectionNotFoundError
from .models import Connection

logger = logging.getLogger(__name__)

ClientFactory = Callable[[Connection], SiebelClient]


class ConnectionRegistry:
    """Cached view of the connections stored in the settings."""

    def __init__(
        self,
        settings: Config,
        client_factory: Optional[ClientFactory] = None,
    ):
        """Initialize the registry.

        Args:
            settings: Settings storage
            client_factory: Creates REST clients for remote workspace
                listing. Defaults to SiebelClient with the configured page size.
        """
        self.settings = settings
        self.client_factory = client_factory or (
            lambda connection: SiebelClient(
                connection, page_size=settings.max_page_size
            )
        )
        self._connections: Optional[list[Connection]] = None
        self._listeners: list[Callable[[], None]] = []

    def on_change(self, listener: Callable[[], None]) -> None:
        """Register a callback fired after every persist or refresh."""
        self._listeners.append(listener)

    def _notify(self) -> None:
        for listener in self._listeners:
            listener()

    def refresh(self) -> list[Connection]:
        """Drop the cache and re-read the settings store."""
        self.settings.load()
        self._connections = [
            Connection.from_dict(data) for data in self.settings.connections
        ]
        logger.debug(f"Loaded {len(self._connections)} connection(s)")
        self._notify()
        return list(self._connections)

    def refresh_if_changed(self) -> bool:
        """Refresh when the settings file was edited outside of this process."""
        if self._connections is not None and not self.settings.changed_since_load():
            return False
        self.refresh()
        return True

    def list(self) -> list[Connection]:
        if self._connections is None:
            return self.refresh()
        return list(self._connections)

    def names(self) -> list[str]:
        return [connection.name for connection in self.list()]

    def resolve(self, name: str) -> Connection:
        """Look up a connection by name.

        Raises:
            SiebelConnectionNotFoundError: If no such connection exists
        """
        for connection in self.list():
            if connection.name == name:
                return connection
        raise SiebelConnectionNotFoundError(name)

    def exists(self, name: str) -> bool:
        return name in self.names()

    @property
    def default_name(self) -> str:
        return self.settings.default_connection_name

    async def workspaces_for(self, connection: Connection) -> list[str]:
        """Return the workspaces available for a connection.

        Remote-derived connections query the REST API for editable
        workspaces and keep the remote order. Static connections return the
        configured list unchanged; its order is the user's priority.

        Raises:
            SiebelAPIError: If the remote workspace listing fails
        """
        if not connection.rest_workspaces:
            return list(connection.workspaces)
        async with self.client_factory(connection) as client:
            workspaces = await client.get_workspaces(editable_only=True)
        names = [workspace.name for workspace in workspaces]
        logger.debug(f"Got {len(names)} workspace(s) for {connection.name}")
        return names

    def persist(self, connections: list[Connection]) -> None:
        """Replace all connections and write them to the settings store."""
        self.settings.set(
            "connections", [connection.to_dict() for connection in connections]
        )
        self._connections = list(connections)
        self._notify()

    def set_default(self, name: str) -> None:
        """Remember the connection selected on startup."""
        self.resolve(name)
        self.settings.set("defaultConnectionName", name)
        self._notify()

    # =========================
    # Editing operations
    # =========================

    def add(self, connection: Connection) -> None:
        """Add a new connection in front of the existing ones.

        Raises:
            SiebelConfigError: If the name is empty or already used
        """
        if not (connection.name and connection.url and connection.username):
            raise SiebelConfigError("Name, URL and username are required")
        if self.exists(connection.name):
            raise SiebelConfigError(
                f"Connection with the same name already exists: {connection.name}"
            )
        self.persist([connection, *self.list()])

    def update(self, connection: Connection) -> None:
        """Replace the stored connection with the same name."""
        connections = self.list()
        for index, existing in enumerate(connections):
            if existing.name == connection.name:
                connections[index] = connection
                self.persist(connections)
                return
        raise SiebelConnectionNotFoundError(connection.name)

    def remove(self, name: str) -> None:
        self.resolve(name)
        self.persist([c for c in self.list() if c.name != name])
        if self.default_name == name:
            self.settings.set("defaultConnectionName", "")

    def add_workspace(self, name: str, workspace: str) -> Connection:
        """Add a static workspace in front of the list.

        The first workspace added to a connection becomes its default.
        """
        connection = self.resolve(name)
        if not workspace or workspace in connection.workspaces:
            return connection
        connection.workspaces.insert(0, workspace)
        if len(connection.workspaces) == 1:
            connection.default_workspace = workspace
        self.update(connection)
        return connection

    def set_default_workspace(self, name: str, workspace: str) -> Connection:
        connection = self.resolve(name)
        if workspace not in connection.workspaces:
            raise SiebelConfigError(
                f"Workspace {workspace} is not configured for {name}"
            )
        connection.default_workspace = workspace
        self.update(connection)
        return connection

    def remove_workspace(self, name: str, workspace: str) -> Connection:
        """Remove a static workspace; the default moves to the first remaining."""
        connection = self.resolve(name)
        if workspace not in connection.workspaces:
            return connection
        connection.workspaces.remove(workspace)
        if connection.default_workspace == workspace:
            connection.default_workspace = (
                connection.workspaces[0] if connection.workspaces else ""
            )
        self.update(connection)
        return connection
