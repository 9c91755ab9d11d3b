"""Active connection / workspace / object type selection.

A single :class:`SessionState` is created per running front end and passed to
every component that needs to know where to read from and write to. Each
connection or workspace transition bumps :attr:`SessionState.generation`, so
work started before the transition can tell that its result is stale.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional, Protocol

from .api import SiebelClient
from .connections import ConnectionRegistry
from .events import EventEmitter
from .exceptions import (
    SiebelAPIError,
    SiebelConnectionNotFoundError,
    SiebelNoConnectionError,
    SiebelNoWorkspaceError,
)
from .metadata import ObjectType
from .models import Connection

logger = logging.getLogger(__name__)


class Invalidatable(Protocol):
    """Anything holding workspace-scoped data that must be dropped."""

    def clear(self) -> None: ...


@dataclass(frozen=True)
class Selection:
    """Snapshot sent to the presentation layer after every transition."""

    connections: list[str] = field(default_factory=list)
    connection: str = ""
    workspaces: list[str] = field(default_factory=list)
    workspace: str = ""
    object_type: ObjectType = ObjectType.SERVICE

    def to_dict(self) -> dict[str, Any]:
        return {
            "connections": list(self.connections),
            "connection": self.connection,
            "workspaces": list(self.workspaces),
            "workspace": self.workspace,
            "type": self.object_type.value,
        }


def choose_workspace(
    current: str, workspaces: list[str], default_workspace: str
) -> str:
    """Pick the workspace to activate for a connection.

    Keeps the current workspace if it is still available, then falls back to
    the configured default, then to the first available workspace.

    Examples:
        >>> choose_workspace("", ["A", "B"], "B")
        'B'
        >>> choose_workspace("A", ["A", "B"], "B")
        'A'
        >>> choose_workspace("C", ["A", "B"], "X")
        'A'
        >>> choose_workspace("A", [], "A")
        ''
    """
    if current and current in workspaces:
        return current
    if default_workspace and default_workspace in workspaces:
        return default_workspace
    return workspaces[0] if workspaces else ""


class SessionState:
    """Process-wide selection of connection, workspace and object type."""

    def __init__(
        self,
        registry: ConnectionRegistry,
        root: Path,
        client_factory: Optional[Callable[[Connection], SiebelClient]] = None,
    ):
        """Initialize the session.

        Args:
            registry: Connection registry
            root: Root folder of the local mirror
            client_factory: Creates the REST client of the active connection
                (defaults to the registry's factory)
        """
        self.registry = registry
        self.root = Path(root)
        self.client_factory = client_factory or registry.client_factory
        self.on_selection_changed: EventEmitter[Selection] = EventEmitter()
        self.generation = 0
        self._connection: Optional[Connection] = None
        self._workspaces: list[str] = []
        self._workspace = ""
        self._object_type = ObjectType.SERVICE
        self._client: Optional[SiebelClient] = None
        self._trees: list[Invalidatable] = []
        self._transition = 0
        self._reported_no_connection = False

    # =========================
    # Read-only view
    # =========================

    @property
    def connection(self) -> str:
        """Active connection name, empty in the no-connection state."""
        return self._connection.name if self._connection else ""

    @property
    def active_connection(self) -> Optional[Connection]:
        return self._connection

    @property
    def workspace(self) -> str:
        return self._workspace

    @property
    def workspaces(self) -> list[str]:
        return list(self._workspaces)

    @property
    def object_type(self) -> ObjectType:
        return self._object_type

    @property
    def has_connection(self) -> bool:
        return self._connection is not None

    @property
    def client(self) -> SiebelClient:
        """REST client of the active connection.

        Raises:
            SiebelNoConnectionError: In the no-connection state
        """
        if self._connection is None:
            raise SiebelNoConnectionError()
        if self._client is None:
            self._client = self.client_factory(self._connection)
        return self._client

    @property
    def folder(self) -> Path:
        """Local folder of the active connection and workspace."""
        self.require_workspace()
        return self.root / self.connection / self.workspace

    def type_folder(self, object_type: ObjectType) -> Path:
        return self.folder / object_type.value

    def resource_path(self, *segments: str) -> str:
        """Resource path below the active workspace."""
        self.require_workspace()
        return SiebelClient.workspace_path(self.workspace, *segments)

    def snapshot(self) -> Selection:
        return Selection(
            connections=self.registry.names(),
            connection=self.connection,
            workspaces=self.workspaces,
            workspace=self.workspace,
            object_type=self._object_type,
        )

    def is_current(self, generation: int) -> bool:
        """True if no connection/workspace transition happened since."""
        return generation == self.generation

    def require_workspace(self) -> None:
        """Ensure dependent operations can run.

        Raises:
            SiebelNoConnectionError: If no connection is active
            SiebelNoWorkspaceError: If the active connection has no workspace
        """
        if self._connection is None:
            raise SiebelNoConnectionError()
        if not self._workspace:
            raise SiebelNoWorkspaceError(self._connection.name)

    def register_tree(self, tree: Invalidatable) -> None:
        """Register workspace-scoped data cleared on every transition."""
        self._trees.append(tree)

    # =========================
    # Transitions
    # =========================

    def _invalidate(self) -> None:
        self.generation += 1
        for tree in self._trees:
            tree.clear()

    def _notify(self) -> Selection:
        selection = self.snapshot()
        self.on_selection_changed.fire(selection)
        return selection

    async def _bind_connection(self, connection: Optional[Connection]) -> None:
        old_client, self._client = self._client, None
        self._connection = connection
        if old_client is not None:
            # Pending reads finish first, their results are discarded as stale
            await old_client.close_when_idle()

    async def activate(self) -> Selection:
        """Initial selection: remembered default connection, else the first."""
        self.registry.list()
        return await self.select_connection()

    async def select_connection(self, name: Optional[str] = None) -> Selection:
        """Activate a connection and re-derive a valid workspace.

        Args:
            name: Connection to activate. Without a name the current
                connection is kept if it still exists, else the remembered
                default, else the first configured connection.

        Returns:
            The new selection snapshot

        Raises:
            SiebelConnectionNotFoundError: If ``name`` is not configured
        """
        names = self.registry.names()
        # An unknown name must not supersede a selection in progress
        if names and name is not None and name not in names:
            raise SiebelConnectionNotFoundError(name)
        self._transition += 1
        transition = self._transition

        if not names:
            await self._enter_no_connection()
            return self._notify()

        if name is None:
            if self.connection in names:
                name = self.connection
            elif self.registry.default_name in names:
                name = self.registry.default_name
            else:
                name = names[0]

        connection = self.registry.resolve(name)
        try:
            workspaces = await self.registry.workspaces_for(connection)
        except SiebelAPIError as e:
            logger.error(f"Unable to get workspaces for {connection.name}: {e}")
            workspaces = []

        if transition != self._transition:
            logger.debug(f"Selection of {name} was superseded")
            return self.snapshot()

        workspace = choose_workspace(
            self._workspace, workspaces, connection.default_workspace
        )
        await self._bind_connection(connection)
        self._reported_no_connection = False
        self._workspaces = workspaces
        self._workspace = workspace
        self._invalidate()
        if not workspace:
            logger.warning(str(SiebelNoWorkspaceError(connection.name)))
        logger.debug(
            f"Selected connection {connection.name}, workspace {workspace!r} "
            f"(generation {self.generation})"
        )
        return self._notify()

    async def _enter_no_connection(self) -> None:
        await self._bind_connection(None)
        self._workspaces = []
        self._workspace = ""
        self._invalidate()
        if not self._reported_no_connection:
            logger.error(
                "Please create at least one connection "
                "(pysiebel connection add)"
            )
            self._reported_no_connection = True

    def select_workspace(self, name: str) -> Selection:
        """Activate a workspace of the current connection.

        The name is expected to come from the current workspace list.
        Every registered tree is cleared, its content belonged to the old
        workspace.
        """
        self._transition += 1
        self._workspace = name
        self._invalidate()
        logger.debug(f"Selected workspace {name} (generation {self.generation})")
        return self._notify()

    def select_object_type(self, object_type: ObjectType) -> Selection:
        """Switch the object type shown; trees are kept."""
        self._object_type = ObjectType(object_type)
        return self._notify()

    async def handle_settings_changed(self) -> Selection:
        """Re-read the settings and re-adjust the selection.

        Leaving the no-connection state selects the newly added connection;
        a removed active connection falls back to the default or first one.
        """
        previous = set(self.registry.names())
        self.registry.refresh()
        names = self.registry.names()
        if not self.has_connection:
            added = [n for n in names if n not in previous]
            return await self.select_connection(added[0] if added else None)
        return await self.select_connection()

    async def close(self) -> None:
        await self._bind_connection(self._connection)
