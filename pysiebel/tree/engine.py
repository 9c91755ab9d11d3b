"""Tree synchronization engine, one instance per object type."""

import logging
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional, Union

from ..config import FETCH_FULL, FETCH_NAMES
from ..debounce import DEFAULT_DEBOUNCE_DELAY, Debouncer
from ..events import EventEmitter
from ..exceptions import SiebelError
from ..metadata import NAME_FIELD, WEBTEMP_EXTENSION, ObjectDescriptor, ObjectType
from ..paths import encode
from ..session import SessionState
from .nodes import ItemState, LeafNode, NodeKind, ObjectNode, TreeNode
from .scanner import (
    LocalFile,
    read_text,
    scripts_on_disk,
    subfolders,
    webtemps_on_disk,
    write_text,
)

logger = logging.getLogger(__name__)


class TreeStatus(str, Enum):
    """Lifecycle of the in-memory tree."""

    EMPTY = "empty"
    SEARCHING = "searching"
    POPULATED = "populated"


def escape_search(query: str) -> str:
    """Escape a search string for use inside a quoted filter literal.

    Single quotes are doubled; the ``*`` wildcard keeps its meaning.

    Examples:
        >>> escape_search("Account")
        'Account'
        >>> escape_search("Bob's")
        "Bob''s"
    """
    return query.replace("'", "''")


def item_state(remote_text: Optional[str], local_path: Optional[Path]) -> ItemState:
    """Compare remote content with the local file.

    Args:
        remote_text: Remote content, None if it was not fetched
        local_path: Local file, None if it does not exist

    Returns:
        REMOTE if there is no local file, NONE if the content was not
        fetched, otherwise SAME or DIFFER
    """
    if local_path is None:
        return ItemState.REMOTE
    if remote_text is None:
        return ItemState.NONE
    return ItemState.SAME if read_text(local_path) == remote_text else ItemState.DIFFER


class TreeSyncEngine:
    """In-memory tree of one object type, backed by remote search.

    Script-bearing types have two levels (object -> scripts, scripts fetched
    when an object is expanded); web templates have one.

    Examples:
        >>> engine = TreeSyncEngine(session, ObjectType.BUSCOMP)
        >>> engine.search("Account")
        >>> await engine.wait()
        >>> node = engine.get("Account")
        >>> await engine.expand(node)
        >>> await engine.select_leaf(node.children["BusComp_PreQuery"])
    """

    def __init__(
        self,
        session: SessionState,
        object_type: ObjectType,
        fetch_policy: str = FETCH_NAMES,
        local_extension: str = "js",
        debounce_delay: float = DEFAULT_DEBOUNCE_DELAY,
        open_file: Optional[Callable[[Path], Any]] = None,
    ):
        """Initialize the engine and register it with the session.

        Args:
            session: Session providing connection, workspace and client
            object_type: Object type shown by this tree
            fetch_policy: "names" to fetch script names on expansion,
                "full" to fetch and store the scripts right away
            local_extension: Extension of newly downloaded scripts
            debounce_delay: Quiet period before a search is sent (seconds)
            open_file: Called with the local path after a leaf is selected
        """
        self.session = session
        self.object_type = ObjectType(object_type)
        self.fetch_policy = fetch_policy
        self.local_extension = local_extension
        self.open_file = open_file
        self.debouncer = Debouncer(debounce_delay)
        self.nodes: dict[str, TreeNode] = {}
        self.status = TreeStatus.EMPTY
        self.query = ""
        self.last_error: Optional[SiebelError] = None
        self.on_change: EventEmitter["TreeSyncEngine"] = EventEmitter()
        self.on_error: EventEmitter[SiebelError] = EventEmitter()
        session.register_tree(self)

    @property
    def descriptor(self) -> ObjectDescriptor:
        return self.object_type.descriptor

    @property
    def folder(self) -> Path:
        """Local folder of this object type in the active workspace."""
        return self.session.type_folder(self.object_type)

    def roots(self) -> list[TreeNode]:
        return [self.nodes[name] for name in sorted(self.nodes, key=str.lower)]

    def get(self, name: str) -> Optional[TreeNode]:
        return self.nodes.get(name)

    def is_focused(self, connection: str, workspace: str) -> bool:
        """True if the tree shows the given connection and workspace."""
        return (
            self.session.connection == connection
            and self.session.workspace == workspace
        )

    def _changed(self) -> None:
        self.on_change.fire(self)

    def _report(self, error: SiebelError) -> None:
        self.last_error = error
        logger.error(f"{self.descriptor.label}: {error}")
        self.on_error.fire(error)

    def _settle_status(self) -> None:
        self.status = TreeStatus.POPULATED if self.nodes else TreeStatus.EMPTY

    # =========================
    # Search
    # =========================

    def search_params(self, query: str) -> dict[str, str]:
        fields = NAME_FIELD
        if not self.object_type.has_scripts:
            fields = f"{NAME_FIELD},{self.descriptor.field}"
        return {
            "fields": fields,
            "searchspec": f"Name LIKE '{escape_search(query)}*'",
        }

    def search(self, query: str) -> None:
        """Search remote objects whose name starts with ``query``.

        The search is debounced: only the last query submitted within the
        debounce delay is sent. An empty query sends nothing and shows the
        objects found on disk instead.

        Raises:
            SiebelNoConnectionError: If no connection is active
            SiebelNoWorkspaceError: If the connection has no workspace
        """
        self.session.require_workspace()
        self.query = query
        if not query:
            self.debouncer.cancel()
            self._populate_from_disk()
            return
        self.status = TreeStatus.SEARCHING
        self.debouncer.submit(self._run_search, query)

    async def wait(self) -> None:
        """Wait for the pending search, if any."""
        await self.debouncer.wait()

    async def _run_search(self, query: str) -> None:
        generation = self.session.generation
        try:
            path = self.session.resource_path(self.descriptor.parent)
            items = await self.session.client.read(path, self.search_params(query))
        except SiebelError as e:
            if self.session.is_current(generation) and query == self.query:
                self._settle_status()
                self._report(e)
            return
        if not self.session.is_current(generation) or query != self.query:
            logger.debug(f"Discarding stale search result for {query!r}")
            return
        try:
            self._apply_search(items)
        except SiebelError as e:
            # Unreadable local file; the previous tree stays in place
            self._settle_status()
            self._report(e)

    def _apply_search(self, items: list[dict[str, Any]]) -> None:
        folder = self.folder
        nodes: dict[str, TreeNode] = {}
        if self.object_type.has_scripts:
            for item in items:
                name = item.get(NAME_FIELD)
                if not name:
                    continue
                # An object folder means its scripts were downloaded
                on_disk = (folder / name).is_dir()
                nodes[name] = ObjectNode(
                    name=name,
                    on_disk=on_disk,
                    state=ItemState.SAME if on_disk else ItemState.REMOTE,
                )
        else:
            # Web templates come with their content, compare it right away
            local_files = webtemps_on_disk(folder)
            for item in items:
                name = item.get(NAME_FIELD)
                if not name:
                    continue
                local_file = local_files.get(name)
                nodes[name] = LeafNode(
                    kind=NodeKind.WEBTEMP,
                    name=name,
                    ext=WEBTEMP_EXTENSION,
                    on_disk=local_file is not None,
                    state=item_state(
                        item.get(self.descriptor.field),
                        local_file.path if local_file else None,
                    ),
                )
        self.nodes = nodes
        self.status = TreeStatus.POPULATED
        logger.debug(f"{self.descriptor.label}: {len(nodes)} object(s) found")
        self._changed()

    def _populate_from_disk(self) -> None:
        folder = self.folder
        nodes: dict[str, TreeNode] = {}
        if self.object_type.has_scripts:
            for name in subfolders(folder):
                nodes[name] = ObjectNode(name=name, on_disk=True)
        else:
            for name in webtemps_on_disk(folder):
                nodes[name] = LeafNode(
                    kind=NodeKind.WEBTEMP,
                    name=name,
                    ext=WEBTEMP_EXTENSION,
                    on_disk=True,
                )
        self.nodes = nodes
        self._settle_status()
        self._changed()

    # =========================
    # Expansion and selection
    # =========================

    def _object_node(self, node: Union[ObjectNode, str]) -> ObjectNode:
        if isinstance(node, str):
            found = self.nodes.get(node)
            if not isinstance(found, ObjectNode):
                raise KeyError(f"No {self.descriptor.label} named {node} in tree")
            return found
        return node

    def leaf_path(self, leaf: LeafNode) -> Path:
        """Local mirror path of a leaf in the active workspace.

        Raises:
            SiebelNoConnectionError: If no connection is active
            SiebelNoWorkspaceError: If the connection has no workspace
        """
        self.session.require_workspace()
        return encode(
            self.session.root,
            self.session.connection,
            self.session.workspace,
            self.object_type,
            leaf.parent,
            leaf.name,
            leaf.ext,
        )

    async def expand(self, node: Union[ObjectNode, str]) -> ObjectNode:
        """Fetch the scripts of an object and merge them into its children.

        Scripts only found on disk are kept as DISK children. With the
        "full" fetch policy every returned script is written to disk.

        Raises:
            ValueError: For web templates, which have no children
        """
        if not self.object_type.has_scripts:
            raise ValueError("Web templates have no children")
        node = self._object_node(node)
        generation = self.session.generation
        full = self.fetch_policy == FETCH_FULL
        fields = f"{NAME_FIELD},{self.descriptor.field}" if full else NAME_FIELD
        try:
            path = self.session.resource_path(
                self.descriptor.parent, node.name, self.descriptor.child
            )
            items = await self.session.client.read(path, {"fields": fields})
        except SiebelError as e:
            if self.session.is_current(generation):
                self._report(e)
            return node
        stale = self.nodes.get(node.name) is not node
        if stale or not self.session.is_current(generation):
            logger.debug(f"Discarding stale scripts of {node.name}")
            return node

        object_folder = self.folder / node.name
        try:
            children = self._merge_scripts(node, items, full)
        except SiebelError as e:
            self._report(e)
            return node

        node.children = children
        node.expanded = True
        node.on_disk = object_folder.is_dir()
        node.state = ItemState.SAME if node.has_any_on_disk else ItemState.REMOTE
        self._changed()
        return node

    def _merge_scripts(
        self, node: ObjectNode, items: list[dict[str, Any]], full: bool
    ) -> dict[str, LeafNode]:
        local_files = scripts_on_disk(self.folder / node.name)
        children: dict[str, LeafNode] = {}
        # Remote scripts first, keeping the extension of a local copy
        for item in items:
            name = item.get(NAME_FIELD)
            if not name:
                continue
            local_file: Optional[LocalFile] = local_files.get(name)
            leaf = LeafNode(
                kind=NodeKind.SCRIPT,
                name=name,
                parent=node.name,
                ext=local_file.ext if local_file else self.local_extension,
                on_disk=local_file is not None,
            )
            text = item.get(self.descriptor.field) if full else None
            if full and text is not None:
                write_text(self.leaf_path(leaf), text)
                leaf.on_disk = True
                leaf.state = ItemState.SAME
            else:
                leaf.state = item_state(text, local_file.path if local_file else None)
            children[name] = leaf
        # Then scripts that only exist locally
        for name, local_file in local_files.items():
            if name in children:
                continue
            children[name] = LeafNode(
                kind=NodeKind.SCRIPT,
                name=name,
                parent=node.name,
                ext=local_file.ext,
                on_disk=True,
                state=ItemState.DISK,
            )
        return children

    async def select_leaf(self, leaf: LeafNode) -> Optional[Path]:
        """Download a script or web template and open it.

        The local file is overwritten unconditionally; asking the user
        whether to overwrite an existing file is up to the caller.

        Returns:
            Local path of the file, None if nothing was written
        """
        generation = self.session.generation
        field = self.descriptor.field
        try:
            if leaf.kind == NodeKind.SCRIPT:
                path = self.session.resource_path(
                    self.descriptor.parent,
                    leaf.parent,
                    self.descriptor.child,
                    leaf.name,
                )
            else:
                path = self.session.resource_path(self.descriptor.parent, leaf.name)
            items = await self.session.client.read(
                path, {"fields": f"{NAME_FIELD},{field}"}
            )
        except SiebelError as e:
            if self.session.is_current(generation):
                self._report(e)
            return None
        if not self.session.is_current(generation):
            logger.debug(f"Discarding stale content of {leaf.name}")
            return None

        text = items[0].get(field) if items else None
        if text is None:
            logger.warning(
                f"{self.descriptor.label} {leaf.name} was not found remotely"
            )
            return None
        try:
            local_path = write_text(self.leaf_path(leaf), text)
        except SiebelError as e:
            self._report(e)
            return None
        leaf.on_disk = True
        leaf.state = ItemState.SAME
        # The owning object now has a local folder
        parent = self.nodes.get(leaf.parent) if leaf.parent else None
        if isinstance(parent, ObjectNode):
            parent.on_disk = True
            parent.state = ItemState.SAME
        self._changed()
        if self.open_file is not None:
            self.open_file(local_path)
        return local_path

    # =========================
    # Invalidation and markers
    # =========================

    def clear(self) -> None:
        """Drop the tree; its content belongs to another workspace."""
        self.debouncer.cancel()
        self.nodes = {}
        self.status = TreeStatus.EMPTY
        self._changed()

    def set_item_state(self, name: str, state: ItemState, parent: str = "") -> bool:
        """Update the marker of a leaf after a pull, push or compare.

        Returns:
            True if the leaf is in the tree
        """
        if self.object_type.has_scripts:
            node = self.nodes.get(parent)
            if not isinstance(node, ObjectNode):
                return False
            leaf = node.children.get(name)
            if leaf is None:
                if not node.expanded:
                    return False
                leaf = LeafNode(
                    kind=NodeKind.SCRIPT,
                    name=name,
                    parent=parent,
                    ext=self.local_extension,
                )
                node.children[name] = leaf
        else:
            found = self.nodes.get(name)
            if not isinstance(found, LeafNode):
                return False
            leaf = found
        leaf.state = state
        leaf.on_disk = state != ItemState.REMOTE
        self._changed()
        return True


def create_engines(
    session: SessionState,
    fetch_policy: str = FETCH_NAMES,
    local_extension: str = "js",
    debounce_delay: float = DEFAULT_DEBOUNCE_DELAY,
    open_file: Optional[Callable[[Path], Any]] = None,
) -> dict[ObjectType, TreeSyncEngine]:
    """Create one engine per object type, all bound to the session."""
    return {
        object_type: TreeSyncEngine(
            session,
            object_type,
            fetch_policy=fetch_policy,
            local_extension=local_extension,
            debounce_delay=debounce_delay,
            open_file=open_file,
        )
        for object_type in ObjectType
    }
