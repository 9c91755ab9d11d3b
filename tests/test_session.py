"""Unit tests for the active connection/workspace selection."""

import asyncio

import pytest

from pysiebel.config import Config
from pysiebel.connections import ConnectionRegistry
from pysiebel.exceptions import (
    SiebelAPIError,
    SiebelConnectionNotFoundError,
    SiebelNoConnectionError,
    SiebelNoWorkspaceError,
)
from pysiebel.metadata import ObjectType
from pysiebel.models import Connection, WorkspaceInfo
from pysiebel.session import SessionState, choose_workspace
from pysiebel.tree import TreeSyncEngine


class RecordingTree:
    def __init__(self):
        self.cleared = 0

    def clear(self):
        self.cleared += 1


@pytest.fixture
def session(registry, root):
    return SessionState(registry, root)


class TestChooseWorkspace:
    """Tests for the workspace fallback chain."""

    def test_default_used_when_nothing_active(self):
        assert choose_workspace("", ["A", "B"], "B") == "B"

    def test_current_kept_when_still_available(self):
        assert choose_workspace("A", ["A", "B"], "B") == "A"

    def test_first_used_when_default_missing(self):
        assert choose_workspace("C", ["A", "B"], "X") == "A"

    def test_empty_set(self):
        assert choose_workspace("A", [], "A") == ""


class TestSelectConnection:
    """Tests for connection transitions."""

    @pytest.mark.asyncio
    async def test_activate_uses_first_connection(self, session):
        selection = await session.activate()
        assert selection.connection == "DEV"
        assert selection.workspace == "dev_ws"
        assert selection.connections == ["DEV", "TEST"]
        assert selection.workspaces == ["dev_ws", "main_ws"]

    @pytest.mark.asyncio
    async def test_activate_uses_remembered_default(self, registry, session):
        registry.set_default("TEST")
        selection = await session.activate()
        assert selection.connection == "TEST"
        assert selection.workspace == "test_ws"

    @pytest.mark.asyncio
    async def test_select_unknown_connection_raises(self, session):
        await session.activate()
        with pytest.raises(SiebelConnectionNotFoundError):
            await session.select_connection("PROD")
        assert session.connection == "DEV"

    @pytest.mark.asyncio
    async def test_selection_event_carries_snapshot(self, session):
        events = []
        session.on_selection_changed.subscribe(events.append)
        await session.activate()
        await session.select_connection("TEST")
        assert [e.connection for e in events] == ["DEV", "TEST"]
        assert events[-1].to_dict() == {
            "connections": ["DEV", "TEST"],
            "connection": "TEST",
            "workspaces": ["test_ws"],
            "workspace": "test_ws",
            "type": "service",
        }

    @pytest.mark.asyncio
    async def test_transition_bumps_generation_and_clears_trees(self, session):
        tree = RecordingTree()
        session.register_tree(tree)
        await session.activate()
        generation = session.generation
        await session.select_connection("TEST")
        assert session.generation == generation + 1
        assert not session.is_current(generation)
        assert tree.cleared == 2

    @pytest.mark.asyncio
    async def test_old_client_is_closed(self, session, clients):
        await session.activate()
        dev_client = session.client
        await session.select_connection("TEST")
        assert dev_client.closed == 1
        assert session.client is clients["TEST"]

    @pytest.mark.asyncio
    async def test_pending_read_finishes_before_old_client_closes(
        self, session, clients
    ):
        await session.activate()
        dev_client = session.client
        dev_client.responses["workspace/dev_ws/Applet"] = [{"Name": "A"}]
        dev_client.gate = asyncio.Event()
        read = asyncio.create_task(dev_client.read("workspace/dev_ws/Applet"))
        while not dev_client.pending:
            await asyncio.sleep(0.001)

        await session.select_connection("TEST")
        assert dev_client.closed == 0
        assert session.client is clients["TEST"]

        dev_client.gate.set()
        assert await read == [{"Name": "A"}]
        assert dev_client.closed == 1

    @pytest.mark.asyncio
    async def test_unknown_name_keeps_pending_selection(
        self, settings, client_factory
    ):
        remote = Connection("REMOTE", "https://r", "u", "p", rest_workspaces=True)
        static = Connection("STATIC", "https://s", "u", "p", ["ws"], "ws")
        settings.set("connections", [static.to_dict(), remote.to_dict()])
        started = asyncio.Event()
        release = asyncio.Event()

        async def slow_listing(editable_only=True):
            started.set()
            await release.wait()
            return [WorkspaceInfo("remote_ws")]

        client_factory(remote).get_workspaces = slow_listing
        session = SessionState(
            ConnectionRegistry(settings, client_factory=client_factory),
            settings.config_dir,
        )
        await session.activate()
        pending = asyncio.create_task(session.select_connection("REMOTE"))
        await started.wait()

        with pytest.raises(SiebelConnectionNotFoundError):
            await session.select_connection("TYPO")
        release.set()
        selection = await pending

        assert selection.connection == "REMOTE"
        assert session.connection == "REMOTE"
        assert session.workspace == "remote_ws"

    @pytest.mark.asyncio
    async def test_vanished_remote_workspaces_disable_search(
        self, settings, client_factory, clients
    ):
        remote = Connection(
            "REMOTE", "https://r", "u", "p", default_workspace="B", rest_workspaces=True
        )
        settings.set("connections", [remote.to_dict()])
        client_factory(remote).workspaces = [WorkspaceInfo("A"), WorkspaceInfo("B")]
        session = SessionState(
            ConnectionRegistry(settings, client_factory=client_factory),
            settings.config_dir,
        )
        engine = TreeSyncEngine(session, ObjectType.APPLET, debounce_delay=0)
        selection = await session.activate()
        assert selection.workspace == "B"

        clients["REMOTE"].workspaces = []
        selection = await session.handle_settings_changed()

        assert selection.connection == "REMOTE"
        assert selection.workspaces == []
        assert selection.workspace == ""
        with pytest.raises(SiebelNoWorkspaceError):
            engine.search("Acc")
        assert clients["REMOTE"].reads == []

    @pytest.mark.asyncio
    async def test_workspace_remote_failure_disables_search(
        self, settings, client_factory
    ):
        remote = Connection("REMOTE", "https://r", "u", "p", rest_workspaces=True)
        settings.set("connections", [remote.to_dict()])

        async def failing(editable_only=True):
            raise SiebelAPIError("boom", 500)

        client_factory(remote).get_workspaces = failing
        session = SessionState(
            ConnectionRegistry(settings, client_factory=client_factory),
            settings.config_dir,
        )
        selection = await session.activate()
        assert selection.connection == "REMOTE"
        assert selection.workspace == ""
        with pytest.raises(SiebelNoWorkspaceError):
            session.require_workspace()

    @pytest.mark.asyncio
    async def test_current_workspace_kept_across_connections(
        self, registry, session
    ):
        registry.add_workspace("TEST", "main_ws")
        await session.activate()
        session.select_workspace("main_ws")
        selection = await session.select_connection("TEST")
        assert selection.workspace == "main_ws"


class TestNoConnection:
    """Tests for the state without any configured connection."""

    @pytest.mark.asyncio
    async def test_empty_registry(self, tmp_path, client_factory):
        registry = ConnectionRegistry(Config(tmp_path / "cfg"), client_factory)
        session = SessionState(registry, tmp_path)
        selection = await session.activate()
        assert selection.connection == ""
        assert selection.workspaces == []
        assert not session.has_connection
        with pytest.raises(SiebelNoConnectionError):
            session.require_workspace()
        with pytest.raises(SiebelNoConnectionError):
            session.client

    @pytest.mark.asyncio
    async def test_added_connection_is_selected(self, tmp_path, client_factory):
        settings = Config(tmp_path / "cfg")
        registry = ConnectionRegistry(settings, client_factory)
        session = SessionState(registry, tmp_path)
        await session.activate()

        other = ConnectionRegistry(Config(tmp_path / "cfg"), client_factory)
        other.add(Connection("NEW", "https://new", "u", "p", ["ws"], "ws"))
        selection = await session.handle_settings_changed()
        assert selection.connection == "NEW"
        assert selection.workspace == "ws"

    @pytest.mark.asyncio
    async def test_removed_active_connection_falls_back(self, registry, session):
        await session.activate()
        registry.remove("DEV")
        selection = await session.handle_settings_changed()
        assert selection.connection == "TEST"


class TestWorkspaceAndType:
    """Tests for workspace and object type transitions."""

    @pytest.mark.asyncio
    async def test_select_workspace(self, session, root):
        tree = RecordingTree()
        session.register_tree(tree)
        await session.activate()
        generation = session.generation
        selection = session.select_workspace("main_ws")
        assert selection.workspace == "main_ws"
        assert session.generation == generation + 1
        assert session.folder == root / "DEV" / "main_ws"
        assert session.resource_path("Applet") == "workspace/main_ws/Applet"
        assert tree.cleared == 2

    @pytest.mark.asyncio
    async def test_select_object_type_keeps_trees(self, session, root):
        tree = RecordingTree()
        session.register_tree(tree)
        await session.activate()
        generation = session.generation
        selection = session.select_object_type(ObjectType.WEBTEMP)
        assert selection.object_type == ObjectType.WEBTEMP
        assert session.generation == generation
        assert tree.cleared == 1
        assert session.type_folder(ObjectType.WEBTEMP) == root / "DEV" / "dev_ws" / (
            "webtemp"
        )
