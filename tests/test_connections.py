"""Unit tests for settings storage and the connection registry."""

import json
import os

import pytest

from pysiebel.config import FETCH_FULL, FETCH_NAMES, Config
from pysiebel.connections import ConnectionRegistry
from pysiebel.exceptions import SiebelConfigError, SiebelConnectionNotFoundError
from pysiebel.models import Connection, WorkspaceInfo


class TestConfig:
    """Tests for the settings file."""

    def test_defaults_without_file(self, tmp_path):
        cfg = Config(tmp_path)
        assert cfg.connections == []
        assert cfg.default_connection_name == ""
        assert cfg.max_page_size == 100
        assert cfg.local_file_extension == "js"
        assert cfg.default_script_fetching == FETCH_NAMES
        assert not cfg.is_configured()

    def test_config_dir_from_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("PYSIEBEL_CONFIG_DIR", str(tmp_path / "custom"))
        assert Config().get_config_path() == tmp_path / "custom" / "settings.json"

    def test_save_and_reload(self, tmp_path):
        cfg = Config(tmp_path)
        cfg.set("maxPageSize", 500)
        cfg.set("defaultScriptFetching", FETCH_FULL)
        reloaded = Config(tmp_path)
        assert reloaded.max_page_size == 500
        assert reloaded.default_script_fetching == FETCH_FULL

    def test_invalid_values_fall_back(self, tmp_path):
        (tmp_path / "settings.json").write_text(
            json.dumps({"maxPageSize": 7, "localFileExtension": "py"})
        )
        cfg = Config(tmp_path)
        assert cfg.max_page_size == 100
        assert cfg.local_file_extension == "js"

    def test_invalid_file_raises(self, tmp_path):
        (tmp_path / "settings.json").write_text("{not json")
        with pytest.raises(SiebelConfigError, match="Invalid settings file"):
            Config(tmp_path).load()

    def test_workspace_folder(self, tmp_path, monkeypatch):
        monkeypatch.delenv("PYSIEBEL_WORKSPACE", raising=False)
        cfg = Config(tmp_path)
        cfg.set("workspaceFolder", str(tmp_path / "mirror"))
        assert cfg.workspace_folder == tmp_path / "mirror"
        monkeypatch.setenv("PYSIEBEL_WORKSPACE", str(tmp_path / "other"))
        assert cfg.workspace_folder == tmp_path / "other"

    def test_save_before_load_keeps_existing_settings(self, tmp_path):
        (tmp_path / "settings.json").write_text(
            json.dumps({"maxPageSize": 500, "workspaceFolder": "/mirror"})
        )
        Config(tmp_path).save()
        data = json.loads((tmp_path / "settings.json").read_text())
        assert data["maxPageSize"] == 500
        assert data["workspaceFolder"] == "/mirror"
        assert sorted(p.name for p in tmp_path.iterdir()) == ["settings.json"]

    def test_changed_since_load(self, tmp_path):
        cfg = Config(tmp_path)
        cfg.save()
        assert not cfg.changed_since_load()
        path = cfg.get_config_path()
        stat = path.stat()
        os.utime(path, (stat.st_atime, stat.st_mtime + 10))
        assert cfg.changed_since_load()


class TestConnectionModel:
    def test_settings_round_trip(self, dev_connection):
        data = dev_connection.to_dict()
        assert data["defaultWorkspace"] == "dev_ws"
        assert data["restWorkspaces"] is False
        assert Connection.from_dict(data) == dev_connection

    def test_from_partial_dict(self):
        connection = Connection.from_dict({"name": "X", "url": "https://x"})
        assert connection.workspaces == []
        assert connection.default_workspace == ""


class TestConnectionRegistry:
    """Tests for ConnectionRegistry."""

    def test_list_and_resolve(self, registry):
        assert registry.names() == ["DEV", "TEST"]
        assert registry.resolve("TEST").workspaces == ["test_ws"]

    def test_resolve_unknown_raises(self, registry):
        with pytest.raises(SiebelConnectionNotFoundError, match="PROD"):
            registry.resolve("PROD")

    def test_add_inserts_first_and_persists(self, registry, settings):
        registry.add(Connection("PROD", "https://prod", "sadmin", "pw"))
        assert registry.names() == ["PROD", "DEV", "TEST"]
        assert Config(settings.config_dir).connections[0]["name"] == "PROD"

    def test_add_duplicate_raises(self, registry):
        with pytest.raises(SiebelConfigError, match="already exists"):
            registry.add(Connection("DEV", "https://other", "u", "p"))

    def test_add_requires_fields(self, registry):
        with pytest.raises(SiebelConfigError, match="required"):
            registry.add(Connection("NEW", "", "u", "p"))

    def test_listeners_are_notified(self, registry):
        calls = []
        registry.on_change(lambda: calls.append(True))
        registry.add(Connection("PROD", "https://prod", "sadmin", "pw"))
        assert calls

    def test_remove_clears_default(self, registry, settings):
        registry.set_default("DEV")
        registry.remove("DEV")
        assert registry.names() == ["TEST"]
        assert registry.default_name == ""

    def test_set_default_unknown_raises(self, registry):
        with pytest.raises(SiebelConnectionNotFoundError):
            registry.set_default("PROD")

    def test_update(self, registry):
        connection = registry.resolve("DEV")
        connection.url = "https://new-dev"
        registry.update(connection)
        registry.refresh()
        assert registry.resolve("DEV").url == "https://new-dev"

    def test_add_workspace_first_becomes_default(self, registry):
        registry.add(Connection("PROD", "https://prod", "sadmin", "pw"))
        registry.add_workspace("PROD", "prod_ws")
        registry.add_workspace("PROD", "hotfix_ws")
        connection = registry.resolve("PROD")
        assert connection.workspaces == ["hotfix_ws", "prod_ws"]
        assert connection.default_workspace == "prod_ws"

    def test_remove_default_workspace_falls_back_to_first(self, registry):
        connection = registry.remove_workspace("DEV", "dev_ws")
        assert connection.workspaces == ["main_ws"]
        assert connection.default_workspace == "main_ws"
        connection = registry.remove_workspace("DEV", "main_ws")
        assert connection.default_workspace == ""

    def test_set_default_workspace_must_exist(self, registry):
        with pytest.raises(SiebelConfigError):
            registry.set_default_workspace("DEV", "unknown_ws")
        registry.set_default_workspace("DEV", "main_ws")
        assert registry.resolve("DEV").default_workspace == "main_ws"

    def test_refresh_if_changed(self, registry, settings):
        registry.list()
        assert registry.refresh_if_changed() is False
        other = Config(settings.config_dir)
        other.set("connections", [Connection("ONLY", "https://o", "u", "p").to_dict()])
        path = settings.get_config_path()
        stat = path.stat()
        os.utime(path, (stat.st_atime, stat.st_mtime + 10))
        assert registry.refresh_if_changed() is True
        assert registry.names() == ["ONLY"]


class TestWorkspacesFor:
    """Tests for workspace derivation."""

    @pytest.mark.asyncio
    async def test_static_list_is_returned_unchanged(self, registry, clients):
        assert await registry.workspaces_for(registry.resolve("DEV")) == [
            "dev_ws",
            "main_ws",
        ]
        assert clients == {}

    @pytest.mark.asyncio
    async def test_remote_list_keeps_remote_order(
        self, settings, client_factory, clients
    ):
        remote = Connection(
            "REMOTE", "https://remote", "u", "p", rest_workspaces=True
        )
        client_factory(remote).workspaces = [
            WorkspaceInfo("ws_b"),
            WorkspaceInfo("ws_a"),
        ]
        registry = ConnectionRegistry(settings, client_factory=client_factory)
        assert await registry.workspaces_for(remote) == ["ws_b", "ws_a"]
        assert clients["REMOTE"].closed == 1
