"""Settings storage for pysiebel.

Settings are kept as JSON in ``~/.config/pysiebel/settings.json``. The
directory can be moved with the ``PYSIEBEL_CONFIG_DIR`` environment variable
and the mirror root with ``PYSIEBEL_WORKSPACE``.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

from .exceptions import SiebelConfigError
from .metadata import PAGE_SIZES, SCRIPT_EXTENSIONS

logger = logging.getLogger(__name__)

SETTINGS_FILE_NAME = "settings.json"

FETCH_NAMES = "names"
FETCH_FULL = "full"

DEFAULTS: dict[str, Any] = {
    "connections": [],
    "defaultConnectionName": "",
    "maxPageSize": 100,
    "localFileExtension": "js",
    "defaultScriptFetching": FETCH_NAMES,
    "workspaceFolder": "",
}


class Config:
    """Key/value settings persisted in a JSON file."""

    def __init__(self, config_dir: Optional[Path] = None):
        """Initialize settings storage.

        Args:
            config_dir: Directory holding settings.json. Defaults to
                        $PYSIEBEL_CONFIG_DIR or ~/.config/pysiebel
        """
        if config_dir is None:
            env_dir = os.environ.get("PYSIEBEL_CONFIG_DIR")
            config_dir = (
                Path(env_dir) if env_dir else Path.home() / ".config" / "pysiebel"
            )
        self.config_dir = Path(config_dir)
        self._data: Optional[dict[str, Any]] = None
        self._mtime: Optional[float] = None

    def get_config_path(self) -> Path:
        return self.config_dir / SETTINGS_FILE_NAME

    def _file_mtime(self) -> Optional[float]:
        try:
            return self.get_config_path().stat().st_mtime
        except OSError:
            return None

    def load(self) -> dict[str, Any]:
        """(Re)read the settings file."""
        path = self.get_config_path()
        data: dict[str, Any] = {}
        if path.exists():
            try:
                with open(path, encoding="utf-8") as f:
                    data = json.load(f)
            except json.JSONDecodeError as e:
                raise SiebelConfigError(f"Invalid settings file {path}: {e}") from e
            if not isinstance(data, dict):
                raise SiebelConfigError(f"Invalid settings file {path}")
        self._data = {**DEFAULTS, **data}
        self._mtime = self._file_mtime()
        logger.debug(f"Loaded settings from {path}")
        return self._data

    @property
    def data(self) -> dict[str, Any]:
        if self._data is None:
            return self.load()
        return self._data

    def changed_since_load(self) -> bool:
        """True when the file was modified outside of this process."""
        return self._file_mtime() != self._mtime

    def get(self, key: str) -> Any:
        return self.data.get(key, DEFAULTS.get(key))

    def set(self, key: str, value: Any) -> None:
        """Update one key and write the file."""
        self.data[key] = value
        self.save()

    def save(self) -> None:
        """Write the settings file, replacing the previous one in a single step."""
        # Loads the existing file first when nothing was read yet
        data = self.data
        path = self.get_config_path()
        self.config_dir.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_name(f".{SETTINGS_FILE_NAME}.tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_path, path)
        self._mtime = self._file_mtime()
        logger.debug(f"Saved settings to {path}")

    @property
    def connections(self) -> list[dict[str, Any]]:
        return list(self.get("connections") or [])

    @property
    def default_connection_name(self) -> str:
        return self.get("defaultConnectionName") or ""

    @property
    def max_page_size(self) -> int:
        value = self.get("maxPageSize")
        if value not in PAGE_SIZES:
            logger.warning(f"Invalid maxPageSize {value}, using 100")
            return 100
        return int(value)

    @property
    def local_file_extension(self) -> str:
        value = self.get("localFileExtension")
        if value not in SCRIPT_EXTENSIONS:
            return "js"
        return str(value)

    @property
    def default_script_fetching(self) -> str:
        value = self.get("defaultScriptFetching")
        return FETCH_FULL if value == FETCH_FULL else FETCH_NAMES

    @property
    def workspace_folder(self) -> Path:
        """Root folder of the local mirror."""
        env_root = os.environ.get("PYSIEBEL_WORKSPACE")
        if env_root:
            return Path(env_root)
        value = self.get("workspaceFolder")
        return Path(value) if value else Path.cwd()

    def is_configured(self) -> bool:
        return len(self.connections) > 0


config = Config()
