"""Local mirror scanning and file access."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from ..exceptions import SiebelLocalFileError
from ..metadata import SCRIPT_EXTENSIONS, WEBTEMP_EXTENSION

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LocalFile:
    """A mirrored script or web template found on disk."""

    path: Path
    """Absolute path to the file"""

    name: str
    """File name without extension"""

    ext: str
    """Extension without the dot"""

    @classmethod
    def from_path(cls, file_path: Path) -> "LocalFile":
        name, _, ext = file_path.name.rpartition(".")
        return cls(path=file_path, name=name, ext=ext)


def _files_with_extension(
    folder: Path, is_valid: Callable[[str], bool]
) -> dict[str, LocalFile]:
    files: dict[str, LocalFile] = {}
    if not folder.is_dir():
        return files
    try:
        for item in sorted(folder.iterdir()):
            if not item.is_file():
                continue
            local_file = LocalFile.from_path(item)
            if not local_file.name or not is_valid(local_file.ext):
                continue
            files[local_file.name] = local_file
    except PermissionError as e:
        logger.warning(f"Permission denied: {e}")
    return files


def scripts_on_disk(folder: Path) -> dict[str, LocalFile]:
    """Scripts (.js/.ts) directly inside an object folder, keyed by name."""
    return _files_with_extension(folder, lambda ext: ext in SCRIPT_EXTENSIONS)


def webtemps_on_disk(folder: Path) -> dict[str, LocalFile]:
    """Web templates (.html) directly inside the webtemp folder."""
    return _files_with_extension(folder, lambda ext: ext == WEBTEMP_EXTENSION)


def subfolders(folder: Path) -> list[str]:
    """Names of the sub-folders, e.g. object folders of a type folder."""
    if not folder.is_dir():
        return []
    return sorted(item.name for item in folder.iterdir() if item.is_dir())


def read_text(path: Path) -> Optional[str]:
    """Read a mirrored file, None if it does not exist.

    Raises:
        SiebelLocalFileError: If the file exists but cannot be read as UTF-8
    """
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError) as e:
        raise SiebelLocalFileError(str(path), str(e)) from e


def write_text(path: Path, content: str) -> Path:
    """Write a mirrored file, creating its folders.

    Raises:
        SiebelLocalFileError: If the folder or the file cannot be written
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    except OSError as e:
        raise SiebelLocalFileError(str(path), str(e)) from e
    logger.debug(f"Wrote {path}")
    return path
