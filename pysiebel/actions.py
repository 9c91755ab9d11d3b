"""Pull, push and compare actions on mirrored files."""

import difflib
import inspect
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional

from .api import SiebelClient
from .connections import ConnectionRegistry
from .exceptions import (
    MalformedPathError,
    NameValidationError,
    PushAllError,
    SiebelAPIError,
    SiebelConnectionNotFoundError,
    SiebelFileNotFoundError,
)
from .metadata import (
    NAME_FIELD,
    PROGRAM_LANGUAGE,
    PROGRAM_LANGUAGE_FIELD,
    ObjectType,
    base_script,
)
from .models import Connection, WorkspaceInfo
from .paths import MirrorPath, decode
from .tree.engine import TreeSyncEngine
from .tree.nodes import ItemState
from .tree.scanner import read_text, scripts_on_disk, write_text
from .validation import is_new_script_name_valid, is_script_name_valid, validate_scripts

logger = logging.getLogger(__name__)

COMPARE_FOLDER = "compare"


class PullStatus(str, Enum):
    PULLED = "pulled"
    """Remote content was written to the local file"""

    ABSENT = "absent"
    """Remote object or field is missing, nothing was written"""


class CompareStatus(str, Enum):
    SAME = "same"
    DIFFER = "differ"
    ABSENT = "absent"


@dataclass
class PullResult:
    status: PullStatus
    path: Path


@dataclass
class ComparisonResult:
    """Outcome of comparing a local file with a workspace."""

    status: CompareStatus
    workspace: str
    local_path: Path
    staged_path: Optional[Path] = None
    """Remote content written for a side-by-side diff"""

    diff: list[str] = field(default_factory=list)
    """Unified diff from the remote content to the local file"""


@dataclass(frozen=True)
class Capabilities:
    """Actions available for a file."""

    pull: bool = False
    push: bool = False
    push_all: bool = False
    compare: bool = False
    new_script: bool = False


class SyncActions:
    """Actions triggered from an open file or a tree node.

    The remote object is always derived from the file location, so the file
    can belong to another connection or workspace than the active one.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        root: Path,
        trees: Optional[dict[ObjectType, TreeSyncEngine]] = None,
        local_extension: str = "js",
    ):
        """Initialize actions.

        Args:
            registry: Connection registry
            root: Root folder of the local mirror
            trees: Tree engines whose markers are updated after an action
            local_extension: Extension of newly created scripts
        """
        self.registry = registry
        self.root = Path(root)
        self.trees = trees or {}
        self.local_extension = local_extension

    def _client(self, connection: Connection) -> SiebelClient:
        return self.registry.client_factory(connection)

    # =========================
    # Identity
    # =========================

    def resolve(self, path: Path) -> tuple[MirrorPath, Connection]:
        """Decode a local path and look up its connection.

        Raises:
            MalformedPathError: If the file is not in the mirror layout
            SiebelConnectionNotFoundError: If the connection is not configured
        """
        mirror_path = decode(Path(path).absolute(), self.root.absolute())
        return mirror_path, self.registry.resolve(mirror_path.connection)

    def capabilities(self, path: Path) -> Capabilities:
        """Actions enabled for a file; nothing is enabled for unknown files."""
        try:
            mirror_path, _ = self.resolve(path)
        except (MalformedPathError, SiebelConnectionNotFoundError) as e:
            logger.debug(f"No actions for {path}: {e}")
            return Capabilities()
        return Capabilities(
            pull=True,
            push=True,
            push_all=mirror_path.is_script,
            compare=True,
            new_script=mirror_path.is_script,
        )

    def _mark(self, mirror_path: MirrorPath, state: ItemState) -> None:
        tree = self.trees.get(mirror_path.object_type)
        if tree is None:
            return
        if tree.is_focused(mirror_path.connection, mirror_path.workspace):
            tree.set_item_state(mirror_path.name, state, mirror_path.parent)

    async def _fetch_field(
        self, connection: Connection, mirror_path: MirrorPath, workspace: str
    ) -> Optional[str]:
        async with self._client(connection) as client:
            items = await client.read(
                mirror_path.workspace_path(workspace),
                {"fields": f"{NAME_FIELD},{mirror_path.field}"},
            )
        text = items[0].get(mirror_path.field) if items else None
        return text or None

    # =========================
    # Pull / push
    # =========================

    async def pull(self, path: Path) -> PullResult:
        """Overwrite a local file with its remote content.

        Missing remote content is reported as ABSENT and the local file is
        left untouched.

        Raises:
            SiebelAPIError: If the remote read fails
        """
        mirror_path, connection = self.resolve(path)
        local_path = mirror_path.local_path(self.root)
        text = await self._fetch_field(connection, mirror_path, mirror_path.workspace)
        if text is None:
            logger.warning(f"{mirror_path.remote_path} was not found remotely")
            return PullResult(PullStatus.ABSENT, local_path)
        write_text(local_path, text)
        self._mark(mirror_path, ItemState.SAME)
        logger.debug(f"Pulled {mirror_path.remote_path}")
        return PullResult(PullStatus.PULLED, local_path)

    @staticmethod
    def build_payload(mirror_path: MirrorPath, text: str) -> dict[str, Any]:
        """Build the PUT body of a script or web template.

        Raises:
            NameValidationError: If a script does not declare its function
        """
        payload: dict[str, Any] = {
            NAME_FIELD: mirror_path.name,
            mirror_path.field: text,
        }
        if mirror_path.is_script:
            if not is_script_name_valid(mirror_path.name, text):
                raise NameValidationError([mirror_path.name])
            payload[PROGRAM_LANGUAGE_FIELD] = PROGRAM_LANGUAGE
        return payload

    async def push(
        self, path: Path, save: Optional[Callable[[], Any]] = None
    ) -> None:
        """Upload a local file, overwriting the remote object.

        Args:
            path: Local mirrored file
            save: Flushes the editor buffer to disk before reading (may be async)

        Raises:
            NameValidationError: Before any remote call, for misnamed scripts
            SiebelFileNotFoundError: If the file does not exist
            SiebelLocalFileError: If the file cannot be read as UTF-8
            SiebelAPIError: If the remote write fails
        """
        mirror_path, connection = self.resolve(path)
        if save is not None:
            result = save()
            if inspect.isawaitable(result):
                await result
        local_path = mirror_path.local_path(self.root)
        text = read_text(local_path)
        if text is None:
            raise SiebelFileNotFoundError(str(local_path))
        payload = self.build_payload(mirror_path, text)
        async with self._client(connection) as client:
            await client.write(mirror_path.workspace_path(), payload)
        self._mark(mirror_path, ItemState.SAME)
        logger.debug(f"Pushed {mirror_path.remote_path}")

    def _folder_scripts(self, object_folder: Path) -> list[MirrorPath]:
        mirror_paths = [
            decode(local_file.path.absolute(), self.root.absolute())
            for local_file in scripts_on_disk(Path(object_folder)).values()
        ]
        return mirror_paths

    async def push_all(self, object_folder: Path) -> list[str]:
        """Push every script of an object folder.

        All scripts are validated before the first write; the writes are
        sequential and stop at the first failure.

        Returns:
            Names of the pushed scripts, in push order

        Raises:
            NameValidationError: Listing every invalid script, nothing pushed
            PushAllError: If a write failed after some scripts were pushed
        """
        mirror_paths = self._folder_scripts(object_folder)
        if not mirror_paths:
            return []
        connection = self.registry.resolve(mirror_paths[0].connection)
        texts = {
            mirror_path.name: read_text(mirror_path.local_path(self.root)) or ""
            for mirror_path in mirror_paths
        }
        validate_scripts(texts)

        pushed: list[str] = []
        async with self._client(connection) as client:
            for mirror_path in mirror_paths:
                payload = self.build_payload(mirror_path, texts[mirror_path.name])
                try:
                    await client.write(mirror_path.workspace_path(), payload)
                except SiebelAPIError as e:
                    raise PushAllError(
                        pushed, mirror_path.name, len(mirror_paths), e
                    ) from e
                pushed.append(mirror_path.name)
                self._mark(mirror_path, ItemState.SAME)
        logger.debug(f"Pushed {len(pushed)} script(s) from {object_folder}")
        return pushed

    async def pull_missing(self, object_folder: Path) -> list[Path]:
        """Download the scripts of an object that are not on disk yet."""
        folder = Path(object_folder)
        folder_path = decode(
            (folder / f"placeholder.{self.local_extension}").absolute(),
            self.root.absolute(),
        )
        connection = self.registry.resolve(folder_path.connection)
        descriptor = folder_path.object_type.descriptor
        on_disk = scripts_on_disk(folder)
        async with self._client(connection) as client:
            items = await client.read(
                SiebelClient.workspace_path(
                    folder_path.workspace,
                    descriptor.parent,
                    folder_path.parent,
                    descriptor.child,
                ),
                {"fields": f"{NAME_FIELD},{descriptor.field}"},
            )
        written: list[Path] = []
        for item in items:
            name, text = item.get(NAME_FIELD), item.get(descriptor.field)
            if not name or not text or name in on_disk:
                continue
            mirror_path = replace(folder_path, name=name)
            written.append(write_text(mirror_path.local_path(self.root), text))
            self._mark(mirror_path, ItemState.SAME)
        return written

    def new_script(self, object_folder: Path, name: str) -> Path:
        """Create a script file from its standard template.

        Raises:
            NameValidationError: If the name is not a valid function name
            FileExistsError: If a script with that name is already on disk
        """
        folder = Path(object_folder)
        if not is_new_script_name_valid(name):
            raise NameValidationError([name])
        local_path = folder / f"{name}.{self.local_extension}"
        # Raises MalformedPathError outside of an object folder
        decode(local_path.absolute(), self.root.absolute())
        if name in scripts_on_disk(folder):
            raise FileExistsError(f"Script already exists: {name}")
        return write_text(local_path, base_script(name))

    # =========================
    # Compare
    # =========================

    async def compare_candidates(self, path: Path) -> list[WorkspaceInfo]:
        """Workspaces a file can be compared against, active one excluded."""
        mirror_path, connection = self.resolve(path)
        if connection.rest_workspaces:
            async with self._client(connection) as client:
                workspaces = await client.get_workspaces(editable_only=False)
        else:
            workspaces = [WorkspaceInfo(name) for name in connection.workspaces]
        return [ws for ws in workspaces if ws.name != mirror_path.workspace]

    async def compare(self, path: Path, workspace: str) -> ComparisonResult:
        """Compare a local file with the same object in a workspace.

        The remote content is staged in ``<root>/compare`` for a diff and the
        local file is never modified. Comparing against the file's own
        workspace only updates its tree marker.

        Raises:
            SiebelAPIError: If the remote read fails
            SiebelLocalFileError: If the local file cannot be read as UTF-8
        """
        mirror_path, connection = self.resolve(path)
        local_path = mirror_path.local_path(self.root)
        local_text = read_text(local_path)
        if local_text is None:
            raise SiebelFileNotFoundError(str(local_path))
        text = await self._fetch_field(connection, mirror_path, workspace)
        if text is None:
            return ComparisonResult(CompareStatus.ABSENT, workspace, local_path)

        status = CompareStatus.SAME if text == local_text else CompareStatus.DIFFER
        if workspace == mirror_path.workspace:
            self._mark(
                mirror_path,
                ItemState.SAME if status == CompareStatus.SAME else ItemState.DIFFER,
            )
            return ComparisonResult(status, workspace, local_path)

        staged_path = write_text(
            self.root / COMPARE_FOLDER / f"compare.{mirror_path.ext}", text
        )
        diff = list(
            difflib.unified_diff(
                text.splitlines(keepends=True),
                local_text.splitlines(keepends=True),
                fromfile=f"{workspace}/{mirror_path.name}",
                tofile=f"{mirror_path.workspace}/{mirror_path.name} (on disk)",
            )
        )
        return ComparisonResult(status, workspace, local_path, staged_path, diff)

