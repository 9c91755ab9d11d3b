"""Mapping between mirrored local files and remote resource coordinates.

The local mirror lays files out as::

    <root>/<connection>/<workspace>/<type>/<parent>/<name>.<ext>   (scripts)
    <root>/<connection>/<workspace>/webtemp/<name>.html            (web templates)

That layout is the only information used to work out which remote object
an open file belongs to, so ``decode(encode(x)) == x`` must always hold.
"""

from dataclasses import dataclass
from pathlib import Path, PurePath
from typing import Optional, Union

from .exceptions import MalformedPathError
from .metadata import (
    SCRIPT_EXTENSIONS,
    WEBTEMP_EXTENSION,
    WORKSPACE_SEGMENT,
    ObjectType,
)

PathLike = Union[str, PurePath]


@dataclass(frozen=True)
class MirrorPath:
    """Remote coordinates of a mirrored file."""

    connection: str
    workspace: str
    object_type: ObjectType
    parent: str
    """Parent object name, empty for web templates"""

    name: str
    """Script or web template name"""

    ext: str
    """File extension without the dot"""

    @property
    def is_script(self) -> bool:
        return self.object_type.has_scripts

    @property
    def field(self) -> str:
        return self.object_type.descriptor.field

    @property
    def parent_path(self) -> str:
        """Resource path of the collection the file belongs to.

        For scripts this is the server script collection of the parent
        object, for web templates the web template collection.
        """
        descriptor = self.object_type.descriptor
        if self.is_script:
            return join_url(descriptor.parent, self.parent, descriptor.child)
        return descriptor.parent

    @property
    def remote_path(self) -> str:
        """Resource path of the file below ``workspace/<name>``."""
        return join_url(self.parent_path, self.name)

    def workspace_path(self, workspace: Optional[str] = None) -> str:
        """Full resource path in this or another workspace."""
        return join_url(
            WORKSPACE_SEGMENT, workspace or self.workspace, self.remote_path
        )

    def local_path(self, root: PathLike) -> Path:
        return encode(
            root,
            self.connection,
            self.workspace,
            self.object_type,
            self.parent,
            self.name,
            self.ext,
        )

    def folder(self, root: PathLike) -> Path:
        """Folder holding the file (the parent object folder for scripts)."""
        return self.local_path(root).parent

    def with_workspace(self, workspace: str) -> "MirrorPath":
        return MirrorPath(
            connection=self.connection,
            workspace=workspace,
            object_type=self.object_type,
            parent=self.parent,
            name=self.name,
            ext=self.ext,
        )


def join_url(*parts: str) -> str:
    """Join resource path segments with forward slashes.

    Examples:
        >>> join_url("Applet", "Account List Applet", "Applet Server Script")
        'Applet/Account List Applet/Applet Server Script'
        >>> join_url("https://host/siebel/v1.0/", "/workspace")
        'https://host/siebel/v1.0/workspace'
    """
    cleaned = [part.strip("/") for part in parts[1:] if part]
    first = parts[0].rstrip("/") if parts else ""
    return "/".join([first, *cleaned]) if first else "/".join(cleaned)


def is_script_extension(ext: str) -> bool:
    return ext in SCRIPT_EXTENSIONS


def is_webtemp_extension(ext: str) -> bool:
    return ext == WEBTEMP_EXTENSION


def encode(
    root: PathLike,
    connection: str,
    workspace: str,
    object_type: ObjectType,
    parent: str,
    name: str,
    ext: str,
) -> Path:
    """Build the local mirror path of a script or web template.

    Args:
        root: Mirror root folder
        connection: Connection name
        workspace: Workspace name
        object_type: Object type of the file
        parent: Parent object name (scripts only, must be empty for templates)
        name: Script or web template name
        ext: File extension without the dot

    Returns:
        Path of the local file

    Raises:
        ValueError: If the coordinates do not fit the object type
    """
    object_type = ObjectType(object_type)
    for label, value in (
        ("connection", connection),
        ("workspace", workspace),
        ("name", name),
    ):
        if not value:
            raise ValueError(f"Empty {label} segment")
    base = Path(root) / connection / workspace / object_type.value
    if object_type.has_scripts:
        if not parent:
            raise ValueError(f"{object_type.value} scripts need a parent object")
        if not is_script_extension(ext):
            raise ValueError(f"Invalid script extension: {ext}")
        return base / parent / f"{name}.{ext}"
    if parent:
        raise ValueError("Web templates have no parent object")
    if not is_webtemp_extension(ext):
        raise ValueError(f"Invalid web template extension: {ext}")
    return base / f"{name}.{ext}"


def _split_name(file_name: str) -> tuple[str, str]:
    # Names such as "(declarations)" contain no dots, split on the last one
    name, dot, ext = file_name.rpartition(".")
    if not dot:
        return file_name, ""
    return name, ext


def decode(path: PathLike, root: Optional[PathLike] = None) -> MirrorPath:
    """Recover remote coordinates from a local mirror path.

    Args:
        path: Path of a local file
        root: Optional mirror root; if given the path must lie below it

    Returns:
        MirrorPath with the decoded coordinates

    Raises:
        MalformedPathError: If the path does not match a mirror location
    """
    pure = PurePath(path)
    if root is not None:
        try:
            parts = list(pure.relative_to(PurePath(root)).parts)
        except ValueError as e:
            raise MalformedPathError(str(path), "outside of the mirror root") from e
    else:
        parts = list(pure.parts[1:] if pure.anchor else pure.parts)

    if not parts:
        raise MalformedPathError(str(path), "empty path")
    name, ext = _split_name(parts.pop())
    if not name:
        raise MalformedPathError(str(path), "empty file name")

    if is_script_extension(ext):
        if len(parts) < 4:
            raise MalformedPathError(str(path), "too few segments for a script")
        parent = parts.pop()
        type_segment = parts.pop()
        try:
            object_type = ObjectType(type_segment)
        except ValueError as e:
            raise MalformedPathError(
                str(path), f"unknown object type {type_segment}"
            ) from e
        if not object_type.has_scripts:
            raise MalformedPathError(
                str(path), f"{type_segment} has no server scripts"
            )
    elif is_webtemp_extension(ext):
        if len(parts) < 3:
            raise MalformedPathError(
                str(path), "too few segments for a web template"
            )
        parent = ""
        type_segment = parts.pop()
        if type_segment != ObjectType.WEBTEMP.value:
            raise MalformedPathError(str(path), "web template outside webtemp")
        object_type = ObjectType.WEBTEMP
    else:
        raise MalformedPathError(str(path), f"unsupported extension {ext!r}")

    workspace = parts.pop()
    connection = parts.pop()
    if root is not None and parts:
        raise MalformedPathError(str(path), "too many segments below the root")
    if not (workspace and connection and (parent or not object_type.has_scripts)):
        raise MalformedPathError(str(path), "empty segment")

    return MirrorPath(
        connection=connection,
        workspace=workspace,
        object_type=object_type,
        parent=parent,
        name=name,
        ext=ext,
    )
