"""PySiebel - edit Siebel server scripts and web templates in a local mirror."""

from .actions import SyncActions
from .api import SiebelClient
from .connections import ConnectionRegistry
from .exceptions import (
    MalformedPathError,
    NameValidationError,
    PushAllError,
    SiebelAPIError,
    SiebelAuthenticationError,
    SiebelConfigError,
    SiebelConnectionNotFoundError,
    SiebelError,
    SiebelFileNotFoundError,
    SiebelInvalidResponseError,
    SiebelLocalFileError,
    SiebelNetworkError,
    SiebelNoConnectionError,
    SiebelNoWorkspaceError,
    SiebelPermissionError,
)
from .paths import MirrorPath, decode, encode
from .session import SessionState
from .tree import TreeSyncEngine

__all__ = [
    "SiebelClient",
    "ConnectionRegistry",
    "SessionState",
    "TreeSyncEngine",
    "SyncActions",
    "MirrorPath",
    "decode",
    "encode",
    "SiebelError",
    "SiebelAPIError",
    "SiebelAuthenticationError",
    "SiebelConfigError",
    "SiebelConnectionNotFoundError",
    "SiebelFileNotFoundError",
    "SiebelLocalFileError",
    "SiebelInvalidResponseError",
    "SiebelNetworkError",
    "SiebelNoConnectionError",
    "SiebelNoWorkspaceError",
    "SiebelPermissionError",
    "MalformedPathError",
    "NameValidationError",
    "PushAllError",
]
