"""Object trees mirroring the remote repository and the local mirror."""

from .engine import TreeStatus, TreeSyncEngine, create_engines, escape_search
from .nodes import ItemState, LeafNode, NodeKind, ObjectNode, TreeNode
from .scanner import LocalFile, scripts_on_disk, subfolders, webtemps_on_disk

__all__ = [
    "TreeSyncEngine",
    "TreeStatus",
    "create_engines",
    "escape_search",
    "ItemState",
    "LeafNode",
    "NodeKind",
    "ObjectNode",
    "TreeNode",
    "LocalFile",
    "scripts_on_disk",
    "subfolders",
    "webtemps_on_disk",
]
