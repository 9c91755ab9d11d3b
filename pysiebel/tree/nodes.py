"""Tree node variants shown by the object tree views."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Union


class NodeKind(str, Enum):
    """Discriminator of the tree node variants."""

    OBJECT = "object"
    """Repository object with a server script sub-collection"""

    SCRIPT = "script"
    """Server script of an object"""

    WEBTEMP = "webtemp"
    """Web template (no children)"""


class ItemState(str, Enum):
    """Relation between the local mirror and the remote repository."""

    NONE = "none"
    """Only known locally, the remote was not asked"""

    REMOTE = "remote"
    """Exists remotely, not downloaded"""

    DISK = "disk"
    """Exists on disk but was not found remotely"""

    SAME = "same"
    """Downloaded and identical to the remote content"""

    DIFFER = "differ"
    """Downloaded and different from the remote content"""


@dataclass
class LeafNode:
    """A server script or web template."""

    kind: NodeKind
    name: str
    parent: str = ""
    """Parent object name, empty for web templates"""

    ext: str = "js"
    on_disk: bool = False
    state: ItemState = ItemState.NONE

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Tree node names cannot be empty")
        if self.kind == NodeKind.OBJECT:
            raise ValueError("Leaf nodes are scripts or web templates")

    @property
    def file_name(self) -> str:
        return f"{self.name}.{self.ext}"


@dataclass
class ObjectNode:
    """A repository object whose scripts are fetched on expansion."""

    name: str
    on_disk: bool = False
    """The local folder of the object exists"""

    state: ItemState = ItemState.NONE
    children: dict[str, LeafNode] = field(default_factory=dict)
    expanded: bool = False
    kind: NodeKind = field(default=NodeKind.OBJECT, init=False)

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Tree node names cannot be empty")

    @property
    def has_any_on_disk(self) -> bool:
        if self.children:
            return any(child.on_disk for child in self.children.values())
        return self.on_disk

    def sorted_children(self) -> list[LeafNode]:
        return [self.children[name] for name in sorted(self.children, key=str.lower)]


TreeNode = Union[ObjectNode, LeafNode]
