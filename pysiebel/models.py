"""Data models for connections and REST responses."""

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class Connection:
    """A configured Siebel REST API connection."""

    name: str
    """Unique connection name (first segment of the local mirror)"""

    url: str
    """REST API base URL, e.g. https://host/siebel/v1.0"""

    username: str

    password: str

    workspaces: list[str] = field(default_factory=list)
    """Statically configured workspaces, in priority order"""

    default_workspace: str = ""

    rest_workspaces: bool = False
    """Derive the workspace list from the REST API instead of `workspaces`"""

    def to_dict(self) -> dict[str, Any]:
        """Convert to the settings file representation."""
        return {
            "name": self.name,
            "url": self.url,
            "username": self.username,
            "password": self.password,
            "workspaces": list(self.workspaces),
            "defaultWorkspace": self.default_workspace,
            "restWorkspaces": self.rest_workspaces,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Connection":
        """Create a Connection from its settings file representation."""
        return cls(
            name=data.get("name", ""),
            url=data.get("url", ""),
            username=data.get("username", ""),
            password=data.get("password", ""),
            workspaces=list(data.get("workspaces") or []),
            default_workspace=data.get("defaultWorkspace", "") or "",
            rest_workspaces=bool(data.get("restWorkspaces", False)),
        )


@dataclass(frozen=True)
class WorkspaceInfo:
    """A repository workspace as listed by the REST API."""

    name: str
    status: Optional[str] = None

    @classmethod
    def from_item(cls, item: dict[str, Any]) -> "WorkspaceInfo":
        return cls(name=item.get("Name", ""), status=item.get("Status"))
