"""Console output helpers for the CLI."""

import json
from typing import Any, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from .tree.engine import TreeSyncEngine
from .tree.nodes import ItemState, LeafNode, ObjectNode

STATE_STYLES: dict[ItemState, str] = {
    ItemState.NONE: "",
    ItemState.REMOTE: "yellow",
    ItemState.DISK: "blue",
    ItemState.SAME: "green",
    ItemState.DIFFER: "red",
}


class OutputFormatter:
    """Formats CLI output as text (rich) or JSON."""

    def __init__(self, json_output: bool = False, quiet: bool = False):
        self.json_output = json_output
        self.quiet = quiet
        self.console = Console(highlight=False)
        self.err_console = Console(stderr=True, highlight=False)

    def info(self, message: str) -> None:
        if not self.quiet and not self.json_output:
            self.console.print(escape(message))

    def success(self, message: str) -> None:
        if not self.quiet and not self.json_output:
            self.console.print(f"[green]✓[/green] {escape(message)}")

    def warning(self, message: str) -> None:
        self.err_console.print(f"[yellow]Warning:[/yellow] {escape(message)}")

    def error(self, message: str) -> None:
        self.err_console.print(f"[red]Error:[/red] {escape(message)}")

    def output_text(self, text: str) -> None:
        """Print text verbatim (no markup, no wrapping)."""
        if not self.json_output:
            self.console.print(text, markup=False, soft_wrap=True, end="")

    def output_json(self, data: Any) -> None:
        self.console.print_json(json.dumps(data, default=str))

    def output_table(
        self, headers: list[str], rows: list[list[Any]], title: Optional[str] = None
    ) -> None:
        if self.json_output:
            self.output_json([dict(zip(headers, row)) for row in rows])
            return
        table = Table(title=title)
        for header in headers:
            table.add_column(header)
        for row in rows:
            table.add_row(*(str(value) for value in row))
        self.console.print(table)

    def _leaf_label(self, leaf: LeafNode) -> str:
        style = STATE_STYLES[leaf.state]
        name = escape(leaf.name)
        label = f"[{style}]{name}[/{style}]" if style else name
        return f"{label} ({leaf.state.value})"

    def output_tree(self, engine: TreeSyncEngine) -> None:
        """Print the object tree of an engine."""
        if self.json_output:
            self.output_json(
                [
                    {
                        "name": node.name,
                        "kind": node.kind.value,
                        "state": node.state.value,
                        "on_disk": node.on_disk,
                        "children": [
                            {"name": child.name, "state": child.state.value}
                            for child in node.sorted_children()
                        ]
                        if isinstance(node, ObjectNode)
                        else [],
                    }
                    for node in engine.roots()
                ]
            )
            return
        tree = Tree(f"[bold]{engine.descriptor.label}[/bold]")
        for node in engine.roots():
            if isinstance(node, ObjectNode):
                branch = tree.add(f"{escape(node.name)} ({node.state.value})")
                for child in node.sorted_children():
                    branch.add(self._leaf_label(child))
            else:
                tree.add(self._leaf_label(node))
        self.console.print(tree)
