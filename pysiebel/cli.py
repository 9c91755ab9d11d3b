"""CLI interface for browsing and editing Siebel scripts and web templates."""

import asyncio
import logging
from pathlib import Path
from typing import Any, Optional

import click

from .actions import CompareStatus, PullStatus, SyncActions
from .config import config
from .connections import ConnectionRegistry
from .exceptions import SiebelError
from .metadata import WEBTEMP_EXTENSION, ObjectType
from .models import Connection
from .output import OutputFormatter
from .session import SessionState
from .tree.engine import TreeSyncEngine, create_engines
from .tree.nodes import LeafNode, NodeKind

logger = logging.getLogger(__name__)

OBJECT_TYPES = [object_type.value for object_type in ObjectType]


def _out(ctx: Any) -> OutputFormatter:
    out: OutputFormatter = ctx.obj["out"]
    return out


def _registry(ctx: Any) -> ConnectionRegistry:
    registry: ConnectionRegistry = ctx.obj["registry"]
    return registry


def _actions(ctx: Any) -> SyncActions:
    return SyncActions(
        _registry(ctx),
        ctx.obj["root"],
        local_extension=config.local_file_extension,
    )


def _fail(ctx: Any, error: Exception) -> None:
    _out(ctx).error(str(error))
    ctx.exit(1)


async def _open_session(
    ctx: Any,
    connection: Optional[str],
    workspace: Optional[str],
) -> tuple[SessionState, dict[ObjectType, TreeSyncEngine]]:
    """Activate the connection and workspace a command works in."""
    out = _out(ctx)
    session = SessionState(_registry(ctx), ctx.obj["root"])
    engines = create_engines(
        session,
        fetch_policy=config.default_script_fetching,
        local_extension=config.local_file_extension,
        debounce_delay=0,
    )
    # Print engine errors as they happen
    for engine in engines.values():
        engine.on_error.subscribe(lambda error: out.error(str(error)))
    if connection:
        await session.select_connection(connection)
    else:
        await session.activate()
    if workspace:
        if workspace not in session.workspaces:
            await session.close()
            raise click.BadParameter(
                f"{workspace} is not available for {session.connection}",
                param_hint="--workspace",
            )
        session.select_workspace(workspace)
    return session, engines


@click.group()
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--root",
    type=click.Path(file_okay=False, path_type=Path),
    envvar="PYSIEBEL_WORKSPACE",
    help="Root folder of the local mirror (default: current directory)",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option()
@click.pass_context
def main(
    ctx: Any, quiet: bool, json: bool, root: Optional[Path], verbose: bool
) -> None:
    """PySiebel - Edit Siebel server scripts and web templates locally."""
    ctx.ensure_object(dict)
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)
    ctx.obj["root"] = root or config.workspace_folder
    ctx.obj["registry"] = ConnectionRegistry(config)

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("pysiebel").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


# =========================
# Connections
# =========================


@main.command("connections")
@click.pass_context
def list_connections(ctx: Any) -> None:
    """List configured connections."""
    out = _out(ctx)
    registry = _registry(ctx)
    try:
        connections = registry.list()
    except SiebelError as e:
        _fail(ctx, e)
        return
    if not connections:
        out.warning("No connection configured, use 'pysiebel connection add'")
        return
    out.output_table(
        ["Name", "URL", "Username", "Workspaces", "Default workspace", "Source"],
        [
            [
                # Mark the default connection
            f"{c.name} *" if c.name == registry.default_name else c.name,
                c.url,
                c.username,
                ", ".join(c.workspaces),
                c.default_workspace,
                "REST" if c.rest_workspaces else "static",
            ]
            for c in connections
        ],
    )


@main.group()
def connection() -> None:
    """Create, edit and remove connections."""


@connection.command("add")
@click.argument("name")
@click.option("--url", required=True, help="REST API base URL")
@click.option("--username", "-u", required=True)
@click.option("--password", "-p", prompt=True, hide_input=True)
@click.option(
    "--rest-workspaces",
    is_flag=True,
    help="Get the workspace list from the REST API",
)
@click.option("--default", "make_default", is_flag=True, help="Use on startup")
@click.pass_context
def connection_add(
    ctx: Any,
    name: str,
    url: str,
    username: str,
    password: str,
    rest_workspaces: bool,
    make_default: bool,
) -> None:
    """Add a connection NAME."""
    registry = _registry(ctx)
    try:
        registry.add(
            Connection(
                name=name,
                url=url,
                username=username,
                password=password,
                rest_workspaces=rest_workspaces,
            )
        )
        # Without a default yet, this connection becomes it
        if make_default or not registry.default_name:
            registry.set_default(name)
    except SiebelError as e:
        _fail(ctx, e)
        return
    _out(ctx).success(f"Connection {name} added")


@connection.command("edit")
@click.argument("name")
@click.option("--url", help="REST API base URL")
@click.option("--username", "-u")
@click.option("--password", "-p")
@click.option(
    "--rest-workspaces/--static-workspaces",
    default=None,
    help="Get the workspace list from the REST API or from the settings",
)
@click.pass_context
def connection_edit(
    ctx: Any,
    name: str,
    url: Optional[str],
    username: Optional[str],
    password: Optional[str],
    rest_workspaces: Optional[bool],
) -> None:
    """Change settings of connection NAME."""
    registry = _registry(ctx)
    try:
        # Only change what was given
        existing = registry.resolve(name)
        if url:
            existing.url = url
        if username:
            existing.username = username
        if password:
            existing.password = password
        if rest_workspaces is not None:
            existing.rest_workspaces = rest_workspaces
        registry.update(existing)
    except SiebelError as e:
        _fail(ctx, e)
        return
    _out(ctx).success(f"Connection {name} updated")


@connection.command("remove")
@click.argument("name")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def connection_remove(ctx: Any, name: str, yes: bool) -> None:
    """Remove connection NAME."""
    if not yes and not click.confirm(f"Do you want to delete connection {name}?"):
        return
    try:
        _registry(ctx).remove(name)
    except SiebelError as e:
        _fail(ctx, e)
        return
    _out(ctx).success(f"Connection {name} removed")


@connection.command("default")
@click.argument("name")
@click.pass_context
def connection_default(ctx: Any, name: str) -> None:
    """Use connection NAME on startup."""
    try:
        _registry(ctx).set_default(name)
    except SiebelError as e:
        _fail(ctx, e)
        return
    _out(ctx).success(f"Default connection set to {name}")


@connection.command("test")
@click.argument("name")
@click.pass_context
def connection_test(ctx: Any, name: str) -> None:
    """Check the URL and credentials of connection NAME."""
    out = _out(ctx)
    registry = _registry(ctx)

    async def run() -> bool:
        async with registry.client_factory(registry.resolve(name)) as client:
            return await client.test_connection()

    try:
        ok = asyncio.run(run())
    except SiebelError as e:
        _fail(ctx, e)
        return
    if ok:
        out.success(f"Connection {name} works")
    else:
        out.warning(f"Connection {name} answered without data")


# =========================
# Workspaces
# =========================


@main.group()
def workspace() -> None:
    """Manage the workspaces of a connection."""


@workspace.command("list")
@click.argument("connection_name")
@click.pass_context
def workspace_list(ctx: Any, connection_name: str) -> None:
    """List the workspaces available for CONNECTION_NAME."""
    out = _out(ctx)
    registry = _registry(ctx)
    try:
        target = registry.resolve(connection_name)
        workspaces = asyncio.run(registry.workspaces_for(target))
    except SiebelError as e:
        _fail(ctx, e)
        return
    if not workspaces:
        out.warning(f"No workspace available for {connection_name}")
        return
    out.output_table(
        ["Workspace", "Default"],
        [[ws, "yes" if ws == target.default_workspace else ""] for ws in workspaces],
    )


@workspace.command("add")
@click.argument("connection_name")
@click.argument("workspace_name")
@click.pass_context
def workspace_add(ctx: Any, connection_name: str, workspace_name: str) -> None:
    """Add WORKSPACE_NAME to the static list of CONNECTION_NAME."""
    try:
        _registry(ctx).add_workspace(connection_name, workspace_name)
    except SiebelError as e:
        _fail(ctx, e)
        return
    _out(ctx).success(f"Workspace {workspace_name} added to {connection_name}")


@workspace.command("remove")
@click.argument("connection_name")
@click.argument("workspace_name")
@click.pass_context
def workspace_remove(ctx: Any, connection_name: str, workspace_name: str) -> None:
    """Remove WORKSPACE_NAME from CONNECTION_NAME."""
    try:
        _registry(ctx).remove_workspace(connection_name, workspace_name)
    except SiebelError as e:
        _fail(ctx, e)
        return
    _out(ctx).success(f"Workspace {workspace_name} removed from {connection_name}")


@workspace.command("default")
@click.argument("connection_name")
@click.argument("workspace_name")
@click.pass_context
def workspace_default(ctx: Any, connection_name: str, workspace_name: str) -> None:
    """Make WORKSPACE_NAME the default of CONNECTION_NAME."""
    try:
        _registry(ctx).set_default_workspace(connection_name, workspace_name)
    except SiebelError as e:
        _fail(ctx, e)
        return
    _out(ctx).success(f"Default workspace of {connection_name}: {workspace_name}")


# =========================
# Tree browsing
# =========================


@main.command()
@click.argument("object_type", type=click.Choice(OBJECT_TYPES))
@click.argument("query", required=False, default="")
@click.option("--connection", "-c", "connection_name", help="Connection to use")
@click.option("--workspace", "-w", "workspace_name", help="Workspace to use")
@click.option(
    "--expand",
    "-e",
    multiple=True,
    help="Fetch the scripts of this object (repeatable)",
)
@click.pass_context
def tree(
    ctx: Any,
    object_type: str,
    query: str,
    connection_name: Optional[str],
    workspace_name: Optional[str],
    expand: tuple[str, ...],
) -> None:
    """Show OBJECT_TYPE objects whose name starts with QUERY.

    Without QUERY the objects already downloaded are shown.

    Examples:
        pysiebel tree buscomp Account              # Search business components
        pysiebel tree service "My BS" -e "My BS"   # Show the scripts of a service
        pysiebel tree webtemp -w dev_sadmin_1      # Downloaded web templates
    """
    out = _out(ctx)

    async def run() -> bool:
        session, engines = await _open_session(ctx, connection_name, workspace_name)
        try:
            engine = engines[ObjectType(object_type)]
            session.select_object_type(engine.object_type)
            # Empty query shows what is on disk without a remote call
            engine.search(query)
            await engine.wait()
            for name in expand:
                if name not in engine.nodes:
                    out.warning(f"{name} is not in the tree")
                    continue
                await engine.expand(name)
            out.info(
                f"{session.connection} / {session.workspace} / "
                f"{engine.descriptor.label}"
            )
            out.output_tree(engine)
            # Errors were already printed by the on_error subscriber
            return engine.last_error is None
        finally:
            await session.close()

    try:
        ok = asyncio.run(run())
    except SiebelError as e:
        _fail(ctx, e)
        return
    if not ok:
        ctx.exit(1)


@main.command()
@click.argument("object_type", type=click.Choice(OBJECT_TYPES))
@click.argument("name")
@click.argument("script", required=False)
@click.option("--connection", "-c", "connection_name", help="Connection to use")
@click.option("--workspace", "-w", "workspace_name", help="Workspace to use")
@click.option("--yes", "-y", is_flag=True, help="Overwrite without asking")
@click.pass_context
def get(
    ctx: Any,
    object_type: str,
    name: str,
    script: Optional[str],
    connection_name: Optional[str],
    workspace_name: Optional[str],
    yes: bool,
) -> None:
    """Download a server SCRIPT of object NAME, or the web template NAME.

    Examples:
        pysiebel get applet "Account List Applet" WebApplet_Load
        pysiebel get webtemp "CCPageContainer"
    """
    out = _out(ctx)
    selected_type = ObjectType(object_type)
    if selected_type.has_scripts and not script:
        raise click.UsageError(f"{object_type} needs a SCRIPT name")

    async def run() -> Optional[Path]:
        session, engines = await _open_session(ctx, connection_name, workspace_name)
        try:
            engine = engines[selected_type]
            if script and selected_type.has_scripts:
                leaf = LeafNode(
                    kind=NodeKind.SCRIPT,
                    name=script,
                    parent=name,
                    ext=engine.local_extension,
                )
            else:
                leaf = LeafNode(kind=NodeKind.WEBTEMP, name=name, ext=WEBTEMP_EXTENSION)
            # Raises before any download when there is no workspace
            local_path = engine.leaf_path(leaf)
            if local_path.exists() and not yes:
                click.confirm(f"{local_path} exists, overwrite it?", abort=True)
            return await engine.select_leaf(leaf)
        finally:
            await session.close()

    try:
        local_path = asyncio.run(run())
    except SiebelError as e:
        _fail(ctx, e)
        return
    if local_path is None:
        out.warning("Nothing was downloaded")
        ctx.exit(1)
    out.success(f"{local_path}")


# =========================
# File actions
# =========================


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def pull(ctx: Any, file: Path, yes: bool) -> None:
    """Overwrite FILE with its content from Siebel."""
    out = _out(ctx)
    actions = _actions(ctx)
    try:
        mirror_path, target = actions.resolve(file)
        if not yes and not click.confirm(
            f"Do you want to pull {mirror_path.name} from the "
            f"{mirror_path.workspace} workspace of the {target.name} connection?"
        ):
            return
        result = asyncio.run(actions.pull(file))
    except SiebelError as e:
        _fail(ctx, e)
        return
    if result.status == PullStatus.ABSENT:
        out.warning(f"Unable to pull, {mirror_path.name} was not found in Siebel")
        ctx.exit(1)
    out.success(f"Pulled {mirror_path.name}")


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def push(ctx: Any, file: Path, yes: bool) -> None:
    """Upload FILE to Siebel, overwriting the remote version."""
    out = _out(ctx)
    actions = _actions(ctx)
    try:
        mirror_path, target = actions.resolve(file)
        if not yes and not click.confirm(
            f"Do you want to push {mirror_path.name} to the "
            f"{mirror_path.workspace} workspace of the {target.name} connection?"
        ):
            return
        asyncio.run(actions.push(file))
    except SiebelError as e:
        _fail(ctx, e)
        return
    out.success(f"Successfully pushed {mirror_path.name} to Siebel")


@main.command("push-all")
@click.argument(
    "folder", type=click.Path(exists=True, file_okay=False, path_type=Path)
)
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def push_all(ctx: Any, folder: Path, yes: bool) -> None:
    """Upload every script in the object FOLDER."""
    out = _out(ctx)
    if not yes and not click.confirm(f"Do you want to push all scripts of {folder}?"):
        return
    try:
        pushed = asyncio.run(_actions(ctx).push_all(folder))
    except SiebelError as e:
        _fail(ctx, e)
        return
    if not pushed:
        out.warning(f"No script found in {folder}")
        return
    out.success(f"Successfully pushed {len(pushed)} script(s): {', '.join(pushed)}")


@main.command("pull-missing")
@click.argument(
    "folder", type=click.Path(exists=True, file_okay=False, path_type=Path)
)
@click.pass_context
def pull_missing(ctx: Any, folder: Path) -> None:
    """Download the scripts of object FOLDER that are not on disk yet."""
    out = _out(ctx)
    try:
        written = asyncio.run(_actions(ctx).pull_missing(folder))
    except SiebelError as e:
        _fail(ctx, e)
        return
    for local_path in written:
        out.info(str(local_path))
    out.success(f"Downloaded {len(written)} script(s)")


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--workspace", "-w", "workspace_name", help="Workspace to compare with")
@click.pass_context
def compare(ctx: Any, file: Path, workspace_name: Optional[str]) -> None:
    """Compare FILE with the same object in another workspace."""
    out = _out(ctx)
    actions = _actions(ctx)
    try:
        mirror_path, _ = actions.resolve(file)
        if workspace_name:
            target = workspace_name
        else:
            # The file's own workspace first, then the other candidates
            candidates = asyncio.run(actions.compare_candidates(file))
            choices = [mirror_path.workspace, *(ws.name for ws in candidates)]
            target = click.prompt(
                "Choose a workspace to compare against",
                type=click.Choice(choices),
                default=mirror_path.workspace,
            )
        result = asyncio.run(actions.compare(file, target))
    except SiebelError as e:
        _fail(ctx, e)
        return
    if result.status == CompareStatus.ABSENT:
        out.warning(
            f"Unable to compare, {mirror_path.name} does not exist "
            f"in the {target} workspace"
        )
        ctx.exit(1)
    if result.status == CompareStatus.SAME:
        out.success(f"{mirror_path.name} is the same in {target}")
        return
    if result.diff:
        out.output_text("".join(result.diff))
    if result.staged_path:
        out.info(f"Remote version staged in {result.staged_path}")
    else:
        out.warning(f"{mirror_path.name} differs from {target}")


@main.command("new-script")
@click.argument(
    "folder", type=click.Path(file_okay=False, path_type=Path)
)
@click.argument("name")
@click.pass_context
def new_script(ctx: Any, folder: Path, name: str) -> None:
    """Create script NAME in the object FOLDER from its template."""
    try:
        local_path = _actions(ctx).new_script(folder, name)
    except (SiebelError, FileExistsError) as e:
        _fail(ctx, e)
        return
    _out(ctx).success(f"Created {local_path}")

