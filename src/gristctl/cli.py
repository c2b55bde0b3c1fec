"""Typer CLI application: top-level commands and subcommand groups."""

from __future__ import annotations

import sys
from collections.abc import Callable
from enum import Enum
from pathlib import Path
from typing import Annotated, Optional

import httpx
import typer
from rich.console import Console

import gristctl
from gristctl.adapters.grist_api import GristClient
from gristctl.config import Settings, config_path, load_settings, save_settings
from gristctl.contracts.common import (
    ChangeRecord,
    ConfigError,
    ErrorDetail,
    GristError,
    NotFoundError,
    RemoteError,
    ResponseEnvelope,
    Target,
    WarningDetail,
)
from gristctl.contracts.models import AccessLevel
from gristctl.contracts.responses import ExportResult, MutationResult
from gristctl.engine import access as access_views
from gristctl.engine import inspector
from gristctl.engine.dispatcher import (
    error_envelope,
    exception_envelope,
    exit_code_for,
    print_response,
    success_envelope,
)
from gristctl.engine.importer import EXPECTED_FORMAT, import_users
from gristctl.io.exports import export_filename, parse_csv, write_export, xlsx_sheet_names
from gristctl.io.fileops import read_text_safe
from gristctl.observe.events import EventEmitter, Timer
from gristctl.render import tables as render

# ---------------------------------------------------------------------------
# App & subcommand groups
# ---------------------------------------------------------------------------

_MAIN_HELP = """\
Command-line client for the Grist REST API.

Reads organizations, workspaces, documents and access lists, exports
documents, and bulk-imports workspace access from stdin.

**Output:** `-o table` (default) renders tables; `-o json` prints a
`ResponseEnvelope`:
`{"ok": bool, "command": "...", "result": {...}, "errors": [...], "warnings": [...], "metrics": {"duration_ms": N}}`

**Configuration:** `GRIST_URL` and `GRIST_TOKEN` from the environment, or
from `~/.gristctl` (see `gristctl config`).

**Exit codes:** 0=success, 10=validation, 20=not found, 30=remote, 40=transport, 50=partial, 60=config, 70=local file error, 90=internal
"""

_GET_EPILOG = """\
**Examples:**

`gristctl get org`: list organizations

`gristctl get org 2`: workspaces of organization 2 with document and user counts

`gristctl get org 2 access`: users of organization 2

`gristctl get doc 4mTz9kbDq7Yr`: tables, columns and row counts of a document

`gristctl get doc 4mTz9kbDq7Yr excel`: export as `<workspace>_<doc>.xlsx`

`gristctl get doc 4mTz9kbDq7Yr table Clients`: content of one table

`gristctl get workspace 12 access`: users of workspace 12

`gristctl get users`: user / workspace access matrix
"""

_ROLES = ", ".join(f"`{level.value}`" for level in AccessLevel if level.value)

_IMPORT_EPILOG = f"""\
**Input format** (stdin, one record per line, no header):

`{EXPECTED_FORMAT}`

Roles: {_ROLES} (passed to Grist as is).

Missing workspaces are created. All users of the same workspace are
granted in one request.

`cat users.csv | gristctl import users`
"""

app = typer.Typer(
    name="gristctl",
    help=_MAIN_HELP,
    no_args_is_help=True,
    rich_markup_mode="markdown",
)

get_app = typer.Typer(
    name="get", help="Display organizations, workspaces, documents and users.",
    epilog=_GET_EPILOG,
    no_args_is_help=True, rich_markup_mode="markdown",
)
import_app = typer.Typer(
    name="import", help="Bulk import of workspace access.",
    epilog=_IMPORT_EPILOG,
    no_args_is_help=True, rich_markup_mode="markdown",
)
purge_app = typer.Typer(
    name="purge", help="Purge document history.",
    no_args_is_help=True, rich_markup_mode="markdown",
)
delete_app = typer.Typer(
    name="delete", help="Delete documents, users or workspaces.",
    no_args_is_help=True, rich_markup_mode="markdown",
)
config_app = typer.Typer(
    name="config", help="Show or set the Grist URL and API token.",
    rich_markup_mode="markdown",
)

app.add_typer(get_app)
app.add_typer(import_app)
app.add_typer(purge_app)
app.add_typer(delete_app)
app.add_typer(config_app)


class OutputFormat(str, Enum):
    table = "table"
    json = "json"


class Runtime:
    """Per-invocation state: output format, events, settings and client.

    Settings are loaded at most once, on the first command needing the API.
    ``transport`` lets tests route requests to an ``httpx.MockTransport``.
    """

    def __init__(
        self,
        *,
        output: str = "table",
        events: EventEmitter | None = None,
        settings: Settings | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.output = output
        self.events = events or EventEmitter()
        self.transport = transport
        self._settings = settings

    @property
    def json(self) -> bool:
        return self.output == OutputFormat.json.value

    @property
    def settings(self) -> Settings:
        if self._settings is None:
            self._settings = load_settings()
        return self._settings

    @property
    def max_workers(self) -> int | None:
        return self.settings.max_workers

    def client(self) -> GristClient:
        return GristClient.from_settings(self.settings, transport=self.transport, events=self.events)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(gristctl.__version__)
        raise typer.Exit()


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    output: Annotated[
        OutputFormat, typer.Option("--output", "-o", help="Output format: table or json.")
    ] = OutputFormat.table,
    events: Annotated[
        bool, typer.Option("--events", help="Emit NDJSON request events on stderr.")
    ] = False,
    version: Annotated[
        bool, typer.Option("--version", "-V", help="Print version and exit.", is_eager=True)
    ] = False,
) -> None:
    if version:
        _version_callback(True)
    if not isinstance(ctx.obj, Runtime):
        ctx.obj = Runtime()
    ctx.obj.output = output.value
    ctx.obj.events = EventEmitter.from_env(events)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _runtime(ctx: typer.Context) -> Runtime:
    obj = ctx.find_object(Runtime)
    return obj if obj is not None else Runtime()


def _emit(
    rt: Runtime,
    envelope: ResponseEnvelope,
    render_fn: Callable[[Console], None] | None = None,
) -> None:
    if rt.json:
        print_response(envelope)
    else:
        console = Console()
        if render_fn is not None:
            render_fn(console)
        render.render_errors(console, envelope)
    raise typer.Exit(exit_code_for(envelope))


def _fail(rt: Runtime, command: str, exc: GristError, target: Target | None = None) -> None:
    _emit(rt, exception_envelope(command, exc, target=target))


def _usage(rt: Runtime, command: str, message: str, target: Target | None = None) -> None:
    _emit(rt, error_envelope(command, "ERR_USAGE", message, target=target))


def _confirm(rt: Runtime, command: str, question: str, yes: bool, target: Target) -> None:
    """Ask before a deletion; JSON mode requires ``--yes``."""
    if yes:
        return
    if rt.json:
        _usage(rt, command, "Deletion requires --yes in JSON mode", target)
    if not typer.confirm(question, default=False):
        typer.echo("Cancelled")
        raise typer.Exit(0)


# ---------------------------------------------------------------------------
# gristctl version
# ---------------------------------------------------------------------------
@app.command()
def version(ctx: typer.Context):
    """Print the gristctl version.

    Example: `gristctl version`
    """
    rt = _runtime(ctx)
    env = success_envelope("version", {"version": gristctl.__version__})
    _emit(rt, env, lambda c: c.print(f"Version : {gristctl.__version__}", markup=False))


# ---------------------------------------------------------------------------
# gristctl config
# ---------------------------------------------------------------------------
@config_app.callback(invoke_without_command=True)
def config_show(ctx: typer.Context):
    """Show the current URL, the masked token and a connection test.

    Example: `gristctl config`

    See also: `gristctl config set` to write a new configuration file.
    """
    if ctx.invoked_subcommand is not None:
        return
    rt = _runtime(ctx)
    path = config_path()
    with Timer() as t:
        try:
            settings = rt.settings
        except ConfigError as e:
            _fail(rt, "config", e, Target(file=str(path)))
            return
        connected = False
        if settings.configured:
            with rt.client() as client:
                connected = client.test_connection()

    result = {
        "path": str(path),
        "url": settings.url,
        "token": settings.masked_token,
        "connected": connected,
    }

    def show(console: Console) -> None:
        render.display_title(console, f"Grist configuration ({path})")
        console.print(f"Current configuration :\n- URL : {settings.url}", markup=False)
        console.print(f"- Token : {settings.masked_token}", markup=False)
        console.print(f"Connection test : {'✅' if connected else '❌'}", markup=False)

    env = success_envelope("config", result, target=Target(file=str(path)), duration_ms=t.elapsed_ms)
    _emit(rt, env, show)


@config_app.command("set")
def config_set(
    ctx: typer.Context,
    url: Annotated[str, typer.Option("--url", prompt="Grist URL (https://...)", help="Base URL of the Grist instance, without trailing '/'")],
    token: Annotated[str, typer.Option("--token", prompt="API token", hide_input=True, help="Grist API key")],
):
    """Write a new configuration file, then test the connection.

    Example: `gristctl config set --url https://grist.example.com --token <key>`
    """
    rt = _runtime(ctx)
    with Timer() as t:
        try:
            path = save_settings(url, token)
        except ConfigError as e:
            _fail(rt, "config.set", e, Target(file=str(config_path())))
            return
        settings = Settings(url=url.strip(), token=token.strip())
        with GristClient.from_settings(settings, transport=rt.transport, events=rt.events) as client:
            connected = client.test_connection()

    result = {"path": str(path), "url": settings.url, "connected": connected}
    if connected:
        env = success_envelope("config.set", result, target=Target(file=str(path)), duration_ms=t.elapsed_ms)
    else:
        env = error_envelope(
            "config.set", "ERR_CONFIG_CONNECTION",
            f"Configuration saved in {path}, but the connection test failed",
            target=Target(file=str(path)), result=result, duration_ms=t.elapsed_ms,
        )
    _emit(rt, env, lambda c: c.print(f"Configuration saved in {path}", markup=False))


# ---------------------------------------------------------------------------
# gristctl get org
# ---------------------------------------------------------------------------
@get_app.command("org")
def get_org(
    ctx: typer.Context,
    org_id: Annotated[Optional[int], typer.Argument(help="Organization id (omit to list all)")] = None,
    view: Annotated[Optional[str], typer.Argument(help="'access' to list the organization's users")] = None,
):
    """List organizations, or describe one organization or its users.

    Example: `gristctl get org`

    Example: `gristctl get org 2`

    Example: `gristctl get org 2 access`
    """
    rt = _runtime(ctx)
    if org_id is None:
        _list_orgs(rt)
    elif view is None:
        _org_summary(rt, org_id)
    elif view == "access":
        _org_access(rt, org_id)
    else:
        _usage(rt, "get.org", f"Unknown view '{view}': expected 'access'", Target(org=org_id))


def _list_orgs(rt: Runtime) -> None:
    with Timer() as t:
        try:
            with rt.client() as client:
                orgs = inspector.list_orgs(client)
        except GristError as e:
            _fail(rt, "get.org.list", e)
            return
    env = success_envelope("get.org.list", [o.model_dump() for o in orgs], duration_ms=t.elapsed_ms)
    _emit(rt, env, lambda c: render.render_orgs(c, orgs))


def _org_summary(rt: Runtime, org_id: int) -> None:
    target = Target(org=org_id)
    with Timer() as t:
        try:
            with rt.client() as client:
                summary = inspector.summarize_org(client, org_id, max_workers=rt.max_workers)
        except GristError as e:
            _fail(rt, "get.org", e, target)
            return
    warnings = [
        WarningDetail(code="WORKSPACE_ACCESS_UNAVAILABLE", message=ws.error, path=str(ws.id))
        for ws in summary.workspaces if ws.error
    ]
    env = success_envelope(
        "get.org", summary.model_dump(), target=target,
        warnings=warnings, duration_ms=t.elapsed_ms,
    )
    _emit(rt, env, lambda c: render.render_org_summary(c, summary))


def _org_access(rt: Runtime, org_id: int) -> None:
    target = Target(org=org_id)
    with Timer() as t:
        try:
            with rt.client() as client:
                view = access_views.org_access(client, org_id)
        except GristError as e:
            _fail(rt, "get.org.access", e, target)
            return
    env = success_envelope("get.org.access", view.model_dump(), target=target, duration_ms=t.elapsed_ms)
    _emit(rt, env, lambda c: render.render_access(c, view))


# ---------------------------------------------------------------------------
# gristctl get doc
# ---------------------------------------------------------------------------
@get_app.command("doc")
def get_doc(
    ctx: typer.Context,
    doc_id: Annotated[str, typer.Argument(help="Document id")],
    action: Annotated[Optional[str], typer.Argument(help="access | excel | grist | table")] = None,
    table_name: Annotated[Optional[str], typer.Argument(help="Table name, with 'table'")] = None,
    out: Annotated[Optional[Path], typer.Option("--out", help="Export file or directory (default: current directory)")] = None,
):
    """Describe a document, list its users, or export it.

    Without action: tables with their sorted columns and row counts,
    fetched concurrently.

    Example: `gristctl get doc 4mTz9kbDq7Yr`

    Example: `gristctl get doc 4mTz9kbDq7Yr access`

    Example: `gristctl get doc 4mTz9kbDq7Yr excel --out exports/`

    Example: `gristctl get doc 4mTz9kbDq7Yr table Clients`
    """
    rt = _runtime(ctx)
    target = Target(doc=doc_id)
    if action is None:
        _inspect_doc(rt, doc_id)
    elif table_name is not None and action != "table":
        _usage(rt, "get.doc", f"Unexpected argument '{table_name}' after '{action}'", target)
    elif action == "access":
        _doc_access(rt, doc_id)
    elif action in ("excel", "grist"):
        _export_doc(rt, doc_id, "xlsx" if action == "excel" else "grist", out)
    elif action == "table":
        if not table_name:
            _usage(rt, "get.doc.table", "Missing table name: get doc <id> table <name>", target)
        _table_content(rt, doc_id, table_name, out)
    else:
        _usage(
            rt, "get.doc",
            "You have to choose between 'access', 'grist', 'excel' or 'table <name>'",
            target,
        )


def _inspect_doc(rt: Runtime, doc_id: str) -> None:
    target = Target(doc=doc_id)
    with Timer() as t:
        try:
            with rt.client() as client:
                summary = inspector.inspect_document(client, doc_id, max_workers=rt.max_workers)
        except GristError as e:
            _fail(rt, "get.doc", e, target)
            return

    env = success_envelope("get.doc", summary.model_dump(), target=target, duration_ms=t.elapsed_ms)
    failed = summary.failed_tables
    if failed:
        env.ok = False
        env.errors = [
            ErrorDetail(
                code="ERR_TABLE_INSPECTION_FAILED",
                message=tbl.error or "",
                details={"table": tbl.table_id},
            )
            for tbl in failed
        ]
    _emit(rt, env, lambda c: render.render_document(c, summary))


def _doc_access(rt: Runtime, doc_id: str) -> None:
    target = Target(doc=doc_id)
    with Timer() as t:
        try:
            with rt.client() as client:
                view = access_views.doc_access(client, doc_id)
        except GristError as e:
            _fail(rt, "get.doc.access", e, target)
            return
    env = success_envelope("get.doc.access", view.model_dump(), target=target, duration_ms=t.elapsed_ms)
    _emit(rt, env, lambda c: render.render_access(c, view))


def _export_path(out: Path | None, filename: str) -> Path:
    if out is None:
        return Path.cwd() / filename
    if out.is_dir() or str(out).endswith(("/", "\\")):
        return out / filename
    return out


def _export_doc(rt: Runtime, doc_id: str, fmt: str, out: Path | None) -> None:
    command = f"get.doc.{'excel' if fmt == 'xlsx' else fmt}"
    target = Target(doc=doc_id)
    with Timer() as t:
        try:
            with rt.client() as client:
                doc = client.get_doc(doc_id)
                data = client.download_doc(doc_id, fmt)
            path = _export_path(out, export_filename(doc, fmt))
            sheets = xlsx_sheet_names(data) if fmt == "xlsx" else []
            fp = write_export(path, data)
        except GristError as e:
            _fail(rt, command, e, target)
            return
        except OSError as e:
            _emit(rt, error_envelope(command, "ERR_IO", str(e), target=target))
            return

    result = ExportResult(
        doc_id=doc_id, format=fmt, path=str(path),
        size=len(data), fingerprint=fp, sheets=sheets,
    )
    target.file = str(path)
    env = success_envelope(command, result.model_dump(), target=target, duration_ms=t.elapsed_ms)
    _emit(rt, env, lambda c: render.render_export(c, result))


def _table_content(rt: Runtime, doc_id: str, table_name: str, out: Path | None) -> None:
    target = Target(doc=doc_id, table=table_name)
    with Timer() as t:
        try:
            with rt.client() as client:
                text = client.download_table_csv(doc_id, table_name)
            if out is not None:
                path = _export_path(out, f"{table_name}.csv")
                fp = write_export(path, text.encode("utf-8"))
        except GristError as e:
            _fail(rt, "get.doc.table", e, target)
            return
        except OSError as e:
            _emit(rt, error_envelope("get.doc.table", "ERR_IO", str(e), target=target))
            return

    if out is not None:
        result = ExportResult(
            doc_id=doc_id, format="csv", path=str(path),
            size=len(text.encode("utf-8")), fingerprint=fp,
        )
        env = success_envelope("get.doc.table", result.model_dump(), target=target, duration_ms=t.elapsed_ms)
        _emit(rt, env, lambda c: render.render_export(c, result))
        return

    rows = parse_csv(text)
    columns = list(rows[0].keys()) if rows else []
    env = success_envelope(
        "get.doc.table",
        {"doc_id": doc_id, "table": table_name, "columns": columns, "rows": rows, "row_count": len(rows)},
        target=target,
        duration_ms=t.elapsed_ms,
    )
    _emit(rt, env, lambda c: render.render_csv(c, rows))


# ---------------------------------------------------------------------------
# gristctl get workspace
# ---------------------------------------------------------------------------
@get_app.command("workspace")
def get_workspace(
    ctx: typer.Context,
    workspace_id: Annotated[int, typer.Argument(help="Workspace id")],
    view: Annotated[Optional[str], typer.Argument(help="'access' to list the workspace's users")] = None,
):
    """Describe a workspace and its documents, or list its users.

    Example: `gristctl get workspace 12`

    Example: `gristctl get workspace 12 access`
    """
    rt = _runtime(ctx)
    target = Target(workspace=workspace_id)
    if view not in (None, "access"):
        _usage(rt, "get.workspace", f"Unknown view '{view}': expected 'access'", target)
    command = "get.workspace" if view is None else "get.workspace.access"

    with Timer() as t:
        try:
            with rt.client() as client:
                if view is None:
                    result = inspector.describe_workspace(client, workspace_id)
                else:
                    result = access_views.workspace_access(client, workspace_id)
        except GristError as e:
            _fail(rt, command, e, target)
            return

    env = success_envelope(command, result.model_dump(), target=target, duration_ms=t.elapsed_ms)
    if view is None:
        _emit(rt, env, lambda c: render.render_workspace(c, result))
    else:
        _emit(rt, env, lambda c: render.render_access(c, result))


# ---------------------------------------------------------------------------
# gristctl get users
# ---------------------------------------------------------------------------
@get_app.command("users")
def get_users(ctx: typer.Context):
    """Matrix of users and the workspaces they hold a direct access on.

    Example: `gristctl get users`
    """
    rt = _runtime(ctx)
    with Timer() as t:
        try:
            with rt.client() as client:
                rows, failures = access_views.user_matrix(client, max_workers=rt.max_workers)
        except GristError as e:
            _fail(rt, "get.users", e)
            return
    warnings = [WarningDetail(code="ACCESS_UNAVAILABLE", message=msg) for msg in failures]
    env = success_envelope(
        "get.users", [r.model_dump() for r in rows],
        warnings=warnings, duration_ms=t.elapsed_ms,
    )
    _emit(rt, env, lambda c: render.render_user_matrix(c, rows))


# ---------------------------------------------------------------------------
# gristctl import users
# ---------------------------------------------------------------------------
@import_app.command("users")
def import_users_cmd(
    ctx: typer.Context,
    file: Annotated[Optional[Path], typer.Option("--file", "-f", help="Read records from a file instead of stdin")] = None,
):
    """Grant workspace access from `<mail>;<org id>;<workspace name>;<role>` lines.

    Lines are read from stdin. Malformed lines are reported and skipped.
    Records are grouped by organization and workspace name; missing
    workspaces are created, and each group is granted in a single request.

    Example: `cat users.csv | gristctl import users`

    Example: `gristctl -o json import users --file users.csv`
    """
    rt = _runtime(ctx)
    with Timer() as t:
        try:
            lines = read_text_safe(file).splitlines() if file else sys.stdin
        except OSError as e:
            _emit(rt, error_envelope("import.users", "ERR_IO", str(e), target=Target(file=str(file))))
            return
        try:
            with rt.client() as client:
                report = import_users(client, lines, events=rt.events)
        except GristError as e:
            _fail(rt, "import.users", e)
            return

    warnings = [
        WarningDetail(
            code="MALFORMED_LINE",
            message=f"line {d.line_number}: {d.reason}",
            path=str(d.line_number),
        )
        for d in report.diagnostics
    ]
    changes: list[ChangeRecord] = []
    for group in report.groups:
        if group.created:
            changes.append(ChangeRecord(
                type="workspace.create",
                target=f"org {group.org_id}",
                after={"id": group.workspace_id, "name": group.workspace_name},
            ))
        if group.ok:
            changes.append(ChangeRecord(
                type="workspace.access",
                target=f"workspace {group.workspace_id}",
                after=group.users,
            ))

    env = success_envelope(
        "import.users", report.model_dump(),
        target=Target(file=str(file) if file else None),
        changes=changes, warnings=warnings, duration_ms=t.elapsed_ms,
    )
    if report.failed_groups:
        env.ok = False
        env.errors = [
            ErrorDetail(
                code="ERR_IMPORT_GROUP_FAILED",
                message=f"Import of {g.nb_users} users in workspace '{g.workspace_name}' (org {g.org_id}) failed: {g.error}",
                details={"org_id": g.org_id, "workspace_name": g.workspace_name, "status": g.status},
            )
            for g in report.failed_groups
        ]
    elif not report.nb_records:
        env.ok = False
        env.errors = [ErrorDetail(
            code="ERR_NOTHING_TO_IMPORT",
            message=f"No valid line. Expected data format : {EXPECTED_FORMAT}",
        )]
    _emit(rt, env, lambda c: render.render_import(c, report))


# ---------------------------------------------------------------------------
# gristctl purge doc
# ---------------------------------------------------------------------------
@purge_app.command("doc")
def purge_doc(
    ctx: typer.Context,
    doc_id: Annotated[str, typer.Argument(help="Document id")],
    keep: Annotated[int, typer.Argument(min=1, help="Number of most recent states to keep")] = 3,
):
    """Purge a document's history, keeping only the last states.

    Example: `gristctl purge doc 4mTz9kbDq7Yr` (keeps 3 states)

    Example: `gristctl purge doc 4mTz9kbDq7Yr 10`
    """
    rt = _runtime(ctx)
    target = Target(doc=doc_id)
    with Timer() as t:
        try:
            with rt.client() as client:
                client.purge_doc(doc_id, keep)
        except GristError as e:
            _fail(rt, "purge.doc", e, target)
            return
    result = MutationResult(
        done=True, kind="document", id=doc_id, status=200,
        message=f"History cleared ({keep} last states)",
    )
    env = success_envelope(
        "purge.doc", result.model_dump(), target=target,
        changes=[ChangeRecord(type="doc.purge", target=doc_id, after={"keep": keep})],
        duration_ms=t.elapsed_ms,
    )
    _emit(rt, env, lambda c: render.render_mutation(c, result))


# ---------------------------------------------------------------------------
# gristctl delete doc | user | workspace
# ---------------------------------------------------------------------------
YesOpt = Annotated[bool, typer.Option("--yes", "-y", help="Do not ask for confirmation")]

_DELETE_USER_MESSAGES = {
    400: "The passed user name does not match the one retrieved from the database given the passed user id",
    403: "The caller is not allowed to delete this account",
    404: "The user is not found",
}


def _delete(
    rt: Runtime,
    command: str,
    kind: str,
    ident: str | int,
    target: Target,
    action: Callable[[GristClient], None],
    failure_message: Callable[[GristError], str] | None = None,
) -> None:
    with Timer() as t:
        try:
            with rt.client() as client:
                action(client)
        except (RemoteError, NotFoundError) as e:
            message = failure_message(e) if failure_message else f"Unable to delete {kind} {ident} : {e}"
            _emit(rt, error_envelope(
                command, e.code, message, target=target, details=e.details(),
            ))
            return
        except GristError as e:
            _fail(rt, command, e, target)
            return
    result = MutationResult(
        done=True, kind=kind, id=ident, status=200,
        message=f"{kind.capitalize()} {ident} deleted",
    )
    env = success_envelope(
        command, result.model_dump(), target=target,
        changes=[ChangeRecord(type=f"{kind}.delete", target=str(ident))],
        duration_ms=t.elapsed_ms,
    )
    _emit(rt, env, lambda c: render.render_mutation(c, result))


@delete_app.command("doc")
def delete_doc(
    ctx: typer.Context,
    doc_id: Annotated[str, typer.Argument(help="Document id")],
    yes: YesOpt = False,
):
    """Delete a document.

    Example: `gristctl delete doc 4mTz9kbDq7Yr`
    """
    rt = _runtime(ctx)
    target = Target(doc=doc_id)
    _confirm(rt, "delete.doc", f"Do you really want to delete document {doc_id} ?", yes, target)
    _delete(rt, "delete.doc", "document", doc_id, target, lambda c: c.delete_doc(doc_id))


@delete_app.command("workspace")
def delete_workspace(
    ctx: typer.Context,
    workspace_id: Annotated[int, typer.Argument(help="Workspace id")],
    yes: YesOpt = False,
):
    """Delete a workspace and its documents.

    Example: `gristctl delete workspace 12`
    """
    rt = _runtime(ctx)
    target = Target(workspace=workspace_id)
    _confirm(rt, "delete.workspace", f"Do you really want to delete workspace {workspace_id} ?", yes, target)
    _delete(
        rt, "delete.workspace", "workspace", workspace_id, target,
        lambda c: c.delete_workspace(workspace_id),
    )


@delete_app.command("user")
def delete_user(
    ctx: typer.Context,
    user_id: Annotated[int, typer.Argument(help="User id")],
    yes: YesOpt = False,
):
    """Delete a user account.

    Example: `gristctl delete user 42`
    """
    rt = _runtime(ctx)
    target = Target(user=user_id)

    def failure(e: GristError) -> str:
        status = getattr(e, "status", None)
        reason = _DELETE_USER_MESSAGES.get(status, f"Unable to delete user {user_id}")
        body = getattr(e, "body", "")
        return f"{reason} ({body})" if body else reason

    _confirm(rt, "delete.user", f"Do you really want to delete user {user_id} ?", yes, target)
    _delete(rt, "delete.user", "user", user_id, target, lambda c: c.delete_user(user_id), failure)
