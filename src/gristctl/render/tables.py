"""Human-readable rendering (``-o table``) with rich."""

from __future__ import annotations

from collections.abc import Iterable

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from gristctl.contracts.common import ResponseEnvelope
from gristctl.contracts.imports import ImportReport
from gristctl.contracts.models import Org
from gristctl.contracts.responses import (
    AccessView,
    DocumentSummary,
    ExportResult,
    MutationResult,
    OrgSummary,
    UserAccessRow,
    WorkspaceSummary,
)
from gristctl.engine.access import describe_role

PIN = "📌"


def title(text: str) -> str:
    """Frame a title between two dashed lines of its own length."""
    line = "-" * len(text)
    return f"{line}\n{text}\n{line}"


def _s(value: object) -> str:
    return escape("" if value is None else str(value))


def _table(*headers: str) -> Table:
    table = Table(show_lines=False)
    for header in headers:
        table.add_column(header)
    return table


def display_title(console: Console, text: str) -> None:
    console.print(title(text), markup=False, highlight=False)


def render_orgs(console: Console, orgs: Iterable[Org]) -> None:
    table = _table("Id", "Name")
    for org in orgs:
        table.add_row(str(org.id), _s(org.name))
    console.print(table)


def render_org_summary(console: Console, summary: OrgSummary) -> None:
    display_title(console, f"Organization n°{summary.id} : {summary.name}")
    console.print(f"Contains {summary.nb_workspaces} workspaces:", markup=False)
    table = _table("Id", "Name", "Documents", "Direct users")
    for ws in summary.workspaces:
        users = str(ws.nb_users) if ws.error is None else "[red]unavailable[/red]"
        table.add_row(str(ws.id), _s(ws.name), str(ws.nb_docs), users)
    console.print(table)


def render_document(console: Console, summary: DocumentSummary) -> None:
    pinned = f" {PIN}" if summary.is_pinned else ""
    display_title(console, f"Document '{summary.name}' ({summary.doc_id}){pinned}")
    console.print(f"Contains {len(summary.tables)} tables :", markup=False)
    if not summary.tables:
        return
    table = _table("Table", "Nb columns", "Columns", "Nb rows")
    for tbl in summary.tables:
        if tbl.failed:
            table.add_row(_s(tbl.table_id), "", f"[red]{_s(tbl.error)}[/red]", "")
            continue
        if not tbl.columns:
            table.add_row(_s(tbl.table_id), "0", "", str(tbl.row_count))
            continue
        for i, col in enumerate(tbl.columns):
            if i == 0:
                table.add_row(_s(tbl.table_id), str(tbl.nb_columns), _s(col), str(tbl.row_count))
            else:
                table.add_row("", "", _s(col), "")
    console.print(table)


def render_workspace(console: Console, ws: WorkspaceSummary) -> None:
    display_title(
        console,
        f"Organization n°{ws.org_id} : '{ws.org_name}' | Workspace n°{ws.id} : '{ws.name}'",
    )
    console.print(f"Contains {ws.nb_docs} documents :", markup=False)
    if not ws.docs:
        console.print("No documents")
        return
    table = _table("Id", "Name", "Pinned")
    for doc in ws.docs:
        table.add_row(_s(doc.id), _s(doc.name), PIN if doc.is_pinned else "")
    console.print(table)


def render_access(console: Console, view: AccessView) -> None:
    if view.kind == "document":
        heading = (
            f'Workspace "{view.workspace_name}" (n°{view.workspace_id}), '
            f'document "{view.name}"'
        )
    else:
        heading = f"{view.kind.capitalize()} n°{view.id} : {view.name}"
    display_title(console, heading)
    console.print(describe_role(view.max_inherited_role), markup=False)
    if not view.users:
        console.print("Accessible to no user")
        return
    console.print(f"\nAccessible to {view.nb_users} users :", markup=False)
    table = _table("Id", "Name", "Email", "Inherited access", "Direct access")
    for user in view.users:
        table.add_row(
            str(user.id), _s(user.name), _s(user.email),
            _s(user.parent_access), _s(user.access),
        )
    console.print(table)


def render_user_matrix(console: Console, rows: Iterable[UserAccessRow]) -> None:
    table = _table(
        "Id", "Email", "Name", "Org id", "Org name",
        "Workspace id", "Workspace name", "Parent access", "Direct access",
    )
    for row in rows:
        table.add_row(
            str(row.id), _s(row.email), _s(row.name), str(row.org_id), _s(row.org_name),
            str(row.workspace_id), _s(row.workspace_name),
            _s(row.parent_access), _s(row.direct_access),
        )
    console.print(table)


def render_import(console: Console, report: ImportReport) -> None:
    display_title(console, "Import users from stdin")
    for diag in report.diagnostics:
        console.print(
            f"[red]ERROR[/red] : line {diag.line_number}: {_s(diag.reason)} : {_s(diag.line)}"
        )
    if not report.groups:
        console.print("Nothing to import")
        return
    for group in report.groups:
        where = f"workspace n°{group.workspace_id}" if group.workspace_id else f"workspace '{group.workspace_name}'"
        if group.created:
            where += " (created)"
        status = "✅" if group.ok else f"❗️ ({_s(group.error)})"
        console.print(f"Import {group.nb_users} users in {_s(where)}\t : {status}")


def render_export(console: Console, result: ExportResult) -> None:
    console.print(f"Document {_s(result.doc_id)} exported to {_s(result.path)} ({result.size} bytes) ✅")
    if result.sheets:
        console.print(f"Sheets : {_s(', '.join(result.sheets))}")


def render_csv(console: Console, rows: list[dict[str, str]]) -> None:
    if not rows:
        console.print("Empty table")
        return
    table = _table(*[escape(h) for h in rows[0].keys()])
    for row in rows:
        table.add_row(*[_s(v) for v in row.values()])
    console.print(table)


def render_mutation(console: Console, result: MutationResult) -> None:
    if result.done:
        console.print(f"{_s(result.message)}\t✅")
    else:
        console.print(f"[red]{_s(result.message)}[/red] ❗️")


def render_errors(console: Console, envelope: ResponseEnvelope) -> None:
    for warning in envelope.warnings:
        console.print(f"[yellow]WARNING[/yellow] : {_s(warning.message)}")
    for error in envelope.errors:
        console.print(f"❗️ {_s(error.message)} ❗️")
