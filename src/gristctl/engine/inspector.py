"""Document inspection and organization summary.

Both fan out one task per child resource (table, workspace), join on all of
them, then sort, so the order in which fetches complete never shows in the
output.
"""

from __future__ import annotations

from gristctl.adapters.grist_api import GristClient
from gristctl.contracts.models import Org, Table, Workspace
from gristctl.contracts.responses import (
    DocDigest,
    DocumentSummary,
    OrgSummary,
    TableInspection,
    WorkspaceDigest,
    WorkspaceSummary,
)
from gristctl.engine.fanout import casefold_key, fan_out


def _inspect_table(client: GristClient, doc_id: str, table_id: str) -> TableInspection:
    columns = client.list_columns(doc_id, table_id)
    row_ids = client.get_row_ids(doc_id, table_id)
    return TableInspection(
        table_id=table_id,
        columns=sorted(col.id for col in columns),
        row_count=len(row_ids),
    )


def inspect_document(
    client: GristClient,
    doc_id: str,
    *,
    max_workers: int | None = None,
) -> DocumentSummary:
    """Fetch a document, then every table's columns and row count in parallel.

    Raises NotFoundError (before any table call) when the document does not
    exist. A table whose columns or rows cannot be fetched is reported with
    ``error`` set rather than as an empty table.
    """
    doc = client.get_doc(doc_id)
    tables = client.list_tables(doc_id)

    def task(table: Table) -> TableInspection:
        return _inspect_table(client, doc_id, table.id)

    outcomes = fan_out(tables, task, max_workers=max_workers)
    results: list[TableInspection] = []
    for table, outcome in zip(tables, outcomes):
        if outcome.ok:
            results.append(outcome.value)
        else:
            results.append(TableInspection(
                table_id=table.id,
                error=f"Inspection failed for table {table.id}: {outcome.error}",
            ))
    results.sort(key=lambda t: t.table_id)

    ws = doc.workspace
    return DocumentSummary(
        doc_id=doc.id,
        name=doc.name,
        is_pinned=doc.is_pinned,
        workspace_id=ws.id if ws else None,
        workspace_name=ws.name if ws else None,
        tables=results,
    )


def list_orgs(client: GristClient) -> list[Org]:
    return sorted(client.list_orgs(), key=lambda o: casefold_key(o.name))


def summarize_org(
    client: GristClient,
    org_id: int,
    *,
    max_workers: int | None = None,
) -> OrgSummary:
    """Organization with, per workspace, its document and direct-user counts."""
    org = client.get_org(org_id)
    workspaces = client.list_workspaces(org.id)

    def task(ws: Workspace) -> int:
        access = client.get_workspace_access(ws.id)
        return sum(1 for user in access.users if user.access)

    outcomes = fan_out(workspaces, task, max_workers=max_workers)
    digests = [
        WorkspaceDigest(
            id=ws.id,
            name=ws.name,
            nb_docs=len(ws.docs),
            nb_users=outcome.value if outcome.ok else 0,
            error=None if outcome.ok else str(outcome.error),
        )
        for ws, outcome in zip(workspaces, outcomes)
    ]
    digests.sort(key=lambda d: (d.name, d.id))
    return OrgSummary(
        id=org.id,
        name=org.name,
        nb_workspaces=len(workspaces),
        workspaces=digests,
    )


def describe_workspace(client: GristClient, workspace_id: int) -> WorkspaceSummary:
    ws = client.get_workspace(workspace_id)
    docs = sorted(
        (DocDigest(id=d.id, name=d.name, is_pinned=d.is_pinned) for d in ws.docs),
        key=lambda d: casefold_key(d.name),
    )
    return WorkspaceSummary(
        org_id=ws.org.id if ws.org else None,
        org_name=ws.org.name if ws.org else None,
        id=ws.id,
        name=ws.name,
        nb_docs=len(docs),
        docs=docs,
    )
