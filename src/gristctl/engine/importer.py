"""Bulk user import: ``email;orgId;workspaceName;role`` lines to access deltas.

Records are grouped by (org, workspace name). Each group resolves or creates
its workspace once and sends a single PATCH carrying every user of the
group, so the group succeeds or fails as a whole.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from gristctl.adapters.grist_api import GristClient
from gristctl.contracts.common import GristError, TransportError
from gristctl.contracts.imports import (
    GroupOutcome,
    ImportReport,
    LineDiagnostic,
    UserImportRecord,
)
from gristctl.engine.fanout import group_by
from gristctl.observe.events import EventEmitter

FIELD_SEPARATOR = ";"
EXPECTED_FORMAT = "<mail>;<org id>;<workspace name>;<role>"

_INTEGER = re.compile(r"^[+-]?\d+$")


def is_valid_email(email: str) -> bool:
    """Loose check: contains an ``@``."""
    return "@" in email


def parse_import_line(line: str, line_number: int) -> UserImportRecord | LineDiagnostic:
    """Parse one line into a record, or explain why it is rejected."""
    fields = line.split(FIELD_SEPARATOR)
    if len(fields) != 4:
        return LineDiagnostic(
            line_number=line_number,
            line=line,
            reason=f"badly formatted line (should have 4 columns, found {len(fields)})",
        )
    email, org_id, workspace_name, role = fields
    if not is_valid_email(email):
        return LineDiagnostic(line_number=line_number, line=line, reason=f"invalid email: {email}")
    if not _INTEGER.match(org_id):
        return LineDiagnostic(
            line_number=line_number,
            line=line,
            reason=f"org id should be an integer: {org_id}",
        )
    return UserImportRecord(
        email=email,
        org_id=int(org_id),
        workspace_name=workspace_name,
        role=role,
    )


def parse_import_lines(
    lines: Iterable[str],
) -> tuple[list[UserImportRecord], list[LineDiagnostic], int]:
    """Split input into accepted records and per-line diagnostics.

    Blank lines are ignored. Returns ``(records, diagnostics, nb_lines)``
    where ``nb_lines`` counts the non-blank lines read.
    """
    records: list[UserImportRecord] = []
    diagnostics: list[LineDiagnostic] = []
    nb_lines = 0
    for number, raw in enumerate(lines, start=1):
        line = raw.rstrip("\r\n")
        if not line.strip():
            continue
        nb_lines += 1
        parsed = parse_import_line(line, number)
        if isinstance(parsed, LineDiagnostic):
            diagnostics.append(parsed)
        else:
            records.append(parsed)
    return records, diagnostics, nb_lines


def group_records(records: Iterable[UserImportRecord]) -> dict[tuple[int, str], list[UserImportRecord]]:
    return group_by(records, lambda r: (r.org_id, r.workspace_name))


def find_workspace(client: GristClient, org_id: int, name: str) -> int | None:
    """Id of the workspace named ``name`` in the org, or None.

    Names match exactly (case-sensitive).
    """
    for ws in client.list_workspaces(org_id):
        if ws.name == name:
            return ws.id
    return None


def import_group(
    client: GristClient,
    org_id: int,
    workspace_name: str,
    records: list[UserImportRecord],
) -> GroupOutcome:
    """Resolve or create the group's workspace, then PATCH every user in one delta."""
    users: dict[str, str] = {}
    for record in records:
        users[record.email] = record.role
    outcome = GroupOutcome(org_id=org_id, workspace_name=workspace_name, users=users)

    try:
        outcome.workspace_id = find_workspace(client, org_id, workspace_name)
    except TransportError:
        raise
    except GristError as e:
        outcome.status = getattr(e, "status", None)
        outcome.error = f"Unable to list workspaces of organization {org_id}: {e}"
        return outcome

    if outcome.workspace_id is None:
        try:
            outcome.workspace_id = client.create_workspace(org_id, workspace_name)
        except TransportError:
            raise
        except GristError as e:
            outcome.status = getattr(e, "status", None)
            outcome.error = f"Unable to create workspace {workspace_name}: {e}"
            return outcome
        outcome.created = True

    try:
        client.patch_workspace_access(outcome.workspace_id, users)
    except TransportError:
        raise
    except GristError as e:
        outcome.status = getattr(e, "status", None)
        outcome.error = str(e)
        return outcome

    outcome.ok = True
    outcome.status = 200
    return outcome


def import_users(
    client: GristClient,
    lines: Iterable[str],
    *,
    events: EventEmitter | None = None,
) -> ImportReport:
    """Parse, group and apply an import. Transport errors abort the run."""
    events = events or EventEmitter()
    records, diagnostics, nb_lines = parse_import_lines(lines)
    for diag in diagnostics:
        events.emit("import.line_rejected", diag.model_dump())

    report = ImportReport(nb_lines=nb_lines, nb_records=len(records), diagnostics=diagnostics)
    for (org_id, workspace_name), group in sorted(group_records(records).items()):
        outcome = import_group(client, org_id, workspace_name, group)
        events.emit("import.group", {
            "org_id": org_id,
            "workspace_name": workspace_name,
            "workspace_id": outcome.workspace_id,
            "created": outcome.created,
            "nb_users": outcome.nb_users,
            "ok": outcome.ok,
        })
        report.groups.append(outcome)
    return report
