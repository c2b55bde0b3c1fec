"""Access-list views for organizations, workspaces, documents and users."""

from __future__ import annotations

from gristctl.adapters.grist_api import GristClient
from gristctl.contracts.models import AccessEntry, Org, Workspace
from gristctl.contracts.responses import AccessView, UserAccessRow
from gristctl.engine.fanout import casefold_key, fan_out

_ROLE_DESCRIPTIONS = {
    "": "No inheritance of rights from upper level",
    "owners": "Full inheritance of rights from the next level up",
    "editors": "Inherit display and edit rights from higher level",
    "viewers": "Inheritance of consultation rights from higher level",
}


def describe_role(role: str | None) -> str:
    """Human explanation of a ``maxInheritedRole`` value."""
    role = role or ""
    return _ROLE_DESCRIPTIONS.get(role, f"Inheritance level : {role}")


def visible_users(users: list[AccessEntry]) -> list[AccessEntry]:
    """Entries carrying some access level, sorted by email (case-insensitive)."""
    return sorted((u for u in users if u.visible), key=lambda u: casefold_key(u.email))


def org_access(client: GristClient, org_id: int) -> AccessView:
    org = client.get_org(org_id)
    access = client.get_org_access(org.id)
    return AccessView(
        kind="organization",
        id=org.id,
        name=org.name,
        org_id=org.id,
        org_name=org.name,
        max_inherited_role=access.max_inherited_role,
        users=visible_users(access.users),
    )


def workspace_access(client: GristClient, workspace_id: int) -> AccessView:
    ws = client.get_workspace(workspace_id)
    access = client.get_workspace_access(ws.id)
    return AccessView(
        kind="workspace",
        id=ws.id,
        name=ws.name,
        workspace_id=ws.id,
        workspace_name=ws.name,
        org_id=ws.org.id if ws.org else None,
        org_name=ws.org.name if ws.org else None,
        max_inherited_role=access.max_inherited_role,
        users=visible_users(access.users),
    )


def doc_access(client: GristClient, doc_id: str) -> AccessView:
    doc = client.get_doc(doc_id)
    access = client.get_doc_access(doc.id)
    ws = doc.workspace
    return AccessView(
        kind="document",
        id=doc.id,
        name=doc.name,
        workspace_id=ws.id if ws else None,
        workspace_name=ws.name if ws else None,
        org_id=ws.org.id if ws and ws.org else None,
        org_name=ws.org.name if ws and ws.org else None,
        max_inherited_role=access.max_inherited_role,
        users=visible_users(access.users),
    )


def user_matrix(
    client: GristClient,
    *,
    max_workers: int | None = None,
) -> tuple[list[UserAccessRow], list[str]]:
    """One row per (user, workspace) where the user holds a direct access.

    Returns the rows and one message per org or workspace whose listing
    failed, so a partial matrix is never mistaken for a complete one.
    """
    orgs = client.list_orgs()
    listings = fan_out(orgs, lambda org: client.list_workspaces(org.id), max_workers=max_workers)

    failures: list[str] = []
    pairs: list[tuple[Org, Workspace]] = []
    for org, listing in zip(orgs, listings):
        if not listing.ok:
            failures.append(f"Workspaces of organization {org.id} unavailable: {listing.error}")
            continue
        pairs.extend((org, ws) for ws in listing.value)

    accesses = fan_out(
        pairs,
        lambda pair: client.get_workspace_access(pair[1].id),
        max_workers=max_workers,
    )
    rows: list[UserAccessRow] = []
    for (org, ws), access in zip(pairs, accesses):
        if not access.ok:
            failures.append(f"Access of workspace {ws.id} unavailable: {access.error}")
            continue
        rows.extend(
            UserAccessRow(
                id=user.id,
                email=user.email,
                name=user.name,
                org_id=org.id,
                org_name=org.name,
                workspace_id=ws.id,
                workspace_name=ws.name,
                parent_access=user.parent_access,
                direct_access=user.access,
            )
            for user in access.value.users
            if user.access
        )
    rows.sort(key=lambda r: (casefold_key(r.email), r.org_id, r.workspace_name))
    return rows, failures
