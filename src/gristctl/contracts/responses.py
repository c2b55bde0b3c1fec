"""Command-specific result models."""

from __future__ import annotations

from pydantic import BaseModel, Field

from gristctl.contracts.models import AccessEntry


class TableInspection(BaseModel):
    """Columns and row count of one table, or why they could not be fetched."""

    table_id: str
    columns: list[str] = Field(default_factory=list)
    row_count: int = 0
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def nb_columns(self) -> int:
        return len(self.columns)


class DocumentSummary(BaseModel):
    """Result of ``get doc <id>``."""

    doc_id: str
    name: str
    is_pinned: bool = False
    workspace_id: int | None = None
    workspace_name: str | None = None
    tables: list[TableInspection] = Field(default_factory=list)

    @property
    def failed_tables(self) -> list[TableInspection]:
        return [t for t in self.tables if t.failed]


class WorkspaceDigest(BaseModel):
    """One line of the organization summary."""

    id: int
    name: str
    nb_docs: int = 0
    nb_users: int = 0
    error: str | None = None


class OrgSummary(BaseModel):
    """Result of ``get org <id>``."""

    id: int
    name: str
    nb_workspaces: int = 0
    workspaces: list[WorkspaceDigest] = Field(default_factory=list)


class DocDigest(BaseModel):
    id: str
    name: str
    is_pinned: bool = False


class WorkspaceSummary(BaseModel):
    """Result of ``get workspace <id>``."""

    org_id: int | None = None
    org_name: str | None = None
    id: int
    name: str
    nb_docs: int = 0
    docs: list[DocDigest] = Field(default_factory=list)


class AccessView(BaseModel):
    """Users holding access on an org, a workspace or a document."""

    kind: str
    id: int | str
    name: str = ""
    workspace_id: int | None = None
    workspace_name: str | None = None
    org_id: int | None = None
    org_name: str | None = None
    max_inherited_role: str | None = None
    users: list[AccessEntry] = Field(default_factory=list)

    @property
    def nb_users(self) -> int:
        return len(self.users)


class UserAccessRow(BaseModel):
    """One (user, workspace) line of the access matrix."""

    id: int
    email: str
    name: str
    org_id: int
    org_name: str
    workspace_id: int
    workspace_name: str
    parent_access: str | None = None
    direct_access: str | None = None


class ExportResult(BaseModel):
    """Result of a document or table export."""

    doc_id: str
    format: str
    path: str | None = None
    size: int = 0
    fingerprint: str | None = None
    sheets: list[str] = Field(default_factory=list)


class MutationResult(BaseModel):
    """Result of a delete or purge command."""

    done: bool
    kind: str
    id: int | str
    status: int | None = None
    message: str = ""
