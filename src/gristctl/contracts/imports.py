"""Models for the bulk user import."""

from __future__ import annotations

from pydantic import BaseModel, Field


class UserImportRecord(BaseModel):
    """One accepted ``email;orgId;workspaceName;role`` line."""

    email: str
    org_id: int
    workspace_name: str
    role: str


class LineDiagnostic(BaseModel):
    """Why an input line was rejected."""

    line_number: int
    line: str
    reason: str


class GroupOutcome(BaseModel):
    """Outcome of one (org, workspace) group: one resolution, at most one PATCH."""

    org_id: int
    workspace_name: str
    workspace_id: int | None = None
    created: bool = False
    users: dict[str, str] = Field(default_factory=dict)
    ok: bool = False
    status: int | None = None
    error: str | None = None

    @property
    def nb_users(self) -> int:
        return len(self.users)


class ImportReport(BaseModel):
    """Result of ``import users``."""

    nb_lines: int = 0
    nb_records: int = 0
    diagnostics: list[LineDiagnostic] = Field(default_factory=list)
    groups: list[GroupOutcome] = Field(default_factory=list)

    @property
    def failed_groups(self) -> list[GroupOutcome]:
        return [g for g in self.groups if not g.ok]

    @property
    def ok(self) -> bool:
        return not self.failed_groups
