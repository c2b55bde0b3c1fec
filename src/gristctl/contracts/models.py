"""Grist API resources, parsed from JSON responses."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Base for API payloads: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class AccessLevel(str, Enum):
    """Roles understood by the Grist access endpoints."""

    OWNERS = "owners"
    EDITORS = "editors"
    VIEWERS = "viewers"
    MEMBERS = "members"
    NONE = ""


class Org(ApiModel):
    id: int = 0
    name: str = ""
    domain: str | None = None
    created_at: str | None = None


class Doc(ApiModel):
    id: str = ""
    name: str = ""
    is_pinned: bool = False
    # Back-reference for display only; GET docs/{id} nests the workspace.
    workspace: Workspace | None = None


class Workspace(ApiModel):
    id: int = 0
    name: str = ""
    created_at: str | None = None
    docs: list[Doc] = Field(default_factory=list)
    org_domain: str | None = None
    org: Org | None = None
    access: str | None = None


class Table(ApiModel):
    id: str


class Column(ApiModel):
    id: str


class AccessEntry(ApiModel):
    """One user's access on an org, workspace or document."""

    id: int = 0
    name: str = ""
    email: str = ""
    access: str | None = None
    parent_access: str | None = None

    @property
    def visible(self) -> bool:
        """False when the entry carries neither a direct nor an inherited level."""
        return bool(self.access) or bool(self.parent_access)


class EntityAccess(ApiModel):
    max_inherited_role: str | None = None
    users: list[AccessEntry] = Field(default_factory=list)


Doc.model_rebuild()
Workspace.model_rebuild()
