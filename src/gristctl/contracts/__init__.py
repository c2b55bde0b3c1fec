"""Pydantic models for API resources, command results and envelopes."""

from gristctl.contracts.common import (
    ChangeRecord,
    ConfigError,
    ErrorDetail,
    GristError,
    Metrics,
    NotFoundError,
    RemoteError,
    ResponseEnvelope,
    Target,
    TransportError,
    WarningDetail,
)
from gristctl.contracts.imports import (
    GroupOutcome,
    ImportReport,
    LineDiagnostic,
    UserImportRecord,
)
from gristctl.contracts.models import (
    AccessEntry,
    AccessLevel,
    Column,
    Doc,
    EntityAccess,
    Org,
    Table,
    Workspace,
)
from gristctl.contracts.responses import (
    AccessView,
    DocumentSummary,
    ExportResult,
    MutationResult,
    OrgSummary,
    TableInspection,
    UserAccessRow,
    WorkspaceDigest,
    WorkspaceSummary,
)

__all__ = [
    "AccessEntry",
    "AccessLevel",
    "AccessView",
    "ChangeRecord",
    "Column",
    "ConfigError",
    "Doc",
    "DocumentSummary",
    "EntityAccess",
    "ErrorDetail",
    "ExportResult",
    "GristError",
    "GroupOutcome",
    "ImportReport",
    "LineDiagnostic",
    "Metrics",
    "MutationResult",
    "NotFoundError",
    "Org",
    "OrgSummary",
    "RemoteError",
    "ResponseEnvelope",
    "Table",
    "TableInspection",
    "Target",
    "TransportError",
    "UserAccessRow",
    "UserImportRecord",
    "WarningDetail",
    "Workspace",
    "WorkspaceDigest",
    "WorkspaceSummary",
]
