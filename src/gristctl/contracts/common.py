"""Common Pydantic models: response envelope, errors, warnings, metrics."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class GristError(Exception):
    """Base class for every failure raised while talking to Grist."""

    code = "ERR_INTERNAL"

    def details(self) -> dict[str, Any] | None:
        return None


class NotFoundError(GristError):
    """A lookup by id returned 404 or an empty record."""

    def __init__(self, kind: str, ident: str | int) -> None:
        self.kind = kind
        self.ident = ident
        super().__init__(f"{kind.capitalize()} {ident} not found")

    @property
    def code(self) -> str:  # type: ignore[override]
        return f"ERR_{self.kind.upper()}_NOT_FOUND"

    def details(self) -> dict[str, Any]:
        return {"kind": self.kind, "id": self.ident}


class RemoteError(GristError):
    """The API answered with a non-2xx status or an unusable body."""

    code = "ERR_REMOTE"

    def __init__(self, status: int, body: str, path: str, reason: str | None = None) -> None:
        self.status = status
        self.body = body
        self.path = path
        self.reason = reason
        message = reason or f"HTTP {status} on {path}"
        if body:
            message = f"{message}: {body}"
        super().__init__(message)

    def details(self) -> dict[str, Any]:
        return {"status": self.status, "path": self.path, "body": self.body}


class TransportError(GristError):
    """The request could not be built or sent."""

    code = "ERR_TRANSPORT"

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Error sending request {path}: {reason}")

    def details(self) -> dict[str, Any]:
        return {"path": self.path}


class ConfigError(GristError):
    """Connection settings are missing or invalid."""

    code = "ERR_CONFIG_INVALID"


class Target(BaseModel):
    """Identifies the resource a command acted on."""

    org: int | None = None
    workspace: int | None = None
    doc: str | None = None
    table: str | None = None
    user: int | None = None
    file: str | None = None


class WarningDetail(BaseModel):
    """Structured warning."""

    code: str
    message: str
    path: str | None = None


class ErrorDetail(BaseModel):
    """Structured error."""

    code: str
    message: str
    details: dict[str, Any] | None = None


class Metrics(BaseModel):
    """Execution metrics."""

    duration_ms: int = 0


class ChangeRecord(BaseModel):
    """Describes a single remote mutation performed by a command."""

    type: str
    target: str
    before: Any | None = None
    after: Any | None = None


class ResponseEnvelope(BaseModel):
    """Standard response envelope returned by every command."""

    ok: bool = True
    command: str = ""
    target: Target = Field(default_factory=Target)
    result: Any = None
    changes: list[ChangeRecord] = Field(default_factory=list)
    warnings: list[WarningDetail] = Field(default_factory=list)
    errors: list[ErrorDetail] = Field(default_factory=list)
    metrics: Metrics = Field(default_factory=Metrics)
