"""Response envelope helpers, exit codes and JSON output."""

from __future__ import annotations

import sys
from typing import Any

import orjson

from gristctl.contracts.common import (
    ErrorDetail,
    GristError,
    Metrics,
    ResponseEnvelope,
    Target,
)

# Exit code mapping
EXIT_CODES = {
    "success": 0,
    "validation": 10,
    "not_found": 20,
    "remote": 30,
    "transport": 40,
    "partial": 50,
    "config": 60,
    "io": 70,
    "internal": 90,
}

VALIDATION_CODE_MARKERS = (
    "VALIDATION",
    "USAGE",
    "INVALID_ARGUMENT",
    "NOTHING_TO_IMPORT",
)

PARTIAL_CODE_MARKERS = (
    "INSPECTION_FAILED",
    "IMPORT_GROUP_FAILED",
    "PARTIAL",
)


def success_envelope(
    command: str,
    result: Any,
    *,
    target: Target | None = None,
    changes: list | None = None,
    warnings: list | None = None,
    duration_ms: int = 0,
) -> ResponseEnvelope:
    return ResponseEnvelope(
        ok=True,
        command=command,
        target=target or Target(),
        result=result,
        changes=changes or [],
        warnings=warnings or [],
        metrics=Metrics(duration_ms=duration_ms),
    )


def error_envelope(
    command: str,
    code: str,
    message: str,
    *,
    target: Target | None = None,
    details: dict | None = None,
    result: Any = None,
    duration_ms: int = 0,
) -> ResponseEnvelope:
    return ResponseEnvelope(
        ok=False,
        command=command,
        target=target or Target(),
        result=result,
        errors=[ErrorDetail(code=code, message=message, details=details)],
        metrics=Metrics(duration_ms=duration_ms),
    )


def exception_envelope(
    command: str,
    exc: GristError,
    *,
    target: Target | None = None,
    duration_ms: int = 0,
) -> ResponseEnvelope:
    """Envelope for a command stopped by a GristError."""
    return error_envelope(
        command,
        exc.code,
        str(exc),
        target=target,
        details=exc.details(),
        duration_ms=duration_ms,
    )


def output_json(envelope: ResponseEnvelope) -> str:
    """Serialize envelope to JSON string using orjson."""
    data = envelope.model_dump(mode="json")
    return orjson.dumps(data, option=orjson.OPT_INDENT_2).decode()


def print_response(envelope: ResponseEnvelope) -> None:
    """Print response as JSON to stdout."""
    sys.stdout.write(output_json(envelope) + "\n")


def exit_code_for(envelope: ResponseEnvelope) -> int:
    """Determine exit code from envelope errors."""
    if envelope.ok:
        return 0
    if not envelope.errors:
        return EXIT_CODES["internal"]
    code = envelope.errors[0].code.upper()
    if code.endswith("NOT_FOUND"):
        return EXIT_CODES["not_found"]
    if "TRANSPORT" in code:
        return EXIT_CODES["transport"]
    if "CONFIG" in code:
        return EXIT_CODES["config"]
    if any(marker in code for marker in PARTIAL_CODE_MARKERS):
        return EXIT_CODES["partial"]
    if any(marker in code for marker in VALIDATION_CODE_MARKERS):
        return EXIT_CODES["validation"]
    if code == "ERR_IO":
        return EXIT_CODES["io"]
    if "REMOTE" in code:
        return EXIT_CODES["remote"]
    return EXIT_CODES["internal"]
