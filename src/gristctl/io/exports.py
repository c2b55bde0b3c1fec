"""Saving downloaded documents and tables to disk."""

from __future__ import annotations

import csv
import io
import re
from pathlib import Path

import openpyxl

from gristctl.contracts.common import RemoteError
from gristctl.contracts.models import Doc
from gristctl.io.fileops import atomic_write, fingerprint

EXTENSIONS = {"grist": ".grist", "xlsx": ".xlsx", "csv": ".csv"}

_UNSAFE = re.compile(r"[\\/:*?\"<>|\x00-\x1f]+")


def export_filename(doc: Doc, fmt: str) -> str:
    """``<workspace>_<doc>.<ext>`` with path-unsafe characters replaced."""
    ws_name = doc.workspace.name if doc.workspace else ""
    stem = f"{ws_name}_{doc.name}" if ws_name else doc.name or doc.id
    return _UNSAFE.sub("_", stem) + EXTENSIONS[fmt]


def write_export(path: str | Path, data: bytes) -> str:
    """Write downloaded bytes atomically. Returns the file fingerprint."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    atomic_write(p, data)
    return fingerprint(p)


def xlsx_sheet_names(data: bytes) -> list[str]:
    """Sheet names of a downloaded workbook; a non-workbook body is a RemoteError.

    Read from memory, before anything is written to disk.
    """
    try:
        wb = openpyxl.load_workbook(io.BytesIO(data), read_only=True)
    except Exception as e:
        raise RemoteError(200, "", "download/xlsx", reason=f"Downloaded file is not a valid workbook ({e})") from e
    try:
        return list(wb.sheetnames)
    finally:
        wb.close()


def parse_csv(text: str) -> list[dict[str, str]]:
    """Rows of a CSV table download keyed by header."""
    return list(csv.DictReader(io.StringIO(text)))
