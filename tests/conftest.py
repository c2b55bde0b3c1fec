"""Shared test fixtures: an in-memory Grist API behind httpx.MockTransport."""

from __future__ import annotations

import io
import json
import re
import threading
import time
from typing import Any

import httpx
import pytest
from openpyxl import Workbook

from gristctl.adapters.grist_api import GristClient
from gristctl.cli import Runtime
from gristctl.config import Settings

BASE_URL = "https://grist.test"
TOKEN = "secret-token"


class FakeGrist:
    """Minimal stateful Grist API answering the routes gristctl uses."""

    def __init__(self) -> None:
        self.orgs: dict[int, dict[str, Any]] = {}
        self.org_workspaces: dict[int, list[int]] = {}
        self.workspaces: dict[int, dict[str, Any]] = {}
        self.docs: dict[str, dict[str, Any]] = {}
        self.tables: dict[str, list[str]] = {}
        self.columns: dict[tuple[str, str], list[str]] = {}
        self.rows: dict[tuple[str, str], int] = {}
        self.access: dict[tuple[str, Any], dict[str, Any]] = {}
        self.failures: dict[tuple[str, str], tuple[int, str]] = {}
        self.delay: float = 0.0
        self.next_workspace_id = 100
        self.create_response: str | None = None
        self.requests: list[httpx.Request] = []
        self._lock = threading.Lock()

    # -- fixtures -------------------------------------------------------
    def add_org(self, org_id: int, name: str, domain: str | None = None) -> None:
        self.orgs[org_id] = {"id": org_id, "name": name, "domain": domain or name.lower()}
        self.org_workspaces.setdefault(org_id, [])

    def add_workspace(self, org_id: int, ws_id: int, name: str) -> None:
        self.workspaces[ws_id] = {"id": ws_id, "name": name, "org": self.orgs[org_id], "docs": []}
        self.org_workspaces[org_id].append(ws_id)

    def add_doc(
        self,
        ws_id: int,
        doc_id: str,
        name: str,
        tables: dict[str, tuple[list[str], int]] | None = None,
        pinned: bool = False,
    ) -> None:
        doc = {"id": doc_id, "name": name, "isPinned": pinned}
        self.workspaces[ws_id]["docs"].append(doc)
        ws = self.workspaces[ws_id]
        self.docs[doc_id] = {
            **doc,
            "workspace": {"id": ws_id, "name": ws["name"], "org": ws["org"]},
        }
        self.tables[doc_id] = list((tables or {}).keys())
        for table_id, (cols, nrows) in (tables or {}).items():
            self.columns[(doc_id, table_id)] = cols
            self.rows[(doc_id, table_id)] = nrows

    def set_access(self, kind: str, ident: Any, users: list[dict[str, Any]], max_inherited_role: str | None = "owners") -> None:
        self.access[(kind, ident)] = {"maxInheritedRole": max_inherited_role, "users": users}

    def fail(self, method: str, path: str, status: int = 500, body: str = '{"error": "boom"}') -> None:
        self.failures[(method, path)] = (status, body)

    # -- inspection -----------------------------------------------------
    def calls(self, method: str | None = None, pattern: str | None = None) -> list[httpx.Request]:
        return [
            r for r in self.requests
            if (method is None or r.method == method)
            and (pattern is None or re.search(pattern, r.url.path))
        ]

    # -- transport ------------------------------------------------------
    def handler(self, request: httpx.Request) -> httpx.Response:
        with self._lock:
            self.requests.append(request)
        path = request.url.path.removeprefix("/api/")
        failure = self.failures.get((request.method, path))
        if failure is not None:
            return httpx.Response(failure[0], text=failure[1])
        return self._route(request, path)

    def _json(self, data: Any, status: int = 200) -> httpx.Response:
        return httpx.Response(status, json=data)

    def _missing(self) -> httpx.Response:
        return httpx.Response(404, json={"error": "not found"})

    def _route(self, request: httpx.Request, path: str) -> httpx.Response:
        method = request.method
        parts = path.split("/")

        if parts[0] == "orgs":
            if len(parts) == 1:
                return self._json(list(self.orgs.values()))
            org_id = int(parts[1]) if parts[1].isdigit() else None
            if org_id not in self.orgs:
                return self._missing()
            if len(parts) == 2:
                return self._json(self.orgs[org_id])
            if parts[2] == "access":
                return self._json(self.access.get(("org", org_id), {"users": []}))
            if parts[2] == "workspaces" and method == "GET":
                return self._json([self.workspaces[w] for w in self.org_workspaces[org_id]])
            if parts[2] == "workspaces" and method == "POST":
                if self.create_response is not None:
                    return httpx.Response(200, text=self.create_response)
                body = json.loads(request.content)
                ws_id = self.next_workspace_id
                self.next_workspace_id += 1
                self.add_workspace(org_id, ws_id, body["name"])
                return self._json(ws_id)

        if parts[0] == "workspaces":
            ws_id = int(parts[1])
            if ws_id not in self.workspaces:
                return self._missing()
            if len(parts) == 2 and method == "GET":
                return self._json(self.workspaces[ws_id])
            if len(parts) == 2 and method == "DELETE":
                del self.workspaces[ws_id]
                return self._json(None)
            if parts[2] == "access" and method == "GET":
                return self._json(self.access.get(("workspace", ws_id), {"users": []}))
            if parts[2] == "access" and method == "PATCH":
                return self._json(None)

        if parts[0] == "docs":
            doc_id = parts[1]
            if doc_id not in self.docs:
                return self._missing()
            if len(parts) == 2 and method == "GET":
                return self._json(self.docs[doc_id])
            if len(parts) == 2 and method == "DELETE":
                del self.docs[doc_id]
                return self._json(None)
            if parts[2] == "tables" and len(parts) == 3:
                return self._json({"tables": [{"id": t, "fields": {}} for t in self.tables[doc_id]]})
            if parts[2] == "tables" and len(parts) == 5:
                key = (doc_id, parts[3])
                if key not in self.columns:
                    return self._missing()
                if self.delay:
                    time.sleep(self.delay)
                if parts[4] == "columns":
                    return self._json({"columns": [{"id": c, "fields": {}} for c in self.columns[key]]})
                if parts[4] == "data":
                    return self._json({"id": list(range(1, self.rows[key] + 1))})
            if parts[2] == "access":
                return self._json(self.access.get(("doc", doc_id), {"users": []}))
            if parts[2:] == ["states", "remove"] and method == "POST":
                return self._json(None)
            if parts[2] == "download":
                if len(parts) == 3:
                    return httpx.Response(200, content=b"SQLite format 3\x00fake")
                if parts[3] == "xlsx":
                    return httpx.Response(200, content=_xlsx_bytes(self.tables[doc_id]))
                if parts[3] == "csv":
                    table_id = request.url.params.get("tableId")
                    if (doc_id, table_id) not in self.columns:
                        return self._missing()
                    return httpx.Response(200, text="name,city\nAlice,Strasbourg\nBob,Colmar\n")

        if parts[0] == "users" and method == "DELETE":
            return self._json(None)

        return httpx.Response(400, json={"error": f"unhandled route {method} {path}"})


def _xlsx_bytes(sheets: list[str]) -> bytes:
    wb = Workbook()
    wb.active.title = sheets[0] if sheets else "Sheet"
    for name in sheets[1:]:
        wb.create_sheet(name)
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


@pytest.fixture()
def grist() -> FakeGrist:
    """A small instance: org 1 'Acme' with two workspaces and one document."""
    fake = FakeGrist()
    fake.add_org(1, "Acme")
    fake.add_org(2, "beta")
    fake.add_workspace(1, 10, "Sales")
    fake.add_workspace(1, 11, "Finance")
    fake.add_doc(10, "doc1", "Clients", {
        "Orders": (["Total", "Date", "Client"], 5),
        "Clients": (["Name", "City"], 2),
    }, pinned=True)
    fake.add_doc(10, "doc2", "archive")
    fake.set_access("workspace", 10, [
        {"id": 3, "name": "Zoe", "email": "zoe@acme.test", "access": "editors", "parentAccess": None},
        {"id": 1, "name": "Alice", "email": "Alice@acme.test", "access": "owners", "parentAccess": "owners"},
        {"id": 2, "name": "Nobody", "email": "nobody@acme.test", "access": None, "parentAccess": None},
        {"id": 4, "name": "Bob", "email": "bob@acme.test", "access": None, "parentAccess": "viewers"},
    ])
    fake.set_access("workspace", 11, [
        {"id": 1, "name": "Alice", "email": "Alice@acme.test", "access": "viewers", "parentAccess": None},
    ])
    return fake


@pytest.fixture()
def client(grist: FakeGrist) -> GristClient:
    c = GristClient(BASE_URL, TOKEN, transport=httpx.MockTransport(grist.handler))
    yield c
    c.close()


@pytest.fixture()
def runtime(grist: FakeGrist) -> Runtime:
    """CLI runtime wired to the fake API; pass as ``obj=`` to CliRunner.invoke."""
    return Runtime(
        settings=Settings(url=BASE_URL, token=TOKEN),
        transport=httpx.MockTransport(grist.handler),
    )
