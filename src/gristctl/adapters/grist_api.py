"""httpx-based gateway to the Grist REST API.

Every operation returns a parsed value or raises a :class:`GristError`
subclass. A failed call is never reported as an empty result:

* ``NotFoundError``: 404, or a record whose identifier is empty/zero
* ``RemoteError``: any other non-2xx status, or a body that cannot be parsed
* ``TransportError``: the request could not be built or sent (bad URL,
  DNS failure, refused connection, timeout)
"""

from __future__ import annotations

import time
from typing import Any, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError

from gristctl.config import Settings
from gristctl.contracts.common import NotFoundError, RemoteError, TransportError
from gristctl.contracts.models import (
    Column,
    Doc,
    EntityAccess,
    Org,
    Table,
    Workspace,
)
from gristctl.observe.events import EventEmitter

M = TypeVar("M")

_ORGS = TypeAdapter(list[Org])
_WORKSPACES = TypeAdapter(list[Workspace])
_TABLES = TypeAdapter(list[Table])
_COLUMNS = TypeAdapter(list[Column])

DOWNLOAD_FORMATS = {"grist": "download", "xlsx": "download/xlsx"}


def _seg(value: str | int) -> str:
    return quote(str(value), safe="")


class GristClient:
    """Thin wrapper around one ``httpx.Client`` bound to ``<url>/api/``.

    Safe to share across the fan-out worker threads.
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
        events: EventEmitter | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._events = events or EventEmitter()
        try:
            self._http = httpx.Client(
                base_url=f"{self.base_url}/api/",
                headers={
                    "Authorization": f"Bearer {token}",
                    "Content-Type": "application/json",
                },
                timeout=timeout,
                transport=transport,
            )
        except httpx.InvalidURL as e:
            raise TransportError(self.base_url, f"invalid base URL ({e})") from e

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        transport: httpx.BaseTransport | None = None,
        events: EventEmitter | None = None,
    ) -> "GristClient":
        settings.require()
        return cls(
            settings.url,
            settings.token.get_secret_value(),
            timeout=settings.timeout,
            transport=transport,
            events=events,
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "GristClient":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # HTTP plumbing
    # ------------------------------------------------------------------
    def request(
        self,
        method: str,
        path: str,
        *,
        json: Any | None = None,
        params: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Send one request. Only transport failures raise here."""
        self._events.emit("request.start", {"method": method, "path": path})
        start = time.perf_counter()
        try:
            resp = self._http.request(method, path, json=json, params=params)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            self._events.emit("request.error", {"method": method, "path": path, "error": repr(e)})
            raise TransportError(f"{self.base_url}/api/{path}", str(e) or type(e).__name__) from e
        self._events.emit("request.end", {
            "method": method,
            "path": path,
            "status": resp.status_code,
            "duration_ms": int((time.perf_counter() - start) * 1000),
        })
        return resp

    def _send(
        self,
        method: str,
        path: str,
        *,
        json: Any | None = None,
        params: dict[str, str] | None = None,
        not_found: tuple[str, str | int] | None = None,
    ) -> httpx.Response:
        resp = self.request(method, path, json=json, params=params)
        if resp.status_code == 404 and not_found is not None:
            raise NotFoundError(*not_found)
        if not resp.is_success:
            raise RemoteError(resp.status_code, resp.text, path)
        return resp

    def _get_json(self, path: str, **kwargs: Any) -> Any:
        resp = self._send("GET", path, **kwargs)
        try:
            return resp.json()
        except ValueError as e:
            raise RemoteError(resp.status_code, resp.text, path, reason="Invalid JSON response") from e

    @staticmethod
    def _parse(parser: type[M] | TypeAdapter, data: Any, path: str) -> M:
        try:
            if isinstance(parser, TypeAdapter):
                return parser.validate_python(data)
            return parser.model_validate(data)  # type: ignore[attr-defined]
        except ValidationError as e:
            raise RemoteError(200, "", path, reason=f"Unexpected response shape ({e.error_count()} errors)") from e

    # ------------------------------------------------------------------
    # Organizations
    # ------------------------------------------------------------------
    def test_connection(self) -> bool:
        try:
            return self.request("GET", "orgs").status_code == 200
        except TransportError:
            return False

    def list_orgs(self) -> list[Org]:
        return self._parse(_ORGS, self._get_json("orgs"), "orgs")

    def get_org(self, org_id: int | str) -> Org:
        path = f"orgs/{_seg(org_id)}"
        org = self._parse(Org, self._get_json(path, not_found=("organization", org_id)), path)
        if org.id == 0:
            raise NotFoundError("organization", org_id)
        return org

    def get_org_access(self, org_id: int | str) -> EntityAccess:
        path = f"orgs/{_seg(org_id)}/access"
        return self._parse(EntityAccess, self._get_json(path, not_found=("organization", org_id)), path)

    def list_workspaces(self, org_id: int | str) -> list[Workspace]:
        path = f"orgs/{_seg(org_id)}/workspaces"
        return self._parse(_WORKSPACES, self._get_json(path, not_found=("organization", org_id)), path)

    # ------------------------------------------------------------------
    # Workspaces
    # ------------------------------------------------------------------
    def get_workspace(self, workspace_id: int) -> Workspace:
        path = f"workspaces/{workspace_id}"
        ws = self._parse(Workspace, self._get_json(path, not_found=("workspace", workspace_id)), path)
        if ws.id == 0:
            raise NotFoundError("workspace", workspace_id)
        return ws

    def create_workspace(self, org_id: int, name: str) -> int:
        """Create a workspace and return its id."""
        path = f"orgs/{org_id}/workspaces"
        resp = self._send("POST", path, json={"name": name}, not_found=("organization", org_id))
        try:
            new_id = resp.json()
        except ValueError:
            new_id = None
        if not isinstance(new_id, int) or isinstance(new_id, bool) or new_id <= 0:
            raise RemoteError(resp.status_code, resp.text, path, reason="No workspace id returned")
        return new_id

    def delete_workspace(self, workspace_id: int) -> None:
        self._send("DELETE", f"workspaces/{workspace_id}", not_found=("workspace", workspace_id))

    def get_workspace_access(self, workspace_id: int) -> EntityAccess:
        path = f"workspaces/{workspace_id}/access"
        return self._parse(EntityAccess, self._get_json(path, not_found=("workspace", workspace_id)), path)

    def patch_workspace_access(self, workspace_id: int, users: dict[str, str]) -> None:
        """Apply an access delta ``{email: role}`` in a single request."""
        self._send(
            "PATCH",
            f"workspaces/{workspace_id}/access",
            json={"delta": {"users": users}},
        )

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------
    def get_doc(self, doc_id: str) -> Doc:
        path = f"docs/{_seg(doc_id)}"
        doc = self._parse(Doc, self._get_json(path, not_found=("document", doc_id)), path)
        if not doc.id:
            raise NotFoundError("document", doc_id)
        return doc

    def list_tables(self, doc_id: str) -> list[Table]:
        path = f"docs/{_seg(doc_id)}/tables"
        data = self._get_json(path, not_found=("document", doc_id))
        return self._parse(_TABLES, data.get("tables", []) if isinstance(data, dict) else data, path)

    def list_columns(self, doc_id: str, table_id: str) -> list[Column]:
        path = f"docs/{_seg(doc_id)}/tables/{_seg(table_id)}/columns"
        data = self._get_json(path, not_found=("table", table_id))
        return self._parse(_COLUMNS, data.get("columns", []) if isinstance(data, dict) else data, path)

    def get_row_ids(self, doc_id: str, table_id: str) -> list[int]:
        path = f"docs/{_seg(doc_id)}/tables/{_seg(table_id)}/data"
        data = self._get_json(path, not_found=("table", table_id))
        if not isinstance(data, dict):
            raise RemoteError(200, "", path, reason="Unexpected response shape")
        return self._parse(TypeAdapter(list[int]), data.get("id", []), path)

    def get_doc_access(self, doc_id: str) -> EntityAccess:
        path = f"docs/{_seg(doc_id)}/access"
        return self._parse(EntityAccess, self._get_json(path, not_found=("document", doc_id)), path)

    def delete_doc(self, doc_id: str) -> None:
        self._send("DELETE", f"docs/{_seg(doc_id)}", not_found=("document", doc_id))

    def purge_doc(self, doc_id: str, keep: int) -> None:
        """Discard all but the ``keep`` most recent states of the document."""
        self._send(
            "POST",
            f"docs/{_seg(doc_id)}/states/remove",
            json={"keep": keep},
            not_found=("document", doc_id),
        )

    def download_doc(self, doc_id: str, fmt: str) -> bytes:
        """Download a document as ``grist`` (SQLite) or ``xlsx``."""
        if fmt not in DOWNLOAD_FORMATS:
            raise ValueError(f"Unknown download format: {fmt}")
        path = f"docs/{_seg(doc_id)}/{DOWNLOAD_FORMATS[fmt]}"
        return self._send("GET", path, not_found=("document", doc_id)).content

    def download_table_csv(self, doc_id: str, table_id: str) -> str:
        path = f"docs/{_seg(doc_id)}/download/csv"
        return self._send("GET", path, params={"tableId": table_id}, not_found=("table", table_id)).text

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------
    def delete_user(self, user_id: int, name: str = "") -> None:
        self._send("DELETE", f"users/{user_id}", json={"name": name})
