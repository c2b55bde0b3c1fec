"""Tests for CLI commands via Typer test runner."""

from __future__ import annotations

import json
from pathlib import Path

import httpx
import pytest
from openpyxl import load_workbook
from typer.testing import CliRunner

from gristctl.cli import Runtime, app
from gristctl.config import Settings

from conftest import BASE_URL, TOKEN, FakeGrist

runner = CliRunner()


def run_json(runtime: Runtime, *args: str, **kwargs):
    result = runner.invoke(app, ["-o", "json", *args], obj=runtime, **kwargs)
    return result, json.loads(result.stdout)


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    for name in ("GRIST_URL", "GRIST_TOKEN", "GRIST_EVENTS", "GRIST_MAX_WORKERS"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("GRISTCTL_CONFIG", str(tmp_path / "gristctl.env"))


def test_version():
    result = runner.invoke(app, ["-o", "json", "version"])
    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["ok"] is True
    assert "version" in data["result"]


def test_version_flag():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert result.stdout.strip()


# ---------------------------------------------------------------------------
# get org
# ---------------------------------------------------------------------------


def test_get_org_list(runtime: Runtime):
    result, data = run_json(runtime, "get", "org")
    assert result.exit_code == 0
    assert data["command"] == "get.org.list"
    assert [o["name"] for o in data["result"]] == ["Acme", "beta"]


def test_get_org_list_table(runtime: Runtime):
    result = runner.invoke(app, ["get", "org"], obj=runtime)
    assert result.exit_code == 0
    assert "Acme" in result.stdout
    assert "beta" in result.stdout


def test_get_org_summary(runtime: Runtime):
    result, data = run_json(runtime, "get", "org", "1")
    assert result.exit_code == 0
    assert data["target"]["org"] == 1
    ws = {w["name"]: w for w in data["result"]["workspaces"]}
    assert ws["Sales"]["nb_docs"] == 2
    assert ws["Sales"]["nb_users"] == 2


def test_get_org_summary_warns_on_unavailable_access(runtime: Runtime, grist: FakeGrist):
    grist.fail("GET", "workspaces/11/access", 500, "oops")
    result, data = run_json(runtime, "get", "org", "1")
    assert result.exit_code == 0
    assert [w["code"] for w in data["warnings"]] == ["WORKSPACE_ACCESS_UNAVAILABLE"]


def test_get_org_not_found(runtime: Runtime):
    result, data = run_json(runtime, "get", "org", "99")
    assert result.exit_code == 20
    assert data["ok"] is False
    assert data["errors"][0]["code"] == "ERR_ORGANIZATION_NOT_FOUND"


def test_get_org_access(runtime: Runtime, grist: FakeGrist):
    grist.set_access("org", 1, [
        {"id": 1, "name": "Alice", "email": "alice@acme.test", "access": "owners"},
    ])
    result, data = run_json(runtime, "get", "org", "1", "access")
    assert result.exit_code == 0
    assert data["command"] == "get.org.access"
    assert [u["email"] for u in data["result"]["users"]] == ["alice@acme.test"]


def test_get_org_unknown_view(runtime: Runtime):
    result, data = run_json(runtime, "get", "org", "1", "members")
    assert result.exit_code == 10
    assert data["errors"][0]["code"] == "ERR_USAGE"


# ---------------------------------------------------------------------------
# get doc
# ---------------------------------------------------------------------------


def test_get_doc(runtime: Runtime):
    result, data = run_json(runtime, "get", "doc", "doc1")
    assert result.exit_code == 0
    tables = data["result"]["tables"]
    assert [t["table_id"] for t in tables] == ["Clients", "Orders"]
    assert tables[1]["columns"] == ["Client", "Date", "Total"]
    assert tables[1]["row_count"] == 5


def test_get_doc_table_mode(runtime: Runtime):
    result = runner.invoke(app, ["get", "doc", "doc1"], obj=runtime)
    assert result.exit_code == 0
    assert "Document 'Clients' (doc1)" in result.stdout
    assert "Contains 2 tables" in result.stdout


def test_get_doc_partial_failure(runtime: Runtime, grist: FakeGrist):
    grist.fail("GET", "docs/doc1/tables/Orders/columns", 500, "boom")
    result, data = run_json(runtime, "get", "doc", "doc1")
    assert result.exit_code == 50
    assert data["ok"] is False
    assert data["errors"][0]["code"] == "ERR_TABLE_INSPECTION_FAILED"
    assert data["errors"][0]["details"] == {"table": "Orders"}
    clients = next(t for t in data["result"]["tables"] if t["table_id"] == "Clients")
    assert clients["error"] is None


def test_get_doc_not_found(runtime: Runtime, grist: FakeGrist):
    result, data = run_json(runtime, "get", "doc", "missing")
    assert result.exit_code == 20
    assert data["errors"][0]["code"] == "ERR_DOCUMENT_NOT_FOUND"
    assert not grist.calls(pattern="/tables")


def test_get_doc_not_found_table_mode(runtime: Runtime):
    result = runner.invoke(app, ["get", "doc", "missing"], obj=runtime)
    assert result.exit_code == 20
    assert "Document missing not found" in result.stdout


def test_get_doc_unknown_action(runtime: Runtime):
    result, data = run_json(runtime, "get", "doc", "doc1", "pdf")
    assert result.exit_code == 10
    assert "'access', 'grist', 'excel' or 'table <name>'" in data["errors"][0]["message"]


def test_get_doc_access(runtime: Runtime, grist: FakeGrist):
    grist.set_access("doc", "doc1", [
        {"id": 5, "name": "Eve", "email": "eve@acme.test", "access": "viewers"},
    ])
    result, data = run_json(runtime, "get", "doc", "doc1", "access")
    assert result.exit_code == 0
    assert data["result"]["kind"] == "document"
    assert data["result"]["users"][0]["name"] == "Eve"


def test_export_excel(runtime: Runtime, tmp_path: Path):
    result, data = run_json(runtime, "get", "doc", "doc1", "excel", "--out", str(tmp_path))
    assert result.exit_code == 0
    path = tmp_path / "Sales_Clients.xlsx"
    assert data["result"]["path"] == str(path)
    assert data["result"]["fingerprint"].startswith("sha256:")
    assert data["result"]["sheets"] == ["Orders", "Clients"]
    wb = load_workbook(path, read_only=True)
    assert wb.sheetnames == ["Orders", "Clients"]
    wb.close()


def test_export_grist_to_file(runtime: Runtime, tmp_path: Path):
    target = tmp_path / "backup.grist"
    result, data = run_json(runtime, "get", "doc", "doc1", "grist", "--out", str(target))
    assert result.exit_code == 0
    assert target.read_bytes().startswith(b"SQLite format 3")
    assert data["result"]["size"] == target.stat().st_size
    assert data["target"]["file"] == str(target)


def test_export_invalid_workbook(runtime: Runtime, grist: FakeGrist, tmp_path: Path):
    grist.fail("GET", "docs/doc1/download/xlsx", 200, "not a workbook")
    result, data = run_json(runtime, "get", "doc", "doc1", "excel", "--out", str(tmp_path))
    assert result.exit_code == 30
    assert "not a valid workbook" in data["errors"][0]["message"]
    assert list(tmp_path.iterdir()) == []


def test_failed_export_keeps_existing_file(runtime: Runtime, grist: FakeGrist, tmp_path: Path):
    previous = tmp_path / "Sales_Clients.xlsx"
    previous.write_bytes(b"previous export")
    grist.fail("GET", "docs/doc1/download/xlsx", 200, "not a workbook")
    result, _ = run_json(runtime, "get", "doc", "doc1", "excel", "--out", str(tmp_path))
    assert result.exit_code == 30
    assert previous.read_bytes() == b"previous export"
    assert sorted(p.name for p in tmp_path.iterdir()) == ["Sales_Clients.xlsx"]


def test_table_content(runtime: Runtime):
    result, data = run_json(runtime, "get", "doc", "doc1", "table", "Clients")
    assert result.exit_code == 0
    assert data["result"]["columns"] == ["name", "city"]
    assert data["result"]["rows"][0] == {"name": "Alice", "city": "Strasbourg"}
    assert data["result"]["row_count"] == 2


def test_table_content_to_file(runtime: Runtime, tmp_path: Path):
    result, data = run_json(runtime, "get", "doc", "doc1", "table", "Clients", "--out", str(tmp_path))
    assert result.exit_code == 0
    assert (tmp_path / "Clients.csv").read_text().startswith("name,city")
    assert data["result"]["format"] == "csv"


def test_table_content_unknown_table(runtime: Runtime):
    result, data = run_json(runtime, "get", "doc", "doc1", "table", "Nope")
    assert result.exit_code == 20
    assert data["errors"][0]["code"] == "ERR_TABLE_NOT_FOUND"


def test_table_without_name(runtime: Runtime):
    result, data = run_json(runtime, "get", "doc", "doc1", "table")
    assert result.exit_code == 10


# ---------------------------------------------------------------------------
# get workspace / users
# ---------------------------------------------------------------------------


def test_get_workspace(runtime: Runtime):
    result, data = run_json(runtime, "get", "workspace", "10")
    assert result.exit_code == 0
    assert data["result"]["org_name"] == "Acme"
    assert [d["name"] for d in data["result"]["docs"]] == ["archive", "Clients"]


def test_get_workspace_access_table_mode(runtime: Runtime):
    result = runner.invoke(app, ["get", "workspace", "10", "access"], obj=runtime)
    assert result.exit_code == 0
    assert "Full inheritance of rights from the next level up" in result.stdout
    assert "Accessible to 3 users" in result.stdout


def test_get_workspace_not_found(runtime: Runtime):
    result, data = run_json(runtime, "get", "workspace", "404")
    assert result.exit_code == 20


def test_get_users(runtime: Runtime):
    result, data = run_json(runtime, "get", "users")
    assert result.exit_code == 0
    assert [(r["email"], r["workspace_name"]) for r in data["result"]] == [
        ("Alice@acme.test", "Finance"),
        ("Alice@acme.test", "Sales"),
        ("zoe@acme.test", "Sales"),
    ]
    assert data["warnings"] == []


# ---------------------------------------------------------------------------
# import users
# ---------------------------------------------------------------------------


def test_import_users_from_stdin(runtime: Runtime, grist: FakeGrist):
    stdin = "alice@example.com;1;Reporting;editors\nbroken line\nbob@example.com;1;Reporting;viewers\n"
    result, data = run_json(runtime, "import", "users", input=stdin)
    assert result.exit_code == 0
    assert data["ok"] is True
    assert [w["code"] for w in data["warnings"]] == ["MALFORMED_LINE"]
    assert [c["type"] for c in data["changes"]] == ["workspace.create", "workspace.access"]
    group = data["result"]["groups"][0]
    assert group["users"] == {"alice@example.com": "editors", "bob@example.com": "viewers"}
    assert len(grist.calls("PATCH")) == 1


def test_import_users_from_file(runtime: Runtime, tmp_path: Path):
    src = tmp_path / "users.csv"
    src.write_text("\ufeffa@x.test;1;Sales;owners\n", encoding="utf-8")
    result, data = run_json(runtime, "import", "users", "--file", str(src))
    assert result.exit_code == 0
    assert data["result"]["groups"][0]["workspace_id"] == 10
    assert data["target"]["file"] == str(src)


def test_import_group_failure_is_partial(runtime: Runtime, grist: FakeGrist):
    grist.fail("PATCH", "workspaces/10/access", 400, "bad role")
    stdin = "a@x.test;1;Sales;king\nb@x.test;1;Finance;owners\n"
    result, data = run_json(runtime, "import", "users", input=stdin)
    assert result.exit_code == 50
    assert data["ok"] is False
    assert [e["code"] for e in data["errors"]] == ["ERR_IMPORT_GROUP_FAILED"]
    assert data["errors"][0]["details"]["status"] == 400
    assert [c["target"] for c in data["changes"]] == ["workspace 11"]


def test_import_nothing_valid(runtime: Runtime, grist: FakeGrist):
    result, data = run_json(runtime, "import", "users", input="garbage\nmore;garbage\n")
    assert result.exit_code == 10
    assert data["errors"][0]["code"] == "ERR_NOTHING_TO_IMPORT"
    assert grist.requests == []


@pytest.mark.parametrize("stdin", ["", "\n\n  \n"])
def test_import_empty_input(runtime: Runtime, grist: FakeGrist, stdin: str):
    result, data = run_json(runtime, "import", "users", input=stdin)
    assert result.exit_code == 10
    assert data["ok"] is False
    assert data["errors"][0]["code"] == "ERR_NOTHING_TO_IMPORT"
    assert data["warnings"] == []
    assert grist.requests == []


def test_import_missing_file(runtime: Runtime, grist: FakeGrist, tmp_path: Path):
    missing = tmp_path / "nope.csv"
    result, data = run_json(runtime, "import", "users", "--file", str(missing))
    assert result.exit_code == 70
    assert data["errors"][0]["code"] == "ERR_IO"
    assert data["target"]["file"] == str(missing)
    assert grist.requests == []


def test_import_help_lists_format_and_roles():
    result = runner.invoke(app, ["import", "--help"])
    assert result.exit_code == 0
    assert "workspace name" in result.stdout
    assert "editors" in result.stdout


def test_import_table_mode(runtime: Runtime):
    result = runner.invoke(app, ["import", "users"], obj=runtime, input="a@x.test;1;Sales;owners\n")
    assert result.exit_code == 0
    assert "Import 1 users in workspace n°10" in result.stdout


# ---------------------------------------------------------------------------
# purge / delete
# ---------------------------------------------------------------------------


def test_purge_doc_default_keep(runtime: Runtime, grist: FakeGrist):
    result, data = run_json(runtime, "purge", "doc", "doc1")
    assert result.exit_code == 0
    assert data["result"]["message"] == "History cleared (3 last states)"
    assert json.loads(grist.calls("POST")[0].content) == {"keep": 3}


def test_purge_doc_keep(runtime: Runtime, grist: FakeGrist):
    result, data = run_json(runtime, "purge", "doc", "doc1", "10")
    assert result.exit_code == 0
    assert json.loads(grist.calls("POST")[0].content) == {"keep": 10}


def test_purge_doc_keep_must_be_positive(runtime: Runtime, grist: FakeGrist):
    result = runner.invoke(app, ["purge", "doc", "doc1", "0"], obj=runtime)
    assert result.exit_code == 2
    assert grist.requests == []


def test_purge_unknown_doc(runtime: Runtime):
    result, data = run_json(runtime, "purge", "doc", "nope")
    assert result.exit_code == 20


def test_delete_doc_with_yes(runtime: Runtime, grist: FakeGrist):
    result, data = run_json(runtime, "delete", "doc", "doc2", "--yes")
    assert result.exit_code == 0
    assert data["result"]["message"] == "Document doc2 deleted"
    assert data["changes"][0]["type"] == "document.delete"
    assert "doc2" not in grist.docs


def test_delete_requires_yes_in_json_mode(runtime: Runtime, grist: FakeGrist):
    result, data = run_json(runtime, "delete", "workspace", "10")
    assert result.exit_code == 10
    assert not grist.calls("DELETE")


def test_delete_cancelled_at_prompt(runtime: Runtime, grist: FakeGrist):
    result = runner.invoke(app, ["delete", "doc", "doc1"], obj=runtime, input="n\n")
    assert result.exit_code == 0
    assert "Cancelled" in result.stdout
    assert not grist.calls("DELETE")


def test_delete_confirmed_at_prompt(runtime: Runtime, grist: FakeGrist):
    result = runner.invoke(app, ["delete", "workspace", "11"], obj=runtime, input="y\n")
    assert result.exit_code == 0
    assert "Workspace 11 deleted" in result.stdout
    assert 11 not in grist.workspaces


def test_delete_missing_workspace(runtime: Runtime):
    result, data = run_json(runtime, "delete", "workspace", "404", "-y")
    assert result.exit_code == 20
    assert data["errors"][0]["message"].startswith("Unable to delete workspace 404 :")


def test_delete_user_forbidden(runtime: Runtime, grist: FakeGrist):
    grist.fail("DELETE", "users/5", 403, "nope")
    result, data = run_json(runtime, "delete", "user", "5", "--yes")
    assert result.exit_code == 30
    assert data["errors"][0]["message"] == "The caller is not allowed to delete this account (nope)"


# ---------------------------------------------------------------------------
# Failure classes
# ---------------------------------------------------------------------------


def test_transport_failure_exit_code():
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    rt = Runtime(settings=Settings(url=BASE_URL, token=TOKEN), transport=httpx.MockTransport(refuse))
    result, data = run_json(rt, "get", "org")
    assert result.exit_code == 40
    assert data["errors"][0]["code"] == "ERR_TRANSPORT"


def test_remote_failure_exit_code(runtime: Runtime, grist: FakeGrist):
    grist.fail("GET", "orgs", 502, "bad gateway")
    result, data = run_json(runtime, "get", "org")
    assert result.exit_code == 30
    assert data["errors"][0]["details"]["status"] == 502


def test_missing_configuration_exit_code():
    result, data = run_json(Runtime(), "get", "org")
    assert result.exit_code == 60
    assert data["errors"][0]["code"] == "ERR_CONFIG_INVALID"


# ---------------------------------------------------------------------------
# config
# ---------------------------------------------------------------------------


def test_config_show(runtime: Runtime, tmp_path: Path):
    result, data = run_json(runtime, "config")
    assert result.exit_code == 0
    assert data["result"] == {
        "path": str(tmp_path / "gristctl.env"),
        "url": BASE_URL,
        "token": "•" * len(TOKEN),
        "connected": True,
    }


def test_config_show_unconfigured():
    result, data = run_json(Runtime(), "config")
    assert result.exit_code == 0
    assert data["result"]["connected"] is False
    assert data["result"]["url"] == ""


def test_config_set(grist: FakeGrist, tmp_path: Path):
    rt = Runtime(transport=httpx.MockTransport(grist.handler))
    result, data = run_json(rt, "config", "set", "--url", BASE_URL, "--token", "new-token")
    assert result.exit_code == 0
    assert data["result"]["connected"] is True
    content = (tmp_path / "gristctl.env").read_text()
    assert f'GRIST_URL="{BASE_URL}"' in content
    assert 'GRIST_TOKEN="new-token"' in content
    assert grist.requests[-1].headers["Authorization"] == "Bearer new-token"


def test_config_set_connection_failure(grist: FakeGrist, tmp_path: Path):
    grist.fail("GET", "orgs", 401, "bad token")
    rt = Runtime(transport=httpx.MockTransport(grist.handler))
    result, data = run_json(rt, "config", "set", "--url", BASE_URL, "--token", "wrong")
    assert result.exit_code == 60
    assert data["errors"][0]["code"] == "ERR_CONFIG_CONNECTION"
    assert (tmp_path / "gristctl.env").exists()


def test_config_set_rejects_trailing_slash(tmp_path: Path):
    result, data = run_json(Runtime(), "config", "set", "--url", BASE_URL + "/", "--token", "x")
    assert result.exit_code == 60
    assert not (tmp_path / "gristctl.env").exists()
