"""
Tests for proto_store.config and the error mapping of proto_store.server

Covers:
  - ServerConfig env prefix and StoreConfiguration hand-off
  - ProtoStoreError / ValidationError -> tool error payloads
  - tool functions against a client on a temp data dir
"""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from conftest import read_module
from proto_store import server
from proto_store.config import ServerConfig
from proto_store.models import MalformedDocumentError, NotFoundError, StatusUpdateRequest


class TestServerConfig:

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("PROTO_STORE_DATA_DIR", raising=False)
        config = ServerConfig(_env_file=None)  # type: ignore[call-arg]
        store = config.get_store_config()
        assert store.data_dir == Path("public/data")
        assert store.resolved_merge_dir == Path("public/data/merge")
        assert store.archive_dir == Path("public/data/_archive")
        assert config.merge_poll_interval == 2.0

    def test_env_prefix(self, monkeypatch, tmp_path):
        monkeypatch.setenv("PROTO_STORE_DATA_DIR", str(tmp_path))
        monkeypatch.setenv("PROTO_STORE_JSON_INDENT", "2")
        monkeypatch.setenv("PROTO_STORE_LOG_LEVEL", "debug")
        config = ServerConfig(_env_file=None)  # type: ignore[call-arg]
        assert config.data_dir == tmp_path
        assert config.get_store_config().json_indent == 2
        assert config.log_level == "DEBUG"

    def test_bad_log_level(self, monkeypatch):
        monkeypatch.setenv("PROTO_STORE_LOG_LEVEL", "chatty")
        with pytest.raises(ValidationError):
            ServerConfig(_env_file=None)  # type: ignore[call-arg]


class TestToolErrors:

    def test_not_found_payload(self):
        error = NotFoundError("could not find node 'x'", {"file": "issue", "name": "x"}, "node")
        assert server._error_result(error) == {
            "success": False,
            "error": "could not find node 'x'",
            "address": {"file": "issue", "name": "x"},
            "missing": "node",
        }

    def test_other_domain_error_carries_details(self):
        payload = server._error_result(MalformedDocumentError("bad", {"file": "issue"}))
        assert payload["address"] == {"file": "issue"}

    @pytest.mark.asyncio
    async def test_run_converts_validation_errors(self):
        async def call():
            StatusUpdateRequest(file="issue", name="n", status="done")
            return {}

        payload = await server._run("update status", call)
        assert payload["success"] is False
        assert payload["error"].startswith("invalid request")

    @pytest.mark.asyncio
    async def test_run_wraps_success(self):
        async def call():
            return {"changed": True}

        assert await server._run("noop", call) == {"success": True, "changed": True}

    def test_addressing_omits_unset_fields(self):
        assert server._addressing("overlay", "menu", item_name="menu_main") == {
            "file": "overlay", "name": "menu", "item_name": "menu_main",
        }

    def test_get_client_before_start(self):
        with pytest.raises(RuntimeError):
            server.get_client()


def tool_fn(tool):
    return getattr(tool, "fn", tool)


@pytest.fixture
def served(client, monkeypatch):
    monkeypatch.setattr(server, "_client", client)
    return client


class TestTools:

    @pytest.mark.asyncio
    async def test_add_hotspot_in_scroll_zone(self, served, data_dir):
        payload = await tool_fn(server.add_hotspot)(
            file="issue", name="issue_owner", x=1, y=2, w=3, h=4, link="issue_detail", scroll_zone="issue_form0",
        )
        assert payload["success"] is True
        assert payload["id"] == "gen-1"
        assert payload["address"] == {"file": "issue", "name": "issue_owner", "scrollZone": "issue_form0"}
        zone = read_module(data_dir, "issue")["issue_owner"]["scrollZones"][0]
        assert zone["hotspots"][-1]["id"] == "gen-1"
        assert zone["hotspots"][-1]["scrollZone"] == "issue_form0"
        assert len(read_module(data_dir, "issue")["issue_owner"]["hotspots"]) == 2

    @pytest.mark.asyncio
    async def test_add_hotspot_on_overlay_item(self, served, data_dir):
        payload = await tool_fn(server.add_hotspot)(
            file="overlay", name="menu", item_name="menu_main", x=0, y=0, w=10, h=10, type="hover",
        )
        assert payload["success"] is True
        hotspot = read_module(data_dir, "overlay")["menu"]["items"][0]["hotspots"][-1]
        assert (hotspot["name"], hotspot["parent"], hotspot["type"]) == ("menu_main", "menu", "hover")

    @pytest.mark.asyncio
    async def test_update_comment_writes_only_resolved(self, served, data_dir):
        payload = await tool_fn(server.update_comment)(file="issue", name="issue_owner", id="c1", resolved=False)
        assert payload["success"] is True
        assert payload["changed"] is True
        comment = read_module(data_dir, "issue")["issue_owner"]["comments"][0]
        assert comment["resolved"] is False
        assert comment["comment"] == "keep"
        assert comment["type"] == "comment"
        assert "updatedOn" in comment

    @pytest.mark.asyncio
    async def test_update_slide_shown_without_title(self, served, data_dir):
        payload = await tool_fn(server.update_slide)(file="issue", name="issue_detail", show_in_drawer=True)
        assert payload["success"] is False
        assert payload["error"].startswith("invalid request")
        assert "'input'" not in payload["error"]
        assert read_module(data_dir, "issue")["issue_detail"]["showInDrawer"] is False

    @pytest.mark.asyncio
    async def test_update_slide_shown_with_title(self, served, data_dir):
        payload = await tool_fn(server.update_slide)(
            file="issue", name="issue_detail", show_in_drawer=True, title="Detail",
        )
        assert payload["success"] is True
        node = read_module(data_dir, "issue")["issue_detail"]
        assert node["drawerInfo"] == {"title": "Detail", "group": "issue"}

    @pytest.mark.asyncio
    async def test_unknown_node_payload(self, served, data_dir):
        before = read_module(data_dir, "issue")
        payload = await tool_fn(server.delete_comment)(file="issue", name="ghost", id="c1")
        assert payload == {
            "success": False,
            "error": "could not find node 'ghost' in the provided file",
            "address": {"file": "issue", "name": "ghost"},
            "missing": "node",
        }
        assert read_module(data_dir, "issue") == before

    @pytest.mark.asyncio
    async def test_get_module(self, served):
        payload = await tool_fn(server.get_module)(file="global")
        assert payload["success"] is True
        assert payload["document"]["nav_home"]["id"] == "g1"
