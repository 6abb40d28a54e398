"""
Tests for proto_store.client.store_core

Covers:
  - module name validation and path layout
  - load errors (missing, invalid JSON, non-object root)
  - atomic save and StorageError
  - hourly archive buckets and activity log (best-effort)
"""

from __future__ import annotations

import json
import os
from datetime import datetime
from pathlib import Path

import pytest

from conftest import read_module, write_module
from proto_store.client.store_core import ProtoStoreCore, save_json
from proto_store.models import (
    DocumentNotFoundError,
    InvalidAddressError,
    MalformedDocumentError,
    StorageError,
    StoreConfiguration,
)

NOW = datetime(2026, 10, 19, 9, 5, 0)


@pytest.fixture
def core(data_dir: Path) -> ProtoStoreCore:
    return ProtoStoreCore(StoreConfiguration(data_dir=data_dir), clock=lambda: NOW)


class TestModuleNames:

    @pytest.mark.parametrize("name", ["issue", "issue_v2", "a.b-c"])
    def test_valid(self, name):
        assert ProtoStoreCore.validate_module_name(name) == name

    @pytest.mark.parametrize("name", ["", "../etc/passwd", ".hidden", "a/b", "with space"])
    def test_invalid(self, name):
        with pytest.raises(InvalidAddressError):
            ProtoStoreCore.validate_module_name(name)

    def test_json_suffix_stripped(self):
        assert ProtoStoreCore.module_name_from_file("issue.json") == "issue"
        assert ProtoStoreCore.module_name_from_file("/drop/issue.json") == "issue"

    def test_list_modules(self, core, data_dir):
        (data_dir / "notes.txt").write_text("x")
        assert core.list_modules() == ["global", "issue", "overlay"]


class TestLoadSave:

    def test_load(self, core):
        assert core.load_module("issue")["issue_owner"]["id"] == "n-owner"

    def test_missing_module(self, core):
        with pytest.raises(DocumentNotFoundError) as exc_info:
            core.load_module("ghost")
        assert exc_info.value.missing == "module"

    def test_invalid_json(self, core, data_dir):
        (data_dir / "broken.json").write_text("{not json", encoding="utf-8")
        with pytest.raises(MalformedDocumentError):
            core.load_module("broken")

    def test_non_object_root(self, core, data_dir):
        (data_dir / "listy.json").write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(MalformedDocumentError):
            core.load_module("listy")

    def test_save_roundtrip_and_no_temp_left(self, core, data_dir):
        core.save_module("fresh", {"a": {"id": "1"}})
        assert read_module(data_dir, "fresh") == {"a": {"id": "1"}}
        assert not [p for p in os.listdir(data_dir) if p.endswith(".tmp")]

    def test_failed_save_keeps_previous_file(self, core, data_dir):
        write_module(data_dir, "keep", {"v": 1})
        with pytest.raises(StorageError):
            core.save_module("keep", {"bad": {1, 2}})
        assert read_module(data_dir, "keep") == {"v": 1}
        assert not [p for p in os.listdir(data_dir) if p.endswith(".tmp")]

    def test_save_json_indent(self, tmp_path):
        path = tmp_path / "x.json"
        save_json(str(path), {"a": 1}, indent=2)
        assert path.read_text(encoding="utf-8") == '{\n  "a": 1\n}'


class TestArchive:

    def test_archive_bucket_layout(self, core, data_dir):
        path = core.archive_module("issue", {"snap": True})
        expected = data_dir / "_archive" / "issue" / "Mon-Oct-19-2026" / "9.json"
        assert Path(path) == expected
        assert json.loads(expected.read_text(encoding="utf-8")) == {"snap": True}

    def test_archive_failure_is_swallowed(self, core, data_dir):
        (data_dir / "_archive").write_text("a file where a folder should be")
        assert core.archive_module("issue", {"snap": True}) is None


class TestActivityLog:

    def test_entries_appended_to_hour_file(self, core, data_dir):
        assert core.log_activity("first", "note")
        assert core.log_activity("second", "success")
        entries = json.loads((data_dir / "_log" / "Mon-Oct-19-2026" / "9.json").read_text(encoding="utf-8"))
        assert [(e["type"], e["log"]) for e in entries] == [("note", "first"), ("success", "second")]
        assert entries[0]["timestamp"].endswith("Z")

    def test_unknown_severity_becomes_note(self, core, data_dir):
        core.log_activity("odd", "shout")
        entries = json.loads((data_dir / "_log" / "Mon-Oct-19-2026" / "9.json").read_text(encoding="utf-8"))
        assert entries[-1]["type"] == "note"

    def test_failure_never_raises(self, core, data_dir):
        (data_dir / "_log").write_text("not a folder")
        assert core.log_activity("lost") is False
