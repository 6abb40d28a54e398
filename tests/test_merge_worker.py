"""
Tests for proto_store.merge_worker

Covers:
  - drop-folder scan merges matching modules and moves them to _processed
  - unmatched files stay in place, unreadable copies go to _failed
  - explicit --existing / --new-file mode and argument checks
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from conftest import read_module
from proto_store import merge_worker


@pytest.fixture
def merge_dir(data_dir: Path) -> Path:
    folder = data_dir / "merge"
    folder.mkdir()
    return folder


class TestProcessMergeFolder:

    @pytest.mark.asyncio
    async def test_merges_and_moves_matching_files(self, client, data_dir, merge_dir):
        upstream = read_module(data_dir, "issue")
        upstream["issue_owner"]["img"] = "issue/owner_v2.jpg"
        (merge_dir / "issue.json").write_text(json.dumps(upstream), encoding="utf-8")

        summary = await merge_worker.process_merge_folder(client)

        assert [m["module"] for m in summary["merged"]] == ["issue"]
        assert read_module(data_dir, "issue")["issue_owner"]["img"] == "issue/owner_v2.jpg"
        assert not (merge_dir / "issue.json").exists()
        processed = list((merge_dir / "_processed").iterdir())
        assert len(processed) == 1 and processed[0].name.endswith("-issue.json")

    @pytest.mark.asyncio
    async def test_unmatched_file_left_in_place(self, client, merge_dir):
        (merge_dir / "unknown.json").write_text("{}", encoding="utf-8")
        summary = await merge_worker.process_merge_folder(client)
        assert summary["unmatched"] == ["unknown.json"]
        assert (merge_dir / "unknown.json").exists()

    @pytest.mark.asyncio
    async def test_unreadable_copy_moved_to_failed(self, client, data_dir, merge_dir):
        before = read_module(data_dir, "overlay")
        (merge_dir / "overlay.json").write_text("{broken", encoding="utf-8")
        summary = await merge_worker.process_merge_folder(client)
        assert summary["failed"][0]["file"] == "overlay.json"
        assert read_module(data_dir, "overlay") == before
        assert len(list((merge_dir / "_failed").iterdir())) == 1

    @pytest.mark.asyncio
    async def test_missing_folder_is_empty(self, client, tmp_path):
        summary = await merge_worker.process_merge_folder(client, str(tmp_path / "nowhere"))
        assert summary == {"merged": [], "unmatched": [], "failed": []}

    def test_pending_files_ignores_subfolders(self, merge_dir):
        (merge_dir / "_processed").mkdir()
        (merge_dir / "a.json").write_text("{}")
        (merge_dir / "notes.txt").write_text("x")
        assert merge_worker.pending_files(str(merge_dir)) == ["a.json"]


class TestWorkerMain:

    @pytest.mark.asyncio
    async def test_explicit_merge(self, data_dir, tmp_path):
        new_file = tmp_path / "global.json"
        upstream = read_module(data_dir, "global")
        upstream["nav_home"]["link"] = "home_v2"
        new_file.write_text(json.dumps(upstream), encoding="utf-8")

        code = await merge_worker.main(
            ["--data-dir", str(data_dir), "--existing", "global", "--new-file", str(new_file)]
        )
        assert code == 0
        assert read_module(data_dir, "global")["nav_home"]["link"] == "home_v2"

    @pytest.mark.asyncio
    async def test_existing_without_new_file(self, data_dir):
        assert await merge_worker.main(["--data-dir", str(data_dir), "--existing", "global"]) == 2

    @pytest.mark.asyncio
    async def test_once(self, data_dir, merge_dir):
        (merge_dir / "issue.json").write_text(json.dumps(read_module(data_dir, "issue")), encoding="utf-8")
        assert await merge_worker.main(["--data-dir", str(data_dir), "--once"]) == 0
        assert not (merge_dir / "issue.json").exists()
