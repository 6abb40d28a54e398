#!/usr/bin/env python3
"""
Merge worker - folds externally edited module copies into the live data.

Designers drop an edited ``<module>.json`` into the merge folder. Every file
whose name matches a live module is merged into it (see
``client.module_reconcile``) and then moved out of the way:

    <merge_dir>/_processed/<stamp>-<module>.json   merged
    <merge_dir>/_failed/<stamp>-<module>.json      unreadable copy

Files that match no live module stay where they are and are reported.

Usage:
    proto-store-merge-worker --once
    proto-store-merge-worker                      # poll every merge_poll_interval seconds
    proto-store-merge-worker --existing issue --new-file /tmp/issue.json
"""

import argparse
import asyncio
import os
import shutil
import sys
from datetime import datetime
from typing import Any, Sequence

from .client import ProtoStoreClient
from .config import ServerConfig, setup_logging
from .models import MalformedDocumentError, ProtoStoreError

PROCESSED_DIR = "_processed"
FAILED_DIR = "_failed"


def log_worker(message: str, component: str = "MERGE_WORKER") -> None:
    """Log to stderr with timestamp."""
    timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
    print(f"[{timestamp}] [{component}] {message}", file=sys.stderr, flush=True)


def _move_aside(path: str, merge_dir: str, bucket: str) -> str:
    target_dir = os.path.join(merge_dir, bucket)
    os.makedirs(target_dir, exist_ok=True)
    stamp = datetime.now().strftime("%Y%m%d-%H%M%S-%f")
    target = os.path.join(target_dir, f"{stamp}-{os.path.basename(path)}")
    shutil.move(path, target)
    return target


def pending_files(merge_dir: str) -> list[str]:
    """Return the ``*.json`` files waiting in the drop folder, sorted by name."""
    if not os.path.isdir(merge_dir):
        return []
    return sorted(
        entry
        for entry in os.listdir(merge_dir)
        if entry.endswith(".json") and os.path.isfile(os.path.join(merge_dir, entry))
    )


async def process_merge_folder(client: ProtoStoreClient, merge_dir: str | None = None) -> dict[str, Any]:
    """Merge every drop-folder file that matches a live module.

    Returns:
        ``{"merged": [...], "unmatched": [...], "failed": [...]}``; merged
        entries carry the module name and the merge counters.
    """
    merge_dir = merge_dir or str(client.config.resolved_merge_dir)
    summary: dict[str, Any] = {"merged": [], "unmatched": [], "failed": []}

    for entry in pending_files(merge_dir):
        path = os.path.join(merge_dir, entry)
        try:
            module = client.module_name_from_file(entry)
        except ProtoStoreError:
            summary["unmatched"].append(entry)
            continue
        if not client.module_exists(module):
            log_worker(f"{entry}: no live module '{module}', left in place")
            summary["unmatched"].append(entry)
            continue

        try:
            result = await client.merge_files(module, path)
        except MalformedDocumentError as e:
            moved = _move_aside(path, merge_dir, FAILED_DIR)
            log_worker(f"{entry}: unreadable ({e.message}), moved to {moved}")
            summary["failed"].append({"file": entry, "error": e.message})
            continue
        except ProtoStoreError as e:
            log_worker(f"{entry}: merge failed ({e.message}), left in place")
            summary["failed"].append({"file": entry, "error": e.message})
            continue

        moved = _move_aside(path, merge_dir, PROCESSED_DIR)
        log_worker(f"{entry}: merged into '{module}' {result.summary()}, moved to {moved}")
        summary["merged"].append({"file": entry, "module": module, **result.summary()})

    return summary


async def watch_merge_folder(client: ProtoStoreClient, interval: float, merge_dir: str | None = None) -> None:
    """Poll the drop folder forever."""
    merge_dir = merge_dir or str(client.config.resolved_merge_dir)
    log_worker(f"Watching {merge_dir} every {interval}s")
    while True:
        summary = await process_merge_folder(client, merge_dir)
        if summary["merged"] or summary["failed"]:
            log_worker(f"pass done: {len(summary['merged'])} merged, {len(summary['failed'])} failed")
        await asyncio.sleep(interval)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Prototype store merge-folder worker")
    parser.add_argument("--data-dir", help="Override PROTO_STORE_DATA_DIR")
    parser.add_argument("--merge-dir", help="Override PROTO_STORE_MERGE_DIR")
    parser.add_argument("--once", action="store_true", help="Process the folder once and exit")
    parser.add_argument("--existing", help="Live module to merge into (with --new-file)")
    parser.add_argument("--new-file", help="Edited copy to merge (with --existing)")
    parser.add_argument("--interval", type=float, help="Seconds between scans (default from config)")
    return parser


async def main(argv: Sequence[str] | None = None) -> int:
    """Main worker entry point."""
    args = build_parser().parse_args(argv)

    overrides: dict[str, Any] = {}
    if args.data_dir:
        overrides["data_dir"] = args.data_dir
    if args.merge_dir:
        overrides["merge_dir"] = args.merge_dir
    config = ServerConfig(**overrides)  # type: ignore[call-arg]
    setup_logging(config.log_level)
    client = ProtoStoreClient(config.get_store_config())

    if bool(args.existing) != bool(args.new_file):
        log_worker("ERROR: --existing and --new-file must be given together")
        return 2

    try:
        if args.existing:
            result = await client.merge_files(args.existing, args.new_file)
            log_worker(f"merge done: {result.summary()}")
            return 0
        if args.once:
            summary = await process_merge_folder(client)
            log_worker(f"merge folder processed: {summary}")
            return 1 if summary["failed"] else 0
        await watch_merge_folder(client, args.interval or config.merge_poll_interval)
    except ProtoStoreError as e:
        log_worker(f"ERROR: {e.message}")
        return 1
    return 0


def run() -> None:
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        log_worker("Worker interrupted by user")
        sys.exit(130)


if __name__ == "__main__":
    run()
