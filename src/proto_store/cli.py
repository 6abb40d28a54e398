#!/usr/bin/env python3
"""
proto_store_tools - offline maintenance for prototype module documents.

Runs the same locked client the MCP server uses, directly against a data
directory, so it is safe to use next to a running server only when they do
not share a process (locks are per process).

Examples:
    proto-store-tools --data-dir public/data show issue
    proto-store-tools format-data issue
    proto-store-tools merge issue /tmp/issue.json
    proto-store-tools update-status --file issue --name issue_owner --status approved
    proto-store-tools add-comment --file overlay --name menu --item-name menu_main --comment "check copy"
"""

import argparse
import asyncio
import json
import sys
from typing import Any, Awaitable, Optional

from pydantic import ValidationError

from .client import ProtoStoreClient
from .client.document_helper import (
    all_comments,
    all_hotspots,
    count_live,
    drawer_title,
    is_deleted,
    iter_nodes,
)
from .config import ServerConfig
from .models import (
    CommentCreateRequest,
    CommentDeleteRequest,
    CommentUpdateRequest,
    GlobalHotspotDeleteRequest,
    HotspotDeleteRequest,
    ProtoStoreError,
    SlideUpdateRequest,
    StatusUpdateRequest,
)

PREFIX = "[proto_store_tools]"


def die(msg: str) -> None:
    print(f"{PREFIX} ERROR: {msg}", file=sys.stderr)
    sys.exit(1)


def _client(args: argparse.Namespace) -> ProtoStoreClient:
    overrides: dict[str, Any] = {}
    if args.data_dir:
        overrides["data_dir"] = args.data_dir
    return ProtoStoreClient(ServerConfig(**overrides).get_store_config())  # type: ignore[call-arg]


def _run(awaitable: Awaitable[Any]) -> Any:
    try:
        return asyncio.run(awaitable)
    except ProtoStoreError as e:
        details = f" {json.dumps(e.details, default=str)}" if e.details else ""
        die(f"{e.message}{details}")


def _request(model: Any, fields: dict[str, Any], **values: Any) -> Any:
    try:
        return model(**fields, **values)
    except ValidationError as e:
        die(f"invalid arguments: {e.errors(include_url=False, include_input=False, include_context=False)}")


def _addressing(args: argparse.Namespace, with_zone: bool = True) -> dict[str, Any]:
    fields: dict[str, Any] = {"file": args.file, "name": args.name}
    if args.item_name:
        fields["item_name"] = args.item_name
    if args.parent:
        fields["parent"] = args.parent
    if with_zone and getattr(args, "scroll_zone", None):
        fields["scroll_zone"] = args.scroll_zone
    return fields


def _report(operation: str, summary: dict[str, Any]) -> None:
    state = "changed" if summary.get("changed") else "unchanged"
    ident = f" id={summary['id']}" if summary.get("id") else ""
    print(f"{PREFIX} {operation}: {state}{ident} {json.dumps(summary.get('address', {}))}")


def format_node_line(label: str, node: dict[str, Any]) -> str:
    """One preview line: label, status, live hotspots/comments, drawer title."""
    flags = " [deleted]" if is_deleted(node) else ""
    hotspots = count_live(all_hotspots(node))
    comments = count_live(all_comments(node))
    zones = len(node.get("scrollZones") or [])
    title = drawer_title(node)
    drawer = f" drawer={title!r}" if title else ""
    status = node.get("status") or "-"
    return f"  {label}{flags}  status={status} hotspots={hotspots} comments={comments} zones={zones}{drawer}"


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def cmd_show(args: argparse.Namespace) -> None:
    document = _run(_client(args).get_module(args.module))
    if args.json:
        print(json.dumps(document, indent=2, ensure_ascii=False))
        return
    lines = [format_node_line(label, node) for label, node in iter_nodes(document, args.module)]
    if not lines:
        print(f"{PREFIX} {args.module}: {len(document)} entries (no nodes)")
        return
    print(f"{PREFIX} {args.module}: {len(lines)} node(s)")
    for line in lines:
        print(line)


def cmd_format_data(args: argparse.Namespace) -> None:
    counters = _run(_client(args).format_module(args.module))
    print(f"{PREFIX} formatted {args.module}: {counters['nodes']} node(s), {counters['ids_assigned']} id(s) assigned")


def cmd_merge(args: argparse.Namespace) -> None:
    result = _run(_client(args).merge_files(args.existing, args.new_file))
    print(f"{PREFIX} merged {args.new_file} into {args.existing}:")
    for key, value in result.summary().items():
        print(f"  {key}: {value}")


def cmd_update_status(args: argparse.Namespace) -> None:
    client = _client(args)
    request = _request(StatusUpdateRequest, _addressing(args, with_zone=False), status=args.status)
    _report("update-status", _run(client.update_status(request)).summary())


def cmd_update_slide(args: argparse.Namespace) -> None:
    client = _client(args)
    drawer_info = {"title": args.title} if args.title is not None else None
    request = _request(
        SlideUpdateRequest,
        _addressing(args, with_zone=False),
        show_in_drawer=args.show,
        drawer_info=drawer_info,
    )
    _report("update-slide", _run(client.update_slide(request)).summary())


def cmd_add_comment(args: argparse.Namespace) -> None:
    client = _client(args)
    request = _request(
        CommentCreateRequest,
        _addressing(args),
        type=args.type,
        comment=args.comment,
        user=args.user,
        x=args.x,
        y=args.y,
    )
    _report("add-comment", _run(client.add_comment(request)).summary())


def cmd_update_comment(args: argparse.Namespace) -> None:
    client = _client(args)
    content: dict[str, Any] = {}
    if args.comment is not None:
        content["comment"] = args.comment
    if args.type is not None:
        content["type"] = args.type
    if args.resolved is not None:
        content["resolved"] = args.resolved
    request = _request(CommentUpdateRequest, _addressing(args), id=args.id, **content)
    _report("update-comment", _run(client.update_comment(request)).summary())


def cmd_delete_comment(args: argparse.Namespace) -> None:
    client = _client(args)
    request = _request(CommentDeleteRequest, _addressing(args), id=args.id)
    _report("delete-comment", _run(client.delete_comment(request)).summary())


def cmd_delete_hotspot(args: argparse.Namespace) -> None:
    client = _client(args)
    request = _request(HotspotDeleteRequest, _addressing(args), id=args.id)
    _report("delete-hotspot", _run(client.delete_hotspot(request)).summary())


def cmd_delete_global_hotspot(args: argparse.Namespace) -> None:
    client = _client(args)
    request = _request(GlobalHotspotDeleteRequest, _addressing(args), hotspot_name=args.hotspot_name)
    _report("delete-global-hotspot", _run(client.delete_global_hotspot(request)).summary())


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def _add_address_args(parser: argparse.ArgumentParser, with_zone: bool = True) -> None:
    parser.add_argument("--file", required=True, help="Module name (overlay / global are special)")
    parser.add_argument("--name", required=True, help="Node name (or overlay name with --item-name)")
    parser.add_argument("--item-name", help="Overlay item name when --name is the overlay")
    parser.add_argument("--parent", help="Overlay name when --name is the item")
    if with_zone:
        parser.add_argument("--scroll-zone", help="Scroll zone id to narrow to")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Inspect and edit prototype module documents (show/format/merge/annotate).",
    )
    parser.add_argument("--data-dir", help="Data directory (default: PROTO_STORE_DATA_DIR or public/data)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # show
    p_show = subparsers.add_parser("show", help="Print a node preview of a module")
    p_show.add_argument("module", help="Module name")
    p_show.add_argument("--json", action="store_true", help="Dump the raw document instead")
    p_show.set_defaults(func=cmd_show)

    # format-data
    p_format = subparsers.add_parser("format-data", help="Stamp ids and addressing fields on a module")
    p_format.add_argument("module", help="Module name")
    p_format.set_defaults(func=cmd_format_data)

    # merge
    p_merge = subparsers.add_parser("merge", help="Merge an edited copy into a live module")
    p_merge.add_argument("existing", help="Live module name")
    p_merge.add_argument("new_file", help="Path to the edited copy (relative = merge folder)")
    p_merge.set_defaults(func=cmd_merge)

    # update-status
    p_status = subparsers.add_parser("update-status", help="Set a node's status")
    _add_address_args(p_status, with_zone=False)
    p_status.add_argument("--status", required=True, help="not-started, conceptual, in-progress, approved, on-hold")
    p_status.set_defaults(func=cmd_update_status)

    # update-slide
    p_slide = subparsers.add_parser("update-slide", help="Show or hide a node in the drawer")
    _add_address_args(p_slide, with_zone=False)
    shown = p_slide.add_mutually_exclusive_group(required=True)
    shown.add_argument("--show", dest="show", action="store_true", help="Show in drawer (needs --title)")
    shown.add_argument("--hide", dest="show", action="store_false", help="Hide from drawer")
    p_slide.add_argument("--title", help="Drawer title")
    p_slide.set_defaults(func=cmd_update_slide)

    # add-comment
    p_add_c = subparsers.add_parser("add-comment", help="Add a comment to a form")
    _add_address_args(p_add_c)
    p_add_c.add_argument("--comment", required=True, help="Comment text")
    p_add_c.add_argument(
        "--type", default="comment", choices=["logic", "notification", "comment", "question", "design"]
    )
    p_add_c.add_argument("--user", help="Author")
    p_add_c.add_argument("--x", type=float, help="Pin x")
    p_add_c.add_argument("--y", type=float, help="Pin y")
    p_add_c.set_defaults(func=cmd_add_comment)

    # update-comment
    p_upd_c = subparsers.add_parser("update-comment", help="Update a comment's text/type/resolved flag")
    _add_address_args(p_upd_c)
    p_upd_c.add_argument("--id", required=True, help="Comment id")
    p_upd_c.add_argument("--comment", help="New text")
    p_upd_c.add_argument("--type", choices=["logic", "notification", "comment", "question", "design"])
    resolved = p_upd_c.add_mutually_exclusive_group()
    resolved.add_argument("--resolved", dest="resolved", action="store_true", default=None)
    resolved.add_argument("--unresolved", dest="resolved", action="store_false")
    p_upd_c.set_defaults(func=cmd_update_comment)

    # delete-comment
    p_del_c = subparsers.add_parser("delete-comment", help="Soft-delete a comment")
    _add_address_args(p_del_c)
    p_del_c.add_argument("--id", required=True, help="Comment id")
    p_del_c.set_defaults(func=cmd_delete_comment)

    # delete-hotspot
    p_del_h = subparsers.add_parser("delete-hotspot", help="Soft-delete a unique hotspot")
    _add_address_args(p_del_h)
    p_del_h.add_argument("--id", required=True, help="Hotspot id")
    p_del_h.set_defaults(func=cmd_delete_hotspot)

    # delete-global-hotspot
    p_del_g = subparsers.add_parser("delete-global-hotspot", help="Soft-delete a global hotspot instance")
    _add_address_args(p_del_g)
    p_del_g.add_argument("--hotspot-name", required=True, help="Global hotspot name")
    p_del_g.set_defaults(func=cmd_delete_global_hotspot)

    return parser


def main(argv: Optional[list[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    args.func(args)


if __name__ == "__main__":  # pragma: no cover
    main()
