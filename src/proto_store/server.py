"""Prototype store MCP server implementation using FastMCP."""

import logging
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, Literal

from fastmcp import FastMCP
from pydantic import ValidationError

from .client import ProtoStoreClient
from .client.store_core import log_event
from .config import ServerConfig, setup_logging
from .models import (
    CommentCreateRequest,
    CommentDeleteRequest,
    CommentUpdateRequest,
    GlobalHotspotCreateRequest,
    GlobalHotspotDeleteRequest,
    HotspotCreateRequest,
    HotspotDeleteRequest,
    HotspotUpdateRequest,
    MergeRequest,
    NotFoundError,
    ProtoStoreError,
    SlideUpdateRequest,
    StatusUpdateRequest,
)

logger = logging.getLogger(__name__)

# Global client instance
_client: ProtoStoreClient | None = None


def get_client() -> ProtoStoreClient:
    """Get the global store client instance."""
    if _client is None:
        raise RuntimeError("Prototype store client not initialized. Server not started properly.")
    return _client


@asynccontextmanager
async def lifespan(_app: FastMCP):  # type: ignore[no-untyped-def]
    """Manage server lifecycle."""
    global _client

    logger.info("Starting prototype store MCP server")
    config = ServerConfig()  # type: ignore[call-arg]
    store_config = config.get_store_config()
    _client = ProtoStoreClient(store_config)
    log_event(f"Store client initialized with data dir: {store_config.data_dir}", "SERVER")

    yield

    logger.info("Shutting down prototype store MCP server")
    _client = None


mcp = FastMCP(
    "Prototype Store MCP Server",
    version="0.1.0",
    instructions="MCP server for annotating and merging click-through prototype module documents",
    lifespan=lifespan,
)


def _error_result(e: Exception) -> dict[str, Any]:
    """Convert a domain or validation error into the tool's error payload."""
    if isinstance(e, ValidationError):
        errors = e.errors(include_url=False, include_input=False, include_context=False)
        return {"success": False, "error": f"invalid request: {errors}"}
    result: dict[str, Any] = {"success": False, "error": str(e)}
    if isinstance(e, NotFoundError):
        result["address"] = e.address
        result["missing"] = e.missing
    elif isinstance(e, ProtoStoreError) and e.details:
        result["address"] = e.details
    return result


async def _run(operation: str, call: Callable[[], Awaitable[dict[str, Any]]]) -> dict[str, Any]:
    try:
        return {"success": True, **(await call())}
    except (ProtoStoreError, ValidationError) as e:
        log_event(f"{operation} failed: {e}", "SERVER")
        return _error_result(e)


def _addressing(
    file: str,
    name: str,
    item_name: str | None = None,
    scroll_zone: str | None = None,
    parent: str | None = None,
) -> dict[str, Any]:
    fields: dict[str, Any] = {"file": file, "name": name}
    if item_name is not None:
        fields["item_name"] = item_name
    if scroll_zone is not None:
        fields["scroll_zone"] = scroll_zone
    if parent is not None:
        fields["parent"] = parent
    return fields


# Tool: Get Module
@mcp.tool(name="proto_get_module", description="Load a whole module document (e.g. 'issue', 'overlay', 'global')")
async def get_module(file: str) -> dict:
    """Return the module document.

    Args:
        file: Module name (the data file without .json)
    """
    client = get_client()

    async def call() -> dict[str, Any]:
        return {"file": file, "document": await client.get_module(file)}

    return await _run("get module", call)


# Tool: Format Module
@mcp.tool(
    name="proto_format_module",
    description="Stamp ids and addressing fields on a freshly authored module (formatData)",
)
async def format_module(file: str) -> dict:
    client = get_client()

    async def call() -> dict[str, Any]:
        return {"file": file, **(await client.format_module(file))}

    return await _run("format module", call)


# Tool: Add Hotspot
@mcp.tool(name="proto_add_hotspot", description="Add a unique hotspot to a node, overlay item or scroll zone")
async def add_hotspot(
    file: str,
    name: str,
    x: float,
    y: float,
    w: float,
    h: float,
    type: Literal["click", "hover", "overlay", "external", "newWindow"] = "click",
    link: str | None = None,
    item_name: str | None = None,
    scroll_zone: str | None = None,
    parent: str | None = None,
    id: str | None = None,
) -> dict:
    """Add a hotspot.

    Args:
        file: Module name ("overlay" for overlay items)
        name: Node name (or overlay name together with item_name)
        x, y, w, h: Hotspot rectangle
        type: click, hover, overlay, external or newWindow
        link: Target node, overlay or URL
        item_name: Overlay item name when name is the overlay
        scroll_zone: Scroll zone id to narrow to
        parent: Overlay name when name is the item
        id: Explicit id (replays with an existing id are no-ops)
    """
    client = get_client()

    async def call() -> dict[str, Any]:
        request = HotspotCreateRequest(
            **_addressing(file, name, item_name, scroll_zone, parent),
            id=id, type=type, x=x, y=y, w=w, h=h, link=link,
        )
        return (await client.add_hotspot(request)).summary()

    return await _run("add hotspot", call)


# Tool: Add Global Hotspot
@mcp.tool(name="proto_add_global_hotspot", description="Place an instance of a global hotspot on a form")
async def add_global_hotspot(
    file: str,
    name: str,
    hotspot_name: str,
    item_name: str | None = None,
    scroll_zone: str | None = None,
    parent: str | None = None,
) -> dict:
    client = get_client()

    async def call() -> dict[str, Any]:
        request = GlobalHotspotCreateRequest(
            **_addressing(file, name, item_name, scroll_zone, parent), hotspot_name=hotspot_name
        )
        return (await client.add_global_hotspot(request)).summary()

    return await _run("add global hotspot", call)


# Tool: Update Hotspot
@mcp.tool(
    name="proto_update_hotspot",
    description="Overwrite a hotspot's rectangle/link/type. With file='global' updates the master definition by name",
)
async def update_hotspot(
    file: str,
    name: str,
    type: Literal["click", "hover", "overlay", "external", "newWindow", "global", "deleted"],
    id: str | None = None,
    x: float | None = None,
    y: float | None = None,
    w: float | None = None,
    h: float | None = None,
    link: str | None = None,
    state: str | None = None,
    item_name: str | None = None,
    scroll_zone: str | None = None,
    parent: str | None = None,
) -> dict:
    client = get_client()

    async def call() -> dict[str, Any]:
        request = HotspotUpdateRequest(
            **_addressing(file, name, item_name, scroll_zone, parent),
            id=id, type=type, x=x, y=y, w=w, h=h, link=link, state=state,
        )
        return (await client.update_hotspot(request)).summary()

    return await _run("update hotspot", call)


# Tool: Delete Hotspot
@mcp.tool(name="proto_delete_hotspot", description="Soft-delete a unique hotspot by id")
async def delete_hotspot(
    file: str,
    name: str,
    id: str,
    item_name: str | None = None,
    scroll_zone: str | None = None,
    parent: str | None = None,
) -> dict:
    client = get_client()

    async def call() -> dict[str, Any]:
        request = HotspotDeleteRequest(**_addressing(file, name, item_name, scroll_zone, parent), id=id)
        return (await client.delete_hotspot(request)).summary()

    return await _run("delete hotspot", call)


# Tool: Delete Global Hotspot
@mcp.tool(
    name="proto_delete_global_hotspot",
    description="Soft-delete a global hotspot instance by name in the addressed form or scroll zone",
)
async def delete_global_hotspot(
    file: str,
    name: str,
    hotspot_name: str,
    item_name: str | None = None,
    scroll_zone: str | None = None,
    parent: str | None = None,
) -> dict:
    client = get_client()

    async def call() -> dict[str, Any]:
        request = GlobalHotspotDeleteRequest(
            **_addressing(file, name, item_name, scroll_zone, parent), hotspot_name=hotspot_name
        )
        return (await client.delete_global_hotspot(request)).summary()

    return await _run("delete global hotspot", call)


# Tool: Add Comment
@mcp.tool(name="proto_add_comment", description="Add a comment to a node, overlay item or scroll zone")
async def add_comment(
    file: str,
    name: str,
    comment: str,
    type: Literal["logic", "notification", "comment", "question", "design"] = "comment",
    x: float | None = None,
    y: float | None = None,
    user: str | None = None,
    quill: Any | None = None,
    resolved: bool | None = None,
    item_name: str | None = None,
    scroll_zone: str | None = None,
    parent: str | None = None,
    id: str | None = None,
) -> dict:
    client = get_client()

    async def call() -> dict[str, Any]:
        request = CommentCreateRequest(
            **_addressing(file, name, item_name, scroll_zone, parent),
            id=id, type=type, x=x, y=y, comment=comment, quill=quill, user=user, resolved=resolved,
        )
        return (await client.add_comment(request)).summary()

    return await _run("add comment", call)


# Tool: Update Comment
@mcp.tool(name="proto_update_comment", description="Update the supplied fields of a comment")
async def update_comment(
    file: str,
    name: str,
    id: str,
    comment: str | None = None,
    type: Literal["logic", "notification", "comment", "question", "design"] | None = None,
    x: float | None = None,
    y: float | None = None,
    user: str | None = None,
    quill: Any | None = None,
    resolved: bool | None = None,
    item_name: str | None = None,
    scroll_zone: str | None = None,
    parent: str | None = None,
) -> dict:
    """Update a comment. Only arguments that are not None are written."""
    client = get_client()

    async def call() -> dict[str, Any]:
        content = {
            k: v
            for k, v in {
                "comment": comment, "type": type, "x": x, "y": y,
                "user": user, "quill": quill, "resolved": resolved,
            }.items()
            if v is not None
        }
        request = CommentUpdateRequest(**_addressing(file, name, item_name, scroll_zone, parent), id=id, **content)
        return (await client.update_comment(request)).summary()

    return await _run("update comment", call)


# Tool: Delete Comment
@mcp.tool(name="proto_delete_comment", description="Soft-delete a comment by id")
async def delete_comment(
    file: str,
    name: str,
    id: str,
    item_name: str | None = None,
    scroll_zone: str | None = None,
    parent: str | None = None,
) -> dict:
    client = get_client()

    async def call() -> dict[str, Any]:
        request = CommentDeleteRequest(**_addressing(file, name, item_name, scroll_zone, parent), id=id)
        return (await client.delete_comment(request)).summary()

    return await _run("delete comment", call)


# Tool: Update Status
@mcp.tool(
    name="proto_update_status",
    description="Set a node's status (not-started, conceptual, in-progress, approved, on-hold)",
)
async def update_status(
    file: str,
    name: str,
    status: str,
    item_name: str | None = None,
    parent: str | None = None,
) -> dict:
    client = get_client()

    async def call() -> dict[str, Any]:
        request = StatusUpdateRequest(**_addressing(file, name, item_name, None, parent), status=status)
        return (await client.update_status(request)).summary()

    return await _run("update status", call)


# Tool: Update Slide
@mcp.tool(name="proto_update_slide", description="Show or hide a node in the drawer (title required when shown)")
async def update_slide(
    file: str,
    name: str,
    show_in_drawer: bool,
    title: str | None = None,
    item_name: str | None = None,
    parent: str | None = None,
) -> dict:
    client = get_client()

    async def call() -> dict[str, Any]:
        drawer_info = {"title": title} if title is not None else None
        request = SlideUpdateRequest(
            **_addressing(file, name, item_name, None, parent),
            show_in_drawer=show_in_drawer,
            drawer_info=drawer_info,
        )
        return (await client.update_slide(request)).summary()

    return await _run("update slide", call)


# Tool: Merge Data
@mcp.tool(
    name="proto_merge_data",
    description="Merge an externally edited copy (path, relative to the merge folder) into a live module",
)
async def merge_data(existing_file: str, new_file: str) -> dict:
    """Merge a module copy into the live module.

    Args:
        existing_file: Live module name (".json" suffix allowed)
        new_file: Path to the edited copy; relative paths are taken from the merge folder
    """
    client = get_client()

    async def call() -> dict[str, Any]:
        request = MergeRequest(existing_file=existing_file, new_file=new_file)
        result = await client.merge_files(request.existing_file, request.new_file)
        return result.summary()

    return await _run("merge data", call)


def main() -> None:
    config = ServerConfig()  # type: ignore[call-arg]
    setup_logging(config.log_level)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
