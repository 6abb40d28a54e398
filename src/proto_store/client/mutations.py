"""Point mutations over a loaded module document.

Every operation follows the same shape:

1. build the tagged address from the request (``path_resolver``),
2. resolve the target and validate every collection it will touch,
3. only then write into the in-memory tree.

Resolution failures therefore leave the document untouched. Each function
returns a :class:`MutationResult` holding the whole (mutated) document so
the caller can persist it in one piece; ``changed`` is False when the
request was a replay that left the document as it was, so no save/archive
is needed.

Soft delete is monotonic: an entity whose ``type``/``state`` is
``"deleted"`` can be deleted again (no-op) but never updated back to life.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..models import (
    CommentCreateRequest,
    CommentDeleteRequest,
    CommentUpdateRequest,
    DeletedEntityError,
    GlobalHotspotCreateRequest,
    GlobalHotspotDeleteRequest,
    HotspotCreateRequest,
    HotspotDeleteRequest,
    HotspotUpdateRequest,
    InvalidAddressError,
    NotFoundError,
    SlideUpdateRequest,
    StatusUpdateRequest,
)
from .document_helper import (
    COMMENTS,
    DELETED,
    GLOBAL_FILE,
    GLOBAL_HOTSPOT_TYPE,
    HOTSPOTS,
    OVERLAY_FILE,
    JsonDict,
    ensure_collection,
    find_by_id,
    find_global_instance,
    get_collection,
    is_deleted,
    is_global_instance,
    overlay_items,
    require_mapping,
    scroll_zones_of,
)
from .identity import Clock, IdFactory, create_guid, timestamp, utc_now
from .path_resolver import (
    Address,
    GlobalAddress,
    OverlayItemAddress,
    ScrollZoneAddress,
    address_from_request,
    node_level,
    resolve_form,
    resolve_global,
    resolve_node,
)


@dataclass
class MutationResult:
    """Outcome of one point mutation."""

    operation: str
    document: JsonDict
    address: Address
    target: Optional[JsonDict] = None
    changed: bool = True

    def summary(self) -> Dict[str, Any]:
        summary: Dict[str, Any] = {
            "operation": self.operation,
            "address": self.address.to_fields(),
            "changed": self.changed,
        }
        if self.target is not None and self.target.get("id") is not None:
            summary["id"] = self.target["id"]
        return summary


def _without_none(values: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in values.items() if v is not None}


def _overwrite(entity: JsonDict, values: Dict[str, Any]) -> bool:
    """Write ``values`` into ``entity``; a None value removes the key. Returns True if anything changed."""
    changed = False
    for key, value in values.items():
        if value is None:
            if key in entity:
                del entity[key]
                changed = True
        elif entity.get(key) != value or key not in entity:
            entity[key] = value
            changed = True
    return changed


def _stamp_addressing(entity: JsonDict, address: Address) -> None:
    """Write the entity's own addressing fields (canonical form for overlays)."""
    base = node_level(address)
    entity["file"] = base.file
    if isinstance(base, OverlayItemAddress):
        entity["name"] = base.item
        entity["parent"] = base.overlay
    else:
        entity["name"] = base.name
    if isinstance(address, ScrollZoneAddress):
        entity["scrollZone"] = address.scroll_zone


def _require_form_address(address: Address, operation: str) -> None:
    if isinstance(address, GlobalAddress):
        raise InvalidAddressError(f"{operation} cannot target the global registry", address.to_fields())


def _locate_by_id(document: JsonDict, address: Address, key: str, entity_id: str, kind: str) -> JsonDict:
    """Find a hotspot/comment by id.

    With a scroll zone on the address only that zone is searched; otherwise
    the node's own collection first, then each scroll zone in order.
    """
    if isinstance(address, ScrollZoneAddress):
        forms: List[JsonDict] = [resolve_form(document, address)]
    else:
        node = resolve_node(document, address)
        forms = [node, *scroll_zones_of(node)]

    for form in forms:
        found = find_by_id(get_collection(form, key, "form"), entity_id)
        if found is not None:
            return found

    raise NotFoundError(
        f"could not find the {kind} '{entity_id}' on the node",
        {**address.to_fields(), "id": entity_id},
        kind,
    )


# ---------------------------------------------------------------------------
# Hotspots
# ---------------------------------------------------------------------------


def add_hotspot(
    document: JsonDict,
    request: HotspotCreateRequest,
    *,
    id_factory: IdFactory = create_guid,
) -> MutationResult:
    """Append a unique hotspot to the addressed form's hotspot collection.

    Replaying an add whose ``id`` is already present is a no-op.
    """
    address = address_from_request(request)
    _require_form_address(address, "add hotspot")
    form = resolve_form(document, address)
    hotspots = get_collection(form, HOTSPOTS, "form")

    if request.id is not None:
        existing = find_by_id(hotspots, request.id)
        if existing is not None:
            return MutationResult("add_hotspot", document, address, existing, changed=False)

    hotspot = _without_none({
        "id": request.id or id_factory(),
        "type": request.type,
        "x": request.x,
        "y": request.y,
        "w": request.w,
        "h": request.h,
        "link": request.link,
    })
    _stamp_addressing(hotspot, address)
    ensure_collection(form, HOTSPOTS, "form").append(hotspot)
    return MutationResult("add_hotspot", document, address, hotspot)


def add_global_hotspot(document: JsonDict, request: GlobalHotspotCreateRequest) -> MutationResult:
    """Append a global hotspot instance ``{type: "global", name}`` (no geometry copy)."""
    address = address_from_request(request)
    _require_form_address(address, "add global hotspot")
    form = resolve_form(document, address)
    hotspots = get_collection(form, HOTSPOTS, "form")

    existing = find_global_instance(hotspots, request.hotspot_name)
    if existing is not None and not is_deleted(existing):
        return MutationResult("add_global_hotspot", document, address, existing, changed=False)

    instance = {"type": GLOBAL_HOTSPOT_TYPE, "name": request.hotspot_name}
    ensure_collection(form, HOTSPOTS, "form").append(instance)
    return MutationResult("add_global_hotspot", document, address, instance)


def update_hotspot(document: JsonDict, request: HotspotUpdateRequest) -> MutationResult:
    """Overwrite position/size/link/type (and ``state`` if supplied) of a hotspot.

    For ``file == "global"`` the target is the registry master named by
    ``name``; otherwise the hotspot is found by ``id``.
    """
    address = address_from_request(request)
    if isinstance(address, GlobalAddress):
        target = resolve_global(document, address)
    else:
        if request.id is None:
            raise InvalidAddressError("updating a hotspot requires its 'id'", address.to_fields())
        target = _locate_by_id(document, address, HOTSPOTS, request.id, "hotspot")

    if is_deleted(target):
        raise DeletedEntityError(
            f"hotspot '{request.id or request.name}' is deleted and cannot be updated",
            {**address.to_fields(), "id": request.id},
            "hotspot",
        )

    values: Dict[str, Any] = {
        "x": request.x,
        "y": request.y,
        "w": request.w,
        "h": request.h,
        "link": request.link,
        "type": request.type,
    }
    if request.state is not None:
        values["state"] = request.state
    changed = _overwrite(target, values)
    return MutationResult("update_hotspot", document, address, target, changed=changed)


def delete_hotspot(document: JsonDict, request: HotspotDeleteRequest) -> MutationResult:
    """Soft-delete a unique hotspot (``type = "deleted"``)."""
    address = address_from_request(request)
    _require_form_address(address, "delete hotspot")
    target = _locate_by_id(document, address, HOTSPOTS, request.id, "hotspot")
    if target.get("type") == DELETED:
        return MutationResult("delete_hotspot", document, address, target, changed=False)
    target["type"] = DELETED
    return MutationResult("delete_hotspot", document, address, target)


def delete_global_hotspot(document: JsonDict, request: GlobalHotspotDeleteRequest) -> MutationResult:
    """Soft-delete a global instance by name (``state = "deleted"``).

    Only the addressed scope is searched: the named scroll zone if given,
    otherwise the form's own collection. Sibling zones are never searched.
    """
    address = address_from_request(request)
    _require_form_address(address, "delete global hotspot")
    form = resolve_form(document, address)
    instance = find_global_instance(get_collection(form, HOTSPOTS, "form"), request.hotspot_name)
    if instance is None:
        raise NotFoundError(
            f"could not find global hotspot '{request.hotspot_name}' in the addressed form",
            {**address.to_fields(), "hotspotName": request.hotspot_name},
            "global_hotspot",
        )
    if instance.get("state") == DELETED:
        return MutationResult("delete_global_hotspot", document, address, instance, changed=False)
    instance["state"] = DELETED
    return MutationResult("delete_global_hotspot", document, address, instance)


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------


def add_comment(
    document: JsonDict,
    request: CommentCreateRequest,
    *,
    id_factory: IdFactory = create_guid,
    clock: Clock = utc_now,
) -> MutationResult:
    """Append a comment to the addressed form (node, overlay item or scroll zone)."""
    address = address_from_request(request)
    _require_form_address(address, "add comment")
    form = resolve_form(document, address)
    comments = get_collection(form, COMMENTS, "form")

    if request.id is not None:
        existing = find_by_id(comments, request.id)
        if existing is not None:
            return MutationResult("add_comment", document, address, existing, changed=False)

    comment = _without_none({
        "id": request.id or id_factory(),
        "type": request.type,
        "x": request.x,
        "y": request.y,
        "comment": request.comment.strip(),
        "quill": request.quill,
        "user": request.user,
        "updatedOn": timestamp(clock()),
        "resolved": request.resolved,
    })
    _stamp_addressing(comment, address)
    ensure_collection(form, COMMENTS, "form").append(comment)
    return MutationResult("add_comment", document, address, comment)


def update_comment(
    document: JsonDict,
    request: CommentUpdateRequest,
    *,
    clock: Clock = utc_now,
) -> MutationResult:
    """Overwrite the supplied fields of a comment and refresh ``updatedOn``."""
    address = address_from_request(request)
    _require_form_address(address, "update comment")
    target = _locate_by_id(document, address, COMMENTS, request.id, "comment")
    if is_deleted(target):
        raise DeletedEntityError(
            f"comment '{request.id}' is deleted and cannot be updated",
            {**address.to_fields(), "id": request.id},
            "comment",
        )

    content = request.supplied_content()
    if not content:
        return MutationResult("update_comment", document, address, target, changed=False)
    if isinstance(content.get("comment"), str):
        content["comment"] = content["comment"].strip()
    _overwrite(target, content)
    target["updatedOn"] = timestamp(clock())
    return MutationResult("update_comment", document, address, target)


def delete_comment(document: JsonDict, request: CommentDeleteRequest) -> MutationResult:
    """Soft-delete a comment (``type = "deleted"``)."""
    address = address_from_request(request)
    _require_form_address(address, "delete comment")
    target = _locate_by_id(document, address, COMMENTS, request.id, "comment")
    if target.get("type") == DELETED:
        return MutationResult("delete_comment", document, address, target, changed=False)
    target["type"] = DELETED
    return MutationResult("delete_comment", document, address, target)


# ---------------------------------------------------------------------------
# Node metadata
# ---------------------------------------------------------------------------


def update_status(document: JsonDict, request: StatusUpdateRequest) -> MutationResult:
    address = address_from_request(request)
    node = resolve_node(document, address)
    changed = _overwrite(node, {"status": request.status})
    return MutationResult("update_status", document, address, node, changed=changed)


def update_slide(document: JsonDict, request: SlideUpdateRequest) -> MutationResult:
    """Update drawer visibility; ``drawerInfo`` is rewritten only when shown.

    Hiding a node leaves its old ``drawerInfo`` in place (stale but inert).
    The drawer group is the owning file, never a caller-supplied value.
    """
    address = address_from_request(request)
    node = resolve_node(document, address)
    values: Dict[str, Any] = {"showInDrawer": request.show_in_drawer}
    if request.show_in_drawer and request.drawer_info is not None:
        values["drawerInfo"] = {"title": request.drawer_info.title, "group": request.file}
    changed = _overwrite(node, values)
    return MutationResult("update_slide", document, address, node, changed=changed)


# ---------------------------------------------------------------------------
# Module formatting
# ---------------------------------------------------------------------------


def _format_form(
    form: JsonDict,
    stamp: Dict[str, Any],
    id_factory: IdFactory,
    counters: Dict[str, int],
) -> None:
    for hotspot in get_collection(form, HOTSPOTS, "form"):
        if not isinstance(hotspot, dict) or is_global_instance(hotspot):
            continue
        if hotspot.get("id") is None:
            hotspot["id"] = id_factory()
            counters["ids_assigned"] += 1
        hotspot.update(stamp)
    for comment in get_collection(form, COMMENTS, "form"):
        if not isinstance(comment, dict):
            continue
        if comment.get("id") is None:
            comment["id"] = id_factory()
            counters["ids_assigned"] += 1
        comment.update(stamp)


def _format_node(node: JsonDict, stamp: Dict[str, Any], id_factory: IdFactory, counters: Dict[str, int]) -> None:
    _format_form(node, stamp, id_factory, counters)
    for zone in scroll_zones_of(node):
        if isinstance(zone, dict):
            _format_form(zone, {**stamp, "scrollZone": zone.get("id")}, id_factory, counters)


def format_module(
    file: str,
    document: JsonDict,
    *,
    id_factory: IdFactory = create_guid,
) -> Dict[str, int]:
    """Normalize a freshly authored module in place.

    - plain modules: node ``name`` = key, missing ids generated, hotspots
      and comments stamped with ``file``/``name`` (and ``scrollZone``).
    - overlay: entry ``name`` = key; legacy item ``id`` moved to ``name``;
      items get ``file``/``parent``; their hotspots/comments get the
      canonical ``name = item`` + ``parent = overlay`` addressing.
    - global registry: missing master ids generated.

    Global hotspot instances are never stamped or given ids.

    Returns:
        Counters: ``nodes`` visited and ``ids_assigned``.
    """
    require_mapping(document, f"module '{file}'")
    counters = {"nodes": 0, "ids_assigned": 0}

    if file == GLOBAL_FILE:
        for master in document.values():
            if isinstance(master, dict) and master.get("id") is None:
                master["id"] = id_factory()
                counters["ids_assigned"] += 1
        return counters

    for key, entry in document.items():
        if not isinstance(entry, dict):
            continue
        entry["name"] = key

        if file == OVERLAY_FILE:
            for item in overlay_items(entry):
                if not isinstance(item, dict):
                    continue
                if item.get("name") is None and item.get("id") is not None:
                    item["name"] = item.pop("id")
                item["file"] = OVERLAY_FILE
                item["parent"] = key
                counters["nodes"] += 1
                stamp = {"file": OVERLAY_FILE, "name": item.get("name"), "parent": key}
                _format_node(item, stamp, id_factory, counters)
            continue

        counters["nodes"] += 1
        if entry.get("id") is None:
            entry["id"] = id_factory()
            counters["ids_assigned"] += 1
        _format_node(entry, {"file": file, "name": key}, id_factory, counters)

    return counters
