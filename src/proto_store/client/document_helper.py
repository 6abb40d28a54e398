"""Document model helpers for prototype modules.

A module document is a plain JSON object keyed by node name::

    {
      "issue_owner": {
        "id": "3ce66314-...",
        "name": "issue_owner",
        "img": "issue/owner.jpg",
        "status": "conceptual",
        "showInDrawer": true,
        "drawerInfo": {"title": "Issue owner", "group": "issue"},
        "hotspots": [...],
        "comments": [...],
        "scrollZones": [
          {"id": "issue_form0", "x": 537, "y": 100, "w": 500, "h": 603,
           "img": "...", "maxImgWidth": 450,
           "layers": [{"x": 418, "y": 522, "w": 54, "h": 54, "img": "...", "hotspots": []}],
           "hotspots": [...], "comments": [...]}
        ]
      }
    }

Two module names are special:

- ``overlay``: entries are floating panels ``{name, location, items: [node, ...]}``
  and each nested item carries ``parent`` (the overlay name).
- ``global``: the registry of global hotspot master definitions keyed by name.

The helpers here are **pure**: no filesystem access, no logging. They read
and (where a name says so) create collections on the dicts handed to them
and raise :class:`MalformedDocumentError` when a collection has the wrong
shape. Nothing is ever physically removed from a collection; deletion is
always the ``type``/``state`` flip to ``"deleted"``.
"""

from __future__ import annotations

from typing import Any, Dict, Iterator, List, Optional, Tuple, TypedDict

from ..models import MalformedDocumentError

JsonDict = Dict[str, Any]

OVERLAY_FILE = "overlay"
GLOBAL_FILE = "global"

DELETED = "deleted"
GLOBAL_HOTSPOT_TYPE = "global"

HOTSPOTS = "hotspots"
COMMENTS = "comments"
SCROLL_ZONES = "scrollZones"
ITEMS = "items"


class DrawerInfo(TypedDict, total=False):
    title: str
    group: str


class Hotspot(TypedDict, total=False):
    id: str
    type: str
    state: str
    x: float
    y: float
    w: float
    h: float
    link: str
    file: str
    name: str
    parent: str
    scrollZone: str


class Comment(TypedDict, total=False):
    id: str
    type: str
    x: float
    y: float
    comment: str
    quill: Any
    user: str
    updatedOn: str
    resolved: bool
    file: str
    name: str
    parent: str
    itemName: str
    scrollZone: str


class Layer(TypedDict, total=False):
    x: float
    y: float
    w: float
    h: float
    img: str
    hotspots: List[Hotspot]


class ScrollZone(TypedDict, total=False):
    id: str
    x: float
    y: float
    w: float
    h: float
    img: str
    maxImgWidth: float
    layers: List[Layer]
    hotspots: List[Hotspot]
    comments: List[Comment]


class Node(TypedDict, total=False):
    id: str
    name: str
    img: str
    type: str
    status: str
    showInDrawer: bool
    drawerInfo: DrawerInfo
    hotspots: List[Hotspot]
    comments: List[Comment]
    scrollZones: List[ScrollZone]
    file: str
    parent: str


class OverlayEntry(TypedDict, total=False):
    name: str
    location: Dict[str, float]
    items: List[Node]


def require_mapping(value: Any, label: str) -> JsonDict:
    """Return ``value`` if it is a JSON object, else raise MalformedDocumentError."""
    if not isinstance(value, dict):
        raise MalformedDocumentError(f"{label} is not a JSON object", {"found": type(value).__name__})
    return value


def get_collection(container: JsonDict, key: str, label: str = "entity") -> List[JsonDict]:
    """Return ``container[key]`` as a list; an absent key reads as empty.

    The returned list is a fresh empty list (not attached to ``container``)
    when the key is absent. Use :func:`ensure_collection` to append.
    """
    value = container.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise MalformedDocumentError(
            f"{label} field '{key}' must be an array",
            {"found": type(value).__name__},
        )
    return value


def ensure_collection(container: JsonDict, key: str, label: str = "entity") -> List[JsonDict]:
    """Return ``container[key]``, creating an empty array when absent."""
    if container.get(key) is None:
        container[key] = []
    return get_collection(container, key, label)


def hotspots_of(form: JsonDict) -> List[JsonDict]:
    return get_collection(form, HOTSPOTS, "form")


def comments_of(form: JsonDict) -> List[JsonDict]:
    return get_collection(form, COMMENTS, "form")


def scroll_zones_of(node: JsonDict) -> List[JsonDict]:
    return get_collection(node, SCROLL_ZONES, "node")


def all_hotspots(node: JsonDict) -> List[JsonDict]:
    """Flatten a node's hotspots: its own first, then each scroll zone's in zone order."""
    flattened = list(hotspots_of(node))
    for zone in scroll_zones_of(node):
        flattened.extend(hotspots_of(zone))
    return flattened


def all_comments(node: JsonDict) -> List[JsonDict]:
    """Flatten a node's comments: its own first, then each scroll zone's in zone order."""
    flattened = list(comments_of(node))
    for zone in scroll_zones_of(node):
        flattened.extend(comments_of(zone))
    return flattened


def is_deleted(entity: JsonDict) -> bool:
    """True for both soft-delete markers (``type`` for unique entities, ``state`` for global instances)."""
    return entity.get("type") == DELETED or entity.get("state") == DELETED


def is_global_instance(hotspot: JsonDict) -> bool:
    return hotspot.get("type") == GLOBAL_HOTSPOT_TYPE


def find_by_id(entities: List[JsonDict], entity_id: Optional[str]) -> Optional[JsonDict]:
    """Return the first entity whose ``id`` equals ``entity_id`` (ids are never None-matched)."""
    if entity_id is None:
        return None
    for entity in entities:
        if isinstance(entity, dict) and entity.get("id") == entity_id:
            return entity
    return None


def find_global_instance(hotspots: List[JsonDict], hotspot_name: str) -> Optional[JsonDict]:
    """Return the global instance named ``hotspot_name``, preferring one that is still live."""
    matches = [
        h for h in hotspots
        if isinstance(h, dict) and is_global_instance(h) and h.get("name") == hotspot_name
    ]
    for hotspot in matches:
        if not is_deleted(hotspot):
            return hotspot
    return matches[0] if matches else None


def find_scroll_zone(node: JsonDict, zone_id: str) -> Optional[JsonDict]:
    return find_by_id(scroll_zones_of(node), zone_id)


def overlay_items(entry: JsonDict) -> List[JsonDict]:
    """Return an overlay entry's nested items (an overlay entry must carry ``items``)."""
    items = entry.get(ITEMS)
    if not isinstance(items, list):
        raise MalformedDocumentError(
            f"overlay '{entry.get('name', '?')}' has no 'items' array",
            {"found": type(items).__name__},
        )
    return items


def find_overlay_item(entry: JsonDict, item_name: str) -> Optional[JsonDict]:
    for item in overlay_items(entry):
        if isinstance(item, dict) and item.get("name") == item_name:
            return item
    return None


def iter_nodes(document: JsonDict, file: Optional[str] = None) -> Iterator[Tuple[str, JsonDict]]:
    """Yield ``(label, node)`` for every node-shaped entry of a module.

    For the overlay module the nested items are yielded with a
    ``"<overlay>/<item>"`` label; the global registry has no nodes.
    """
    if file == GLOBAL_FILE:
        return
    for key, entry in document.items():
        if not isinstance(entry, dict):
            continue
        if file == OVERLAY_FILE:
            for item in overlay_items(entry):
                if isinstance(item, dict):
                    yield f"{key}/{item.get('name', '?')}", item
        else:
            yield key, entry


def drawer_title(node: JsonDict) -> Optional[str]:
    """Return the drawer title when the node is shown in the drawer."""
    if node.get("showInDrawer") is not True:
        return None
    info = node.get("drawerInfo") or {}
    return info.get("title")


def count_live(entities: List[JsonDict]) -> int:
    return sum(1 for e in entities if isinstance(e, dict) and not is_deleted(e))
