"""
Reconciliation of an externally edited module copy into the live module.

The live ("existing") document keeps everything humans annotated since the
copy was exported; the copy ("new") carries structural and content edits.
Rules, per node matched by ``id``:

  - img / image: overwritten from the new node whenever it differs.
  - showInDrawer / drawerInfo: new node shown -> both overwritten; new node
    hidden -> only the flag (drawerInfo stays, stale but inert).
  - hotspots: NEW WINS. When the new node carries ``hotspots`` the whole
    array replaces the live one.
  - comments: EXISTING WINS. New comments whose id is not live are appended;
    live comments are never touched.
  - scrollZones: live node without zones adopts the new array; otherwise
    unknown zones are appended and matched zones get the hotspot (new wins)
    and comment (existing wins) rules above. Zones without an ``id`` match
    only an identical live zone.

Live nodes with no counterpart upstream are soft-deleted (``type = "deleted"``)
and stay in the document. New nodes nobody matched are inserted under their
key. When that key is held by a live node with no upstream match (a slide
regenerated under a new id), the upstream node takes the key and the live
node's comments are carried into it. A key held by a live node that matched
some other upstream node is never overwritten; the collision is counted and
logged instead.

Module variants:
  - overlay: the node rules run on each entry's ``items`` (identity = ``id``
    when present, else ``name``); entries are matched by key.
  - global: master definitions are hotspot-like; new wins per master,
    masters missing upstream get ``type = "deleted"``.

The merge never fails on content. Everything copied from the new document
is deep-copied so the caller may reuse it afterwards.
"""
from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Set

from .document_helper import (
    COMMENTS,
    DELETED,
    GLOBAL_FILE,
    HOTSPOTS,
    ITEMS,
    OVERLAY_FILE,
    SCROLL_ZONES,
    JsonDict,
    find_by_id,
    get_collection,
    require_mapping,
)

LogFn = Optional[Callable[[str], None]]

IMAGE_KEYS = ("img", "image")

COUNTER_KEYS = (
    "nodes_updated",
    "nodes_soft_deleted",
    "nodes_added",
    "nodes_replaced",
    "comments_added",
    "scroll_zones_added",
    "hotspot_sets_replaced",
    "key_collisions",
)


@dataclass
class MergeResult:
    """Merged live document, whether it changed, and what happened."""

    document: JsonDict
    changed: bool = False
    counters: Dict[str, int] = field(default_factory=lambda: {k: 0 for k in COUNTER_KEYS})

    def summary(self) -> Dict[str, Any]:
        return {"changed": self.changed, **self.counters}


class _Merge:
    """State of one reconcile run (counters, consumed new keys, log sink)."""

    def __init__(self, log: LogFn) -> None:
        self._log_fn = log
        self.counters: Dict[str, int] = {k: 0 for k in COUNTER_KEYS}
        self.field_changes = 0

    def log(self, msg: str) -> None:
        if self._log_fn:
            self._log_fn(msg)

    def bump(self, key: str, amount: int = 1) -> None:
        self.counters[key] += amount

    @property
    def changed(self) -> bool:
        structural = sum(v for k, v in self.counters.items() if k != "key_collisions")
        return bool(structural or self.field_changes)

    # ------------------------------------------------------------------
    # Entity-level rules
    # ------------------------------------------------------------------

    def merge_comments(self, target: JsonDict, incoming: List[JsonDict], label: str) -> int:
        """Append incoming comments unknown to ``target`` (existing wins)."""
        added = 0
        for comment in incoming:
            if not isinstance(comment, dict):
                continue
            live = get_collection(target, COMMENTS, label)
            cid = comment.get("id")
            if cid is not None:
                if find_by_id(live, cid) is not None:
                    continue
            elif comment in live:
                continue
            if target.get(COMMENTS) is None:
                target[COMMENTS] = []
            target[COMMENTS].append(deepcopy(comment))
            added += 1
        if added:
            self.bump("comments_added", added)
            self.log(f"   [MERGE] {label}: {added} comment(s) appended")
        return added

    def replace_hotspots(self, target: JsonDict, source: JsonDict, label: str) -> bool:
        """Hotspots follow new-wins: the whole array is replaced when present upstream."""
        if source.get(HOTSPOTS) is None:
            return False
        incoming = get_collection(source, HOTSPOTS, label)
        if target.get(HOTSPOTS) == incoming:
            return False
        target[HOTSPOTS] = deepcopy(incoming)
        self.bump("hotspot_sets_replaced")
        self.log(f"   [MERGE] {label}: hotspots replaced ({len(incoming)} from upstream)")
        return True

    def merge_scroll_zones(self, target: JsonDict, source: JsonDict, label: str) -> bool:
        incoming = get_collection(source, SCROLL_ZONES, label)
        if not incoming:
            return False

        live = get_collection(target, SCROLL_ZONES, label)
        if not live:
            target[SCROLL_ZONES] = deepcopy(incoming)
            self.bump("scroll_zones_added", len(incoming))
            self.log(f"   [MERGE] {label}: adopted {len(incoming)} scroll zone(s)")
            return True

        touched = False
        for zone in incoming:
            if not isinstance(zone, dict):
                continue
            zone_label = f"{label}#{zone.get('id', '?')}"
            if zone.get("id") is None:
                # id-less zones are only recognised by full equality
                if zone in live:
                    continue
                match = None
            else:
                match = find_by_id(live, zone["id"])
            if match is None:
                live.append(deepcopy(zone))
                self.bump("scroll_zones_added")
                self.log(f"   [MERGE] {zone_label}: new scroll zone appended")
                touched = True
                continue
            if self.replace_hotspots(match, zone, zone_label):
                touched = True
            if self.merge_comments(match, get_collection(zone, COMMENTS, zone_label), zone_label):
                touched = True
        return touched

    def merge_node(self, target: JsonDict, source: JsonDict, label: str) -> None:
        touched = False

        for key in IMAGE_KEYS:
            if key in source and target.get(key) != source[key]:
                target[key] = deepcopy(source[key])
                self.field_changes += 1
                touched = True

        shown = source.get("showInDrawer")
        if shown is True:
            if target.get("showInDrawer") is not True:
                target["showInDrawer"] = True
                self.field_changes += 1
                touched = True
            if "drawerInfo" in source and target.get("drawerInfo") != source["drawerInfo"]:
                target["drawerInfo"] = deepcopy(source["drawerInfo"])
                self.field_changes += 1
                touched = True
        elif shown is False and target.get("showInDrawer") is not False:
            target["showInDrawer"] = False
            self.field_changes += 1
            touched = True

        if self.replace_hotspots(target, source, label):
            touched = True
        if self.merge_comments(target, get_collection(source, COMMENTS, label), label):
            touched = True
        if self.merge_scroll_zones(target, source, label):
            touched = True

        if touched:
            self.bump("nodes_updated")

    def adopt_node(self, live: JsonDict, source: JsonDict, label: str) -> JsonDict:
        """Upstream node takes over a key whose live holder has no upstream match.

        Live comments are carried over and win over upstream comments with the
        same id; upstream comments the live node never had are kept after them.
        """
        node = deepcopy(source)
        carried = [c for c in get_collection(live, COMMENTS, label) if isinstance(c, dict)]
        kept = len(carried)
        if carried:
            upstream = get_collection(node, COMMENTS, label)
            node[COMMENTS] = carried
            for comment in upstream:
                if not isinstance(comment, dict):
                    continue
                cid = comment.get("id")
                if cid is not None:
                    if find_by_id(carried, cid) is not None:
                        continue
                elif comment in carried:
                    continue
                carried.append(comment)
        self.bump("nodes_replaced")
        self.log(f"   [MERGE] {label}: live node has no upstream match, replaced by upstream node "
                 f"({kept} live comment(s) carried)")
        return node

    def soft_delete(self, target: JsonDict, label: str) -> None:
        if target.get("type") == DELETED:
            return
        target["type"] = DELETED
        self.bump("nodes_soft_deleted")
        self.log(f"   [MERGE] {label}: absent upstream, soft-deleted")


def _identity(entity: JsonDict, fallback: Optional[str]) -> Any:
    entity_id = entity.get("id")
    return ("id", entity_id) if entity_id is not None else ("name", fallback)


def _reconcile_nodes(existing: JsonDict, new: JsonDict, merge: _Merge) -> None:
    """Node rules over a plain module (nodes keyed by name, matched by id)."""
    new_by_id: Dict[Any, str] = {}
    for key, node in new.items():
        if isinstance(node, dict) and node.get("id") is not None:
            new_by_id.setdefault(node["id"], key)

    consumed: Set[str] = set()
    orphaned: List[str] = []
    for key, live in existing.items():
        if not isinstance(live, dict):
            continue
        if live.get("id") is not None:
            match_key = new_by_id.get(live["id"])
        else:
            candidate = new.get(key)
            no_id = isinstance(candidate, dict) and candidate.get("id") is None
            match_key = key if no_id else None

        if match_key is None or match_key in consumed:
            orphaned.append(key)
            continue

        merge.merge_node(live, require_mapping(new[match_key], f"node '{match_key}'"), key)
        consumed.add(match_key)

    for key, node in new.items():
        if key in consumed or not isinstance(node, dict):
            continue
        if key in orphaned:
            existing[key] = merge.adopt_node(existing[key], node, key)
            orphaned.remove(key)
            continue
        if key in existing:
            merge.bump("key_collisions")
            merge.log(f"   [MERGE] {key}: key held by a different live node, upstream node skipped")
            continue
        existing[key] = deepcopy(node)
        merge.bump("nodes_added")
        merge.log(f"   [MERGE] {key}: new node inserted")

    for key in orphaned:
        merge.soft_delete(existing[key], key)


def _reconcile_items(live_entry: JsonDict, new_entry: JsonDict, overlay: str, merge: _Merge) -> None:
    live_items = get_collection(live_entry, ITEMS, f"overlay '{overlay}'")
    new_items = [i for i in get_collection(new_entry, ITEMS, f"overlay '{overlay}'") if isinstance(i, dict)]

    new_index: Dict[Any, int] = {}
    for pos, item in enumerate(new_items):
        new_index.setdefault(_identity(item, item.get("name")), pos)

    consumed: Set[int] = set()
    for item in live_items:
        if not isinstance(item, dict):
            continue
        label = f"{overlay}/{item.get('name', '?')}"
        pos = new_index.get(_identity(item, item.get("name")))
        if pos is None or pos in consumed:
            merge.soft_delete(item, label)
            continue
        merge.merge_node(item, new_items[pos], label)
        consumed.add(pos)

    for pos, item in enumerate(new_items):
        if pos in consumed:
            continue
        if live_entry.get(ITEMS) is None:
            live_entry[ITEMS] = []
        live_entry[ITEMS].append(deepcopy(item))
        merge.bump("nodes_added")
        merge.log(f"   [MERGE] {overlay}/{item.get('name', '?')}: new overlay item appended")


def _reconcile_overlay(existing: JsonDict, new: JsonDict, merge: _Merge) -> None:
    for key, live_entry in existing.items():
        if not isinstance(live_entry, dict):
            continue
        new_entry = new.get(key)
        if not isinstance(new_entry, dict):
            for item in get_collection(live_entry, ITEMS, f"overlay '{key}'"):
                if isinstance(item, dict):
                    merge.soft_delete(item, f"{key}/{item.get('name', '?')}")
            continue
        if "location" in new_entry and live_entry.get("location") != new_entry["location"]:
            live_entry["location"] = deepcopy(new_entry["location"])
            merge.field_changes += 1
        _reconcile_items(live_entry, new_entry, key, merge)

    for key, new_entry in new.items():
        if key in existing or not isinstance(new_entry, dict):
            continue
        existing[key] = deepcopy(new_entry)
        merge.bump("nodes_added", len(get_collection(new_entry, ITEMS, f"overlay '{key}'")))
        merge.log(f"   [MERGE] overlay {key}: new entry inserted")


def _reconcile_registry(existing: JsonDict, new: JsonDict, merge: _Merge) -> None:
    """Global masters: new wins per master, masters missing upstream are soft-deleted."""
    for key, live in existing.items():
        if not isinstance(live, dict):
            continue
        master = new.get(key)
        if not isinstance(master, dict):
            merge.soft_delete(live, f"global {key}")
            continue
        if live.get("type") == DELETED:
            continue
        if live != master:
            live.clear()
            live.update(deepcopy(master))
            merge.bump("nodes_updated")
            merge.log(f"   [MERGE] global {key}: master replaced from upstream")

    for key, master in new.items():
        if key in existing or not isinstance(master, dict):
            continue
        existing[key] = deepcopy(master)
        merge.bump("nodes_added")
        merge.log(f"   [MERGE] global {key}: new master inserted")


def reconcile_modules(
    existing: JsonDict,
    new: JsonDict,
    *,
    file: Optional[str] = None,
    log: LogFn = None,
) -> MergeResult:
    """Merge ``new`` into ``existing`` (mutated in place) and report the outcome.

    Args:
        existing: the live module document.
        new: the externally edited copy. Never mutated.
        file: module name; ``"overlay"`` and ``"global"`` switch variants.
        log: optional sink for per-entity diagnostic lines.

    Raises:
        MalformedDocumentError: either side is not a JSON object or carries
            a collection of the wrong shape.
    """
    require_mapping(existing, "existing document")
    require_mapping(new, "new document")

    merge = _Merge(log)
    merge.log(f"[MERGE] reconciling module '{file or '?'}': {len(existing)} live / {len(new)} upstream entries")

    if file == OVERLAY_FILE:
        _reconcile_overlay(existing, new, merge)
    elif file == GLOBAL_FILE:
        _reconcile_registry(existing, new, merge)
    else:
        _reconcile_nodes(existing, new, merge)

    result = MergeResult(document=existing, changed=merge.changed, counters=dict(merge.counters))
    merge.log(f"[MERGE] done: {result.summary()}")
    return result
