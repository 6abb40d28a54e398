"""Path resolution: addressing fields -> the exact mutable entity in a module.

Callers send flat addressing fields (``file``, ``name``, optional
``itemName``/``parent``/``scrollZone``). They are turned into one tagged
address **once**, by :func:`build_address`, and every resolver below
dispatches on the address type instead of re-checking raw fields:

- :class:`NodeAddress`        plain module node, found by ``name``
- :class:`OverlayItemAddress` item nested in an overlay entry
- :class:`ScrollZoneAddress`  a scroll zone inside either of the above
- :class:`GlobalAddress`      a master definition in the global registry

Overlay addressing is inverted. Entities stamped by the store carry
``name = <item>`` and ``parent = <overlay>``; requests coming from the
add flows carry ``name = <overlay>`` and ``itemName = <item>``. Both map to
the same canonical ``OverlayItemAddress(overlay, item)``.

Every missing link raises :class:`NotFoundError` with the address that
failed. No fallback location is ever guessed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from ..models import InvalidAddressError, NodeAddressFields, NotFoundError
from .document_helper import (
    GLOBAL_FILE,
    OVERLAY_FILE,
    JsonDict,
    find_overlay_item,
    find_scroll_zone,
    require_mapping,
)


@dataclass(frozen=True)
class NodeAddress:
    file: str
    name: str

    def to_fields(self) -> Dict[str, Any]:
        return {"file": self.file, "name": self.name}


@dataclass(frozen=True)
class OverlayItemAddress:
    overlay: str
    item: str
    file: str = OVERLAY_FILE

    def to_fields(self) -> Dict[str, Any]:
        return {"file": self.file, "name": self.item, "parent": self.overlay}


@dataclass(frozen=True)
class ScrollZoneAddress:
    base: Union[NodeAddress, OverlayItemAddress]
    scroll_zone: str

    @property
    def file(self) -> str:
        return self.base.file

    def to_fields(self) -> Dict[str, Any]:
        return {**self.base.to_fields(), "scrollZone": self.scroll_zone}


@dataclass(frozen=True)
class GlobalAddress:
    name: str
    file: str = GLOBAL_FILE

    def to_fields(self) -> Dict[str, Any]:
        return {"file": self.file, "name": self.name}


NodeLevelAddress = Union[NodeAddress, OverlayItemAddress]
FormAddress = Union[NodeAddress, OverlayItemAddress, ScrollZoneAddress]
Address = Union[NodeAddress, OverlayItemAddress, ScrollZoneAddress, GlobalAddress]


def build_address(
    file: str,
    name: str,
    item_name: Optional[str] = None,
    scroll_zone: Optional[str] = None,
    parent: Optional[str] = None,
) -> Address:
    """Build the tagged address for a set of flat addressing fields.

    Raises:
        InvalidAddressError: the fields cannot describe any address (an
            overlay address without an item, or a scroll zone on a global
            registry entry).
    """
    if not file or not name:
        raise InvalidAddressError("an address needs both 'file' and 'name'", {"file": file, "name": name})

    if file == GLOBAL_FILE:
        if scroll_zone is not None:
            raise InvalidAddressError(
                "global hotspot definitions have no scroll zones",
                {"file": file, "name": name, "scrollZone": scroll_zone},
            )
        return GlobalAddress(name=name)

    base: NodeLevelAddress
    if file == OVERLAY_FILE:
        if item_name:
            base = OverlayItemAddress(overlay=name, item=item_name)
        elif parent:
            base = OverlayItemAddress(overlay=parent, item=name)
        else:
            raise InvalidAddressError(
                "overlay addresses need 'itemName' (with name = overlay) or 'parent' (with name = item)",
                {"file": file, "name": name},
            )
    else:
        base = NodeAddress(file=file, name=name)

    if scroll_zone is not None:
        return ScrollZoneAddress(base=base, scroll_zone=scroll_zone)
    return base


def address_from_request(request: NodeAddressFields) -> Address:
    """Build the tagged address for any request model carrying addressing fields."""
    return build_address(
        request.file,
        request.name,
        item_name=request.item_name,
        scroll_zone=getattr(request, "scroll_zone", None),
        parent=request.parent,
    )


def node_level(address: Address) -> NodeLevelAddress:
    """Return the node-level part of an address (drops scroll zone narrowing)."""
    if isinstance(address, ScrollZoneAddress):
        return address.base
    if isinstance(address, GlobalAddress):
        raise InvalidAddressError("global registry entries are not nodes", address.to_fields())
    return address


def resolve_node(document: JsonDict, address: Address) -> JsonDict:
    """Resolve to the node (or overlay item) an address points into.

    Node-level operations (status, drawer flag) stop here: a scroll zone
    on the address is ignored only in the sense that its owning node is
    returned; use :func:`resolve_form` to narrow to the zone.
    """
    base = node_level(address)
    require_mapping(document, f"module '{base.file}'")

    if isinstance(base, OverlayItemAddress):
        entry = document.get(base.overlay)
        if entry is None:
            raise NotFoundError(
                f"could not find overlay '{base.overlay}' in the provided file",
                address.to_fields(),
                "overlay",
            )
        entry = require_mapping(entry, f"overlay '{base.overlay}'")
        item = find_overlay_item(entry, base.item)
        if item is None:
            raise NotFoundError(
                f"could not find item '{base.item}' in overlay '{base.overlay}'",
                address.to_fields(),
                "overlay_item",
            )
        return item

    node = document.get(base.name)
    if node is None:
        raise NotFoundError(
            f"could not find node '{base.name}' in the provided file",
            address.to_fields(),
            "node",
        )
    return require_mapping(node, f"node '{base.name}'")


def resolve_form(document: JsonDict, address: FormAddress) -> JsonDict:
    """Resolve to the form that owns hotspots/comments: a node, an item, or a scroll zone."""
    node = resolve_node(document, address)
    if not isinstance(address, ScrollZoneAddress):
        return node
    zone = find_scroll_zone(node, address.scroll_zone)
    if zone is None:
        raise NotFoundError(
            f"could not find scroll zone '{address.scroll_zone}' on the addressed node",
            address.to_fields(),
            "scroll_zone",
        )
    return require_mapping(zone, f"scroll zone '{address.scroll_zone}'")


def resolve_global(registry: JsonDict, address: GlobalAddress) -> JsonDict:
    """Resolve a master hotspot definition in the global registry by name."""
    require_mapping(registry, "global registry")
    master = registry.get(address.name)
    if master is None:
        raise NotFoundError(
            f"could not find global hotspot '{address.name}' in the registry",
            address.to_fields(),
            "global_hotspot",
        )
    return require_mapping(master, f"global hotspot '{address.name}'")
