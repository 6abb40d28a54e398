"""
Tests for proto_store.client.path_resolver

Covers:
  - building tagged addresses from flat fields (both overlay conventions)
  - invalid field combinations
  - resolution of nodes, overlay items, scroll zones, global masters
  - every missing link raises NotFoundError with the failing link kind
"""

from __future__ import annotations

import pytest

from proto_store.client.path_resolver import (
    GlobalAddress,
    NodeAddress,
    OverlayItemAddress,
    ScrollZoneAddress,
    address_from_request,
    build_address,
    node_level,
    resolve_form,
    resolve_global,
    resolve_node,
)
from proto_store.models import (
    CommentCreateRequest,
    InvalidAddressError,
    MalformedDocumentError,
    NotFoundError,
)


class TestBuildAddress:

    def test_plain_node(self):
        assert build_address("issue", "issue_owner") == NodeAddress("issue", "issue_owner")

    def test_scroll_zone_wraps_node(self):
        address = build_address("issue", "issue_owner", scroll_zone="issue_form0")
        assert address == ScrollZoneAddress(NodeAddress("issue", "issue_owner"), "issue_form0")
        assert address.to_fields() == {"file": "issue", "name": "issue_owner", "scrollZone": "issue_form0"}

    def test_overlay_conventions_are_equivalent(self):
        from_add_flow = build_address("overlay", "menu", item_name="menu_main")
        from_stamped = build_address("overlay", "menu_main", parent="menu")
        assert from_add_flow == from_stamped == OverlayItemAddress(overlay="menu", item="menu_main")

    def test_overlay_without_item_is_invalid(self):
        with pytest.raises(InvalidAddressError):
            build_address("overlay", "menu")

    def test_global(self):
        assert build_address("global", "nav_home") == GlobalAddress("nav_home")

    def test_global_with_scroll_zone_is_invalid(self):
        with pytest.raises(InvalidAddressError):
            build_address("global", "nav_home", scroll_zone="z")

    def test_global_is_not_node_level(self):
        with pytest.raises(InvalidAddressError):
            node_level(GlobalAddress("nav_home"))

    def test_from_request_uses_aliases(self):
        request = CommentCreateRequest.model_validate(
            {"file": "overlay", "name": "menu", "itemName": "menu_main", "scrollZone": "z1", "comment": "x"}
        )
        address = address_from_request(request)
        assert address == ScrollZoneAddress(OverlayItemAddress("menu", "menu_main"), "z1")


class TestResolve:

    def test_resolve_node(self, issue_module):
        node = resolve_node(issue_module, NodeAddress("issue", "issue_owner"))
        assert node is issue_module["issue_owner"]

    def test_resolve_node_ignores_zone_narrowing(self, issue_module):
        address = ScrollZoneAddress(NodeAddress("issue", "issue_owner"), "issue_form0")
        assert resolve_node(issue_module, address) is issue_module["issue_owner"]

    def test_resolve_form_narrows_to_zone(self, issue_module):
        address = ScrollZoneAddress(NodeAddress("issue", "issue_owner"), "issue_form0")
        assert resolve_form(issue_module, address) is issue_module["issue_owner"]["scrollZones"][0]

    def test_resolve_overlay_item(self, overlay_module):
        item = resolve_node(overlay_module, OverlayItemAddress("menu", "menu_main"))
        assert item is overlay_module["menu"]["items"][0]

    def test_resolve_global(self, global_registry):
        assert resolve_global(global_registry, GlobalAddress("nav_home"))["id"] == "g1"

    @pytest.mark.parametrize(
        "document_fixture,address,missing",
        [
            ("issue_module", NodeAddress("issue", "ghost"), "node"),
            ("issue_module", ScrollZoneAddress(NodeAddress("issue", "issue_owner"), "ghost_zone"), "scroll_zone"),
            ("issue_module", ScrollZoneAddress(NodeAddress("issue", "issue_detail"), "issue_form0"), "scroll_zone"),
            ("overlay_module", OverlayItemAddress("ghost", "menu_main"), "overlay"),
            ("overlay_module", OverlayItemAddress("menu", "ghost"), "overlay_item"),
        ],
    )
    def test_missing_links_raise_not_found(self, request, document_fixture, address, missing):
        document = request.getfixturevalue(document_fixture)
        with pytest.raises(NotFoundError) as exc_info:
            resolve_form(document, address)
        assert exc_info.value.missing == missing
        assert exc_info.value.address == address.to_fields()

    def test_missing_global_master(self, global_registry):
        with pytest.raises(NotFoundError) as exc_info:
            resolve_global(global_registry, GlobalAddress("ghost"))
        assert exc_info.value.missing == "global_hotspot"

    def test_empty_document_never_yields_default(self):
        with pytest.raises(NotFoundError):
            resolve_node({}, NodeAddress("issue", "anything"))

    def test_non_object_node_is_malformed(self):
        with pytest.raises(MalformedDocumentError):
            resolve_node({"broken": [1, 2]}, NodeAddress("issue", "broken"))
