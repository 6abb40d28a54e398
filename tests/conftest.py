"""Shared fixtures: sample module documents and a client on a temp data dir."""

from __future__ import annotations

import itertools
import json
from datetime import datetime
from pathlib import Path

import pytest

from proto_store.client import ProtoStoreClient
from proto_store.models import StoreConfiguration

FIXED_NOW = datetime(2026, 10, 19, 14, 30, 5)


def build_issue_module() -> dict:
    return {
        "issue_owner": {
            "id": "n-owner",
            "name": "issue_owner",
            "img": "issue/owner.jpg",
            "status": "conceptual",
            "showInDrawer": True,
            "drawerInfo": {"title": "Issue owner", "group": "issue"},
            "hotspots": [
                {"id": "h1", "type": "click", "x": 10, "y": 20, "w": 100, "h": 30,
                 "link": "issue_detail", "file": "issue", "name": "issue_owner"},
                {"type": "global", "name": "nav_home"},
            ],
            "comments": [
                {"id": "c1", "type": "comment", "comment": "keep", "file": "issue", "name": "issue_owner"},
            ],
            "scrollZones": [
                {
                    "id": "issue_form0",
                    "x": 537, "y": 100, "w": 500, "h": 603,
                    "img": "issue/form0.jpg",
                    "hotspots": [
                        {"id": "zh1", "type": "hover", "x": 1, "y": 2, "w": 3, "h": 4,
                         "file": "issue", "name": "issue_owner", "scrollZone": "issue_form0"},
                        {"type": "global", "name": "nav_back"},
                    ],
                    "comments": [
                        {"id": "zc1", "type": "question", "comment": "why?",
                         "file": "issue", "name": "issue_owner", "scrollZone": "issue_form0"},
                    ],
                    "layers": [{"x": 418, "y": 522, "w": 54, "h": 54, "img": "issue/layer.png", "hotspots": []}],
                },
            ],
        },
        "issue_detail": {
            "id": "n-detail",
            "name": "issue_detail",
            "img": "issue/detail.jpg",
            "status": "not-started",
            "showInDrawer": False,
        },
    }


def build_overlay_module() -> dict:
    return {
        "menu": {
            "name": "menu",
            "location": {"x": 0, "y": 0},
            "items": [
                {
                    "name": "menu_main",
                    "file": "overlay",
                    "parent": "menu",
                    "img": "overlay/menu_main.png",
                    "hotspots": [
                        {"id": "oh1", "type": "click", "x": 5, "y": 5, "w": 50, "h": 10,
                         "file": "overlay", "name": "menu_main", "parent": "menu"},
                    ],
                    "comments": [],
                },
            ],
        },
    }


def build_global_registry() -> dict:
    return {
        "nav_home": {"id": "g1", "type": "click", "x": 0, "y": 0, "w": 40, "h": 40, "link": "home"},
        "nav_back": {"id": "g2", "type": "click", "x": 0, "y": 50, "w": 40, "h": 40, "link": "back"},
    }


@pytest.fixture
def issue_module() -> dict:
    return build_issue_module()


@pytest.fixture
def overlay_module() -> dict:
    return build_overlay_module()


@pytest.fixture
def global_registry() -> dict:
    return build_global_registry()


@pytest.fixture
def id_factory():
    counter = itertools.count(1)
    return lambda: f"gen-{next(counter)}"


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW


def write_module(data_dir: Path, name: str, document: dict) -> Path:
    path = data_dir / f"{name}.json"
    path.write_text(json.dumps(document), encoding="utf-8")
    return path


def read_module(data_dir: Path, name: str) -> dict:
    return json.loads((data_dir / f"{name}.json").read_text(encoding="utf-8"))


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    root = tmp_path / "data"
    root.mkdir()
    write_module(root, "issue", build_issue_module())
    write_module(root, "overlay", build_overlay_module())
    write_module(root, "global", build_global_registry())
    return root


@pytest.fixture
def store_config(data_dir: Path) -> StoreConfiguration:
    return StoreConfiguration(data_dir=data_dir)


@pytest.fixture
def client(store_config: StoreConfiguration, id_factory, fixed_clock) -> ProtoStoreClient:
    return ProtoStoreClient(store_config, id_factory=id_factory, clock=fixed_clock)
