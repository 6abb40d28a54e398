"""Data models and errors for the prototype store.

Documents themselves stay plain JSON dicts (see ``client.document_helper``);
the pydantic models here describe the *requests* that address and mutate
them, plus the store configuration handed to the client.
"""

from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

HotspotType = Literal["click", "hover", "overlay", "external", "newWindow"]
CommentType = Literal["logic", "notification", "comment", "question", "design", "deleted"]
NodeStatus = Literal["not-started", "conceptual", "in-progress", "approved", "on-hold"]

# Status values written by older front-end builds.
LEGACY_STATUS_ALIASES = {
    "notStarted": "not-started",
    "inProgress": "in-progress",
    "design-in-progress": "in-progress",
    "onHold": "on-hold",
}


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class ProtoStoreError(Exception):
    """Base class for every prototype store error."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NotFoundError(ProtoStoreError):
    """Raised when any link of an address is absent from the loaded document.

    ``missing`` names the link kind that failed (module, node, overlay,
    overlay_item, scroll_zone, hotspot, global_hotspot, comment) and
    ``address`` carries the addressing tuple that was being resolved.
    """

    def __init__(self, message: str, address: dict[str, Any] | None = None, missing: str = "node") -> None:
        super().__init__(message, {"address": address or {}, "missing": missing})
        self.address = address or {}
        self.missing = missing


class DocumentNotFoundError(NotFoundError):
    """Raised when a module document does not exist in storage."""

    def __init__(self, module: str) -> None:
        super().__init__(f"module '{module}' cannot be found", {"file": module}, "module")
        self.module = module


class DeletedEntityError(NotFoundError):
    """Raised when an update targets an entity that is already soft-deleted."""


class MalformedDocumentError(ProtoStoreError):
    """Raised when a loaded document fails shape expectations."""


class InvalidAddressError(ProtoStoreError, ValueError):
    """Raised when addressing fields cannot form a valid address."""


class StorageError(ProtoStoreError):
    """Raised when the primary save of a document fails."""


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class StoreConfiguration(BaseModel):
    """Filesystem layout used by the store client."""

    data_dir: Path = Field(default=Path("public/data"), description="Directory holding <module>.json files")
    merge_dir: Path | None = Field(default=None, description="Drop folder for externally edited copies")
    archive_dir_name: str = Field(default="_archive", description="Archive folder inside data_dir")
    log_dir_name: str = Field(default="_log", description="Hourly activity log folder inside data_dir")
    json_indent: int | None = Field(default=None, description="Indent for written JSON (None = compact)")

    @property
    def archive_dir(self) -> Path:
        return self.data_dir / self.archive_dir_name

    @property
    def log_dir(self) -> Path:
        return self.data_dir / self.log_dir_name

    @property
    def resolved_merge_dir(self) -> Path:
        return self.merge_dir if self.merge_dir is not None else self.data_dir / "merge"


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class NodeAddressFields(BaseModel):
    """Addressing fields that locate a node (or an overlay item)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    file: str = Field(..., min_length=1, description="Module name (overlay and global are special)")
    name: str = Field(..., min_length=1, description="Node name, overlay name, or global hotspot name")
    item_name: str | None = Field(default=None, alias="itemName", description="Overlay item name")
    parent: str | None = Field(default=None, description="Overlay name when name is the item")


class AddressFields(NodeAddressFields):
    """Addressing fields that may narrow to a scroll zone."""

    scroll_zone: str | None = Field(default=None, alias="scrollZone", description="Scroll zone id")


class HotspotCreateRequest(AddressFields):
    id: str | None = None
    type: HotspotType = "click"
    x: float | None = None
    y: float | None = None
    w: float | None = None
    h: float | None = None
    link: str | None = None


class HotspotUpdateRequest(AddressFields):
    """Overwrite a hotspot. ``id`` may be omitted for global master definitions."""

    id: str | None = None
    type: Literal["click", "hover", "overlay", "external", "newWindow", "global", "deleted"]
    x: float | None = None
    y: float | None = None
    w: float | None = None
    h: float | None = None
    link: str | None = None
    state: str | None = None


class HotspotDeleteRequest(AddressFields):
    id: str


class GlobalHotspotCreateRequest(AddressFields):
    hotspot_name: str = Field(..., min_length=1, alias="hotspotName", description="Global registry key")


class GlobalHotspotDeleteRequest(AddressFields):
    hotspot_name: str = Field(..., min_length=1, alias="hotspotName", description="Global registry key")


class CommentCreateRequest(AddressFields):
    id: str | None = None
    type: CommentType = "comment"
    x: float | None = None
    y: float | None = None
    comment: str = ""
    quill: Any | None = Field(default=None, description="Rich-text representation of the comment")
    user: str | None = None
    resolved: bool | None = None


class CommentUpdateRequest(AddressFields):
    """Partial comment update: only fields that were supplied are written."""

    id: str
    type: CommentType | None = None
    x: float | None = None
    y: float | None = None
    comment: str | None = None
    quill: Any | None = None
    user: str | None = None
    resolved: bool | None = None

    def supplied_content(self) -> dict[str, Any]:
        """Return the content fields the caller actually supplied."""
        content_keys = ("type", "x", "y", "comment", "quill", "user", "resolved")
        return {key: getattr(self, key) for key in content_keys if key in self.model_fields_set}


class CommentDeleteRequest(AddressFields):
    id: str


class StatusUpdateRequest(NodeAddressFields):
    status: NodeStatus

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_legacy_status(cls, value: Any) -> Any:
        if isinstance(value, str):
            return LEGACY_STATUS_ALIASES.get(value, value)
        return value


class DrawerInfoPayload(BaseModel):
    title: str


class SlideUpdateRequest(NodeAddressFields):
    show_in_drawer: bool = Field(..., alias="showInDrawer")
    drawer_info: DrawerInfoPayload | None = Field(default=None, alias="drawerInfo")

    @model_validator(mode="after")
    def _require_title_when_shown(self) -> "SlideUpdateRequest":
        if self.show_in_drawer and self.drawer_info is None:
            raise ValueError("drawerInfo.title is required when showInDrawer is true")
        return self


class MergeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    existing_file: str = Field(..., min_length=1, alias="existingFile")
    new_file: str = Field(..., min_length=1, alias="newFile")
