"""Prototype store client package."""

from .module_reconcile import MergeResult, reconcile_modules
from .mutations import MutationResult
from .store_client import ProtoStoreClient
from .store_core import ProtoStoreCore, log_event

__all__ = [
    "MergeResult",
    "MutationResult",
    "ProtoStoreClient",
    "ProtoStoreCore",
    "log_event",
    "reconcile_modules",
]
