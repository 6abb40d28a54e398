"""Prototype store client - locked read-modify-write over module documents."""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Protocol

from ..models import (
    CommentCreateRequest,
    CommentDeleteRequest,
    CommentUpdateRequest,
    GlobalHotspotCreateRequest,
    GlobalHotspotDeleteRequest,
    HotspotCreateRequest,
    HotspotDeleteRequest,
    HotspotUpdateRequest,
    ProtoStoreError,
    SlideUpdateRequest,
    StatusUpdateRequest,
)
from . import mutations
from .document_helper import JsonDict
from .module_reconcile import MergeResult, reconcile_modules
from .mutations import MutationResult
from .store_core import ProtoStoreCore, _StoreLogger, log_event

logger = _StoreLogger("CLIENT")


class _Outcome(Protocol):
    document: JsonDict
    changed: bool

    def summary(self) -> dict[str, Any]: ...


class ProtoStoreClient(ProtoStoreCore):
    """Async client used by the MCP server, the merge worker and the CLI.

    Every write is one cycle under the module's lock:
    load -> resolve + mutate in memory -> save -> archive -> activity log.
    A failed resolve leaves disk untouched; a failed save raises
    StorageError; archive and activity-log failures are only logged.
    """

    def _log_debug(self, message: str) -> None:
        log_event(message, "MERGE")

    async def _note(self, message: str, severity: str = "note") -> None:
        await asyncio.to_thread(self.log_activity, message, severity)

    @asynccontextmanager
    async def _session(self, name: str, operation: str) -> AsyncIterator[JsonDict]:
        """Hold the module lock for a whole load/modify/save cycle."""
        self.validate_module_name(name)
        async with self.module_lock(name):
            try:
                document = await asyncio.to_thread(self.load_module, name)
                yield document
            except ProtoStoreError as e:
                logger.error(f"{operation} on '{name}' failed: {e.message} {e.details}")
                await self._note(f"{operation} on {name} failed: {e.message}", "error")
                raise

    async def _commit(self, name: str, document: JsonDict) -> None:
        await asyncio.to_thread(self.save_module, name, document)
        await asyncio.to_thread(self.archive_module, name, document)

    async def _mutate(self, name: str, operation: str, apply: Callable[[JsonDict], _Outcome]) -> Any:
        async with self._session(name, operation) as document:
            result = apply(document)
            if result.changed:
                await self._commit(name, result.document)
            logger.info(f"{operation} on '{name}': {result.summary()}")
            await self._note(f"{operation} on {name} successful", "success")
        return result

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_module(self, name: str) -> JsonDict:
        return await asyncio.to_thread(self.load_module, name)

    async def list_module_names(self) -> list[str]:
        return await asyncio.to_thread(self.list_modules)

    # ------------------------------------------------------------------
    # Hotspots
    # ------------------------------------------------------------------

    async def add_hotspot(self, request: HotspotCreateRequest) -> MutationResult:
        return await self._mutate(
            request.file,
            "add hotspot",
            lambda doc: mutations.add_hotspot(doc, request, id_factory=self.id_factory),
        )

    async def add_global_hotspot(self, request: GlobalHotspotCreateRequest) -> MutationResult:
        return await self._mutate(
            request.file, "add global hotspot", lambda doc: mutations.add_global_hotspot(doc, request)
        )

    async def update_hotspot(self, request: HotspotUpdateRequest) -> MutationResult:
        return await self._mutate(request.file, "update hotspot", lambda doc: mutations.update_hotspot(doc, request))

    async def delete_hotspot(self, request: HotspotDeleteRequest) -> MutationResult:
        return await self._mutate(request.file, "delete hotspot", lambda doc: mutations.delete_hotspot(doc, request))

    async def delete_global_hotspot(self, request: GlobalHotspotDeleteRequest) -> MutationResult:
        return await self._mutate(
            request.file, "delete global hotspot", lambda doc: mutations.delete_global_hotspot(doc, request)
        )

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    async def add_comment(self, request: CommentCreateRequest) -> MutationResult:
        return await self._mutate(
            request.file,
            "add comment",
            lambda doc: mutations.add_comment(doc, request, id_factory=self.id_factory, clock=self.clock),
        )

    async def update_comment(self, request: CommentUpdateRequest) -> MutationResult:
        return await self._mutate(
            request.file,
            "update comment",
            lambda doc: mutations.update_comment(doc, request, clock=self.clock),
        )

    async def delete_comment(self, request: CommentDeleteRequest) -> MutationResult:
        return await self._mutate(request.file, "delete comment", lambda doc: mutations.delete_comment(doc, request))

    # ------------------------------------------------------------------
    # Node metadata
    # ------------------------------------------------------------------

    async def update_status(self, request: StatusUpdateRequest) -> MutationResult:
        return await self._mutate(request.file, "update status", lambda doc: mutations.update_status(doc, request))

    async def update_slide(self, request: SlideUpdateRequest) -> MutationResult:
        return await self._mutate(request.file, "update slide", lambda doc: mutations.update_slide(doc, request))

    # ------------------------------------------------------------------
    # Whole-module operations
    # ------------------------------------------------------------------

    async def format_module(self, name: str) -> dict[str, int]:
        """Stamp ids and addressing fields on a freshly authored module and save it."""
        async with self._session(name, "format data") as document:
            counters = mutations.format_module(name, document, id_factory=self.id_factory)
            await self._commit(name, document)
            logger.info(f"format data on '{name}': {counters}")
            await self._note(f"format data on {name} successful", "success")
        return counters

    async def merge_documents(self, existing_name: str, new_document: JsonDict) -> MergeResult:
        """Merge an in-memory upstream copy into the live module."""
        await self._note(f"merge into {existing_name} from an in-memory document")
        return await self._mutate(
            existing_name,
            "merge",
            lambda doc: reconcile_modules(doc, new_document, file=existing_name, log=self._log_debug),
        )

    async def merge_files(self, existing_file: str, new_path: str) -> MergeResult:
        """Merge the upstream copy at ``new_path`` into the live module.

        Both documents are read under the live module's lock so they form
        one snapshot. A relative ``new_path`` is taken from the merge folder.
        """
        name = self.module_name_from_file(existing_file)
        path = self.resolve_merge_path(new_path)
        await self._note(f"merge these two files, {name}, {path}")

        async with self._session(name, "merge") as existing:
            upstream = await asyncio.to_thread(self.load_external, path)
            result = reconcile_modules(existing, upstream, file=name, log=self._log_debug)
            if result.changed:
                await self._commit(name, result.document)
            logger.info(f"merge on '{name}': {result.summary()}")
            await self._note("merge successful", "success")
        return result
