"""Prototype store client - file-backed Load / Save / Archive / Log collaborators."""

import asyncio
import json
import os
import re
import sys
import threading
from datetime import datetime
from typing import Any, Callable

from ..models import (
    DocumentNotFoundError,
    InvalidAddressError,
    MalformedDocumentError,
    StorageError,
    StoreConfiguration,
)
from .document_helper import JsonDict
from .identity import IdFactory, create_guid, day_bucket, hour_bucket, timestamp, utc_now

MODULE_NAME_RE = re.compile(r"^[A-Za-z0-9_.-]+$")

ACTIVITY_TYPES = ("note", "success", "error")


def log_event(message: str, component: str = "STORE") -> None:
    """Log an event to stderr with timestamp and consistent formatting."""
    ts = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    print(f"[{ts}] [{component}] {message}", file=sys.stderr, flush=True)


def _log(message: str, component: str = "STORE") -> None:
    """Unified log wrapper used throughout the store client.

    Everything goes to stderr through log_event: stdout belongs to the
    MCP stdio transport and FastMCP swallows the logging module.
    """
    log_event(message, component)


class _StoreLogger:
    """Lightweight logger that delegates to _log / log_event.

    Methods accept arbitrary *args/**kwargs for drop-in compatibility with
    logging.Logger call sites; only the first message argument is used.
    """

    def __init__(self, component: str = "STORE") -> None:
        self._component = component

    def _msg(self, msg: object) -> str:
        try:
            return str(msg)
        except Exception:
            return repr(msg)

    def info(self, msg: object, *args: object, **kwargs: object) -> None:
        _log(self._msg(msg), self._component)

    def warning(self, msg: object, *args: object, **kwargs: object) -> None:
        _log(f"WARNING: {self._msg(msg)}", self._component)

    def error(self, msg: object, *args: object, **kwargs: object) -> None:
        _log(f"ERROR: {self._msg(msg)}", self._component)

    def debug(self, msg: object, *args: object, **kwargs: object) -> None:
        _log(f"DEBUG: {self._msg(msg)}", self._component)

    def exception(self, msg: object, *args: object, **kwargs: object) -> None:
        _log(f"EXCEPTION: {self._msg(msg)}", self._component)


logger = _StoreLogger()


def load_json(path: str) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def save_json(path: str, data: Any, indent: int | None = None) -> None:
    """Write JSON atomically: temp file in the same directory, then os.replace."""
    tmp = f"{path}.{os.getpid()}.{threading.get_ident()}.tmp"
    try:
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=indent)
        os.replace(tmp, path)
    except BaseException:
        if os.path.exists(tmp):
            os.remove(tmp)
        raise


class ProtoStoreCore:
    """File-backed persistence for module documents.

    Layout under ``config.data_dir``::

        <module>.json                              live documents
        _archive/<module>/<day>/<hour>.json        hourly snapshots
        _log/<day>/<hour>.json                     activity log entries

    The core holds no document cache: every call reads or writes disk.
    Per-module asyncio locks serialize read-modify-write cycles for one
    module while leaving other modules independent.
    """

    def __init__(
        self,
        config: StoreConfiguration,
        *,
        id_factory: IdFactory = create_guid,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.config = config
        self.id_factory = id_factory
        self.clock = clock
        self._locks: dict[str, asyncio.Lock] = {}
        self._activity_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Paths and locks
    # ------------------------------------------------------------------

    @staticmethod
    def validate_module_name(name: str) -> str:
        """Return ``name`` if it is a safe module name, else raise InvalidAddressError."""
        if not isinstance(name, str) or not MODULE_NAME_RE.match(name) or name.startswith("."):
            raise InvalidAddressError(f"invalid module name {name!r}", {"file": name})
        return name

    def module_path(self, name: str) -> str:
        return os.path.join(str(self.config.data_dir), f"{self.validate_module_name(name)}.json")

    def module_exists(self, name: str) -> bool:
        return os.path.isfile(self.module_path(name))

    def list_modules(self) -> list[str]:
        """Return the names of all live module documents, sorted."""
        data_dir = str(self.config.data_dir)
        if not os.path.isdir(data_dir):
            return []
        names = []
        for entry in os.listdir(data_dir):
            stem, ext = os.path.splitext(entry)
            if ext == ".json" and MODULE_NAME_RE.match(stem) and not stem.startswith("."):
                names.append(stem)
        return sorted(names)

    def module_lock(self, name: str) -> asyncio.Lock:
        """Return the lock guarding read-modify-write cycles on ``name``."""
        lock = self._locks.get(name)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[name] = lock
        return lock

    # ------------------------------------------------------------------
    # Load / Save / Archive
    # ------------------------------------------------------------------

    def load_module(self, name: str) -> JsonDict:
        """Load a whole module document.

        Raises:
            DocumentNotFoundError: no ``<name>.json`` in the data directory.
            MalformedDocumentError: invalid JSON or a non-object root.
        """
        path = self.module_path(name)
        if not os.path.isfile(path):
            raise DocumentNotFoundError(name)
        try:
            document = load_json(path)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise MalformedDocumentError(
                f"module '{name}' is not valid JSON: {e}", {"file": name, "line": getattr(e, "lineno", None)}
            ) from e
        if not isinstance(document, dict):
            raise MalformedDocumentError(
                f"module '{name}' root is not a JSON object", {"file": name, "found": type(document).__name__}
            )
        return document

    @staticmethod
    def module_name_from_file(file_name: str) -> str:
        """Strip a trailing ``.json`` so file names and module names both work."""
        stem = os.path.basename(file_name)
        if stem.endswith(".json"):
            stem = stem[: -len(".json")]
        return ProtoStoreCore.validate_module_name(stem)

    def resolve_merge_path(self, path: str) -> str:
        """Relative paths of upstream copies are taken from the merge drop folder."""
        if os.path.isabs(path):
            return path
        return os.path.join(str(self.config.resolved_merge_dir), path)

    def load_external(self, path: str) -> JsonDict:
        """Load an upstream document copy from an arbitrary path."""
        if not os.path.isfile(path):
            raise DocumentNotFoundError(path)
        try:
            document = load_json(path)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise MalformedDocumentError(f"'{path}' is not valid JSON: {e}", {"path": path}) from e
        if not isinstance(document, dict):
            raise MalformedDocumentError(
                f"'{path}' root is not a JSON object", {"path": path, "found": type(document).__name__}
            )
        return document

    def save_module(self, name: str, document: JsonDict) -> None:
        """Atomically replace the module document on disk.

        Raises:
            StorageError: the write failed; the previous file is untouched.
        """
        path = self.module_path(name)
        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            save_json(path, document, self.config.json_indent)
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"save of module '{name}' failed: {e}")
            raise StorageError(f"could not save module '{name}': {e}", {"file": name}) from e

    def archive_path(self, name: str, moment: datetime | None = None) -> str:
        moment = moment or self.clock()
        return os.path.join(
            str(self.config.archive_dir),
            self.validate_module_name(name),
            day_bucket(moment),
            f"{hour_bucket(moment)}.json",
        )

    def archive_module(self, name: str, document: JsonDict) -> str | None:
        """Snapshot a document into its hourly archive bucket (best-effort).

        Returns the archive path, or None when the snapshot failed.
        """
        try:
            path = self.archive_path(name)
            os.makedirs(os.path.dirname(path), exist_ok=True)
            save_json(path, document, self.config.json_indent)
            return path
        except (OSError, TypeError, ValueError, InvalidAddressError) as e:
            logger.warning(f"archive of module '{name}' failed (ignored): {e}")
            return None

    # ------------------------------------------------------------------
    # Activity log
    # ------------------------------------------------------------------

    def activity_log_path(self, moment: datetime | None = None) -> str:
        moment = moment or self.clock()
        return os.path.join(str(self.config.log_dir), day_bucket(moment), f"{hour_bucket(moment)}.json")

    def log_activity(self, message: str, severity: str = "note") -> bool:
        """Append ``{type, log, timestamp}`` to the hourly activity log.

        Never raises. Returns False when the entry could not be written.
        """
        if severity not in ACTIVITY_TYPES:
            severity = "note"
        entry = {"type": severity, "log": message, "timestamp": timestamp(utc_now())}
        try:
            with self._activity_lock:
                path = self.activity_log_path()
                os.makedirs(os.path.dirname(path), exist_ok=True)
                entries: list[Any] = []
                if os.path.isfile(path):
                    try:
                        existing = load_json(path)
                        if isinstance(existing, list):
                            entries = existing
                    except json.JSONDecodeError:
                        logger.warning(f"activity log {path} unreadable, starting a new one")
                entries.append(entry)
                save_json(path, entries, self.config.json_indent)
            return True
        except Exception as e:  # noqa: BLE001
            # Activity logging must never break a mutation.
            log_event(f"activity log write failed (ignored): {type(e).__name__}: {e}", "STORE_LOG")
            return False
