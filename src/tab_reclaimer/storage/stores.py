# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""
Key-value stores implementing the KeyValueStore protocol.

- InMemoryKeyValueStore: process-local, suitable for tests and embedding
- JsonFileKeyValueStore: one JSON document per scope on disk

Values are copied on the way in and out so callers never share mutable
state with the store.
"""

import asyncio
import copy
import inspect
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List

from tab_reclaimer.errors import PersistenceError
from tab_reclaimer.protocols import LOCAL_SCOPE, SYNC_SCOPE, ChangeListener

logger = logging.getLogger(__name__)

SCOPES = (SYNC_SCOPE, LOCAL_SCOPE)


def _check_scope(scope: str) -> None:
    if scope not in SCOPES:
        raise ValueError(f"Unknown scope {scope!r}, expected one of {SCOPES}")


class _ListenerMixin:
    """Change-listener bookkeeping shared by the stores."""

    def __init__(self) -> None:
        self._listeners: List[ChangeListener] = []

    def add_change_listener(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    async def _notify(self, changes: Dict[str, Dict[str, Any]], scope: str) -> None:
        if not changes:
            return
        for listener in list(self._listeners):
            try:
                result = listener(copy.deepcopy(changes), scope)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.warning(f"Change listener failed for scope {scope}: {e}")


class InMemoryKeyValueStore(_ListenerMixin):
    """
    In-memory implementation of KeyValueStore.

    Example:
        store = InMemoryKeyValueStore()
        await store.set("sync", {"capacity": 30})
        values = await store.get("sync", {"capacity": 50})  # {"capacity": 30}
    """

    def __init__(self) -> None:
        super().__init__()
        self._data: Dict[str, Dict[str, Any]] = {scope: {} for scope in SCOPES}
        self.fail_writes = False

    async def get(self, scope: str, defaults: Dict[str, Any]) -> Dict[str, Any]:
        _check_scope(scope)
        data = self._data[scope]
        return {key: copy.deepcopy(data.get(key, default)) for key, default in defaults.items()}

    async def set(self, scope: str, items: Dict[str, Any]) -> None:
        _check_scope(scope)
        if self.fail_writes:
            raise PersistenceError(f"Write to {scope} scope refused")
        data = self._data[scope]
        changes = {}
        for key, value in items.items():
            old_value = data.get(key)
            data[key] = copy.deepcopy(value)
            if old_value != value:
                changes[key] = {"old_value": old_value, "new_value": copy.deepcopy(value)}
        await self._notify(changes, scope)


class JsonFileKeyValueStore(_ListenerMixin):
    """
    File-backed implementation of KeyValueStore.

    Each scope lives in ``<directory>/<scope>.json``. Writes go to a
    temporary file that replaces the target, so a crash mid-write leaves
    the previous document intact.

    Example:
        store = JsonFileKeyValueStore(Path("~/.tab-reclaimer"))
        entries = (await store.get("local", {"journal_entries": []}))["journal_entries"]
    """

    def __init__(self, directory: Path) -> None:
        super().__init__()
        self.directory = Path(directory).expanduser()
        self._lock = asyncio.Lock()

    def path_for(self, scope: str) -> Path:
        _check_scope(scope)
        return self.directory / f"{scope}.json"

    def _read(self, scope: str) -> Dict[str, Any]:
        path = self.path_for(scope)
        if not path.exists():
            return {}
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Unreadable {scope} state at {path}, starting empty: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, scope: str, data: Dict[str, Any]) -> None:
        path = self.path_for(scope)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                prefix=f"{scope}.",
                suffix=".json.tmp",
                dir=self.directory,
                text=True,
            )
        except OSError as e:
            raise PersistenceError(f"Failed to write {path}: {e}") from e

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, path)
        except Exception as e:
            # Clean up temp file on failure
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            if isinstance(e, OSError):
                raise PersistenceError(f"Failed to write {path}: {e}") from e
            raise

    async def get(self, scope: str, defaults: Dict[str, Any]) -> Dict[str, Any]:
        data = self._read(scope)
        return {key: data.get(key, copy.deepcopy(default)) for key, default in defaults.items()}

    async def set(self, scope: str, items: Dict[str, Any]) -> None:
        async with self._lock:
            data = self._read(scope)
            changes = {}
            for key, value in items.items():
                old_value = data.get(key)
                data[key] = copy.deepcopy(value)
                if old_value != value:
                    changes[key] = {"old_value": old_value, "new_value": copy.deepcopy(value)}
            self._write(scope, data)
        await self._notify(changes, scope)
