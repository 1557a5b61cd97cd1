# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Local in-memory host collaborators.

In-process implementations of the collaborator protocols. Suitable for:
- Development and testing
- Simulating a browser session without a browser
- Embedding the engine behind a custom transport

State is lost on restart; pair with JsonFileKeyValueStore for durable
engine state.
"""

import asyncio
import logging
from typing import Dict, List, Optional, Sequence, Set

from tab_reclaimer.errors import ProbeUnavailableError, ResourceNotFoundError
from tab_reclaimer.protocols import (
    DocumentView,
    FrameResult,
    ProbePredicate,
    Trigger,
    TriggerCallback,
)
from tab_reclaimer.schemas import ResourceRecord

logger = logging.getLogger(__name__)


class LocalResourceDirectory:
    """
    In-memory implementation of the ResourceDirectory protocol.

    Example:
        directory = LocalResourceDirectory()
        tab = directory.open("https://example.com", title="Example")
        await directory.remove(tab.id)
    """

    def __init__(self) -> None:
        self._resources: Dict[int, ResourceRecord] = {}
        self._next_id = 1
        self.removed: List[int] = []
        self.created: List[ResourceRecord] = []

    def open(self, url: str, title: str = "", active: bool = False) -> ResourceRecord:
        """Synchronously add a resource, as the user opening a tab would."""
        record = ResourceRecord(id=self._next_id, title=title, url=url, is_active=False)
        self._next_id += 1
        self._resources[record.id] = record
        if active:
            self.focus(record.id)
        return self._resources[record.id]

    def focus(self, resource_id: int) -> None:
        if resource_id not in self._resources:
            raise ResourceNotFoundError(resource_id)
        for rid, record in self._resources.items():
            self._resources[rid] = record.model_copy(update={"is_active": rid == resource_id})

    def discard(self, resource_id: int) -> None:
        """Drop a resource without recording it as removed by the engine."""
        self._resources.pop(resource_id, None)

    def get(self, resource_id: int) -> Optional[ResourceRecord]:
        return self._resources.get(resource_id)

    async def list_open(self) -> List[ResourceRecord]:
        return list(self._resources.values())

    async def get_focused(self) -> Optional[ResourceRecord]:
        for record in self._resources.values():
            if record.is_active:
                return record
        return None

    async def remove(self, resource_id: int) -> None:
        if resource_id not in self._resources:
            raise ResourceNotFoundError(resource_id)
        del self._resources[resource_id]
        self.removed.append(resource_id)

    async def create(self, url: str, active: bool = False) -> ResourceRecord:
        record = self.open(url, active=active)
        self.created.append(record)
        return record

    async def update(self, resource_id: int, url: str) -> None:
        record = self._resources.get(resource_id)
        if record is None:
            raise ResourceNotFoundError(resource_id)
        self._resources[resource_id] = record.model_copy(update={"url": url})


class LocalProbeService:
    """
    In-memory implementation of the ContentProbeService protocol.

    Documents are registered per resource, one DocumentView per frame.
    Resources without documents, or marked unavailable, raise
    ProbeUnavailableError. Resources marked hanging never answer.

    Example:
        probes = LocalProbeService()
        probes.set_frames(tab.id, [HtmlDocumentView('<div class="ProseMirror"></div>')])
    """

    def __init__(self) -> None:
        self._frames: Dict[int, List[DocumentView]] = {}
        self.unavailable: Set[int] = set()
        self.hanging: Set[int] = set()
        self.probed: List[int] = []

    def set_frames(self, resource_id: int, frames: Sequence[DocumentView]) -> None:
        self._frames[resource_id] = list(frames)

    async def run_probe(self, resource_id: int, predicate: ProbePredicate) -> List[FrameResult]:
        self.probed.append(resource_id)
        if resource_id in self.hanging:
            await asyncio.Event().wait()
        if resource_id in self.unavailable or resource_id not in self._frames:
            raise ProbeUnavailableError(resource_id)
        return [
            FrameResult(frame_id=index, result=predicate(frame))
            for index, frame in enumerate(self._frames[resource_id])
        ]


class LoopTriggerService:
    """
    TriggerService backed by asyncio tasks on the running loop.

    Each trigger is a task that sleeps for the period and then awaits
    the callback. Callback errors are logged and the loop keeps going.

    Example:
        triggers = LoopTriggerService()
        triggers.create("reclaim", 5, scheduler.on_tick)
    """

    def __init__(self, seconds_per_minute: float = 60.0) -> None:
        self.seconds_per_minute = seconds_per_minute
        self._triggers: Dict[str, Trigger] = {}
        self._tasks: Dict[str, asyncio.Task] = {}

    def create(self, name: str, period_minutes: float, callback: TriggerCallback) -> Trigger:
        self.clear(name)
        trigger = Trigger(name=name, period_minutes=period_minutes)
        interval = period_minutes * self.seconds_per_minute

        async def periodic() -> None:
            while True:
                try:
                    await asyncio.sleep(interval)
                    await callback(name)
                except asyncio.CancelledError:
                    logger.debug(f"Trigger {name} cancelled")
                    raise
                except Exception as e:
                    logger.error(f"Trigger {name} callback failed: {e}")

        self._triggers[name] = trigger
        self._tasks[name] = asyncio.create_task(periodic())
        return trigger

    def clear(self, name: str) -> bool:
        task = self._tasks.pop(name, None)
        if task is not None:
            task.cancel()
        return self._triggers.pop(name, None) is not None

    def get(self, name: str) -> Optional[Trigger]:
        task = self._tasks.get(name)
        if task is not None and task.done():
            # A dead task is a missing trigger
            self._tasks.pop(name, None)
            self._triggers.pop(name, None)
            return None
        return self._triggers.get(name)


class RecordingIndicator:
    """Indicator that remembers what it was last told to show."""

    def __init__(self) -> None:
        self.count: Optional[int] = None

    def set_count(self, count: int) -> None:
        self.count = count

    def clear(self) -> None:
        self.count = None
