# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""
Collaborator protocols for the reclamation engine.

The engine never talks to a browser directly. Hosts provide these
interfaces; the engine only depends on the contracts.

Design Principles:
1. Composition over inheritance - no base classes to subclass
2. Testable - every protocol has an in-memory implementation in
   tab_reclaimer.hosts.local
3. Transport agnostic - nothing here assumes how the host is reached

Protocol Versioning:
- MAJOR: Breaking changes to method signatures
- MINOR: New optional methods with defaults
- PATCH: Documentation or type hint fixes
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, runtime_checkable

from tab_reclaimer.schemas import ResourceRecord

RESOURCE_DIRECTORY_VERSION = "1.0.0"
CONTENT_PROBE_VERSION = "1.0.0"
KEY_VALUE_STORE_VERSION = "1.0.0"
TRIGGER_SERVICE_VERSION = "1.0.0"
INDICATOR_VERSION = "1.0.0"

# Key-value scopes
SYNC_SCOPE = "sync"
LOCAL_SCOPE = "local"


@dataclass(frozen=True)
class FormControl:
    """
    A form control observed in a document.

    Attributes:
        tag: Element tag (input, textarea, select)
        input_type: Input type attribute (text, checkbox, ...), empty if absent
        value: Current value
        default_value: Value the control was loaded with
        focused: Whether the control currently holds input focus
    """

    tag: str
    input_type: str = ""
    value: str = ""
    default_value: str = ""
    focused: bool = False

    @property
    def is_dirty(self) -> bool:
        return self.value != self.default_value


@dataclass(frozen=True)
class ProbeMatch:
    """Outcome of a single probe strategy. ``reason`` is set when matched."""

    matched: bool
    reason: Optional[str] = None


NO_MATCH = ProbeMatch(False)


@dataclass(frozen=True)
class FrameResult:
    """Probe outcome for one frame of a resource."""

    frame_id: int
    result: ProbeMatch


@runtime_checkable
class DocumentView(Protocol):
    """
    Read-only view over the live content of one frame.

    Version: 1.0.0
    """

    @property
    def url(self) -> str:
        """Address of the frame."""
        ...

    def has_selector(self, selector: str) -> bool:
        """
        Check whether any element matches a CSS selector.

        Args:
            selector: CSS selector

        Returns:
            True if at least one element matches
        """
        ...

    def form_controls(self) -> List[FormControl]:
        """Return every input, textarea and select in the frame."""
        ...


ProbePredicate = Callable[[DocumentView], ProbeMatch]


@runtime_checkable
class ResourceDirectory(Protocol):
    """
    Enumerates, creates and removes resources in the host.

    Event subscriptions (activation, load completion, removal) are
    delivered by the host calling the CycleScheduler ``on_*`` handlers.

    Version: 1.0.0
    """

    async def list_open(self) -> List[ResourceRecord]:
        """Return every open resource in enumeration order."""
        ...

    async def get_focused(self) -> Optional[ResourceRecord]:
        """Return the resource holding focus, or None."""
        ...

    async def remove(self, resource_id: int) -> None:
        """
        Close a resource.

        Raises:
            ResourceNotFoundError: If the resource no longer exists
        """
        ...

    async def create(self, url: str, active: bool = False) -> ResourceRecord:
        """Open a new resource at ``url``."""
        ...

    async def update(self, resource_id: int, url: str) -> None:
        """
        Navigate an existing resource to ``url``.

        Raises:
            ResourceNotFoundError: If the resource no longer exists
        """
        ...


@runtime_checkable
class ContentProbeService(Protocol):
    """
    Runs a predicate against the live content of a resource.

    Version: 1.0.0
    """

    async def run_probe(self, resource_id: int, predicate: ProbePredicate) -> List[FrameResult]:
        """
        Evaluate ``predicate`` in every frame of a resource.

        Args:
            resource_id: Resource to inspect
            predicate: Called once per frame with a DocumentView

        Returns:
            One FrameResult per inspected frame

        Raises:
            ProbeUnavailableError: If the resource cannot be inspected
        """
        ...


ChangeListener = Callable[[Dict[str, Any], str], Any]


@runtime_checkable
class KeyValueStore(Protocol):
    """
    Two-scope key-value persistence.

    The ``sync`` scope holds user configuration, the ``local`` scope
    holds engine state (recency map, journal entries).

    Version: 1.0.0
    """

    async def get(self, scope: str, defaults: Dict[str, Any]) -> Dict[str, Any]:
        """
        Read keys from a scope.

        Args:
            scope: "sync" or "local"
            defaults: Keys to read mapped to their fallback values

        Returns:
            Dict with one entry per key in ``defaults``
        """
        ...

    async def set(self, scope: str, items: Dict[str, Any]) -> None:
        """
        Write keys to a scope and notify change listeners.

        Raises:
            PersistenceError: If the write fails
        """
        ...

    def add_change_listener(self, listener: ChangeListener) -> None:
        """
        Register a callback for writes.

        The callback receives ``({key: {"old_value", "new_value"}}, scope)``.
        It may be a coroutine function.
        """
        ...


TriggerCallback = Callable[[str], Awaitable[Any]]


@dataclass(frozen=True)
class Trigger:
    """A registered periodic trigger."""

    name: str
    period_minutes: float


@runtime_checkable
class TriggerService(Protocol):
    """
    Named periodic triggers.

    Version: 1.0.0
    """

    def create(self, name: str, period_minutes: float, callback: TriggerCallback) -> Trigger:
        """Create or replace the trigger called ``name``."""
        ...

    def clear(self, name: str) -> bool:
        """Remove a trigger. Returns True if one existed."""
        ...

    def get(self, name: str) -> Optional[Trigger]:
        """Return the trigger called ``name``, or None."""
        ...


@runtime_checkable
class Indicator(Protocol):
    """
    Advisory counter shown to the user (toolbar badge).

    No engine logic depends on it.

    Version: 1.0.0
    """

    def set_count(self, count: int) -> None:
        ...

    def clear(self) -> None:
        ...
