# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Record schemas for the reclamation engine.

Defines Pydantic models for the resources read from the host and for
the eviction journal. Journal entries round-trip through the local
key-value scope as plain dicts.
"""

from enum import Enum
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field


class Tier(str, Enum):
    """Eviction tier of a resource.

    - EPHEMERAL: Blank or placeholder resources (always evicted first)
    - NORMAL: Everything else (evicted by idle time)
    """

    EPHEMERAL = "ephemeral"
    NORMAL = "normal"


class ResourceRecord(BaseModel):
    """An open resource (tab) as reported by the host.

    Read on demand and never owned by the engine.
    """

    model_config = ConfigDict(frozen=True)

    id: int = Field(..., description="Host-assigned resource id")
    title: str = Field(default="", description="Current surface title")
    url: str = Field(default="", description="Current address")
    is_active: bool = Field(default=False, description="Whether the resource has focus")


class JournalEntry(BaseModel):
    """A single eviction recorded in the journal.

    Only ``is_read`` changes after creation.
    """

    title: str = Field(default="", description="Title at eviction time")
    url: str = Field(..., description="Address at eviction time")
    closed_at: int = Field(..., ge=0, description="Eviction time in epoch ms")
    is_read: bool = Field(default=False, description="Seen in the report surface")

    def to_storage(self) -> Dict[str, Any]:
        """Serialize for the local key-value scope."""
        return self.model_dump()


class AggregatedJournalEntry(BaseModel):
    """Journal entries for one url, folded together.

    Derived on every read and never persisted.
    """

    url: str
    title: str
    count: int = Field(..., ge=1)
    last_closed_at: int
    closed_times: List[int] = Field(default_factory=list)
    is_read: bool
