# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Key-value persistence backends for the reclaimer."""

from tab_reclaimer.storage.stores import InMemoryKeyValueStore, JsonFileKeyValueStore

__all__ = [
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
]
