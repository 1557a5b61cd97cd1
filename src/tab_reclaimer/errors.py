# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Exception hierarchy for the reclamation engine."""


class ReclaimerError(Exception):
    """Base class for all tab-reclaimer errors."""


class ProbeUnavailableError(ReclaimerError):
    """Raised when a resource's content cannot be inspected.

    Privileged or internal pages (browser settings, extension stores,
    crashed renderers) refuse script injection.
    """

    def __init__(self, resource_id: int, reason: str = "not inspectable"):
        self.resource_id = resource_id
        self.reason = reason
        super().__init__(f"Cannot probe resource {resource_id}: {reason}")


class ResourceNotFoundError(ReclaimerError):
    """Raised when a resource vanished before the host could act on it."""

    def __init__(self, resource_id: int):
        self.resource_id = resource_id
        super().__init__(f"Resource {resource_id} does not exist")


class PersistenceError(ReclaimerError):
    """Raised by key-value stores when a read or write fails."""
