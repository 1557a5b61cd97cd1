# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Host collaborator implementations."""

from tab_reclaimer.hosts.html import HtmlDocumentView
from tab_reclaimer.hosts.local import (
    LocalProbeService,
    LocalResourceDirectory,
    LoopTriggerService,
    RecordingIndicator,
)

__all__ = [
    "HtmlDocumentView",
    "LocalProbeService",
    "LocalResourceDirectory",
    "LoopTriggerService",
    "RecordingIndicator",
]
