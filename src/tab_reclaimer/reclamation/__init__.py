# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Idle-resource reclamation engine.

Components, leaves first:
- RecencyTracker: last-accessed time per resource
- Classifier: ephemeral vs normal tier
- ExclusionHeuristicRunner: protects resources being edited
- EvictionPolicyEngine: one reclamation cycle
- EvictionJournal: deduplicated history with restore
- CycleScheduler: periodic trigger and event routing
"""

from tab_reclaimer.reclamation.classifier import Classifier
from tab_reclaimer.reclamation.exclusion import ExclusionHeuristicRunner, ExclusionVerdict
from tab_reclaimer.reclamation.journal import EvictionJournal, aggregate_entries
from tab_reclaimer.reclamation.policy import CycleReport, EvictionPolicyEngine
from tab_reclaimer.reclamation.recency import RecencyTracker
from tab_reclaimer.reclamation.scheduler import CycleScheduler

__all__ = [
    "Classifier",
    "CycleReport",
    "CycleScheduler",
    "EvictionJournal",
    "EvictionPolicyEngine",
    "ExclusionHeuristicRunner",
    "ExclusionVerdict",
    "RecencyTracker",
    "aggregate_entries",
]
