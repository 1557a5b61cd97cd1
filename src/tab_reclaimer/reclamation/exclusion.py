# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Exclusion heuristics protecting resources in active use.

Two stages, short-circuiting on the first match:

1. Lexical: the case-folded title is checked against a multilingual
   keyword set meaning edit/compose/new/reply.
2. Content probe: the probe strategies from ``probes`` run inside every
   frame of the resource.

A probe that fails or times out counts as "not in use". Protection is
best effort; an uninspectable resource can still be evicted.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import FrozenSet, Iterable, Optional, Pattern, Sequence

from tab_reclaimer.errors import ProbeUnavailableError
from tab_reclaimer.protocols import ContentProbeService, DocumentView, ProbeMatch
from tab_reclaimer.reclamation.probes import DEFAULT_STRATEGIES, ProbeStrategy, evaluate_strategies
from tab_reclaimer.schemas import ResourceRecord

logger = logging.getLogger(__name__)

# Words written with spaces between them; matched on word boundaries
WORD_KEYWORDS: FrozenSet[str] = frozenset(
    {
        # English
        "edit", "editing", "compose", "composing", "new message", "new post",
        "reply", "replying", "draft", "write", "writing",
        # Spanish / Portuguese
        "editar", "editando", "redactar", "nuevo mensaje", "responder", "borrador",
        "escrever", "rascunho", "nova mensagem",
        # French
        "modifier", "modification", "rédiger", "nouveau message", "répondre", "brouillon",
        # German
        "bearbeiten", "verfassen", "neue nachricht", "antworten", "entwurf",
        # Russian
        "редактировать", "редактирование", "написать", "новое сообщение", "ответить", "черновик",
    }
)

# CJK keywords; matched as substrings
SUBSTRING_KEYWORDS: FrozenSet[str] = frozenset(
    {
        # Chinese
        "编辑", "編輯", "撰写", "撰寫", "新建", "回复", "回覆", "草稿", "写邮件",
        # Japanese
        "編集", "作成", "返信", "下書き", "新規",
        # Korean
        "편집", "작성", "답장", "임시저장",
    }
)

STAGE_LEXICAL = "lexical"
STAGE_PROBE = "probe"
STAGE_NONE = "none"


def _compile_word_pattern(keywords: Iterable[str]) -> Pattern[str]:
    alternatives = sorted((re.escape(k.casefold()) for k in keywords), key=len, reverse=True)
    return re.compile(r"(?<!\w)(" + "|".join(alternatives) + r")(?!\w)")


@dataclass(frozen=True)
class ExclusionVerdict:
    """
    Result of an exclusion check.

    Attributes:
        protected: True if the resource looks actively used
        stage: "lexical", "probe" or "none"
        reason: Matched keyword or probe reason tag
        probe_failed: True if the probe could not run
    """

    protected: bool
    stage: str = STAGE_NONE
    reason: Optional[str] = None
    probe_failed: bool = False


class ExclusionHeuristicRunner:
    """Decides whether a resource is being edited or composed.

    Attributes:
        probe_service: Host service running predicates inside resources.
        probe_timeout_seconds: Upper bound on one probe.
        strategies: Ordered probe strategies.

    Example:
        >>> runner = ExclusionHeuristicRunner(probe_service)
        >>> verdict = await runner.evaluate(resource)
        >>> if verdict.protected:
        ...     print(f"Keeping {resource.title}: {verdict.reason}")
    """

    def __init__(
        self,
        probe_service: ContentProbeService,
        probe_timeout_seconds: float = 5.0,
        strategies: Sequence[ProbeStrategy] = DEFAULT_STRATEGIES,
        word_keywords: Iterable[str] = WORD_KEYWORDS,
        substring_keywords: Iterable[str] = SUBSTRING_KEYWORDS,
    ):
        """Initialize the runner.

        Args:
            probe_service: Host content probe service.
            probe_timeout_seconds: Probe timeout; exceeding it counts as failure.
            strategies: Probe strategies, evaluated in order.
            word_keywords: Title keywords matched on word boundaries.
            substring_keywords: Title keywords matched anywhere.
        """
        self.probe_service = probe_service
        self.probe_timeout_seconds = probe_timeout_seconds
        self.strategies = tuple(strategies)
        self._word_pattern = _compile_word_pattern(word_keywords)
        self._substrings = tuple(k.casefold() for k in substring_keywords)

    def match_title(self, title: str) -> Optional[str]:
        """Return the keyword found in a title, or None."""
        folded = title.casefold()
        match = self._word_pattern.search(folded)
        if match:
            return match.group(1)
        for keyword in self._substrings:
            if keyword in folded:
                return keyword
        return None

    def evaluate_frame(self, document: DocumentView) -> ProbeMatch:
        """Probe predicate run inside each frame."""
        return evaluate_strategies(document, self.strategies)

    async def evaluate(self, resource: ResourceRecord) -> ExclusionVerdict:
        """Run both stages against a resource.

        Args:
            resource: Resource to check.

        Returns:
            ExclusionVerdict describing the first match, if any.
        """
        keyword = self.match_title(resource.title)
        if keyword is not None:
            logger.debug(f"Resource {resource.id} protected by title keyword {keyword!r}")
            return ExclusionVerdict(True, STAGE_LEXICAL, f"title:{keyword}")

        try:
            results = await asyncio.wait_for(
                self.probe_service.run_probe(resource.id, self.evaluate_frame),
                timeout=self.probe_timeout_seconds,
            )
        except ProbeUnavailableError as e:
            logger.info(f"Cannot inspect resource {resource.id}, treating as idle: {e.reason}")
            return ExclusionVerdict(False, STAGE_PROBE, probe_failed=True)
        except asyncio.TimeoutError:
            logger.warning(
                f"Probe for resource {resource.id} timed out after "
                f"{self.probe_timeout_seconds}s, treating as idle"
            )
            return ExclusionVerdict(False, STAGE_PROBE, probe_failed=True)
        except Exception as e:
            logger.warning(f"Probe for resource {resource.id} failed, treating as idle: {e}")
            return ExclusionVerdict(False, STAGE_PROBE, probe_failed=True)

        for frame in results or []:
            if frame.result.matched:
                logger.debug(
                    f"Resource {resource.id} protected by frame {frame.frame_id}: {frame.result.reason}"
                )
                return ExclusionVerdict(True, STAGE_PROBE, frame.result.reason)

        return ExclusionVerdict(False, STAGE_PROBE)

    async def is_actively_used(self, resource: ResourceRecord) -> bool:
        """True if the resource looks like it is being edited."""
        verdict = await self.evaluate(resource)
        return verdict.protected
