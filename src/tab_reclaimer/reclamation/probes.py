# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Content probe strategies for detecting active editing.

Each strategy is a named predicate over a DocumentView returning a
ProbeMatch. Strategies run in order and the first match wins. Site
categories are separate strategies; supporting a new site means
appending a strategy, not branching inside an existing one.

Order:
1. rich_text_editor     - generic rich-text and code editor containers
2. form_control         - edited or focused inputs
3. code_hosting         - comment, commit and file editors on code hosts
4. office_suite         - document titles, mail compose, cell editors
5. cms_editor           - blog and article editors
6. social_compose       - compose boxes found by accessible label or role
7. unsaved_marker       - explicit dirty/unsaved indicators
8. editing_url          - edit/create/new/compose/write path segments
"""

import re
from dataclasses import dataclass
from typing import Callable, List, Sequence, Tuple
from urllib.parse import urlparse

from tab_reclaimer.protocols import NO_MATCH, DocumentView, ProbeMatch

# Input types whose value is never edited by the user
NON_EDITABLE_INPUT_TYPES = frozenset({"hidden", "submit", "button", "reset", "image"})

RICH_TEXT_SELECTORS: Tuple[str, ...] = (
    '[contenteditable="true"]',
    '[contenteditable=""]',
    ".ProseMirror",
    ".ql-editor",
    ".CodeMirror",
    ".cm-editor",
    ".monaco-editor",
    ".ace_editor",
    ".tox-edit-area",
    ".mce-content-body",
    ".ck-editor__editable",
    ".DraftEditor-root",
    ".public-DraftEditor-content",
)

CODE_HOSTING_SELECTORS: Tuple[str, ...] = (
    ".js-comment-field",
    ".comment-form-textarea",
    "#commit-summary-input",
    "#commit-description-textarea",
    ".js-blob-form",
    ".file-editor-textarea",
    "#new_comment_field",
    ".note-textarea",
    ".merge-request-form",
    ".ide-view",
)

OFFICE_SUITE_SELECTORS: Tuple[str, ...] = (
    ".docs-title-input",
    ".kix-appview-editor",
    ".compose-content",
    'div[role="dialog"] [g_editable="true"]',
    ".waffle-cell-editor",
    "#t-formula-bar-input",
    ".cell-input",
    "#WACViewPanel_EditingElement",
    '[data-app-section="Compose"]',
)

CMS_EDITOR_SELECTORS: Tuple[str, ...] = (
    "#wp-content-editor-container",
    ".block-editor-writing-flow",
    ".editor-post-title",
    ".notion-page-content",
    ".medium-editor-element",
    ".postArticle-content",
    "#article-editor",
    ".editor-content",
)

SOCIAL_COMPOSE_SELECTORS: Tuple[str, ...] = (
    '[aria-label*="compose" i]',
    '[aria-label*="write a post" i]',
    '[aria-label*="what\'s happening" i]',
    '[aria-label*="reply" i][role="textbox"]',
    '[data-testid^="tweetTextarea"]',
    '[role="textbox"][aria-multiline="true"]',
)

UNSAVED_MARKER_SELECTORS: Tuple[str, ...] = (
    "[data-unsaved]",
    '[data-dirty="true"]',
    ".unsaved",
    ".is-dirty",
    ".unsaved-changes",
    '[aria-label*="unsaved" i]',
)

EDITING_PATH_SEGMENTS = frozenset({"edit", "create", "new", "compose", "write"})

_SEGMENT_SPLIT = re.compile(r"[/?#&=]+")


@dataclass(frozen=True)
class ProbeStrategy:
    """A named predicate over a document."""

    name: str
    check: Callable[[DocumentView], ProbeMatch]

    def __call__(self, document: DocumentView) -> ProbeMatch:
        return self.check(document)


def selector_strategy(name: str, selectors: Sequence[str]) -> ProbeStrategy:
    """Build a strategy that matches when any selector is present.

    The reason tag is ``"<name>:<selector>"``.
    """

    def check(document: DocumentView) -> ProbeMatch:
        for selector in selectors:
            if document.has_selector(selector):
                return ProbeMatch(True, f"{name}:{selector}")
        return NO_MATCH

    return ProbeStrategy(name, check)


def check_form_controls(document: DocumentView) -> ProbeMatch:
    """Match a control whose value differs from its default, or any focused control."""
    for control in document.form_controls():
        if control.focused:
            return ProbeMatch(True, f"form_control:focused:{control.tag}")
        if control.input_type in NON_EDITABLE_INPUT_TYPES:
            continue
        if control.is_dirty:
            return ProbeMatch(True, f"form_control:dirty:{control.tag}")
    return NO_MATCH


def check_editing_url(document: DocumentView) -> ProbeMatch:
    """Match an address whose path contains an editing segment."""
    parsed = urlparse(document.url)
    target = f"{parsed.path}#{parsed.fragment}" if parsed.fragment else parsed.path
    for segment in _SEGMENT_SPLIT.split(target.casefold()):
        if segment in EDITING_PATH_SEGMENTS:
            return ProbeMatch(True, f"editing_url:{segment}")
    return NO_MATCH


DEFAULT_STRATEGIES: Tuple[ProbeStrategy, ...] = (
    selector_strategy("rich_text_editor", RICH_TEXT_SELECTORS),
    ProbeStrategy("form_control", check_form_controls),
    selector_strategy("code_hosting", CODE_HOSTING_SELECTORS),
    selector_strategy("office_suite", OFFICE_SUITE_SELECTORS),
    selector_strategy("cms_editor", CMS_EDITOR_SELECTORS),
    selector_strategy("social_compose", SOCIAL_COMPOSE_SELECTORS),
    selector_strategy("unsaved_marker", UNSAVED_MARKER_SELECTORS),
    ProbeStrategy("editing_url", check_editing_url),
)


def evaluate_strategies(
    document: DocumentView,
    strategies: Sequence[ProbeStrategy] = DEFAULT_STRATEGIES,
) -> ProbeMatch:
    """Run strategies in order and return the first match."""
    for strategy in strategies:
        match = strategy(document)
        if match.matched:
            return match
    return NO_MATCH


def strategy_names(strategies: Sequence[ProbeStrategy] = DEFAULT_STRATEGIES) -> List[str]:
    return [s.name for s in strategies]
