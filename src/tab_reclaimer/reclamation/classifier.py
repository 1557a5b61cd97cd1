# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Tier classification for open resources.

A resource is ephemeral when it shows a blank or new-tab placeholder.
Ephemeral resources carry no user state and are always evicted first.
"""

from typing import FrozenSet, Iterable, Optional

from tab_reclaimer.schemas import ResourceRecord, Tier

PLACEHOLDER_URLS: FrozenSet[str] = frozenset(
    {
        "about:blank",
        "about:newtab",
        "about:home",
        "chrome://newtab",
        "chrome://new-tab-page",
        "chrome-search://local-ntp/local-ntp.html",
        "edge://newtab",
        "brave://newtab",
        "vivaldi://newtab",
    }
)

# Titles of the new-tab page across the supported UI locales
PLACEHOLDER_TITLES: FrozenSet[str] = frozenset(
    {
        "new tab",
        "新标签页",
        "新建标签页",
        "新分頁",
        "新しいタブ",
        "새 탭",
        "nouvel onglet",
        "neuer tab",
        "nueva pestaña",
        "nova guia",
        "nuova scheda",
        "новая вкладка",
        "nieuw tabblad",
        "nowa karta",
    }
)


def _normalize_url(url: str) -> str:
    return url.strip().casefold().rstrip("/")


def _normalize_title(title: str) -> str:
    return title.strip().casefold()


class Classifier:
    """Tags resources as ephemeral or normal.

    Example:
        >>> classifier = Classifier()
        >>> classifier.classify(ResourceRecord(id=1, title="New Tab", url="chrome://newtab/"))
        <Tier.EPHEMERAL: 'ephemeral'>
    """

    def __init__(
        self,
        extra_urls: Optional[Iterable[str]] = None,
        extra_titles: Optional[Iterable[str]] = None,
    ):
        """Initialize the classifier.

        Args:
            extra_urls: Additional placeholder addresses.
            extra_titles: Additional placeholder titles.
        """
        self.placeholder_urls = frozenset(
            _normalize_url(u) for u in PLACEHOLDER_URLS.union(extra_urls or ())
        )
        self.placeholder_titles = frozenset(
            _normalize_title(t) for t in PLACEHOLDER_TITLES.union(extra_titles or ())
        )

    def classify(self, resource: ResourceRecord) -> Tier:
        """Return the tier of a resource."""
        if _normalize_url(resource.url) in self.placeholder_urls:
            return Tier.EPHEMERAL
        if _normalize_title(resource.title) in self.placeholder_titles:
            return Tier.EPHEMERAL
        return Tier.NORMAL

    def is_ephemeral(self, resource: ResourceRecord) -> bool:
        return self.classify(resource) is Tier.EPHEMERAL
