# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""DocumentView over an HTML snapshot.

Hosts that capture page content as HTML (a serialized DOM plus the live
values of form controls) can hand it to the probe strategies through
HtmlDocumentView. Selector matching uses BeautifulSoup's CSS support.
"""

import logging
from typing import Dict, List, Optional

from bs4 import BeautifulSoup

from tab_reclaimer.protocols import FormControl

logger = logging.getLogger(__name__)

FORM_CONTROL_TAGS = ("input", "textarea", "select")


class HtmlDocumentView:
    """
    Read-only document view backed by parsed HTML.

    The serialized DOM only carries default values. Live values and focus
    are passed separately, keyed by the control's ``id`` or ``name``.

    Example:
        view = HtmlDocumentView(
            '<textarea id="body"></textarea>',
            url="https://mail.example.com/inbox",
            live_values={"body": "Dear team,"},
        )
        view.form_controls()[0].is_dirty  # True
    """

    def __init__(
        self,
        html: str,
        url: str = "",
        live_values: Optional[Dict[str, str]] = None,
        focused: Optional[str] = None,
    ):
        """
        Args:
            html: Serialized document
            url: Frame address
            live_values: Current control values keyed by id or name
            focused: Id or name of the control holding focus
        """
        self._url = url
        self._soup = BeautifulSoup(html or "", "html.parser")
        self._live_values = live_values or {}
        self._focused = focused

    @property
    def url(self) -> str:
        return self._url

    def has_selector(self, selector: str) -> bool:
        try:
            return self._soup.select_one(selector) is not None
        except Exception as e:
            # Unsupported selector syntax counts as no match
            logger.debug(f"Selector {selector!r} not evaluated: {e}")
            return False

    def form_controls(self) -> List[FormControl]:
        controls = []
        for element in self._soup.find_all(FORM_CONTROL_TAGS):
            key = element.get("id") or element.get("name")
            default = self._default_value(element)
            value = self._live_values.get(key, default) if key else default
            controls.append(
                FormControl(
                    tag=element.name,
                    input_type=(element.get("type") or "").lower(),
                    value=value,
                    default_value=default,
                    focused=key is not None and key == self._focused,
                )
            )
        return controls

    @staticmethod
    def _default_value(element) -> str:
        if element.name == "textarea":
            return element.get_text()
        if element.name == "select":
            selected = element.find("option", selected=True) or element.find("option")
            if selected is None:
                return ""
            return selected.get("value", selected.get_text())
        input_type = (element.get("type") or "").lower()
        if input_type in ("checkbox", "radio"):
            return "on" if element.has_attr("checked") else ""
        return element.get("value", "")
