"""Extraction of the JSON state Ozon embeds in page markup.

Ozon renders its widgets server-side and ships each widget's state as a
serialized JSON object in a ``data-state`` attribute. Pages are parsed with
BeautifulSoup and every matching element is decoded independently so that a
single broken widget never hides the others.
"""

from __future__ import annotations

from collections.abc import Callable
import json
from typing import Any, Literal, overload

from bs4 import BeautifulSoup

DEFAULT_SELECTOR = "[data-state]"
STATE_ATTRIBUTE = "data-state"

StatePayload = dict[str, Any]
StateFilter = Callable[[StatePayload], bool]


def _parse_payload(raw: str | None) -> StatePayload:
    if not raw:
        return {}
    try:
        payload = json.loads(raw)
    except (ValueError, TypeError):
        return {}
    return payload if isinstance(payload, dict) else {}


@overload
def extract_embedded_state(
    markup: str,
    *,
    selector: str = ...,
    filter: StateFilter | None = ...,
    merge: Literal[False] = ...,
) -> list[StatePayload]: ...


@overload
def extract_embedded_state(
    markup: str,
    *,
    selector: str = ...,
    filter: StateFilter | None = ...,
    merge: Literal[True],
) -> StatePayload: ...


def extract_embedded_state(
    markup: str,
    *,
    selector: str = DEFAULT_SELECTOR,
    filter: StateFilter | None = None,  # noqa: A002
    merge: bool = False,
) -> list[StatePayload] | StatePayload:
    """Collect the ``data-state`` payloads of every element matching ``selector``.

    Args:
        markup: Page HTML
        selector: CSS selector for elements carrying a payload
        filter: Optional predicate applied to each parsed payload
        merge: Fold all surviving payloads into one dict (later keys win)

    Returns:
        List of non-empty payload dicts in document order, or a single merged
        dict when ``merge`` is set
    """
    soup = BeautifulSoup(markup, "html.parser")
    payloads = [
        payload
        for payload in (
            _parse_payload(element.get(STATE_ATTRIBUTE))
            for element in soup.select(selector)
        )
        if payload
    ]

    if filter is not None:
        payloads = [payload for payload in payloads if filter(payload)]

    if merge:
        merged: StatePayload = {}
        for payload in payloads:
            merged.update(payload)
        return merged
    return payloads
