"""Tests for data-state extraction from Ozon markup."""

from __future__ import annotations

import html
import json
from typing import Any

from orderharvest.adapters.ozon.extraction import extract_embedded_state


def state_div(state: Any) -> str:
    return f'<div data-state="{html.escape(json.dumps(state), quote=True)}"></div>'


class TestExtractEmbeddedState:
    def test_returns_payloads_in_document_order(self) -> None:
        # input
        markup = (
            "<html><body>"
            + state_div({"a": 1})
            + "<p>text</p>"
            + state_div({"b": 2})
            + "</body></html>"
        )

        # act
        result = extract_embedded_state(markup)

        # assert
        assert result == [{"a": 1}, {"b": 2}]

    def test_skips_unparseable_empty_and_non_object_payloads(self) -> None:
        markup = (
            '<div data-state="{not json"></div>'
            '<div data-state=""></div>'
            + state_div({})
            + state_div([1, 2, 3])
            + state_div({"ok": True})
        )

        assert extract_embedded_state(markup) == [{"ok": True}]

    def test_page_without_state_returns_empty_list(self) -> None:
        assert extract_embedded_state("<html><body>Nothing</body></html>") == []

    def test_filter_is_applied(self) -> None:
        markup = state_div({"orderList": [1]}) + state_div({"other": 1})

        result = extract_embedded_state(markup, filter=lambda s: "orderList" in s)

        assert result == [{"orderList": [1]}]

    def test_merge_folds_payloads_later_keys_win(self) -> None:
        markup = state_div({"a": 1, "b": 1}) + state_div({"b": 2, "c": 3})

        result = extract_embedded_state(markup, merge=True)

        assert result == {"a": 1, "b": 2, "c": 3}

    def test_merge_with_no_payloads_returns_empty_dict(self) -> None:
        assert extract_embedded_state("<p></p>", merge=True) == {}

    def test_custom_selector(self) -> None:
        markup = (
            '<section class="order">'
            + state_div({"in": 1})
            + "</section>"
            + state_div({"out": 1})
        )

        result = extract_embedded_state(markup, selector="section.order [data-state]")

        assert result == [{"in": 1}]
