# frontend/list_header.py
# Tri-state "select page" checkbox in the asset list header

from __future__ import annotations

from enum import Enum
from typing import Sequence

from frontend.selection import ListItem, SelectionStore


class HeaderCheckState(str, Enum):
    unchecked = "unchecked"
    partial = "partial"
    checked = "checked"


def header_state(selected_count: int, page_size: int) -> HeaderCheckState:
    """
    Derive the header checkbox from how many items are selected versus how
    many rows the current page shows. An empty page with nothing selected is
    unchecked.
    """
    if selected_count <= 0:
        return HeaderCheckState.unchecked
    if selected_count < page_size:
        return HeaderCheckState.partial
    return HeaderCheckState.checked


def click_header(store: SelectionStore, page_items: Sequence[ListItem]) -> HeaderCheckState:
    """
    Apply a header click and return the resulting state.

    Checked and partial both collapse to an empty selection; unchecked
    selects every item on the current page.
    """
    current = header_state(store.count(), len(page_items))
    if current is HeaderCheckState.unchecked:
        store.set_all(page_items)
    else:
        store.clear()
    return header_state(store.count(), len(page_items))


def header_label(state: HeaderCheckState) -> str:
    """Checkbox caption; Streamlit has no indeterminate checkbox so partial gets its own mark."""
    return {
        HeaderCheckState.unchecked: "Select page",
        HeaderCheckState.partial: "➖ Clear selection",
        HeaderCheckState.checked: "Clear selection",
    }[state]
