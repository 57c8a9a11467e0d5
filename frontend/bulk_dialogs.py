# frontend/bulk_dialogs.py
# Open/closed flags for bulk-action dialogs, their triggers, and dialog content

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, MutableMapping, Optional, Union

DIALOG_STATE_KEY = "bulk_dialog_state"


class BulkDialogKind(str, Enum):
    location = "location"
    category = "category"
    assign_custody = "assign-custody"
    release_custody = "release-custody"
    trash = "trash"
    activate = "activate"
    deactivate = "deactivate"
    archive = "archive"
    tag_add = "tag-add"
    tag_remove = "tag-remove"
    cancel = "cancel"

    @property
    def removes_from_working_set(self) -> bool:
        """Kinds after which the selected items leave the list entirely."""
        return self in (BulkDialogKind.trash, BulkDialogKind.archive, BulkDialogKind.cancel)

    @property
    def display_name(self) -> str:
        return self.value.replace("-", " ")


def dialog_title(kind: BulkDialogKind) -> str:
    return f"Update {BulkDialogKind(kind).display_name}"


def dialog_description(kind: BulkDialogKind, count: int) -> str:
    return f"Adjust the {BulkDialogKind(kind).display_name} of selected ({count}) assets."


class DialogRegistry:
    """
    Per-kind open flags kept in session_state.

    Flags are independent: opening one kind never touches another. The page
    decides which single open dialog to render.
    """

    def __init__(self, session_state: MutableMapping[str, Any], key: str = DIALOG_STATE_KEY):
        self._ss = session_state
        self._key = key
        self._ss.setdefault(self._key, {})

    def _flags(self) -> Dict[str, bool]:
        return self._ss.setdefault(self._key, {})

    def open(self, kind: BulkDialogKind) -> None:
        self._flags()[BulkDialogKind(kind).value] = True

    def close(self, kind: BulkDialogKind) -> None:
        self._flags()[BulkDialogKind(kind).value] = False

    def is_open(self, kind: BulkDialogKind) -> bool:
        return bool(self._flags().get(BulkDialogKind(kind).value, False))

    def open_kinds(self) -> List[BulkDialogKind]:
        """Open kinds in declaration order."""
        return [k for k in BulkDialogKind if self.is_open(k)]


# ---------------------------------------------------------
# Triggers
# ---------------------------------------------------------
@dataclass(frozen=True)
class TriggerDisabled:
    """Why a trigger cannot be used right now; shown as the menu item's tooltip."""
    reason: Optional[str] = None


class DialogTrigger:
    """
    Menu entry that opens one bulk-action dialog.

    A disabled trigger is inert: activate() leaves the registry alone and the
    reason is exposed for the hover text instead.
    """

    def __init__(
        self,
        kind: BulkDialogKind,
        label: Optional[str] = None,
        disabled: Optional[TriggerDisabled] = None,
        on_click: Optional[Callable[[], None]] = None,
    ):
        self.kind = BulkDialogKind(kind)
        self.label = label or dialog_title(self.kind)
        self.disabled = disabled
        self.on_click = on_click

    @property
    def is_disabled(self) -> bool:
        return self.disabled is not None

    @property
    def reason(self) -> Optional[str]:
        return self.disabled.reason if self.disabled else None

    def activate(self, registry: DialogRegistry) -> bool:
        """Open the dialog. Returns False without side effects when disabled."""
        if self.is_disabled:
            return False
        registry.open(self.kind)
        if self.on_click:
            self.on_click()
        return True


# ---------------------------------------------------------
# Dialog content
# ---------------------------------------------------------
@dataclass(frozen=True)
class DialogContentProps:
    """What a render callback gets: lock state, a way to close, and the last error."""
    disabled: bool
    close_dialog: Callable[[], None]
    error: Optional[str] = None


@dataclass(frozen=True)
class StaticContent:
    value: Any
    tag: str = "static"


@dataclass(frozen=True)
class RenderContent:
    render: Callable[[DialogContentProps], Any]
    tag: str = "render"


DialogContent = Union[StaticContent, RenderContent]


def resolve_content(content: DialogContent, props: DialogContentProps) -> Any:
    if content.tag == "static":
        return content.value
    if content.tag == "render":
        return content.render(props)
    raise ValueError(f"Unknown dialog content tag: {content.tag}")
