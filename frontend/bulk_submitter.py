# frontend/bulk_submitter.py
# Sends one bulk action for the current selection and reconciles the selection afterwards

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, MutableMapping, Optional, Sequence, Tuple

from frontend.bulk_dialogs import BulkDialogKind, DialogRegistry
from frontend.config import IS_DEV
from frontend.selection import ListItem, SelectionStore, reconcile

DEFAULT_ARRAY_FIELD = "assetIds"
GENERIC_ERROR = "Something went wrong. Please try again."
CONNECTION_ERROR = "Could not reach the server. Please try again."

# (url, form pairs) -> decoded JSON payload
Transport = Callable[[str, List[Tuple[str, str]]], Any]


def default_action_url(kind: BulkDialogKind) -> str:
    return f"/api/assets/bulk-update-{BulkDialogKind(kind).value}"


@dataclass(frozen=True)
class BulkActionRequest:
    kind: BulkDialogKind
    item_ids: Tuple[str, ...]
    params: Dict[str, Any] = field(default_factory=dict)
    search_params: str = ""
    array_field_id: str = DEFAULT_ARRAY_FIELD

    def to_form(self) -> List[Tuple[str, str]]:
        """
        Ordered form fields: currentSearchParams, then `<array_field_id>[i]` per
        selected id, then action params. List params expand to `name[i]`,
        None values are left out.
        """
        form: List[Tuple[str, str]] = [("currentSearchParams", self.search_params or "")]
        form.extend((f"{self.array_field_id}[{i}]", item_id) for i, item_id in enumerate(self.item_ids))
        for name, value in self.params.items():
            if value is None:
                continue
            if isinstance(value, (list, tuple)):
                form.extend((f"{name}[{i}]", str(v)) for i, v in enumerate(value))
            else:
                form.append((name, str(value)))
        return form


@dataclass(frozen=True)
class BulkActionResult:
    success: bool
    error: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def failure(cls, message: Optional[str]) -> "BulkActionResult":
        return cls(success=False, error=message or GENERIC_ERROR)

    @classmethod
    def from_payload(cls, payload: Any) -> "BulkActionResult":
        """
        Interpret a bulk endpoint response. An error field wins over a success
        flag; anything without an explicit success is a failure.
        """
        if not isinstance(payload, dict):
            return cls.failure("Unexpected response from server")

        error = payload.get("error")
        if error is not None:
            if isinstance(error, dict):
                return cls.failure(error.get("message"))
            return cls.failure(str(error) or None)

        # FastAPI HTTPException shape (401/403/422 before the handler runs)
        detail = payload.get("detail")
        if detail and payload.get("success") is not True:
            return cls.failure(detail if isinstance(detail, str) else GENERIC_ERROR)

        if payload.get("success") is True:
            return cls(success=True, data={k: v for k, v in payload.items() if k != "success"})
        return cls.failure(None)


class SubmitterState(str, Enum):
    idle = "idle"
    open = "open"
    submitting = "submitting"
    reconciling = "reconciling"


class BulkActionSubmitter:
    """
    Drives one bulk-action dialog from confirmation to reconciled selection.

    idle -> open (trigger) -> submitting (confirm) -> open (failure, error shown)
                                                  -> reconciling -> idle (success)

    Progress and the last error are kept in session_state so they survive
    Streamlit reruns. Only one request per kind is in flight at a time.
    """

    def __init__(
        self,
        kind: BulkDialogKind,
        selection: SelectionStore,
        dialogs: DialogRegistry,
        transport: Transport,
        reload_items: Callable[[List[str]], Iterable[ListItem]],
        action_url: Optional[str] = None,
        array_field_id: str = DEFAULT_ARRAY_FIELD,
        on_success: Optional[Callable[[BulkActionResult], None]] = None,
        session_state: Optional[MutableMapping[str, Any]] = None,
    ):
        self.kind = BulkDialogKind(kind)
        self.selection = selection
        self.dialogs = dialogs
        self.transport = transport
        self.reload_items = reload_items
        self.action_url = action_url or default_action_url(self.kind)
        self.array_field_id = array_field_id
        self.on_success = on_success
        self._ss = session_state if session_state is not None else {}
        self._key = f"bulk_submitter_{self.kind.value}"

    def _progress(self) -> Dict[str, Any]:
        return self._ss.setdefault(self._key, {"phase": None, "error": None})

    @property
    def state(self) -> SubmitterState:
        phase = self._progress()["phase"]
        if phase:
            return SubmitterState(phase)
        return SubmitterState.open if self.dialogs.is_open(self.kind) else SubmitterState.idle

    @property
    def disabled(self) -> bool:
        """True while the request is in flight; locks the confirm button and fields."""
        return self.state is SubmitterState.submitting

    @property
    def error(self) -> Optional[str]:
        return self._progress()["error"]

    def open(self) -> None:
        self._progress()["error"] = None
        self.dialogs.open(self.kind)

    def cancel(self) -> None:
        """Close the dialog. A request already in flight completes but its result is ignored."""
        self._progress()["error"] = None
        self.dialogs.close(self.kind)

    def build_request(self, params: Optional[Dict[str, Any]] = None, search_params: str = "") -> BulkActionRequest:
        return BulkActionRequest(
            kind=self.kind,
            item_ids=tuple(self.selection.ids()),
            params=dict(params or {}),
            search_params=search_params,
            array_field_id=self.array_field_id,
        )

    def _send(self, request: BulkActionRequest) -> BulkActionResult:
        try:
            payload = self.transport(self.action_url, request.to_form())
        except ConnectionError as e:
            return BulkActionResult.failure(str(e) or CONNECTION_ERROR)
        except Exception as e:
            if IS_DEV:
                print(f"[BULK] {self.kind.value} transport error: {type(e).__name__}: {e}")
            return BulkActionResult.failure(GENERIC_ERROR)
        return BulkActionResult.from_payload(payload)

    def _reconcile_selection(self) -> None:
        if self.kind.removes_from_working_set:
            self.selection.clear()
            return
        selected = self.selection.items()
        try:
            fresh = list(self.reload_items([item.id for item in selected]))
        except Exception as e:
            # Keep the current snapshots; the next list fetch refreshes them
            print(f"[BULK] {self.kind.value} reload failed: {type(e).__name__}: {e}")
            return
        self.selection.set_all(reconcile(selected, fresh))

    def submit(self, params: Optional[Dict[str, Any]] = None, search_params: str = "") -> Optional[BulkActionResult]:
        """
        Send the action for the current selection.

        Returns None (and sends nothing) when the dialog is closed or a request
        for this kind is already in flight. Network and server failures come
        back as a failed result with the error kept for the open dialog.
        """
        progress = self._progress()
        if progress["phase"] or not self.dialogs.is_open(self.kind):
            if IS_DEV:
                print(f"[BULK] {self.kind.value} submit ignored (state={self.state.value})")
            return None

        request = self.build_request(params, search_params)
        progress["phase"] = SubmitterState.submitting.value
        progress["error"] = None
        try:
            result = self._send(request)

            if not self.dialogs.is_open(self.kind):
                if IS_DEV:
                    print(f"[BULK] {self.kind.value} finished after dialog closed; result ignored")
                return result

            if not result.success:
                progress["error"] = result.error
                return result

            progress["phase"] = SubmitterState.reconciling.value
            self._reconcile_selection()
            self.dialogs.close(self.kind)
            if self.on_success:
                self.on_success(result)
            if IS_DEV:
                print(f"[BULK] {self.kind.value} ok: {result.data.get('affected')} affected")
            return result
        finally:
            progress["phase"] = None


def http_transport(request_fn: Callable[..., Any]) -> Transport:
    """
    Adapt api_client.api_request into a Transport. Error responses still carry
    a JSON body, so the status code is left to BulkActionResult.from_payload.
    """

    def send(url: str, form: Sequence[Tuple[str, str]]) -> Any:
        resp = request_fn("POST", url, data=list(form), show_errors=False)
        if resp is None:
            raise ConnectionError(CONNECTION_ERROR)
        return resp.json()

    return send
