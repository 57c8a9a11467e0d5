# frontend/test_bulk_submitter.py
# Unit tests for the bulk action submitter, using a fake transport

from unittest.mock import MagicMock

import pytest
import requests

from frontend.bulk_dialogs import BulkDialogKind, DialogRegistry
from frontend.bulk_submitter import (
    CONNECTION_ERROR,
    GENERIC_ERROR,
    BulkActionRequest,
    BulkActionResult,
    BulkActionSubmitter,
    SubmitterState,
    http_transport,
)
from frontend.selection import ListItem, SelectionStore


class FakeTransport:
    """Records calls and replies with queued payloads (or raises queued exceptions)."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls = []
        self.during_call = None

    def __call__(self, url, form):
        self.calls.append((url, form))
        if self.during_call:
            self.during_call()
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply


def _item(identifier, **fields):
    return ListItem(id=identifier, title=f"Item {identifier}", **fields)


@pytest.fixture
def ss():
    return {}


def _submitter(ss, kind, transport, reload_items=None, **kwargs):
    selection = SelectionStore(ss)
    dialogs = DialogRegistry(ss)
    submitter = BulkActionSubmitter(
        kind,
        selection,
        dialogs,
        transport,
        reload_items or (lambda ids: []),
        session_state=ss,
        **kwargs,
    )
    return submitter, selection, dialogs


class TestRequestAndResult:

    def test_to_form_order_and_array_fields(self):
        request = BulkActionRequest(
            kind=BulkDialogKind.tag_add,
            item_ids=("a", "b"),
            params={"tagIds": ["t1", "t2"], "note": None, "newLocationId": "loc"},
            search_params="page=2",
        )
        assert request.to_form() == [
            ("currentSearchParams", "page=2"),
            ("assetIds[0]", "a"),
            ("assetIds[1]", "b"),
            ("tagIds[0]", "t1"),
            ("tagIds[1]", "t2"),
            ("newLocationId", "loc"),
        ]

    def test_custom_array_field(self):
        request = BulkActionRequest(BulkDialogKind.trash, ("k1",), array_field_id="kitIds")
        assert ("kitIds[0]", "k1") in request.to_form()

    @pytest.mark.parametrize("payload,success,error", [
        ({"success": True, "affected": 2}, True, None),
        ({"error": {"message": "Nope"}}, False, "Nope"),
        ({"success": True, "error": {"message": "Partial"}}, False, "Partial"),
        ({"error": "plain text"}, False, "plain text"),
        ({"error": {}, "success": True}, False, GENERIC_ERROR),
        ({"error": "", "success": True}, False, GENERIC_ERROR),
        ({"detail": "Not authenticated"}, False, "Not authenticated"),
        ({"detail": [{"msg": "field required"}]}, False, GENERIC_ERROR),
        ({}, False, GENERIC_ERROR),
        ({"success": False}, False, GENERIC_ERROR),
        ("<html>", False, "Unexpected response from server"),
    ])
    def test_from_payload(self, payload, success, error):
        result = BulkActionResult.from_payload(payload)
        assert result.success is success
        assert result.error == error

    def test_success_data_excludes_flag(self):
        result = BulkActionResult.from_payload({"success": True, "affected": 3, "redirectTo": "/assets"})
        assert result.data == {"affected": 3, "redirectTo": "/assets"}


class TestStateMachine:

    def test_default_action_url(self, ss):
        submitter, _, _ = _submitter(ss, BulkDialogKind.release_custody, FakeTransport())
        assert submitter.action_url == "/api/assets/bulk-update-release-custody"

    def test_action_url_override(self, ss):
        submitter, _, _ = _submitter(ss, "trash", FakeTransport(), action_url="/api/kits/bulk-delete")
        assert submitter.action_url == "/api/kits/bulk-delete"

    def test_open_and_cancel(self, ss):
        submitter, _, dialogs = _submitter(ss, BulkDialogKind.location, FakeTransport())
        assert submitter.state is SubmitterState.idle

        submitter.open()
        assert submitter.state is SubmitterState.open
        assert dialogs.is_open(BulkDialogKind.location)

        submitter.cancel()
        assert submitter.state is SubmitterState.idle

    def test_submit_when_closed_sends_nothing(self, ss):
        transport = FakeTransport()
        submitter, _, _ = _submitter(ss, BulkDialogKind.location, transport)
        assert submitter.submit({"newLocationId": "l1"}) is None
        assert transport.calls == []

    def test_disabled_only_while_submitting(self, ss):
        seen = []
        transport = FakeTransport({"success": True})
        submitter, selection, _ = _submitter(ss, BulkDialogKind.activate, transport)
        transport.during_call = lambda: seen.append((submitter.state, submitter.disabled))
        selection.add(_item("a"))

        submitter.open()
        assert submitter.disabled is False
        submitter.submit()

        assert seen == [(SubmitterState.submitting, True)]
        assert submitter.disabled is False

    def test_resubmit_while_in_flight_is_rejected(self, ss):
        transport = FakeTransport({"success": True})
        submitter, selection, _ = _submitter(ss, BulkDialogKind.activate, transport)
        selection.add(_item("a"))
        nested = []
        transport.during_call = lambda: nested.append(submitter.submit())

        submitter.open()
        result = submitter.submit()

        assert result.success
        assert nested == [None]
        assert len(transport.calls) == 1

    def test_other_kinds_can_submit_concurrently(self, ss):
        outer_transport = FakeTransport({"success": True})
        inner_transport = FakeTransport({"success": True})
        outer, selection, _ = _submitter(ss, BulkDialogKind.activate, outer_transport)
        inner, _, _ = _submitter(ss, BulkDialogKind.deactivate, inner_transport)
        selection.add(_item("a"))
        outer.open()
        inner.open()
        outer_transport.during_call = lambda: inner.submit()

        outer.submit()
        assert len(inner_transport.calls) == 1


class TestOutcomes:

    def test_trash_success_clears_selection_and_closes(self, ss):
        transport = FakeTransport({"success": True, "affected": 3, "redirectTo": "/assets?page=2"})
        reload_items = MagicMock()
        done = []
        submitter, selection, dialogs = _submitter(
            ss, BulkDialogKind.trash, transport, reload_items=reload_items, on_success=done.append,
        )
        selection.set_all([_item("a"), _item("b"), _item("c")])

        submitter.open()
        result = submitter.submit(search_params="page=2")

        assert result.success
        assert selection.count() == 0
        assert not dialogs.is_open(BulkDialogKind.trash)
        assert submitter.state is SubmitterState.idle
        assert done == [result]
        reload_items.assert_not_called()

        url, form = transport.calls[0]
        assert url == "/api/assets/bulk-update-trash"
        assert form[:4] == [
            ("currentSearchParams", "page=2"),
            ("assetIds[0]", "a"),
            ("assetIds[1]", "b"),
            ("assetIds[2]", "c"),
        ]

    def test_location_success_reconciles_with_authoritative_set(self, ss):
        transport = FakeTransport({"success": True, "affected": 3})
        requested = []

        def reload_items(ids):
            requested.append(list(ids))
            return [_item("a", location="Warehouse"), _item("c", location="Warehouse")]

        submitter, selection, _ = _submitter(ss, BulkDialogKind.location, transport, reload_items=reload_items)
        selection.set_all([_item("a"), _item("b"), _item("c")])

        submitter.open()
        submitter.submit({"newLocationId": "loc1"})

        assert requested == [["a", "b", "c"]]
        assert selection.ids() == ["a", "c"]
        assert selection.items()[0].location == "Warehouse"
        assert ("newLocationId", "loc1") in transport.calls[0][1]

    def test_error_keeps_dialog_open_and_selection(self, ss):
        transport = FakeTransport({"error": {"message": "Please select a location"}}, {"success": True})
        done = []
        submitter, selection, dialogs = _submitter(
            ss, BulkDialogKind.location, transport, reload_items=lambda ids: [_item("a")], on_success=done.append,
        )
        selection.add(_item("a"))

        submitter.open()
        result = submitter.submit({})

        assert not result.success
        assert submitter.error == "Please select a location"
        assert submitter.state is SubmitterState.open
        assert dialogs.is_open(BulkDialogKind.location)
        assert selection.ids() == ["a"]
        assert done == []

        assert submitter.submit({"newLocationId": "l1"}).success
        assert submitter.error is None

    def test_error_with_success_flag_is_failure(self, ss):
        transport = FakeTransport({"success": True, "error": {"message": "Partial failure"}})
        submitter, selection, dialogs = _submitter(ss, BulkDialogKind.trash, transport)
        selection.add(_item("a"))

        submitter.open()
        submitter.submit()

        assert submitter.error == "Partial failure"
        assert selection.count() == 1
        assert dialogs.is_open(BulkDialogKind.trash)

    @pytest.mark.parametrize("failure,message", [
        (ConnectionError(CONNECTION_ERROR), CONNECTION_ERROR),
        (requests.exceptions.Timeout("slow"), GENERIC_ERROR),
        (ValueError("Expecting value"), GENERIC_ERROR),
        (RuntimeError("boom"), GENERIC_ERROR),
    ])
    def test_transport_failures_become_in_dialog_errors(self, ss, failure, message):
        submitter, selection, _ = _submitter(ss, BulkDialogKind.archive, FakeTransport(failure))
        selection.add(_item("a"))

        submitter.open()
        result = submitter.submit()

        assert result == BulkActionResult(success=False, error=message)
        assert submitter.error == message
        assert submitter.state is SubmitterState.open

    def test_reopen_clears_stale_error(self, ss):
        submitter, selection, _ = _submitter(ss, BulkDialogKind.archive, FakeTransport({"error": "x"}))
        selection.add(_item("a"))
        submitter.open()
        submitter.submit()
        submitter.cancel()
        submitter.open()
        assert submitter.error is None

    def test_dialog_closed_while_in_flight_ignores_result(self, ss):
        transport = FakeTransport({"success": True})
        done = []
        submitter, selection, dialogs = _submitter(ss, BulkDialogKind.trash, transport, on_success=done.append)
        selection.set_all([_item("a"), _item("b")])
        transport.during_call = submitter.cancel

        submitter.open()
        result = submitter.submit()

        assert result.success
        assert selection.count() == 2
        assert done == []
        assert submitter.state is SubmitterState.idle

    def test_failed_result_after_close_sets_no_error(self, ss):
        transport = FakeTransport({"error": {"message": "late"}})
        submitter, selection, _ = _submitter(ss, BulkDialogKind.location, transport)
        selection.add(_item("a"))
        transport.during_call = submitter.cancel

        submitter.open()
        assert submitter.submit().error == "late"
        assert submitter.error is None

    def test_reload_failure_keeps_selection(self, ss):
        def reload_items(ids):
            raise ConnectionError("down")

        submitter, selection, dialogs = _submitter(
            ss, BulkDialogKind.category, FakeTransport({"success": True}), reload_items=reload_items,
        )
        selection.set_all([_item("a"), _item("b")])

        submitter.open()
        assert submitter.submit({"categoryId": "c1"}).success
        assert selection.ids() == ["a", "b"]
        assert not dialogs.is_open(BulkDialogKind.category)


class TestHttpTransport:

    def test_posts_form_without_ui_errors(self):
        resp = MagicMock()
        resp.json.return_value = {"success": True}
        request_fn = MagicMock(return_value=resp)

        send = http_transport(request_fn)
        assert send("/api/assets/bulk-update-trash", [("assetIds[0]", "a")]) == {"success": True}
        request_fn.assert_called_once_with(
            "POST", "/api/assets/bulk-update-trash", data=[("assetIds[0]", "a")], show_errors=False,
        )

    def test_no_response_raises_connection_error(self):
        send = http_transport(MagicMock(return_value=None))
        with pytest.raises(ConnectionError):
            send("/x", [])
