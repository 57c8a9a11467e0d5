"""
Tests for POST /api/assets/bulk-update-<kind>.

Run: pytest backend/test_bulk_routes.py -v
"""

import pytest
from unittest.mock import patch
from starlette.datastructures import FormData

from backend import routes_bulk
from backend.routes_bulk import array_field_values, redirect_target


def _create(client, headers, count, **extra):
    return [
        client.post("/api/assets", json={"title": f"Asset {i}", **extra}, headers=headers).json()["id"]
        for i in range(count)
    ]


def _create_resource(client, headers, segment, name):
    return client.post(f"/api/{segment}", json={"name": name}, headers=headers).json()["id"]


def _form(item_ids, search="", **params):
    data = {"currentSearchParams": search}
    for i, item_id in enumerate(item_ids):
        data[f"assetIds[{i}]"] = item_id
    for key, value in params.items():
        if isinstance(value, list):
            for i, v in enumerate(value):
                data[f"{key}[{i}]"] = v
        else:
            data[key] = value
    return data


def _bulk(client, headers, kind, data):
    return client.post(f"/api/assets/bulk-update-{kind}", data=data, headers=headers)


def _get(client, headers, item_id):
    return client.get(f"/api/assets/{item_id}", headers=headers).json()


class TestFormParsing:

    def test_array_field_values_orders_by_index(self):
        form = FormData([("assetIds[2]", "c"), ("assetIds[0]", "a"), ("assetIds[1]", "b"), ("other", "x")])
        assert array_field_values(form, "assetIds") == ["a", "b", "c"]

    def test_array_field_values_accepts_repeated_plain_keys(self):
        form = FormData([("tagIds", "t1"), ("tagIds", "t2"), ("tagIds", " ")])
        assert array_field_values(form, "tagIds") == ["t1", "t2"]

    def test_redirect_target_echoes_search_params(self):
        assert redirect_target("") == "/assets"
        assert redirect_target("?page=2&s=drill") == "/assets?page=2&s=drill"


class TestBulkActions:

    def test_location(self, client, user):
        _, headers = user
        ids = _create(client, headers, 3)
        location_id = _create_resource(client, headers, "locations", "Warehouse")

        resp = _bulk(client, headers, "location", _form(ids[:2], search="page=2", newLocationId=location_id))
        assert resp.status_code == 200, resp.text
        assert resp.json() == {"success": True, "affected": 2, "redirectTo": "/assets?page=2"}

        assert _get(client, headers, ids[0])["location"]["name"] == "Warehouse"
        assert _get(client, headers, ids[2])["location"] is None

    def test_missing_parameter_is_error_payload(self, client, user):
        _, headers = user
        ids = _create(client, headers, 1)

        resp = _bulk(client, headers, "category", _form(ids))
        assert resp.status_code == 400
        assert resp.json() == {"error": {"message": "Please select a category"}}
        assert "success" not in resp.json()

    def test_empty_selection_is_error(self, client, user):
        _, headers = user
        resp = _bulk(client, headers, "trash", _form([]))
        assert resp.status_code == 400
        assert "select at least one" in resp.json()["error"]["message"]

    def test_unknown_kind_is_404_error_payload(self, client, user):
        _, headers = user
        resp = _bulk(client, headers, "explode", _form(["x"]))
        assert resp.status_code == 404
        assert resp.json()["error"]["message"] == "Unknown bulk action: explode"

    def test_trash_deletes_only_owned_items(self, client, make_user):
        _, owner_headers = make_user()
        _, other_headers = make_user()
        mine = _create(client, owner_headers, 2)
        theirs = _create(client, other_headers, 1)

        resp = _bulk(client, owner_headers, "trash", _form(mine + theirs))
        assert resp.json()["affected"] == 2

        assert client.get("/api/assets", headers=owner_headers).json()["total"] == 0
        assert client.get(f"/api/assets/{theirs[0]}", headers=other_headers).status_code == 200

    def test_foreign_location_rejected(self, client, make_user):
        _, owner_headers = make_user()
        _, other_headers = make_user()
        ids = _create(client, owner_headers, 1)
        foreign_location = _create_resource(client, other_headers, "locations", "Not yours")

        resp = _bulk(client, owner_headers, "location", _form(ids, newLocationId=foreign_location))
        assert resp.status_code == 400
        assert resp.json()["error"]["message"] == "Location not found"

    @pytest.mark.parametrize("kind,state", [
        ("deactivate", "inactive"),
        ("archive", "archived"),
        ("cancel", "cancelled"),
    ])
    def test_lifecycle_states(self, client, user, kind, state):
        _, headers = user
        ids = _create(client, headers, 2)

        assert _bulk(client, headers, kind, _form(ids)).json()["success"] is True
        assert _get(client, headers, ids[0])["state"] == state

        assert _bulk(client, headers, "activate", _form(ids)).json()["affected"] == 2
        assert _get(client, headers, ids[1])["state"] == "active"

    def test_archived_items_leave_default_list(self, client, user):
        _, headers = user
        ids = _create(client, headers, 3)

        _bulk(client, headers, "archive", _form(ids[:1]))
        listed = [i["id"] for i in client.get("/api/assets", headers=headers).json()["items"]]
        assert ids[0] not in listed
        assert len(listed) == 2

    def test_custody_assign_and_release(self, client, user):
        _, headers = user
        ids = _create(client, headers, 2)
        member_id = _create_resource(client, headers, "team-members", "Dana")

        resp = _bulk(client, headers, "assign-custody", _form(ids, custodianId=member_id))
        assert resp.json()["affected"] == 2
        item = _get(client, headers, ids[0])
        assert item["status"] == "in_custody"
        assert item["custodian"]["name"] == "Dana"

        again = _bulk(client, headers, "assign-custody", _form(ids[:1], custodianId=member_id))
        assert again.status_code == 400
        assert "unavailable assets" in again.json()["error"]["message"]

        assert _bulk(client, headers, "release-custody", _form(ids)).json()["affected"] == 2
        item = _get(client, headers, ids[0])
        assert item["status"] == "available"
        assert item["custodian"] is None

    def test_release_requires_items_in_custody(self, client, user):
        _, headers = user
        ids = _create(client, headers, 1)
        resp = _bulk(client, headers, "release-custody", _form(ids))
        assert resp.status_code == 400
        assert resp.json()["error"]["message"] == "Some of the selected assets are not in custody."

    def test_failed_action_writes_nothing(self, client, user):
        _, headers = user
        ids = _create(client, headers, 2)
        member_id = _create_resource(client, headers, "team-members", "Lee")

        _bulk(client, headers, "assign-custody", _form(ids[:1], custodianId=member_id))
        resp = _bulk(client, headers, "assign-custody", _form(ids, custodianId=member_id))
        assert resp.status_code == 400
        assert _get(client, headers, ids[1])["status"] == "available"

    def test_tags_add_and_remove(self, client, user):
        _, headers = user
        ids = _create(client, headers, 2)
        fragile = _create_resource(client, headers, "tags", "fragile")
        heavy = _create_resource(client, headers, "tags", "heavy")

        resp = _bulk(client, headers, "tag-add", _form(ids, tagIds=[fragile, heavy]))
        assert resp.json()["affected"] == 2
        assert [t["name"] for t in _get(client, headers, ids[0])["tags"]] == ["fragile", "heavy"]

        # Adding an existing tag again is harmless
        assert _bulk(client, headers, "tag-add", _form(ids, tagIds=[fragile])).status_code == 200

        _bulk(client, headers, "tag-remove", _form(ids[:1], tagIds=[fragile]))
        assert [t["name"] for t in _get(client, headers, ids[0])["tags"]] == ["heavy"]
        assert [t["name"] for t in _get(client, headers, ids[1])["tags"]] == ["fragile", "heavy"]

    def test_unknown_tag_rejected(self, client, user):
        _, headers = user
        ids = _create(client, headers, 1)
        resp = _bulk(client, headers, "tag-add", _form(ids, tagIds=["nope"]))
        assert resp.status_code == 400
        assert resp.json()["error"]["message"] == "Some of the selected tags do not exist"

    def test_category(self, client, user):
        _, headers = user
        ids = _create(client, headers, 2)
        category_id = _create_resource(client, headers, "categories", "Electronics")

        assert _bulk(client, headers, "category", _form(ids, categoryId=category_id)).json()["affected"] == 2
        listed = client.get("/api/assets", params={"category": category_id}, headers=headers).json()
        assert listed["total"] == 2


def test_database_work_runs_in_threadpool(client, user):
    _, headers = user
    ids = _create(client, headers, 2)
    calls = []

    async def recording_threadpool(func, *args):
        calls.append(func)
        return func(*args)

    with patch.object(routes_bulk, "run_in_threadpool", recording_threadpool):
        resp = _bulk(client, headers, "archive", _form(ids))

    assert resp.json()["affected"] == 2
    assert calls == [routes_bulk.run_bulk_action]
