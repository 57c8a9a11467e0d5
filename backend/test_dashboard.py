"""
Tests for dashboard aggregates.

Run: pytest backend/test_dashboard.py -v
"""

from datetime import date

from backend.modules import catalog, dashboard
from backend.modules import items as item_service


def test_month_keys_cross_year_boundary():
    keys = dashboard._month_keys(date(2026, 2, 14), months=4)
    assert keys == ["2025-11", "2025-12", "2026-01", "2026-02"]


def test_items_created_each_month_fills_gaps(conn, user):
    user_id, _ = user
    for created in ("2026-03-05T10:00:00+00:00", "2026-03-20T10:00:00+00:00", "2025-12-01T00:00:00+00:00",
                    "2024-01-01T00:00:00+00:00"):
        item = item_service.create_item(conn, user_id, title="x")
        conn.execute("UPDATE items SET created_at = ? WHERE id = ?", (created, item["id"]))
    conn.commit()

    months = dashboard.items_created_each_month(conn, user_id, today=date(2026, 3, 31))
    assert len(months) == 12
    assert months[-1] == {"month": "2026-03", "count": 2}
    assert {"month": "2025-12", "count": 1} in months
    assert sum(m["count"] for m in months) == 3


def test_custodians_ordered_by_custody_count(conn, user):
    user_id, _ = user
    ana = catalog.create_resource(conn, user_id, "team_members", "Ana")
    bo = catalog.create_resource(conn, user_id, "team_members", "Bo")
    ids = [item_service.create_item(conn, user_id, title=f"Item {i}")["id"] for i in range(3)]
    conn.executemany(
        "INSERT INTO custody (id, item_id, team_member_id, created_at) VALUES (?, ?, ?, '2026-01-01')",
        [("c1", ids[0], ana["id"]), ("c2", ids[1], bo["id"]), ("c3", ids[2], bo["id"])],
    )
    conn.commit()

    result = dashboard.custodians(conn, user_id)
    assert [(c["name"], c["count"]) for c in result] == [("Bo", 2), ("Ana", 1)]


def test_dashboard_route_is_user_scoped(client, make_user):
    _, owner_headers = make_user()
    _, other_headers = make_user()
    for i in range(7):
        client.post("/api/assets", json={"title": f"Asset {i}"}, headers=owner_headers)

    body = client.get("/api/dashboard", headers=owner_headers).json()
    assert body["total_items"] == 7
    assert len(body["new_items"]) == 5
    assert body["new_items"][0]["title"] == "Asset 6"
    assert body["items_created_each_month"][-1]["count"] == 7

    assert client.get("/api/dashboard", headers=other_headers).json()["total_items"] == 0
