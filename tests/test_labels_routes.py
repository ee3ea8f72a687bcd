import uuid

import pytest

from tradalyse.schemas.labels import LABEL_COLORS
from tradalyse.services import db

EARNINGS_ID = str(uuid.uuid4())


@pytest.fixture
def label_store(monkeypatch):
    """In-memory tags/strategies tables for a single user."""
    tables = {
        "tags": [{"id": EARNINGS_ID, "name": "Earnings", "color": "#3B82F6"}],
        "strategies": [],
    }

    def list_labels(table, user_id):
        return list(tables[table])

    def create_label(table, user_id, data):
        row = {"id": str(uuid.uuid4()), **data}
        tables[table].append(row)
        return row

    def update_label(table, user_id, label_id, data):
        for row in tables[table]:
            if row["id"] == str(label_id):
                row.update(data)
                return row
        raise LookupError(f"{table}_not_found")

    def delete_label(table, user_id, label_id):
        before = len(tables[table])
        tables[table] = [r for r in tables[table] if r["id"] != str(label_id)]
        if len(tables[table]) == before:
            raise LookupError(f"{table}_not_found")

    monkeypatch.setattr(db, "list_labels", list_labels)
    monkeypatch.setattr(db, "create_label", create_label)
    monkeypatch.setattr(db, "update_label", update_label)
    monkeypatch.setattr(db, "delete_label", delete_label)
    return tables


def test_create_tag_gets_palette_color(client, label_store):
    res = client.post("/tags/", json={"name": "  Gap Up "})
    assert res.status_code == 201
    body = res.json()
    assert body["name"] == "Gap Up"
    assert body["color"] in LABEL_COLORS


def test_duplicate_tag_names_ignore_case(client, label_store):
    res = client.post("/tags/", json={"name": "earnings"})
    assert res.status_code == 409
    assert res.json()["detail"] == "duplicate_tag_name"


def test_blank_tag_name_is_invalid(client, label_store):
    assert client.post("/tags/", json={"name": "   "}).status_code == 422


def test_rename_tag_to_its_own_name(client, label_store):
    res = client.put(f"/tags/{EARNINGS_ID}", json={"name": "EARNINGS"})
    assert res.status_code == 200
    assert res.json()["name"] == "EARNINGS"


def test_delete_missing_tag(client, label_store):
    res = client.delete(f"/tags/{uuid.uuid4()}")
    assert res.status_code == 404
    assert res.json()["detail"] == "tag_not_found"


def test_strategy_lifecycle(client, label_store):
    created = client.post("/strategies/", json={"name": "Breakout", "description": "  "}).json()
    assert created["description"] is None

    assert client.post("/strategies/", json={"name": "BREAKOUT"}).status_code == 409

    updated = client.put(
        f"/strategies/{created['id']}",
        json={"name": "Breakout", "description": "Range break on volume"},
    ).json()
    assert updated["description"] == "Range break on volume"

    listed = client.get("/strategies/").json()
    assert [s["name"] for s in listed] == ["Breakout"]

    assert client.delete(f"/strategies/{created['id']}").status_code == 204
    assert client.get("/strategies/").json() == []
