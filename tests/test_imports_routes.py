import pytest

from tradalyse.core.errors import BrokerImportError
from tradalyse.services import broker_import, db

TOKEN = "abcDEF1234567890ghij12"
QUERY = "1234567"


@pytest.fixture
def user_settings(monkeypatch):
    store = {}
    monkeypatch.setattr(db, "get_user_settings", lambda user_id: store.get(user_id))

    def upsert(user_id, data):
        store[user_id] = {**data, "user_id": user_id}
        return store[user_id]

    monkeypatch.setattr(db, "upsert_user_settings", upsert)
    return store


def test_settings_round_trip_hides_token(client, user_settings):
    assert client.get("/imports/ib/settings").json()["configured"] is False

    res = client.put("/imports/ib/settings", json={"flexToken": TOKEN, "flexQueryId": QUERY})
    assert res.status_code == 200

    body = client.get("/imports/ib/settings").json()
    assert body == {"configured": True, "flexQueryId": QUERY, "flexTokenHint": "abcD..."}


def test_settings_reject_malformed_token(client, user_settings):
    res = client.put("/imports/ib/settings", json={"flexToken": "short", "flexQueryId": QUERY})
    assert res.status_code == 400
    assert "Flex Token" in res.json()["detail"]
    assert user_settings == {}


def test_import_without_settings(client, user_settings):
    res = client.post("/imports/ib")
    assert res.status_code == 400
    assert res.json()["detail"] == "ib_settings_missing"


def test_import_preview(client, user_settings, monkeypatch):
    client.put("/imports/ib/settings", json={"flexToken": TOKEN, "flexQueryId": QUERY})
    new_row = {"symbol": "AMD", "entry_date": "2025-02-04T15:00:00Z", "entry_price": 170, "quantity": 5}
    monkeypatch.setattr(broker_import, "preview_import", lambda user_id, token, query_id: ([new_row], 3))

    body = client.post("/imports/ib").json()

    assert body["newCount"] == 1
    assert body["duplicateCount"] == 3
    assert body["trades"] == [new_row]


def test_import_failure_is_bad_gateway(client, user_settings, monkeypatch):
    client.put("/imports/ib/settings", json={"flexToken": TOKEN, "flexQueryId": QUERY})

    def failing(*a, **kw):
        raise BrokerImportError("Statement generation in progress")

    monkeypatch.setattr(broker_import, "preview_import", failing)
    res = client.post("/imports/ib")
    assert res.status_code == 502
    assert res.json()["detail"] == "ib_import_failed"


def test_commit_cleans_and_dedupes(client, monkeypatch):
    inserted = []
    monkeypatch.setattr(
        db,
        "fetch_existing_trade_keys",
        lambda user_id, symbols, dates: [
            {"symbol": "NVDA", "entry_date": "2025-02-03T15:00:00+00:00", "entry_price": 700, "quantity": 1}
        ],
    )

    def fake_insert(user_id, rows):
        inserted.extend(rows)
        return len(rows)

    monkeypatch.setattr(db, "insert_trades", fake_insert)

    res = client.post(
        "/imports/ib/commit",
        json={
            "trades": [
                {"symbol": "nvda", "side": "BUY", "entry_date": "2025-02-03T15:00:00Z", "entry_price": 700, "quantity": 1},
                {
                    "symbol": "amd",
                    "side": "SELL",
                    "entry_date": "2025-02-04T15:00:00Z",
                    "entry_price": 170,
                    "quantity": 5,
                    "pnl": 42.5,
                    "user_id": "someone-else",
                },
                {"symbol": "TSLA", "trade_type": "Long", "entry_date": "2025-02-05", "entry_price": 200,
                 "quantity": 1, "exit_date": "2025-02-06"},
            ]
        },
    )

    assert res.status_code == 200
    assert res.json() == {"insertedCount": 2}
    amd, tsla = inserted
    assert amd["symbol"] == "AMD"
    assert amd["side"] == "short"
    assert amd["status"] == "closed"
    assert "user_id" not in amd
    assert tsla["side"] == "long"
    assert tsla["status"] == "open"
    assert "exit_date" not in tsla


def test_commit_rejects_incomplete_rows(client, monkeypatch):
    monkeypatch.setattr(db, "insert_trades", lambda user_id, rows: pytest.fail("should not insert"))
    res = client.post("/imports/ib/commit", json={"trades": [{"symbol": "AAPL", "side": "long"}]})
    assert res.status_code == 400
    assert res.json()["detail"].startswith("row 0:")
