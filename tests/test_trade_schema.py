import pytest
from pydantic import ValidationError

from tradalyse.schemas.trades import CreateTradeBody, Side, TradeRecord, normalize_side

from conftest import make_trade


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("long", Side.LONG),
        ("Long", Side.LONG),
        ("BUY", Side.LONG),
        (" short ", Side.SHORT),
        ("Sell", Side.SHORT),
        ("sideways", None),
        ("", None),
        (None, None),
    ],
)
def test_normalize_side(raw, expected):
    assert normalize_side(raw) is expected


def test_record_falls_back_to_trade_type():
    rec = TradeRecord.model_validate(make_trade(10, side=None, trade_type="Short"))
    assert rec.side is Side.SHORT
    assert not rec.is_long


def test_record_tolerates_messy_rows():
    rec = TradeRecord.model_validate(
        {"id": 42, "status": "CLOSED", "pnl": "12.5", "commission": None, "unknown": 1}
    )
    assert rec.id == "42"
    assert rec.is_closed
    assert rec.pnl == 12.5
    assert rec.commission == 0.0


def test_closed_without_pnl_is_not_closed():
    rec = TradeRecord.model_validate(make_trade(None, status="closed"))
    assert not rec.is_closed


def test_create_body_normalizes_input():
    body = CreateTradeBody(symbol=" tsla ", side="Buy", entryPrice=10, quantity=1, status="Closed", exitPrice=11)
    assert body.symbol == "TSLA"
    assert body.side is Side.LONG
    assert body.status == "closed"


@pytest.mark.parametrize(
    "overrides",
    [
        {"entryPrice": 0},
        {"quantity": -1},
        {"side": "flat"},
        {"assetType": "Stamp"},
        {"symbol": "   "},
        {"commission": -1},
    ],
)
def test_create_body_rejects_bad_values(overrides):
    fields = {"symbol": "AAPL", "side": "long", "entryPrice": 10, "quantity": 1}
    fields.update(overrides)
    with pytest.raises(ValidationError):
        CreateTradeBody(**fields)
