import logging
import uuid
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Path, Query

from ...core.auth import verify_supabase_token
from ...schemas.metrics import TradeCostBreakdown
from ...schemas.trades import (
    AttachScreenshotBody,
    CreateTradeBody,
    CreateTradeResponse,
    PnlPreviewBody,
    TradeListResponse,
    UpdateTradeBody,
)
from ...services import db
from ...services import storage
from ...services.metrics import compute_trade_cost_and_pnl

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/trades", tags=["trades"])

# camelCase body field -> trades column
_BODY_TO_COLUMN = {
    "symbol": "symbol",
    "side": "side",
    "assetType": "asset_type",
    "entryPrice": "entry_price",
    "exitPrice": "exit_price",
    "stopLoss": "stop_loss",
    "standardLotSize": "standard_lot_size",
    "quantity": "quantity",
    "commission": "commission",
    "status": "status",
    "entryDate": "entry_date",
    "exitDate": "exit_date",
    "strategyId": "strategy_id",
    "tags": "tags",
    "notes": "notes",
}

# columns that feed the P&L formula
_PNL_INPUTS = {
    "side", "asset_type", "entry_price", "exit_price",
    "standard_lot_size", "quantity", "commission", "status",
}

# ----------------------------------------- HELPERS -----------------------------------------
def _ensure_aware(dt: Union[datetime, date]) -> datetime:
    if not isinstance(dt, datetime):
        # date-only input: midnight UTC
        return datetime(dt.year, dt.month, dt.day, tzinfo=timezone.utc)
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def _to_columns(fields: Dict[str, Any]) -> Dict[str, Any]:
    row: Dict[str, Any] = {}
    for key, value in fields.items():
        column = _BODY_TO_COLUMN[key]
        if column in ("entry_date", "exit_date") and value is not None:
            value = _ensure_aware(value).isoformat()
        elif column == "strategy_id" and value is not None:
            value = str(value)
        elif column == "tags" and value is not None:
            value = [str(t) for t in value] or None
        elif column == "side" and value is not None:
            value = value.value
        row[column] = value
    if "side" in row:
        # older clients read trade_type; keep both columns in step
        row["trade_type"] = row["side"]
    return row


def _apply_pnl(row: Dict[str, Any]) -> Dict[str, Any]:
    """
    Derive pnl from a complete trade row. Closed trades need an exit price
    and always get a pnl; open trades never carry pnl or an exit date.
    """
    if row.get("status") == "closed":
        if row.get("exit_price") is None:
            raise HTTPException(status_code=400, detail="exit_price_required_for_closed_trade")
        breakdown = compute_trade_cost_and_pnl(
            entry_price=row.get("entry_price"),
            exit_price=row.get("exit_price"),
            quantity=row.get("quantity"),
            lot_size=row.get("standard_lot_size"),
            asset_type=row.get("asset_type"),
            trade_type=row.get("side") or row.get("trade_type"),
            commission=row.get("commission"),
        )
        row["pnl"] = round(breakdown.net_pnl, 2)
        if not row.get("exit_date"):
            row["exit_date"] = datetime.now(timezone.utc).isoformat()
    else:
        row["pnl"] = None
        row["exit_date"] = None
    return row


def _check_labels(user_id: str, row: Dict[str, Any]) -> None:
    try:
        db.ensure_labels_belong_to_user(
            user_id,
            strategy_id=row.get("strategy_id"),
            tag_ids=row.get("tags"),
        )
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))


def _check_owned(trade_id: uuid.UUID, user_id: str) -> None:
    try:
        db.check_trade_belongs_to_user(trade_id, user_id)
    except LookupError:
        raise HTTPException(status_code=404, detail="trade_not_found")
    except PermissionError:
        raise HTTPException(status_code=403, detail="trade_not_owned")

# ----------------------------------------- GET -----------------------------------------
@router.get("/", response_model=TradeListResponse)
def list_trades(
    status: Optional[str] = Query(None, pattern="^(open|closed)$"),
    symbol: Optional[str] = Query(None),
    offset: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    user_id: str = Depends(verify_supabase_token),
):
    items = db.fetch_trades_for_user(
        user_id, status=status, symbol=symbol, offset=offset, limit=limit
    )
    next_offset = offset + limit if len(items) == limit else None
    return TradeListResponse(items=items, nextOffset=next_offset)


@router.get("/{trade_id}")
def get_trade(
    trade_id: uuid.UUID = Path(...),
    user_id: str = Depends(verify_supabase_token),
):
    trade = db.fetch_trade_with_labels(user_id=user_id, trade_id=trade_id)
    if not trade:
        raise HTTPException(status_code=404, detail="trade_not_found")
    return trade

# ----------------------------------------- POST -----------------------------------------
@router.post("/pnl-preview", response_model=TradeCostBreakdown)
def preview_pnl(
    body: PnlPreviewBody,
    user_id: str = Depends(verify_supabase_token),
):
    """
    Entry/exit totals and P&L as the add-trade form is filled in. Nothing is saved.
    """
    return compute_trade_cost_and_pnl(
        entry_price=body.entryPrice,
        exit_price=body.exitPrice,
        quantity=body.quantity,
        lot_size=body.standardLotSize,
        asset_type=body.assetType,
        trade_type=body.side,
        commission=body.commission,
    )


@router.post("/", response_model=CreateTradeResponse, status_code=201)
def create_trade(body: CreateTradeBody, user_id: str = Depends(verify_supabase_token)):
    fields = body.model_dump()
    if fields["entryDate"] is None:
        fields["entryDate"] = datetime.now(timezone.utc)

    row = _apply_pnl(_to_columns(fields))
    _check_labels(user_id, row)

    rec = db.insert_trade(user_id, row)
    logger.info("Trade %s created (%s, pnl=%s)", rec["id"], row["status"], row["pnl"])
    return CreateTradeResponse(tradeId=uuid.UUID(str(rec["id"])), pnl=rec.get("pnl"))

# ----------------------------------------- PUT -----------------------------------------
@router.put("/{trade_id}")
def update_trade(
    body: UpdateTradeBody,
    trade_id: uuid.UUID = Path(...),
    user_id: str = Depends(verify_supabase_token),
):
    """
    Partial update. P&L is recomputed from the merged row whenever any of
    its inputs change.
    """
    _check_owned(trade_id, user_id)
    existing = db.fetch_trade(user_id, trade_id)
    if not existing:
        raise HTTPException(status_code=404, detail="trade_not_found")

    changes = _to_columns(body.model_dump(exclude_unset=True))
    _check_labels(user_id, changes)

    if _PNL_INPUTS & changes.keys():
        merged = _apply_pnl({**existing, **changes})
        changes["pnl"] = merged["pnl"]
        changes["exit_date"] = merged["exit_date"]

    changes["updated_at"] = datetime.now(timezone.utc).isoformat()
    updated = db.update_trade(user_id, trade_id, changes)
    if not updated:
        raise HTTPException(status_code=404, detail="trade_not_found")
    return db.fetch_trade_with_labels(user_id=user_id, trade_id=trade_id)


@router.put("/{trade_id}/screenshot")
def attach_screenshot(
    body: AttachScreenshotBody,
    trade_id: uuid.UUID = Path(...),
    user_id: str = Depends(verify_supabase_token),
):
    """
    Record an uploaded screenshot on the trade, replacing (and deleting) any
    previous one.
    """
    _check_owned(trade_id, user_id)
    if not body.key.startswith(storage.screenshot_prefix(user_id, trade_id)):
        raise HTTPException(status_code=400, detail="invalid_key_prefix")
    if not storage.object_exists(body.key):
        raise HTTPException(status_code=400, detail="upload_not_found")

    existing = db.fetch_trade(user_id, trade_id) or {}
    previous = existing.get("screenshot_url")

    updated = db.update_trade(user_id, trade_id, {"screenshot_url": body.key})
    if not updated:
        raise HTTPException(status_code=404, detail="trade_not_found")

    if previous and previous != body.key:
        storage.delete_object(previous)
    return updated

# ----------------------------------------- DELETE -----------------------------------------
@router.delete("/{trade_id}", status_code=204)
def delete_trade(
    trade_id: uuid.UUID = Path(...),
    user_id: str = Depends(verify_supabase_token),
):
    """
    Delete a trade and its screenshot.
    """
    _check_owned(trade_id, user_id)
    trade = db.fetch_trade(user_id, trade_id)
    if not trade:
        raise HTTPException(status_code=404, detail="trade_not_found")

    try:
        db.delete_trade_record(user_id=user_id, trade_id=trade_id)
    except LookupError:
        raise HTTPException(status_code=404, detail="trade_not_found")

    if trade.get("screenshot_url"):
        storage.delete_object(trade["screenshot_url"])
    return
