import logging
from typing import Any, Dict, List
from fastapi import APIRouter, Depends, HTTPException

from ...core.auth import verify_supabase_token
from ...core.errors import BrokerImportError
from ...schemas.imports import (
    IbImportCommitBody,
    IbImportCommitResult,
    IbImportPreview,
    IbSettingsBody,
    IbSettingsOut,
)
from ...schemas.trades import normalize_side
from ...services import broker_import, db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/imports", tags=["imports"])

# columns an imported row may set; anything else from the client is dropped
_IMPORT_COLUMNS = (
    "symbol", "side", "asset_type", "entry_price", "exit_price", "stop_loss",
    "standard_lot_size", "quantity", "commission", "pnl", "status",
    "entry_date", "exit_date", "notes",
)


def _clean_import_row(raw: Dict[str, Any]) -> Dict[str, Any]:
    row = {k: raw.get(k) for k in _IMPORT_COLUMNS if raw.get(k) is not None}
    if not row.get("symbol") or row.get("entry_price") is None or not row.get("entry_date"):
        raise ValueError("symbol, entry_price and entry_date are required")
    row["symbol"] = str(row["symbol"]).strip().upper()

    side = normalize_side(raw.get("side") or raw.get("trade_type"))
    if side is None:
        raise ValueError(f"unknown side for {row['symbol']}")
    row["side"] = side.value
    row["trade_type"] = side.value

    # status follows pnl: only a realized result makes a trade closed
    if row.get("pnl") is not None:
        row["status"] = "closed"
    else:
        row["status"] = "open"
        row.pop("exit_date", None)
    return row


@router.get("/ib/settings", response_model=IbSettingsOut)
def get_ib_settings(user_id: str = Depends(verify_supabase_token)):
    rec = db.get_user_settings(user_id) or {}
    token = rec.get("ib_flex_token")
    query_id = rec.get("ib_flex_query_id")
    return IbSettingsOut(
        configured=bool(token and query_id),
        flexQueryId=query_id,
        flexTokenHint=f"{token[:4]}..." if token else None,
    )


@router.put("/ib/settings", response_model=IbSettingsOut)
def save_ib_settings(body: IbSettingsBody, user_id: str = Depends(verify_supabase_token)):
    token = body.flexToken.strip()
    query_id = body.flexQueryId.strip()
    error = broker_import.validate_credentials(token, query_id)
    if error:
        raise HTTPException(status_code=400, detail=error)

    db.upsert_user_settings(user_id, {"ib_flex_token": token, "ib_flex_query_id": query_id})
    return IbSettingsOut(configured=True, flexQueryId=query_id, flexTokenHint=f"{token[:4]}...")


@router.post("/ib", response_model=IbImportPreview)
def preview_ib_import(user_id: str = Depends(verify_supabase_token)):
    """
    Pull the Flex report through the import function and return only trades
    the user doesn't have yet. Nothing is written until /imports/ib/commit.
    """
    rec = db.get_user_settings(user_id) or {}
    token = rec.get("ib_flex_token")
    query_id = rec.get("ib_flex_query_id")
    if not token or not query_id:
        raise HTTPException(status_code=400, detail="ib_settings_missing")

    error = broker_import.validate_credentials(token, query_id)
    if error:
        raise HTTPException(status_code=400, detail=error)

    try:
        trades, duplicates = broker_import.preview_import(user_id, token, query_id)
    except BrokerImportError as e:
        logger.error("IB import failed for %s: %s", user_id, e)
        raise HTTPException(status_code=502, detail="ib_import_failed")

    return IbImportPreview(trades=trades, newCount=len(trades), duplicateCount=duplicates)


@router.post("/ib/commit", response_model=IbImportCommitResult)
def commit_ib_import(body: IbImportCommitBody, user_id: str = Depends(verify_supabase_token)):
    rows: List[Dict[str, Any]] = []
    for i, raw in enumerate(body.trades):
        try:
            rows.append(_clean_import_row(raw))
        except ValueError as e:
            raise HTTPException(status_code=400, detail=f"row {i}: {e}")

    # re-check: the same preview may be committed twice
    fresh, duplicates = broker_import.filter_new_trades(
        rows,
        db.fetch_existing_trade_keys(
            user_id,
            sorted({r["symbol"] for r in rows}),
            sorted({str(r["entry_date"]) for r in rows}),
        ),
    )
    if duplicates:
        logger.info("IB commit for %s: %d rows already present", user_id, duplicates)

    inserted = db.insert_trades(user_id, fresh)
    return IbImportCommitResult(insertedCount=inserted)
