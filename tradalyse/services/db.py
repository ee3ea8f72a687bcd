import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import HTTPException
from postgrest import APIError
from supabase import create_client, Client

from ..core.config import settings

logger = logging.getLogger(__name__)

# The service-role key bypasses row level security, so every query below
# filters on user_id itself.
_client: Optional[Client] = None

LABEL_TABLES = ("tags", "strategies")


def get_client() -> Client:
    global _client
    if _client is None:
        if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_ROLE_KEY:
            raise RuntimeError(
                "Supabase not configured: set SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY."
            )
        _client = create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)
        logger.info("Supabase client initialized")
    return _client


def _first(res) -> Optional[Dict[str, Any]]:
    data = res.data or []
    return data[0] if data else None


# ----------------------------------------- TRADES -----------------------------------------
def fetch_trades_for_user(
    user_id: str,
    *,
    since: Optional[datetime] = None,
    until: Optional[datetime] = None,
    status: Optional[str] = None,
    symbol: Optional[str] = None,
    offset: int = 0,
    limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """
    Trades owned by the user, newest entry first.

    `since` is inclusive and `until` exclusive on entry_date. With `limit`
    a single row range is read. Without it the rows are read page by page
    until a short page comes back, since PostgREST caps every response at
    its max-rows setting.
    """
    def query():
        q = (
            get_client()
            .table("trades")
            .select("*")
            .eq("user_id", user_id)
        )
        if since is not None:
            q = q.gte("entry_date", since.isoformat())
        if until is not None:
            q = q.lt("entry_date", until.isoformat())
        if status:
            q = q.eq("status", status)
        if symbol:
            q = q.eq("symbol", symbol.strip().upper())
        # id breaks ties so pages never overlap
        return q.order("entry_date", desc=True).order("id", desc=True)

    if limit is not None:
        res = query().range(offset, offset + limit - 1).execute()
        return res.data or []

    page_size = settings.SUPABASE_PAGE_SIZE
    rows: List[Dict[str, Any]] = []
    start = offset
    while True:
        page = query().range(start, start + page_size - 1).execute().data or []
        rows.extend(page)
        if len(page) < page_size:
            return rows
        start += page_size


def fetch_trade(user_id: str, trade_id: uuid.UUID) -> Optional[Dict[str, Any]]:
    res = (
        get_client()
        .table("trades")
        .select("*")
        .eq("id", str(trade_id))
        .eq("user_id", user_id)
        .limit(1)
        .execute()
    )
    return _first(res)


def fetch_trade_with_labels(user_id: str, trade_id: uuid.UUID) -> Optional[Dict[str, Any]]:
    """
    Trade row plus its strategy row (`strategy`) and tag rows (`tag_objects`).
    """
    trade = fetch_trade(user_id, trade_id)
    if not trade:
        return None

    strategy = None
    if trade.get("strategy_id"):
        strategy = _first(
            get_client()
            .table("strategies")
            .select("*")
            .eq("id", str(trade["strategy_id"]))
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )

    tag_objects: List[Dict[str, Any]] = []
    tag_ids = trade.get("tags") or []
    if tag_ids:
        tag_objects = (
            get_client()
            .table("tags")
            .select("*")
            .eq("user_id", user_id)
            .in_("id", [str(t) for t in tag_ids])
            .execute()
            .data
            or []
        )

    return {**trade, "strategy": strategy, "tag_objects": tag_objects}


def insert_trade(user_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    row = {**payload, "user_id": user_id}
    try:
        res = get_client().table("trades").insert(row).execute()
    except APIError as e:
        logger.error("Supabase trade insert failed: %s", e)
        raise HTTPException(
            status_code=400,
            detail=f"DB insert failed: {getattr(e, 'message', str(e))}",
        )
    rec = _first(res)
    if not rec or "id" not in rec:
        raise HTTPException(status_code=500, detail="DB insert returned no data")
    return rec


def insert_trades(user_id: str, rows: List[Dict[str, Any]]) -> int:
    if not rows:
        return 0
    payload = [{**r, "user_id": user_id} for r in rows]
    try:
        res = get_client().table("trades").insert(payload).execute()
    except APIError as e:
        logger.error("Supabase bulk trade insert failed: %s", e)
        raise HTTPException(
            status_code=400,
            detail=f"DB insert failed: {getattr(e, 'message', str(e))}",
        )
    return len(res.data or [])


def update_trade(
    user_id: str, trade_id: uuid.UUID, payload: Dict[str, Any]
) -> Optional[Dict[str, Any]]:
    """
    Write `payload` onto a trade owned by the user.
    Returns the updated row, or None when nothing matched.
    """
    if not payload:
        return fetch_trade(user_id, trade_id)
    res = (
        get_client()
        .table("trades")
        .update(payload)
        .eq("id", str(trade_id))
        .eq("user_id", user_id)
        .execute()
    )
    return _first(res)


def delete_trade_record(user_id: str, trade_id: uuid.UUID) -> None:
    """
    Raises LookupError if the trade does not exist or is not owned by the user.
    """
    res = (
        get_client()
        .table("trades")
        .delete()
        .eq("id", str(trade_id))
        .eq("user_id", user_id)
        .execute()
    )
    if not res.data:
        raise LookupError("trade_not_found")


def check_trade_belongs_to_user(trade_id: uuid.UUID, user_id: str) -> None:
    res = (
        get_client()
        .table("trades")
        .select("id,user_id")
        .eq("id", str(trade_id))
        .limit(1)
        .execute()
    )
    data = _first(res)
    if not data:
        raise LookupError("trade_not_found")
    if data["user_id"] != user_id:
        raise PermissionError("trade_not_owned")


def fetch_existing_trade_keys(
    user_id: str, symbols: List[str], entry_dates: List[str]
) -> List[Dict[str, Any]]:
    """Rows that could collide with an import batch (same symbols and entry dates)."""
    if not symbols or not entry_dates:
        return []
    res = (
        get_client()
        .table("trades")
        .select("symbol, entry_date, entry_price, quantity")
        .eq("user_id", user_id)
        .in_("symbol", symbols)
        .in_("entry_date", entry_dates)
        .execute()
    )
    return res.data or []


# ----------------------------------------- TAGS / STRATEGIES -----------------------------------------
def _label_table(table: str) -> str:
    if table not in LABEL_TABLES:
        raise ValueError(f"not a label table: {table}")
    return table


def list_labels(table: str, user_id: str) -> List[Dict[str, Any]]:
    res = (
        get_client()
        .table(_label_table(table))
        .select("*")
        .eq("user_id", user_id)
        .order("created_at", desc=True)
        .execute()
    )
    return res.data or []


def create_label(table: str, user_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    try:
        res = get_client().table(_label_table(table)).insert({**data, "user_id": user_id}).execute()
    except APIError as e:
        logger.error("Supabase %s insert failed: %s", table, e)
        raise HTTPException(
            status_code=400,
            detail=f"DB insert failed: {getattr(e, 'message', str(e))}",
        )
    rec = _first(res)
    if not rec:
        raise HTTPException(status_code=500, detail="DB insert returned no data")
    return rec


def update_label(
    table: str, user_id: str, label_id: uuid.UUID, data: Dict[str, Any]
) -> Dict[str, Any]:
    """Raises LookupError when the row is missing or owned by someone else."""
    res = (
        get_client()
        .table(_label_table(table))
        .update(data)
        .eq("id", str(label_id))
        .eq("user_id", user_id)
        .execute()
    )
    rec = _first(res)
    if not rec:
        raise LookupError(f"{table}_not_found")
    return rec


def delete_label(table: str, user_id: str, label_id: uuid.UUID) -> None:
    res = (
        get_client()
        .table(_label_table(table))
        .delete()
        .eq("id", str(label_id))
        .eq("user_id", user_id)
        .execute()
    )
    if not res.data:
        raise LookupError(f"{table}_not_found")


def ensure_labels_belong_to_user(
    user_id: str,
    strategy_id: Optional[str] = None,
    tag_ids: Optional[List[str]] = None,
) -> None:
    """
    Raises LookupError("strategy_not_found" / "tag_not_found") when a
    referenced label is missing or belongs to another user.
    """
    if strategy_id:
        res = (
            get_client()
            .table("strategies")
            .select("id")
            .eq("id", strategy_id)
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )
        if not res.data:
            raise LookupError("strategy_not_found")

    wanted = set(tag_ids or [])
    if wanted:
        res = (
            get_client()
            .table("tags")
            .select("id")
            .eq("user_id", user_id)
            .in_("id", list(wanted))
            .execute()
        )
        found = {str(r["id"]) for r in (res.data or [])}
        if found != wanted:
            raise LookupError("tag_not_found")


# ----------------------------------------- USER SETTINGS -----------------------------------------
def get_user_settings(user_id: str) -> Optional[Dict[str, Any]]:
    res = (
        get_client()
        .table("user_settings")
        .select("*")
        .eq("user_id", user_id)
        .limit(1)
        .execute()
    )
    return _first(res)


def upsert_user_settings(user_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    res = (
        get_client()
        .table("user_settings")
        .upsert({**data, "user_id": user_id}, on_conflict="user_id")
        .execute()
    )
    rec = _first(res)
    if not rec:
        raise HTTPException(status_code=500, detail="settings_save_failed")
    return rec


# ----------------------------------------- EDGE FUNCTIONS -----------------------------------------
def invoke_function(name: str, body: Dict[str, Any]) -> Any:
    """Call a Supabase edge function and return its decoded JSON body."""
    return get_client().functions.invoke(
        name,
        invoke_options={"body": body, "responseType": "json"},
    )
