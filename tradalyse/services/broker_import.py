"""
Interactive Brokers Flex import.

The broker round trip itself runs in a Supabase edge function; this module
validates the stored credentials, calls the function with a bounded
exponential backoff, and drops trades the user already has.
"""
import logging
import re
import time
from datetime import timezone
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar

from ..core.config import settings
from ..core.errors import BrokerImportError, ParseError
from ..utils.dates import parse_timestamp
from . import db

logger = logging.getLogger(__name__)

ResultT = TypeVar("ResultT")

_TOKEN_RE = re.compile(r"^[a-zA-Z0-9]{20,30}$")
_QUERY_ID_RE = re.compile(r"^\d{6,10}$")
# a 5xx code standing alone in an error message, not "5003" or "id 5021"
_SERVER_ERROR_RE = re.compile(r"(?<!\d)50[0234](?!\d)")


def validate_credentials(token: str, query_id: str) -> Optional[str]:
    """Return a user-facing message for a malformed token/query id, else None."""
    if not _TOKEN_RE.match(token or ""):
        return "Invalid Flex Token format. Token should be 20-30 alphanumeric characters."
    if not _QUERY_ID_RE.match(query_id or ""):
        return "Invalid Query ID format. Query ID should be 6-10 digits."
    return None


def is_retryable(exc: Exception) -> bool:
    """Server-side (5xx) failures and dropped connections are worth another try."""
    if isinstance(exc, (ConnectionError, TimeoutError)):
        return True
    status = getattr(exc, "status", None) or getattr(exc, "status_code", None)
    if isinstance(status, int):
        return status >= 500
    return bool(_SERVER_ERROR_RE.search(str(exc)))


def execute_with_retry(
    operation: Callable[[], ResultT],
    *,
    should_retry: Callable[[Exception], bool] = is_retryable,
    attempts: int = 3,
    base_delay_seconds: float = 1.0,
    sleep_fn: Callable[[float], None] = time.sleep,
) -> ResultT:
    """
    Run `operation`, retrying failures accepted by `should_retry`.
    Waits base * 2**n seconds after the n-th failed attempt (2s, 4s with the
    defaults). The last error is re-raised once attempts run out.
    """
    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except Exception as exc:
            if attempt >= attempts or not should_retry(exc):
                raise
            delay = base_delay_seconds * (2 ** attempt)
            logger.warning(
                "Attempt %d/%d failed (%s); retrying in %.1fs", attempt, attempts, exc, delay
            )
            sleep_fn(delay)
    raise RuntimeError("retry loop exited without a result")


def fetch_broker_trades(
    token: str,
    query_id: str,
    *,
    invoke: Optional[Callable[[str, Dict[str, Any]], Any]] = None,
    sleep_fn: Callable[[float], None] = time.sleep,
) -> List[Dict[str, Any]]:
    """
    Ask the import function for the user's Flex report.
    Raises BrokerImportError when it keeps failing or reports success=false.
    """
    call = invoke or db.invoke_function
    body = {"flexToken": token, "flexQueryId": query_id}
    try:
        data = execute_with_retry(
            lambda: call(settings.IB_IMPORT_FUNCTION, body),
            attempts=settings.IB_IMPORT_MAX_ATTEMPTS,
            base_delay_seconds=settings.IB_IMPORT_BASE_DELAY_SECONDS,
            sleep_fn=sleep_fn,
        )
    except Exception as e:
        raise BrokerImportError(f"import function call failed: {e}") from e

    if not isinstance(data, dict):
        raise BrokerImportError("import function returned an unexpected payload")
    if not data.get("success"):
        raise BrokerImportError(data.get("error") or "Import failed")
    return list(data.get("trades") or [])


def _dedupe_key(row: Dict[str, Any]) -> Tuple[str, str, Optional[float], Optional[float]]:
    """(symbol, entry instant in UTC, entry price, quantity)."""
    symbol = str(row.get("symbol") or "").strip().upper()
    raw_date = row.get("entry_date")
    try:
        parsed = parse_timestamp(raw_date, timezone.utc)
        entry = parsed.isoformat() if parsed else ""
    except ParseError:
        entry = str(raw_date)

    def _num(v: Any) -> Optional[float]:
        try:
            return float(v) if v is not None else None
        except (TypeError, ValueError):
            return None

    return symbol, entry, _num(row.get("entry_price")), _num(row.get("quantity"))


def filter_new_trades(
    imported: List[Dict[str, Any]], existing: List[Dict[str, Any]]
) -> Tuple[List[Dict[str, Any]], int]:
    """
    Drop imported rows matching an existing trade, or an earlier row of the
    same batch. Returns (new rows, number dropped).
    """
    seen = {_dedupe_key(r) for r in existing}
    fresh: List[Dict[str, Any]] = []
    for row in imported:
        key = _dedupe_key(row)
        if key in seen:
            continue
        seen.add(key)
        fresh.append(row)
    return fresh, len(imported) - len(fresh)


def preview_import(
    user_id: str,
    token: str,
    query_id: str,
    *,
    invoke: Optional[Callable[[str, Dict[str, Any]], Any]] = None,
    sleep_fn: Callable[[float], None] = time.sleep,
) -> Tuple[List[Dict[str, Any]], int]:
    imported = fetch_broker_trades(token, query_id, invoke=invoke, sleep_fn=sleep_fn)
    if not imported:
        return [], 0

    symbols = sorted({str(t.get("symbol") or "") for t in imported if t.get("symbol")})
    dates = sorted({str(t.get("entry_date")) for t in imported if t.get("entry_date")})
    existing = db.fetch_existing_trade_keys(user_id, symbols, dates)

    fresh, duplicates = filter_new_trades(imported, existing)
    logger.info(
        "IB import for %s: %d fetched, %d new, %d duplicates",
        user_id, len(imported), len(fresh), duplicates,
    )
    return fresh, duplicates
