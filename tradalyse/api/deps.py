from datetime import datetime, timezone, tzinfo
from typing import Optional
from fastapi import HTTPException, Query

from ..core.config import settings
from ..utils.dates import resolve_timezone


def get_reference_time() -> datetime:
    """
    "Now" for anything month-relative. Overridden in tests to pin the clock.
    """
    return datetime.now(timezone.utc)


def get_user_timezone(
    tz: Optional[str] = Query(
        None,
        description="IANA zone used to assign trades to calendar days, e.g. 'America/New_York'",
    ),
) -> tzinfo:
    try:
        return resolve_timezone(tz or settings.DEFAULT_TIMEZONE)
    except ValueError:
        raise HTTPException(status_code=400, detail="invalid_timezone")
