from datetime import datetime, timedelta, tzinfo
from fastapi import APIRouter, Depends, Query

from ...core.auth import verify_supabase_token
from ...core.config import settings
from ...schemas.metrics import CalendarResponse, PnLSeries, SummaryStats, WeeklyBuckets
from ...services import db
from ...services import metrics
from ...utils.dates import day_start, month_bounds, shift_months
from ..deps import get_reference_time, get_user_timezone

router = APIRouter(prefix="/stats", tags=["stats"])


def _month_trades(user_id: str, first, last, tz: tzinfo):
    """
    Rows for a local-calendar window. The stored timestamps are UTC, so a day
    of slack on each side is fetched and the exact cut is left to the metrics
    code.
    """
    return db.fetch_trades_for_user(
        user_id,
        since=day_start(first, tz) - timedelta(days=1),
        until=day_start(last, tz) + timedelta(days=2),
    )


@router.get("/summary", response_model=SummaryStats)
def get_summary(
    user_id: str = Depends(verify_supabase_token),
    as_of: datetime = Depends(get_reference_time),
    tz: tzinfo = Depends(get_user_timezone),
):
    """
    Win rate, profit factor, expectancy and friends over every trade the user has.
    """
    trades = db.fetch_trades_for_user(user_id)
    return metrics.compute_summary_stats(trades, as_of=as_of, tz=tz)


@router.get("/calendar", response_model=CalendarResponse)
def get_calendar(
    year: int = Query(..., ge=2000, le=2100),
    month: int = Query(..., ge=1, le=12),
    user_id: str = Depends(verify_supabase_token),
    tz: tzinfo = Depends(get_user_timezone),
):
    """
    Per-day P&L and trade count for one month, for the calendar heatmap.
    """
    first, last = month_bounds(year, month)
    trades = _month_trades(user_id, first, last, tz)
    result = metrics.bucket_daily(trades, first, last, tz=tz)

    return CalendarResponse(
        year=year,
        month=month,
        days=[result.days[k] for k in sorted(result.days)],
        skipped_trade_ids=result.skipped_trade_ids,
    )


@router.get("/weekly", response_model=WeeklyBuckets)
def get_weekly(
    year: int = Query(..., ge=2000, le=2100),
    month: int = Query(..., ge=1, le=12),
    user_id: str = Depends(verify_supabase_token),
    tz: tzinfo = Depends(get_user_timezone),
):
    """
    Sunday-to-Saturday week totals shown beside the calendar.
    """
    first, last = month_bounds(year, month)
    # edge weeks spill up to six days into the neighbouring months
    trades = _month_trades(user_id, first - timedelta(days=6), last + timedelta(days=6), tz)
    return metrics.bucket_weekly(trades, first, last, tz=tz)


@router.get("/pnl-series", response_model=PnLSeries)
def get_pnl_series(
    months: int = Query(settings.PNL_SERIES_MONTHS, ge=1, le=60),
    user_id: str = Depends(verify_supabase_token),
    as_of: datetime = Depends(get_reference_time),
    tz: tzinfo = Depends(get_user_timezone),
):
    """
    Daily and cumulative P&L over the last `months` months.
    """
    window_start = shift_months(as_of.astimezone(tz).date(), -months)
    trades = db.fetch_trades_for_user(
        user_id,
        since=day_start(window_start, tz) - timedelta(days=1),
        status="closed",
    )
    return metrics.build_pnl_series(trades, window_start, tz=tz)
