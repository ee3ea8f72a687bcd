"""
Trade metrics: summary statistics and P&L bucketing.

Everything here is a pure function of the trades passed in plus an explicit
reference time and timezone. Nothing is fetched, cached or mutated, so the
same input always gives the same output and calls can run concurrently.

Only "closed" trades count towards P&L numbers: status == "closed" and a
non-null pnl. Trades whose dates can't be parsed are left out of whatever
needs that date and reported back in `skipped_trade_ids`.
"""
import logging
import math
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from ..core.config import settings
from ..core.errors import ParseError
from ..schemas.metrics import (
    DailyBucket,
    DailyBuckets,
    PnLSeries,
    PnLSeriesPoint,
    SummaryStats,
    TradeCostBreakdown,
    WeeklyBucket,
    WeeklyBuckets,
)
from ..schemas.trades import Side, TradeRecord, normalize_side
from ..utils.dates import (
    local_day,
    month_start as first_of_month,
    parse_timestamp,
    previous_month_start,
    week_end_saturday,
    week_start_sunday,
)

logger = logging.getLogger(__name__)

# Reported as the profit factor when there are wins but nothing lost yet.
# Kept for existing clients; `profit_factor_exact` is None in that case.
PROFIT_FACTOR_NO_LOSSES = 999.0

TradeLike = Union[TradeRecord, Mapping[str, Any]]


# ----------------------------------------- HELPERS -----------------------------------------
def coerce_trades(trades: Iterable[TradeLike]) -> List[TradeRecord]:
    """Accept TradeRecords or raw table rows."""
    return [t if isinstance(t, TradeRecord) else TradeRecord.model_validate(t) for t in trades]


class _Skipped:
    """Ordered, de-duplicated ids of trades left out of a computation."""

    def __init__(self) -> None:
        self._ids: Dict[str, None] = {}

    def add(self, trade: TradeRecord, field: str, err: Exception) -> None:
        if trade.id not in self._ids:
            logger.warning("Skipping trade %s: bad %s (%s)", trade.id, field, err)
        self._ids[trade.id] = None

    def ids(self) -> List[str]:
        return list(self._ids)


def _entry_day(trade: TradeRecord, tz: tzinfo, skipped: _Skipped) -> Optional[date]:
    try:
        day = local_day(trade.entry_date, tz)
    except ParseError as e:
        skipped.add(trade, "entry_date", e)
        return None
    if day is None:
        skipped.add(trade, "entry_date", ParseError(None, reason="missing entry date"))
    return day


def _ratio_pct(part: int, whole: int) -> float:
    return part / whole * 100 if whole else 0.0


def _mean(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def format_duration(hours: float) -> str:
    """3.42 -> "3h 25m". A rounded 60 minutes rolls into the hour."""
    if hours <= 0:
        return "0h 0m"
    whole = math.floor(hours)
    minutes = round((hours - whole) * 60)
    if minutes == 60:
        whole += 1
        minutes = 0
    return f"{whole}h {minutes}m"


def _profit_factor(gross_profit: float, gross_loss: float) -> tuple[float, Optional[float]]:
    if gross_loss != 0:
        ratio = gross_profit / abs(gross_loss)
        return ratio, ratio
    if gross_profit > 0:
        return PROFIT_FACTOR_NO_LOSSES, None
    return 0.0, None


def _daily_totals(
    closed: List[TradeRecord],
    tz: tzinfo,
    skipped: _Skipped,
    first: Optional[date] = None,
    last: Optional[date] = None,
) -> Dict[date, List[float]]:
    """day -> [summed pnl, trade count] for closed trades inside [first, last]."""
    totals: Dict[date, List[float]] = {}
    for t in closed:
        day = _entry_day(t, tz, skipped)
        if day is None:
            continue
        if first is not None and day < first:
            continue
        if last is not None and day > last:
            continue
        bucket = totals.setdefault(day, [0.0, 0])
        bucket[0] += t.pnl
        bucket[1] += 1
    return totals


# ----------------------------------------- SUMMARY -----------------------------------------
def compute_summary_stats(
    trades: Iterable[TradeLike],
    as_of: datetime,
    tz: tzinfo = timezone.utc,
) -> SummaryStats:
    """
    Headline statistics over a user's whole trade history.

    `as_of` fixes which calendar month is "this month" (in `tz`) for the
    monthly trade count and its change against the previous month.
    """
    records = coerce_trades(trades)
    skipped = _Skipped()

    closed = [t for t in records if t.is_closed]
    pnls = [t.pnl for t in closed]
    wins = [p for p in pnls if p > 0]
    losses = [p for p in pnls if p < 0]

    win_rate = _ratio_pct(len(wins), len(closed))
    loss_rate = _ratio_pct(len(losses), len(closed))

    longs = [t for t in closed if t.is_long]
    longs_win_rate = _ratio_pct(sum(1 for t in longs if t.pnl > 0), len(longs))

    gross_profit = sum(wins)
    gross_loss = sum(losses)
    profit_factor, profit_factor_exact = _profit_factor(gross_profit, gross_loss)

    avg_win = _mean(wins)
    avg_loss = _mean([abs(p) for p in losses])
    expectancy = win_rate / 100 * avg_win - loss_rate / 100 * avg_loss

    # Day win rate
    daily = _daily_totals(closed, tz, skipped)
    winning_days = sum(1 for total, _ in daily.values() if total > 0)

    # Average holding time, any status as long as both dates are set
    durations: List[float] = []
    for t in records:
        if t.entry_date is None or t.exit_date is None:
            continue
        try:
            entered = parse_timestamp(t.entry_date, tz)
            exited = parse_timestamp(t.exit_date, tz)
        except ParseError as e:
            skipped.add(t, "entry_date/exit_date", e)
            continue
        if entered is None or exited is None:
            continue
        if exited < entered:
            skipped.add(t, "exit_date", ParseError(t.exit_date, reason="exit before entry"))
            continue
        durations.append((exited - entered).total_seconds() / 3600)
    avg_hours = _mean(durations)

    # Activity this month vs last month
    today = as_of.astimezone(tz).date() if as_of.tzinfo else as_of.date()
    this_month = first_of_month(today)
    last_month = previous_month_start(today)
    monthly = 0
    previous = 0
    for t in records:
        day = _entry_day(t, tz, skipped)
        if day is None:
            continue
        if day >= this_month:
            monthly += 1
        elif day >= last_month:
            previous += 1
    monthly_change = (monthly - previous) / previous * 100 if previous else 0.0

    return SummaryStats(
        total_trades=len(records),
        closed_trades=len(closed),
        open_trades=sum(1 for t in records if t.status == "open"),
        winning_trades=len(wins),
        losing_trades=len(losses),
        win_rate=win_rate,
        loss_rate=loss_rate,
        longs_win_rate=longs_win_rate,
        total_pnl=sum(pnls),
        best_trade=max(pnls) if pnls else 0.0,
        profit_factor=profit_factor,
        profit_factor_exact=profit_factor_exact,
        avg_win_trade=avg_win,
        avg_loss_trade=avg_loss,
        trade_expectancy=expectancy,
        trading_days=len(daily),
        winning_days=winning_days,
        day_win_rate=_ratio_pct(winning_days, len(daily)),
        avg_trade_duration_hours=avg_hours,
        avg_trade_duration=format_duration(avg_hours),
        monthly_trades=monthly,
        last_month_trades=previous,
        monthly_change=monthly_change,
        skipped_trade_ids=skipped.ids(),
    )


# ----------------------------------------- BUCKETS -----------------------------------------
def bucket_daily(
    trades: Iterable[TradeLike],
    month_start: date,
    month_end: date,
    tz: tzinfo = timezone.utc,
) -> DailyBuckets:
    """
    Sum closed P&L per local entry day for days in [month_start, month_end].
    Keys are ISO dates; consumers sort as they need.
    """
    skipped = _Skipped()
    closed = [t for t in coerce_trades(trades) if t.is_closed]
    totals = _daily_totals(closed, tz, skipped, month_start, month_end)

    days = {
        day.isoformat(): DailyBucket(date=day.isoformat(), summed_pnl=pnl, trade_count=count)
        for day, (pnl, count) in totals.items()
    }
    return DailyBuckets(days=days, skipped_trade_ids=skipped.ids())


def bucket_weekly(
    trades: Iterable[TradeLike],
    month_start: date,
    month_end: date,
    tz: tzinfo = timezone.utc,
) -> WeeklyBuckets:
    """
    Sunday-to-Saturday weeks covering the month. The first week starts on the
    Sunday on or before month_start and the last ends on the Saturday on or
    after month_end, so edge weeks include days of the neighbouring months.
    """
    first = week_start_sunday(month_start)
    last = week_end_saturday(month_end)

    skipped = _Skipped()
    closed = [t for t in coerce_trades(trades) if t.is_closed]
    totals = _daily_totals(closed, tz, skipped, first, last)

    weeks: List[WeeklyBucket] = []
    start = first
    number = 1
    while start <= last:
        end = start + timedelta(days=6)
        days = [d for d in totals if start <= d <= end]
        weeks.append(
            WeeklyBucket(
                week_number=number,
                start_date=start,
                end_date=end,
                summed_pnl=sum(totals[d][0] for d in sorted(days)),
                trade_count=sum(int(totals[d][1]) for d in days),
                distinct_trading_days=len(days),
            )
        )
        start = end + timedelta(days=1)
        number += 1

    return WeeklyBuckets(weeks=weeks, skipped_trade_ids=skipped.ids())


def build_pnl_series(
    trades: Iterable[TradeLike],
    window_start: date,
    tz: tzinfo = timezone.utc,
) -> PnLSeries:
    """
    Daily closed P&L from window_start onwards, ascending, with a running total.
    Feeds both the equity curve and the daily bar chart.
    """
    skipped = _Skipped()
    closed = [t for t in coerce_trades(trades) if t.is_closed]
    totals = _daily_totals(closed, tz, skipped, first=window_start)

    points: List[PnLSeriesPoint] = []
    running = 0.0
    for day in sorted(totals):
        daily_pnl = totals[day][0]
        running += daily_pnl
        points.append(PnLSeriesPoint(date=day, daily_pnl=daily_pnl, cumulative_pnl=running))

    return PnLSeries(points=points, skipped_trade_ids=skipped.ids())


# ----------------------------------------- TRADE P&L -----------------------------------------
def compute_trade_cost_and_pnl(
    entry_price: Optional[float],
    exit_price: Optional[float],
    quantity: Optional[float],
    lot_size: Optional[float],
    asset_type: Optional[str],
    trade_type: Any,
    commission: Optional[float],
) -> TradeCostBreakdown:
    """
    Cost of each leg and realized P&L for a single trade.

    Options are priced per share, so their totals are scaled by the contract
    lot size; every other asset type uses a multiplier of 1. Commission is
    always taken off the gross figure. Without an exit price there is no
    realized P&L and the exit-side fields stay None.
    """
    multiplier = 1.0
    if asset_type == "Option":
        multiplier = lot_size if lot_size else settings.DEFAULT_LOT_SIZE

    qty = quantity or 0.0
    fee = commission or 0.0

    def total_cost(price: float) -> float:
        return price * qty * multiplier

    entry_total = total_cost(entry_price or 0.0)
    if exit_price is None:
        return TradeCostBreakdown(entry_total=entry_total, commission=fee)

    exit_total = total_cost(exit_price)
    if normalize_side(trade_type) is Side.SHORT:
        gross = entry_total - exit_total
    else:
        gross = exit_total - entry_total

    return TradeCostBreakdown(
        entry_total=entry_total,
        exit_total=exit_total,
        gross_pnl=gross,
        commission=fee,
        net_pnl=gross - fee,
    )
