from datetime import date, datetime, time, timedelta, timezone

from hypothesis import given, settings as hsettings, strategies as st

from tradalyse.services.metrics import (
    bucket_daily,
    bucket_weekly,
    build_pnl_series,
    compute_summary_stats,
)
from tradalyse.utils.dates import month_bounds

from conftest import NOW, make_trade

# whole-dollar pnls keep the sums exact
pnl_values = st.integers(min_value=-5_000, max_value=5_000)
days_in_window = st.dates(min_value=date(2025, 1, 20), max_value=date(2025, 4, 10))
seconds_of_day = st.integers(min_value=0, max_value=86_399)


@st.composite
def closed_trades(draw):
    day = draw(days_in_window)
    at = datetime.combine(day, time.min, tzinfo=timezone.utc) + timedelta(seconds=draw(seconds_of_day))
    side = draw(st.sampled_from(["long", "short", "buy", "sell"]))
    return make_trade(draw(pnl_values), entry_date=at.isoformat(), side=side)


trade_lists = st.lists(closed_trades(), max_size=40)


@st.composite
def messy_trades(draw):
    """Open trades, unreadable dates and reversed exits mixed in with good rows."""
    kind = draw(st.sampled_from(["closed", "open", "bad_entry", "bad_exit", "reversed"]))
    row = draw(closed_trades())
    if kind == "open":
        row.update(pnl=None, status="open")
    elif kind == "bad_entry":
        row["entry_date"] = draw(st.sampled_from(["garbage", "", None, "2025-99-01", "13/45/2025"]))
    elif kind == "bad_exit":
        row["exit_date"] = draw(st.sampled_from(["soon", "2025-02-30T10:00:00"]))
    elif kind == "reversed":
        row["exit_date"] = "2025-01-01T00:00:00+00:00"
    return row


@hsettings(max_examples=60, deadline=None)
@given(st.lists(messy_trades(), max_size=40))
def test_repeated_calls_give_identical_results(trades):
    first, last = month_bounds(2025, 3)
    calls = [
        lambda: compute_summary_stats(trades, as_of=NOW),
        lambda: bucket_daily(trades, first, last),
        lambda: bucket_weekly(trades, first, last),
        lambda: build_pnl_series(trades, date(2025, 1, 1)),
    ]
    for call in calls:
        once, again = call(), call()
        assert once.model_dump() == again.model_dump()
        assert once.skipped_trade_ids == again.skipped_trade_ids


@hsettings(max_examples=60, deadline=None)
@given(trade_lists)
def test_rates_stay_in_range(trades):
    stats = compute_summary_stats(trades, as_of=NOW)
    for rate in (stats.win_rate, stats.loss_rate, stats.longs_win_rate, stats.day_win_rate):
        assert 0 <= rate <= 100
    assert stats.win_rate + stats.loss_rate <= 100 + 1e-9
    assert stats.winning_trades + stats.losing_trades <= stats.closed_trades
    assert stats.profit_factor >= 0


@hsettings(max_examples=60, deadline=None)
@given(trade_lists)
def test_daily_buckets_conserve_month_pnl(trades):
    first, last = month_bounds(2025, 3)
    result = bucket_daily(trades, first, last)

    in_month = [t for t in trades if first <= date.fromisoformat(t["entry_date"][:10]) <= last]
    assert sum(b.summed_pnl for b in result.days.values()) == sum(t["pnl"] for t in in_month)
    assert sum(b.trade_count for b in result.days.values()) == len(in_month)


@hsettings(max_examples=60, deadline=None)
@given(trade_lists)
def test_weekly_totals_match_daily_over_same_span(trades):
    first, last = month_bounds(2025, 3)
    weeks = bucket_weekly(trades, first, last).weeks
    span = bucket_daily(trades, weeks[0].start_date, weeks[-1].end_date)

    assert sum(w.summed_pnl for w in weeks) == sum(b.summed_pnl for b in span.days.values())
    assert sum(w.distinct_trading_days for w in weeks) == len(span.days)
    for prev, nxt in zip(weeks, weeks[1:]):
        assert nxt.start_date == prev.end_date + timedelta(days=1)


@hsettings(max_examples=60, deadline=None)
@given(trade_lists)
def test_cumulative_is_prefix_sum(trades):
    series = build_pnl_series(trades, date(2025, 1, 1))
    running = 0
    for prev, point in zip([None] + series.points, series.points):
        if prev is not None:
            assert prev.date < point.date
        running += point.daily_pnl
        assert point.cumulative_pnl == running
    if series.points:
        assert series.points[-1].cumulative_pnl == sum(t["pnl"] for t in trades)
