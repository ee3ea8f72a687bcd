import datetime as dt
from typing import Dict, List, Optional
from pydantic import BaseModel, Field


class SummaryStats(BaseModel):
    """
    Headline numbers for the home and profile screens.
    Rates are percentages in [0, 100]; money values are account currency.
    """
    total_trades: int = 0
    closed_trades: int = 0
    open_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0

    win_rate: float = 0.0
    loss_rate: float = 0.0
    longs_win_rate: float = 0.0
    total_pnl: float = 0.0
    best_trade: float = 0.0

    profit_factor: float = Field(
        default=0.0,
        description="Gross profit / gross loss; 999 when there are wins and no losses",
    )
    profit_factor_exact: Optional[float] = Field(
        default=None,
        description="Same ratio, but null whenever there are no losses to divide by",
    )

    avg_win_trade: float = 0.0
    avg_loss_trade: float = 0.0
    trade_expectancy: float = 0.0

    trading_days: int = 0
    winning_days: int = 0
    day_win_rate: float = 0.0

    avg_trade_duration_hours: float = 0.0
    avg_trade_duration: str = Field(default="0h 0m", examples=["3h 25m"])

    monthly_trades: int = 0
    last_month_trades: int = 0
    monthly_change: float = 0.0

    skipped_trade_ids: List[str] = Field(default_factory=list)


class DailyBucket(BaseModel):
    date: str = Field(..., description="Local calendar day, YYYY-MM-DD", examples=["2025-12-01"])
    summed_pnl: float = Field(..., examples=[305.0, -656.8])
    trade_count: int = Field(..., examples=[2, 11])


class DailyBuckets(BaseModel):
    days: Dict[str, DailyBucket] = Field(default_factory=dict)
    skipped_trade_ids: List[str] = Field(default_factory=list)


class WeeklyBucket(BaseModel):
    week_number: int
    start_date: dt.date
    end_date: dt.date
    summed_pnl: float = 0.0
    trade_count: int = 0
    distinct_trading_days: int = 0


class WeeklyBuckets(BaseModel):
    weeks: List[WeeklyBucket] = Field(default_factory=list)
    skipped_trade_ids: List[str] = Field(default_factory=list)


class PnLSeriesPoint(BaseModel):
    date: dt.date
    daily_pnl: float
    cumulative_pnl: float


class PnLSeries(BaseModel):
    points: List[PnLSeriesPoint] = Field(default_factory=list)
    skipped_trade_ids: List[str] = Field(default_factory=list)


class TradeCostBreakdown(BaseModel):
    """Position cost on both legs and the resulting P&L. Null legs mean no exit yet."""
    entry_total: float
    exit_total: Optional[float] = None
    gross_pnl: Optional[float] = None
    commission: float = 0.0
    net_pnl: Optional[float] = None


class CalendarResponse(BaseModel):
    """
    Calendar heatmap for one month: days sorted ascending.
    """
    year: int
    month: int
    days: List[DailyBucket]
    skipped_trade_ids: List[str] = Field(default_factory=list)
