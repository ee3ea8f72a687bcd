from datetime import date, datetime
from enum import Enum
from typing import Any, List, Literal, Optional, Union
import uuid

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

AssetType = Literal["Stock", "Option", "Future", "Crypto", "ETF", "Bond"]
TradeStatus = Literal["open", "closed"]


class Side(str, Enum):
    LONG = "long"
    SHORT = "short"


_SIDE_ALIASES = {
    "long": Side.LONG,
    "buy": Side.LONG,
    "short": Side.SHORT,
    "sell": Side.SHORT,
}


def normalize_side(value: Any) -> Optional[Side]:
    """
    Map the spellings seen in stored rows ("long", "Long", "buy", "SELL", ...)
    onto Side. Unknown or empty values give None.
    """
    if value is None:
        return None
    if isinstance(value, Side):
        return value
    return _SIDE_ALIASES.get(str(value).strip().lower())


def _normalize_status(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().lower()
    return value


TimestampValue = Union[datetime, date, str, None]


class TradeRecord(BaseModel):
    """
    A trade row as read back from the `trades` table.

    Rows written by different clients disagree on the direction column
    (`side` vs `trade_type`) and its spelling, so both are folded into a
    single `side` here. Dates are kept as they arrive; the metrics code
    parses them and reports rows it cannot use instead of failing the whole
    request.
    """

    model_config = ConfigDict(extra="ignore")

    id: str
    symbol: str = ""
    side: Optional[Side] = None
    asset_type: Optional[str] = None
    entry_price: Optional[float] = None
    exit_price: Optional[float] = None
    stop_loss: Optional[float] = None
    standard_lot_size: Optional[float] = None
    quantity: Optional[float] = None
    commission: float = 0.0
    pnl: Optional[float] = None
    status: str = "open"
    entry_date: TimestampValue = None
    exit_date: TimestampValue = None
    strategy_id: Optional[str] = None
    tags: Optional[List[str]] = None
    notes: Optional[str] = None
    screenshot_url: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _fold_direction(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        side = normalize_side(data.get("side"))
        if side is None:
            side = normalize_side(data.get("trade_type"))
        data["side"] = side
        data.pop("trade_type", None)
        if data.get("commission") is None:
            data["commission"] = 0.0
        if data.get("id") is not None:
            data["id"] = str(data["id"])
        return data

    @field_validator("status", mode="before")
    @classmethod
    def _lower_status(cls, v: Any) -> Any:
        return _normalize_status(v) or "open"

    @property
    def is_closed(self) -> bool:
        return self.status == "closed" and self.pnl is not None

    @property
    def is_long(self) -> bool:
        return self.side is Side.LONG


class CreateTradeBody(BaseModel):
    symbol: str = Field(..., min_length=1, max_length=32)
    side: Side = Field(..., description="long/short (buy/sell accepted)")
    assetType: AssetType = "Stock"
    entryPrice: float = Field(..., gt=0)
    exitPrice: Optional[float] = Field(default=None, gt=0)
    stopLoss: Optional[float] = Field(default=None, gt=0)
    standardLotSize: Optional[float] = Field(
        default=None,
        gt=0,
        description="Contract multiplier, only applied to options (default 100)",
    )
    quantity: float = Field(..., gt=0)
    commission: float = Field(default=0.0, ge=0)
    status: TradeStatus = "open"
    entryDate: Optional[Union[datetime, date]] = None
    exitDate: Optional[Union[datetime, date]] = None
    strategyId: Optional[uuid.UUID] = None
    tags: Optional[List[uuid.UUID]] = None
    notes: Optional[str] = Field(default=None, max_length=3000)

    @field_validator("side", mode="before")
    @classmethod
    def _side(cls, v: Any) -> Any:
        return normalize_side(v) or v

    @field_validator("status", mode="before")
    @classmethod
    def _status(cls, v: Any) -> Any:
        return _normalize_status(v)

    @field_validator("symbol")
    @classmethod
    def _symbol(cls, v: str) -> str:
        v = v.strip().upper()
        if not v:
            raise ValueError("symbol is required")
        return v


class UpdateTradeBody(BaseModel):
    symbol: Optional[str] = Field(default=None, min_length=1, max_length=32)
    side: Optional[Side] = None
    assetType: Optional[AssetType] = None
    entryPrice: Optional[float] = Field(default=None, gt=0)
    exitPrice: Optional[float] = Field(default=None, gt=0)
    stopLoss: Optional[float] = Field(default=None, gt=0)
    standardLotSize: Optional[float] = Field(default=None, gt=0)
    quantity: Optional[float] = Field(default=None, gt=0)
    commission: Optional[float] = Field(default=None, ge=0)
    status: Optional[TradeStatus] = None
    entryDate: Optional[Union[datetime, date]] = None
    exitDate: Optional[Union[datetime, date]] = None
    strategyId: Optional[uuid.UUID] = None
    tags: Optional[List[uuid.UUID]] = None
    notes: Optional[str] = Field(default=None, max_length=3000)

    @field_validator("side", mode="before")
    @classmethod
    def _side(cls, v: Any) -> Any:
        return normalize_side(v) or v

    @field_validator("status", mode="before")
    @classmethod
    def _status(cls, v: Any) -> Any:
        return _normalize_status(v)

    @field_validator("symbol")
    @classmethod
    def _symbol(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip().upper()
        if not v:
            raise ValueError("symbol cannot be empty")
        return v


class CreateTradeResponse(BaseModel):
    tradeId: uuid.UUID
    pnl: Optional[float] = None


class PnlPreviewBody(BaseModel):
    entryPrice: float = Field(..., gt=0)
    exitPrice: Optional[float] = Field(default=None, gt=0)
    quantity: float = Field(..., gt=0)
    standardLotSize: Optional[float] = Field(default=None, gt=0)
    assetType: AssetType = "Stock"
    side: Side
    commission: float = Field(default=0.0, ge=0)

    @field_validator("side", mode="before")
    @classmethod
    def _side(cls, v: Any) -> Any:
        return normalize_side(v) or v


class AttachScreenshotBody(BaseModel):
    key: str = Field(..., min_length=1)


class TradeListResponse(BaseModel):
    items: List[dict]
    nextOffset: Optional[int] = None
