from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, field_validator

# Colours handed out to new tags and strategies
LABEL_COLORS = [
    "#3B82F6",  # blue
    "#10B981",  # green
    "#F59E0B",  # yellow
    "#EF4444",  # red
    "#8B5CF6",  # purple
    "#06B6D4",  # cyan
    "#F97316",  # orange
    "#84CC16",  # lime
    "#EC4899",  # pink
    "#6B7280",  # gray
]


class _Named(BaseModel):
    name: str = Field(..., max_length=100, description="e.g. 'Earnings Play'")

    @field_validator("name")
    @classmethod
    def _strip(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name cannot be empty")
        return v


class TagBody(_Named):
    """Body for POST /tags and PUT /tags/{id}"""


class TagOut(BaseModel):
    id: str
    name: str
    color: Optional[str] = None
    created_at: Optional[datetime] = None


class StrategyBody(_Named):
    description: Optional[str] = Field(default=None, max_length=1000)

    @field_validator("description")
    @classmethod
    def _blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None


class StrategyOut(TagOut):
    description: Optional[str] = None
