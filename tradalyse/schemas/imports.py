from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class IbSettingsBody(BaseModel):
    flexToken: str = Field(..., description="Flex Web Service token")
    flexQueryId: str = Field(..., description="Flex query id (digits)")


class IbSettingsOut(BaseModel):
    configured: bool
    flexQueryId: Optional[str] = None
    # only a prefix of the token is ever sent back
    flexTokenHint: Optional[str] = None


class IbImportPreview(BaseModel):
    trades: List[Dict[str, Any]]
    newCount: int
    duplicateCount: int


class IbImportCommitBody(BaseModel):
    trades: List[Dict[str, Any]] = Field(..., min_length=1)


class IbImportCommitResult(BaseModel):
    insertedCount: int
