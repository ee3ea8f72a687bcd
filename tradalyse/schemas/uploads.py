import uuid
from typing import Literal
from pydantic import BaseModel, Field

AllowedContentType = Literal["image/png", "image/jpeg", "image/webp"]
AllowedExt = Literal["png", "jpg", "jpeg", "webp"]

MIME_TO_EXT = {"image/png": "png", "image/jpeg": "jpg", "image/webp": "webp"}

MAX_SCREENSHOT_BYTES = 10_000_000


class PresignBody(BaseModel):
    """Ask for an upload URL for one trade screenshot."""
    contentType: AllowedContentType
    fileExt: AllowedExt
    size: int = Field(gt=0, le=MAX_SCREENSHOT_BYTES)
    tradeId: uuid.UUID


class PresignResponse(BaseModel):
    uploadUrl: str
    key: str
    expiresIn: int
    contentType: AllowedContentType
    maxBytes: int = MAX_SCREENSHOT_BYTES
