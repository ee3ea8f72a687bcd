"""
Trade screenshots in S3.

Clients upload straight to the bucket with a presigned PUT; the API only
hands out keys, checks that an upload landed and cleans up replaced objects.
Keys live under u/{user_id}/trades/{trade_id}/ so ownership can be checked
from the key alone.
"""
import base64
import logging
import os
import uuid
from datetime import datetime, timezone
from functools import lru_cache

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from ..core.config import settings

logger = logging.getLogger(__name__)

PRESIGN_EXPIRES_SECONDS = 900


@lru_cache(maxsize=1)
def get_s3():
    region = settings.AWS_REGION
    return boto3.client(
        "s3",
        region_name=region,
        aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
        aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
        # presigned URLs must name the regional host or the signature won't match
        endpoint_url=f"https://s3.{region}.amazonaws.com",
        config=Config(signature_version="s3v4", s3={"addressing_style": "virtual"}),
    )


def screenshot_prefix(user_id: str, trade_id: uuid.UUID) -> str:
    return f"u/{user_id}/trades/{trade_id}/"


def gen_screenshot_key(user_id: str, trade_id: uuid.UUID, ext: str) -> str:
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    suffix = base64.urlsafe_b64encode(os.urandom(4)).decode().rstrip("=")
    return f"{screenshot_prefix(user_id, trade_id)}screenshot-{stamp}-{suffix}.{ext}"


def presign_put(key: str, content_type: str, expires: int = PRESIGN_EXPIRES_SECONDS) -> str:
    params = {"Bucket": settings.AWS_S3_BUCKET, "Key": key, "ContentType": content_type}
    try:
        return get_s3().generate_presigned_url(
            ClientMethod="put_object", Params=params, ExpiresIn=expires
        )
    except (BotoCoreError, ClientError) as e:
        raise RuntimeError(f"presign_failed: {e}")


def object_exists(key: str) -> bool:
    """True once the client's PUT has landed. Errors other than 404 propagate."""
    try:
        get_s3().head_object(Bucket=settings.AWS_S3_BUCKET, Key=key)
    except ClientError as e:
        if e.response.get("Error", {}).get("Code") in ("404", "NoSuchKey", "NotFound"):
            return False
        raise
    return True


def delete_object(key: str) -> None:
    """
    Best effort: failures are logged and the trade update goes ahead.
    """
    try:
        get_s3().delete_object(Bucket=settings.AWS_S3_BUCKET, Key=key)
    except (BotoCoreError, ClientError) as e:
        logger.warning("Failed to delete S3 object %s: %s", key, e)
