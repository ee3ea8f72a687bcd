from fastapi import APIRouter, Depends, HTTPException

from ...core.auth import verify_supabase_token
from ...schemas.uploads import MIME_TO_EXT, PresignBody, PresignResponse
from ...services import db
from ...services.storage import PRESIGN_EXPIRES_SECONDS, gen_screenshot_key, presign_put

router = APIRouter(prefix="/uploads", tags=["uploads"])


@router.post("/presign", response_model=PresignResponse)
def presign_screenshot(body: PresignBody, user_id: str = Depends(verify_supabase_token)):
    """
    Presigned PUT for a trade screenshot. The client uploads straight to S3,
    then calls PUT /trades/{id}/screenshot with the returned key.
    """
    expected = MIME_TO_EXT[body.contentType]
    ext = "jpg" if body.fileExt == "jpeg" else body.fileExt
    if ext != expected:
        raise HTTPException(status_code=400, detail="bad_extension_for_mime")

    try:
        db.check_trade_belongs_to_user(body.tradeId, user_id)
    except LookupError:
        raise HTTPException(status_code=404, detail="trade_not_found")
    except PermissionError:
        raise HTTPException(status_code=403, detail="trade_not_owned")

    key = gen_screenshot_key(user_id, body.tradeId, ext)
    try:
        url = presign_put(key, body.contentType)
    except RuntimeError as e:
        raise HTTPException(status_code=500, detail=str(e))

    return PresignResponse(
        uploadUrl=url,
        key=key,
        expiresIn=PRESIGN_EXPIRES_SECONDS,
        contentType=body.contentType,
    )
