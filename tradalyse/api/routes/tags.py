import uuid
from typing import List
from fastapi import APIRouter, Depends, HTTPException, Path, status

from ...core.auth import verify_supabase_token
from ...schemas.labels import TagBody, TagOut
from ...services import db, labels

router = APIRouter(prefix="/tags", tags=["tags"])


@router.get("/", response_model=List[TagOut])
def list_tags(user_id: str = Depends(verify_supabase_token)):
    return [TagOut(**row) for row in db.list_labels("tags", user_id)]


@router.post("/", response_model=TagOut, status_code=status.HTTP_201_CREATED)
def create_tag(body: TagBody, user_id: str = Depends(verify_supabase_token)):
    if labels.name_taken("tags", user_id, body.name):
        raise HTTPException(status_code=409, detail="duplicate_tag_name")
    row = db.create_label("tags", user_id, {"name": body.name, "color": labels.pick_color()})
    return TagOut(**row)


@router.put("/{tag_id}", response_model=TagOut)
def rename_tag(
    body: TagBody,
    tag_id: uuid.UUID = Path(...),
    user_id: str = Depends(verify_supabase_token),
):
    if labels.name_taken("tags", user_id, body.name, exclude_id=tag_id):
        raise HTTPException(status_code=409, detail="duplicate_tag_name")
    try:
        row = db.update_label("tags", user_id, tag_id, {"name": body.name})
    except LookupError:
        raise HTTPException(status_code=404, detail="tag_not_found")
    return TagOut(**row)


@router.delete("/{tag_id}", status_code=204)
def delete_tag(
    tag_id: uuid.UUID = Path(...),
    user_id: str = Depends(verify_supabase_token),
):
    try:
        db.delete_label("tags", user_id, tag_id)
    except LookupError:
        raise HTTPException(status_code=404, detail="tag_not_found")
