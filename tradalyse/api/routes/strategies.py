import uuid
from typing import List
from fastapi import APIRouter, Depends, HTTPException, Path, status

from ...core.auth import verify_supabase_token
from ...schemas.labels import StrategyBody, StrategyOut
from ...services import db, labels

router = APIRouter(prefix="/strategies", tags=["strategies"])


@router.get("/", response_model=List[StrategyOut])
def list_strategies(user_id: str = Depends(verify_supabase_token)):
    """
    The user's strategies, newest first, for the add-trade picker.
    """
    return [StrategyOut(**row) for row in db.list_labels("strategies", user_id)]


@router.post("/", response_model=StrategyOut, status_code=status.HTTP_201_CREATED)
def create_strategy(body: StrategyBody, user_id: str = Depends(verify_supabase_token)):
    if labels.name_taken("strategies", user_id, body.name):
        raise HTTPException(status_code=409, detail="duplicate_strategy_name")
    row = db.create_label(
        "strategies",
        user_id,
        {"name": body.name, "description": body.description, "color": labels.pick_color()},
    )
    return StrategyOut(**row)


@router.put("/{strategy_id}", response_model=StrategyOut)
def update_strategy(
    body: StrategyBody,
    strategy_id: uuid.UUID = Path(...),
    user_id: str = Depends(verify_supabase_token),
):
    if labels.name_taken("strategies", user_id, body.name, exclude_id=strategy_id):
        raise HTTPException(status_code=409, detail="duplicate_strategy_name")
    try:
        row = db.update_label(
            "strategies",
            user_id,
            strategy_id,
            {"name": body.name, "description": body.description},
        )
    except LookupError:
        raise HTTPException(status_code=404, detail="strategy_not_found")
    return StrategyOut(**row)


@router.delete("/{strategy_id}", status_code=204)
def delete_strategy(
    strategy_id: uuid.UUID = Path(...),
    user_id: str = Depends(verify_supabase_token),
):
    try:
        db.delete_label("strategies", user_id, strategy_id)
    except LookupError:
        raise HTTPException(status_code=404, detail="strategy_not_found")
