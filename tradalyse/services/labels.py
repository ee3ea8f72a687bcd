import random
import uuid
from typing import Optional

from ..schemas.labels import LABEL_COLORS
from . import db


def pick_color() -> str:
    return random.choice(LABEL_COLORS)


def name_taken(
    table: str, user_id: str, name: str, exclude_id: Optional[uuid.UUID] = None
) -> bool:
    """Case-insensitive check against the user's other tags/strategies."""
    wanted = name.strip().lower()
    skip = str(exclude_id) if exclude_id else None
    for row in db.list_labels(table, user_id):
        if skip and str(row.get("id")) == skip:
            continue
        if str(row.get("name") or "").strip().lower() == wanted:
            return True
    return False
