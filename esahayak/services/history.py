"""Per-field audit diffs recorded alongside buyer mutations."""
import json
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional
from uuid import UUID

from pydantic.alias_generators import to_camel
from sqlalchemy import select
from sqlalchemy.orm import Session

from esahayak.models.buyer import Buyer, BuyerHistory

CREATED_DIFF = {"created": {"old": None, "new": "Lead created"}}
IMPORTED_DIFF = {"imported": {"old": None, "new": "Lead imported from CSV"}}


def json_safe(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [json_safe(v) for v in value]
    return value


def _changed(old: Any, new: Any) -> bool:
    if isinstance(new, (list, tuple)) or isinstance(old, (list, tuple)):
        return json.dumps(old or []) != json.dumps(new or [])
    return old != new


def compute_diff(buyer: Buyer, changes: Mapping[str, Any]) -> Dict[str, Dict[str, Any]]:
    """
    Compare ``changes`` (attribute name -> new value) with the buyer's current
    values. Returns ``{camelFieldName: {"old": ..., "new": ...}}`` for every
    field that actually differs; values are JSON-safe.
    """
    diff: Dict[str, Dict[str, Any]] = {}
    for attr, new_value in changes.items():
        old = json_safe(getattr(buyer, attr))
        new = json_safe(new_value)
        if _changed(old, new):
            diff[to_camel(attr)] = {"old": old, "new": new}
    return diff


def record(db: Session, buyer_id: UUID, changed_by: UUID, diff: Dict[str, Any],
           changed_at: Optional[datetime] = None) -> BuyerHistory:
    entry = BuyerHistory(buyer_id=buyer_id, changed_by=changed_by, diff=diff)
    if changed_at is not None:
        entry.changed_at = changed_at
    db.add(entry)
    return entry


def recent(db: Session, buyer_id: UUID, limit: int = 5):
    stmt = (
        select(BuyerHistory)
        .where(BuyerHistory.buyer_id == buyer_id)
        .order_by(BuyerHistory.changed_at.desc(), BuyerHistory.id.desc())
        .limit(limit)
    )
    return db.execute(stmt).scalars().all()
