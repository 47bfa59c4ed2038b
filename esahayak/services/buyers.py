"""
Buyer repository operations.

Functions flush but do not commit; the route commits once so the buyer row and
its history entry are written (or rolled back) together.
"""
import logging
from math import ceil
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import Select, func, or_, select
from sqlalchemy.orm import Session

from esahayak.core.errors import Conflict, Forbidden, NotFound
from esahayak.core.security import ensure_aware, now_utc
from esahayak.models.buyer import Buyer, Status
from esahayak.schemas.buyer import BuyerCreate, BuyerFilters, BuyerUpdate, PaginationOut
from esahayak.services import history

logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    "fullName": Buyer.full_name,
    "phone": Buyer.phone,
    "city": Buyer.city,
    "propertyType": Buyer.property_type,
    "status": Buyer.status,
    "updatedAt": Buyer.updated_at,
}


def filtered_query(filters: BuyerFilters) -> Select:
    """SELECT for the filters, ordered by the sort column then id."""
    stmt = select(Buyer)
    if filters.search:
        pattern = f"%{filters.search}%"
        stmt = stmt.where(
            or_(
                Buyer.full_name.ilike(pattern),
                Buyer.phone.ilike(pattern),
                Buyer.email.ilike(pattern),
            )
        )
    if filters.city:
        stmt = stmt.where(Buyer.city == filters.city)
    if filters.property_type:
        stmt = stmt.where(Buyer.property_type == filters.property_type)
    if filters.status:
        stmt = stmt.where(Buyer.status == filters.status)
    if filters.timeline:
        stmt = stmt.where(Buyer.timeline == filters.timeline)

    column = SORT_COLUMNS[filters.sort_by]
    if filters.sort_order == "asc":
        return stmt.order_by(column.asc(), Buyer.id.asc())
    return stmt.order_by(column.desc(), Buyer.id.desc())


def list_buyers(db: Session, filters: BuyerFilters) -> Tuple[List[Buyer], PaginationOut]:
    stmt = filtered_query(filters)
    total = db.execute(select(func.count()).select_from(stmt.order_by(None).subquery())).scalar_one()
    offset = (filters.page - 1) * filters.limit
    rows = db.execute(stmt.offset(offset).limit(filters.limit)).scalars().all()

    total_pages = ceil(total / filters.limit) if total else 0
    pagination = PaginationOut(
        page=filters.page,
        limit=filters.limit,
        total_count=total,
        total_pages=total_pages,
        has_next_page=filters.page < total_pages,
        has_prev_page=filters.page > 1,
    )
    return list(rows), pagination


def all_matching(db: Session, filters: BuyerFilters, cap: Optional[int] = None) -> List[Buyer]:
    stmt = filtered_query(filters)
    if cap is not None:
        stmt = stmt.limit(cap)
    return list(db.execute(stmt).scalars().all())


def get_buyer(db: Session, buyer_id: UUID) -> Optional[Buyer]:
    return db.get(Buyer, buyer_id)


def get_owned(db: Session, buyer_id: UUID, user_id: UUID, action: str = "edit") -> Buyer:
    buyer = get_buyer(db, buyer_id)
    if buyer is None:
        raise NotFound("Buyer not found")
    if buyer.owner_id != user_id:
        raise Forbidden(f"You can only {action} your own leads")
    return buyer


def create_buyer(db: Session, body: BuyerCreate, owner_id: UUID) -> Buyer:
    now = now_utc()
    buyer = Buyer(
        **body.model_dump(),
        status=Status.NEW,
        owner_id=owner_id,
        created_at=now,
        updated_at=now,
    )
    db.add(buyer)
    db.flush()
    history.record(db, buyer.id, owner_id, history.CREATED_DIFF, changed_at=now)
    db.flush()
    logger.info("Buyer %s created by %s", buyer.id, owner_id)
    return buyer


def update_buyer(db: Session, buyer_id: UUID, body: BuyerUpdate, user_id: UUID) -> Buyer:
    buyer = get_owned(db, buyer_id, user_id, action="edit")

    if body.updated_at is not None:
        current = ensure_aware(buyer.updated_at)
        if ensure_aware(body.updated_at) != current:
            raise Conflict(currentUpdatedAt=current.isoformat())

    # PUT replaces the lead; status is kept when omitted
    changes = body.model_dump(exclude={"updated_at"})
    if changes["status"] is None:
        changes.pop("status")

    diff = history.compute_diff(buyer, changes)
    for attr, value in changes.items():
        setattr(buyer, attr, value)
    buyer.updated_at = now_utc()

    if diff:
        history.record(db, buyer.id, user_id, diff, changed_at=buyer.updated_at)
    db.flush()
    logger.info("Buyer %s updated by %s (%d field(s) changed)", buyer.id, user_id, len(diff))
    return buyer


def delete_buyer(db: Session, buyer_id: UUID, user_id: UUID) -> None:
    buyer = get_owned(db, buyer_id, user_id, action="delete")
    db.delete(buyer)
    db.flush()
    logger.info("Buyer %s deleted by %s", buyer_id, user_id)
