from uuid import UUID

from fastapi import APIRouter, Depends, File, Request, Response, UploadFile, status
from sqlalchemy.orm import Session

from esahayak.api.deps import get_db
from esahayak.api.deps_auth import current_user, rate_limit
from esahayak.core.errors import BadRequest, NotFound
from esahayak.models.auth_models import User
from esahayak.schemas.buyer import (
    BuyerCreate, BuyerDetailOut, BuyerFilters, BuyerListOut, BuyerOut, BuyerUpdate,
    HistoryOut, ImportResultOut, MessageResponse,
)
from esahayak.services import buyers as buyer_service
from esahayak.services import csv_io, history
from esahayak.services.rate_limit import api_limiter, import_limiter, mutation_limiter

router = APIRouter(prefix="/api/buyers", tags=["buyers"])

# export ignores paging; one file holds at most this many rows
EXPORT_LIMIT = 10_000


def list_filters(request: Request) -> BuyerFilters:
    return BuyerFilters.model_validate(dict(request.query_params))


def export_filters(request: Request) -> BuyerFilters:
    params = dict(request.query_params)
    params.pop("page", None)
    params.pop("limit", None)
    return BuyerFilters.model_validate(params)


@router.get(
    "",
    response_model=BuyerListOut,
    summary="List buyer leads",
    description="""
Filter by `search` (name/phone/email substring), `city`, `propertyType`,
`status`, `timeline`; sort with `sortBy`/`sortOrder`; paginate with
`page`/`limit` (max 50).
""",
)
def list_buyers(
    user: User = Depends(current_user),
    _rl=Depends(rate_limit(api_limiter)),
    filters: BuyerFilters = Depends(list_filters),
    db: Session = Depends(get_db),
):
    rows, pagination = buyer_service.list_buyers(db, filters)
    return BuyerListOut(buyers=[BuyerOut.model_validate(b) for b in rows], pagination=pagination)


@router.post(
    "",
    response_model=BuyerOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create a buyer lead",
)
def create_buyer(
    body: BuyerCreate,
    user: User = Depends(current_user),
    _rl=Depends(rate_limit(mutation_limiter)),
    db: Session = Depends(get_db),
):
    buyer = buyer_service.create_buyer(db, body, owner_id=user.id)
    db.commit()
    db.refresh(buyer)
    return buyer


@router.get(
    "/export",
    summary="Export matching leads as CSV",
    description="Accepts the list filters; returns every matching row as a `text/csv` attachment.",
    responses={200: {"content": {"text/csv": {}}}},
)
def export_buyers(
    user: User = Depends(current_user),
    _rl=Depends(rate_limit(api_limiter)),
    filters: BuyerFilters = Depends(export_filters),
    db: Session = Depends(get_db),
):
    rows = buyer_service.all_matching(db, filters, cap=EXPORT_LIMIT)
    if not rows:
        raise NotFound("No buyers found matching the criteria")
    return Response(
        content=csv_io.export_csv(rows),
        media_type="text/csv",
        headers={
            "Content-Disposition": f'attachment; filename="{csv_io.export_filename()}"',
            "Cache-Control": "no-cache",
        },
    )


@router.post(
    "/import",
    response_model=ImportResultOut,
    summary="Import leads from a CSV file",
    description="""
Upload a CSV (max 200 data rows) with the header row
`fullName,email,phone,city,propertyType,bhk,purpose,budgetMin,budgetMax,timeline,source,notes,tags,status`.

Valid rows are inserted together; invalid rows are reported per field with
their row number (the first data row is row 2).
""",
)
async def import_buyers(
    file: UploadFile = File(None),
    user: User = Depends(current_user),
    _rl=Depends(rate_limit(import_limiter)),
    db: Session = Depends(get_db),
):
    if file is None:
        raise BadRequest("No file provided")
    if not csv_io.is_csv_upload(file.filename, file.content_type):
        raise BadRequest("Invalid file type. Please upload a CSV file.")
    raw = await file.read()
    result = csv_io.import_buyers(db, raw, owner_id=user.id)
    db.commit()
    return result


@router.get("/{buyer_id}", response_model=BuyerDetailOut, summary="Get a lead with its last 5 changes")
def get_buyer(
    buyer_id: UUID,
    user: User = Depends(current_user),
    _rl=Depends(rate_limit(api_limiter)),
    db: Session = Depends(get_db),
):
    buyer = buyer_service.get_buyer(db, buyer_id)
    if not buyer:
        raise NotFound("Buyer not found")
    entries = history.recent(db, buyer_id, limit=5)
    return BuyerDetailOut(
        buyer=BuyerOut.model_validate(buyer),
        history=[HistoryOut.model_validate(h) for h in entries],
    )


@router.put(
    "/{buyer_id}",
    response_model=BuyerOut,
    summary="Update a lead you own",
    description="""
Send the full lead. Include the `updatedAt` you last saw to get a `409` instead
of overwriting someone else's change.
""",
)
def update_buyer(
    buyer_id: UUID,
    body: BuyerUpdate,
    user: User = Depends(current_user),
    _rl=Depends(rate_limit(mutation_limiter)),
    db: Session = Depends(get_db),
):
    buyer = buyer_service.update_buyer(db, buyer_id, body, user_id=user.id)
    db.commit()
    db.refresh(buyer)
    return buyer


@router.delete("/{buyer_id}", response_model=MessageResponse, summary="Delete a lead you own")
def delete_buyer(
    buyer_id: UUID,
    user: User = Depends(current_user),
    _rl=Depends(rate_limit(mutation_limiter)),
    db: Session = Depends(get_db),
):
    buyer_service.delete_buyer(db, buyer_id, user_id=user.id)
    db.commit()
    return MessageResponse(message="Buyer deleted successfully")
