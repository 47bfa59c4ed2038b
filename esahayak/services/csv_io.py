"""
CSV bulk import and export for buyer leads.

Import validates every row before touching the database, then inserts all
valid rows and their "imported" history entries in one flush. A failed
insert rolls the whole batch back.
"""
import csv
import io
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from esahayak.core.config import settings
from esahayak.core.errors import BadRequest, ImportDatabaseError
from esahayak.core.security import ensure_aware, now_utc
from esahayak.models.buyer import Buyer, BuyerHistory
from esahayak.schemas.buyer import (
    CSV_HEADERS, BuyerCsvRow, CsvRowError, ImportResultOut, normalize_csv_row, stringify_tags,
)
from esahayak.services import history

logger = logging.getLogger(__name__)

EXPORT_HEADERS = CSV_HEADERS + ["createdAt", "updatedAt"]
CSV_CONTENT_TYPES = {"text/csv", "application/csv", "application/vnd.ms-excel"}


@dataclass
class ParsedCsv:
    headers: List[str]
    rows: List[Dict[str, Any]] = field(default_factory=list)


def is_csv_upload(filename: Optional[str], content_type: Optional[str]) -> bool:
    ctype = (content_type or "").split(";")[0].strip().lower()
    return ctype in CSV_CONTENT_TYPES or (filename or "").lower().endswith(".csv")


def decode(raw: bytes) -> str:
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise BadRequest("Invalid CSV format", details=["File is not valid UTF-8 text"])


def parse_csv(text: str) -> ParsedCsv:
    """Read a header row plus data rows. Blank lines are skipped."""
    reader = csv.DictReader(io.StringIO(text, newline=""))
    try:
        headers = [h.strip() for h in (reader.fieldnames or [])]
        reader.fieldnames = headers
        rows = [row for row in reader if any((v or "").strip() for v in row.values() if isinstance(v, str))]
    except csv.Error as e:
        raise BadRequest("Invalid CSV format", details=[str(e)])
    return ParsedCsv(headers=headers, rows=rows)


def check_shape(parsed: ParsedCsv, max_rows: int) -> None:
    if not parsed.rows:
        raise BadRequest("CSV file is empty")
    if len(parsed.rows) > max_rows:
        raise BadRequest(f"CSV file contains too many rows. Maximum {max_rows} rows allowed.")
    missing = [h for h in CSV_HEADERS if h not in parsed.headers]
    if missing:
        raise BadRequest(
            "Missing required CSV headers",
            missingHeaders=missing,
            expectedHeaders=CSV_HEADERS,
        )


def validate_rows(rows: List[Dict[str, Any]]):
    """Returns (valid models, row errors). Row numbers start at 2 (after the header)."""
    valid: List[BuyerCsvRow] = []
    errors: List[CsvRowError] = []
    bad_rows = 0
    for i, row in enumerate(rows):
        row_number = i + 2
        try:
            valid.append(BuyerCsvRow.model_validate(normalize_csv_row(row)))
        except PydanticValidationError as e:
            bad_rows += 1
            for err in e.errors():
                loc = err.get("loc") or ()
                column = str(loc[0]) if loc else "general"
                errors.append(CsvRowError(
                    row=row_number,
                    field=column,
                    message=err.get("msg", "Invalid value"),
                    value=row.get(column, ""),
                ))
    return valid, errors, bad_rows


def import_buyers(db: Session, raw: bytes, owner_id: UUID) -> ImportResultOut:
    parsed = parse_csv(decode(raw))
    check_shape(parsed, settings.csv_max_rows)

    valid, errors, bad_rows = validate_rows(parsed.rows)

    imported_ids: List[UUID] = []
    if valid:
        now = now_utc()
        staged = [
            Buyer(id=uuid4(), owner_id=owner_id, created_at=now, updated_at=now, **row.model_dump())
            for row in valid
        ]
        try:
            db.add_all(staged)
            db.flush()
            db.add_all([
                BuyerHistory(buyer_id=b.id, changed_by=owner_id, changed_at=now, diff=history.IMPORTED_DIFF)
                for b in staged
            ])
            db.flush()
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Database error during CSV import (%d staged rows)", len(staged))
            raise ImportDatabaseError()
        imported_ids = [b.id for b in staged]

    logger.info(
        "CSV import by %s: %d rows, %d valid, %d with errors",
        owner_id, len(parsed.rows), len(valid), bad_rows,
    )
    return ImportResultOut(
        total_rows=len(parsed.rows),
        valid_rows=len(valid),
        error_rows=bad_rows,
        errors=errors,
        imported_ids=imported_ids,
    )


def _cell(value: Any) -> str:
    if value is None:
        return ""
    return str(getattr(value, "value", value))


def export_row(buyer: Buyer) -> Dict[str, str]:
    return {
        "fullName": buyer.full_name,
        "email": buyer.email or "",
        "phone": buyer.phone,
        "city": _cell(buyer.city),
        "propertyType": _cell(buyer.property_type),
        "bhk": _cell(buyer.bhk),
        "purpose": _cell(buyer.purpose),
        "budgetMin": _cell(buyer.budget_min),
        "budgetMax": _cell(buyer.budget_max),
        "timeline": _cell(buyer.timeline),
        "source": _cell(buyer.source),
        "notes": buyer.notes or "",
        "tags": stringify_tags(buyer.tags),
        "status": _cell(buyer.status),
        "createdAt": ensure_aware(buyer.created_at).isoformat(),
        "updatedAt": ensure_aware(buyer.updated_at).isoformat(),
    }


def export_csv(buyers: List[Buyer]) -> str:
    out = io.StringIO()
    writer = csv.DictWriter(out, fieldnames=EXPORT_HEADERS, lineterminator="\n")
    writer.writeheader()
    for buyer in buyers:
        writer.writerow(export_row(buyer))
    return out.getvalue()


def export_filename(day: Optional[date] = None) -> str:
    return f"buyers-export-{(day or now_utc().date()).isoformat()}.csv"
