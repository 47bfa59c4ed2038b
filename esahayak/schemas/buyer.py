"""
Validation layer for buyer leads.

Wire names are camelCase (``fullName``, ``budgetMin``); attributes are
snake_case. Every model here is a pure parse/validate step: callers get
either a normalized value or a pydantic ``ValidationError`` whose entries
carry the field path and message.
"""
import re
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Annotated
from uuid import UUID

from pydantic import (
    AfterValidator, BaseModel, ConfigDict, EmailStr, Field, NonNegativeInt,
    StringConstraints, ValidationInfo, field_validator, model_validator,
)
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

from esahayak.core.security import ensure_aware
from esahayak.models.buyer import (
    BHK_REQUIRED_TYPES, Bhk, City, PropertyType, Purpose, Source, Status, Timeline,
)

PHONE_RE = re.compile(r"^\d{10,15}$")

FullNameStr = Annotated[str, StringConstraints(min_length=2, max_length=80, strip_whitespace=True)]
NotesStr = Annotated[str, StringConstraints(max_length=1000)]
AwareDatetime = Annotated[datetime, AfterValidator(ensure_aware)]

SortField = Literal["fullName", "phone", "city", "propertyType", "status", "updatedAt"]

# Columns a CSV import must carry (also the first columns of an export)
CSV_HEADERS = [
    "fullName", "email", "phone", "city", "propertyType", "bhk", "purpose",
    "budgetMin", "budgetMax", "timeline", "source", "notes", "tags", "status",
]
# Optional columns where an empty cell means "absent"
CSV_OPTIONAL = {"email", "bhk", "budgetMin", "budgetMax", "notes", "tags", "status"}


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def parse_csv_tags(tags: Optional[str]) -> List[str]:
    if not tags or not tags.strip():
        return []
    return [t.strip() for t in tags.split(",") if t.strip()]


def stringify_tags(tags: Optional[List[str]]) -> str:
    return ", ".join(tags or [])


# ---------- write models ----------

class BuyerFields(CamelModel):
    full_name: FullNameStr
    email: Optional[EmailStr] = None
    phone: str
    city: City
    property_type: PropertyType
    bhk: Optional[Bhk] = Field(default=None, validate_default=True)
    purpose: Purpose
    budget_min: Optional[NonNegativeInt] = None
    budget_max: Optional[NonNegativeInt] = Field(default=None, validate_default=True)
    timeline: Timeline
    source: Source
    notes: Optional[NotesStr] = None
    tags: List[str] = Field(default_factory=list)

    @field_validator("email", "notes", "bhk", mode="before")
    @classmethod
    def _blank_is_absent(cls, v):
        if isinstance(v, str) and v.strip() == "":
            return None
        return v

    @field_validator("phone")
    @classmethod
    def _phone_digits(cls, v: str) -> str:
        if not PHONE_RE.match(v):
            raise PydanticCustomError("invalid_phone", "Phone must be 10-15 digits")
        return v

    @field_validator("bhk")
    @classmethod
    def _bhk_required(cls, v, info: ValidationInfo):
        if v is None and info.data.get("property_type") in BHK_REQUIRED_TYPES:
            raise PydanticCustomError("missing_field", "BHK is required for Apartment and Villa")
        return v

    @field_validator("budget_max")
    @classmethod
    def _budget_range(cls, v, info: ValidationInfo):
        low = info.data.get("budget_min")
        if v is not None and low is not None and v < low:
            raise PydanticCustomError(
                "invalid_range", "Budget max must be greater than or equal to budget min"
            )
        return v


class BuyerCreate(BuyerFields):
    pass


class BuyerUpdate(BuyerFields):
    status: Optional[Status] = None
    # last updatedAt the client saw; enables the optimistic-concurrency check
    updated_at: Optional[AwareDatetime] = None


class BuyerCsvRow(BuyerFields):
    """One CSV data row. Cells arrive as strings; tags as "a, b, c"."""
    status: Status = Status.NEW

    @field_validator("tags", mode="before")
    @classmethod
    def _split_tags(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return parse_csv_tags(v)
        return v

    @field_validator("status", mode="before")
    @classmethod
    def _default_status(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            return Status.NEW
        return v


def normalize_csv_row(row: Dict[str, Any]) -> Dict[str, Any]:
    """Trim cells and drop empty optional cells so they validate as absent."""
    out: Dict[str, Any] = {}
    for key in CSV_HEADERS:
        raw = row.get(key)
        value = raw.strip() if isinstance(raw, str) else raw
        if key in CSV_OPTIONAL and (value is None or value == ""):
            continue
        out[key] = "" if value is None else value
    return out


# ---------- query models ----------

# deepest reachable page; keeps OFFSET inside a 64-bit integer
MAX_PAGE = 10_000


class BuyerFilters(CamelModel):
    page: int = Field(default=1, ge=1, le=MAX_PAGE)
    limit: int = Field(default=10, ge=1, le=50)
    search: Optional[str] = None
    city: Optional[City] = None
    property_type: Optional[PropertyType] = None
    status: Optional[Status] = None
    timeline: Optional[Timeline] = None
    sort_by: SortField = "updatedAt"
    sort_order: Literal["asc", "desc"] = "desc"

    @model_validator(mode="before")
    @classmethod
    def _drop_blank_params(cls, data):
        # ?city=&status= from a form means "no filter"
        if isinstance(data, dict):
            return {
                k: (v.strip() if isinstance(v, str) else v)
                for k, v in data.items()
                if not (isinstance(v, str) and v.strip() == "")
            }
        return data


# ---------- responses ----------

class BuyerOut(CamelModel):
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)

    id: UUID
    full_name: str
    email: Optional[str] = None
    phone: str
    city: City
    property_type: PropertyType
    bhk: Optional[Bhk] = None
    purpose: Purpose
    budget_min: Optional[int] = None
    budget_max: Optional[int] = None
    timeline: Timeline
    source: Source
    status: Status
    notes: Optional[str] = None
    tags: List[str] = []
    owner_id: UUID
    created_at: AwareDatetime
    updated_at: AwareDatetime


class HistoryOut(CamelModel):
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)

    id: UUID
    changed_at: AwareDatetime
    changed_by: UUID
    diff: Dict[str, Any]


class BuyerDetailOut(BaseModel):
    buyer: BuyerOut
    history: List[HistoryOut]


class PaginationOut(CamelModel):
    page: int
    limit: int
    total_count: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool


class BuyerListOut(BaseModel):
    buyers: List[BuyerOut]
    pagination: PaginationOut


class CsvRowError(BaseModel):
    row: int
    field: str
    message: str
    value: Any = None


class ImportResultOut(CamelModel):
    total_rows: int
    valid_rows: int
    error_rows: int
    errors: List[CsvRowError]
    imported_ids: List[UUID]


class MessageResponse(BaseModel):
    message: str
