from enum import Enum
from uuid import uuid4
from sqlalchemy import Column, String, DateTime, ForeignKey, Integer, Text, Index, JSON, Uuid, Enum as SAEnum
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from esahayak.db.base import Base
from esahayak.core.security import now_utc


class City(str, Enum):
    CHANDIGARH = "Chandigarh"
    MOHALI = "Mohali"
    ZIRAKPUR = "Zirakpur"
    PANCHKULA = "Panchkula"
    OTHER = "Other"

class PropertyType(str, Enum):
    APARTMENT = "Apartment"
    VILLA = "Villa"
    PLOT = "Plot"
    OFFICE = "Office"
    RETAIL = "Retail"

class Bhk(str, Enum):
    ONE = "1"
    TWO = "2"
    THREE = "3"
    FOUR = "4"
    STUDIO = "Studio"

class Purpose(str, Enum):
    BUY = "Buy"
    RENT = "Rent"

class Timeline(str, Enum):
    ZERO_TO_THREE = "0-3m"
    THREE_TO_SIX = "3-6m"
    OVER_SIX = ">6m"
    EXPLORING = "Exploring"

class Source(str, Enum):
    WEBSITE = "Website"
    REFERRAL = "Referral"
    WALK_IN = "Walk-in"
    CALL = "Call"
    OTHER = "Other"

class Status(str, Enum):
    NEW = "New"
    QUALIFIED = "Qualified"
    CONTACTED = "Contacted"
    VISITED = "Visited"
    NEGOTIATION = "Negotiation"
    CONVERTED = "Converted"
    DROPPED = "Dropped"

# bhk is mandatory for these property types
BHK_REQUIRED_TYPES = frozenset({PropertyType.APARTMENT, PropertyType.VILLA})


def _enum(enum_cls, name: str):
    # persist the human values ("0-3m", "Walk-in"), not member names
    return SAEnum(enum_cls, name=name, values_callable=lambda e: [m.value for m in e], validate_strings=True)

JsonType = JSON().with_variant(JSONB(), "postgresql")


class Buyer(Base):
    """A buyer lead, owned by the user that created (or imported) it."""
    __tablename__ = "buyers"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    full_name = Column(String(80), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(15), nullable=False)
    city = Column(_enum(City, "city"), nullable=False)
    property_type = Column(_enum(PropertyType, "property_type"), nullable=False)
    bhk = Column(_enum(Bhk, "bhk"), nullable=True)
    purpose = Column(_enum(Purpose, "purpose"), nullable=False)
    budget_min = Column(Integer, nullable=True)
    budget_max = Column(Integer, nullable=True)
    timeline = Column(_enum(Timeline, "timeline"), nullable=False)
    source = Column(_enum(Source, "source"), nullable=False)
    status = Column(_enum(Status, "status"), nullable=False, default=Status.NEW)
    notes = Column(Text, nullable=True)
    tags = Column(JsonType, nullable=False, default=list)
    owner_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    # Timestamps (updated_at is also the optimistic-concurrency marker)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    owner = relationship("User")
    history = relationship(
        "BuyerHistory",
        back_populates="buyer",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="BuyerHistory.changed_at.desc()",
    )

    __table_args__ = (
        Index("buyers_owner_idx", "owner_id"),
        Index("buyers_status_idx", "status"),
        Index("buyers_city_idx", "city"),
        Index("buyers_property_type_idx", "property_type"),
        Index("buyers_updated_at_idx", "updated_at"),
        Index("buyers_phone_idx", "phone"),
    )


class BuyerHistory(Base):
    """Append-only audit row: field name -> {"old": ..., "new": ...}."""
    __tablename__ = "buyer_history"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    buyer_id = Column(Uuid(as_uuid=True), ForeignKey("buyers.id", ondelete="CASCADE"), nullable=False)
    changed_by = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    changed_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    diff = Column(JsonType, nullable=False)

    buyer = relationship("Buyer", back_populates="history")

    __table_args__ = (
        Index("buyer_history_buyer_idx", "buyer_id"),
        Index("buyer_history_changed_at_idx", "changed_at"),
    )
