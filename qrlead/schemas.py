"""
QR Lead Extraction - Data Schemas

Canonical contact record, the intermediate field set every parser and
strategy produces, and the per-call extraction result.
"""

from __future__ import annotations

from dataclasses import dataclass, fields as dc_fields
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class PayloadKind(str, Enum):
    """Classification tag assigned to every scanned payload."""
    ENTRY_CODE = "entry_code"
    MAILTO = "mailto"
    TEL = "tel"
    VCARD = "vcard"
    URL = "url"
    PLAINTEXT = "plaintext"


# Canonical field order; also the order fields are reported in exports.
CANONICAL_FIELDS: tuple[str, ...] = (
    "title",
    "first_name",
    "last_name",
    "company",
    "position",
    "department",
    "email",
    "phone_number",
    "mobile",
    "website",
    "address",
    "city",
    "zipcode",
    "country",
)


@dataclass
class ContactFields:
    """Mutable field set produced by a single extraction source.

    Carries ``unique_code`` next to the canonical fields; the normalizer
    moves it out of the record into ``ExtractionResult.entry_code``.
    """
    title: str = ""
    first_name: str = ""
    last_name: str = ""
    company: str = ""
    position: str = ""
    department: str = ""
    email: str = ""
    phone_number: str = ""
    mobile: str = ""
    website: str = ""
    address: str = ""
    city: str = ""
    zipcode: str = ""
    country: str = ""
    unique_code: str = ""

    def fill_from(self, other: Optional["ContactFields"]) -> "ContactFields":
        """Copy every value of ``other`` whose slot here is still empty."""
        if other is None:
            return self
        for f in dc_fields(self):
            if not getattr(self, f.name) and getattr(other, f.name):
                setattr(self, f.name, getattr(other, f.name))
        return self

    def filled_count(self) -> int:
        return sum(1 for f in dc_fields(self) if str(getattr(self, f.name) or "").strip())

    def is_empty(self) -> bool:
        return self.filled_count() == 0

    def has_core(self) -> bool:
        """True when a name, an email or a phone number is present."""
        return bool(self.first_name or self.last_name or self.email or self.phone_number or self.mobile)

    def set_full_name(self, full_name: str) -> None:
        parts = full_name.split()
        if not parts:
            return
        self.first_name = parts[0]
        self.last_name = " ".join(parts[1:])


class ContactRecord(BaseModel):
    """Normalized contact record; every canonical key is always present."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    title: str = ""
    first_name: str = ""
    last_name: str = ""
    company: str = ""
    position: str = ""
    department: str = ""
    email: str = ""
    phone_number: str = ""
    mobile: str = ""
    website: str = ""
    address: str = ""
    city: str = ""
    zipcode: str = ""
    country: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        if v is None:
            return ""
        return str(v).strip()


class ExtractionResult(BaseModel):
    """Outcome of one ``extract`` call. Immutable once returned."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    success: bool
    kind: PayloadKind
    raw_data: str = ""
    record: Optional[ContactRecord] = None
    entry_code: Optional[str] = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    rating: int = Field(default=1, ge=1, le=5, description="Quality score (1-5)")
    method: Optional[str] = Field(default=None, description="Strategy that produced the record")
    error: Optional[str] = None

    def to_json(self, indent: int | None = 2) -> str:
        return self.model_dump_json(by_alias=True, indent=indent)
