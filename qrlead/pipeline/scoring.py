from __future__ import annotations

from dataclasses import asdict
from typing import Optional, Tuple

from ..schemas import CANONICAL_FIELDS, ContactFields, ContactRecord, PayloadKind


# Filled-field count that maps to full confidence, per payload kind
DENOMINATORS = {
    PayloadKind.VCARD: 5,
    PayloadKind.URL: 10,
    PayloadKind.PLAINTEXT: 3,
}
EMPTY_PLAINTEXT_CONFIDENCE = 0.3


def score(fields: ContactFields, kind: PayloadKind) -> float:
    """Confidence in [0, 1], rounded to 2 decimals."""
    if kind == PayloadKind.ENTRY_CODE:
        return 1.0
    if kind == PayloadKind.MAILTO:
        return 1.0 if fields.email.strip() else 0.5
    if kind == PayloadKind.TEL:
        return 1.0 if fields.phone_number.strip() else 0.5
    filled = fields.filled_count()
    if kind == PayloadKind.PLAINTEXT and filled == 0:
        return EMPTY_PLAINTEXT_CONFIDENCE
    ratio = filled / DENOMINATORS[kind]
    return round(min(1.0, max(0.0, ratio)), 2)


def normalize(fields: ContactFields) -> Tuple[ContactRecord, Optional[str]]:
    """Trimmed record with every canonical key, and the entry code split out."""
    values = asdict(fields)
    record = ContactRecord(**{k: values.get(k, "") for k in CANONICAL_FIELDS})
    code = (fields.unique_code or "").strip()
    return record, code or None


def rate(fields: ContactFields) -> int:
    """Quality rating 1-5 from which contact methods and identity fields are present.

    5: email + phone + name + company
    4: email + phone + name, or one contact method + name + company
    3: one contact method (with or without a name)
    2: name or company only
    1: nothing usable
    """
    has_email = bool(fields.email.strip())
    has_phone = bool(fields.phone_number.strip() or fields.mobile.strip())
    has_name = bool(fields.first_name.strip() or fields.last_name.strip())
    has_company = bool(fields.company.strip())

    if has_email and has_phone and has_name and has_company:
        return 5
    if has_email and has_phone and has_name:
        return 4
    if (has_email or has_phone) and has_name and has_company:
        return 4
    if has_email or has_phone:
        return 3
    if has_name or has_company:
        return 2
    return 1
