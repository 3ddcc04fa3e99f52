from __future__ import annotations

import re
from urllib.parse import urlparse

from ..schemas import PayloadKind


ENTRY_CODE_RE = re.compile(r"^[A-Za-z0-9_-]+$")


def is_entry_code(text: str) -> bool:
    """Short bare token (3-30 chars of ``[A-Za-z0-9_-]``) with no URL/email punctuation."""
    s = text.strip()
    if not (3 <= len(s) <= 30):
        return False
    if not ENTRY_CODE_RE.match(s):
        return False
    return not any(ch in s for ch in ".@/")


def is_url(text: str) -> bool:
    try:
        p = urlparse(text.strip())
    except ValueError:
        return False
    return p.scheme.lower() in ("http", "https") and bool(p.netloc)


def is_vcard(text: str) -> bool:
    s = text.strip()
    return s.upper().startswith("BEGIN:VCARD") and "END:VCARD" in s.upper()


def classify(text: str) -> PayloadKind:
    """Tag a payload with exactly one ``PayloadKind``.

    Order matters: the entry-code test runs first so short bare tokens never
    reach the URL/email heuristics.
    """
    s = text.strip()
    if is_entry_code(s):
        return PayloadKind.ENTRY_CODE
    low = s.lower()
    if low.startswith("mailto:"):
        return PayloadKind.MAILTO
    if low.startswith("tel:"):
        return PayloadKind.TEL
    if is_url(s):
        return PayloadKind.URL
    if is_vcard(s):
        return PayloadKind.VCARD
    return PayloadKind.PLAINTEXT
