from __future__ import annotations

import logging
import re
from urllib.parse import unquote

from ..schemas import ContactFields

logger = logging.getLogger(__name__)

TEL_STRIP_RE = re.compile(r"[^\d+\-\s()]")


def _strip_scheme(text: str, scheme: str) -> str:
    s = text.strip()
    if s.lower().startswith(scheme):
        return s[len(scheme):]
    return s


def parse_mailto(text: str) -> ContactFields:
    """``mailto:addr?subject=..`` -> email. Query parameters are ignored."""
    out = ContactFields()
    try:
        addr = _strip_scheme(text, "mailto:").split("?", 1)[0]
        out.email = unquote(addr, errors="strict").strip()
    except (UnicodeDecodeError, ValueError) as e:
        logger.warning("could not parse mailto payload: %s", e)
    return out


def parse_tel(text: str) -> ContactFields:
    """``tel:`` -> cleaned number in both phone_number and mobile."""
    out = ContactFields()
    number = TEL_STRIP_RE.sub("", unquote(_strip_scheme(text, "tel:"))).strip()
    if not number:
        logger.warning("tel payload carried no dialable characters: %r", text)
    out.phone_number = number
    out.mobile = number
    return out
