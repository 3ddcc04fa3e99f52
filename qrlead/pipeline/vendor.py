"""
Vendor JSON payload - profile data embedded by QR landing-page builders

Digital business-card pages served by QR generator vendors carry the whole
card as a script variable, e.g.::

    <script>var __savedQrCodeParams = {"short_url": "x7Kp2", "content": [...]};</script>

or set it client-side (``window.__savedQrCodeParams = JSON.parse("...")``).
The ``content`` list holds typed components: ``profile`` (name, company,
designation), ``contact`` / ``contact_shortcuts`` (phone, mobile, email
entries) and ``address``. The mapper is tolerant of nesting
and of alternate key names because the layout differs between templates.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, Iterator, Optional
from urllib.parse import urljoin, urlparse

from ..schemas import ContactFields
from .heuristics import EMAIL_RE, digit_count
from .jsonblob import first_json_object

logger = logging.getLogger(__name__)

ASSIGN_RE = re.compile(r"\s*[=:]\s*(JSON\.parse\(\s*)?")

NAME_KEYS = ("name", "full_name", "fullName")
FIRST_NAME_KEYS = ("first_name", "firstName", "fname")
LAST_NAME_KEYS = ("last_name", "lastName", "lname")
COMPANY_KEYS = ("company", "company_name", "organization", "org")
POSITION_KEYS = ("desg", "designation", "job_title", "jobTitle", "title", "position")
CONTACT_VALUE_KEYS = ("value", "number", "phone", "email", "link", "url")
PHONE_TYPES = {"phone", "tel", "call", "work", "office", "landline", "telephone"}
MOBILE_TYPES = {"mobile", "cell", "whatsapp", "sms"}
EMAIL_TYPES = {"email", "mail", "e-mail"}


def _parse_assigned(html: str, start: int, is_json_parse: bool) -> Optional[Dict[str, Any]]:
    if is_json_parse:
        if start >= len(html) or html[start] != '"':
            return None
        try:
            literal, _ = json.JSONDecoder().raw_decode(html, start)
            data = json.loads(literal)
        except json.JSONDecodeError:
            return None
        return data if isinstance(data, dict) else None
    if start >= len(html) or html[start] != "{":
        return None
    return first_json_object(html, start)


def find_vendor_payload(html: str | None, marker: str) -> Optional[Dict[str, Any]]:
    """Locate and decode the vendor's script variable in raw or rendered HTML."""
    if not html or not marker:
        return None
    idx = html.find(marker)
    while idx != -1:
        after = idx + len(marker)
        m = ASSIGN_RE.match(html, after)
        if m:
            data = _parse_assigned(html, m.end(), bool(m.group(1)))
            if data:
                return data
        idx = html.find(marker, after)
    return None


def parse_vendor_global(raw: str | None) -> Optional[Dict[str, Any]]:
    """Decode the JSON string read from ``window[marker]`` in the browser."""
    if not raw:
        return None
    try:
        data = json.loads(raw)
        if isinstance(data, str):
            data = json.loads(data)
    except json.JSONDecodeError:
        logger.debug("vendor global is not JSON")
        return None
    return data if isinstance(data, dict) else None


def _walk(node: Any) -> Iterator[Dict[str, Any]]:
    if isinstance(node, dict):
        yield node
        for v in node.values():
            yield from _walk(v)
    elif isinstance(node, list):
        for v in node:
            yield from _walk(v)


def _first(d: Dict[str, Any], keys: tuple[str, ...]) -> str:
    for k in keys:
        v = d.get(k)
        if isinstance(v, (str, int)) and str(v).strip():
            return str(v).strip()
    return ""


def _component(d: Dict[str, Any]) -> str:
    return str(d.get("component") or d.get("type_of_component") or "").lower()


def _map_profile(d: Dict[str, Any], out: ContactFields) -> None:
    first, last = _first(d, FIRST_NAME_KEYS), _first(d, LAST_NAME_KEYS)
    if first or last:
        out.first_name = out.first_name or first
        out.last_name = out.last_name or last
    elif not out.first_name:
        name = _first(d, NAME_KEYS)
        if name:
            out.set_full_name(name)
    out.company = out.company or _first(d, COMPANY_KEYS)
    out.position = out.position or _first(d, POSITION_KEYS)


def _map_contact_entry(d: Dict[str, Any], out: ContactFields) -> None:
    kind = str(d.get("type") or d.get("contact_type") or "").lower()
    value = _first(d, CONTACT_VALUE_KEYS)
    if not value:
        return
    if value.lower().startswith(("mailto:", "tel:")):
        value = value.split(":", 1)[1]
    if kind in EMAIL_TYPES or (not kind and EMAIL_RE.fullmatch(value)):
        out.email = out.email or value
    elif kind in MOBILE_TYPES and 7 <= digit_count(value) <= 15:
        out.mobile = out.mobile or value
    elif kind in PHONE_TYPES and 7 <= digit_count(value) <= 15:
        out.phone_number = out.phone_number or value


def _map_address(d: Dict[str, Any], out: ContactFields) -> None:
    if out.address or out.city:
        return
    out.address = _first(d, ("street", "street_address", "address_line1", "address"))
    out.city = _first(d, ("city", "locality"))
    out.zipcode = _first(d, ("zip", "zipcode", "zip_code", "postal_code", "pincode"))
    out.country = _first(d, ("country", "country_name"))


def vendor_website(data: Dict[str, Any], page_url: str) -> str:
    literal = _first(data, ("website", "web_url", "websiteUrl"))
    if literal:
        return literal
    short = _first(data, ("short_url", "shortUrl", "short_link"))
    if not short:
        return ""
    if urlparse(short).scheme:
        return short
    return urljoin(page_url, short)


def map_vendor_payload(data: Dict[str, Any], page_url: str) -> ContactFields:
    """Map the vendor payload onto the canonical fields (first value per field wins)."""
    out = ContactFields()
    for d in _walk(data):
        comp = _component(d)
        if comp == "profile" or (not comp and any(k in d for k in POSITION_KEYS) and any(k in d for k in NAME_KEYS)):
            _map_profile(d, out)
        elif comp == "address" or isinstance(d.get("city"), str):
            _map_address(d, out)
        elif "type" in d or "contact_type" in d:
            _map_contact_entry(d, out)
    if not out.phone_number and out.mobile:
        out.phone_number = out.mobile
    out.website = vendor_website(data, page_url)
    return out
