"""
Page Extractors - contact fields from a rendered QR landing page

Each source (vendor JSON, JSON-LD, CSS/microdata selectors, visible text)
yields a tagged ``SourceFields``; ``merge_sources`` folds them into one
field set where the first source to supply a field wins.
"""

from __future__ import annotations

import html as html_lib
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import unquote

from selectolax.parser import HTMLParser, Node

from ..schemas import ContactFields
from .heuristics import (
    EMAIL_RE,
    clean_phone,
    digit_count,
    extract_email,
    extract_phone,
    guess_name,
    is_valid_company,
    is_valid_name,
    non_empty_lines,
    scan_company_and_position,
)
from .vendor import find_vendor_payload, map_vendor_payload, parse_vendor_global

logger = logging.getLogger(__name__)

MAX_SELECTOR_TEXT = 200


class PageSource(str, Enum):
    VENDOR_JSON = "vendor_json"
    JSON_LD = "json_ld"
    SELECTORS = "selectors"
    VISIBLE_TEXT = "visible_text"


@dataclass(frozen=True)
class SourceFields:
    source: PageSource
    fields: ContactFields


# Selectors for each canonical field, most specific first
NAME_SELECTORS = [
    "[itemprop='name']",
    ".vcard .fn", ".h-card .p-name", ".fn",
    ".profile-name", ".person-name", ".full-name", ".card-name", ".name",
    ".profile h1, .card h1, .business-card h1",
]
EMAIL_SELECTORS = ["a[href^='mailto:']", "a[href^='MAILTO:']", "[itemprop='email']", ".email", ".u-email"]
PHONE_SELECTORS = ["a[href^='tel:']", "a[href^='TEL:']", "[itemprop='telephone']", ".tel", ".phone", ".p-tel"]
COMPANY_SELECTORS = [
    "[itemprop='worksFor'] [itemprop='name']", "[itemprop='worksFor']",
    ".org", ".p-org", ".company", ".company-name", ".organization",
]
POSITION_SELECTORS = ["[itemprop='jobTitle']", ".title", ".p-job-title", ".job-title", ".position", ".designation", ".role"]
ADDRESS_SELECTORS = ["[itemprop='streetAddress']", ".street-address", ".p-street-address", ".address"]
CITY_SELECTORS = ["[itemprop='addressLocality']", ".locality", ".p-locality", ".city"]
ZIPCODE_SELECTORS = ["[itemprop='postalCode']", ".postal-code", ".p-postal-code", ".zip"]
COUNTRY_SELECTORS = ["[itemprop='addressCountry']", ".country-name", ".p-country-name", ".country"]


def merge_sources(sources: Iterable[SourceFields]) -> ContactFields:
    merged = ContactFields()
    for s in sources:
        merged.fill_from(s.fields)
    return merged


# -------------------------
# JSON-LD
# -------------------------
def _ld_entities(data: Any) -> List[Dict[str, Any]]:
    if isinstance(data, list):
        out: List[Dict[str, Any]] = []
        for item in data:
            out.extend(_ld_entities(item))
        return out
    if isinstance(data, dict):
        if isinstance(data.get("@graph"), list):
            return _ld_entities(data["@graph"])
        return [data]
    return []


def _is_person(entity: Dict[str, Any]) -> bool:
    t = entity.get("@type") or entity.get("type")
    types = t if isinstance(t, list) else [t]
    return "Person" in types


def _ld_text(v: Any) -> str:
    if isinstance(v, list):
        v = v[0] if v else ""
    if isinstance(v, dict):
        v = v.get("name") or ""
    return str(v).strip() if isinstance(v, (str, int)) else ""


def extract_json_ld(parser: HTMLParser) -> Optional[ContactFields]:
    """First schema.org ``Person`` found in ``application/ld+json`` scripts."""
    for script in parser.css("script[type='application/ld+json']"):
        raw = script.text(deep=True) or ""
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            continue
        for entity in _ld_entities(data):
            if not _is_person(entity):
                continue
            out = ContactFields()
            name = _ld_text(entity.get("name"))
            if name:
                out.set_full_name(name)
            out.first_name = _ld_text(entity.get("givenName")) or out.first_name
            out.last_name = _ld_text(entity.get("familyName")) or out.last_name
            out.title = _ld_text(entity.get("honorificPrefix"))
            out.position = _ld_text(entity.get("jobTitle"))
            out.company = _ld_text(entity.get("worksFor") or entity.get("affiliation") or entity.get("organization"))
            email = _ld_text(entity.get("email"))
            out.email = email[7:] if email.lower().startswith("mailto:") else email
            out.phone_number = _ld_text(entity.get("telephone"))
            out.website = _ld_text(entity.get("url"))
            addr = entity.get("address")
            if isinstance(addr, list):
                addr = addr[0] if addr else None
            if isinstance(addr, dict):
                out.address = _ld_text(addr.get("streetAddress"))
                out.city = _ld_text(addr.get("addressLocality"))
                out.zipcode = _ld_text(addr.get("postalCode"))
                out.country = _ld_text(addr.get("addressCountry"))
            elif isinstance(addr, str):
                out.address = addr.strip()
            if not out.is_empty():
                return out
    return None


# -------------------------
# Selectors / microdata
# -------------------------
def _node_value(node: Node) -> str:
    content = node.attributes.get("content")
    if content:
        return html_lib.unescape(content).strip()
    return " ".join((node.text(deep=True, separator=" ") or "").split())


def _href_value(node: Node, scheme: str) -> str:
    href = (node.attributes.get("href") or "").strip()
    if not href.lower().startswith(scheme):
        return ""
    return unquote(href[len(scheme):].split("?", 1)[0].split("#", 1)[0]).strip()


def _try_selectors(parser: HTMLParser, selectors: List[str], accept) -> str:
    for sel in selectors:
        for node in parser.css(sel):
            val = _node_value(node)
            if val and len(val) < MAX_SELECTOR_TEXT and accept(val):
                return val
    return ""


def _valid_email(v: str) -> bool:
    return bool(EMAIL_RE.fullmatch(v))


def _valid_phone(v: str) -> bool:
    return 7 <= digit_count(v) <= 15


def _first_href(parser: HTMLParser, selectors: List[str], scheme: str, accept) -> str:
    for sel in selectors:
        for node in parser.css(sel):
            val = _href_value(node, scheme)
            if val and accept(val):
                return val
    return ""


def extract_selectors(parser: HTMLParser) -> Optional[ContactFields]:
    out = ContactFields()
    out.first_name = _try_selectors(parser, NAME_SELECTORS, is_valid_name)
    if out.first_name:
        out.set_full_name(out.first_name)
    out.email = _first_href(parser, EMAIL_SELECTORS[:2], "mailto:", _valid_email) or \
        _try_selectors(parser, EMAIL_SELECTORS[2:], _valid_email)
    phone = _first_href(parser, PHONE_SELECTORS[:2], "tel:", _valid_phone) or \
        _try_selectors(parser, PHONE_SELECTORS[2:], _valid_phone)
    out.phone_number = clean_phone(phone)
    out.company = _try_selectors(parser, COMPANY_SELECTORS, is_valid_company)
    out.position = _try_selectors(parser, POSITION_SELECTORS, lambda v: "@" not in v)
    out.address = _try_selectors(parser, ADDRESS_SELECTORS, lambda v: True)
    out.city = _try_selectors(parser, CITY_SELECTORS, lambda v: True)
    out.zipcode = _try_selectors(parser, ZIPCODE_SELECTORS, lambda v: True)
    out.country = _try_selectors(parser, COUNTRY_SELECTORS, lambda v: True)
    return None if out.is_empty() else out


# -------------------------
# Visible text fallback
# -------------------------
def html_to_text(parser: HTMLParser) -> str:
    for tag in parser.css("script, style, noscript, template"):
        tag.decompose()
    body = parser.body or parser.root
    if body is None:
        return ""
    return body.text(deep=True, separator="\n")


def extract_visible_text(text: str) -> Optional[ContactFields]:
    """Regex + line-position heuristics over the page's visible text."""
    lines = non_empty_lines(text)
    if not lines:
        return None
    out = ContactFields(email=extract_email(text), phone_number=extract_phone(text))
    name = guess_name(text)
    if name and is_valid_name(" ".join(p for p in name if p)):
        out.first_name, out.last_name = name
    out.fill_from(scan_company_and_position(lines))
    return None if out.is_empty() else out


def extract_page_sources(
    html: str,
    *,
    visible_text: str | None = None,
    vendor_marker: str | None = None,
    vendor_global: str | None = None,
    page_url: str = "",
) -> List[SourceFields]:
    """Run every page source in priority order.

    Visible text only runs when the structured sources found no name,
    email or phone; it is the noisiest signal.
    """
    parser = HTMLParser(html or "")
    found: List[SourceFields] = []

    ld = extract_json_ld(parser)
    if ld:
        found.append(SourceFields(PageSource.JSON_LD, ld))

    vendor = parse_vendor_global(vendor_global) or (find_vendor_payload(html, vendor_marker) if vendor_marker else None)
    if vendor:
        found.append(SourceFields(PageSource.VENDOR_JSON, map_vendor_payload(vendor, page_url)))

    sel = extract_selectors(parser)
    if sel:
        found.append(SourceFields(PageSource.SELECTORS, sel))

    if not merge_sources(found).has_core():
        text = visible_text if visible_text else html_to_text(parser)
        vt = extract_visible_text(text)
        if vt:
            found.append(SourceFields(PageSource.VISIBLE_TEXT, vt))

    logger.debug("page sources: %s", [s.source.value for s in found])
    return found
