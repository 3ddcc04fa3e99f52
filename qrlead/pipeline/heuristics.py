"""
Plain-Text Heuristics - regex extraction of email, phone and entry code

Also hosts the name/company/position validators shared with the page
scraper's visible-text fallback.
"""

from __future__ import annotations

import re
from typing import List, Optional

from ..schemas import ContactFields


EMAIL_RE = re.compile(r"[\w.+-]+@[\w.-]+\.[A-Za-z]{2,}")

# Tried in order; the first candidate with 7-15 digits wins.
PHONE_PATTERNS = [
    # North American, optional country code, 4-5 digit tail for extensions
    re.compile(r"(?:\+?\d{1,3}[-. \t]?)?\(?\d{3}\)?[-. \t]?\d{3}[-. \t]?\d{4,5}"),
    # International grouped
    re.compile(r"\+?\d{1,3}[-. \t]?\d{2,4}[-. \t]?\d{2,4}[-. \t]?\d{2,4}[-. \t]?\d{0,4}"),
    # Bare international digit run
    re.compile(r"\+?\d{10,15}"),
    re.compile(r"\(\d{3}\)[ \t]?\d{3}[-. \t]\d{4}"),
    re.compile(r"\d{3}[-. \t]\d{3}[-. \t]\d{4}"),
]
PHONE_CLEAN_RE = re.compile(r"[^\d+\-\s()]")

UNIQUE_CODE_KV_PATTERNS = [
    re.compile(
        r"\b(?:code|uniquecode|unique_code|entrycode|entry_code|uniqueid|unique_id)\s*[=:]\s*([A-Za-z0-9]{9,15})\b",
        re.I,
    ),
    re.compile(r"\bNOTE\s*:\s*(?:code|uniquecode|unique_code)\s*[=:]\s*([A-Za-z0-9]{9,15})\b", re.I),
]
UNIQUE_CODE_TOKEN_RE = re.compile(r"\b([A-Za-z0-9]{9,15})\b")
CODE_CONTEXT_MARKERS = ("@", "http", "www")

THREE_DIGITS_RE = re.compile(r"\d{3}")
NAME_RE = re.compile(r"^[A-Za-z]+(?:[\s\-'][A-Za-z]+)*$")
NON_NAME_TERMS_RE = re.compile(
    r"(download|phone|email|address|website|contact|card|call|directions|fax|mobile|office|home)", re.I
)
COMPANY_REJECT_RE = re.compile(
    r"(director|manager|ceo|cto|cfo|engineer|developer|designer|download|phone|email)", re.I
)
POSITION_KEYWORDS = (
    "manager", "director", "engineer", "developer", "designer", "analyst",
    "specialist", "coordinator", "officer", "executive", "president",
    "vice", "assistant", "associate", "senior", "junior", "lead",
    "head", "chief", "ceo", "cto", "cfo", "coo", "consultant",
    "founder", "owner", "partner", "proprietor",
)


def extract_email(text: str) -> str:
    m = EMAIL_RE.search(text or "")
    return m.group(0) if m else ""


def clean_phone(candidate: str) -> str:
    return PHONE_CLEAN_RE.sub("", candidate).strip()


def digit_count(s: str) -> int:
    return sum(1 for ch in s if ch.isdigit())


def extract_phone(text: str) -> str:
    for pattern in PHONE_PATTERNS:
        m = pattern.search(text or "")
        if not m:
            continue
        cleaned = clean_phone(m.group(0))
        if 7 <= digit_count(cleaned) <= 15:
            return cleaned
    return ""


def extract_unique_code(text: str) -> str:
    """Find a 9-15 char alphanumeric entry code.

    Explicit ``code=``/``uniqueCode:`` style markers win; otherwise the first
    standalone token that does not look like a phone number, a zip or part
    of an email/URL.
    """
    if not text:
        return ""
    for pattern in UNIQUE_CODE_KV_PATTERNS:
        m = pattern.search(text)
        if m:
            return m.group(1)
    for m in UNIQUE_CODE_TOKEN_RE.finditer(text):
        token = m.group(1)
        if token.isdigit():
            continue
        if digit_count(token) > 10:
            continue
        context = text[max(0, m.start() - 10): m.end() + 10].lower()
        if any(marker in context for marker in CODE_CONTEXT_MARKERS):
            continue
        return token
    return ""


def non_empty_lines(text: str) -> List[str]:
    return [ln.strip() for ln in (text or "").splitlines() if ln.strip()]


def looks_like_name_line(line: str) -> bool:
    return len(line) < 50 and "@" not in line and not THREE_DIGITS_RE.search(line)


def guess_name(text: str) -> Optional[tuple[str, str]]:
    """First non-empty line as (first, last) when it plausibly is a name."""
    lines = non_empty_lines(text)
    if not lines or not looks_like_name_line(lines[0]):
        return None
    parts = lines[0].split()
    return parts[0], " ".join(parts[1:])


def is_valid_name(text: Optional[str]) -> bool:
    if not text or len(text) < 2 or len(text) > 100:
        return False
    if not NAME_RE.match(text):
        return False
    return not NON_NAME_TERMS_RE.search(text)


def is_valid_company(text: Optional[str]) -> bool:
    if not text or len(text) < 2 or len(text) > 100:
        return False
    if "@" in text:
        return False
    if re.match(r"^\+?\d", text):
        return False
    return not COMPANY_REJECT_RE.search(text)


def is_valid_position(text: Optional[str]) -> bool:
    if not text or len(text) < 2 or len(text) > 100:
        return False
    low = text.lower()
    return any(k in low for k in POSITION_KEYWORDS)


def parse_plain_text(text: str) -> ContactFields:
    """Deterministic extraction: email, phone, entry code and a first-line name."""
    out = ContactFields(
        email=extract_email(text),
        phone_number=extract_phone(text),
        unique_code=extract_unique_code(text),
    )
    name = guess_name(text)
    if name:
        out.first_name, out.last_name = name
    return out


class HeuristicTextStrategy:
    """Regex fallback; always applies and needs no network."""
    name = "heuristic"
    uses_network = False

    def applies(self, payload: str) -> bool:
        return True

    def attempt(self, payload: str, deadline=None) -> ContactFields:
        return parse_plain_text(payload)


def scan_company_and_position(lines: List[str], start: int = 1, window: int = 3) -> ContactFields:
    """Line-scan a card's text for a company and a job title.

    A line containing job-title keywords is never taken as the company, and
    vice versa.
    """
    out = ContactFields()
    for line in lines[start:start + window]:
        if "@" in line or digit_count(line) >= 7:
            continue
        if not out.position and is_valid_position(line):
            out.position = line
        elif not out.company and is_valid_company(line) and not is_valid_position(line):
            out.company = line
    return out
