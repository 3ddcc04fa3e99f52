"""
vCard Parser - BEGIN:VCARD ... END:VCARD payloads

Handles versions 2.1/3.0/4.0 as they appear in QR codes: folded lines,
property groups (``item1.EMAIL``), TYPE parameters, backslash escapes and
quoted-printable values. Only the first card in a payload is read.
"""

from __future__ import annotations

import logging
import quopri
import re
from dataclasses import dataclass, field
from typing import List

from ..errors import VCardParseError
from ..schemas import ContactFields
from .heuristics import extract_unique_code

logger = logging.getLogger(__name__)

COMPONENT_SPLIT_RE = re.compile(r"(?<!\\);")
_ESCAPES = {
    "\\;": ";",
    "\\,": ",",
    "\\:": ":",
    "\\n": "\n",
    "\\N": "\n",
    "\\\\": "\\",
}
_ESCAPE_RE = re.compile(r"\\[;,:nN\\]")
MOBILE_TYPES = {"cell", "mobile", "iphone"}


@dataclass
class VCardProperty:
    name: str
    params: List[str] = field(default_factory=list)
    value: str = ""

    @property
    def types(self) -> set[str]:
        tokens: set[str] = set()
        for p in self.params:
            key, _, val = p.partition("=")
            values = val if val else key
            if val and key.strip().lower() != "type":
                continue
            for tok in values.split(","):
                tok = tok.strip().strip('"').lower()
                if tok:
                    tokens.add(tok)
        return tokens

    def param(self, key: str) -> str:
        for p in self.params:
            k, _, v = p.partition("=")
            if k.strip().lower() == key.lower():
                return v.strip().strip('"')
        return ""


def unescape_value(value: str) -> str:
    return _ESCAPE_RE.sub(lambda m: _ESCAPES[m.group(0)], value or "")


def split_components(value: str) -> List[str]:
    return [unescape_value(part).strip() for part in COMPONENT_SPLIT_RE.split(value or "")]


def _logical_lines(text: str) -> List[str]:
    """Unfold continuation lines and quoted-printable soft breaks."""
    lines: List[str] = []
    for raw in text.replace("\r\n", "\n").replace("\r", "\n").split("\n"):
        if lines and raw[:1] in (" ", "\t"):
            lines[-1] += raw[1:]
        elif lines and lines[-1].endswith("=") and "QUOTED-PRINTABLE" in lines[-1].split(":", 1)[0].upper():
            lines[-1] = lines[-1][:-1] + raw.strip()
        else:
            lines.append(raw)
    return lines


def _decode(prop: VCardProperty) -> str:
    if prop.param("encoding").upper() == "QUOTED-PRINTABLE" or "quoted-printable" in prop.types:
        charset = prop.param("charset") or "utf-8"
        try:
            return quopri.decodestring(prop.value.encode("latin-1", errors="ignore")).decode(charset, errors="replace")
        except LookupError:
            return quopri.decodestring(prop.value.encode("latin-1", errors="ignore")).decode("utf-8", errors="replace")
    return prop.value


def parse_properties(text: str) -> List[VCardProperty]:
    """Split the first card into properties, raising on malformed structure."""
    props: List[VCardProperty] = []
    inside = False
    ended = False
    for lineno, raw in enumerate(_logical_lines(text), start=1):
        line = raw.strip()
        if not line:
            continue
        upper = line.upper()
        if upper == "BEGIN:VCARD":
            if inside:
                raise VCardParseError(f"nested BEGIN:VCARD on line {lineno}")
            inside = True
            continue
        if upper == "END:VCARD":
            if not inside:
                raise VCardParseError(f"END:VCARD without BEGIN on line {lineno}")
            ended = True
            break
        if not inside:
            continue
        if ":" not in line:
            raise VCardParseError(f"malformed content line {lineno}: {line[:40]!r}")
        head, value = line.split(":", 1)
        name, *params = head.split(";")
        name = name.rsplit(".", 1)[-1].strip().upper()
        if not name:
            raise VCardParseError(f"missing property name on line {lineno}")
        props.append(VCardProperty(name=name, params=params, value=value))
    if not ended:
        raise VCardParseError("missing END:VCARD")
    if not any(p.name not in ("VERSION", "PRODID") for p in props):
        raise VCardParseError("vCard contains no contact properties")
    return props


def parse_vcard(text: str) -> ContactFields:
    """Map a vCard payload onto the canonical fields.

    ``N`` overrides the split of ``FN`` only when it carries both family
    and given names; ``NOTE`` (then the raw card) is mined for an entry code.
    """
    props = parse_properties(text)
    out = ContactFields()
    note = ""
    full_name = ""
    family = given = ""
    for prop in props:
        value = _decode(prop)
        if prop.name == "FN":
            full_name = full_name or unescape_value(value).strip()
        elif prop.name == "N":
            if family or given:
                continue
            comps = split_components(value) + [""] * 5
            family, given, prefix = comps[0], comps[1], comps[3]
            if prefix and not out.title:
                out.title = prefix
        elif prop.name == "ORG":
            comps = split_components(value)
            if comps and not out.company:
                out.company = comps[0]
                if len(comps) > 1 and comps[1]:
                    out.department = comps[1]
        elif prop.name == "TITLE":
            out.position = out.position or unescape_value(value).strip()
        elif prop.name == "EMAIL":
            out.email = out.email or unescape_value(value).strip()
        elif prop.name == "TEL":
            number = unescape_value(value).strip()
            if number.lower().startswith("tel:"):
                number = number[4:]
            types = prop.types
            if "fax" in types:
                continue
            if types & MOBILE_TYPES:
                out.mobile = out.mobile or number
            else:
                out.phone_number = out.phone_number or number
        elif prop.name == "URL":
            out.website = out.website or unescape_value(value).strip()
        elif prop.name == "ADR":
            if out.address or out.city:
                continue
            comps = split_components(value) + [""] * 7
            po_box, extended, street, locality, _region, postal, country = comps[:7]
            out.address = street or " ".join(x for x in (po_box, extended) if x)
            out.city = locality
            out.zipcode = postal
            out.country = country
        elif prop.name == "NOTE":
            note = note or unescape_value(value)

    # A complete N wins over FN; a partial N only fills what FN left empty
    if family and given:
        out.last_name, out.first_name = family, given
    else:
        out.set_full_name(full_name)
        out.first_name = out.first_name or given
        out.last_name = out.last_name or family

    if not out.phone_number and out.mobile:
        out.phone_number = out.mobile

    code = extract_unique_code(note) if note else ""
    if code:
        logger.info("entry code found in vCard NOTE")
    else:
        code = extract_unique_code(text)
        if code:
            logger.info("entry code found in raw vCard text")
    out.unique_code = code
    return out
