#!/usr/bin/env python3
"""
Export JSON Schema files from the Pydantic models.
- Draft: 2020-12
- Sources: qrlead/schemas.py (ContactRecord, ExtractionResult)
- Outputs: schemas/*.schema.json (camelCase, as serialized)
"""
import json
import sys
from pathlib import Path
from typing import Any, Dict, Optional

ROOT = Path(__file__).resolve().parents[1]
SCHEMAS_DIR = ROOT / "schemas"

sys.path.insert(0, str(ROOT))

from qrlead.schemas import ContactRecord, ExtractionResult  # noqa: E402

SCHEMA_VERSION = "https://json-schema.org/draft/2020-12/schema"


def add_common_headers(schema: Dict[str, Any], title: str, description: str, example: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    schema.setdefault("$schema", SCHEMA_VERSION)
    schema["title"] = title
    schema.setdefault("description", description)
    if example is not None:
        schema.setdefault("examples", [example])
    return schema


def record_example() -> dict:
    return ContactRecord(
        first_name="Jane",
        last_name="Doe",
        company="Acme Corp",
        position="Head of Marketing",
        email="jane.doe@acme.com",
        phone_number="+1 415 555 0100",
        website="https://acme.com",
        city="San Francisco",
        country="USA",
    ).model_dump(by_alias=True)


def result_example() -> dict:
    return {
        "success": True,
        "kind": "vcard",
        "rawData": "BEGIN:VCARD\nVERSION:3.0\nFN:Jane Doe\nORG:Acme Corp\nEND:VCARD",
        "record": record_example(),
        "entryCode": None,
        "confidence": 1.0,
        "rating": 5,
        "method": "vcard",
        "error": None,
    }


def save_schema(model, path: Path, title: str, description: str, example: dict) -> None:
    schema = model.model_json_schema(by_alias=True)
    schema = add_common_headers(schema, title, description, example)
    path.write_text(json.dumps(schema, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    print(f"Wrote {path.relative_to(ROOT)}")


def main() -> None:
    SCHEMAS_DIR.mkdir(parents=True, exist_ok=True)
    save_schema(
        ContactRecord,
        SCHEMAS_DIR / "contact_record.schema.json",
        "ContactRecord",
        "Normalized contact record; every canonical field is present.",
        record_example(),
    )
    save_schema(
        ExtractionResult,
        SCHEMAS_DIR / "extraction_result.schema.json",
        "ExtractionResult",
        "Outcome of extracting one scanned QR payload.",
        result_example(),
    )


if __name__ == "__main__":
    main()
