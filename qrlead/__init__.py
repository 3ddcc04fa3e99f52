"""
QR Lead Extraction

Turns the raw text decoded from a scanned QR code (entry code, mailto/tel
link, vCard, landing-page URL or free text) into a normalized contact record
with a confidence score.
"""

from __future__ import annotations

from typing import Optional

from .config import Settings, load_settings
from .pipeline.ingest import QRIngestPipeline
from .schemas import ContactRecord, ExtractionResult, PayloadKind


def extract(raw_text: str, *, settings: Optional[Settings] = None, deadline_s: Optional[float] = None) -> ExtractionResult:
    """Extract a contact from one QR payload.

    Without ``settings`` the defaults plus environment overrides
    (``OPENAI_API_KEY``, ``QRLEAD_BROWSER_MODE``, ...) are used. Only an
    invalid environment raises (``ConfigError``); extraction itself never does.
    """
    if settings is None:
        settings = load_settings()
    with QRIngestPipeline(settings=settings, deadline_s=deadline_s) as pipeline:
        return pipeline.extract(raw_text)


__all__ = [
    "ContactRecord",
    "ExtractionResult",
    "PayloadKind",
    "QRIngestPipeline",
    "Settings",
    "extract",
    "load_settings",
]
