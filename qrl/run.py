"""
QR Lead Extraction - CLI Runner

Usage:
  python -m qrl.run --text "mailto:jane@acme.com?subject=Hi"
  python -m qrl.run --input scanned.txt --config config/example.yaml --out result.json

The whole input file is one payload (a vCard spans several lines).

Dry run (validate only):
  python -m qrl.run --input scanned.txt --config config/example.yaml --dry-run

Exit codes:
  0 - success
  1 - config error (file missing, invalid YAML or invalid values)
  2 - input error (input file missing or payload empty)
  3 - processing error (result with success=false, or output not writable)
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from qrlead.config import Settings, load_settings
from qrlead.errors import ConfigError
from qrlead.logging_utils import configure_logging
from qrlead.ops_logger import OpsLogger
from qrlead.pipeline.ingest import QRIngestPipeline


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Extract a contact record from a scanned QR payload")
    src = parser.add_mutually_exclusive_group(required=True)
    src.add_argument("--text", "-t", help="Raw QR payload text")
    src.add_argument("--input", "-i", help="Path to a file holding one raw QR payload")
    parser.add_argument("--config", "-c", default=None, help="Path to YAML config file")
    parser.add_argument("--out", "-o", default=None, help="Write the result JSON to this file instead of stdout")
    parser.add_argument("--log-level", default=None, help="Logging level (overridden by QRLEAD_LOG_LEVEL)")
    parser.add_argument("--deadline", type=float, default=None, help="Overall time budget in seconds for network strategies")
    parser.add_argument("--ops-log", default=None, help="Append a JSONL ops record per scan to this file")
    parser.add_argument("--dry-run", action="store_true", help="Validate inputs/config and exit")
    return parser


def read_payload(args: argparse.Namespace) -> Optional[str]:
    if args.text is not None:
        return args.text
    input_path = Path(args.input)
    if not input_path.exists() or not input_path.is_file():
        print(f"Input error: file not found: {input_path}", file=sys.stderr)
        return None
    return input_path.read_text(encoding="utf-8")


def write_output(out: Optional[str], payload: str) -> bool:
    if out is None:
        print(payload)
        return True
    out_path = Path(out)
    try:
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(payload + "\n", encoding="utf-8")
    except OSError as e:
        print(f"Output error: cannot write to {out_path}: {e}", file=sys.stderr)
        return False
    print(f"💾 JSON: {out_path}", file=sys.stderr)
    return True


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings: Settings = load_settings(args.config)
    except ConfigError as e:
        print(f"Config error: {e}", file=sys.stderr)
        return 1

    configure_logging(settings, args.log_level)

    raw = read_payload(args)
    if raw is None:
        return 2

    if args.dry_run:
        print("✅ Dry-run validation passed", file=sys.stderr)
        print(f" - Config: {args.config or '(defaults)'}", file=sys.stderr)
        print(f" - Browser mode: {settings.browser.mode}", file=sys.stderr)
        print(f" - AI providers configured: {settings.ai.configured}", file=sys.stderr)
        print(f" - Payload length: {len(raw)}", file=sys.stderr)
        return 0

    ops_logger = OpsLogger(Path(args.ops_log)) if args.ops_log else OpsLogger.from_env()

    with QRIngestPipeline(settings=settings, ops_logger=ops_logger, deadline_s=args.deadline) as pipeline:
        result = pipeline.extract(raw)

    if not write_output(args.out, result.to_json()):
        return 3
    if not result.success:
        print(f"⚠️  {result.kind.value}: {result.error}", file=sys.stderr)
        return 2 if not raw.strip() else 3
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
