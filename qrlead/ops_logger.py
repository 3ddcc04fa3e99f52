from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, Optional

from .schemas import ExtractionResult

logger = logging.getLogger(__name__)

OPS_ENV = "QRLEAD_OPS_JSON"
OPS_FILE_ENV = "QRLEAD_OPS_FILE"


class OpsLogger:
    """Append-only JSONL logger for per-scan operational records.

    - One JSON object per line (UTF-8)
    - Thread-safe (coarse lock)
    - Best-effort: write failures are logged, never raised to the caller
    """

    def __init__(self, file_path: Optional[Path] = None, also_stdout: bool = False) -> None:
        self.file_path = Path(file_path) if file_path else None
        self.also_stdout = bool(also_stdout)
        self._lock = threading.Lock()
        if self.file_path is not None:
            try:
                self.file_path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                logger.warning("ops log directory unavailable: %s", e)

    @classmethod
    def from_env(cls) -> Optional["OpsLogger"]:
        """Logger enabled by ``QRLEAD_OPS_JSON=1``; file from ``QRLEAD_OPS_FILE`` or stdout."""
        if os.environ.get(OPS_ENV, "0") != "1":
            return None
        path = os.environ.get(OPS_FILE_ENV)
        return cls(Path(path) if path else None, also_stdout=not path)

    def emit(self, record: Dict[str, Any]) -> None:
        try:
            line = json.dumps(record, ensure_ascii=False, default=str)
        except (TypeError, ValueError):
            line = json.dumps({"qrlead_ops": 1, "_serialization_error": True, "record_str": str(record)})
        if self.file_path is not None:
            try:
                with self._lock:
                    with self.file_path.open("a", encoding="utf-8") as f:
                        f.write(line)
                        f.write("\n")
            except OSError as e:
                logger.warning("ops log write failed: %s", e)
        if self.also_stdout:
            print(line)

    def emit_result(self, result: ExtractionResult, durations: Dict[str, float]) -> None:
        filled = 0
        if result.record is not None:
            filled = sum(1 for v in result.record.model_dump().values() if v)
        self.emit({
            "qrlead_ops": 1,
            "kind": result.kind.value,
            "method": result.method,
            "success": result.success,
            "confidence": result.confidence,
            "rating": result.rating,
            "fields_filled": filled,
            "has_entry_code": bool(result.entry_code),
            "durations": {k: round(v, 4) for k, v in durations.items()},
            "error": result.error,
        })
