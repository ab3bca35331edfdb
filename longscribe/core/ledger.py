import json
import os
import time
import logging
from pathlib import Path
from typing import List, Optional

from .models import LedgerEntry

logger = logging.getLogger("Longscribe.Ledger")

_TAIL_BYTES = 64


class ProgressLedger:
    """
    Append-only record of every completion call made during a run.

    The file is a single JSON array. Appending overwrites only the closing
    bracket, so bytes already on disk are never rewritten, and every entry
    is fsynced before `append` returns.
    """
    def __init__(self, path: Path):
        self.path = Path(path)

    def append(self, entry: LedgerEntry) -> None:
        data = json.dumps(entry.model_dump(mode="json"), indent=2, ensure_ascii=False)
        self.path.parent.mkdir(parents=True, exist_ok=True)

        if not self.path.exists() or self.path.stat().st_size == 0:
            with open(self.path, "wb") as f:
                f.write(f"[\n{data}\n]\n".encode("utf-8"))
                self._sync(f)
            return

        with open(self.path, "r+b") as f:
            offset, separator = self._find_tail(f)
            f.seek(offset)
            f.write(f"{separator}\n{data}\n]\n".encode("utf-8"))
            f.truncate()
            self._sync(f)

    def record(self, prompt: str, stage: str = "transcription", window_index: Optional[int] = None,
               attempt: int = 1, model: Optional[str] = None, response: Optional[str] = None,
               error: Optional[str] = None, validation: Optional[str] = None) -> LedgerEntry:
        """Build an entry stamped with the current time and append it."""
        entry = LedgerEntry(
            timestamp_ms=int(time.time() * 1000),
            stage=stage,
            window_index=window_index,
            attempt=attempt,
            model=model,
            prompt=prompt,
            response=response,
            error=error,
            validation=validation,
        )
        self.append(entry)
        return entry

    def read_all(self) -> List[LedgerEntry]:
        if not self.path.exists():
            return []
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return [LedgerEntry(**item) for item in data]

    def entries_for(self, window_index: int) -> List[LedgerEntry]:
        return [e for e in self.read_all() if e.window_index == window_index]

    def _find_tail(self, f):
        """Locate the closing bracket and decide whether a comma is needed."""
        f.seek(0, os.SEEK_END)
        size = f.tell()
        start = max(0, size - _TAIL_BYTES)
        f.seek(start)
        tail = f.read()

        bracket = tail.rfind(b"]")
        if bracket == -1:
            raise ValueError(f"Ledger file is corrupted (no closing bracket): {self.path}")

        before = tail[:bracket].rstrip()
        if before.endswith(b"[") or (not before and start == 0):
            separator = ""
        else:
            separator = ","
        # Drop trailing whitespace so entries stay evenly spaced
        return start + len(before), separator

    @staticmethod
    def _sync(f) -> None:
        f.flush()
        os.fsync(f.fileno())
