import json
import shutil
import hashlib
import logging
from pathlib import Path
from datetime import datetime
from typing import Optional

from .models import ChunkResult, ContentContext, RunState, Window
from .ledger import ProgressLedger
from ..constants import (
    WORKSPACE_DIRNAME, LEDGER_FILENAME, PROGRESS_DOCUMENT_FILENAME,
    DESCRIPTION_FILENAME, RUN_STATE_FILENAME, CHUNK_RESULT_PATTERN,
)

logger = logging.getLogger("Longscribe.Workspace")


class WorkspaceManager:
    """
    Owns the on-disk state of one input file.

    Layout:
        <root>/<stem>-<hash8>/
            audio/            extracted audio and description sample
            chunks/           per-window audio
            screenshots/      still frames (video input)
            transcripts/      per-window accepted results
            ledger.json       append-only call ledger
            transcript.md     live progress document
            description.json  cached content description
            _run.json         resume bookkeeping
    """

    def __init__(self, input_path: Path, work_root: Optional[Path] = None):
        self.input_path = Path(input_path).resolve()
        root = Path(work_root) if work_root else self.input_path.parent / WORKSPACE_DIRNAME
        digest = hashlib.sha256(str(self.input_path).encode("utf-8")).hexdigest()[:8]
        self.job_dir = root / f"{self.input_path.stem}-{digest}"

        self.audio_dir = self.job_dir / "audio"
        self.chunks_dir = self.job_dir / "chunks"
        self.screenshots_dir = self.job_dir / "screenshots"
        self.transcripts_dir = self.job_dir / "transcripts"

        self.ledger = ProgressLedger(self.job_dir / LEDGER_FILENAME)

    @property
    def progress_document(self) -> Path:
        return self.job_dir / PROGRESS_DOCUMENT_FILENAME

    def prepare(self) -> Path:
        """Create the workspace directories."""
        for directory in (self.audio_dir, self.chunks_dir, self.screenshots_dir, self.transcripts_dir):
            directory.mkdir(parents=True, exist_ok=True)
        return self.job_dir

    def exists(self) -> bool:
        return self.job_dir.exists()

    def delete(self) -> None:
        if self.job_dir.exists():
            shutil.rmtree(self.job_dir)
            logger.info(f"Deleted workspace: {self.job_dir}")

    # -- Per-window results -------------------------------------------------

    def chunk_result_path(self, index: int) -> Path:
        return self.transcripts_dir / CHUNK_RESULT_PATTERN.format(index=index)

    def save_chunk_result(self, result: ChunkResult) -> Optional[Path]:
        """Cache an accepted window result. Failed windows are never cached."""
        if result.failed:
            logger.debug(f"Not caching failed window {result.window.index}")
            return None
        path = self.chunk_result_path(result.window.index)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write(result.model_dump_json(indent=2, exclude={"from_cache"}))
        tmp_path.replace(path)
        return path

    def load_chunk_result(self, window: Window) -> Optional[ChunkResult]:
        path = self.chunk_result_path(window.index)
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                result = ChunkResult(**json.load(f))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable cache for chunk {window.index + 1}: {e}")
            return None

        if result.window != window:
            logger.warning(
                f"Ignoring cache for chunk {window.index + 1}: it covers "
                f"{result.window.start_seconds:.0f}-{result.window.end_seconds:.0f}s, "
                f"expected {window.start_seconds:.0f}-{window.end_seconds:.0f}s"
            )
            return None
        if result.failed:
            return None

        result.from_cache = True
        return result

    def clear_chunk_results(self) -> int:
        removed = 0
        if self.transcripts_dir.exists():
            for path in self.transcripts_dir.glob("chunk_*.json"):
                path.unlink()
                removed += 1
        return removed

    # -- Content description ------------------------------------------------

    def save_description(self, context: ContentContext) -> None:
        if context.degraded:
            return
        self.job_dir.mkdir(parents=True, exist_ok=True)
        with open(self.job_dir / DESCRIPTION_FILENAME, "w", encoding="utf-8") as f:
            f.write(context.model_dump_json(indent=2))

    def load_description(self) -> Optional[ContentContext]:
        path = self.job_dir / DESCRIPTION_FILENAME
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return ContentContext(**json.load(f))
        except (OSError, ValueError, TypeError) as e:
            logger.warning(f"Ignoring unreadable content description cache: {e}")
            return None

    # -- Run state -----------------------------------------------------------

    def load_run_state(self) -> Optional[RunState]:
        path = self.job_dir / RUN_STATE_FILENAME
        if not path.exists():
            return None
        with open(path, "r", encoding="utf-8") as f:
            return RunState(**json.load(f))

    def save_run_state(self, state: RunState) -> None:
        state.updated_at = datetime.now()
        self.job_dir.mkdir(parents=True, exist_ok=True)
        with open(self.job_dir / RUN_STATE_FILENAME, "w", encoding="utf-8") as f:
            f.write(state.model_dump_json(indent=2))
