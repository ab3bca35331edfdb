import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..constants import ERROR_SPEAKER
from ..core.models import ChunkResult, ContentContext, TranscriptSegment
from ..core.templates import render_template
from ..utils import format_timestamp

logger = logging.getLogger("Longscribe.Assembler")


def segment_rows(segments: List[TranscriptSegment]) -> List[Dict[str, Any]]:
    return [
        {
            "time": format_timestamp(s.start),
            "speaker": s.speaker,
            "text": s.text,
            "tone": s.tone,
        }
        for s in segments
    ]


class TimelineAssembler:
    """
    Joins window results into one absolute timeline.

    Segments are shifted by their window's start and appended in window
    order. Where windows overlap, segments of the new window that start
    before the last start already on the timeline are dropped. After every
    window the progress document is rewritten from scratch.
    """

    def __init__(self, document_path: Path, source_name: str, total_duration: float, total_windows: int,
                 content_context: Optional[ContentContext] = None):
        self.document_path = Path(document_path)
        self.source_name = source_name
        self.total_duration = total_duration
        self.total_windows = total_windows
        self.content_context = content_context
        self.completed = 0
        self._segments: List[TranscriptSegment] = []

    @property
    def segments(self) -> List[TranscriptSegment]:
        return list(self._segments)

    def add(self, result: ChunkResult) -> List[TranscriptSegment]:
        """Shift a window's segments to absolute time, append them and refresh the progress document."""
        offset = result.window.start_seconds
        threshold = self._segments[-1].start if self._segments else None

        added = []
        dropped = 0
        for segment in result.segments:
            shifted = segment.shifted(offset)
            if threshold is not None and shifted.start < threshold:
                if shifted.speaker != ERROR_SPEAKER:
                    dropped += 1
                    continue
                shifted = shifted.model_copy(update={"start": threshold})
            added.append(shifted)

        if dropped:
            logger.debug(f"Chunk {result.window.index + 1}: dropped {dropped} segment(s) repeated from the overlap")

        self._segments.extend(added)
        self.completed += 1
        self.render(in_progress=self.completed < self.total_windows)
        return added

    def finalize(self) -> List[TranscriptSegment]:
        self.render(in_progress=False)
        return self.segments

    def render(self, in_progress: bool) -> Path:
        description = self.content_context.description if self.content_context else ""
        content = render_template(
            "progress", "progress",
            title=Path(self.source_name).stem,
            source=self.source_name,
            duration=format_timestamp(self.total_duration),
            completed=self.completed,
            total=self.total_windows,
            in_progress=in_progress,
            description=description,
            rows=segment_rows(self._segments),
        )
        self.document_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.document_path.with_suffix(".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write(content)
        tmp_path.replace(self.document_path)
        return self.document_path
