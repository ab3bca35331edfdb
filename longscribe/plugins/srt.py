from pathlib import Path
from typing import Any, Dict, List, Optional

from .base import BasePlugin, with_end_times
from ..core.models import TranscriptSegment


def cue_text(segment: TranscriptSegment) -> str:
    return f"[{segment.speaker}] {segment.text.strip()}"


class SRTPlugin(BasePlugin):
    @property
    def name(self) -> str:
        return "srt"

    @property
    def description(self) -> str:
        return "Generates SRT subtitle files."

    @property
    def default_extension(self) -> str:
        return "srt"

    def generate(self, segments: List[TranscriptSegment], output_path: Path,
                 context: Optional[Dict[str, Any]] = None, **kwargs) -> Path:
        if not segments:
            raise ValueError("No transcript segments found for SRT generation.")
        return self._write(output_path, self.render(segments))

    def render(self, segments: List[TranscriptSegment]) -> str:
        lines = []
        for i, segment in enumerate(with_end_times(segments), 1):
            lines.append(str(i))
            lines.append(f"{self._format_time(segment.start)} --> {self._format_time(segment.end)}")
            lines.append(cue_text(segment))
            lines.append("")
        return "\n".join(lines)

    def _format_time(self, seconds: float) -> str:
        """Convert seconds to HH:MM:SS,mmm format."""
        total_millis = int(round(seconds * 1000))
        hours, rem = divmod(total_millis, 3_600_000)
        minutes, rem = divmod(rem, 60_000)
        secs, millis = divmod(rem, 1000)
        return f"{hours:02}:{minutes:02}:{secs:02},{millis:03}"
