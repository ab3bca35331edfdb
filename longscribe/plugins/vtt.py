from pathlib import Path
from typing import Any, Dict, List, Optional

from .base import with_end_times
from .srt import SRTPlugin, cue_text
from ..core.models import TranscriptSegment


class VTTPlugin(SRTPlugin):
    @property
    def name(self) -> str:
        return "vtt"

    @property
    def description(self) -> str:
        return "Generates WebVTT subtitle files."

    @property
    def default_extension(self) -> str:
        return "vtt"

    def generate(self, segments: List[TranscriptSegment], output_path: Path,
                 context: Optional[Dict[str, Any]] = None, **kwargs) -> Path:
        if not segments:
            raise ValueError("No transcript segments found for VTT generation.")
        return self._write(output_path, self.render(segments))

    def render(self, segments: List[TranscriptSegment]) -> str:
        lines = ["WEBVTT", ""]
        for segment in with_end_times(segments):
            lines.append(f"{self._format_time(segment.start)} --> {self._format_time(segment.end)}")
            lines.append(cue_text(segment))
            lines.append("")
        return "\n".join(lines)

    def _format_time(self, seconds: float) -> str:
        return super()._format_time(seconds).replace(",", ".")
