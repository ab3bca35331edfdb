import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from .base import BasePlugin, with_end_times
from ..core.models import TranscriptSegment


class JSONPlugin(BasePlugin):
    @property
    def name(self) -> str:
        return "json"

    @property
    def description(self) -> str:
        return "Exports the transcript and its metadata as JSON."

    @property
    def default_extension(self) -> str:
        return "json"

    def generate(self, segments: List[TranscriptSegment], output_path: Path,
                 context: Optional[Dict[str, Any]] = None, **kwargs) -> Path:
        context = context or {}
        document = {
            "source": context.get("source"),
            "duration_seconds": context.get("duration_seconds"),
            "description": context.get("description"),
            "speakers": list(dict.fromkeys(s.speaker for s in segments)),
            "segments": [s.model_dump() for s in with_end_times(segments)],
        }
        return self._write(output_path, json.dumps(document, indent=2, ensure_ascii=False))
