from pathlib import Path
from typing import Any, Dict, List, Optional

from .base import BasePlugin
from ..core.models import TranscriptSegment
from ..core.templates import render_template
from ..pipeline.assembler import segment_rows


class TxtPlugin(BasePlugin):
    @property
    def name(self) -> str:
        return "txt"

    @property
    def description(self) -> str:
        return "Generates plain text transcripts using Jinja2 templates."

    @property
    def default_extension(self) -> str:
        return "txt"

    def generate(self, segments: List[TranscriptSegment], output_path: Path,
                 context: Optional[Dict[str, Any]] = None, template_name: str = "default", **kwargs) -> Path:
        # Copy so the caller's context is not modified
        render_context = dict(context or {})
        render_context["rows"] = segment_rows(segments)
        return self._write(output_path, render_template(self.name, template_name, **render_context))
