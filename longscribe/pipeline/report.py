import json
import logging
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from ..constants import FALLBACK_DELAY_SECONDS
from ..core.console import console
from ..core.errors import ModelsExhaustedError, ResponseParseError
from ..core.ledger import ProgressLedger
from ..core.models import ContentContext, MeetingReport, TranscriptSegment
from ..core.templates import render_template
from ..prompts import report_prompt
from ..providers.base import CompletionService
from ..utils import format_timestamp
from .fallback import call_with_fallback

logger = logging.getLogger("Longscribe.Report")


def transcript_text(segments: List[TranscriptSegment]) -> str:
    return "\n".join(f"[{format_timestamp(s.start)}] {s.speaker}: {s.text}" for s in segments)


def parse_report(text: str, model: Optional[str] = None) -> MeetingReport:
    try:
        data = json.loads(text)
    except ValueError as e:
        raise ResponseParseError(f"Report is not valid JSON: {e}", model, raw_text=text)
    if not isinstance(data, dict):
        raise ResponseParseError(f"Expected a JSON object, got {type(data).__name__}", model, raw_text=text)
    try:
        return MeetingReport.model_validate(data)
    except ValidationError as e:
        raise ResponseParseError(f"Report does not match the schema: {e}", model, raw_text=text)


class ReportGenerator:
    """Summary, decisions and action items for a finished transcript."""

    def __init__(self, service: CompletionService, models: List[str], ledger: Optional[ProgressLedger] = None,
                 fallback_delay: float = FALLBACK_DELAY_SECONDS):
        self.service = service
        self.models = models
        self.ledger = ledger
        self.fallback_delay = fallback_delay

    def generate(self, segments: List[TranscriptSegment], content_context: Optional[ContentContext] = None) -> MeetingReport:
        """
        Ask the model for a meeting report.

        If every model fails or returns an unusable report, the returned
        report carries a visible failure marker instead. Fatal errors propagate.
        """
        description = content_context.description if content_context else ""
        prompt = report_prompt(description, transcript_text(segments))
        try:
            with console.status("Generating report..."):
                result = call_with_fallback(
                    self.service,
                    self.models,
                    prompt,
                    parser=parse_report,
                    ledger=self.ledger,
                    stage="report",
                    delay=self.fallback_delay,
                )
        except ModelsExhaustedError as e:
            logger.error(f"Report generation failed: {e}")
            return MeetingReport(title="Report unavailable", summary=f"[Report generation failed: {e}]")
        return result.value

    @staticmethod
    def write(report: MeetingReport, output_path: Path, source_name: str = "") -> Path:
        content = render_template("markdown", "report", report=report, source=source_name)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w", encoding="utf-8") as f:
            f.write(content)
        return output_path
