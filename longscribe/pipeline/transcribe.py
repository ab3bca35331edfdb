import json
import logging
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from pydantic import ValidationError

from ..constants import CONTEXT_TAIL_LINES, ERROR_SPEAKER, FALLBACK_DELAY_SECONDS
from ..core.console import console
from ..core.errors import ModelsExhaustedError, ResponseParseError
from ..core.manager import WorkspaceManager
from ..core.models import (
    ChunkResult, ContentContext, IssueKind, RawSegment, TranscriptSegment,
    ValidationConfig, ValidationOutcome, Window,
)
from ..prompts import corrective_hint, transcription_prompt
from ..providers.base import CompletionService
from ..utils import format_short_timestamp
from .fallback import call_with_fallback
from .validator import log_validation_result, validate

logger = logging.getLogger("Longscribe.Engine")

RETRYABLE_ISSUES = (IssueKind.TIMING_UNDERFLOW, IssueKind.TIMING_OVERFLOW, IssueKind.EMPTY)


def _strip_code_fence(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()


def parse_segments(text: str, model: Optional[str] = None) -> List[TranscriptSegment]:
    """
    Parse a transcription response into window-local segments.

    Accepts a JSON array of segments, or an object holding one under
    "segments" or "transcript". Anything else is rejected as a whole;
    no partially valid list is ever returned.

    Raises:
        ResponseParseError: If the text is not JSON or any segment fails the schema.
    """
    try:
        data = json.loads(_strip_code_fence(text))
    except ValueError as e:
        raise ResponseParseError(f"Response is not valid JSON: {e}", model, raw_text=text)

    if isinstance(data, dict):
        for key in ("segments", "transcript"):
            if isinstance(data.get(key), list):
                data = data[key]
                break
        else:
            raise ResponseParseError("Response object has no segment list", model, raw_text=text)

    if not isinstance(data, list):
        raise ResponseParseError(f"Expected a JSON array, got {type(data).__name__}", model, raw_text=text)

    segments = []
    for position, item in enumerate(data):
        try:
            segments.append(RawSegment.model_validate(item).to_segment())
        except ValidationError as e:
            raise ResponseParseError(f"Segment {position} does not match the schema: {e}", model, raw_text=text)
    return segments


def build_context_tail(segments: Sequence[TranscriptSegment], lines: int = CONTEXT_TAIL_LINES) -> str:
    """The last `lines` spoken lines as "Speaker: text", used to continue the next window."""
    spoken = [s for s in segments if s.speaker != ERROR_SPEAKER]
    if lines <= 0:
        return ""
    return "\n".join(f"{s.speaker}: {s.text}" for s in spoken[-lines:])


def failure_placeholder(window: Window, reason: str) -> TranscriptSegment:
    """A window-local segment spanning the whole window that marks it as lost."""
    span = f"{format_short_timestamp(window.start_seconds)}-{format_short_timestamp(window.end_seconds)}"
    return TranscriptSegment(
        speaker=ERROR_SPEAKER,
        start=0.0,
        end=window.duration,
        text=f"[Transcription failed for {span}: {reason}]",
    )


class TranscriptionEngine:
    """
    Transcribes one window at a time.

    Each attempt goes through the model fallback loop. Results with timing
    problems or no segments are re-requested with a corrective hint until
    the attempt budget runs out, after which the last parsed result is kept.
    """

    def __init__(self, service: CompletionService, models: List[str], workspace: WorkspaceManager,
                 chunk_audio: Callable[[Window], Path], validation: Optional[ValidationConfig] = None,
                 total_windows: int = 1, instructions: Optional[str] = None,
                 fallback_delay: float = FALLBACK_DELAY_SECONDS, force: bool = False):
        self.service = service
        self.models = models
        self.workspace = workspace
        self.chunk_audio = chunk_audio
        self.validation = validation or ValidationConfig()
        self.total_windows = total_windows
        self.instructions = instructions
        self.fallback_delay = fallback_delay
        self.force = force

    def transcribe_window(self, window: Window, previous_context_tail: str, content_context: ContentContext,
                          known_speakers: Iterable[str], max_retries: int) -> ChunkResult:
        known = list(known_speakers)

        if not self.force:
            cached = self.workspace.load_chunk_result(window)
            if cached is not None:
                logger.info(f"Chunk {window.index + 1}/{self.total_windows} loaded from cache")
                return cached

        audio_path = self.chunk_audio(window)
        base_prompt = transcription_prompt(
            description=content_context.description,
            chunk_number=window.index + 1,
            total_chunks=self.total_windows,
            chunk_duration=window.duration,
            previous_transcription=previous_context_tail,
            known_speakers=known,
            user_instructions=self.instructions,
        )

        def parse_and_validate(text: str, model: str) -> Tuple[List[TranscriptSegment], ValidationOutcome]:
            segments = parse_segments(text, model)
            return segments, validate(segments, window.duration, known, self.validation)

        accepted: Optional[Tuple[List[TranscriptSegment], ValidationOutcome]] = None
        accepted_model: Optional[str] = None
        last_error: Optional[Exception] = None
        hint = ""
        max_attempts = max_retries + 1
        attempt = 0

        for attempt in range(1, max_attempts + 1):
            with console.status(f"Transcribing chunk {window.index + 1}/{self.total_windows} (attempt {attempt}/{max_attempts})..."):
                try:
                    outcome = call_with_fallback(
                        self.service,
                        self.models,
                        base_prompt + hint,
                        media=[audio_path],
                        parser=parse_and_validate,
                        annotate=lambda value: value[1].summary(),
                        ledger=self.workspace.ledger,
                        stage="transcription",
                        window_index=window.index,
                        attempt=attempt,
                        delay=self.fallback_delay,
                    )
                except ModelsExhaustedError as e:
                    last_error = e
                    logger.warning(f"Chunk {window.index + 1} attempt {attempt}/{max_attempts}: {e}")
                    continue

            segments, validation = outcome.value
            accepted, accepted_model = (segments, validation), outcome.model
            log_validation_result(validation, window.index)

            if not validation.has_issue(*RETRYABLE_ISSUES):
                break
            if attempt < max_attempts:
                logger.warning(f"Retrying chunk {window.index + 1} with a corrective hint ({validation.summary()})")
                hint = corrective_hint(window.duration, [issue.message for issue in validation.issues])
            else:
                logger.warning(
                    f"Chunk {window.index + 1}: validation issues remain after {max_attempts} attempts, "
                    f"keeping the last result"
                )

        if accepted is None:
            reason = str(last_error) if last_error else "no attempts were made"
            logger.error(f"Chunk {window.index + 1} failed: {reason}")
            return ChunkResult(
                window=window,
                segments=[failure_placeholder(window, reason)],
                validation=ValidationOutcome(valid=False),
                attempts=attempt,
                failed=True,
                error=reason,
            )

        segments, validation = accepted
        if not segments:
            reason = f"no speech transcribed after {attempt} attempt(s)"
            logger.error(f"Chunk {window.index + 1} failed: {reason}")
            return ChunkResult(
                window=window,
                segments=[failure_placeholder(window, reason)],
                validation=validation,
                attempts=attempt,
                model=accepted_model,
                failed=True,
                error=reason,
            )

        result = ChunkResult(
            window=window,
            segments=segments,
            validation=validation,
            attempts=attempt,
            model=accepted_model,
        )
        self.workspace.save_chunk_result(result)
        return result
