import logging
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from ..constants import DEFAULT_SCREENSHOT_COUNT, DEGRADED_CONTEXT_PREFIX, FALLBACK_DELAY_SECONDS
from ..core.console import console
from ..core.errors import CompletionError, MediaError, ResponseParseError
from ..core.ledger import ProgressLedger
from ..core.models import ContentContext
from ..media import MediaToolkit
from ..prompts import audio_description_prompt, image_description_prompt, merge_description_prompt
from ..providers.base import CompletionService
from .fallback import call_with_fallback

logger = logging.getLogger("Longscribe.Describe")


def unavailable(reason: str) -> str:
    return f"{DEGRADED_CONTEXT_PREFIX}: {reason}]"


def _require_text(text: str, model: str) -> str:
    text = text.strip()
    if not text:
        raise ResponseParseError("Empty description", model, raw_text=text)
    return text


class ContentContextSynthesizer:
    """
    Builds the description of the recording that every chunk prompt carries.

    Video input gets a visual description from still frames and an audio
    description, merged into one. Audio input gets the audio description
    only. A failed step is replaced by a visible placeholder and never stops
    the run.
    """

    def __init__(self, service: CompletionService, models: List[str], ledger: Optional[ProgressLedger] = None,
                 media: Optional[MediaToolkit] = None, instructions: Optional[str] = None,
                 fallback_delay: float = FALLBACK_DELAY_SECONDS):
        self.service = service
        self.models = models
        self.ledger = ledger
        self.media = media or MediaToolkit()
        self.instructions = instructions
        self.fallback_delay = fallback_delay

    def synthesize(self, audio_sample: Path, image_samples: Optional[Sequence[Path]] = None) -> ContentContext:
        if not image_samples:
            with console.status("Analyzing audio sample..."):
                audio_description, audio_ok = self._describe(audio_description_prompt(self.instructions), [audio_sample])
            return ContentContext(
                description=audio_description,
                audio_description=audio_description,
                degraded=not audio_ok,
            )

        with console.status(f"Analyzing {len(image_samples)} screenshot(s)..."):
            image_description, image_ok = self._describe(image_description_prompt(self.instructions), image_samples)
        with console.status("Analyzing audio sample..."):
            audio_description, audio_ok = self._describe(audio_description_prompt(self.instructions), [audio_sample])

        if image_ok and audio_ok:
            with console.status("Merging descriptions..."):
                description, merged_ok = self._describe(
                    merge_description_prompt(image_description, audio_description, self.instructions), []
                )
            if not merged_ok:
                description = _combine(description, image_description, audio_description)
        else:
            merged_ok = False
            description = _combine(None, image_description, audio_description)

        return ContentContext(
            description=description,
            image_description=image_description,
            audio_description=audio_description,
            degraded=not (image_ok and audio_ok and merged_ok),
        )

    def synthesize_video(self, video_path: Path, audio_sample: Path, frames_dir: Path,
                         frame_count: int = DEFAULT_SCREENSHOT_COUNT) -> ContentContext:
        """Extract still frames from the video, then synthesize. Frame extraction failures degrade to audio only."""
        try:
            frames = self.media.extract_still_frames(video_path, frame_count, frames_dir)
        except MediaError as e:
            logger.warning(f"Could not extract screenshots: {e}")
            context = self.synthesize(audio_sample)
            return ContentContext(
                description=_combine(None, unavailable(f"screenshots could not be extracted ({e})"), context.description),
                image_description=unavailable(str(e)),
                audio_description=context.audio_description,
                degraded=True,
            )
        return self.synthesize(audio_sample, frames)

    def _describe(self, prompt: str, media: Sequence[Path]) -> Tuple[str, bool]:
        try:
            result = call_with_fallback(
                self.service,
                self.models,
                prompt,
                media=media,
                parser=_require_text,
                ledger=self.ledger,
                stage="description",
                delay=self.fallback_delay,
                json_output=False,
            )
        except (CompletionError, MediaError) as e:
            logger.warning(f"Description step failed: {e}")
            return unavailable(str(e)), False
        return result.value, True


def _combine(header: Optional[str], image_description: str, audio_description: str) -> str:
    parts = [header] if header else []
    parts.append(f"## Visual Description\n{image_description}")
    parts.append(f"## Audio Description\n{audio_description}")
    return "\n\n".join(parts)
