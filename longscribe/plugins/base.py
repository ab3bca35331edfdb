from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..constants import LAST_SUBTITLE_DURATION, MIN_SUBTITLE_DURATION
from ..core.models import TranscriptSegment


def with_end_times(segments: List[TranscriptSegment]) -> List[TranscriptSegment]:
    """
    Fill in missing end times.

    A segment without an end runs until the next segment starts, or for a
    fixed few seconds if it is the last one. Every cue lasts at least a second.
    """
    timed = []
    for i, segment in enumerate(segments):
        end = segment.end
        if end is None:
            end = segments[i + 1].start if i + 1 < len(segments) else segment.start + LAST_SUBTITLE_DURATION
        end = max(end, segment.start + MIN_SUBTITLE_DURATION)
        timed.append(segment.model_copy(update={"end": end}))
    return timed


class BasePlugin(ABC):
    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @property
    @abstractmethod
    def description(self) -> str:
        pass

    @property
    @abstractmethod
    def default_extension(self) -> str:
        pass

    @abstractmethod
    def generate(self, segments: List[TranscriptSegment], output_path: Path,
                 context: Optional[Dict[str, Any]] = None, **kwargs) -> Path:
        """
        Write `segments` to `output_path`.

        Args:
            segments: Final transcript, absolute times, ordered by start.
            output_path: Destination file.
            context: Title, source, duration and description of the recording.
        """
        pass

    def _write(self, output_path: Path, content: str) -> Path:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w", encoding="utf-8") as f:
            f.write(content)
        return output_path
