import logging
from pathlib import Path

from ..constants import AUDIO_EXTENSION
from ..core.models import Window
from ..media import MediaToolkit, is_video_file

logger = logging.getLogger("Longscribe.Ingest")


class ChunkMaterializer:
    """Produces the audio files the rest of the pipeline uploads."""

    def __init__(self, media: MediaToolkit, input_path: Path, audio_dir: Path, chunks_dir: Path):
        self.media = media
        self.input_path = Path(input_path)
        self.audio_dir = audio_dir
        self.chunks_dir = chunks_dir

    def source_audio(self) -> Path:
        """
        Return an audio-only version of the input.

        Audio inputs in mp3 are used as-is; everything else is converted once
        and reused on later runs.
        """
        if not is_video_file(self.input_path) and self.input_path.suffix.lower() == AUDIO_EXTENSION:
            return self.input_path
        dest = self.audio_dir / f"{self.input_path.stem}{AUDIO_EXTENSION}"
        logger.info(f"Extracting audio from {self.input_path.name}")
        return self.media.extract_audio(self.input_path, dest)

    def description_sample(self, source: Path, total_duration: float, sample_minutes: float) -> Path:
        """The first `sample_minutes` of audio, or the whole file if it is shorter."""
        sample_seconds = sample_minutes * 60
        if total_duration <= sample_seconds:
            return source
        dest = self.audio_dir / f"{self.input_path.stem}_sample_{int(sample_minutes)}m{AUDIO_EXTENSION}"
        return self.media.extract_audio_segment(source, 0.0, sample_seconds, dest)

    def window_path(self, window: Window) -> Path:
        return self.chunks_dir / (
            f"chunk_{window.index:03d}_{int(window.start_seconds)}-{int(window.end_seconds)}{AUDIO_EXTENSION}"
        )

    def materialize(self, source: Path, window: Window) -> Path:
        """Cut the audio for one window. Existing files are reused."""
        dest = self.window_path(window)
        if dest.exists():
            logger.debug(f"Chunk {window.index + 1} audio already exists: {dest.name}")
            return dest
        logger.debug(f"Cutting chunk {window.index + 1}: {window.start_seconds:.0f}s-{window.end_seconds:.0f}s")
        return self.media.extract_audio_segment(source, window.start_seconds, window.duration, dest)
