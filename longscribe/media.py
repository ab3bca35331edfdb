"""ffmpeg/ffprobe wrapper used to probe media and cut audio and frames."""

import json
import logging
import subprocess
from pathlib import Path
from typing import List

from .constants import AUDIO_BITRATE, SUPPORTED_VIDEO_FORMATS
from .core.errors import MediaError

logger = logging.getLogger("Longscribe.Media")


def is_video_file(path: Path) -> bool:
    return Path(path).suffix.lower() in SUPPORTED_VIDEO_FORMATS


class MediaToolkit:
    """
    Thin subprocess layer over ffmpeg and ffprobe.

    Every extraction checks whether its destination already exists and
    returns it untouched, so repeated runs never re-cut the same file.
    """

    def __init__(self, ffmpeg: str = "ffmpeg", ffprobe: str = "ffprobe"):
        self.ffmpeg = ffmpeg
        self.ffprobe = ffprobe

    def probe_duration(self, path: Path) -> float:
        cmd = [
            self.ffprobe, '-v', 'error',
            '-show_entries', 'format=duration',
            '-of', 'json',
            str(path)
        ]
        result = self._run(cmd)
        try:
            duration = float(json.loads(result.stdout)["format"]["duration"])
        except (KeyError, TypeError, ValueError) as e:
            raise MediaError(f"Could not determine duration of {path}: {e}")
        if duration <= 0:
            raise MediaError(f"Media has no duration: {path}")
        return duration

    def extract_audio(self, path: Path, dest: Path) -> Path:
        """Convert the input to a mono mp3 suitable for upload."""
        if dest.exists():
            logger.debug(f"Audio already extracted: {dest.name}")
            return dest
        dest.parent.mkdir(parents=True, exist_ok=True)
        cmd = [
            self.ffmpeg, '-y', '-v', 'error', '-i', str(path),
            '-vn', '-map_metadata', '-1', '-ac', '1',
            '-c:a', 'libmp3lame', '-b:a', AUDIO_BITRATE,
            str(dest)
        ]
        self._run_to(cmd, dest)
        return dest

    def extract_audio_segment(self, path: Path, start: float, duration: float, dest: Path) -> Path:
        if dest.exists():
            return dest
        dest.parent.mkdir(parents=True, exist_ok=True)
        cmd = [
            self.ffmpeg, '-y', '-v', 'error',
            '-ss', f"{start:.3f}", '-t', f"{duration:.3f}",
            '-i', str(path),
            '-vn', '-ac', '1', '-c:a', 'libmp3lame', '-b:a', AUDIO_BITRATE,
            str(dest)
        ]
        self._run_to(cmd, dest)
        return dest

    def extract_still_frames(self, path: Path, count: int, out_dir: Path) -> List[Path]:
        """Grab `count` frames spread between 1% and 99% of the video to avoid black frames."""
        if count <= 0:
            return []
        out_dir.mkdir(parents=True, exist_ok=True)
        duration = self.probe_duration(path)

        first = duration * 0.01
        last = duration * 0.99
        interval = (last - first) / (count - 1) if count > 1 else 0.0

        frames = []
        for i in range(count):
            timestamp = first + interval * i
            dest = out_dir / f"{Path(path).stem}_frame_{i}.jpg"
            if not dest.exists():
                cmd = [
                    self.ffmpeg, '-y', '-v', 'error',
                    '-ss', f"{timestamp:.3f}", '-i', str(path),
                    '-frames:v', '1', '-vf', 'scale=1280:-2', '-q:v', '2',
                    str(dest)
                ]
                self._run_to(cmd, dest)
            frames.append(dest)
        return frames

    def _run(self, cmd: List[str]) -> subprocess.CompletedProcess:
        try:
            return subprocess.run(cmd, capture_output=True, text=True, check=True)
        except FileNotFoundError:
            raise MediaError(f"{cmd[0]} not found. Please install ffmpeg.")
        except subprocess.CalledProcessError as e:
            raise MediaError(f"{Path(cmd[0]).name} failed: {e.stderr.strip() if e.stderr else e}")

    def _run_to(self, cmd: List[str], dest: Path) -> None:
        # Cache files only appear once ffmpeg has finished writing them
        tmp = dest.with_name(f".partial-{dest.name}")
        cmd = cmd[:-1] + [str(tmp)]
        try:
            self._run(cmd)
        except MediaError:
            tmp.unlink(missing_ok=True)
            raise
        tmp.replace(dest)
