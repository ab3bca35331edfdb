"""Constants used throughout the Longscribe application."""

# Workspace layout
WORKSPACE_DIRNAME = ".longscribe"
LEDGER_FILENAME = "ledger.json"
PROGRESS_DOCUMENT_FILENAME = "transcript.md"
DESCRIPTION_FILENAME = "description.json"
RUN_STATE_FILENAME = "_run.json"
CHUNK_RESULT_PATTERN = "chunk_{index:03d}.json"

# Chunking (seconds)
DEFAULT_CHUNK_MINUTES = 10
DEFAULT_OVERLAP_MINUTES = 1

# Description phase
DESCRIPTION_SAMPLE_MINUTES = 20
DEFAULT_SCREENSHOT_COUNT = 4

# Transcription
CONTEXT_TAIL_LINES = 20
DEFAULT_VALIDATION_RETRIES = 2
FALLBACK_DELAY_SECONDS = 1.0
TIMING_OVERFLOW_TOLERANCE = 1.1

# Validation
DEFAULT_MIN_COVERAGE_PERCENT = 60.0
DEFAULT_MAX_GAP_SECONDS = 120.0
GENERIC_SPEAKER_PATTERN = r"^(Speaker\s*\d+|Unknown|Person\s*\d+)$"

# Placeholders
ERROR_SPEAKER = "SYSTEM/ERROR"
DEGRADED_CONTEXT_PREFIX = "[Content description unavailable"

# Subtitle timing (seconds)
MIN_SUBTITLE_DURATION = 1.0
# No end time comes back for the last cue of a chunk; assume this much.
LAST_SUBTITLE_DURATION = 3.0

# Audio extraction
AUDIO_BITRATE = "128k"
AUDIO_EXTENSION = ".mp3"

# Remote file readiness polling
UPLOAD_POLL_INTERVAL = 2
UPLOAD_TIMEOUT = 300

SUPPORTED_VIDEO_FORMATS = [".mp4", ".mkv", ".avi", ".mov", ".webm", ".wmv", ".flv", ".mpeg", ".mpg", ".m4v"]
SUPPORTED_AUDIO_FORMATS = [".mp3", ".wav", ".m4a", ".flac", ".ogg", ".aac", ".opus"]
SUPPORTED_FORMATS = SUPPORTED_VIDEO_FORMATS + SUPPORTED_AUDIO_FORMATS

MIME_TYPES = {
    ".mp3": "audio/mp3",
    ".wav": "audio/wav",
    ".m4a": "audio/mp4",
    ".flac": "audio/flac",
    ".ogg": "audio/ogg",
    ".aac": "audio/aac",
    ".opus": "audio/ogg",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
}

# Models, in fallback order
CANDIDATE_MODELS = [
    "models/gemini-2.5-pro",
    "models/gemini-2.5-flash",
    "models/gemini-2.0-flash",
    "models/gemini-2.0-flash-lite",
]

MODEL_ALIASES = {
    "pro": "models/gemini-2.5-pro",
    "flash": "models/gemini-2.5-flash",
    "flash-lite": "models/gemini-2.0-flash-lite",
}

PRESETS = {
    "fast": {
        "model": "flash",
        "chunk_minutes": 15,
        "screenshot_count": 2,
        "description": "Fast processing with Gemini Flash",
    },
    "quality": {
        "model": "pro",
        "chunk_minutes": 10,
        "screenshot_count": 6,
        "description": "High quality with Gemini Pro",
    },
    "lite": {
        "model": "flash-lite",
        "chunk_minutes": 20,
        "screenshot_count": 2,
        "description": "Lowest cost, acceptable quality",
    },
}

OUTPUT_FORMATS = {
    "srt": "srt",
    "vtt": "vtt",
    "md": "markdown",
    "txt": "txt",
    "json": "json",
}
