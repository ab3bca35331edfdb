from enum import Enum
from typing import Dict, List, Optional, Any
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..constants import (
    CANDIDATE_MODELS, CONTEXT_TAIL_LINES, DEFAULT_CHUNK_MINUTES,
    DEFAULT_OVERLAP_MINUTES, DEFAULT_MAX_GAP_SECONDS, DEFAULT_MIN_COVERAGE_PERCENT,
    DEFAULT_SCREENSHOT_COUNT, DEFAULT_VALIDATION_RETRIES, DESCRIPTION_SAMPLE_MINUTES,
    FALLBACK_DELAY_SECONDS,
)
from ..utils import parse_timestamp

# ---------------------------------------------------------------------------
# Transcript
# ---------------------------------------------------------------------------

class Window(BaseModel):
    """A time range of the source recording processed as one unit of work."""
    model_config = ConfigDict(frozen=True)

    index: int
    start_seconds: float
    end_seconds: float

    @property
    def duration(self) -> float:
        return self.end_seconds - self.start_seconds


class TranscriptSegment(BaseModel):
    speaker: str
    start: float
    end: Optional[float] = None
    text: str
    tone: Optional[str] = None

    def shifted(self, offset: float) -> "TranscriptSegment":
        """Return a copy moved by `offset` seconds."""
        return self.model_copy(update={
            "start": self.start + offset,
            "end": self.end + offset if self.end is not None else None,
        })


class RawSegment(BaseModel):
    """Strict schema for one segment as returned by the model."""
    model_config = ConfigDict(extra="ignore")

    speaker: str = Field(min_length=1)
    start: float = Field(ge=0)
    end: Optional[float] = None
    text: str = Field(min_length=1)
    tone: Optional[str] = None

    @field_validator("speaker", "text", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("start", mode="before")
    @classmethod
    def _parse_start(cls, value: Any) -> float:
        return parse_timestamp(value)

    @field_validator("end", mode="before")
    @classmethod
    def _parse_end(cls, value: Any) -> Optional[float]:
        if value is None or value == "":
            return None
        return parse_timestamp(value)

    def to_segment(self) -> TranscriptSegment:
        return TranscriptSegment(
            speaker=self.speaker,
            start=self.start,
            end=self.end,
            text=self.text,
            tone=self.tone or None,
        )

# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

class IssueKind(str, Enum):
    TIMING_UNDERFLOW = "timing_underflow"
    TIMING_OVERFLOW = "timing_overflow"
    TIMING_GAP = "timing_gap"
    SPEAKER_INCONSISTENCY = "speaker_inconsistency"
    EMPTY = "empty"


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class ValidationIssue(BaseModel):
    kind: IssueKind
    severity: Severity
    message: str


class ValidationOutcome(BaseModel):
    valid: bool
    coverage_percent: float = 0.0
    issues: List[ValidationIssue] = Field(default_factory=list)
    entry_count: int = 0
    largest_gap: float = 0.0

    def has_issue(self, *kinds: IssueKind) -> bool:
        return any(issue.kind in kinds for issue in self.issues)

    def summary(self) -> str:
        state = "valid" if self.valid else "invalid"
        text = f"{state}, {self.coverage_percent:.1f}% coverage, {self.entry_count} entries"
        if self.issues:
            text += "; " + "; ".join(f"{i.kind.value} ({i.severity.value})" for i in self.issues)
        return text


class ChunkResult(BaseModel):
    window: Window
    segments: List[TranscriptSegment] = Field(default_factory=list)
    validation: ValidationOutcome
    attempts: int = 0
    model: Optional[str] = None
    failed: bool = False
    error: Optional[str] = None
    from_cache: bool = False

# ---------------------------------------------------------------------------
# Context, ledger and run state
# ---------------------------------------------------------------------------

class ContentContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    description: str
    image_description: Optional[str] = None
    audio_description: Optional[str] = None
    degraded: bool = False


class LedgerEntry(BaseModel):
    timestamp_ms: int
    stage: str = "transcription"
    window_index: Optional[int] = None
    attempt: int = 1
    model: Optional[str] = None
    prompt: str
    response: Optional[str] = None
    error: Optional[str] = None
    validation: Optional[str] = None


class RunState(BaseModel):
    """Resume bookkeeping for one input file."""
    input_file: str
    total_windows: int = 0
    completed_windows: List[int] = Field(default_factory=list)
    failed_windows: List[int] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)


class PricingModel(BaseModel):
    input: float = 0.0
    output: float = 0.0


class ModelSpec(BaseModel):
    name: str
    cost_per_1M_tokens_usd: PricingModel = Field(default_factory=PricingModel)


class UsageRecord(BaseModel):
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    estimated_cost_usd: float = 0.0


class ActionItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    owner: Optional[str] = None
    task: str
    deadline: Optional[str] = None


class MeetingReport(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    title: str = "Untitled"
    summary: str = ""
    key_points: List[str] = Field(default_factory=list, alias="keyPoints")
    decisions: List[str] = Field(default_factory=list)
    action_items: List[ActionItem] = Field(default_factory=list, alias="actionItems")
    topics: List[str] = Field(default_factory=list)
    participants: List[str] = Field(default_factory=list)

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

class ChunkingConfig(BaseModel):
    chunk_minutes: float = DEFAULT_CHUNK_MINUTES
    overlap_minutes: float = DEFAULT_OVERLAP_MINUTES

    @property
    def window_seconds(self) -> float:
        return self.chunk_minutes * 60

    @property
    def overlap_seconds(self) -> float:
        return self.overlap_minutes * 60


class DescriptionConfig(BaseModel):
    enabled: bool = True
    sample_minutes: float = DESCRIPTION_SAMPLE_MINUTES
    screenshot_count: int = DEFAULT_SCREENSHOT_COUNT


class ValidationConfig(BaseModel):
    timing_checks: bool = True
    strict_timing: bool = False
    min_coverage_percent: float = DEFAULT_MIN_COVERAGE_PERCENT
    max_gap_seconds: float = DEFAULT_MAX_GAP_SECONDS
    retries: int = Field(default=DEFAULT_VALIDATION_RETRIES, ge=0)


class TranscribeConfig(BaseModel):
    provider: str = "gemini"
    preferred_model: Optional[str] = None
    models: List[str] = Field(default_factory=lambda: list(CANDIDATE_MODELS))
    fallback_delay_seconds: float = FALLBACK_DELAY_SECONDS
    context_tail_lines: int = CONTEXT_TAIL_LINES
    instructions: Optional[str] = None


class OutputConfig(BaseModel):
    formats: List[str] = Field(default_factory=lambda: ["srt", "md"])
    directory: Optional[str] = None
    report: bool = False


class PathsConfig(BaseModel):
    # None keeps each workspace next to its input file
    work: Optional[str] = None


class JobConfiguration(BaseModel):
    debug: bool = False
    output_mode: str = "standard"
    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    description: DescriptionConfig = Field(default_factory=DescriptionConfig)
    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    transcribe: TranscribeConfig = Field(default_factory=TranscribeConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)


class ConfigContext(BaseModel):
    defaults: JobConfiguration = Field(default_factory=JobConfiguration)
    providers: Dict[str, Any] = Field(default_factory=dict)
    paths: PathsConfig = Field(default_factory=PathsConfig)
