"""
Sanity checks for a window's transcript.

Checks that timestamps span the expected window duration, that there are no
long silent gaps, and that speaker labels have not fallen back to generic
placeholders after earlier windows named them.
"""

import re
import logging
from typing import Iterable, List, Optional, Sequence

from ..constants import GENERIC_SPEAKER_PATTERN, TIMING_OVERFLOW_TOLERANCE
from ..core.console import console
from ..core.models import (
    IssueKind, Severity, TranscriptSegment, ValidationConfig, ValidationIssue, ValidationOutcome,
)

logger = logging.getLogger("Longscribe.Validator")

_GENERIC_SPEAKER_RE = re.compile(GENERIC_SPEAKER_PATTERN, re.IGNORECASE)


def is_generic_speaker(label: str) -> bool:
    return bool(_GENERIC_SPEAKER_RE.match(label.strip()))


def validate(segments: Sequence[TranscriptSegment], expected_duration: float,
             known_speakers: Iterable[str] = (), config: Optional[ValidationConfig] = None) -> ValidationOutcome:
    """Evaluate one window's segments. Pure: the same input always yields the same outcome."""
    config = config or ValidationConfig()

    if not segments:
        return ValidationOutcome(
            valid=False,
            issues=[ValidationIssue(kind=IssueKind.EMPTY, severity=Severity.ERROR, message="Transcript is empty")],
        )

    starts = [segment.start for segment in segments]
    first, last = min(starts), max(starts)
    coverage = (last - first) / expected_duration * 100 if expected_duration > 0 else 0.0

    ordered = sorted(starts)
    largest_gap = max((b - a for a, b in zip(ordered, ordered[1:])), default=0.0)

    issues: List[ValidationIssue] = []

    if config.timing_checks:
        if coverage < config.min_coverage_percent:
            issues.append(ValidationIssue(
                kind=IssueKind.TIMING_UNDERFLOW,
                severity=Severity.ERROR if config.strict_timing else Severity.WARNING,
                message=(f"Transcript only covers {coverage:.1f}% of expected {expected_duration:.0f}s duration "
                         f"(minimum: {config.min_coverage_percent:.0f}%)"),
            ))
        if last > expected_duration * TIMING_OVERFLOW_TOLERANCE:
            issues.append(ValidationIssue(
                kind=IssueKind.TIMING_OVERFLOW,
                severity=Severity.WARNING,
                message=f"Last timestamp ({last:.0f}s) exceeds expected duration ({expected_duration:.0f}s)",
            ))
        if largest_gap > config.max_gap_seconds:
            issues.append(ValidationIssue(
                kind=IssueKind.TIMING_GAP,
                severity=Severity.WARNING,
                message=(f"Large gap of {largest_gap:.0f}s detected in transcript "
                         f"(max allowed: {config.max_gap_seconds:.0f}s)"),
            ))

    named_known = [s for s in known_speakers if not is_generic_speaker(s)]
    window_speakers = list(dict.fromkeys(segment.speaker for segment in segments))
    if named_known and all(is_generic_speaker(s) for s in window_speakers):
        issues.append(ValidationIssue(
            kind=IssueKind.SPEAKER_INCONSISTENCY,
            severity=Severity.WARNING,
            message=(f"Previous chunks used named speakers ({', '.join(named_known)}), "
                     f"but this chunk uses generic names ({', '.join(window_speakers)})"),
        ))

    return ValidationOutcome(
        valid=not any(issue.severity == Severity.ERROR for issue in issues),
        coverage_percent=coverage,
        issues=issues,
        entry_count=len(segments),
        largest_gap=largest_gap,
    )


def log_validation_result(outcome: ValidationOutcome, chunk_index: int) -> None:
    """Print a one-line verdict for the chunk, then one line per issue."""
    if outcome.valid and not outcome.issues:
        console.log(
            f"  ✓ Chunk {chunk_index + 1} validation passed "
            f"({outcome.coverage_percent:.0f}% coverage, {outcome.entry_count} entries)",
            style="success",
        )
        return

    if not outcome.valid:
        console.log(f"  ✗ Chunk {chunk_index + 1} validation failed:", style="error")
    else:
        console.log(f"  ⚠ Chunk {chunk_index + 1} validation warnings:", style="warning")

    for issue in outcome.issues:
        icon = "✗" if issue.severity == Severity.ERROR else "⚠"
        style = "error" if issue.severity == Severity.ERROR else "warning"
        console.log(f"    {icon} {issue.message}", style=style)
        logger.debug(f"Chunk {chunk_index + 1}: {issue.kind.value}: {issue.message}")
