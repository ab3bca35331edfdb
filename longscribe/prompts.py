"""
Prompts for the multi-phase transcription pipeline.

Phase 1: Description - understand what the recording is about
Phase 2: Transcription - transcribe each chunk with context from Phase 1
Phase 3: Report - optional summary and action items
"""

from typing import Iterable, Optional

from .utils import format_short_timestamp


def _instructions_block(user_instructions: Optional[str], label: str = "USER INSTRUCTIONS") -> str:
    return f"{label}: {user_instructions}\n\n" if user_instructions else ""

# ---------------------------------------------------------------------------
# Phase 1: Description
# ---------------------------------------------------------------------------

def image_description_prompt(user_instructions: Optional[str] = None) -> str:
    return f"""
Analyze these screenshots from a video recording. Describe:

1. **Participants**: Who is visible? Describe their appearance, apparent role, and any visible name tags or identifiers.
2. **Setting**: What kind of meeting/content is this? (interview, presentation, podcast, conference call, etc.)
3. **Visual Content**: What's shown on screen? (slides, demos, documents, shared screens)
4. **Emotional State**: What emotions or engagement levels do you observe in participants?
5. **Context Clues**: Any visible text, logos, or other identifying information.

{_instructions_block(user_instructions)}IMPORTANT: Do NOT guess the date, time, or location unless explicitly visible in the screenshots. Only report what you can directly observe.

Provide a detailed but concise description that will help with speaker identification during transcription.
Respond in plain text.
"""


def audio_description_prompt(user_instructions: Optional[str] = None) -> str:
    return f"""
Listen to this audio sample and describe:

1. **Speakers**: How many distinct speakers are there? Describe their voice characteristics (gender, accent, tone).
2. **Topic**: What is being discussed? What is the main subject matter?
3. **Format**: Is this a meeting, interview, presentation, podcast, or other format?
4. **Tone**: Is it formal or casual? Technical or general audience?
5. **Key Participants**: If names are mentioned, note them and associate with voice descriptions.

{_instructions_block(user_instructions)}IMPORTANT: Do NOT guess the meeting date/time unless explicitly stated in the audio. Only include factual information that you can directly hear.

Provide a description that will help identify speakers during the full transcription.
Respond in plain text.
"""


def merge_description_prompt(image_description: str, audio_description: str,
                             user_instructions: Optional[str] = None) -> str:
    return f"""
You are given two descriptions of the same content:
1. A visual description based on video screenshots
2. An audio description based on an audio sample

Merge these into a single, coherent description that:
- Combines visual and audio observations about participants
- Associates visual appearances with voice characteristics
- Provides a complete picture of what this content is about
- Notes any discrepancies between visual and audio information

{_instructions_block(user_instructions)}## Visual Description
{image_description}

## Audio Description
{audio_description}

Output a unified plain-text description that will serve as context for transcription.
"""

# ---------------------------------------------------------------------------
# Phase 2: Transcription
# ---------------------------------------------------------------------------

def transcription_prompt(description: str, chunk_number: int, total_chunks: int,
                         chunk_duration: float, previous_transcription: str = "",
                         known_speakers: Iterable[str] = (),
                         user_instructions: Optional[str] = None) -> str:
    known = list(known_speakers)
    previous_block = ""
    if previous_transcription:
        previous_block = f"""
## Previous Transcription (for continuity)
The lines below were already transcribed from the end of the previous chunk.
Do NOT transcribe them again. Continue from where they leave off.

...
{previous_transcription}
...
"""
    speakers_block = ""
    if known:
        speakers_block = f"""
## Known Speakers
These speakers were identified in earlier chunks: {", ".join(known)}.
Keep using exactly these labels for the same people. Only introduce a new label for a new voice.
"""

    return f"""
You are transcribing chunk {chunk_number} of {total_chunks} of a recording.
This chunk is {format_short_timestamp(chunk_duration)} long ({chunk_duration:.0f} seconds).

## Meeting/Content Description
{description}
{previous_block}{speakers_block}
## Transcription Instructions
1. Transcribe the audio verbatim - do not summarize
2. Identify and label each speaker consistently (use names if known from the description)
3. Timestamps are relative to the start of THIS chunk, in MM:SS or HH:MM:SS format,
   between 00:00 and {format_short_timestamp(chunk_duration)}
4. Note emotions, tone, pauses, and non-verbal cues like (laughs), (sighs), (hesitant), (long pause), (crosstalk)
5. If speakers talk over each other, note it as (overlapping)

{_instructions_block(user_instructions, "ADDITIONAL INSTRUCTIONS")}## Output Format
Return a JSON array with this structure:
[
  {{
    "speaker": "Speaker Name or Speaker 1",
    "start": "MM:SS",
    "end": "MM:SS",
    "text": "What they said",
    "tone": "optional delivery, e.g. amused, serious"
  }}
]

IMPORTANT:
- Be consistent with speaker names across the transcription
- If you can identify speakers by name from context, use their names
- Cover the whole chunk, from the first to the last second of audio
"""


def corrective_hint(chunk_duration: float, issues: Iterable[str]) -> str:
    """Appended to the transcription prompt when the previous attempt failed validation."""
    listed = "\n".join(f"- {issue}" for issue in issues)
    return f"""
## CORRECTION REQUIRED
Your previous attempt for this chunk had problems:
{listed}

This audio chunk is exactly {chunk_duration:.0f} seconds long.
Timestamps MUST run from 00:00 to about {format_short_timestamp(chunk_duration)} and cover the entire chunk.
Do not stop early, do not skip sections, and do not use timestamps beyond {format_short_timestamp(chunk_duration)}.
"""

# ---------------------------------------------------------------------------
# Phase 3: Report
# ---------------------------------------------------------------------------

REPORT_PROMPT = """
You are an expert meeting analyst. Analyze the following transcript and generate a comprehensive meeting report.

OUTPUT RULES:
1. Output MUST be valid JSON.
2. Structure:
{
  "title": "Brief meeting title based on content",
  "summary": "2-3 paragraph executive summary",
  "keyPoints": ["Key point 1", "Key point 2"],
  "decisions": ["Decision 1", "Decision 2"],
  "actionItems": [
    { "owner": "Person name", "task": "Task description", "deadline": "If mentioned" }
  ],
  "topics": ["Topic 1", "Topic 2"],
  "participants": ["Speaker 1", "Speaker 2"]
}
3. Be thorough but concise.
4. If no decisions or action items are found, use empty arrays.
5. Extract specific names, dates, and commitments when mentioned.
"""


def report_prompt(description: str, transcript_text: str) -> str:
    return f"{REPORT_PROMPT}\n\nMEETING DESCRIPTION:\n{description}\n\nTRANSCRIPT:\n{transcript_text}"
