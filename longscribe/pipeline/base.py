import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from ..constants import OUTPUT_FORMATS, SUPPORTED_FORMATS
from ..core.console import console
from ..core.errors import ConfigurationError, MediaError
from ..core.manager import WorkspaceManager
from ..core.models import ContentContext, JobConfiguration, RunState, TranscriptSegment
from ..media import MediaToolkit, is_video_file
from ..plugins.manager import PluginManager
from ..providers.base import CompletionService
from ..utils import format_timestamp
from .assembler import TimelineAssembler
from .describe import ContentContextSynthesizer, unavailable
from .fallback import build_model_list
from .ingest import ChunkMaterializer
from .planner import plan_windows
from .report import ReportGenerator
from .speakers import SpeakerReconciler
from .transcribe import TranscriptionEngine, build_context_tail

logger = logging.getLogger("Longscribe.Pipeline")

DESCRIPTION_DISABLED = "No content description was requested for this recording."


@dataclass
class PipelineResult:
    segments: List[TranscriptSegment]
    outputs: Dict[str, Path] = field(default_factory=dict)
    failed_windows: List[int] = field(default_factory=list)
    progress_document: Optional[Path] = None
    report_path: Optional[Path] = None
    cost_usd: float = 0.0


class TranscriptionPipeline:
    """Orchestrator for one recording: plan, describe, transcribe window by window, assemble, render."""

    def __init__(self, config: JobConfiguration, service: CompletionService,
                 media: Optional[MediaToolkit] = None, work_root: Optional[Path] = None,
                 output_dir: Optional[Path] = None, plugin_manager: Optional[PluginManager] = None):
        self.config = config
        self.service = service
        self.media = media or MediaToolkit()
        self.work_root = work_root
        self.output_dir = Path(output_dir) if output_dir else None
        self.plugin_manager = plugin_manager or PluginManager()
        self.models = build_model_list(config.transcribe.preferred_model, config.transcribe.models)

    def run(self, input_path: Path, force: bool = False) -> PipelineResult:
        input_path = Path(input_path)
        self._check_input(input_path)
        self._check_formats()

        workspace = WorkspaceManager(input_path, self.work_root)
        workspace.prepare()
        if force:
            removed = workspace.clear_chunk_results()
            if removed:
                logger.info(f"Discarded {removed} cached chunk result(s)")
        logger.debug(f"Workspace: {workspace.job_dir}")

        try:
            return self._run(input_path, workspace, force)
        finally:
            self.service.cleanup()

    def _run(self, input_path: Path, workspace: WorkspaceManager, force: bool) -> PipelineResult:
        chunking = self.config.chunking

        with console.status(f"Probing {input_path.name}..."):
            duration = self.media.probe_duration(input_path)
        windows = plan_windows(duration, chunking.window_seconds, chunking.overlap_seconds)
        console.log(
            f"Duration {format_timestamp(duration)}, {len(windows)} chunk(s) of up to "
            f"{chunking.chunk_minutes:g} min with {chunking.overlap_minutes:g} min overlap",
            style="muted",
        )

        materializer = ChunkMaterializer(self.media, input_path, workspace.audio_dir, workspace.chunks_dir)
        with console.status("Extracting audio..."):
            source_audio = materializer.source_audio()

        # Phase 1: description
        console.heading("Phase 1: Content description")
        context = self._content_context(input_path, source_audio, duration, materializer, workspace, force)

        # Phase 2: transcription
        console.heading(f"Phase 2: Transcription ({len(windows)} chunk(s))")
        engine = TranscriptionEngine(
            self.service,
            self.models,
            workspace,
            chunk_audio=lambda window: materializer.materialize(source_audio, window),
            validation=self.config.validation,
            total_windows=len(windows),
            instructions=self.config.transcribe.instructions,
            fallback_delay=self.config.transcribe.fallback_delay_seconds,
            force=force,
        )
        reconciler = SpeakerReconciler()
        assembler = TimelineAssembler(workspace.progress_document, input_path.name, duration, len(windows), context)
        state = RunState(input_file=str(input_path), total_windows=len(windows))
        workspace.save_run_state(state)

        tail = ""
        for window in windows:
            result = engine.transcribe_window(
                window, tail, context, reconciler.known_speakers, self.config.validation.retries
            )
            if result.failed:
                state.failed_windows.append(window.index)
                # The last transcribed lines are no longer adjacent to the next window
                tail = ""
                console.warning(f"Chunk {window.index + 1} failed: {result.error}")
            else:
                result = result.model_copy(update={"segments": reconciler.process(result.segments)})
                tail = build_context_tail(result.segments, self.config.transcribe.context_tail_lines)
                state.completed_windows.append(window.index)
                source = "cache" if result.from_cache else result.model
                console.success(f"Chunk {window.index + 1}/{len(windows)}: {len(result.segments)} segments ({source})")

            assembler.add(result)
            workspace.save_run_state(state)

        segments = assembler.finalize()
        logger.info(f"Transcript assembled: {len(segments)} segments, {len(reconciler.known_speakers)} speaker(s)")

        # Phase 3: outputs
        console.heading("Phase 3: Output")
        output_dir = self.output_dir or input_path.parent
        render_context = {
            "title": input_path.stem,
            "source": input_path.name,
            "duration": format_timestamp(duration),
            "duration_seconds": duration,
            "description": context.description,
            "speakers": reconciler.known_speakers,
        }
        outputs = self._render_outputs(segments, output_dir, input_path.stem, render_context)

        report_path = None
        if self.config.output.report:
            generator = ReportGenerator(
                self.service, self.models, workspace.ledger, self.config.transcribe.fallback_delay_seconds
            )
            report = generator.generate(segments, context)
            report_path = generator.write(report, output_dir / f"{input_path.stem}.report.md", input_path.name)
            console.success(f"Report: {report_path}")

        cost = self.service.total_cost()
        self._print_cost_summary(cost)

        if state.failed_windows:
            console.warning(
                f"{len(state.failed_windows)} chunk(s) failed and are marked in the transcript: "
                + ", ".join(str(i + 1) for i in state.failed_windows)
            )

        return PipelineResult(
            segments=segments,
            outputs=outputs,
            failed_windows=list(state.failed_windows),
            progress_document=workspace.progress_document,
            report_path=report_path,
            cost_usd=cost,
        )

    def _content_context(self, input_path: Path, source_audio: Path, duration: float,
                         materializer: ChunkMaterializer, workspace: WorkspaceManager, force: bool) -> ContentContext:
        description_config = self.config.description
        if not description_config.enabled:
            return ContentContext(description=DESCRIPTION_DISABLED)

        if not force:
            cached = workspace.load_description()
            if cached is not None:
                console.log("Using cached content description", style="muted")
                return cached

        synthesizer = ContentContextSynthesizer(
            self.service,
            self.models,
            workspace.ledger,
            media=self.media,
            instructions=self.config.transcribe.instructions,
            fallback_delay=self.config.transcribe.fallback_delay_seconds,
        )

        try:
            sample = materializer.description_sample(source_audio, duration, description_config.sample_minutes)
        except MediaError as e:
            logger.warning(f"Could not cut the description sample: {e}")
            return ContentContext(description=unavailable(f"audio sample could not be extracted ({e})"), degraded=True)

        if is_video_file(input_path):
            context = synthesizer.synthesize_video(
                input_path, sample, workspace.screenshots_dir, description_config.screenshot_count
            )
        else:
            context = synthesizer.synthesize(sample)

        if context.degraded:
            console.warning("Content description is degraded; transcription continues without full context")
        else:
            workspace.save_description(context)
            console.success("Content description ready")
        logger.debug(f"Content description:\n{context.description}")
        return context

    def _render_outputs(self, segments: List[TranscriptSegment], output_dir: Path, stem: str,
                        render_context: Dict) -> Dict[str, Path]:
        outputs = {}
        for fmt in self.config.output.formats:
            plugin = self.plugin_manager.for_format(fmt)
            if not plugin:
                logger.warning(f"No renderer for '{fmt}'. Skipping {fmt} output.")
                continue
            if not segments:
                logger.warning(f"No segments to write. Skipping {fmt} output.")
                continue
            output_path = output_dir / f"{stem}.{plugin.default_extension}"
            outputs[fmt] = plugin.generate(segments, output_path, render_context)
            console.success(f"{fmt.upper()}: {output_path}")
        return outputs

    def _check_input(self, input_path: Path) -> None:
        if not input_path.exists():
            raise ConfigurationError(f"Input file not found: {input_path}")
        if input_path.suffix.lower() not in SUPPORTED_FORMATS:
            raise ConfigurationError(
                f"Unsupported format '{input_path.suffix}'. Supported: {', '.join(SUPPORTED_FORMATS)}"
            )

    def _check_formats(self) -> None:
        unknown = [fmt for fmt in self.config.output.formats if fmt not in OUTPUT_FORMATS]
        if unknown:
            raise ConfigurationError(
                f"Unknown output format(s): {', '.join(unknown)}. Available: {', '.join(OUTPUT_FORMATS)}"
            )

    def _print_cost_summary(self, cost: float) -> None:
        usage = self.service.usage
        if not usage:
            return
        input_tokens = sum(record.input_tokens for record in usage)
        output_tokens = sum(record.output_tokens for record in usage)
        console.log(
            f"{len(usage)} request(s), {input_tokens:,} input / {output_tokens:,} output tokens, "
            f"estimated cost ${cost:.4f}",
            style="muted",
        )
