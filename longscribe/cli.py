import argparse
import sys
import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from rich.markup import escape
from rich.table import Table

from . import __version__
from .constants import DEFAULT_VALIDATION_RETRIES, OUTPUT_FORMATS, PRESETS
from .core.config import apply_preset, load_config, resolve_model_name
from .core.console import console
from .core.errors import ConfigurationError, LongscribeError
from .core.factory import ProviderFactory
from .core.manager import WorkspaceManager
from .core.models import ConfigContext, JobConfiguration

# Logger will be initialized after config is loaded
logger = logging.getLogger("Longscribe.CLI")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="longscribe",
        description="Longscribe - transcribe long recordings with speaker labels using Gemini.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging.")
    parser.add_argument("--config", help="Path to config.yaml")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    run_parser = subparsers.add_parser("run", help="Transcribe a recording")
    run_parser.add_argument("file", help="Input audio or video file")
    run_parser.add_argument("-m", "--model", help="Preferred model (pro, flash, flash-lite or a full model name)")
    run_parser.add_argument("--preset", choices=list(PRESETS), help="Model and chunking preset")
    run_parser.add_argument("-i", "--instructions", help="Extra instructions, e.g. speaker names or language")
    run_parser.add_argument("--chunk-minutes", type=float, help="Length of each chunk in minutes")
    run_parser.add_argument("--overlap-minutes", type=float, help="Overlap between consecutive chunks in minutes")
    run_parser.add_argument("--validation-retries", type=int,
                            help=f"Corrective retries per chunk (default: {DEFAULT_VALIDATION_RETRIES})")
    run_parser.add_argument("--no-timing-check", action="store_true", help="Skip timestamp coverage checks")
    run_parser.add_argument("--strict-timing", action="store_true", help="Treat low coverage as an error")
    run_parser.add_argument("--no-description", action="store_true", help="Skip the content description phase")
    run_parser.add_argument("-f", "--force", action="store_true", help="Ignore cached chunks and description")
    run_parser.add_argument("--report", action="store_true", help="Also generate a meeting report")
    run_parser.add_argument("--format", help=f"Comma-separated output formats ({', '.join(OUTPUT_FORMATS)})")
    run_parser.add_argument("-o", "--output-dir", help="Directory for output files (default: next to the input)")
    run_parser.add_argument("-v", "--verbose", action="store_true", default=argparse.SUPPRESS, help="Enable verbose logging.")

    ledger_parser = subparsers.add_parser("ledger", help="Show the call ledger of a recording")
    ledger_parser.add_argument("file", help="Input file the ledger belongs to")
    ledger_parser.add_argument("--window", type=int, help="Only show calls for this chunk (1-based)")

    clean_parser = subparsers.add_parser("clean", help="Delete the cached workspace of a recording")
    clean_parser.add_argument("file", help="Input file whose workspace should be deleted")

    return parser


def apply_cli_overrides(config: JobConfiguration, args: argparse.Namespace) -> JobConfiguration:
    """Command line flags win over presets, which win over config.yaml."""
    if args.preset:
        apply_preset(config, args.preset)
    if args.model:
        config.transcribe.preferred_model = resolve_model_name(args.model)
    if args.instructions:
        config.transcribe.instructions = args.instructions
    if args.chunk_minutes is not None:
        config.chunking.chunk_minutes = args.chunk_minutes
    if args.overlap_minutes is not None:
        config.chunking.overlap_minutes = args.overlap_minutes
    if args.validation_retries is not None:
        if args.validation_retries < 0:
            raise ConfigurationError("--validation-retries cannot be negative")
        config.validation.retries = args.validation_retries
    if args.no_timing_check:
        config.validation.timing_checks = False
    if args.strict_timing:
        config.validation.strict_timing = True
    if args.no_description:
        config.description.enabled = False
    if args.report:
        config.output.report = True
    if args.format:
        config.output.formats = _parse_formats(args.format)
    if args.output_dir:
        config.output.directory = args.output_dir
    if args.verbose:
        config.debug = True
    return config


def _parse_formats(value: str) -> List[str]:
    formats = [f.strip().lower() for f in value.split(",") if f.strip()]
    unknown = [f for f in formats if f not in OUTPUT_FORMATS]
    if unknown:
        raise ConfigurationError(f"Unknown output format(s): {', '.join(unknown)}. Available: {', '.join(OUTPUT_FORMATS)}")
    return formats


def _work_root(config_context: ConfigContext) -> Optional[Path]:
    return Path(config_context.paths.work).expanduser() if config_context.paths.work else None


def cmd_run(args: argparse.Namespace, config_context: ConfigContext) -> int:
    from .pipeline.base import TranscriptionPipeline

    config = apply_cli_overrides(config_context.defaults, args)
    provider_name = config.transcribe.provider
    provider_config = config_context.providers.get(provider_name)
    if provider_config is None:
        logger.warning(f"No configuration found for provider {provider_name}. Using defaults.")
    service = ProviderFactory.create(provider_name, provider_config)

    output_dir = Path(config.output.directory).expanduser() if config.output.directory else None
    pipeline = TranscriptionPipeline(config, service, work_root=_work_root(config_context), output_dir=output_dir)

    console.print(f"[bold]Longscribe[/bold] {__version__}: {Path(args.file).name}")
    result = pipeline.run(Path(args.file), force=args.force)

    console.success(f"Progress document: {result.progress_document}")
    return 0


def cmd_ledger(args: argparse.Namespace, config_context: ConfigContext) -> int:
    workspace = WorkspaceManager(Path(args.file), _work_root(config_context))
    if args.window is not None:
        entries = workspace.ledger.entries_for(args.window - 1)
    else:
        entries = workspace.ledger.read_all()

    if not entries:
        console.warning(f"No ledger entries found in {workspace.ledger.path}")
        return 0

    table = Table(title=f"Ledger: {Path(args.file).name}")
    table.add_column("Time", style="muted")
    table.add_column("Stage")
    table.add_column("Chunk", justify="right")
    table.add_column("Attempt", justify="right")
    table.add_column("Model")
    table.add_column("Outcome")

    for entry in entries:
        when = datetime.fromtimestamp(entry.timestamp_ms / 1000).strftime("%H:%M:%S")
        chunk = str(entry.window_index + 1) if entry.window_index is not None else "-"
        if entry.error:
            outcome = f"[error]{escape(entry.error[:80])}[/error]"
        else:
            outcome = escape(entry.validation or "ok")
        table.add_row(when, entry.stage, chunk, str(entry.attempt), entry.model or "-", outcome)

    console.print(table)
    return 0


def cmd_clean(args: argparse.Namespace, config_context: ConfigContext) -> int:
    workspace = WorkspaceManager(Path(args.file), _work_root(config_context))
    if not workspace.exists():
        console.warning(f"No workspace found for {args.file}")
        return 0
    workspace.delete()
    console.success(f"Deleted workspace {workspace.job_dir}")
    return 0


COMMANDS = {
    "run": cmd_run,
    "ledger": cmd_ledger,
    "clean": cmd_clean,
}


def main(argv: Optional[List[str]] = None) -> None:
    global logger

    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(0)

    try:
        config_context = load_config(args.config)
    except ConfigurationError as e:
        console.error_panel(str(e), title="Configuration Error")
        sys.exit(1)

    # Initialize logging now that we have config
    from .utils import setup_logging
    debug_mode = args.verbose or config_context.defaults.debug
    output_mode = "verbose" if debug_mode else config_context.defaults.output_mode
    logger = setup_logging(debug=debug_mode, output_mode=output_mode).getChild("CLI")
    console.configure(output_mode=output_mode, debug=debug_mode)

    try:
        sys.exit(COMMANDS[args.command](args, config_context))
    except KeyboardInterrupt:
        console.warning("Interrupted. Completed chunks are cached; run again to resume.")
        sys.exit(130)
    except LongscribeError as e:
        logger.debug(f"{type(e).__name__}: {e}")
        console.verbose_error(args.command, e, {"file": getattr(args, "file", None)})
        console.error_panel(str(e), title=type(e).__name__)
        sys.exit(1)
    except Exception as e:
        logger.error(f"An unexpected error occurred: {e}")
        console.verbose_error(args.command, e, {"file": getattr(args, "file", None)})
        console.error_panel(str(e), title="Unexpected Error")
        sys.exit(1)


if __name__ == "__main__":
    main()
