"""Command-line interface for fitutils."""

import sys
import glob
import logging
import argparse
from pathlib import Path
from typing import List, Optional

# Load environment variables from .env file
from dotenv import load_dotenv
load_dotenv()

from fitutils import __version__
from fitutils.config import (
    DEFAULT_DEBUG_LEVEL,
    DEFAULT_MAX_WORKERS,
    DEFAULT_RENAME_PATTERN,
    LOG_FORMAT,
    STDOUT_SENTINEL,
)
from fitutils.data.pipeline_orchestrator import BatchProcessor, DirectoryLocks, FileOutcome
from fitutils.errors import FitUtilsError
from fitutils.export.exporters import ExportFormat, ExportTarget, SessionExporter, TargetKind
from fitutils.export.summary import format_session
from fitutils.integrations.registry import read_session
from fitutils.models.reports import BatchSummary
from fitutils.rename.renamer import FileRenamer

logger = logging.getLogger(__name__)

GLOB_CHARACTERS = "*?["


def setup_logging(debug: int = 0, quiet: bool = False):
    """Configure the root logger on stderr.

    Args:
        debug: 0 for INFO, 1 for DEBUG on fitutils, 2+ for DEBUG everywhere
        quiet: Only report errors
    """
    if quiet:
        level = logging.ERROR
    elif debug >= 2:
        level = logging.DEBUG
    else:
        level = logging.INFO

    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr, force=True)
    if debug >= 1 and not quiet:
        logging.getLogger("fitutils").setLevel(logging.DEBUG)
    else:
        logging.getLogger("fitutils").setLevel(logging.NOTSET)


def expand_inputs(arguments: List[str]) -> List[Path]:
    """Expand glob patterns the shell left alone; plain paths pass through."""
    files = []
    for argument in arguments:
        if any(ch in argument for ch in GLOB_CHARACTERS):
            matches = sorted(glob.glob(argument, recursive=True))
            if not matches:
                logger.warning(f"No files match {argument}")
            files.extend(Path(m) for m in matches)
        else:
            files.append(Path(argument))
    return files


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='fitutils',
        description='Export and rename FIT, GPX and TCX activity files',
        epilog='For more information on a specific command, run: fitutils <command> --help'
    )
    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )
    parser.add_argument(
        '-d', '--debug',
        action='count',
        default=DEFAULT_DEBUG_LEVEL,
        help='Increase log verbosity (-dd also shows library logs)'
    )
    parser.add_argument(
        '-q', '--quiet',
        action='store_true',
        help='Only report errors'
    )
    parser.add_argument(
        '-s', '--print-summary',
        action='store_true',
        help='Print a summary of the processed files at the end'
    )

    subparsers = parser.add_subparsers(
        dest='command',
        help='Available commands',
        metavar='<command>'
    )

    # Export command
    export_parser = subparsers.add_parser(
        'export',
        help='Export activity files to CSV or JSON',
        description='Export session, lap and record data from activity files'
    )
    export_parser.add_argument(
        'files',
        nargs='+',
        help='Input files (glob patterns are expanded)'
    )
    export_parser.add_argument(
        '-f', '--format',
        choices=[f.value for f in ExportFormat],
        default=ExportFormat.CSV.value,
        help='Output format (default: csv)'
    )
    export_parser.add_argument(
        '-o', '--output',
        help=f'Output file or directory, or {STDOUT_SENTINEL} for stdout (default: beside each input)'
    )
    export_parser.add_argument(
        '--json-array',
        action='store_true',
        help='Write all sessions as a single JSON array'
    )
    export_parser.add_argument(
        '--no-detail',
        action='store_true',
        help='Export only the session table, without laps and records'
    )
    export_parser.add_argument(
        '--summary-file',
        help='Also write one session row per input to this CSV file'
    )
    export_parser.add_argument(
        '-w', '--workers',
        type=int,
        default=DEFAULT_MAX_WORKERS,
        help=f'Files processed in parallel (default: {DEFAULT_MAX_WORKERS})'
    )

    # Rename command
    rename_parser = subparsers.add_parser(
        'rename',
        help='Rename activity files from their metadata',
        description='Rename activity files using a token pattern such as %year-%month-%day'
    )
    rename_parser.add_argument(
        'files',
        nargs='+',
        help='Input files (glob patterns are expanded)'
    )
    rename_parser.add_argument(
        '-p', '--pattern',
        default=DEFAULT_RENAME_PATTERN,
        help='Rename pattern (default: %(default)s)'
    )
    rename_parser.add_argument(
        '-r', '--dry-run',
        action='store_true',
        help='Show the new names without renaming anything'
    )
    rename_parser.add_argument(
        '--local-time',
        action='store_true',
        help='Render date and time tokens in the local time zone'
    )
    rename_parser.add_argument(
        '-w', '--workers',
        type=int,
        default=DEFAULT_MAX_WORKERS,
        help=f'Files processed in parallel (default: {DEFAULT_MAX_WORKERS})'
    )

    # Show command
    show_parser = subparsers.add_parser(
        'show',
        help='Print a summary of each activity file',
        description='Print device, timing, distance and heart-rate zone information'
    )
    show_parser.add_argument(
        'files',
        nargs='+',
        help='Input files (glob patterns are expanded)'
    )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    setup_logging(args.debug, args.quiet)
    files = expand_inputs(args.files)
    if not files:
        logger.error("No input files")
        return 1

    if args.command == 'export':
        target = ExportTarget.parse(args.output)
        single_output = args.format == ExportFormat.JSON.value and args.json_array
        if target.kind is TargetKind.FILE and len(files) > 1 and not single_output:
            parser.error('a single output file needs --json-array with -f json; use a directory for many inputs')

    # Route to appropriate handler
    try:
        if args.command == 'export':
            summary = cmd_export(args, files, target)
        elif args.command == 'rename':
            summary = cmd_rename(args, files)
        else:
            summary = cmd_show(args, files)
    except FitUtilsError as e:
        logger.error(f"Failed: {e}")
        return 1

    if args.print_summary:
        to_stderr = args.command == 'export' and args.output == STDOUT_SENTINEL
        stream = sys.stderr if to_stderr else sys.stdout
        for line in summary.format_lines():
            print(line, file=stream)

    return summary.exit_code


def cmd_export(args, files: List[Path], target: ExportTarget) -> BatchSummary:
    """Handle export command."""
    exporter = SessionExporter(
        export_format=ExportFormat(args.format),
        target=target,
        json_array=args.json_array,
        detail=not args.no_detail,
        summary_file=Path(args.summary_file) if args.summary_file else None,
    )
    summary = BatchProcessor(exporter, max_workers=args.workers).run(files)
    exporter.finish()
    return summary


def cmd_rename(args, files: List[Path]) -> BatchSummary:
    """Handle rename command."""
    renamer = FileRenamer(
        pattern=args.pattern,
        dry_run=args.dry_run,
        local_time=args.local_time,
        locks=DirectoryLocks(),
    )
    summary = BatchProcessor(renamer, max_workers=args.workers).run(files)

    for report in summary.reports:
        if report.outputs and report.outputs[0] != report.file_path:
            prefix = 'Would rename' if args.dry_run else 'Renamed'
            print(f"{prefix}: {report.file_path} -> {report.outputs[0]}")
    return summary


def cmd_show(args, files: List[Path]) -> BatchSummary:
    """Handle show command."""
    def show(index: int, source: Path) -> FileOutcome:
        session = read_session(source)
        if index:
            print()
        for line in format_session(session):
            print(line)
        return FileOutcome(warnings=list(session.issues))

    return BatchProcessor(show, max_workers=1).run(files)


if __name__ == "__main__":
    sys.exit(main())
