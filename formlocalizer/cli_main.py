# -*- coding: utf-8 -*-
"""
FormLocalizer CLI Main Module
"""

import sys
import argparse
import signal
import logging
from typing import List, Optional

from formlocalizer import __version__
from formlocalizer.core.exceptions import ConfigError
from formlocalizer.core.extraction_pipeline import ExtractionPipeline, PipelineResult
from formlocalizer.utils.config import ConfigManager


class CliHandler:
    """Prints pipeline progress and the final result."""

    def __init__(self, verbose: bool = False):
        self.verbose = verbose

    def on_progress_updated(self, current: int, total: int, text: str):
        if not self.verbose:
            return
        percent = 0
        if total > 0:
            percent = int((current / total) * 100)

        # Clear line and print progress
        sys.stdout.write(f"\rProgress: [{current}/{total}] {percent}% - {text[-50:].ljust(50)}")
        sys.stdout.flush()

    def on_finished(self, result: PipelineResult):
        print("\n" + "=" * 60)
        if result.success:
            print("SUCCESS")
            print(result.message)
            if result.stats:
                print("\nStatistics:")
                print(f"  Files:       {result.stats.get('files', 0)}")
                print(f"  Messages:    {result.stats.get('messages', 0)}")
                print(f"  Skipped:     {result.stats.get('skipped', 0)}")
                print(f"  Diagnostics: {result.stats.get('diagnostics', 0)}")
                domains = result.stats.get('domains') or []
                if domains:
                    print(f"  Domains:     {', '.join(domains)}")
            for path in result.output_paths or []:
                print(f"  -> {path}")
        else:
            print("FAILED")
            print(result.message)
            if result.error and result.error != result.message:
                print(f"Details: {result.error}")
        print("=" * 60)


def setup_logging(verbose: bool):
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler()]
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=f"FormLocalizer v{__version__} CLI")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    extract_parser = subparsers.add_parser('extract', help='Extract form messages from PHP sources')
    extract_parser.add_argument("locales", nargs='*', help="Locales to write catalogues for (default: from config)")
    extract_parser.add_argument("--dir", "-d", action="append", dest="dirs", default=[],
                                help="Directory to scan (repeatable)")
    extract_parser.add_argument("--exclude-dir", action="append", default=[],
                                help="Directory name to skip (repeatable, globs allowed)")
    extract_parser.add_argument("--exclude-name", action="append", default=[],
                                help="File name glob to skip (repeatable)")
    extract_parser.add_argument("--domain", action="append", default=[],
                                help="Only write this domain (repeatable)")
    extract_parser.add_argument("--ignore-domain", action="append", default=[],
                                help="Never write this domain (repeatable)")
    extract_parser.add_argument("--output-dir", "-o", help="Output directory")
    extract_parser.add_argument("--output-format", choices=["xlf", "json"], help="Output format")
    extract_parser.add_argument("--config", "-c", help="Path to JSON configuration file")
    extract_parser.add_argument("--custom-field", action="append", default=[],
                                help="Extra option key holding messages, e.g. 'help' (repeatable)")
    extract_parser.add_argument("--legacy-choices", action="store_true",
                                help="Read choice labels from values unless choices_as_values is set")
    extract_parser.add_argument("--strict", action="store_true",
                                help="Fail on the first option value that cannot be extracted")
    extract_parser.add_argument("--dry-run", action="store_true", help="Extract but do not write files")
    extract_parser.add_argument("--report", help="Write a JSON extraction report to this path")
    extract_parser.add_argument("--add-filerefs", action=argparse.BooleanOptionalAction, default=None,
                                help="Write source file references")
    extract_parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    return parser


def apply_args(config_manager: ConfigManager, args) -> None:
    """Apply explicit CLI args (priority over config file)."""
    extraction = config_manager.extraction_settings
    output = config_manager.output_settings

    if args.locales:
        extraction.locales = list(args.locales)
    if args.dirs:
        extraction.scan_dirs = list(args.dirs)
    if args.exclude_dir:
        extraction.excluded_dirs = extraction.excluded_dirs + list(args.exclude_dir)
    if args.exclude_name:
        extraction.excluded_names = extraction.excluded_names + list(args.exclude_name)
    if args.domain:
        extraction.domains = list(args.domain)
    if args.ignore_domain:
        extraction.ignored_domains = extraction.ignored_domains + list(args.ignore_domain)
    if args.custom_field:
        extraction.custom_fields = extraction.custom_fields + list(args.custom_field)
    if args.legacy_choices:
        extraction.choice_convention = "legacy"
    if args.strict:
        extraction.strict = True

    if args.output_dir:
        output.output_dir = args.output_dir
    if args.output_format:
        output.output_format = args.output_format
    if args.add_filerefs is not None:
        output.add_filerefs = args.add_filerefs


def run_extract_command(args) -> int:
    config_manager = ConfigManager(args.config)
    try:
        if args.config and not config_manager.load_config():
            print(f"Error: Config file not found: {args.config}")
            return 1
        apply_args(config_manager, args)
        config_manager.validate()
    except ConfigError as e:
        print(f"Error: {e}")
        return 1

    extraction = config_manager.extraction_settings
    print(f"FormLocalizer CLI v{__version__}")
    print(f"Scan: {', '.join(extraction.scan_dirs)}")
    print(f"Locales: {', '.join(extraction.locales)}")
    print("-" * 40)

    handler = CliHandler(verbose=args.verbose)
    pipeline = ExtractionPipeline(
        extraction,
        config_manager.output_settings,
        progress_callback=handler.on_progress_updated,
        dry_run=args.dry_run,
    )

    # Ctrl+C stops after the node being visited
    previous = signal.signal(signal.SIGINT, lambda *_: pipeline.stop())
    try:
        result = pipeline.run()
    finally:
        signal.signal(signal.SIGINT, previous)

    if args.report:
        pipeline.report.project = ", ".join(extraction.scan_dirs)
        pipeline.report.write(args.report)

    handler.on_finished(result)
    return 0 if result.success else 1


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command != 'extract':
        parser.print_help()
        return 1

    setup_logging(args.verbose)
    return run_extract_command(args)


if __name__ == "__main__":
    sys.exit(main())
