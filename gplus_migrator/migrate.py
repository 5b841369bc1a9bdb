#!/usr/bin/env python3
"""
Google+ to Discourse Migration Tool - Main CLI Entry Point

This script provides the command-line interface for importing a Friends+Me
Google+ Exporter export into Discourse, and for updating already imported
topics and posts after the rendering rules changed.

Every file argument is sorted by its name: feed JSON files, the exporter's
image list (``.csv``), ``categories.json``, ``usermap.json``,
``blacklist.json``, and the ``*upload-paths.txt`` and ``*summary.json``
output files.
"""

import argparse
import contextlib
import logging
import sys
import threading
from typing import Any, Dict, List, Optional

from . import __version__
from .config_loader import ConfigLoader, ImportSettings, get_nested
from .converters.fragment_renderer import RunContext
from .errors import CategoryLookupError, ConfigurationError
from .importers.category_mapper import CategoryMapper
from .importers.discourse_client import DiscourseClient
from .importers.discourse_stores import (
    DiscourseCategoryStore,
    DiscourseContentStore,
    DiscourseIdentityStore,
    DiscourseUploadStore,
)
from .importers.id_mapping_tracker import IdMappingTracker
from .importers.identity_resolver import IdentityResolver
from .importers.media_cache import MediaCache
from .loaders import (
    InputFiles,
    load_blacklist,
    load_categories,
    load_feed,
    load_media_manifest,
    load_usermap,
)
from .logger import ProgressTracker, log_config, log_section, setup_logging
from .models import RunMode, RunStats
from .orchestrator.reconciliation_driver import ReconciliationDriver
from .orchestrator.run_report import RunReport, format_usermap_suggestions


def create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for CLI."""
    parser = argparse.ArgumentParser(
        prog='gplus-migrate',
        description="Import a Friends+Me Google+ Exporter export into Discourse, or update a previous import",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # First run with an empty categories.json writes categories.json.new to fill in
  gplus-migrate import community.json google-plus-image-list.csv categories.json

  # Full import, recording uploaded files
  gplus-migrate import community.json google-plus-image-list.csv categories.json \\
      blacklist.json upload-paths.txt

  # Preview without creating anything
  gplus-migrate import --dry-run community.json google-plus-image-list.csv categories.json

  # Re-render imported content after rendering changes
  gplus-migrate update community.json google-plus-image-list.csv usermap.json \\
      blacklist.json update-upload-paths.txt update-summary.json
        """
    )

    parser.add_argument(
        'mode',
        choices=['import', 'update'],
        help='import creates new content; update rewrites changed content'
    )

    parser.add_argument(
        'files',
        nargs='+',
        metavar='FILE',
        help='Input and output files, recognized by name'
    )

    parser.add_argument(
        '--config',
        type=str,
        default='config.yaml',
        help='Path to configuration file (default: config.yaml)'
    )

    parser.add_argument(
        '--dry-run',
        action='store_true',
        default=None,
        help='Parse, resolve and render without creating anything'
    )

    parser.add_argument(
        '--mapping-file',
        type=str,
        help='JSON file recording Google+ to Discourse id mappings'
    )

    parser.add_argument(
        '--report',
        type=str,
        help='Write the full run report as JSON to this path'
    )

    parser.add_argument(
        '--no-progress',
        dest='progress',
        action='store_false',
        default=None,
        help='Disable progress bars'
    )

    parser.add_argument(
        '--log-file',
        type=str,
        help='Path to log file'
    )

    parser.add_argument(
        '-v', '--verbose',
        action='count',
        default=0,
        help='Increase verbosity (-v for INFO, -vv for DEBUG)'
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    return parser


def run_migration(
    config: Dict[str, Any],
    files: List[str],
    logger: logging.Logger,
    cancel_event: Optional[threading.Event] = None,
    report_path: Optional[str] = None
) -> RunStats:
    """
    Load every input, prepare categories and users, then run the driver.

    Args:
        config: Validated configuration
        files: File arguments from the command line
        logger: Logger instance
        cancel_event: Set from outside to stop between top-level posts
        report_path: Optional path for the full JSON report

    Returns:
        Counters of the run

    Raises:
        ConfigurationError: For unknown file arguments or an incomplete category map
        CategoryLookupError: If a mapped category does not exist in Discourse
    """
    mode = RunMode(get_nested(config, 'migration.mode', 'import'))
    dry_run = bool(get_nested(config, 'migration.dry_run', False))
    inputs = InputFiles.classify(files)

    if not inputs.feeds:
        raise ConfigurationError("No Google+ export JSON files given")

    log_section("Loading input files")
    with ProgressTracker(len(inputs.feeds), "feed files") as tracker:
        feeds = []
        for path in inputs.feeds:
            feeds.append(load_feed(path))
            tracker.increment()

    references = load_media_manifest(inputs.media_manifest) if inputs.media_manifest else {}
    blacklist = load_blacklist(inputs.blacklist) if inputs.blacklist else set()
    usermap = load_usermap(inputs.usermap) if inputs.usermap else {}
    logger.info(
        f"{len(references)} downloaded media files, {len(blacklist)} blacklisted users, "
        f"{len(usermap)} usermap entries"
    )

    client = DiscourseClient.from_config(config)
    mappings = IdMappingTracker.load(
        get_nested(config, 'migration.mapping_file'),
        save_interval=get_nested(
            config, 'migration.mapping_save_interval', IdMappingTracker.DEFAULT_SAVE_INTERVAL
        )
    )
    content_store = DiscourseContentStore(client, mappings)

    try:
        categories = {}
        if mode is RunMode.IMPORT:
            log_section("Mapping categories")
            mapper = CategoryMapper(
                load_categories(inputs.categories) if inputs.categories else {},
                inputs.categories,
                category_store=DiscourseCategoryStore(client),
                dry_run=dry_run
            )
            categories = mapper.prepare(feeds)

        resolver = IdentityResolver(
            DiscourseIdentityStore(client, mappings),
            mode,
            overrides=usermap,
            blacklist=blacklist,
            dry_run=dry_run
        )
        media = MediaCache(references, DiscourseUploadStore(client), dry_run=dry_run)
        context = RunContext(
            mode=mode,
            resolver=resolver,
            media=media,
            settings=ImportSettings.from_config(config),
            dry_run=dry_run
        )

        log_section(f"Running {mode.value}")
        with contextlib.ExitStack() as stack:
            upload_manifest = None
            if inputs.upload_paths:
                upload_manifest = stack.enter_context(open(inputs.upload_paths, 'w', encoding='utf-8'))
            summary_file = None
            if inputs.summary:
                summary_file = stack.enter_context(open(inputs.summary, 'w', encoding='utf-8'))

            driver = ReconciliationDriver(
                context,
                content_store,
                categories,
                upload_manifest=upload_manifest,
                show_progress=bool(get_nested(config, 'migration.show_progress', True)),
                cancel_event=cancel_event
            )
            stats = driver.run(feeds)

            report = RunReport(stats)
            report_data = report.generate_report(media.stats)
            if summary_file is not None:
                report.write_summary(summary_file)
    finally:
        # Mappings of a failed or interrupted run must survive for the next run
        if mappings.dirty:
            mappings.save()
            logger.info(f"Saved id mappings to {mappings.path}")

    print(report.format_console_report(report_data))

    suggestions = format_usermap_suggestions(stats.invalid_identities)
    if suggestions:
        print("")
        print(suggestions)

    if report_path:
        report.export_json_report(report_data, report_path)

    return stats


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    try:
        setup_logging(verbosity=args.verbose)
        logger = logging.getLogger('gplus_migrator.migrate')

        log_section("Google+ to Discourse Migration Tool")
        logger.info(f"Version: {__version__}")

        logger.info(f"Loading configuration from {args.config}")
        config = ConfigLoader.load(args.config)
        config = ConfigLoader.merge_with_args(config, args)
        ConfigLoader.validate(config)

        # Reconfigure logging with config file settings
        setup_logging(
            verbosity=args.verbose,
            log_file=get_nested(config, 'logging.file'),
            level=get_nested(config, 'logging.level')
        )
        log_config(config)

        stats = run_migration(config, args.files, logger, report_path=args.report)

        if stats.cancelled:
            return 130
        if stats.errors:
            logger.warning(f"Completed with {len(stats.errors)} errors")
            return 1

        logger.info("Migration completed successfully")
        return 0

    except FileNotFoundError as e:
        print(f"ERROR: File not found: {e}", file=sys.stderr)
        return 2
    except (ConfigurationError, CategoryLookupError, ValueError) as e:
        print(f"ERROR: Configuration error: {e}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        print("\nMigration interrupted by user", file=sys.stderr)
        return 130
    except Exception as e:
        print(f"ERROR: Migration failed: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
