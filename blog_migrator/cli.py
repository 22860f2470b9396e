"""
Command line entry point.

Usage::

    blog-migrator --post https://example.tistory.com/12
    blog-migrator --all [--retry-failed]
    blog-migrator --export-failed [PATH] --export-links [PATH] --export-post-map [PATH]

Exit code 0 when every post migrated, 1 when any post failed, the run was
interrupted, or setup failed.  SIGINT/SIGTERM stop new posts from starting;
running posts finish and the ledger is closed before exiting.
"""

from __future__ import annotations

import argparse
import logging
import os
import signal
from typing import List, Optional
from urllib.parse import urlparse

from blog_migrator.config import DEFAULT_CONFIG_FILE, Settings, load_settings
from blog_migrator.db.ledger import LedgerStore
from blog_migrator.migration_tool import MigrationTool
from blog_migrator.utils.errors import ConfigurationError, PreFlightCheckError, set_report_dir
from blog_migrator.utils.logger import setup_logging
from blog_migrator.utils.pre_flight_checks import run_wordpress_pre_flight_checks

logger = logging.getLogger(__name__)

_STOP_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="blog-migrator",
        description="Migrate Tistory posts to WordPress drafts",
    )
    p.add_argument("--config", default=DEFAULT_CONFIG_FILE, help="Path of the JSON configuration file")
    run = p.add_mutually_exclusive_group()
    run.add_argument("--post", metavar="URL", help="Migrate a single post")
    run.add_argument("--all", action="store_true", help="Migrate every post of the blog, resuming the last run")
    p.add_argument("--retry-failed", action="store_true", help="With --all, also retry posts that failed")
    p.add_argument("--export-links", nargs="?", const="", metavar="PATH", help="Write internal links as JSON")
    p.add_argument("--export-failed", nargs="?", const="", metavar="PATH", help="Write unresolved failures as JSON")
    p.add_argument("--export-post-map", nargs="?", const="", metavar="PATH", help="Write the post map as CSV")
    p.add_argument("--job-id", type=int, default=None, help="Restrict --export-links to one job")
    p.add_argument("--skip-preflight", action="store_true", help="Do not check the WordPress credentials first")
    return p


def _valid_post_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _run_exports(tool: MigrationTool, args: argparse.Namespace, settings: Settings) -> None:
    output_dir = settings.migration.output_dir
    if args.export_links is not None:
        tool.export_links(args.export_links or os.path.join(output_dir, "internal_links.json"), args.job_id)
    if args.export_failed is not None:
        tool.export_failed(args.export_failed or os.path.join(output_dir, "failed_posts.json"))
    if args.export_post_map is not None:
        tool.export_post_map(args.export_post_map or os.path.join(output_dir, "post_map.csv"))


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    wants_export = any(v is not None for v in (args.export_links, args.export_failed, args.export_post_map))
    run_all = args.all or args.retry_failed
    if not args.post and not run_all and not wants_export:
        parser.print_usage()
        return 1
    if args.post and not _valid_post_url(args.post):
        parser.print_usage()
        print(f"Invalid post URL: {args.post}")
        return 1

    try:
        settings = load_settings(config_file=args.config)
    except ConfigurationError as e:
        setup_logging()
        logger.error("Configuration error: %s", e)
        return 1

    setup_logging(settings.logging.level, settings.logging.file)
    set_report_dir(settings.migration.reports_dir)

    if (args.post or run_all) and not args.skip_preflight:
        try:
            run_wordpress_pre_flight_checks(settings.wordpress)
        except PreFlightCheckError as e:
            logger.error("Pre-flight check failed: %s", e)
            return 1

    previous_handlers = {}
    try:
        with LedgerStore(settings.migration.db_path) as ledger:
            tool = MigrationTool(settings, ledger)

            def handle_stop(signum, frame):
                logger.warning("Received %s; finishing running posts", signal.Signals(signum).name)
                tool.request_stop()

            for sig in _STOP_SIGNALS:
                previous_handlers[sig] = signal.signal(sig, handle_stop)

            exit_code = 0
            if args.post:
                exit_code = tool.migrate_single(args.post)
            elif run_all:
                exit_code = tool.migrate_all(retry_failed=args.retry_failed)

            if wants_export:
                _run_exports(tool, args, settings)
            return exit_code
    except Exception as e:
        logger.error("Migration failed: %s", e)
        return 1
    finally:
        for sig, handler in previous_handlers.items():
            if handler is not None:
                signal.signal(sig, handler)
