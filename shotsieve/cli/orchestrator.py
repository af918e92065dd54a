"""
CLI workflow orchestration for ShotSieve.

Provides the CLIOrchestrator class that opens the database, builds the scan
engine and dispatches each sub-command to it.
"""

from __future__ import annotations

import argparse
import logging
import time
from typing import Optional

from ..database import ScanDatabase
from ..exceptions import MigrationFailure, ShotSieveError
from ..models import BlurConfig, ScanProgress, format_size
from ..api.orchestrator import ScanOrchestrator, ScannerCallbacks
from ..scanner import DirectoryLibrary, list_blurry
from ..scanner.dependencies import HAS_TQDM, _tqdm_class
from ..user_config import ScanSettings, get_user_config
from ..utils.formatters import format_taken_at, format_time_estimate
from .actions import collect_duplicates, delete_duplicates
from .arg_parser import parse_arguments
from .interactive import confirm_action
from .reporting import print_blurry_report, print_group_report, print_status


def setup_logging(verbose: bool = False) -> logging.Logger:
    """
    Configure logging for the CLI.

    Args:
        verbose: Enable verbose (DEBUG level) logging

    Returns:
        Configured logger instance
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )
    return logging.getLogger(__name__)


class _ScanProgressBar:
    """Feeds engine callbacks into a tqdm bar sized from the first snapshot."""

    def __init__(self):
        self.bar = None

    def on_progress(self, progress: ScanProgress) -> None:
        if self.bar is None:
            self.bar = _tqdm_class(total=progress.total_pending, desc="Analyzing", unit="img")
        elif not progress.is_running:
            self.close()

    def on_asset_scanned(self, asset_id: str, success: bool) -> None:
        if self.bar is not None:
            self.bar.update(1)

    def close(self) -> None:
        if self.bar is not None:
            self.bar.close()
            self.bar = None

    def callbacks(self) -> ScannerCallbacks:
        return ScannerCallbacks(
            on_progress=self.on_progress,
            on_asset_scanned=self.on_asset_scanned,
        )


class CLIOrchestrator:
    """
    Runs one CLI sub-command against the scanner database.

    Usage:
        CLIOrchestrator(['scan', '/photos']).run()
    """

    def __init__(self, argv: Optional[list[str]] = None):
        """
        Initialize the orchestrator.

        Args:
            argv: Argument strings (default: sys.argv)
        """
        self.argv = argv
        self.args: Optional[argparse.Namespace] = None
        self.logger: Optional[logging.Logger] = None
        self.db: Optional[ScanDatabase] = None
        self.settings: Optional[ScanSettings] = None

    def run(self) -> int:
        """
        Parse arguments and execute the selected sub-command.

        Returns:
            Exit code (0 for success, 1 for error)
        """
        self.args = parse_arguments(self.argv)
        self.logger = setup_logging(self.args.verbose)
        self.settings = ScanSettings.from_user_config()

        db_path = self.args.db or get_user_config().db_file
        try:
            self.db = ScanDatabase(db_path)
        except MigrationFailure as e:
            self.logger.error(f"Cannot open database {db_path}: {e}")
            return 1

        handlers = {
            'scan': self._scan,
            'status': self._status,
            'groups': self._groups,
            'blurry': self._blurry,
            'reset-cursor': self._reset_cursor,
            'reset-all': self._reset_all,
            'delete-duplicates': self._delete_duplicates,
        }
        try:
            return handlers[self.args.command]()
        except ShotSieveError as e:
            self.logger.error(str(e))
            return 1
        finally:
            self.db.close()

    def _library(self) -> Optional[DirectoryLibrary]:
        directory = self.args.directory
        if not directory.is_dir():
            self.logger.error(f"Directory not found: {directory}")
            return None
        recursive = not getattr(self.args, 'no_recursive', False)
        return DirectoryLibrary(directory, recursive=recursive)

    def _scan(self) -> int:
        library = self._library()
        if library is None:
            return 1

        if self.args.batch_size:
            self.settings.batch_size = self.args.batch_size

        # A single batch reports its totals only at the end
        show_progress = HAS_TQDM and not self.args.no_progress and not self.args.once
        progress_bar = _ScanProgressBar() if show_progress else None
        callbacks = progress_bar.callbacks() if progress_bar else None

        engine = ScanOrchestrator(self.db, library, self.settings)
        started = time.monotonic()
        try:
            if self.args.once:
                engine.resume_once(callbacks)
            else:
                engine.start(callbacks)
        except KeyboardInterrupt:
            # The cursor is committed per asset, so the next scan resumes here
            self.logger.info("Interrupted, progress saved")
        finally:
            if progress_bar:
                progress_bar.close()
            engine.close()

        self.logger.info(f"Scan finished in {format_time_estimate(time.monotonic() - started)}")
        print_status(engine.get_status())
        return 0

    def _status(self) -> int:
        engine = ScanOrchestrator(self.db, None, self.settings)
        print_status(engine.get_status(), self.db.get_stats())
        cursor = self.db.meta.get_scan_cursor()
        if not cursor.is_start:
            print(f"Cursor:   {cursor.asset_id} ({format_taken_at(cursor.taken_at)})")
        return 0

    def _groups(self) -> int:
        groups = self.db.groups.get_all_groups(with_members=True)
        print_group_report(self.db, groups)
        return 0

    def _blurry(self) -> int:
        config = self.settings.blur
        if self.args.threshold is not None:
            config = BlurConfig(base_threshold=self.args.threshold)
        print_blurry_report(list_blurry(self.db, config), config)
        return 0

    def _reset_cursor(self) -> int:
        ScanOrchestrator(self.db, None, self.settings).reset_cursor()
        self.logger.info("Next scan will start from the beginning of the queue")
        return 0

    def _reset_all(self) -> int:
        count = ScanOrchestrator(self.db, None, self.settings).reset_all_progress()
        self.logger.info(f"Reset {count:,} assets to pending; all groups cleared")
        return 0

    def _delete_duplicates(self) -> int:
        library = self._library()
        if library is None:
            return 1

        dry_run = not self.args.no_dry_run
        if dry_run:
            self.logger.info("[DRY RUN MODE - No files will be modified]")
        elif not self.args.yes:
            if not confirm_action('delete', len(collect_duplicates(self.db))):
                self.logger.info("Aborted.")
                return 0

        stats = delete_duplicates(self.db, library, dry_run=dry_run, logger=self.logger)

        self.logger.info(f"Processed: {stats['processed']:,} files")
        self.logger.info(f"Errors: {stats['errors']}")
        self.logger.info(f"Space {'would be ' if dry_run else ''}saved: {format_size(stats['space_saved'])}")
        return 1 if stats['errors'] else 0


__all__ = ['CLIOrchestrator', 'setup_logging']
