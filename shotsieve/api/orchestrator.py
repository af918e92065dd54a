"""
Scan orchestration for ShotSieve.

Provides the ScanOrchestrator class that drives the incremental pipeline:
library reconciliation, lazy invalidation, cursor-based batching, per-asset
analysis, duplicate grouping and progress reporting.
"""

from __future__ import annotations

import time
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional

from ..config import SYNC_PAGE_SIZE
from ..database import ScanDatabase
from ..exceptions import AssetUnavailable, PersistenceFailure, ShotSieveError
from ..models import AssetRecord, AssetStatus, DuplicateGroup, ImageSignals, ScanProgress
from ..scanner import (
    CircuitBreaker,
    DuplicateGroupManager,
    EnrichmentProvider,
    ImageEnricher,
    MediaLibraryProvider,
    extract_signals,
    find_matches,
    list_blurry,
    recalculate_all_best_shots,
)
from ..state import ScanSession
from ..user_config import ScanSettings

# Module logger
_logger = logging.getLogger(__name__)

# How long reset_all_progress waits for an active run to stop
RESET_WAIT_SECONDS = 30.0


@dataclass
class ScannerCallbacks:
    """
    Optional hooks invoked from the scanning thread.

    Attributes:
        on_progress: Called with a ScanProgress after every batch
        on_asset_scanned: Called with (asset_id, success) after every asset
        on_batch_complete: Called with the batch index after every batch
        on_complete: Called when a run ends normally (finished or stopped)
        on_error: Called with the exception that ended a run
    """
    on_progress: Optional[Callable[[ScanProgress], None]] = None
    on_asset_scanned: Optional[Callable[[str, bool], None]] = None
    on_batch_complete: Optional[Callable[[int], None]] = None
    on_complete: Optional[Callable[[], None]] = None
    on_error: Optional[Callable[[BaseException], None]] = None


def _yield_control() -> None:
    """Give other threads (HTTP handlers, UI) a chance to run."""
    time.sleep(0)


class ScanOrchestrator:
    """
    Orchestrates incremental scanning of a media library.

    One instance is one engine: it owns the session flags and the
    enrichment circuit breaker, and shares the database passed in.

    Usage:
        engine = ScanOrchestrator(db, DirectoryLibrary("/photos"))
        engine.start()          # until no pending work or stop()
        engine.get_status().to_dict()
    """

    def __init__(
        self,
        db: ScanDatabase,
        library: Optional[MediaLibraryProvider],
        settings: Optional[ScanSettings] = None,
        enrichment: Optional[EnrichmentProvider] = None,
        extractor: Callable[[str], ImageSignals] = extract_signals,
        callbacks: Optional[ScannerCallbacks] = None,
    ):
        """
        Initialize the scan orchestrator.

        Args:
            db: Open scanner database
            library: Media library to reconcile against and read from.
                None allows queries and resets only.
            settings: Batch size, blur/similarity tuning, enrichment toggle
            enrichment: Optional face detection / labeling capability
            extractor: Signal extraction function (path -> ImageSignals)
            callbacks: Progress and lifecycle hooks
        """
        self.db = db
        self.library = library
        self.settings = settings or ScanSettings()
        self.extractor = extractor
        self.callbacks = callbacks or ScannerCallbacks()

        self.session = ScanSession()
        self.groups = DuplicateGroupManager(db)
        self.enricher = ImageEnricher(
            enrichment,
            enabled=self.settings.enable_enrichment,
            timeout=self.settings.enrichment_timeout,
            breaker=CircuitBreaker(self.settings.breaker_threshold),
        )
        self._algo_version = db.meta.get_global_algo_version()

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self.session.is_running

    @property
    def last_error(self) -> Optional[BaseException]:
        """Exception that ended the most recent run, if any."""
        return self.session.last_error

    def start(self, callbacks: Optional[ScannerCallbacks] = None) -> bool:
        """
        Run until no pending work remains or stop() is observed.

        Reconciles the library first, then reverts assets analyzed by an
        older algorithm, then processes batches.

        Args:
            callbacks: Replace the engine's callbacks for this and later runs

        Returns:
            False if a run was already active (nothing was done)

        Raises:
            Any session-level failure (library reconciliation, persistence),
            after recording it as last_error and calling on_error
        """
        self._require_library()
        if not self.session.begin():
            _logger.info("Scan already running")
            return False

        if callbacks is not None:
            self.callbacks = callbacks

        _logger.info("Starting scan")
        try:
            if self._sync_library():
                _yield_control()
                self._reset_outdated_assets()
                self._report_progress()

                while not self.session.stop_requested:
                    has_more = self._process_batch()
                    self._report_progress()
                    if not has_more:
                        break

            if self.session.stop_requested:
                _logger.info("Scan stopped")
            else:
                _logger.info("Scan complete")
            self._emit(self.callbacks.on_complete)
        except Exception as e:
            self._fail(e)
            raise
        finally:
            self.session.finish()
            self._publish_idle()
        return True

    def resume_once(self, callbacks: Optional[ScannerCallbacks] = None) -> bool:
        """
        Process exactly one batch after the persisted cursor.

        Does not reconcile the library.

        Returns:
            False if a run was already active (nothing was done)
        """
        self._require_library()
        if not self.session.begin(reset_batches=False):
            _logger.info("Scan already running")
            return False

        if callbacks is not None:
            self.callbacks = callbacks

        _logger.info("Resuming for one batch")
        try:
            self._reset_outdated_assets()
            self._process_batch()
            self._report_progress()
            _logger.info("One batch complete")
            self._emit(self.callbacks.on_complete)
        except Exception as e:
            self._fail(e)
            raise
        finally:
            self.session.finish()
            self._publish_idle()
        return True

    def start_in_background(
        self,
        callbacks: Optional[ScannerCallbacks] = None,
        once: bool = False,
    ) -> Optional[threading.Thread]:
        """
        Run start() (or resume_once() when once=True) on a daemon thread.

        Returns:
            The thread, or None if a run is already active
        """
        if self.session.is_running:
            _logger.info("Scan already running")
            return None

        thread = threading.Thread(
            target=self._run_in_background,
            args=(self.resume_once if once else self.start, callbacks),
            name='shotsieve-scan',
            daemon=True,
        )
        thread.start()
        return thread

    def _run_in_background(self, run: Callable, callbacks: Optional[ScannerCallbacks]) -> None:
        try:
            run(callbacks)
        except Exception as e:
            # Already recorded as last_error and delivered to on_error
            _logger.debug(f"Background scan ended with error: {e}")

    def stop(self) -> None:
        """Request a cooperative stop; the in-flight asset always completes."""
        if self.session.is_running:
            _logger.info("Stopping scan")
        self.session.request_stop()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until no run is active. False on timeout."""
        return self.session.wait_idle(timeout)

    def get_status(self) -> ScanProgress:
        """Current totals, batch index and running flag."""
        counts = self.db.assets.get_status_counts()
        return ScanProgress(
            total_pending=counts['pending'],
            total_done=counts['done'],
            total_error=counts['error'],
            current_batch=self.session.current_batch,
            is_running=self.session.is_running,
        )

    def reset_cursor(self) -> None:
        """Restart incremental scanning from the beginning of the queue."""
        self.db.meta.reset_scan_cursor()
        _logger.info("Cursor reset")

    def reset_all_progress(self, timeout: float = RESET_WAIT_SECONDS) -> int:
        """
        Hard reset: cursor, every asset back to PENDING, all groups and faces.

        Stops and waits for an active run first.

        Returns:
            Number of assets reset

        Raises:
            ShotSieveError: If called from inside a run or the run does not stop in time
        """
        if self.session.is_running:
            if self.session.owned_by_current_thread:
                raise ShotSieveError("Cannot reset progress from inside a running scan")
            self.stop()
            if not self.session.wait_idle(timeout):
                raise ShotSieveError(f"Scan did not stop within {timeout:.0f}s")

        with self.db.transaction():
            self.db.meta.reset_scan_cursor()
            count = self.db.assets.reset_all()
            self.db.groups.delete_all()
            self.db.faces.delete_all()
        _logger.info(f"Full progress reset ({count} assets)")
        return count

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_groups(self) -> list[DuplicateGroup]:
        """All duplicate groups with members, newest first."""
        return self.db.groups.get_all_groups(with_members=True)

    def get_blurry_assets(self) -> list[AssetRecord]:
        return list_blurry(self.db, self.settings.blur)

    def recalculate_all_best_shots(self) -> int:
        return recalculate_all_best_shots(self.db)

    def close(self) -> None:
        """Stop any active run and release the enrichment worker."""
        self.stop()
        self.session.wait_idle(RESET_WAIT_SECONDS)
        self.enricher.close()

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def _sync_library(self) -> bool:
        """
        Reconcile the asset table with the library.

        New assets are inserted as PENDING; known assets whose file
        signature changed are reverted to PENDING.

        Returns:
            False if a stop was requested before reconciliation finished
        """
        _logger.info("Syncing assets from library...")
        inserted = 0
        changed = 0
        after: Optional[str] = None

        while True:
            if self.session.stop_requested:
                _logger.info(f"Sync interrupted ({inserted} new assets)")
                return False

            page = self.library.list_assets(after=after, first=SYNC_PAGE_SIZE)
            with self.db.transaction():
                for item in page.assets:
                    signature = self.library.signature_for(item)
                    record = AssetRecord(
                        asset_id=item.asset_id,
                        taken_at=item.taken_at,
                        width=item.width,
                        height=item.height,
                        file_signature=signature,
                        status=AssetStatus.PENDING,
                    )
                    if self.db.assets.insert_if_missing(record):
                        inserted += 1
                    elif signature and self.db.assets.reset_if_signature_changed(item.asset_id, signature):
                        changed += 1

            if not page.has_next_page or not page.assets:
                break
            after = page.end_cursor
            _yield_control()

        _logger.info(f"Synced {inserted} new assets ({changed} changed on disk)")
        return True

    def _reset_outdated_assets(self) -> None:
        self._algo_version = self.db.meta.get_global_algo_version()
        reset = self.db.assets.reset_outdated_assets(self._algo_version)
        if reset > 0:
            _logger.info(f"Reset {reset} outdated assets (algorithm v{self._algo_version})")

    def _process_batch(self) -> bool:
        """
        Process the next batch of pending assets after the cursor.

        Returns:
            True if a batch was processed to the end and more may follow
        """
        cursor = self.db.meta.get_scan_cursor()
        batch = self.db.assets.get_pending_batch(cursor, self.settings.batch_size)
        if not batch:
            return False

        batch_index = self.session.next_batch()
        _logger.debug(f"Batch {batch_index}: {len(batch)} assets")

        for asset in batch:
            if self.session.stop_requested:
                return False

            success = self._process_asset(asset)
            self._emit(self.callbacks.on_asset_scanned, asset.asset_id, success)
            _yield_control()

        self._emit(self.callbacks.on_batch_complete, batch_index)
        return True

    def _process_asset(self, asset: AssetRecord) -> bool:
        """
        Analyze one asset and record the result together with the cursor.

        Per-asset failures are recorded as ERROR; persistence failures
        propagate and end the run.

        Returns:
            True if the asset is now DONE
        """
        asset_id = asset.asset_id
        try:
            info = self.library.get_asset_info(asset_id)
            if info is None or not info.local_path:
                raise AssetUnavailable(f"Asset not found or no local path: {asset_id}")

            # The grayscale sample is released inside the extractor
            signals = self.extractor(info.local_path)

            enrichment = self.enricher.enrich(
                info.local_path,
                info.width or asset.width,
                info.height or asset.height,
            )
            matches = find_matches(
                self.db,
                signals.phash,
                asset.taken_at,
                self.settings.similarity,
                exclude_asset_id=asset_id,
            )

            with self.db.transaction():
                self.db.assets.mark_done(asset_id, signals, self._algo_version)
                if enrichment is not None:
                    self.db.assets.set_enrichment(asset_id, enrichment.labels_json, enrichment.face_count)
                    self.db.faces.record_faces(asset_id, enrichment.faces)
                self.groups.assign(asset_id, matches)
                self.db.meta.set_scan_cursor(asset.taken_at, asset_id)

            _logger.debug(f"Analyzed {asset_id} (sharpness {signals.blur_score:.1f}, {len(matches)} matches)")
            return True

        except PersistenceFailure:
            raise
        except Exception as e:
            message = str(e) or type(e).__name__
            _logger.warning(f"Failed to process asset {asset_id}: {message}")
            with self.db.transaction():
                self.db.assets.mark_error(asset_id, message)
                self.db.meta.set_scan_cursor(asset.taken_at, asset_id)
            return False

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def _report_progress(self) -> ScanProgress:
        progress = self.get_status()
        self._emit(self.callbacks.on_progress, progress)
        return progress

    def _publish_idle(self) -> None:
        # Final snapshot with isRunning=False; the database may be unusable after a failure
        if self.callbacks.on_progress is None:
            return
        try:
            progress = self.get_status()
        except PersistenceFailure as e:
            _logger.debug(f"Could not publish final progress: {e}")
            return
        self.callbacks.on_progress(progress)

    def _require_library(self) -> None:
        if self.library is None:
            raise ShotSieveError("No media library configured for scanning")

    def _fail(self, error: BaseException) -> None:
        self.session.record_error(error)
        _logger.error(f"Scan error: {error}")
        self._emit(self.callbacks.on_error, error)

    @staticmethod
    def _emit(callback: Optional[Callable], *args) -> None:
        if callback is not None:
            callback(*args)


__all__ = ['ScanOrchestrator', 'ScannerCallbacks']
