"""
Unit tests for the persistence layer.
"""

import pytest

from shotsieve.config import GLOBAL_ALGO_VERSION, SCHEMA_VERSION
from shotsieve.database import ConnectionManager, ScanDatabase, run_migrations
from shotsieve.database import schema
from shotsieve.exceptions import MigrationFailure, PersistenceFailure
from shotsieve.models import (
    AssetRecord,
    AssetStatus,
    BoundingBox,
    DetectedFace,
    ImageLabel,
    ImageSignals,
    ScanCursor,
    encode_labels,
)

from conftest import BASE_TIME_MS, ZERO_HASH


SIGNALS = ImageSignals(blur_score=180.0, mean_luma=120.0, phash=ZERO_HASH)


def _pending(asset_id, taken_at=None, signature='sig'):
    return AssetRecord(asset_id=asset_id, taken_at=taken_at, file_signature=signature)


class TestMigrations:
    """Test schema versioning."""

    def test_fresh_database(self, db):
        assert db.meta.get_schema_version() == SCHEMA_VERSION
        assert db.meta.get_global_algo_version() == GLOBAL_ALGO_VERSION

    def test_reopen_applies_nothing(self, db_path):
        ScanDatabase(db_path).close()
        conn_mgr = ConnectionManager(db_path)
        try:
            assert run_migrations(conn_mgr) == 0
        finally:
            conn_mgr.close()

    def test_upgrade_from_v1(self, db_path):
        """A version 1 database gains the enrichment columns and tables."""
        conn_mgr = ConnectionManager(db_path)
        assert run_migrations(conn_mgr, target_version=1) == 1
        with conn_mgr.transaction() as conn:
            conn.execute(
                "INSERT INTO assets (asset_id, status) VALUES (?, ?)", ('legacy', 1)
            )
        conn_mgr.close()

        with ScanDatabase(db_path) as db:
            assert db.meta.get_schema_version() == 2
            asset = db.assets.get_by_id('legacy')
            assert asset.status == AssetStatus.DONE
            assert asset.face_count == 0
            assert db.faces.get_statistics() == {'total_faces': 0, 'total_assets': 0}

    def test_upgrade_tolerates_existing_column(self, db_path):
        conn_mgr = ConnectionManager(db_path)
        run_migrations(conn_mgr, target_version=1)
        with conn_mgr.transaction() as conn:
            conn.execute(schema.SQL_ADD_FACE_COUNT)
        conn_mgr.close()

        with ScanDatabase(db_path) as db:
            assert db.meta.get_schema_version() == 2

    def test_newer_schema_refused(self, db_path):
        with ScanDatabase(db_path) as db:
            db.meta.set(schema.META_SCHEMA_VERSION, str(SCHEMA_VERSION + 1))
        with pytest.raises(MigrationFailure):
            ScanDatabase(db_path)

    def test_algo_version_raised_on_open(self, db_path):
        with ScanDatabase(db_path) as db:
            db.meta.set(schema.META_GLOBAL_ALGO_VERSION, '1')
        with ScanDatabase(db_path) as db:
            assert db.meta.get_global_algo_version() == GLOBAL_ALGO_VERSION

    def test_algo_version_never_lowered(self, db_path):
        with ScanDatabase(db_path) as db:
            db.meta.bump_global_algo_version()
        with ScanDatabase(db_path) as db:
            assert db.meta.get_global_algo_version() == GLOBAL_ALGO_VERSION + 1


class TestTransactions:
    """Test atomic multi-statement writes."""

    def test_rollback_on_error(self, db):
        db.assets.insert_if_missing(_pending('a', 100))
        with pytest.raises(RuntimeError):
            with db.transaction():
                db.assets.mark_done('a', SIGNALS, 3)
                db.meta.set_scan_cursor(100, 'a')
                raise RuntimeError("crash mid-write")

        assert db.assets.get_by_id('a').status == AssetStatus.PENDING
        assert db.meta.get_scan_cursor().is_start

    def test_commit(self, db):
        db.assets.insert_if_missing(_pending('a', 100))
        with db.transaction():
            db.assets.mark_done('a', SIGNALS, 3)
            db.meta.set_scan_cursor(100, 'a')
        assert db.assets.get_by_id('a').status == AssetStatus.DONE
        assert db.meta.get_scan_cursor() == ScanCursor(100, 'a')

    def test_sqlite_error_becomes_persistence_failure(self, db):
        with pytest.raises(PersistenceFailure):
            with db.transaction():
                db._conn_mgr._conn.execute("INSERT INTO no_such_table VALUES (1)")

    def test_closed_database_read(self, db_path):
        db = ScanDatabase(db_path)
        db.close()
        with pytest.raises(PersistenceFailure):
            db.assets.get_status_counts()


class TestAssetRepository:
    """Test the asset queue."""

    def test_insert_if_missing_keeps_results(self, db):
        """Re-syncing a known asset never resets its analysis."""
        assert db.assets.insert_if_missing(_pending('a', 100)) is True
        db.assets.mark_done('a', SIGNALS, 3)
        assert db.assets.insert_if_missing(_pending('a', 100)) is False
        assert db.assets.get_by_id('a').status == AssetStatus.DONE

    def test_pending_batch_order(self, db):
        """Ordered by capture time then id; NULL capture time sorts first."""
        db.assets.insert_if_missing(_pending('late', 300))
        db.assets.insert_if_missing(_pending('b', 200))
        db.assets.insert_if_missing(_pending('a', 200))
        db.assets.insert_if_missing(_pending('undated', None))

        batch = db.assets.get_pending_batch(ScanCursor(), 10)
        assert [a.asset_id for a in batch] == ['undated', 'a', 'b', 'late']

    def test_pending_batch_after_cursor(self, db):
        for asset_id, taken_at in (('a', 100), ('b', 200), ('c', 200), ('d', 300)):
            db.assets.insert_if_missing(_pending(asset_id, taken_at))

        batch = db.assets.get_pending_batch(ScanCursor(200, 'b'), 10)
        assert [a.asset_id for a in batch] == ['c', 'd']

    def test_pending_batch_limit_and_status(self, db):
        for i in range(5):
            db.assets.insert_if_missing(_pending(f"a{i}", i))
        db.assets.mark_done('a0', SIGNALS, 3)
        db.assets.mark_error('a1', 'broken')

        batch = db.assets.get_pending_batch(ScanCursor(), 2)
        assert [a.asset_id for a in batch] == ['a2', 'a3']

    def test_mark_done_clears_error(self, db):
        db.assets.insert_if_missing(_pending('a'))
        db.assets.mark_error('a', 'broken')
        db.assets.mark_done('a', SIGNALS, 3)
        asset = db.assets.get_by_id('a')
        assert asset.status == AssetStatus.DONE
        assert asset.error_message is None
        assert asset.blur_score == pytest.approx(180.0)
        assert asset.phash == ZERO_HASH
        assert asset.algo_version == 3

    def test_reset_outdated(self, db):
        db.assets.insert_if_missing(_pending('old'))
        db.assets.insert_if_missing(_pending('new'))
        db.assets.mark_done('old', SIGNALS, 2)
        db.assets.mark_done('new', SIGNALS, 3)

        assert db.assets.reset_outdated_assets(3) == 1
        assert db.assets.get_by_id('old').status == AssetStatus.PENDING
        assert db.assets.get_by_id('new').status == AssetStatus.DONE

    def test_reset_if_signature_changed(self, db):
        db.assets.insert_if_missing(_pending('a', signature='1_100'))
        db.assets.mark_done('a', SIGNALS, 3)

        assert db.assets.reset_if_signature_changed('a', '1_100') is False
        assert db.assets.reset_if_signature_changed('a', '2_150') is True
        asset = db.assets.get_by_id('a')
        assert asset.status == AssetStatus.PENDING
        assert asset.file_signature == '2_150'
        assert db.assets.reset_if_signature_changed('unknown', 'x') is False

    def test_recent_done_assets(self, db, add_done_asset):
        add_done_asset('in', taken_at=BASE_TIME_MS + 60_000)
        add_done_asset('out', taken_at=BASE_TIME_MS + 600_000)
        add_done_asset('me', taken_at=BASE_TIME_MS)
        found = db.assets.get_recent_done_assets(BASE_TIME_MS, 120, 10, exclude_asset_id='me')
        assert [a.asset_id for a in found] == ['in']

    def test_status_counts(self, db):
        for asset_id in ('a', 'b', 'c'):
            db.assets.insert_if_missing(_pending(asset_id))
        db.assets.mark_done('a', SIGNALS, 3)
        db.assets.mark_error('b', 'x')
        assert db.assets.get_status_counts() == {'pending': 1, 'done': 1, 'error': 1}

    def test_enrichment_fields(self, db):
        db.assets.insert_if_missing(_pending('a'))
        db.assets.set_enrichment('a', encode_labels([ImageLabel('beach', 0.8)]), 2)
        asset = db.assets.get_by_id('a')
        assert asset.face_count == 2
        assert asset.labels == [ImageLabel('beach', 0.8)]
        assert [a.asset_id for a in db.assets.get_people_assets()] == ['a']

    def test_reset_all(self, db):
        db.assets.insert_if_missing(_pending('a'))
        db.assets.mark_done('a', SIGNALS, 3)
        db.assets.set_enrichment('a', encode_labels([ImageLabel('x', 0.5)]), 1)
        assert db.assets.reset_all() == 1
        asset = db.assets.get_by_id('a')
        assert asset.status == AssetStatus.PENDING
        assert asset.face_count == 0
        assert asset.labels_json is None

    def test_delete_many(self, db):
        for asset_id in ('a', 'b', 'c'):
            db.assets.insert_if_missing(_pending(asset_id))
        assert db.assets.delete_many(['a', 'c', 'missing']) == 2
        assert db.assets.get_by_id('b') is not None
        assert db.assets.get_by_ids(['a', 'b', 'c']).keys() == {'b'}


class TestMetaRepository:
    """Test cursor and version storage."""

    def test_cursor_round_trip(self, db):
        assert db.meta.get_scan_cursor().is_start
        db.meta.set_scan_cursor(12345, 'x')
        assert db.meta.get_scan_cursor() == ScanCursor(12345, 'x')

    def test_cursor_null_capture_time(self, db):
        db.meta.set_scan_cursor(None, 'x')
        assert db.meta.get_scan_cursor().as_key() == (0, 'x')

    def test_reset_cursor(self, db):
        db.meta.set_scan_cursor(1, 'x')
        db.meta.reset_scan_cursor()
        assert db.meta.get_scan_cursor().is_start

    def test_bump_algo_version(self, db):
        assert db.meta.bump_global_algo_version() == GLOBAL_ALGO_VERSION + 1


class TestGroupAndFaceRepositories:
    """Test group membership and face storage."""

    def test_group_lookup_by_asset(self, db):
        db.groups.create_group('g', 'a')
        db.groups.add_member('g', 'a', 0)
        db.groups.add_member('g', 'b', 7)
        assert db.groups.find_group_by_asset_id('b') == 'g'
        assert db.groups.count_members('g') == 2
        assert [m.asset_id for m in db.groups.get_group_members('g')] == ['a', 'b']

    def test_merge_with_shared_member(self, db):
        db.groups.create_group('t', 'a')
        db.groups.add_member('t', 'a', 0)
        db.groups.create_group('s', 'a')
        db.groups.add_member('s', 'a', 0)
        db.groups.add_member('s', 'b', 3)

        assert db.groups.merge_groups('t', 's') == 1
        assert sorted(m.asset_id for m in db.groups.get_group_members('t')) == ['a', 'b']
        assert db.groups.get_group_by_id('s') is None

    def test_record_faces_replaces(self, db):
        face = DetectedFace(BoundingBox(10, 20, 300, 300), 0.9)
        db.faces.record_faces('a', [face, face])
        db.faces.record_faces('a', [face])
        assert db.faces.get_faces_by_asset('a') == [face]

    def test_delete_faces_for_assets(self, db):
        face = DetectedFace(BoundingBox(0, 0, 200, 200), 0.8)
        db.faces.record_faces('a', [face])
        db.faces.record_faces('b', [face])
        db.faces.delete_for_assets(['a'])
        assert db.faces.get_statistics() == {'total_faces': 1, 'total_assets': 1}

    def test_stats(self, db):
        db.assets.insert_if_missing(_pending('a'))
        stats = db.get_stats()
        assert stats['total_assets'] == 1
        assert stats['total_groups'] == 0
        assert stats['db_path'] == db.db_path
