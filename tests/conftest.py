"""
Pytest configuration and shared fixtures for test suite.
"""

import bisect
import time

import numpy as np
import pytest
import tempfile
import shutil
from pathlib import Path
from PIL import Image, ImageDraw

from shotsieve.database import ScanDatabase
from shotsieve.exceptions import CapabilityUnavailable
from shotsieve.models import (
    AssetPage,
    AssetRecord,
    AssetStatus,
    ImageSignals,
    LibraryAsset,
)
from shotsieve.scanner import EnrichmentProvider, MediaLibraryProvider
from shotsieve.user_config import get_user_config


# 2023-11-14 22:13:20 UTC
BASE_TIME_MS = 1_700_000_000_000

# Assets produced by make_library are this far apart, outside any match window
ASSET_SPACING_MS = 10 * 60 * 1000

ZERO_HASH = '0000000000000000'


class FakeLibrary(MediaLibraryProvider):
    """In-memory media library; asset ids double as local paths."""

    def __init__(self):
        self.assets: dict[str, LibraryAsset] = {}
        self.signatures: dict[str, str] = {}
        self.deleted: list[str] = []
        self.list_error = None
        self.list_calls = 0

    def add(self, asset_id, taken_at=None, width=4000, height=3000, signature=''):
        self.assets[asset_id] = LibraryAsset(
            asset_id=asset_id,
            taken_at=taken_at,
            width=width,
            height=height,
            local_path=asset_id,
        )
        self.signatures[asset_id] = signature
        return self.assets[asset_id]

    def list_assets(self, after=None, first=100):
        self.list_calls += 1
        if self.list_error is not None:
            raise self.list_error
        ids = sorted(self.assets)
        start = 0 if after is None else bisect.bisect_right(ids, after)
        page_ids = ids[start:start + first]
        return AssetPage(
            assets=[self.assets[i] for i in page_ids],
            end_cursor=page_ids[-1] if page_ids else after,
            has_next_page=start + first < len(ids),
        )

    def get_asset_info(self, asset_id):
        return self.assets.get(asset_id)

    def delete_assets(self, asset_ids):
        deleted = 0
        for asset_id in asset_ids:
            if self.assets.pop(asset_id, None) is not None:
                self.deleted.append(asset_id)
                deleted += 1
        return deleted

    def signature_for(self, asset):
        return self.signatures.get(asset.asset_id, '')


class FakeExtractor:
    """Signal extractor returning canned signals per path."""

    def __init__(self):
        self.signals: dict[str, ImageSignals] = {}
        self.failures: dict[str, Exception] = {}
        self.calls: list[str] = []

    def __call__(self, path):
        self.calls.append(path)
        if path in self.failures:
            raise self.failures[path]
        return self.signals.get(path, ImageSignals(blur_score=250.0, mean_luma=128.0, phash=ZERO_HASH))


class FakeEnrichment(EnrichmentProvider):
    """Scriptable enrichment capability."""

    name = 'fake'

    def __init__(self, faces=None, labels=None, error=None, delay=0.0, available=True):
        self.faces = faces or []
        self.labels = labels or []
        self.error = error
        self.delay = delay
        self.available = available
        self.face_calls: list[str] = []
        self.label_calls: list[str] = []

    def is_available(self):
        return self.available

    def detect_faces(self, path):
        self.face_calls.append(path)
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.faces)

    def label_image(self, path):
        self.label_calls.append(path)
        if self.error is not None:
            raise self.error
        return list(self.labels)


class UnavailableEnrichment(FakeEnrichment):
    """Capability that reports itself gone on first use."""

    def label_image(self, path):
        self.label_calls.append(path)
        raise CapabilityUnavailable("model not downloaded")


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    tmpdir = tempfile.mkdtemp()
    yield Path(tmpdir)
    shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture(autouse=True)
def isolated_user_config(temp_dir, monkeypatch):
    """Keep tests away from the real ~/.shotsieve configuration."""
    config_dir = temp_dir / "config"
    monkeypatch.setenv('SHOTSIEVE_CONFIG_DIR', str(config_dir))
    for var in ('SHOTSIEVE_DB', 'SHOTSIEVE_BATCH_SIZE', 'SHOTSIEVE_BLUR_THRESHOLD',
                'SHOTSIEVE_SIMILARITY_THRESHOLD', 'SHOTSIEVE_SIMILARITY_WINDOW',
                'SHOTSIEVE_SIMILARITY_CANDIDATES', 'SHOTSIEVE_ENRICHMENT',
                'SHOTSIEVE_ENRICHMENT_TIMEOUT'):
        monkeypatch.delenv(var, raising=False)
    get_user_config().reload()
    yield config_dir
    get_user_config().reload()


@pytest.fixture
def db_path(temp_dir):
    """Path for a temporary database file."""
    return str(temp_dir / "scanner.db")


@pytest.fixture
def db(db_path):
    """Open a fresh scanner database."""
    database = ScanDatabase(db_path)
    yield database
    database.close()


@pytest.fixture
def add_done_asset(db):
    """Insert an analyzed (DONE) asset directly."""
    def _add(asset_id, taken_at=BASE_TIME_MS, phash=ZERO_HASH, blur_score=250.0,
             mean_luma=128.0, width=4000, height=3000):
        db.assets.upsert(AssetRecord(
            asset_id=asset_id,
            taken_at=taken_at,
            width=width,
            height=height,
            file_signature='',
            algo_version=db.meta.get_global_algo_version(),
            blur_score=blur_score,
            mean_luma=mean_luma,
            phash=phash,
            status=AssetStatus.DONE,
        ))
        return db.assets.get_by_id(asset_id)
    return _add


@pytest.fixture
def make_library():
    """
    Build a FakeLibrary of ``count`` assets named img_001, img_002, ...

    Capture times increase with the id, ASSET_SPACING_MS apart.
    """
    def _make(count, start=1):
        library = FakeLibrary()
        for i in range(start, start + count):
            library.add(f"img_{i:03d}", taken_at=BASE_TIME_MS + i * ASSET_SPACING_MS)
        return library
    return _make


@pytest.fixture
def extractor():
    return FakeExtractor()


@pytest.fixture
def fake_enrichment_cls():
    return FakeEnrichment


@pytest.fixture
def unavailable_enrichment_cls():
    return UnavailableEnrichment


def _textured_array(seed: int, size: int = 256) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=(size, size), dtype=np.uint8)


def _scene(size=(320, 240), shift: int = 0) -> Image.Image:
    """A smooth gradient with a few shapes; small shifts keep the dHash close."""
    width, height = size
    ramp = np.linspace(30, 220, width, dtype=np.float64)
    pixels = np.tile(ramp, (height, 1)).astype(np.uint8)
    img = Image.fromarray(pixels).convert('RGB')
    draw = ImageDraw.Draw(img)
    draw.rectangle([40 + shift, 40, 120 + shift, 160], fill=(20, 20, 20))
    draw.ellipse([180 + shift, 60, 280 + shift, 180], fill=(240, 240, 240))
    return img


@pytest.fixture
def sample_images(temp_dir):
    """
    Create a set of sample images for testing.

    Returns:
        dict with paths to:
        - noise.png (random texture, very sharp)
        - flat.png (uniform gray 77, no edges)
        - dark.png (uniform gray 20)
        - scene.png / scene_copy.png (identical content)
        - scene_large.jpg (same scene at twice the resolution)
        - corrupted.jpg (not an image)
    """
    images = {}
    photo_dir = temp_dir / "photos"
    photo_dir.mkdir()

    path = photo_dir / "noise.png"
    Image.fromarray(_textured_array(0)).save(path, 'PNG')
    images['noise'] = str(path)

    path = photo_dir / "flat.png"
    Image.new('L', (100, 100), color=77).save(path, 'PNG')
    images['flat'] = str(path)

    path = photo_dir / "dark.png"
    Image.new('L', (100, 100), color=20).save(path, 'PNG')
    images['dark'] = str(path)

    scene = _scene()
    path = photo_dir / "scene.png"
    scene.save(path, 'PNG')
    images['scene'] = str(path)

    path = photo_dir / "scene_copy.png"
    scene.save(path, 'PNG')
    images['scene_copy'] = str(path)

    path = photo_dir / "scene_large.jpg"
    scene.resize((640, 480), Image.Resampling.BILINEAR).save(path, 'JPEG', quality=95)
    images['scene_large'] = str(path)

    path = photo_dir / "corrupted.jpg"
    path.write_text("not an image")
    images['corrupted'] = str(path)

    images['dir'] = str(photo_dir)
    return images
