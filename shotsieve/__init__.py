"""
ShotSieve
=========
Incremental photo library analysis: finds blurry shots and near-duplicate
bursts, and elects the best shot of every burst.

Features:
- Luminance-adaptive blur detection (Laplacian variance)
- Near-duplicate grouping by 64-bit dHash within a capture-time window
- Best shot election by resolution, sharpness and lighting
- Resumable, cursor-based batches persisted in SQLite
- Lazy re-analysis on file edits or algorithm upgrades
- Optional labeling / face detection behind a circuit breaker
- JSON HTTP API and CLI
"""

__version__ = "1.0.0"

from .models import (
    AssetRecord,
    AssetStatus,
    DuplicateGroup,
    DuplicateMember,
    ScanCursor,
    ScanProgress,
)
from .config import GLOBAL_ALGO_VERSION, IMAGE_EXTENSIONS
from .database import ScanDatabase
from .scanner import (
    extract_signals,
    hamming_distance64,
    classify,
    find_matches,
    select_best_shot,
    DirectoryLibrary,
    MediaLibraryProvider,
    EnrichmentProvider,
)
from .api import ScanOrchestrator, ScannerCallbacks

__all__ = [
    "AssetRecord",
    "AssetStatus",
    "DuplicateGroup",
    "DuplicateMember",
    "ScanCursor",
    "ScanProgress",
    "GLOBAL_ALGO_VERSION",
    "IMAGE_EXTENSIONS",
    "ScanDatabase",
    "extract_signals",
    "hamming_distance64",
    "classify",
    "find_matches",
    "select_best_shot",
    "DirectoryLibrary",
    "MediaLibraryProvider",
    "EnrichmentProvider",
    "ScanOrchestrator",
    "ScannerCallbacks",
]
