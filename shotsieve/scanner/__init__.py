"""
Scanner package for ShotSieve.

Per-photo analysis and duplicate consolidation used by the scan engine.

Public API:
- extract_signals: Luminance, sharpness and dHash from a grayscale sample
- hamming_distance64: Bit distance between two 64-bit hashes
- classify / list_blurry: Luminance-adaptive blur classification
- find_matches: Near-duplicates within a bounded time window
- DuplicateGroupManager: Group membership and merging
- select_best_shot: Best shot election for a group
- ImageEnricher / EnrichmentProvider: Optional labeling and face detection
- MediaLibraryProvider / DirectoryLibrary: Asset enumeration
- has_heif_support: Check if HEIC/HEIF support is available
"""

from __future__ import annotations

from .signals import (
    GraySample,
    load_gray_sample,
    compute_mean_luma,
    compute_laplacian_variance,
    compute_dhash64,
    hamming_distance64,
    extract_signals,
    center_crop_square,
)
from .blur import classify, is_blurry_asset, list_blurry
from .similarity import are_similar, find_matches
from .best_shot import (
    ScoredAsset,
    calculate_score,
    select_best_shot,
    recalculate_all_best_shots,
)
from .grouping import DuplicateGroupManager, generate_group_id
from .enrichment import (
    EnrichmentProvider,
    NullEnrichment,
    TimeBoundEnrichment,
    CircuitBreaker,
    EnrichmentResult,
    ImageEnricher,
)
from .library import MediaLibraryProvider, DirectoryLibrary, file_signature

# Import dependencies for has_heif_support function
from .dependencies import HAS_HEIF_SUPPORT


def has_heif_support() -> bool:
    """Check if HEIC/HEIF support is available."""
    return HAS_HEIF_SUPPORT


# Public API exports
__all__ = [
    # Signals
    'GraySample',
    'load_gray_sample',
    'compute_mean_luma',
    'compute_laplacian_variance',
    'compute_dhash64',
    'hamming_distance64',
    'extract_signals',
    'center_crop_square',
    # Blur
    'classify',
    'is_blurry_asset',
    'list_blurry',
    # Similarity and groups
    'are_similar',
    'find_matches',
    'DuplicateGroupManager',
    'generate_group_id',
    # Best shot
    'ScoredAsset',
    'calculate_score',
    'select_best_shot',
    'recalculate_all_best_shots',
    # Enrichment
    'EnrichmentProvider',
    'NullEnrichment',
    'TimeBoundEnrichment',
    'CircuitBreaker',
    'EnrichmentResult',
    'ImageEnricher',
    # Library
    'MediaLibraryProvider',
    'DirectoryLibrary',
    'file_signature',
    # Feature detection
    'has_heif_support',
]
