"""
Configuration constants for ShotSieve.

This module contains all configurable defaults including:
- Supported image extensions
- Analysis algorithm and schema versions
- Blur, similarity and best-shot tuning values
- Enrichment (labeling / face detection) limits
"""

import os

# Image extensions the directory library will enumerate
IMAGE_EXTENSIONS = {
    '.jpg', '.jpeg', '.png', '.gif', '.bmp', '.webp', '.tiff', '.tif',
    '.heic', '.heif', '.avif',
    '.dng',
}

HEIF_EXTENSIONS = {'.heic', '.heif'}

# Bump whenever signal extraction changes. DONE assets analyzed with an
# older version are lazily reverted to PENDING on the next scan.
GLOBAL_ALGO_VERSION = 3

# Schema version - increment when adding a migration
SCHEMA_VERSION = 2

# Side of the square grayscale sample every signal is computed from
SAMPLE_SIZE = 256

# Assets pulled from the pending queue per batch
DEFAULT_BATCH_SIZE = 20

# Assets fetched per page while reconciling with the library
SYNC_PAGE_SIZE = 100

# Blur classification (Laplacian variance)
BLUR_BASE_THRESHOLD = 100.0
BLUR_DARK_THRESHOLD = 40.0
BLUR_DARK_MULTIPLIER = 0.7
BLUR_BRIGHT_THRESHOLD = 220.0
BLUR_BRIGHT_MULTIPLIER = 0.7

# Similarity matching (dHash, 64 bits)
SIMILARITY_WINDOW_SECONDS = 120
SIMILARITY_MAX_CANDIDATES = 10
SIMILARITY_THRESHOLD = 15
HASH_BITS = 64

# Best shot scoring
SHARPNESS_CAP = 500.0
LUMA_TARGET = 140.0
LIGHTING_SPAN = 40.0
DEFAULT_LUMA = 128.0

# Enrichment capability
CIRCUIT_BREAKER_THRESHOLD = 3
ENRICHMENT_TIMEOUT_SECONDS = 5.0
MIN_FACE_WIDTH_RATIO = 0.1
LABEL_CROP_SIZE = 300
DISQUALIFIER_CONFIDENCE = 0.4
CONTEXT_DISQUALIFIERS = {
    'web site', 'website', 'monitor', 'screen', 'computer screen',
    'screenshot', 'comic book', 'menu', 'display',
}

# Increase PIL's decompression bomb limit for large panoramas and scans
MAX_IMAGE_PIXELS = 500_000_000

# Application data locations
APP_DIR = os.path.join(os.path.expanduser('~'), '.shotsieve')
DB_FILE = os.path.join(APP_DIR, 'scanner.db')
