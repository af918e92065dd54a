"""
Third-party imports shared by the scanner modules.

Pillow, imagehash and numpy are required; pillow-heif (phone photos) and
tqdm (CLI progress bars) are picked up when installed.
"""

from __future__ import annotations

import warnings
import logging
from typing import Optional, Any

from ..config import MAX_IMAGE_PIXELS

_logger = logging.getLogger(__name__)

try:
    from PIL import Image, ImageOps
    import imagehash
    import numpy as np
except ImportError as e:
    raise ImportError(
        f"ShotSieve cannot analyze images without its core libraries ({e}).\n"
        "Install with: pip install Pillow imagehash numpy"
    ) from e

# The opener has to be registered before the first HEIC file is opened
HAS_HEIF_SUPPORT = False
try:
    from pillow_heif import register_heif_opener
except ImportError:
    _logger.warning(
        "pillow-heif not installed: .heic/.heif photos will be skipped. "
        "Install with: pip install pillow-heif"
    )
else:
    register_heif_opener()
    HAS_HEIF_SUPPORT = True
    _logger.debug("Registered HEIC/HEIF opener")

# Stitched panoramas are larger than PIL's default bomb limit
Image.MAX_IMAGE_PIXELS = MAX_IMAGE_PIXELS
warnings.filterwarnings("ignore", category=Image.DecompressionBombWarning)

HAS_TQDM = False
_tqdm_class: Optional[Any] = None
try:
    from tqdm import tqdm as _tqdm_class
    HAS_TQDM = True
except ImportError:
    pass


__all__ = [
    'Image',
    'ImageOps',
    'imagehash',
    'np',
    'HAS_HEIF_SUPPORT',
    'HAS_TQDM',
    '_tqdm_class',
    '_logger',
]
