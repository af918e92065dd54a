"""
Image signal extraction for the scanner package.

Every signal is computed from one fixed-size grayscale sample:
- mean luminance (0-255)
- Laplacian variance sharpness (higher = sharper)
- 64-bit difference hash (dHash) for near-duplicate matching

The sample is released as soon as the signals are computed, before any
database write.
"""

from __future__ import annotations

import os
import re
import tempfile
from pathlib import Path
from typing import Optional

from ..config import HASH_BITS, LABEL_CROP_SIZE, SAMPLE_SIZE
from ..exceptions import ExtractionFailed
from ..models import ImageSignals
from .dependencies import Image, ImageOps, imagehash, np, _logger


_HASH_RE = re.compile(r'^[0-9a-fA-F]{%d}$' % (HASH_BITS // 4))


class GraySample:
    """
    Square grayscale sample of an image.

    Owns the PIL image and its float pixel array. Use as a context manager
    (or call close()) so the pixel buffers never outlive signal extraction.

    Example:
        with load_gray_sample(path) as sample:
            luma = compute_mean_luma(sample)
    """

    def __init__(self, image: Image.Image):
        self._image: Optional[Image.Image] = image
        self._pixels = np.asarray(image, dtype=np.float64)

    @property
    def closed(self) -> bool:
        return self._image is None

    @property
    def size(self) -> tuple[int, int]:
        return self.image.size

    @property
    def image(self) -> Image.Image:
        if self._image is None:
            raise ValueError("Gray sample has been released")
        return self._image

    @property
    def pixels(self):
        """Pixel values as a 2-D float64 numpy array."""
        if self._pixels is None:
            raise ValueError("Gray sample has been released")
        return self._pixels

    def close(self) -> None:
        """Release the sample. Safe to call more than once."""
        if self._image is not None:
            self._image.close()
        self._image = None
        self._pixels = None

    def __enter__(self) -> GraySample:
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


def load_gray_sample(filepath: str | Path, size: int = SAMPLE_SIZE) -> GraySample:
    """
    Decode an image and reduce it to a size x size grayscale sample.

    Args:
        filepath: Path to a readable image
        size: Side of the square sample (default 256)

    Returns:
        GraySample owning the resized image

    Raises:
        ExtractionFailed: File missing, unreadable, corrupt or not an image
    """
    try:
        with Image.open(filepath) as img:
            # Force load to detect truncated images early
            img.load()
            gray = img.convert('L').resize((size, size), Image.Resampling.BILINEAR)
    except Image.DecompressionBombError as e:
        raise ExtractionFailed(f"Image too large: {e}") from e
    except Image.UnidentifiedImageError as e:
        raise ExtractionFailed(f"Not a valid image file: {e}") from e
    except (OSError, ValueError) as e:
        raise ExtractionFailed(f"Failed to read image: {e}") from e

    return GraySample(gray)


def compute_mean_luma(sample: GraySample) -> float:
    """Mean luminance of the sample in [0, 255]."""
    return float(sample.pixels.mean())


def compute_laplacian_variance(sample: GraySample) -> float:
    """
    Sharpness as the variance of the 4-neighbour discrete Laplacian.

    Flat or defocused images give values near 0; crisp detail gives
    hundreds.
    """
    p = sample.pixels
    laplacian = (
        p[:-2, 1:-1] + p[2:, 1:-1] + p[1:-1, :-2] + p[1:-1, 2:]
        - 4.0 * p[1:-1, 1:-1]
    )
    return float(laplacian.var())


def compute_dhash64(sample: GraySample) -> str:
    """
    64-bit difference hash of the sample.

    The sample is reduced to 9x8 and a bit is set wherever brightness
    increases from one column to the next.

    Returns:
        16-character lowercase hex string
    """
    return str(imagehash.dhash(sample.image, hash_size=8))


def hamming_distance64(hash_a: str, hash_b: str) -> int:
    """
    Number of differing bits between two 64-bit hex hashes.

    Raises:
        ValueError: If either hash is not 16 hex digits
    """
    for value in (hash_a, hash_b):
        if not isinstance(value, str) or not _HASH_RE.match(value):
            raise ValueError(f"Expected a {HASH_BITS // 4}-digit hex hash, got {value!r}")
    return int(imagehash.hex_to_hash(hash_a.lower()) - imagehash.hex_to_hash(hash_b.lower()))


def extract_signals(filepath: str | Path) -> ImageSignals:
    """
    Compute luminance, sharpness and perceptual hash for one image.

    Args:
        filepath: Path to a readable image

    Returns:
        ImageSignals for the image

    Raises:
        ExtractionFailed: If the image cannot be decoded or sampled
    """
    with load_gray_sample(filepath) as sample:
        try:
            return ImageSignals(
                blur_score=compute_laplacian_variance(sample),
                mean_luma=compute_mean_luma(sample),
                phash=compute_dhash64(sample),
            )
        except (ValueError, OSError) as e:
            raise ExtractionFailed(f"Signal computation failed for {filepath}: {e}") from e


def center_crop_square(filepath: str | Path, size: int = LABEL_CROP_SIZE) -> str:
    """
    Center-crop an image to a square and resize it for labeling.

    The crop is written to a temporary JPEG the caller must delete. If the
    crop fails the original path is returned unchanged.

    Args:
        filepath: Source image
        size: Output side in pixels (default 300)

    Returns:
        Path of the cropped temporary file, or the original path
    """
    try:
        with Image.open(filepath) as img:
            cropped = ImageOps.fit(img.convert('RGB'), (size, size), Image.Resampling.BILINEAR)
        fd, temp_path = tempfile.mkstemp(prefix='shotsieve_crop_', suffix='.jpg')
        os.close(fd)
        try:
            cropped.save(temp_path, 'JPEG', quality=80)
        finally:
            cropped.close()
        return temp_path
    except (OSError, ValueError) as e:
        _logger.warning(f"Crop failed for {filepath}, using original: {e}")
        return str(filepath)


__all__ = [
    'GraySample',
    'load_gray_sample',
    'compute_mean_luma',
    'compute_laplacian_variance',
    'compute_dhash64',
    'hamming_distance64',
    'extract_signals',
    'center_crop_square',
]
