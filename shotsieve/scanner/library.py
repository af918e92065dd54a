"""
Media library providers.

The scan engine never holds the whole library in memory: it pages through
a MediaLibraryProvider with a stable cursor, and resolves a readable local
path only when an asset is analyzed.

DirectoryLibrary is the filesystem implementation:
- asset id is the resolved absolute path
- capture time from EXIF DateTimeOriginal, falling back to file mtime
- HEIC/HEIF files are only listed when pillow-heif is installed
"""

from __future__ import annotations

import bisect
import logging
import os
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Optional

from ..config import HEIF_EXTENSIONS, IMAGE_EXTENSIONS, SYNC_PAGE_SIZE
from ..models import AssetPage, LibraryAsset
from .dependencies import HAS_HEIF_SUPPORT, Image


logger = logging.getLogger(__name__)

# EXIF tags
_EXIF_IFD_POINTER = 0x8769
_TAG_DATETIME_ORIGINAL = 0x9003
_TAG_DATETIME = 0x0132
_EXIF_DATE_FORMAT = '%Y:%m:%d %H:%M:%S'


def file_signature(path: str | Path) -> str:
    """
    Content signature used to detect external edits.

    Returns:
        "<mtime_ms>_<size>", or an empty string if the file cannot be stat'ed
    """
    try:
        stat = os.stat(path)
    except OSError:
        return ''
    return f"{int(stat.st_mtime * 1000)}_{stat.st_size}"


def _parse_exif_datetime(value) -> Optional[int]:
    if not isinstance(value, str):
        return None
    try:
        dt = datetime.strptime(value.strip('\x00 '), _EXIF_DATE_FORMAT)
    except ValueError:
        return None
    return int(dt.timestamp() * 1000)


def read_image_metadata(path: str | Path) -> tuple[Optional[int], Optional[int], Optional[int]]:
    """
    Read dimensions and EXIF capture time without decoding pixels.

    Returns:
        (width, height, taken_at_ms); unknown values are None
    """
    try:
        with Image.open(path) as img:
            width, height = img.size
            exif = img.getexif()
            taken_at = _parse_exif_datetime(exif.get_ifd(_EXIF_IFD_POINTER).get(_TAG_DATETIME_ORIGINAL))
            if taken_at is None:
                taken_at = _parse_exif_datetime(exif.get(_TAG_DATETIME))
    except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as e:
        logger.debug(f"Could not read metadata from {path}: {e}")
        return None, None, None
    return width, height, taken_at


class MediaLibraryProvider(ABC):
    """Boundary to the photo library the engine analyzes."""

    @abstractmethod
    def list_assets(self, after: Optional[str] = None, first: int = SYNC_PAGE_SIZE) -> AssetPage:
        """
        One page of assets.

        Args:
            after: end_cursor of the previous page (None for the first page)
            first: Maximum number of assets in the page
        """

    @abstractmethod
    def get_asset_info(self, asset_id: str) -> Optional[LibraryAsset]:
        """Metadata and readable local path of an asset, or None if gone."""

    @abstractmethod
    def delete_assets(self, asset_ids: list[str]) -> int:
        """
        Delete assets from the library.

        Returns:
            Number of assets actually deleted
        """

    def signature_for(self, asset: LibraryAsset) -> str:
        """File signature of a listed asset ("" when unknown)."""
        if not asset.local_path:
            return ''
        return file_signature(asset.local_path)


class DirectoryLibrary(MediaLibraryProvider):
    """
    A directory tree of image files treated as a media library.

    The file list is snapshotted when the first page is requested, so pages
    are stable while a sync is in progress.
    """

    def __init__(self, root_path: str | Path, recursive: bool = True):
        self.root = Path(root_path)
        self.recursive = recursive
        self._snapshot: Optional[list[str]] = None

    def find_image_files(self) -> list[str]:
        """
        Resolved paths of every supported image under the root, sorted.

        Notes:
            - Automatically filters out HEIC/HEIF files if pillow-heif is not installed
            - Handles symlinks by resolving to canonical paths
            - Deduplicates files that may be encountered via multiple paths
        """
        extensions = IMAGE_EXTENSIONS
        if not HAS_HEIF_SUPPORT:
            extensions = IMAGE_EXTENSIONS - HEIF_EXTENSIONS

        iterator = self.root.rglob('*') if self.recursive else self.root.glob('*')
        seen = set()
        for filepath in iterator:
            if filepath.is_file() and filepath.suffix.lower() in extensions:
                seen.add(str(filepath.resolve()))
        return sorted(seen)

    def _describe(self, path: str) -> LibraryAsset:
        width, height, taken_at = read_image_metadata(path)
        if taken_at is None:
            try:
                taken_at = int(os.path.getmtime(path) * 1000)
            except OSError:
                taken_at = None
        return LibraryAsset(
            asset_id=path,
            taken_at=taken_at,
            width=width,
            height=height,
            local_path=path,
        )

    def list_assets(self, after: Optional[str] = None, first: int = SYNC_PAGE_SIZE) -> AssetPage:
        if after is None or self._snapshot is None:
            self._snapshot = self.find_image_files()
            if after is None:
                logger.debug(f"Found {len(self._snapshot)} image files under {self.root}")

        start = 0 if after is None else bisect.bisect_right(self._snapshot, after)
        paths = self._snapshot[start:start + first]
        has_next = start + first < len(self._snapshot)

        assets = [self._describe(path) for path in paths]
        return AssetPage(
            assets=assets,
            end_cursor=paths[-1] if paths else after,
            has_next_page=has_next,
        )

    def get_asset_info(self, asset_id: str) -> Optional[LibraryAsset]:
        if not os.path.isfile(asset_id):
            return None
        return self._describe(asset_id)

    def delete_assets(self, asset_ids: list[str]) -> int:
        deleted = 0
        for asset_id in asset_ids:
            try:
                os.remove(asset_id)
                deleted += 1
            except OSError as e:
                logger.warning(f"Could not delete {asset_id}: {e}")
        if self._snapshot is not None:
            removed = set(asset_ids)
            self._snapshot = [p for p in self._snapshot if p not in removed]
        return deleted


__all__ = [
    'MediaLibraryProvider',
    'DirectoryLibrary',
    'file_signature',
    'read_image_metadata',
]
