"""
Report formatting and display for the CLI interface.

Provides functions to print scan status, duplicate groups and blurry photos
in a human-readable format.
"""

from __future__ import annotations

from typing import Optional

from ..database import ScanDatabase
from ..models import AssetRecord, BlurConfig, DuplicateGroup, ScanProgress
from ..scanner import calculate_score
from ..scanner.blur import adjusted_threshold
from ..utils.formatters import format_number, format_taken_at


def _print_section_header(title: str) -> None:
    """Print a section header with divider lines."""
    print("\n" + "=" * 70)
    print(title)
    print("=" * 70)


def _describe_asset(asset: Optional[AssetRecord]) -> str:
    if asset is None:
        return "(no record)"
    size = f"{asset.width}x{asset.height}" if asset.pixel_count else "?x?"
    sharpness = f"{asset.blur_score:.1f}" if asset.blur_score is not None else "-"
    luma = f"{asset.mean_luma:.0f}" if asset.mean_luma is not None else "-"
    return f"{format_taken_at(asset.taken_at)} | {size} | sharpness {sharpness} | luma {luma}"


def print_status(progress: ScanProgress, stats: Optional[dict] = None) -> None:
    """
    Print pending/done/error totals.

    Args:
        progress: Current status snapshot
        stats: Optional database statistics from ScanDatabase.get_stats()
    """
    _print_section_header("SCAN STATUS")
    total = progress.total_pending + progress.total_done + progress.total_error
    print(f"\nAssets:   {format_number(total)}")
    print(f"  Done:     {progress.total_done:,}")
    print(f"  Pending:  {progress.total_pending:,}")
    print(f"  Errors:   {progress.total_error:,}")
    if stats:
        print(f"\nGroups:   {stats['total_groups']:,} ({stats['total_members']:,} members)")
        print(f"Database: {stats['db_path']} ({stats['db_size_formatted']})")


def print_group_report(db: ScanDatabase, groups: list[DuplicateGroup]) -> None:
    """
    Print every duplicate group with its members.

    The elected best shot is marked [KEEP], the others [DUPE]. Members are
    listed by descending best-shot score.
    """
    _print_section_header("DUPLICATE GROUPS")
    total_dupes = sum(len(g.duplicates) for g in groups)
    print(f"\nFound {total_dupes:,} duplicates in {len(groups):,} groups")

    for i, group in enumerate(groups, 1):
        print(f"\nGroup {i} [{group.group_id}] ({len(group.members)} photos):")
        records = db.assets.get_by_ids(group.member_ids)

        members = []
        for member in group.members:
            asset = records.get(member.asset_id)
            score = calculate_score(asset).score if asset else 0.0
            members.append((score, member, asset))

        for score, member, asset in sorted(members, key=lambda m: -m[0]):
            marker = "  [KEEP]" if member.asset_id == group.best_asset_id else "  [DUPE]"
            print(f"{marker} {member.asset_id}")
            print(f"         {_describe_asset(asset)} | distance {member.distance} | "
                  f"Score: {score:.1f}")


def print_blurry_report(assets: list[AssetRecord], config: BlurConfig) -> None:
    """Print blurry photos with the luminance-adjusted threshold each one failed."""
    _print_section_header("BLURRY PHOTOS")
    print(f"\nFound {len(assets):,} blurry photos (base threshold {config.base_threshold:g})")

    for asset in assets:
        threshold = adjusted_threshold(asset.mean_luma, config)
        print(f"  {asset.asset_id}")
        print(f"         {_describe_asset(asset)} | threshold {threshold:.1f}")


__all__ = ['print_status', 'print_group_report', 'print_blurry_report']
