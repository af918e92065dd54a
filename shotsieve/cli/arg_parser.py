"""
Argument parsing for the CLI interface.

Provides functions to create and configure the argument parser for the
ShotSieve command-line interface.
"""

from __future__ import annotations

import argparse
from pathlib import Path


def _add_common_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        '--db',
        help='Database file (default: ~/.shotsieve/scanner.db or SHOTSIEVE_DB)'
    )
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Verbose output'
    )


def create_parser() -> argparse.ArgumentParser:
    """
    Create and configure the argument parser for the CLI.

    Returns:
        Configured ArgumentParser instance with one sub-command per operation
    """
    parser = argparse.ArgumentParser(
        prog='shotsieve-cli',
        description='Find blurry photos and near-duplicate bursts',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s scan /path/to/photos
      Analyze every new or changed photo (resumes where the last scan stopped)

  %(prog)s scan /path/to/photos --once
      Process a single batch only

  %(prog)s groups
      List near-duplicate groups with their best shot

  %(prog)s delete-duplicates /path/to/photos --no-dry-run
      Delete every duplicate except the best shot (BE CAREFUL!)
        """
    )
    subparsers = parser.add_subparsers(dest='command', metavar='COMMAND')
    subparsers.required = True

    # scan
    scan = subparsers.add_parser('scan', help='Scan a photo directory')
    scan.add_argument('directory', type=Path, help='Directory to scan')
    scan.add_argument(
        '-r', '--no-recursive',
        action='store_true',
        help='Do not scan subdirectories'
    )
    scan.add_argument(
        '--once',
        action='store_true',
        help='Process exactly one batch after the saved cursor'
    )
    scan.add_argument(
        '--batch-size',
        type=int,
        default=None,
        help='Assets per batch (default from config)'
    )
    scan.add_argument(
        '--no-progress',
        action='store_true',
        help='Disable progress bars (useful for piping output)'
    )
    _add_common_options(scan)

    # status
    status = subparsers.add_parser('status', help='Show pending/done/error totals')
    _add_common_options(status)

    # groups
    groups = subparsers.add_parser('groups', help='List near-duplicate groups')
    _add_common_options(groups)

    # blurry
    blurry = subparsers.add_parser('blurry', help='List blurry photos')
    blurry.add_argument(
        '--threshold',
        type=float,
        default=None,
        help='Base sharpness threshold (default from config)'
    )
    _add_common_options(blurry)

    # reset-cursor
    reset_cursor = subparsers.add_parser('reset-cursor', help='Restart incremental scanning from the beginning')
    _add_common_options(reset_cursor)

    # reset-all
    reset_all = subparsers.add_parser('reset-all', help='Forget all analysis results and groups')
    _add_common_options(reset_all)

    # delete-duplicates
    delete = subparsers.add_parser(
        'delete-duplicates',
        help='Delete every group member except its best shot'
    )
    delete.add_argument('directory', type=Path, help='Photo directory the database was built from')
    delete.add_argument(
        '--no-dry-run',
        action='store_true',
        help='Actually delete files (default is dry-run)'
    )
    delete.add_argument(
        '-y', '--yes',
        action='store_true',
        help='Do not ask for confirmation'
    )
    _add_common_options(delete)

    return parser


def parse_arguments(argv=None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Args:
        argv: List of argument strings (default: sys.argv)

    Returns:
        Parsed arguments as Namespace object

    Examples:
        >>> args = parse_arguments(['scan', '/path/to/photos', '--once'])
        >>> args.command, args.once
        ('scan', True)
    """
    parser = create_parser()
    return parser.parse_args(argv)


__all__ = [
    'create_parser',
    'parse_arguments',
]
