"""
CLI package for ShotSieve.

Provides the command-line interface for scanning a photo directory,
inspecting blurry photos and duplicate groups, resetting progress and
deleting duplicates.

Public API:
- main: Entry point for CLI execution
- CLIOrchestrator: Sub-command dispatch
- delete_duplicates: Delete every group member except its best shot
- print_status / print_group_report / print_blurry_report: Reports
"""

from __future__ import annotations

from typing import Optional

from .orchestrator import CLIOrchestrator, setup_logging
from .arg_parser import create_parser, parse_arguments
from .actions import collect_duplicates, delete_duplicates
from .reporting import print_status, print_group_report, print_blurry_report
from .interactive import confirm_action


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Delegates to CLIOrchestrator to execute the selected sub-command.

    Returns:
        Exit code (0 for success, 1 for error)

    Examples:
        >>> exit_code = main(['status'])
        >>> sys.exit(exit_code)
    """
    orchestrator = CLIOrchestrator(argv)
    return orchestrator.run()


__all__ = [
    # Main entry point
    'main',
    # Core classes
    'CLIOrchestrator',
    # Utilities
    'setup_logging',
    'create_parser',
    'parse_arguments',
    'collect_duplicates',
    'delete_duplicates',
    'print_status',
    'print_group_report',
    'print_blurry_report',
    'confirm_action',
]
