"""
Allow running the package with: python -m shotsieve

By default, launches the scan control server. Use 'cli' subcommand for the
command-line interface.

Examples:
    python -m shotsieve /path/to/photos            # Launch server
    python -m shotsieve serve /path/to/photos      # Launch server (explicit)
    python -m shotsieve cli scan /path/to/photos   # CLI scan
    python -m shotsieve config --init              # Create example config file
"""

import sys


def show_config() -> int:
    from .user_config import get_user_config

    config = get_user_config()

    if '--init' in sys.argv or '-i' in sys.argv:
        # Create example config file
        if config.create_example_config():
            print("✓ Created example configuration file at:")
            print(f"  {config.config_file_path}")
            print("\nEdit this file to customize ShotSieve settings.")
            return 0
        print("✗ Failed to create configuration file.")
        return 1

    # Show current config path and values
    print(f"Configuration file: {config.config_file_path}")
    if config.config_file_path.exists():
        print("Status: ✓ Found")
    else:
        print("Status: ✗ Not found (using defaults)")
        print("\nRun 'python -m shotsieve config --init' to create one.")

    print("\nCurrent settings:")
    for key, value in config.as_dict().items():
        print(f"  {key}: {value}")
    return 0


def main():
    if len(sys.argv) > 1 and sys.argv[1] == 'cli':
        # Remove 'cli' from argv so argparse doesn't see it
        sys.argv.pop(1)
        from .cli import main as cli_main
        sys.exit(cli_main())
    elif len(sys.argv) > 1 and sys.argv[1] == 'config':
        sys.argv.pop(1)
        sys.exit(show_config())
    else:
        if len(sys.argv) > 1 and sys.argv[1] == 'serve':
            sys.argv.pop(1)
        from .app import main as server_main
        sys.exit(server_main())


if __name__ == '__main__':
    main()
