#!/usr/bin/env python3
"""Command-line entry point for the Xcode diagnostics MCP server"""

import sys
import argparse

from xcode_diag_mcp_server import __version__
from xcode_diag_mcp_server import config
from xcode_diag_mcp_server.security import get_allowed_folders, set_allowed_folders
from xcode_diag_mcp_server.server import mcp
from xcode_diag_mcp_server.utils.log import log_info

NO_ALLOWED_FOLDERS_MESSAGE = """
========================================================================
ERROR: Xcode Diagnostics MCP Server cannot start - No valid allowed folders!
========================================================================

No valid folders were found to allow access to.

To fix this, you can either:

1. Set the XCODEMCP_ALLOWED_FOLDERS environment variable:
   export XCODEMCP_ALLOWED_FOLDERS="/path/to/folder1:/path/to/folder2"

2. Use the --allowed command line option:
   xcode-diag-mcp-server --allowed /path/to/folder1 --allowed /path/to/folder2

3. Ensure your $HOME directory exists and is accessible

All specified folders must:
- Be absolute paths
- Exist on the filesystem
- Be directories (not files)
- Not contain '..' components

========================================================================
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Xcode Diagnostics MCP Server")
    parser.add_argument("--version", action="version", version=f"xcode-diag-mcp-server {__version__}")
    parser.add_argument("--allowed", action="append", help="Add an allowed folder path (can be used multiple times)")
    parser.add_argument("--debug", action="store_true", help="Print debug diagnostics to stderr")
    parser.add_argument("--no-build-warnings", action="store_true", help="Exclude warnings from build output")
    parser.add_argument("--always-include-build-warnings", action="store_true", help="Always include warnings in build output")
    return parser


def apply_arguments(args: argparse.Namespace):
    """Apply parsed flags to the server settings. Exits on conflicting flags."""
    if args.debug:
        config.set_debug_enabled(True)

    # Handle build warning settings
    if args.no_build_warnings and args.always_include_build_warnings:
        print("Error: Cannot use both --no-build-warnings and --always-include-build-warnings", file=sys.stderr)
        sys.exit(1)
    elif args.no_build_warnings:
        config.set_build_warnings_enabled(False, forced=True)
        log_info("Build warnings forcibly disabled")
    elif args.always_include_build_warnings:
        config.set_build_warnings_enabled(True, forced=True)
        log_info("Build warnings forcibly enabled")

    # Initialize allowed folders from environment and command line
    allowed_folders = get_allowed_folders(args.allowed)
    if not allowed_folders:
        print(NO_ALLOWED_FOLDERS_MESSAGE, file=sys.stderr)
        sys.exit(1)

    set_allowed_folders(allowed_folders)
    log_info(f"Total allowed folders: {allowed_folders}")


def main(argv=None):
    args = build_parser().parse_args(argv)
    apply_arguments(args)

    # Registers every tool with the server
    import xcode_diag_mcp_server.tools  # noqa: F401

    mcp.run()


if __name__ == "__main__":
    main()
