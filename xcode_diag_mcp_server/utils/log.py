#!/usr/bin/env python3
"""stderr logging helpers

stdout carries the MCP stdio transport, so every diagnostic goes to stderr.
"""

import sys

from xcode_diag_mcp_server import config


def debug_log(message: str):
    """Print a DEBUG line when debug output is enabled"""
    if config.DEBUG_ENABLED:
        print(f"DEBUG: {message}", file=sys.stderr)


def log_info(message: str):
    print(message, file=sys.stderr)


def log_warning(message: str):
    print(f"Warning: {message}", file=sys.stderr)
