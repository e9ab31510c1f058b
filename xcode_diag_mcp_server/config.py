#!/usr/bin/env python3
"""Server-wide settings - initialized from the environment, overridden by CLI flags"""

import os
from typing import Optional

# Verbose diagnostics on stderr
DEBUG_ENABLED = bool(os.environ.get("XCODE_MCP_DEBUG"))

# Global build warning settings - initialized by CLI
BUILD_WARNINGS_ENABLED = True
BUILD_WARNINGS_FORCED = None  # True if forced on, False if forced off, None if not forced

# Upper bound for any single external tool invocation (xcrun, xcresulttool, xccov)
try:
    COMMAND_TIMEOUT_SECONDS = float(os.environ.get("XCODE_DIAG_COMMAND_TIMEOUT", "120"))
except ValueError:
    COMMAND_TIMEOUT_SECONDS = 120.0

CRASH_REPORTS_DIR = os.environ.get("XCODE_DIAG_CRASH_REPORTS_DIR") or \
    os.path.expanduser("~/Library/Logs/DiagnosticReports")

DERIVED_DATA_DIR = os.environ.get("XCODE_DIAG_DERIVED_DATA_DIR") or \
    os.path.expanduser("~/Library/Developer/Xcode/DerivedData")


def set_debug_enabled(enabled: bool):
    """Set the global debug logging setting"""
    global DEBUG_ENABLED
    DEBUG_ENABLED = enabled


def set_build_warnings_enabled(enabled: bool, forced: bool = False):
    """Set the global build warnings setting"""
    global BUILD_WARNINGS_ENABLED, BUILD_WARNINGS_FORCED
    BUILD_WARNINGS_ENABLED = enabled
    BUILD_WARNINGS_FORCED = enabled if forced else None


def should_include_warnings(include_warnings: Optional[bool] = None) -> bool:
    """
    Decide whether warnings belong in a build report.

    Command-line flags override the function parameter (user control > LLM control).
    """
    if BUILD_WARNINGS_FORCED is not None:
        return BUILD_WARNINGS_FORCED
    return include_warnings if include_warnings is not None else BUILD_WARNINGS_ENABLED
