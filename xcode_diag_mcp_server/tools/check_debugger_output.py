#!/usr/bin/env python3
"""check_debugger_output tool - Decide whether an LLDB transcript shows a crash"""

from xcode_diag_mcp_server.server import mcp
from xcode_diag_mcp_server.utils.lldb import crash_stop_reason


@mcp.tool()
def check_debugger_output(transcript: str) -> str:
    """
    Check an LLDB console transcript for a crash.

    Breakpoint stops, module loading and attach/resume messages are not crashes.

    Args:
        transcript: LLDB console output

    Returns:
        "Crash detected: <reason>" or "No crash detected"
    """
    reason = crash_stop_reason(transcript)
    if reason is None:
        return "No crash detected"
    return f"Crash detected: {reason}"
