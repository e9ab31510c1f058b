#!/usr/bin/env python3
"""search_crash_reports tool - Find recent crash reports for a process"""

from typing import Optional

from xcode_diag_mcp_server.server import mcp
from xcode_diag_mcp_server.exceptions import InvalidParameterError
from xcode_diag_mcp_server.utils import crash_reports


@mcp.tool()
def search_crash_reports(process_name: Optional[str] = None,
                         bundle_id: Optional[str] = None,
                         minutes: int = 5) -> str:
    """
    Search the DiagnosticReports directory for recent .ips crash reports.

    Useful right after an app crash: returns the exception type, signal,
    termination reason and details of each match without opening Console.app.

    Args:
        process_name: Process name to filter by (e.g. 'MyApp'). Matched
                     case-insensitively against the file name and the report.
        bundle_id: Bundle identifier to filter by (e.g. 'com.example.MyApp')
        minutes: Only include reports from the last N minutes (default 5)

    Returns:
        The matching reports, most recent first, or a message saying none were found
    """
    if minutes is None or minutes <= 0:
        raise InvalidParameterError("minutes must be a positive number")

    process_name = process_name.strip() if process_name and process_name.strip() else None
    bundle_id = bundle_id.strip() if bundle_id and bundle_id.strip() else None

    reports = crash_reports.search_crash_reports(
        process_name=process_name, minutes=minutes, bundle_id=bundle_id)
    return crash_reports.format_crash_reports(
        reports, minutes, process_name=process_name, bundle_id=bundle_id)
