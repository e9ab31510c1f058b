#!/usr/bin/env python3
"""get_result_bundle_summary tool - Summarize an .xcresult bundle"""

import os
import datetime

from xcode_diag_mcp_server.server import mcp
from xcode_diag_mcp_server.exceptions import InvalidParameterError
from xcode_diag_mcp_server.security import validate_and_normalize_project_path, validate_path
from xcode_diag_mcp_server.utils.formatting import format_build_result, format_test_result
from xcode_diag_mcp_server.utils.xcresult import find_xcresult_bundle, parse_result_bundle


@mcp.tool()
def get_result_bundle_summary(result_bundle_path: str = "",
                              project_path: str = "",
                              report: str = "test") -> str:
    """
    Summarize the issues, test results and coverage stored in a result bundle.

    Args:
        result_bundle_path: Path to an .xcresult bundle
        project_path: Path to an .xcodeproj/.xcworkspace. Used when
                     result_bundle_path is empty: the most recent test
                     bundle of the project in DerivedData is summarized.
        report: "test" for a test report (default) or "build" for a build report

    Returns:
        The formatted report, or "No test results available"
    """
    if report not in ("test", "build"):
        raise InvalidParameterError("report must be 'test' or 'build'")

    if result_bundle_path and result_bundle_path.strip():
        bundle_path = validate_path(result_bundle_path, "result_bundle_path", (".xcresult",))
    elif project_path and project_path.strip():
        project_path = validate_and_normalize_project_path(project_path)
        bundle_path = find_xcresult_bundle(project_path)
        if not bundle_path:
            return "No test results available"
    else:
        raise InvalidParameterError("Either result_bundle_path or project_path must be provided")

    result = parse_result_bundle(bundle_path)
    if result is None:
        return f"Could not read result bundle {bundle_path} (xcresulttool unavailable or bundle incomplete)"

    if report == "build":
        text = format_build_result(result)
    else:
        text = format_test_result(result)

    mod_time = datetime.datetime.fromtimestamp(os.path.getmtime(bundle_path))
    return f"Result bundle: {bundle_path}\nTest run: {mod_time.strftime('%Y-%m-%d %H:%M:%S')}\n\n{text}"
