#!/usr/bin/env python3
"""analyze_test_output tool - Summarize a test run and flag infrastructure problems"""

import os
from typing import Optional, List, Union

from xcode_diag_mcp_server.server import mcp
from xcode_diag_mcp_server.security import validate_and_normalize_project_path, validate_path
from xcode_diag_mcp_server.utils.test_diagnostics import format_test_tool_result


@mcp.tool()
def analyze_test_output(test_output: str,
                        succeeded: bool,
                        stderr: str = "",
                        only_testing: Optional[Union[List[str], str]] = None,
                        project_path: Optional[str] = None,
                        result_bundle_path: Optional[str] = None,
                        context: str = "") -> str:
    """
    Summarize the output of xcodebuild test or swift test.

    Args:
        test_output: Captured stdout of the test command
        succeeded: Whether the test command exited with status 0
        stderr: Captured stderr, checked for testmanagerd and test runner crashes
        only_testing: The -only-testing identifiers the run used.
                     Format: ["BundleName/ClassName/testMethod", ...]
                     If these matched no tests, the run is reported as failed.
        project_path: Optional .xcodeproj/.xcworkspace, used to suggest the
                     scheme that contains a missing test target
        result_bundle_path: Optional .xcresult bundle of the run. Gives complete
                     failure messages when available.
        context: Short description of what was tested, e.g. "scheme 'App' on macOS"

    Returns:
        "Tests passed for <context>" followed by the report.
        Raises an error carrying the full report if tests failed.
    """
    project_root = None
    if project_path:
        project_path = validate_and_normalize_project_path(project_path)
        project_root = os.path.dirname(project_path)

    if result_bundle_path:
        result_bundle_path = validate_path(result_bundle_path, "result_bundle_path", (".xcresult",))

    return format_test_tool_result(
        output=test_output or "",
        succeeded=succeeded,
        context=context,
        stderr=stderr,
        only_testing=only_testing,
        result_bundle_path=result_bundle_path,
        project_root=project_root,
        project_path=project_path,
    )
