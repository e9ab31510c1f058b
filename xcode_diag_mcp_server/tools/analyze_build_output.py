#!/usr/bin/env python3
"""analyze_build_output tool - Summarize errors and warnings in build output"""

from typing import Optional

from xcode_diag_mcp_server.server import mcp
from xcode_diag_mcp_server.exceptions import InvalidParameterError
from xcode_diag_mcp_server.utils.build_output import parse_build_output
from xcode_diag_mcp_server.utils.formatting import format_build_result


@mcp.tool()
def analyze_build_output(build_output: str,
                         project_root: Optional[str] = None,
                         include_warnings: Optional[bool] = None) -> str:
    """
    Summarize the output of xcodebuild or swift build.

    Args:
        build_output: Captured stdout (or stdout and stderr combined) of the build
        project_root: Optional project directory. When given, a successful build
            lists no warnings and a failed one lists only warnings from files
            under this directory.
        include_warnings: Include warnings in the report. If not provided, uses
            the server setting. Command-line flags override this parameter.

    Returns:
        A report headed "Build succeeded" or "Build failed" with counts, followed
        by the errors, linker errors and warnings found
    """
    if build_output is None or not build_output.strip():
        raise InvalidParameterError("build_output cannot be empty")

    if project_root is not None:
        project_root = project_root.strip().rstrip("/") or None

    result = parse_build_output(build_output)
    return format_build_result(result, project_root=project_root, include_warnings=include_warnings)
