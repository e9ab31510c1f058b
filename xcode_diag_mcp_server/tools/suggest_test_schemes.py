#!/usr/bin/env python3
"""suggest_test_schemes tool - Find the schemes that contain a test target"""

import os

from xcode_diag_mcp_server.server import mcp
from xcode_diag_mcp_server.exceptions import InvalidParameterError
from xcode_diag_mcp_server.security import validate_and_normalize_project_path
from xcode_diag_mcp_server.utils.schemes import (
    format_scheme_suggestion,
    suggest_schemes,
    target_from_identifier,
)


@mcp.tool()
def suggest_test_schemes(project_path: str, test_identifier: str) -> str:
    """
    Find the schemes whose Test action includes a test target.

    Args:
        project_path: Path to an Xcode project/workspace directory, which must
        end in '.xcodeproj' or '.xcworkspace' and must exist.
        test_identifier: Test target, optionally qualified
                        ("MyUITests" or "MyUITests/LoginTests/testLogin")

    Returns:
        A "Did you mean a different scheme?" suggestion naming the schemes,
        or a message saying no scheme declares the target
    """
    project_path = validate_and_normalize_project_path(project_path)

    if not test_identifier or not test_identifier.strip():
        raise InvalidParameterError("test_identifier cannot be empty")
    test_identifier = test_identifier.strip()

    schemes = suggest_schemes(test_identifier, os.path.dirname(project_path), project_path)
    if not schemes:
        return f"No scheme declares test target '{target_from_identifier(test_identifier)}'."
    return format_scheme_suggestion(test_identifier, schemes)
