#!/usr/bin/env python3
"""get_test_attachments tool - Export and list attachments from an .xcresult bundle"""

import os
import tempfile
from typing import Optional

from xcode_diag_mcp_server.server import mcp
from xcode_diag_mcp_server.exceptions import XCodeMCPError
from xcode_diag_mcp_server.security import validate_path
from xcode_diag_mcp_server.utils.xcresult import export_test_attachments, format_attachments

NO_ATTACHMENTS = "No attachments found in the result bundle."


@mcp.tool()
def get_test_attachments(result_bundle_path: str,
                         output_path: Optional[str] = None,
                         test_id: Optional[str] = None,
                         only_failures: bool = False) -> str:
    """
    Extract test attachments (screenshots, data files) from an .xcresult bundle.

    Args:
        result_bundle_path: Path to the .xcresult bundle
        output_path: Directory to export attachment files to. If omitted, files
                     are exported to a temporary directory and only metadata
                     is returned.
        test_id: Only export attachments of this test (e.g. 'MyTests/testFoo()')
        only_failures: Only export attachments associated with test failures

    Returns:
        One entry per attachment with its file name, test and failure flag
    """
    bundle_path = validate_path(result_bundle_path, "result_bundle_path", (".xcresult",))

    if output_path:
        export_dir = validate_path(output_path, "output_path", must_exist=False)
        try:
            os.makedirs(export_dir, exist_ok=True)
        except OSError as e:
            raise XCodeMCPError(f"Cannot create output directory {export_dir}: {e}")
        attachments = export_test_attachments(bundle_path, export_dir, test_id, only_failures)
        if not attachments:
            return NO_ATTACHMENTS
        return format_attachments(attachments, export_dir)

    with tempfile.TemporaryDirectory(prefix="xcode-diag-attachments-") as export_dir:
        attachments = export_test_attachments(bundle_path, export_dir, test_id, only_failures)
    if not attachments:
        return NO_ATTACHMENTS
    return format_attachments(attachments)
