"""Tool modules - importing this package registers every tool with the server"""

from xcode_diag_mcp_server.tools import (  # noqa: F401
    analyze_build_output,
    analyze_test_output,
    check_debugger_output,
    extract_previews,
    get_result_bundle_summary,
    get_test_attachments,
    search_crash_reports,
    suggest_test_schemes,
)
