#!/usr/bin/env python3
"""MCP server instance shared by all tool modules"""

from mcp.server.fastmcp import FastMCP

mcp = FastMCP("Xcode Diagnostics MCP Server",
    instructions="""
        This server turns raw output from Xcode tooling into structured,
        readable diagnostics. It never builds, launches or modifies anything:
        give it the text or files produced by `xcodebuild`, `swift build`,
        `swift test`, LLDB or the crash reporter and it returns a concise
        report.

        Call `analyze_build_output` with captured build output to get the
        errors, warnings and linker errors it contains.

        Call `analyze_test_output` with captured test output (and stderr)
        to get passed/failed counts and failure details. Pass the
        `only_testing` identifiers you used so that a filter matching no
        tests is reported as an error, with a scheme suggestion when the
        test target lives in another scheme.

        Available tools:
        - analyze_build_output: Summarize errors and warnings in build output
        - analyze_test_output: Summarize a test run, flag infrastructure crashes
        - get_result_bundle_summary: Summarize an .xcresult bundle
        - get_test_attachments: Export and list attachments from an .xcresult bundle
        - search_crash_reports: Find recent crash reports for a process
        - suggest_test_schemes: Find the schemes that contain a test target
        - extract_previews: List the #Preview blocks in a Swift source file
        - check_debugger_output: Decide whether an LLDB transcript shows a crash
    """
)
