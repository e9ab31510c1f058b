#!/usr/bin/env python3
"""Render a BuildResult as concise text for tool output

Build report example:

    Build failed (2 errors, 1 warning, 12.4s)

    Errors:
      Sources/Foo.swift:42:10 — cannot convert 'Int' to 'String'
      Sources/Bar.swift:15:5 — missing return in function

Test report example:

    Tests failed (2 failed, 40 passed, 3.200s)

    Failures:
      MyTests.testLogin — Expected true, got false (MyTests.swift:55)
"""

from typing import Optional, List, Sequence, Tuple, Union

from xcode_diag_mcp_server import config
from xcode_diag_mcp_server.models import (
    BuildError,
    BuildResult,
    BuildWarning,
    FailedTest,
    LinkerError,
)

# Same limit the build tool has always applied to its error listing
MAX_ISSUES_PER_SECTION = 25


def pluralize(count: int, noun: str) -> str:
    return f"{count} {noun}{'' if count == 1 else 's'}"


def format_location(file: Optional[str], line: Optional[int], column: Optional[int]) -> str:
    """'path:line:column — ', or '' when there is no file"""
    if not file:
        return ""
    location = file
    if line is not None:
        location += f":{line}"
        if column is not None:
            location += f":{column}"
    return location + " — "


def _limited(header: str, lines: List[str], noun: str) -> str:
    shown = lines[:MAX_ISSUES_PER_SECTION]
    section = [header] + shown
    hidden = len(lines) - len(shown)
    if hidden > 0:
        section.append(f"  (+{hidden} more {noun}{'' if hidden == 1 else 's'} not shown)")
    return "\n".join(section)


def format_issues(header: str, issues: Sequence[Union[BuildError, BuildWarning]], noun: str) -> str:
    lines = [f"  {format_location(i.file, i.line, i.column)}{i.message}" for i in issues]
    return _limited(header, lines, noun)


def format_linker_errors(errors: Sequence[LinkerError]) -> str:
    lines = []
    for error in errors:
        if error.symbol:
            detail = f"  Undefined symbol '{error.symbol}'"
            if error.architecture:
                detail += f" ({error.architecture})"
            if error.referenced_from:
                detail += f" referenced from {error.referenced_from}"
            if error.conflicting_files:
                detail += f" — duplicate in: {', '.join(error.conflicting_files)}"
            lines.append(detail)
        elif error.message:
            lines.append(f"  {error.message}")
    return _limited("Linker errors:", lines, "linker error")


def format_failed_tests(tests: Sequence[FailedTest]) -> str:
    lines = []
    for test in tests:
        detail = f"  {test.test_identifier} — {test.message}"
        if test.file:
            location = test.file if test.line is None else f"{test.file}:{test.line}"
            detail += f" ({location})"
        lines.append(detail)
    return _limited("Failures:", lines, "failure")


def partition_warnings(warnings: Sequence[BuildWarning],
                       project_root: str) -> Tuple[List[BuildWarning], int]:
    """
    Split warnings into project-local ones and a count of the rest.

    Warnings without a file cannot be classified and count as local.
    """
    root = project_root if project_root.endswith("/") else project_root + "/"
    local = []
    external = 0
    for warning in warnings:
        if warning.file and not warning.file.startswith(root):
            external += 1
        else:
            local.append(warning)
    return local, external


def build_headline(result: BuildResult) -> str:
    summary = result.summary
    headline = "Build succeeded" if result.succeeded else "Build failed"

    details = []
    if summary.error_count > 0:
        details.append(pluralize(summary.error_count, "error"))
    if summary.linker_error_count > 0:
        details.append(pluralize(summary.linker_error_count, "linker error"))
    if summary.warning_count > 0:
        details.append(pluralize(summary.warning_count, "warning"))
    if summary.build_time:
        details.append(summary.build_time)

    if details:
        headline += f" ({', '.join(details)})"
    return headline


def test_headline(result: BuildResult) -> str:
    summary = result.summary
    passed = summary.passed_test_count or 0
    failed = summary.failed_test_count

    if failed > 0:
        headline = "Tests failed"
    elif passed > 0:
        headline = "Tests passed"
    else:
        headline = "Test run completed"

    details = []
    if failed > 0:
        details.append(f"{failed} failed")
    if passed > 0:
        details.append(f"{passed} passed")
    if summary.test_time:
        details.append(summary.test_time)

    if details:
        headline += f" ({', '.join(details)})"
    return headline


def format_build_result(result: BuildResult,
                        project_root: Optional[str] = None,
                        include_warnings: Optional[bool] = None) -> str:
    """
    Format a build-oriented report.

    Args:
        result: Parsed build result
        project_root: When given, a successful build lists no warnings and a
            failed one lists only warnings from files under this directory
        include_warnings: Per-call override of the warnings setting; a value
            forced on the command line wins

    Returns:
        Headline followed by blank-line separated sections
    """
    parts = [build_headline(result)]

    if result.errors:
        parts.append(format_issues("Errors:", result.errors, "error"))

    if result.linker_errors:
        parts.append(format_linker_errors(result.linker_errors))

    if result.warnings and config.should_include_warnings(include_warnings):
        if project_root is None:
            parts.append(format_issues("Warnings:", result.warnings, "warning"))
        elif not result.succeeded:
            local, external = partition_warnings(result.warnings, project_root)
            if local:
                parts.append(format_issues("Warnings:", local, "warning"))
            if external > 0:
                parts.append(f"(+{pluralize(external, 'warning')} from dependencies hidden)")

    return "\n\n".join(parts)


def format_test_result(result: BuildResult) -> str:
    """Format a test-oriented report: failures, build errors, coverage and captured output"""
    parts = [test_headline(result)]

    if result.failed_tests:
        parts.append(format_failed_tests(result.failed_tests))

    # Compile errors from building the test target
    if result.errors:
        parts.append(format_issues("Errors:", result.errors, "error"))

    if result.linker_errors:
        parts.append(format_linker_errors(result.linker_errors))

    if result.coverage is not None:
        parts.append(f"Coverage: {result.coverage.line_coverage:.1f}%")

    if result.test_output:
        parts.append("Test output:\n" + result.test_output.rstrip())

    return "\n\n".join(parts)
