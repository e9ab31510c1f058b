#!/usr/bin/env python3
"""Turn raw build/test tool output into a final report or a raised failure

Adds the checks a parsed result alone can't express: crashed test
infrastructure, filters that matched no tests, and test targets that live
in a different scheme.
"""

import os
import re
from typing import Optional, List, Union

from xcode_diag_mcp_server.exceptions import BuildFailedError, TestRunError
from xcode_diag_mcp_server.models import BuildResult
from xcode_diag_mcp_server.utils.build_output import parse_build_output
from xcode_diag_mcp_server.utils.formatting import format_build_result, format_test_result
from xcode_diag_mcp_server.utils.log import debug_log
from xcode_diag_mcp_server.utils.schemes import (
    format_scheme_suggestion,
    suggest_schemes,
    target_from_identifier,
)
from xcode_diag_mcp_server.utils.xcresult import parse_result_bundle

TESTMANAGERD_CRASHED = ("Warning: testmanagerd crashed during the test run. "
                        "Test results may be incomplete or unreliable. "
                        "Consider re-running the tests.")
TESTMANAGERD_TERMINATED = ("Warning: testmanagerd terminated unexpectedly during the test run. "
                           "Test results may be incomplete.")
TEST_RUNNER_DAEMON_CRASHED = "Warning: The test runner daemon crashed during the test run."

TESTMANAGERD_CRASH_MARKERS = ("crash", "SIGSEGV", "SIGABRT", "SIGBUS",
                              "pointer authentication", "pointer auth", "EXC_BAD_ACCESS")
TESTMANAGERD_TERMINATION_MARKERS = ("terminated unexpectedly", "exited unexpectedly", "lost connection")

UI_TEST_HOST_HINT = ("UI test target has no target application configured. "
                     "Set the target application (host app) in the scheme's Test action.")

NO_TESTS_MATCHED = "No tests matched the only_testing filter"

# "TestAppUITests" isn't a member of the specified test plan or scheme.
MISSING_TEST_TARGET_RE = re.compile(r'"([^"]+)" isn\'t a member of the specified test plan or scheme')


def detect_infrastructure_warnings(stderr: Optional[str]) -> List[str]:
    """
    Recognize crashes of the test infrastructure in stderr.

    The two testmanagerd kinds are exclusive; a crash wins over an
    unexpected termination.
    """
    if not stderr:
        return []

    warnings = []

    if "testmanagerd" in stderr:
        if any(marker in stderr for marker in TESTMANAGERD_CRASH_MARKERS):
            warnings.append(TESTMANAGERD_CRASHED)
        elif any(marker in stderr for marker in TESTMANAGERD_TERMINATION_MARKERS):
            warnings.append(TESTMANAGERD_TERMINATED)

    if "IDETestRunnerDaemon" in stderr and "crash" in stderr:
        warnings.append(TEST_RUNNER_DAEMON_CRASHED)

    return warnings


def normalize_test_identifiers(value: Union[None, str, List[str]]) -> Optional[List[str]]:
    """
    Coerce a test identifier list as MCP clients actually send it.

    Handles None, empty lists, the strings '[]', 'null' and 'undefined',
    and comma-separated strings.

    Returns:
        Non-empty list of identifiers, or None
    """
    # This works around MCP client issues with optional list parameters
    if value is None:
        return None

    if isinstance(value, str):
        value = value.strip()
        if not value or value in ['[]', 'null', 'undefined']:
            return None
        identifiers = [t.strip() for t in value.strip("[]").split(',')]
        identifiers = [t.strip("'\"") for t in identifiers]
    else:
        identifiers = [str(t).strip() for t in value]

    identifiers = [t for t in identifiers if t]
    return identifiers or None


def check_zero_tests(result: BuildResult, only_testing: Optional[List[str]]) -> Optional[str]:
    """
    Error text when an explicit filter selected nothing, otherwise None.

    Without a filter an empty run may be a legitimately empty suite. A run
    that failed to compile is reported by its errors instead.
    """
    if not only_testing:
        return None
    if result.executed_test_count > 0 or result.errors or result.linker_errors:
        return None
    return f"{NO_TESTS_MATCHED}: {', '.join(only_testing)}"


def extract_missing_test_target(output: Optional[str]) -> Optional[str]:
    """The identifier xcodebuild reports as not being part of the scheme, if any"""
    if not output:
        return None
    match = MISSING_TEST_TARGET_RE.search(output)
    return match.group(1) if match else None


def _scheme_suggestions(identifiers: List[str],
                        project_root: Optional[str],
                        project_path: Optional[str],
                        any_segment: bool = False) -> List[str]:
    """
    One "Did you mean a different scheme?" line per distinct target.

    The target is the first "/" segment of an identifier. With any_segment,
    later segments are tried in order when the first names no scheme's target.
    """
    if not project_root and not project_path:
        return []
    root = project_root or os.path.dirname(project_path)

    suggestions = []
    seen_targets = set()
    for identifier in identifiers:
        candidates = [identifier]
        if any_segment:
            candidates += [segment.strip() for segment in identifier.split("/")[1:] if segment.strip()]
        for candidate in candidates:
            schemes = suggest_schemes(candidate, root, project_path)
            if not schemes:
                continue
            target = target_from_identifier(candidate)
            if target not in seen_targets:
                seen_targets.add(target)
                suggestions.append(format_scheme_suggestion(candidate, schemes))
            break
    return suggestions


def format_test_tool_result(output: str,
                            succeeded: bool,
                            context: str,
                            stderr: Optional[str] = None,
                            only_testing: Union[None, str, List[str]] = None,
                            result_bundle_path: Optional[str] = None,
                            project_root: Optional[str] = None,
                            project_path: Optional[str] = None) -> str:
    """
    Produce the final report for a test run.

    Args:
        output: stdout of the test command
        succeeded: Whether the test command exited successfully
        context: What was tested, e.g. "scheme 'App' on macOS"
        stderr: stderr of the test command, checked for infrastructure crashes
        only_testing: The -only-testing identifiers the run was filtered to
        result_bundle_path: .xcresult bundle of the run; preferred over stdout
        project_root: Directory searched for schemes when suggesting one
        project_path: .xcodeproj/.xcworkspace searched for schemes

    Returns:
        "Tests passed for CONTEXT" followed by the report

    Raises:
        TestRunError: If tests failed, or the filter matched no tests
    """
    result = parse_result_bundle(result_bundle_path) if result_bundle_path else None

    if result is not None:
        report = format_test_result(result)
        # No tests in the bundle usually means the build failed first
        if not succeeded and result.executed_test_count == 0:
            text_result = parse_build_output(output)
            if text_result.errors or text_result.linker_errors or text_result.failed_tests:
                report += "\n\n" + format_test_result(text_result)
    else:
        if result_bundle_path:
            debug_log(f"Falling back to stdout; could not read {result_bundle_path}")
        result = parse_build_output(output)
        report = format_test_result(result)

    warnings = detect_infrastructure_warnings(stderr)
    if warnings:
        report += "\n\n" + "\n".join(warnings)

    if (not succeeded and output and "NSInternalInconsistencyException" in output
            and ("XCTestConfiguration" in output or "targetApplicationBundleID" in output)):
        report += "\n\n" + UI_TEST_HOST_HINT

    identifiers = normalize_test_identifiers(only_testing)
    suggest_for: List[str] = []
    any_segment = False

    zero_tests_error = check_zero_tests(result, identifiers)
    if zero_tests_error:
        succeeded = False
        report = f"{zero_tests_error}\n\n{report}"
        suggest_for = identifiers
        any_segment = True
    elif not succeeded:
        missing = extract_missing_test_target(output)
        if missing:
            report += f"\n\n\"{missing}\" isn't a member of the specified test plan or scheme."
            suggest_for = [missing]

    for suggestion in _scheme_suggestions(suggest_for, project_root, project_path, any_segment):
        report += "\n\n" + suggestion

    if succeeded and result.succeeded:
        header = f"Tests passed for {context}" if context else "Tests passed"
        return f"{header}\n\n{report}"

    raise TestRunError(f"Tests failed:\n{report}", details=report, result=result)


def format_build_tool_result(output: str,
                             succeeded: bool,
                             context: str,
                             project_root: Optional[str] = None,
                             include_warnings: Optional[bool] = None) -> str:
    """
    Produce the final report for a build.

    Raises:
        BuildFailedError: If the build failed or its output contains errors
    """
    result = parse_build_output(output)
    report = format_build_result(result, project_root=project_root, include_warnings=include_warnings)

    if succeeded and result.succeeded:
        header = f"Build succeeded for {context}" if context else "Build succeeded"
        return f"{header}\n\n{report}"

    raise BuildFailedError(f"Build failed:\n{report}", details=report, result=result)
