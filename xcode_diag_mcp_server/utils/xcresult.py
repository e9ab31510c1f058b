#!/usr/bin/env python3
"""xcresult bundle utilities - issues, test results, coverage and attachments"""

import os
import json
from typing import Optional, List, Dict, Any, Tuple
from urllib.parse import urlparse, parse_qs, unquote

from xcode_diag_mcp_server import config
from xcode_diag_mcp_server.exceptions import XCodeMCPError
from xcode_diag_mcp_server.models import (
    BuildError,
    BuildResult,
    BuildWarning,
    CodeCoverage,
    FailedTest,
    FileCoverage,
    TestAttachment,
    UNKNOWN_TEST,
    assemble_build_result,
)
from xcode_diag_mcp_server.utils.log import debug_log
from xcode_diag_mcp_server.utils.process import run_xcrun


def run_xcresulttool_json(args: List[str]) -> Optional[Any]:
    """
    Run an xcrun tool that prints JSON and decode its output.

    Returns:
        The decoded document, or None if the tool is unavailable, fails
        or prints something that isn't JSON
    """
    result = run_xcrun(args)
    if result is None or not result.succeeded or not result.stdout.strip():
        return None
    try:
        return json.loads(result.stdout)
    except json.JSONDecodeError as e:
        debug_log(f"Could not decode output of {' '.join(args[:3])}: {e}")
        return None


def parse_result_bundle(path: str) -> Optional[BuildResult]:
    """
    Build a BuildResult from an .xcresult bundle.

    Args:
        path: Path to the .xcresult bundle

    Returns:
        BuildResult, or None if the bundle could not be introspected
    """
    if not path or not os.path.exists(path):
        debug_log(f"Result bundle not found: {path}")
        return None

    root = run_xcresulttool_json(
        ["xcresulttool", "get", "object", "--legacy", "--path", path, "--format", "json"])
    if not isinstance(root, dict):
        return None

    tests_document = None
    if _has_tests_ref(root):
        tests_document = run_xcresulttool_json(
            ["xcresulttool", "get", "test-results", "tests", "--path", path, "--compact"])
        if tests_document is None:
            debug_log("Detailed test results unavailable; using bundle summaries")

    coverage = None
    if _has_coverage_data(root):
        report = run_xcresulttool_json(["xccov", "view", "--report", "--json", path])
        if isinstance(report, dict):
            coverage = parse_coverage_report(report)

    return build_result_from_bundle_json(root, tests_document=tests_document, coverage=coverage)


# ---------------------------------------------------------------------------
# Legacy object graph
#
# Every value in `xcresulttool get object --legacy` output is wrapped:
# scalars as {"_type": ..., "_value": "..."} and arrays as {"_values": [...]}.
# ---------------------------------------------------------------------------

def _value(node: Any, *keys: str) -> Optional[Any]:
    """Follow keys through nested dicts and unwrap a trailing {"_value": ...}"""
    for key in keys:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    if isinstance(node, dict):
        return node.get("_value")
    return node


def _values(node: Any, *keys: str) -> List[Dict[str, Any]]:
    """Follow keys and unwrap a trailing {"_values": [...]}"""
    for key in keys:
        if not isinstance(node, dict):
            return []
        node = node.get(key)
    if isinstance(node, dict):
        node = node.get("_values")
    if not isinstance(node, list):
        return []
    return [item for item in node if isinstance(item, dict)]


def _int_value(node: Any, *keys: str) -> Optional[int]:
    value = _value(node, *keys)
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _sum_metric(sources: List[Dict[str, Any]], name: str) -> Optional[int]:
    """Total a metric across action results; None when no action reports it"""
    counts = [c for c in (_int_value(s, "metrics", name) for s in sources) if c is not None]
    return sum(counts) if counts else None


def _action_results(root: Dict[str, Any]) -> List[Dict[str, Any]]:
    results = []
    for action in _values(root, "actions"):
        action_result = action.get("actionResult")
        if isinstance(action_result, dict):
            results.append(action_result)
    return results


def _has_tests_ref(root: Dict[str, Any]) -> bool:
    return any(isinstance(r.get("testsRef"), dict) for r in _action_results(root))


def _has_coverage_data(root: Dict[str, Any]) -> bool:
    for action_result in _action_results(root):
        if str(_value(action_result, "coverage", "hasCoverageData")).lower() == "true":
            return True
    return False


def parse_document_location(url: Optional[str]) -> Tuple[Optional[str], Optional[int], Optional[int]]:
    """
    Decode a document location URL into (file, line, column).

    Locations look like
    file:///path/File.swift#EndingLineNumber=9&StartingColumnNumber=4&StartingLineNumber=9
    with zero-based numbers.
    """
    if not url or not isinstance(url, str):
        return None, None, None

    parsed = urlparse(url)
    file = unquote(parsed.path) if parsed.scheme == "file" else url.split("#", 1)[0]
    params = parse_qs(parsed.fragment)

    def number(name: str) -> Optional[int]:
        raw = params.get(name, [None])[0]
        if raw is None or not raw.isdigit():
            return None
        return int(raw) + 1

    return file or None, number("StartingLineNumber"), number("StartingColumnNumber")


def _issue_location(issue: Dict[str, Any]) -> Tuple[Optional[str], Optional[int], Optional[int]]:
    return parse_document_location(_value(issue, "documentLocationInCreatingWorkspace", "url"))


def build_result_from_bundle_json(root: Dict[str, Any],
                                  tests_document: Optional[Dict[str, Any]] = None,
                                  coverage: Optional[CodeCoverage] = None) -> BuildResult:
    """
    Map a decoded legacy bundle document onto a BuildResult.

    Args:
        root: Output of `xcresulttool get object --legacy --format json`
        tests_document: Output of `xcresulttool get test-results tests`, if available
        coverage: Coverage parsed from xccov, if available

    Returns:
        BuildResult; unknown keys are ignored
    """
    errors: List[BuildError] = []
    warnings: List[BuildWarning] = []
    failure_messages: Dict[str, List[str]] = {}
    failure_locations: Dict[str, Tuple[Optional[str], Optional[int]]] = {}
    seen = set()

    action_results = _action_results(root)
    # Bundles without actions still carry the top-level aggregate
    sources = action_results or [root]

    for source in sources:
        for issue in _values(source, "issues", "errorSummaries"):
            message = _value(issue, "message") or ""
            file, line, column = _issue_location(issue)
            key = ("error", file, line, message)
            if key not in seen:
                seen.add(key)
                errors.append(BuildError(message, file, line, column))

        for issue in _values(source, "issues", "warningSummaries"):
            message = _value(issue, "message") or ""
            file, line, column = _issue_location(issue)
            key = ("warning", file, line, message)
            if key not in seen:
                seen.add(key)
                warnings.append(BuildWarning(message, file, line, column))

        # One summary per failed assertion; a test may have several
        for issue in _values(source, "issues", "testFailureSummaries"):
            name = _value(issue, "testCaseName") or UNKNOWN_TEST
            message = _value(issue, "message") or "Test failed"
            file, line, _ = _issue_location(issue)
            if name not in failure_messages:
                failure_messages[name] = []
                failure_locations[name] = (file, line)
            if message not in failure_messages[name]:
                failure_messages[name].append(message)

    failures = [FailedTest(name, "; ".join(messages), *failure_locations[name])
                for name, messages in failure_messages.items()]

    tests_count = _sum_metric(sources, "testsCount")
    failed_count = _sum_metric(sources, "testsFailedCount")
    skipped_count = _sum_metric(sources, "testsSkippedCount")

    passed = None
    if tests_count is not None:
        passed = max(tests_count - (failed_count or 0) - (skipped_count or 0), 0)

    test_time = None
    test_output = None

    if isinstance(tests_document, dict) and tests_document.get("testNodes"):
        details = parse_test_nodes(tests_document)
        # The test tree has complete failure messages; summaries may be truncated
        if details["passed_count"] or details["failed_count"]:
            failures = details["failures"]
            failed_count = details["failed_count"]
            passed = details["passed_count"]
        if details["duration"] is not None:
            test_time = f"{details['duration']:.3f}s"
        test_output = details["test_output"]

    return assemble_build_result(
        errors=errors,
        warnings=warnings,
        failed_tests=failures,
        passed_tests=passed,
        reported_failures=failed_count,
        test_time=test_time,
        coverage=coverage,
        test_output=test_output,
    )


# ---------------------------------------------------------------------------
# Test results tree (`xcresulttool get test-results tests`)
# ---------------------------------------------------------------------------

def _children(node: Dict[str, Any]) -> List[Dict[str, Any]]:
    children = node.get("children")
    if not isinstance(children, list):
        return []
    return [child for child in children if isinstance(child, dict)]


def _failure_from_test_case(node: Dict[str, Any]) -> FailedTest:
    name = node.get("name") if isinstance(node.get("name"), str) else UNKNOWN_TEST
    duration = node.get("durationInSeconds")
    duration = float(duration) if isinstance(duration, (int, float)) else None

    messages = []
    file = None
    line = None

    stack = list(reversed(_children(node)))
    while stack:
        child = stack.pop()
        node_type = child.get("nodeType")
        child_name = child.get("name")
        if node_type == "Failure Message" and isinstance(child_name, str) and child_name:
            messages.append(child_name)
        elif node_type == "Source Code Reference" and isinstance(child_name, str):
            # "FooTests.swift:42"
            ref_file, _, ref_line = child_name.partition(":")
            file = ref_file
            line = int(ref_line) if ref_line.isdigit() else None
        stack.extend(reversed(_children(child)))

    message = "; ".join(messages) if messages else "Test failed"
    return FailedTest(name, message, file, line, duration)


def parse_test_nodes(document: Dict[str, Any]) -> Dict[str, Any]:
    """
    Walk the test-results tree.

    Returns:
        Dict with failures (List[FailedTest]), passed_count, failed_count,
        duration (sum over top-level nodes, or None) and test_output
        (text of attachments whose name mentions output, or None)
    """
    nodes = document.get("testNodes")
    if not isinstance(nodes, list):
        nodes = []
    nodes = [node for node in nodes if isinstance(node, dict)]

    duration = None
    for node in nodes:
        seconds = node.get("durationInSeconds")
        if isinstance(seconds, (int, float)):
            duration = (duration or 0.0) + seconds

    failures = []
    passed_count = 0
    failed_count = 0
    outputs = []

    stack = list(reversed(nodes))
    while stack:
        node = stack.pop()
        node_type = node.get("nodeType")

        if node_type == "Test Case":
            if node.get("result") == "Passed":
                passed_count += 1
            elif node.get("result") == "Failed":
                failed_count += 1
                failures.append(_failure_from_test_case(node))
        elif node_type == "Attachment":
            name = node.get("name")
            details = node.get("details")
            if isinstance(name, str) and "output" in name.lower() and isinstance(details, str) and details:
                outputs.append(details)

        stack.extend(reversed(_children(node)))

    return {
        "failures": failures,
        "passed_count": passed_count,
        "failed_count": failed_count,
        "duration": duration,
        "test_output": "\n".join(outputs) if outputs else None,
    }


# ---------------------------------------------------------------------------
# Coverage (`xccov view --report --json`)
# ---------------------------------------------------------------------------

def parse_coverage_report(document: Dict[str, Any]) -> Optional[CodeCoverage]:
    """
    Convert an xccov JSON report into CodeCoverage.

    Test bundles (.xctest targets) are skipped. Per-file fractions are
    converted to percentages; the overall figure is covered/executable lines.

    Returns:
        CodeCoverage, or None if the report lists no files
    """
    targets = document.get("targets")
    if not isinstance(targets, list):
        return None

    files = []
    total_covered = 0
    total_executable = 0

    for target in targets:
        if not isinstance(target, dict):
            continue
        name = target.get("name")
        if isinstance(name, str) and name.endswith(".xctest"):
            continue

        for entry in target.get("files") or []:
            if not isinstance(entry, dict):
                continue
            path = entry.get("path")
            fraction = entry.get("lineCoverage")
            if not isinstance(path, str) or not isinstance(fraction, (int, float)):
                continue

            covered = entry.get("coveredLines") if isinstance(entry.get("coveredLines"), int) else 0
            executable = entry.get("executableLines") if isinstance(entry.get("executableLines"), int) else 0
            percent = float(fraction) if fraction > 1.0 else float(fraction) * 100.0

            files.append(FileCoverage(path, percent, covered, executable))
            total_covered += covered
            total_executable += executable

    if not files:
        return None

    overall = (total_covered / total_executable) * 100.0 if total_executable > 0 else 0.0
    return CodeCoverage(overall, tuple(files))


# ---------------------------------------------------------------------------
# Locating bundles
# ---------------------------------------------------------------------------

def find_xcresult_bundle(project_path: str) -> Optional[str]:
    """
    Find the most recent .xcresult bundle for the project.

    Args:
        project_path: Path to the .xcodeproj or .xcworkspace

    Returns:
        Path to the most recent xcresult bundle or None if not found
    """
    # Normalize and get project name
    normalized_path = os.path.realpath(project_path)
    project_name = os.path.basename(normalized_path).replace('.xcworkspace', '').replace('.xcodeproj', '')

    derived_data_base = config.DERIVED_DATA_DIR
    candidates = []

    # DerivedData directories typically have format: ProjectName-randomhash
    try:
        for derived_dir in os.listdir(derived_data_base):
            if not derived_dir.startswith(project_name + "-"):
                continue
            logs_dir = os.path.join(derived_data_base, derived_dir, "Logs", "Test")
            if not os.path.isdir(logs_dir):
                continue
            for name in os.listdir(logs_dir):
                if name.endswith('.xcresult'):
                    full_path = os.path.join(logs_dir, name)
                    candidates.append((os.path.getmtime(full_path), full_path))
    except OSError as e:
        debug_log(f"Error searching for xcresult: {e}")
        return None

    if not candidates:
        return None

    candidates.sort(reverse=True)
    most_recent = candidates[0][1]
    debug_log(f"Found xcresult bundle at {most_recent}")
    return most_recent


# ---------------------------------------------------------------------------
# Attachments
# ---------------------------------------------------------------------------

def flatten_attachment_manifest(manifest: Any) -> List[TestAttachment]:
    """
    Flatten manifest.json written by `xcresulttool export attachments`.

    The manifest is a list of {"testIdentifier": ..., "attachments": ...}
    where "attachments" is a list of objects or a single object.
    """
    if not isinstance(manifest, list):
        return []

    attachments = []
    for entry in manifest:
        if not isinstance(entry, dict):
            continue
        test_identifier = entry.get("testIdentifier")
        if not isinstance(test_identifier, str):
            test_identifier = None

        raw = entry.get("attachments")
        if isinstance(raw, dict):
            raw = [raw]
        if not isinstance(raw, list):
            continue

        for item in raw:
            if not isinstance(item, dict):
                continue
            exported = item.get("exportedFileName")
            exported = exported if isinstance(exported, str) else "unknown"
            display = item.get("suggestedHumanReadableName")
            display = display if isinstance(display, str) else exported
            timestamp = item.get("timestamp")
            attachments.append(TestAttachment(
                exported_file_name=exported,
                display_name=display,
                test_identifier=test_identifier,
                is_associated_with_failure=item.get("isAssociatedWithFailure") is True,
                timestamp=float(timestamp) if isinstance(timestamp, (int, float)) else None,
            ))

    return attachments


def export_test_attachments(bundle_path: str,
                            output_dir: str,
                            test_id: Optional[str] = None,
                            only_failures: bool = False) -> List[TestAttachment]:
    """
    Export attachments from a result bundle and read their manifest.

    Args:
        bundle_path: Path to the .xcresult bundle
        output_dir: Existing directory to export into
        test_id: Only export attachments of this test (e.g. 'MyTests/testFoo()')
        only_failures: Only export attachments associated with failures

    Returns:
        Attachments listed in the manifest; empty if there is none

    Raises:
        XCodeMCPError: If xcresulttool fails
    """
    args = ["xcresulttool", "export", "attachments", "--path", bundle_path, "--output-path", output_dir]
    if test_id:
        args.extend(["--test-id", test_id])
    if only_failures:
        args.append("--only-failures")

    result = run_xcrun(args)
    if result is None:
        raise XCodeMCPError("xcresulttool export failed: could not run xcrun")
    if not result.succeeded:
        stderr = result.stderr.strip()
        raise XCodeMCPError(f"xcresulttool export failed: {stderr or result.stdout.strip()}")

    manifest_path = os.path.join(output_dir, "manifest.json")
    try:
        with open(manifest_path, "r", encoding="utf-8") as f:
            manifest = json.load(f)
    except (OSError, ValueError) as e:
        debug_log(f"No readable attachment manifest at {manifest_path}: {e}")
        return []

    return flatten_attachment_manifest(manifest)


def format_attachments(attachments: List[TestAttachment], export_dir: Optional[str] = None) -> str:
    """Render attachments; export_dir is None when the files were only exported temporarily"""
    lines = [f"Found {len(attachments)} attachment(s)"]
    if export_dir:
        lines.append(f"Exported to: {export_dir}")
    lines.append("")

    for index, attachment in enumerate(attachments, start=1):
        lines.append(f"[{index}] {attachment.display_name}")
        lines.append(f"    File: {attachment.exported_file_name}")
        if attachment.test_identifier:
            lines.append(f"    Test: {attachment.test_identifier}")
        if attachment.timestamp is not None:
            lines.append(f"    Timestamp: {attachment.timestamp}")
        if attachment.is_associated_with_failure:
            lines.append("    Associated with failure")
        if export_dir:
            lines.append(f"    Path: {os.path.join(export_dir, attachment.exported_file_name)}")
        lines.append("")

    return "\n".join(lines)
