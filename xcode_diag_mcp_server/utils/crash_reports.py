#!/usr/bin/env python3
"""macOS .ips crash report parsing and search

An .ips file is a one-line JSON header followed by the JSON crash body
(exception, termination reasons, thread backtraces, loaded images).
"""

import os
import json
import time
from dataclasses import replace
from typing import Optional, List, Dict, Any

from xcode_diag_mcp_server import config
from xcode_diag_mcp_server.models import CrashReport, CrashSummary
from xcode_diag_mcp_server.utils.log import debug_log


def _string(mapping: Optional[Dict[str, Any]], key: str) -> Optional[str]:
    if not isinstance(mapping, dict):
        return None
    value = mapping.get(key)
    return value if isinstance(value, str) else None


def _strings(mapping: Optional[Dict[str, Any]], key: str) -> tuple:
    if not isinstance(mapping, dict):
        return ()
    value = mapping.get(key)
    if not isinstance(value, list):
        return ()
    return tuple(item for item in value if isinstance(item, str))


def _dict(mapping: Dict[str, Any], key: str) -> Optional[Dict[str, Any]]:
    value = mapping.get(key)
    return value if isinstance(value, dict) else None


def parse_crash_report_json(doc: Dict[str, Any]) -> CrashSummary:
    """
    Project a decoded crash body onto a CrashSummary.

    Every key is optional; missing keys and values of the wrong type
    are treated as absent.
    """
    if not isinstance(doc, dict):
        return CrashSummary()

    exception = _dict(doc, "exception")
    termination = _dict(doc, "termination")

    # Only a non-zero number (or true) sets the flag; strings such as "0" do not
    fatal_dyld = doc.get("fatalDyldError")

    return CrashSummary(
        process_name=_string(doc, "procName"),
        bundle_id=_string(_dict(doc, "bundleInfo"), "CFBundleIdentifier"),
        capture_time=_string(doc, "captureTime"),
        exception_type=_string(exception, "type"),
        signal=_string(exception, "signal"),
        termination_namespace=_string(termination, "namespace"),
        termination_indicator=_string(termination, "indicator"),
        termination_reasons=_strings(termination, "reasons"),
        termination_details=_strings(termination, "details"),
        is_fatal_dyld_error=isinstance(fatal_dyld, (int, float)) and fatal_dyld != 0,
    )


def parse_crash_report_file(path: str) -> Optional[CrashSummary]:
    """
    Parse an .ips file.

    Returns:
        CrashSummary, or None if the file can't be read or decoded
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            content = f.read()
    except (OSError, UnicodeDecodeError) as e:
        debug_log(f"Could not read crash report {path}: {e}")
        return None

    header_text, _, body_text = content.partition("\n")

    try:
        header = json.loads(header_text)
        body = json.loads(body_text) if body_text.strip() else None
    except ValueError:
        header = body = None

    if body is None:
        # A single JSON document rather than header + body
        try:
            body = json.loads(content)
        except ValueError as e:
            debug_log(f"Could not decode crash report {path}: {e}")
            return None
        header = None

    if not isinstance(body, dict):
        return None

    summary = parse_crash_report_json(body)

    # The header repeats the process name and bundle ID
    if isinstance(header, dict):
        fill = {}
        if summary.process_name is None and _string(header, "name"):
            fill["process_name"] = _string(header, "name")
        if summary.bundle_id is None and _string(header, "bundleID"):
            fill["bundle_id"] = _string(header, "bundleID")
        if fill:
            summary = replace(summary, **fill)

    return summary


def search_crash_reports(process_name: Optional[str] = None,
                         minutes: int = 5,
                         bundle_id: Optional[str] = None,
                         reports_dir: Optional[str] = None) -> List[CrashReport]:
    """
    Find recent crash reports.

    Args:
        process_name: Case-insensitive substring matched against the file
            name or the process name in the report
        minutes: Only include reports modified in the last N minutes
        bundle_id: Exact bundle identifier to match
        reports_dir: Directory to scan; defaults to config.CRASH_REPORTS_DIR

    Returns:
        Matching reports, most recent first; [] if the directory can't be read
    """
    reports_dir = reports_dir or config.CRASH_REPORTS_DIR

    try:
        entries = os.listdir(reports_dir)
    except OSError as e:
        debug_log(f"Cannot list crash reports in {reports_dir}: {e}")
        return []

    cutoff = time.time() - minutes * 60
    needle = process_name.lower() if process_name else None
    results = []

    for entry in entries:
        if not entry.endswith(".ips"):
            continue

        full_path = os.path.join(reports_dir, entry)
        try:
            modified = os.path.getmtime(full_path)
        except OSError:
            continue
        if modified <= cutoff:
            continue

        summary = parse_crash_report_file(full_path)
        if summary is None:
            continue

        if needle is not None:
            in_name = needle in entry.lower()
            in_process = summary.process_name is not None and needle in summary.process_name.lower()
            if not (in_name or in_process):
                continue

        if bundle_id is not None and summary.bundle_id != bundle_id:
            continue

        results.append(CrashReport(full_path, summary, modified))

    results.sort(key=lambda report: report.modified, reverse=True)
    return results


def format_crash_reports(reports: List[CrashReport],
                         minutes: int,
                         process_name: Optional[str] = None,
                         bundle_id: Optional[str] = None,
                         reports_dir: Optional[str] = None) -> str:
    if not reports:
        message = f"No crash reports found in the last {minutes} minute{'' if minutes == 1 else 's'}"
        if process_name:
            message += f" for process '{process_name}'"
        if bundle_id:
            message += f" with bundle ID '{bundle_id}'"
        message += f".\n\nSearched: {reports_dir or config.CRASH_REPORTS_DIR}"
        return message

    output = f"Found {len(reports)} crash report{'' if len(reports) == 1 else 's'}:\n"
    for index, report in enumerate(reports):
        if index > 0:
            output += "\n" + "─" * 60 + "\n"
        output += f"\nFile: {report.path}\n"
        output += report.summary.formatted()
        output += "\n"
    return output
