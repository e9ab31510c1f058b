"""Tests for crash report parsing and search"""

import json
import os
import time

import pytest

from xcode_diag_mcp_server import config
from xcode_diag_mcp_server.utils.crash_reports import (
    format_crash_reports,
    parse_crash_report_file,
    parse_crash_report_json,
    search_crash_reports,
)

CRASH_BODY = {
    "procName": "MyApp",
    "bundleInfo": {"CFBundleIdentifier": "com.example.MyApp", "CFBundleShortVersionString": "1.0"},
    "captureTime": "2025-01-15 10:30:00.0000 -0800",
    "exception": {"type": "EXC_CRASH", "signal": "SIGABRT"},
    "termination": {
        "namespace": "DYLD",
        "indicator": "Library missing",
        "reasons": ["Library not loaded: @rpath/Analytics.framework/Analytics"],
        "details": ["(terminated at launch; ignore backtrace)"],
    },
    "fatalDyldError": 1,
}


def write_ips(directory, name, body, header=None, age_seconds=0):
    header = header if header is not None else {"app_name": body.get("procName"), "bug_type": "309"}
    path = directory / name
    path.write_text(json.dumps(header) + "\n" + json.dumps(body, indent=2))
    if age_seconds:
        stamp = time.time() - age_seconds
        os.utime(path, (stamp, stamp))
    return path


class TestParseCrashReportJson:

    def test_full_document(self):
        summary = parse_crash_report_json(CRASH_BODY)
        assert summary.process_name == "MyApp"
        assert summary.bundle_id == "com.example.MyApp"
        assert summary.exception_type == "EXC_CRASH"
        assert summary.signal == "SIGABRT"
        assert summary.termination_reasons == ("Library not loaded: @rpath/Analytics.framework/Analytics",)
        assert summary.is_fatal_dyld_error is True

        text = summary.formatted()
        assert "Termination: DYLD — Library missing" in text
        assert "  Library not loaded: @rpath/Analytics.framework/Analytics" in text
        assert "Fatal dyld error" not in text

    def test_empty_document(self):
        summary = parse_crash_report_json({})
        assert summary.formatted() == ""
        assert summary.is_fatal_dyld_error is False

    def test_wrong_types_are_absent(self):
        summary = parse_crash_report_json({
            "procName": 42,
            "exception": "EXC_BAD_ACCESS",
            "termination": {"reasons": "not a list", "details": ["ok", 7]},
            "fatalDyldError": 0,
        })
        assert summary.process_name is None
        assert summary.exception_type is None
        assert summary.termination_reasons == ()
        assert summary.termination_details == ("ok",)
        assert summary.is_fatal_dyld_error is False

    @pytest.mark.parametrize("value, expected", [
        (1, True),
        (True, True),
        (0, False),
        ("0", False),
        ("1", False),
        (None, False),
    ])
    def test_fatal_dyld_flag_needs_nonzero_number(self, value, expected):
        summary = parse_crash_report_json({"fatalDyldError": value})
        assert summary.is_fatal_dyld_error is expected


class TestParseCrashReportFile:

    def test_header_and_body(self, tmp_path):
        path = write_ips(tmp_path, "MyApp.ips", CRASH_BODY)
        assert parse_crash_report_file(str(path)).process_name == "MyApp"

    def test_header_fills_missing_fields(self, tmp_path):
        body = {"exception": {"type": "EXC_BAD_ACCESS", "signal": "SIGSEGV"}}
        path = write_ips(tmp_path, "x.ips", body, header={"name": "HeaderApp", "bundleID": "com.example.header"})
        summary = parse_crash_report_file(str(path))
        assert summary.process_name == "HeaderApp"
        assert summary.bundle_id == "com.example.header"
        assert summary.signal == "SIGSEGV"

    def test_single_document(self, tmp_path):
        path = tmp_path / "single.ips"
        path.write_text(json.dumps(CRASH_BODY, indent=2))
        assert parse_crash_report_file(str(path)).bundle_id == "com.example.MyApp"

    def test_garbage(self, tmp_path):
        path = tmp_path / "bad.ips"
        path.write_text("this is not json\nneither is this")
        assert parse_crash_report_file(str(path)) is None

    def test_missing_file(self, tmp_path):
        assert parse_crash_report_file(str(tmp_path / "gone.ips")) is None


class TestSearchCrashReports:

    def test_recency_window(self, tmp_path):
        write_ips(tmp_path, "MyApp-2025-01-15-103000.ips", CRASH_BODY, age_seconds=30)
        write_ips(tmp_path, "MyApp-2025-01-15-090000.ips", CRASH_BODY, age_seconds=600)
        reports = search_crash_reports("MyApp", minutes=5, reports_dir=str(tmp_path))
        assert [os.path.basename(r.path) for r in reports] == ["MyApp-2025-01-15-103000.ips"]

    def test_most_recent_first(self, tmp_path):
        write_ips(tmp_path, "MyApp-a.ips", CRASH_BODY, age_seconds=120)
        write_ips(tmp_path, "MyApp-b.ips", CRASH_BODY, age_seconds=10)
        reports = search_crash_reports("myapp", minutes=5, reports_dir=str(tmp_path))
        assert [os.path.basename(r.path) for r in reports] == ["MyApp-b.ips", "MyApp-a.ips"]

    def test_process_name_from_report(self, tmp_path):
        write_ips(tmp_path, "crash-1.ips", CRASH_BODY)
        write_ips(tmp_path, "crash-2.ips", dict(CRASH_BODY, procName="OtherApp"))
        reports = search_crash_reports("myapp", reports_dir=str(tmp_path))
        assert [os.path.basename(r.path) for r in reports] == ["crash-1.ips"]

    def test_bundle_id_is_exact(self, tmp_path):
        write_ips(tmp_path, "MyApp.ips", CRASH_BODY)
        assert search_crash_reports(bundle_id="com.example", reports_dir=str(tmp_path)) == []
        assert len(search_crash_reports(bundle_id="com.example.MyApp", reports_dir=str(tmp_path))) == 1

    def test_ignores_other_files(self, tmp_path):
        (tmp_path / "notes.txt").write_text("MyApp crashed")
        write_ips(tmp_path, "MyApp.ips", CRASH_BODY)
        assert len(search_crash_reports(reports_dir=str(tmp_path))) == 1

    def test_unreadable_directory(self, tmp_path):
        assert search_crash_reports("MyApp", reports_dir=str(tmp_path / "missing")) == []

    def test_defaults_to_configured_directory(self, tmp_path):
        write_ips(tmp_path, "MyApp.ips", CRASH_BODY)
        config.CRASH_REPORTS_DIR = str(tmp_path)
        assert len(search_crash_reports("MyApp")) == 1


class TestFormatCrashReports:

    def test_none_found(self, tmp_path):
        text = format_crash_reports([], 5, process_name="MyApp", reports_dir=str(tmp_path))
        assert text == f"No crash reports found in the last 5 minutes for process 'MyApp'.\n\nSearched: {tmp_path}"

    def test_singular_minute(self, tmp_path):
        text = format_crash_reports([], 1, reports_dir=str(tmp_path))
        assert text.startswith("No crash reports found in the last 1 minute.")

    @pytest.mark.parametrize("count, heading", [(1, "Found 1 crash report:"), (2, "Found 2 crash reports:")])
    def test_reports_listed(self, tmp_path, count, heading):
        for index in range(count):
            write_ips(tmp_path, f"MyApp-{index}.ips", CRASH_BODY, age_seconds=10 + index)
        reports = search_crash_reports("MyApp", reports_dir=str(tmp_path))
        text = format_crash_reports(reports, 5, process_name="MyApp")
        assert text.startswith(heading)
        assert f"File: {tmp_path / 'MyApp-0.ips'}" in text
        assert "Exception: EXC_CRASH" in text
        assert ("─" * 60 in text) == (count > 1)
