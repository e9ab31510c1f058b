#!/usr/bin/env python3
"""Classify LLDB console transcripts"""

import re
from typing import Optional

CRASH_SIGNALS = ("SIGABRT", "SIGSEGV", "SIGBUS", "SIGILL", "SIGFPE", "SIGTRAP", "SIGSYS", "SIGKILL")

# EXC_BREAKPOINT is how Swift runtime traps (force unwrap of nil, overflow) stop
CRASH_EXCEPTIONS = ("EXC_CRASH", "EXC_BAD_ACCESS", "EXC_BAD_INSTRUCTION",
                    "EXC_ARITHMETIC", "EXC_GUARD", "EXC_BREAKPOINT")

# "stop reason = signal SIGSEGV"
SIGNAL_STOP_RE = re.compile(r"stop reason = signal (SIG[A-Z]+)")
# "stop reason = EXC_BAD_ACCESS (code=1, address=0x0)"
EXCEPTION_STOP_RE = re.compile(r"stop reason = (EXC_[A-Z_]+)")
# "Process 12345 exited with status = 1 (0x00000001)"
EXIT_STATUS_RE = re.compile(r"Process \d+ exited with status = (-?\d+)")
# "Process 12345 exited with signal = 11"
EXIT_SIGNAL_RE = re.compile(r"exited with signal = (\w+)")


def crash_stop_reason(text: Optional[str]) -> Optional[str]:
    """
    Name the first crash indication in a transcript.

    Returns:
        e.g. "signal SIGSEGV", "EXC_BAD_ACCESS", "exit status 1",
        "exit signal 11"; None if the debuggee did not crash
    """
    if not text:
        return None

    for match in SIGNAL_STOP_RE.finditer(text):
        if match.group(1) in CRASH_SIGNALS:
            return f"signal {match.group(1)}"

    for match in EXCEPTION_STOP_RE.finditer(text):
        if match.group(1) in CRASH_EXCEPTIONS:
            return match.group(1)

    for match in EXIT_STATUS_RE.finditer(text):
        if int(match.group(1)) != 0:
            return f"exit status {match.group(1)}"

    match = EXIT_SIGNAL_RE.search(text)
    if match:
        return f"exit signal {match.group(1)}"

    return None


def output_indicates_crash(text: Optional[str]) -> bool:
    """True if the transcript shows a crash stop or an abnormal process exit"""
    return crash_stop_reason(text) is not None
