#!/usr/bin/env python3
"""External command execution"""

import subprocess
from dataclasses import dataclass
from typing import List, Optional

from xcode_diag_mcp_server import config
from xcode_diag_mcp_server.utils.log import debug_log


@dataclass(frozen=True)
class ProcessResult:
    returncode: int
    stdout: str
    stderr: str

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0


def run_command(args: List[str], timeout: Optional[float] = None) -> Optional[ProcessResult]:
    """
    Run a command and capture its output.

    Args:
        args: Program and arguments
        timeout: Seconds before giving up; defaults to config.COMMAND_TIMEOUT_SECONDS

    Returns:
        The captured result, or None if the command could not be run
        (missing executable, OS error or timeout)
    """
    if timeout is None:
        timeout = config.COMMAND_TIMEOUT_SECONDS

    try:
        result = subprocess.run(args, capture_output=True, text=True, timeout=timeout)
    except FileNotFoundError:
        debug_log(f"Command not found: {args[0]}")
        return None
    except subprocess.TimeoutExpired:
        debug_log(f"Timeout after {timeout}s running: {' '.join(args)}")
        return None
    except OSError as e:
        debug_log(f"Could not run {args[0]}: {e}")
        return None

    if result.returncode != 0:
        debug_log(f"{' '.join(args)} exited with status {result.returncode}: {result.stderr.strip()}")

    return ProcessResult(result.returncode, result.stdout or "", result.stderr or "")


def run_xcrun(args: List[str], timeout: Optional[float] = None) -> Optional[ProcessResult]:
    """Run an Xcode developer tool through xcrun"""
    return run_command(["xcrun"] + list(args), timeout=timeout)
