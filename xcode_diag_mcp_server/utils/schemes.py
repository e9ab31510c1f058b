#!/usr/bin/env python3
"""Find which schemes declare a given test target

Scheme files are re-read on every call; they can change between runs.
"""

import os
import xml.etree.ElementTree as ET
from typing import Optional, List, Dict, Set

from xcode_diag_mcp_server.utils.log import debug_log

# Directories never worth descending into when looking for projects
SKIPPED_DIRECTORIES = {"build", "DerivedData", "Pods", "node_modules"}


def scheme_dirs(project_path: str) -> List[str]:
    """
    Scheme directories (shared first, then per-user) of a project.

    A .xcworkspace also contributes the scheme directories of every
    .xcodeproj next to it.
    """
    dirs = []

    if project_path.endswith(".xcworkspace"):
        dirs.extend(_bundle_scheme_dirs(project_path))
        parent = os.path.dirname(project_path)
        try:
            siblings = sorted(os.listdir(parent))
        except OSError:
            siblings = []
        for name in siblings:
            if name.endswith(".xcodeproj"):
                dirs.extend(_bundle_scheme_dirs(os.path.join(parent, name)))
        return dirs

    return _bundle_scheme_dirs(project_path)


def _bundle_scheme_dirs(bundle_path: str) -> List[str]:
    dirs = []

    shared_dir = os.path.join(bundle_path, "xcshareddata", "xcschemes")
    if os.path.isdir(shared_dir):
        dirs.append(shared_dir)

    userdata_dir = os.path.join(bundle_path, "xcuserdata")
    try:
        user_dirs = sorted(os.listdir(userdata_dir))
    except OSError:
        user_dirs = []
    for user_dir in user_dirs:
        user_scheme_dir = os.path.join(userdata_dir, user_dir, "xcschemes")
        if os.path.isdir(user_scheme_dir):
            dirs.append(user_scheme_dir)

    return dirs


def find_project_bundles(project_root: str) -> List[str]:
    """Every .xcodeproj under project_root, skipping hidden and build directories"""
    bundles = []
    for dirpath, dirnames, _ in os.walk(project_root):
        keep = []
        for name in sorted(dirnames):
            if name.endswith(".xcodeproj"):
                bundles.append(os.path.join(dirpath, name))
            elif not name.startswith(".") and name not in SKIPPED_DIRECTORIES \
                    and not name.endswith((".xcworkspace", ".xcresult", ".app")):
                keep.append(name)
        dirnames[:] = keep
    return bundles


def parse_scheme_test_targets(scheme_path: str) -> Set[str]:
    """
    Read the test targets a scheme declares.

    Returns:
        BlueprintName of every TestAction testable; empty if the file is
        unreadable or malformed
    """
    try:
        root = ET.parse(scheme_path).getroot()
    except (ET.ParseError, OSError) as e:
        debug_log(f"Could not read scheme {scheme_path}: {e}")
        return set()

    targets = set()
    for reference in root.findall("./TestAction/Testables/TestableReference/BuildableReference"):
        name = reference.get("BlueprintName")
        if name:
            targets.add(name)
    return targets


def load_scheme_test_targets(project_root: str, project_path: Optional[str] = None) -> Dict[str, Set[str]]:
    """
    Map scheme name to its declared test targets.

    Args:
        project_root: Directory containing the project(s)
        project_path: Specific .xcodeproj/.xcworkspace; when omitted, every
            .xcodeproj under project_root is considered

    Returns:
        Dict of scheme name -> set of test target names
    """
    if project_path:
        directories = scheme_dirs(project_path)
    else:
        directories = []
        for bundle in find_project_bundles(project_root):
            directories.extend(_bundle_scheme_dirs(bundle))

    schemes: Dict[str, Set[str]] = {}
    for directory in directories:
        try:
            names = sorted(os.listdir(directory))
        except OSError:
            continue
        for filename in names:
            if not filename.endswith(".xcscheme"):
                continue
            scheme_name = filename[:-len(".xcscheme")]
            targets = parse_scheme_test_targets(os.path.join(directory, filename))
            schemes.setdefault(scheme_name, set()).update(targets)

    return schemes


def target_from_identifier(identifier: str) -> str:
    """'Target/Class/method' -> 'Target'"""
    return identifier.split("/", 1)[0].strip()


def suggest_schemes(identifier: str, project_root: str, project_path: Optional[str] = None) -> List[str]:
    """Sorted names of the schemes that declare the identifier's test target"""
    target = target_from_identifier(identifier)
    if not target:
        return []
    schemes = load_scheme_test_targets(project_root, project_path)
    return sorted(name for name, targets in schemes.items() if target in targets)


def format_scheme_suggestion(identifier: str, schemes: List[str]) -> str:
    if not schemes:
        return ""
    quoted = ", ".join(f"'{name}'" for name in schemes)
    return f"Did you mean a different scheme? '{target_from_identifier(identifier)}' is a test target in: {quoted}."
