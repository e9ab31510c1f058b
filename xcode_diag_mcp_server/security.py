#!/usr/bin/env python3
"""Allowed-folder access control for filesystem paths passed to tools"""

import os
from typing import Optional, List, Set, Tuple

from xcode_diag_mcp_server.exceptions import AccessDeniedError, InvalidParameterError
from xcode_diag_mcp_server.utils.log import debug_log, log_info, log_warning

# Global variables for allowed folders - initialized by CLI
ALLOWED_FOLDERS: Set[str] = set()


def set_allowed_folders(folders: Set[str]):
    """Set the global allowed folders"""
    global ALLOWED_FOLDERS
    ALLOWED_FOLDERS = set(folders)


def get_allowed_folders(command_line_folders: Optional[List[str]] = None) -> Set[str]:
    """
    Get the allowed folders from environment variable and command line.
    Validates that paths are absolute, exist, and are directories.

    Args:
        command_line_folders: List of folders provided via command line

    Returns:
        Set of validated folder paths
    """
    allowed_folders = set()
    folders_to_process = []

    # Get from environment variable
    folder_list_str = os.environ.get("XCODEMCP_ALLOWED_FOLDERS")

    if folder_list_str:
        log_info(f"Using allowed folders from environment: {folder_list_str}")
        folders_to_process.extend(folder_list_str.split(":"))

    # Add command line folders
    if command_line_folders:
        log_info(f"Adding {len(command_line_folders)} folder(s) from command line")
        folders_to_process.extend(command_line_folders)

    # If no folders specified, use $HOME
    if not folders_to_process:
        log_warning("No allowed folders specified via environment or command line.")
        log_info("Set XCODEMCP_ALLOWED_FOLDERS environment variable or use --allowed flag.")
        home = os.environ.get("HOME", "/")
        log_info(f"Using default: $HOME = {home}")
        folders_to_process = [home]

    for folder in folders_to_process:
        folder = folder.rstrip("/")  # Normalize by removing trailing slash

        if not folder:
            log_warning("Skipping empty folder entry")
            continue

        if not os.path.isabs(folder):
            log_warning(f"Skipping non-absolute path: {folder}")
            continue

        if ".." in folder.split("/"):
            log_warning(f"Skipping path with '..' components: {folder}")
            continue

        if not os.path.exists(folder):
            log_warning(f"Skipping non-existent path: {folder}")
            continue

        if not os.path.isdir(folder):
            log_warning(f"Skipping non-directory path: {folder}")
            continue

        allowed_folders.add(folder)
        log_info(f"Added allowed folder: {folder}")

    return allowed_folders


def is_path_allowed(path: str) -> bool:
    """
    Check if a path is allowed based on the allowed folders list.
    Path must be a subfolder or direct match of an allowed folder.
    """
    if not path:
        debug_log("Empty path provided")
        return False

    # If no allowed folders are specified, nothing is allowed
    if not ALLOWED_FOLDERS:
        debug_log("ALLOWED_FOLDERS is empty, denying access")
        return False

    path = os.path.abspath(path).rstrip("/")

    for allowed_folder in ALLOWED_FOLDERS:
        if path == allowed_folder or path.startswith(allowed_folder + "/"):
            return True

    debug_log(f"No allowed folder matches {path}")
    return False


def validate_path(path: str,
                  param_name: str,
                  allowed_suffixes: Tuple[str, ...] = (),
                  must_exist: bool = True) -> str:
    """
    Validate and normalize a filesystem path passed to a tool.

    Args:
        path: The path to validate
        param_name: Parameter name used in error messages
        allowed_suffixes: Accepted path endings; empty accepts any path
        must_exist: Whether the path has to exist already

    Returns:
        Normalized absolute path

    Raises:
        InvalidParameterError: If validation fails
        AccessDeniedError: If path access is denied
    """
    if not path or path.strip() == "":
        raise InvalidParameterError(f"{param_name} cannot be empty")

    path = path.strip().rstrip("/")

    if allowed_suffixes and not path.endswith(allowed_suffixes):
        expected = "' or '".join(allowed_suffixes)
        raise InvalidParameterError(f"{param_name} must end with '{expected}'")

    if not is_path_allowed(path):
        raise AccessDeniedError(
            f"Access to path '{path}' is not allowed. Set XCODEMCP_ALLOWED_FOLDERS environment variable.")

    if must_exist and not os.path.exists(path):
        raise InvalidParameterError(f"{param_name} does not exist: {path}")

    # Normalize the path to resolve symlinks
    return os.path.realpath(path)


def validate_and_normalize_project_path(project_path: str) -> str:
    """Validate an .xcodeproj or .xcworkspace path and resolve symlinks"""
    return validate_path(project_path, "project_path", (".xcodeproj", ".xcworkspace"))
