#!/usr/bin/env python3
"""extract_previews tool - List the #Preview blocks in a Swift source file"""

from xcode_diag_mcp_server.server import mcp
from xcode_diag_mcp_server.exceptions import XCodeMCPError
from xcode_diag_mcp_server.security import validate_path
from xcode_diag_mcp_server.utils.previews import extract_preview_blocks


@mcp.tool()
def extract_previews(source_path: str) -> str:
    """
    List the #Preview blocks of a SwiftUI source file.

    Args:
        source_path: Path to a .swift file

    Returns:
        Each preview's name (if any) and body, in source order
    """
    source_path = validate_path(source_path, "source_path", (".swift",))

    try:
        with open(source_path, "r", encoding="utf-8") as f:
            source = f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise XCodeMCPError(f"Cannot read {source_path}: {e}")

    previews = extract_preview_blocks(source)
    if not previews:
        return f"No #Preview blocks found in {source_path}"

    output = [f"Found {len(previews)} preview{'' if len(previews) == 1 else 's'} in {source_path}"]
    for index, preview in enumerate(previews, start=1):
        output.append("")
        output.append(f"[{index}] {preview.name if preview.name is not None else '(unnamed)'}")
        output.append(preview.body)
    return "\n".join(output)
