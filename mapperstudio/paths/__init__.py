"""
Path notations for mapping records.

Canonical dotted paths are the internal form; XML-style and JSON-style
paths are rendered from them for display and parsed back on edit.
"""

from .notation import (
    PathType,
    format_path,
    from_json_path,
    from_xml_path,
    leaf,
    parse_path,
    rename_leaf,
    sanitize_token,
    to_canonical,
    to_json_path,
    to_xml_path,
)

__all__ = [
    "PathType",
    "format_path",
    "from_json_path",
    "from_xml_path",
    "leaf",
    "parse_path",
    "rename_leaf",
    "sanitize_token",
    "to_canonical",
    "to_json_path",
    "to_xml_path",
]
