"""
Path notation converter.

Mapping records keep every field location as a canonical dotted path
(``customer.address.0.city``). The review surfaces show the same path in
the notation of the side it belongs to:

- XML style: ``/customer/address/0/city``
- JSON style: ``$.customer.address.0.city``

All functions here are total: malformed input degrades to the best
canonical form available, or to an empty string.
"""

import re
from enum import Enum
from typing import Any, List

# a[0] -> a.0
_INDEX_BRACKET = re.compile(r"\[\s*(\d+)\s*\]")
# $['name'] / ["name"] -> .name
_QUOTED_BRACKET = re.compile(r"""\[\s*['"]([^'"\]]*)['"]\s*\]""")
# [*], [@attr='x'], [last()] ... are dropped
_OTHER_BRACKET = re.compile(r"\[[^\]]*\]")
_WHITESPACE = re.compile(r"\s+")
_ILLEGAL_TOKEN_CHARS = re.compile(r"[^A-Za-z0-9_.-]")
_JSON_ROOT = re.compile(r"^\s*\$\.?")
_XML_ROOT = re.compile(r"^\s*/+")


class PathType(str, Enum):
    """External path notation."""

    JSON_PATH = "JSON_PATH"
    XML_PATH = "XML_PATH"

    @classmethod
    def from_value(cls, value: Any) -> "PathType":
        """Resolve a notation name; anything but XML_PATH is JSON_PATH."""
        if isinstance(value, PathType):
            return value
        if value is not None and str(value).strip().upper() == cls.XML_PATH.value:
            return cls.XML_PATH
        return cls.JSON_PATH


def _segments(raw: Any) -> List[str]:
    if raw is None:
        return []
    value = raw if isinstance(raw, str) else str(raw)

    value = _INDEX_BRACKET.sub(r".\1", value)
    value = _QUOTED_BRACKET.sub(r".\1", value)
    value = _OTHER_BRACKET.sub("", value)
    value = value.replace("/", ".")

    parts = (part.strip() for part in value.split("."))
    return [part for part in parts if part]


def to_canonical(raw: Any) -> str:
    """
    Normalize any raw path into canonical dotted form.

    Slashes become dots, runs of separators collapse, numeric array
    indices become their own segment, other bracket predicates are
    dropped and leading/trailing separators are trimmed.

    Args:
        raw: Path in any notation (or None)

    Returns:
        Canonical path, or "" when nothing usable remains
    """
    return ".".join(_segments(raw))


def to_xml_path(canonical: Any) -> str:
    """Render a canonical path as ``/a/b/c`` (``/`` when empty)."""
    segments = _segments(canonical)
    if not segments:
        return "/"
    return "/" + "/".join(segments)


def to_json_path(canonical: Any) -> str:
    """Render a canonical path as ``$.a.b.c`` (``$`` when empty)."""
    cleaned = to_canonical(canonical)
    if not cleaned:
        return "$"
    return "$." + cleaned


def from_xml_path(raw: Any) -> str:
    """Parse an XML-style path; the leading slash is optional."""
    if raw is None:
        return ""
    return to_canonical(_XML_ROOT.sub("", str(raw)))


def from_json_path(raw: Any) -> str:
    """Parse a JSON-style path; the leading ``$`` is optional."""
    if raw is None:
        return ""
    return to_canonical(_JSON_ROOT.sub("", str(raw)))


def format_path(canonical: Any, path_type: PathType) -> str:
    """Render a canonical path in the given notation."""
    if PathType.from_value(path_type) is PathType.XML_PATH:
        return to_xml_path(canonical)
    return to_json_path(canonical)


def parse_path(raw: Any, path_type: PathType) -> str:
    """Parse a path typed in the given notation back to canonical form."""
    if PathType.from_value(path_type) is PathType.XML_PATH:
        return from_xml_path(raw)
    return from_json_path(raw)


def leaf(canonical: Any, default: str = "") -> str:
    """Last segment of a path, or ``default`` when the path is empty."""
    segments = _segments(canonical)
    return segments[-1] if segments else default


def sanitize_token(value: Any) -> str:
    """
    Clean a user-entered path segment.

    Trims, turns internal whitespace runs into ``_`` and strips every
    character outside ``[A-Za-z0-9_.-]``.
    """
    if value is None:
        return ""
    token = _WHITESPACE.sub("_", str(value).strip())
    return _ILLEGAL_TOKEN_CHARS.sub("", token)


def rename_leaf(canonical: Any, new_leaf: Any) -> str:
    """
    Replace the final segment of a path.

    The new token is sanitized first. An empty path becomes the token
    alone; a token that sanitizes to nothing leaves the path unchanged.

    Args:
        canonical: Existing path
        new_leaf: User-entered replacement for the last segment

    Returns:
        Canonical path with the new leaf
    """
    token = sanitize_token(new_leaf)
    segments = _segments(canonical)
    if not segments:
        return to_canonical(token)
    if token:
        segments[-1] = token
    return to_canonical(".".join(segments))
