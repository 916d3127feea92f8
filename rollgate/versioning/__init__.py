"""
Tag comparison utilities for rollgate.

This package decides whether an image tag is a semantic version, which
prerelease channel it belongs to, and whether one tag is newer than
another.

Modules
-------
keys : module
    Strict semver parsing plus robust ordering with textual fallback.

Public API
----------
SemVer : dataclass
    Parsed semantic version with SemVer 2.0 precedence.
parse_semver : function
    Parse a tag, returning None for non-semver tags.
channel_of : function
    Prerelease label of a semver tag ("" for releases).
compare_semver : function
    Compare two SemVer values, returning -1, 0, or 1.
compare_any : function
    Compare two arbitrary tags, returning -1, 0, or 1.
is_newer_any : function
    Check if a remote tag is newer than the current tag.
version_key_any : function
    Generate a sortable key for any tag.

Examples
--------
    >>> from rollgate.versioning import compare_any, channel_of
    >>> compare_any("1.0.0-rc.1", "1.0.0-beta.5")
    1
    >>> channel_of("1.5.0-dev")
    'dev'
    >>> channel_of("latest") is None
    True
"""

from .keys import (
    SemVer,
    channel_of,
    compare_any,
    compare_semver,
    is_newer_any,
    parse_semver,
    version_key_any,
)

__all__ = [
    "SemVer",
    "channel_of",
    "compare_any",
    "compare_semver",
    "is_newer_any",
    "parse_semver",
    "version_key_any",
]
