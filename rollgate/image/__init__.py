"""
Container image reference handling for rollgate.

Modules
-------
reference : module
    Parse image references and derive base image names.

Public API
----------
Reference : dataclass
    Parsed reference with registry, path, tag and digest.
parse_reference : function
    Parse a reference string, applying Docker Hub defaults.
base_name : function
    Strip the tag from a reference string.
"""

from .reference import (
    DEFAULT_REGISTRY,
    DEFAULT_TAG,
    Reference,
    base_name,
    parse_reference,
)

__all__ = [
    "DEFAULT_REGISTRY",
    "DEFAULT_TAG",
    "Reference",
    "base_name",
    "parse_reference",
]
