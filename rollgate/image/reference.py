# Copyright 2025 Roger Cibrian
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Container image reference parsing for rollgate.

This module is string-only: it does NOT contact registries. It splits a
reference such as ``registry.example.com:5000/team/app:1.2.3`` into its
registry, repository path, tag and digest, applying the same defaults the
Docker CLI applies:

- No registry component means Docker Hub (``index.docker.io``).
- Single-component Docker Hub names live under ``library/``.
- No tag and no digest means the ``latest`` tag.

The *base name* (registry plus repository path, tag stripped) is what the
version tracker uses to correlate observations of the same image across tags.

Example:
    Parse and inspect a reference:

        from rollgate.image import parse_reference

        ref = parse_reference("karolisr/webhook-demo:1.2.3")
        ref.registry      # "index.docker.io"
        ref.short_name    # "karolisr/webhook-demo"
        ref.tag           # "1.2.3"
        ref.base_name     # "index.docker.io/karolisr/webhook-demo"

"""

from __future__ import annotations

from dataclasses import dataclass
import re

from rollgate.exceptions import ImageReferenceError

DEFAULT_REGISTRY = "index.docker.io"
DEFAULT_TAG = "latest"
DEFAULT_SCHEME = "https"

_LEGACY_REGISTRIES = {"docker.io", "registry-1.docker.io", "index.docker.io"}

_COMPONENT_RE = re.compile(r"^[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*$")
_DOMAIN_RE = re.compile(
    r"^(?:[a-zA-Z0-9](?:[a-zA-Z0-9-]*[a-zA-Z0-9])?)"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]*[a-zA-Z0-9])?)*"
    r"(?::[0-9]+)?$"
)
_TAG_RE = re.compile(r"^[\w][\w.-]{0,127}$")
_DIGEST_RE = re.compile(
    r"^[A-Za-z][A-Za-z0-9]*(?:[-_+.][A-Za-z][A-Za-z0-9]*)*:[0-9a-fA-F]{32,}$"
)


@dataclass(frozen=True)
class Reference:
    """A parsed image reference.

    Attributes:
        registry: Registry host (and port), e.g. "index.docker.io".
        path: Repository path inside the registry, e.g. "library/nginx".
        tag: Tag, or "" when the reference is pinned by digest only.
        digest: Digest such as "sha256:...", or "".
        scheme: Registry scheme, "https" unless the input said "http://".

    """

    registry: str
    path: str
    tag: str = DEFAULT_TAG
    digest: str = ""
    scheme: str = DEFAULT_SCHEME

    @property
    def short_name(self) -> str:
        """Repository path as users usually type it (no "library/" prefix)."""
        if self.registry == DEFAULT_REGISTRY and self.path.startswith("library/"):
            return self.path[len("library/") :]
        return self.path

    @property
    def repository(self) -> str:
        """Registry plus repository path, e.g. "index.docker.io/library/nginx"."""
        return f"{self.registry}/{self.path}"

    @property
    def base_name(self) -> str:
        """Reference with its tag and digest stripped."""
        return self.repository

    @property
    def name(self) -> str:
        """Short name with tag, e.g. "nginx:1.25"."""
        return self.short_name + self._suffix()

    @property
    def remote(self) -> str:
        """Full remote identifier, e.g. "index.docker.io/library/nginx:1.25"."""
        return self.repository + self._suffix()

    def with_tag(self, tag: str) -> Reference:
        """Return a copy of this reference pointing at another tag."""
        return Reference(
            registry=self.registry,
            path=self.path,
            tag=tag,
            digest="",
            scheme=self.scheme,
        )

    def _suffix(self) -> str:
        if self.digest:
            return f"@{self.digest}"
        return f":{self.tag}" if self.tag else ""

    def __str__(self) -> str:
        return self.remote


def _strip_scheme(value: str) -> tuple[str, str]:
    """Drop a leading http:// or https:// and remember which one it was."""
    for scheme in ("http", "https"):
        prefix = f"{scheme}://"
        if value.startswith(prefix):
            return value[len(prefix) :], scheme
    return value, DEFAULT_SCHEME


def _split_domain(name: str) -> tuple[str, str]:
    """Split "host/path" into (registry, path), applying Docker Hub defaults."""
    first, sep, rest = name.partition("/")
    looks_like_domain = "." in first or ":" in first or first == "localhost"

    if not sep or not looks_like_domain:
        registry, path = DEFAULT_REGISTRY, name
    else:
        registry, path = first, rest

    if registry in _LEGACY_REGISTRIES:
        registry = DEFAULT_REGISTRY
        if "/" not in path:
            path = f"library/{path}"
    return registry, path


def parse_reference(value: str) -> Reference:
    """Parse an image reference string.

    Args:
        value: Reference such as "nginx", "quay.io/org/app:v1.2.0",
            "localhost:5000/app@sha256:<hex>" or "http://registry:80/app".

    Returns:
        The parsed Reference. References without tag and digest get the
        "latest" tag.

    Raises:
        ImageReferenceError: If the reference is empty or any component is
            malformed.

    Example:
        Handle an invalid reference:
            ```python
            try:
                ref = parse_reference("Upper/Case")
            except ImageReferenceError as err:
                print(err)
            ```

    """
    raw = (value or "").strip()
    if not raw:
        raise ImageReferenceError("image reference is empty")

    cleaned, scheme = _strip_scheme(raw)

    digest = ""
    if "@" in cleaned:
        cleaned, digest = cleaned.split("@", 1)
        if not _DIGEST_RE.match(digest):
            raise ImageReferenceError(f"invalid digest {digest!r} in {value!r}")

    tag = ""
    slash = cleaned.rfind("/")
    colon = cleaned.rfind(":")
    if colon > slash:
        cleaned, tag = cleaned[:colon], cleaned[colon + 1 :]
        if not _TAG_RE.match(tag):
            raise ImageReferenceError(f"invalid tag {tag!r} in {value!r}")

    if not cleaned:
        raise ImageReferenceError(f"missing repository name in {value!r}")

    registry, path = _split_domain(cleaned)

    if not _DOMAIN_RE.match(registry):
        raise ImageReferenceError(f"invalid registry {registry!r} in {value!r}")
    for component in path.split("/"):
        if not _COMPONENT_RE.match(component):
            raise ImageReferenceError(
                f"invalid repository component {component!r} in {value!r}"
            )

    if not tag and not digest:
        tag = DEFAULT_TAG

    return Reference(
        registry=registry, path=path, tag=tag, digest=digest, scheme=scheme
    )


def base_name(value: str) -> str:
    """Return the base image name (tag stripped) for a reference string."""
    return parse_reference(value).base_name
