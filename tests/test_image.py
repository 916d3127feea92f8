"""
Tests for rollgate.image module.

Tests image reference parsing including:
- Docker Hub defaults (registry, library/ prefix, latest tag)
- Private registries with ports
- Digests
- Base image names used for version tracking
- Malformed references
"""

from __future__ import annotations

import pytest

from rollgate.exceptions import ImageReferenceError
from rollgate.image import base_name, parse_reference


class TestParseReference:
    """Tests for parse_reference."""

    def test_official_image_defaults(self):
        """Test that a bare name gets registry, library/ and latest."""
        ref = parse_reference("nginx")

        assert ref.registry == "index.docker.io"
        assert ref.path == "library/nginx"
        assert ref.tag == "latest"
        assert ref.short_name == "nginx"
        assert ref.remote == "index.docker.io/library/nginx:latest"

    def test_user_image_with_tag(self):
        """Test a Docker Hub user image with a semver tag."""
        ref = parse_reference("karolisr/webhook-demo:1.2.3")

        assert ref.registry == "index.docker.io"
        assert ref.path == "karolisr/webhook-demo"
        assert ref.tag == "1.2.3"
        assert ref.name == "karolisr/webhook-demo:1.2.3"

    def test_legacy_docker_io_is_normalized(self):
        """Test that docker.io maps to index.docker.io."""
        ref = parse_reference("docker.io/redis:7")

        assert ref.registry == "index.docker.io"
        assert ref.path == "library/redis"
        assert ref.tag == "7"

    def test_private_registry_with_port(self):
        """Test that a registry port is not mistaken for a tag."""
        ref = parse_reference("localhost:5000/team/app")

        assert ref.registry == "localhost:5000"
        assert ref.path == "team/app"
        assert ref.tag == "latest"

    def test_private_registry_with_port_and_tag(self):
        """Test registry port and tag together."""
        ref = parse_reference("registry.example.com:8443/team/app:v2.0.0-rc.1")

        assert ref.registry == "registry.example.com:8443"
        assert ref.tag == "v2.0.0-rc.1"

    def test_digest_without_tag(self):
        """Test that a digest-only reference has no tag."""
        digest = "sha256:" + "a" * 64
        ref = parse_reference(f"quay.io/org/app@{digest}")

        assert ref.digest == digest
        assert ref.tag == ""
        assert ref.remote == f"quay.io/org/app@{digest}"

    def test_scheme_is_stripped(self):
        """Test that an explicit http:// scheme is remembered and removed."""
        ref = parse_reference("http://registry.local:80/app:1.0")

        assert ref.scheme == "http"
        assert ref.registry == "registry.local:80"
        assert ref.tag == "1.0"

    def test_with_tag_returns_new_reference(self):
        """Test with_tag keeps the repository and swaps the tag."""
        ref = parse_reference("karolisr/webhook-demo:1.2.3")
        bumped = ref.with_tag("1.3.0")

        assert bumped.tag == "1.3.0"
        assert bumped.base_name == ref.base_name
        assert ref.tag == "1.2.3"

    @pytest.mark.parametrize(
        "value",
        ["", "   ", "Upper/Case:1.0", "app:bad tag", "app@sha256:xyz", ":1.0"],
    )
    def test_malformed_references_raise(self, value):
        """Test that malformed references raise ImageReferenceError."""
        with pytest.raises(ImageReferenceError):
            parse_reference(value)


class TestBaseName:
    """Tests for base image names."""

    def test_tag_is_stripped(self):
        """Test that tags do not affect the base name."""
        assert base_name("app:1.0.0") == base_name("app:2.0.0-dev")

    def test_base_name_includes_registry(self):
        """Test that the same path on different registries differs."""
        assert base_name("quay.io/org/app:1") != base_name("org/app:1")

    def test_base_name_value(self):
        """Test the exact base name of a Docker Hub image."""
        assert base_name("karolisr/webhook-demo:1.2.3") == (
            "index.docker.io/karolisr/webhook-demo"
        )
