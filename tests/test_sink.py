"""
Tests for rollgate.triggers module.

Tests resubmission sinks including:
- In-process callbacks
- Webhook request body and authentication header
- HTTP and connection failures
"""

from __future__ import annotations

import requests
import pytest

from rollgate import __version__
from rollgate.exceptions import NetworkError
from rollgate.image import parse_reference
from rollgate.models import Event, Repository
from rollgate.triggers import CallbackSink, WebhookSink, make_session

URL = "https://rollgate.example.com/v1/webhooks/native"


class TestCallbackSink:
    """Tests for CallbackSink."""

    def test_calls_function(self, make_event):
        seen = []
        CallbackSink(seen.append).submit(make_event())

        assert seen[0].repository.name == "karolisr/webhook-demo"


class TestWebhookSink:
    """Tests for WebhookSink."""

    def test_posts_name_and_tag(self, requests_mock, make_event):
        requests_mock.post(URL, status_code=200)

        WebhookSink(URL).submit(make_event())

        assert requests_mock.call_count == 1
        request = requests_mock.last_request
        assert request.json() == {"name": "karolisr/webhook-demo", "tag": "1.3.0"}
        assert "Authorization" not in request.headers
        assert request.headers["User-Agent"] == f"rollgate/{__version__}"

    def test_registry_host_is_kept(self, requests_mock):
        """Test that a non-default registry survives resubmission."""
        requests_mock.post(URL, status_code=200)
        event = Event(repository=Repository(name="team/app", tag="1.2.0", host="quay.io"))

        WebhookSink(URL).submit(event)

        body = requests_mock.last_request.json()
        assert body == {"name": "quay.io/team/app", "tag": "1.2.0"}
        resolved = parse_reference(f"{body['name']}:{body['tag']}")
        assert resolved.base_name == "quay.io/team/app"

    def test_digest_and_token(self, requests_mock, make_event):
        """Test that a digest is sent and the token becomes a bearer header."""
        requests_mock.post(URL, status_code=202)

        WebhookSink(URL, token="s3cret").submit(make_event(digest="sha256:abc"))

        request = requests_mock.last_request
        assert request.json()["digest"] == "sha256:abc"
        assert request.headers["Authorization"] == "Bearer s3cret"

    def test_http_error_raises(self, requests_mock, make_event):
        requests_mock.post(URL, status_code=500)

        with pytest.raises(NetworkError, match="rejected"):
            WebhookSink(URL).submit(make_event())

    def test_connection_error_raises(self, requests_mock, make_event):
        requests_mock.post(URL, exc=requests.exceptions.ConnectionError("refused"))

        with pytest.raises(NetworkError, match="failed"):
            WebhookSink(URL).submit(make_event())


class TestMakeSession:
    """Tests for the shared HTTP session."""

    def test_retries_post(self):
        session = make_session()
        retries = session.get_adapter(URL).max_retries

        assert retries.total == 3
        assert "POST" in retries.allowed_methods
        assert 503 in retries.status_forcelist
