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

"""Resubmission sinks for approved updates.

When an approval reaches quorum the approval manager hands a copy of the
original trigger event to a sink, which feeds it back into the gate.

- CallbackSink: calls a function in the same process (usually the gate's
  ``submit``).
- WebhookSink: POSTs the event to a native webhook endpoint, for when the
  gate runs in another process.

Example:
    Re-post approved events to a running gate:

        from rollgate.triggers import WebhookSink

        sink = WebhookSink("https://rollgate.internal/v1/webhooks/native",
                           token="...")
        sink.submit(event)

"""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from rollgate import __version__
from rollgate.exceptions import NetworkError
from rollgate.logging import Logger, SilentLogger
from rollgate.models import Event


class ResubmissionSink(Protocol):
    def submit(self, event: Event) -> None: ...


class CallbackSink:
    """Sink that calls a function with each event."""

    def __init__(self, callback: Callable[[Event], object]):
        self._callback = callback

    def submit(self, event: Event) -> None:
        self._callback(event)


def make_session() -> requests.Session:
    """
    Create a requests.Session with retry/backoff defaults for webhook posts.

    - Retries on common transient status codes, including for POST (the
      native webhook is idempotent: the gate re-checks every event).
    - Applies exponential backoff.
    - Sets a User-Agent identifying rollgate.
    """
    s = requests.Session()
    retries = Retry(
        total=3,
        backoff_factor=0.5,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=("POST",),
        raise_on_status=False,
    )
    s.headers.update({"User-Agent": f"rollgate/{__version__}"})
    s.mount("http://", HTTPAdapter(max_retries=retries))
    s.mount("https://", HTTPAdapter(max_retries=retries))
    return s


class WebhookSink:
    """Sink that POSTs events to a native webhook endpoint.

    The request body is ``{"name": ..., "tag": ..., "digest": ...}``. The
    name carries the registry host when the event has one.

    Attributes:
        url: Endpoint URL.
        timeout: Per-request timeout in seconds.

    """

    def __init__(
        self,
        url: str,
        token: str | None = None,
        timeout: int = 30,
        logger: Logger | None = None,
    ):
        self.url = url
        self.timeout = timeout
        self._token = token
        self._logger = logger or SilentLogger()

    def submit(self, event: Event) -> None:
        """POST the event.

        Raises:
            NetworkError: On connection failures, timeouts or non-2xx
                responses.

        """
        repository = event.repository
        name = f"{repository.host}/{repository.name}" if repository.host else repository.name
        payload = {"name": name, "tag": repository.tag}
        if repository.digest:
            payload["digest"] = repository.digest

        headers = {}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"

        self._logger.verbose("WEBHOOK", f"POST {self.url} ({event.repository})")
        try:
            with make_session() as session:
                resp = session.post(
                    self.url, json=payload, headers=headers, timeout=self.timeout
                )
                resp.raise_for_status()
        except requests.HTTPError as err:
            raise NetworkError(f"webhook rejected event for {event.repository}: {err}") from err
        except requests.RequestException as err:
            raise NetworkError(f"webhook request to {self.url} failed: {err}") from err

        self._logger.debug("WEBHOOK", f"Response: {resp.status_code}")
