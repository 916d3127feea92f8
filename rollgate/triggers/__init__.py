"""
Resubmission sinks for rollgate.

Public API
----------
ResubmissionSink : protocol
    Anything with ``submit(event)``.
CallbackSink : class
    In-process sink calling a function.
WebhookSink : class
    HTTP sink posting to a native webhook endpoint.
make_session : function
    requests.Session with retry defaults for webhook posts.
"""

from .sink import CallbackSink, ResubmissionSink, WebhookSink, make_session

__all__ = ["CallbackSink", "ResubmissionSink", "WebhookSink", "make_session"]
