from __future__ import annotations

import pytest
import requests

from grave_registry.errors import TransportError
from grave_registry.sync import WebhookTransport, probe_connectivity


class _Response:
    def __init__(self, status_code: int, text: str = "") -> None:
        self.status_code = status_code
        self.text = text


class _Session:
    def __init__(self, response=None, error=None) -> None:
        self.response = response
        self.error = error
        self.posts = []
        self.heads = []

    def post(self, url, **kwargs):
        self.posts.append((url, kwargs))
        if self.error:
            raise self.error
        return self.response

    def head(self, url, **kwargs):
        self.heads.append((url, kwargs))
        if self.error:
            raise self.error
        return self.response


def test_post_sends_text_plain_body_with_timeout() -> None:
    session = _Session(response=_Response(200, '{"result":"success"}'))
    transport = WebhookTransport(timeout=12, session=session)

    result = transport.post("https://example.test/exec", "text/plain", '{"data": []}')

    url, kwargs = session.posts[0]
    assert url == "https://example.test/exec"
    assert kwargs["headers"] == {"Content-Type": "text/plain"}
    assert kwargs["data"] == b'{"data": []}'
    assert kwargs["timeout"] == 12
    assert kwargs["verify"] is True
    assert result["status_code"] == 200


def test_post_http_error_status_is_not_raised() -> None:
    session = _Session(response=_Response(502, "Bad gateway"))
    result = WebhookTransport(session=session).post("https://example.test/exec", "text/plain", "{}")
    assert result["status_code"] == 502


def test_post_network_error_becomes_transport_error() -> None:
    session = _Session(error=requests.Timeout("read timed out"))
    with pytest.raises(TransportError, match="read timed out"):
        WebhookTransport(session=session).post("https://example.test/exec", "text/plain", "{}")


def test_probe_connectivity() -> None:
    assert probe_connectivity("https://probe.test", session=_Session(response=_Response(204))) is True
    assert probe_connectivity("https://probe.test", session=_Session(response=_Response(503))) is True
    offline = _Session(error=requests.ConnectionError("unreachable"))
    assert probe_connectivity("https://probe.test", session=offline) is False
