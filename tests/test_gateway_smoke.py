from types import SimpleNamespace
from urllib.parse import urlsplit

import pytest
import requests

import gateway_smoke
from tests.conftest import REGISTRATION_SECRET, VERIFY_TOKEN


class FlaskSession:
    """Routes requests.Session-style calls into a Flask test client."""

    def __init__(self, client):
        self.client = client

    @staticmethod
    def _wrap(r):
        return SimpleNamespace(status_code=r.status_code, text=r.get_data(as_text=True))

    def get(self, url, params=None, timeout=None):
        return self._wrap(self.client.get(urlsplit(url).path, query_string=params))

    def post(self, url, json=None, timeout=None):
        return self._wrap(self.client.post(urlsplit(url).path, json=json))


def test_run_against_gateway(client, store):
    history_url = gateway_smoke.run(
        FlaskSession(client), "http://localhost", VERIFY_TOKEN, REGISTRATION_SECRET
    )

    identifier = history_url.split("/")[-2]
    assert history_url == f"http://localhost/{identifier}/events_history"
    assert len(store.get(identifier)) == 1


def test_run_with_wrong_token_fails(client):
    with pytest.raises(gateway_smoke.SmokeFailure, match="handshake"):
        gateway_smoke.run(FlaskSession(client), "http://localhost", "wrong")


def test_run_with_wrong_key_fails(client):
    with pytest.raises(gateway_smoke.SmokeFailure, match="register: expected 200, got 401"):
        gateway_smoke.run(FlaskSession(client), "http://localhost", VERIFY_TOKEN, "nope")


def test_local_url_rewrites_scheme_and_host():
    assert (
        gateway_smoke._local_url("http://127.0.0.1:3000/", "https://example.com/abc/events")
        == "http://127.0.0.1:3000/abc/events"
    )


def test_main_reports_connection_errors(monkeypatch, capsys):
    class DownSession:
        headers = {}

        def get(self, *args, **kwargs):
            raise requests.ConnectionError("refused")

    monkeypatch.setattr(gateway_smoke.requests, "Session", DownSession)

    assert gateway_smoke.main(["http://localhost:1", "--verify-token", "t"]) == 1
    assert "SMOKE FAILED" in capsys.readouterr().out
