import html
import re

import pytest

from event_store import FileEventStore
from gateway_config import GatewayConfig
from webhook_gateway import create_app

VERIFY_TOKEN = "TEST_VERIFY_TOKEN"
REGISTRATION_SECRET = "SuperDuperSecret"

PRE_RE = re.compile(r"<pre(?: class=\"error\")?>(.*?)</pre>", re.DOTALL)
URL_ID_RE = re.compile(r"https://localhost/([^/\s]+)/events\b")


def history_blocks(page: str):
    return [html.unescape(b) for b in PRE_RE.findall(page)]


@pytest.fixture
def config(tmp_path):
    return GatewayConfig(
        verify_token=VERIFY_TOKEN,
        registration_secret=REGISTRATION_SECRET,
        store_dir=str(tmp_path / "events"),
    )


@pytest.fixture
def store(config):
    return FileEventStore(config.store_dir)


@pytest.fixture
def app(store, config):
    app = create_app(store, config)
    app.config.update(TESTING=True)
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def identifier(client):
    r = client.get("/register")
    assert r.status_code == 200
    return URL_ID_RE.search(r.get_data(as_text=True)).group(1)
