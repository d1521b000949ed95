import json

import pytest

from canvas_cli.client import CanvasClient

DOMAIN = "canvas.test"
BASE = f"https://{DOMAIN}/api/v1"


class DummyResp:
    """Just enough of requests.Response for the client."""

    def __init__(self, status_code=200, json_body=None, headers=None, reason="", links=None, text=None):
        self.status_code = status_code
        self._json = json_body
        self.headers = headers or {}
        self.reason = reason
        self.links = links or {}
        if text is not None:
            self.content = text.encode()
        else:
            self.content = b"" if json_body is None else json.dumps(json_body).encode()
        self.text = self.content.decode()

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self._json is None:
            raise ValueError("no JSON body")
        return self._json


class DummySession:
    """Routes (METHOD, url) to canned responses and records every call."""

    def __init__(self):
        self.routes = {}
        self.calls = []

    def add(self, method, url, resp):
        if not url.startswith("http"):
            url = f"{BASE}/{url}"
        self.routes.setdefault((method, url), []).append(resp)

    def request(self, method, url, **kw):
        self.calls.append({"method": method, "url": url, **kw})
        queued = self.routes.get((method, url))
        if not queued:
            return DummyResp(404, {"errors": [{"message": "no route"}]})
        resp = queued.pop(0) if len(queued) > 1 else queued[0]
        if isinstance(resp, Exception):
            raise resp
        return resp

    def post(self, url, **kw):
        return self.request("POST", url, **kw)

    def urls(self, method=None):
        return [c["url"] for c in self.calls if method is None or c["method"] == method]


@pytest.fixture
def session():
    return DummySession()


@pytest.fixture
def client(session):
    return CanvasClient("secret-token", DOMAIN, session=session)


@pytest.fixture(autouse=True)
def reset_package_logger():
    """The CLI installs a handler on the package logger; undo it between tests."""
    import logging

    yield
    logger = logging.getLogger("canvas_cli")
    for h in list(logger.handlers):
        logger.removeHandler(h)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
