from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Callable

import pytest
import requests

from cardpress.config import RepoConfig
from cardpress.renderer import DEFAULT_TEMPLATE_PATH

API = "https://api.github.com"
BASE_SHA = "0123456789abcdef0123456789abcdef01234567"
README_SHA = "fedcba9876543210fedcba9876543210fedcba98"


def _make_response(status: int, payload: Any = None, text: str = "") -> requests.Response:
    r = requests.Response()
    r.status_code = status
    r._content = json.dumps(payload).encode("utf-8") if payload is not None else text.encode("utf-8")
    r.encoding = "utf-8"
    return r


@dataclass
class Call:
    method: str
    url: str
    headers: dict[str, str]
    params: dict[str, str] | None
    json: dict[str, Any] | None

    @property
    def path(self) -> str:
        return self.url[len(API) :]


Handler = Callable[[Call], requests.Response]


@dataclass
class FakeSession:
    """Stands in for requests.Session; routes by (method, path prefix)."""

    routes: dict[tuple[str, str], Handler | requests.Response] = field(default_factory=dict)
    calls: list[Call] = field(default_factory=list)

    def route(self, method: str, path_prefix: str, handler: Handler | requests.Response) -> None:
        self.routes[(method, path_prefix)] = handler

    def request(self, method, url, headers=None, params=None, json=None, timeout=None):  # noqa: A002
        call = Call(method=method, url=url, headers=dict(headers or {}), params=params, json=json)
        self.calls.append(call)
        for (m, prefix), handler in self.routes.items():
            if m == method and call.path.startswith(prefix):
                return handler(call) if callable(handler) else handler
        return _make_response(404, {"message": "Not Found"})

    def methods(self) -> list[str]:
        return [c.method for c in self.calls]


@pytest.fixture
def make_response() -> Callable[..., requests.Response]:
    return _make_response


@pytest.fixture
def base_sha() -> str:
    return BASE_SHA


@pytest.fixture
def readme_sha() -> str:
    return README_SHA


@pytest.fixture
def config() -> RepoConfig:
    return RepoConfig(owner="acme", repo="cards", token="ghp_test", template_path=str(DEFAULT_TEMPLATE_PATH))


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def happy_session(session: FakeSession) -> FakeSession:
    """A repository where every step succeeds and a README exists."""
    session.route("GET", "/repos/acme/cards/git/ref/heads/main", _make_response(200, {"object": {"sha": BASE_SHA}}))
    session.route("POST", "/repos/acme/cards/git/refs", _make_response(201, {"ref": "refs/heads/x"}))
    session.route("GET", "/repos/acme/cards/contents/README.md", _make_response(200, {"sha": README_SHA}))
    session.route("DELETE", "/repos/acme/cards/contents/README.md", _make_response(200, {"commit": {}}))
    session.route("PUT", "/repos/acme/cards/contents/index.html", _make_response(201, {"content": {}}))
    return session


@pytest.fixture
def template_source() -> str:
    return DEFAULT_TEMPLATE_PATH.read_text(encoding="utf-8")
