"""Pytest fixtures: a scripted stand-in for requests.Session."""

import json
from typing import Any, Callable, List, Optional

import pytest
import requests
from requests.structures import CaseInsensitiveDict

from prism_categories.models import Credential
from prism_categories.prism_client import PrismClient


def make_response(status_code: int = 200, body: Optional[Any] = None, raw: Optional[bytes] = None) -> requests.Response:
    resp = requests.Response()
    resp.status_code = status_code
    if raw is not None:
        resp._content = raw
    else:
        resp._content = b"" if body is None else json.dumps(body).encode("utf-8")
    resp.url = "https://pc.test:9440/"
    return resp


class FakeSession:
    """Records every request and answers through ``handler(method, path, payload)``."""

    def __init__(self, handler: Callable[[str, str, Optional[dict]], Any]):
        self.handler = handler
        self.headers = CaseInsensitiveDict()
        self.auth = None
        self.calls: List[tuple] = []

    def request(self, method, url, json=None, verify=None, timeout=None):
        path = url.split("/api/nutanix/v3/", 1)[1]
        self.calls.append((method, path, json))
        result = self.handler(method, path, json)
        if isinstance(result, BaseException):
            raise result
        if isinstance(result, requests.Response):
            return result
        return make_response(200, result)

    def paths(self, method: Optional[str] = None) -> List[str]:
        return [p for m, p, _ in self.calls if method is None or m == method]


def paged_list(entities: List[Any], total: Optional[int] = None, page_cap: Optional[int] = None):
    """Serve ``POST .../list`` from ``entities`` honouring offset/length."""

    def serve(payload: dict) -> dict:
        offset = payload["offset"]
        length = payload["length"]
        if page_cap is not None:
            length = min(length, page_cap)
        page = entities[offset:offset + length]
        return {
            "entities": page,
            "metadata": {"total_matches": len(entities) if total is None else total},
        }

    return serve


@pytest.fixture
def make_client():
    def factory(handler, **kwargs) -> PrismClient:
        session = FakeSession(handler)
        kwargs.setdefault("task_poll_interval", 0)
        return PrismClient(
            host="pc.test",
            credential=Credential("admin", "secret"),
            session=session,
            **kwargs,
        )

    return factory
