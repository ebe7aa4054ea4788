"""
Shared fixtures for Unit Query gateway tests.
"""

import json
import time
from typing import Any, Callable, Dict, List

import httpx
import pytest

from shared.config import UnitQuerySettings
from service_unit_query.app.caching.stores import MemoryCacheStore


API_KEY = "test-api-key-0123456789abcdef"
SF_TOKEN = "00Dxx0000000000!AQ0AQtest.token"
INSTANCE_URL = "https://example.my.salesforce.com"


class FakeClock:
    """Settable clock for cache freshness tests."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingUpstream:
    """httpx handler that records requests and replays a scripted response."""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.responder: Callable[[httpx.Request], httpx.Response] = lambda request: httpx.Response(
            200, json={"totalSize": 0, "done": True, "records": []}
        )

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responder(request)

    def respond_json(self, payload: Any, status_code: int = 200) -> None:
        self.responder = lambda request: httpx.Response(status_code, json=payload)

    def respond_text(self, text: str, status_code: int) -> None:
        self.responder = lambda request: httpx.Response(status_code, text=text)

    def fail_transport(self, message: str = "connection refused") -> None:
        def _raise(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError(message, request=request)

        self.responder = _raise


def make_records(count: int) -> List[Dict[str, Any]]:
    return [
        {
            "attributes": {"type": "Unit__c", "url": f"/services/data/v61.0/sobjects/Unit__c/a0B{i:015d}"},
            "Id": f"a0B{i:015d}",
            "Name": f"Unit {i}",
            "Status__c": "Deployed",
        }
        for i in range(count)
    ]


@pytest.fixture
def token_file(tmp_path):
    """Readable bearer token file."""
    path = tmp_path / "secrets" / "sf_bearer_token"
    path.parent.mkdir()
    path.write_text(f"{SF_TOKEN}\n", encoding="utf-8")
    return path


@pytest.fixture
def settings(tmp_path, token_file):
    """Service settings pointing at temporary token and cache locations."""
    return UnitQuerySettings(
        api_key=API_KEY,
        token_file=str(token_file),
        instance_url=INSTANCE_URL,
        cache_backend="memory",
        cache_dir=str(tmp_path / "cache"),
        env="test",
    )


@pytest.fixture
def upstream():
    return RecordingUpstream()


@pytest.fixture
def http_client(upstream):
    return httpx.AsyncClient(transport=httpx.MockTransport(upstream))


@pytest.fixture
def store_clock():
    return FakeClock(time.time())


@pytest.fixture
def cache_store(store_clock):
    return MemoryCacheStore(clock=store_clock)


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {API_KEY}"}


def dumps(payload: Any) -> bytes:
    return json.dumps(payload).encode("utf-8")
