"""Shared fakes for tests: aiohttp-like sessions and deterministic randomness"""
import pytest

# Add parent directory to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from knockwise_geo.fetchers import RateLimiter


class FakeResponse:
    """Async context manager standing in for aiohttp.ClientResponse"""

    def __init__(self, status=200, payload=None, error=None):
        self.status = status
        self.payload = payload
        self.error = error

    async def __aenter__(self):
        if self.error is not None:
            raise self.error
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False

    async def json(self, content_type=None):
        if isinstance(self.payload, BaseException):
            raise self.payload
        return self.payload


class FakeSession:
    """
    Replays canned responses in order. Each item is a (status, payload)
    tuple or an exception to raise when the request is entered. A payload
    that is an exception is raised when the body is decoded.
    """

    def __init__(self, responses=None, handler=None):
        self.responses = list(responses or [])
        self.handler = handler
        self.calls = []
        self.closed = False

    def request(self, method, url, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        item = self.handler(method, url, kwargs) if self.handler else self.responses.pop(0)
        if isinstance(item, BaseException):
            return FakeResponse(error=item)
        status, payload = item
        return FakeResponse(status, payload)

    async def close(self):
        self.closed = True


class FixedRandom:
    """random.Random replacement that always returns the same value"""

    def __init__(self, value=0.25):
        self.value = value

    def random(self):
        return self.value


@pytest.fixture
def fake_session():
    return FakeSession


@pytest.fixture
def fixed_random():
    return FixedRandom()


@pytest.fixture
def fast_fetcher_kwargs():
    """Fetcher options that never sleep between requests or retries"""
    return {"rate_limiter": RateLimiter(0), "retry_delay": 0}
