"""Base fetcher class with common functionality"""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import aiohttp

from ..config import MAX_RETRIES, RETRY_DELAY, REQUEST_TIMEOUT
from ..errors import ProviderAuthError, ProviderError, ProviderTimeout
from .rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


class BaseFetcher(ABC):
    """Abstract base class for all external service clients"""

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        rate_limiter: Optional[RateLimiter] = None,
        timeout: float = REQUEST_TIMEOUT,
        max_retries: int = MAX_RETRIES,
        retry_delay: float = RETRY_DELAY,
    ):
        self.session = session
        self._owns_session = False
        self.rate_limiter = rate_limiter
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    async def __aenter__(self):
        if self.session is None:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
            self._owns_session = True
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.session and self._owns_session:
            await self.session.close()
            self.session = None
            self._owns_session = False

    def _check_status(self, response, url: str):
        """Map an HTTP failure status onto the provider error hierarchy"""
        status = response.status
        if status < 400:
            return
        source = self.get_source_name()
        if status == 401:
            raise ProviderAuthError(source, "authentication failed, check the configured credentials", status)
        if status == 504:
            raise ProviderTimeout(source, f"gateway timeout from {url}", status)
        raise ProviderError(source, f"HTTP {status} from {url}", status)

    async def fetch_with_retry(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        method: str = "GET",
        data: Optional[str] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Request a URL and decode its JSON body, retrying with exponential backoff.

        Connection errors and 5xx responses other than 504 are retried.
        401, 504, client timeouts, other 4xx responses and bodies that are
        not JSON raise immediately.
        """
        if self.session is None:
            raise RuntimeError(f"{type(self).__name__} must be used as an async context manager")

        last_error = None

        for attempt in range(self.max_retries):
            if self.rate_limiter:
                await self.rate_limiter.wait()
            try:
                async with self.session.request(
                    method, url, params=params, headers=headers, data=data, json=json
                ) as response:
                    self._check_status(response, url)
                    try:
                        return await response.json(content_type=None)
                    except ValueError as e:
                        raise ProviderError(
                            self.get_source_name(), f"invalid JSON from {url}", response.status
                        ) from e
            except ProviderTimeout:
                raise
            except ProviderError as e:
                if e.status is None or e.status < 500:
                    raise
                last_error = e
            except asyncio.TimeoutError as e:
                raise ProviderTimeout(self.get_source_name(), f"request to {url} timed out") from e
            except aiohttp.ClientError as e:
                last_error = e

            if attempt + 1 < self.max_retries:
                wait_time = self.retry_delay * (2 ** attempt)
                logger.warning(
                    f"Request failed (attempt {attempt + 1}/{self.max_retries}): {last_error}. "
                    f"Retrying in {wait_time}s..."
                )
                await asyncio.sleep(wait_time)

        logger.error(f"Giving up on {url} after {self.max_retries} attempts: {last_error}")
        status = getattr(last_error, "status", None)
        raise ProviderError(
            self.get_source_name(),
            f"failed to fetch {url} after {self.max_retries} attempts: {last_error}",
            status,
        ) from last_error

    @abstractmethod
    def get_source_name(self) -> str:
        """Return the name of this data source"""
        pass
