"""Cached, throttled HTTP client shared by the pipeline's REST sources."""

import logging
import threading
import time
from pathlib import Path
from typing import Any

import requests
import requests_cache
from requests.exceptions import ConnectionError, HTTPError, Timeout
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from kegg_abundance.config.schema import PipelineConfig

logger = logging.getLogger(__name__)

# Statuses worth another attempt; anything else (404 for an unknown entry) is final
RETRYABLE_STATUS = {429, 500, 502, 503, 504}


def is_retryable(exc: BaseException) -> bool:
    """True for network failures and throttling/server-side HTTP errors."""
    if isinstance(exc, (Timeout, ConnectionError)):
        return True
    if isinstance(exc, HTTPError) and exc.response is not None:
        return exc.response.status_code in RETRYABLE_STATUS
    return False


class CachedAPIClient:
    """
    HTTP client with a persistent SQLite response cache, retry with
    exponential backoff, and a request rate limit.

    Module fetches run on a thread pool, so the rate limit is enforced
    across threads: after each network request the calling thread waits
    for a slot at least ``1 / rate_limit`` seconds after the previous one.
    Cache hits are not throttled.
    """

    def __init__(
        self,
        cache_dir: Path,
        base_url: str = "",
        rate_limit: int = 3,
        max_retries: int = 5,
        cache_ttl: int = 0,
        timeout: int = 30,
    ):
        """
        Args:
            cache_dir: Directory holding the SQLite response cache
            base_url: Prefix joined to relative request paths
            rate_limit: Maximum network requests per second
            max_retries: Attempts per request before giving up
            cache_ttl: Cache lifetime in seconds (0 = never expires)
            timeout: Per-request timeout in seconds
        """
        self.cache_dir = Path(cache_dir)
        self.base_url = base_url.rstrip("/")
        self.rate_limit = rate_limit
        self.max_retries = max_retries
        self.timeout = timeout

        self.cache_dir.mkdir(parents=True, exist_ok=True)

        self.session = requests_cache.CachedSession(
            cache_name=str(self.cache_dir / "api_cache"),
            backend="sqlite",
            expire_after=cache_ttl if cache_ttl > 0 else None,
        )

        self._throttle_lock = threading.Lock()
        self._next_request_at = 0.0

    def _url(self, path: str) -> str:
        if path.startswith(("http://", "https://")) or not self.base_url:
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def _throttle(self) -> None:
        """Hold this thread until the next request slot after the last one."""
        interval = 1 / self.rate_limit
        with self._throttle_lock:
            now = time.monotonic()
            self._next_request_at = max(now, self._next_request_at) + interval
            delay = self._next_request_at - now
        if delay > 0:
            time.sleep(delay)

    def get(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        **kwargs,
    ) -> requests.Response:
        """
        GET with cache lookup, throttling and retries.

        Raises:
            HTTPError: On a non-retryable status, or once retries are exhausted
            Timeout: Once retries are exhausted
            ConnectionError: Once retries are exhausted
        """
        url = self._url(path)

        @retry(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=1, min=2, max=60),
            retry=retry_if_exception(is_retryable),
            reraise=True,
        )
        def _get_with_retry():
            response = self.session.get(
                url,
                params=params,
                timeout=self.timeout,
                **kwargs,
            )
            if not getattr(response, "from_cache", False):
                self._throttle()
            if response.status_code == 429:
                logger.warning(f"Rate limited by API (429): {url}; backing off")
            response.raise_for_status()
            return response

        return _get_with_retry()

    def get_text(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        **kwargs,
    ) -> str:
        return self.get(path, params=params, **kwargs).text

    @classmethod
    def from_config(cls, config: PipelineConfig) -> "CachedAPIClient":
        """Client configured from the ``api`` and ``cache_dir`` settings."""
        return cls(
            cache_dir=config.cache_dir,
            base_url=config.api.base_url,
            rate_limit=config.api.rate_limit_per_second,
            max_retries=config.api.max_retries,
            cache_ttl=config.api.cache_ttl_seconds,
            timeout=config.api.timeout_seconds,
        )
