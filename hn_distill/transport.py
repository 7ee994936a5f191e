import asyncio
import logging
import random
from typing import Any, Dict, Iterable, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .config import RETRY_STATUSES

logger = logging.getLogger(__name__)

USER_AGENT = "hn-distill/0.1 (+https://github.com/hn-distill)"
BACKOFF_CAP = 5.0
JITTER = 0.12
CLIP_ERROR_CONTENT = 100


class HttpError(Exception):
    def __init__(self, url: str, status: Optional[int] = None, message: Optional[str] = None):
        self.url = url
        self.status = status
        super().__init__(message or f"HTTP error {status or 'unknown'} for {url}")


class BackoffRetry(Retry):
    """Exponential backoff starting with the first retry, plus jitter, capped.

    Stock urllib3 does not sleep before the first retry; here attempt ``n``
    (0-based) waits ``backoff_factor * 2**n + U(0, backoff_jitter)`` seconds,
    never more than ``backoff_max``.
    """

    def get_backoff_time(self) -> float:
        attempt = len(self.history) - 1
        if attempt < 0:
            return 0.0
        value = self.backoff_factor * (2 ** attempt)
        if self.backoff_jitter:
            value += random.random() * self.backoff_jitter
        return float(max(0.0, min(self.backoff_max, value)))


def _make_session(
    retries: int = 3,
    backoff_ms: int = 600,
    statuses: Iterable[int] = RETRY_STATUSES,
) -> requests.Session:
    s = requests.Session()
    retry = BackoffRetry(
        total=retries,
        backoff_factor=backoff_ms / 1000,
        backoff_jitter=JITTER,
        backoff_max=BACKOFF_CAP,
        status_forcelist=sorted(set(statuses)),
        allowed_methods=["GET", "POST"],
        raise_on_status=False,
        respect_retry_after_header=False,
    )
    s.mount("https://", HTTPAdapter(max_retries=retry))
    s.mount("http://", HTTPAdapter(max_retries=retry))
    s.headers["User-Agent"] = USER_AGENT
    return s


class HttpClient:
    """Blocking ``requests`` session driven from the event loop.

    Each call runs in a worker thread so many requests can be awaited
    together; retries, backoff and the retriable status set live in the
    session's urllib3 ``Retry``. Any failure surfaces as ``HttpError``.

    ``timeout`` reaches ``requests`` as a per-socket-operation limit, which a
    server trickling bytes can stretch indefinitely. The awaitable calls
    therefore also run under ``deadline``: every attempt at the full
    timeout plus the capped sleeps between them. Past it the caller gets
    ``HttpError`` and the worker thread is abandoned.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        *,
        timeout: float = 15.0,
        retries: int = 3,
        backoff_ms: int = 600,
    ):
        self.session = session if session is not None else _make_session(retries, backoff_ms)
        self.timeout = timeout
        self.deadline = timeout * (retries + 1) + BACKOFF_CAP * retries

    @classmethod
    def from_settings(cls, settings) -> "HttpClient":
        return cls(
            timeout=settings.http_timeout_ms / 1000,
            retries=settings.http_retries,
            backoff_ms=settings.http_backoff_ms,
        )

    def close(self) -> None:
        self.session.close()

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        try:
            r = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.warning(f"{method} {url} failed: {e}")
            raise HttpError(url, None, f"Request failed: {e}") from e
        if not r.ok:
            logger.warning(f"{method} {url} failed: {r.status_code} {r.text[:CLIP_ERROR_CONTENT]}")
            raise HttpError(url, r.status_code, f"HTTP {r.status_code} {r.text[:500]}")
        return r

    @staticmethod
    def _decode(url: str, r: requests.Response) -> Any:
        try:
            return r.json()
        except ValueError as e:
            raise HttpError(url, r.status_code, f"Invalid JSON from {url}") from e

    def get_json(self, url: str) -> Any:
        r = self._request("GET", url, headers={"Accept": "application/json"})
        return self._decode(url, r)

    def get_text(self, url: str) -> str:
        return self._request("GET", url).text

    def post_json_sync(self, url: str, payload: Dict[str, Any], headers: Optional[Dict[str, str]] = None) -> Any:
        hdrs = {"Accept": "application/json", "Content-Type": "application/json"}
        hdrs.update(headers or {})
        r = self._request("POST", url, json=payload, headers=hdrs)
        return self._decode(url, r)

    async def _in_thread(self, url: str, fn, *args) -> Any:
        try:
            return await asyncio.wait_for(asyncio.to_thread(fn, *args), self.deadline)
        except asyncio.TimeoutError as e:
            logger.warning(f"{url} did not complete within {self.deadline:.1f}s")
            raise HttpError(url, None, f"Timed out after {self.deadline:.1f}s") from e

    async def json(self, url: str) -> Any:
        return await self._in_thread(url, self.get_json, url)

    async def text(self, url: str) -> str:
        return await self._in_thread(url, self.get_text, url)

    async def post_json(self, url: str, payload: Dict[str, Any], headers: Optional[Dict[str, str]] = None) -> Any:
        return await self._in_thread(url, self.post_json_sync, url, payload, headers)
