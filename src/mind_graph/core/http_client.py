"""Shared HTTP client with retry logic and optional rate limiting."""

import logging
import threading
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)

CHUNK_SIZE = 65536
PROGRESS_EVERY_CHUNKS = 64


class RetryableHTTPClient:
    """HTTP client with exponential backoff retry logic and rate limiting.

    Handles common failure scenarios (429, 500, 502, 503, 504) with exponential
    backoff and respects Retry-After headers. May be shared between worker
    threads: each thread gets its own ``requests.Session`` and the rate limiter
    is guarded by a lock.

    Args:
        rps: Maximum requests per second, or None for no throttling
        max_retries: Maximum number of attempts per request (default: 3)
        timeout: Request timeout in seconds (default: 600)
    """

    def __init__(self, rps: Optional[float] = None, max_retries: int = 3, timeout: float = 600):
        self.rps = rps
        self.max_retries = max(int(max_retries), 1)
        self.timeout = timeout
        self.min_interval = 1.0 / max(rps, 0.01) if rps else 0.0
        self.last_request_time = 0.0
        self._lock = threading.Lock()
        self._local = threading.local()
        self._sessions: List[requests.Session] = []

    @property
    def session(self) -> requests.Session:
        """The calling thread's session, created on first use."""
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            self._local.session = session
            with self._lock:
                self._sessions.append(session)
        return session

    def _rate_limit(self):
        """Enforce rate limiting between requests."""
        if not self.min_interval:
            return
        with self._lock:
            now = time.time()
            elapsed = now - self.last_request_time
            if elapsed < self.min_interval:
                time.sleep(self.min_interval - elapsed)
            self.last_request_time = time.time()

    def request_with_retry(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        json: Any = None,
        timeout: Optional[float] = None,
        stream: bool = False,
    ) -> requests.Response:
        """Send a request, retrying throttling/server errors with backoff.

        Returns:
            Response object with a successful status

        Raises:
            requests.HTTPError: On non-retryable HTTP errors or when retries are exhausted
            requests.RequestException: On network errors after retries exhausted
        """
        timeout = timeout or self.timeout

        for attempt in range(self.max_retries):
            try:
                self._rate_limit()
                r = self.session.request(method, url, headers=headers, json=json, timeout=timeout, stream=stream)

                # Retry on throttling/server errors with exponential backoff
                if r.status_code in (429, 500, 502, 503, 504) and attempt < self.max_retries - 1:
                    wait = self._calculate_backoff_time(r, attempt)
                    logger.debug(f"{method} {url} returned {r.status_code}; retrying in {wait:.1f}s")
                    r.close()
                    time.sleep(wait)
                    continue

                r.raise_for_status()
                return r

            except requests.HTTPError:
                raise
            except requests.RequestException:
                # Network error -> backoff and retry
                if attempt < self.max_retries - 1:
                    time.sleep(min(8.0, 2.0 ** attempt))
                    continue
                raise

        raise requests.RequestException(f"No attempts made for {url}")

    def get_text(self, url: str, timeout: Optional[float] = None) -> str:
        """GET *url* and return the decoded body."""
        return self.request_with_retry("GET", url, timeout=timeout).text

    def post_json(
        self,
        url: str,
        payload: Any,
        *,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> requests.Response:
        """POST a JSON payload and return the response."""
        return self.request_with_retry("POST", url, headers=headers, json=payload, timeout=timeout)

    def download_to(self, url: str, destination: Path, *, name: Optional[str] = None, timeout: Optional[float] = None) -> int:
        """Stream *url* into *destination*, logging progress every 64 chunks.

        Returns:
            Number of bytes written
        """
        name = name or destination.name
        total_read = 0
        total_reads = 0
        with self.request_with_retry("GET", url, timeout=timeout, stream=True) as response:
            with open(destination, "wb") as fh:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    if not chunk:
                        continue
                    fh.write(chunk)
                    total_read += len(chunk)
                    total_reads += 1
                    if total_reads % PROGRESS_EVERY_CHUNKS == 0:
                        logger.info(f"[{name}] At {total_read / 1024 / 1024:.1f} MB")
        return total_read

    def _calculate_backoff_time(self, response: requests.Response, attempt: int) -> float:
        """Calculate backoff time, respecting Retry-After header if present."""
        retry_after = response.headers.get("Retry-After")
        if retry_after:
            try:
                wait = float(retry_after)
                return max(wait, 1.0)  # At least 1 second
            except (ValueError, TypeError):
                pass
        # Exponential backoff: 1s, 2s, 4s, max 8s
        return min(8.0, 2.0 ** attempt)

    def close(self):
        """Close every per-thread session."""
        with self._lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            session.close()
        self._local = threading.local()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
