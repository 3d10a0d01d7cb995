"""HTTP fetching with bounded retry and linear backoff."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass

import requests

from crawl_config import USER_AGENT

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """How many attempts to make and how long to wait between them."""

    max_attempts: int = 3
    base_delay_seconds: float = 1.0

    def delay_for(self, attempt: int) -> float:
        """Delay after failed attempt ``attempt`` (1-based): base * attempt."""
        return self.base_delay_seconds * attempt


class Fetcher:
    """Fetches raw page bodies, returning None once retries are exhausted.

    An injected ``session`` is used as is. Otherwise each calling thread gets
    its own ``requests.Session``, since sessions are not safe to share across
    worker threads.
    """

    def __init__(
        self,
        session: requests.Session | None = None,
        policy: RetryPolicy | None = None,
        timeout_seconds: float = 15.0,
        user_agent: str = USER_AGENT,
    ) -> None:
        self._session = session
        self._local = threading.local()
        self._sessions: list[requests.Session] = []
        self._sessions_lock = threading.Lock()
        self.policy = policy or RetryPolicy()
        self.timeout_seconds = timeout_seconds
        self.headers = {"User-Agent": user_agent}

    def fetch(self, url: str) -> bytes | None:
        session = self._session_for_thread()
        max_attempts = self.policy.max_attempts
        for attempt in range(1, max_attempts + 1):
            try:
                response = session.get(url, headers=self.headers, timeout=self.timeout_seconds)
                response.raise_for_status()
                return response.content
            except requests.RequestException as exc:
                LOGGER.warning(
                    "Fetch failed url=%s attempt=%s/%s: %s", url, attempt, max_attempts, exc
                )
                if attempt < max_attempts:
                    time.sleep(self.policy.delay_for(attempt))

        LOGGER.error("Giving up on url=%s after %s attempts", url, max_attempts)
        return None

    def close(self) -> None:
        """Close the injected session or every per-thread session."""
        if self._session is not None:
            self._session.close()
        with self._sessions_lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            session.close()

    def _session_for_thread(self) -> requests.Session:
        if self._session is not None:
            return self._session
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            self._local.session = session
            with self._sessions_lock:
                self._sessions.append(session)
        return session
