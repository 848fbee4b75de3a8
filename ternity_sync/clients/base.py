"""
Rate-Limited HTTP Client Module
Shared request plumbing for the upstream source APIs: authentication, a minimum
inter-request gap, error classification and backoff on retryable statuses.
"""

import re
import time
from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ternity_sync.utils.logger import get_logger
from ternity_sync.utils.retry import RetryOptions, with_retry

logger = get_logger(__name__)

RESET_IN_PATTERN = re.compile(r'reset in (\d+) seconds', re.IGNORECASE)
DEFAULT_RATE_LIMIT_WAIT = 60


class SourceAPIError(Exception):
    """Raised when an upstream API call fails."""

    def __init__(
        self,
        message: str,
        status_code: int = None,
        response: Any = None,
        retry_after: float = None,
        retryable: bool = False
    ):
        self.message = message
        self.status_code = status_code
        self.response = response
        self.retry_after = retry_after
        self.retryable = retryable
        super().__init__(self.message)


def parse_retry_after(
    status_code: int,
    body: str,
    headers: Dict[str, str],
    max_wait: float = 3600
) -> Optional[float]:
    """
    Derive a server-suggested wait (seconds) from an error response.

    A body saying "reset in N seconds" wins (N + 10 for safety), then a numeric
    Retry-After header, then a flat 60 s for 402/429.
    """
    wait = None

    match = RESET_IN_PATTERN.search(body or '')
    if match:
        wait = int(match.group(1)) + 10
    else:
        header = (headers or {}).get('Retry-After')
        if header and header.strip().isdigit():
            wait = int(header.strip())
        elif status_code in (402, 429):
            wait = DEFAULT_RATE_LIMIT_WAIT

    if wait is None:
        return None
    return float(min(wait, max_wait))


class RateLimitedClient:
    """
    Base client with a per-instance minimum request gap and backoff.

    Subclasses set `source`, `retryable_statuses` and the session authentication.
    One instance is meant to be shared by every extractor of a source in a process.
    """

    source = 'source'
    retryable_statuses = frozenset({429, 500, 502, 503})

    def __init__(
        self,
        base_url: str,
        min_request_gap_ms: int = 250,
        retry_options: RetryOptions = None,
        timeout: int = 60,
        connect_retries: int = 3,
        max_rate_limit_wait: float = 3600
    ):
        self.base_url = base_url.rstrip('/')
        self.min_request_gap = min_request_gap_ms / 1000.0
        self.timeout = timeout
        self.connect_retries = connect_retries
        self.max_rate_limit_wait = max_rate_limit_wait

        self.retry_options = retry_options or RetryOptions()
        self.retry_options.delay_hint = self._delay_hint
        self.retry_options.on_retry = self._on_retry

        # Backoff retries performed since the last reset_retry_count()
        self.retry_count = 0

        self._last_request_time = 0.0
        self._session = self._create_session()

    def _create_session(self) -> requests.Session:
        """Create requests session; urllib3 only reconnects, status retries are ours."""
        session = requests.Session()

        session.headers.update({
            'Accept': 'application/json',
            'Content-Type': 'application/json'
        })
        self._authenticate(session)

        retry_strategy = Retry(
            total=self.connect_retries,
            connect=self.connect_retries,
            read=0,
            status=0,
            backoff_factor=0.5,
            allowed_methods=['GET', 'POST']
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount('https://', adapter)
        session.mount('http://', adapter)

        return session

    def _authenticate(self, session: requests.Session) -> None:
        """Attach credentials to the session."""
        raise NotImplementedError

    def _rate_limit(self, gap: float = None) -> None:
        """Sleep out the remainder of the minimum gap since the previous request."""
        gap = self.min_request_gap if gap is None else gap
        elapsed = time.monotonic() - self._last_request_time

        if elapsed < gap:
            time.sleep(gap - elapsed)

        self._last_request_time = time.monotonic()

    def _delay_hint(self, error: BaseException) -> Optional[float]:
        return getattr(error, 'retry_after', None)

    def _on_retry(self, attempt: int, error: BaseException, delay: float) -> None:
        self.retry_count += 1
        if isinstance(error, SourceAPIError) and error.status_code in (402, 429):
            logger.warning(
                f"Rate limited ({error.status_code}) by {self.source}. "
                f"Waiting {delay:.0f}s (~{int(delay // 60) + 1} min)"
            )

    def reset_retry_count(self) -> None:
        self.retry_count = 0

    def is_retryable(self, error: BaseException) -> bool:
        return isinstance(error, SourceAPIError) and error.retryable

    def _make_request(
        self,
        method: str,
        url: str,
        params: Dict = None,
        json_data: Any = None,
        gap: float = None
    ) -> Any:
        """
        Make one HTTP request.

        Raises:
            SourceAPIError: On non-2xx responses or transport failures
        """
        self._rate_limit(gap)
        logger.info(f"{method} {url}")

        try:
            response = self._session.request(
                method=method,
                url=url,
                params=params,
                json=json_data,
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Request failed: {e}")
            raise SourceAPIError(f"{self.source} request failed: {e}")

        if response.status_code >= 400:
            body = response.text or ''
            raise SourceAPIError(
                f"{self.source} API {response.status_code}: {body[:500]}",
                response.status_code,
                body,
                parse_retry_after(response.status_code, body, response.headers, self.max_rate_limit_wait),
                response.status_code in self.retryable_statuses
            )

        if not response.text:
            return {}

        try:
            return response.json()
        except ValueError:
            raise SourceAPIError(
                f"{self.source} API returned malformed JSON from {url}",
                response.status_code,
                response.text[:500]
            )

    def request(
        self,
        method: str,
        url: str,
        params: Dict = None,
        json_data: Any = None,
        gap: float = None
    ) -> Any:
        """Make a request, retrying retryable failures with backoff."""
        return with_retry(
            lambda: self._make_request(method, url, params, json_data, gap),
            self.is_retryable,
            self.retry_options
        )

    def fetch(self, path: str, body: Any = None, params: Dict = None) -> Any:
        """
        GET (or POST when a body is given) a path relative to the base URL.

        Returns:
            Parsed JSON response
        """
        url = f"{self.base_url}{path}"
        method = 'GET' if body is None else 'POST'
        return self.request(method, url, params=params, json_data=body)

    def close(self) -> None:
        self._session.close()
