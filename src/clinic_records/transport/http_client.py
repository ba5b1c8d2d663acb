"""Pooled HTTP sessions for the REST record store.

Batch imports with ``max_workers > 1`` issue concurrent store calls, so the
session pool is sized to the importer's worker count.
"""

import logging
from dataclasses import dataclass
from threading import Lock
from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONNECTIONS = 4
DEFAULT_RETRY_COUNT = 3
DEFAULT_BACKOFF_FACTOR = 0.3
DEFAULT_TIMEOUT = 30

# POST is not retried: a retried save whose first attempt reached the store
# would persist the record twice
RETRYABLE_METHODS = ["HEAD", "GET", "PUT", "DELETE", "OPTIONS"]


@dataclass
class ConnectionPoolConfig:
    """Configuration for HTTP connection pooling.

    Attributes:
        max_connections: Maximum number of pooled connections (>= 1)
        retry_count: Retries for idempotent requests on connection errors
            and 429/5xx responses
        backoff_factor: Factor for exponential backoff between retries
        timeout: Request timeout in seconds
    """

    max_connections: int = DEFAULT_MAX_CONNECTIONS
    retry_count: int = DEFAULT_RETRY_COUNT
    backoff_factor: float = DEFAULT_BACKOFF_FACTOR
    timeout: int = DEFAULT_TIMEOUT

    def __post_init__(self) -> None:
        if self.max_connections < 1:
            raise ValueError(f"max_connections must be >= 1, got {self.max_connections}")
        if self.retry_count < 0:
            raise ValueError(f"retry_count must be >= 0, got {self.retry_count}")
        if self.backoff_factor < 0:
            raise ValueError(f"backoff_factor must be >= 0, got {self.backoff_factor}")
        if self.timeout < 1:
            raise ValueError(f"timeout must be >= 1, got {self.timeout}")


class ConnectionPool:
    """Lazily created, shared requests.Session with pooling and retries.

    Thread-safe: concurrent store calls share one session.

    Example:
        >>> with ConnectionPool(ConnectionPoolConfig(max_connections=8)) as pool:
        ...     response = pool.get_session().get(url, timeout=pool.config.timeout)
    """

    def __init__(self, config: Optional[ConnectionPoolConfig] = None) -> None:
        self.config = config or ConnectionPoolConfig()
        self._session: Optional[requests.Session] = None
        self._lock = Lock()

    def get_session(self) -> requests.Session:
        """Get the pooled session, creating it on first use."""
        with self._lock:
            if self._session is None:
                self._session = self._create_session()
            return self._session

    def _create_session(self) -> requests.Session:
        retry_strategy = Retry(
            total=self.config.retry_count,
            backoff_factor=self.config.backoff_factor,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=RETRYABLE_METHODS,
            raise_on_status=False,
        )
        adapter = HTTPAdapter(
            pool_connections=self.config.max_connections,
            pool_maxsize=self.config.max_connections,
            pool_block=True,
            max_retries=retry_strategy,
        )

        session = requests.Session()
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        session.headers.update({"Accept": "application/json"})

        logger.info(
            "Created HTTP session with pool_maxsize=%d, retry_count=%d",
            self.config.max_connections,
            self.config.retry_count,
        )
        return session

    def close(self) -> None:
        """Close the session and release its connections."""
        with self._lock:
            if self._session is not None:
                self._session.close()
                self._session = None
                logger.debug("ConnectionPool session closed")

    def __enter__(self) -> "ConnectionPool":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
