"""Base HTTP client with retry logic."""

import httpx
from loguru import logger
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from settings import ACCESS_TOKEN, API_BASE_URL, API_TIMEOUT


class QueryExecutionError(Exception):
    """Query rejected by the service or transport failure."""

    def __init__(self, message: str = "Query execution failed", status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


def _is_retryable_error(exc: BaseException) -> bool:
    """Check if exception is retryable (network errors + 5xx server errors)."""
    if isinstance(exc, (httpx.ReadError, httpx.ConnectError, httpx.TimeoutException)):
        return True
    return isinstance(exc, httpx.HTTPStatusError) and exc.response.status_code >= 500


class BaseClient:
    """Base sync HTTP client with bearer auth and exponential backoff."""

    def __init__(
        self,
        base_url: str = API_BASE_URL,
        token: str = ACCESS_TOKEN,
        timeout: int = API_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ):
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            headers=headers,
            transport=transport,
        )
        self._request_count = 0
        if not token:
            logger.warning("{}: no access token configured", self.__class__.__name__)
        logger.info("{}: base_url={}", self.__class__.__name__, base_url)

    def __enter__(self):
        return self

    def __exit__(self, *_):
        self.close()

    def close(self) -> None:
        logger.info("Total API requests: {}", self._request_count)
        self._client.close()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=30),
        retry=retry_if_exception(_is_retryable_error),
        reraise=True,
    )
    def _post(self, path: str, payload: dict) -> dict:
        """POST request with retry logic."""
        self._request_count += 1
        resp = self._client.post(f"/{path.lstrip('/')}", json=payload)
        resp.raise_for_status()
        return resp.json()
