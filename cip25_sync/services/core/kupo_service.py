"""
Kupo chain-indexer service client.

This service provides access to two Kupo endpoints:
- Unspent matches for the configured index pattern (GET /matches?unspent)
- Transaction metadata at a slot (GET /metadata/{slot_no}?transaction_id=...)

Every request is bounded by the client timeout and retried with
exponential backoff on transport errors and non-2xx responses.
"""
from typing import Any, Dict, List, Optional
import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from cip25_sync.core.logging import get_logger
from cip25_sync.core.metrics import record_kupo_request_failure, record_kupo_request_success

logger = get_logger(__name__)

RETRYABLE_ERRORS = (httpx.HTTPStatusError, httpx.RequestError, httpx.TimeoutException)


class KupoService:
    """
    Thin async client for a Kupo instance.

    Responses are returned as decoded JSON; shaping them into domain
    types is left to KupoAdapter.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        retry_wait_max: float = 10.0,
    ):
        """
        Initialize the Kupo service.

        Args:
            base_url: Kupo base URL (defaults to settings.KUPO_URL)
            timeout: Per-request timeout in seconds (defaults to settings.KUPO_TIMEOUT)
            max_retries: Attempts per request (defaults to settings.KUPO_MAX_RETRIES)
            retry_wait_max: Upper bound of the backoff between attempts, in seconds
        """
        from cip25_sync.core.config import settings

        self.base_url = (base_url or settings.KUPO_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.KUPO_TIMEOUT
        self.max_retries = max(1, max_retries if max_retries is not None else settings.KUPO_MAX_RETRIES)
        self.retry_wait_max = retry_wait_max
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            limits = httpx.Limits(max_keepalive_connections=2, max_connections=4)
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                limits=limits,
                headers={"Accept": "application/json"},
            )
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=1, min=0, max=self.retry_wait_max),
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            reraise=True,
        )

    async def _get_json(self, url: str, endpoint: str) -> Any:
        """
        GET a path and decode the JSON body.

        Args:
            url: Path relative to the base URL (may carry a query string)
            endpoint: Short label used for metrics

        Returns:
            Decoded JSON body

        Raises:
            httpx.HTTPStatusError: On non-2xx after all retries
            httpx.RequestError: On network errors after all retries
            ValueError: If the body is not valid JSON
        """
        client = await self._get_client()
        try:
            async for attempt in self._retrying():
                with attempt:
                    response = await client.get(url)
                    response.raise_for_status()
            data = response.json()
        except Exception as e:
            record_kupo_request_failure(endpoint, type(e).__name__)
            raise

        record_kupo_request_success(endpoint)
        return data

    async def get_matches(self, matches_path: str = "/matches") -> List[Dict]:
        """
        Fetch every unspent match for the index pattern.

        Args:
            matches_path: "/matches" or "/matches/{pattern}"

        Returns:
            Raw match objects as returned by Kupo
        """
        logger.info("Fetching matches from Kupo...")
        data = await self._get_json(f"{matches_path}?unspent", endpoint="matches")
        logger.info("Successfully fetched matches from Kupo.")
        return data

    async def get_metadata(self, slot_no: int, transaction_id: str) -> List[Dict]:
        """
        Fetch the metadata documents of a transaction.

        Args:
            slot_no: Slot the transaction was included in
            transaction_id: Transaction hash

        Returns:
            Raw metadata objects, each optionally carrying a detailed "schema"
        """
        return await self._get_json(
            f"/metadata/{slot_no}?transaction_id={transaction_id}",
            endpoint="metadata",
        )
