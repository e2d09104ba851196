"""Async API client for Mixedbread stores."""

from __future__ import annotations

import asyncio
import logging
import mimetypes
import random
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any, Literal

import httpx

from .config import config
from .exceptions import (
    MxbaiAPIError,
    MxbaiAuthenticationError,
    MxbaiFileNotFoundError,
    MxbaiInvalidResponseError,
    MxbaiNetworkError,
    MxbaiNotFoundError,
    MxbaiPermissionError,
    MxbaiRateLimitError,
    MxbaiUploadError,
)
from .utils import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_PAGE_SIZE,
    DEFAULT_RETRY_DELAY,
    UPLOAD_TIMEOUT,
)

logger = logging.getLogger(__name__)

ParsingStrategy = Literal["fast", "high_quality"]

# Extensions that mimetypes commonly gets wrong for source files
_MIME_OVERRIDES = {
    ".ts": "text/typescript",
    ".py": "text/x-python",
    ".mdx": "text/mdx",
}


def detect_mime_type(file_path: Path) -> str:
    """Detect the MIME type of a file from its name.

    Args:
        file_path: Path to the file

    Returns:
        MIME type string (defaults to 'application/octet-stream')
    """
    override = _MIME_OVERRIDES.get(file_path.suffix.lower())
    if override:
        return override
    mime_type, _ = mimetypes.guess_type(str(file_path))
    return mime_type or "application/octet-stream"


class MxbaiClient:
    """Client for the Mixedbread store API.

    The client is constructed explicitly and passed to the components that
    need it. Use it as an async context manager to release connections:

        >>> async with MxbaiClient(api_key="mxb_...") as client:
        ...     store = await client.retrieve_store("docs")
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the API client.

        Args:
            api_key: API key (uses config if not provided)
            base_url: API base URL (uses config if not provided)
            max_retries: Maximum number of retry attempts (default: 3)
            retry_delay: Initial delay between retries in seconds (default: 1.0)
            timeout: Request timeout in seconds (default: 30.0)
            transport: Optional httpx transport (used by tests)
        """
        self.api_key = config.require_api_key(api_key)
        self.base_url = (base_url or config.base_url).rstrip("/")
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> MxbaiClient:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the client and release connections."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def _calculate_retry_delay(self, attempt: int) -> float:
        """Calculate delay before next retry using exponential backoff.

        Args:
            attempt: Current attempt number (0-based)

        Returns:
            Delay in seconds
        """
        base_delay = self.retry_delay * (2**attempt)
        # Add jitter: +/- 25% of base delay
        jitter = base_delay * 0.25 * (2 * random.random() - 1)
        return base_delay + jitter

    def _handle_http_error(
        self, e: httpx.HTTPStatusError, attempt: int
    ) -> tuple[MxbaiAPIError, bool]:
        """Map an HTTP error to an exception and decide whether to retry.

        Args:
            e: The HTTP error exception
            attempt: Current attempt number

        Returns:
            Tuple of (exception to raise, should_retry)
        """
        status_code = e.response.status_code

        if status_code == 401:
            raise MxbaiAuthenticationError(
                "Invalid API key or unauthorized access", status_code
            ) from e
        elif status_code == 403:
            raise MxbaiPermissionError(
                "Access forbidden - check your permissions", status_code
            ) from e
        elif status_code == 404:
            raise MxbaiNotFoundError(
                f"Resource not found: {e.request.url.path}", status_code
            ) from e
        elif status_code == 429:
            error: MxbaiAPIError = MxbaiRateLimitError(
                "Rate limit exceeded - please try again later", status_code
            )
            return (error, attempt < self.max_retries)

        error_msg = f"API request failed with status {status_code}"
        try:
            if e.response.content:
                error_data = e.response.json()
                if isinstance(error_data, dict):
                    msg = (
                        error_data.get("message")
                        or error_data.get("error")
                        or error_data.get("detail")
                    )
                    if msg:
                        error_msg = f"{error_msg}: {msg}"
        except ValueError:
            pass

        error = MxbaiAPIError(error_msg, status_code)
        should_retry = 500 <= status_code < 600 and attempt < self.max_retries
        return (error, should_retry)

    async def _request(self, method: str, endpoint: str, **kwargs: Any) -> Any:
        """Make an API request with retry logic.

        Args:
            method: HTTP method
            endpoint: API endpoint path
            **kwargs: Additional arguments passed to httpx

        Returns:
            Response JSON data

        Raises:
            MxbaiAPIError: If the request fails after all retries
        """
        client = self._get_client()
        last_exception: MxbaiAPIError | None = None

        for attempt in range(self.max_retries + 1):
            try:
                response = await client.request(method, endpoint, **kwargs)
                response.raise_for_status()

                if not response.content:
                    return {}
                try:
                    return response.json()
                except ValueError as e:
                    content_type = response.headers.get("Content-Type", "")
                    raise MxbaiInvalidResponseError(
                        f"Invalid JSON response from server ({content_type})"
                    ) from e

            except httpx.HTTPStatusError as e:
                error, should_retry = self._handle_http_error(e, attempt)
                last_exception = error
                if should_retry:
                    retry_after = e.response.headers.get("Retry-After")
                    if (
                        isinstance(error, MxbaiRateLimitError)
                        and retry_after
                        and retry_after.isdigit()
                    ):
                        delay = float(retry_after)
                    else:
                        delay = self._calculate_retry_delay(attempt)
                    logger.debug(
                        f"{method} {endpoint} failed ({error}), "
                        f"retrying in {delay:.1f}s"
                    )
                    await asyncio.sleep(delay)
                    continue
                raise error from e
            except httpx.RequestError as e:
                error = MxbaiNetworkError(f"Network error: {e}")
                last_exception = error
                if attempt < self.max_retries:
                    delay = self._calculate_retry_delay(attempt)
                    logger.debug(
                        f"{method} {endpoint} network error, retrying in {delay:.1f}s"
                    )
                    await asyncio.sleep(delay)
                    continue
                raise error from e

        if last_exception:
            raise last_exception
        raise MxbaiAPIError("Request failed after all retry attempts")

    # =========================
    # Store Operations
    # =========================

    async def create_store(self, name: str, description: str | None = None) -> Any:
        """Create a new store.

        Args:
            name: Store name
            description: Optional description

        Returns:
            The created store object
        """
        data: dict[str, Any] = {"name": name}
        if description:
            data["description"] = description
        return await self._request("POST", "/v1/stores", json=data)

    async def list_stores(
        self, limit: int = DEFAULT_PAGE_SIZE, after: str | None = None
    ) -> Any:
        """List one page of stores.

        Args:
            limit: Maximum number of stores to return
            after: Cursor returned by the previous page

        Returns:
            Page with 'data' and 'pagination' keys
        """
        params: dict[str, Any] = {"limit": limit}
        if after:
            params["after"] = after
        return await self._request("GET", "/v1/stores", params=params)

    async def iter_stores(
        self, page_size: int = DEFAULT_PAGE_SIZE
    ) -> AsyncIterator[dict[str, Any]]:
        """Iterate over all stores, following pagination cursors."""
        async for item in self._paginate(self.list_stores, page_size):
            yield item

    async def retrieve_store(self, identifier: str) -> Any:
        """Get a store by ID or name.

        Raises:
            MxbaiNotFoundError: If the store does not exist
        """
        return await self._request("GET", f"/v1/stores/{identifier}")

    async def delete_store(self, identifier: str) -> Any:
        """Delete a store and all of its files."""
        return await self._request("DELETE", f"/v1/stores/{identifier}")

    # =========================
    # Store File Operations
    # =========================

    async def list_store_files(
        self,
        store: str,
        limit: int = DEFAULT_PAGE_SIZE,
        after: str | None = None,
    ) -> Any:
        """List one page of files in a store.

        Args:
            store: Store identifier
            limit: Maximum number of files to return
            after: Cursor returned by the previous page

        Returns:
            Page with 'data' and 'pagination' keys
        """
        params: dict[str, Any] = {"limit": limit}
        if after:
            params["after"] = after
        return await self._request("GET", f"/v1/stores/{store}/files", params=params)

    async def iter_store_files(
        self, store: str, page_size: int = DEFAULT_PAGE_SIZE
    ) -> AsyncIterator[dict[str, Any]]:
        """Iterate over all files in a store, following pagination cursors.

        Args:
            store: Store identifier
            page_size: Number of files requested per page

        Yields:
            Store file objects including their 'metadata'
        """

        async def fetch_page(limit: int, after: str | None) -> Any:
            return await self.list_store_files(store, limit=limit, after=after)

        async for item in self._paginate(fetch_page, page_size):
            yield item

    async def _paginate(
        self, fetch_page: Any, page_size: int
    ) -> AsyncIterator[dict[str, Any]]:
        """Follow cursor pagination until the server reports no more pages."""
        after: str | None = None
        while True:
            page = await fetch_page(limit=page_size, after=after)
            if not isinstance(page, dict):
                raise MxbaiInvalidResponseError(f"Unexpected list response: {page}")
            data = page.get("data") or []
            if not data:
                break
            for item in data:
                yield item

            pagination = page.get("pagination") or {}
            cursor = pagination.get("last_cursor")
            if not pagination.get("has_more", True) or not cursor or cursor == after:
                break
            after = cursor

    async def retrieve_store_file(self, store: str, file_id: str) -> Any:
        """Get a single file of a store by ID."""
        return await self._request("GET", f"/v1/stores/{store}/files/{file_id}")

    async def delete_store_file(self, store: str, file_id: str) -> Any:
        """Delete a file from a store.

        Raises:
            MxbaiNotFoundError: If the file is already gone
        """
        return await self._request("DELETE", f"/v1/stores/{store}/files/{file_id}")

    async def upload_file(
        self,
        store: str,
        file_path: Path,
        metadata: dict[str, Any] | None = None,
        strategy: ParsingStrategy | None = None,
    ) -> Any:
        """Upload a local file and attach it to a store.

        The file is first created with a multipart request, then added to the
        store together with its metadata and parsing configuration.

        Args:
            store: Store identifier
            file_path: Local path to the file
            metadata: Metadata attached to the store file
            strategy: Parsing strategy (fast or high_quality)

        Returns:
            The created store file object
        """
        if not file_path.is_file():
            raise MxbaiFileNotFoundError(str(file_path))

        content = await asyncio.to_thread(file_path.read_bytes)
        files = {"file": (file_path.name, content, detect_mime_type(file_path))}
        upload_timeout = httpx.Timeout(UPLOAD_TIMEOUT)

        created = await self._request(
            "POST", "/v1/files", files=files, timeout=upload_timeout
        )
        file_id = created.get("id") if isinstance(created, dict) else None
        if not file_id:
            raise MxbaiUploadError(f"Invalid file creation response: {created}")

        data: dict[str, Any] = {"file_id": file_id, "metadata": metadata or {}}
        if strategy:
            data["config"] = {"parsing_strategy": strategy}
        return await self._request(
            "POST", f"/v1/stores/{store}/files", json=data, timeout=upload_timeout
        )
