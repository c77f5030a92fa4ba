"""
Base HTTP client with error handling.

Thread-safe, with connect/read timeouts. Requests are never retried here:
retry policy belongs to the caller.

PERFORMANCE OPTIMIZATION: orjson for JSON parsing (releases GIL)
"""

import orjson
import requests
from requests.adapters import HTTPAdapter
from typing import Optional, Any, Dict
from urllib.parse import urljoin
import logging

from ..config import KuestSettings
from ..exceptions import (
    APIError,
    TimeoutError,
    RateLimitError,
    AuthenticationError
)

logger = logging.getLogger(__name__)


def dumps_compact(data: Any) -> str:
    """Serialize a request body exactly as it is signed and sent."""
    return orjson.dumps(data).decode("utf-8")


class BaseAPIClient:
    """
    Base HTTP client with error mapping.

    Thread-safe for concurrent use.
    """

    def __init__(self, base_url: str, settings: KuestSettings):
        """
        Initialize base API client.

        Args:
            base_url: API base URL
            settings: Client settings
        """
        self.base_url = base_url
        self.settings = settings

        self.session = requests.Session()

        adapter = HTTPAdapter(
            pool_connections=10,
            pool_maxsize=50,
            max_retries=0,  # No transport-level retries
            pool_block=False
        )
        self.session.mount('https://', adapter)
        self.session.mount('http://', adapter)

        self.session.headers.update({
            "Content-Type": "application/json",
            "Accept": "application/json",
            "Connection": "keep-alive",
        })

        self.timeout = (settings.connect_timeout, settings.request_timeout)

    def _make_request(
        self,
        method: str,
        path: str,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[str] = None
    ) -> Any:
        """
        Make HTTP request with error handling.

        Args:
            method: HTTP method
            path: Request path
            headers: Additional headers
            params: Query parameters
            data: Pre-serialized JSON body (sent byte-for-byte)

        Returns:
            Response JSON

        Raises:
            APIError: On HTTP errors
            AuthenticationError: On 401/403
            TimeoutError: On timeout
            RateLimitError: On rate limit
        """
        url = urljoin(self.base_url, path)

        request_headers = self.session.headers.copy()
        if headers:
            request_headers.update(headers)

        if self.settings.log_requests:
            logger.debug(f"{method} {url} params={params}")

        try:
            response = self.session.request(
                method=method,
                url=url,
                headers=request_headers,
                params=params,
                data=data.encode("utf-8") if data is not None else None,
                timeout=self.timeout
            )
        except requests.exceptions.Timeout as e:
            logger.error(f"Request timeout: {method} {path}")
            raise TimeoutError(
                f"Request timeout: {method} {path}", method=method, path=path
            ) from e
        except requests.exceptions.RequestException as e:
            logger.error(f"Connection error: {method} {path}: {type(e).__name__}")
            raise APIError(
                f"Connection error: {method} {path}: {type(e).__name__}",
                method=method,
                path=path
            ) from e

        if response.status_code >= 400:
            error_data = None
            error_msg = f"{method} {path} failed with {response.status_code}"
            try:
                error_data = orjson.loads(response.content)
                error_msg += f": {error_data}"
            except orjson.JSONDecodeError as e:
                logger.debug(f"Could not parse error response as JSON: {e}")
                error_msg += f": {response.text[:200]}"

            if response.status_code in (401, 403):
                raise AuthenticationError(error_msg, {
                    "status_code": response.status_code,
                    "method": method,
                    "path": path,
                })
            if response.status_code == 429:
                retry_after = response.headers.get("Retry-After")
                raise RateLimitError(
                    error_msg,
                    endpoint=path,
                    retry_after=float(retry_after) if retry_after else None
                )
            raise APIError(
                error_msg,
                status_code=response.status_code,
                response=error_data,
                method=method,
                path=path
            )

        if not response.content:
            return None

        try:
            return orjson.loads(response.content)
        except orjson.JSONDecodeError as e:
            logger.error(f"Invalid JSON response from {method} {path}")
            raise APIError(
                f"Invalid JSON response: {e}",
                status_code=response.status_code,
                method=method,
                path=path
            ) from e

    def get(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> Any:
        """Make GET request."""
        return self._make_request("GET", path, headers=headers, params=params)

    def post(
        self,
        path: str,
        data: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> Any:
        """Make POST request with a pre-serialized body."""
        return self._make_request("POST", path, headers=headers, data=data)

    def delete(
        self,
        path: str,
        data: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> Any:
        """Make DELETE request with a pre-serialized body."""
        return self._make_request("DELETE", path, headers=headers, data=data)

    def close(self) -> None:
        """Close session and cleanup resources."""
        self.session.close()
        logger.info("API client session closed")
