"""
HTTP Transport - timeout-bounded requests with failure classification.

Every request has an explicit timeout. Failures become AdapterErrors:

    requests Timeout            -> TIMEOUT       (transient)
    ConnectionError / other     -> NETWORK       (transient)
    HTTP 429                    -> RATE_LIMITED  (transient)
    HTTP 5xx                    -> SERVER_ERROR  (transient)
    other HTTP 4xx              -> CLIENT_ERROR  (permanent)
    body that is not JSON       -> PROTOCOL      (permanent)
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests
from requests.exceptions import ConnectionError as RequestsConnectionError
from requests.exceptions import RequestException, Timeout

from ..errors import AdapterError, AdapterReason


logger = logging.getLogger(__name__)

# Default timeout in seconds
DEFAULT_TIMEOUT = 30.0

MAX_ERROR_BODY = 1000


def classify_status(status_code: int) -> Optional[AdapterReason]:
    """Reason for an HTTP status, or None for success."""
    if status_code < 400:
        return None
    if status_code == 429:
        return AdapterReason.RATE_LIMITED
    if status_code >= 500:
        return AdapterReason.SERVER_ERROR
    return AdapterReason.CLIENT_ERROR


class HttpTransport:
    """
    Thin wrapper over a requests Session.

    Usage:
        transport = HttpTransport("https://shop.example/admin-api", bearer_token="...")
        payload = transport.request_json("POST", "", json={"query": "..."})
    """

    def __init__(
        self,
        base_url: str = "",
        default_headers: Optional[Dict[str, str]] = None,
        timeout: float = DEFAULT_TIMEOUT,
        bearer_token: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ):
        """
        Args:
            base_url: Prefix for every request path
            default_headers: Headers added to every request
            timeout: Per-request timeout in seconds
            bearer_token: Sent as ``Authorization: Bearer ...``
            session: Session to use (a new one if omitted)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

        self.headers: Dict[str, str] = {"Accept": "application/json", **(default_headers or {})}
        if bearer_token:
            self.headers["Authorization"] = f"Bearer {bearer_token}"

    def url_for(self, path: str) -> str:
        if not path:
            return self.base_url
        if path.startswith(("http://", "https://")):
            return path
        if not self.base_url:
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def request_json(
        self,
        method: str,
        path: str = "",
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        headers: Optional[Dict[str, str]] = None,
        **context: Any,
    ) -> Any:
        """
        Send a request and decode the JSON body.

        Raises:
            AdapterError: Classified as described in the module docstring
        """
        url = self.url_for(path)
        try:
            response = self.session.request(
                method=method,
                url=url,
                params=params,
                json=json,
                headers={**self.headers, **(headers or {})},
                timeout=self.timeout,
            )
        except Timeout as e:
            raise AdapterError(
                AdapterReason.TIMEOUT,
                f"{method} {url} timed out after {self.timeout}s",
                url=url,
                **context,
            ) from e
        except RequestsConnectionError as e:
            raise AdapterError(
                AdapterReason.NETWORK,
                f"{method} {url} failed to connect: {e}",
                url=url,
                **context,
            ) from e
        except RequestException as e:
            raise AdapterError(
                AdapterReason.NETWORK,
                f"{method} {url} failed: {e}",
                url=url,
                **context,
            ) from e

        reason = classify_status(response.status_code)
        if reason is not None:
            body = response.text[:MAX_ERROR_BODY] if response.text else None
            logger.debug("%s %s -> HTTP %s", method, url, response.status_code)
            raise AdapterError(
                reason,
                f"{method} {url} returned HTTP {response.status_code}",
                status_code=response.status_code,
                response_body=body,
                url=url,
                **context,
            )

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise AdapterError(
                AdapterReason.PROTOCOL,
                f"{method} {url} returned a non-JSON body",
                status_code=response.status_code,
                response_body=response.text[:MAX_ERROR_BODY],
                url=url,
                **context,
            ) from e

    def close(self) -> None:
        self.session.close()


__all__ = ["HttpTransport", "classify_status", "DEFAULT_TIMEOUT"]
