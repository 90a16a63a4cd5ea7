"""
Low-level brokerage Open API call function.

One GET per queued request; any transport error, HTTP error, undecodable
body or non-zero brokerage result code is raised as ``OpenApiError`` so the
consumer can treat it as a retryable dispatch failure.
"""

import json
import logging
from typing import Any, Dict, Optional

import httpx

from openapi_queue.credentials import Credential

logger = logging.getLogger(__name__)


class OpenApiError(Exception):
    """A single Open API call failed."""

    def __init__(
        self,
        message: str,
        endpoint: str,
        request_kind: str,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.endpoint = endpoint
        self.request_kind = request_kind
        self.status_code = status_code

    def __str__(self) -> str:
        status = f" status={self.status_code}" if self.status_code is not None else ""
        return f"{self.args[0]} (URL:{self.endpoint}, trId: {self.request_kind}{status})"


class OpenApiClient:
    """
    Callable used by RequestConsumer as its call function.

    Usage::

        client = OpenApiClient("https://openapi.koreainvestment.com:9443")
        data = await client(endpoint, credential, {"fid_input_iscd": "005930"}, "FHKST01010100")
        ...
        await client.aclose()
    """

    def __init__(
        self,
        base_url: str,
        timeout_s: float = 10.0,
        customer_type: str = "P",
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self.customer_type = customer_type
        self._client = http_client
        self._owns_client = http_client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout_s))
        return self._client

    def _merge_url(self, endpoint: str) -> str:
        if endpoint.startswith("http"):
            return endpoint
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    async def __call__(
        self,
        endpoint: str,
        credential: Credential,
        parameters: Dict[str, Any],
        request_kind: str,
    ) -> Dict[str, Any]:
        headers = {
            "content-type": "application/json; charset=utf-8",
            **credential.auth_headers(),
            "tr_id": request_kind,
            "custtype": self.customer_type,
        }
        url = self._merge_url(endpoint)

        try:
            response = await self._get_client().get(url, headers=headers, params=parameters)
        except httpx.HTTPError as e:
            raise OpenApiError(f"Request failed: {e!r}", endpoint, request_kind) from e

        if response.status_code >= 400:
            raise OpenApiError(
                f"Unexpected response: {response.text[:200]}",
                endpoint,
                request_kind,
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except json.JSONDecodeError as e:
            raise OpenApiError(
                "Response body is not valid JSON",
                endpoint,
                request_kind,
                status_code=response.status_code,
            ) from e

        if not isinstance(body, dict):
            raise OpenApiError(
                f"Expected a JSON object, got {type(body).__name__}",
                endpoint,
                request_kind,
                status_code=response.status_code,
            )

        # rt_cd "0" = success; anything else is a brokerage-level rejection
        rt_cd = body.get("rt_cd")
        if rt_cd is not None and str(rt_cd) != "0":
            raise OpenApiError(
                f"Open API rejected request: [{body.get('msg_cd', '')}] {body.get('msg1', '')}".rstrip(),
                endpoint,
                request_kind,
                status_code=response.status_code,
            )

        logger.debug("Open API call succeeded (URL:%s, trId: %s)", endpoint, request_kind)
        return body

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None
