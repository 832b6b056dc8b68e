"""
Thin HTTP client for the chain gateway.

The gateway owns the chain connection, the keyring and the transaction
pipeline. This client fetches the metadata document and the account
directory, and forwards resolved call descriptors for execution. Gateway
errors are mapped to internal exceptions that the HTTP layer can turn into
safe, user-facing messages.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from pallet_interactor.config import InteractorConfig, default_config
from pallet_interactor.interactor.dispatch import CallDescriptor

logger = logging.getLogger(__name__)


class GatewayApiError(Exception):
    """Base exception for gateway API errors."""

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.status_code = status_code


class UnauthorizedError(GatewayApiError):
    """Raised when the gateway rejects the request due to missing auth."""


class GatewayUnreachableError(GatewayApiError):
    """Raised when the gateway cannot be reached."""


class CallRejectedError(GatewayApiError):
    """Raised when the gateway refuses to execute a call descriptor."""


class GatewayApiClient:
    """Async client for the gateway's metadata, account and call endpoints."""

    def __init__(
        self,
        config: InteractorConfig | None = None,
        *,
        async_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.config = config or default_config
        self._client: Optional[httpx.AsyncClient] = async_client
        self._owns_client = async_client is None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.config.gateway_url, timeout=self.config.timeout
            )
            self._owns_client = True
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _map_error(
        self, error_code: str | int | None, status_code: int, message: str | None = None
    ) -> GatewayApiError:
        normalized = ""
        if isinstance(error_code, int):
            normalized = str(error_code)
        elif isinstance(error_code, str):
            normalized = error_code.upper()
        code = normalized or None
        # Gateway messages are surfaced verbatim as submission status text.
        detail = message or "Gateway API error."

        if status_code in {401, 403} or normalized in {"UNAUTHORIZED", "FORBIDDEN"}:
            return UnauthorizedError(
                "Unauthorized or API key required.", code=code, status_code=status_code
            )
        rejected_signals = {
            "INVALID_CALL",
            "UNKNOWN_CALL",
            "INVALID_ARGUMENTS",
            "SIGNER_UNKNOWN",
            "DISPATCH_ERROR",
        }
        if normalized in rejected_signals or status_code in {400, 422}:
            return CallRejectedError(detail, code=code, status_code=status_code)
        if status_code == 404:
            return GatewayApiError("Resource not found.", code=code, status_code=status_code)
        if status_code in {502, 503, 504}:
            return GatewayUnreachableError("Chain node unreachable", code=code, status_code=status_code)
        return GatewayApiError(detail, code=code, status_code=status_code)

    def _build_headers(self) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        if self.config.api_key:
            headers["X-API-KEY"] = self.config.api_key
        return headers

    def _process_response(self, response: httpx.Response, *, expect_dict: bool) -> Any:
        if response.status_code == 401:
            raise UnauthorizedError("Unauthorized or API key required.", status_code=401)

        try:
            data: Any = response.json()
        except ValueError:
            data = None

        if response.status_code >= 400:
            error_field: Optional[str | int] = None
            message_field: Optional[str] = None
            if isinstance(data, dict):
                raw_error = data.get("error")
                if isinstance(raw_error, (str, int)):
                    error_field = raw_error
                raw_message = data.get("message")
                if isinstance(raw_message, str):
                    message_field = raw_message
            raise self._map_error(error_field, response.status_code, message=message_field)

        if data is None:
            raise GatewayApiError("Unexpected response from gateway.", status_code=response.status_code)

        if expect_dict and not isinstance(data, dict):
            raise GatewayApiError("Unexpected response from gateway.", status_code=response.status_code)

        return data

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json_body: Optional[Dict[str, Any]] = None,
        expect_dict: bool = True,
    ) -> Any:
        client = await self._get_client()
        headers = self._build_headers()
        try:
            response = await client.request(method, path, json=json_body, headers=headers)
        except httpx.RequestError as exc:
            logger.warning("Gateway unreachable for %s %s", method, path)
            raise GatewayUnreachableError("Gateway unreachable") from exc
        return self._process_response(response, expect_dict=expect_dict)

    async def fetch_metadata(self) -> Dict[str, Any]:
        """Retrieve the decorated metadata document (query/tx/rpc/consts trees)."""
        data = await self._request("GET", "/metadata")
        # Some gateways wrap the document in {"metadata": {...}}.
        inner = data.get("metadata")
        return inner if isinstance(inner, dict) else data

    async def fetch_accounts(self) -> List[Dict[str, Any]]:
        """Retrieve the keyring's account directory."""
        data = await self._request("GET", "/accounts", expect_dict=False)
        if isinstance(data, dict):
            data = data.get("accounts")
        return data if isinstance(data, list) else []

    async def submit(
        self, descriptor: CallDescriptor, *, mode: str, signer: Optional[str] = None
    ) -> str:
        """Forward a call descriptor for execution and return the gateway's status text."""
        body: Dict[str, Any] = {**descriptor.to_dict(), "mode": mode}
        if signer:
            body["signer"] = signer
        data = await self._request("POST", "/calls", json_body=body)
        status = data.get("status")
        if status is None:
            status = data.get("result")
        return "" if status is None else str(status)


default_client = GatewayApiClient()
