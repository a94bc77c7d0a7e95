"""
RPC Client for NEAR

Provides an async JSON-RPC interface with:
- Prioritized endpoint failover
- Retry logic with linear backoff
- Rate limit handling
- Request timeout management
- call_function helpers (base64 JSON args, JSON-decoded byte results)
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

import httpx

from ..errors import ErrorCode, ReadError, ConfigurationError
from ..config import config as global_config

logger = logging.getLogger(__name__)

# Substrings of contract-side errors meaning the view method is absent
METHOD_NOT_FOUND_MARKERS = ("MethodNotFound", "MethodResolveError")


@dataclass
class RpcClientConfig:
    """
    RPC client runtime configuration

    Allows per-client overrides while pulling defaults from the global
    config (amm_orchestrator.config.RpcConfig).

    Usage:
        # Use all defaults from environment
        client = RpcClient()

        # Override specific settings
        config = RpcClientConfig(timeout_seconds=10, max_retries=1)
        client = RpcClient(["https://rpc.mainnet.near.org"], config=config)
    """
    timeout_seconds: float = None
    max_retries: int = None
    retry_delay_seconds: float = None
    finality: str = None
    endpoint_failure_threshold: int = None

    def __post_init__(self):
        """Apply defaults from global config for any unset values"""
        if self.timeout_seconds is None:
            self.timeout_seconds = global_config.rpc.timeout_seconds
        if self.max_retries is None:
            self.max_retries = global_config.rpc.max_retries
        if self.retry_delay_seconds is None:
            self.retry_delay_seconds = global_config.rpc.retry_delay_seconds
        if self.finality is None:
            self.finality = global_config.rpc.finality
        if self.endpoint_failure_threshold is None:
            self.endpoint_failure_threshold = global_config.rpc.endpoint_failure_threshold


def _is_method_not_found(message: str) -> bool:
    return any(marker in message for marker in METHOD_NOT_FOUND_MARKERS)


class RpcClient:
    """
    Async NEAR JSON-RPC client

    Supports:
    - Multiple RPC endpoints tried in priority order
    - Retry logic for transient failures
    - Demotion of an endpoint after repeated failures
    - Configurable timeouts

    Usage:
        rpc = RpcClient([
            "https://primary-rpc.example.com",
            "https://rpc.mainnet.near.org",
        ])

        pool = await rpc.call_function("v2.ref-finance.near", "get_pool", {"pool_id": 5094})
        account = await rpc.view_account("alice.near")
        await rpc.close()
    """

    def __init__(
        self,
        endpoint: Union[str, List[str], None] = None,
        config: Optional[RpcClientConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize RPC client

        Args:
            endpoint: RPC endpoint URL or prioritized list of URLs
                (defaults to the configured endpoint list)
            config: RPC configuration options
            transport: Optional httpx transport (used by tests)
        """
        if endpoint is None:
            endpoint = global_config.rpc.endpoints()
        self._endpoints = [endpoint] if isinstance(endpoint, str) else list(endpoint)
        if not self._endpoints:
            raise ConfigurationError.missing("RPC endpoint")

        self._config = config or RpcClientConfig()
        self._transport = transport
        self._current_endpoint_idx = 0
        self._failures: Dict[str, int] = {}
        self._client: Optional[httpx.AsyncClient] = None
        self._request_id = 0

    @property
    def endpoint(self) -> str:
        """Current preferred endpoint"""
        return self._endpoints[self._current_endpoint_idx]

    @property
    def endpoints(self) -> List[str]:
        return list(self._endpoints)

    @property
    def finality(self) -> str:
        """Default finality for view calls"""
        return self._config.finality

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client"""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._config.timeout_seconds,
                headers={"Content-Type": "application/json"},
                transport=self._transport,
            )
        return self._client

    def _rotate_endpoint(self):
        """Demote the preferred endpoint"""
        if len(self._endpoints) > 1:
            self._current_endpoint_idx = (self._current_endpoint_idx + 1) % len(self._endpoints)
            logger.info(f"Rotating to RPC endpoint: {self.endpoint}")

    def _record_failure(self, endpoint: str):
        count = self._failures.get(endpoint, 0) + 1
        self._failures[endpoint] = count
        if count >= self._config.endpoint_failure_threshold and endpoint == self.endpoint:
            logger.warning(f"Disabling {endpoint} after {count} consecutive failures")
            self._failures[endpoint] = 0
            self._rotate_endpoint()

    def _next_request_id(self) -> int:
        self._request_id += 1
        return self._request_id

    async def _post(self, endpoint: str, body: Dict[str, Any], timeout: float) -> Dict[str, Any]:
        response = await self._get_client().post(endpoint, json=body, timeout=timeout)
        if response.status_code == 429:
            raise ReadError.rate_limited(endpoint)
        response.raise_for_status()
        return response.json()

    async def call(
        self,
        method: str,
        params: Union[List[Any], Dict[str, Any]],
        timeout: Optional[float] = None,
    ) -> Any:
        """
        Make JSON-RPC call

        Endpoints are tried starting from the preferred one; each gets
        ``max_retries`` attempts before the next is tried. An error body
        from the node is raised immediately.

        Args:
            method: RPC method name
            params: RPC parameters
            timeout: Optional timeout override

        Returns:
            RPC result

        Raises:
            ReadError: On RPC failure
        """
        timeout_val = timeout or self._config.timeout_seconds
        body = {
            "jsonrpc": "2.0",
            "id": self._next_request_id(),
            "method": method,
            "params": params,
        }

        last_error: Optional[Exception] = None
        start = self._current_endpoint_idx

        for offset in range(len(self._endpoints)):
            endpoint = self._endpoints[(start + offset) % len(self._endpoints)]

            for attempt in range(self._config.max_retries):
                try:
                    result = await self._post(endpoint, body, timeout_val)

                    if "error" in result:
                        error = result["error"]
                        message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
                        data = error.get("data") if isinstance(error, dict) else None
                        if _is_method_not_found(f"{message} {data}"):
                            raise ReadError(
                                f"RPC error: {message}",
                                ErrorCode.READ_METHOD_NOT_FOUND,
                                endpoint=endpoint,
                                details={"rpc_error_data": data},
                            )
                        raise ReadError.remote_error(endpoint, message, data)

                    self._failures.pop(endpoint, None)
                    if offset > 0:
                        logger.warning(f"Used fallback RPC endpoint {endpoint}")
                    return result.get("result")

                except ReadError as e:
                    if e.code != ErrorCode.READ_RATE_LIMITED:
                        raise
                    last_error = e
                    logger.warning(f"Rate limited by {endpoint} (attempt {attempt + 1})")

                except httpx.TimeoutException:
                    last_error = ReadError.timeout(endpoint, timeout_val)
                    logger.warning(f"RPC timeout (attempt {attempt + 1}): {endpoint}")

                except httpx.HTTPStatusError as e:
                    last_error = ReadError(
                        f"HTTP error {e.response.status_code}",
                        endpoint=endpoint,
                        original_error=e,
                    )
                    logger.warning(f"RPC HTTP error (attempt {attempt + 1}): {e}")

                except httpx.RequestError as e:
                    last_error = ReadError.connection_failed(endpoint, e)
                    logger.warning(f"RPC connection error (attempt {attempt + 1}): {e}")

                except ValueError as e:
                    last_error = ReadError.invalid_response("json-rpc", str(e))
                    logger.warning(f"RPC returned non-JSON body (attempt {attempt + 1}): {endpoint}")

                if attempt < self._config.max_retries - 1:
                    await asyncio.sleep(self._config.retry_delay_seconds * (attempt + 1))

            self._record_failure(endpoint)

        raise ReadError.all_endpoints_failed(last_error)

    async def query(self, request: Dict[str, Any]) -> Dict[str, Any]:
        """Raw ``query`` RPC with default finality"""
        params = dict(request)
        if "finality" not in params and "block_id" not in params:
            params["finality"] = self.finality
        result = await self.call("query", params)
        if not isinstance(result, dict):
            raise ReadError.invalid_response("query", f"expected object, got {type(result).__name__}")
        return result

    async def call_function(
        self,
        contract_id: str,
        method_name: str,
        args: Optional[Dict[str, Any]] = None,
        finality: Optional[str] = None,
    ) -> Any:
        """
        Call a contract view method

        Args:
            contract_id: Contract account id
            method_name: View method name
            args: JSON arguments
            finality: Finality override

        Returns:
            JSON-decoded method result (None for an empty result)

        Raises:
            ReadError: On transport failure, contract error, or undecodable result
        """
        args_base64 = base64.b64encode(json.dumps(args or {}).encode("utf-8")).decode("ascii")
        request = {
            "request_type": "call_function",
            "account_id": contract_id,
            "method_name": method_name,
            "args_base64": args_base64,
            "finality": finality or self.finality,
        }
        try:
            result = await self.query(request)
        except ReadError as e:
            if e.is_method_not_found:
                raise ReadError.method_not_found(contract_id, method_name) from e
            raise

        # Contract panics come back inside the result rather than as an RPC error
        if "error" in result:
            message = str(result["error"])
            if _is_method_not_found(message):
                raise ReadError.method_not_found(contract_id, method_name)
            raise ReadError(
                f"{contract_id}.{method_name} failed: {message}",
                ErrorCode.READ_REMOTE_ERROR,
                details={"contract_id": contract_id, "method": method_name},
            )

        raw = result.get("result")
        if not isinstance(raw, list):
            raise ReadError.invalid_response(method_name, "missing result bytes")
        if not raw:
            return None
        try:
            return json.loads(bytes(raw).decode("utf-8"))
        except (ValueError, TypeError) as e:
            raise ReadError.invalid_response(method_name, f"result is not JSON: {e}")

    async def view_account(self, account_id: str, finality: Optional[str] = None) -> Dict[str, Any]:
        """
        Get account state (native balance in ``amount``)

        Returns:
            Account view with amount, locked, storage_usage
        """
        return await self.query({
            "request_type": "view_account",
            "account_id": account_id,
            "finality": finality or self.finality,
        })

    async def tx_status(self, tx_hash: str, sender_id: str) -> Dict[str, Any]:
        """
        Get final execution outcome of a transaction

        Returns:
            Outcome with a ``status`` of SuccessValue, SuccessReceiptId or Failure
        """
        result = await self.call("tx", [tx_hash, sender_id])
        if not isinstance(result, dict):
            raise ReadError.invalid_response("tx", f"expected object, got {type(result).__name__}")
        return result

    async def health_status(self) -> List[Dict[str, Any]]:
        """
        Probe every endpoint concurrently

        Returns:
            One entry per endpoint: endpoint, healthy, response_time (seconds)
        """
        async def probe(endpoint: str) -> Dict[str, Any]:
            started = time.monotonic()
            body = {"jsonrpc": "2.0", "id": self._next_request_id(), "method": "status", "params": []}
            try:
                result = await self._post(endpoint, body, self._config.timeout_seconds)
                healthy = "error" not in result
            except (httpx.HTTPError, ReadError, ValueError) as e:
                logger.debug(f"Health probe failed for {endpoint}: {e}")
                healthy = False
            return {
                "endpoint": endpoint,
                "healthy": healthy,
                "response_time": time.monotonic() - started,
            }

        return list(await asyncio.gather(*(probe(endpoint) for endpoint in self._endpoints)))

    async def close(self):
        """Close HTTP client"""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
