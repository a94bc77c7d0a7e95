"""
Test RPC Client with Mocks

Tests for RPC client behavior with mocked HTTP responses (httpx.MockTransport).
"""

import sys
import json
import base64
import asyncio
from pathlib import Path

import httpx
import pytest

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))


PRIMARY = "https://primary.example.com"
BACKUP = "https://backup.example.com"


def _view_result(value):
    """call_function result carrying ``value`` as JSON bytes"""
    return {"result": list(json.dumps(value).encode("utf-8")), "logs": [], "block_height": 1, "block_hash": "h"}


def _rpc_response(result=None, error=None, request_id=1):
    body = {"jsonrpc": "2.0", "id": request_id}
    if error is not None:
        body["error"] = error
    else:
        body["result"] = result
    return httpx.Response(200, json=body)


def _client(handler, endpoints=PRIMARY, **overrides):
    from amm_orchestrator.infra.rpc import RpcClient, RpcClientConfig

    settings = dict(
        timeout_seconds=5.0,
        max_retries=1,
        retry_delay_seconds=0.0,
        finality="final",
        endpoint_failure_threshold=1,
    )
    settings.update(overrides)
    return RpcClient(endpoints, config=RpcClientConfig(**settings), transport=httpx.MockTransport(handler))


def test_rpc_config_override():
    """Test RpcClientConfig with overrides"""
    from amm_orchestrator.infra.rpc import RpcClientConfig

    print("Testing RpcClientConfig override...")

    config = RpcClientConfig(timeout_seconds=60.0, max_retries=5, finality="optimistic")

    assert config.timeout_seconds == 60.0, "Should use override timeout"
    assert config.max_retries == 5, "Should use override retries"
    assert config.finality == "optimistic", "Should use override finality"
    assert config.retry_delay_seconds is not None, "Unset values come from global config"

    print("  RpcClientConfig override: PASSED")


def test_rpc_client_init():
    """Test RpcClient initialization"""
    from amm_orchestrator.infra.rpc import RpcClient
    from amm_orchestrator.errors import ConfigurationError

    print("Testing RpcClient init...")

    client = RpcClient("https://rpc.mainnet.near.org")
    assert client.endpoint == "https://rpc.mainnet.near.org"

    client = RpcClient([PRIMARY, BACKUP])
    assert client.endpoint == PRIMARY
    assert client.endpoints == [PRIMARY, BACKUP]

    with pytest.raises(ConfigurationError):
        RpcClient([])

    print("  RpcClient init: PASSED")


def test_call_function_decodes_bytes():
    """Test call_function args encoding and JSON byte result decoding"""
    print("Testing call_function...")

    seen = {}

    def handler(request):
        body = json.loads(request.content)
        seen.update(body["params"])
        assert body["method"] == "query"
        return _rpc_response(_view_result({"amounts": ["1", "2"]}))

    async def run():
        rpc = _client(handler)
        try:
            return await rpc.call_function("v2.ref-finance.near", "get_pool", {"pool_id": 5094})
        finally:
            await rpc.close()

    result = asyncio.run(run())

    assert result == {"amounts": ["1", "2"]}
    assert seen["request_type"] == "call_function"
    assert seen["account_id"] == "v2.ref-finance.near"
    assert seen["method_name"] == "get_pool"
    assert seen["finality"] == "final"
    assert json.loads(base64.b64decode(seen["args_base64"])) == {"pool_id": 5094}

    print("  call_function: PASSED")


def test_call_function_empty_result():
    """Test an empty byte result decodes to None"""
    print("Testing empty result...")

    def handler(request):
        return _rpc_response({"result": [], "logs": []})

    async def run():
        rpc = _client(handler)
        try:
            return await rpc.call_function("token.near", "storage_balance_of", {"account_id": "a.near"})
        finally:
            await rpc.close()

    assert asyncio.run(run()) is None

    print("  Empty result: PASSED")


def test_call_function_method_not_found():
    """Test MethodNotFound in an RPC error body and in a query result"""
    from amm_orchestrator.errors import ReadError, ErrorCode

    print("Testing method not found...")

    def error_body(request):
        return _rpc_response(error={
            "code": -32000,
            "message": "Server error",
            "data": "wasm execution failed with error: MethodResolveError(MethodNotFound)",
        })

    def error_result(request):
        return _rpc_response({
            "error": "wasm execution failed with error: FunctionCallError(MethodResolveError(MethodNotFound))",
            "logs": [],
        })

    async def run(handler):
        rpc = _client(handler)
        try:
            await rpc.call_function("legacy.near", "storage_balance_of", {"account_id": "a.near"})
        finally:
            await rpc.close()

    for handler in (error_body, error_result):
        with pytest.raises(ReadError) as exc_info:
            asyncio.run(run(handler))
        assert exc_info.value.code == ErrorCode.READ_METHOD_NOT_FOUND
        assert exc_info.value.details["contract_id"] == "legacy.near"

    print("  Method not found: PASSED")


def test_call_function_contract_panic():
    """Test other contract errors surface as ReadError"""
    from amm_orchestrator.errors import ReadError, ErrorCode

    print("Testing contract panic...")

    def handler(request):
        return _rpc_response({"error": "Smart contract panicked: E4 pool not found", "logs": []})

    async def run():
        rpc = _client(handler)
        try:
            await rpc.call_function("v2.ref-finance.near", "get_pool", {"pool_id": 99999999})
        finally:
            await rpc.close()

    with pytest.raises(ReadError) as exc_info:
        asyncio.run(run())
    assert exc_info.value.code == ErrorCode.READ_REMOTE_ERROR
    assert not exc_info.value.is_method_not_found

    print("  Contract panic: PASSED")


def test_remote_error_not_retried():
    """Test an RPC error body is raised without failover"""
    from amm_orchestrator.errors import ReadError, ErrorCode

    print("Testing remote error...")

    calls = []

    def handler(request):
        calls.append(str(request.url))
        return _rpc_response(error={"code": -32000, "message": "UNKNOWN_ACCOUNT", "data": "account does not exist"})

    async def run():
        rpc = _client(handler, [PRIMARY, BACKUP])
        try:
            await rpc.view_account("ghost.near")
        finally:
            await rpc.close()

    with pytest.raises(ReadError) as exc_info:
        asyncio.run(run())
    assert exc_info.value.code == ErrorCode.READ_REMOTE_ERROR
    assert len(calls) == 1, "Error bodies are answers, not transport failures"

    print("  Remote error: PASSED")


def test_failover_and_rotation():
    """Test failing endpoint is skipped and demoted"""
    print("Testing failover...")

    calls = []

    def handler(request):
        url = str(request.url).rstrip("/")
        calls.append(url)
        if url == PRIMARY:
            return httpx.Response(503, text="unavailable")
        return _rpc_response({"amount": "42", "locked": "0"})

    async def run():
        rpc = _client(handler, [PRIMARY, BACKUP])
        try:
            result = await rpc.view_account("alice.near")
            return result, rpc.endpoint
        finally:
            await rpc.close()

    result, endpoint = asyncio.run(run())

    assert result["amount"] == "42"
    assert calls == [PRIMARY, BACKUP]
    assert endpoint == BACKUP, "Failing endpoint should lose its preferred slot"

    print("  Failover: PASSED")


def test_all_endpoints_failed():
    """Test failure on every endpoint"""
    from amm_orchestrator.errors import ReadError, ErrorCode

    print("Testing all endpoints failed...")

    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    async def run():
        rpc = _client(handler, [PRIMARY, BACKUP], max_retries=2)
        try:
            await rpc.call("status", [])
        finally:
            await rpc.close()

    with pytest.raises(ReadError) as exc_info:
        asyncio.run(run())
    assert exc_info.value.code == ErrorCode.READ_ALL_ENDPOINTS_FAILED
    assert isinstance(exc_info.value.original_error, ReadError)
    assert exc_info.value.original_error.code == ErrorCode.READ_CONNECTION_FAILED

    print("  All endpoints failed: PASSED")


def test_rate_limited_retries():
    """Test 429 is retried on the same endpoint"""
    print("Testing rate limit retry...")

    attempts = []

    def handler(request):
        attempts.append(1)
        if len(attempts) == 1:
            return httpx.Response(429)
        return _rpc_response({"amount": "1"})

    async def run():
        rpc = _client(handler, max_retries=2)
        try:
            return await rpc.view_account("alice.near")
        finally:
            await rpc.close()

    assert asyncio.run(run())["amount"] == "1"
    assert len(attempts) == 2

    print("  Rate limit retry: PASSED")


def test_tx_status_params():
    """Test tx status request shape"""
    print("Testing tx status...")

    seen = {}

    def handler(request):
        body = json.loads(request.content)
        seen["method"] = body["method"]
        seen["params"] = body["params"]
        return _rpc_response({"status": {"SuccessValue": ""}})

    async def run():
        rpc = _client(handler)
        try:
            return await rpc.tx_status("9xQ", "alice.near")
        finally:
            await rpc.close()

    result = asyncio.run(run())
    assert result["status"] == {"SuccessValue": ""}
    assert seen == {"method": "tx", "params": ["9xQ", "alice.near"]}

    print("  tx status: PASSED")


def test_health_status():
    """Test endpoint probing"""
    print("Testing health status...")

    def handler(request):
        if str(request.url).startswith(PRIMARY):
            return _rpc_response({"chain_id": "mainnet"})
        return httpx.Response(500)

    async def run():
        rpc = _client(handler, [PRIMARY, BACKUP])
        try:
            return await rpc.health_status()
        finally:
            await rpc.close()

    statuses = asyncio.run(run())
    assert [s["healthy"] for s in statuses] == [True, False]
    assert all(s["response_time"] >= 0 for s in statuses)

    print("  Health status: PASSED")


def main():
    """Run all tests"""
    print("=" * 60)
    print("RPC Mock Tests")
    print("=" * 60)

    tests = [
        test_rpc_config_override,
        test_rpc_client_init,
        test_call_function_decodes_bytes,
        test_call_function_empty_result,
        test_call_function_method_not_found,
        test_call_function_contract_panic,
        test_remote_error_not_retried,
        test_failover_and_rotation,
        test_all_endpoints_failed,
        test_rate_limited_retries,
        test_tx_status_params,
        test_health_status,
    ]

    passed = 0
    failed = 0

    for test in tests:
        try:
            test()
            passed += 1
        except Exception as e:
            print(f"  FAILED: {e}")
            failed += 1

    print("=" * 60)
    print(f"Results: {passed} passed, {failed} failed")
    print("=" * 60)

    return failed == 0


if __name__ == "__main__":
    success = main()
    sys.exit(0 if success else 1)
