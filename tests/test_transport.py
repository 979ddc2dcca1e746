"""
Tests for the aiohttp transport against a fake session
"""

import json

import aiohttp
import pytest

from blockchain.clarity import cv_to_hex, some_cv, tuple_cv, uint_cv
from errors.exceptions import ContractCallError, NetworkError, RateLimitError
from network.transport import ReadCallRequest, StacksTransport

CONTRACT = "ST1VQMZKSFRW25H34XQS2KVDQ3FQEBFPWC2XM0ZYC"


class FakeResponse:
    def __init__(self, status=200, body=None):
        self.status = status
        self.body = body if isinstance(body, str) else json.dumps(body)

    async def text(self):
        return self.body

    async def json(self, content_type="application/json"):
        return json.loads(self.body)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.requests = []
        self.closed = False

    def _request(self, method, url, **kwargs):
        self.requests.append((method, url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response

    def post(self, url, **kwargs):
        return self._request("POST", url, **kwargs)

    def get(self, url, **kwargs):
        return self._request("GET", url, **kwargs)

    async def close(self):
        self.closed = True


def read_request(fn="get-story", args=None):
    return ReadCallRequest(CONTRACT, "Sonichain", fn, args if args is not None else [uint_cv(1)])


@pytest.mark.asyncio
async def test_call_read_posts_hex_arguments_and_decodes_result():
    result_hex = cv_to_hex(some_cv(tuple_cv({"total-blocks": uint_cv(2)})))
    session = FakeSession(FakeResponse(200, {"okay": True, "result": result_hex}))
    transport = StacksTransport("https://api.testnet.hiro.so/", session=session)

    result = await transport.call_read(read_request())

    method, url, kwargs = session.requests[0]
    assert method == "POST"
    assert url == f"https://api.testnet.hiro.so/v2/contracts/call-read/{CONTRACT}/Sonichain/get-story"
    assert kwargs["json"] == {"sender": CONTRACT, "arguments": [cv_to_hex(uint_cv(1))]}
    assert result["value"]["total-blocks"] == {"type": "uint", "value": "2"}


@pytest.mark.asyncio
async def test_call_read_not_okay_is_contract_error():
    session = FakeSession(FakeResponse(200, {"okay": False, "cause": "Unchecked(NoSuchContract)"}))
    transport = StacksTransport("https://node", session=session)

    with pytest.raises(ContractCallError) as exc_info:
        await transport.call_read(read_request())
    assert exc_info.value.cause == "Unchecked(NoSuchContract)"


@pytest.mark.asyncio
async def test_upstream_throttling():
    transport = StacksTransport("https://node", session=FakeSession(FakeResponse(429, "slow down")))
    with pytest.raises(RateLimitError):
        await transport.call_read(read_request())


@pytest.mark.asyncio
async def test_http_error_is_network_error():
    transport = StacksTransport("https://node", session=FakeSession(FakeResponse(502, "bad gateway")))
    with pytest.raises(NetworkError) as exc_info:
        await transport.call_read(read_request())
    assert "502" in str(exc_info.value)


@pytest.mark.asyncio
async def test_connection_failure_is_network_error():
    session = FakeSession(error=aiohttp.ClientConnectionError("Cannot connect to host node"))
    transport = StacksTransport("https://node", session=session)
    with pytest.raises(NetworkError):
        await transport.call_read(read_request())


@pytest.mark.asyncio
async def test_broadcast_success():
    session = FakeSession(FakeResponse(200, '"0xfeed"'))
    transport = StacksTransport("https://node", session=session)

    assert await transport.broadcast_transaction(b"\x00\x01") == {"txid": "0xfeed"}
    _, url, kwargs = session.requests[0]
    assert url == "https://node/v2/transactions"
    assert kwargs["data"] == b"\x00\x01"
    assert kwargs["headers"]["Content-Type"] == "application/octet-stream"


@pytest.mark.asyncio
async def test_broadcast_rejection():
    body = {"error": "transaction rejected", "reason": "BadNonce", "txid": "0xfeed"}
    transport = StacksTransport("https://node", session=FakeSession(FakeResponse(400, body)))
    assert await transport.broadcast_transaction(b"\x00") == {
        "error": "transaction rejected",
        "reason": "BadNonce",
    }


@pytest.mark.asyncio
async def test_transaction_status():
    payload = {"tx_id": "0xfeed", "tx_status": "success"}
    transport = StacksTransport("https://node", session=FakeSession(FakeResponse(200, payload)))
    assert await transport.get_transaction_status("0xfeed") == payload

    transport = StacksTransport("https://node", session=FakeSession(FakeResponse(404, "not found")))
    assert await transport.get_transaction_status("0xfeed") is None


@pytest.mark.asyncio
async def test_stx_balance():
    payload = {"stx": {"balance": "1500000"}}
    transport = StacksTransport("https://node", session=FakeSession(FakeResponse(200, payload)))
    assert await transport.get_stx_balance(CONTRACT) == 1_500_000


@pytest.mark.asyncio
async def test_close_leaves_borrowed_session_open():
    session = FakeSession()
    transport = StacksTransport("https://node", session=session)
    await transport.close()
    assert session.closed is False
