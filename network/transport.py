"""
HTTP transport for the Stacks node API
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import aiohttp

from blockchain.clarity import ClarityValue, cv_to_hex, cv_to_value, hex_to_cv
from errors.exceptions import (
    CodecError,
    ContractCallError,
    NetworkError,
    RateLimitError,
)

logger = logging.getLogger(__name__)


@dataclass
class ReadCallRequest:
    contract_address: str
    contract_name: str
    function_name: str
    function_args: List[ClarityValue] = field(default_factory=list)
    sender: str = ""


class StacksTransport:
    """aiohttp client for read-only calls, broadcasts and transaction lookups"""

    def __init__(self, api_url: str, session: Optional[aiohttp.ClientSession] = None):
        self.api_url = api_url.rstrip("/")
        self._session = session
        self._owns_session = session is None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession()
        return self._session

    async def close(self):
        if self._session is not None and self._owns_session:
            await self._session.close()
            logger.info("Transport session closed")
        self._session = None

    async def _read_json(self, resp, url: str) -> Any:
        if resp.status == 429:
            raise RateLimitError(f"Upstream rate limit exceeded for {url}")
        if resp.status >= 400:
            body = await resp.text()
            raise NetworkError(f"HTTP {resp.status} from {url}: {body[:200]}")
        try:
            return await resp.json(content_type=None)
        except (json.JSONDecodeError, aiohttp.ContentTypeError, ValueError) as e:
            raise NetworkError(f"Invalid JSON from {url}: {e}")

    async def call_read(self, request: ReadCallRequest) -> Any:
        """Run a read-only contract function and return the decoded result"""
        url = (
            f"{self.api_url}/v2/contracts/call-read/"
            f"{request.contract_address}/{request.contract_name}/{request.function_name}"
        )
        body = {
            "sender": request.sender or request.contract_address,
            "arguments": [cv_to_hex(arg) for arg in request.function_args],
        }

        try:
            async with self._get_session().post(url, json=body) as resp:
                payload = await self._read_json(resp, url)
        except aiohttp.ClientError as e:
            raise NetworkError(f"Request to {url} failed: {e}")

        if not payload.get("okay"):
            cause = payload.get("cause") or "unknown cause"
            raise ContractCallError(f"Read-only call {request.function_name} failed: {cause}", cause)

        result = payload.get("result")
        if not result:
            raise ContractCallError(f"Read-only call {request.function_name} returned no result")

        try:
            return cv_to_value(hex_to_cv(result))
        except CodecError:
            logger.error(f"Could not decode result of {request.function_name}: {result}")
            raise

    async def broadcast_transaction(self, raw_tx: bytes) -> Dict[str, Any]:
        """Broadcast a signed transaction; returns ``{"txid"}`` or ``{"error", "reason"}``"""
        url = f"{self.api_url}/v2/transactions"
        headers = {"Content-Type": "application/octet-stream"}
        try:
            async with self._get_session().post(url, data=raw_tx, headers=headers) as resp:
                text = await resp.text()
                status = resp.status
        except aiohttp.ClientError as e:
            raise NetworkError(f"Broadcast to {url} failed: {e}")

        if status == 429:
            raise RateLimitError("Upstream rate limit exceeded while broadcasting")

        try:
            payload = json.loads(text)
        except json.JSONDecodeError:
            payload = text.strip()

        if isinstance(payload, str) and status < 400:
            return {"txid": payload.strip('"')}
        if isinstance(payload, dict):
            if "error" in payload:
                return {"error": payload["error"], "reason": payload.get("reason")}
            if "txid" in payload:
                return {"txid": payload["txid"]}
        return {"error": f"HTTP {status}", "reason": str(payload)[:200]}

    async def get_transaction_status(self, txid: str) -> Optional[Dict[str, Any]]:
        """Fetch a transaction from the extended API; None when unknown"""
        url = f"{self.api_url}/extended/v1/tx/{txid}"
        try:
            async with self._get_session().get(url) as resp:
                if resp.status == 404:
                    return None
                return await self._read_json(resp, url)
        except aiohttp.ClientError as e:
            raise NetworkError(f"Request to {url} failed: {e}")

    async def get_stx_balance(self, address: str) -> int:
        """STX balance in microSTX"""
        url = f"{self.api_url}/extended/v1/address/{address}/balances"
        try:
            async with self._get_session().get(url) as resp:
                payload = await self._read_json(resp, url)
        except aiohttp.ClientError as e:
            raise NetworkError(f"Request to {url} failed: {e}")
        return int(payload.get("stx", {}).get("balance", 0))
