"""
Rate-limited, time-bounded read-only contract calls
"""

import asyncio
import json
import time
from typing import Any, Iterable, Optional

from blockchain.clarity import ClarityValue, cv_to_key_json
from errors.exceptions import RequestTimeoutError
from log_utils import get_logger
from monitoring.metrics import read_call_seconds, read_calls_total
from network.rate_limiter import RateLimiter
from network.transport import ReadCallRequest

logger = get_logger(__name__)


def admission_key(function_name: str, args: Iterable[Any]) -> str:
    return f"{function_name}:{json.dumps([cv_to_key_json(a) for a in args])}"


class ReadCallClient:
    """Issues read-only calls against one contract through the shared limiter"""

    def __init__(
        self,
        transport,
        rate_limiter: RateLimiter,
        contract_address: str,
        contract_name: str,
        timeout: float = 10.0,
    ):
        self.transport = transport
        self.rate_limiter = rate_limiter
        self.contract_address = contract_address
        self.contract_name = contract_name
        self.timeout = timeout

    async def call(
        self,
        function_name: str,
        args: Iterable[ClarityValue] = (),
        caller_address: Optional[str] = None,
    ) -> Any:
        """Call ``function_name`` and return the raw, un-normalized result.

        Raises RequestTimeoutError when the call does not settle within
        ``timeout`` seconds of admission, and re-raises transport errors.
        """
        args = list(args)
        request = ReadCallRequest(
            contract_address=self.contract_address,
            contract_name=self.contract_name,
            function_name=function_name,
            function_args=args,
            sender=caller_address or self.contract_address,
        )
        key = admission_key(function_name, args)

        async def operation():
            started = time.monotonic()
            try:
                return await asyncio.wait_for(self.transport.call_read(request), self.timeout)
            except asyncio.TimeoutError:
                raise RequestTimeoutError(function_name, self.timeout)
            finally:
                read_call_seconds.labels(function=function_name).observe(time.monotonic() - started)

        try:
            result = await self.rate_limiter.execute(key, operation)
        except RequestTimeoutError as e:
            read_calls_total.labels(function=function_name, outcome="timeout").inc()
            logger.error(str(e), extra={"function_name": function_name, "admission_key": key})
            raise
        except Exception as e:
            read_calls_total.labels(function=function_name, outcome="error").inc()
            logger.error(
                f"Read-only call {function_name} failed: {e}",
                extra={"function_name": function_name, "admission_key": key},
            )
            raise

        read_calls_total.labels(function=function_name, outcome="success").inc()
        logger.debug(f"Read-only call {function_name} succeeded", extra={"function_name": function_name})
        return result
