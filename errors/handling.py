"""
User-facing error mapping and retry helpers for ledger interactions
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional, Tuple, TypeVar

from errors.exceptions import (
    SyncError, NetworkError, RequestTimeoutError, RateLimitError,
    ContractCallError, ValidationError
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Contract error codes and their user-facing text
CONTRACT_ERRORS: Dict[str, Tuple[str, str]] = {
    "ERR-NOT-FOUND": ("Not Found", "The requested resource was not found on the blockchain."),
    "ERR-UNAUTHORIZED": ("Unauthorized", "You do not have permission to perform this action."),
    "ERR-STORY-SEALED": ("Story Sealed", "This story has been sealed and can no longer be modified."),
    "ERR-ALREADY-VOTED": ("Already Voted", "You have already voted in this round."),
    "ERR-NO-SUBMISSIONS": ("No Submissions", "There are no submissions available for this round."),
    "ERR-INSUFFICIENT-BLOCKS": ("Insufficient Blocks", "The story needs at least 5 finalized blocks to be sealed."),
    "ERR-INVALID-AMOUNT": ("Invalid Amount", "Please enter a valid amount greater than zero."),
    "ERR-TRANSFER-FAILED": ("Transfer Failed", "The STX transfer could not be completed."),
    "ERR-VOTING-CLOSED": ("Voting Closed", "The voting window for this round has closed."),
    "ERR-ALREADY-FINALIZED": ("Already Finalized", "This round has already been finalized."),
    "ERR-VOTING-NOT-ENDED": ("Voting Not Ended", "Cannot finalize the round before the voting period ends."),
    "ERR-ALREADY-SUBMITTED": ("Already Submitted", "You have already submitted a recording for this round."),
    "ERR-USERNAME-EXISTS": ("Username Taken", "This username is already registered. Please choose another."),
    "ERR-USER-ALREADY-REGISTERED": ("Already Registered", "This wallet address is already registered."),
}

# Network failure fragments and their user-facing text
NETWORK_ERRORS: Dict[str, str] = {
    "Network request failed": "Could not connect to the network. Please check your internet connection.",
    "timed out": "The request timed out. Please try again.",
    "ETIMEDOUT": "The request timed out. Please try again.",
    "ECONNREFUSED": "Could not connect to the blockchain. Please try again later.",
    "ENOTFOUND": "Could not reach the blockchain network. Please check your connection.",
    "Cannot connect to host": "Could not connect to the blockchain. Please try again later.",
}


def parse_contract_error(error: Exception) -> Optional[str]:
    """Extract a known contract error code from the error text"""
    message = str(error)
    for error_code in CONTRACT_ERRORS:
        if error_code in message:
            return error_code
    return None


def parse_network_error(error: Exception) -> Optional[str]:
    """Map a network failure to a user-facing message"""
    message = str(error)
    for fragment, user_message in NETWORK_ERRORS.items():
        if fragment in message:
            return user_message
    return None


def get_user_friendly_error(error: Exception) -> Tuple[str, str]:
    """
    Get a (title, message) pair suitable for display.

    Timeouts and network failures map to "try again" messages, contract
    rejections map to "not allowed" messages.
    """
    contract_error = parse_contract_error(error)
    if contract_error:
        return CONTRACT_ERRORS[contract_error]

    if isinstance(error, RequestTimeoutError):
        return "Network Error", NETWORK_ERRORS["timed out"]

    network_error = parse_network_error(error)
    if network_error or isinstance(error, NetworkError):
        return "Network Error", network_error or "Could not reach the blockchain network. Please try again."

    message = getattr(error, "message", None) or str(error)
    return "Error", message or "An unexpected error occurred. Please try again."


def is_retryable(error: Exception) -> bool:
    """Timeouts, transport failures and upstream throttling are worth retrying"""
    if isinstance(error, (RequestTimeoutError, RateLimitError)):
        return True
    if isinstance(error, (ContractCallError, ValidationError)):
        return False
    if isinstance(error, NetworkError):
        return True
    if isinstance(error, SyncError):
        return False
    return parse_network_error(error) is not None


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    retry_on: Optional[Callable[[Exception], bool]] = None,
) -> T:
    """
    Run ``operation`` until it succeeds or ``max_attempts`` is exhausted.

    Waits ``initial_delay * 2**attempt`` seconds between attempts. When
    ``retry_on`` is given and returns False for an error, that error is
    raised immediately. After the last attempt the last error is raised.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    last_error: Optional[Exception] = None
    for attempt in range(max_attempts):
        try:
            return await operation()
        except Exception as e:
            last_error = e
            logger.info(f"Retry attempt {attempt + 1}/{max_attempts} failed: {e}")

            if retry_on is not None and not retry_on(e):
                raise

            if attempt < max_attempts - 1:
                delay = initial_delay * (2 ** attempt)
                logger.debug(f"Waiting {delay:.2f}s before retry")
                await asyncio.sleep(delay)

    raise last_error
