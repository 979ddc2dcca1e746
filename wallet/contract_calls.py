"""
Contract-call builders and the write path.

Builders validate their inputs and return a ``ContractCall`` describing a
public function invocation. Signing is external: ``ContractWriter`` hands the
call to a signer that returns raw transaction bytes, broadcasts them and
tracks the resulting transaction until it settles.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from blockchain.clarity import ClarityValue, string_ascii_cv, string_utf8_cv, uint_cv
from config.config import (
    CONTRACT_ADDRESS,
    CONTRACT_NAME,
    DEFAULT_FEE,
    FN_CREATE_STORY,
    FN_FINALIZE_ROUND,
    FN_FUND_BOUNTY,
    FN_REGISTER_USER,
    FN_SEAL_STORY,
    FN_SUBMIT_BLOCK,
    FN_VOTE_BLOCK,
    POST_CONDITION_MODE,
)
from errors.exceptions import ContractCallError, SyncError, ValidationError
from models.validation import (
    CreateStoryRequest,
    FinalizeRoundRequest,
    FundBountyRequest,
    RegisterUserRequest,
    SealStoryRequest,
    SubmitBlockRequest,
    VoteBlockRequest,
)
from wallet.transaction_tracker import TransactionKind, TransactionStatus, TransactionTracker

logger = logging.getLogger(__name__)

FAILED_TX_STATUSES = ("abort_by_response", "abort_by_post_condition")
DROPPED_TX_PREFIX = "dropped_"

Signer = Callable[["ContractCall"], Awaitable[bytes]]


@dataclass
class ContractCall:
    function_name: str
    function_args: List[ClarityValue] = field(default_factory=list)
    contract_address: str = CONTRACT_ADDRESS
    contract_name: str = CONTRACT_NAME
    fee: int = DEFAULT_FEE
    post_condition_mode: str = POST_CONDITION_MODE


def _validated(model, **kwargs):
    try:
        return model(**kwargs)
    except PydanticValidationError as e:
        errors = "; ".join(err["msg"] for err in e.errors())
        raise ValidationError(f"Invalid {model.__name__}: {errors}")


def register_user(username: str) -> ContractCall:
    req = _validated(RegisterUserRequest, username=username)
    return ContractCall(FN_REGISTER_USER, [string_ascii_cv(req.username)])


def create_story(prompt: str, init_time: int, voting_window: int = 86400) -> ContractCall:
    req = _validated(CreateStoryRequest, prompt=prompt, init_time=init_time, voting_window=voting_window)
    return ContractCall(
        FN_CREATE_STORY,
        [string_utf8_cv(req.prompt), uint_cv(req.init_time), uint_cv(req.voting_window)],
    )


def submit_block(story_id: int, uri: str, now: int) -> ContractCall:
    req = _validated(SubmitBlockRequest, story_id=story_id, uri=uri, now=now)
    return ContractCall(FN_SUBMIT_BLOCK, [uint_cv(req.story_id), string_ascii_cv(req.uri), uint_cv(req.now)])


def vote_block(submission_id: int) -> ContractCall:
    req = _validated(VoteBlockRequest, submission_id=submission_id)
    return ContractCall(FN_VOTE_BLOCK, [uint_cv(req.submission_id)])


def finalize_round(story_id: int, round_num: int, now: int) -> ContractCall:
    req = _validated(FinalizeRoundRequest, story_id=story_id, round_num=round_num, now=now)
    return ContractCall(FN_FINALIZE_ROUND, [uint_cv(req.story_id), uint_cv(req.round_num), uint_cv(req.now)])


def fund_bounty(story_id: int, amount: int) -> ContractCall:
    req = _validated(FundBountyRequest, story_id=story_id, amount=amount)
    return ContractCall(FN_FUND_BOUNTY, [uint_cv(req.story_id), uint_cv(req.amount)])


def seal_story(story_id: int) -> ContractCall:
    req = _validated(SealStoryRequest, story_id=story_id)
    return ContractCall(FN_SEAL_STORY, [uint_cv(req.story_id)])


def classify_tx_status(payload: Optional[Dict[str, Any]]):
    """Map an extended-API transaction to (status, error); pending when unsettled"""
    if not payload:
        return TransactionStatus.PENDING, None
    tx_status = payload.get("tx_status", "pending")
    if tx_status == "success":
        return TransactionStatus.CONFIRMED, None
    if tx_status in FAILED_TX_STATUSES or tx_status.startswith(DROPPED_TX_PREFIX):
        repr_ = (payload.get("tx_result") or {}).get("repr")
        return TransactionStatus.FAILED, repr_ or tx_status
    return TransactionStatus.PENDING, None


class ContractWriter:
    """Signs, broadcasts and tracks public contract calls"""

    def __init__(self, transport, tracker: TransactionTracker, signer: Optional[Signer] = None):
        self.signer = signer
        self.transport = transport
        self.tracker = tracker

    async def submit(self, kind, call: ContractCall, detail: Any = None) -> str:
        """Broadcast ``call`` and track it as pending; returns the txid"""
        kind = TransactionKind(kind)
        if self.signer is None:
            raise SyncError("No transaction signer configured")
        raw_tx = await self.signer(call)
        response = await self.transport.broadcast_transaction(raw_tx)

        if "error" in response:
            reason = response.get("reason") or response["error"]
            logger.error(f"Broadcast of {call.function_name} rejected: {reason}")
            raise ContractCallError(f"Transaction {call.function_name} was rejected: {response['error']}", reason)

        txid = response["txid"]
        await self.tracker.record(txid, kind, detail)
        logger.info(f"Broadcast {call.function_name} as {txid}", extra={"tx_id": txid})
        return txid

    async def confirm_pending(self) -> Dict[str, str]:
        """Poll every pending transaction once; returns txid -> new status for settled ones"""
        settled = {}
        for tx in self.tracker.pending():
            try:
                payload = await self.transport.get_transaction_status(tx.id)
            except Exception as e:
                logger.warning(f"Could not check transaction {tx.id}: {e}", extra={"tx_id": tx.id})
                continue

            status, error = classify_tx_status(payload)
            if status == TransactionStatus.PENDING:
                continue
            await self.tracker.update_status(tx.id, status, error)
            settled[tx.id] = status.value
        return settled
