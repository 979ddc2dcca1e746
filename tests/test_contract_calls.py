"""
Tests for contract-call builders and the broadcast/confirm write path
"""

import pytest

from blockchain.clarity import ClarityType, string_ascii_cv, string_utf8_cv, uint_cv
from errors.exceptions import ContractCallError, NetworkError, SyncError, ValidationError
from wallet.contract_calls import (
    ContractWriter,
    classify_tx_status,
    create_story,
    finalize_round,
    fund_bounty,
    register_user,
    seal_story,
    submit_block,
    vote_block,
)
from wallet.transaction_tracker import TransactionKind, TransactionStatus, TransactionTracker

from conftest import FakeTransport


class TestBuilders:
    def test_register_user(self):
        call = register_user("  narrator  ")
        assert call.function_name == "register-user"
        assert call.function_args == [string_ascii_cv("narrator")]

    def test_create_story(self):
        call = create_story("Once upon a time", 1_700_000_000, 3600)
        assert call.function_name == "create-story"
        assert call.function_args == [
            string_utf8_cv("Once upon a time"),
            uint_cv(1_700_000_000),
            uint_cv(3600),
        ]

    def test_create_story_default_window(self):
        assert create_story("Prompt", 1).function_args[2] == uint_cv(86400)

    def test_submit_block(self):
        call = submit_block(3, "ipfs://QmClip", 1_700_000_500)
        assert call.function_args[1].type_id == ClarityType.STRING_ASCII
        assert call.function_args[0] == uint_cv(3)

    def test_other_builders(self):
        assert vote_block(9).function_args == [uint_cv(9)]
        assert finalize_round(1, 2, 3).function_args == [uint_cv(1), uint_cv(2), uint_cv(3)]
        assert fund_bounty(1, 500).function_args == [uint_cv(1), uint_cv(500)]
        assert seal_story(4).function_name == "seal-story"

    @pytest.mark.parametrize("build", [
        lambda: register_user("   "),
        lambda: register_user("x" * 51),
        lambda: create_story("", 0),
        lambda: create_story("Prompt", 0, 0),
        lambda: submit_block(1, "ipfs://clip-é", 0),
        lambda: finalize_round(1, 0, 0),
        lambda: fund_bounty(1, 0),
        lambda: vote_block(-1),
    ])
    def test_invalid_input(self, build):
        with pytest.raises(ValidationError):
            build()


class TestClassifyStatus:
    def test_success(self):
        assert classify_tx_status({"tx_status": "success"}) == (TransactionStatus.CONFIRMED, None)

    def test_abort_uses_result_repr(self):
        payload = {"tx_status": "abort_by_response", "tx_result": {"repr": "(err u103)"}}
        assert classify_tx_status(payload) == (TransactionStatus.FAILED, "(err u103)")

    def test_dropped(self):
        payload = {"tx_status": "dropped_replace_by_fee"}
        assert classify_tx_status(payload) == (TransactionStatus.FAILED, "dropped_replace_by_fee")

    def test_unsettled(self):
        assert classify_tx_status(None) == (TransactionStatus.PENDING, None)
        assert classify_tx_status({"tx_status": "pending"}) == (TransactionStatus.PENDING, None)


async def fake_signer(call):
    return call.function_name.encode()


class TestContractWriter:
    @pytest.mark.asyncio
    async def test_submit_tracks_pending(self, store, clock):
        transport = FakeTransport()
        tracker = TransactionTracker(store, clock=clock)
        writer = ContractWriter(transport, tracker, signer=fake_signer)

        txid = await writer.submit(TransactionKind.VOTE, vote_block(9), {"submission_id": 9})

        assert txid == "0xabc"
        assert transport.broadcasts == [b"vote-block"]
        assert tracker.pending()[0].id == "0xabc"
        assert tracker.pending()[0].kind == TransactionKind.VOTE

    @pytest.mark.asyncio
    async def test_rejected_broadcast(self, store, clock):
        transport = FakeTransport()
        transport.broadcast_response = {"error": "transaction rejected", "reason": "NotEnoughFunds"}
        tracker = TransactionTracker(store, clock=clock)
        writer = ContractWriter(transport, tracker, signer=fake_signer)

        with pytest.raises(ContractCallError) as exc_info:
            await writer.submit(TransactionKind.FUND, fund_bounty(1, 10))

        assert exc_info.value.cause == "NotEnoughFunds"
        assert tracker.all() == []

    @pytest.mark.asyncio
    async def test_no_signer(self, store, clock):
        writer = ContractWriter(FakeTransport(), TransactionTracker(store, clock=clock))
        with pytest.raises(SyncError):
            await writer.submit(TransactionKind.SEAL, seal_story(1))

    @pytest.mark.asyncio
    async def test_confirm_pending(self, store, clock):
        transport = FakeTransport()
        tracker = TransactionTracker(store, clock=clock)
        for txid in ("0xa", "0xb", "0xc", "0xd"):
            await tracker.record(txid, TransactionKind.VOTE)
        transport.tx_statuses = {
            "0xa": {"tx_status": "success"},
            "0xb": {"tx_status": "abort_by_post_condition", "tx_result": {"repr": "(err u1)"}},
            "0xc": {"tx_status": "pending"},
            "0xd": NetworkError("Cannot connect to host"),
        }
        writer = ContractWriter(transport, tracker, signer=fake_signer)

        settled = await writer.confirm_pending()

        assert settled == {"0xa": "confirmed", "0xb": "failed"}
        assert sorted(t.id for t in tracker.pending()) == ["0xc", "0xd"]
        assert tracker.by_kind(TransactionKind.VOTE)[2].error == "(err u1)"
