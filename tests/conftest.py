# tests/conftest.py
import asyncio
import sys
import pathlib

import pytest

ROOT = pathlib.Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from blockchain.clarity import (  # noqa: E402
    bool_cv,
    cv_to_value,
    list_cv,
    principal_cv,
    some_cv,
    string_ascii_cv,
    string_utf8_cv,
    tuple_cv,
    uint_cv,
)
from blockchain.c32 import bytes_to_address  # noqa: E402
from database.database import MemoryBlobStore  # noqa: E402

CREATOR = "SP2J6ZY48GV1EZ5V2V5RB9MP66SW86PYKKNRV9EJ7"
OTHER = bytes_to_address(26, bytes(range(20)))


# ───────────────────────────── fake clock ─────────────────────────────
class FakeClock:
    """Manual clock; ``sleep`` advances it instead of waiting"""

    def __init__(self, start: float = 1_000.0):
        self.now = start
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds

    async def sleep(self, seconds: float):
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return MemoryBlobStore()


# ───────────────────────────── fake transport ─────────────────────────────
def _arg_key(arg):
    return int(arg.value) if isinstance(arg.value, int) else arg.value


class FakeTransport:
    """
    Stand-in for StacksTransport.

    ``responses`` maps ``(function_name, *arg_values)`` or ``function_name``
    to a result, an exception instance, or a callable producing either.
    """

    def __init__(self, responses=None, delay: float = 0.0):
        self.responses = dict(responses or {})
        self.delay = delay
        self.calls = []
        self.broadcasts = []
        self.broadcast_response = {"txid": "0xabc"}
        self.tx_statuses = {}
        self.closed = False

    def _lookup(self, request):
        key = (request.function_name, *(_arg_key(a) for a in request.function_args))
        if key in self.responses:
            return self.responses[key]
        if request.function_name in self.responses:
            return self.responses[request.function_name]
        return None

    async def call_read(self, request):
        self.calls.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        result = self._lookup(request)
        if callable(result):
            result = result(request)
        if isinstance(result, Exception):
            raise result
        return result

    def calls_to(self, function_name):
        return [c for c in self.calls if c.function_name == function_name]

    async def broadcast_transaction(self, raw_tx):
        self.broadcasts.append(raw_tx)
        return self.broadcast_response

    async def get_transaction_status(self, txid):
        status = self.tx_statuses.get(txid)
        if isinstance(status, Exception):
            raise status
        return status

    async def close(self):
        self.closed = True


@pytest.fixture
def transport():
    return FakeTransport()


# ───────────────────────────── ledger results ─────────────────────────────
def story_result(prompt="A dark and stormy night", creator=CREATOR, total_blocks=0,
                 current_round=1, is_sealed=False, bounty=0, voting_window=86400,
                 created_at=1_700_000_000):
    """``get-story`` result as returned by the transport"""
    return cv_to_value(some_cv(tuple_cv({
        "prompt": string_utf8_cv(prompt),
        "creator": principal_cv(creator),
        "is-sealed": bool_cv(is_sealed),
        "created-at": uint_cv(created_at),
        "total-blocks": uint_cv(total_blocks),
        "bounty-pool": uint_cv(bounty),
        "current-round": uint_cv(current_round),
        "voting-window": uint_cv(voting_window),
    })))


def submission_result(uri="ipfs://clip", contributor=CREATOR, submitted_at=1_700_000_100,
                      votes=0, story_id=1, round_num=1):
    return cv_to_value(some_cv(tuple_cv({
        "story-id": uint_cv(story_id),
        "round-num": uint_cv(round_num),
        "uri": string_ascii_cv(uri),
        "contributor": principal_cv(contributor),
        "submitted-at": uint_cv(submitted_at),
        "vote-count": uint_cv(votes),
    })))


def block_result(submission_id):
    return cv_to_value(some_cv(tuple_cv({"submission-id": uint_cv(submission_id)})))


def round_result(start_time=1_700_000_000, end_time=1_700_086_400, is_finalized=False,
                 submission_count=0):
    return cv_to_value(some_cv(tuple_cv({
        "start-time": uint_cv(start_time),
        "end-time": uint_cv(end_time),
        "is-finalized": bool_cv(is_finalized),
        "submission-count": uint_cv(submission_count),
    })))


def id_list_result(ids):
    return cv_to_value(list_cv([uint_cv(i) for i in ids]))


def user_result(username="narrator", registered_at=1_700_000_000):
    return cv_to_value(some_cv(tuple_cv({
        "username": string_ascii_cv(username),
        "registered-at": uint_cv(registered_at),
        "total-submissions": uint_cv(3),
        "total-votes": uint_cv(7),
    })))
