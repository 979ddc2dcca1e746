"""
Write-path transaction history, persisted as one list in the blob store
"""

import json
import logging
import time
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Callable, List, Optional

from config.config import TRANSACTIONS_KEY
from database.database import BlobStore
from events.event_bus import EventTypes
from monitoring.metrics import pending_transactions

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


class TransactionKind(str, Enum):
    REGISTRATION = "user-registration"
    CREATION = "story-creation"
    SUBMISSION = "audio-submission"
    VOTE = "vote"
    FINALIZE = "finalize-round"
    FUND = "fund-bounty"
    SEAL = "seal-story"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


STATUS_EVENTS = {
    TransactionStatus.PENDING: EventTypes.TRANSACTION_PENDING,
    TransactionStatus.CONFIRMED: EventTypes.TRANSACTION_CONFIRMED,
    TransactionStatus.FAILED: EventTypes.TRANSACTION_FAILED,
}


@dataclass
class Transaction:
    id: str
    kind: TransactionKind
    status: TransactionStatus
    created_at: float
    detail: Optional[Any] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["kind"] = self.kind.value
        data["status"] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Transaction":
        return cls(
            id=data["id"],
            kind=TransactionKind(data["kind"]),
            status=TransactionStatus(data["status"]),
            created_at=float(data["created_at"]),
            detail=data.get("detail"),
            error=data.get("error"),
        )


class TransactionTracker:
    """
    Pending/confirmed/failed history of submitted transactions.

    Every mutation rewrites the whole list (read-modify-write), so only one
    tracker may write to a given store key. Persistence failures are logged
    and the in-memory history stays authoritative for the session.
    """

    def __init__(
        self,
        store: BlobStore,
        key: str = TRANSACTIONS_KEY,
        clock: Callable[[], float] = time.time,
        event_bus=None,
    ):
        self.store = store
        self.key = key
        self.clock = clock
        self.event_bus = event_bus
        self.transactions: List[Transaction] = []

    async def load(self) -> List[Transaction]:
        try:
            raw = await self.store.get_item(self.key)
            if raw:
                self.transactions = [Transaction.from_dict(t) for t in json.loads(raw)]
                logger.info(f"Loaded {len(self.transactions)} tracked transactions")
        except Exception as e:
            logger.error(f"Error loading transactions: {e}")
        self._update_gauge()
        return self.all()

    async def _persist(self):
        self._update_gauge()
        try:
            raw = json.dumps([t.to_dict() for t in self.transactions])
            await self.store.set_item(self.key, raw)
        except Exception as e:
            logger.error(f"Error saving transactions: {e}")

    def _update_gauge(self):
        pending_transactions.set(len(self.pending()))

    async def _emit(self, tx: Transaction):
        if self.event_bus is None:
            return
        await self.event_bus.emit(STATUS_EVENTS[tx.status], tx.to_dict(), source="transactions")

    async def record(self, tx_id: str, kind, detail: Any = None) -> Transaction:
        """Track a newly broadcast transaction as pending"""
        tx = Transaction(
            id=tx_id,
            kind=TransactionKind(kind),
            status=TransactionStatus.PENDING,
            created_at=self.clock(),
            detail=detail,
        )
        self.transactions.insert(0, tx)
        await self._persist()
        logger.info(f"Tracking {tx.kind.value} transaction {tx_id}", extra={"tx_id": tx_id})
        await self._emit(tx)
        return tx

    async def update_status(self, tx_id: str, status, error: Optional[str] = None) -> Optional[Transaction]:
        """Replace the status and error of ``tx_id`` in place"""
        status = TransactionStatus(status)
        for tx in self.transactions:
            if tx.id == tx_id:
                tx.status = status
                tx.error = error
                break
        else:
            logger.warning(f"Unknown transaction {tx_id}, status not updated", extra={"tx_id": tx_id})
            return None

        await self._persist()
        logger.info(f"Transaction {tx_id} is {status.value}", extra={"tx_id": tx_id, "status": status.value})
        await self._emit(tx)
        return tx

    def all(self) -> List[Transaction]:
        return list(self.transactions)

    def pending(self) -> List[Transaction]:
        return [t for t in self.transactions if t.status == TransactionStatus.PENDING]

    def by_kind(self, kind) -> List[Transaction]:
        kind = TransactionKind(kind)
        return [t for t in self.transactions if t.kind == kind]

    async def prune(self, older_than_days: float = 7) -> int:
        """Drop transactions created before the cutoff; returns how many were removed"""
        cutoff = self.clock() - older_than_days * SECONDS_PER_DAY
        before = len(self.transactions)
        self.transactions = [t for t in self.transactions if t.created_at > cutoff]
        await self._persist()
        removed = before - len(self.transactions)
        logger.info(f"Pruned {removed} transactions older than {older_than_days} days")
        return removed
