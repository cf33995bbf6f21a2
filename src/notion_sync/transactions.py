"""Transactions: operation batches scoped to one (shard, space)."""

import uuid
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

from .errors import SessionContextError
from .operations import Operation


def _new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class Transaction:
    """Operations applied together, in order, by the store."""
    id: str
    shard_id: int
    space_id: str
    operations: list[Operation] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shardId": self.shard_id,
            "spaceId": self.space_id,
            "operations": [op.to_dict() for op in self.operations],
        }


@dataclass
class TransactionRequest:
    """Body of a saveTransactions call."""
    request_id: str
    transactions: list[Transaction] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "requestId": self.request_id,
            "transactions": [t.to_dict() for t in self.transactions],
        }

    @property
    def operations(self) -> list[Operation]:
        """All operations across transactions, in submission order."""
        return [op for t in self.transactions for op in t.operations]


class TransactionBuilder:
    """Binds a fixed (shard_id, space_id) to every batch it builds.

    Batches are not reordered, deduplicated or validated; each inner list
    becomes one transaction.
    """

    def __init__(
        self,
        shard_id: Optional[int],
        space_id: Optional[str],
        id_factory: Callable[[], str] = _new_id,
    ):
        missing = []
        if not shard_id:
            missing.append("shard_id")
        if not space_id:
            missing.append("space_id")
        if missing:
            raise SessionContextError(missing, f"Cannot build transactions without {' and '.join(missing)}")
        self.shard_id = shard_id
        self.space_id = space_id
        self._id_factory = id_factory

    def build(self, batches: Sequence[Sequence[Operation]]) -> TransactionRequest:
        """Wrap each batch of operations in a transaction scoped to this builder."""
        if not batches:
            raise ValueError("At least one operation batch is required")
        transactions = []
        for i, batch in enumerate(batches):
            if not batch:
                raise ValueError(f"Operation batch {i} is empty")
            transactions.append(Transaction(
                id=self._id_factory(),
                shard_id=self.shard_id,
                space_id=self.space_id,
                operations=list(batch),
            ))
        return TransactionRequest(request_id=self._id_factory(), transactions=transactions)


def build_transaction(
    shard_id: Optional[int],
    space_id: Optional[str],
    batches: Sequence[Sequence[Operation]],
    id_factory: Callable[[], str] = _new_id,
) -> TransactionRequest:
    """One-shot form of ``TransactionBuilder(shard_id, space_id).build(batches)``."""
    return TransactionBuilder(shard_id, space_id, id_factory=id_factory).build(batches)
