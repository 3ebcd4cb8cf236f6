"""Ledger interface: transaction sink and spend-history provider."""

from abc import ABC, abstractmethod
from datetime import datetime

from paywarden.guards.engine import SpendContext
from paywarden.ledger.models import Transaction


class Ledger(ABC):
    @abstractmethod
    def record(self, transaction: Transaction) -> None: ...

    @abstractmethod
    def transactions(self) -> list[Transaction]: ...

    def spend_context(
        self,
        wallet_id: str | None = None,
        now: datetime | None = None,
        exclude_intent_id: str | None = None,
    ) -> SpendContext:
        """Period-to-date spend and recent timestamps for one wallet."""
        return SpendContext.from_transactions(
            self.transactions(),
            wallet_id=wallet_id,
            now=now,
            exclude_intent_id=exclude_intent_id,
        )


class InMemoryLedger(Ledger):
    def __init__(self, transactions: list[Transaction] | None = None) -> None:
        self._transactions: list[Transaction] = list(transactions or [])

    def record(self, transaction: Transaction) -> None:
        self._transactions.append(transaction)

    def transactions(self) -> list[Transaction]:
        return list(self._transactions)
