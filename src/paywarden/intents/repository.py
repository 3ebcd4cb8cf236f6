"""Payment intent storage."""

from abc import ABC, abstractmethod

from paywarden.errors import IntentNotFoundError
from paywarden.intents.models import PaymentIntent


class IntentRepository(ABC):
    @abstractmethod
    def get(self, intent_id: str) -> PaymentIntent: ...

    @abstractmethod
    def save(self, intent: PaymentIntent) -> None: ...

    @abstractmethod
    def list_intents(self) -> list[PaymentIntent]: ...

    def by_agent(self, agent_id: str) -> list[PaymentIntent]:
        return [i for i in self.list_intents() if i.agent_id == agent_id]


class InMemoryIntentRepository(IntentRepository):
    """Dict-backed store that saves and returns deep copies."""

    def __init__(self) -> None:
        self._intents: dict[str, PaymentIntent] = {}

    def get(self, intent_id: str) -> PaymentIntent:
        if intent_id not in self._intents:
            raise IntentNotFoundError(f"Payment intent not found: {intent_id}")
        return self._intents[intent_id].model_copy(deep=True)

    def save(self, intent: PaymentIntent) -> None:
        self._intents[intent.id] = intent.model_copy(deep=True)

    def list_intents(self) -> list[PaymentIntent]:
        return [i.model_copy(deep=True) for i in self._intents.values()]
