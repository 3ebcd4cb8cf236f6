"""Abstract payment executor interface and shared result models."""

from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING

from pydantic import BaseModel

from paywarden.guards.models import PaymentCandidate

if TYPE_CHECKING:
    from paywarden.intents.models import PaymentIntent


class Route(str, Enum):
    AUTO = "auto"
    TRANSFER = "transfer"
    CCTP = "cctp"
    GATEWAY = "gateway"


class SimulationResult(BaseModel):
    route: Route
    estimated_fee: Decimal


class ExecutionResult(BaseModel):
    success: bool
    tx_hash: str | None = None
    fee: Decimal | None = None
    error: str | None = None


class PaymentExecutor(ABC):
    @abstractmethod
    async def simulate(self, candidate: PaymentCandidate) -> SimulationResult: ...

    @abstractmethod
    async def execute_payment(self, intent: PaymentIntent) -> ExecutionResult: ...
