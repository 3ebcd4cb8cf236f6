"""Paper payment executor for testing and demos."""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import TYPE_CHECKING

from paywarden.executors.base import ExecutionResult, PaymentExecutor, Route, SimulationResult
from paywarden.guards.models import PaymentCandidate, format_usd

if TYPE_CHECKING:
    from paywarden.intents.models import PaymentIntent

DEFAULT_BALANCE = Decimal("10000")
NETWORK_FEE = Decimal("0.5")
CCTP_CHAINS = {"ethereum", "polygon", "arbitrum", "optimism", "base", "avalanche"}


class PaperExecutor(PaymentExecutor):
    """In-process payment executor.

    - Keeps a USDC balance per wallet, starting at ``starting_balance``
    - Charges a flat network fee on top of the amount
    - Returns random ``0x`` transaction hashes
    - Routes same-chain payments as transfers, CCTP-capable pairs over CCTP
    """

    def __init__(
        self,
        starting_balance: Decimal = DEFAULT_BALANCE,
        fee: Decimal = NETWORK_FEE,
        destination_chains: dict[str, str] | None = None,
    ) -> None:
        self.starting_balance = Decimal(str(starting_balance))
        self.fee = Decimal(str(fee))
        # recipient address -> chain it lives on, when it differs from the source
        self.destination_chains = destination_chains or {}
        self.balances: dict[str, Decimal] = {}

    def balance(self, wallet_id: str) -> Decimal:
        return self.balances.setdefault(wallet_id, self.starting_balance)

    def _route(self, candidate: PaymentCandidate) -> Route:
        dest = self.destination_chains.get(candidate.recipient_address, candidate.chain)
        if dest == candidate.chain:
            return Route.TRANSFER
        if candidate.chain in CCTP_CHAINS and dest in CCTP_CHAINS:
            return Route.CCTP
        return Route.GATEWAY

    async def simulate(self, candidate: PaymentCandidate) -> SimulationResult:
        return SimulationResult(route=self._route(candidate), estimated_fee=self.fee)

    async def execute_payment(self, intent: PaymentIntent) -> ExecutionResult:
        available = self.balance(intent.wallet_id)
        total = intent.amount + self.fee
        if total > available:
            return ExecutionResult(
                success=False,
                error=f"Insufficient balance: need {format_usd(total)}, have {format_usd(available)}",
            )

        self.balances[intent.wallet_id] = available - total
        return ExecutionResult(success=True, tx_hash=f"0x{uuid.uuid4().hex}", fee=self.fee)
