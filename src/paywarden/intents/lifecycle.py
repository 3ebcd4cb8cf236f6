"""Payment intent lifecycle: simulate, approve, execute and confirm.

Every mutation goes through :class:`IntentLifecycle`, which loads the intent
from the repository, checks the transition is legal, applies it and saves the
intent back. Operations on the same intent are serialised by a per-intent
lock; operations on different intents never wait on each other.

Status transitions::

    pending -> simulating -> blocked
                          -> awaiting_approval -> executing -> succeeded
                                                            -> failed
    (any evaluation or simulation error) -> failed
"""

from __future__ import annotations

import asyncio
import logging
import uuid
import weakref
from collections.abc import Awaitable
from datetime import UTC, datetime
from typing import TypeVar

from paywarden.errors import ExecutionTimeoutError, InvalidStateError
from paywarden.executors.base import PaymentExecutor
from paywarden.guards.engine import GuardEvaluator, SpendContext, requires_human_approval
from paywarden.guards.models import GuardResult, GuardRule
from paywarden.guards.registry import RuleRegistry
from paywarden.identity.agent import Agent
from paywarden.intents.models import (
    GuardDiff,
    IntentStatus,
    PaymentIntent,
    PaymentRequest,
    ReplayResult,
    StepName,
    StepStatus,
)
from paywarden.intents.repository import IntentRepository
from paywarden.ledger.base import Ledger
from paywarden.ledger.models import Transaction

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TOOL_NAME = "create_payment_intent"
BLOCKED_DETAILS = "Blocked by guard checks"

APPROVABLE = {IntentStatus.AWAITING_APPROVAL, IntentStatus.REQUIRES_APPROVAL}
EXECUTABLE = APPROVABLE | {IntentStatus.EXECUTING, IntentStatus.APPROVED}


def _now() -> datetime:
    return datetime.now(UTC)


class IntentLifecycle:
    """Advance payment intents through the guard-checked payment flow."""

    def __init__(
        self,
        repository: IntentRepository,
        registry: RuleRegistry,
        executor: PaymentExecutor,
        ledger: Ledger,
        evaluator: GuardEvaluator | None = None,
        execution_timeout: float = 30.0,
    ) -> None:
        self.repository = repository
        self.registry = registry
        self.executor = executor
        self.ledger = ledger
        self.evaluator = evaluator or GuardEvaluator()
        self.execution_timeout = execution_timeout
        # entries vanish once no operation holds or waits on the lock
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def _lock(self, intent_id: str) -> asyncio.Lock:
        lock = self._locks.get(intent_id)
        if lock is None:
            lock = self._locks[intent_id] = asyncio.Lock()
        return lock

    def get(self, intent_id: str) -> PaymentIntent:
        return self.repository.get(intent_id)

    def create_intent(
        self,
        request: PaymentRequest,
        agent: Agent | None = None,
        tool_name: str = DEFAULT_TOOL_NAME,
    ) -> PaymentIntent:
        intent = PaymentIntent(
            id=f"pi_{uuid.uuid4().hex[:12]}",
            **request.model_dump(),
            agent_id=agent.agent_id if agent else None,
            agent_name=agent.name if agent else None,
            tool_name=tool_name,
        )
        self.repository.save(intent)
        logger.info("Created intent %s for %s %s", intent.id, intent.amount, intent.currency)
        return intent

    async def simulate(self, intent_id: str) -> PaymentIntent:
        """Simulate the payment, run the guards and decide whether it needs approval."""
        async with self._lock(intent_id):
            intent = self.repository.get(intent_id)
            if intent.status != IntentStatus.PENDING:
                raise InvalidStateError(intent.id, intent.status.value, "simulate")

            intent.status = IntentStatus.SIMULATING
            intent.step(StepName.SIMULATION).status = StepStatus.IN_PROGRESS
            intent.touch()
            self.repository.save(intent)

            try:
                candidate = intent.candidate()
                simulation = await self._time_boxed(self.executor.simulate(candidate), "simulation")
                rules = self.registry.enabled_rules()
                context = self.ledger.spend_context(intent.wallet_id)
                results = self.evaluator.evaluate(candidate, rules, context)
                needs_human = requires_human_approval(candidate, rules)
            except asyncio.CancelledError:
                intent.status = IntentStatus.FAILED
                self._fail_step(intent, StepName.SIMULATION, "Payment simulation cancelled")
                self.repository.save(intent)
                raise
            except Exception as e:
                logger.warning("Simulation of intent %s failed: %s", intent.id, e)
                intent.status = IntentStatus.FAILED
                self._fail_step(intent, StepName.SIMULATION, str(e) or "Simulation failed")
                self.repository.save(intent)
                return intent

            intent.route = simulation.route.value
            intent.estimated_fee = simulation.estimated_fee
            intent.guard_results = results
            self._complete_step(intent, StepName.SIMULATION)

            approval = intent.step(StepName.APPROVAL)
            if not all(r.passed for r in results):
                intent.status = IntentStatus.BLOCKED
                approval.status = StepStatus.FAILED
                approval.details = BLOCKED_DETAILS
            elif needs_human:
                intent.status = IntentStatus.AWAITING_APPROVAL
                approval.status = StepStatus.IN_PROGRESS
            else:
                intent.status = IntentStatus.AWAITING_APPROVAL
                self._complete_step(intent, StepName.APPROVAL, automatic=True)

            intent.touch()
            self.repository.save(intent)
            logger.info(
                "Simulated intent %s: %s (approval %s)",
                intent.id,
                intent.status.value,
                intent.approval_state.value,
            )
            return intent

    def submit(
        self,
        request: PaymentRequest,
        agent: Agent | None = None,
        tool_name: str = "pay_invoice",
    ) -> PaymentIntent:
        """Create an intent and guard-evaluate it in one step.

        Used by invoice and commerce entry points, which label the outcome
        ``blocked``, ``requires_approval`` or ``approved``.
        """
        intent = self.create_intent(request, agent=agent, tool_name=tool_name)
        try:
            candidate = intent.candidate()
            rules = self.registry.enabled_rules()
            context = self.ledger.spend_context(intent.wallet_id)
            results = self.evaluator.evaluate(candidate, rules, context)
            needs_human = requires_human_approval(candidate, rules)
        except Exception as e:
            logger.warning("Guard evaluation of intent %s failed: %s", intent.id, e)
            intent.status = IntentStatus.FAILED
            self._fail_step(intent, StepName.SIMULATION, str(e) or "Guard evaluation failed")
            self.repository.save(intent)
            return intent

        intent.guard_results = results
        self._complete_step(intent, StepName.SIMULATION)
        approval = intent.step(StepName.APPROVAL)
        if not all(r.passed for r in results):
            intent.status = IntentStatus.BLOCKED
            approval.status = StepStatus.FAILED
            approval.details = BLOCKED_DETAILS
        elif needs_human:
            intent.status = IntentStatus.REQUIRES_APPROVAL
            approval.status = StepStatus.IN_PROGRESS
        else:
            intent.status = IntentStatus.APPROVED
            self._complete_step(intent, StepName.APPROVAL, automatic=True)

        intent.touch()
        self.repository.save(intent)
        return intent

    async def approve(self, intent_id: str) -> PaymentIntent:
        """Record the human approval and move the intent to ``executing``."""
        async with self._lock(intent_id):
            intent = self.repository.get(intent_id)
            if intent.status not in APPROVABLE:
                raise InvalidStateError(intent.id, intent.status.value, "approve")

            self._start_execution(intent)
            self.repository.save(intent)
            logger.info("Approved intent %s", intent.id)
            return intent

    async def execute(self, intent_id: str) -> PaymentIntent:
        """Hand the payment to the executor; its answer decides the terminal status."""
        async with self._lock(intent_id):
            intent = self.repository.get(intent_id)
            if intent.status not in EXECUTABLE:
                raise InvalidStateError(intent.id, intent.status.value, "execute")

            if intent.status != IntentStatus.EXECUTING:
                self._start_execution(intent)
            self.repository.save(intent)

            try:
                result = await self._time_boxed(self.executor.execute_payment(intent), "execution")
            except asyncio.CancelledError:
                intent.status = IntentStatus.FAILED
                self._fail_step(intent, StepName.EXECUTION, "Payment execution cancelled")
                self.repository.save(intent)
                raise
            except Exception as e:
                logger.warning("Execution of intent %s raised: %s", intent.id, e)
                intent.status = IntentStatus.FAILED
                self._fail_step(intent, StepName.EXECUTION, str(e) or "Execution failed")
                self.repository.save(intent)
                return intent

            if not (result.success and result.tx_hash):
                logger.warning("Execution of intent %s failed: %s", intent.id, result.error)
                intent.status = IntentStatus.FAILED
                self._fail_step(intent, StepName.EXECUTION, result.error or "Execution failed")
                self.repository.save(intent)
                return intent

            intent.tx_hash = result.tx_hash
            self._complete_step(intent, StepName.EXECUTION)
            self._complete_step(intent, StepName.CONFIRMATION)
            intent.status = IntentStatus.SUCCEEDED
            intent.touch()
            self.repository.save(intent)

            self.ledger.record(
                Transaction(
                    id=f"tx_{uuid.uuid4().hex[:12]}",
                    intent_id=intent.id,
                    wallet_id=intent.wallet_id,
                    amount=intent.amount,
                    currency=intent.currency,
                    recipient=intent.recipient,
                    recipient_address=intent.recipient_address,
                    chain=intent.chain,
                    tx_hash=result.tx_hash,
                    fee=result.fee if result.fee is not None else intent.estimated_fee or 0,
                )
            )
            logger.info("Intent %s succeeded with tx %s", intent.id, intent.tx_hash)
            return intent

    def replay(
        self,
        intent_id: str,
        rules: list[GuardRule] | None = None,
        context: SpendContext | None = None,
    ) -> ReplayResult:
        """Re-run the guards for a stored intent without touching it.

        ``rules`` defaults to the registry's current rules and ``context`` to
        current spend excluding the intent's own transaction.
        """
        intent = self.repository.get(intent_id)
        if rules is None:
            rules = self.registry.list_rules()
        if context is None:
            context = self.ledger.spend_context(intent.wallet_id, exclude_intent_id=intent.id)

        current = self.evaluator.evaluate(intent.candidate(), rules, context)
        return ReplayResult(
            intent_id=intent.id,
            original_allowed=all(r.passed for r in intent.guard_results),
            original_timestamp=intent.created_at,
            original_results=intent.guard_results,
            current_allowed=all(r.passed for r in current),
            current_timestamp=context.now,
            current_results=current,
            differences=diff_results(intent.guard_results, current),
        )

    async def _time_boxed(self, call: Awaitable[T], what: str) -> T:
        try:
            return await asyncio.wait_for(call, timeout=self.execution_timeout)
        except TimeoutError:
            raise ExecutionTimeoutError(
                f"Payment {what} timed out after {self.execution_timeout:g}s"
            ) from None

    def _start_execution(self, intent: PaymentIntent) -> None:
        if intent.step(StepName.APPROVAL).status != StepStatus.COMPLETED:
            self._complete_step(intent, StepName.APPROVAL)
        intent.step(StepName.EXECUTION).status = StepStatus.IN_PROGRESS
        intent.status = IntentStatus.EXECUTING
        intent.touch()

    @staticmethod
    def _complete_step(intent: PaymentIntent, name: StepName, automatic: bool = False) -> None:
        step = intent.step(name)
        step.status = StepStatus.COMPLETED
        step.timestamp = _now()
        step.details = None
        step.automatic = automatic

    @staticmethod
    def _fail_step(intent: PaymentIntent, name: StepName, details: str) -> None:
        step = intent.step(name)
        step.status = StepStatus.FAILED
        step.timestamp = _now()
        step.details = details
        intent.touch()


def diff_results(original: list[GuardResult], current: list[GuardResult]) -> list[GuardDiff]:
    """Guards present in both result sets whose pass/fail flipped."""
    current_by_id = {r.guard_id: r for r in current}
    differences = []
    for before in original:
        after = current_by_id.get(before.guard_id)
        if after is None or after.passed == before.passed:
            continue
        differences.append(
            GuardDiff(
                guard_id=before.guard_id,
                guard_name=before.guard_name,
                original=before.passed,
                current=after.passed,
                reason=(
                    f"Guard result changed: was {'passed' if before.passed else 'failed'}, "
                    f"now {'passed' if after.passed else 'failed'}"
                ),
            )
        )
    return differences
