"""Tests for the payment intent lifecycle state machine."""

import asyncio
from decimal import Decimal

import pytest

from paywarden.errors import IntentNotFoundError, InvalidStateError
from paywarden.executors.base import ExecutionResult, PaymentExecutor, Route, SimulationResult
from paywarden.guards.models import GuardKind, GuardRule, PaymentCandidate
from paywarden.guards.registry import InMemoryRuleRegistry
from paywarden.identity.agent import Agent
from paywarden.intents.lifecycle import IntentLifecycle
from paywarden.intents.models import (
    ApprovalState,
    IntentStatus,
    PaymentIntent,
    PaymentRequest,
    StepName,
    StepStatus,
)
from paywarden.intents.repository import InMemoryIntentRepository
from paywarden.ledger.base import InMemoryLedger


class StubExecutor(PaymentExecutor):
    """Executor returning a canned result, optionally after a delay."""

    def __init__(
        self,
        result: ExecutionResult | None = None,
        delay: float = 0,
        error: Exception | None = None,
        simulate_delay: float = 0,
        simulate_error: Exception | None = None,
    ) -> None:
        self.result = result or ExecutionResult(success=True, tx_hash="0xabc", fee=Decimal("0.5"))
        self.delay = delay
        self.error = error
        self.simulate_delay = simulate_delay
        self.simulate_error = simulate_error
        self.calls = 0

    async def simulate(self, candidate: PaymentCandidate) -> SimulationResult:
        if self.simulate_delay:
            await asyncio.sleep(self.simulate_delay)
        if self.simulate_error:
            raise self.simulate_error
        return SimulationResult(route=Route.TRANSFER, estimated_fee=Decimal("0.5"))

    async def execute_payment(self, intent: PaymentIntent) -> ExecutionResult:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.result


AUTO_APPROVE = GuardRule(id="guard_4", name="Auto-approve Threshold", kind=GuardKind.AUTO_APPROVE, config={"threshold": 100})
SINGLE_TX = GuardRule(id="guard_2", name="Single Transaction Limit", kind=GuardKind.SINGLE_TX, config={"limit": 2000})
BUDGET = GuardRule(id="guard_1", name="Daily Budget", kind=GuardKind.BUDGET, config={"limit": 3000, "period": "day"})


def make_lifecycle(
    rules: list[GuardRule] | None = None,
    executor: PaymentExecutor | None = None,
    execution_timeout: float = 30.0,
) -> IntentLifecycle:
    return IntentLifecycle(
        repository=InMemoryIntentRepository(),
        registry=InMemoryRuleRegistry([AUTO_APPROVE] if rules is None else rules),
        executor=executor or StubExecutor(),
        ledger=InMemoryLedger(),
        execution_timeout=execution_timeout,
    )


def make_request(amount: str = "50", wallet_id: str = "wallet_1") -> PaymentRequest:
    return PaymentRequest(
        amount=Decimal(amount),
        recipient="Acme Cloud",
        recipient_address="0xacme",
        wallet_id=wallet_id,
        chain="base",
        description="GPU hours",
    )


class TestCreateAndSimulate:
    def test_create_starts_pending_with_four_steps(self):
        lifecycle = make_lifecycle()
        agent = Agent(agent_id="agt_1", name="Buyer")
        intent = lifecycle.create_intent(make_request(), agent=agent)

        assert intent.id.startswith("pi_")
        assert intent.status == IntentStatus.PENDING
        assert [s.id for s in intent.steps] == ["s1", "s2", "s3", "s4"]
        assert all(s.status == StepStatus.PENDING for s in intent.steps)
        assert intent.agent_name == "Buyer"
        assert lifecycle.get(intent.id).tool_name == "create_payment_intent"

    @pytest.mark.asyncio
    async def test_small_payment_is_auto_approved(self):
        lifecycle = make_lifecycle()
        intent = lifecycle.create_intent(make_request("50"))

        intent = await lifecycle.simulate(intent.id)
        assert intent.status == IntentStatus.AWAITING_APPROVAL
        assert intent.step(StepName.SIMULATION).status == StepStatus.COMPLETED
        assert intent.step(StepName.APPROVAL).status == StepStatus.COMPLETED
        assert intent.approval_state == ApprovalState.AUTO_APPROVED
        assert intent.route == "transfer"
        assert intent.estimated_fee == Decimal("0.5")

    @pytest.mark.asyncio
    async def test_large_payment_needs_human(self):
        lifecycle = make_lifecycle()
        intent = lifecycle.create_intent(make_request("150"))

        intent = await lifecycle.simulate(intent.id)
        assert intent.status == IntentStatus.AWAITING_APPROVAL
        assert intent.step(StepName.APPROVAL).status == StepStatus.IN_PROGRESS
        assert intent.approval_state == ApprovalState.PENDING_HUMAN

    @pytest.mark.asyncio
    async def test_failing_guard_blocks(self):
        lifecycle = make_lifecycle([SINGLE_TX, BUDGET])
        intent = lifecycle.create_intent(make_request("2500"))

        intent = await lifecycle.simulate(intent.id)
        assert intent.status == IntentStatus.BLOCKED
        assert intent.step(StepName.APPROVAL).status == StepStatus.FAILED
        assert [r.passed for r in intent.guard_results] == [False, True]

    @pytest.mark.asyncio
    async def test_without_auto_approve_rule_human_is_required(self):
        lifecycle = make_lifecycle([BUDGET])
        intent = lifecycle.create_intent(make_request("1"))

        intent = await lifecycle.simulate(intent.id)
        assert intent.approval_state == ApprovalState.PENDING_HUMAN

    @pytest.mark.asyncio
    async def test_simulate_twice_is_rejected(self):
        lifecycle = make_lifecycle()
        intent = lifecycle.create_intent(make_request())
        await lifecycle.simulate(intent.id)

        with pytest.raises(InvalidStateError):
            await lifecycle.simulate(intent.id)

    @pytest.mark.asyncio
    async def test_unknown_intent(self):
        with pytest.raises(IntentNotFoundError):
            await make_lifecycle().simulate("pi_missing")

    @pytest.mark.asyncio
    async def test_spend_from_earlier_payments_counts(self):
        rules = [BUDGET.model_copy(update={"config": {"limit": 100, "period": "day"}}), AUTO_APPROVE]
        lifecycle = make_lifecycle(rules)

        first = lifecycle.create_intent(make_request("80"))
        await lifecycle.simulate(first.id)
        await lifecycle.execute(first.id)

        second = lifecycle.create_intent(make_request("30"))
        second = await lifecycle.simulate(second.id)
        assert second.status == IntentStatus.BLOCKED

        other_wallet = lifecycle.create_intent(make_request("30", wallet_id="wallet_2"))
        other_wallet = await lifecycle.simulate(other_wallet.id)
        assert other_wallet.status == IntentStatus.AWAITING_APPROVAL

    @pytest.mark.asyncio
    async def test_simulation_error_marks_failed(self):
        lifecycle = make_lifecycle(executor=StubExecutor(simulate_error=RuntimeError("rpc down")))
        intent = lifecycle.create_intent(make_request("50"))

        intent = await lifecycle.simulate(intent.id)
        assert intent.status == IntentStatus.FAILED
        assert intent.step(StepName.SIMULATION).status == StepStatus.FAILED
        assert intent.step(StepName.SIMULATION).details == "rpc down"
        assert lifecycle.get(intent.id).status == IntentStatus.FAILED

    @pytest.mark.asyncio
    async def test_spend_lookup_error_marks_failed(self):
        class BrokenLedger(InMemoryLedger):
            def spend_context(self, wallet_id, **kwargs):
                raise RuntimeError("ledger offline")

        lifecycle = IntentLifecycle(
            repository=InMemoryIntentRepository(),
            registry=InMemoryRuleRegistry([AUTO_APPROVE]),
            executor=StubExecutor(),
            ledger=BrokenLedger(),
        )
        intent = lifecycle.create_intent(make_request("50"))

        intent = await lifecycle.simulate(intent.id)
        assert intent.status == IntentStatus.FAILED
        assert intent.step(StepName.SIMULATION).details == "ledger offline"
        assert intent.guard_results == []

    @pytest.mark.asyncio
    async def test_cancelled_simulation_marks_failed(self):
        lifecycle = make_lifecycle(executor=StubExecutor(simulate_delay=1.0))
        intent = lifecycle.create_intent(make_request("50"))

        task = asyncio.create_task(lifecycle.simulate(intent.id))
        await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        stored = lifecycle.get(intent.id)
        assert stored.status == IntentStatus.FAILED
        assert stored.step(StepName.SIMULATION).status == StepStatus.FAILED
        assert stored.step(StepName.SIMULATION).details == "Payment simulation cancelled"

    @pytest.mark.asyncio
    async def test_locks_are_released_after_use(self):
        lifecycle = make_lifecycle()
        intent = lifecycle.create_intent(make_request("50"))
        await lifecycle.simulate(intent.id)
        await lifecycle.execute(intent.id)

        assert intent.id not in lifecycle._locks


class TestApproveAndExecute:
    @pytest.mark.asyncio
    async def test_approve_then_execute_succeeds(self):
        lifecycle = make_lifecycle()
        intent = lifecycle.create_intent(make_request("500"))
        await lifecycle.simulate(intent.id)

        intent = await lifecycle.approve(intent.id)
        assert intent.status == IntentStatus.EXECUTING
        assert intent.step(StepName.APPROVAL).status == StepStatus.COMPLETED
        assert intent.approval_state == ApprovalState.APPROVED

        intent = await lifecycle.execute(intent.id)
        assert intent.status == IntentStatus.SUCCEEDED
        assert intent.tx_hash == "0xabc"
        assert intent.step(StepName.EXECUTION).status == StepStatus.COMPLETED
        assert intent.step(StepName.CONFIRMATION).status == StepStatus.COMPLETED

        [tx] = lifecycle.ledger.transactions()
        assert tx.intent_id == intent.id
        assert tx.amount == Decimal("500")
        assert tx.tx_hash == "0xabc"

    @pytest.mark.asyncio
    async def test_executor_failure_is_terminal(self):
        executor = StubExecutor(ExecutionResult(success=False, error="insufficient gas"))
        lifecycle = make_lifecycle(executor=executor)
        intent = lifecycle.create_intent(make_request("500"))
        await lifecycle.simulate(intent.id)
        await lifecycle.approve(intent.id)

        intent = await lifecycle.execute(intent.id)
        assert intent.status == IntentStatus.FAILED
        assert intent.step(StepName.EXECUTION).details == "insufficient gas"
        assert intent.tx_hash is None
        assert lifecycle.ledger.transactions() == []

    @pytest.mark.asyncio
    async def test_success_without_tx_hash_fails(self):
        executor = StubExecutor(ExecutionResult(success=True))
        lifecycle = make_lifecycle(executor=executor)
        intent = lifecycle.create_intent(make_request("50"))
        await lifecycle.simulate(intent.id)

        intent = await lifecycle.execute(intent.id)
        assert intent.status == IntentStatus.FAILED

    @pytest.mark.asyncio
    async def test_executor_exception_marks_failed(self):
        lifecycle = make_lifecycle(executor=StubExecutor(error=ConnectionError("rpc down")))
        intent = lifecycle.create_intent(make_request("50"))
        await lifecycle.simulate(intent.id)

        intent = await lifecycle.execute(intent.id)
        assert intent.status == IntentStatus.FAILED
        assert intent.step(StepName.EXECUTION).details == "rpc down"

    @pytest.mark.asyncio
    async def test_auto_approved_intent_executes_directly(self):
        lifecycle = make_lifecycle()
        intent = lifecycle.create_intent(make_request("50"))
        await lifecycle.simulate(intent.id)

        intent = await lifecycle.execute(intent.id)
        assert intent.status == IntentStatus.SUCCEEDED
        assert intent.approval_state == ApprovalState.AUTO_APPROVED

    @pytest.mark.asyncio
    @pytest.mark.parametrize("terminal", ["blocked", "succeeded", "failed"])
    async def test_approve_rejected_from_terminal_states(self, terminal: str):
        lifecycle = make_lifecycle()
        intent = lifecycle.create_intent(make_request())
        intent.status = IntentStatus(terminal)
        lifecycle.repository.save(intent)
        before = lifecycle.get(intent.id)

        with pytest.raises(InvalidStateError) as exc_info:
            await lifecycle.approve(intent.id)

        assert exc_info.value.status == terminal
        assert lifecycle.get(intent.id) == before

    @pytest.mark.asyncio
    async def test_execute_rejected_before_simulation(self):
        lifecycle = make_lifecycle()
        intent = lifecycle.create_intent(make_request())

        with pytest.raises(InvalidStateError):
            await lifecycle.execute(intent.id)

    @pytest.mark.asyncio
    async def test_execution_timeout_marks_failed(self):
        lifecycle = make_lifecycle(executor=StubExecutor(delay=1.0), execution_timeout=0.05)
        intent = lifecycle.create_intent(make_request("50"))
        await lifecycle.simulate(intent.id)

        intent = await lifecycle.execute(intent.id)
        assert intent.status == IntentStatus.FAILED
        assert "timed out" in intent.step(StepName.EXECUTION).details

    @pytest.mark.asyncio
    async def test_concurrent_execute_pays_once(self):
        executor = StubExecutor(delay=0.05)
        lifecycle = make_lifecycle(executor=executor)
        intent = lifecycle.create_intent(make_request("50"))
        await lifecycle.simulate(intent.id)

        results = await asyncio.gather(
            lifecycle.execute(intent.id),
            lifecycle.execute(intent.id),
            return_exceptions=True,
        )

        assert executor.calls == 1
        assert sum(isinstance(r, InvalidStateError) for r in results) == 1
        assert lifecycle.get(intent.id).status == IntentStatus.SUCCEEDED
        assert len(lifecycle.ledger.transactions()) == 1

    @pytest.mark.asyncio
    async def test_cancelled_execution_marks_failed(self):
        lifecycle = make_lifecycle(executor=StubExecutor(delay=1.0))
        intent = lifecycle.create_intent(make_request("50"))
        await lifecycle.simulate(intent.id)

        task = asyncio.create_task(lifecycle.execute(intent.id))
        await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert lifecycle.get(intent.id).status == IntentStatus.FAILED


class TestSubmit:
    def test_small_invoice_is_approved(self):
        lifecycle = make_lifecycle()
        intent = lifecycle.submit(make_request("50"))
        assert intent.status == IntentStatus.APPROVED
        assert intent.tool_name == "pay_invoice"

    def test_large_invoice_requires_approval(self):
        intent = make_lifecycle().submit(make_request("500"))
        assert intent.status == IntentStatus.REQUIRES_APPROVAL
        assert intent.approval_state == ApprovalState.PENDING_HUMAN

    def test_blocked_invoice(self):
        intent = make_lifecycle([SINGLE_TX]).submit(make_request("2500"))
        assert intent.status == IntentStatus.BLOCKED

    @pytest.mark.asyncio
    async def test_requires_approval_can_be_approved_and_executed(self):
        lifecycle = make_lifecycle()
        intent = lifecycle.submit(make_request("500"))

        await lifecycle.approve(intent.id)
        intent = await lifecycle.execute(intent.id)
        assert intent.status == IntentStatus.SUCCEEDED

    @pytest.mark.asyncio
    async def test_approved_invoice_executes(self):
        lifecycle = make_lifecycle()
        intent = lifecycle.submit(make_request("50"))

        intent = await lifecycle.execute(intent.id)
        assert intent.status == IntentStatus.SUCCEEDED


class TestReplay:
    @pytest.mark.asyncio
    async def test_same_rules_report_no_differences(self):
        lifecycle = make_lifecycle([SINGLE_TX, BUDGET])
        intent = lifecycle.create_intent(make_request("2500"))
        await lifecycle.simulate(intent.id)

        replay = lifecycle.replay(intent.id, rules=[SINGLE_TX, BUDGET])
        assert replay.differences == []
        assert replay.original_allowed is False
        assert replay.current_allowed is False

    @pytest.mark.asyncio
    async def test_raised_limit_flips_single_tx(self):
        lifecycle = make_lifecycle([SINGLE_TX, BUDGET])
        intent = lifecycle.create_intent(make_request("2500"))
        await lifecycle.simulate(intent.id)

        lifecycle.registry.update("guard_2", config={"limit": 3000})
        replay = lifecycle.replay(intent.id)

        [diff] = replay.differences
        assert diff.guard_id == "guard_2"
        assert diff.original is False
        assert diff.current is True
        assert replay.current_allowed is True

    @pytest.mark.asyncio
    async def test_replay_does_not_mutate_intent(self):
        lifecycle = make_lifecycle([SINGLE_TX])
        intent = lifecycle.create_intent(make_request("2500"))
        await lifecycle.simulate(intent.id)
        before = lifecycle.get(intent.id)

        lifecycle.replay(intent.id, rules=[])
        assert lifecycle.get(intent.id) == before

    @pytest.mark.asyncio
    async def test_own_transaction_is_not_counted_twice(self):
        rules = [BUDGET.model_copy(update={"config": {"limit": 100, "period": "day"}}), AUTO_APPROVE]
        lifecycle = make_lifecycle(rules)
        intent = lifecycle.create_intent(make_request("80"))
        await lifecycle.simulate(intent.id)
        await lifecycle.execute(intent.id)

        replay = lifecycle.replay(intent.id)
        assert replay.current_allowed is True
        assert replay.differences == []
