"""Integration tests for MCP payment tools: full intent flow with guard enforcement."""

from decimal import Decimal

import pytest

from paywarden import server
from paywarden.executors.paper import PaperExecutor
from paywarden.guards.registry import InMemoryRuleRegistry
from paywarden.identity.agent import Agent
from paywarden.intents.lifecycle import IntentLifecycle
from paywarden.intents.repository import InMemoryIntentRepository
from paywarden.ledger.base import InMemoryLedger
from paywarden.tools.payments import (
    handle_approve_payment,
    handle_blast_radius,
    handle_check_guards,
    handle_create_payment_intent,
    handle_execute_payment,
    handle_get_timeline,
    handle_pay_invoice,
    handle_replay_payment,
    handle_simulate_payment,
)

AGENT = Agent(agent_id="agt_tools", name="Tool Tester")


@pytest.fixture
def lifecycle() -> IntentLifecycle:
    return IntentLifecycle(
        repository=InMemoryIntentRepository(),
        registry=InMemoryRuleRegistry(),
        executor=PaperExecutor(),
        ledger=InMemoryLedger(),
    )


def create(lifecycle: IntentLifecycle, amount: float) -> dict:
    return handle_create_payment_intent(
        amount, "Acme", "0xacme", "wallet_1", "base", lifecycle=lifecycle, agent=AGENT
    )


class TestIntentFlow:
    @pytest.mark.asyncio
    async def test_auto_approved_payment_executes(self, lifecycle: IntentLifecycle):
        created = create(lifecycle, 50)
        assert created["status"] == "pending"
        assert created["amount"] == "50"

        simulated = await handle_simulate_payment(created["id"], lifecycle=lifecycle)
        assert simulated["status"] == "awaiting_approval"
        assert simulated["approval_state"] == "auto_approved"
        assert simulated["requires_approval"] is False

        executed = await handle_execute_payment(created["id"], lifecycle=lifecycle)
        assert executed["status"] == "succeeded"
        assert executed["message"].startswith("Payment sent: 0x")

    @pytest.mark.asyncio
    async def test_large_payment_needs_approval(self, lifecycle: IntentLifecycle):
        created = create(lifecycle, 500)
        simulated = await handle_simulate_payment(created["id"], lifecycle=lifecycle)
        assert simulated["requires_approval"] is True

        approved = await handle_approve_payment(created["id"], lifecycle=lifecycle)
        assert approved["status"] == "executing"

        executed = await handle_execute_payment(created["id"], lifecycle=lifecycle)
        assert executed["status"] == "succeeded"

    @pytest.mark.asyncio
    async def test_blocked_payment_cannot_be_approved(self, lifecycle: IntentLifecycle):
        created = create(lifecycle, 2500)
        simulated = await handle_simulate_payment(created["id"], lifecycle=lifecycle)
        assert simulated["status"] == "blocked"

        result = await handle_approve_payment(created["id"], lifecycle=lifecycle)
        assert result["status"] == "rejected"
        assert "blocked" in result["error"]

    def test_non_positive_amount_is_rejected(self, lifecycle: IntentLifecycle):
        assert create(lifecycle, 0)["status"] == "rejected"
        assert lifecycle.repository.list_intents() == []

    @pytest.mark.asyncio
    async def test_unknown_intent_is_rejected(self, lifecycle: IntentLifecycle):
        result = await handle_simulate_payment("pi_nope", lifecycle=lifecycle)
        assert result == {"status": "rejected", "error": "Payment intent not found: pi_nope"}

    def test_pay_invoice(self, lifecycle: IntentLifecycle):
        result = handle_pay_invoice(
            75, "Acme", "0xacme", "wallet_1", "base", lifecycle=lifecycle, agent=AGENT
        )
        assert result["status"] == "approved"
        assert result["tool_name"] == "pay_invoice"


class TestReporting:
    def test_check_guards_creates_nothing(self, lifecycle: IntentLifecycle):
        result = handle_check_guards(2500, "0xacme", "wallet_1", lifecycle=lifecycle)
        assert result["allowed"] is False
        assert "$2500" in result["blocked_reason"]
        assert lifecycle.repository.list_intents() == []

    def test_check_guards_reports_approval_need(self, lifecycle: IntentLifecycle):
        assert handle_check_guards(500, "0xacme", "wallet_1", lifecycle=lifecycle)["requires_approval"]
        assert not handle_check_guards(5, "0xacme", "wallet_1", lifecycle=lifecycle)["requires_approval"]

    @pytest.mark.asyncio
    async def test_replay_after_limit_change(self, lifecycle: IntentLifecycle):
        created = create(lifecycle, 2500)
        await handle_simulate_payment(created["id"], lifecycle=lifecycle)
        lifecycle.registry.update("guard_2", config={"limit": 3000})

        replay = handle_replay_payment(created["id"], lifecycle=lifecycle)
        assert replay["current_allowed"] is True
        assert [d["guard_id"] for d in replay["differences"]] == ["guard_2"]

    @pytest.mark.asyncio
    async def test_blast_radius_of_lower_limit(self, lifecycle: IntentLifecycle):
        created = create(lifecycle, 1500)
        await handle_simulate_payment(created["id"], lifecycle=lifecycle)

        result = handle_blast_radius(
            "guard_2", {"limit": 1000}, lifecycle=lifecycle, agents=[AGENT]
        )
        assert result["affected_agents"][0]["agent_id"] == "agt_tools"
        assert result["affected_agents"][0]["impact"] == "high"
        assert result["estimated_daily_exposure"] == "1000"

    def test_blast_radius_unknown_guard(self, lifecycle: IntentLifecycle):
        result = handle_blast_radius("guard_99", lifecycle=lifecycle, agents=[])
        assert result["status"] == "rejected"

    @pytest.mark.asyncio
    async def test_timeline(self, lifecycle: IntentLifecycle):
        created = create(lifecycle, 50)
        await handle_simulate_payment(created["id"], lifecycle=lifecycle)

        result = handle_get_timeline(created["id"], lifecycle=lifecycle)
        assert result["timeline"][0]["type"] == "agent_action"
        assert result["explanation"]["allowed"] is True


class TestServerTools:
    @pytest.fixture(autouse=True)
    def server_lifecycle(self, lifecycle: IntentLifecycle, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr(server, "_lifecycle", lifecycle)
        monkeypatch.setattr(server, "_get_agent", lambda: AGENT)
        return lifecycle

    @pytest.mark.asyncio
    async def test_full_flow_through_server(self, server_lifecycle: IntentLifecycle):
        created = server.create_payment_intent(
            amount=20.0, recipient="Acme", recipient_address="0xacme", wallet_id="wallet_1", chain="base"
        )
        await server.simulate_payment(created["id"])
        executed = await server.execute_payment(created["id"])

        assert executed["status"] == "succeeded"
        assert executed["agent_id"] == "agt_tools"
        [tx] = server_lifecycle.ledger.transactions()
        assert tx.amount == Decimal("20.0")

    def test_check_guards_tool(self):
        result = server.check_guards(amount=10.0, recipient_address="0xacme", wallet_id="wallet_1")
        assert result["allowed"] is True
