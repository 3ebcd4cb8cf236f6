"""Payment tool implementations exposed to agents over MCP."""

from decimal import Decimal

from pydantic import ValidationError

from paywarden.analysis.blast_radius import BlastRadiusAnalyzer
from paywarden.errors import PaywardenError
from paywarden.guards.engine import requires_human_approval
from paywarden.guards.models import PaymentCandidate
from paywarden.identity.agent import Agent
from paywarden.intents.lifecycle import IntentLifecycle
from paywarden.intents.models import ApprovalState, PaymentIntent, PaymentRequest
from paywarden.intents.timeline import build_timeline, explain


def _rejected(error: Exception) -> dict:
    return {"status": "rejected", "error": str(error)}


def _intent_view(intent: PaymentIntent) -> dict:
    data = intent.model_dump(mode="json")
    data["approval_state"] = intent.approval_state.value
    return data


def handle_create_payment_intent(
    amount: float | str,
    recipient: str,
    recipient_address: str,
    wallet_id: str,
    chain: str,
    currency: str = "USDC",
    description: str = "",
    *,
    lifecycle: IntentLifecycle,
    agent: Agent | None = None,
) -> dict:
    """Create a pending payment intent."""
    try:
        request = PaymentRequest(
            amount=Decimal(str(amount)),
            currency=currency,
            recipient=recipient,
            recipient_address=recipient_address,
            wallet_id=wallet_id,
            chain=chain,
            description=description,
        )
    except (ValidationError, ArithmeticError) as e:
        return _rejected(e)

    intent = lifecycle.create_intent(request, agent=agent)
    return _intent_view(intent)


async def handle_simulate_payment(intent_id: str, *, lifecycle: IntentLifecycle) -> dict:
    """Simulate a pending intent and run the guards against it."""
    try:
        intent = await lifecycle.simulate(intent_id)
    except PaywardenError as e:
        return _rejected(e)

    view = _intent_view(intent)
    view["requires_approval"] = intent.approval_state == ApprovalState.PENDING_HUMAN
    return view


async def handle_approve_payment(intent_id: str, *, lifecycle: IntentLifecycle) -> dict:
    """Approve an intent that is waiting for a human decision."""
    try:
        intent = await lifecycle.approve(intent_id)
    except PaywardenError as e:
        return _rejected(e)
    return _intent_view(intent)


async def handle_execute_payment(intent_id: str, *, lifecycle: IntentLifecycle) -> dict:
    """Execute an approved intent."""
    try:
        intent = await lifecycle.execute(intent_id)
    except PaywardenError as e:
        return _rejected(e)

    view = _intent_view(intent)
    if intent.tx_hash:
        view["message"] = f"Payment sent: {intent.tx_hash}"
    else:
        view["message"] = f"Payment {intent.status.value}"
    return view


def handle_pay_invoice(
    amount: float | str,
    recipient: str,
    recipient_address: str,
    wallet_id: str,
    chain: str,
    currency: str = "USDC",
    description: str = "",
    *,
    lifecycle: IntentLifecycle,
    agent: Agent | None = None,
) -> dict:
    """Create and guard-check an invoice payment in one step."""
    try:
        request = PaymentRequest(
            amount=Decimal(str(amount)),
            currency=currency,
            recipient=recipient,
            recipient_address=recipient_address,
            wallet_id=wallet_id,
            chain=chain,
            description=description,
        )
    except (ValidationError, ArithmeticError) as e:
        return _rejected(e)

    intent = lifecycle.submit(request, agent=agent)
    return _intent_view(intent)


def handle_replay_payment(intent_id: str, *, lifecycle: IntentLifecycle) -> dict:
    """Re-run today's guards against a past intent."""
    try:
        replay = lifecycle.replay(intent_id)
    except PaywardenError as e:
        return _rejected(e)
    return replay.model_dump(mode="json")


def handle_check_guards(
    amount: float | str,
    recipient_address: str,
    wallet_id: str,
    chain: str = "base",
    recipient: str = "",
    *,
    lifecycle: IntentLifecycle,
) -> dict:
    """Dry-run the enabled guards without creating an intent."""
    try:
        candidate = PaymentCandidate(
            amount=Decimal(str(amount)),
            recipient=recipient or recipient_address,
            recipient_address=recipient_address,
            wallet_id=wallet_id,
            chain=chain,
        )
    except (ValidationError, ArithmeticError) as e:
        return _rejected(e)

    rules = lifecycle.registry.enabled_rules()
    context = lifecycle.ledger.spend_context(wallet_id)
    decision = lifecycle.evaluator.decide(candidate, rules, context)

    data = decision.model_dump(mode="json")
    data["requires_approval"] = decision.allowed and requires_human_approval(candidate, rules)
    return data


def handle_blast_radius(
    guard_id: str,
    proposed_config: dict | None = None,
    *,
    lifecycle: IntentLifecycle,
    agents: list[Agent],
    analyzer: BlastRadiusAnalyzer | None = None,
) -> dict:
    """Estimate which agents and tools a guard change would affect."""
    analyzer = analyzer or BlastRadiusAnalyzer(lifecycle.evaluator)
    try:
        current = lifecycle.registry.get(guard_id)
    except PaywardenError as e:
        return _rejected(e)

    proposed = None
    if proposed_config is not None:
        proposed = current.model_copy(update={"config": {**current.config, **proposed_config}})

    radius = analyzer.analyze(
        guard_id,
        lifecycle.repository.list_intents(),
        agents,
        rules=lifecycle.registry.list_rules(),
        proposed_rule=proposed,
        transactions=lifecycle.ledger.transactions(),
    )
    return radius.model_dump(mode="json")


def handle_get_timeline(intent_id: str, *, lifecycle: IntentLifecycle) -> dict:
    """Timeline and explanation for one intent."""
    try:
        intent = lifecycle.get(intent_id)
    except PaywardenError as e:
        return _rejected(e)

    return {
        "intent_id": intent.id,
        "status": intent.status.value,
        "timeline": [event.model_dump(mode="json") for event in build_timeline(intent)],
        "explanation": explain(intent).model_dump(mode="json"),
    }
