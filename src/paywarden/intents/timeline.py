"""Timeline and explanation views derived from a payment intent."""

from paywarden.guards.models import format_usd
from paywarden.intents.models import (
    PaymentExplanation,
    PaymentIntent,
    StepName,
    StepStatus,
    TimelineEvent,
)

_STEP_EVENT_STATUS = {
    StepStatus.COMPLETED: "success",
    StepStatus.FAILED: "failed",
}


def build_timeline(intent: PaymentIntent) -> list[TimelineEvent]:
    """Ordered events: agent, tool, simulation, each guard, approval, execution."""
    events: list[TimelineEvent] = []

    if intent.agent_id and intent.agent_name:
        events.append(
            TimelineEvent(
                id="tl_1",
                type="agent_action",
                timestamp=intent.created_at,
                title="Agent initiated payment",
                description=f"{intent.agent_name} initiated a payment request",
                status="success",
                details={"agent_id": intent.agent_id, "agent_name": intent.agent_name},
            )
        )

    if intent.tool_name:
        events.append(
            TimelineEvent(
                id="tl_2",
                type="tool_invocation",
                timestamp=intent.created_at,
                title="Tool invoked",
                description=f"Tool {intent.tool_name} was invoked",
                status="success",
                details={
                    "tool_name": intent.tool_name,
                    "input": {
                        "amount": str(intent.amount),
                        "recipient": intent.recipient,
                        "chain": intent.chain,
                    },
                },
            )
        )

    simulation = intent.step(StepName.SIMULATION)
    if simulation.status != StepStatus.PENDING:
        events.append(
            TimelineEvent(
                id="tl_3",
                type="simulate",
                timestamp=simulation.timestamp or intent.created_at,
                title="Payment simulation",
                description=simulation.details or "Simulated payment execution",
                status=_STEP_EVENT_STATUS.get(simulation.status, "pending"),
                details={
                    "route": intent.route,
                    "estimated_fee": str(intent.estimated_fee) if intent.estimated_fee is not None else None,
                },
            )
        )

    for i, result in enumerate(intent.guard_results):
        events.append(
            TimelineEvent(
                id=f"tl_4_{i}",
                type="guard_evaluation",
                timestamp=simulation.timestamp or intent.updated_at,
                title=f"Guard: {result.guard_name}",
                description=result.reason
                or ("Guard check passed" if result.passed else "Guard check failed"),
                status="success" if result.passed else "blocked",
                details=result.model_dump(),
            )
        )

    approval = intent.step(StepName.APPROVAL)
    if approval.status != StepStatus.PENDING:
        if approval.status == StepStatus.COMPLETED:
            description = "Payment auto-approved" if approval.automatic else "Payment approved"
            status = "success"
        elif approval.status == StepStatus.FAILED:
            description = approval.details or "Payment rejected"
            status = "blocked"
        else:
            description = "Awaiting approval"
            status = "pending"
        events.append(
            TimelineEvent(
                id="tl_5",
                type="approval_decision",
                timestamp=approval.timestamp or intent.updated_at,
                title="Approval decision",
                description=description,
                status=status,
            )
        )

    execution = intent.step(StepName.EXECUTION)
    if execution.status == StepStatus.COMPLETED and intent.tx_hash:
        events.append(
            TimelineEvent(
                id="tl_6",
                type="pay_execution",
                timestamp=execution.timestamp or intent.updated_at,
                title="Payment executed",
                description=f"Transaction {intent.tx_hash[:10]}... confirmed",
                status="success",
                details={"tx_hash": intent.tx_hash},
            )
        )
    elif execution.status == StepStatus.FAILED:
        events.append(
            TimelineEvent(
                id="tl_6",
                type="pay_execution",
                timestamp=execution.timestamp or intent.updated_at,
                title="Payment failed",
                description=execution.details or "Execution failed",
                status="failed",
            )
        )

    return events


def explain(intent: PaymentIntent) -> PaymentExplanation:
    """Why the intent was (or would be) allowed or blocked."""
    blocking = [r for r in intent.guard_results if not r.passed]
    if blocking:
        decision_reason = "Blocked by " + ", ".join(r.guard_name for r in blocking)
    elif intent.guard_results:
        decision_reason = "All guard checks passed"
    else:
        decision_reason = "Guards not evaluated yet"

    return PaymentExplanation(
        intent_id=intent.id,
        agent_id=intent.agent_id,
        agent_name=intent.agent_name,
        tool_name=intent.tool_name,
        reason=intent.description or f"Payment of {format_usd(intent.amount)} to {intent.recipient}",
        allowed=bool(intent.guard_results) and not blocking,
        decision_reason=decision_reason,
        blocking_guards=blocking,
        route=intent.route,
        estimated_fee=intent.estimated_fee,
    )
