"""Pydantic models for payment intents, their steps and derived reports."""

from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from paywarden.guards.models import GuardResult, PaymentCandidate


class IntentStatus(str, Enum):
    PENDING = "pending"
    SIMULATING = "simulating"
    AWAITING_APPROVAL = "awaiting_approval"
    REQUIRES_APPROVAL = "requires_approval"
    APPROVED = "approved"
    EXECUTING = "executing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    BLOCKED = "blocked"


class StepStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class StepName(str, Enum):
    SIMULATION = "Simulation"
    APPROVAL = "Approval"
    EXECUTION = "Execution"
    CONFIRMATION = "Confirmation"


class ApprovalState(str, Enum):
    """What the Approval step means for an intent, independent of its status label."""

    NOT_EVALUATED = "not_evaluated"
    PENDING_HUMAN = "pending_human"
    AUTO_APPROVED = "auto_approved"
    APPROVED = "approved"
    REJECTED = "rejected"


class PaymentStep(BaseModel):
    id: str
    name: StepName
    status: StepStatus = StepStatus.PENDING
    timestamp: datetime | None = None
    details: str | None = None
    # set when the step completed without a human decision
    automatic: bool = False


def initial_steps() -> list[PaymentStep]:
    return [PaymentStep(id=f"s{i}", name=name) for i, name in enumerate(StepName, start=1)]


class PaymentRequest(BaseModel):
    amount: Decimal = Field(gt=0)
    currency: str = "USDC"
    recipient: str
    recipient_address: str
    wallet_id: str
    chain: str
    description: str = ""


class PaymentIntent(BaseModel):
    id: str
    amount: Decimal
    currency: str = "USDC"
    recipient: str
    recipient_address: str
    wallet_id: str
    chain: str
    description: str = ""
    status: IntentStatus = IntentStatus.PENDING
    steps: list[PaymentStep] = Field(default_factory=initial_steps)
    guard_results: list[GuardResult] = Field(default_factory=list)
    route: str | None = None
    estimated_fee: Decimal | None = None
    tx_hash: str | None = None
    agent_id: str | None = None
    agent_name: str | None = None
    tool_name: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def step(self, name: StepName) -> PaymentStep:
        for step in self.steps:
            if step.name == name:
                return step
        raise KeyError(name)

    def touch(self) -> None:
        self.updated_at = datetime.now(UTC)

    def candidate(self) -> PaymentCandidate:
        return PaymentCandidate(
            amount=self.amount,
            currency=self.currency,
            recipient=self.recipient,
            recipient_address=self.recipient_address,
            wallet_id=self.wallet_id,
            chain=self.chain,
        )

    @property
    def approval_state(self) -> ApprovalState:
        approval = self.step(StepName.APPROVAL)
        if approval.status == StepStatus.PENDING:
            return ApprovalState.NOT_EVALUATED
        if approval.status == StepStatus.IN_PROGRESS:
            return ApprovalState.PENDING_HUMAN
        if approval.status == StepStatus.FAILED:
            return ApprovalState.REJECTED
        return ApprovalState.AUTO_APPROVED if approval.automatic else ApprovalState.APPROVED


class GuardDiff(BaseModel):
    guard_id: str
    guard_name: str
    original: bool
    current: bool
    reason: str | None = None


class ReplayResult(BaseModel):
    intent_id: str
    original_allowed: bool
    original_timestamp: datetime
    original_results: list[GuardResult]
    current_allowed: bool
    current_timestamp: datetime
    current_results: list[GuardResult]
    differences: list[GuardDiff]


class TimelineEvent(BaseModel):
    id: str
    type: str
    timestamp: datetime
    title: str
    description: str
    status: str
    details: dict[str, Any] = Field(default_factory=dict)


class PaymentExplanation(BaseModel):
    intent_id: str
    agent_id: str | None = None
    agent_name: str | None = None
    tool_name: str | None = None
    reason: str
    allowed: bool
    decision_reason: str
    blocking_guards: list[GuardResult] = Field(default_factory=list)
    route: str | None = None
    estimated_fee: Decimal | None = None
