"""Pydantic models for guard rules, payment candidates and evaluation results."""

from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


class GuardKind(str, Enum):
    BUDGET = "budget"
    SINGLE_TX = "single_tx"
    RATE_LIMIT = "rate_limit"
    ALLOWLIST = "allowlist"
    BLOCKLIST = "blocklist"
    AUTO_APPROVE = "auto_approve"


class GuardPeriod(str, Enum):
    HOUR = "hour"
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class GuardRule(BaseModel):
    """A single configurable policy check.

    ``config`` is kept as a plain mapping so that a malformed value (a string
    limit, an unknown period) reaches the evaluator and fails that one rule
    instead of failing the whole policy at load time.
    """

    id: str
    name: str
    kind: GuardKind
    enabled: bool = True
    config: dict[str, Any] = Field(default_factory=dict)


class GuardPolicy(BaseModel):
    policy_id: str = ""
    version: int = 1
    description: str | None = None
    guards: list[GuardRule] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("guards")
    @classmethod
    def _unique_ids(cls, guards: list[GuardRule]) -> list[GuardRule]:
        seen = set()
        for guard in guards:
            if guard.id in seen:
                raise ValueError(f"Duplicate guard id: {guard.id}")
            seen.add(guard.id)
        return guards


class PaymentCandidate(BaseModel):
    amount: Decimal = Field(gt=0)
    currency: str = "USDC"
    recipient: str
    recipient_address: str
    wallet_id: str
    chain: str


class GuardResult(BaseModel):
    guard_id: str
    guard_name: str
    passed: bool
    reason: str | None = None


class GuardDecision(BaseModel):
    allowed: bool
    results: list[GuardResult]
    blocked_reason: str | None = None


def format_usd(value: Decimal) -> str:
    """Render an amount as ``$2500`` / ``$12.5`` without trailing zeros."""
    text = format(value, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return f"${text}"
