"""Guard engine: pre-payment evaluation against guard rules."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING

from paywarden.errors import GuardConfigError
from paywarden.guards.checks.auto_approve import AutoApproveCheck
from paywarden.guards.checks.budget import BudgetCheck
from paywarden.guards.checks.params import optional_decimal
from paywarden.guards.checks.rate_limit import RateLimitCheck
from paywarden.guards.checks.recipient import AllowlistCheck, BlocklistCheck
from paywarden.guards.checks.single_tx import SingleTxCheck
from paywarden.guards.models import (
    GuardDecision,
    GuardKind,
    GuardPeriod,
    GuardResult,
    GuardRule,
    PaymentCandidate,
)

if TYPE_CHECKING:
    from paywarden.ledger.models import Transaction

logger = logging.getLogger(__name__)

ROLLING_WINDOWS = {
    GuardPeriod.HOUR: timedelta(hours=1),
    GuardPeriod.DAY: timedelta(days=1),
    GuardPeriod.WEEK: timedelta(days=7),
    GuardPeriod.MONTH: timedelta(days=30),
}


def period_start(period: GuardPeriod, now: datetime) -> datetime:
    """Start of the calendar-aligned period containing ``now``."""
    if period == GuardPeriod.HOUR:
        return now.replace(minute=0, second=0, microsecond=0)
    day = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == GuardPeriod.DAY:
        return day
    if period == GuardPeriod.WEEK:
        return day - timedelta(days=day.weekday())
    return day.replace(day=1)


class SpendContext:
    """Pre-fetched spend history required to evaluate guard rules.

    Missing history is zero spend and zero recent transactions.
    """

    def __init__(
        self,
        period_spend: dict[GuardPeriod, Decimal] | None = None,
        recent_timestamps: list[datetime] | None = None,
        now: datetime | None = None,
    ) -> None:
        self.period_spend = dict(period_spend or {})
        self.recent_timestamps = list(recent_timestamps or [])
        self.now = now or datetime.now(UTC)

    def spend_for(self, period: GuardPeriod) -> Decimal:
        return self.period_spend.get(period, Decimal("0"))

    def count_since(self, period: GuardPeriod) -> int:
        """Number of transactions inside the rolling window ending now."""
        cutoff = self.now - ROLLING_WINDOWS[period]
        return sum(1 for ts in self.recent_timestamps if cutoff < ts <= self.now)

    @classmethod
    def from_transactions(
        cls,
        transactions: Iterable[Transaction],
        wallet_id: str | None = None,
        now: datetime | None = None,
        exclude_intent_id: str | None = None,
    ) -> SpendContext:
        """Aggregate succeeded ledger transactions of one wallet."""
        now = now or datetime.now(UTC)
        starts = {period: period_start(period, now) for period in GuardPeriod}
        oldest_window = now - max(ROLLING_WINDOWS.values())

        period_spend = {period: Decimal("0") for period in GuardPeriod}
        recent: list[datetime] = []
        for tx in transactions:
            if tx.status != "succeeded":
                continue
            if wallet_id is not None and tx.wallet_id != wallet_id:
                continue
            if exclude_intent_id is not None and tx.intent_id == exclude_intent_id:
                continue
            for period, start in starts.items():
                if start <= tx.timestamp <= now:
                    period_spend[period] += tx.amount
            if tx.timestamp > oldest_window:
                recent.append(tx.timestamp)

        return cls(period_spend=period_spend, recent_timestamps=recent, now=now)


class GuardCheck:
    """Base class for the check behind one guard kind."""

    kind: GuardKind

    def evaluate(
        self, rule: GuardRule, candidate: PaymentCandidate, context: SpendContext
    ) -> GuardResult:
        raise NotImplementedError


class GuardEvaluator:
    """Run every enabled guard rule against a proposed payment."""

    def __init__(self) -> None:
        self.checks = self._load_checks()

    def _load_checks(self) -> dict[GuardKind, GuardCheck]:
        checks: list[GuardCheck] = [
            BudgetCheck(),
            SingleTxCheck(),
            RateLimitCheck(),
            AllowlistCheck(),
            BlocklistCheck(),
            AutoApproveCheck(),
        ]
        return {check.kind: check for check in checks}

    def evaluate(
        self,
        candidate: PaymentCandidate,
        rules: Iterable[GuardRule],
        context: SpendContext,
    ) -> list[GuardResult]:
        results: list[GuardResult] = []
        for rule in rules:
            if not rule.enabled:
                continue
            results.append(self._evaluate_rule(rule, candidate, context))
        return results

    def decide(
        self,
        candidate: PaymentCandidate,
        rules: Iterable[GuardRule],
        context: SpendContext,
    ) -> GuardDecision:
        results = self.evaluate(candidate, rules, context)
        return aggregate(results)

    def _evaluate_rule(
        self, rule: GuardRule, candidate: PaymentCandidate, context: SpendContext
    ) -> GuardResult:
        check = self.checks.get(rule.kind)
        try:
            if check is None:
                raise GuardConfigError(f"no check registered for kind '{rule.kind}'")
            return check.evaluate(rule, candidate, context)
        except Exception as e:
            logger.warning("Guard %s (%s) failed to evaluate: %s", rule.id, rule.kind.value, e)
            return GuardResult(
                guard_id=rule.id,
                guard_name=rule.name,
                passed=False,
                reason=f"Guard misconfigured: {e}",
            )


def aggregate(results: list[GuardResult]) -> GuardDecision:
    blocked_reasons = [r.reason for r in results if not r.passed and r.reason]
    return GuardDecision(
        allowed=all(r.passed for r in results),
        results=results,
        blocked_reason="; ".join(blocked_reasons) if blocked_reasons else None,
    )


def find_auto_approve_rule(rules: Iterable[GuardRule]) -> GuardRule | None:
    for rule in rules:
        if rule.enabled and rule.kind == GuardKind.AUTO_APPROVE:
            return rule
    return None


def requires_human_approval(candidate: PaymentCandidate, rules: Iterable[GuardRule]) -> bool:
    """Whether a guard-passed payment still needs a human decision.

    Without an enabled auto-approve rule carrying a valid threshold, approval
    is always required.
    """
    rule = find_auto_approve_rule(rules)
    if rule is None:
        return True
    try:
        threshold = optional_decimal(rule.config, "threshold")
    except GuardConfigError:
        return True
    if threshold is None:
        return True
    return candidate.amount > threshold
