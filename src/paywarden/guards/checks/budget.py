"""Period budget check."""

from __future__ import annotations

from typing import TYPE_CHECKING

from paywarden.guards.checks.params import read_period, require_decimal
from paywarden.guards.models import (
    GuardKind,
    GuardPeriod,
    GuardResult,
    GuardRule,
    PaymentCandidate,
    format_usd,
)

if TYPE_CHECKING:
    from paywarden.guards.engine import SpendContext


class BudgetCheck:
    """Check that period-to-date spend + this payment does not exceed the limit."""

    kind = GuardKind.BUDGET

    def evaluate(
        self, rule: GuardRule, candidate: PaymentCandidate, context: SpendContext
    ) -> GuardResult:
        limit = require_decimal(rule.config, "limit")
        period = read_period(rule.config, GuardPeriod.DAY)

        spent = context.spend_for(period)
        new_total = spent + candidate.amount

        if new_total > limit:
            return GuardResult(
                guard_id=rule.id,
                guard_name=rule.name,
                passed=False,
                reason=(
                    f"Exceeds {period.value} budget limit of {format_usd(limit)}: "
                    f"{format_usd(spent)} already spent this {period.value}, "
                    f"payment of {format_usd(candidate.amount)} would bring it to "
                    f"{format_usd(new_total)}"
                ),
            )
        return GuardResult(guard_id=rule.id, guard_name=rule.name, passed=True)
