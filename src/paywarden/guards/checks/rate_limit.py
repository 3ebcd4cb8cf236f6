"""Rolling-window payment rate check."""

from __future__ import annotations

from typing import TYPE_CHECKING

from paywarden.guards.checks.params import read_period, require_count
from paywarden.guards.models import GuardKind, GuardPeriod, GuardResult, GuardRule, PaymentCandidate

if TYPE_CHECKING:
    from paywarden.guards.engine import SpendContext


class RateLimitCheck:
    """Check that payments in the last ``period`` plus this one stay within ``limit``."""

    kind = GuardKind.RATE_LIMIT

    def evaluate(
        self, rule: GuardRule, candidate: PaymentCandidate, context: SpendContext
    ) -> GuardResult:
        limit = require_count(rule.config, "limit")
        period = read_period(rule.config, GuardPeriod.HOUR)

        recent = context.count_since(period)
        if recent + 1 > limit:
            return GuardResult(
                guard_id=rule.id,
                guard_name=rule.name,
                passed=False,
                reason=(
                    f"Exceeds rate limit of {limit} transactions per {period.value} "
                    f"({recent} in the last {period.value})"
                ),
            )
        return GuardResult(guard_id=rule.id, guard_name=rule.name, passed=True)
