"""Auto-approve threshold signal."""

from __future__ import annotations

from typing import TYPE_CHECKING

from paywarden.errors import GuardConfigError
from paywarden.guards.checks.params import optional_decimal
from paywarden.guards.models import (
    GuardKind,
    GuardResult,
    GuardRule,
    PaymentCandidate,
    format_usd,
)

if TYPE_CHECKING:
    from paywarden.guards.engine import SpendContext


class AutoApproveCheck:
    """Never blocks; reports whether the amount can skip human approval."""

    kind = GuardKind.AUTO_APPROVE

    def evaluate(
        self, rule: GuardRule, candidate: PaymentCandidate, context: SpendContext
    ) -> GuardResult:
        try:
            threshold = optional_decimal(rule.config, "threshold")
        except GuardConfigError as e:
            reason = f"Threshold unusable ({e}), human approval required"
        else:
            if threshold is None:
                reason = "No threshold configured, human approval required"
            elif candidate.amount > threshold:
                reason = (
                    f"Amount {format_usd(candidate.amount)} is above auto-approve "
                    f"threshold of {format_usd(threshold)}, human approval required"
                )
            else:
                reason = f"Within auto-approve threshold of {format_usd(threshold)}"

        return GuardResult(guard_id=rule.id, guard_name=rule.name, passed=True, reason=reason)
