"""Single transaction amount bounds check."""

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


class SingleTxCheck:
    """Check that the amount is within the configured max (``limit``) and ``min_amount``."""

    kind = GuardKind.SINGLE_TX

    def evaluate(
        self, rule: GuardRule, candidate: PaymentCandidate, context: SpendContext
    ) -> GuardResult:
        limit = optional_decimal(rule.config, "limit")
        min_amount = optional_decimal(rule.config, "min_amount")
        if limit is None and min_amount is None:
            raise GuardConfigError("missing required 'limit' or 'min_amount'")

        if limit is not None and candidate.amount > limit:
            return GuardResult(
                guard_id=rule.id,
                guard_name=rule.name,
                passed=False,
                reason=(
                    f"Amount {format_usd(candidate.amount)} exceeds single transaction "
                    f"limit of {format_usd(limit)}"
                ),
            )
        if min_amount is not None and candidate.amount < min_amount:
            return GuardResult(
                guard_id=rule.id,
                guard_name=rule.name,
                passed=False,
                reason=(
                    f"Amount {format_usd(candidate.amount)} is below single transaction "
                    f"minimum of {format_usd(min_amount)}"
                ),
            )
        return GuardResult(guard_id=rule.id, guard_name=rule.name, passed=True)
