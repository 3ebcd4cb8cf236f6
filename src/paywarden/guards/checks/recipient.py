"""Recipient allowlist and blocklist checks."""

from __future__ import annotations

from typing import TYPE_CHECKING
from urllib.parse import urlparse

from paywarden.errors import GuardConfigError
from paywarden.guards.checks.params import compile_patterns, read_strings
from paywarden.guards.models import GuardKind, GuardResult, GuardRule, PaymentCandidate

if TYPE_CHECKING:
    from paywarden.guards.engine import SpendContext


def recipient_targets(candidate: PaymentCandidate) -> list[str]:
    """Address to match, plus its host name when the address is URL-style."""
    address = candidate.recipient_address.strip()
    targets = [address]
    parsed = urlparse(address)
    if parsed.scheme and parsed.hostname:
        targets.append(parsed.hostname)
    return targets


def _matches(targets: list[str], addresses: list[str], patterns: list[str]) -> bool:
    listed = {a.strip().lower() for a in addresses}
    compiled = compile_patterns(patterns)
    for target in targets:
        if target.lower() in listed:
            return True
        if any(p.fullmatch(target) for p in compiled):
            return True
    return False


class AllowlistCheck:
    """Check that the recipient is in ``addresses`` or matches one of ``patterns``."""

    kind = GuardKind.ALLOWLIST

    def evaluate(
        self, rule: GuardRule, candidate: PaymentCandidate, context: SpendContext
    ) -> GuardResult:
        addresses = read_strings(rule.config, "addresses")
        patterns = read_strings(rule.config, "patterns")
        if not addresses and not patterns:
            raise GuardConfigError("allowlist needs 'addresses' or 'patterns'")

        if not _matches(recipient_targets(candidate), addresses or [], patterns or []):
            return GuardResult(
                guard_id=rule.id,
                guard_name=rule.name,
                passed=False,
                reason=f"Recipient {candidate.recipient_address} is not on allowlist",
            )
        return GuardResult(guard_id=rule.id, guard_name=rule.name, passed=True)


class BlocklistCheck:
    """Check that the recipient is not in ``addresses`` and matches none of ``patterns``."""

    kind = GuardKind.BLOCKLIST

    def evaluate(
        self, rule: GuardRule, candidate: PaymentCandidate, context: SpendContext
    ) -> GuardResult:
        addresses = read_strings(rule.config, "addresses")
        patterns = read_strings(rule.config, "patterns")
        if addresses is None and patterns is None:
            raise GuardConfigError("blocklist needs 'addresses' or 'patterns'")

        if _matches(recipient_targets(candidate), addresses or [], patterns or []):
            return GuardResult(
                guard_id=rule.id,
                guard_name=rule.name,
                passed=False,
                reason=f"Recipient {candidate.recipient_address} is on blocklist",
            )
        return GuardResult(guard_id=rule.id, guard_name=rule.name, passed=True)
