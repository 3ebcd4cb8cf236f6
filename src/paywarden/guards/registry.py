"""Guard rule storage for evaluation and operator updates."""

from abc import ABC, abstractmethod
from typing import Any

from paywarden.errors import GuardNotFoundError
from paywarden.guards.models import GuardKind, GuardRule


def default_rules() -> list[GuardRule]:
    """The starter policy every new workspace gets."""
    return [
        GuardRule(
            id="guard_1",
            name="Daily Budget",
            kind=GuardKind.BUDGET,
            config={"limit": 3000, "period": "day"},
        ),
        GuardRule(
            id="guard_2",
            name="Single Transaction Limit",
            kind=GuardKind.SINGLE_TX,
            config={"limit": 2000},
        ),
        GuardRule(
            id="guard_3",
            name="Rate Limit",
            kind=GuardKind.RATE_LIMIT,
            config={"limit": 50, "period": "hour"},
        ),
        GuardRule(
            id="guard_4",
            name="Auto-approve Threshold",
            kind=GuardKind.AUTO_APPROVE,
            config={"threshold": 100},
        ),
    ]


class RuleRegistry(ABC):
    @abstractmethod
    def list_rules(self) -> list[GuardRule]: ...

    @abstractmethod
    def get(self, guard_id: str) -> GuardRule: ...

    @abstractmethod
    def save(self, rule: GuardRule) -> None: ...

    def enabled_rules(self) -> list[GuardRule]:
        return [r for r in self.list_rules() if r.enabled]

    def update(self, guard_id: str, **changes: Any) -> GuardRule:
        """Apply a partial update; ``config`` is merged key by key."""
        rule = self.get(guard_id)
        config_changes = changes.pop("config", None) or {}
        data = rule.model_dump()
        data.update(changes)
        data["config"] = {**rule.config, **config_changes}
        updated = GuardRule(**data)
        self.save(updated)
        return updated


class InMemoryRuleRegistry(RuleRegistry):
    """Dict-backed registry preserving insertion order."""

    def __init__(self, rules: list[GuardRule] | None = None) -> None:
        self._rules: dict[str, GuardRule] = {}
        for rule in default_rules() if rules is None else rules:
            if rule.id in self._rules:
                raise ValueError(f"Duplicate guard id: {rule.id}")
            self._rules[rule.id] = rule

    def list_rules(self) -> list[GuardRule]:
        return [r.model_copy(deep=True) for r in self._rules.values()]

    def get(self, guard_id: str) -> GuardRule:
        if guard_id not in self._rules:
            raise GuardNotFoundError(f"Guard not found: {guard_id}")
        return self._rules[guard_id].model_copy(deep=True)

    def save(self, rule: GuardRule) -> None:
        self._rules[rule.id] = rule.model_copy(deep=True)
