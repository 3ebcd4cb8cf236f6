"""Blast radius of a guard change across agents and tools.

The scan is read-only and deterministic. An intent is in scope once it has
been guard-evaluated, whether it later succeeded, failed or is still pending.
"""

from collections import Counter
from collections.abc import Iterable
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel

from paywarden.errors import GuardConfigError
from paywarden.guards.checks.params import optional_decimal
from paywarden.guards.engine import GuardEvaluator, SpendContext, period_start
from paywarden.guards.models import GuardPeriod, GuardRule
from paywarden.identity.agent import Agent
from paywarden.intents.models import IntentStatus, PaymentIntent
from paywarden.ledger.models import Transaction

DEFAULT_DAILY_EXPOSURE = Decimal("3000")


class Impact(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class AffectedAgent(BaseModel):
    agent_id: str
    agent_name: str
    impact: Impact
    affected_intents: int
    newly_blocked: int = 0


class AffectedTool(BaseModel):
    tool_id: str
    tool_name: str
    usage_count: int


class BlastRadius(BaseModel):
    guard_id: str | None = None
    affected_agents: list[AffectedAgent]
    affected_tools: list[AffectedTool]
    estimated_daily_exposure: Decimal
    current_daily_spend: Decimal


class BlastRadiusAnalyzer:
    def __init__(
        self,
        evaluator: GuardEvaluator | None = None,
        default_daily_exposure: Decimal = DEFAULT_DAILY_EXPOSURE,
    ) -> None:
        self.evaluator = evaluator or GuardEvaluator()
        self.default_daily_exposure = Decimal(str(default_daily_exposure))

    def analyze(
        self,
        guard_id: str | None,
        intents: Iterable[PaymentIntent],
        agents: Iterable[Agent],
        rules: Iterable[GuardRule] | None = None,
        proposed_rule: GuardRule | None = None,
        context: SpendContext | None = None,
        now: datetime | None = None,
        transactions: Iterable[Transaction] | None = None,
    ) -> BlastRadius:
        """Estimate the impact of changing ``guard_id``.

        Without ``proposed_rule`` every agent with an intent evaluated by the
        guard is affected. With it, only intents whose result for that guard
        would flip count. ``context`` defaults to an empty spend history so
        each intent is judged on its own amount. Today's spend comes from
        ``transactions`` when given, else from succeeded intents by creation time.
        """
        intents = list(intents)
        now = now or datetime.now(UTC)
        if proposed_rule is not None and guard_id is None:
            guard_id = proposed_rule.id

        current_rule = None
        if guard_id is not None:
            current_rule = next((r for r in rules or [] if r.id == guard_id), None)

        in_scope = self._intents_in_scope(guard_id, intents, proposed_rule)
        if proposed_rule is not None:
            affected, newly_blocked = self._flipped(
                guard_id, in_scope, proposed_rule, context or SpendContext(now=now)
            )
        else:
            affected, newly_blocked = in_scope, []

        return BlastRadius(
            guard_id=guard_id,
            affected_agents=self._affected_agents(agents, intents, affected, newly_blocked),
            affected_tools=self._tool_usage(in_scope),
            estimated_daily_exposure=self._exposure(proposed_rule or current_rule),
            current_daily_spend=self._daily_spend(intents, transactions, now),
        )

    @staticmethod
    def _intents_in_scope(
        guard_id: str | None,
        intents: list[PaymentIntent],
        proposed_rule: GuardRule | None,
    ) -> list[PaymentIntent]:
        if guard_id is None:
            return intents
        evaluated = [i for i in intents if i.guard_results]
        if proposed_rule is not None:
            # a changed or brand new rule can reach every evaluated intent
            return evaluated
        return [i for i in evaluated if any(r.guard_id == guard_id for r in i.guard_results)]

    def _flipped(
        self,
        guard_id: str,
        intents: list[PaymentIntent],
        proposed_rule: GuardRule,
        context: SpendContext,
    ) -> tuple[list[PaymentIntent], list[PaymentIntent]]:
        affected = []
        newly_blocked = []
        for intent in intents:
            before = next((r.passed for r in intent.guard_results if r.guard_id == guard_id), True)
            results = self.evaluator.evaluate(intent.candidate(), [proposed_rule], context)
            after = results[0].passed if results else True
            if after != before:
                affected.append(intent)
                if before and not after:
                    newly_blocked.append(intent)
        return affected, newly_blocked

    @staticmethod
    def _affected_agents(
        agents: Iterable[Agent],
        intents: list[PaymentIntent],
        affected: list[PaymentIntent],
        newly_blocked: list[PaymentIntent],
    ) -> list[AffectedAgent]:
        totals = Counter(i.agent_id for i in intents if i.agent_id)
        hits = Counter(i.agent_id for i in affected if i.agent_id)
        blocks = Counter(i.agent_id for i in newly_blocked if i.agent_id)

        result = []
        for agent in agents:
            count = hits.get(agent.agent_id, 0)
            if not count:
                continue
            share = count / totals[agent.agent_id]
            if blocks.get(agent.agent_id) or share >= 0.5:
                impact = Impact.HIGH
            elif share >= 0.2:
                impact = Impact.MEDIUM
            else:
                impact = Impact.LOW
            result.append(
                AffectedAgent(
                    agent_id=agent.agent_id,
                    agent_name=agent.name,
                    impact=impact,
                    affected_intents=count,
                    newly_blocked=blocks.get(agent.agent_id, 0),
                )
            )
        return result

    @staticmethod
    def _tool_usage(intents: list[PaymentIntent]) -> list[AffectedTool]:
        usage = Counter(i.tool_name for i in intents if i.tool_name)
        return [
            AffectedTool(tool_id=f"tool_{name}", tool_name=name, usage_count=count)
            for name, count in usage.most_common()
        ]

    def _exposure(self, rule: GuardRule | None) -> Decimal:
        if rule is None:
            return self.default_daily_exposure
        try:
            limit = optional_decimal(rule.config, "limit")
        except GuardConfigError:
            return self.default_daily_exposure
        return limit if limit is not None else self.default_daily_exposure

    @staticmethod
    def _daily_spend(
        intents: list[PaymentIntent],
        transactions: Iterable[Transaction] | None,
        now: datetime,
    ) -> Decimal:
        start = period_start(GuardPeriod.DAY, now)
        if transactions is not None:
            return sum(
                (t.amount for t in transactions if t.status == "succeeded" and start <= t.timestamp <= now),
                Decimal("0"),
            )
        return sum(
            (i.amount for i in intents if i.status == IntentStatus.SUCCEEDED and start <= i.created_at <= now),
            Decimal("0"),
        )
