"""Wire the lifecycle together from ~/.paywarden/ configuration."""

import logging
from decimal import Decimal

from paywarden.config import POLICIES_DIR, PaywardenConfig, ensure_dirs, ledger_path, load_config
from paywarden.executors.paper import PaperExecutor
from paywarden.guards.loader import load_policy_from_dir
from paywarden.guards.registry import InMemoryRuleRegistry
from paywarden.intents.lifecycle import IntentLifecycle
from paywarden.intents.repository import InMemoryIntentRepository
from paywarden.ledger.jsonl import JsonlLedger

logger = logging.getLogger(__name__)


def build_registry(config: PaywardenConfig) -> InMemoryRuleRegistry:
    """Rules from the configured policy file, or the starter rules if there is none."""
    try:
        policy = load_policy_from_dir(POLICIES_DIR, config.default_policy)
    except FileNotFoundError:
        logger.info("No policy '%s' found, using default guards", config.default_policy)
        return InMemoryRuleRegistry()
    return InMemoryRuleRegistry(policy.guards)


def build_lifecycle(config: PaywardenConfig | None = None) -> IntentLifecycle:
    config = config or load_config()
    ensure_dirs()
    return IntentLifecycle(
        repository=InMemoryIntentRepository(),
        registry=build_registry(config),
        executor=PaperExecutor(
            starting_balance=Decimal(str(config.paper_starting_balance)),
            fee=Decimal(str(config.network_fee)),
        ),
        ledger=JsonlLedger(ledger_path()),
        execution_timeout=config.execution_timeout_seconds,
    )
