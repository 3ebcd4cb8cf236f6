"""Global config loading from ~/.paywarden/."""

from pathlib import Path

from pydantic import BaseModel

PAYWARDEN_DIR = Path.home() / ".paywarden"
OWNER_DIR = PAYWARDEN_DIR / "owner"
POLICIES_DIR = PAYWARDEN_DIR / "policies"
AGENTS_DIR = PAYWARDEN_DIR / "agents"
LEDGER_DIR = PAYWARDEN_DIR / "ledger"


class PaywardenConfig(BaseModel):
    currency: str = "USDC"
    execution_timeout_seconds: float = 30.0
    default_daily_exposure: float = 3000.0
    paper_starting_balance: float = 10_000.0
    network_fee: float = 0.5
    default_policy: str = "default"
    log_level: str = "WARNING"


def ensure_dirs() -> None:
    """Create the ~/.paywarden/ directory structure if it doesn't exist."""
    for d in [PAYWARDEN_DIR, OWNER_DIR, POLICIES_DIR, AGENTS_DIR, LEDGER_DIR]:
        d.mkdir(parents=True, exist_ok=True)


def ledger_path() -> Path:
    return LEDGER_DIR / "transactions.jsonl"


def load_config() -> PaywardenConfig:
    """Load config from ~/.paywarden/config.yaml, or return defaults."""
    ensure_dirs()
    config_path = PAYWARDEN_DIR / "config.yaml"
    if config_path.exists():
        import yaml

        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        return PaywardenConfig(**data)
    return PaywardenConfig()
