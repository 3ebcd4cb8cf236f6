"""paywarden init: interactive setup wizard."""

import os
import uuid
from datetime import UTC, datetime

import click
import yaml

from paywarden.cli.main import cli
from paywarden.config import AGENTS_DIR, LEDGER_DIR, OWNER_DIR, PAYWARDEN_DIR, POLICIES_DIR


@cli.command()
def init() -> None:
    """Set up Paywarden: generate keys, create a signed policy, register an agent."""
    click.echo()
    click.echo("Paywarden Setup")
    click.echo("===============")
    click.echo()

    for d in [PAYWARDEN_DIR, OWNER_DIR, POLICIES_DIR, AGENTS_DIR, LEDGER_DIR]:
        d.mkdir(parents=True, exist_ok=True)

    _setup_owner_keys()
    _create_policy()
    _create_default_agent()

    click.echo()
    click.echo("Ready. Start with: paywarden serve")


def _setup_owner_keys() -> None:
    from paywarden.identity.owner import (
        PRIVATE_KEY_FILE,
        PUBLIC_KEY_FILE,
        generate_and_store_keypair,
        keypair_exists,
    )

    click.echo("Generating owner keypair...")

    if keypair_exists(OWNER_DIR):
        click.echo(f"  Keypair already exists at {OWNER_DIR}")
        if not click.confirm("  Overwrite existing keypair?", default=False):
            click.echo("  Keeping existing keypair.")
            return

    generate_and_store_keypair(OWNER_DIR)
    click.echo(f"  ✓ Private key: {OWNER_DIR / PRIVATE_KEY_FILE} (owner-read only)")
    click.echo(f"  ✓ Public key:  {OWNER_DIR / PUBLIC_KEY_FILE}")
    click.echo()


def _create_policy() -> None:
    """Write the default guard policy from user prompts and sign it."""
    from paywarden.guards.registry import default_rules
    from paywarden.guards.signer import sign_policy
    from paywarden.identity.owner import load_private_key

    click.echo("Creating default guard policy...")

    daily_budget = click.prompt("  Daily budget (USD)", default=3000, type=float)
    max_single = click.prompt("  Max single payment (USD)", default=2000, type=float)
    rate_limit = click.prompt("  Max payments per hour", default=50, type=int)
    auto_approve = click.prompt("  Auto-approve payments up to (USD)", default=100, type=float)
    blocked_str = click.prompt("  Block any recipient addresses?", default="")

    overrides = {
        "guard_1": {"limit": daily_budget},
        "guard_2": {"limit": max_single},
        "guard_3": {"limit": rate_limit},
        "guard_4": {"threshold": auto_approve},
    }
    guards = []
    for rule in default_rules():
        data = rule.model_dump(mode="json")
        data["config"].update(overrides.get(rule.id, {}))
        guards.append(data)

    blocked = [s.strip() for s in blocked_str.split(",") if s.strip()]
    if blocked:
        guards.append(
            {
                "id": f"guard_{len(guards) + 1}",
                "name": "Recipient Blocklist",
                "kind": "blocklist",
                "enabled": True,
                "config": {"addresses": blocked},
            }
        )

    policy_data = {
        "policy_id": f"pol_{uuid.uuid4().hex[:8]}",
        "version": 1,
        "description": "Default policy created by paywarden init",
        "guards": guards,
        "created_at": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
    }

    policy_path = POLICIES_DIR / "default.yaml"
    if policy_path.exists():
        os.chmod(policy_path, 0o644)
    policy_path.write_text(yaml.dump(policy_data, sort_keys=False, default_flow_style=False))

    click.echo(f"  ✓ Policy written to {policy_path}")

    try:
        private_key = load_private_key(OWNER_DIR)
        sign_policy(policy_path, private_key)
        click.echo("  ✓ Policy signed with owner key")
        click.echo("  ✓ Policy file set to read-only")
    except FileNotFoundError:
        click.echo("  ⚠ Could not sign policy (no private key found)")
        os.chmod(policy_path, 0o444)

    click.echo()


def _create_default_agent() -> None:
    from paywarden.identity.agent import create_agent, list_agents

    click.echo("Registering default agent...")

    existing = list_agents(AGENTS_DIR)
    if existing:
        click.echo(f"  Agent already exists: {existing[0].agent_id} ({existing[0].name})")
        if not click.confirm("  Create another agent?", default=False):
            click.echo(f"  ✓ Using existing agent {existing[0].agent_id}")
            return

    name = click.prompt("  Agent name", default="default")
    purpose = click.prompt("  What does this agent pay for?", default="", show_default=False)
    agent = create_agent(name, purpose=purpose or None, agents_dir=AGENTS_DIR)

    click.echo(f"  ✓ Agent {agent.agent_id} created")
    click.echo()
