"""paywarden agent: agent management commands."""

import click

from paywarden.cli.main import cli
from paywarden.config import ensure_dirs


@cli.group()
def agent() -> None:
    """Agent management commands."""


@agent.command("list")
def list_cmd() -> None:
    """List all registered agents."""
    from paywarden.identity.agent import list_agents

    ensure_dirs()
    agents = list_agents()

    if not agents:
        click.echo("No agents registered. Create one with: paywarden agent create")
        return

    for a in agents:
        click.echo(
            f"  {a.agent_id}  {a.name:<20}  {a.risk_tier.value:<6}  "
            f"created: {a.created_at.isoformat()[:10]}"
        )
        if a.purpose:
            click.echo(f"    purpose: {a.purpose}")


@agent.command()
@click.option("--name", default="default", help="Agent name")
@click.option("--purpose", default=None, help="What the agent pays for")
@click.option(
    "--risk-tier",
    default="medium",
    type=click.Choice(["low", "medium", "high"]),
    help="Risk tier used when reviewing the agent's payments",
)
def create(name: str, purpose: str | None, risk_tier: str) -> None:
    """Create a new agent."""
    from paywarden.identity.agent import RiskTier, create_agent

    ensure_dirs()
    agent_meta = create_agent(name, purpose=purpose, risk_tier=RiskTier(risk_tier))
    click.echo(f"Created agent: {agent_meta.agent_id} ({agent_meta.name})")
