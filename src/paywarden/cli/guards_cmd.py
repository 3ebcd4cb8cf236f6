"""paywarden guards: dry-run the guard rules against a payment."""

import click

from paywarden.cli.main import cli


@cli.group()
def guards() -> None:
    """Guard evaluation commands."""


@guards.command()
@click.option("--amount", required=True, type=str, help="Payment amount in USDC")
@click.option("--recipient-address", required=True, help="Recipient address or service URL")
@click.option("--wallet", "wallet_id", default="default", help="Paying wallet ID")
@click.option("--chain", default="base", help="Source chain")
def check(amount: str, recipient_address: str, wallet_id: str, chain: str) -> None:
    """Show which guards a payment would pass or fail."""
    from paywarden.app import build_lifecycle
    from paywarden.tools.payments import handle_check_guards

    result = handle_check_guards(
        amount, recipient_address, wallet_id, chain, lifecycle=build_lifecycle()
    )
    if result.get("status") == "rejected":
        click.echo(f"Invalid payment: {result['error']}")
        raise SystemExit(1)

    for r in result["results"]:
        icon = "✓" if r["passed"] else "✗"
        line = f"  {icon} {r['guard_name']}"
        if r["reason"]:
            line += f": {r['reason']}"
        click.echo(line)

    if not result["allowed"]:
        click.echo("BLOCKED")
        raise SystemExit(1)
    click.echo("ALLOWED (requires approval)" if result["requires_approval"] else "ALLOWED")
