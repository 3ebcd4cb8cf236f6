"""paywarden pay: run a payment through the full guarded lifecycle."""

import asyncio

import click

from paywarden.cli.main import cli


@cli.command()
@click.option("--amount", required=True, type=str, help="Payment amount in USDC")
@click.option("--recipient", required=True, help="Recipient name")
@click.option("--recipient-address", required=True, help="Recipient address or service URL")
@click.option("--wallet", "wallet_id", default="default", help="Paying wallet ID")
@click.option("--chain", default="base", help="Source chain")
@click.option("--description", default="", help="What the payment is for")
@click.option("--yes", is_flag=True, default=False, help="Approve without prompting")
def pay(
    amount: str,
    recipient: str,
    recipient_address: str,
    wallet_id: str,
    chain: str,
    description: str,
    yes: bool,
) -> None:
    """Create, simulate, approve and execute a payment against the paper executor."""
    asyncio.run(
        _pay(amount, recipient, recipient_address, wallet_id, chain, description, yes)
    )


async def _pay(
    amount: str,
    recipient: str,
    recipient_address: str,
    wallet_id: str,
    chain: str,
    description: str,
    yes: bool,
) -> None:
    from paywarden.app import build_lifecycle
    from paywarden.identity.agent import get_or_create_default_agent
    from paywarden.tools.payments import (
        handle_approve_payment,
        handle_create_payment_intent,
        handle_execute_payment,
        handle_simulate_payment,
    )

    lifecycle = build_lifecycle()
    created = handle_create_payment_intent(
        amount,
        recipient,
        recipient_address,
        wallet_id,
        chain,
        description=description,
        lifecycle=lifecycle,
        agent=get_or_create_default_agent(),
    )
    if created.get("status") == "rejected":
        click.echo(f"Invalid payment: {created['error']}")
        raise SystemExit(1)

    intent_id = created["id"]
    click.echo(f"Intent {intent_id}: ${amount} to {recipient}")

    simulated = await handle_simulate_payment(intent_id, lifecycle=lifecycle)
    for r in simulated["guard_results"]:
        icon = "✓" if r["passed"] else "✗"
        click.echo(f"  {icon} {r['guard_name']}" + (f": {r['reason']}" if r["reason"] else ""))

    if simulated["status"] != "awaiting_approval":
        click.echo(f"Payment {simulated['status']}.")
        raise SystemExit(1)

    click.echo(f"  Route: {simulated['route']}, estimated fee: ${simulated['estimated_fee']}")

    if simulated["requires_approval"]:
        if not yes and not click.confirm("  Approve this payment?", default=False):
            click.echo("Payment left awaiting approval.")
            return
        approved = await handle_approve_payment(intent_id, lifecycle=lifecycle)
        if approved.get("status") == "rejected":
            click.echo(f"Approval failed: {approved['error']}")
            raise SystemExit(1)
    else:
        click.echo("  Auto-approved")

    executed = await handle_execute_payment(intent_id, lifecycle=lifecycle)
    if executed["status"] != "succeeded":
        failed_step = next((s for s in executed.get("steps", []) if s["status"] == "failed"), None)
        reason = failed_step["details"] if failed_step else executed.get("error")
        click.echo(f"Payment failed: {reason}")
        raise SystemExit(1)

    click.echo(f"Payment succeeded: {executed['tx_hash']}")
